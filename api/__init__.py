"""
FastAPI application for the sample spreadsheet exchange.

This package contains the REST API for importing samples from workbooks
and downloading export sheets and the import template.
"""

__version__ = "1.0.0"
