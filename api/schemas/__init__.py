"""
Pydantic schemas for request/response validation.

This package contains all Pydantic models used for API request validation
and response serialization.
"""

from api.schemas.common import ErrorResponse, PaginatedResponse, HealthCheckResponse
from api.schemas.import_schema import ImportWarningItem, ImportResultResponse, ExportRequest

__all__ = [
    # Common
    'ErrorResponse',
    'PaginatedResponse',
    'HealthCheckResponse',
    
    # Import / export
    'ImportWarningItem',
    'ImportResultResponse',
    'ExportRequest',
]
