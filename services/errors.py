"""
Typed errors raised by the spreadsheet codec.

Soft data problems never surface here: they are absorbed by the coercion
layer. These exceptions cover documents that cannot be read or written.
"""

from typing import Optional


class ExcelCodecError(Exception):
    """Base class for spreadsheet codec failures."""

    def __init__(self, message: str, cause: Optional[BaseException] = None):
        super().__init__(message)
        self.message = message
        self.cause = cause


class WorkbookReadError(ExcelCodecError):
    """The uploaded document is not a readable workbook."""


class WorkbookWriteError(ExcelCodecError):
    """Assembling or serializing a workbook failed."""
