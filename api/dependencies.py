"""
Dependency injection utilities for FastAPI.

This module provides reusable dependencies for the sample store, the
spreadsheet services and upload validation.
"""

import logging
from pathlib import Path

from fastapi import HTTPException, status

from api.config import settings
from backend.models.store import SampleStore
from services.excel_export_service import ExcelExportService
from services.excel_import_service import ExcelImportService
from services.image_service import ImageFetcher

logger = logging.getLogger(__name__)

# Process-wide record store
sample_store = SampleStore()


def get_sample_store() -> SampleStore:
    """
    Get the in-memory sample store.

    Usage:
        @app.get("/endpoint")
        def endpoint(store: SampleStore = Depends(get_sample_store)):
            ...
    """
    return sample_store


def get_import_service() -> ExcelImportService:
    """Build an import service from settings."""
    return ExcelImportService(default_image_url=settings.DEFAULT_IMAGE_URL)


def get_export_service() -> ExcelExportService:
    """Build an export service with a fresh image fetcher."""
    fetcher = ImageFetcher(
        timeout=settings.IMAGE_FETCH_TIMEOUT,
        max_workers=settings.IMAGE_FETCH_WORKERS,
        max_bytes=settings.MAX_IMAGE_SIZE_MB * 1024 * 1024
    )
    return ExcelExportService(image_fetcher=fetcher)


def verify_file_size(file_size: int) -> bool:
    """
    Verify uploaded file size is within limit.

    Args:
        file_size: File size in bytes

    Returns:
        True if size is acceptable

    Raises:
        HTTPException: If file is too large
    """
    max_size_bytes = settings.MAX_FILE_SIZE_MB * 1024 * 1024

    if file_size > max_size_bytes:
        logger.warning(f"Rejected upload of {file_size} bytes")
        raise HTTPException(
            status_code=status.HTTP_413_REQUEST_ENTITY_TOO_LARGE,
            detail=f"File size ({file_size / 1024 / 1024:.1f} MB) exceeds maximum allowed "
                   f"({settings.MAX_FILE_SIZE_MB} MB)"
        )

    return True


def verify_file_extension(filename: str) -> bool:
    """
    Verify file has allowed extension.

    Args:
        filename: Name of uploaded file

    Returns:
        True if extension is allowed

    Raises:
        HTTPException: If extension is not allowed
    """
    ext = Path(filename or '').suffix.lower()

    if ext not in [e.lower() for e in settings.ALLOWED_EXTENSIONS]:
        logger.warning(f"Rejected upload with extension '{ext}'")
        raise HTTPException(
            status_code=status.HTTP_400_BAD_REQUEST,
            detail=f"File extension '{ext}' not allowed. "
                   f"Allowed extensions: {', '.join(settings.ALLOWED_EXTENSIONS)}"
        )

    return True
