"""
Samples router - spreadsheet import/export for the sample store.

This module provides endpoints for listing samples, importing them from an
uploaded workbook and downloading export sheets or the import template.
"""

import logging
import re
from typing import Optional
from urllib.parse import quote

from fastapi import APIRouter, Depends, File, HTTPException, Query, UploadFile, status
from fastapi.concurrency import run_in_threadpool
from fastapi.responses import JSONResponse, Response
from openpyxl.utils import get_column_letter

from api.config import settings
from api.dependencies import (
    get_export_service, get_import_service, get_sample_store,
    verify_file_extension, verify_file_size
)
from api.schemas.common import PaginatedResponse
from api.schemas.import_schema import ExportRequest, ImportResultResponse, ImportWarningItem
from backend.models.sample import Sample
from backend.models.store import SampleStore
from services.errors import WorkbookWriteError
from services.excel_export_service import ExcelExportService, ExportResult
from services.excel_import_service import ExcelImportService, ImportResult, ImportStatus

logger = logging.getLogger(__name__)

# Create router
router = APIRouter(prefix='/samples', tags=['samples'])

EXPORT_FAILED_MESSAGE = '导出失败，请稍后重试'
TEMPLATE_FAILED_MESSAGE = '模板生成失败'

# Characters that would break the quoted filename parameter
UNSAFE_FILENAME_PATTERN = re.compile(r'["\\\x00-\x1f\x7f]')

_STATUS_CODES = {
    ImportStatus.SUCCESS: status.HTTP_200_OK,
    ImportStatus.NO_VALID_DATA: status.HTTP_422_UNPROCESSABLE_ENTITY,
    ImportStatus.READ_FAILED: status.HTTP_400_BAD_REQUEST,
}


def _download(result: ExportResult) -> Response:
    """Wrap a serialized workbook in an attachment response."""
    fallback = result.filename.encode('ascii', 'ignore').decode('ascii')
    fallback = UNSAFE_FILENAME_PATTERN.sub('', fallback)
    if not fallback or fallback.startswith('.'):
        fallback = f"download{fallback or '.xlsx'}"
    disposition = f"attachment; filename=\"{fallback}\"; filename*=UTF-8''{quote(result.filename)}"
    return Response(
        content=result.content,
        media_type=result.media_type,
        headers={'Content-Disposition': disposition}
    )


def _to_response(result: ImportResult, imported: int) -> ImportResultResponse:
    return ImportResultResponse(
        status=result.status.value,
        message=result.message,
        imported=imported,
        total_rows=result.total_rows,
        rejected_rows=result.rejected_rows,
        columns={get_column_letter(pos + 1): key for pos, key in sorted(result.columns.items())},
        warnings=[ImportWarningItem(row=w.row, field=w.field, message=w.message) for w in result.warnings],
        samples=result.samples
    )


@router.get('', response_model=PaginatedResponse[Sample])
async def list_samples(
    page: int = Query(1, ge=1, description="Page number"),
    page_size: int = Query(50, ge=1, le=500, description="Items per page"),
    store: SampleStore = Depends(get_sample_store)
):
    """
    List samples currently held in the store, newest import first.

    **Example:**
    ```bash
    curl "http://localhost:8000/api/samples?page=1&page_size=20"
    ```
    """
    samples = store.list()
    offset = (page - 1) * page_size
    return PaginatedResponse[Sample].create(
        items=samples[offset:offset + page_size],
        total=len(samples),
        page=page,
        page_size=page_size
    )


@router.post('/import', response_model=ImportResultResponse)
async def import_samples(
    file: UploadFile = File(..., description="Workbook to import (.xlsx)"),
    store: SampleStore = Depends(get_sample_store),
    service: ExcelImportService = Depends(get_import_service)
):
    """
    Import samples from an uploaded workbook.

    Accepted rows are prepended to the store. The response status tells the
    two failure modes apart:
    - `400`: the file could not be read as a workbook
    - `422`: the file was read but no row has both 产品名称 and 货架位置
    """
    logger.info(f"Import request: {file.filename}")
    verify_file_extension(file.filename)

    data = await file.read()
    verify_file_size(len(data))

    result = await run_in_threadpool(service.import_workbook, data)

    imported = 0
    if result.status == ImportStatus.SUCCESS:
        imported = store.prepend(result.samples)
    else:
        logger.warning(f"Import of {file.filename} returned {result.status.value}: {result.detail}")

    body = _to_response(result, imported)
    return JSONResponse(
        status_code=_STATUS_CODES[result.status],
        content=body.model_dump(mode='json', by_alias=True)
    )


@router.get('/export')
async def export_store(
    basename: Optional[str] = Query(None, min_length=1, max_length=100, description="File name prefix"),
    store: SampleStore = Depends(get_sample_store),
    service: ExcelExportService = Depends(get_export_service)
):
    """
    Download every stored sample as `<basename>_<YYYY-MM-DD>.xlsx`.
    """
    return await _export(store.list(), basename, service)


@router.post('/export')
async def export_selection(
    request: ExportRequest,
    service: ExcelExportService = Depends(get_export_service)
):
    """
    Download a caller-supplied sample list (e.g. the currently filtered view).
    """
    return await _export(request.samples, request.basename, service)


async def _export(samples, basename: Optional[str], service: ExcelExportService) -> Response:
    try:
        result = await run_in_threadpool(
            service.export_samples, samples, basename or settings.EXPORT_BASENAME
        )
    except WorkbookWriteError as e:
        logger.error(f"Export failed: {e.message}")
        raise HTTPException(
            status_code=status.HTTP_500_INTERNAL_SERVER_ERROR,
            detail=EXPORT_FAILED_MESSAGE
        )

    logger.info(
        f"Exported {result.rows} samples to {result.filename} "
        f"({result.images_embedded} images embedded, {result.images_failed} link-only)"
    )
    return _download(result)


@router.get('/template')
async def download_template(
    service: ExcelExportService = Depends(get_export_service)
):
    """
    Download the blank import template with one example row.
    """
    try:
        result = await run_in_threadpool(service.generate_template)
    except WorkbookWriteError as e:
        logger.error(f"Template generation failed: {e.message}")
        raise HTTPException(
            status_code=status.HTTP_500_INTERNAL_SERVER_ERROR,
            detail=TEMPLATE_FAILED_MESSAGE
        )

    result.filename = settings.TEMPLATE_FILENAME
    return _download(result)
