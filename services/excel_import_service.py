"""
Excel Import Service - Framework-agnostic business logic.

Reads a user-supplied workbook, resolves its header row against the field
schema and turns every data row into a Sample. Cell problems degrade to
field defaults; only unreadable documents are reported as failures.
"""

import logging
from dataclasses import dataclass, field
from datetime import date
from enum import Enum
from io import BytesIO
from pathlib import Path
from typing import Any, Callable, Dict, List, Optional, Sequence, Tuple, Union

import openpyxl
from openpyxl.worksheet.worksheet import Worksheet
from pydantic import ValidationError

from backend.models.sample import (
    Sample, DEFAULT_CATEGORY, DEFAULT_PLATFORM, generate_sample_id
)
from services.errors import WorkbookReadError
from services.field_schema import FIELDS_BY_KEY, FieldType, REQUIRED_FIELDS
from services.header_resolver import resolve_headers
from services.value_coercion import coerce_value, is_blank

logger = logging.getLogger(__name__)

# Default configuration (can be overridden)
DEFAULT_IMAGE_URL = 'https://picsum.photos/200/200'

READ_FAILED_MESSAGE = '文件解析失败，请检查文件格式是否正确。'
NO_VALID_DATA_MESSAGE = '未在文件中找到有效数据，请确保包含“产品名称”和“货架位置”列。'


class ImportStatus(str, Enum):
    """Outcome of an import."""
    SUCCESS = 'success'
    NO_VALID_DATA = 'no_valid_data'
    READ_FAILED = 'read_failed'


@dataclass
class ImportWarning:
    """A substituted or dropped cell value."""
    row: int
    field: str
    message: str


@dataclass
class ImportResult:
    """Accepted samples plus what happened to the rest of the sheet."""
    status: ImportStatus
    samples: List[Sample] = field(default_factory=list)
    message: str = ''
    detail: Optional[str] = None
    sheet_name: Optional[str] = None
    columns: Dict[int, str] = field(default_factory=dict)
    total_rows: int = 0
    accepted_rows: int = 0
    rejected_rows: int = 0
    blank_rows: int = 0
    warnings: List[ImportWarning] = field(default_factory=list)

    @property
    def ok(self) -> bool:
        return self.status == ImportStatus.SUCCESS


def link_or_value(cell: Any) -> Any:
    """Formula text of a cell, or its hyperlink target when it carries one."""
    link = getattr(cell, 'hyperlink', None)
    if link is not None and link.target:
        return link.target
    return cell.value


WorkbookSource = Union[bytes, bytearray, str, Path, BytesIO]


class ExcelImportService:
    """
    Framework-agnostic Excel import service.

    Pipeline: load workbook -> resolve headers once -> coerce each mapped
    cell -> keep rows that have both a name and a shelf location.
    """

    def __init__(
        self,
        default_image_url: str = DEFAULT_IMAGE_URL,
        progress_callback: Optional[Callable[[str, float, str], None]] = None,
        today: Optional[Callable[[], date]] = None
    ):
        """
        Initialize Excel import service.

        Args:
            default_image_url: Placeholder image for rows without one
            progress_callback: Optional callback for progress updates
                              Signature: callback(stage: str, percent: float, message: str)
            today: Clock used for the entry-date fallback (default: date.today)
        """
        self.default_image_url = default_image_url
        self.progress_callback = progress_callback or (lambda *args: None)
        self.today = today or date.today

    def _emit_progress(self, stage: str, percent: float, message: str):
        """Emit progress update via callback."""
        self.progress_callback(stage, percent, message)
        logger.info(f"Progress: {stage} ({percent:.1f}%) - {message}")

    def load_workbook(self, source: WorkbookSource) -> Tuple[Optional[Worksheet], Optional[Worksheet]]:
        """
        Open the first worksheet of a workbook.

        Loaded twice like any formula-aware reader: once for cached values,
        once for formula text (the image column stores HYPERLINK formulas).

        Returns:
            (values_sheet, formulas_sheet), both None if the workbook has no sheet

        Raises:
            WorkbookReadError: If the document is not a readable workbook
        """
        if isinstance(source, (bytes, bytearray)):
            data = bytes(source)
        elif isinstance(source, BytesIO):
            data = source.getvalue()
        else:
            try:
                data = Path(source).read_bytes()
            except OSError as e:
                raise WorkbookReadError(f"Could not read file {source}: {e}", cause=e)

        if not data:
            raise WorkbookReadError("Uploaded file is empty")

        try:
            wb_values = openpyxl.load_workbook(BytesIO(data), data_only=True)
            wb_formulas = openpyxl.load_workbook(BytesIO(data), data_only=False)
        except Exception as e:
            logger.error(f"Failed to open workbook: {e}")
            raise WorkbookReadError(f"Not a readable xlsx workbook: {e}", cause=e)

        if not wb_values.worksheets:
            return None, None
        return wb_values.worksheets[0], wb_formulas.worksheets[0]

    def _row_defaults(self) -> Dict[str, Any]:
        return {
            'id': generate_sample_id(),
            'category': DEFAULT_CATEGORY,
            'entry_date': self.today(),
            'stock_quantity': 0,
            'selection_count': 0,
            'platform': [DEFAULT_PLATFORM],
            'image_url': self.default_image_url,
            'is_free_shipping': True,
            'include_shipping_fee': False,
            'remark_images': [],
        }

    def row_to_sample(
        self,
        row_number: int,
        values: Sequence[Any],
        columns: Dict[int, str],
        formulas: Optional[Sequence[Any]] = None
    ) -> Tuple[Optional[Sample], List[ImportWarning], bool]:
        """
        Build a Sample from one worksheet row.

        Args:
            row_number: 1-based worksheet row, used in warnings
            values: Cell values of the row
            columns: Column position -> field key from the header resolver
            formulas: Same row read with formulas, for the image column

        Returns:
            (sample or None if rejected, warnings, whether the row had any data)
        """
        record = self._row_defaults()
        warnings: List[ImportWarning] = []
        has_data = False

        for position, key in columns.items():
            spec = FIELDS_BY_KEY[key]
            source = formulas if (spec.field_type == FieldType.IMAGE and formulas) else values
            raw = source[position] if position < len(source) else None
            if is_blank(raw):
                continue

            has_data = True
            result = coerce_value(spec, raw, default=record.get(key))
            if result.diagnostic:
                warnings.append(ImportWarning(row_number, key, result.diagnostic))

            if spec.field_type == FieldType.IMAGE and not result.value:
                continue
            record[key] = result.value

        if not has_data:
            return None, warnings, False

        missing = [key for key in REQUIRED_FIELDS if not str(record.get(key) or '').strip()]
        if missing:
            logger.debug(f"Row {row_number} rejected, missing: {', '.join(missing)}")
            return None, warnings, True

        try:
            sample = Sample(**record)
        except ValidationError as e:
            logger.warning(f"Row {row_number} rejected by model validation: {e}")
            warnings.append(ImportWarning(row_number, 'row', f"invalid record: {e.error_count()} errors"))
            return None, warnings, True

        return sample, warnings, True

    def parse_worksheet(self, values_sheet: Worksheet,
                        formulas_sheet: Optional[Worksheet] = None) -> ImportResult:
        """Convert a loaded worksheet into an ImportResult."""
        result = ImportResult(status=ImportStatus.NO_VALID_DATA, sheet_name=values_sheet.title)

        header_row = next(values_sheet.iter_rows(min_row=1, max_row=1, values_only=True), ())
        result.columns = resolve_headers(header_row)
        if not result.columns:
            result.message = NO_VALID_DATA_MESSAGE
            result.detail = 'No recognized header columns'
            logger.warning(f"No recognized headers in sheet '{values_sheet.title}'")
            return result

        formula_rows = None
        if formulas_sheet is not None:
            formula_rows = (
                tuple(link_or_value(cell) for cell in row)
                for row in formulas_sheet.iter_rows(min_row=2)
            )

        for row_number, values in enumerate(values_sheet.iter_rows(min_row=2, values_only=True), 2):
            formulas = next(formula_rows, None) if formula_rows is not None else None
            sample, warnings, has_data = self.row_to_sample(row_number, values, result.columns, formulas)
            result.warnings.extend(warnings)

            if not has_data:
                result.blank_rows += 1
                continue

            result.total_rows += 1
            if sample is None:
                result.rejected_rows += 1
            else:
                result.samples.append(sample)

        result.accepted_rows = len(result.samples)
        if result.samples:
            result.status = ImportStatus.SUCCESS
            result.message = f"成功解析 {result.accepted_rows} 条样品数据"
        else:
            result.message = NO_VALID_DATA_MESSAGE
            result.detail = 'No row has both a product name and a shelf location'
        return result

    def import_workbook(self, source: WorkbookSource) -> ImportResult:
        """
        Main import workflow.

        Args:
            source: Workbook bytes, a file-like buffer, or a path

        Returns:
            ImportResult. READ_FAILED if the file could not be opened,
            NO_VALID_DATA if nothing was accepted, SUCCESS otherwise.
        """
        self._emit_progress('loading', 5, 'Opening workbook...')
        try:
            values_sheet, formulas_sheet = self.load_workbook(source)
        except WorkbookReadError as e:
            return ImportResult(
                status=ImportStatus.READ_FAILED,
                message=READ_FAILED_MESSAGE,
                detail=e.message
            )

        if values_sheet is None:
            return ImportResult(
                status=ImportStatus.NO_VALID_DATA,
                message=NO_VALID_DATA_MESSAGE,
                detail='Workbook has no worksheet'
            )

        self._emit_progress('parsing', 30, f"Reading sheet: {values_sheet.title}")
        result = self.parse_worksheet(values_sheet, formulas_sheet)

        logger.info(
            f"Import finished: {result.accepted_rows} accepted, {result.rejected_rows} rejected, "
            f"{len(result.warnings)} warnings"
        )
        self._emit_progress('complete', 100, result.message)
        return result
