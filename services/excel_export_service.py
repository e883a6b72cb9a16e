"""
Excel Export Service - build sample workbooks for download.

Produces the export sheet (one row per sample with embedded product images)
and the blank import template. Both layouts come from the field schema.
"""

import logging
from dataclasses import dataclass
from datetime import date
from io import BytesIO
from typing import Any, Callable, Dict, Iterable, List, Optional, Tuple

import openpyxl
from openpyxl.cell.cell import ILLEGAL_CHARACTERS_RE
from openpyxl.drawing.image import Image as XLImage
from openpyxl.drawing.spreadsheet_drawing import AnchorMarker, OneCellAnchor
from openpyxl.drawing.xdr import XDRPositiveSize2D
from openpyxl.styles import Alignment, Font, PatternFill
from openpyxl.utils import get_column_letter
from openpyxl.utils.units import pixels_to_EMU
from openpyxl.workbook import Workbook
from openpyxl.worksheet.worksheet import Worksheet

from backend.models.sample import Sample
from services.errors import WorkbookWriteError
from services.field_schema import FieldSpec, EXPORT_COLUMNS, export_fields, template_fields
from services.formula_service import FormulaParser
from services.image_service import ImageData, ImageFetcher
from services.value_coercion import NO_IMAGE_LABEL

logger = logging.getLogger(__name__)

# Default configuration (can be overridden)
DEFAULT_EXPORT_BASENAME = 'LiveWMS_Export'
DEFAULT_TEMPLATE_FILENAME = '样品导入模板.xlsx'
EXPORT_SHEET_TITLE = '样品清单'
TEMPLATE_SHEET_TITLE = '导入模板'
VIEW_IMAGE_LABEL = '查看图片'
XLSX_MEDIA_TYPE = 'application/vnd.openxmlformats-officedocument.spreadsheetml.sheet'

HEADER_FONT = Font(bold=True, size=12, color='FFFFFFFF')
HEADER_FILL = PatternFill(fill_type='solid', start_color='FF2563EB', end_color='FF2563EB')
REQUIRED_HEADER_FILL = PatternFill(fill_type='solid', start_color='FFDC2626', end_color='FFDC2626')
HEADER_ALIGNMENT = Alignment(vertical='center', horizontal='center', wrap_text=True)
HEADER_ROW_HEIGHT = 30

DATA_ROW_HEIGHT = 90
DATA_ALIGNMENT = Alignment(vertical='center', horizontal='left', wrap_text=True)
LINK_FONT = Font(color='FF0000FF', underline='single', size=10)
LINK_ALIGNMENT = Alignment(vertical='bottom', horizontal='center')
NO_IMAGE_ALIGNMENT = Alignment(vertical='center', horizontal='center')

# Excel rejects string literals longer than this inside a formula
MAX_FORMULA_LITERAL = 255


@dataclass(frozen=True)
class ImageAnchor:
    """
    Placement of an embedded picture inside its cell.

    The picture is pinned to the top-left of the cell, nudged inward by the
    offsets, and kept small enough to leave the link label visible below it.
    A one-cell anchor moves with the cell but is never resized by it.
    """
    column_index: int
    offset_x: int = 12
    offset_y: int = 8
    width: int = 80
    height: int = 70


DEFAULT_IMAGE_ANCHOR = ImageAnchor(column_index=EXPORT_COLUMNS.index('image_url'))


@dataclass
class ExportResult:
    """Serialized workbook ready for download."""
    filename: str
    content: bytes
    rows: int = 0
    images_embedded: int = 0
    images_failed: int = 0
    media_type: str = XLSX_MEDIA_TYPE


def export_filename(basename: str = DEFAULT_EXPORT_BASENAME, today: Optional[date] = None) -> str:
    """Build ``<basename>_<YYYY-MM-DD>.xlsx``."""
    today = today or date.today()
    return f"{basename or DEFAULT_EXPORT_BASENAME}_{today.isoformat()}.xlsx"


def _write_header(worksheet: Worksheet, specs: List[FieldSpec], headers: List[str],
                  mark_required: bool = False):
    for col_idx, (spec, text) in enumerate(zip(specs, headers), 1):
        cell = worksheet.cell(row=1, column=col_idx, value=text)
        cell.font = HEADER_FONT
        cell.fill = REQUIRED_HEADER_FILL if (mark_required and spec.required) else HEADER_FILL
        cell.alignment = HEADER_ALIGNMENT
        worksheet.column_dimensions[get_column_letter(col_idx)].width = spec.width

    worksheet.row_dimensions[1].height = HEADER_ROW_HEIGHT
    # Keep the header visible while scrolling
    worksheet.freeze_panes = 'A2'


def _format_number(value: float) -> str:
    return str(int(value)) if float(value).is_integer() else repr(float(value))


def clean_text(value: Any) -> Any:
    """Drop control characters that the xlsx XML cannot carry."""
    if isinstance(value, str):
        return ILLEGAL_CHARACTERS_RE.sub('', value)
    return value


def _sample_cell_value(sample: Sample, key: str) -> Any:
    """Cell value for one exported field."""
    if key == 'category':
        return sample.category.value
    if key == 'platform':
        return sample.platform_label
    if key == 'commission_rate':
        return f"{_format_number(sample.commission_rate)}%"
    if key == 'entry_date':
        return sample.entry_date.isoformat()
    if key == 'tracking_number':
        return clean_text(sample.tracking_number or '')
    return clean_text(getattr(sample, key))


def _serialize(workbook: Workbook) -> bytes:
    buffer = BytesIO()
    try:
        workbook.save(buffer)
    except Exception as e:
        logger.error(f"Workbook serialization failed: {e}", exc_info=True)
        raise WorkbookWriteError(f"Could not write workbook: {e}", cause=e)
    return buffer.getvalue()


class ExcelExportService:
    """
    Framework-agnostic workbook builder.

    Handles the export sheet with embedded images and the import template.
    """

    def __init__(
        self,
        image_fetcher: Optional[ImageFetcher] = None,
        image_anchor: ImageAnchor = DEFAULT_IMAGE_ANCHOR,
        progress_callback: Optional[Callable[[str, float, str], None]] = None
    ):
        """
        Initialize export service.

        Args:
            image_fetcher: Loader for product images (default: ImageFetcher())
            image_anchor: Placement of embedded pictures
            progress_callback: Optional callback for progress updates
                              Signature: callback(stage: str, percent: float, message: str)
        """
        self.image_fetcher = image_fetcher or ImageFetcher()
        self.image_anchor = image_anchor
        self.progress_callback = progress_callback or (lambda *args: None)

    def _emit_progress(self, stage: str, percent: float, message: str):
        """Emit progress update via callback."""
        self.progress_callback(stage, percent, message)
        logger.info(f"Progress: {stage} ({percent:.1f}%) - {message}")

    def _embed_image(self, worksheet: Worksheet, row_idx: int, image: ImageData):
        anchor = self.image_anchor
        picture = XLImage(BytesIO(image.content))
        picture.width = anchor.width
        picture.height = anchor.height

        # AnchorMarker rows/columns are 0-based
        marker = AnchorMarker(
            col=anchor.column_index,
            colOff=pixels_to_EMU(anchor.offset_x),
            row=row_idx - 1,
            rowOff=pixels_to_EMU(anchor.offset_y)
        )
        size = XDRPositiveSize2D(pixels_to_EMU(anchor.width), pixels_to_EMU(anchor.height))
        picture.anchor = OneCellAnchor(_from=marker, ext=size)
        worksheet.add_image(picture)
        logger.debug(f"Embedded {image.extension} image ({image.size} bytes) at row {row_idx}")

    def _write_image_cell(self, worksheet: Worksheet, row_idx: int, sample: Sample,
                          image: Optional[ImageData]) -> bool:
        """Fill the image column; returns True if a picture was embedded."""
        cell = worksheet.cell(row=row_idx, column=self.image_anchor.column_index + 1)

        if not sample.image_url:
            cell.value = NO_IMAGE_LABEL
            cell.alignment = NO_IMAGE_ALIGNMENT
            return False

        # The link is written regardless so the row stays useful offline
        target = clean_text(sample.image_url)
        if len(target.replace('"', '""')) <= MAX_FORMULA_LITERAL:
            cell.value = FormulaParser.build_hyperlink(target, VIEW_IMAGE_LABEL)
        else:
            # Inline data URIs are far too long for a formula literal
            cell.value = VIEW_IMAGE_LABEL
            cell.hyperlink = target
        cell.font = LINK_FONT
        cell.alignment = LINK_ALIGNMENT

        if image is None:
            return False

        try:
            self._embed_image(worksheet, row_idx, image)
        except Exception as e:
            logger.warning(f"Could not embed image for sample {sample.id}: {e}")
            return False
        return True

    def build_workbook(self, samples: List[Sample]) -> Tuple[Workbook, Dict[str, int]]:
        """
        Assemble the export workbook in memory.

        Images are loaded concurrently up front, then rows are written in
        input order. A failed image only downgrades its own row to link-only.

        Returns:
            (workbook, stats) where stats counts rows and embedded/failed images
        """
        self._emit_progress('images', 5, f"Loading images for {len(samples)} samples...")
        images = self.image_fetcher.acquire_many([s.image_url for s in samples])

        self._emit_progress('assembling', 60, 'Writing rows...')
        workbook = openpyxl.Workbook()
        worksheet = workbook.active
        worksheet.title = EXPORT_SHEET_TITLE

        specs = export_fields()
        _write_header(worksheet, specs, [s.export_header or s.header for s in specs])

        embedded = 0
        failed = 0
        for offset, (sample, image) in enumerate(zip(samples, images)):
            row_idx = offset + 2
            try:
                for col_idx, spec in enumerate(specs, 1):
                    if spec.key == 'image_url':
                        continue
                    value = _sample_cell_value(sample, spec.key)
                    cell = worksheet.cell(row=row_idx, column=col_idx, value=value)
                    if FormulaParser.is_formula(value):
                        # User text is never written as a live formula
                        cell.data_type = 's'
                    cell.alignment = DATA_ALIGNMENT

                worksheet.row_dimensions[row_idx].height = DATA_ROW_HEIGHT
                if self._write_image_cell(worksheet, row_idx, sample, image):
                    embedded += 1
                elif sample.image_url:
                    failed += 1
            except Exception as e:
                logger.error(f"Could not write row {row_idx} (sample {sample.id}): {e}", exc_info=True)
                raise WorkbookWriteError(f"Could not write sample {sample.id}: {e}", cause=e)

        stats = {'rows': len(samples), 'images_embedded': embedded, 'images_failed': failed}
        logger.info(f"Assembled export sheet: {stats}")
        return workbook, stats

    def export_samples(self, samples: Iterable[Sample],
                       basename: str = DEFAULT_EXPORT_BASENAME) -> ExportResult:
        """
        Export samples to an xlsx byte stream.

        Args:
            samples: Records in the order they should appear
            basename: File name prefix; the ISO date is appended

        Returns:
            ExportResult

        Raises:
            WorkbookWriteError: If the workbook cannot be serialized
        """
        samples = list(samples)
        logger.info(f"Starting export of {len(samples)} samples")

        workbook, stats = self.build_workbook(samples)

        self._emit_progress('serializing', 90, 'Writing workbook...')
        content = _serialize(workbook)

        self._emit_progress('complete', 100, 'Export complete')
        return ExportResult(filename=export_filename(basename), content=content, **stats)

    def generate_template(self) -> ExportResult:
        """
        Build the blank import template with one example row.

        Raises:
            WorkbookWriteError: If the workbook cannot be serialized
        """
        workbook = openpyxl.Workbook()
        worksheet = workbook.active
        worksheet.title = TEMPLATE_SHEET_TITLE

        specs = template_fields()
        _write_header(worksheet, specs, [s.template_header for s in specs], mark_required=True)

        for col_idx, spec in enumerate(specs, 1):
            value = spec.example
            if spec.key == 'entry_date':
                value = date.today().isoformat()
            worksheet.cell(row=2, column=col_idx, value=value)

        logger.info(f"Generated import template with {len(specs)} columns")
        return ExportResult(filename=DEFAULT_TEMPLATE_FILENAME, content=_serialize(workbook), rows=1)
