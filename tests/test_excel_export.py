"""
Tests for the export sheet and the import template.
"""

import logging
from datetime import date
from io import BytesIO

import openpyxl
import pytest

from services import excel_export_service
from services.errors import WorkbookWriteError
from services.excel_export_service import (
    DATA_ROW_HEIGHT, DEFAULT_TEMPLATE_FILENAME, ExcelExportService, export_filename
)
from services.field_schema import EXPORT_COLUMNS, template_fields
from services.image_service import ImageFetcher
from conftest import FakeResponse, FakeSession

IMAGE_COLUMN = EXPORT_COLUMNS.index('image_url') + 1


@pytest.fixture
def exporter():
    def factory(responses=None, **kwargs):
        fetcher = ImageFetcher(session=FakeSession(responses), max_workers=2)
        return ExcelExportService(image_fetcher=fetcher, **kwargs)

    return factory


def _load(content: bytes):
    return openpyxl.load_workbook(BytesIO(content)).active


class TestExportLayout:
    def test_header_row(self, exporter, make_sample):
        workbook, _ = exporter().build_workbook([make_sample()])
        ws = workbook.active

        headers = [ws.cell(row=1, column=c).value for c in range(1, len(EXPORT_COLUMNS) + 1)]
        assert headers[:4] == ['ID', '产品图片', '产品名称', '品牌']
        assert headers[-1] == '备注'

        header = ws.cell(row=1, column=1)
        assert header.font.bold
        assert header.fill.start_color.rgb == 'FF2563EB'
        assert ws.freeze_panes == 'A2'

    def test_data_row_values(self, exporter, make_sample):
        sample = make_sample(commission_rate=12.5, tracking_number=None)
        ws = exporter().build_workbook([sample])[0].active
        row = {key: ws.cell(row=2, column=i).value for i, key in enumerate(EXPORT_COLUMNS, 1)}

        assert row['id'] == sample.id
        assert row['name'] == '高保湿面霜'
        assert row['category'] == '美妆护肤'
        assert row['platform'] == '抖音, 快手'
        assert row['commission_rate'] == '12.5%'
        assert row['entry_date'] == '2025-10-15'
        assert row['tracking_number'] == ''
        assert row['stock_quantity'] == 50
        assert ws.row_dimensions[2].height == DATA_ROW_HEIGHT

    def test_rows_keep_input_order(self, exporter, make_sample):
        samples = [make_sample(name=f"样品{i}") for i in range(5)]
        ws = exporter().build_workbook(samples)[0].active
        names = [ws.cell(row=r, column=EXPORT_COLUMNS.index('name') + 1).value for r in range(2, 7)]
        assert names == [f"样品{i}" for i in range(5)]

    def test_formula_like_text_stays_text(self, exporter, make_sample):
        ws = exporter().build_workbook([make_sample(remarks='=SUM(1,2)')])[0].active
        cell = ws.cell(row=2, column=EXPORT_COLUMNS.index('remarks') + 1)
        assert cell.data_type == 's'

    def test_control_characters_removed(self, exporter, make_sample):
        samples = [make_sample(name='ok'), make_sample(name='面\x00霜', remarks='line\x0bbreak')]
        result = exporter().export_samples(samples)

        ws = _load(result.content)
        assert result.rows == 2
        assert ws.cell(row=3, column=EXPORT_COLUMNS.index('name') + 1).value == '面霜'
        assert ws.cell(row=3, column=EXPORT_COLUMNS.index('remarks') + 1).value == 'linebreak'

    def test_row_failure_is_typed(self, exporter, make_sample, monkeypatch):
        def broken_value(sample, key):
            raise ValueError('bad cell')

        monkeypatch.setattr(excel_export_service, '_sample_cell_value', broken_value)
        with pytest.raises(WorkbookWriteError) as exc_info:
            exporter().export_samples([make_sample()])
        assert 'bad cell' in exc_info.value.message

    def test_empty_export_has_header_only(self, exporter):
        result = exporter().export_samples([])
        ws = _load(result.content)
        assert ws.max_row == 1
        assert result.rows == 0


class TestImageColumn:
    def test_no_image(self, exporter, make_sample):
        ws = exporter().build_workbook([make_sample(image_url='')])[0].active
        assert ws.cell(row=2, column=IMAGE_COLUMN).value == '无图'
        assert ws._images == []

    def test_embedded_inline_image(self, exporter, make_sample, png_data_uri):
        workbook, stats = exporter().build_workbook([make_sample(image_url=png_data_uri)])
        ws = workbook.active

        assert ws.cell(row=2, column=IMAGE_COLUMN).value.startswith('=HYPERLINK("data:image/png;base64,')
        assert stats['images_embedded'] == 1
        assert len(ws._images) == 1

        marker = ws._images[0].anchor._from
        assert marker.col == IMAGE_COLUMN - 1
        assert marker.row == 1

    def test_embedded_remote_image(self, exporter, make_sample, jpeg_bytes):
        url = 'https://cdn.example.com/p.jpg'
        service = exporter({url: FakeResponse(jpeg_bytes, headers={'Content-Type': 'image/jpeg'})})
        workbook, stats = service.build_workbook([make_sample(image_url=url)])

        assert workbook.active.cell(row=2, column=IMAGE_COLUMN).value == f'=HYPERLINK("{url}","查看图片")'
        assert stats['images_embedded'] == 1

    def test_unreachable_image_keeps_link(self, exporter, make_sample, png_data_uri):
        samples = [
            make_sample(name='a', image_url='https://offline.invalid/a.png'),
            make_sample(name='b', image_url=png_data_uri),
        ]
        result = exporter().export_samples(samples)

        assert result.rows == 2
        assert result.images_embedded == 1
        assert result.images_failed == 1

        ws = _load(result.content)
        assert ws.cell(row=2, column=IMAGE_COLUMN).value == '=HYPERLINK("https://offline.invalid/a.png","查看图片")'

    def test_long_inline_image_uses_cell_hyperlink(self, exporter, make_sample, large_png_data_uri):
        result = exporter().export_samples([make_sample(image_url=large_png_data_uri)])
        assert result.images_embedded == 1

        cell = _load(result.content).cell(row=2, column=IMAGE_COLUMN)
        assert cell.value == '查看图片'
        assert cell.hyperlink.target == large_png_data_uri

    def test_embedded_format_logged(self, exporter, make_sample, png_data_uri, caplog):
        with caplog.at_level(logging.DEBUG, logger='services.excel_export_service'):
            exporter().build_workbook([make_sample(image_url=png_data_uri)])
        assert 'Embedded png image' in caplog.text

    def test_every_image_failing_still_exports(self, exporter, make_sample):
        samples = [make_sample(image_url=f'https://offline.invalid/{i}.png') for i in range(3)]
        result = exporter().export_samples(samples)
        assert result.rows == 3
        assert result.images_failed == 3
        assert result.content


class TestExportResult:
    def test_filename(self):
        assert export_filename('LiveWMS_Export', date(2025, 1, 2)) == 'LiveWMS_Export_2025-01-02.xlsx'
        assert export_filename('', date(2025, 1, 2)) == 'LiveWMS_Export_2025-01-02.xlsx'

    def test_export_uses_basename_and_today(self, exporter, make_sample):
        result = exporter().export_samples([make_sample()], basename='精选')
        assert result.filename == f"精选_{date.today().isoformat()}.xlsx"
        assert result.media_type.endswith('spreadsheetml.sheet')

    def test_progress_reported(self, exporter, make_sample):
        stages = []
        service = exporter(progress_callback=lambda stage, percent, message: stages.append(stage))
        service.export_samples([make_sample()])
        assert stages[0] == 'images'
        assert stages[-1] == 'complete'

    def test_serialization_failure(self, exporter, make_sample, monkeypatch):
        def broken_save(self, filename):
            raise IOError('disk full')

        monkeypatch.setattr(openpyxl.Workbook, 'save', broken_save)
        with pytest.raises(WorkbookWriteError) as exc_info:
            exporter().export_samples([make_sample()])
        assert 'disk full' in exc_info.value.message


class TestTemplate:
    def test_headers_and_required_marks(self, exporter):
        result = exporter().generate_template()
        ws = _load(result.content)
        specs = template_fields()

        headers = [ws.cell(row=1, column=c).value for c in range(1, len(specs) + 1)]
        assert headers == [spec.template_header for spec in specs]

        for col, spec in enumerate(specs, 1):
            fill = ws.cell(row=1, column=col).fill.start_color.rgb
            assert fill == ('FFDC2626' if spec.required else 'FF2563EB')

    def test_single_example_row(self, exporter):
        result = exporter().generate_template()
        ws = _load(result.content)

        assert ws.max_row == 2
        assert result.filename == DEFAULT_TEMPLATE_FILENAME
        assert ws._images == []

        specs = template_fields()
        example = {spec.key: ws.cell(row=2, column=c).value for c, spec in enumerate(specs, 1)}
        assert example['name']
        assert example['location_code']
        assert example['entry_date'] == date.today().isoformat()
        assert str(example['image_url']).startswith('http')
