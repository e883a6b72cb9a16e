"""
Pytest configuration and fixtures for the spreadsheet exchange tests.
"""

import base64
import random
import time
from datetime import date
from io import BytesIO
from typing import Any, Dict, List, Optional, Sequence

import openpyxl
import pytest
import requests
from PIL import Image

from backend.models.sample import Category, Platform, Sample


def _image_bytes(fmt: str, color: str = 'red') -> bytes:
    buffer = BytesIO()
    Image.new('RGB', (8, 8), color).save(buffer, format=fmt)
    return buffer.getvalue()


class FakeResponse:
    """Minimal stand-in for requests.Response used by ImageFetcher."""

    def __init__(self, content: bytes = b'', status_code: int = 200,
                 headers: Optional[Dict[str, str]] = None, delay: float = 0.0):
        self.content = content
        self.status_code = status_code
        self.headers = headers or {}
        self.delay = delay
        self.closed = False

    @property
    def ok(self) -> bool:
        return self.status_code < 400

    def iter_content(self, chunk_size: int = 1024):
        if self.delay:
            time.sleep(self.delay)
        for start in range(0, len(self.content), chunk_size):
            yield self.content[start:start + chunk_size]

    def close(self):
        self.closed = True


class FakeSession:
    """Session returning canned responses per URL; unknown URLs fail to connect."""

    def __init__(self, responses: Optional[Dict[str, FakeResponse]] = None):
        self.responses = responses or {}
        self.headers: Dict[str, str] = {}
        self.requested: List[str] = []

    def get(self, url, timeout=None, stream=False):
        self.requested.append(url)
        if url not in self.responses:
            raise requests.ConnectionError(f"Cannot connect to {url}")
        return self.responses[url]


@pytest.fixture(scope='session')
def png_bytes() -> bytes:
    return _image_bytes('PNG')


@pytest.fixture(scope='session')
def jpeg_bytes() -> bytes:
    return _image_bytes('JPEG', 'blue')


@pytest.fixture(scope='session')
def gif_bytes() -> bytes:
    return _image_bytes('GIF', 'green')


@pytest.fixture(scope='session')
def png_data_uri(png_bytes) -> str:
    return 'data:image/png;base64,' + base64.b64encode(png_bytes).decode('ascii')


@pytest.fixture(scope='session')
def large_png_data_uri() -> str:
    """Inline PNG whose data URI is far longer than a formula literal allows."""
    rng = random.Random(7)
    noise = Image.frombytes('RGB', (48, 48), bytes(rng.getrandbits(8) for _ in range(48 * 48 * 3)))
    buffer = BytesIO()
    noise.save(buffer, format='PNG')
    return 'data:image/png;base64,' + base64.b64encode(buffer.getvalue()).decode('ascii')


@pytest.fixture
def fake_session():
    return FakeSession()


@pytest.fixture
def make_sample():
    """Factory for Sample records with sensible defaults."""

    def factory(**overrides: Any) -> Sample:
        data = {
            'name': '高保湿面霜',
            'brand_name': '示例品牌',
            'category': Category.BEAUTY,
            'image_url': '',
            'entry_date': date(2025, 10, 15),
            'location_code': 'A-01-01',
            'stock_quantity': 50,
            'price': 299.0,
            'commission_rate': 20.0,
            'mechanism': '买一送一',
            'platform': [Platform.DOUYIN, Platform.KUAISHOU],
            'specs': '50ml',
            'tracking_number': 'SF123456789',
            'business_contact': '小王',
            'merchant_contact': '李总',
            'merchant_phone': '13800138000',
            'remarks': '详情见 https://example.com/item',
        }
        data.update(overrides)
        return Sample(**data)

    return factory


@pytest.fixture
def build_workbook():
    """Build xlsx bytes from a header row plus data rows."""

    def factory(header: Sequence[Any], rows: Sequence[Sequence[Any]] = (),
                title: str = 'Sheet1') -> bytes:
        workbook = openpyxl.Workbook()
        worksheet = workbook.active
        worksheet.title = title
        worksheet.append(list(header))
        for row in rows:
            worksheet.append(list(row))
        buffer = BytesIO()
        workbook.save(buffer)
        return buffer.getvalue()

    return factory


@pytest.fixture
def fixed_today() -> date:
    return date(2025, 1, 2)
