"""
Tests for the value coercion layer.

Every coercion must return a usable typed value and never raise.
"""

from datetime import date, datetime

import pytest

from backend.models.sample import Category, Platform
from services.field_schema import get_field
from services.value_coercion import (
    cell_text, coerce_boolean, coerce_category, coerce_date, coerce_decimal,
    coerce_image, coerce_integer, coerce_platforms, coerce_value, is_blank
)


class TestIntegers:
    """Stock quantity and selection count."""

    @pytest.mark.parametrize('raw, expected', [
        (12, 12),
        (12.9, 12),
        ('12', 12),
        (' 12件', 12),
        ('12.7', 12),
        ('1,200', 1200),
        (True, 1),
    ])
    def test_parses_leading_integer(self, raw, expected):
        assert coerce_integer(raw).value == expected

    @pytest.mark.parametrize('raw', [None, '', '   ', 'abc', '件12', float('nan')])
    def test_unparseable_is_zero(self, raw):
        assert coerce_integer(raw).value == 0

    def test_diagnostic_only_for_non_blank(self):
        assert coerce_integer('').diagnostic is None
        assert 'abc' in coerce_integer('abc').diagnostic

    def test_negative_clamped(self):
        result = coerce_integer('-5')
        assert result.value == 0
        assert result.diagnostic


class TestDecimals:
    """Price, procurement price and commission rate."""

    @pytest.mark.parametrize('raw, expected', [
        ('¥99.5', 99.5),
        ('￥1,299.00', 1299.0),
        ('20%', 20.0),
        ('12.5 %', 12.5),
        ('99.5元', 99.5),
        (299, 299.0),
        (0.15, 0.15),
        ('.5', 0.5),
    ])
    def test_strips_symbols(self, raw, expected):
        assert coerce_decimal(raw).value == pytest.approx(expected)

    @pytest.mark.parametrize('raw', [None, '', 'abc', '¥', '%', float('inf')])
    def test_unparseable_is_zero(self, raw):
        result = coerce_decimal(raw)
        assert result.value == 0
        assert isinstance(result.value, float)

    def test_negative_clamped(self):
        assert coerce_decimal('-3.5').value == 0.0


class TestCategory:
    def test_exact_match(self):
        assert coerce_category('美妆护肤').value is Category.BEAUTY
        assert coerce_category(' 3C数码 ').value is Category.ELECTRONICS

    @pytest.mark.parametrize('raw', ['美妆', 'Beauty', '', None, 42])
    def test_unknown_is_other(self, raw):
        assert coerce_category(raw).value is Category.OTHER

    def test_unknown_reports(self):
        assert '美妆' in coerce_category('美妆').diagnostic
        assert coerce_category('').diagnostic is None


class TestPlatforms:
    def test_comma_list(self):
        assert coerce_platforms('抖音, 快手').value == [Platform.DOUYIN, Platform.KUAISHOU]

    def test_full_width_comma(self):
        assert coerce_platforms('淘宝，视频号').value == [Platform.TAOBAO, Platform.CHANNELS]

    def test_unknown_tokens_dropped(self):
        result = coerce_platforms('抖音, 火星')
        assert result.value == [Platform.DOUYIN]
        assert '火星' in result.diagnostic

    def test_no_valid_tokens_falls_back_to_default(self):
        assert coerce_platforms('火星').value == [Platform.OTHER]

    @pytest.mark.parametrize('raw', [None, '', ',,', '，', 'x, y, z'])
    def test_never_empty(self, raw):
        assert coerce_platforms(raw).value == [Platform.OTHER]

    def test_duplicates_collapsed(self):
        assert coerce_platforms('抖音,抖音,快手').value == [Platform.DOUYIN, Platform.KUAISHOU]


class TestDates:
    def test_datetime_truncated(self):
        assert coerce_date(datetime(2025, 3, 5, 14, 30)).value == date(2025, 3, 5)

    def test_date_kept(self):
        assert coerce_date(date(2025, 3, 5)).value == date(2025, 3, 5)

    def test_excel_serial(self):
        assert coerce_date(45000).value == date(2023, 3, 15)

    @pytest.mark.parametrize('raw', [
        '2025-03-05', '2025-3-5', '2025/3/5', '2025.03.05', '2025年3月5日', '2025-03-05 10:20:00',
    ])
    def test_text_formats(self, raw):
        assert coerce_date(raw).value == date(2025, 3, 5)

    def test_empty_uses_today(self, fixed_today):
        result = coerce_date('', today=fixed_today)
        assert result.value == fixed_today
        assert result.diagnostic is None

    def test_garbage_uses_today_and_is_flagged(self, fixed_today):
        result = coerce_date('下周一', today=fixed_today)
        assert result.value == fixed_today
        assert '下周一' in result.diagnostic


class TestBooleans:
    @pytest.mark.parametrize('raw', ['是', 'TRUE', 'yes', '1', 1, True, '√'])
    def test_true(self, raw):
        assert coerce_boolean(raw, default=False).value is True

    @pytest.mark.parametrize('raw', ['否', 'false', 'No', '0', 0, False, '×'])
    def test_false(self, raw):
        assert coerce_boolean(raw, default=True).value is False

    def test_unrecognized_keeps_default(self):
        result = coerce_boolean('看情况', default=True)
        assert result.value is True
        assert result.diagnostic


class TestImageReference:
    def test_plain_url(self):
        assert coerce_image(' https://a.com/x.png ').value == 'https://a.com/x.png'

    def test_hyperlink_formula(self):
        assert coerce_image('=HYPERLINK("https://a.com/x.png","查看图片")').value == 'https://a.com/x.png'

    def test_no_image_label(self):
        assert coerce_image('无图').value == ''

    def test_other_formula(self):
        result = coerce_image('=A1')
        assert result.value == ''
        assert result.diagnostic


class TestDispatch:
    def test_dispatch_by_field_type(self):
        assert coerce_value(get_field('stock_quantity'), 'abc').value == 0
        assert coerce_value(get_field('price'), '¥99.5').value == 99.5
        assert coerce_value(get_field('platform'), '火星').value == [Platform.OTHER]
        assert coerce_value(get_field('name'), '  测试霜 ').value == '测试霜'

    def test_boolean_default_passed_through(self):
        spec = get_field('is_free_shipping')
        assert coerce_value(spec, '随便', default=True).value is True
        assert coerce_value(spec, '随便', default=False).value is False

    @pytest.mark.parametrize('key', [
        'stock_quantity', 'price', 'commission_rate', 'category', 'platform',
        'entry_date', 'name', 'is_free_shipping', 'image_url',
    ])
    @pytest.mark.parametrize('raw', [None, '', '???', object(), [1, 2], -1e400])
    def test_never_raises(self, key, raw):
        coerce_value(get_field(key), raw)


def test_cell_text():
    assert cell_text(13800138000.0) == '13800138000'
    assert cell_text(datetime(2025, 3, 5)) == '2025-03-05'
    assert cell_text(None) == ''
    assert is_blank('  ') and is_blank(None) and not is_blank(0)
