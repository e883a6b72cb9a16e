"""
Value coercion layer - convert raw cell values into typed sample fields.

Every coercion returns a CoercionResult(value, diagnostic). Malformed input
never raises: it degrades to the field's fallback (0, today, OTHER, ...)
and the diagnostic says what was substituted so the import can report it.
"""

import math
import re
from datetime import date, datetime
from typing import Any, Callable, Dict, List, NamedTuple, Optional

from openpyxl.utils.datetime import from_excel

from backend.models.sample import Category, Platform, DEFAULT_CATEGORY, DEFAULT_PLATFORM
from services.field_schema import FieldSpec, FieldType
from services.formula_service import FormulaParser

# Symbols stripped before decimal parsing
DECIMAL_NOISE_PATTERN = re.compile(r'[¥￥$%,，\s]')
LEADING_INTEGER_PATTERN = re.compile(r'^[+-]?\d+')
LEADING_DECIMAL_PATTERN = re.compile(r'^[+-]?(?:\d+(?:\.\d*)?|\.\d+)(?:[eE][+-]?\d+)?')
PLATFORM_SEPARATOR_PATTERN = re.compile(r'[,，]')

DATE_FORMATS = (
    '%Y-%m-%d',
    '%Y/%m/%d',
    '%Y.%m.%d',
    '%Y年%m月%d日',
    '%Y-%m-%d %H:%M:%S',
    '%Y-%m-%d %H:%M',
    '%Y/%m/%d %H:%M:%S',
    '%Y/%m/%d %H:%M',
    '%Y%m%d',
)

TRUE_WORDS = {'是', '有', '包邮', 'true', 'yes', 'y', '1', '√', '✓', '✔'}
FALSE_WORDS = {'否', '无', '不包邮', 'false', 'no', 'n', '0', '×', '✗', '✘'}

# Placeholder the export writes when a sample has no image
NO_IMAGE_LABEL = '无图'


class CoercionResult(NamedTuple):
    """Typed value plus an optional note about substituted input."""
    value: Any
    diagnostic: Optional[str] = None


def is_blank(raw: Any) -> bool:
    """True for None and whitespace-only text."""
    return raw is None or (isinstance(raw, str) and not raw.strip())


def cell_text(raw: Any) -> str:
    """Render a cell value as trimmed text."""
    if raw is None:
        return ''
    if isinstance(raw, datetime):
        if raw.time() == datetime.min.time():
            return raw.date().isoformat()
        return raw.isoformat(sep=' ')
    if isinstance(raw, date):
        return raw.isoformat()
    if isinstance(raw, float) and math.isfinite(raw) and raw.is_integer():
        # Phone numbers and codes typed into numeric cells
        return str(int(raw))
    return str(raw).strip()


def coerce_text(raw: Any) -> CoercionResult:
    return CoercionResult(cell_text(raw))


def coerce_integer(raw: Any) -> CoercionResult:
    """Parse the leading integer of a cell; failures and negatives become 0."""
    value = None
    if isinstance(raw, bool):
        value = int(raw)
    elif isinstance(raw, int):
        value = raw
    elif isinstance(raw, float):
        if math.isfinite(raw):
            value = int(raw)
    else:
        text = cell_text(raw).replace(',', '').replace('，', '')
        match = LEADING_INTEGER_PATTERN.match(text)
        if match:
            value = int(match.group(0))

    if value is None:
        if is_blank(raw):
            return CoercionResult(0)
        return CoercionResult(0, f"'{cell_text(raw)}' is not a number, using 0")
    if value < 0:
        return CoercionResult(0, f"negative value {value} replaced with 0")
    return CoercionResult(value)


def coerce_decimal(raw: Any) -> CoercionResult:
    """Parse a decimal after stripping currency/percent symbols; failures become 0."""
    value = None
    if isinstance(raw, bool):
        value = float(raw)
    elif isinstance(raw, (int, float)):
        value = float(raw)
    else:
        text = DECIMAL_NOISE_PATTERN.sub('', cell_text(raw))
        match = LEADING_DECIMAL_PATTERN.match(text)
        if match:
            value = float(match.group(0))

    if value is None or not math.isfinite(value):
        if is_blank(raw):
            return CoercionResult(0.0)
        return CoercionResult(0.0, f"'{cell_text(raw)}' is not a number, using 0")
    if value < 0:
        return CoercionResult(0.0, f"negative value {value} replaced with 0")
    return CoercionResult(value)


def coerce_category(raw: Any) -> CoercionResult:
    """Exact match against the category enumeration, else OTHER."""
    text = cell_text(raw)
    try:
        return CoercionResult(Category(text))
    except ValueError:
        if not text:
            return CoercionResult(DEFAULT_CATEGORY)
        return CoercionResult(
            DEFAULT_CATEGORY,
            f"unknown category '{text}', using '{DEFAULT_CATEGORY.value}'"
        )


def coerce_platforms(raw: Any) -> CoercionResult:
    """
    Split a platform list on ASCII or full-width commas.

    Unknown tokens are dropped; the result is never empty and falls back to
    the default platform when no token is recognized.
    """
    platforms: List[Platform] = []
    dropped: List[str] = []

    for token in PLATFORM_SEPARATOR_PATTERN.split(cell_text(raw)):
        token = token.strip()
        if not token:
            continue
        try:
            platform = Platform(token)
        except ValueError:
            dropped.append(token)
            continue
        if platform not in platforms:
            platforms.append(platform)

    diagnostic = None
    if dropped:
        diagnostic = f"dropped unknown platforms: {', '.join(dropped)}"
    if not platforms:
        platforms = [DEFAULT_PLATFORM]
    return CoercionResult(platforms, diagnostic)


def _parse_date_text(text: str) -> Optional[date]:
    try:
        return datetime.fromisoformat(text).date()
    except ValueError:
        pass
    for fmt in DATE_FORMATS:
        try:
            return datetime.strptime(text, fmt).date()
        except ValueError:
            continue
    return None


def coerce_date(raw: Any, today: Optional[date] = None) -> CoercionResult:
    """
    Normalize a date cell to calendar-date precision.

    Date/datetime cells are truncated, numeric cells are read as Excel serial
    dates, text is parsed against the accepted formats. Anything else falls
    back to today; non-empty text that could not be parsed is reported since
    the substitution may not be what the sheet author meant.
    """
    today = today or date.today()

    if isinstance(raw, datetime):
        return CoercionResult(raw.date())
    if isinstance(raw, date):
        return CoercionResult(raw)
    if isinstance(raw, (int, float)) and not isinstance(raw, bool):
        try:
            converted = from_excel(raw)
        except (ValueError, OverflowError, TypeError):
            converted = None
        if isinstance(converted, datetime):
            return CoercionResult(converted.date())
        if isinstance(converted, date):
            return CoercionResult(converted)
        return CoercionResult(today, f"unreadable date serial {raw}, using today")

    text = cell_text(raw)
    if not text:
        return CoercionResult(today)

    parsed = _parse_date_text(text)
    if parsed is None:
        return CoercionResult(today, f"unreadable date '{text}', using today")
    return CoercionResult(parsed)


def coerce_boolean(raw: Any, default: bool = False) -> CoercionResult:
    """Read yes/no style cells; unrecognized text keeps the default."""
    if isinstance(raw, bool):
        return CoercionResult(raw)
    if isinstance(raw, (int, float)):
        return CoercionResult(raw != 0)

    text = cell_text(raw).lower()
    if text in TRUE_WORDS:
        return CoercionResult(True)
    if text in FALSE_WORDS:
        return CoercionResult(False)
    if not text:
        return CoercionResult(default)
    return CoercionResult(default, f"unrecognized flag '{text}', using {default}")


def coerce_image(raw: Any) -> CoercionResult:
    """Image reference: plain URL/data URI text, or the target of a HYPERLINK formula."""
    text = cell_text(raw)
    if FormulaParser.is_formula(text):
        target = FormulaParser.extract_hyperlink_target(text)
        if target is None:
            return CoercionResult('', f"unsupported formula in image column: {text[:40]}")
        return CoercionResult(target.strip())
    if text == NO_IMAGE_LABEL:
        return CoercionResult('')
    return CoercionResult(text)


_COERCERS: Dict[FieldType, Callable[[Any], CoercionResult]] = {
    FieldType.TEXT: coerce_text,
    FieldType.INTEGER: coerce_integer,
    FieldType.DECIMAL: coerce_decimal,
    FieldType.CATEGORY: coerce_category,
    FieldType.PLATFORMS: coerce_platforms,
    FieldType.DATE: coerce_date,
    FieldType.IMAGE: coerce_image,
}


def coerce_value(spec: FieldSpec, raw: Any, default: Any = None) -> CoercionResult:
    """
    Coerce a raw cell value for the given field.

    Args:
        spec: Field being filled
        raw: Cell value as read from the worksheet
        default: Fallback for flag fields when the cell is unrecognized, and
                 the fallback date for the date field

    Returns:
        CoercionResult; never raises for malformed input
    """
    if spec.field_type == FieldType.BOOLEAN:
        return coerce_boolean(raw, bool(default))
    if spec.field_type == FieldType.DATE:
        return coerce_date(raw, today=default)
    return _COERCERS[spec.field_type](raw)
