"""
Header resolver - map worksheet columns to canonical sample fields.

Matching is by substring, so annotated or reworded headers such as
"产品名称 *" or "平台 (逗号分隔)" still resolve. Labels are checked in
FIELD_SCHEMA order and the first hit wins; when one label is a substring of
another header's wording the earlier field takes the column.
"""

import logging
from typing import Any, Dict, List, Optional, Sequence, Tuple

from services.field_schema import label_patterns

logger = logging.getLogger(__name__)


def header_text(value: Any) -> str:
    """Normalize a header cell value to trimmed text."""
    if value is None:
        return ''
    return str(value).strip()


def match_header(text: str, patterns: Optional[List[Tuple[str, str]]] = None) -> Optional[str]:
    """Return the first field key whose label occurs in ``text``, if any."""
    if not text:
        return None
    for key, label in (patterns if patterns is not None else label_patterns()):
        if label in text:
            return key
    return None


def resolve_headers(header_row: Sequence[Any]) -> Dict[int, str]:
    """
    Map column positions of a header row to canonical field keys.

    Args:
        header_row: Cell values of the first worksheet row, in column order

    Returns:
        Dict of 0-based column position -> field key. Unrecognized columns
        are absent; an empty dict means nothing can be imported.
    """
    patterns = label_patterns()
    mapping: Dict[int, str] = {}

    for position, value in enumerate(header_row):
        text = header_text(value)
        key = match_header(text, patterns)
        if key is None:
            if text:
                logger.debug(f"Ignoring unrecognized column {position + 1}: '{text}'")
            continue
        mapping[position] = key

    logger.info(f"Resolved {len(mapping)} of {len(header_row)} header columns")
    return mapping
