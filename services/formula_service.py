"""
Formula service for the image link column.

Exported sheets carry the image reference as a HYPERLINK formula. This module
builds that formula and recovers the target when a sheet is imported again.
"""

import re
from typing import Any, Optional


class FormulaParser:
    """Build and parse HYPERLINK formulas."""

    # =HYPERLINK("target") or =HYPERLINK("target", "label"); "" escapes a quote
    HYPERLINK_PATTERN = re.compile(
        r'^=\s*HYPERLINK\(\s*"((?:[^"]|"")*)"\s*(?:[,;]\s*"(?:[^"]|"")*"\s*)?\)\s*$',
        re.IGNORECASE | re.DOTALL
    )

    @staticmethod
    def _as_text(formula: Any) -> str:
        # openpyxl may hand back formula objects instead of plain strings
        if hasattr(formula, 'text'):
            formula = formula.text
        elif formula is None:
            return ''
        elif not isinstance(formula, str):
            formula = str(formula)
        return formula.strip()

    @staticmethod
    def is_formula(value: Any) -> bool:
        """Check whether a cell value is formula text."""
        return isinstance(value, str) and value.startswith('=')

    @staticmethod
    def build_hyperlink(target: str, label: str) -> str:
        """
        Build a HYPERLINK formula.

        Args:
            target: Link target (URL or data URI)
            label: Text displayed in the cell

        Returns:
            Formula text, e.g. '=HYPERLINK("https://a/b.png","查看图片")'
        """
        target = target.replace('"', '""')
        label = label.replace('"', '""')
        return f'=HYPERLINK("{target}","{label}")'

    @staticmethod
    def extract_hyperlink_target(formula: Any) -> Optional[str]:
        """
        Recover the link target from a HYPERLINK formula.

        Returns:
            The unescaped target, or None if ``formula`` is not a HYPERLINK
        """
        text = FormulaParser._as_text(formula)
        if not text.startswith('='):
            return None

        match = FormulaParser.HYPERLINK_PATTERN.match(text)
        if not match:
            return None
        return match.group(1).replace('""', '"')
