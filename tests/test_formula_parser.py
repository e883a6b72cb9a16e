"""
Tests for HYPERLINK formula building and parsing.
"""

import pytest
from services.formula_service import FormulaParser


class TestBuildHyperlink:
    """Test formula construction."""

    def test_simple_url(self):
        formula = FormulaParser.build_hyperlink('https://example.com/a.png', '查看图片')
        assert formula == '=HYPERLINK("https://example.com/a.png","查看图片")'

    def test_quotes_are_escaped(self):
        formula = FormulaParser.build_hyperlink('https://example.com/?q="x"', 'say "hi"')
        assert formula == '=HYPERLINK("https://example.com/?q=""x""","say ""hi""")'


class TestExtractHyperlinkTarget:
    """Test recovering the link target on import."""

    def test_round_trip(self):
        url = 'https://cdn.example.com/img/p.jpg?size=200&v="2"'
        formula = FormulaParser.build_hyperlink(url, '查看图片')
        assert FormulaParser.extract_hyperlink_target(formula) == url

    @pytest.mark.parametrize('formula, expected', [
        ('=HYPERLINK("https://a.com/x.png")', 'https://a.com/x.png'),
        ('=hyperlink( "https://a.com/x.png" , "看" )', 'https://a.com/x.png'),
        ('=HYPERLINK("https://a.com/x.png";"看")', 'https://a.com/x.png'),
    ])
    def test_variants(self, formula, expected):
        assert FormulaParser.extract_hyperlink_target(formula) == expected

    @pytest.mark.parametrize('value', [
        'https://a.com/x.png',
        '=SUM(A1:A3)',
        '=HYPERLINK(A1, "看")',
        None,
        '',
    ])
    def test_non_hyperlink_values(self, value):
        assert FormulaParser.extract_hyperlink_target(value) is None

    def test_formula_object_with_text(self):
        class FormulaObject:
            text = '=HYPERLINK("https://a.com/x.png","看")'

        assert FormulaParser.extract_hyperlink_target(FormulaObject()) == 'https://a.com/x.png'


def test_is_formula():
    assert FormulaParser.is_formula('=A1') is True
    assert FormulaParser.is_formula('A1') is False
    assert FormulaParser.is_formula(12) is False
