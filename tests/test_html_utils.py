"""
Unit Tests for HTML helpers
===========================

Escaping, format mask decoding, style sanitization and tag building.
"""

import re

import pytest

from lexhtml.utils.html_utils import (
    FORMAT_TAGS, apply_text_formatting, build_attributes, decode_format_mask,
    escape_html, format_number, sanitize_style, self_closing_tag, wrap_with_tag,
)
from lexhtml.utils.structures import TextFormatFlags


class TestEscapeHtml:
    """Test entity escaping."""

    def test_all_five_characters(self):
        assert escape_html("""<a href="x">Tom & 'Jerry'</a>""") == (
            "&lt;a href=&quot;x&quot;&gt;Tom &amp; &#x27;Jerry&#x27;&lt;/a&gt;"
        )

    def test_ampersand_is_escaped_first(self):
        assert escape_html("&lt;") == "&amp;lt;"

    def test_escaping_twice_double_escapes(self):
        assert escape_html(escape_html("&")) == "&amp;amp;"

    def test_plain_text_untouched(self):
        assert escape_html("Hello, world") == "Hello, world"


class TestFormatMask:
    """Test bit mask decoding and the fixed nesting order."""

    def test_decode_bits(self):
        assert decode_format_mask(0) == TextFormatFlags()
        assert decode_format_mask(1).bold
        assert decode_format_mask(2).italic
        assert decode_format_mask(4).strikethrough
        assert decode_format_mask(8).underline
        assert decode_format_mask(16).code
        assert decode_format_mask(32).subscript
        assert decode_format_mask(64).superscript

    def test_unknown_high_bits_ignored(self):
        assert decode_format_mask(128) == TextFormatFlags()
        assert decode_format_mask(129) == TextFormatFlags(bold=True)

    @pytest.mark.parametrize("mask", range(128))
    def test_every_mask_nests_in_fixed_order(self, mask):
        flags = decode_format_mask(mask)
        expected_inner_to_outer = [tag for flag, tag in FORMAT_TAGS if getattr(flags, flag)]

        html = apply_text_formatting("x", mask)

        opening = re.match(r"^((?:<\w+>)*)x", html).group(1)
        outer_to_inner = re.findall(r"<(\w+)>", opening)
        assert outer_to_inner == list(reversed(expected_inner_to_outer))
        assert html.endswith("".join(f"</{tag}>" for tag in expected_inner_to_outer))

    def test_bold_italic(self):
        assert apply_text_formatting("Hi", 3) == "<em><strong>Hi</strong></em>"

    def test_text_is_escaped_inside_tags(self):
        assert apply_text_formatting("<b>", 1) == "<strong>&lt;b&gt;</strong>"


class TestStyleSpan:
    """Test inline style handling in text formatting."""

    def test_style_wraps_outermost(self):
        html = apply_text_formatting("x", 1, "color: red")
        assert html == '<span style="color: red"><strong>x</strong></span>'

    def test_style_emptied_by_sanitizing_is_dropped(self):
        assert apply_text_formatting("x", 0, "javascript:") == "x"

    def test_empty_style_is_dropped(self):
        assert apply_text_formatting("x", 0, "") == "x"


class TestSanitizeStyle:
    """Test removal of unsafe CSS fragments."""

    @pytest.mark.parametrize("unsafe", ["javascript:", "JavaScript:", "expression(", "url(", "@IMPORT"])
    def test_unsafe_fragments_removed(self, unsafe):
        assert unsafe.lower() not in sanitize_style(f"color: red; {unsafe}x").lower()

    def test_safe_style_untouched(self):
        assert sanitize_style("color: red; font-size: 12px") == "color: red; font-size: 12px"

    def test_nested_fragments_do_not_reassemble(self):
        assert "url(" not in sanitize_style("background: urlurl((x)")


class TestTagBuilder:
    """Test attribute rendering and tag helpers."""

    def test_skips_none_and_empty(self):
        assert build_attributes({"a": None, "b": "", "c": "1"}) == ' c="1"'

    def test_no_attributes(self):
        assert build_attributes({}) == ""
        assert build_attributes(None) == ""
        assert build_attributes({"a": None}) == ""

    def test_values_are_escaped(self):
        assert build_attributes({"title": 'a "b" <c>'}) == ' title="a &quot;b&quot; &lt;c&gt;"'

    def test_insertion_order_kept(self):
        assert build_attributes({"z": 1, "a": 2}) == ' z="1" a="2"'

    def test_booleans_and_numbers(self):
        assert build_attributes({"x": True, "y": 2.0, "z": 1.5}) == ' x="true" y="2" z="1.5"'

    def test_wrap_with_tag(self):
        assert wrap_with_tag("p", "hi", {"class": "c"}) == '<p class="c">hi</p>'
        assert wrap_with_tag("p", "") == "<p></p>"

    def test_self_closing_tag(self):
        assert self_closing_tag("br") == "<br/>"
        assert self_closing_tag("img", {"src": "a.png", "alt": ""}) == '<img src="a.png"/>'


class TestFormatNumber:

    @pytest.mark.parametrize("value, expected", [
        (10, "10"), (10.0, "10"), (-10.0, "-10"), (1.5, "1.5"), (1.234, "1.23"), (0, "0"),
    ])
    def test_format(self, value, expected):
        assert format_number(value) == expected
