"""
String-level HTML helpers shared by every node handler:
escaping, text format decoding, style sanitization and tag building.
"""
import html
import re
from typing import Any, Mapping

from .structures import TextFormatFlags


# Fixed nesting order, innermost first. The style span (if any) goes outermost.
FORMAT_TAGS: tuple[tuple[str, str], ...] = (
    ('code', 'code'),
    ('bold', 'strong'),
    ('italic', 'em'),
    ('underline', 'u'),
    ('strikethrough', 's'),
    ('subscript', 'sub'),
    ('superscript', 'sup'),
)

_UNSAFE_STYLE = re.compile(r"javascript:|expression\(|url\(|@import", re.IGNORECASE)


def escape_html(text: str) -> str:
    """
    Replaces & < > " ' with entities, in that order, in a single pass.
    Escaping already escaped text escapes it again, so callers must escape exactly once.
    """
    return html.escape(text, quote=True)


def decode_format_mask(mask: int) -> TextFormatFlags:
    """Decodes a text format bit mask. LSB is bold."""
    return TextFormatFlags(*((mask >> bit) & 1 == 1 for bit in range(len(TextFormatFlags._fields))))


def sanitize_style(style: str) -> str:
    """
    Strips `javascript:`, `expression(`, `url(` and `@import` (any case) from
    a CSS declaration string. Nothing else is touched.
    Repeats until stable, so removing one match cannot glue a new one together.
    """
    while True:
        cleaned = _UNSAFE_STYLE.sub('', style)
        if cleaned == style:
            return cleaned
        style = cleaned


def apply_text_formatting(text: str, mask: int, style: str | None = None) -> str:
    """Escapes text and wraps it in format tags, then in a style span when a style survives sanitization."""
    flags = decode_format_mask(mask)
    result = escape_html(text)

    for flag, tag in FORMAT_TAGS:
        if getattr(flags, flag):
            result = wrap_with_tag(tag, result)

    if style:
        style = sanitize_style(style)
        if style:
            result = wrap_with_tag('span', result, {'style': style})

    return result

# --- Tag builder ---

def _attr_value(value: Any) -> str:
    if isinstance(value, bool):
        return 'true' if value else 'false'
    if isinstance(value, (int, float)):
        return format_number(value)
    return str(value)


def build_attributes(attrs: Mapping[str, Any] | None) -> str:
    """
    Renders `key="value"` pairs in insertion order, skipping None and empty values.
    Returns an empty string, or the pairs with one leading space.
    """
    if not attrs:
        return ''
    pairs = [
        f'{key}="{escape_html(_attr_value(value))}"'
        for key, value in attrs.items()
        if value is not None and value != ''
    ]
    return f" {' '.join(pairs)}" if pairs else ''


def wrap_with_tag(tag: str, content: str, attrs: Mapping[str, Any] | None = None) -> str:
    return f"<{tag}{build_attributes(attrs)}>{content}</{tag}>"


def self_closing_tag(tag: str, attrs: Mapping[str, Any] | None = None) -> str:
    return f"<{tag}{build_attributes(attrs)}/>"


def format_number(value: float) -> str:
    """Formats a number for markup: integers without `.0`, floats rounded to 2 places."""
    value = round(float(value), 2)
    if value.is_integer():
        return str(int(value))
    return str(value)
