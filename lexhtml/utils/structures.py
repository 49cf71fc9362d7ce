from pathlib import Path
from typing import NamedTuple

__all__ = [
    "ConversionResult", "TextFormatFlags", "Bounds", "Frame", "Bundle", "FileReport", "FNames"
]


class ConversionResult(NamedTuple):
    """Markup fragment produced by one conversion, plus its diagnostics."""
    html: str
    node_count: int
    errors: list[str]

    @property
    def ok(self) -> bool:
        return not self.errors


class TextFormatFlags(NamedTuple):
    """Decoded text format bit mask. Field order follows the bit order (LSB first)."""
    bold: bool = False
    italic: bool = False
    strikethrough: bool = False
    underline: bool = False
    code: bool = False
    subscript: bool = False
    superscript: bool = False


class Bounds(NamedTuple):
    """Axis-aligned bounding box of drawing elements."""
    min_x: float
    min_y: float
    max_x: float
    max_y: float

    def include(self, x: float, y: float) -> 'Bounds':
        return Bounds(
            min(self.min_x, x), min(self.min_y, y),
            max(self.max_x, x), max(self.max_y, y),
        )


class Frame(NamedTuple):
    """SVG coordinate frame (viewBox)."""
    x: float
    y: float
    width: float
    height: float

    @classmethod
    def from_bounds(cls, bounds: Bounds, padding: float) -> 'Frame':
        return cls(
            x=bounds.min_x - padding,
            y=bounds.min_y - padding,
            width=bounds.max_x - bounds.min_x + padding * 2,
            height=bounds.max_y - bounds.min_y + padding * 2,
        )


class Bundle(NamedTuple):
    """Converted fragment together with the assets and the assembled output."""
    html: str
    css: str
    js: str
    output: str


class FileReport(NamedTuple):
    """Outcome of converting one file: where it went and what was degraded."""
    output: Path
    node_count: int
    errors: list[str]

    @property
    def ok(self) -> bool:
        return not self.errors


class FNames:
    """Packaged resource names that the assembler loads."""
    CSS_PACKAGE: str = 'lexhtml.resources.css'
    JS_PACKAGE: str = 'lexhtml.resources.js'
    CSS: str = 'lexical-content.css'
    JS: str = 'interactive.js'
