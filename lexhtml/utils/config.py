"""
Defines configuration and settings for the conversion process.
"""
from dataclasses import dataclass
from enum import Enum, auto
from pathlib import Path


DEFAULT_CSS_PREFIX = "lexical-content"
DEFAULT_TITLE = "Lexical Converted Content"


class BundleMode(Enum):
    """Defines the shape of the delivered output."""
    FRAGMENT = auto()       # converted markup only
    STYLED = auto()         # <style> + prefixed content div
    INTERACTIVE = auto()    # STYLED + <script> for code block controls
    DOCUMENT = auto()       # full HTML page with <head>/<body>


@dataclass
class ConversionConfig:
    """
    A container for all settings related to a conversion task.
    This object is created by the CLI (or a library caller) and passed to the ConversionPipeline.
    It must stay picklable, batch workers receive a copy of it.
    """
    output_path: Path | None = None
    bundle_mode: BundleMode = BundleMode.DOCUMENT
    css_prefix: str = DEFAULT_CSS_PREFIX
    minify: bool = False
    title: str = DEFAULT_TITLE
    lang: str = "en"
    custom_stylesheet: Path | None = None
    custom_script: Path | None = None
    # Margin around the bounding box of embedded drawings, in scene units
    scene_padding: int = 20
    # Fill in missing width/height of base64 data-URI images
    probe_image_size: bool = True
    num_threads: int = 0    # 0 means cpu count
