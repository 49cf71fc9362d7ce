"""
Test Configuration
==================

Fixtures and node builders shared by the test suites.
"""

import base64
import logging
from io import BytesIO

import pytest
from PIL import Image

from lexhtml.core.converter import LexicalToHtmlConverter
from lexhtml.core.scene_renderer import SceneRenderer
from lexhtml.utils.config import ConversionConfig


# --- Node builders ---

def text(value, fmt=0, style=None, **extra):
    node = {"type": "text", "text": value, "format": fmt, **extra}
    if style is not None:
        node["style"] = style
    return node


def linebreak():
    return {"type": "linebreak"}


def paragraph(*children, **extra):
    return {"type": "paragraph", "children": list(children), **extra}


def element(node_type, *children, **extra):
    return {"type": node_type, "children": list(children), **extra}


def document(*children):
    """Wraps root children in the editorState envelope."""
    return {"editorState": {"root": {"type": "root", "children": list(children)}}}


def png_data_uri(width, height):
    buffer = BytesIO()
    Image.new("RGB", (width, height), (200, 30, 30)).save(buffer, format="PNG")
    return "data:image/png;base64," + base64.b64encode(buffer.getvalue()).decode("ascii")


# --- Fixtures ---

@pytest.fixture
def config():
    return ConversionConfig()


@pytest.fixture
def converter(config):
    return LexicalToHtmlConverter(config)


@pytest.fixture
def renderer():
    return SceneRenderer(padding=20)


@pytest.fixture(autouse=True)
def reset_package_logger():
    """Keeps handlers added by logger setup from leaking between tests."""
    logger = logging.getLogger("lexhtml")
    saved = list(logger.handlers), logger.level
    yield
    for handler in logger.handlers:
        if handler not in saved[0]:
            handler.close()
    logger.handlers[:] = saved[0]
    logger.setLevel(saved[1])
