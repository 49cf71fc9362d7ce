import logging
from pathlib import Path
from importlib import resources as res

from ..utils.structures import FNames


log = logging.getLogger("lexhtml")


def _resource_path(package: str, filename: str) -> Path | None:
    """Return a real filesystem path for a resource using importlib.resources."""
    try:
        resource = res.files(package).joinpath(filename)
        with res.as_file(resource) as path:
            return path
    except (ModuleNotFoundError, FileNotFoundError, TypeError) as e:
        log.error(f"Resource not found: {package}/{filename}: {e}")
        return None


def load_text(package: str, filename: str) -> str | None:
    """Return file content as text."""
    path = _resource_path(package, filename)
    if not path or not path.is_file():
        return None
    return path.read_text(encoding="utf-8")


def load_default_css() -> str | None:
    return load_text(FNames.CSS_PACKAGE, FNames.CSS)


def load_default_js() -> str | None:
    return load_text(FNames.JS_PACKAGE, FNames.JS)
