"""
Assembles a converted fragment with its stylesheet and script into the
requested delivery shape: bare fragment, styled block, interactive block
or a complete HTML page.
"""
import logging
import re
from pathlib import Path

from lxml import etree

from ..resources.loader import load_default_css, load_default_js
from ..utils.config import BundleMode, ConversionConfig, DEFAULT_CSS_PREFIX, DEFAULT_TITLE
from ..utils.html_utils import wrap_with_tag
from ..utils.structures import Bundle


log = logging.getLogger("lexhtml")

CLASS_NAME_RE = re.compile(r"^-?[_a-zA-Z][_a-zA-Z0-9-]*$")

# Raw blobs are inserted after serialization, lxml would escape them
CONTENT_SLOT = "@@lexhtml:content@@"
STYLE_SLOT = "@@lexhtml:style@@"
SCRIPT_SLOT = "@@lexhtml:script@@"

FALLBACK_CSS = """\
.lexical-content {
  font-family: -apple-system, BlinkMacSystemFont, 'Segoe UI', Roboto, sans-serif;
  line-height: 1.6;
  color: #333;
}

.lexical-content table {
  border-collapse: collapse;
  width: 100%;
}

.lexical-content th,
.lexical-content td {
  border: 1px solid #ddd;
  padding: 8px 12px;
}

.lexical-content img {
  max-width: 100%;
  height: auto;
}

.lexical-content pre {
  background: #f8f9fa;
  padding: 15px;
  overflow-x: auto;
}
"""


def validate_prefix(prefix: str) -> str:
    if not isinstance(prefix, str) or not CLASS_NAME_RE.match(prefix):
        raise ValueError(f"Invalid CSS class prefix: {prefix!r}")
    return prefix


def minify_css(css: str) -> str:
    """Regex minifier: drops comments and insignificant whitespace."""
    css = re.sub(r"/\*[\s\S]*?\*/", "", css)
    css = re.sub(r"\s+", " ", css)
    css = re.sub(r";\s*}", "}", css)
    css = re.sub(r"\s*{\s*", "{", css)
    css = re.sub(r"\s*}\s*", "}", css)
    css = re.sub(r"\s*,\s*", ",", css)
    css = re.sub(r"\s*:\s*", ":", css)
    css = re.sub(r"\s*;\s*", ";", css)
    return css.strip()


def minify_js(js: str) -> str:
    """Strips indentation, blank lines and whole-line // comments. Nothing else."""
    lines = (line.strip() for line in js.splitlines())
    return "\n".join(line for line in lines if line and not line.startswith("//"))


class DocumentAssembler:
    """Builds the final output around a converted fragment."""

    def __init__(self, config: ConversionConfig | None = None):
        self.config = config or ConversionConfig()
        self.prefix = validate_prefix(self.config.css_prefix)


    @staticmethod
    def _read_custom(path: Path | None, kind: str) -> str | None:
        if not path:
            return None
        custom = Path(path)
        if custom.is_file():
            log.info(f"Using custom {kind}: {custom}")
            return custom.read_text(encoding="utf-8")
        log.warning(f"Custom {kind} not found at {custom}. Falling back to default.")
        return None


    def load_css(self) -> str:
        """Custom stylesheet, else the packaged one, else the embedded fallback."""
        css = self._read_custom(self.config.custom_stylesheet, "stylesheet")
        if css is None:
            css = load_default_css()
        if css is None:
            log.warning("Default stylesheet is missing. Using the embedded fallback.")
            css = FALLBACK_CSS
        return css


    def load_js(self) -> str:
        js = self._read_custom(self.config.custom_script, "script")
        if js is None:
            js = load_default_js()
        if js is None:
            log.warning("Default script is missing. Code block controls will not work.")
            js = ""
        return js


    def get_css(self, prefix: str | None = None, minify: bool | None = None) -> str:
        prefix = validate_prefix(prefix or self.prefix)
        minify = self.config.minify if minify is None else minify

        css = self.load_css()
        if prefix != DEFAULT_CSS_PREFIX:
            css = css.replace(f".{DEFAULT_CSS_PREFIX}", f".{prefix}")
        return minify_css(css) if minify else css


    def get_js(self, minify: bool | None = None) -> str:
        minify = self.config.minify if minify is None else minify
        js = self.load_js()
        return minify_js(js) if minify else js


    def bundle(self, fragment: str, mode: BundleMode | None = None) -> Bundle:
        mode = mode or self.config.bundle_mode
        css = self.get_css()
        js = self.get_js()

        if mode == BundleMode.FRAGMENT:
            output = fragment
        elif mode == BundleMode.STYLED:
            output = self._styled(fragment, css)
        elif mode == BundleMode.INTERACTIVE:
            output = self._styled(fragment, css) + self._script(js)
        elif mode == BundleMode.DOCUMENT:
            output = self.wrap_document(fragment, css, js)
        else:
            raise ValueError(f"Unsupported bundle mode: {mode}")

        return Bundle(html=fragment, css=css, js=js, output=output)


    def _styled(self, fragment: str, css: str) -> str:
        return f"<style>{css}</style>" + wrap_with_tag("div", fragment, {"class": self.prefix})

    @staticmethod
    def _script(js: str) -> str:
        return f"<script>{js}</script>" if js else ""


    def wrap_document(self, fragment: str, css: str, js: str) -> str:
        """Builds a complete HTML page around the fragment."""
        html = etree.Element("html", lang=self.config.lang or "en")

        head = etree.SubElement(html, "head")
        etree.SubElement(head, "meta", charset="utf-8")
        etree.SubElement(head, "meta", name="viewport", content="width=device-width, initial-scale=1.0")
        etree.SubElement(head, "title").text = self.config.title or DEFAULT_TITLE
        etree.SubElement(head, "style").text = STYLE_SLOT

        body = etree.SubElement(html, "body")
        etree.SubElement(body, "div", attrib={"class": self.prefix}).text = CONTENT_SLOT
        if js:
            etree.SubElement(body, "script").text = SCRIPT_SLOT

        page = etree.tostring(html, method="html", encoding="unicode", doctype="<!DOCTYPE html>")
        return (page
                .replace(STYLE_SLOT, css)
                .replace(SCRIPT_SLOT, js)
                .replace(CONTENT_SLOT, fragment))
