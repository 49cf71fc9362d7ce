"""
Renders embedded Excalidraw scenes to inline SVG.

The scene is a flat list of shape elements. Deleted elements are ignored,
the rest are drawn in scene order inside a viewBox computed from their
bounding box plus a padding margin.
"""
import json
import logging
import math
import re
import uuid
from typing import Any, Iterator, Mapping

from lxml import etree

from ..utils.html_utils import format_number as fmt, wrap_with_tag
from ..utils.structures import Bounds, Frame


log = logging.getLogger("lexhtml")


SVG_NS = "http://www.w3.org/2000/svg"
SVG_MAP = {None: SVG_NS}

DEFAULT_PADDING = 20
MIN_WIDTH, MIN_HEIGHT = 200, 150
PLACEHOLDER_WIDTH, PLACEHOLDER_HEIGHT = 400, 200

DEFAULT_STROKE = "#000000"
DEFAULT_FILL = "transparent"
DEFAULT_BACKGROUND = "#ffffff"
DEFAULT_STROKE_WIDTH = 1
DEFAULT_FONT_SIZE = 16
LINE_HEIGHT = 1.25
ROUNDNESS_RATIO = 0.1

# Excalidraw stores font families as numbers
FONT_FAMILIES = {
    1: "Virgil, Segoe UI Emoji, sans-serif",
    2: "Helvetica, Arial, sans-serif",
    3: "Cascadia, Consolas, monospace",
}
TEXT_ANCHORS = {'center': 'middle', 'right': 'end'}
POINT_SHAPES = ('freedraw', 'line', 'arrow')

# Characters outside the XML 1.0 Char production
XML_INVALID_CHARS = re.compile("[^\x09\x0a\x0d\x20-\ud7ff\ue000-\ufffd\U00010000-\U0010ffff]")


def _is_number(value: Any) -> bool:
    return isinstance(value, (int, float)) and not isinstance(value, bool)


def _display_size(value: Any) -> float | None:
    return value if _is_number(value) and math.isfinite(value) and value > 0 else None


def _xml_text(value: str) -> str:
    return XML_INVALID_CHARS.sub('', value)


def _points(element: Mapping) -> Iterator[tuple[float, float]]:
    """Yields the relative (x, y) points of a point-based shape."""
    if element.get('type') not in POINT_SHAPES:
        return
    for point in element.get('points') or []:
        if len(point) >= 2 and _is_number(point[0]) and _is_number(point[1]):
            yield point[0], point[1]


def compute_bounds(elements: list[Mapping]) -> Bounds | None:
    """Bounding box over element boxes and, for stroke shapes, over every point."""
    bounds: Bounds | None = None
    for element in elements:
        x, y = element.get('x'), element.get('y')
        if not (_is_number(x) and _is_number(y)):
            continue
        width = element.get('width') or 0
        height = element.get('height') or 0
        corners = [(x, y), (x + width, y + height)]
        corners.extend((x + px, y + py) for px, py in _points(element))
        for cx, cy in corners:
            bounds = Bounds(cx, cy, cx, cy) if bounds is None else bounds.include(cx, cy)
    return bounds


def _el(parent: etree._Element, tag: str, attrib: dict[str, str]) -> etree._Element:
    """Attribute values are filtered like text content."""
    attrib = {key: _xml_text(value) for key, value in attrib.items()}
    return etree.SubElement(parent, f"{{{SVG_NS}}}{tag}", attrib=attrib)


class SceneRenderer:
    """Turns an Excalidraw scene (JSON string or mapping) into SVG markup."""

    def __init__(self, padding: float = DEFAULT_PADDING):
        self.padding = padding

        self._shape_map = {
            'rectangle': self._render_rectangle,
            'ellipse': self._render_ellipse,
            'diamond': self._render_diamond,
            'line': self._render_line,
            'arrow': self._render_line,
            'freedraw': self._render_freedraw,
            'text': self._render_text,
        }


    def render(self, scene_data: str | Mapping | None,
               display_width: float | None = None,
               display_height: float | None = None) -> str:
        """
        Renders the scene. Never raises: unreadable data gives an error
        placeholder, a scene without visible elements an empty placeholder.
        """
        scene_id = f"excalidraw-{uuid.uuid4().hex[:9]}"
        display_width, display_height = _display_size(display_width), _display_size(display_height)
        try:
            scene = self._parse(scene_data)
            elements = [el for el in scene.get('elements') or [] if not el.get('isDeleted')]
            bounds = compute_bounds(elements)
        except (ValueError, TypeError, AttributeError) as e:
            log.warning(f"Failed to parse drawing data: {e}")
            return self._placeholder(scene_id, 'excalidraw-error', "Invalid drawing data",
                                     "Could not parse drawing data", display_width, display_height)

        if not elements or bounds is None:
            return self._placeholder(scene_id, 'excalidraw-empty', "Empty drawing",
                                     "No drawing elements found", display_width, display_height)

        try:
            svg = self._build_svg(scene, elements, bounds, scene_id, display_width, display_height)
        except (ValueError, TypeError, KeyError, AttributeError) as e:
            log.warning(f"Failed to render drawing elements: {e}")
            return self._placeholder(scene_id, 'excalidraw-error', "Invalid drawing data",
                                     "Could not render drawing elements", display_width, display_height)

        return wrap_with_tag('div', svg, {'class': 'excalidraw-container', 'id': scene_id})


    def frame_for(self, bounds: Bounds) -> Frame:
        return Frame.from_bounds(bounds, self.padding)

    # --- Internals ---

    @staticmethod
    def _parse(scene_data: str | Mapping | None) -> Mapping:
        if not scene_data:
            return {}
        if isinstance(scene_data, Mapping):
            return scene_data
        scene = json.loads(scene_data)
        if not isinstance(scene, Mapping):
            raise TypeError(f"expected a JSON object, got {type(scene).__name__}")
        return scene


    def _build_svg(self, scene: Mapping, elements: list[Mapping], bounds: Bounds,
                   scene_id: str, display_width: float | None, display_height: float | None) -> str:
        frame = self.frame_for(bounds)
        width = round(display_width) if display_width else max(MIN_WIDTH, frame.width)
        height = round(display_height) if display_height else max(MIN_HEIGHT, frame.height)

        svg = etree.Element(f"{{{SVG_NS}}}svg", nsmap=SVG_MAP, attrib={
            'width': fmt(width),
            'height': fmt(height),
            'viewBox': f"{fmt(frame.x)} {fmt(frame.y)} {fmt(frame.width)} {fmt(frame.height)}",
            'preserveAspectRatio': 'xMidYMid meet',
            'role': 'img',
        })

        defs = None
        if any(el.get('type') == 'arrow' for el in elements):
            defs = _el(svg, 'defs', {})

        app_state = scene.get('appState') or {}
        _el(svg, 'rect', {
            'x': fmt(frame.x), 'y': fmt(frame.y),
            'width': fmt(frame.width), 'height': fmt(frame.height),
            'fill': app_state.get('viewBackgroundColor') or DEFAULT_BACKGROUND,
            'stroke': '#e0e0e0', 'stroke-width': '1',
        })

        # Later elements draw over earlier ones
        for index, element in enumerate(elements):
            handler = self._shape_map.get(element.get('type'))
            if handler is None:
                log.debug(f"Skipping unsupported drawing element: {element.get('type')}")
                continue
            if not (_is_number(element.get('x')) and _is_number(element.get('y'))):
                continue
            handler(svg, element, f"{scene_id}-{index}", defs)

        return etree.tostring(svg, encoding='unicode')


    @staticmethod
    def _style(element: Mapping, filled: bool = True) -> dict[str, str]:
        """Stroke, fill and opacity attributes with the shape defaults applied."""
        opacity = element.get('opacity')
        if not _is_number(opacity):
            opacity = 100
        opacity = min(max(opacity, 0), 100)
        return {
            'stroke': element.get('strokeColor') or DEFAULT_STROKE,
            'stroke-width': fmt(element.get('strokeWidth') or DEFAULT_STROKE_WIDTH),
            'fill': (element.get('backgroundColor') or DEFAULT_FILL) if filled else 'none',
            'opacity': fmt(opacity / 100),
        }

    # --- Shape handlers ---

    def _render_rectangle(self, svg: etree._Element, element: Mapping, element_id: str,
            defs: etree._Element | None):
        x, y = element['x'], element['y']
        width, height = element.get('width') or 0, element.get('height') or 0
        attrib = {'x': fmt(x), 'y': fmt(y), 'width': fmt(width), 'height': fmt(height)}
        if element.get('roundness'):
            radius = fmt(min(width, height) * ROUNDNESS_RATIO)
            attrib.update({'rx': radius, 'ry': radius})
        attrib.update(self._style(element))
        _el(svg, 'rect', attrib)


    def _render_ellipse(self, svg: etree._Element, element: Mapping, element_id: str,
            defs: etree._Element | None):
        rx, ry = (element.get('width') or 0) / 2, (element.get('height') or 0) / 2
        attrib = {
            'cx': fmt(element['x'] + rx), 'cy': fmt(element['y'] + ry),
            'rx': fmt(rx), 'ry': fmt(ry),
        }
        attrib.update(self._style(element))
        _el(svg, 'ellipse', attrib)


    def _render_diamond(self, svg: etree._Element, element: Mapping, element_id: str,
            defs: etree._Element | None):
        x, y = element['x'], element['y']
        width, height = element.get('width') or 0, element.get('height') or 0
        cx, cy = x + width / 2, y + height / 2
        corners = [(cx, y), (x + width, cy), (cx, y + height), (x, cy)]
        attrib = {'points': " ".join(f"{fmt(px)},{fmt(py)}" for px, py in corners)}
        attrib.update(self._style(element))
        _el(svg, 'polygon', attrib)


    def _render_line(self, svg: etree._Element, element: Mapping, element_id: str,
            defs: etree._Element | None):
        """Straight segment for lines and arrows. Arrows get their own arrowhead marker."""
        x, y = element['x'], element['y']
        points = list(_points(element))
        if len(points) >= 2:
            (sx, sy), (ex, ey) = points[0], points[-1]
            x1, y1, x2, y2 = x + sx, y + sy, x + ex, y + ey
        else:
            x1, y1 = x, y
            x2, y2 = x + (element.get('width') or 0), y + (element.get('height') or 0)

        attrib = {'x1': fmt(x1), 'y1': fmt(y1), 'x2': fmt(x2), 'y2': fmt(y2)}
        attrib.update(self._style(element, filled=False))

        if element.get('type') == 'arrow' and defs is not None:
            marker_id = f"{element_id}-head"
            marker = _el(defs, 'marker', {
                'id': marker_id, 'markerWidth': '10', 'markerHeight': '7',
                'refX': '9', 'refY': '3.5', 'orient': 'auto',
            })
            _el(marker, 'polygon', {'points': '0 0, 10 3.5, 0 7', 'fill': attrib['stroke']})
            attrib['marker-end'] = f"url(#{marker_id})"

        _el(svg, 'line', attrib)


    def _render_freedraw(self, svg: etree._Element, element: Mapping, element_id: str,
            defs: etree._Element | None):
        x, y = element['x'], element['y']
        points = list(_points(element))
        if not points:
            return
        path = " ".join(
            f"{'M' if i == 0 else 'L'} {fmt(x + px)} {fmt(y + py)}"
            for i, (px, py) in enumerate(points)
        )
        attrib = {'d': path}
        attrib.update(self._style(element, filled=False))
        attrib.update({'stroke-linecap': 'round', 'stroke-linejoin': 'round'})
        _el(svg, 'path', attrib)


    def _render_text(self, svg: etree._Element, element: Mapping, element_id: str,
            defs: etree._Element | None):
        x, y = element['x'], element['y']
        font_size = element.get('fontSize') or DEFAULT_FONT_SIZE
        font_family = element.get('fontFamily')
        if not isinstance(font_family, str):
            font_family = FONT_FAMILIES.get(font_family, "Arial, sans-serif")

        anchor = TEXT_ANCHORS.get(element.get('textAlign'), 'start')
        if anchor == 'middle':
            x += (element.get('width') or 0) / 2
        elif anchor == 'end':
            x += element.get('width') or 0

        style = self._style(element)
        attrib = {
            'x': fmt(x), 'y': fmt(y + font_size),
            'font-size': fmt(font_size), 'font-family': font_family,
            'fill': element.get('strokeColor') or DEFAULT_STROKE,
            'opacity': style['opacity'],
        }
        if anchor != 'start':
            attrib['text-anchor'] = anchor
        text_el = _el(svg, 'text', attrib)

        # lxml escapes the text content on serialization
        lines = str(element.get('text') or '').split('\n')
        if len(lines) == 1:
            text_el.text = _xml_text(lines[0])
            return
        for i, line in enumerate(lines):
            tspan = _el(text_el, 'tspan', {
                'x': fmt(x), 'dy': '0' if i == 0 else fmt(font_size * LINE_HEIGHT),
            })
            tspan.text = _xml_text(line)

    # --- Placeholders ---

    @staticmethod
    def _placeholder(scene_id: str, css_class: str, title: str, subtitle: str,
                     display_width: float | None, display_height: float | None) -> str:
        width = round(display_width) if display_width else PLACEHOLDER_WIDTH
        height = round(display_height) if display_height else PLACEHOLDER_HEIGHT
        is_error = css_class == 'excalidraw-error'

        svg = etree.Element(f"{{{SVG_NS}}}svg", nsmap=SVG_MAP, attrib={
            'width': fmt(width), 'height': fmt(height),
            'viewBox': f"0 0 {fmt(width)} {fmt(height)}",
        })
        _el(svg, 'rect', {
            'width': fmt(width), 'height': fmt(height), 'rx': '8', 'stroke-width': '2',
            'fill': '#ffe6e6' if is_error else '#f8f9fa',
            'stroke': '#ff9999' if is_error else '#dee2e6',
        })
        text_attrib = {'x': fmt(width / 2), 'text-anchor': 'middle', 'font-family': 'Arial, sans-serif'}
        _el(svg, 'text', {**text_attrib, 'y': fmt(height / 2 - 10), 'font-size': '16',
                          'fill': '#cc0000' if is_error else '#6c757d'}).text = title
        _el(svg, 'text', {**text_attrib, 'y': fmt(height / 2 + 20), 'font-size': '12',
                          'fill': '#666666'}).text = subtitle

        return wrap_with_tag('div', etree.tostring(svg, encoding='unicode'),
                             {'class': css_class, 'id': scene_id})
