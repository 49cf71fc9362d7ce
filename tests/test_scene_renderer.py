"""
Unit Tests for the drawing renderer
===================================

Bounding box and frame computation, shape rendering and placeholders.
"""

import json

import pytest
from lxml import etree

from lexhtml.core.scene_renderer import SVG_NS, SceneRenderer, compute_bounds
from lexhtml.utils.structures import Bounds, Frame


def scene(*elements, **app_state):
    return json.dumps({"elements": list(elements), "appState": app_state})


def parse_svg(html):
    """Returns the <svg> element of a rendered container."""
    root = etree.fromstring(html)
    return root.find(f"{{{SVG_NS}}}svg")


def shapes(svg):
    """Drawn shapes in document order, skipping <defs> and the background rect."""
    children = [el for el in svg if etree.QName(el).localname != "defs"]
    return [etree.QName(el).localname for el in children[1:]]


RECT = {"type": "rectangle", "x": 10, "y": 10, "width": 20, "height": 20}


class TestBounds:
    """Test bounding box and frame computation."""

    def test_single_rectangle(self, renderer):
        bounds = compute_bounds([RECT])
        assert bounds == Bounds(10, 10, 30, 30)
        assert renderer.frame_for(bounds) == Frame(-10, -10, 60, 60)

    def test_freedraw_points_offset_by_origin(self):
        stroke = {"type": "freedraw", "x": 100, "y": 100, "width": 0, "height": 0,
                  "points": [[0, 0], [-50, 20], [30, -40]]}
        assert compute_bounds([stroke]) == Bounds(50, 60, 130, 120)

    def test_elements_without_position_ignored(self):
        assert compute_bounds([{"type": "rectangle"}]) is None
        assert compute_bounds([{"type": "rectangle", "x": "1", "y": 2}, RECT]) == Bounds(10, 10, 30, 30)

    def test_frame_in_view_box(self, renderer):
        svg = parse_svg(renderer.render(scene(RECT)))
        assert svg.get("viewBox") == "-10 -10 60 60"

    def test_padding_is_configurable(self):
        svg = parse_svg(SceneRenderer(padding=0).render(scene(RECT)))
        assert svg.get("viewBox") == "10 10 20 20"


class TestVisibleSize:
    """Test display size selection."""

    def test_small_scene_floored_to_minimum(self, renderer):
        svg = parse_svg(renderer.render(scene(RECT)))
        assert (svg.get("width"), svg.get("height")) == ("200", "150")

    def test_large_scene_uses_frame(self, renderer):
        big = {"type": "rectangle", "x": 0, "y": 0, "width": 500, "height": 300}
        svg = parse_svg(renderer.render(scene(big)))
        assert (svg.get("width"), svg.get("height")) == ("540", "340")

    def test_display_dimensions_keep_frame(self, renderer):
        svg = parse_svg(renderer.render(scene(RECT), 640.4, 480))
        assert (svg.get("width"), svg.get("height")) == ("640", "480")
        assert svg.get("viewBox") == "-10 -10 60 60"

    def test_non_finite_display_dimensions_ignored(self, renderer):
        svg = parse_svg(renderer.render(scene(RECT), float("inf"), float("nan")))
        assert (svg.get("width"), svg.get("height")) == ("200", "150")


class TestShapes:
    """Test per-type rendering and default styles."""

    def test_element_order_preserved(self, renderer):
        html = renderer.render(scene(
            {"type": "ellipse", "x": 0, "y": 0, "width": 10, "height": 10},
            dict(RECT),
            {"type": "text", "x": 0, "y": 0, "text": "hi"},
            {"type": "diamond", "x": 0, "y": 0, "width": 10, "height": 10},
        ))
        assert shapes(parse_svg(html)) == ["ellipse", "rect", "text", "polygon"]

    def test_deleted_elements_skipped(self, renderer):
        html = renderer.render(scene(RECT, {**RECT, "type": "ellipse", "isDeleted": True}))
        assert shapes(parse_svg(html)) == ["rect"]

    def test_only_deleted_elements_is_empty(self, renderer):
        html = renderer.render(scene({**RECT, "isDeleted": True}))
        assert 'class="excalidraw-empty"' in html

    def test_unsupported_type_skipped(self, renderer):
        html = renderer.render(scene(RECT, {"type": "embeddable", "x": 0, "y": 0}))
        assert shapes(parse_svg(html)) == ["rect"]

    def test_default_style(self, renderer):
        rect = parse_svg(renderer.render(scene(RECT)))[1]
        assert rect.get("stroke") == "#000000"
        assert rect.get("fill") == "transparent"
        assert rect.get("opacity") == "1"
        assert rect.get("stroke-width") == "1"

    def test_explicit_style(self, renderer):
        styled = {**RECT, "strokeColor": "#ff0000", "backgroundColor": "#00ff00", "opacity": 50, "strokeWidth": 2}
        rect = parse_svg(renderer.render(scene(styled)))[1]
        assert (rect.get("stroke"), rect.get("fill"), rect.get("opacity"), rect.get("stroke-width")) == (
            "#ff0000", "#00ff00", "0.5", "2"
        )

    def test_rounded_rectangle(self, renderer):
        rect = parse_svg(renderer.render(scene({**RECT, "roundness": {"type": 3}})))[1]
        assert rect.get("rx") == rect.get("ry") == "2"

    def test_ellipse_geometry(self, renderer):
        ellipse = parse_svg(renderer.render(scene({"type": "ellipse", "x": 10, "y": 20, "width": 40, "height": 20})))[1]
        assert (ellipse.get("cx"), ellipse.get("cy"), ellipse.get("rx"), ellipse.get("ry")) == ("30", "30", "20", "10")

    def test_diamond_points(self, renderer):
        diamond = parse_svg(renderer.render(scene({"type": "diamond", "x": 0, "y": 0, "width": 20, "height": 10})))[1]
        assert diamond.get("points") == "10,0 20,5 10,10 0,5"

    def test_arrow_gets_marker(self, renderer):
        arrow = {"type": "arrow", "x": 0, "y": 0, "width": 50, "height": 0,
                 "points": [[0, 0], [25, 10], [50, 0]], "strokeColor": "#123456"}
        svg = parse_svg(renderer.render(scene(arrow)))
        line = svg.find(f"{{{SVG_NS}}}line")
        marker = svg.find(f"{{{SVG_NS}}}defs/{{{SVG_NS}}}marker")

        assert (line.get("x1"), line.get("y1"), line.get("x2"), line.get("y2")) == ("0", "0", "50", "0")
        assert line.get("marker-end") == f"url(#{marker.get('id')})"
        assert line.get("fill") == "none"
        assert marker[0].get("fill") == "#123456"

    def test_plain_line_has_no_marker(self, renderer):
        line = {"type": "line", "x": 0, "y": 0, "width": 10, "height": 10, "points": [[0, 0], [10, 10]]}
        svg = parse_svg(renderer.render(scene(line)))
        assert svg.find(f"{{{SVG_NS}}}defs") is None
        assert svg.find(f"{{{SVG_NS}}}line").get("marker-end") is None

    def test_freedraw_path(self, renderer):
        stroke = {"type": "freedraw", "x": 5, "y": 5, "points": [[0, 0], [1, 2], [3, 4]]}
        path = parse_svg(renderer.render(scene(stroke))).find(f"{{{SVG_NS}}}path")
        assert path.get("d") == "M 5 5 L 6 7 L 8 9"

    def test_text_is_escaped(self, renderer):
        html = renderer.render(scene({"type": "text", "x": 0, "y": 0, "text": "<b>&</b>", "fontSize": 20}))
        assert "&lt;b&gt;&amp;&lt;/b&gt;" in html
        text_el = parse_svg(html).find(f"{{{SVG_NS}}}text")
        assert text_el.text == "<b>&</b>"
        assert text_el.get("y") == "20"

    def test_multiline_text(self, renderer):
        html = renderer.render(scene({"type": "text", "x": 0, "y": 0, "text": "a\nb", "textAlign": "center", "width": 40}))
        text_el = parse_svg(html).find(f"{{{SVG_NS}}}text")
        assert text_el.get("text-anchor") == "middle"
        assert [t.text for t in text_el] == ["a", "b"]

    def test_control_characters_dropped_from_label(self, renderer):
        label = {"type": "text", "x": 0, "y": 0, "text": "a\x0bb\x00"}
        html = renderer.render(scene(RECT, label))
        assert 'class="excalidraw-container"' in html
        svg = parse_svg(html)
        assert shapes(svg) == ["rect", "text"]
        assert svg.find(f"{{{SVG_NS}}}text").text == "ab"

    def test_control_characters_dropped_from_colors(self, renderer):
        rect = {**RECT, "strokeColor": "#000\x1b"}
        svg = parse_svg(renderer.render(scene(rect)))
        assert svg.findall(f"{{{SVG_NS}}}rect")[1].get("stroke") == "#000"

    def test_background_color(self, renderer):
        background = parse_svg(renderer.render(scene(RECT, viewBackgroundColor="#fafafa")))[0]
        assert background.get("fill") == "#fafafa"


class TestPlaceholders:
    """Test empty and error placeholders."""

    @pytest.mark.parametrize("data", [None, "", "{}", '{"elements": []}', {"elements": []}])
    def test_empty(self, renderer, data):
        html = renderer.render(data)
        assert 'class="excalidraw-empty"' in html
        assert "No drawing elements found" in html

    @pytest.mark.parametrize("data", ["{not json", "[1, 2]", '{"elements": "abc"}'])
    def test_error(self, renderer, data):
        html = renderer.render(data)
        assert 'class="excalidraw-error"' in html

    def test_default_size(self, renderer):
        root = etree.fromstring(renderer.render(None))
        svg = root.find(f"{{{SVG_NS}}}svg")
        assert (svg.get("width"), svg.get("height")) == ("400", "200")

    def test_display_size(self, renderer):
        root = etree.fromstring(renderer.render("{bad", 300, 120))
        svg = root.find(f"{{{SVG_NS}}}svg")
        assert (svg.get("width"), svg.get("height")) == ("300", "120")

    def test_mapping_input(self, renderer):
        html = renderer.render({"elements": [RECT]})
        assert html.startswith('<div class="excalidraw-container" id="excalidraw-')
