"""Serialize a :class:`RenderedScene` into standalone SVG markup."""

from __future__ import annotations

import xml.etree.ElementTree as ET

from inkpress.scene.renderer import (
    EllipsePrimitive,
    ImagePrimitive,
    PolygonPrimitive,
    PolylinePrimitive,
    Primitive,
    RectPrimitive,
    RenderedScene,
    Style,
    TextPrimitive,
    fmt_number,
)
from inkpress.scene.viewport import Viewport

SVG_NS = "http://www.w3.org/2000/svg"
ET.register_namespace("", SVG_NS)

BACKGROUND_FILL = "#f8fafc"
BACKGROUND_MARGIN = 300.0
MARKER_FILL = "#334155"


def _q(tag: str) -> str:
    return f"{{{SVG_NS}}}{tag}"


def scene_to_svg(
    rendered: RenderedScene,
    *,
    marker_id: str = "arrow",
    mode: str = "inline",
    viewport: Viewport | None = None,
    background: bool = True,
) -> str:
    """Render to SVG text. *viewport* only affects the outer style attribute."""
    attrs = {
        "viewBox": str(rendered.view_box),
        "preserveAspectRatio": "xMinYMin meet" if mode == "inline" else "xMidYMid meet",
        "shape-rendering": "geometricPrecision",
    }
    if viewport is not None:
        attrs["style"] = viewport.inline_style() if mode == "inline" else viewport.fullscreen_style()
    svg_root = ET.Element(_q("svg"), attrs)

    if background:
        bounds = rendered.bounds
        ET.SubElement(
            svg_root,
            _q("rect"),
            {
                "x": fmt_number(bounds.min_x - BACKGROUND_MARGIN),
                "y": fmt_number(bounds.min_y - BACKGROUND_MARGIN),
                "width": fmt_number(max(1.0, bounds.width) + BACKGROUND_MARGIN * 2),
                "height": fmt_number(max(1.0, bounds.height) + BACKGROUND_MARGIN * 2),
                "fill": BACKGROUND_FILL,
            },
        )

    if any(isinstance(p, PolylinePrimitive) and p.arrow for p in rendered.primitives):
        _add_arrow_marker(svg_root, marker_id)

    for primitive in rendered.primitives:
        svg_root.append(_primitive_node(primitive, marker_id))

    return ET.tostring(svg_root, encoding="unicode")


def _add_arrow_marker(svg_root: ET.Element, marker_id: str) -> None:
    defs = ET.SubElement(svg_root, _q("defs"))
    marker = ET.SubElement(
        defs,
        _q("marker"),
        {
            "id": marker_id,
            "viewBox": "0 0 10 10",
            "refX": "9",
            "refY": "5",
            "markerWidth": "6",
            "markerHeight": "6",
            "orient": "auto-start-reverse",
        },
    )
    ET.SubElement(marker, _q("path"), {"d": "M 0 0 L 10 5 L 0 10 z", "fill": MARKER_FILL})


def _style_attrs(style: Style) -> dict[str, str]:
    attrs = {
        "fill": style.fill,
        "stroke": style.stroke,
        "stroke-width": fmt_number(style.stroke_width),
    }
    if style.dash:
        attrs["stroke-dasharray"] = style.dash
    if style.transform:
        attrs["transform"] = style.transform
    return attrs


def _points(points: list[tuple[float, float]]) -> str:
    return " ".join(f"{fmt_number(x)},{fmt_number(y)}" for x, y in points)


def _primitive_node(primitive: Primitive, marker_id: str) -> ET.Element:
    if isinstance(primitive, RectPrimitive):
        attrs = {
            "x": fmt_number(primitive.x),
            "y": fmt_number(primitive.y),
            "width": fmt_number(primitive.width),
            "height": fmt_number(primitive.height),
        }
        if primitive.rx:
            attrs["rx"] = attrs["ry"] = fmt_number(primitive.rx)
        attrs.update(_style_attrs(primitive.style))
        return ET.Element(_q("rect"), attrs)

    if isinstance(primitive, EllipsePrimitive):
        attrs = {
            "cx": fmt_number(primitive.cx),
            "cy": fmt_number(primitive.cy),
            "rx": fmt_number(primitive.rx),
            "ry": fmt_number(primitive.ry),
        }
        attrs.update(_style_attrs(primitive.style))
        return ET.Element(_q("ellipse"), attrs)

    if isinstance(primitive, PolygonPrimitive):
        attrs = {"points": _points(primitive.points)}
        attrs.update(_style_attrs(primitive.style))
        return ET.Element(_q("polygon"), attrs)

    if isinstance(primitive, TextPrimitive):
        attrs = {
            "x": fmt_number(primitive.x),
            "y": fmt_number(primitive.y),
            "fill": primitive.style.fill,
            "font-size": fmt_number(primitive.font_size),
            "font-family": primitive.font_family,
            "{http://www.w3.org/XML/1998/namespace}space": "preserve",
            "text-rendering": "optimizeLegibility",
        }
        if primitive.style.transform:
            attrs["transform"] = primitive.style.transform
        node = ET.Element(_q("text"), attrs)
        for idx, line in enumerate(primitive.lines):
            tspan = ET.SubElement(
                node,
                _q("tspan"),
                {
                    "x": fmt_number(primitive.x),
                    "dy": "0" if idx == 0 else fmt_number(primitive.line_height),
                    "style": "white-space: pre",
                },
            )
            tspan.text = line
        return node

    if isinstance(primitive, ImagePrimitive):
        attrs = {
            "href": primitive.href,
            "x": fmt_number(primitive.x),
            "y": fmt_number(primitive.y),
            "width": fmt_number(primitive.width),
            "height": fmt_number(primitive.height),
            "preserveAspectRatio": "none",
            "opacity": fmt_number(primitive.opacity),
        }
        if primitive.transform:
            attrs["transform"] = primitive.transform
        return ET.Element(_q("image"), attrs)

    attrs = {"points": _points(primitive.points)}
    attrs.update(_style_attrs(primitive.style))
    attrs["stroke-linecap"] = "round"
    attrs["stroke-linejoin"] = "round"
    if primitive.arrow:
        attrs["marker-end"] = f"url(#{marker_id})"
    return ET.Element(_q("polyline"), attrs)
