"""Map a :class:`Scene` onto drawable primitives and a padded view box."""

from __future__ import annotations

import math
import re
from dataclasses import dataclass, field

from .model import Bounds, Element, Scene, to_finite

DEFAULT_BOUNDS = Bounds(0.0, 0.0, 1000.0, 600.0)
VIEWBOX_PADDING = 24.0

DEFAULT_STROKE = "#0f172a"
DEFAULT_FILL = "#cbd5e1"
PLACEHOLDER_FILL = "rgba(15,23,42,0.05)"
TRANSPARENT_SENTINELS = ("transparent", "none", "#00000000")

DASH_PATTERNS = {"dashed": "8 6", "dotted": "2 6"}
PLACEHOLDER_DASH = "6 4"

LINE_HEIGHT_RATIO = 1.35
MIN_FONT_SIZE = 12.0
DEFAULT_FONT_SIZE = 20.0
MIN_STROKE_WIDTH = 1.4
DEFAULT_STROKE_WIDTH = 2.0
DEFAULT_CORNER_RADIUS = 6.0

FONT_FAMILIES = {
    1: 'Virgil, "Comic Sans MS", cursive',
    2: '"Helvetica Neue", Arial, sans-serif',
    3: '"Cascadia Code", Consolas, Monaco, "Courier New", monospace',
}
DEFAULT_FONT_FAMILY = FONT_FAMILIES[2]

_HEX_COLOR_RE = re.compile(r"^#(?:[0-9a-f]{3}){1,2}$", re.IGNORECASE)


def clamp(value: float, low: float, high: float) -> float:
    return min(high, max(low, value))


# ---------------------------------------------------------------------------
# Geometry
# ---------------------------------------------------------------------------

def element_bounds(element: Element) -> Bounds:
    """Axis-aligned bounds of *element*, ignoring rotation."""
    x, y = element.x, element.y
    if element.is_linear and element.points:
        xs = [x + dx for dx, _ in element.points]
        ys = [y + dy for _, dy in element.points]
        return Bounds(min(xs), min(ys), max(xs), max(ys))

    x2 = x + element.width
    y2 = y + element.height
    return Bounds(min(x, x2), min(y, y2), max(x, x2), max(y, y2))


def scene_bounds(elements: list[Element]) -> Bounds:
    if not elements:
        return DEFAULT_BOUNDS

    boxes = [element_bounds(element) for element in elements]
    merged = Bounds(
        min(box.min_x for box in boxes),
        min(box.min_y for box in boxes),
        max(box.max_x for box in boxes),
        max(box.max_y for box in boxes),
    )
    if not all(math.isfinite(value) for value in merged.as_tuple()):
        return DEFAULT_BOUNDS
    return merged


@dataclass(slots=True, frozen=True)
class ViewBox:
    x: float
    y: float
    width: float
    height: float

    def __str__(self) -> str:
        return " ".join(fmt_number(value) for value in (self.x, self.y, self.width, self.height))


def view_box(bounds: Bounds, padding: float = VIEWBOX_PADDING) -> ViewBox:
    return ViewBox(
        x=bounds.min_x - padding,
        y=bounds.min_y - padding,
        width=max(1.0, bounds.width) + padding * 2,
        height=max(1.0, bounds.height) + padding * 2,
    )


# ---------------------------------------------------------------------------
# Styling
# ---------------------------------------------------------------------------

def is_transparent(color: str | None) -> bool:
    if not color:
        return True
    return color.strip().lower() in TRANSPARENT_SENTINELS


def with_alpha(color: str | None, opacity: float) -> str:
    """Blend *opacity* (0-100) into a hex color; other color syntaxes pass through."""
    if not color:
        return DEFAULT_STROKE
    alpha = clamp(opacity / 100, 0.05, 1.0)
    if not _HEX_COLOR_RE.match(color):
        return color
    if len(color) == 4:
        color = "#" + "".join(ch * 2 for ch in color[1:])
    return f"{color}{int(math.floor(alpha * 255 + 0.5)):02x}"


def font_family(family_id: int | None) -> str:
    return FONT_FAMILIES.get(family_id or 0, DEFAULT_FONT_FAMILY)


@dataclass(slots=True)
class Style:
    stroke: str
    fill: str
    stroke_width: float
    dash: str | None = None
    transform: str | None = None


def resolve_style(element: Element) -> Style:
    opacity = clamp(element.opacity, 5, 100)
    stroke = with_alpha(element.stroke_color or DEFAULT_STROKE, opacity)
    if is_transparent(element.background_color):
        fill = "transparent"
    else:
        fill = with_alpha(element.background_color or DEFAULT_FILL, opacity)

    stroke_width = DEFAULT_STROKE_WIDTH if element.stroke_width is None else element.stroke_width
    return Style(
        stroke=stroke,
        fill=fill,
        stroke_width=max(MIN_STROKE_WIDTH, stroke_width),
        dash=DASH_PATTERNS.get(element.stroke_style),
        transform=rotation_transform(element),
    )


def rotation_transform(element: Element) -> str | None:
    if abs(element.angle) <= 0.0001:
        return None
    degrees = element.angle * 180 / math.pi
    cx = element.x + element.width / 2
    cy = element.y + element.height / 2
    return f"rotate({fmt_number(degrees)} {fmt_number(cx)} {fmt_number(cy)})"


# ---------------------------------------------------------------------------
# Primitives
# ---------------------------------------------------------------------------

@dataclass(slots=True)
class RectPrimitive:
    x: float
    y: float
    width: float
    height: float
    style: Style
    rx: float = 0.0
    element_id: str = ""


@dataclass(slots=True)
class EllipsePrimitive:
    cx: float
    cy: float
    rx: float
    ry: float
    style: Style
    element_id: str = ""


@dataclass(slots=True)
class PolygonPrimitive:
    points: list[tuple[float, float]]
    style: Style
    element_id: str = ""


@dataclass(slots=True)
class TextPrimitive:
    x: float
    y: float
    lines: list[str]
    font_size: float
    line_height: float
    font_family: str
    style: Style
    element_id: str = ""


@dataclass(slots=True)
class ImagePrimitive:
    href: str
    x: float
    y: float
    width: float
    height: float
    opacity: float
    transform: str | None = None
    element_id: str = ""


@dataclass(slots=True)
class PolylinePrimitive:
    points: list[tuple[float, float]]
    style: Style
    arrow: bool = False
    element_id: str = ""


Primitive = RectPrimitive | EllipsePrimitive | PolygonPrimitive | TextPrimitive | ImagePrimitive | PolylinePrimitive


@dataclass(slots=True)
class RenderedScene:
    bounds: Bounds
    view_box: ViewBox
    primitives: list[Primitive] = field(default_factory=list)


def render_scene(scene: Scene, padding: float = VIEWBOX_PADDING) -> RenderedScene:
    """Lay out every element of *scene*; pan/zoom state is applied by the caller."""
    bounds = scene_bounds(scene.elements)
    primitives: list[Primitive] = []
    for element in scene.elements:
        primitive = draw_element(element, scene)
        if primitive is not None:
            primitives.append(primitive)
    return RenderedScene(bounds=bounds, view_box=view_box(bounds, padding), primitives=primitives)


def draw_element(element: Element, scene: Scene) -> Primitive | None:
    style = resolve_style(element)
    x, y, width, height = element.x, element.y, element.width, element.height
    left, top = min(x, x + width), min(y, y + height)

    if element.type in ("rectangle", "frame"):
        radius = DEFAULT_CORNER_RADIUS if element.roundness is None else element.roundness
        return RectPrimitive(
            x=left,
            y=top,
            width=abs(width),
            height=abs(height),
            rx=max(0.0, radius),
            style=style,
            element_id=element.id,
        )

    if element.type == "ellipse":
        return EllipsePrimitive(
            cx=x + width / 2,
            cy=y + height / 2,
            rx=abs(width / 2),
            ry=abs(height / 2),
            style=style,
            element_id=element.id,
        )

    if element.type == "diamond":
        points = [
            (x + width / 2, y),
            (x + width, y + height / 2),
            (x + width / 2, y + height),
            (x, y + height / 2),
        ]
        return PolygonPrimitive(points=points, style=style, element_id=element.id)

    if element.type == "text":
        size = max(MIN_FONT_SIZE, to_finite(element.font_size, DEFAULT_FONT_SIZE))
        style.fill = style.stroke
        return TextPrimitive(
            x=x,
            y=y + size,
            lines=[line.replace("\t", "    ") for line in element.text.split("\n")],
            font_size=size,
            line_height=size * LINE_HEIGHT_RATIO,
            font_family=font_family(element.font_family),
            style=style,
            element_id=element.id,
        )

    if element.type == "image":
        binary = scene.files.get(element.file_id) if element.file_id else None
        if binary is None or not binary.data_url:
            style.fill = PLACEHOLDER_FILL
            style.dash = PLACEHOLDER_DASH
            return RectPrimitive(
                x=left,
                y=top,
                width=max(1.0, abs(width)),
                height=max(1.0, abs(height)),
                style=style,
                element_id=element.id,
            )
        return ImagePrimitive(
            href=binary.data_url,
            x=left,
            y=top,
            width=max(1.0, abs(width)),
            height=max(1.0, abs(height)),
            opacity=clamp(element.opacity, 5, 100) / 100,
            transform=style.transform,
            element_id=element.id,
        )

    if element.is_linear:
        if not element.points:
            return None
        style.fill = "none"
        style.transform = None
        return PolylinePrimitive(
            points=[(x + dx, y + dy) for dx, dy in element.points],
            style=style,
            arrow=element.type == "arrow",
            element_id=element.id,
        )

    return RectPrimitive(
        x=left,
        y=top,
        width=max(1.0, abs(width)),
        height=max(1.0, abs(height)),
        style=style,
        element_id=element.id,
    )


def fmt_number(value: float) -> str:
    text = f"{value:.3f}".rstrip("0").rstrip(".")
    return "0" if text in ("-0", "") else text
