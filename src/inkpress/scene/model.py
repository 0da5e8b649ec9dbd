"""Canonical in-memory form of an embedded vector diagram."""

from __future__ import annotations

import math
from dataclasses import dataclass, field
from typing import Any

LINEAR_TYPES = ("line", "arrow", "freedraw")


def to_finite(value: Any, fallback: float = 0.0) -> float:
    """Coerce *value* to a finite float, using *fallback* for anything else."""
    if isinstance(value, bool):
        return fallback
    try:
        number = float(value)
    except (TypeError, ValueError):
        return fallback
    return number if math.isfinite(number) else fallback


@dataclass(slots=True)
class BinaryFile:
    data_url: str = ""
    mime_type: str = ""
    id: str = ""

    @classmethod
    def from_dict(cls, raw: dict[str, Any]) -> BinaryFile:
        return cls(
            data_url=str(raw.get("dataURL") or ""),
            mime_type=str(raw.get("mimeType") or ""),
            id=str(raw.get("id") or ""),
        )


@dataclass(slots=True)
class Element:
    id: str = ""
    type: str = "rectangle"
    x: float = 0.0
    y: float = 0.0
    width: float = 0.0
    height: float = 0.0
    angle: float = 0.0
    stroke_color: str | None = None
    background_color: str | None = None
    stroke_width: float | None = None
    stroke_style: str = "solid"
    opacity: float = 100.0
    is_deleted: bool = False
    points: list[tuple[float, float]] = field(default_factory=list)
    text: str = ""
    font_size: float | None = None
    font_family: int | None = None
    file_id: str | None = None
    roundness: float | None = None

    @classmethod
    def from_dict(cls, raw: dict[str, Any]) -> Element:
        points: list[tuple[float, float]] = []
        for point in raw.get("points") or []:
            if isinstance(point, (list, tuple)):
                dx = to_finite(point[0]) if len(point) > 0 else 0.0
                dy = to_finite(point[1]) if len(point) > 1 else 0.0
                points.append((dx, dy))

        roundness = raw.get("roundness")
        roundness_value = None
        if isinstance(roundness, dict) and roundness.get("value") is not None:
            roundness_value = to_finite(roundness.get("value"), 6.0)

        stroke_width = raw.get("strokeWidth")
        font_size = raw.get("fontSize")
        font_family = raw.get("fontFamily")
        return cls(
            id=str(raw.get("id") or ""),
            type=str(raw.get("type") or "rectangle"),
            x=to_finite(raw.get("x")),
            y=to_finite(raw.get("y")),
            width=to_finite(raw.get("width")),
            height=to_finite(raw.get("height")),
            angle=to_finite(raw.get("angle")),
            stroke_color=raw.get("strokeColor") if isinstance(raw.get("strokeColor"), str) else None,
            background_color=raw.get("backgroundColor") if isinstance(raw.get("backgroundColor"), str) else None,
            stroke_width=None if stroke_width is None else to_finite(stroke_width, 2.0),
            stroke_style=str(raw.get("strokeStyle") or "solid"),
            opacity=to_finite(raw.get("opacity"), 100.0),
            is_deleted=bool(raw.get("isDeleted")),
            points=points,
            text=str(raw.get("text") or ""),
            font_size=None if font_size is None else to_finite(font_size, 20.0),
            font_family=int(to_finite(font_family, 2.0)) if font_family is not None else None,
            file_id=str(raw["fileId"]) if raw.get("fileId") else None,
            roundness=roundness_value,
        )

    @property
    def is_linear(self) -> bool:
        return self.type in LINEAR_TYPES


@dataclass(slots=True)
class Scene:
    elements: list[Element] = field(default_factory=list)
    app_state: dict[str, Any] | None = None
    files: dict[str, BinaryFile] = field(default_factory=dict)


@dataclass(slots=True, frozen=True)
class Bounds:
    min_x: float
    min_y: float
    max_x: float
    max_y: float

    @property
    def width(self) -> float:
        return self.max_x - self.min_x

    @property
    def height(self) -> float:
        return self.max_y - self.min_y

    def as_tuple(self) -> tuple[float, float, float, float]:
        return (self.min_x, self.min_y, self.max_x, self.max_y)
