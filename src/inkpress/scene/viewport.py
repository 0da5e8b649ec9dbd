"""Per-instance zoom and pan state for displayed diagrams.

A viewport only changes how a rendered scene is presented; it never touches
element geometry or the computed view box.
"""

from __future__ import annotations

from dataclasses import dataclass

from .renderer import clamp

DEFAULT_ZOOM = 130
ZOOM_STEP = 15
INLINE_ZOOM_RANGE = (70, 320)
FULLSCREEN_ZOOM_RANGE = (40, 500)
FULLSCREEN_OPEN_RANGE = (80, 300)
WHEEL_STEP = 12


@dataclass
class Viewport:
    zoom: int = DEFAULT_ZOOM
    fullscreen: bool = False
    fullscreen_zoom: int = DEFAULT_ZOOM
    pan_x: float = 0.0
    pan_y: float = 0.0
    panning: bool = False
    _drag_origin: tuple[float, float] | None = None

    # -- inline -------------------------------------------------------------

    def zoom_in(self) -> int:
        self.zoom = int(clamp(self.zoom + ZOOM_STEP, *INLINE_ZOOM_RANGE))
        return self.zoom

    def zoom_out(self) -> int:
        self.zoom = int(clamp(self.zoom - ZOOM_STEP, *INLINE_ZOOM_RANGE))
        return self.zoom

    def reset_zoom(self) -> None:
        self.zoom = DEFAULT_ZOOM

    # -- fullscreen ---------------------------------------------------------

    def open_fullscreen(self) -> None:
        self.fullscreen_zoom = int(clamp(self.zoom, *FULLSCREEN_OPEN_RANGE))
        self.pan_x = self.pan_y = 0.0
        self.fullscreen = True

    def close_fullscreen(self) -> None:
        self.fullscreen = False
        self.end_pan()

    def fullscreen_zoom_in(self) -> int:
        self.fullscreen_zoom = int(clamp(self.fullscreen_zoom + ZOOM_STEP, *FULLSCREEN_ZOOM_RANGE))
        return self.fullscreen_zoom

    def fullscreen_zoom_out(self) -> int:
        self.fullscreen_zoom = int(clamp(self.fullscreen_zoom - ZOOM_STEP, *FULLSCREEN_ZOOM_RANGE))
        return self.fullscreen_zoom

    def wheel(self, delta_y: float) -> int:
        """Scrolling up zooms in; ignored outside fullscreen."""
        if self.fullscreen:
            step = WHEEL_STEP if delta_y < 0 else -WHEEL_STEP
            self.fullscreen_zoom = int(clamp(self.fullscreen_zoom + step, *FULLSCREEN_ZOOM_RANGE))
        return self.fullscreen_zoom

    def reset_fullscreen(self) -> None:
        self.fullscreen_zoom = DEFAULT_ZOOM
        self.pan_x = self.pan_y = 0.0

    def start_pan(self, client_x: float, client_y: float) -> None:
        if not self.fullscreen:
            return
        self.panning = True
        self._drag_origin = (client_x - self.pan_x, client_y - self.pan_y)

    def move_pan(self, client_x: float, client_y: float) -> None:
        if not (self.fullscreen and self.panning and self._drag_origin):
            return
        self.pan_x = client_x - self._drag_origin[0]
        self.pan_y = client_y - self._drag_origin[1]

    def end_pan(self) -> None:
        self.panning = False
        self._drag_origin = None

    # -- presentation -------------------------------------------------------

    def inline_style(self) -> str:
        return f"width: {self.zoom}%; min-width: 100%"

    def fullscreen_style(self) -> str:
        return (
            f"width: 100%; height: 100%; transform: translate({self.pan_x:g}px, {self.pan_y:g}px) "
            f"scale({self.fullscreen_zoom / 100:g}); transform-origin: 0 0"
        )
