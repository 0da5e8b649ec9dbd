"""Process-wide memo of decoded scenes and cover accent hues.

One :class:`SceneCache` is created per application context and handed to the
renderers that need it. Concurrent requests for the same uncached source share
a single in-flight future; a caller that stops waiting does not cancel the
work, which still completes and fills the cache for everyone else.
"""

from __future__ import annotations

import logging
import math
import threading
from concurrent.futures import Future
from typing import Callable, Iterable

from .decoder import UNAVAILABLE_SCENE, SceneDecodeError, decode_scene
from .model import Scene

log = logging.getLogger(__name__)

Fetch = Callable[[str], "str | bytes"]
SceneResult = Scene | SceneDecodeError
Pixel = tuple[int, int, int, int]


class SceneCache:
    def __init__(self, decoder: Callable[[str | bytes], SceneResult] = decode_scene) -> None:
        self._decoder = decoder
        self._scenes: dict[str, Scene] = {}
        self._pending: dict[str, Future] = {}
        self._hues: dict[str, float] = {}
        self._lock = threading.Lock()

    def __contains__(self, source: str) -> bool:
        with self._lock:
            return source in self._scenes

    def request(self, source: str, fetch: Fetch) -> Future:
        """Return a future for *source*, starting the load if nobody else has."""
        with self._lock:
            cached = self._scenes.get(source)
            if cached is not None:
                done: Future = Future()
                done.set_result(cached)
                return done
            pending = self._pending.get(source)
            if pending is not None:
                return pending
            future: Future = Future()
            self._pending[source] = future

        try:
            result = self._load(source, fetch)
        except BaseException as exc:
            with self._lock:
                self._pending.pop(source, None)
            future.set_exception(exc)
            raise
        with self._lock:
            if isinstance(result, Scene):
                self._scenes[source] = result
            self._pending.pop(source, None)
        future.set_result(result)
        return future

    def get(self, source: str, fetch: Fetch, timeout: float | None = None) -> SceneResult:
        return self.request(source, fetch).result(timeout)

    def put(self, source: str, scene: Scene) -> None:
        with self._lock:
            self._scenes[source] = scene

    def _load(self, source: str, fetch: Fetch) -> SceneResult:
        try:
            raw = fetch(source)
        except (OSError, ValueError) as exc:
            log.warning("could not fetch scene %s: %s", source, exc)
            return SceneDecodeError(UNAVAILABLE_SCENE, f"could not fetch {source}: {exc}")
        result = self._decoder(raw)
        if isinstance(result, SceneDecodeError):
            log.info("scene %s could not be decoded (%s)", source, result.category)
        return result

    # ------------------------------------------------------------------
    # Accent hues
    # ------------------------------------------------------------------

    def accent_hue(
        self,
        image_url: str | None,
        seed: str,
        load_pixels: Callable[[str], Iterable[Pixel]] | None = None,
    ) -> float:
        """Accent hue for a cover image, falling back to a hue derived from *seed*."""
        fallback = hash_to_hue(seed or "inkpress")
        target = (image_url or "").strip()
        if not target:
            return fallback

        with self._lock:
            if target in self._hues:
                return self._hues[target]

        if load_pixels is None:
            return fallback
        try:
            hue = hue_from_pixels(load_pixels(target))
        except (OSError, ValueError) as exc:
            log.debug("accent extraction failed for %s: %s", target, exc)
            return fallback
        if hue is None:
            return fallback

        hue = min(360.0, max(0.0, hue))
        with self._lock:
            self._hues[target] = hue
        return hue


def hash_to_hue(seed: str) -> int:
    value = 0
    for ch in seed:
        value = (value * 31 + ord(ch)) & 0xFFFFFFFF
    return value % 360


def hue_from_pixels(pixels: Iterable[Pixel]) -> float | None:
    """Weighted circular mean hue of the vivid pixels, or ``None`` if there are none."""
    sum_x = sum_y = weight_sum = 0.0
    for red, green, blue, alpha in pixels:
        r, g, b, a = red / 255, green / 255, blue / 255, alpha / 255
        if a < 0.05:
            continue
        high, low = max(r, g, b), min(r, g, b)
        chroma = high - low
        if chroma < 0.06:
            continue

        if high == r:
            hue = ((g - b) / chroma) % 6
        elif high == g:
            hue = (b - r) / chroma + 2
        else:
            hue = (r - g) / chroma + 4
        hue *= 60

        saturation = chroma / max(high, 0.0001)
        luminance = 0.2126 * r + 0.7152 * g + 0.0722 * b
        weight = a * saturation * (1 - abs(luminance - 0.52))
        if weight <= 0.001:
            continue

        rad = math.radians(hue)
        sum_x += math.cos(rad) * weight
        sum_y += math.sin(rad) * weight
        weight_sum += weight

    if weight_sum <= 0.01:
        return None
    mean = math.degrees(math.atan2(sum_y, sum_x))
    return mean + 360 if mean < 0 else mean
