"""Decode diagram payloads into a :class:`Scene`.

Inputs are tried against a fixed ladder and the first success wins:

1. the whole input as scene JSON;
2. fenced sub-blocks, by tag (``json``/``jsonc``/``excalidraw`` as JSON,
   ``compressed-json`` as a compressed payload, untagged as both);
3. compressed payloads: every decompressor against every payload
   normalization, each result read back through step 1.

Nothing here raises; an exhausted ladder returns a single
:class:`SceneDecodeError`.
"""

from __future__ import annotations

import base64
import json
import logging
import re
import zlib
from typing import Any, Callable

from lzstring import LZString

from .model import BinaryFile, Element, Scene

log = logging.getLogger(__name__)

UNPARSEABLE_SCENE = "unparseable-scene"
UNAVAILABLE_SCENE = "unavailable-scene"

_FENCE_RE = re.compile(r"```[ \t]*([\w-]*)[^\n]*\n(.*?)\n?[ \t]*```", re.DOTALL)
_JSON_TAGS = ("json", "jsonc", "excalidraw")
_COMPRESSED_TAG = "compressed-json"


class SceneDecodeError(ValueError):
    """Categorized scene failure; returned, never raised, by :func:`decode_scene`."""

    def __init__(self, category: str, message: str) -> None:
        super().__init__(message)
        self.category = category
        self.message = message

    def __str__(self) -> str:
        return self.message

    def __eq__(self, other: object) -> bool:
        if not isinstance(other, SceneDecodeError):
            return NotImplemented
        return (self.category, self.message) == (other.category, other.message)

    def __hash__(self) -> int:
        return hash((self.category, self.message))


def decode_scene(raw: str | bytes) -> Scene | SceneDecodeError:
    if isinstance(raw, bytes):
        raw = raw.decode("utf-8", errors="replace")
    text = (raw or "").lstrip("\ufeff").strip()
    if not text:
        return SceneDecodeError(UNPARSEABLE_SCENE, "empty scene source")

    scene = scene_from_json(text)
    if scene is not None:
        return scene

    fences = _FENCE_RE.findall(text)
    for tag, body in fences:
        scene = _decode_fence(tag.lower(), body.strip())
        if scene is not None:
            return scene

    if not fences:
        scene = decode_compressed(text)
        if scene is not None:
            return scene

    log.debug("scene ladder exhausted for %d-character input", len(text))
    return SceneDecodeError(UNPARSEABLE_SCENE, "no scene could be decoded from the source")


def _decode_fence(tag: str, body: str) -> Scene | None:
    if not body:
        return None
    if tag in _JSON_TAGS:
        return scene_from_json(body)
    if tag == _COMPRESSED_TAG:
        return decode_compressed(body)
    if not tag:
        return scene_from_json(body) or decode_compressed(body)
    return None


# ---------------------------------------------------------------------------
# Step 1: JSON
# ---------------------------------------------------------------------------

def scene_from_json(text: str) -> Scene | None:
    """Parse *text* as scene JSON, unwrapping one level of string encoding."""
    value = _loads(text)
    if isinstance(value, str):
        value = _loads(value)
    return scene_from_value(value)


def _loads(text: str) -> Any:
    try:
        return json.loads(text)
    except (ValueError, RecursionError):
        return None


def scene_from_value(value: Any) -> Scene | None:
    """Build a scene from decoded JSON, or ``None`` if it holds no element array."""
    if isinstance(value, list):
        return _build_scene(value, None, None)
    if not isinstance(value, dict):
        return None

    if isinstance(value.get("elements"), list):
        return _build_scene(value["elements"], value.get("appState"), value.get("files"))

    for key in ("scene", "data"):
        nested = value.get(key)
        if isinstance(nested, dict) and isinstance(nested.get("elements"), list):
            files = nested.get("files") if isinstance(nested.get("files"), dict) else value.get("files")
            app_state = nested.get("appState", value.get("appState"))
            return _build_scene(nested["elements"], app_state, files)
    return None


def _build_scene(raw_elements: list[Any], app_state: Any, raw_files: Any) -> Scene:
    elements = [
        Element.from_dict(item)
        for item in raw_elements
        if isinstance(item, dict) and not item.get("isDeleted")
    ]
    files: dict[str, BinaryFile] = {}
    if isinstance(raw_files, dict):
        for file_id, item in raw_files.items():
            if isinstance(item, dict):
                files[str(file_id)] = BinaryFile.from_dict(item)
    return Scene(
        elements=elements,
        app_state=app_state if isinstance(app_state, dict) else None,
        files=files,
    )


# ---------------------------------------------------------------------------
# Step 3: compressed payloads
# ---------------------------------------------------------------------------

def _zlib_base64(payload: str) -> str | None:
    data = base64.b64decode(payload + "=" * (-len(payload) % 4), validate=True)
    return zlib.decompress(data).decode("utf-8")


# Order is part of the contract: the first decoder/normalization pair that
# yields a scene wins.
_lz = LZString()

DECOMPRESSORS: list[tuple[str, Callable[[str], str | None]]] = [
    ("lz-base64", _lz.decompressFromBase64),
    ("lz-utf16", _lz.decompressFromUTF16),
    ("lz-uri", _lz.decompressFromEncodedURIComponent),
    ("zlib-base64", _zlib_base64),
]

NORMALIZATIONS: list[tuple[str, Callable[[str], str]]] = [
    ("as-is", lambda payload: payload),
    ("no-whitespace", lambda payload: re.sub(r"\s+", "", payload)),
]


def decode_compressed(payload: str) -> Scene | None:
    for decoder_name, decompress in DECOMPRESSORS:
        seen: set[str] = set()
        for norm_name, normalize in NORMALIZATIONS:
            candidate = normalize(payload)
            if not candidate or candidate in seen:
                continue
            seen.add(candidate)
            try:
                decoded = decompress(candidate)
            except Exception as exc:
                log.debug("%s/%s rejected payload: %s", decoder_name, norm_name, exc)
                continue
            if not decoded or not isinstance(decoded, str):
                continue
            scene = scene_from_json(decoded)
            if scene is not None:
                log.debug("decoded compressed scene with %s/%s", decoder_name, norm_name)
                return scene
    return None
