"""Asset token manifest, reference classification and Obsidian import helpers."""

from __future__ import annotations

import json
import re
from dataclasses import dataclass
from typing import Callable
from urllib.parse import unquote

from .base import AssetKind
from .preprocess import split_asset_manifest, split_frontmatter

TOKEN_PREFIX = "asset:"

_TOKEN_RE = re.compile(r"^asset:([A-Za-z0-9_-]+)$")
_NUMBERED_TOKEN_RE = re.compile(r"^a(\d+)$", re.IGNORECASE)
_HTTP_RE = re.compile(r"^https?://", re.IGNORECASE)

_IMAGE_EXT_RE = re.compile(r"\.(png|jpe?g|gif|webp|bmp|avif|heic|heif)$", re.IGNORECASE)
_SVG_EXT_RE = re.compile(r"\.svg$", re.IGNORECASE)
_DIAGRAM_EXT_RE = re.compile(r"\.(excalidraw|json|excalidraw\.md)$", re.IGNORECASE)


def is_http_url(value: str) -> bool:
    return bool(_HTTP_RE.match((value or "").strip()))


def is_asset_token(value: str) -> bool:
    return bool(_TOKEN_RE.match((value or "").strip()))


# ---------------------------------------------------------------------------
# Paths
# ---------------------------------------------------------------------------

def normalize_path(value: str) -> str:
    """Normalize an Obsidian-style reference into a forward-slash path or URL."""
    raw = unquote((value or "").strip())
    raw = re.sub(r"^<|>$", "", raw).strip()
    if is_http_url(raw):
        return raw

    raw = raw.replace("\\", "/")
    raw = re.sub(r"^\./+", "", raw)
    raw = re.sub(r"/{2,}", "/", raw)
    return raw.split("#")[0].split("?")[0].strip()


def path_basename(value: str) -> str:
    normalized = normalize_path(value)
    parts = [part for part in normalized.split("/") if part]
    return parts[-1] if parts else normalized


def _path_for_ext_match(value: str) -> str:
    normalized = normalize_path(value)
    if is_http_url(normalized):
        return normalized.split("#")[0].split("?")[0]
    return normalized


def extension_kind(path: str) -> AssetKind | None:
    """Classify by file extension alone; ``None`` when no known extension matches."""
    target = _path_for_ext_match(path)
    if _IMAGE_EXT_RE.search(target):
        return "image"
    if _SVG_EXT_RE.search(target):
        return "vector-drawing"
    if _DIAGRAM_EXT_RE.search(target):
        return "diagram"
    return None


def classify(path: str) -> AssetKind:
    if is_http_url(path):
        return "external-link"
    return extension_kind(path) or "plain-text"


# ---------------------------------------------------------------------------
# Manifest
# ---------------------------------------------------------------------------

def resolve(ref: str, manifest: dict[str, str]) -> str:
    """Resolve ``asset:<id>`` through *manifest*; other references pass through."""
    ref = (ref or "").strip()
    m = _TOKEN_RE.match(ref)
    if m:
        return manifest.get(m.group(1), "")
    return ref


def allocate(url: str, manifest: dict[str, str]) -> str:
    """Return the token for *url*, adding the smallest unused ``a<N>`` entry if needed."""
    for key, value in manifest.items():
        if value == url:
            return f"{TOKEN_PREFIX}{key}"

    n = 1
    while f"a{n}" in manifest:
        n += 1
    manifest[f"a{n}"] = url
    return f"{TOKEN_PREFIX}a{n}"


def _natural_key(key: str) -> tuple:
    m = _NUMBERED_TOKEN_RE.match(key)
    if m:
        return (0, int(m.group(1)), key)
    return (1, 0, key)


def build_with_manifest(body: str, manifest: dict[str, str]) -> str:
    """Append *manifest* to *body* as a trailing ``:::assets`` block."""
    clean_body = body.rstrip()
    entries = sorted(((k, v) for k, v in manifest.items() if k and v), key=lambda kv: _natural_key(kv[0]))
    if not entries:
        return clean_body

    payload = json.dumps(dict(entries), ensure_ascii=False, separators=(",", ":"))
    return f"{clean_body}\n\n:::assets\n{payload}\n:::\n"


def directive_block(kind: str, token: str) -> str:
    return f"\n:::{kind}\n{token}\n:::\n"


def insert_asset_block(text: str, url: str, kind: str, position: int | None = None) -> tuple[str, str]:
    """Insert a ``:::kind`` block referencing *url* and keep the manifest in sync.

    Returns the new document text and the token used.
    """
    body, manifest = split_asset_manifest(text)
    token = allocate(url, manifest)
    block = directive_block(kind, token)
    start = len(body) if position is None else max(0, min(position, len(body)))
    return build_with_manifest(body[:start] + block + body[start:], manifest), token


# ---------------------------------------------------------------------------
# Wiki targets
# ---------------------------------------------------------------------------

@dataclass(slots=True)
class WikiTarget:
    target: str
    alias: str = ""
    anchor: str = ""
    block_id: str = ""
    raw_target: str = ""


def parse_wiki_target(raw: str) -> WikiTarget:
    """Split ``target#anchor^block|alias`` into its parts."""
    left, _, alias = (raw or "").partition("|")
    raw_target = left.strip()
    base = raw_target
    anchor = ""
    block_id = ""

    if "#" in base:
        base, anchor = base.split("#", 1)

    if "^" in anchor:
        anchor, block_id = anchor.split("^", 1)
    elif "^" in base:
        base, block_id = base.split("^", 1)

    return WikiTarget(
        target=normalize_path(base),
        alias=alias.strip(),
        anchor=unquote(anchor).strip(),
        block_id=unquote(block_id).strip(),
        raw_target=raw_target,
    )


# ---------------------------------------------------------------------------
# Obsidian import
# ---------------------------------------------------------------------------

_EMBED_RE = re.compile(r"!\[\[([^\]]+)\]\]")
_MD_IMAGE_RE = re.compile(r"!\[([^\]]*)\]\(([^)]+)\)")
_WIKI_LINK_RE = re.compile(r"(?<!!)\[\[([^\]]+)\]\]")

_DIRECTIVE_FOR_KIND = {"diagram": "excalidraw", "vector-drawing": "svg"}


def import_obsidian(raw: str, locate: Callable[[str], str | None]) -> str:
    """Rewrite an Obsidian note into platform markup.

    *locate* maps a referenced vault path to its published URL, or ``None`` when
    the file is unavailable; unresolved references are left untouched.
    """
    manifest: dict[str, str] = {}
    _, output = split_frontmatter(raw.replace("\r\n", "\n"))

    def rewrite_reference(ref: str, label: str, original: str, *, from_image: bool = False) -> str:
        url = locate(ref)
        if not url:
            return original
        kind = extension_kind(ref) or "plain-text"
        if kind in _DIRECTIVE_FOR_KIND:
            return directive_block(_DIRECTIVE_FOR_KIND[kind], allocate(url, manifest))
        if kind == "image":
            return f"![{label or path_basename(ref) or 'image'}]({allocate(url, manifest)})"
        if from_image:
            return f"![{label}]({url})"
        return f"[{label or ref}]({url})"

    def replace_embed(m: re.Match[str]) -> str:
        target = parse_wiki_target(m.group(1))
        return rewrite_reference(target.target, target.alias, m.group(0))

    def replace_image(m: re.Match[str]) -> str:
        ref = m.group(2).strip()
        if is_http_url(ref) or is_asset_token(ref):
            return m.group(0)
        return rewrite_reference(ref, m.group(1), m.group(0), from_image=True)

    def replace_wiki_link(m: re.Match[str]) -> str:
        target = parse_wiki_target(m.group(1))
        label = target.alias or target.anchor or target.block_id or path_basename(target.target) or target.target
        if is_http_url(target.target):
            return f"[{label}]({target.target})"
        if target.anchor or target.block_id:
            return m.group(0)
        return label

    output = _EMBED_RE.sub(replace_embed, output)
    output = _MD_IMAGE_RE.sub(replace_image, output)
    output = _WIKI_LINK_RE.sub(replace_wiki_link, output)
    return build_with_manifest(output, manifest)
