"""Split raw document text into body, asset manifest and footnote definitions."""

from __future__ import annotations

import json
import logging
import re
from dataclasses import dataclass, field

log = logging.getLogger(__name__)


@dataclass(slots=True)
class Preprocessed:
    body: str
    assets: dict[str, str] = field(default_factory=dict)
    footnotes: dict[str, str] = field(default_factory=dict)
    metadata: dict[str, str] = field(default_factory=dict)


def preprocess(text: str) -> Preprocessed:
    """Run every preprocessing stage over raw document text."""
    text = strip_bom(text).replace("\r\n", "\n")
    frontmatter, text = split_frontmatter(text)
    body, assets = split_asset_manifest(text)
    body, footnotes = extract_footnotes(body)
    return Preprocessed(
        body=body,
        assets=assets,
        footnotes=footnotes,
        metadata=parse_frontmatter(frontmatter),
    )


def strip_bom(text: str) -> str:
    return text[1:] if text.startswith("\ufeff") else text


# ---------------------------------------------------------------------------
# Metadata block
# ---------------------------------------------------------------------------

def split_frontmatter(text: str) -> tuple[str, str]:
    """Split a leading ``---`` metadata block from the body text."""
    lines = text.split("\n")
    if len(lines) < 3 or lines[0].strip() != "---":
        return "", text
    for idx in range(1, len(lines)):
        if lines[idx].strip() == "---":
            return "\n".join(lines[1:idx]), "\n".join(lines[idx + 1:])
    return "", text


def parse_frontmatter(raw: str) -> dict[str, str]:
    """Read ``key: value`` pairs from a metadata block."""
    result: dict[str, str] = {}
    for line in raw.splitlines():
        line = line.strip()
        if not line or line.startswith("#"):
            continue

        m = re.match(r"^([A-Za-z_][\w-]*)\s*:\s*(.*)", line)
        if not m:
            continue

        value = m.group(2).strip()
        # Strip surrounding quotes.
        if len(value) >= 2 and value[0] in ('"', "'") and value[-1] == value[0]:
            value = value[1:-1]
        result[m.group(1).lower()] = value
    return result


# ---------------------------------------------------------------------------
# Asset manifest
# ---------------------------------------------------------------------------

_ASSET_MANIFEST_RE = re.compile(r"\n?:::assets[ \t]*\n(.*?)\n:::\s*\Z", re.DOTALL)


def split_asset_manifest(text: str) -> tuple[str, dict[str, str]]:
    """Split the trailing ``:::assets`` block; a bad payload yields an empty manifest."""
    m = _ASSET_MANIFEST_RE.search(text)
    if not m:
        return text, {}

    body = text[:m.start()].rstrip()
    assets: dict[str, str] = {}
    try:
        parsed = json.loads(m.group(1))
    except ValueError:
        log.debug("discarding unparseable asset manifest")
        return body, {}

    if isinstance(parsed, dict):
        for key, value in parsed.items():
            if isinstance(value, str) and key.strip():
                assets[key.strip()] = value
    return body, assets


# ---------------------------------------------------------------------------
# Footnote definitions
# ---------------------------------------------------------------------------

_FOOTNOTE_DEF_RE = re.compile(r"^\[\^([^\]\s]+)\]:[ \t]*(.*)$")
_CONTINUATION_RE = re.compile(r"^(?: {2,}|\t)\S")
_FENCE_RE = re.compile(r"^\s*(`{3,}|~{3,})")


def extract_footnotes(body: str) -> tuple[str, dict[str, str]]:
    """Collect ``[^id]: text`` definitions and remove them from *body*.

    Continuation lines are indented by at least two spaces; blank lines are
    kept inside a definition only when an indented line follows them.
    """
    lines = body.split("\n")
    kept: list[str] = []
    footnotes: dict[str, str] = {}
    fence: str | None = None
    i = 0

    while i < len(lines):
        line = lines[i]
        if fence is None:
            opening = _FENCE_RE.match(line)
            if opening:
                fence = opening.group(1)
                kept.append(line)
                i += 1
                continue
        else:
            stripped = line.strip()
            if stripped.startswith(fence) and not stripped.strip(fence[0]):
                fence = None
            kept.append(line)
            i += 1
            continue

        m = _FOOTNOTE_DEF_RE.match(line)
        if not m:
            kept.append(line)
            i += 1
            continue

        parts = [m.group(2).strip()]
        i += 1
        while i < len(lines):
            if _CONTINUATION_RE.match(lines[i]):
                parts.append(lines[i].strip())
                i += 1
                continue
            if not lines[i].strip():
                j = i
                while j < len(lines) and not lines[j].strip():
                    j += 1
                if j < len(lines) and _CONTINUATION_RE.match(lines[j]):
                    i = j
                    continue
            break

        footnotes[m.group(1)] = " ".join(part for part in parts if part)

    return "\n".join(kept), footnotes
