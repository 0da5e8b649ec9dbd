"""Inline markup parser.

Each step tries an ordered list of patterns anchored at the cursor; the first
one that matches produces a node. When nothing matches a single character is
emitted as text, so the number of top-level steps is bounded by the length of
the input.
"""

from __future__ import annotations

import re
from typing import Callable

from . import assets
from .base import (
    Bold,
    Code,
    FootnoteRef,
    Highlight,
    Image,
    Inline,
    Italic,
    Link,
    Math,
    Strikethrough,
    Text,
    WikiLink,
)

Resolver = Callable[[str], str]

_FULLWIDTH = str.maketrans({
    "＊": "*",
    "＿": "_",
    "～": "~",
    "＝": "=",
    "｀": "`",
    "＄": "$",
})

_DISPLAY_MATH_RE = re.compile(r"\$\$(.+?)\$\$", re.DOTALL)
_INLINE_MATH_RE = re.compile(r"\$([^$\n]+?)\$")
_IMAGE_RE = re.compile(r"!\[([^\]]*)\]\(([^)\s]*)(?:\s+\"[^\"]*\")?\)")
_EMBED_RE = re.compile(r"!\[\[([^\]]+)\]\]")
_LINK_RE = re.compile(r"\[([^\]]+)\]\(([^)\s]*)(?:\s+\"[^\"]*\")?\)")
_WIKI_LINK_RE = re.compile(r"\[\[([^\]]+)\]\]")
_FOOTNOTE_REF_RE = re.compile(r"\[\^([^\]\s]+)\]")
_HIGHLIGHT_RE = re.compile(r"==(?=\S)(.+?)(?<=\S)==")
_BOLD_RE = re.compile(r"\*\*(?=\S)(.+?)(?<=\S)\*\*|(?<![A-Za-z0-9])__(?=\S)(.+?)(?<=\S)__(?![A-Za-z0-9])")
_STRIKE_RE = re.compile(r"~~(?=\S)(.+?)(?<=\S)~~")
_ITALIC_RE = re.compile(r"\*(?=[^\s*])(.+?)(?<=[^\s*])\*(?!\*)|(?<![A-Za-z0-9_])_(?=[^\s_])(.+?)(?<=[^\s_])_(?![A-Za-z0-9_])")
_CODE_RE = re.compile(r"`([^`]+)`")


def normalize_delimiters(text: str) -> str:
    return text.translate(_FULLWIDTH)


class InlineParser:
    """Parse a span of text into inline nodes.

    *resolver* maps image/embed references (asset tokens included) to URLs.
    """

    def __init__(self, resolver: Resolver | None = None) -> None:
        self.resolver = resolver or (lambda ref: assets.resolve(ref, {}))

    def parse(self, text: str, *, footnotes: bool = True) -> list[Inline]:
        return self._parse(normalize_delimiters(text), footnotes=footnotes, links=True)

    def parse_code(self, text: str) -> list[Inline]:
        """Parse the restricted subset allowed inside inline code."""
        return self._parse(text, footnotes=False, links=False, code=False, math=False, highlight=False)

    # -- core loop ----------------------------------------------------------

    def _parse(
        self,
        text: str,
        *,
        footnotes: bool,
        links: bool,
        code: bool = True,
        math: bool = True,
        highlight: bool = True,
    ) -> list[Inline]:
        nodes: list[Inline] = []
        pos = 0
        while pos < len(text):
            hit = self._match_at(text, pos, footnotes=footnotes, links=links, code=code, math=math, highlight=highlight)
            if hit is None:
                _append_text(nodes, text[pos])
                pos += 1
                continue
            node, pos = hit
            nodes.append(node)
        return nodes

    def _match_at(
        self,
        text: str,
        pos: int,
        *,
        footnotes: bool,
        links: bool,
        code: bool,
        math: bool,
        highlight: bool,
    ) -> tuple[Inline, int] | None:
        def nested(body: str) -> list[Inline]:
            return self._parse(body, footnotes=footnotes, links=links, code=code, math=math, highlight=highlight)

        if math:
            m = _DISPLAY_MATH_RE.match(text, pos)
            if m and m.group(1).strip():
                return Math(latex=m.group(1).strip(), display=True), m.end()
            m = _INLINE_MATH_RE.match(text, pos)
            if m and m.group(1).strip():
                return Math(latex=m.group(1).strip(), display=False), m.end()

        if links:
            m = _IMAGE_RE.match(text, pos)
            if m:
                return self._image(m.group(1), m.group(2)), m.end()

            m = _EMBED_RE.match(text, pos)
            if m:
                return self._wiki_link(m.group(1), embed=True), m.end()

            m = _LINK_RE.match(text, pos)
            if m and not m.group(1).startswith("^"):
                children = self._parse(m.group(1), footnotes=False, links=False, code=code, math=math, highlight=highlight)
                return Link(url=m.group(2).strip(), children=children), m.end()

            m = _WIKI_LINK_RE.match(text, pos)
            if m:
                return self._wiki_link(m.group(1), embed=False), m.end()

        if footnotes:
            m = _FOOTNOTE_REF_RE.match(text, pos)
            if m:
                return FootnoteRef(id=m.group(1)), m.end()

        if highlight:
            m = _HIGHLIGHT_RE.match(text, pos)
            if m:
                return Highlight(children=nested(m.group(1))), m.end()

        m = _BOLD_RE.match(text, pos)
        if m:
            return Bold(children=nested(m.group(1) or m.group(2))), m.end()

        m = _STRIKE_RE.match(text, pos)
        if m:
            return Strikethrough(children=nested(m.group(1))), m.end()

        m = _ITALIC_RE.match(text, pos)
        if m:
            return Italic(children=nested(m.group(1) or m.group(2))), m.end()

        if code:
            m = _CODE_RE.match(text, pos)
            if m:
                return Code(children=self.parse_code(m.group(1))), m.end()

        return None

    # -- embeds -------------------------------------------------------------

    def _image(self, alt: str, ref: str) -> Image:
        url = self.resolver(ref)
        kind = assets.extension_kind(url) or assets.extension_kind(ref) or "image"
        return Image(alt=alt, url=url, kind=kind)

    def _wiki_link(self, raw: str, *, embed: bool) -> WikiLink:
        target = assets.parse_wiki_target(raw)
        url = self.resolver(target.target) if target.target else ""
        if embed:
            kind = assets.extension_kind(target.target) or assets.extension_kind(url) or assets.classify(target.target)
        else:
            kind = assets.classify(target.target)
        return WikiLink(
            target=target.target,
            alias=target.alias,
            anchor=target.anchor,
            block_id=target.block_id,
            embed=embed,
            kind=kind,
            url=url,
        )


def _append_text(nodes: list[Inline], text: str) -> None:
    if nodes and isinstance(nodes[-1], Text):
        nodes[-1].text += text
    else:
        nodes.append(Text(text))
