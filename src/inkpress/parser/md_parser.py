"""Line-driven block parser producing the document render tree."""

from __future__ import annotations

import re
from dataclasses import dataclass, field
from typing import Callable

from inkpress.scene.decoder import SceneDecodeError, decode_scene

from . import assets
from .base import (
    DIRECTIVE_KINDS,
    Alignment,
    Block,
    Callout,
    CodeBlock,
    DirectiveBlock,
    Document,
    Embed,
    FootnoteItem,
    FootnotesSection,
    Heading,
    Inline,
    ListBlock,
    ListItem,
    Paragraph,
    Quote,
    Table,
    ThematicBreak,
    plain_text,
)
from .inline_parser import InlineParser
from .preprocess import preprocess

Resolver = Callable[[str], str]

_DIRECTIVE_RE = re.compile(r"^:::[ \t]*([A-Za-z][\w-]*)[ \t]*$")
_DIRECTIVE_CLOSE_RE = re.compile(r"^:::[ \t]*$")
_EMBED_LINE_RE = re.compile(r"^\s*!\[\[([^\]]+)\]\]\s*$")
_THEMATIC_RE = re.compile(r"^ {0,3}(?:-{3,}|\*{3,}|_{3,})\s*$")
_FENCE_RE = re.compile(r"^\s*(`{3,}|~{3,})\s*([^`\s]*)")
_QUOTE_RE = re.compile(r"^\s*>")
_CALLOUT_RE = re.compile(r"^\[!([A-Za-z][\w-]*)\][+-]?\s*(.*)$")
_LIST_RE = re.compile(r"^([ \t]*)([-*+]|\d+[.)])[ \t]+(.*)$")
_TASK_RE = re.compile(r"^\[([ xX])\][ \t]+(.*)$")
_ALIGN_CELL_RE = re.compile(r"^:?-+:?$")

# Longest marker first so "###" is never read as "#" followed by "##".
_HEADING_RES = [(level, re.compile(rf"^#{{{level}}}[ \t]+(.+?)(?:[ \t]+#+)?[ \t]*$")) for level in range(6, 0, -1)]

_SCENE_KINDS = ("excalidraw", "scribble")
_NOTE_KINDS = ("lab", "postmortem")


def slugify(text: str) -> str:
    slug = re.sub(r"[^\w\s-]", "", text.lower(), flags=re.UNICODE)
    slug = re.sub(r"[\s_-]+", "-", slug).strip("-")
    return slug or "section"


def _dedupe_anchor(anchor: str, used: set[str]) -> str:
    if anchor not in used:
        used.add(anchor)
        return anchor

    idx = 2
    while True:
        candidate = f"{anchor}-{idx}"
        if candidate not in used:
            used.add(candidate)
            return candidate
        idx += 1


@dataclass(slots=True)
class _ListLine:
    indent: int
    ordered: bool
    number: int
    checked: bool | None
    text: str


@dataclass(slots=True)
class _State:
    lines: list[str]
    pos: int = 0
    used_ids: set[str] = field(default_factory=set)


class DocumentParser:
    """Parse document text into a :class:`Document`.

    *resolver* maps references (``asset:aN`` tokens, paths, URLs) to URLs. When
    omitted the document's own trailing manifest is used.
    """

    def __init__(self, resolver: Resolver | None = None, decode_scenes: bool = True) -> None:
        self.resolver = resolver
        self.decode_scenes = decode_scenes

    def parse(self, text: str) -> Document:
        pre = preprocess(text)
        document = self.parse_body(pre.body, pre.assets, pre.footnotes)
        document.metadata = pre.metadata
        return document

    def parse_body(self, body: str, manifest: dict[str, str], footnotes: dict[str, str]) -> Document:
        resolver = self.resolver or (lambda ref: assets.resolve(ref, manifest))
        inline = InlineParser(resolver)

        footnote_table = {fid: inline.parse(text, footnotes=False) for fid, text in footnotes.items()}
        state = _State(lines=body.split("\n"))
        blocks = self._parse_blocks(state, inline, resolver)

        if footnote_table:
            blocks.append(
                FootnotesSection(items=[FootnoteItem(id=fid, inlines=nodes) for fid, nodes in footnote_table.items()])
            )

        return Document(blocks=blocks, footnotes=footnote_table, assets=dict(manifest))

    # ------------------------------------------------------------------
    # Main pass
    # ------------------------------------------------------------------

    def _parse_blocks(self, state: _State, inline: InlineParser, resolver: Resolver) -> list[Block]:
        blocks: list[Block] = []
        lines = state.lines

        while state.pos < len(lines):
            line = lines[state.pos]

            if not line.strip():
                state.pos += 1
                continue

            block = (
                self._directive(state, inline, resolver)
                or self._embed(state, resolver)
                or self._thematic_break(state)
                or self._fenced_code(state)
                or self._heading(state, inline)
                or self._quote(state, inline)
                or self._table(state, inline)
                or self._list(state, inline)
                or self._paragraph(state, inline)
            )
            blocks.append(block)

        return blocks

    # ------------------------------------------------------------------
    # Detectors. Each returns ``None`` without moving the cursor, or a block
    # after consuming at least one line.
    # ------------------------------------------------------------------

    def _directive(self, state: _State, inline: InlineParser, resolver: Resolver) -> DirectiveBlock | None:
        m = _DIRECTIVE_RE.match(state.lines[state.pos].strip())
        if not m or m.group(1).lower() not in DIRECTIVE_KINDS:
            return None

        kind = m.group(1).lower()
        state.pos += 1
        payload_lines: list[str] = []
        while state.pos < len(state.lines):
            line = state.lines[state.pos]
            state.pos += 1
            if _DIRECTIVE_CLOSE_RE.match(line.strip()):
                break
            payload_lines.append(line)

        payload = "\n".join(payload_lines).strip("\n")
        block = DirectiveBlock(kind=kind, payload=payload)
        reference = payload.strip()
        single_line = bool(reference) and "\n" not in reference

        if kind in _NOTE_KINDS:
            child_state = _State(lines=payload_lines, used_ids=state.used_ids)
            block.children = self._parse_blocks(child_state, inline, resolver)
        elif single_line and _looks_like_reference(reference):
            block.source = resolver(reference)
        elif kind in _SCENE_KINDS and reference and self.decode_scenes:
            result = decode_scene(reference)
            if isinstance(result, SceneDecodeError):
                block.error = result
            else:
                block.scene = result
        return block

    def _embed(self, state: _State, resolver: Resolver) -> Embed | None:
        m = _EMBED_LINE_RE.match(state.lines[state.pos])
        if not m:
            return None
        state.pos += 1

        target = assets.parse_wiki_target(m.group(1))
        url = resolver(target.target) if target.target else ""
        kind = assets.extension_kind(target.target) or assets.extension_kind(url) or assets.classify(target.target)
        return Embed(
            target=target.target,
            alias=target.alias,
            kind=kind,
            url=url,
            anchor=target.anchor,
            block_id=target.block_id,
        )

    def _thematic_break(self, state: _State) -> ThematicBreak | None:
        if not _THEMATIC_RE.match(state.lines[state.pos]):
            return None
        state.pos += 1
        return ThematicBreak()

    def _fenced_code(self, state: _State) -> CodeBlock | None:
        m = _FENCE_RE.match(state.lines[state.pos])
        if not m:
            return None

        marker = m.group(1)
        language = m.group(2).strip().lower()
        state.pos += 1
        content: list[str] = []
        while state.pos < len(state.lines):
            line = state.lines[state.pos]
            state.pos += 1
            stripped = line.strip()
            if stripped.startswith(marker[0] * len(marker)) and not stripped.strip(marker[0]):
                break
            content.append(line)
        return CodeBlock(language=language, lines=content)

    def _heading(self, state: _State, inline: InlineParser) -> Heading | None:
        line = state.lines[state.pos].strip()
        for level, pattern in _HEADING_RES:
            m = pattern.match(line)
            if m:
                state.pos += 1
                inlines = inline.parse(m.group(1).strip())
                anchor = _dedupe_anchor(slugify(plain_text(inlines)), state.used_ids)
                return Heading(level=level, inlines=inlines, id=anchor)
        return None

    def _quote(self, state: _State, inline: InlineParser) -> Quote | Callout | None:
        if not _QUOTE_RE.match(state.lines[state.pos]):
            return None

        raw: list[str] = []
        while state.pos < len(state.lines) and _QUOTE_RE.match(state.lines[state.pos]):
            text = state.lines[state.pos].lstrip()[1:]
            raw.append(text[1:] if text.startswith(" ") else text)
            state.pos += 1

        callout = _CALLOUT_RE.match(raw[0].strip())
        if callout:
            return Callout(
                kind=callout.group(1).lower(),
                title=inline.parse(callout.group(2).strip()),
                body=[inline.parse(text) for text in raw[1:]],
            )
        return Quote(lines=[inline.parse(text) for text in raw])

    def _table(self, state: _State, inline: InlineParser) -> Table | None:
        if not _is_table_start(state.lines, state.pos):
            return None

        header = _split_row(state.lines[state.pos])
        alignments = [_alignment(cell) for cell in _split_row(state.lines[state.pos + 1])]
        state.pos += 2

        rows: list[list[list[Inline]]] = []
        while state.pos < len(state.lines):
            line = state.lines[state.pos].strip()
            if not line.startswith("|"):
                break
            cells = _split_row(line)
            cells += [""] * (len(header) - len(cells))
            rows.append([inline.parse(cell) for cell in cells[: len(header)]])
            state.pos += 1

        alignments += [None] * (len(header) - len(alignments))
        return Table(
            headers=[inline.parse(cell) for cell in header],
            alignments=alignments[: len(header)],
            rows=rows,
        )

    def _paragraph(self, state: _State, inline: InlineParser) -> Paragraph:
        text_lines = [state.lines[state.pos].strip()]
        state.pos += 1
        while state.pos < len(state.lines):
            line = state.lines[state.pos]
            if not line.strip() or _is_block_start(state.lines, state.pos):
                break
            text_lines.append(line.strip())
            state.pos += 1
        return Paragraph(inlines=inline.parse("\n".join(text_lines)))

    # ------------------------------------------------------------------
    # Lists
    # ------------------------------------------------------------------

    def _list(self, state: _State, inline: InlineParser) -> ListBlock | None:
        if not _LIST_RE.match(state.lines[state.pos]):
            return None

        arena: list[_ListLine] = []
        lines = state.lines
        while state.pos < len(lines):
            line = lines[state.pos]
            m = _LIST_RE.match(line)
            if m:
                arena.append(_list_line(m))
                state.pos += 1
                continue

            if not line.strip():
                # A blank line only continues the run when another item follows.
                nxt = state.pos
                while nxt < len(lines) and not lines[nxt].strip():
                    nxt += 1
                if nxt < len(lines) and _LIST_RE.match(lines[nxt]):
                    state.pos = nxt
                    continue
                break

            if _indent_width(line) > arena[-1].indent and not _is_block_start(lines, state.pos):
                arena[-1].text += " " + line.strip()
                state.pos += 1
                continue
            break

        block, _ = self._build_list(arena, 0, inline, parent_indent=-1)
        return block

    def _build_list(
        self,
        arena: list[_ListLine],
        cursor: int,
        inline: InlineParser,
        parent_indent: int,
    ) -> tuple[ListBlock, int]:
        """Build one list level from ``arena[cursor:]``.

        The level's indent starts at the indent of its first item. Deeper items
        recurse into a sublist attached to the previous item. An item indented
        less than the level but deeper than the parent joins the level as a
        sibling; the level ends at the first item at or below *parent_indent*.
        The top level uses ``-1``, so it consumes the whole arena.
        """
        first = arena[cursor]
        base_indent = first.indent
        if first.checked is not None:
            kind = "task"
        elif first.ordered:
            kind = "ordered"
        else:
            kind = "bullet"
        block = ListBlock(kind=kind, start=first.number if first.ordered else 1)

        while cursor < len(arena) and arena[cursor].indent > parent_indent:
            entry = arena[cursor]
            if entry.indent > base_indent:
                sublist, cursor = self._build_list(arena, cursor, inline, parent_indent=base_indent)
                if not block.items:
                    block.items.append(ListItem())
                block.items[-1].children.append(sublist)
                continue

            base_indent = entry.indent
            block.items.append(ListItem(inlines=inline.parse(entry.text), checked=entry.checked))
            cursor += 1

        return block, cursor


# ---------------------------------------------------------------------------
# Helpers
# ---------------------------------------------------------------------------

def _looks_like_reference(value: str) -> bool:
    if assets.is_asset_token(value) or assets.is_http_url(value):
        return True
    if value.startswith(("{", "[", "<", "`")):
        return False
    return " " not in value and (value.startswith(("/", "./")) or assets.extension_kind(value) is not None)


def _indent_width(line: str) -> int:
    return len(line) - len(line.lstrip(" \t"))


def _list_line(m: re.Match[str]) -> _ListLine:
    marker = m.group(2)
    ordered = marker[0].isdigit()
    text = m.group(3)
    checked: bool | None = None
    task = _TASK_RE.match(text)
    if task:
        checked = task.group(1) in "xX"
        text = task.group(2)
    return _ListLine(
        indent=len(m.group(1)),
        ordered=ordered,
        number=int(marker[:-1]) if ordered else 1,
        checked=checked,
        text=text.strip(),
    )


def _split_row(row: str) -> list[str]:
    row = row.strip()
    if row.startswith("|"):
        row = row[1:]
    if row.endswith("|") and not row.endswith("\\|"):
        row = row[:-1]
    cells = re.split(r"(?<!\\)\|", row)
    return [cell.strip().replace("\\|", "|") for cell in cells]


def _alignment(cell: str) -> Alignment | None:
    cell = cell.replace(" ", "")
    if cell.startswith(":") and cell.endswith(":"):
        return "center"
    if cell.endswith(":"):
        return "right"
    if cell.startswith(":"):
        return "left"
    return None


def _is_table_start(lines: list[str], pos: int) -> bool:
    line = lines[pos].strip()
    if not line.startswith("|") or line.count("|") < 2:
        return False
    if pos + 1 >= len(lines):
        return False
    sep = lines[pos + 1].strip()
    if "-" not in sep or "|" not in sep:
        return False
    cells = _split_row(sep)
    return bool(cells) and all(_ALIGN_CELL_RE.match(cell.replace(" ", "")) for cell in cells)


def _is_block_start(lines: list[str], pos: int) -> bool:
    """Whether ``lines[pos]`` opens a construct other than a paragraph."""
    line = lines[pos]
    stripped = line.strip()
    m = _DIRECTIVE_RE.match(stripped)
    if m and m.group(1).lower() in DIRECTIVE_KINDS:
        return True
    return bool(
        _EMBED_LINE_RE.match(line)
        or _THEMATIC_RE.match(line)
        or _FENCE_RE.match(line)
        or any(pattern.match(stripped) for _, pattern in _HEADING_RES)
        or _QUOTE_RE.match(line)
        or _LIST_RE.match(line)
        or _is_table_start(lines, pos)
    )
