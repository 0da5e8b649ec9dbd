"""Core render tree produced by the document parser."""

from __future__ import annotations

from dataclasses import dataclass, field
from typing import TYPE_CHECKING, Literal

if TYPE_CHECKING:
    from inkpress.scene.decoder import SceneDecodeError
    from inkpress.scene.model import Scene


AssetKind = Literal["image", "vector-drawing", "diagram", "external-link", "plain-text"]
Alignment = Literal["left", "center", "right"]
ListKind = Literal["bullet", "ordered", "task"]

DIRECTIVE_KINDS = ("excalidraw", "svg", "scribble", "lab", "postmortem")


# ---------------------------------------------------------------------------
# Inline nodes
# ---------------------------------------------------------------------------

@dataclass(slots=True)
class Text:
    text: str


@dataclass(slots=True)
class Bold:
    children: list[Inline] = field(default_factory=list)


@dataclass(slots=True)
class Italic:
    children: list[Inline] = field(default_factory=list)


@dataclass(slots=True)
class Strikethrough:
    children: list[Inline] = field(default_factory=list)


@dataclass(slots=True)
class Highlight:
    children: list[Inline] = field(default_factory=list)


@dataclass(slots=True)
class Code:
    """Inline code; children only ever hold text, bold, italic and strikethrough."""

    children: list[Inline] = field(default_factory=list)


@dataclass(slots=True)
class Link:
    url: str
    children: list[Inline] = field(default_factory=list)


@dataclass(slots=True)
class WikiLink:
    target: str
    alias: str = ""
    anchor: str = ""
    block_id: str = ""
    embed: bool = False
    kind: AssetKind = "plain-text"
    url: str = ""


@dataclass(slots=True)
class Image:
    alt: str
    url: str
    kind: AssetKind = "image"


@dataclass(slots=True)
class FootnoteRef:
    id: str


@dataclass(slots=True)
class Math:
    latex: str
    display: bool = False


Inline = Text | Bold | Italic | Strikethrough | Highlight | Code | Link | WikiLink | Image | FootnoteRef | Math


def plain_text(nodes: list[Inline]) -> str:
    """Flatten an inline sequence into its visible text."""
    parts: list[str] = []
    for node in nodes:
        if isinstance(node, Text):
            parts.append(node.text)
        elif isinstance(node, Math):
            parts.append(node.latex)
        elif isinstance(node, Image):
            parts.append(node.alt)
        elif isinstance(node, WikiLink):
            parts.append(node.alias or node.anchor or node.target)
        elif isinstance(node, FootnoteRef):
            continue
        else:
            parts.append(plain_text(node.children))
    return "".join(parts)


# ---------------------------------------------------------------------------
# Block nodes
# ---------------------------------------------------------------------------

@dataclass(slots=True)
class Heading:
    level: int
    inlines: list[Inline] = field(default_factory=list)
    id: str = ""


@dataclass(slots=True)
class Paragraph:
    inlines: list[Inline] = field(default_factory=list)


@dataclass(slots=True)
class ListItem:
    inlines: list[Inline] = field(default_factory=list)
    checked: bool | None = None
    children: list[ListBlock] = field(default_factory=list)


@dataclass(slots=True)
class ListBlock:
    kind: ListKind = "bullet"
    start: int = 1
    items: list[ListItem] = field(default_factory=list)


@dataclass(slots=True)
class Table:
    headers: list[list[Inline]] = field(default_factory=list)
    alignments: list[Alignment | None] = field(default_factory=list)
    rows: list[list[list[Inline]]] = field(default_factory=list)


@dataclass(slots=True)
class CodeBlock:
    language: str = ""
    lines: list[str] = field(default_factory=list)


@dataclass(slots=True)
class Quote:
    lines: list[list[Inline]] = field(default_factory=list)


@dataclass(slots=True)
class Callout:
    kind: str
    title: list[Inline] = field(default_factory=list)
    body: list[list[Inline]] = field(default_factory=list)


@dataclass(slots=True)
class ThematicBreak:
    pass


@dataclass(slots=True)
class DirectiveBlock:
    """A ``:::kind`` fence.

    ``source`` holds the resolved URL when the payload is a reference; ``scene``
    or ``error`` hold the decode outcome of an inline diagram payload; ``children``
    holds the parsed body of note-style directives.
    """

    kind: str
    payload: str = ""
    source: str | None = None
    scene: Scene | None = None
    error: SceneDecodeError | None = None
    children: list[Block] = field(default_factory=list)


@dataclass(slots=True)
class Embed:
    target: str
    alias: str = ""
    kind: AssetKind = "plain-text"
    url: str = ""
    anchor: str = ""
    block_id: str = ""


@dataclass(slots=True)
class FootnoteItem:
    id: str
    inlines: list[Inline] = field(default_factory=list)


@dataclass(slots=True)
class FootnotesSection:
    items: list[FootnoteItem] = field(default_factory=list)


Block = (
    Heading
    | Paragraph
    | ListBlock
    | Table
    | CodeBlock
    | Quote
    | Callout
    | ThematicBreak
    | DirectiveBlock
    | Embed
    | FootnotesSection
)


@dataclass(slots=True)
class TocEntry:
    id: str
    text: str
    level: int


@dataclass(slots=True)
class Document:
    blocks: list[Block] = field(default_factory=list)
    footnotes: dict[str, list[Inline]] = field(default_factory=dict)
    assets: dict[str, str] = field(default_factory=dict)
    metadata: dict[str, str] = field(default_factory=dict)

    def toc(self, max_level: int = 6) -> list[TocEntry]:
        return [
            TocEntry(id=block.id, text=plain_text(block.inlines), level=block.level)
            for block in self.blocks
            if isinstance(block, Heading) and block.level <= max_level
        ]
