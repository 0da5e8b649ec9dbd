"""Tests for the block parser.

Covers:
- Headings, paragraphs and stable heading ids
- Nested, ordered and task lists
- Fenced code (verbatim) and tables (with fallback)
- Quotes and callouts
- Directive fences (diagrams, svg, note blocks) and embed lines
- Footnotes and metadata
"""

from __future__ import annotations

from inkpress.parser.base import (
    Bold,
    Callout,
    CodeBlock,
    DirectiveBlock,
    Embed,
    FootnoteItem,
    FootnotesSection,
    Heading,
    Italic,
    ListBlock,
    Paragraph,
    Quote,
    Table,
    Text,
    ThematicBreak,
)
from inkpress.parser.md_parser import DocumentParser, slugify
from inkpress.scene.decoder import UNPARSEABLE_SCENE


def parse(text: str, **kwargs):
    return DocumentParser(**kwargs).parse(text)


# ---------------------------------------------------------------------------
# Headings and paragraphs
# ---------------------------------------------------------------------------

def test_heading_then_paragraph() -> None:
    doc = parse("# Title\n\nBody")
    assert doc.blocks == [
        Heading(level=1, inlines=[Text("Title")], id="title"),
        Paragraph(inlines=[Text("Body")]),
    ]


def test_heading_ids_are_deduplicated() -> None:
    doc = parse("# Intro\n## Intro ##\n### Intro")
    assert [b.id for b in doc.blocks] == ["intro", "intro-2", "intro-3"]
    assert [b.level for b in doc.blocks] == [1, 2, 3]
    assert doc.blocks[1].inlines == [Text("Intro")]


def test_seven_hashes_is_not_a_heading() -> None:
    doc = parse("####### deep")
    assert doc.blocks == [Paragraph(inlines=[Text("####### deep")])]


def test_paragraph_joins_lines_until_block_start() -> None:
    doc = parse("line one\nline two\n# Next")
    assert doc.blocks[0] == Paragraph(inlines=[Text("line one\nline two")])
    assert isinstance(doc.blocks[1], Heading)


def test_slugify() -> None:
    assert slugify("Hello, World!") == "hello-world"
    assert slugify("???") == "section"


def test_toc_lists_headings() -> None:
    doc = parse("# A\ntext\n## B **bold**\n### C")
    assert [(e.id, e.text, e.level) for e in doc.toc(2)] == [("a", "A", 1), ("b-bold", "B bold", 2)]


def test_thematic_break() -> None:
    doc = parse("above\n\n***\n\nbelow")
    assert isinstance(doc.blocks[1], ThematicBreak)
    assert len(doc.blocks) == 3


# ---------------------------------------------------------------------------
# Lists
# ---------------------------------------------------------------------------

def test_nested_list() -> None:
    doc = parse("- a\n  - b\n  - c\n- d")
    assert len(doc.blocks) == 1
    lst = doc.blocks[0]
    assert isinstance(lst, ListBlock)
    assert lst.kind == "bullet"
    assert [item.inlines for item in lst.items] == [[Text("a")], [Text("d")]]

    sub = lst.items[0].children
    assert len(sub) == 1
    assert [item.inlines for item in sub[0].items] == [[Text("b")], [Text("c")]]
    assert lst.items[1].children == []


def test_nesting_follows_relative_indent_width() -> None:
    lst = parse("- a\n    - b\n    - c\n- d").blocks[0]
    assert [item.inlines for item in lst.items] == [[Text("a")], [Text("d")]]
    assert [item.inlines for item in lst.items[0].children[0].items] == [[Text("b")], [Text("c")]]

    ordered = parse("1. one\n   1. inner\n2. two").blocks[0]
    assert ordered.kind == "ordered"
    assert [item.inlines for item in ordered.items] == [[Text("one")], [Text("two")]]
    assert ordered.items[0].children[0].items[0].inlines == [Text("inner")]


def test_outdented_items_stay_in_the_list() -> None:
    doc = parse("  - a\n- b")
    assert len(doc.blocks) == 1
    assert [item.inlines for item in doc.blocks[0].items] == [[Text("a")], [Text("b")]]

    lst = parse("    - a\n  - b\n- c").blocks[0]
    assert [item.inlines for item in lst.items] == [[Text("a")], [Text("b")], [Text("c")]]


def test_partial_outdent_joins_the_sublist() -> None:
    lst = parse("- a\n    - b\n  - c\n- d").blocks[0]
    assert [item.inlines for item in lst.items] == [[Text("a")], [Text("d")]]
    sub = lst.items[0].children
    assert len(sub) == 1
    assert [item.inlines for item in sub[0].items] == [[Text("b")], [Text("c")]]


def test_ordered_list_keeps_start() -> None:
    lst = parse("3. three\n4. four").blocks[0]
    assert lst.kind == "ordered"
    assert lst.start == 3
    assert len(lst.items) == 2


def test_task_list() -> None:
    lst = parse("- [ ] todo\n- [x] done").blocks[0]
    assert lst.kind == "task"
    assert [(item.checked, item.inlines) for item in lst.items] == [
        (False, [Text("todo")]),
        (True, [Text("done")]),
    ]


def test_blank_lines_between_items_keep_one_list() -> None:
    doc = parse("- a\n\n- b\n\nafter")
    assert len(doc.blocks) == 2
    assert len(doc.blocks[0].items) == 2
    assert doc.blocks[1] == Paragraph(inlines=[Text("after")])


def test_indented_continuation_line() -> None:
    lst = parse("- a\n  more\n- b").blocks[0]
    assert [item.inlines for item in lst.items] == [[Text("a more")], [Text("b")]]


# ---------------------------------------------------------------------------
# Code and tables
# ---------------------------------------------------------------------------

def test_fenced_code_is_verbatim() -> None:
    doc = parse("```Python\n  indented  \n\n\tTab **not bold**\n```\nafter")
    assert doc.blocks[0] == CodeBlock(language="python", lines=["  indented  ", "", "\tTab **not bold**"])
    assert doc.blocks[1] == Paragraph(inlines=[Text("after")])


def test_unclosed_fence_runs_to_end() -> None:
    doc = parse("~~~\ncode\n# not heading")
    assert doc.blocks == [CodeBlock(language="", lines=["code", "# not heading"])]


def test_table_with_alignment() -> None:
    doc = parse("| A | **B** |\n|:--|--:|\n| 1 | 2 |\n| 3 |")
    table = doc.blocks[0]
    assert isinstance(table, Table)
    assert table.headers == [[Text("A")], [Bold([Text("B")])]]
    assert table.alignments == ["left", "right"]
    assert table.rows == [[[Text("1")], [Text("2")]], [[Text("3")], []]]


def test_single_pipe_line_is_a_paragraph() -> None:
    assert parse("|a|b|").blocks == [Paragraph(inlines=[Text("|a|b|")])]


# ---------------------------------------------------------------------------
# Quotes and callouts
# ---------------------------------------------------------------------------

def test_quote() -> None:
    doc = parse("> first\n> second")
    assert doc.blocks == [Quote(lines=[[Text("first")], [Text("second")]])]


def test_callout() -> None:
    doc = parse("> [!Warning] Careful\n> body **x**")
    assert doc.blocks == [
        Callout(
            kind="warning",
            title=[Text("Careful")],
            body=[[Text("body "), Bold([Text("x")])]],
        )
    ]


# ---------------------------------------------------------------------------
# Directives and embeds
# ---------------------------------------------------------------------------

SCENE_JSON = (
    '{"type":"excalidraw","elements":['
    '{"id":"r1","type":"rectangle","x":10,"y":10,"width":20,"height":30},'
    '{"id":"gone","type":"ellipse","isDeleted":true}]}'
)


def test_inline_scene_directive_is_decoded() -> None:
    doc = parse(f":::excalidraw\n{SCENE_JSON}\n:::")
    block = doc.blocks[0]
    assert isinstance(block, DirectiveBlock)
    assert block.kind == "excalidraw"
    assert block.error is None
    assert [el.id for el in block.scene.elements] == ["r1"]


def test_bad_scene_payload_reports_error() -> None:
    block = parse(":::scribble\nnot a scene at all\n:::").blocks[0]
    assert block.scene is None
    assert block.error.category == UNPARSEABLE_SCENE


def test_scene_decoding_can_be_disabled() -> None:
    block = parse(f":::excalidraw\n{SCENE_JSON}\n:::", decode_scenes=False).blocks[0]
    assert block.scene is None
    assert block.error is None
    assert block.payload == SCENE_JSON


def test_directive_reference_is_resolved_through_manifest() -> None:
    text = ':::excalidraw\nasset:a1\n:::\n\n:::svg\nasset:a7\n:::\n\n:::assets\n{"a1": "https://cdn.example.com/b.excalidraw"}\n:::'
    doc = parse(text)
    assert doc.blocks[0].source == "https://cdn.example.com/b.excalidraw"
    assert doc.blocks[1].source == ""
    assert doc.assets == {"a1": "https://cdn.example.com/b.excalidraw"}


def test_inline_svg_payload_is_kept_verbatim() -> None:
    svg = '<svg xmlns="http://www.w3.org/2000/svg">\n  <circle r="4"/>\n</svg>'
    block = parse(f":::svg\n{svg}\n:::").blocks[0]
    assert block.source is None
    assert block.payload == svg


def test_note_directive_parses_children_and_unclosed_runs_to_end() -> None:
    doc = parse("# Inside\n:::postmortem\n# Inside\nwhat happened")
    assert len(doc.blocks) == 2
    note = doc.blocks[1]
    assert note.kind == "postmortem"
    assert note.children == [
        Heading(level=1, inlines=[Text("Inside")], id="inside-2"),
        Paragraph(inlines=[Text("what happened")]),
    ]


def test_unknown_directive_is_text() -> None:
    assert parse(":::unknown").blocks == [Paragraph(inlines=[Text(":::unknown")])]


def test_embed_line() -> None:
    doc = parse("![[boards/flow.excalidraw|Flow]]")
    assert doc.blocks == [
        Embed(target="boards/flow.excalidraw", alias="Flow", kind="diagram", url="boards/flow.excalidraw")
    ]


# ---------------------------------------------------------------------------
# Footnotes and metadata
# ---------------------------------------------------------------------------

def test_footnotes_section_is_appended() -> None:
    doc = parse("Text[^1] and[^missing]\n\n[^1]: note *x* [^2]")
    assert doc.footnotes == {"1": [Text("note "), Italic([Text("x")]), Text(" [^2]")]}
    assert doc.blocks[-1] == FootnotesSection(
        items=[FootnoteItem(id="1", inlines=[Text("note "), Italic([Text("x")]), Text(" [^2]")])]
    )


def test_no_footnotes_means_no_section() -> None:
    doc = parse("plain")
    assert not any(isinstance(b, FootnotesSection) for b in doc.blocks)


def test_metadata_is_exposed() -> None:
    doc = parse("---\ntitle: Hello\ncover: https://cdn.example.com/c.png\n---\nBody")
    assert doc.metadata == {"title": "Hello", "cover": "https://cdn.example.com/c.png"}
    assert doc.blocks == [Paragraph(inlines=[Text("Body")])]
