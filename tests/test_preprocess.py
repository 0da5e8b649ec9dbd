"""Tests for document preprocessing: metadata, asset manifest, footnotes."""

from __future__ import annotations

from inkpress.parser.preprocess import (
    extract_footnotes,
    parse_frontmatter,
    preprocess,
    split_asset_manifest,
    split_frontmatter,
)


# ---------------------------------------------------------------------------
# Metadata block
# ---------------------------------------------------------------------------

def test_frontmatter_is_split_and_parsed() -> None:
    text = '---\nTitle: "Launch notes"\ndate: 2025-06-01\n---\n# Body'
    raw, body = split_frontmatter(text)

    assert body == "# Body"
    assert parse_frontmatter(raw) == {"title": "Launch notes", "date": "2025-06-01"}


def test_frontmatter_without_closing_fence_is_left_alone() -> None:
    text = "---\ntitle: nope\nstill body"
    assert split_frontmatter(text) == ("", text)


def test_preprocess_strips_bom_and_crlf() -> None:
    pre = preprocess("\ufeff---\r\ntitle: x\r\n---\r\nline one\r\nline two")

    assert pre.body == "line one\nline two"
    assert pre.metadata == {"title": "x"}


# ---------------------------------------------------------------------------
# Asset manifest
# ---------------------------------------------------------------------------

def test_trailing_asset_manifest_is_removed() -> None:
    text = 'Intro\n\n:::assets\n{"a1": "https://cdn.example.com/x.png", "a2": 5, "": "y"}\n:::\n'
    body, assets = split_asset_manifest(text)

    assert body == "Intro"
    assert assets == {"a1": "https://cdn.example.com/x.png"}


def test_unparseable_manifest_yields_empty_mapping() -> None:
    body, assets = split_asset_manifest("Intro\n:::assets\n{not json\n:::")
    assert body == "Intro"
    assert assets == {}


def test_non_object_manifest_is_discarded() -> None:
    _, assets = split_asset_manifest('Intro\n:::assets\n["a", "b"]\n:::')
    assert assets == {}


def test_manifest_must_be_at_the_end() -> None:
    text = ':::assets\n{"a1": "x"}\n:::\n\nMore text after.'
    body, assets = split_asset_manifest(text)
    assert body == text
    assert assets == {}


# ---------------------------------------------------------------------------
# Footnotes
# ---------------------------------------------------------------------------

def test_footnote_definitions_are_extracted() -> None:
    body, notes = extract_footnotes("Text[^1] here.\n\n[^1]: First note.\n[^note]: Second\n  continued line.")

    assert body == "Text[^1] here.\n"
    assert notes == {"1": "First note.", "note": "Second continued line."}


def test_footnote_blank_line_continues_only_before_indent() -> None:
    body, notes = extract_footnotes("[^a]: one\n\n    two\n\nafter")

    assert notes == {"a": "one two"}
    assert body == "\nafter"


def test_footnote_like_lines_inside_code_fence_are_kept() -> None:
    text = "```\n[^x]: not a footnote\n```"
    body, notes = extract_footnotes(text)
    assert notes == {}
    assert body == text


def test_tilde_fences_also_protect_footnote_like_lines() -> None:
    text = "~~~\n[^1]: code sample\n~~~\n\n[^2]: real note"
    body, notes = extract_footnotes(text)
    assert notes == {"2": "real note"}
    assert body == "~~~\n[^1]: code sample\n~~~\n"


def test_fence_only_closes_on_its_own_marker() -> None:
    text = "````\n```\n[^1]: still code\n~~~\n````\n[^2]: note"
    body, notes = extract_footnotes(text)
    assert notes == {"2": "note"}
    assert "[^1]: still code" in body
