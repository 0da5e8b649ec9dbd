"""Tests for asset tokens, reference classification and Obsidian import."""

from __future__ import annotations

from inkpress.parser import assets
from inkpress.parser.base import DirectiveBlock, Paragraph
from inkpress.parser.md_parser import DocumentParser
from inkpress.parser.preprocess import preprocess


# ---------------------------------------------------------------------------
# Classification
# ---------------------------------------------------------------------------

def test_classify_checks_remote_urls_first() -> None:
    assert assets.classify("https://cdn.example.com/a.png") == "external-link"
    assert assets.classify("a.png") == "image"
    assert assets.classify("folder/Drawing.SVG") == "vector-drawing"
    assert assets.classify("board.excalidraw") == "diagram"
    assert assets.classify("board.excalidraw.md") == "diagram"
    assert assets.classify("notes.md") == "plain-text"


def test_extension_kind_ignores_query_and_fragment() -> None:
    assert assets.extension_kind("https://cdn.example.com/a.png?w=2") == "image"
    assert assets.extension_kind("img/photo.jpeg#crop") == "image"
    assert assets.extension_kind("README") is None


def test_normalize_path() -> None:
    assert assets.normalize_path("<./folder\\sub//file%20name.png#frag>") == "folder/sub/file name.png"
    assert assets.normalize_path("https://a.example.com//x?y#z") == "https://a.example.com//x?y#z"
    assert assets.path_basename("a/b/c.png") == "c.png"


# ---------------------------------------------------------------------------
# Tokens and manifest
# ---------------------------------------------------------------------------

def test_allocate_deduplicates_urls() -> None:
    manifest: dict[str, str] = {}
    first = assets.allocate("https://cdn.example.com/one.png", manifest)
    again = assets.allocate("https://cdn.example.com/one.png", manifest)
    other = assets.allocate("https://cdn.example.com/two.png", manifest)

    assert first == again == "asset:a1"
    assert other == "asset:a2"
    assert other != first
    assert manifest == {"a1": "https://cdn.example.com/one.png", "a2": "https://cdn.example.com/two.png"}


def test_allocate_uses_smallest_unused_number() -> None:
    manifest = {"a1": "x", "a3": "y"}
    assert assets.allocate("z", manifest) == "asset:a2"


def test_resolve() -> None:
    manifest = {"a1": "https://cdn.example.com/one.png"}
    assert assets.resolve("asset:a1", manifest) == "https://cdn.example.com/one.png"
    assert assets.resolve("asset:a9", manifest) == ""
    assert assets.resolve("img/local.png", manifest) == "img/local.png"


def test_build_with_manifest_sorts_numerically() -> None:
    text = assets.build_with_manifest("Body\n\n", {"a10": "x", "a2": "y", "cover": "z"})
    assert text == 'Body\n\n:::assets\n{"a2":"y","a10":"x","cover":"z"}\n:::\n'
    assert assets.build_with_manifest("Body\n", {}) == "Body"


def test_insert_asset_block_reuses_token() -> None:
    url = "https://cdn.example.com/board.excalidraw"
    text, token = assets.insert_asset_block("Intro\n", url, "excalidraw")
    text, again = assets.insert_asset_block(text, url, "excalidraw")

    assert token == again == "asset:a1"
    assert text.count(":::excalidraw") == 2
    assert '"a2"' not in text
    assert preprocess(text).assets == {"a1": url}


def test_insert_asset_block_at_position() -> None:
    text, token = assets.insert_asset_block("AB", "https://x.example.com/d.svg", "svg", position=1)
    assert text.startswith("A\n:::svg\nasset:a1\n:::\nB")
    assert token == "asset:a1"


# ---------------------------------------------------------------------------
# Wiki targets
# ---------------------------------------------------------------------------

def test_parse_wiki_target_parts() -> None:
    target = assets.parse_wiki_target("folder/Note#Heading^blk|Alias")
    assert target.target == "folder/Note"
    assert target.anchor == "Heading"
    assert target.block_id == "blk"
    assert target.alias == "Alias"

    bare = assets.parse_wiki_target("Note^abc")
    assert (bare.target, bare.block_id, bare.anchor) == ("Note", "abc", "")


# ---------------------------------------------------------------------------
# Obsidian import
# ---------------------------------------------------------------------------

def test_import_obsidian_rewrites_embeds_and_links() -> None:
    raw = (
        "---\ntags: x\n---\n"
        "# Note\n"
        "![[diagram.excalidraw]]\n"
        "![[photo.png|Cover]]\n"
        "See [[Other Note]] and [[Other Note#Section]].\n"
        "![alt](img/pic.jpg)\n"
        "![[missing.png]]"
    )
    located = {
        "diagram.excalidraw": "https://cdn.example.com/d.json",
        "photo.png": "https://cdn.example.com/p.png",
        "img/pic.jpg": "https://cdn.example.com/p.png",
    }

    out = assets.import_obsidian(raw, located.get)

    assert "tags: x" not in out
    assert ":::excalidraw\nasset:a1\n:::" in out
    assert "![Cover](asset:a2)" in out
    assert "![alt](asset:a2)" in out
    assert "See Other Note and [[Other Note#Section]]." in out
    assert "![[missing.png]]" in out
    assert out.endswith(':::assets\n{"a1":"https://cdn.example.com/d.json","a2":"https://cdn.example.com/p.png"}\n:::\n')

    doc = DocumentParser(decode_scenes=False).parse(out)
    directives = [block for block in doc.blocks if isinstance(block, DirectiveBlock)]
    assert [d.source for d in directives] == ["https://cdn.example.com/d.json"]
    assert any(isinstance(block, Paragraph) for block in doc.blocks)


def test_import_obsidian_keeps_image_syntax_for_other_files() -> None:
    located = {
        "docs/scan.pdf": "https://cdn.example.com/scan.pdf",
        "notes.pdf": "https://cdn.example.com/notes.pdf",
    }
    out = assets.import_obsidian("![scan](docs/scan.pdf)\n![[notes.pdf]]", located.get)

    assert "![scan](https://cdn.example.com/scan.pdf)" in out
    assert "[notes.pdf](https://cdn.example.com/notes.pdf)" in out
    assert "![[notes.pdf]]" not in out
    assert "asset:" not in out
