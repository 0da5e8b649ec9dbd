"""Tests for the click entrypoint."""

from __future__ import annotations

import json
from pathlib import Path

import pytest
from click.testing import CliRunner

from inkpress.cli import SourceFetcher, main

SCENE_JSON = json.dumps(
    {"elements": [{"id": "r1", "type": "rectangle", "x": 0, "y": 0, "width": 40, "height": 20}]}
)


@pytest.fixture(autouse=True)
def _isolated_cwd(tmp_path: Path, monkeypatch: pytest.MonkeyPatch) -> None:
    monkeypatch.chdir(tmp_path)


def test_render_command_inlines_local_diagram(tmp_path: Path) -> None:
    (tmp_path / "board.excalidraw").write_text(SCENE_JSON, encoding="utf-8")
    doc = tmp_path / "post.md"
    doc.write_text("# Post\n\n:::excalidraw\nboard.excalidraw\n:::\n", encoding="utf-8")
    out = tmp_path / "site" / "post.html"

    result = CliRunner().invoke(main, ["render", str(doc), "-o", str(out)])

    assert result.exit_code == 0, result.output
    assert "Rendered:" in result.output
    html = out.read_text(encoding="utf-8")
    assert "<title>Post</title>" in html
    assert "<svg" in html


def test_render_command_uses_config_file(tmp_path: Path) -> None:
    (tmp_path / "inkpress.toml").write_text('[page]\ntitle = "Configured"\ndark_mode = true\n', encoding="utf-8")
    doc = tmp_path / "post.md"
    doc.write_text("# Post\n", encoding="utf-8")
    out = tmp_path / "post.html"

    result = CliRunner().invoke(main, ["render", str(doc), "-o", str(out), "--title", "Override"])

    assert result.exit_code == 0, result.output
    html = out.read_text(encoding="utf-8")
    assert "<title>Override</title>" in html
    assert "inkpress-dark-mode" in html


def test_invalid_config_is_reported(tmp_path: Path) -> None:
    config = tmp_path / "custom.toml"
    config.write_text('[page]\nmath_engine = "latex"\n', encoding="utf-8")
    doc = tmp_path / "post.md"
    doc.write_text("x", encoding="utf-8")

    result = CliRunner().invoke(main, ["--config", str(config), "render", str(doc), "-o", str(tmp_path / "o.html")])

    assert result.exit_code != 0
    assert "math_engine" in result.output


def test_scene_command_writes_svg(tmp_path: Path) -> None:
    src = tmp_path / "board.excalidraw"
    src.write_text(SCENE_JSON, encoding="utf-8")
    out = tmp_path / "board.svg"

    result = CliRunner().invoke(main, ["scene", str(src), "-o", str(out), "--no-background"])

    assert result.exit_code == 0, result.output
    svg = out.read_text(encoding="utf-8")
    assert svg.startswith("<svg")
    assert 'viewBox="-24 -24 88 68"' in svg
    assert "#f8fafc" not in svg


def test_scene_command_rejects_garbage(tmp_path: Path) -> None:
    src = tmp_path / "junk.json"
    src.write_text("definitely not a drawing", encoding="utf-8")

    result = CliRunner().invoke(main, ["scene", str(src), "-o", str(tmp_path / "junk.svg")])

    assert result.exit_code != 0
    assert "unparseable-scene" in result.output


def test_source_fetcher_reads_relative_paths(tmp_path: Path) -> None:
    (tmp_path / "boards").mkdir()
    (tmp_path / "boards" / "a.json").write_bytes(b"{}")
    fetch = SourceFetcher(tmp_path)

    assert fetch("boards/a.json") == b"{}"
    with pytest.raises(OSError):
        fetch("missing.json")
