"""inkpress CLI entrypoint."""

from __future__ import annotations

import logging
from pathlib import Path

import click
import requests

from inkpress.config import ConfigError, RenderConfig, load_config
from inkpress.parser.assets import is_http_url
from inkpress.parser.md_parser import DocumentParser
from inkpress.renderer.html_renderer import HTMLRenderer
from inkpress.renderer.svg_writer import scene_to_svg
from inkpress.scene.decoder import SceneDecodeError, decode_scene
from inkpress.scene.renderer import render_scene

log = logging.getLogger(__name__)


@click.group(context_settings={"help_option_names": ["-h", "--help"]})
@click.option(
    "--config",
    "config_path",
    type=click.Path(dir_okay=False, path_type=Path),
    default=None,
    help="Path to inkpress.toml (default: ./inkpress.toml if present)",
)
@click.option("--verbose", "-v", count=True, help="Increase log verbosity (-v info, -vv debug)")
@click.pass_context
def main(ctx: click.Context, config_path: Path | None, verbose: int) -> None:
    """Render hybrid markdown documents and embedded diagrams."""
    level = logging.WARNING if verbose == 0 else logging.INFO if verbose == 1 else logging.DEBUG
    logging.basicConfig(level=level, format="%(levelname)s %(name)s: %(message)s")
    try:
        ctx.obj = load_config(config_path)
    except ConfigError as exc:
        raise click.ClickException(str(exc)) from exc


@main.command()
@click.argument("input_path", type=click.Path(exists=True, dir_okay=False, path_type=Path))
@click.option("--output", "-o", type=click.Path(path_type=Path), required=True, help="Output HTML path")
@click.option("--title", type=str, default=None, help="Override document title")
@click.option("--dark-mode/--light-mode", default=None, help="Page colour scheme")
@click.option(
    "--math-engine",
    type=click.Choice(["none", "katex", "mathjax"], case_sensitive=False),
    default=None,
    help="Math rendering mode",
)
@click.option("--fetch-scenes/--no-fetch-scenes", default=True, show_default=True, help="Load referenced diagrams")
@click.pass_obj
def render(
    config: RenderConfig,
    input_path: Path,
    output: Path,
    title: str | None,
    dark_mode: bool | None,
    math_engine: str | None,
    fetch_scenes: bool,
) -> None:
    """Convert a document into a self-contained HTML file."""
    text = _read_text(input_path)
    document = DocumentParser().parse(text)

    fetch = SourceFetcher(input_path.parent, timeout=config.scene.fetch_timeout) if fetch_scenes else None
    renderer = HTMLRenderer(config=config, fetch=fetch)
    html = renderer.render(
        document,
        title_override=title,
        dark_mode=dark_mode,
        math_engine=math_engine.lower() if math_engine else None,
    )

    _write_text(output, html)
    click.echo(f"Rendered: {output}")


@main.command()
@click.argument("input_path", type=click.Path(exists=True, dir_okay=False, path_type=Path))
@click.option("--output", "-o", type=click.Path(path_type=Path), required=True, help="Output SVG path")
@click.option("--background/--no-background", default=None, help="Draw the canvas background")
@click.pass_obj
def scene(config: RenderConfig, input_path: Path, output: Path, background: bool | None) -> None:
    """Decode a diagram file (JSON, fenced or compressed) into a standalone SVG."""
    result = decode_scene(input_path.read_bytes())
    if isinstance(result, SceneDecodeError):
        raise click.ClickException(f"{input_path.name}: {result.message} [{result.category}]")

    rendered = render_scene(result, padding=config.scene.padding)
    svg = scene_to_svg(
        rendered,
        mode="standalone",
        background=config.scene.background if background is None else background,
    )
    _write_text(output, svg)
    click.echo(f"Rendered {len(rendered.primitives)} elements: {output}")


class SourceFetcher:
    """Load diagram sources from disk (relative to *base_dir*) or over HTTP."""

    def __init__(self, base_dir: Path, timeout: float = 10.0) -> None:
        self.base_dir = base_dir
        self.timeout = timeout

    def __call__(self, source: str) -> bytes:
        if is_http_url(source):
            log.info("fetching %s", source)
            response = requests.get(source, timeout=self.timeout)
            response.raise_for_status()
            return response.content

        path = Path(source)
        if not path.is_absolute():
            path = self.base_dir / path
        return path.read_bytes()


def _read_text(path: Path) -> str:
    try:
        return path.read_bytes().decode("utf-8")
    except UnicodeDecodeError as exc:
        raise click.ClickException(f"{path.name} is not valid UTF-8: {exc}") from exc


def _write_text(path: Path, text: str) -> None:
    path.parent.mkdir(parents=True, exist_ok=True)
    path.write_text(text, encoding="utf-8")


if __name__ == "__main__":  # pragma: no cover
    main()
