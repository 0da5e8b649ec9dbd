"""Render a parsed :class:`Document` into a self-contained HTML page."""

from __future__ import annotations

import base64
import html
import logging
import re
from pathlib import Path
from typing import Callable, Iterable

from jinja2 import Environment, FileSystemLoader

from inkpress.config import RenderConfig
from inkpress.parser.base import (
    Block,
    Bold,
    Callout,
    Code,
    CodeBlock,
    DirectiveBlock,
    Document,
    Embed,
    FootnoteRef,
    FootnotesSection,
    Heading,
    Highlight,
    Image,
    Inline,
    Italic,
    Link,
    ListBlock,
    Math,
    Paragraph,
    Quote,
    Strikethrough,
    Table,
    Text,
    ThematicBreak,
    WikiLink,
    plain_text,
)
from inkpress.scene.cache import Fetch, Pixel, SceneCache
from inkpress.scene.decoder import UNAVAILABLE_SCENE, SceneDecodeError
from inkpress.scene.model import Scene
from inkpress.scene.renderer import render_scene
from inkpress.scene.viewport import Viewport

from .svg_writer import scene_to_svg

log = logging.getLogger(__name__)

_SCHEME_RE = re.compile(r"^([A-Za-z][A-Za-z0-9+.-]*):")
_SAFE_SCHEMES = ("http", "https", "mailto")
_SAFE_IMAGE_DATA_RE = re.compile(r"^data:image/(?:png|jpe?g|gif|webp|svg\+xml);", re.IGNORECASE)


def safe_url(url: str, *, image: bool = False) -> str:
    """Return *url* if it is safe to place in an attribute, otherwise ``""``."""
    url = (url or "").strip()
    if not url:
        return ""
    if image and _SAFE_IMAGE_DATA_RE.match(url):
        return url
    m = _SCHEME_RE.match(re.sub(r"[\x00-\x20]", "", url))
    if m and m.group(1).lower() not in _SAFE_SCHEMES:
        return ""
    return url


class HTMLRenderer:
    """Render the document render tree into the page template.

    *fetch* loads referenced diagram sources (URLs or paths); without it,
    referenced diagrams render as links. Decoded scenes are memoized in
    *scene_cache*, which may be shared between renderers.

    *load_pixels* reads RGBA pixels for the ``cover`` image named in the
    metadata; the page accent hue is taken from them. Without it the hue is
    derived from the page title.
    """

    def __init__(
        self,
        template_path: Path | None = None,
        *,
        config: RenderConfig | None = None,
        scene_cache: SceneCache | None = None,
        fetch: Fetch | None = None,
        load_pixels: Callable[[str], Iterable[Pixel]] | None = None,
    ) -> None:
        if template_path is None:
            template_path = Path(__file__).resolve().parent.parent / "template" / "document.html"

        loader = FileSystemLoader(str(template_path.parent))
        self._env = Environment(loader=loader, autoescape=True, trim_blocks=True, lstrip_blocks=True)
        self._template_name = template_path.name
        self.config = config or RenderConfig()
        self.scene_cache = scene_cache or SceneCache()
        self.fetch = fetch
        self.load_pixels = load_pixels
        self._scene_counter = 0

    def render(
        self,
        document: Document,
        *,
        title_override: str | None = None,
        dark_mode: bool | None = None,
        math_engine: str | None = None,
    ) -> str:
        page = self.config.page
        page_title = title_override or page.title or document.metadata.get("title") or _first_heading(document) or "Untitled"
        engine = (math_engine or page.math_engine).lower()

        body_html = self.render_body(document, math_engine=engine)
        toc_items = [
            {"id": entry.id, "text": entry.text, "level": entry.level}
            for entry in document.toc(page.toc_max_level)
        ]
        cover = document.metadata.get("cover")
        accent_hue = self.scene_cache.accent_hue(cover, seed=page_title, load_pixels=self.load_pixels)

        template = self._env.get_template(self._template_name)
        return template.render(
            page_title=page_title,
            metadata=document.metadata,
            toc_items=toc_items,
            body_html=body_html,
            dark_mode=page.dark_mode if dark_mode is None else dark_mode,
            math_engine=engine,
            accent_hue=round(accent_hue),
        )

    def render_body(self, document: Document, *, math_engine: str = "none") -> str:
        context = _Context(footnotes=document.footnotes, math_engine=math_engine)
        return "\n".join(part for part in (self._render_block(block, context) for block in document.blocks) if part)

    # ------------------------------------------------------------------
    # Blocks
    # ------------------------------------------------------------------

    def _render_block(self, block: Block, context: _Context) -> str:
        if isinstance(block, Heading):
            return f'<h{block.level} id="{html.escape(block.id)}" class="wiki-heading">{self._inlines(block.inlines, context)}</h{block.level}>'

        if isinstance(block, Paragraph):
            return f'<p class="wiki-paragraph">{self._inlines(block.inlines, context)}</p>'

        if isinstance(block, ListBlock):
            return self._render_list(block, context)

        if isinstance(block, Table):
            return self._render_table(block, context)

        if isinstance(block, CodeBlock):
            lang_attr = f' class="language-{html.escape(block.language)}"' if block.language else ""
            return f'<pre class="wiki-code"><code{lang_attr}>{html.escape(chr(10).join(block.lines))}</code></pre>'

        if isinstance(block, Quote):
            lines = "<br />".join(self._inlines(line, context) for line in block.lines)
            return f'<blockquote class="wiki-quote">{lines}</blockquote>'

        if isinstance(block, Callout):
            kind = html.escape(block.kind)
            title = self._inlines(block.title, context) or html.escape(block.kind.capitalize())
            body = "<br />".join(self._inlines(line, context) for line in block.body)
            body_html = f'<div class="wiki-callout-body">{body}</div>' if body else ""
            return (
                f'<div class="wiki-callout wiki-callout-{kind}" data-callout="{kind}">'
                f'<div class="wiki-callout-title">{title}</div>{body_html}</div>'
            )

        if isinstance(block, ThematicBreak):
            return '<hr class="wiki-hr" />'

        if isinstance(block, DirectiveBlock):
            return self._render_directive(block, context)

        if isinstance(block, Embed):
            return self._render_embed(block)

        if isinstance(block, FootnotesSection):
            return self._render_footnotes(block, context)

        return ""

    def _render_list(self, block: ListBlock, context: _Context) -> str:
        items: list[str] = []
        for item in block.items:
            content = self._inlines(item.inlines, context)
            if item.checked is not None:
                checked = " checked" if item.checked else ""
                content = f'<input type="checkbox" disabled{checked} /> {content}'
            children = "".join(self._render_list(child, context) for child in item.children)
            items.append(f"<li>{content}{children}</li>")

        if block.kind == "ordered":
            start = f' start="{block.start}"' if block.start != 1 else ""
            return f'<ol class="wiki-list"{start}>{"".join(items)}</ol>'
        css = "wiki-list wiki-task-list" if block.kind == "task" else "wiki-list"
        return f'<ul class="{css}">{"".join(items)}</ul>'

    def _render_table(self, block: Table, context: _Context) -> str:
        def cell(tag: str, nodes: list[Inline], idx: int) -> str:
            align = block.alignments[idx] if idx < len(block.alignments) else None
            style = f' style="text-align: {align}"' if align else ""
            return f"<{tag}{style}>{self._inlines(nodes, context)}</{tag}>"

        head_html = ""
        if block.headers:
            head_cells = "".join(cell("th", nodes, idx) for idx, nodes in enumerate(block.headers))
            head_html = f"<thead><tr>{head_cells}</tr></thead>"

        row_html = ""
        if block.rows:
            rows = []
            for row in block.rows:
                cells = "".join(cell("td", nodes, idx) for idx, nodes in enumerate(row))
                rows.append(f"<tr>{cells}</tr>")
            row_html = "<tbody>" + "".join(rows) + "</tbody>"

        return f'<div class="wiki-table-wrap"><table class="wiki-table">{head_html}{row_html}</table></div>'

    def _render_footnotes(self, block: FootnotesSection, context: _Context) -> str:
        items = []
        for item in block.items:
            fid = html.escape(item.id)
            items.append(
                f'<li id="fn-{fid}"><a class="wiki-footnote-back" href="#fnref-{fid}">[{fid}]</a> '
                f"{self._inlines(item.inlines, context)}</li>"
            )
        return f'<div class="wiki-macro-footnote"><ol>{"".join(items)}</ol></div>'

    # ------------------------------------------------------------------
    # Directives, embeds and scenes
    # ------------------------------------------------------------------

    def _render_directive(self, block: DirectiveBlock, context: _Context) -> str:
        kind = block.kind
        if kind in ("lab", "postmortem"):
            inner = "\n".join(part for part in (self._render_block(child, context) for child in block.children) if part)
            return f'<section class="wiki-note wiki-note-{kind}" data-directive="{kind}">{inner}</section>'

        if kind == "svg":
            if block.source is not None:
                return _image_html(block.source, "SVG drawing", kind="vector-drawing")
            if not block.payload.strip():
                return _placeholder("Empty SVG block")
            encoded = base64.b64encode(block.payload.encode("utf-8")).decode("ascii")
            return _image_html(f"data:image/svg+xml;base64,{encoded}", "SVG drawing", kind="vector-drawing")

        # excalidraw / scribble
        if block.scene is not None:
            return self._scene_html(block.scene, kind)
        if block.error is not None:
            return _scene_error(block.error)
        if block.source is not None:
            return self._referenced_scene(block.source, kind)
        return _placeholder("Empty diagram block")

    def _render_embed(self, block: Embed) -> str:
        label = block.alias or block.target
        if block.kind in ("image", "vector-drawing"):
            return _image_html(block.url, label, kind=block.kind)
        if block.kind == "diagram":
            return self._referenced_scene(block.url, "excalidraw")

        href = safe_url(block.url)
        if block.anchor:
            href = f"{href}#{block.anchor}"
        if not href:
            return f'<div class="wiki-embed wiki-embed-missing">{html.escape(label)}</div>'
        return f'<div class="wiki-embed"><a class="wiki-link" href="{html.escape(href)}">{html.escape(label)}</a></div>'

    def _referenced_scene(self, source: str, kind: str) -> str:
        if not source:
            return _placeholder("Missing diagram asset")
        if self.fetch is None:
            href = html.escape(safe_url(source))
            return f'<div class="wiki-scene wiki-scene-ref"><a href="{href}">Open diagram</a></div>'

        result = self.scene_cache.get(source, self.fetch, timeout=self.config.scene.fetch_timeout)
        if isinstance(result, SceneDecodeError):
            return _scene_error(result)
        return self._scene_html(result, kind)

    def _scene_html(self, scene: Scene, kind: str) -> str:
        self._scene_counter += 1
        rendered = render_scene(scene, padding=self.config.scene.padding)
        svg = scene_to_svg(
            rendered,
            marker_id=f"arrow-{self._scene_counter}",
            viewport=Viewport(),
            background=self.config.scene.background,
        )
        return f'<figure class="wiki-scene wiki-scene-{kind}" data-directive="{kind}">{svg}</figure>'

    # ------------------------------------------------------------------
    # Inlines
    # ------------------------------------------------------------------

    def _inlines(self, nodes: list[Inline], context: _Context) -> str:
        return "".join(self._inline(node, context) for node in nodes)

    def _inline(self, node: Inline, context: _Context) -> str:
        if isinstance(node, Text):
            return html.escape(node.text).replace("\n", "<br />\n")
        if isinstance(node, Bold):
            return f"<strong>{self._inlines(node.children, context)}</strong>"
        if isinstance(node, Italic):
            return f"<em>{self._inlines(node.children, context)}</em>"
        if isinstance(node, Strikethrough):
            return f"<del>{self._inlines(node.children, context)}</del>"
        if isinstance(node, Highlight):
            return f"<mark>{self._inlines(node.children, context)}</mark>"
        if isinstance(node, Code):
            return f'<code class="wiki-code-inline">{self._inlines(node.children, context)}</code>'
        if isinstance(node, Link):
            href = safe_url(node.url)
            label = self._inlines(node.children, context)
            if not href:
                return label
            return f'<a class="wiki-link-external" href="{html.escape(href)}" rel="noopener">{label}</a>'
        if isinstance(node, WikiLink):
            return self._render_wiki_link(node)
        if isinstance(node, Image):
            return _image_html(node.url, node.alt, kind=node.kind)
        if isinstance(node, FootnoteRef):
            return self._render_footnote_ref(node.id, context)
        if isinstance(node, Math):
            css = "wiki-math-display" if node.display else "wiki-math-inline"
            return f'<code class="{css}" data-engine="{html.escape(context.math_engine)}">{html.escape(node.latex)}</code>'
        return ""

    def _render_wiki_link(self, node: WikiLink) -> str:
        label = node.alias or node.anchor or node.target
        if node.embed and node.kind in ("image", "vector-drawing"):
            return _image_html(node.url, label, kind=node.kind)

        href = safe_url(node.url) if node.target else ""
        if node.anchor:
            href = f"{href}#{node.anchor}"
        elif node.block_id:
            href = f"{href}#^{node.block_id}"
        if not href:
            return f'<span class="wiki-link wiki-link-missing">{html.escape(label)}</span>'
        return f'<a class="wiki-link" href="{html.escape(href)}">{html.escape(label)}</a>'

    def _render_footnote_ref(self, fn_id: str, context: _Context) -> str:
        fid = html.escape(fn_id)
        ref_id = context.next_ref_id(fn_id)
        body = context.footnotes.get(fn_id)
        title = f' title="{html.escape(plain_text(body))}"' if body else ""
        return (
            f'<sup class="wiki-fn-content" id="{html.escape(ref_id)}"><a class="wiki-footnote-ref" '
            f'href="#fn-{fid}" data-footnote-id="{fid}"{title}>[{fid}]</a></sup>'
        )


class _Context:
    def __init__(self, footnotes: dict[str, list[Inline]], math_engine: str) -> None:
        self.footnotes = footnotes
        self.math_engine = math_engine
        self._ref_counts: dict[str, int] = {}

    def next_ref_id(self, fn_id: str) -> str:
        count = self._ref_counts.get(fn_id, 0) + 1
        self._ref_counts[fn_id] = count
        return f"fnref-{fn_id}" if count == 1 else f"fnref-{fn_id}-{count}"


def _image_html(url: str, alt: str, *, kind: str) -> str:
    src = safe_url(url, image=True)
    if not src:
        log.debug("image with unresolved or unsafe url %r rendered as placeholder", url)
        return _placeholder(alt or "Missing image")
    css = "wiki-image wiki-vector" if kind == "vector-drawing" else "wiki-image"
    return (
        f'<span class="wiki-image-wrapper"><img src="{html.escape(src)}" alt="{html.escape(alt)}" '
        f'loading="lazy" class="{css}" /></span>'
    )


def _placeholder(message: str) -> str:
    return f'<span class="wiki-asset-missing">{html.escape(message)}</span>'


def _scene_error(error: SceneDecodeError) -> str:
    if error.category == UNAVAILABLE_SCENE:
        message = "Diagram could not be loaded"
    else:
        message = "Diagram could not be decoded"
    return (
        f'<div class="wiki-scene-error" data-error="{html.escape(error.category)}">'
        f"{html.escape(message)}</div>"
    )


def _first_heading(document: Document) -> str:
    for block in document.blocks:
        if isinstance(block, Heading):
            return plain_text(block.inlines)
    return ""
