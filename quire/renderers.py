"""Content renderers for Quire.

Each renderer turns the body of one kind of source file into an HTML fragment.
Markdown is converted with mistune and fenced code blocks are highlighted with
Pygments; HTML passes through; Jinja bodies are left for the template engine,
which renders them with the full site context.

Key classes:
- MarkdownRenderer: Renders Markdown to HTML with syntax highlighting.
- HTMLRenderer: Passes through HTML content.
- JinjaContentRenderer: Marks Jinja template content for later rendering.
- RendererRegistry: Picks the renderer for a path.
"""

from __future__ import annotations

import re
from pathlib import Path

import mistune
from pygments import highlight
from pygments.formatters import HtmlFormatter
from pygments.lexers import get_lexer_by_name
from pygments.util import ClassNotFound

from .html_utils import escape_html
from .utils import is_html, is_markdown, is_template


def _generate_heading_id(text: str) -> str:
    """Generate a URL-friendly ID from heading text.

    Args:
        text: The heading text (may contain inline HTML).

    Returns:
        URL-friendly slug suitable for anchor links.
    """
    slug = re.sub(r"<[^>]+>", "", text).lower().strip()
    slug = re.sub(r"[^\w\s-]", "", slug)
    slug = re.sub(r"[-\s]+", "-", slug)
    return slug.strip("-")


class _HighlightRenderer(mistune.HTMLRenderer):
    """Markdown renderer with heading anchors and Pygments code blocks."""

    def __init__(self):
        super().__init__(escape=False)
        self._seen_ids: dict[str, int] = {}

    def heading(self, text: str, level: int, **attrs) -> str:
        # Repeated headings in one document get -1, -2, ... suffixes
        anchor = _generate_heading_id(text) or "section"
        repeats = self._seen_ids.get(anchor, -1) + 1
        self._seen_ids[anchor] = repeats
        heading_id = f"{anchor}-{repeats}" if repeats else anchor
        return f'<h{level} id="{heading_id}">{text}</h{level}>\n'

    def block_code(self, code: str, info: str | None = None) -> str:
        """Render a code block with Pygments syntax highlighting.

        Args:
            code: The code content.
            info: Info string of the fence; its first word names the language.

        Returns:
            HTML string with highlighted code, or an escaped ``<pre>`` block when
            the language is missing or unknown to Pygments.
        """
        lang = info.split()[0] if info and info.strip() else None
        if lang:
            try:
                lexer = get_lexer_by_name(lang, stripall=True)
            except ClassNotFound:
                lexer = None
            if lexer is not None:
                formatter = HtmlFormatter(nowrap=False, cssclass="highlight")
                return highlight(code, lexer, formatter)
        lang_class = f' class="language-{escape_html(lang)}"' if lang else ""
        return f"<pre><code{lang_class}>{escape_html(code)}</code></pre>\n"


class MarkdownRenderer:
    """Renders Markdown content to HTML."""

    source_type = "markdown"

    def can_render(self, path: Path) -> bool:
        return is_markdown(path)

    def render(self, content: str) -> str:
        markdown = mistune.create_markdown(
            renderer=_HighlightRenderer(),
            plugins=["strikethrough", "footnotes", "table", "url"],
        )
        return markdown(content)


class HTMLRenderer:
    """Passes through HTML content unchanged."""

    source_type = "html"

    def can_render(self, path: Path) -> bool:
        return is_html(path)

    def render(self, content: str) -> str:
        return content


class JinjaContentRenderer:
    """Handles Jinja template content.

    The actual Jinja rendering is deferred to the TemplateEngine, because the
    body needs the site context (posts, tags) that only exists once every
    document is loaded.
    """

    source_type = "jinja"

    def can_render(self, path: Path) -> bool:
        return is_template(path)

    def render(self, content: str) -> str:
        return content


class RendererRegistry:
    """Registry for content renderers, consulted in registration order."""

    def __init__(self):
        self._renderers: list = []
        self.register(MarkdownRenderer())
        self.register(JinjaContentRenderer())
        self.register(HTMLRenderer())

    def register(self, renderer) -> None:
        self._renderers.append(renderer)

    def get_renderer(self, path: Path):
        """Get the appropriate renderer for a file.

        Args:
            path: Path to the source file.

        Returns:
            The first renderer that can handle the file, or None.
        """
        for renderer in self._renderers:
            if renderer.can_render(path):
                return renderer
        return None


def pygments_css(style: str = "default") -> str:
    """Return Pygments CSS rules for the ``.highlight`` class."""
    return HtmlFormatter(style=style).get_style_defs(".highlight")


default_renderer_registry = RendererRegistry()
