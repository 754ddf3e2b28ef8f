"""Template rendering engine for Quire.

This module uses Jinja2 to wrap rendered documents in theme layouts.

Layouts live in ``_layouts/`` and partials in ``_includes/``. A layout may open
with its own front matter naming a parent ``layout``; the output of the inner
layout becomes ``content`` of the outer one, until a layout without a parent is
reached.

Key class:
- TemplateEngine: Resolves layouts and renders pages with the site context.
"""

from __future__ import annotations

from collections.abc import Iterable
from datetime import datetime
from pathlib import Path
from typing import Any

from jinja2 import Environment, FileSystemLoader, select_autoescape
from markupsafe import Markup

from .config import SiteConfig
from .content import DRAFT, PAGE, POST, TAG, Page
from .errors import ContentError
from .frontmatter import has_frontmatter, parse_frontmatter, split_frontmatter
from .html_utils import escape_html, join_root_url
from .renderers import pygments_css
from .utils import slugify

LAYOUTS_DIR = "_layouts"
INCLUDES_DIR = "_includes"

LAYOUT_SUFFIXES = (".html", ".html.jinja", ".jinja", "")

# Layouts tried, in order, for documents that do not name one
DEFAULT_LAYOUTS = {
    POST: ("post", "default"),
    DRAFT: ("post", "default"),
    PAGE: ("page", "default"),
    TAG: ("tag",),
}

# Front matter value that turns layouts off for a document
NO_LAYOUT = "none"


class _FrontMatterLoader(FileSystemLoader):
    """File system loader that hides a template's front matter from Jinja.

    The block is replaced by blank lines so that line numbers in template
    errors still match the file.
    """

    def get_source(self, environment, template):
        source, filename, uptodate = super().get_source(environment, template)
        if has_frontmatter(source):
            block, body = split_frontmatter(source, Path(filename))
            block_lines = block.count("\n") + 1 if block else 0
            source = "\n" * (block_lines + 2) + body
        return source, filename, uptodate


class TemplateEngine:
    """Template rendering engine using Jinja2.

    Attributes:
        root: Content store root.
        config: Site configuration.
        layouts_dir: Directory holding layouts.
        env: Jinja2 environment.
        site: The ``site`` mapping passed to every template.
    """

    def __init__(self, root: Path, config: SiteConfig):
        """Initialize the template engine.

        Args:
            root: Content store root.
            config: Site configuration.
        """
        self.root = root
        self.config = config
        self.layouts_dir = root / LAYOUTS_DIR
        self.env = Environment(
            loader=_FrontMatterLoader([self.layouts_dir, root / INCLUDES_DIR]),
            autoescape=select_autoescape(["html", "xml", "jinja"]),
            keep_trailing_newline=True,
        )
        self.site: dict[str, Any] = config.as_template_data()
        self._layout_parents: dict[str, str | None] = {}
        self._install_globals()

    def _install_globals(self) -> None:
        """Install global variables, functions and filters in the Jinja environment."""
        self.env.globals["site"] = self.site
        self.env.globals["url_for"] = self.relative_url
        self.env.globals["pygments_css"] = pygments_css
        self.env.filters["relative_url"] = self.relative_url
        self.env.filters["absolute_url"] = self.absolute_url
        self.env.filters["date"] = _format_date
        self.env.filters["xml_escape"] = escape_html
        self.env.filters["slugify"] = slugify

    def update_collections(
        self,
        posts: Iterable[Page],
        pages: Iterable[Page],
        tags: Any,
    ) -> None:
        """Expose the site's documents to templates as ``site.posts``,
        ``site.pages`` and ``site.tags``.
        """
        self.site["posts"] = posts
        self.site["pages"] = pages
        self.site["tags"] = tags

    def relative_url(self, path: str) -> str:
        """Prefix a site-relative path with ``baseurl``.

        Args:
            path: Path such as ``/about/``.

        Returns:
            ``/blog/about/`` when ``baseurl`` is ``/blog``; absolute URLs are
            returned unchanged.
        """
        if path.startswith(("http://", "https://", "//")):
            return path
        path = path if path.startswith("/") else f"/{path}"
        baseurl = self.config.baseurl.rstrip("/")
        return f"{baseurl}{path}" if baseurl else path

    def absolute_url(self, path: str) -> str:
        """Return the full URL of a path, using ``url`` and ``baseurl``."""
        relative = self.relative_url(path)
        if relative.startswith(("http://", "https://", "//")):
            return relative
        return join_root_url(self.config.url, relative)

    def render_page(self, page: Page, extra_context: dict[str, Any] | None = None) -> str:
        """Render a page with its layouts.

        Args:
            page: Page object to render.
            extra_context: Additional template variables.

        Returns:
            Rendered HTML string.

        Raises:
            ContentError: If a named layout cannot be found or layouts form a
                cycle.
            jinja2.TemplateError: If a template fails to compile or render.
        """
        context: dict[str, Any] = {"site": self.site, "page": page}
        if extra_context:
            context.update(extra_context)
        body = self._render_body(page, context)
        layout = self._initial_layout(page)
        return self._apply_layouts(page, body, layout, context)

    def _render_body(self, page: Page, context: dict[str, Any]) -> str:
        if page.source_type == "jinja":
            template = self.env.from_string(page.body)
            return template.render(**context)
        return page.content

    def find_layout(self, name: str) -> str | None:
        """Return the template name of layout ``name``, or None if it is missing."""
        for suffix in LAYOUT_SUFFIXES:
            candidate = self.layouts_dir / f"{name}{suffix}"
            if candidate.is_file():
                return f"{name}{suffix}"
        return None

    def _initial_layout(self, page: Page) -> str | None:
        if page.layout:
            if page.layout.lower() == NO_LAYOUT:
                return None
            template_name = self.find_layout(page.layout)
            if template_name is None:
                raise ContentError(
                    page.path, f"layout '{page.layout}' not found in {LAYOUTS_DIR}/"
                )
            return template_name
        for name in DEFAULT_LAYOUTS.get(page.kind, ("default",)):
            template_name = self.find_layout(name)
            if template_name is not None:
                return template_name
        return None

    def _apply_layouts(
        self,
        page: Page,
        body: str,
        template_name: str | None,
        context: dict[str, Any],
    ) -> str:
        html = body
        seen: list[str] = []
        while template_name is not None:
            if template_name in seen:
                chain = " -> ".join([*seen, template_name])
                raise ContentError(page.path, f"layout cycle: {chain}")
            seen.append(template_name)
            try:
                template = self.env.get_template(template_name)
                html = template.render(content=Markup(html), **context)
                template_name = self._parent_layout(page, template_name)
            except ContentError as exc:
                if exc.source_path == page.path:
                    raise
                # A broken layout fails each page that uses it, reported on the page
                raise ContentError(
                    page.path, f"in {self._describe(exc.source_path)}: {exc.message}", exc
                ) from exc
        return html

    def _describe(self, path: Path) -> str:
        try:
            return path.relative_to(self.root).as_posix()
        except ValueError:
            return str(path)

    def _parent_layout(self, page: Page, template_name: str) -> str | None:
        if template_name not in self._layout_parents:
            path = self.layouts_dir / template_name
            front, _ = parse_frontmatter(path.read_text(encoding="utf-8"), path)
            parent = front.layout
            if parent and parent.lower() != NO_LAYOUT:
                resolved = self.find_layout(parent)
                if resolved is None:
                    raise ContentError(
                        page.path,
                        f"layout '{parent}' (parent of {template_name}) not found in {LAYOUTS_DIR}/",
                    )
                self._layout_parents[template_name] = resolved
            else:
                self._layout_parents[template_name] = None
        return self._layout_parents[template_name]


def _format_date(value: datetime | None, fmt: str = "%B %d, %Y") -> str:
    """Jinja filter: format a date, tolerating pages without one."""
    if value is None:
        return ""
    return value.strftime(fmt)
