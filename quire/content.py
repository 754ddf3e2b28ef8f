"""Content store loading for Quire.

This module discovers source files under the content store root, parses their
front matter, renders their Markdown and assigns each document its permalink.

Layout of a content store:
- ``_posts/``: published posts named ``YYYY-MM-DD-slug.md``.
- ``_drafts/``: unpublished posts, only loaded when drafts are requested.
- ``_layouts/`` and ``_includes/``: theme templates, read by the template engine.
- anything else not starting with ``_`` or ``.``: pages (documents that open
  with front matter) or static files (copied verbatim).

Key classes:
- Page: Dataclass representing one rendered document (post, draft or page).
- StaticFile: A file copied to the output unchanged.
- ContentScanner: Discovers source files and sorts them by kind.
- Permalinks: Derives output URLs from dates, slugs and paths.
- DocumentLoader: Builds Page objects from source files.
"""

from __future__ import annotations

from collections.abc import Iterable
from dataclasses import dataclass, field
from datetime import datetime
from pathlib import Path
from typing import Any

from markupsafe import Markup

from .config import SiteConfig
from .errors import ContentError
from .frontmatter import FrontMatter, has_frontmatter, parse_frontmatter
from .renderers import RendererRegistry, default_renderer_registry
from .utils import (
    document_stem,
    first_paragraph,
    is_document,
    is_hidden_part,
    is_html,
    is_markdown,
    slugify,
    split_dated_name,
    titleize,
)

POSTS_DIR = "_posts"
DRAFTS_DIR = "_drafts"

# Never read as content, wherever they sit at the top level
ALWAYS_EXCLUDED = ("vendor", "node_modules", "Gemfile", "Gemfile.lock")

POST = "post"
DRAFT = "draft"
PAGE = "page"
TAG = "tag"


@dataclass
class Page:
    """A document of the site: a post, a draft, a page or a generated tag page.

    Front matter keys outside the recognized set are reachable as attributes,
    so templates can write ``page.subtitle``.

    Attributes:
        path: Path to the source file.
        rel_path: Path relative to the content store root.
        kind: One of ``post``, ``draft``, ``page`` or ``tag``.
        front: Validated front matter.
        body: Source text after the front matter block.
        slug: URL-friendly slug.
        date: Publication date (posts and drafts only).
        url: Site-relative permalink, without ``baseurl``.
        source_type: ``markdown``, ``html`` or ``jinja``.
        content: Rendered HTML fragment (Markdown already converted).
        excerpt: First paragraph as plain text.
        site_author: Author used when the front matter has none.
    """

    path: Path
    rel_path: Path
    kind: str
    front: FrontMatter
    body: str
    slug: str
    date: datetime | None
    url: str
    source_type: str
    content: str = ""
    excerpt: str = ""
    site_author: str = ""

    @property
    def title(self) -> str:
        return self.front.title or titleize(self.slug)

    @property
    def author(self) -> str:
        return self.front.author or self.site_author

    @property
    def tags(self) -> list[str]:
        return list(self.front.tags)

    @property
    def layout(self) -> str | None:
        return self.front.layout

    @property
    def is_post(self) -> bool:
        return self.kind in (POST, DRAFT)

    @property
    def draft(self) -> bool:
        return self.kind == DRAFT

    @property
    def output_path(self) -> str:
        return url_to_output_path(self.url)

    def __getattr__(self, name: str) -> Any:
        # Only reached for names that are not dataclass fields or properties
        front = self.__dict__.get("front")
        if front is not None and name in front.extra:
            return front.extra[name]
        raise AttributeError(name)


@dataclass(frozen=True)
class StaticFile:
    """A non-document file copied to the output tree as-is."""

    path: Path
    output_path: str


@dataclass
class SourceListing:
    """Source files found in a content store, sorted by kind."""

    posts: list[Path] = field(default_factory=list)
    drafts: list[Path] = field(default_factory=list)
    pages: list[Path] = field(default_factory=list)
    static: list[Path] = field(default_factory=list)


def url_to_output_path(url: str) -> str:
    """Map a site-relative URL to the output file that serves it.

    Examples:
        >>> url_to_output_path("/2019/05/01/hello/")
        '2019/05/01/hello/index.html'

        >>> url_to_output_path("/404.html")
        '404.html'
    """
    path = url.lstrip("/")
    if not path or url.endswith("/"):
        return f"{path}index.html"
    return path


class ContentScanner:
    """Discovers source files in a content store.

    Attributes:
        root: Content store root.
        excluded_names: Top-level names that are never read.
        excluded_dirs: Absolute directories that are never read, such as the
            output directory and its staging siblings.
    """

    def __init__(
        self,
        root: Path,
        config: SiteConfig,
        excluded_dirs: Iterable[Path] = (),
    ):
        self.root = root
        self.excluded_names = {config.destination, *ALWAYS_EXCLUDED, *config.exclude}
        self.excluded_dirs = {Path(p).resolve() for p in excluded_dirs}

    def scan(self, include_drafts: bool = False) -> SourceListing:
        """Walk the content store.

        Args:
            include_drafts: Whether to list files under ``_drafts/``.

        Returns:
            SourceListing with every group sorted by path.
        """
        listing = SourceListing()
        listing.posts = self._documents_under(self.root / POSTS_DIR)
        if include_drafts:
            listing.drafts = self._documents_under(self.root / DRAFTS_DIR)
        for path in self._walk(self.root, top_level=True):
            if is_document(path) and _starts_with_frontmatter(path):
                listing.pages.append(path)
            else:
                listing.static.append(path)
        return listing

    def _documents_under(self, folder: Path) -> list[Path]:
        if not folder.is_dir():
            return []
        return [p for p in self._walk(folder, top_level=False) if is_document(p)]

    def _walk(self, folder: Path, top_level: bool) -> list[Path]:
        files: list[Path] = []
        for entry in sorted(folder.iterdir()):
            if is_hidden_part(entry.name):
                continue
            if top_level and entry.name in self.excluded_names:
                continue
            if entry.is_dir():
                if entry.resolve() in self.excluded_dirs:
                    continue
                files.extend(self._walk(entry, top_level=False))
            elif entry.is_file():
                files.append(entry)
        return files


def _starts_with_frontmatter(path: Path) -> bool:
    try:
        with open(path, encoding="utf-8") as f:
            first = f.readline()
    except (OSError, UnicodeDecodeError):
        return False
    return has_frontmatter(first)


class Permalinks:
    """Derives site-relative URLs for documents.

    Post URLs come from the configured pattern. The placeholders ``:year``,
    ``:month``, ``:day``, ``:slug`` and ``:title`` are replaced from the post
    date and slug. A ``permalink`` key in a document's front matter overrides
    the pattern for that document.
    """

    def __init__(self, pattern: str):
        self.pattern = pattern

    def for_post(self, date: datetime, slug: str, override: str | None = None) -> str:
        pattern = override or self.pattern
        url = (
            pattern.replace(":year", f"{date.year:04d}")
            .replace(":month", f"{date.month:02d}")
            .replace(":day", f"{date.day:02d}")
            .replace(":slug", slug)
            .replace(":title", slug)
        )
        return _normalize_url(url)

    def for_page(self, rel: Path, override: str | None = None) -> str:
        """Derive the URL for a page from its relative path.

        Markdown pages get directory URLs (``about.md`` -> ``/about/``); HTML
        pages keep their file name (``404.html`` -> ``/404.html``); other
        Jinja templates drop the ``.jinja`` suffix (``robots.txt.jinja`` ->
        ``/robots.txt``). Any ``index`` file maps to its folder.
        """
        if override:
            return _normalize_url(override)
        segments = [p for p in rel.parent.parts if p]
        stem = document_stem(rel)
        folder = "/" + "/".join(segments) + "/" if segments else "/"
        if is_markdown(rel):
            if stem == "index":
                return folder
            return f"{folder}{slugify(stem)}/"
        if is_html(rel) or rel.name.endswith(".html.jinja"):
            if stem == "index":
                return folder
            return f"{folder}{stem}.html"
        name = rel.name[: -len(".jinja")]
        return f"{folder}{name}"


def _normalize_url(url: str) -> str:
    url = url.strip()
    if not url.startswith("/"):
        url = f"/{url}"
    while "//" in url:
        url = url.replace("//", "/")
    return url


class DocumentLoader:
    """Builds Page objects from source files.

    Attributes:
        root: Content store root.
        config: Site configuration.
        renderer_registry: Registry of body renderers.
        permalinks: URL deriver.
    """

    def __init__(
        self,
        root: Path,
        config: SiteConfig,
        renderer_registry: RendererRegistry | None = None,
    ):
        self.root = root
        self.config = config
        self.renderer_registry = renderer_registry or default_renderer_registry
        self.permalinks = Permalinks(config.permalink)

    def load(self, path: Path, kind: str) -> Page:
        """Load one document.

        Args:
            path: Path to the source file.
            kind: ``post``, ``draft`` or ``page``.

        Returns:
            Page with rendered content and permalink.

        Raises:
            ContentError: If the file cannot be read, its front matter is
                malformed, a post lacks a date prefix, or Markdown rendering
                fails.
        """
        rel = path.relative_to(self.root)
        try:
            raw = path.read_text(encoding="utf-8")
        except UnicodeDecodeError as exc:
            raise ContentError(path, "file is not valid UTF-8", exc) from exc
        except OSError as exc:
            raise ContentError(path, f"cannot read file: {exc.strerror or exc}", exc) from exc

        front, body = parse_frontmatter(raw, path)
        override = front.extra.get("permalink")
        if override is not None and not isinstance(override, str):
            raise ContentError(path, "front matter 'permalink' must be a string")

        stem = document_stem(path)
        date: datetime | None = None
        if kind in (POST, DRAFT):
            date, rest = split_dated_name(stem)
            if date is None:
                if kind == POST:
                    raise ContentError(
                        path, "post file names must start with a YYYY-MM-DD- date"
                    )
                date = datetime.fromtimestamp(path.stat().st_mtime).replace(
                    hour=0, minute=0, second=0, microsecond=0
                )
            slug = slugify(rest)
            url = self.permalinks.for_post(date, slug, override)
        else:
            slug = slugify(stem)
            url = self.permalinks.for_page(rel, override)

        renderer = self.renderer_registry.get_renderer(path)
        source_type = renderer.source_type if renderer else "html"
        try:
            content = Markup(renderer.render(body) if renderer else body)
        except Exception as exc:
            raise ContentError(path, f"cannot render: {exc}", exc) from exc

        return Page(
            path=path,
            rel_path=rel,
            kind=kind,
            front=front,
            body=body,
            slug=slug,
            date=date,
            url=url,
            source_type=source_type,
            content=content,
            excerpt=first_paragraph(body) if is_markdown(path) else "",
            site_author=self.config.author,
        )


def static_output_path(root: Path, path: Path) -> str:
    """Return the output path of a static file: its path relative to the root."""
    return path.relative_to(root).as_posix()

