"""Site building functionality for Quire.

This module contains the core logic for building a static site from a content
store. It loads configuration, reads posts, drafts, pages and static files,
renders templates, checks internal links and generates feeds.

The build is a pure function of the content store, the theme and the
configuration: it returns an in-memory ``OutputTree`` and never embeds the
current time, so two builds of unchanged sources are byte-identical.

Failure policy: skip and report. A document that fails (bad front matter,
missing layout, template error, broken link) is left out of the output and
recorded as a ``BuildIssue``; every other document is still built.

Key functions:
- build_site: Main function to build the entire site.
- resolve_output_dir: Pick and sanity-check the output directory.
"""

from __future__ import annotations

from dataclasses import dataclass, field
from pathlib import Path

from jinja2 import TemplateNotFound, TemplateSyntaxError
from markupsafe import Markup

from .collections import PageCollection, TagCollection, build_tags_index
from .config import CONFIG_FILENAME, SiteConfig, check_version_pin, load_config
from .content import (
    DRAFT,
    DRAFTS_DIR,
    PAGE,
    POST,
    POSTS_DIR,
    TAG,
    ContentScanner,
    DocumentLoader,
    Page,
    StaticFile,
    static_output_path,
)
from .errors import BuildError, ContentError
from .feeds import create_default_feed_registry
from .frontmatter import FrontMatter
from .links import check_links
from .templates import INCLUDES_DIR, LAYOUTS_DIR, TemplateEngine
from .tree import OutputTree, staging_paths
from .utils import slugify

# Source entries that can never be an output directory
RESERVED_NAMES = (POSTS_DIR, DRAFTS_DIR, LAYOUTS_DIR, INCLUDES_DIR, CONFIG_FILENAME)


@dataclass(frozen=True)
class BuildIssue:
    """A document that failed and was left out of the output.

    Attributes:
        path: Path to the source file.
        message: Human-readable error message.
    """

    path: Path
    message: str

    def describe(self, root: Path | None = None) -> str:
        path = self.path
        if root is not None:
            try:
                path = self.path.relative_to(root)
            except ValueError:
                pass
        return f"{path}: {self.message}"


@dataclass
class BuildResult:
    """Result of a site build operation.

    Attributes:
        tree: Rendered output, path -> bytes.
        posts: Posts that were built, newest first.
        pages: Non-post pages that were built.
        issues: Documents that failed.
        static_files: Number of static files copied.
    """

    tree: OutputTree
    posts: PageCollection
    pages: PageCollection
    issues: list[BuildIssue] = field(default_factory=list)
    static_files: int = 0

    @property
    def ok(self) -> bool:
        return not self.issues

    @property
    def documents(self) -> int:
        return len(self.posts) + len(self.pages)


def resolve_output_dir(
    root: Path, config: SiteConfig, override: Path | None = None
) -> Path:
    """Return the absolute output directory for a build.

    An output directory inside the content store must live under the
    configured ``destination``, which the scanner never reads. Writing
    anywhere else there would replace source files.

    Args:
        root: Content store root.
        config: Site configuration.
        override: Optional directory given on the command line.

    Returns:
        Resolved output directory.

    Raises:
        BuildError: If the directory is the content store root, contains it,
            or lies inside it outside the configured destination.
    """
    output_dir = (override if override is not None else root / config.destination).resolve()
    root = root.resolve()
    if output_dir == root or output_dir in root.parents:
        raise BuildError(f"refusing to write output to {output_dir}: it contains the sources")
    if root in output_dir.parents:
        top = output_dir.relative_to(root).parts[0]
        if top in RESERVED_NAMES:
            raise BuildError(f"refusing to write output to {output_dir}: {top} holds sources")
        configured = (root / config.destination).resolve()
        if output_dir != configured and configured not in output_dir.parents:
            raise BuildError(
                f"refusing to write output to {output_dir}: it is inside the content "
                f"store but not under destination '{config.destination}' from {CONFIG_FILENAME}"
            )
    return output_dir


def build_site(
    root: Path,
    include_drafts: bool = False,
    config: SiteConfig | None = None,
    output_dir: Path | None = None,
) -> BuildResult:
    """Build the entire static site.

    Args:
        root: Content store root.
        include_drafts: Whether to build files under ``_drafts/`` as posts.
        config: Configuration to use instead of reading ``_config.yml``.
        output_dir: Output directory, excluded from the sources when it lies
            inside the content store.

    Returns:
        BuildResult with the output tree and any per-document issues.

    Raises:
        BuildError: If the content store root does not exist.
        ConfigError: If the configuration is invalid or pinned to another
            Quire release.
    """
    if not root.is_dir():
        raise BuildError(f"content store not found: {root}")
    if config is None:
        config = load_config(root)
    check_version_pin(config)
    excluded: list[Path] = []
    if output_dir is not None:
        excluded = [output_dir, *staging_paths(output_dir)]
    return SiteBuilder(root, config, excluded).build(include_drafts)


class SiteBuilder:
    """Single-pass builder for one content store.

    Attributes:
        root: Content store root.
        config: Site configuration.
        issues: Documents that failed so far.
    """

    def __init__(self, root: Path, config: SiteConfig, excluded_dirs: list[Path] | None = None):
        self.root = root
        self.config = config
        self.scanner = ContentScanner(root, config, excluded_dirs or [])
        self.loader = DocumentLoader(root, config)
        self.engine = TemplateEngine(root, config)
        self.feeds = create_default_feed_registry()
        self.issues: list[BuildIssue] = []

    def build(self, include_drafts: bool = False) -> BuildResult:
        listing = self.scanner.scan(include_drafts)
        posts = self._load_all(listing.posts, POST) + self._load_all(listing.drafts, DRAFT)
        pages = self._load_all(listing.pages, PAGE)
        static = [StaticFile(p, static_output_path(self.root, p)) for p in listing.static]

        posts, pages = self._drop_clashes(posts, pages, static)
        posts = PageCollection(posts).sorted()
        pages = PageCollection(sorted(pages, key=lambda p: p.url))
        tag_pages = self._tag_pages(build_tags_index(posts))

        files: dict[str, bytes] = {}
        for item in static:
            try:
                files[item.output_path] = item.path.read_bytes()
            except OSError as exc:
                self._record(ContentError(item.path, f"cannot read file: {exc.strerror or exc}", exc))

        claimed = {*files, *(p.output_path for p in posts), *(p.output_path for p in pages)}
        feed_names = []
        if self.config.url:
            # A page or static file of the same name replaces the generated feed
            feed_names = [n for n in self.feeds.filenames if n not in claimed]
        # Fixed before rendering, so a failing document never breaks links to it
        known = claimed | set(feed_names) | {p.output_path for p in tag_pages}

        # Posts first, so that index pages only list posts that made it
        self.engine.update_collections(posts, pages, build_tags_index(posts))
        built_posts = PageCollection(self._render_each(posts, known, files))
        tags = build_tags_index(built_posts)
        self.engine.update_collections(built_posts, pages, tags)
        built_pages = PageCollection(self._render_each(pages, known, files))
        self.engine.update_collections(built_posts, built_pages, tags)
        for tag_page in tag_pages:
            tag = tag_page.front.extra["tag"]
            if tag in tags:
                self._render_one(tag_page, known, files, {"tag": tag, "posts": tags[tag]})

        for name, data in self.feeds.generate_all(built_posts, built_pages, self.config).items():
            if name in feed_names:
                files[name] = data

        return BuildResult(
            tree=OutputTree(files),
            posts=built_posts,
            pages=built_pages,
            issues=sorted(self.issues, key=lambda i: (str(i.path), i.message)),
            static_files=len(static),
        )

    def _record(self, error: ContentError) -> None:
        self.issues.append(BuildIssue(error.source_path, error.message))

    def _load_all(self, paths: list[Path], kind: str) -> list[Page]:
        pages: list[Page] = []
        for path in paths:
            try:
                pages.append(self.loader.load(path, kind))
            except ContentError as exc:
                self._record(exc)
        return pages

    def _drop_clashes(
        self, posts: list[Page], pages: list[Page], static: list[StaticFile]
    ) -> tuple[list[Page], list[Page]]:
        """Fail every document whose output path is claimed more than once."""
        claims: dict[str, list[Page]] = {}
        for doc in [*posts, *pages]:
            claims.setdefault(doc.output_path, []).append(doc)
        static_paths = {s.output_path for s in static}
        failed: set[int] = set()
        for output_path, docs in claims.items():
            if len(docs) > 1:
                for doc in docs:
                    others = ", ".join(
                        o.rel_path.as_posix() for o in docs if o is not doc
                    )
                    self._record(
                        ContentError(doc.path, f"output path {output_path} is also produced by {others}")
                    )
                    failed.add(id(doc))
            elif output_path in static_paths:
                self._record(
                    ContentError(docs[0].path, f"output path {output_path} clashes with a static file")
                )
                failed.add(id(docs[0]))
        return (
            [p for p in posts if id(p) not in failed],
            [p for p in pages if id(p) not in failed],
        )

    def _tag_pages(self, tags: TagCollection) -> list[Page]:
        """Create one page per tag when the theme has a ``tag`` layout."""
        template_name = self.engine.find_layout("tag")
        if template_name is None:
            return []
        layout_path = self.engine.layouts_dir / template_name
        pages: list[Page] = []
        for tag in tags:
            slug = slugify(tag)
            pages.append(
                Page(
                    path=layout_path,
                    rel_path=layout_path.relative_to(self.root),
                    kind=TAG,
                    front=FrontMatter(layout="tag", title=tag, extra={"tag": tag}),
                    body="",
                    slug=slug,
                    date=None,
                    url=tags.url_for(tag),
                    source_type="html",
                    content=Markup(""),
                )
            )
        return pages

    def _render_each(
        self, docs: PageCollection, known: set[str], files: dict[str, bytes]
    ) -> list[Page]:
        return [doc for doc in docs if self._render_one(doc, known, files)]

    def _render_one(
        self,
        page: Page,
        known: set[str],
        files: dict[str, bytes],
        extra_context: dict | None = None,
    ) -> bool:
        try:
            html = self._render_document(page, extra_context)
            if self.config.check_links and page.output_path.endswith(".html"):
                check_links(page.path, html, known, self.config.baseurl)
        except ContentError as exc:
            self._record(exc)
            return False
        files[page.output_path] = html.encode("utf-8")
        return True

    def _render_document(self, page: Page, extra_context: dict | None = None) -> str:
        try:
            return self.engine.render_page(page, extra_context)
        except ContentError:
            raise
        except TemplateSyntaxError as exc:
            where = f" in {exc.name}" if exc.name else ""
            raise ContentError(
                page.path,
                f"Template syntax error{where} on line {exc.lineno}: {exc.message}",
                exc,
            ) from exc
        except TemplateNotFound as exc:
            raise ContentError(page.path, f"Template not found: {exc.name}", exc) from exc
        except Exception as exc:
            raise ContentError(page.path, _format_error_message(exc), exc) from exc


def _format_error_message(exc: Exception) -> str:
    """Format an exception into a user-friendly error message.

    Args:
        exc: The exception to format.

    Returns:
        A human-readable error message.
    """
    error_type = type(exc).__name__
    error_msg = str(exc)

    # Handle common Jinja2/template errors
    if error_type == "UndefinedError":
        return f"Undefined variable: {error_msg}"
    if error_type == "TypeError":
        return f"Type error: {error_msg}"
    if error_type == "AttributeError":
        return f"Attribute error: {error_msg}"

    return f"{error_type}: {error_msg}"
