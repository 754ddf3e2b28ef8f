"""Feed generation for Quire.

This module generates ``feed.xml`` (RSS 2.0) and ``sitemap.xml`` from the built
documents. Both need the absolute site ``url`` and are skipped without it.

Feeds carry no build timestamp: the RSS ``lastBuildDate`` is the date of the
newest post, so rebuilding unchanged content gives identical bytes.

Classes:
    FeedGenerator: Base class for feed generators.
    SitemapGenerator: Generates sitemap.xml files.
    RSSGenerator: Generates RSS feed files.
    FeedRegistry: Registry for managing feed generators.

Functions:
    create_default_feed_registry: Create a registry with default generators.
"""

from __future__ import annotations

from abc import ABC, abstractmethod
from collections.abc import Sequence
from datetime import datetime
from typing import TYPE_CHECKING

from .html_utils import escape_html, join_root_url

if TYPE_CHECKING:
    from .config import SiteConfig
    from .content import Page

RFC822 = "%a, %d %b %Y %H:%M:%S +0000"


def _site_url(config: SiteConfig) -> str:
    if not config.url:
        return ""
    return join_root_url(config.url, config.baseurl or "/").rstrip("/")


class FeedGenerator(ABC):
    """Abstract base class for feed generators.

    Subclasses implement specific feed formats; new formats are added by
    registering another subclass.
    """

    @property
    @abstractmethod
    def filename(self) -> str:
        """Return the output filename for this feed."""
        ...

    @abstractmethod
    def generate(
        self,
        posts: Sequence[Page],
        pages: Sequence[Page],
        config: SiteConfig,
    ) -> str | None:
        """Generate feed content.

        Args:
            posts: Posts, newest first.
            pages: Non-post pages.
            config: Site configuration.

        Returns:
            Feed content as a string, or None if the feed cannot be generated
            (e.g., missing ``url``).
        """
        ...


class SitemapGenerator(FeedGenerator):
    """Generates sitemap.xml listing every post and HTML page."""

    @property
    def filename(self) -> str:
        return "sitemap.xml"

    def generate(
        self,
        posts: Sequence[Page],
        pages: Sequence[Page],
        config: SiteConfig,
    ) -> str | None:
        base_url = _site_url(config)
        if not base_url:
            return None

        lines = [
            '<?xml version="1.0" encoding="UTF-8"?>',
            '<urlset xmlns="http://www.sitemaps.org/schemas/sitemap/0.9">',
        ]
        for page in [*posts, *pages]:
            if not page.output_path.endswith(".html"):
                continue
            loc = escape_html(f"{base_url}{page.url}")
            if page.date is not None:
                lastmod = page.date.strftime("%Y-%m-%d")
                lines.append(f"  <url><loc>{loc}</loc><lastmod>{lastmod}</lastmod></url>")
            else:
                lines.append(f"  <url><loc>{loc}</loc></url>")
        lines.append("</urlset>")
        return "\n".join(lines) + "\n"


class RSSGenerator(FeedGenerator):
    """Generates an RSS 2.0 feed of the newest ``feed_limit`` posts."""

    @property
    def filename(self) -> str:
        return "feed.xml"

    def generate(
        self,
        posts: Sequence[Page],
        pages: Sequence[Page],
        config: SiteConfig,
    ) -> str | None:
        base_url = _site_url(config)
        if not base_url:
            return None

        recent = list(posts)[: max(config.feed_limit, 0)]
        items = []
        for post in recent:
            link = escape_html(f"{base_url}{post.url}")
            description = escape_html(post.excerpt or post.title)
            author = f"<author>{escape_html(post.author)}</author>" if post.author else ""
            categories = "".join(
                f"<category>{escape_html(tag)}</category>" for tag in post.tags
            )
            items.append(
                f"<item><title>{escape_html(post.title)}</title><link>{link}</link>"
                f"<guid>{link}</guid><description>{description}</description>"
                f"{author}{categories}<pubDate>{post.date.strftime(RFC822)}</pubDate></item>"
            )

        newest = max((p.date for p in posts if p.date is not None), default=datetime(1970, 1, 1))
        rss = [
            '<?xml version="1.0" encoding="UTF-8"?>',
            '<rss version="2.0"><channel>',
            f"<title>{escape_html(config.title or 'Blog')}</title>",
            f"<link>{escape_html(base_url)}/</link>",
            f"<description>{escape_html(config.description or config.title)}</description>",
            f"<lastBuildDate>{newest.strftime(RFC822)}</lastBuildDate>",
        ]
        rss.extend(items)
        rss.append("</channel></rss>")
        return "\n".join(rss) + "\n"


class FeedRegistry:
    """Registry for managing feed generators."""

    def __init__(self) -> None:
        self._generators: list[FeedGenerator] = []

    def register(self, generator: FeedGenerator) -> None:
        self._generators.append(generator)

    @property
    def filenames(self) -> list[str]:
        return [g.filename for g in self._generators]

    def generate_all(
        self,
        posts: Sequence[Page],
        pages: Sequence[Page],
        config: SiteConfig,
    ) -> dict[str, bytes]:
        """Generate all registered feeds.

        Returns:
            Mapping of output filename to encoded feed, for feeds not skipped.
        """
        generated: dict[str, bytes] = {}
        for generator in self._generators:
            content = generator.generate(posts, pages, config)
            if content is not None:
                generated[generator.filename] = content.encode("utf-8")
        return generated


def create_default_feed_registry() -> FeedRegistry:
    """Create a registry with the sitemap and RSS generators."""
    registry = FeedRegistry()
    registry.register(SitemapGenerator())
    registry.register(RSSGenerator())
    return registry
