"""HTML utility functions for Quire.

This module provides HTML string manipulation used by templates, feeds and the
link checker.

Functions:
    escape_html: Escape special HTML characters in a string.
    join_root_url: Join a base URL with a path.
    iter_internal_urls: Yield root-relative URLs referenced by an HTML document.
"""

from __future__ import annotations

import re
from collections.abc import Iterator
from urllib.parse import unquote, urlsplit

# URL attribute regex pattern for finding href, src, action attributes
_URL_ATTR_RE = re.compile(
    r'(?P<prefix>\b(?:href|src|action)=["\'])(?P<url>[^"\']+)(?P<suffix>["\'])'
)

# URL prefixes that never point into the output tree
_URL_SKIP_PREFIXES = (
    "http://",
    "https://",
    "//",
    "mailto:",
    "tel:",
    "#",
    "javascript:",
    "data:",
)


def escape_html(text: str) -> str:
    """Escape special HTML characters in a string.

    Args:
        text: The string to escape.

    Returns:
        The escaped string, safe for inclusion in HTML and XML.

    Examples:
        >>> escape_html('Tom & Jerry')
        'Tom &amp; Jerry'
    """
    return (
        text.replace("&", "&amp;")
        .replace("<", "&lt;")
        .replace(">", "&gt;")
        .replace('"', "&quot;")
    )


def join_root_url(root_url: str, path: str) -> str:
    """Safely join a root URL and a path, avoiding double slashes.

    Args:
        root_url: Base URL (e.g., https://example.com/blog).
        path: Path beginning with or without a leading slash.

    Returns:
        Combined URL with proper slash handling.

    Examples:
        >>> join_root_url('https://example.com', '/about/')
        'https://example.com/about/'

        >>> join_root_url('https://example.com/', 'about/')
        'https://example.com/about/'
    """
    if not root_url:
        return path
    base = root_url.rstrip("/")
    suffix = path if path.startswith("/") else f"/{path}"
    return f"{base}{suffix}"


def iter_internal_urls(html: str, baseurl: str = "") -> Iterator[str]:
    """Yield root-relative URL paths referenced from href/src/action attributes.

    External links, anchors and mailto/tel/javascript/data URLs are skipped, as
    are relative URLs that do not start with ``/``. Query strings and fragments
    are removed and ``baseurl`` is stripped from the front.

    Args:
        html: HTML content to scan.
        baseurl: Site subpath prefix, such as ``/blog``.

    Yields:
        Decoded URL paths such as ``/2019/05/01/hello/``.
    """
    prefix = baseurl.rstrip("/")
    for match in _URL_ATTR_RE.finditer(html):
        url = match.group("url").strip()
        if not url or url.startswith(_URL_SKIP_PREFIXES):
            continue
        if not url.startswith("/"):
            continue
        path = unquote(urlsplit(url).path)
        if prefix:
            if path != prefix and not path.startswith(prefix + "/"):
                yield path
                continue
            path = path[len(prefix) :] or "/"
        yield path
