"""Internal link checking for Quire.

After a document is rendered, every root-relative ``href``/``src``/``action``
URL in it must point at a file the same build produces. Broken links and
missing images make the document fail.
"""

from __future__ import annotations

from collections.abc import Collection
from pathlib import Path

from .errors import ContentError
from .html_utils import iter_internal_urls
from .tree import candidate_paths


def find_broken_links(html: str, known_paths: Collection[str], baseurl: str = "") -> list[str]:
    """Return the internal URLs in ``html`` that no known output path serves.

    Args:
        html: Rendered HTML.
        known_paths: Output paths produced by the build.
        baseurl: Site subpath prefix, stripped before lookup.

    Returns:
        Broken URL paths in order of first appearance, without duplicates.
    """
    broken: list[str] = []
    for url_path in iter_internal_urls(html, baseurl):
        if url_path in broken:
            continue
        if not any(c in known_paths for c in candidate_paths(url_path)):
            broken.append(url_path)
    return broken


def check_links(
    source_path: Path, html: str, known_paths: Collection[str], baseurl: str = ""
) -> None:
    """Raise a ContentError naming every broken internal link in ``html``."""
    broken = find_broken_links(html, known_paths, baseurl)
    if broken:
        listed = ", ".join(broken)
        noun = "link" if len(broken) == 1 else "links"
        raise ContentError(source_path, f"broken internal {noun}: {listed}")
