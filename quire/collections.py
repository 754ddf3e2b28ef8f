from __future__ import annotations

from collections.abc import Iterable, Iterator, Mapping, Sequence

from .content import Page
from .utils import slugify


def chronological_key(page: Page):
    return (page.date is not None, page.date, page.slug)


class PageCollection(Sequence[Page]):
    """Lightweight helper for working with lists of Pages in templates and code."""

    def __init__(self, pages: Iterable[Page]):
        self._pages = list(pages)

    def __iter__(self) -> Iterator[Page]:
        return iter(self._pages)

    def __len__(self) -> int:
        return len(self._pages)

    def __getitem__(self, item):
        return self._pages[item]

    def with_tag(self, tag: str) -> PageCollection:
        return PageCollection(p for p in self._pages if tag in p.tags)

    def drafts(self) -> PageCollection:
        return PageCollection(p for p in self._pages if p.draft)

    def published(self) -> PageCollection:
        return PageCollection(p for p in self._pages if not p.draft)

    def by_author(self, author: str) -> PageCollection:
        return PageCollection(p for p in self._pages if p.author == author)

    def sorted(self, reverse: bool = True) -> PageCollection:
        """Sort pages by date, then by slug.

        Args:
            reverse: If True (default), newest first.

        Returns:
            A new PageCollection with sorted pages.
        """
        return PageCollection(sorted(self._pages, key=chronological_key, reverse=reverse))

    def latest(self, count: int = 5) -> PageCollection:
        return PageCollection(self.sorted()[:count])

    def previous_of(self, page: Page) -> Page | None:
        """Return the post published just before ``page`` in this collection."""
        ordered = self.sorted()._pages
        index = _index_of(ordered, page)
        if index is None:
            return None
        return ordered[index + 1] if index + 1 < len(ordered) else None

    def next_of(self, page: Page) -> Page | None:
        """Return the post published just after ``page`` in this collection."""
        ordered = self.sorted()._pages
        index = _index_of(ordered, page)
        if index is None:
            return None
        return ordered[index - 1] if index > 0 else None

    def __repr__(self) -> str:  # pragma: no cover - for debugging
        return f"PageCollection({len(self._pages)} pages)"


class TagCollection(Mapping[str, PageCollection]):
    """Mapping of tag name to the posts carrying it, newest first."""

    def __init__(self, mapping: dict[str, Iterable[Page]]):
        self._mapping = {
            k: PageCollection(v).sorted() for k, v in sorted(mapping.items())
        }

    def __getitem__(self, key: str) -> PageCollection:
        return self._mapping[key]

    def __iter__(self) -> Iterator[str]:
        return iter(self._mapping)

    def __len__(self) -> int:
        return len(self._mapping)

    def url_for(self, tag: str) -> str:
        return f"/tags/{slugify(tag)}/"

    def __repr__(self) -> str:  # pragma: no cover - for debugging
        return f"TagCollection({len(self._mapping)} tags)"


def build_tags_index(pages: Iterable[Page]) -> TagCollection:
    """Build an index mapping tags to the pages carrying them.

    Args:
        pages: Iterable of Page objects.

    Returns:
        TagCollection with tags in alphabetical order.
    """
    tags: dict[str, list[Page]] = {}
    for page in pages:
        for tag in page.tags:
            tags.setdefault(tag, []).append(page)
    return TagCollection(tags)


def _index_of(pages: list[Page], page: Page) -> int | None:
    for index, candidate in enumerate(pages):
        if candidate is page:
            return index
    return None
