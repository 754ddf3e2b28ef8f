"""Front matter parsing for Quire.

A document may start with a YAML block between ``---`` lines. The block is
validated when the document is loaded and turned into a typed ``FrontMatter``
value, so that bad metadata is reported against the file rather than failing
deep inside template rendering.

Recognized keys are ``layout``, ``title``, ``author`` and ``tags``. Everything
else is kept in ``FrontMatter.extra``.
"""

from __future__ import annotations

from collections.abc import Mapping
from dataclasses import dataclass, field
from pathlib import Path
from typing import Any

import yaml

from .errors import ContentError

_DELIMITER = "---"
_CLOSERS = ("---", "...")


@dataclass(frozen=True)
class FrontMatter:
    """Validated front matter of a single document.

    Attributes:
        layout: Layout name, or None to use the default for the document kind.
        title: Title override.
        author: Author override.
        tags: Ordered, de-duplicated tag names.
        extra: Unrecognized keys, untouched.
    """

    layout: str | None = None
    title: str | None = None
    author: str | None = None
    tags: tuple[str, ...] = ()
    extra: Mapping[str, Any] = field(default_factory=dict)

    def as_dict(self) -> dict[str, Any]:
        """Return all keys as a plain mapping, recognized ones included."""
        data = dict(self.extra)
        data.update(
            layout=self.layout, title=self.title, author=self.author, tags=list(self.tags)
        )
        return data


def has_frontmatter(text: str) -> bool:
    """Return True when ``text`` opens with a front matter delimiter line."""
    first = text.lstrip("\ufeff").split("\n", 1)[0]
    return first.rstrip() == _DELIMITER


def split_frontmatter(text: str, path: Path) -> tuple[str | None, str]:
    """Split raw text into the YAML block and the body.

    Args:
        text: Raw file content.
        path: Source path, for error reporting.

    Returns:
        Tuple of (YAML source or None when there is no block, body text).

    Raises:
        ContentError: If the block is opened but never closed.
    """
    text = text.lstrip("\ufeff")
    if not has_frontmatter(text):
        return None, text
    lines = text.split("\n")
    for index, line in enumerate(lines[1:], start=1):
        if line.rstrip() in _CLOSERS:
            block = "\n".join(lines[1:index])
            body = "\n".join(lines[index + 1 :])
            return block, body
    raise ContentError(path, "front matter is not closed with '---'")


def parse_frontmatter(text: str, path: Path) -> tuple[FrontMatter, str]:
    """Parse and validate the front matter of a document.

    Args:
        text: Raw file content.
        path: Source path, for error reporting.

    Returns:
        Tuple of (FrontMatter, body text).

    Raises:
        ContentError: If the block is malformed or a recognized key has the
            wrong type.
    """
    block, body = split_frontmatter(text, path)
    if block is None:
        return FrontMatter(), body
    try:
        data = yaml.safe_load(block)
    except yaml.YAMLError as exc:
        mark = getattr(exc, "problem_mark", None)
        where = f" (line {mark.line + 2})" if mark is not None else ""
        problem = getattr(exc, "problem", None) or str(exc)
        raise ContentError(path, f"invalid front matter{where}: {problem}", exc) from exc
    if data is None:
        data = {}
    if not isinstance(data, dict):
        raise ContentError(
            path, f"front matter must be a mapping, got {type(data).__name__}"
        )
    return _to_frontmatter(data, path), body


def _to_frontmatter(data: dict[Any, Any], path: Path) -> FrontMatter:
    values: dict[str, Any] = {}
    extra: dict[str, Any] = {}
    for key, value in data.items():
        key = str(key)
        if key in ("layout", "title", "author"):
            values[key] = _optional_str(key, value, path)
        elif key == "tags":
            values["tags"] = _parse_tags(value, path)
        else:
            extra[key] = value
    return FrontMatter(extra=extra, **values)


def _optional_str(key: str, value: Any, path: Path) -> str | None:
    if value is None:
        return None
    if not isinstance(value, str):
        raise ContentError(
            path, f"front matter '{key}' must be a string, got {type(value).__name__}"
        )
    return value


def _parse_tags(value: Any, path: Path) -> tuple[str, ...]:
    """Normalize ``tags`` to an ordered tuple without duplicates.

    A string is split on whitespace; a list may hold any scalars.
    """
    if value is None:
        return ()
    if isinstance(value, str):
        items = value.split()
    elif isinstance(value, list):
        items = []
        for item in value:
            if isinstance(item, (dict, list)) or item is None:
                raise ContentError(path, "front matter 'tags' must contain only scalars")
            items.append(str(item).strip())
    else:
        raise ContentError(
            path,
            f"front matter 'tags' must be a list or a string, got {type(value).__name__}",
        )
    seen: list[str] = []
    for tag in items:
        if tag and tag not in seen:
            seen.append(tag)
    return tuple(seen)
