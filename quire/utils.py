"""Utility functions for Quire.

This module contains small helpers used throughout the Quire codebase:
string processing, file-type checks and date extraction from file names.

Key functions:
    slugify: Convert filenames to URL slugs.
    titleize: Convert slugs and filenames to human-readable titles.
    split_dated_name: Split a ``YYYY-MM-DD-`` prefix off a filename stem.
    is_markdown: Check if a path is a Markdown file.
    is_template: Check if a path is a Jinja template.
    is_html: Check if a path is a plain HTML file.
    first_paragraph: Extract the first prose paragraph of Markdown text.
"""

from __future__ import annotations

import re
from datetime import datetime
from pathlib import Path

MARKDOWN_SUFFIXES = (".md", ".markdown")

_DATE_PREFIX_RE = re.compile(r"^(\d{4})-(\d{2})-(\d{2})-(.+)$")


def slugify(name: str) -> str:
    """Convert a filename stem (without date prefix) to a URL slug.

    Args:
        name: Filename stem.

    Returns:
        URL-friendly slug, ``index`` when nothing usable is left.
    """
    cleaned = re.sub(r"[^a-zA-Z0-9]+", "-", name)
    cleaned = cleaned.strip("-").lower()
    return cleaned or "index"


def titleize(name: str) -> str:
    """Convert a slug or filename to a human-readable title.

    Args:
        name: Slug or filename with or without extension.

    Returns:
        Human-readable title string.

    Examples:
        >>> titleize("2024-01-15-hello-world.md")
        'Hello World'

        >>> titleize("getting-started")
        'Getting Started'
    """
    base = Path(name).stem if Path(name).suffix else name
    _, base = split_dated_name(base)
    words = re.split(r"[\s\-_]+", base)
    return " ".join(word.capitalize() for word in words if word) or "Untitled"


def split_dated_name(stem: str) -> tuple[datetime | None, str]:
    """Split a ``YYYY-MM-DD-`` date prefix off a filename stem.

    Args:
        stem: Filename stem (without extension).

    Returns:
        Tuple of (date or None, remainder). When there is no valid date prefix
        the remainder is the whole stem.

    Examples:
        >>> split_dated_name("2019-05-01-hello-world")
        (datetime.datetime(2019, 5, 1, 0, 0), 'hello-world')

        >>> split_dated_name("hello-world")
        (None, 'hello-world')
    """
    match = _DATE_PREFIX_RE.match(stem)
    if not match:
        return None, stem
    year, month, day, rest = match.groups()
    try:
        return datetime(int(year), int(month), int(day)), rest
    except ValueError:
        return None, stem


def document_stem(path: Path) -> str:
    """Return the filename without its document suffixes.

    ``about.html.jinja`` and ``about.md`` both give ``about``.
    """
    name = path.name
    for suffix in (".html.jinja", ".jinja", ".html", *MARKDOWN_SUFFIXES):
        if name.lower().endswith(suffix):
            return name[: -len(suffix)]
    return path.stem


def is_markdown(path: Path) -> bool:
    """Check if a path is a Markdown file.

    Args:
        path: Path to check.

    Returns:
        True if the file has a .md or .markdown extension (case-insensitive).
    """
    return path.suffix.lower() in MARKDOWN_SUFFIXES


def is_template(path: Path) -> bool:
    """Check if a path is a Jinja template file.

    Matches both .jinja and .html.jinja extensions.

    Args:
        path: Path to check.

    Returns:
        True if the file is a Jinja template.
    """
    return path.suffixes[-2:] == [".html", ".jinja"] or path.suffix == ".jinja"


def is_html(path: Path) -> bool:
    """Check if a path is a plain HTML file (not a Jinja template)."""
    return path.suffix.lower() == ".html" and not is_template(path)


def is_document(path: Path) -> bool:
    """Check if a path has a suffix Quire can render."""
    return is_markdown(path) or is_template(path) or is_html(path)


def is_hidden_part(part: str) -> bool:
    """Check if a path component marks internal or hidden content."""
    return part.startswith(("_", "."))


def first_paragraph(text: str) -> str:
    """Extract the first prose paragraph from Markdown text.

    Skips headings, images, fenced code and horizontal rules, strips HTML tags
    and collapses whitespace.

    Args:
        text: Markdown text content.

    Returns:
        The first paragraph as plain text, or an empty string.
    """
    in_fence = False
    for para in text.split("\n\n"):
        stripped = para.strip()
        if not stripped:
            continue
        fences = stripped.count("```")
        if in_fence or stripped.startswith("```"):
            if fences % 2 == 1:
                in_fence = not in_fence
            continue
        if stripped.startswith(("#", "![", "---", "<")):
            continue
        cleaned = re.sub(r"<[^>]+>", "", stripped)
        return " ".join(cleaned.split())
    return ""
