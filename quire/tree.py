"""Output tree handling for Quire.

A build produces an ``OutputTree``: an immutable mapping of POSIX output paths
to file contents. It is written to disk in one swap, and the dev server holds
the latest one in a ``SiteSnapshot`` so that request handlers always read a
complete build.

Key classes and functions:
- OutputTree: Immutable path -> bytes mapping with URL resolution.
- SiteSnapshot: Lock-protected reference to the current OutputTree.
- write_tree: Write a tree to a directory through a staging sibling.
"""

from __future__ import annotations

import os
import shutil
import threading
from collections.abc import Iterator, Mapping
from pathlib import Path
from types import MappingProxyType


def candidate_paths(url_path: str) -> list[str]:
    """Return the output paths that may serve a site-relative URL path.

    Args:
        url_path: Decoded URL path such as ``/about/`` or ``/about``.

    Returns:
        Output paths to try, in order.

    Examples:
        >>> candidate_paths("/about/")
        ['about/index.html']

        >>> candidate_paths("/about")
        ['about', 'about/index.html', 'about.html']
    """
    path = url_path.lstrip("/")
    if not path or url_path.endswith("/"):
        return [f"{path}index.html"]
    return [path, f"{path}/index.html", f"{path}.html"]


class OutputTree(Mapping[str, bytes]):
    """Immutable mapping of output path to rendered bytes."""

    def __init__(self, files: Mapping[str, bytes] | None = None):
        self._files = MappingProxyType(dict(sorted((files or {}).items())))

    def __getitem__(self, key: str) -> bytes:
        return self._files[key]

    def __iter__(self) -> Iterator[str]:
        return iter(self._files)

    def __len__(self) -> int:
        return len(self._files)

    def resolve(self, url_path: str) -> tuple[str, bytes] | None:
        """Find the file that serves ``url_path``.

        Returns:
            Tuple of (output path, contents), or None when nothing matches.
        """
        for candidate in candidate_paths(url_path):
            if candidate in self._files:
                return candidate, self._files[candidate]
        return None

    def __repr__(self) -> str:  # pragma: no cover - for debugging
        return f"OutputTree({len(self._files)} files)"


class SiteSnapshot:
    """Reference to the current OutputTree, swapped atomically after each build.

    Readers call ``current()`` once per request and keep using that tree, so a
    rebuild finishing mid-request never mixes two builds.
    """

    def __init__(self, tree: OutputTree | None = None):
        self._lock = threading.Lock()
        self._tree = tree or OutputTree()
        self._generation = 0

    def current(self) -> OutputTree:
        with self._lock:
            return self._tree

    @property
    def generation(self) -> int:
        with self._lock:
            return self._generation

    def swap(self, tree: OutputTree) -> int:
        """Publish ``tree`` and return the new generation number."""
        with self._lock:
            self._tree = tree
            self._generation += 1
            return self._generation


def staging_paths(output_dir: Path) -> tuple[Path, Path]:
    """Return the (staging, previous) sibling directories used by write_tree."""
    return (
        output_dir.with_name(output_dir.name + ".staging"),
        output_dir.with_name(output_dir.name + ".old"),
    )


def write_tree(tree: OutputTree, output_dir: Path) -> None:
    """Write a tree to ``output_dir``, replacing its previous contents.

    The tree is first written to a staging sibling. The old directory is then
    renamed away and the staging directory renamed into place, so the target
    path never holds a partially written build.

    Args:
        tree: Output tree to write.
        output_dir: Target directory.
    """
    staging, previous = staging_paths(output_dir)
    for leftover in (staging, previous):
        if leftover.exists():
            shutil.rmtree(leftover)
    staging.mkdir(parents=True)
    for rel_path, data in tree.items():
        target = staging / rel_path
        target.parent.mkdir(parents=True, exist_ok=True)
        target.write_bytes(data)
    if output_dir.exists():
        os.replace(output_dir, previous)
    os.replace(staging, output_dir)
    if previous.exists():
        shutil.rmtree(previous)
