"""Exception types raised by Quire.

Content errors are local to one source document and are collected by the
builder; configuration and build errors abort the whole run.
"""

from __future__ import annotations

from pathlib import Path


class QuireError(Exception):
    """Base class for all Quire errors."""


class ConfigError(QuireError):
    """Invalid site configuration or a version pin that does not match."""


class BuildError(QuireError):
    """The content store cannot be built at all (for example, it is missing)."""


class ContentError(QuireError):
    """Error in a single source document.

    Attributes:
        source_path: Path to the document that caused the error.
        message: Human-readable error message.
        original_error: The original exception that was caught, if any.
    """

    def __init__(
        self,
        source_path: Path,
        message: str,
        original_error: Exception | None = None,
    ):
        self.source_path = source_path
        self.message = message
        self.original_error = original_error
        super().__init__(f"{source_path}: {message}")
