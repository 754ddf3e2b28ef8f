"""Site configuration for Quire.

Configuration lives in ``_config.yml`` at the root of the content store. Missing
keys take the defaults below; unknown keys are kept and exposed to templates as
``site.<key>``.

Key functions:
- load_config: Read and validate ``_config.yml``.
- check_version_pin: Enforce the ``quire_version`` pin.
"""

from __future__ import annotations

from dataclasses import dataclass, field, fields
from pathlib import Path
from typing import Any

import yaml

from . import __version__
from .errors import ConfigError

CONFIG_FILENAME = "_config.yml"

DEFAULT_PERMALINK = "/:year/:month/:day/:slug/"


@dataclass
class SiteConfig:
    """Typed view of ``_config.yml``.

    Attributes:
        title: Site title.
        author: Default author for posts without an ``author`` key.
        description: Site description, used by the feed.
        url: Absolute site URL; feeds and sitemap are skipped without it.
        baseurl: Subpath the site is served under, such as ``/blog``.
        permalink: Pattern for post output paths.
        destination: Output directory, relative to the content store root.
        port: Dev server HTTP port.
        host: Dev server bind address.
        feed_limit: Maximum number of posts in ``feed.xml``.
        check_links: Whether broken internal links fail a document.
        exclude: Extra top-level names to skip when reading content.
        quire_version: Exact Quire release this site is pinned to.
        extra: Unrecognized keys, passed through to templates.
    """

    title: str = ""
    author: str = ""
    description: str = ""
    url: str = ""
    baseurl: str = ""
    permalink: str = DEFAULT_PERMALINK
    destination: str = "_site"
    port: int = 4000
    host: str = "127.0.0.1"
    feed_limit: int = 20
    check_links: bool = True
    exclude: list[str] = field(default_factory=list)
    quire_version: str | None = None
    extra: dict[str, Any] = field(default_factory=dict)

    def as_template_data(self) -> dict[str, Any]:
        """Return the configuration as the ``site`` mapping seen by templates."""
        data = dict(self.extra)
        for f in fields(self):
            if f.name != "extra":
                data[f.name] = getattr(self, f.name)
        return data


MAX_PORT = 65535

_FIELD_TYPES: dict[str, tuple[type, ...]] = {
    "title": (str,),
    "author": (str,),
    "description": (str,),
    "url": (str,),
    "baseurl": (str,),
    "permalink": (str,),
    "destination": (str,),
    "port": (int,),
    "host": (str,),
    "feed_limit": (int,),
    "check_links": (bool,),
    "exclude": (list,),
    "quire_version": (str,),
}


def load_config(root: Path) -> SiteConfig:
    """Load site configuration from ``_config.yml``.

    Args:
        root: Root directory of the content store.

    Returns:
        SiteConfig with defaults applied.

    Raises:
        ConfigError: If the file is not valid YAML, is not a mapping, or a
            known key has the wrong type, or the port is out of range.
    """
    config_path = root / CONFIG_FILENAME
    if not config_path.exists():
        return SiteConfig()
    try:
        with open(config_path, encoding="utf-8") as f:
            loaded = yaml.safe_load(f)
    except yaml.YAMLError as exc:
        raise ConfigError(f"{config_path}: invalid YAML: {exc}") from exc
    if loaded is None:
        return SiteConfig()
    if not isinstance(loaded, dict):
        raise ConfigError(f"{config_path}: expected a mapping at the top level")

    known: dict[str, Any] = {}
    extra: dict[str, Any] = {}
    for key, value in loaded.items():
        key = str(key)
        if key not in _FIELD_TYPES:
            extra[key] = value
            continue
        if value is None:
            continue
        if key == "quire_version" and isinstance(value, (int, float)):
            value = str(value)
        expected = _FIELD_TYPES[key]
        # bool is an int subclass; keep "port: true" out
        if not isinstance(value, expected) or (
            isinstance(value, bool) and bool not in expected
        ):
            names = " or ".join(t.__name__ for t in expected)
            raise ConfigError(f"{config_path}: '{key}' must be {names}")
        known[key] = value
    port = known.get("port")
    if port is not None and not 0 <= port <= MAX_PORT:
        raise ConfigError(f"{config_path}: 'port' must be between 0 and {MAX_PORT}")
    if "exclude" in known:
        known["exclude"] = [str(item) for item in known["exclude"]]
    return SiteConfig(extra=extra, **known)


def check_version_pin(config: SiteConfig, version: str = __version__) -> None:
    """Fail when the site is pinned to a different Quire release.

    Args:
        config: Loaded site configuration.
        version: Running Quire version.

    Raises:
        ConfigError: If ``quire_version`` is set and differs from ``version``.
    """
    pinned = config.quire_version
    if pinned is None:
        return
    if pinned.strip().lstrip("=").strip() != version:
        raise ConfigError(
            f"site is pinned to quire {pinned.strip()}, but quire {version} is running"
        )
