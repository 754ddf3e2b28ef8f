"""Quire static blog generator.

This package builds a personal blog from a directory of Markdown posts with YAML
front matter and a set of Jinja2 layouts. It offers two modes: a one-shot build
that writes the rendered site to an output directory, and a development server
that watches the sources, rebuilds on change and serves the latest build.

The main entry point is the CLI module, which provides the ``build`` and ``serve``
commands.
"""

__all__ = ["__version__"]
__version__ = "0.1.0"
