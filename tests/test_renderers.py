from pathlib import Path

from quire.renderers import (
    HTMLRenderer,
    JinjaContentRenderer,
    MarkdownRenderer,
    RendererRegistry,
)


def test_markdown_headings_get_unique_ids():
    html = MarkdownRenderer().render("# Intro\n\n## Intro\n\n## Intro\n\n## *Why* this?\n")
    assert '<h1 id="intro">Intro</h1>' in html
    assert '<h2 id="intro-1">Intro</h2>' in html
    assert '<h2 id="intro-2">Intro</h2>' in html
    assert '<h2 id="why-this"><em>Why</em> this?</h2>' in html


def test_heading_ids_restart_per_document():
    renderer = MarkdownRenderer()
    renderer.render("# Intro\n")
    assert '<h1 id="intro">' in renderer.render("# Intro\n")


def test_code_blocks_are_highlighted_or_escaped():
    renderer = MarkdownRenderer()
    highlighted = renderer.render("```python extra words\nprint('hi')\n```\n")
    assert '<div class="highlight">' in highlighted

    fallback = renderer.render("```nosuchlang\n<tag> & x\n```\n")
    assert '<pre><code class="language-nosuchlang">&lt;tag&gt; &amp; x\n</code></pre>' in fallback

    plain = renderer.render("```\na < b\n```\n")
    assert "<pre><code>a &lt; b\n</code></pre>" in plain


def test_registry_picks_renderer_by_suffix():
    registry = RendererRegistry()
    assert isinstance(registry.get_renderer(Path("a.md")), MarkdownRenderer)
    assert isinstance(registry.get_renderer(Path("a.html.jinja")), JinjaContentRenderer)
    assert isinstance(registry.get_renderer(Path("a.html")), HTMLRenderer)
    assert registry.get_renderer(Path("a.png")) is None
    assert HTMLRenderer().render("<p>x</p>") == "<p>x</p>"
