from pathlib import Path

import pytest
from jinja2 import TemplateSyntaxError

from quire.collections import PageCollection, build_tags_index
from quire.config import SiteConfig
from quire.content import PAGE, POST, DocumentLoader
from quire.errors import ContentError
from quire.renderers import pygments_css
from quire.templates import TemplateEngine


def create_theme(root: Path) -> Path:
    (root / "_layouts").mkdir(parents=True)
    (root / "_includes").mkdir()
    (root / "_posts").mkdir()
    (root / "_layouts" / "default.html").write_text(
        "<html><title>{{ page.title }} | {{ site.title }}</title>"
        "{% include 'nav.html' %}<main>{{ content }}</main></html>",
        encoding="utf-8",
    )
    (root / "_layouts" / "post.html").write_text(
        "---\nlayout: default\n---\n<article>{{ page.date | date('%Y-%m-%d') }}{{ content }}</article>",
        encoding="utf-8",
    )
    (root / "_includes" / "nav.html").write_text(
        "<nav><a href=\"{{ '/' | relative_url }}\">home</a></nav>", encoding="utf-8"
    )
    return root


def load(root: Path, rel: str, kind: str, config: SiteConfig | None = None):
    return DocumentLoader(root, config or SiteConfig()).load(root / rel, kind)


def test_post_is_wrapped_in_layout_chain(tmp_path):
    root = create_theme(tmp_path)
    (root / "_posts" / "2019-05-01-hello.md").write_text(
        "---\ntitle: Hello <World>\n---\nHi **there**\n", encoding="utf-8"
    )
    config = SiteConfig(title="Blog", baseurl="/blog")
    post = load(root, "_posts/2019-05-01-hello.md", POST, config)
    html = TemplateEngine(root, config).render_page(post)
    assert html.startswith("<html><title>Hello &lt;World&gt; | Blog</title>")
    assert '<a href="/blog/">home</a>' in html
    assert "<article>2019-05-01<p>Hi <strong>there</strong></p>" in html


def test_page_falls_back_to_default_and_none_disables_layouts(tmp_path):
    root = create_theme(tmp_path)
    (root / "about.md").write_text("---\ntitle: About\n---\nAbout\n", encoding="utf-8")
    (root / "raw.html").write_text("---\nlayout: none\n---\n<p>raw</p>", encoding="utf-8")
    engine = TemplateEngine(root, SiteConfig())
    assert "<main><p>About</p>\n</main>" in engine.render_page(load(root, "about.md", PAGE))
    assert engine.render_page(load(root, "raw.html", PAGE)) == "<p>raw</p>"


def test_page_without_any_layout_is_rendered_bare(tmp_path):
    (tmp_path / "about.md").write_text("---\ntitle: About\n---\nAbout\n", encoding="utf-8")
    html = TemplateEngine(tmp_path, SiteConfig()).render_page(load(tmp_path, "about.md", PAGE))
    assert html == "<p>About</p>\n"


def test_missing_layouts_fail_the_document(tmp_path):
    root = create_theme(tmp_path)
    (root / "a.md").write_text("---\nlayout: fancy\n---\nA\n", encoding="utf-8")
    (root / "_layouts" / "orphan.html").write_text("---\nlayout: gone\n---\n{{ content }}", encoding="utf-8")
    (root / "b.md").write_text("---\nlayout: orphan\n---\nB\n", encoding="utf-8")
    engine = TemplateEngine(root, SiteConfig())
    with pytest.raises(ContentError, match="layout 'fancy' not found"):
        engine.render_page(load(root, "a.md", PAGE))
    with pytest.raises(ContentError, match="layout 'gone'"):
        engine.render_page(load(root, "b.md", PAGE))


def test_broken_layout_front_matter_fails_the_page(tmp_path):
    root = create_theme(tmp_path)
    (root / "_layouts" / "post.html").write_text(
        "---\nlayout: [default\n---\n<article>{{ content }}</article>", encoding="utf-8"
    )
    (root / "_posts" / "2019-05-01-hello.md").write_text("Hi\n", encoding="utf-8")
    post = load(root, "_posts/2019-05-01-hello.md", POST)
    with pytest.raises(ContentError, match="in _layouts/post.html: invalid front matter") as info:
        TemplateEngine(root, SiteConfig()).render_page(post)
    assert info.value.source_path == post.path


def test_layout_cycle_is_reported(tmp_path):
    root = create_theme(tmp_path)
    (root / "_layouts" / "a.html").write_text("---\nlayout: b\n---\n{{ content }}", encoding="utf-8")
    (root / "_layouts" / "b.html").write_text("---\nlayout: a\n---\n{{ content }}", encoding="utf-8")
    (root / "x.md").write_text("---\nlayout: a\n---\nX\n", encoding="utf-8")
    with pytest.raises(ContentError, match="layout cycle"):
        TemplateEngine(root, SiteConfig()).render_page(load(root, "x.md", PAGE))


def test_template_errors_keep_line_numbers(tmp_path):
    root = create_theme(tmp_path)
    (root / "_layouts" / "broken.html").write_text(
        "---\ntitle: x\n---\nline four\n{% if %}\n", encoding="utf-8"
    )
    (root / "x.md").write_text("---\nlayout: broken\n---\nX\n", encoding="utf-8")
    with pytest.raises(TemplateSyntaxError) as excinfo:
        TemplateEngine(root, SiteConfig()).render_page(load(root, "x.md", PAGE))
    assert excinfo.value.lineno == 5


def test_jinja_pages_see_site_collections(tmp_path):
    root = create_theme(tmp_path)
    (root / "_posts" / "2019-05-01-one.md").write_text("---\ntags: [a]\n---\nOne\n", encoding="utf-8")
    (root / "list.html.jinja").write_text(
        "---\nlayout: none\n---\n{% for post in site.posts %}{{ post.url }};{% endfor %}"
        "{% for tag in site.tags %}{{ tag }}{% endfor %}",
        encoding="utf-8",
    )
    engine = TemplateEngine(root, SiteConfig())
    post = load(root, "_posts/2019-05-01-one.md", POST)
    posts = PageCollection([post])
    engine.update_collections(posts, PageCollection([]), build_tags_index(posts))
    page = load(root, "list.html.jinja", PAGE)
    assert page.url == "/list.html"
    assert engine.render_page(page) == "/2019/05/01/one/;a"


def test_url_filters(tmp_path):
    engine = TemplateEngine(tmp_path, SiteConfig(url="https://example.com", baseurl="/blog/"))
    assert engine.relative_url("about/") == "/blog/about/"
    assert engine.relative_url("https://cdn.example.com/x.js") == "https://cdn.example.com/x.js"
    assert engine.absolute_url("/feed.xml") == "https://example.com/blog/feed.xml"
    assert ".highlight" in pygments_css()
