from datetime import datetime
from pathlib import Path

import pytest

from quire.config import SiteConfig
from quire.content import (
    DRAFT,
    PAGE,
    POST,
    ContentScanner,
    DocumentLoader,
    Permalinks,
    url_to_output_path,
)
from quire.errors import ContentError


def create_store(tmp_path: Path) -> Path:
    root = tmp_path / "blog"
    (root / "_posts" / "2019").mkdir(parents=True)
    (root / "_drafts").mkdir()
    (root / "_layouts").mkdir()
    (root / "_site").mkdir()
    (root / "css").mkdir()
    (root / ".git").mkdir()
    (root / "node_modules").mkdir()
    (root / "_posts" / "2019-05-01-hello-world.md").write_text(
        "---\ntitle: Hello\ntags: [intro]\n---\n# Hi\n\nFirst paragraph here.\n",
        encoding="utf-8",
    )
    (root / "_posts" / "2019" / "2019-06-01-nested.md").write_text("Nested\n", encoding="utf-8")
    (root / "_posts" / "notes.txt").write_text("not a post", encoding="utf-8")
    (root / "_drafts" / "upcoming.md").write_text("---\ntitle: Soon\n---\nSoon\n", encoding="utf-8")
    (root / "_layouts" / "default.html").write_text("{{ content }}", encoding="utf-8")
    (root / "_site" / "index.html").write_text("old", encoding="utf-8")
    (root / "about.md").write_text("---\ntitle: About\n---\nAbout me\n", encoding="utf-8")
    (root / "README.md").write_text("# No front matter\n", encoding="utf-8")
    (root / "css" / "style.css").write_text("body {}", encoding="utf-8")
    (root / ".git" / "HEAD").write_text("ref", encoding="utf-8")
    (root / "node_modules" / "x.js").write_text("x", encoding="utf-8")
    (root / "_config.yml").write_text("title: Blog\n", encoding="utf-8")
    return root


def test_scanner_sorts_sources_by_kind(tmp_path):
    root = create_store(tmp_path)
    listing = ContentScanner(root, SiteConfig()).scan()
    assert [p.relative_to(root).as_posix() for p in listing.posts] == [
        "_posts/2019/2019-06-01-nested.md",
        "_posts/2019-05-01-hello-world.md",
    ]
    assert listing.drafts == []
    assert [p.name for p in listing.pages] == ["about.md"]
    assert sorted(p.relative_to(root).as_posix() for p in listing.static) == [
        "README.md",
        "css/style.css",
    ]


def test_scanner_drafts_and_exclusions(tmp_path):
    root = create_store(tmp_path)
    config = SiteConfig(exclude=["README.md"])
    listing = ContentScanner(root, config, excluded_dirs=[root / "css"]).scan(include_drafts=True)
    assert [p.name for p in listing.drafts] == ["upcoming.md"]
    assert listing.static == []


def test_post_permalinks_are_deterministic():
    links = Permalinks("/:year/:month/:day/:slug/")
    date = datetime(2019, 5, 1)
    assert links.for_post(date, "hello-world") == "/2019/05/01/hello-world/"
    assert links.for_post(date, "hello-world") == links.for_post(date, "hello-world")
    assert links.for_post(date, "x", override="/custom/") == "/custom/"
    assert Permalinks("blog/:year/:title.html").for_post(date, "x") == "/blog/2019/x.html"


@pytest.mark.parametrize(
    "rel, url",
    [
        ("about.md", "/about/"),
        ("index.md", "/"),
        ("docs/index.md", "/docs/"),
        ("docs/Getting Started.md", "/docs/getting-started/"),
        ("404.html", "/404.html"),
        ("index.html", "/"),
        ("archive.html.jinja", "/archive.html"),
        ("feed.xml.jinja", "/feed.xml"),
    ],
)
def test_page_permalinks(rel, url):
    assert Permalinks("/:slug/").for_page(Path(rel)) == url


def test_url_to_output_path():
    assert url_to_output_path("/") == "index.html"
    assert url_to_output_path("/2019/05/01/hello/") == "2019/05/01/hello/index.html"
    assert url_to_output_path("/feed.xml") == "feed.xml"


def test_loader_builds_posts(tmp_path):
    root = create_store(tmp_path)
    loader = DocumentLoader(root, SiteConfig(author="Ada"))
    post = loader.load(root / "_posts" / "2019-05-01-hello-world.md", POST)
    assert post.url == "/2019/05/01/hello-world/"
    assert post.output_path == "2019/05/01/hello-world/index.html"
    assert post.date == datetime(2019, 5, 1)
    assert post.slug == "hello-world"
    assert post.title == "Hello"
    assert post.author == "Ada"
    assert post.tags == ["intro"]
    assert post.is_post and not post.draft
    assert post.source_type == "markdown"
    assert '<h1 id="hi">Hi</h1>' in post.content
    assert post.excerpt == "First paragraph here."


def test_loader_pages_and_extra_attributes(tmp_path):
    root = create_store(tmp_path)
    (root / "contact.md").write_text("---\nsubtitle: Say hi\n---\nHi\n", encoding="utf-8")
    page = DocumentLoader(root, SiteConfig()).load(root / "contact.md", PAGE)
    assert page.url == "/contact/"
    assert page.title == "Contact"
    assert page.subtitle == "Say hi"
    assert page.date is None
    with pytest.raises(AttributeError):
        page.missing_key


def test_loader_draft_without_date_uses_mtime(tmp_path):
    root = create_store(tmp_path)
    draft = DocumentLoader(root, SiteConfig()).load(root / "_drafts" / "upcoming.md", DRAFT)
    assert draft.draft
    assert draft.date is not None
    assert draft.date.hour == 0
    assert draft.url.endswith("/upcoming/")


def test_loader_errors(tmp_path):
    root = create_store(tmp_path)
    loader = DocumentLoader(root, SiteConfig())

    undated = root / "_posts" / "undated.md"
    undated.write_text("Body", encoding="utf-8")
    with pytest.raises(ContentError, match="YYYY-MM-DD"):
        loader.load(undated, POST)

    binary = root / "_posts" / "2019-01-01-bin.md"
    binary.write_bytes(b"\xff\xfe\x00bad")
    with pytest.raises(ContentError, match="UTF-8"):
        loader.load(binary, POST)

    bad_permalink = root / "bad.md"
    bad_permalink.write_text("---\npermalink: 3\n---\n", encoding="utf-8")
    with pytest.raises(ContentError, match="permalink"):
        loader.load(bad_permalink, PAGE)
