from pathlib import Path

import pytest

from quire.errors import ContentError
from quire.frontmatter import FrontMatter, has_frontmatter, parse_frontmatter, split_frontmatter

SRC = Path("_posts/2019-05-01-hello.md")


def test_parse_typed_fields_and_extension_map():
    text = (
        "---\n"
        "layout: post\n"
        "title: Hello\n"
        "author: Ada\n"
        "tags: [python, web, python]\n"
        "subtitle: A first post\n"
        "comments: true\n"
        "---\n"
        "Body text\n"
    )
    front, body = parse_frontmatter(text, SRC)
    assert front.layout == "post"
    assert front.title == "Hello"
    assert front.author == "Ada"
    assert front.tags == ("python", "web")
    assert front.extra == {"subtitle": "A first post", "comments": True}
    assert body == "Body text\n"
    assert front.as_dict()["tags"] == ["python", "web"]


def test_tags_as_string_and_scalars():
    front, _ = parse_frontmatter("---\ntags: one two  one\n---\n", SRC)
    assert front.tags == ("one", "two")
    front, _ = parse_frontmatter("---\ntags: [2019, 3.5]\n---\n", SRC)
    assert front.tags == ("2019", "3.5")


def test_no_block_and_empty_block():
    front, body = parse_frontmatter("Just text\n", SRC)
    assert front == FrontMatter()
    assert body == "Just text\n"
    front, body = parse_frontmatter("---\n---\nBody", SRC)
    assert front == FrontMatter()
    assert body == "Body"


def test_split_handles_bom_and_dots_closer():
    block, body = split_frontmatter("\ufeff---\ntitle: x\n...\nrest", SRC)
    assert block == "title: x"
    assert body == "rest"
    assert has_frontmatter("---  \nx: 1\n---\n")
    assert not has_frontmatter("----\n")


@pytest.mark.parametrize(
    "text, message",
    [
        ("---\ntitle: x\n", "not closed"),
        ("---\ntitle: [unclosed\n---\n", "invalid front matter (line"),
        ("---\n- a\n- b\n---\n", "must be a mapping, got list"),
        ("---\ntitle: 12\n---\n", "'title' must be a string, got int"),
        ("---\nlayout: [a]\n---\n", "'layout' must be a string"),
        ("---\ntags: {a: 1}\n---\n", "'tags' must be a list or a string"),
        ("---\ntags: [[a]]\n---\n", "'tags' must contain only scalars"),
    ],
)
def test_malformed_front_matter_reports_the_file(text, message):
    with pytest.raises(ContentError) as excinfo:
        parse_frontmatter(text, SRC)
    assert excinfo.value.source_path == SRC
    assert message in excinfo.value.message
    assert str(excinfo.value).startswith(str(SRC))
