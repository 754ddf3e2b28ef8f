import pytest

from quire import __version__
from quire.config import DEFAULT_PERMALINK, SiteConfig, check_version_pin, load_config
from quire.errors import ConfigError


def test_defaults_without_config_file(tmp_path):
    config = load_config(tmp_path)
    assert config.destination == "_site"
    assert config.port == 4000
    assert config.permalink == DEFAULT_PERMALINK
    assert config.check_links is True
    assert config.quire_version is None


def test_known_and_extra_keys(tmp_path):
    (tmp_path / "_config.yml").write_text(
        "title: My Blog\nport: 4321\nexclude: [README.md, 3]\ntwitter: ada\n",
        encoding="utf-8",
    )
    config = load_config(tmp_path)
    assert config.title == "My Blog"
    assert config.port == 4321
    assert config.exclude == ["README.md", "3"]
    assert config.extra == {"twitter": "ada"}
    data = config.as_template_data()
    assert data["twitter"] == "ada"
    assert data["title"] == "My Blog"
    assert "extra" not in data


def test_empty_config_file(tmp_path):
    (tmp_path / "_config.yml").write_text("", encoding="utf-8")
    assert load_config(tmp_path) == SiteConfig()


@pytest.mark.parametrize(
    "text",
    [
        "title: [unclosed\n",
        "- just\n- a list\n",
        "port: true\n",
        "port: '4000'\n",
        "port: 70000\n",
        "port: -1\n",
        "check_links: 'yes'\n",
    ],
)
def test_invalid_config_raises(tmp_path, text):
    (tmp_path / "_config.yml").write_text(text, encoding="utf-8")
    with pytest.raises(ConfigError):
        load_config(tmp_path)


def test_port_out_of_range_names_the_limit(tmp_path):
    (tmp_path / "_config.yml").write_text("port: 65536\n", encoding="utf-8")
    with pytest.raises(ConfigError, match="between 0 and 65535"):
        load_config(tmp_path)
    (tmp_path / "_config.yml").write_text("port: 65535\n", encoding="utf-8")
    assert load_config(tmp_path).port == 65535


def test_version_pin(tmp_path):
    check_version_pin(SiteConfig())
    check_version_pin(SiteConfig(quire_version=__version__))
    check_version_pin(SiteConfig(quire_version=f"=={__version__}"))
    with pytest.raises(ConfigError, match="pinned to quire 9.9.9"):
        check_version_pin(SiteConfig(quire_version="9.9.9"))
    with pytest.raises(ConfigError):
        check_version_pin(SiteConfig(quire_version="0.1.0"), version="0.2.0")


def test_numeric_version_pin_is_read_as_string(tmp_path):
    (tmp_path / "_config.yml").write_text("quire_version: 0.1\n", encoding="utf-8")
    config = load_config(tmp_path)
    assert config.quire_version == "0.1"
    with pytest.raises(ConfigError):
        check_version_pin(config, version="0.1.0")
