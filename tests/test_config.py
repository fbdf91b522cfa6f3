from datetime import timedelta
from pathlib import Path

import pytest

from tiny.config import (
    DEFAULT_DELIM_LEFT,
    DEFAULT_DELIM_RIGHT,
    load_site_config,
    parse_duration,
    site_config_from_dict,
)
from tiny.errors import SiteConfigError


def write(path: Path, text: str) -> Path:
    path.parent.mkdir(parents=True, exist_ok=True)
    path.write_text(text, encoding="utf-8")
    return path


@pytest.mark.parametrize(
    "value, expected",
    [
        ("720h", timedelta(hours=720)),
        ("1h30m", timedelta(minutes=90)),
        ("45s", timedelta(seconds=45)),
        ("250ms", timedelta(milliseconds=250)),
        ("2d", timedelta(days=2)),
        ("1.5h", timedelta(minutes=90)),
        (90, timedelta(seconds=90)),
        ("90", timedelta(seconds=90)),
        ("", timedelta()),
        (None, timedelta()),
        (timedelta(minutes=1), timedelta(minutes=1)),
    ],
)
def test_parse_duration(value, expected):
    assert parse_duration(value) == expected


@pytest.mark.parametrize("value", ["abc", "1h x", "h1", True])
def test_parse_duration_rejects_garbage(value):
    with pytest.raises(SiteConfigError, match="invalid duration"):
        parse_duration(value)


def test_load_site_config_defaults(tmp_path):
    config = load_site_config(write(tmp_path / "site.yml", ""))
    assert config.delim_left == DEFAULT_DELIM_LEFT
    assert config.delim_right == DEFAULT_DELIM_RIGHT
    assert config.errors == {"not_found": [404], "error": [500]}
    assert config.metadata.title == "Tiny"
    assert config.static is None
    assert config.static_prefix == "/static/"
    assert config.login == "/login"
    assert config.validate is True
    assert config.reload is False
    assert config.cache_max_age == timedelta()
    assert config.base_dir == tmp_path.resolve()
    assert config.static_site.enable is False
    assert config.static_site.output.root_dir == tmp_path.resolve() / "public"
    assert config.static_site.output.static_dir == tmp_path.resolve() / "public" / "static"
    assert config.static_site.request.host == "localhost"


def test_load_site_config_full(tmp_path):
    definition = write(
        tmp_path / "site.yml",
        """
reload: true
static: assets
static_prefix: /assets/
cache_max_age: 1h
login: /signin
delim_left: "{{"
delim_right: "}}"
metadata:
  title: Hello
  key_words: [a, b]
layouts:
  base: templates/base.html
pages:
  home:
    path: /
    layout: base
    components: [templates/home.html]
    metadata:
      title: Home
    data: json://data/home.json
  secret:
    path: /secret
    auth: true
    components:
      - /abs/secret.html
    delim_left: "<<"
    delim_right: ">>"
errors:
  oops: [500, 503]
static_site:
  enable: true
  output:
    root_dir: out
    keep: [.git, CNAME]
  static: [assets]
  allowed_pages: ["^/$"]
  request:
    host: example.com
    paths: [/, /secret]
""",
    )
    config = load_site_config(definition)
    base = tmp_path.resolve()

    assert config.reload is True
    assert config.static == base / "assets"
    assert config.static_prefix == "/assets/"
    assert config.cache_max_age == timedelta(hours=1)
    assert config.login == "/signin"
    assert (config.delim_left, config.delim_right) == ("{{", "}}")
    assert config.metadata.title == "Hello"
    assert config.metadata.description == "Tiny"
    assert config.metadata.key_words == ["a", "b"]
    assert config.layouts == {"base": [base / "templates/base.html"]}

    home = config.pages["home"]
    assert home.path == "/"
    assert home.layout == "base"
    assert home.components == [base / "templates/home.html"]
    assert home.metadata.title == "Home"
    assert home.data == "json://data/home.json"
    assert home.auth is False

    secret = config.pages["secret"]
    assert secret.auth is True
    assert secret.components == [Path("/abs/secret.html")]
    assert (secret.delim_left, secret.delim_right) == ("<<", ">>")

    assert config.errors["oops"] == [500, 503]
    assert config.errors["error"] == [500]

    static_site = config.static_site
    assert static_site.enable is True
    assert static_site.output.root_dir == base / "out"
    assert static_site.output.static_dir == base / "out" / "static"
    assert static_site.output.keep == [".git", "CNAME"]
    assert static_site.static == [base / "assets"]
    assert static_site.allowed_pages == ["^/$"]
    assert static_site.request.host == "example.com"
    assert static_site.request.paths == ["/", "/secret"]


def test_page_without_definition_gets_defaults(tmp_path):
    config = site_config_from_dict({"pages": {"empty": None}}, base_dir=tmp_path)
    page = config.pages["empty"]
    assert page.path == ""
    assert page.components == []
    assert page.data is None


def test_load_site_config_errors(tmp_path):
    with pytest.raises(SiteConfigError, match="read site definition"):
        load_site_config(tmp_path / "missing.yml")
    with pytest.raises(SiteConfigError, match="parse site definition"):
        load_site_config(write(tmp_path / "broken.yml", "pages: [unclosed"))
    with pytest.raises(SiteConfigError, match="must be a mapping"):
        load_site_config(write(tmp_path / "list.yml", "- a\n- b\n"))


@pytest.mark.parametrize(
    "raw, message",
    [
        ({"pages": ["home"]}, "pages: expected a mapping"),
        ({"pages": {"home": "oops"}}, "page home: definition must be a mapping"),
        ({"errors": {"oops": ["x"]}}, "invalid status code"),
        ({"layouts": {"base": {"a": 1}}}, "base: expected a list"),
    ],
)
def test_site_config_from_dict_rejects_bad_shapes(tmp_path, raw, message):
    with pytest.raises(SiteConfigError, match=message):
        site_config_from_dict(raw, base_dir=tmp_path)
