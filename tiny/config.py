"""Site definition loading for tiny.

A site is described by a single YAML file. This module reads that file into
dataclasses, applies defaults and resolves relative file paths against the
directory holding the definition.

Key functions:
- load_site_config: Read a YAML site definition into a SiteConfig.
- parse_duration: Parse durations such as "720h" or "1h30m".
"""

from __future__ import annotations

import re
from collections.abc import Mapping
from dataclasses import dataclass, field
from datetime import timedelta
from pathlib import Path
from typing import Any

import yaml

from .errors import SiteConfigError
from .metadata import DEFAULT_METADATA, MetaData

PAGE_NOT_FOUND = "not_found"
PAGE_ERROR = "error"
PAGE_ROBOTS_TXT = "robots.txt"
PAGE_SITEMAP_XML = "sitemap.xml"

DEFAULT_DELIM_LEFT = "[["
DEFAULT_DELIM_RIGHT = "]]"

DEFAULT_ERRORS: dict[str, list[int]] = {
    PAGE_NOT_FOUND: [404],
    PAGE_ERROR: [500],
}

_DURATION_RE = re.compile(r"(\d+(?:\.\d+)?)(ms|s|m|h|d)")
_DURATION_UNITS = {
    "ms": timedelta(milliseconds=1),
    "s": timedelta(seconds=1),
    "m": timedelta(minutes=1),
    "h": timedelta(hours=1),
    "d": timedelta(days=1),
}


@dataclass
class PageConfig:
    """A page of the site.

    Attributes:
        path: URL rule, e.g. "/" or "/posts/<slug>".
        layout: Name of a layout declared in the site's layouts.
        components: Template files rendered for this page.
        metadata: Page metadata, merged over the site metadata.
        auth: Whether the page requires an authenticated user.
        delim_left: Left template delimiter overriding the site's.
        delim_right: Right template delimiter overriding the site's.
        data: Static data, or "json://file" / "yaml://file" to load it.
        embedded: True for built-in pages rendered from bundled templates.
    """

    path: str = ""
    layout: str = ""
    components: list[Path] = field(default_factory=list)
    metadata: MetaData = field(default_factory=MetaData)
    auth: bool = False
    delim_left: str = ""
    delim_right: str = ""
    data: Any = None
    embedded: bool = False


@dataclass
class StaticOutput:
    root_dir: Path = Path("public")
    static_dir: Path = Path("public/static")
    keep: list[str] = field(default_factory=list)


@dataclass
class StaticRequest:
    host: str = "localhost"
    paths: list[str] = field(default_factory=list)


@dataclass
class StaticSiteConfig:
    """Settings for exporting the site as static files.

    Attributes:
        enable: Export is a no-op unless enabled.
        output: Where files are written and which entries survive cleanup.
        static: Files or directories copied into output.static_dir.
        allowed_pages: Regexes; only matching request paths are written.
        request: Host header and paths requested during export.
    """

    enable: bool = False
    output: StaticOutput = field(default_factory=StaticOutput)
    static: list[Path] = field(default_factory=list)
    allowed_pages: list[str] = field(default_factory=list)
    request: StaticRequest = field(default_factory=StaticRequest)


@dataclass
class SiteConfig:
    """Parsed site definition.

    Attributes:
        cache_max_age: Max age sent with static assets; zero means the default.
        metadata: Site-wide metadata.
        reload: Re-parse templates and reload data files on every request.
        static: Directory of static assets, served under static_prefix.
        static_prefix: URL prefix of static assets.
        login: URL of the login page used by protected pages.
        layouts: Layout name to template files.
        pages: Page name to PageConfig.
        errors: Page name to HTTP status codes it handles.
        validate: Raise on invalid definitions instead of logging a warning.
        delim_left: Default left template delimiter.
        delim_right: Default right template delimiter.
        static_site: Static export settings.
        base_dir: Directory that relative paths were resolved against.
    """

    cache_max_age: timedelta = field(default_factory=timedelta)
    metadata: MetaData = field(default_factory=lambda: MetaData(DEFAULT_METADATA))
    reload: bool = False
    static: Path | None = None
    static_prefix: str = "/static/"
    login: str = "/login"
    layouts: dict[str, list[Path]] = field(default_factory=dict)
    pages: dict[str, PageConfig] = field(default_factory=dict)
    errors: dict[str, list[int]] = field(
        default_factory=lambda: {k: list(v) for k, v in DEFAULT_ERRORS.items()}
    )
    validate: bool = True
    delim_left: str = DEFAULT_DELIM_LEFT
    delim_right: str = DEFAULT_DELIM_RIGHT
    static_site: StaticSiteConfig = field(default_factory=StaticSiteConfig)
    base_dir: Path = field(default_factory=Path.cwd)


def parse_duration(value: Any) -> timedelta:
    """Parse a duration value.

    Args:
        value: A timedelta, a number of seconds, or a string made of
            number/unit groups such as "720h", "1h30m" or "45s".

    Returns:
        The duration as a timedelta.

    Raises:
        SiteConfigError: If the value cannot be parsed.

    Examples:
        >>> parse_duration("1h30m")
        datetime.timedelta(seconds=5400)
    """
    if value is None or value == "":
        return timedelta()
    if isinstance(value, timedelta):
        return value
    if isinstance(value, bool):
        raise SiteConfigError(f"invalid duration: {value!r}")
    if isinstance(value, (int, float)):
        return timedelta(seconds=value)
    text = str(value).strip()
    if re.fullmatch(r"\d+(?:\.\d+)?", text):
        return timedelta(seconds=float(text))
    pos = 0
    total = timedelta()
    for match in _DURATION_RE.finditer(text):
        if match.start() != pos:
            break
        total += float(match.group(1)) * _DURATION_UNITS[match.group(2)]
        pos = match.end()
    if pos == 0 or pos != len(text):
        raise SiteConfigError(f"invalid duration: {value!r}")
    return total


def load_site_config(path: Path | str) -> SiteConfig:
    """Load a site definition from a YAML file.

    Args:
        path: Path to the YAML file.

    Returns:
        SiteConfig with defaults applied and paths resolved against the
        file's directory.

    Raises:
        SiteConfigError: If the file is missing, not valid YAML or not a mapping.
    """
    path = Path(path)
    try:
        with open(path, encoding="utf-8") as f:
            loaded = yaml.safe_load(f)
    except OSError as exc:
        raise SiteConfigError(f"read site definition {path}: {exc}") from exc
    except yaml.YAMLError as exc:
        raise SiteConfigError(f"parse site definition {path}: {exc}") from exc
    if loaded is None:
        loaded = {}
    if not isinstance(loaded, dict):
        raise SiteConfigError(f"site definition {path} must be a mapping")
    return site_config_from_dict(loaded, base_dir=path.resolve().parent)


def site_config_from_dict(
    raw: Mapping[str, Any], base_dir: Path | None = None
) -> SiteConfig:
    """Build a SiteConfig from an already parsed mapping.

    Args:
        raw: Parsed YAML mapping.
        base_dir: Directory used to resolve relative paths, defaults to cwd.

    Returns:
        The populated SiteConfig.
    """
    base = base_dir or Path.cwd()
    config = SiteConfig(base_dir=base)

    config.cache_max_age = parse_duration(raw.get("cache_max_age"))
    config.metadata.update(_mapping(raw, "metadata"))
    config.reload = bool(raw.get("reload", config.reload))
    if raw.get("static"):
        config.static = _resolve(base, raw["static"])
    config.static_prefix = str(raw.get("static_prefix") or config.static_prefix)
    config.login = str(raw.get("login") or config.login)
    config.validate = bool(raw.get("validate", config.validate))
    config.delim_left = str(raw.get("delim_left") or config.delim_left)
    config.delim_right = str(raw.get("delim_right") or config.delim_right)

    for name, files in _mapping(raw, "layouts").items():
        config.layouts[str(name)] = [_resolve(base, f) for f in _list(files, name)]

    for name, page in _mapping(raw, "pages").items():
        if page is None:
            page = {}
        if not isinstance(page, Mapping):
            raise SiteConfigError(f"page {name}: definition must be a mapping")
        config.pages[str(name)] = _page_from_dict(page, base)

    for name, codes in _mapping(raw, "errors").items():
        try:
            config.errors[str(name)] = [int(c) for c in _list(codes, name)]
        except (TypeError, ValueError) as exc:
            raise SiteConfigError(f"errors: {name}: invalid status code") from exc

    config.static_site = _static_site_from_dict(_mapping(raw, "static_site"), base)
    return config


def _page_from_dict(raw: Mapping[str, Any], base: Path) -> PageConfig:
    return PageConfig(
        path=str(raw.get("path") or ""),
        layout=str(raw.get("layout") or ""),
        components=[_resolve(base, c) for c in _list(raw.get("components"), "components")],
        metadata=MetaData(raw.get("metadata") or {}),
        auth=bool(raw.get("auth", False)),
        delim_left=str(raw.get("delim_left") or ""),
        delim_right=str(raw.get("delim_right") or ""),
        data=raw.get("data"),
    )


def _static_site_from_dict(raw: Mapping[str, Any], base: Path) -> StaticSiteConfig:
    output = raw.get("output") or {}
    request = raw.get("request") or {}
    root_dir = _resolve(base, output.get("root_dir") or "public")
    static_dir = output.get("static_dir")
    return StaticSiteConfig(
        enable=bool(raw.get("enable", False)),
        output=StaticOutput(
            root_dir=root_dir,
            static_dir=_resolve(base, static_dir) if static_dir else root_dir / "static",
            keep=[str(k) for k in _list(output.get("keep"), "keep")],
        ),
        static=[_resolve(base, s) for s in _list(raw.get("static"), "static")],
        allowed_pages=[str(p) for p in _list(raw.get("allowed_pages"), "allowed_pages")],
        request=StaticRequest(
            host=str(request.get("host") or "localhost"),
            paths=[str(p) for p in _list(request.get("paths"), "paths")],
        ),
    )


def _mapping(raw: Mapping[str, Any], key: str) -> Mapping[str, Any]:
    value = raw.get(key)
    if value is None:
        return {}
    if not isinstance(value, Mapping):
        raise SiteConfigError(f"{key}: expected a mapping")
    return value


def _list(value: Any, key: Any) -> list[Any]:
    if value is None:
        return []
    if isinstance(value, (list, tuple)):
        return list(value)
    if isinstance(value, (str, int)):
        return [value]
    raise SiteConfigError(f"{key}: expected a list")


def _resolve(base: Path, value: Any) -> Path:
    path = Path(str(value)).expanduser()
    return path if path.is_absolute() else base / path
