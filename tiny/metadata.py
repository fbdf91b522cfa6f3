"""Page metadata helpers.

MetaData is a plain dict with typed accessors for the well-known SEO keys,
so templates can write ``[[ metadata.title ]]`` or ``[[ metadata.get_str("x") ]]``.
"""

from __future__ import annotations

from collections.abc import Mapping
from typing import Any

DEFAULT_METADATA: dict[str, Any] = {
    "lang": "en",
    "author": "tiny",
    "description": "Tiny",
    "domain": "localhost",
    "key_words": ["tiny"],
    "title": "Tiny",
    "type": "WebSite",
    "site_name": "Tiny",
    "version": "v0.0.1",
    "image": "",
    "base_url": "",
    "canonical_url": "",
}


class MetaData(dict):
    """Metadata of a site or a page."""

    def get_str(self, key: str) -> str:
        """Return the value for key as a string, or "" when missing."""
        if key not in self:
            return ""
        value = self[key]
        return "" if value is None else str(value)

    @property
    def version(self) -> str:
        return self.get_str("version")

    @property
    def lang(self) -> str:
        return self.get_str("lang")

    @property
    def site_name(self) -> str:
        return self.get_str("site_name")

    @property
    def title(self) -> str:
        return self.get_str("title")

    @property
    def domain(self) -> str:
        return self.get_str("domain")

    @property
    def base_url(self) -> str:
        return self.get_str("base_url")

    @property
    def canonical_url(self) -> str:
        return self.get_str("canonical_url")

    @property
    def author(self) -> str:
        return self.get_str("author")

    @property
    def type(self) -> str:
        return self.get_str("type")

    @property
    def image(self) -> str:
        return self.get_str("image")

    @property
    def description(self) -> str:
        return self.get_str("description")

    @property
    def key_words(self) -> list[str]:
        """Keywords as a list of strings.

        A list value is converted item by item, a scalar becomes a
        single-item list and a missing key gives an empty list.
        """
        if "key_words" not in self:
            return []
        value = self["key_words"]
        if isinstance(value, (list, tuple)):
            return [str(v) for v in value]
        return [str(value)]

    def set_version(self, value: str) -> None:
        self["version"] = value

    def set_lang(self, value: str) -> None:
        self["lang"] = value

    def set_site_name(self, value: str) -> None:
        self["site_name"] = value

    def set_title(self, value: str) -> None:
        self["title"] = value

    def set_domain(self, value: str) -> None:
        self["domain"] = value

    def set_base_url(self, value: str) -> None:
        self["base_url"] = value

    def set_canonical_url(self, value: str) -> None:
        self["canonical_url"] = value

    def set_key_words(self, *words: str) -> None:
        self["key_words"] = list(words)

    def set_author(self, value: str) -> None:
        self["author"] = value

    def set_type(self, value: str) -> None:
        self["type"] = value

    def set_image(self, value: str) -> None:
        self["image"] = value

    def set_description(self, value: str) -> None:
        self["description"] = value


def merge(page: Mapping[str, Any] | None, site: Mapping[str, Any]) -> MetaData:
    """Merge page metadata over site metadata.

    Args:
        page: Metadata declared on the page, may be None.
        site: Site-wide metadata used for keys the page does not define.

    Returns:
        A new MetaData; neither input is modified.
    """
    merged = MetaData(site)
    if page:
        merged.update(page)
    return merged
