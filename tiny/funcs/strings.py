"""String template functions. The string being transformed comes first."""

from __future__ import annotations

from collections.abc import Callable
from typing import Any

from ._values import printable


def string_funcs() -> dict[str, Callable[..., Any]]:
    return {
        "upper": lambda s: printable(s).upper(),
        "lower": lambda s: printable(s).lower(),
        "string": printable,
        "trim": trim,
        "trim_left": lambda s, chars: printable(s).lstrip(chars),
        "trim_right": lambda s, chars: printable(s).rstrip(chars),
        "trim_prefix": trim_prefix,
        "trim_suffix": trim_suffix,
        "title": title,
        "fields": fields,
        "wc": lambda s: len(fields(s)),
        "has_prefix": lambda s, prefix: printable(s).startswith(prefix),
        "has_suffix": lambda s, suffix: printable(s).endswith(suffix),
        "replace": replace,
        "replace_all": lambda s, old, new: printable(s).replace(old, new),
        "count": count,
        "split": lambda s, sep: printable(s).split(sep),
        "split_n": split_n,
    }


def trim(s: Any, chars: str | None = None) -> str:
    """Strip chars (whitespace by default) from both ends."""
    return printable(s).strip(chars)


def trim_prefix(s: Any, prefix: str) -> str:
    return printable(s).removeprefix(prefix)


def trim_suffix(s: Any, suffix: str) -> str:
    return printable(s).removesuffix(suffix)


def title(s: Any) -> str:
    """Upper-case the first letter of each space separated word."""
    return " ".join(w[:1].upper() + w[1:] for w in printable(s).split(" "))


def fields(s: Any) -> list[str]:
    return printable(s).split()


def replace(s: Any, old: str, new: str, n: int = -1) -> str:
    """Replace the first n occurrences of old; all of them when n < 0."""
    return printable(s).replace(old, new, n if n is not None and n >= 0 else -1)


def count(s: Any, sub: str | None = None) -> int:
    """Count non-overlapping occurrences of sub.

    Without sub, return the length of the value, matching Jinja's count.
    """
    if sub is None:
        return len(s)
    return printable(s).count(sub)


def split_n(s: Any, sep: str, n: int) -> list[str]:
    """Split into at most n parts; n < 0 means no limit and n == 0 gives []."""
    if n == 0:
        return []
    return printable(s).split(sep, n - 1 if n > 0 else -1)
