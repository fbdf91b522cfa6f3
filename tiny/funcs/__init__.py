"""Template function library.

Every function is installed on the Jinja environment both as a filter and
as a global. The names in GLOBAL_ONLY take no piped value and stay globals,
so Jinja's own ``map`` filter keeps working.

Key functions:
- func_map: All built-in functions by name.
- add_funcs: Merge functions into a mapping after validating them.
"""

from __future__ import annotations

from collections.abc import Callable, Mapping
from typing import Any

from .general import general_funcs
from .strings import string_funcs
from .times import time_funcs

__all__ = ["GLOBAL_ONLY", "add_funcs", "func_map"]

GLOBAL_ONLY = frozenset({"map", "uuid", "env", "coalesce"})


def func_map() -> dict[str, Callable[..., Any]]:
    """Return all built-in template functions."""
    funcs: dict[str, Callable[..., Any]] = {}
    add_funcs(funcs, general_funcs())
    add_funcs(funcs, string_funcs())
    add_funcs(funcs, time_funcs())
    return funcs


def add_funcs(
    out: dict[str, Callable[..., Any]], funcs: Mapping[str, Callable[..., Any]]
) -> None:
    """Add funcs to out, replacing functions with the same name.

    Raises:
        ValueError: If a name is not a valid identifier or a value is not callable.
    """
    for name, fn in funcs.items():
        if not _good_name(name):
            raise ValueError(f"{name!r} is not a good name")
        if not callable(fn):
            raise ValueError(f"{name!r} is not a good func")
        out[name] = fn


def _good_name(name: str) -> bool:
    return isinstance(name, str) and name.isidentifier()
