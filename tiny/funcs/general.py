"""General purpose template functions.

All functions take the piped value first so they work as Jinja filters,
e.g. ``[[ title|default("Untitled") ]]`` or ``[[ tags|has("python") ]]``.
"""

from __future__ import annotations

import os
import uuid as _uuid
from collections.abc import Callable, Mapping
from typing import Any

from markupsafe import Markup

from ._values import ComparisonError, eq, indirect, is_true, printable

_SIZE_UNITS = (
    (1 << 10, "bytes", 1),
    (1 << 20, "KB", 1 << 10),
    (1 << 30, "MB", 1 << 20),
    (1 << 40, "GB", 1 << 30),
    (1 << 50, "TB", 1 << 40),
)


def general_funcs() -> dict[str, Callable[..., Any]]:
    return {
        "is_empty": is_empty,
        "default": default,
        "ternary": ternary,
        "coalesce": coalesce,
        "env": env,
        "has": has,
        "has_any": has_any,
        "file_size": file_size,
        "uuid": uuid,
        "repeat": repeat,
        "join": join,
        "eq_any": eq_any,
        "deep_eq": deep_eq,
        "map": make_map,
        "safe_html": safe_html,
    }


def is_empty(value: Any) -> bool:
    """Report whether value holds nothing meaningful."""
    return not is_true(value)


def default(value: Any, default_value: Any = "") -> Any:
    """Return default_value when value is empty, value otherwise."""
    if is_empty(value):
        return default_value
    return value


def ternary(value: Any, yes: Any, no: Any) -> Any:
    """Return yes when value is meaningful, no otherwise."""
    return yes if is_true(value) else no


def coalesce(*values: Any) -> Any:
    """Return the first meaningful value, or None."""
    for value in values:
        if is_true(value):
            return value
    return None


def env(name: str) -> str:
    return os.environ.get(name, "")


def safe_html(text: Any) -> Markup:
    return Markup(printable(text))


def uuid() -> str:
    return str(_uuid.uuid4())


def deep_eq(first: Any, second: Any) -> bool:
    return indirect(first) == indirect(second)


def eq_any(value: Any, *values: Any) -> bool:
    """Report whether value equals one of values.

    Values of incompatible kinds are skipped rather than raising.
    """
    for candidate in values:
        try:
            if eq(value, candidate):
                return True
        except ComparisonError:
            continue
    return False


def repeat(value: Any, count: int) -> str:
    """Repeat the string form of value count times."""
    return printable(value) * int(count)


def join(value: Any, sep: str = "", *more: Any) -> str:
    """Join the string form of values with sep.

    Strings are joined whole. Lists, tuples and sets contribute each item,
    mappings contribute each value. A None value yields an empty string.

    Examples:
        >>> join([1, 2], ",", 3)
        '1,2,3'
    """
    parts: list[str] = []
    for item in (value, *more):
        item = indirect(item)
        if item is None:
            return ""
        if isinstance(item, str):
            parts.append(item)
        elif isinstance(item, Mapping):
            parts.extend(printable(v) for v in item.values())
        elif isinstance(item, (list, tuple, set, frozenset)):
            parts.extend(printable(v) for v in item)
        else:
            parts.append(printable(item))
    return str(sep).join(parts)


def has(collection: Any, *values: Any) -> bool:
    """Report whether every value is in the collection.

    The collection may be a string (substring check on the string form of
    each value), a list/tuple/set, or a mapping (checks its values).
    """
    return all(_contains(collection, v) for v in values)


def has_any(collection: Any, *values: Any) -> bool:
    """Report whether at least one value is in the collection."""
    return any(_contains(collection, v) for v in values)


def _contains(collection: Any, value: Any) -> bool:
    collection = indirect(collection)
    if collection is None:
        return False
    value = indirect(value)
    if isinstance(collection, str):
        return printable(value) in collection
    if isinstance(collection, Mapping):
        items = collection.values()
    elif isinstance(collection, (list, tuple, set, frozenset)):
        items = collection
    else:
        return False
    for item in items:
        item = indirect(item)
        if item is None and value is None:
            return True
        try:
            if eq(value, item):
                return True
        except ComparisonError:
            continue
    return False


def file_size(value: Any) -> str:
    """Return a human readable file size, e.g. "2 KB" or "1.5 MB".

    Non-numeric values give an empty string.
    """
    value = indirect(value)
    if isinstance(value, bool) or not isinstance(value, (int, float)):
        return ""
    size = float(value)
    for limit, suffix, unit in _SIZE_UNITS:
        if size < limit:
            return _format_size(size / unit, suffix)
    return _format_size(size / (1 << 50), "PB")


def _format_size(size: float, suffix: str) -> str:
    return f"{size:.1f} {suffix}".replace(".0", "")


def make_map(*pairs: Any) -> dict[str, Any]:
    """Build a dict from alternating keys and values.

    A trailing key without a value maps to an empty string.
    """
    result: dict[str, Any] = {}
    for i in range(0, len(pairs), 2):
        key = printable(pairs[i])
        result[key] = pairs[i + 1] if i + 1 < len(pairs) else ""
    return result
