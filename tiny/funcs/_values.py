"""Value helpers shared by the template functions.

Comparison follows template semantics rather than Python's: values are
grouped into basic kinds and values of different kinds never compare
equal, so ``True`` does not equal ``1`` and ``1`` does not equal ``1.0``.
"""

from __future__ import annotations

from collections.abc import Mapping
from enum import IntEnum
from typing import Any

from jinja2 import Undefined


class Kind(IntEnum):
    INVALID = 0
    BOOL = 1
    COMPLEX = 2
    INT = 3
    FLOAT = 4
    STRING = 5


class ComparisonError(TypeError):
    """Raised when two values cannot be compared."""


def basic_kind(value: Any) -> Kind:
    # bool is checked before int: it is an int subclass in Python.
    if isinstance(value, bool):
        return Kind.BOOL
    if isinstance(value, int):
        return Kind.INT
    if isinstance(value, float):
        return Kind.FLOAT
    if isinstance(value, complex):
        return Kind.COMPLEX
    if isinstance(value, str):
        return Kind.STRING
    return Kind.INVALID


def eq(first: Any, *others: Any) -> bool:
    """Report whether first equals any of the other values.

    Raises:
        ComparisonError: If no value to compare against is given, or the
            kinds of the values are incompatible.
    """
    if not others:
        raise ComparisonError("missing argument for comparison")
    first = indirect(first)
    k1 = basic_kind(first)
    for other in others:
        other = indirect(other)
        if first is None or other is None:
            truth = first is None and other is None
        elif k1 != basic_kind(other):
            raise ComparisonError("incompatible types for comparison")
        elif k1 is Kind.INVALID:
            try:
                truth = bool(first == other)
            except Exception as exc:
                raise ComparisonError(
                    f"uncomparable type {type(first).__name__}"
                ) from exc
        else:
            truth = first == other
        if truth:
            return True
    return False


def indirect(value: Any) -> Any:
    """Return None for undefined template values, the value otherwise."""
    if isinstance(value, Undefined):
        return None
    return value


def is_true(value: Any) -> bool:
    """Report whether value is meaningful in the template sense.

    None, False, zero numbers, empty strings and empty collections are not;
    undefined template variables are not; everything else is.
    """
    value = indirect(value)
    if value is None:
        return False
    if isinstance(value, (bool, int, float, complex, str, bytes)):
        return bool(value)
    if isinstance(value, Mapping):
        return len(value) > 0
    if hasattr(value, "__len__"):
        try:
            return len(value) > 0
        except TypeError:
            return True
    return True


def printable(value: Any) -> str:
    """String form used when functions need to stringify a value."""
    value = indirect(value)
    return "" if value is None else str(value)
