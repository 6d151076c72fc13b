"""Intermediate value tree shared by both codec directions.

A value tree is made of plain builtins so that any JSON reader or writer can
consume it directly: ``None``, ``bool``, ``float``, ``str``, ``list`` and
``dict`` with string keys. Numbers are always floats once produced by the
engine; ``normalize`` brings trees from external readers into that form.
"""

from __future__ import annotations

from collections.abc import Iterable
from enum import Enum
from numbers import Real
from typing import Any

from treecodec.errors import ValueModelError

type Scalar = None | bool | float | str
type Value = Scalar | list[Value] | dict[str, Value]

DEFAULT_TYPE_KEY = "#type"


class ValueKind(Enum):
    """Variant of a value tree node."""

    NULL = "null"
    BOOL = "bool"
    NUMBER = "number"
    STRING = "string"
    SEQUENCE = "sequence"
    RECORD = "record"


def kind_of(value: Any) -> ValueKind:
    """Classify a value tree node.

    Raises:
        ValueModelError: If value is not a value tree node

    """
    if value is None:
        return ValueKind.NULL
    # bool first: it is a subclass of int
    if isinstance(value, bool):
        return ValueKind.BOOL
    if isinstance(value, int | float):
        return ValueKind.NUMBER
    if isinstance(value, str):
        return ValueKind.STRING
    if isinstance(value, list):
        return ValueKind.SEQUENCE
    if isinstance(value, dict):
        return ValueKind.RECORD
    msg = f"Not a value tree node: {type(value).__name__}"
    raise ValueModelError(msg)


def is_scalar(value: Any) -> bool:
    """Return True for the canonical scalar kinds (bool, number, string)."""
    return isinstance(value, bool | int | float | str)


def is_record(value: Any) -> bool:
    """Return True if value is a record node."""
    return isinstance(value, dict)


def is_sequence(value: Any) -> bool:
    """Return True if value is a sequence node."""
    return isinstance(value, list)


def type_tag(value: Any, key: str = DEFAULT_TYPE_KEY) -> str | None:
    """Return the embedded type name of a record, if it has one."""
    if isinstance(value, dict):
        tag = value.get(key)
        if isinstance(tag, str):
            return tag
    return None


def number(x: Real) -> float:
    """Build a number node from any real number."""
    if isinstance(x, bool):
        msg = "Booleans are not numbers in a value tree"
        raise ValueModelError(msg)
    return float(x)


def sequence(items: Iterable[Value] = ()) -> list[Value]:
    """Build a sequence node."""
    return list(items)


def record(pairs: Iterable[tuple[str, Value]] = ()) -> dict[str, Value]:
    """Build a record node, keeping key order.

    Raises:
        ValueModelError: If a key is not a string

    """
    result: dict[str, Value] = {}
    for key, value in pairs:
        if not isinstance(key, str):
            msg = f"Record keys must be strings, got {type(key).__name__}"
            raise ValueModelError(msg)
        result[key] = value
    return result


def normalize(tree: Any) -> Value:
    """Validate a builtins tree and coerce it into canonical value form.

    Ints become floats and tuples become lists. Anything that cannot appear
    in a value tree raises.

    Args:
        tree: Output of an external reader (e.g. ``json.loads``)

    Returns:
        An equivalent, canonical value tree

    Raises:
        ValueModelError: If the tree contains non-value nodes or non-string keys

    """
    if tree is None or isinstance(tree, bool | str):
        return tree
    if isinstance(tree, int | float):
        return float(tree)
    if isinstance(tree, list | tuple):
        return [normalize(item) for item in tree]
    if isinstance(tree, dict):
        return record((key, normalize(item)) for key, item in tree.items())
    msg = f"Not a value tree node: {type(tree).__name__}"
    raise ValueModelError(msg)
