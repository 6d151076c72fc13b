"""JSON format adapter."""

from __future__ import annotations

import json
from typing import TYPE_CHECKING, Any

from treecodec.values import normalize

if TYPE_CHECKING:
    from treecodec.serializer import Serializer


def to_json(
    serializer: Serializer,
    obj: Any,
    *,
    specify_type: bool = True,
    indent: int | None = 2,
) -> str:
    """Serialize an object to a JSON string.

    Args:
        serializer: Engine to convert obj with
        obj: The object to serialize
        specify_type: Write the top-level type name (default True)
        indent: JSON indentation level (default 2, None for compact)

    Returns:
        JSON string representation

    """
    tree = serializer.serialize(obj, specify_type)
    return json.dumps(tree, indent=indent)


def from_json(serializer: Serializer, s: str, target_type: Any = None) -> Any:
    """Deserialize a JSON string into an object.

    Args:
        serializer: Engine to convert the parsed tree with
        s: JSON string to deserialize
        target_type: Class or annotation to build, inferred if omitted

    Returns:
        Deserialized object

    Raises:
        json.JSONDecodeError: If string is not valid JSON
        CodecError: If the tree can't be deserialized

    """
    return serializer.deserialize(normalize(json.loads(s)), target_type)
