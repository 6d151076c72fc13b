"""Engine configuration."""

from __future__ import annotations

import dataclasses
import re
from collections.abc import Mapping
from dataclasses import dataclass
from typing import Any, Final

from treecodec.values import DEFAULT_TYPE_KEY

_CAMEL_CASE_BOUNDARY = re.compile(r"([a-z0-9])([A-Z])")

# Spellings accepted by from_mapping that the camel-case rule can't derive.
_ALIASES: Final[dict[str, str]] = {
    "TYPEKEY": "type_key",
}


@dataclass(frozen=True)
class CodecOptions:
    """Policy flags shared by every call on one engine.

    Attributes:
        skip_defaults_during_serialization: Omit record fields whose value
            equals the same field on the type's default instance.
        throw_error_on_spurious_data: Raise on input keys that match no field
            (otherwise they are ignored).
        throw_error_on_serializing_null: Raise when asked to serialize None
            (otherwise None serializes to None).
        throw_error_on_unexpected_collections: Raise when a collection was
            expected and something else was found (otherwise decode to None).
        throw_error_on_unknown_types: Raise when an embedded type name can't
            be resolved (otherwise decode to None).
        type_key: Reserved record key that carries a type name.

    """

    skip_defaults_during_serialization: bool = True
    throw_error_on_spurious_data: bool = True
    throw_error_on_serializing_null: bool = False
    throw_error_on_unexpected_collections: bool = True
    throw_error_on_unknown_types: bool = True
    type_key: str = DEFAULT_TYPE_KEY

    def __post_init__(self) -> None:
        if not isinstance(self.type_key, str) or not self.type_key:
            msg = "type_key must be a non-empty string"
            raise ValueError(msg)
        for f in dataclasses.fields(self):
            if f.name != "type_key" and not isinstance(getattr(self, f.name), bool):
                msg = f"Option '{f.name}' must be a bool"
                raise TypeError(msg)

    @classmethod
    def from_mapping(cls, data: Mapping[str, Any]) -> CodecOptions:
        """Build options from a mapping, e.g. a parsed config file section.

        Keys may be snake_case field names or their CamelCase spellings
        (``SkipDefaultsDuringSerialization``). Unknown keys are rejected.

        Raises:
            KeyError: If a key names no option
            TypeError: If a flag is not a bool

        """
        known = {f.name for f in dataclasses.fields(cls)}
        kwargs: dict[str, Any] = {}
        for key, value in data.items():
            name = _option_name(key)
            if name not in known:
                msg = f"Unknown codec option '{key}'. Known options: {sorted(known)}"
                raise KeyError(msg)
            kwargs[name] = value
        return cls(**kwargs)

    def with_changes(self, **changes: Any) -> CodecOptions:
        """Return a copy with some options replaced."""
        return dataclasses.replace(self, **changes)


def _option_name(key: str) -> str:
    if key in _ALIASES:
        return _ALIASES[key]
    return _CAMEL_CASE_BOUNDARY.sub(r"\1_\2", key).lower()
