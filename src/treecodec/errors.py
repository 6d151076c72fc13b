"""Error kinds raised by the codec engine.

Every failure the engine can report is a subclass of CodecError and carries
an ErrorKind. The first four kinds are gated by CodecOptions flags; when the
matching flag is off the engine degrades to ``None`` instead of raising.
"""

from __future__ import annotations

from dataclasses import dataclass
from enum import Enum
from typing import Any


class ErrorKind(Enum):
    """Category of a codec failure."""

    UNEXPECTED_NULL = "unexpected_null"
    UNEXPECTED_COLLECTION = "unexpected_collection"
    SPURIOUS_FIELD = "spurious_field"
    UNKNOWN_TYPE = "unknown_type"
    UNCONSTRUCTIBLE_TYPE = "unconstructible_type"
    NOT_A_STRUCT = "not_a_struct"
    VALUE_CONVERSION = "value_conversion"
    INVALID_VALUE = "invalid_value"


class CodecError(Exception):
    """Base class for all serialization and deserialization failures."""

    kind: ErrorKind


class UnexpectedNullError(CodecError):
    """Serializing ``None`` while nulls are rejected."""

    kind = ErrorKind.UNEXPECTED_NULL


class UnexpectedCollectionError(CodecError):
    """A collection was expected but something else was found, or vice versa."""

    kind = ErrorKind.UNEXPECTED_COLLECTION

    def __init__(self, message: str, value: Any = None) -> None:
        super().__init__(message)
        self.value = value


class SpuriousFieldError(CodecError):
    """Input record has a key the target type has no field for."""

    kind = ErrorKind.SPURIOUS_FIELD

    def __init__(self, message: str, key: str, target: type) -> None:
        super().__init__(message)
        self.key = key
        self.target = target


class UnknownTypeError(CodecError):
    """An embedded type name could not be resolved."""

    kind = ErrorKind.UNKNOWN_TYPE

    def __init__(self, message: str, type_name: str) -> None:
        super().__init__(message)
        self.type_name = type_name


class UnconstructibleTypeError(CodecError):
    """No factory, no usable no-argument constructor, not array-like."""

    kind = ErrorKind.UNCONSTRUCTIBLE_TYPE

    def __init__(self, message: str, target: Any) -> None:
        super().__init__(message)
        self.target = target


class NotAStructError(CodecError):
    """A record type was asked to populate itself from a non-record value."""

    kind = ErrorKind.NOT_A_STRUCT


class ValueConversionError(CodecError):
    """A scalar could not be coerced to the requested type."""

    kind = ErrorKind.VALUE_CONVERSION


class ValueModelError(CodecError):
    """A tree contains something that is not a valid value."""

    kind = ErrorKind.INVALID_VALUE


@dataclass(frozen=True)
class DecodeResult:
    """Outcome of a deserialization that reports failure as a value."""

    value: Any = None
    error: CodecError | None = None

    @property
    def ok(self) -> bool:
        """Return True if deserialization succeeded."""
        return self.error is None

    @property
    def error_kind(self) -> ErrorKind | None:
        """Return the kind of the failure, if any."""
        return self.error.kind if self.error is not None else None

    def unwrap(self) -> Any:
        """Return the value, re-raising the stored error on failure."""
        if self.error is not None:
            raise self.error
        return self.value

    def __bool__(self) -> bool:
        return self.ok

    def __str__(self) -> str:
        if self.ok:
            return "DecodeResult: ok"
        return f"DecodeResult: {self.error_kind.value}: {self.error}"
