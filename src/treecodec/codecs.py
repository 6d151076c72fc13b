"""Encode/decode pairs for scalar types without a native value tree form."""

from __future__ import annotations

import base64
from collections.abc import Callable
from datetime import date, datetime, time, timedelta
from decimal import Decimal
from typing import Any
from uuid import UUID

import structlog

logger = structlog.get_logger(__name__)

type Encoder[T] = Callable[[T], Any]
type Decoder[T] = Callable[[Any], T]


class ScalarCodecs:
    """Registry of scalar codecs for one engine.

    A codec turns a value into a value tree scalar (usually a string or a
    number) and back. Decoding is driven by the declared target type, so an
    encoded value carries no tag: without a target type it stays a plain
    string or number.

    Usage:
        codecs = ScalarCodecs.with_builtins()
        codecs.register(
            Money,
            encode=lambda m: f"{m.amount} {m.currency}",
            decode=Money.parse,
        )
    """

    def __init__(self) -> None:
        self._registry: dict[type, tuple[Encoder[Any], Decoder[Any]]] = {}

    @classmethod
    def with_builtins(cls) -> ScalarCodecs:
        """Create a registry pre-populated with the standard library types."""
        codecs = cls()
        _register_builtins(codecs)
        return codecs

    def register[T](
        self,
        typ: type[T],
        encode: Encoder[T],
        decode: Decoder[T],
    ) -> None:
        """Register encode/decode functions for a scalar type.

        Args:
            typ: The type to register (e.g., datetime)
            encode: Function to convert T to a value tree scalar
            decode: Function to convert a value tree scalar back to T

        """
        self._registry[typ] = (encode, decode)
        logger.debug("scalar_codec_registered", type=typ.__qualname__)

    def unregister(self, typ: type) -> bool:
        """Unregister a type's codec.

        Returns:
            True if the type was registered and removed, False otherwise.

        """
        if typ in self._registry:
            del self._registry[typ]
            return True
        return False

    def get[T](self, typ: type[T]) -> tuple[Encoder[T], Decoder[T]] | None:
        """Get codec for type, or None if not registered."""
        return self._registry.get(typ)

    def encoder(self, typ: type) -> Encoder[Any] | None:
        """Get the encode function for exactly typ."""
        codec = self._registry.get(typ)
        return codec[0] if codec is not None else None

    def decoder(self, typ: type) -> Decoder[Any] | None:
        """Get the decode function for exactly typ."""
        codec = self._registry.get(typ)
        return codec[1] if codec is not None else None

    def clear(self) -> None:
        """Remove every codec, builtins included."""
        self._registry.clear()

    def __contains__(self, typ: object) -> bool:
        return typ in self._registry


def _decode_bytes(value: Any) -> bytes:
    if isinstance(value, bytes):
        return value
    return base64.b64decode(value)


def _register_builtins(codecs: ScalarCodecs) -> None:
    """Pre-register codecs for standard library scalar types."""
    codecs.register(
        bytes,
        encode=lambda b: base64.b64encode(b).decode("ascii"),
        decode=_decode_bytes,
    )

    codecs.register(
        datetime,
        encode=lambda dt: dt.isoformat(),
        decode=datetime.fromisoformat,
    )

    codecs.register(
        date,
        encode=lambda d: d.isoformat(),
        decode=date.fromisoformat,
    )

    codecs.register(
        time,
        encode=lambda t: t.isoformat(),
        decode=time.fromisoformat,
    )

    codecs.register(
        timedelta,
        encode=lambda td: td.total_seconds(),
        decode=lambda s: timedelta(seconds=float(s)),
    )

    codecs.register(
        Decimal,
        encode=str,
        decode=lambda s: Decimal(str(s)),
    )

    codecs.register(
        UUID,
        encode=str,
        decode=UUID,
    )
