"""Recursive serializer between typed object graphs and value trees.

Serialization walks an object and emits a value tree. Record types write
their public fields in declaration order and, when default diffing is on,
skip fields equal to the same field on a default instance of the type.
Deserialization walks a value tree guided by a target type, inferring the
type from the embedded type key when one is present.

A record written with ``specify_type=True`` carries its type name under the
type key. Field values are written without a type key: their declared type
is assumed to pin down their runtime type. A field annotated with a
concrete class that holds a subclass instance therefore comes back as the
declared class. Elements of containers whose declared type has no element
parameter (a bare ``list``, or a runtime value with no declared type) do get
a type key.

Structures must be trees. Cycles are not detected and recurse until the
interpreter's recursion limit is hit.
"""

from __future__ import annotations

import numbers
from enum import Enum
from typing import Any, Self

import structlog

from treecodec.codecs import ScalarCodecs
from treecodec.errors import (
    CodecError,
    DecodeResult,
    NotAStructError,
    SpuriousFieldError,
    UnexpectedCollectionError,
    UnexpectedNullError,
    UnknownTypeError,
    ValueConversionError,
)
from treecodec.options import CodecOptions
from treecodec.registry import Factory, TypeCatalog, TypeRegistry
from treecodec.types import ContainerKind, TypeDescriptor, enum_ordinal
from treecodec.values import Value, is_scalar


class Serializer:
    """Serializes typed structures into value trees and back.

    Usage:
        serializer = Serializer()
        tree = serializer.serialize(config, specify_type=True)
        restored = serializer.deserialize(tree)

    One instance owns its caches; it is not safe for concurrent use.
    """

    def __init__(
        self,
        options: CodecOptions | None = None,
        *,
        catalog: TypeCatalog | None = None,
        scalars: ScalarCodecs | None = None,
        logger: Any | None = None,
    ) -> None:
        self.options = options if options is not None else CodecOptions()
        self._logger = logger if logger is not None else structlog.get_logger(__name__)
        self.registry = TypeRegistry(catalog, scalars, logger=self._logger)

    def close(self) -> None:
        """Release every cache held by this engine."""
        self.registry.clear()

    def __enter__(self) -> Self:
        return self

    def __exit__(self, *exc_info: object) -> None:
        self.close()

    # =========================================================================
    # Registration
    # =========================================================================

    def register_factory(self, tp: Any, factory: Factory) -> None:
        """Construct tp with factory instead of its no-argument constructor."""
        self.registry.register_factory(tp, factory)

    def unregister_factory(self, tp: Any) -> None:
        self.registry.unregister_factory(tp)

    def add_implicit_namespace(self, prefix: str, *, is_namespace: bool = True) -> None:
        """Let short type names resolve within prefix (searched in add order)."""
        self.registry.add_implicit_namespace(prefix, is_namespace=is_namespace)

    def remove_implicit_namespace(self, prefix: str) -> None:
        self.registry.remove_implicit_namespace(prefix)

    # =========================================================================
    # Serialize
    # =========================================================================

    def serialize(
        self,
        value: Any,
        specify_type: bool = False,
        *,
        as_type: Any = None,
    ) -> Value:
        """Convert an object into a value tree.

        Args:
            value: Object to serialize
            specify_type: Write the type name into the top-level record
            as_type: Declared type of value; a container annotation with an
                element type (``list[Point]``) keeps element type keys out

        Returns:
            A value tree of None, bool, float, str, list and dict nodes

        Raises:
            UnexpectedNullError: If value is None and nulls are rejected
            UnconstructibleTypeError: If a default instance is needed but
                can't be built
            ValueConversionError: If a number is out of float range or the
                value has no value tree form

        """
        if value is None:
            if self.options.throw_error_on_serializing_null:
                msg = "Serializer encountered an unexpected null"
                raise UnexpectedNullError(msg)
            return None

        # enums are written as their integral ordinal, even str and int enums
        if isinstance(value, Enum):
            return float(enum_ordinal(value))

        # booleans and strings are returned as is
        if isinstance(value, bool | str):
            return value

        if isinstance(value, int | float):
            return _to_number(value)

        if encode := self.registry.scalars.encoder(type(value)):
            return encode(value)

        # other reals (Fraction, numpy scalars) without a codec
        if isinstance(value, numbers.Real):
            return _to_number(value)

        descriptor = self.registry.describe(type(value))
        if descriptor is None:
            msg = f"Cannot serialize object of type {type(value).__name__}"
            raise ValueConversionError(msg)

        # containers without a declared element type tag their elements
        declared = self.registry.describe(as_type) if as_type is not None else None
        specify_elements = declared is None or not declared.is_generic

        if descriptor.kind is ContainerKind.MAPPING:
            element_type = declared.element_type if declared is not None else None
            return {
                _encode_key(key): self.serialize(
                    entry,
                    specify_elements,
                    as_type=element_type,
                )
                for key, entry in value.items()
            }

        if descriptor.is_sequence:
            return [
                self.serialize(
                    element,
                    specify_elements,
                    as_type=declared.element_type_at(i) if declared is not None else None,
                )
                for i, element in enumerate(value)
            ]

        return self._serialize_record(value, descriptor, specify_type)

    def _serialize_record(
        self,
        value: Any,
        descriptor: TypeDescriptor,
        specify_type: bool,
    ) -> dict[str, Value]:
        result: dict[str, Value] = {}
        if specify_type:
            result[self.options.type_key] = descriptor.name

        skip_defaults = self.options.skip_defaults_during_serialization
        default = (
            self.registry.get_default_instance(descriptor.runtime_type)
            if skip_defaults and descriptor.fields
            else None
        )

        for field in descriptor.fields:
            raw = field.get(value)
            if skip_defaults and (raw is None or raw == field.get(default)):
                continue
            result[field.name] = self.serialize(raw, False, as_type=field.type)

        return result

    # =========================================================================
    # Deserialize
    # =========================================================================

    def deserialize(self, value: Value, target_type: Any = None) -> Any:
        """Convert a value tree into an object.

        Args:
            value: Value tree, e.g. the output of a JSON reader
            target_type: Class or annotation to build; None, ``Any`` or
                ``object`` means infer it from the type key

        Returns:
            The deserialized object, or None where a policy flag degraded
            a failure

        Raises:
            UnknownTypeError: Embedded type name can't be resolved
            UnexpectedCollectionError: Collection kind mismatch
            SpuriousFieldError: Input key matches no field of the target
            NotAStructError: Record target fed a non-record value
            UnconstructibleTypeError: Target can't be instantiated
            ValueConversionError: Scalar can't be coerced to the target

        """
        if value is None:
            return None

        descriptor = self.registry.describe(target_type) if target_type is not None else None

        # enums and primitives are converted directly
        if descriptor is not None and descriptor.kind in (
            ContainerKind.ENUM,
            ContainerKind.SCALAR,
        ):
            if not is_scalar(value):
                return self._unexpected_collection(
                    f"Deserializer found a collection where {descriptor.name} expected",
                    value,
                )
            return self._coerce(value, descriptor)

        if is_scalar(value) and descriptor is None:
            return value

        # the type key overrides the target type
        if descriptor is None or self._has_type_key(value):
            descriptor = self._infer_type(value)
            if descriptor is None:
                return None

        size = len(value) if isinstance(value, list) else 0
        instance = self.registry.create_instance(descriptor.annotation, size)

        if descriptor.kind is ContainerKind.MAPPING:
            return self._deserialize_mapping(value, descriptor, instance)
        if descriptor.is_sequence:
            return self._deserialize_sequence(value, descriptor, instance)

        self._deserialize_record(value, descriptor, instance)
        return instance

    def _deserialize_mapping(
        self,
        value: Value,
        descriptor: TypeDescriptor,
        instance: Any,
    ) -> Any:
        if not isinstance(value, dict):
            return self._unexpected_collection(
                f"Deserializer found value where a record was expected: {value!r}",
                value,
            )

        key_descriptor = (
            self.registry.describe(descriptor.key_type)
            if descriptor.key_type is not None
            else None
        )
        for key, entry in value.items():
            typed_key = self._coerce(key, key_descriptor) if key_descriptor else key
            instance[typed_key] = self.deserialize(entry, descriptor.element_type)
        return instance

    def _deserialize_sequence(
        self,
        value: Value,
        descriptor: TypeDescriptor,
        instance: Any,
    ) -> Any:
        if not isinstance(value, list):
            return self._unexpected_collection(
                f"Deserializer found value where a sequence was expected: {value!r}",
                value,
            )

        if descriptor.kind is ContainerKind.ARRAY:
            for i, element in enumerate(value):
                instance[i] = self.deserialize(element, descriptor.element_type_at(i))
        else:
            add = instance.add if hasattr(instance, "add") else instance.append
            for element in value:
                add(self.deserialize(element, descriptor.element_type))

        if descriptor.freeze is not None:
            return descriptor.freeze(instance)
        return instance

    def _deserialize_record(
        self,
        value: Value,
        descriptor: TypeDescriptor,
        instance: Any,
    ) -> None:
        """Populate a record instance field by field from a record node."""
        if not isinstance(value, dict):
            if self.options.throw_error_on_spurious_data:
                msg = (
                    f"Deserializer can't populate {descriptor.name} from a "
                    f"non-record value: {value!r}"
                )
                raise NotAStructError(msg)
            self._logger.debug("non_record_ignored", target=descriptor.name)
            return

        type_key = self.options.type_key
        for key, entry in value.items():
            if key == type_key:
                continue
            field = descriptor.field(key)
            if field is not None:
                field.set(instance, self.deserialize(entry, field.type))
            elif self.options.throw_error_on_spurious_data:
                msg = (
                    f"Deserializer found key in data but not in class, "
                    f"key={key}, class={descriptor.name}"
                )
                raise SpuriousFieldError(msg, key, descriptor.runtime_type)
            else:
                self._logger.debug(
                    "spurious_field_ignored",
                    key=key,
                    target=descriptor.name,
                )

    # =========================================================================
    # Helpers
    # =========================================================================

    def clone[T](self, value: T, target_type: Any = None) -> T:
        """Deep-copy value through its value tree representation."""
        return self.deserialize(self.serialize(value, True), target_type)

    def try_deserialize(self, value: Value, target_type: Any = None) -> DecodeResult:
        """Deserialize, reporting a CodecError as a result instead of raising."""
        try:
            return DecodeResult(value=self.deserialize(value, target_type))
        except CodecError as err:
            return DecodeResult(error=err)

    def _has_type_key(self, value: Any) -> bool:
        return isinstance(value, dict) and self.options.type_key in value

    def _infer_type(self, value: Value) -> TypeDescriptor | None:
        """Pick the type of an untargeted structured value.

        A type key is resolved through the registry; otherwise records become
        dicts and sequences lists. Scalars have no type.
        """
        if self._has_type_key(value):
            name = value[self.options.type_key]
            descriptor = (
                self.registry.resolve_type_name(name) if isinstance(name, str) else None
            )
            if descriptor is not None:
                return descriptor
            if self.options.throw_error_on_unknown_types:
                msg = f"Serializer could not find type information for {name!r}"
                raise UnknownTypeError(msg, str(name))
            self._logger.debug("unknown_type_ignored", type_name=name)
            return None

        if isinstance(value, dict):
            return self.registry.describe(dict)
        if isinstance(value, list):
            return self.registry.describe(list)
        return None

    def _coerce(self, value: Any, descriptor: TypeDescriptor) -> Any:
        if descriptor.coerce is None:
            return value
        try:
            return descriptor.coerce(value)
        except ValueConversionError:
            raise
        except (TypeError, ValueError, ArithmeticError) as err:
            msg = f"Cannot convert {value!r} to {descriptor.name}"
            raise ValueConversionError(msg) from err

    def _unexpected_collection(self, msg: str, value: Any) -> None:
        if self.options.throw_error_on_unexpected_collections:
            raise UnexpectedCollectionError(msg, value)
        self._logger.debug("unexpected_collection_ignored", value_type=type(value).__name__)
        return None


def _encode_key(key: Any) -> str:
    """Record keys are strings; enum keys are written by member name."""
    if isinstance(key, str):
        return key
    if isinstance(key, Enum):
        return key.name
    if isinstance(key, bool):
        return "true" if key else "false"
    return str(key)


def _to_number(value: numbers.Real) -> float:
    try:
        return float(value)
    except OverflowError as err:
        msg = f"Number {value!r} is out of range for a value tree"
        raise ValueConversionError(msg) from err
