"""Structural type descriptors built from classes and typing annotations."""

from __future__ import annotations

import collections.abc
import dataclasses
import operator
import types
from collections.abc import Callable
from dataclasses import dataclass, field
from enum import Enum
from typing import (
    Annotated,
    Any,
    ClassVar,
    Literal,
    NewType,
    Protocol,
    TypeAliasType,
    TypeVar,
    Union,
    get_args,
    get_origin,
    get_type_hints,
)

from treecodec.errors import ValueConversionError

NESTED_SEPARATOR = "+"
NAMESPACE_SEPARATOR = "."


class ContainerKind(Enum):
    """How the engine walks values of a type."""

    SCALAR = "scalar"
    ENUM = "enum"
    MAPPING = "mapping"
    SEQUENCE = "sequence"
    ARRAY = "array"  # fixed length, assigned by index
    RECORD = "record"


class ScalarDecoders(Protocol):
    """Lookup of decode functions for scalar types with a custom encoding."""

    def decoder(self, typ: type) -> Callable[[Any], Any] | None: ...


@dataclass(frozen=True)
class FieldDescriptor:
    """One publicly settable member of a record type."""

    name: str
    type: Any
    getter: Callable[[Any], Any] = field(repr=False, compare=False)
    setter: Callable[[Any, Any], None] = field(repr=False, compare=False)

    def get(self, obj: Any) -> Any:
        """Read this field from obj."""
        return self.getter(obj)

    def set(self, obj: Any, value: Any) -> None:
        """Assign this field on obj."""
        self.setter(obj, value)


@dataclass(frozen=True)
class TypeDescriptor:
    """Everything the engine needs to know about one type.

    Attributes:
        annotation: The class or typing annotation this was built from
        runtime_type: The runtime class behind the annotation (list for list[int])
        build_type: The class actually instantiated (list for Sequence[int])
        kind: How values of this type are walked
        name: Registered type name, written into the type key
        fields: Record members in declaration order
        key_type: Declared key type of a mapping
        element_type: Declared element type (sequence, array) or value type (mapping)
        element_types: Per-position element types of a fixed tuple
        is_generic: Whether the container declares its element type
        coerce: Scalar and enum conversion from a value tree node
        freeze: Converts a filled build instance into the final immutable value

    """

    annotation: Any
    runtime_type: type
    build_type: type
    kind: ContainerKind
    name: str
    fields: tuple[FieldDescriptor, ...] = ()
    key_type: Any = None
    element_type: Any = None
    element_types: tuple[Any, ...] = ()
    is_generic: bool = False
    coerce: Callable[[Any], Any] | None = field(default=None, compare=False)
    freeze: Callable[[Any], Any] | None = field(default=None, compare=False)
    _by_name: dict[str, FieldDescriptor] = field(
        init=False,
        repr=False,
        compare=False,
    )

    def __post_init__(self) -> None:
        object.__setattr__(self, "_by_name", {f.name: f for f in self.fields})

    def field(self, name: str) -> FieldDescriptor | None:
        """Return the field called name, or None."""
        return self._by_name.get(name)

    @property
    def is_sequence(self) -> bool:
        """Return True for growable sequences and fixed-length arrays."""
        return self.kind in (ContainerKind.SEQUENCE, ContainerKind.ARRAY)

    def element_type_at(self, index: int) -> Any:
        """Declared type of the element at index (arrays and sequences)."""
        if self.element_types:
            if index < len(self.element_types):
                return self.element_types[index]
            return None
        return self.element_type


# =============================================================================
# Naming
# =============================================================================


def type_name(cls: type) -> str:
    """Derive the registered name of a class.

    Module path and class are joined with ``.``; nested classes are joined
    with ``+``, so ``Outer.Inner`` in ``app.models`` is ``app.models.Outer+Inner``.
    Classes defined inside functions are named from their innermost scope.
    """
    qualname = cls.__qualname__
    if "<locals>." in qualname:
        qualname = qualname.rsplit("<locals>.", 1)[1]
    nested = qualname.replace(".", NESTED_SEPARATOR)
    return f"{cls.__module__}{NAMESPACE_SEPARATOR}{nested}"


# =============================================================================
# Annotation handling
# =============================================================================


def unwrap_annotation(tp: Any) -> Any:
    """Reduce an annotation to something describable, or None if unspecified.

    ``Any`` and ``object`` are unspecified. ``X | None`` becomes ``X``; other
    unions are unspecified because the value must then name its own type.
    """
    if tp is None or tp is Any or tp is object or tp is type(None):
        return None
    if isinstance(tp, TypeVar):
        bound = tp.__bound__
        return unwrap_annotation(bound) if bound is not None else None
    if isinstance(tp, TypeAliasType):
        return unwrap_annotation(tp.__value__)
    if isinstance(tp, NewType):
        return unwrap_annotation(tp.__supertype__)

    origin = get_origin(tp)
    if origin is Annotated:
        return unwrap_annotation(get_args(tp)[0])
    if isinstance(origin, TypeAliasType):
        substitutions = dict(zip(origin.__type_params__, get_args(tp), strict=True))
        return unwrap_annotation(
            substitute_type_params(origin.__value__, substitutions),
        )
    if isinstance(tp, types.UnionType) or origin is Union:
        options = [a for a in get_args(tp) if a is not type(None)]
        if len(options) == 1:
            return unwrap_annotation(options[0])
        return None
    if origin is Literal:
        values = get_args(tp)
        return type(values[0]) if values else None
    if origin is ClassVar:
        return None
    return tp


def substitute_type_params(type_expr: Any, substitutions: dict[Any, Any]) -> Any:
    """Recursively substitute type parameters in a type expression."""
    if not substitutions:
        return type_expr
    if type_expr in substitutions:
        return substitutions[type_expr]

    origin = get_origin(type_expr)
    args = get_args(type_expr)

    if origin is None or not args:
        return type_expr

    new_args = tuple(substitute_type_params(arg, substitutions) for arg in args)

    # UnionType (| operator) needs special reconstruction
    if isinstance(type_expr, types.UnionType):
        result = new_args[0]
        for arg in new_args[1:]:
            result = result | arg
        return result

    return origin[new_args]


# =============================================================================
# Scalar coercion
# =============================================================================

_TRUE_STRINGS = frozenset({"true", "1", "yes"})
_FALSE_STRINGS = frozenset({"false", "0", "no"})


def _conversion_error(value: Any, target: str) -> ValueConversionError:
    msg = f"Cannot convert {value!r} to {target}"
    return ValueConversionError(msg)


def to_bool(value: Any) -> bool:
    if isinstance(value, bool):
        return value
    if isinstance(value, int | float):
        return value != 0
    if isinstance(value, str):
        lowered = value.strip().lower()
        if lowered in _TRUE_STRINGS:
            return True
        if lowered in _FALSE_STRINGS:
            return False
    raise _conversion_error(value, "bool")


def to_int(value: Any) -> int:
    if isinstance(value, bool):
        return int(value)
    if isinstance(value, float):
        if value != value or value in (float("inf"), float("-inf")):
            raise _conversion_error(value, "int")
        return round(value)
    if isinstance(value, int):
        return value
    if isinstance(value, str):
        try:
            return int(value)
        except ValueError:
            try:
                return round(float(value))
            except (ValueError, OverflowError) as err:
                raise _conversion_error(value, "int") from err
    raise _conversion_error(value, "int")


def to_float(value: Any) -> float:
    if isinstance(value, bool | int | float):
        return float(value)
    if isinstance(value, str):
        try:
            return float(value)
        except ValueError as err:
            raise _conversion_error(value, "float") from err
    raise _conversion_error(value, "float")


def to_str(value: Any) -> str:
    if isinstance(value, str):
        return value
    if isinstance(value, bool):
        return "true" if value else "false"
    if isinstance(value, float) and value.is_integer():
        return str(int(value))
    if isinstance(value, int | float):
        return str(value)
    raise _conversion_error(value, "str")


_PRIMITIVE_COERCIONS: dict[type, Callable[[Any], Any]] = {
    bool: to_bool,
    int: to_int,
    float: to_float,
    str: to_str,
}


def enum_ordinal(member: Enum) -> int:
    """Integral ordinal of an enum member.

    Int-valued members use their value; others their declaration position.
    """
    if isinstance(member.value, int) and not isinstance(member.value, bool):
        return member.value
    return list(type(member)).index(member)


def enum_coercion[E: Enum](cls: type[E]) -> Callable[[Any], E]:
    """Build a converter from a value tree node to a member of cls.

    Strings match member names case-insensitively (or hold a numeric
    ordinal); everything else is taken as an ordinal.
    """
    members = list(cls)
    int_valued = all(
        isinstance(m.value, int) and not isinstance(m.value, bool) for m in members
    )

    def from_ordinal(ordinal: int) -> E:
        if int_valued:
            try:
                return cls(ordinal)
            except ValueError as err:
                raise _conversion_error(ordinal, cls.__name__) from err
        if 0 <= ordinal < len(members):
            return members[ordinal]
        raise _conversion_error(ordinal, cls.__name__)

    def coerce(value: Any) -> E:
        if isinstance(value, cls):
            return value
        if isinstance(value, str):
            wanted = value.strip().lower()
            for name, member in cls.__members__.items():
                if name.lower() == wanted:
                    return member
            try:
                return from_ordinal(int(wanted))
            except ValueError as err:
                raise _conversion_error(value, cls.__name__) from err
        return from_ordinal(to_int(value))

    return coerce


# =============================================================================
# Descriptor construction
# =============================================================================

# Abstract collection origins and the concrete class built for them
_ABSTRACT_MAPPINGS: dict[type, type] = {
    collections.abc.Mapping: dict,
    collections.abc.MutableMapping: dict,
}
_ABSTRACT_SEQUENCES: dict[type, type] = {
    collections.abc.Sequence: list,
    collections.abc.MutableSequence: list,
    collections.abc.Collection: list,
    collections.abc.Iterable: list,
    collections.abc.Set: set,
    collections.abc.MutableSet: set,
}


def describe_type(
    tp: Any,
    *,
    name_of: Callable[[type], str] = type_name,
    scalars: ScalarDecoders | None = None,
) -> TypeDescriptor | None:
    """Build the descriptor of a class or annotation.

    Args:
        tp: A class (``Point``) or annotation (``list[Point]``, ``Point | None``)
        name_of: Naming function for record types
        scalars: Decoders for scalar types with a custom encoding

    Returns:
        The descriptor, or None if the annotation leaves the type unspecified

    """
    annotation = unwrap_annotation(tp)
    if annotation is None:
        return None

    origin = get_origin(annotation)
    args = get_args(annotation)
    runtime_type = origin if origin is not None else annotation
    if not isinstance(runtime_type, type):
        return None

    def scalar(coerce: Callable[[Any], Any]) -> TypeDescriptor:
        return TypeDescriptor(
            annotation=annotation,
            runtime_type=runtime_type,
            build_type=runtime_type,
            kind=ContainerKind.SCALAR,
            name=name_of(runtime_type),
            coerce=coerce,
        )

    if scalars is not None and (decode := scalars.decoder(runtime_type)):
        return scalar(decode)

    if issubclass(runtime_type, Enum):
        return TypeDescriptor(
            annotation=annotation,
            runtime_type=runtime_type,
            build_type=runtime_type,
            kind=ContainerKind.ENUM,
            name=name_of(runtime_type),
            coerce=enum_coercion(runtime_type),
        )

    for primitive, coerce in _PRIMITIVE_COERCIONS.items():
        # bool before int: the dict keeps that order
        if issubclass(runtime_type, primitive):
            return scalar(coerce)

    if issubclass(runtime_type, bytes | bytearray):
        return scalar(lambda value: value)

    if issubclass(runtime_type, collections.abc.Mapping):
        return TypeDescriptor(
            annotation=annotation,
            runtime_type=runtime_type,
            build_type=_ABSTRACT_MAPPINGS.get(runtime_type, runtime_type),
            kind=ContainerKind.MAPPING,
            name=name_of(runtime_type),
            key_type=args[0] if len(args) == 2 else None,
            element_type=args[1] if len(args) == 2 else None,
            is_generic=len(args) == 2,
        )

    if issubclass(runtime_type, tuple) and not hasattr(runtime_type, "_fields"):
        return _describe_tuple(annotation, runtime_type, args, name_of)

    if issubclass(runtime_type, collections.abc.Iterable) and (
        runtime_type in _ABSTRACT_SEQUENCES
        or issubclass(
            runtime_type,
            collections.abc.MutableSequence | collections.abc.Set,
        )
    ):
        return _describe_sequence(annotation, runtime_type, args, name_of)

    return TypeDescriptor(
        annotation=annotation,
        runtime_type=runtime_type,
        build_type=runtime_type,
        kind=ContainerKind.RECORD,
        name=name_of(runtime_type),
        fields=record_fields(runtime_type, args),
    )


def _describe_tuple(
    annotation: Any,
    runtime_type: type,
    args: tuple[Any, ...],
    name_of: Callable[[type], str],
) -> TypeDescriptor:
    element_type = None
    element_types: tuple[Any, ...] = ()
    if len(args) == 2 and args[1] is Ellipsis:
        element_type = args[0]
    elif args:
        element_types = args
    return TypeDescriptor(
        annotation=annotation,
        runtime_type=runtime_type,
        build_type=list,
        kind=ContainerKind.ARRAY,
        name=name_of(runtime_type),
        element_type=element_type,
        element_types=element_types,
        is_generic=bool(args),
        freeze=runtime_type,
    )


def _describe_sequence(
    annotation: Any,
    runtime_type: type,
    args: tuple[Any, ...],
    name_of: Callable[[type], str],
) -> TypeDescriptor:
    build_type = _ABSTRACT_SEQUENCES.get(runtime_type, runtime_type)
    freeze = None
    # Immutable sets are filled as a set and frozen at the end
    if issubclass(build_type, collections.abc.Set) and not issubclass(
        build_type,
        collections.abc.MutableSet,
    ):
        freeze = build_type
        build_type = set
    return TypeDescriptor(
        annotation=annotation,
        runtime_type=runtime_type,
        build_type=build_type,
        kind=ContainerKind.SEQUENCE,
        name=name_of(runtime_type),
        element_type=args[0] if args else None,
        is_generic=bool(args),
        freeze=freeze,
    )


def _type_params(cls: type) -> tuple[Any, ...]:
    return getattr(cls, "__type_params__", ()) or getattr(cls, "__parameters__", ())


def record_fields(cls: type, args: tuple[Any, ...] = ()) -> tuple[FieldDescriptor, ...]:
    """Discover the publicly settable members of a record type.

    Dataclass fields (or, for plain classes, annotated attributes) come first
    in declaration order, followed by properties that have a setter. Names
    starting with an underscore and ClassVars are skipped. For a
    parameterized generic (``Box[int]``) type parameters are substituted.
    """
    hints = get_type_hints(cls)
    params = _type_params(cls)
    substitutions = dict(zip(params, args, strict=False)) if args else {}
    frozen = dataclasses.is_dataclass(cls) and cls.__dataclass_params__.frozen

    if dataclasses.is_dataclass(cls):
        names = [f.name for f in dataclasses.fields(cls)]
    else:
        names = [name for name, hint in hints.items() if get_origin(hint) is not ClassVar]

    result: list[FieldDescriptor] = []
    seen: set[str] = set()
    for name in names:
        if name.startswith("_"):
            continue
        seen.add(name)
        result.append(
            FieldDescriptor(
                name=name,
                type=substitute_type_params(hints.get(name), substitutions),
                getter=operator.attrgetter(name),
                setter=_setter(name, frozen=frozen),
            ),
        )

    for klass in reversed(cls.__mro__):
        for name, attr in vars(klass).items():
            if (
                name in seen
                or name.startswith("_")
                or not isinstance(attr, property)
                or attr.fset is None
            ):
                continue
            seen.add(name)
            returns = get_type_hints(attr.fget).get("return") if attr.fget else None
            result.append(
                FieldDescriptor(
                    name=name,
                    type=substitute_type_params(returns, substitutions),
                    getter=operator.attrgetter(name),
                    setter=_setter(name, frozen=False),
                ),
            )

    return tuple(result)


def _setter(name: str, *, frozen: bool) -> Callable[[Any, Any], None]:
    if frozen:
        # frozen dataclasses reject setattr
        def set_frozen(obj: Any, value: Any) -> None:
            object.__setattr__(obj, name, value)

        return set_frozen

    def set_attr(obj: Any, value: Any) -> None:
        setattr(obj, name, value)

    return set_attr
