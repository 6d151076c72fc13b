"""Tests for treecodec.types module."""


from collections import deque
from collections.abc import Mapping, Sequence
from dataclasses import dataclass
from enum import Enum, IntEnum
from typing import Annotated, Any, ClassVar, Literal, NewType

import pytest

from treecodec.errors import ValueConversionError
from treecodec.types import (
    ContainerKind,
    describe_type,
    enum_coercion,
    enum_ordinal,
    to_bool,
    to_float,
    to_int,
    to_str,
    type_name,
    unwrap_annotation,
)

UserId = NewType("UserId", int)

type Pair[T] = tuple[T, T]


class Suit(Enum):
    CLUBS = "c"
    HEARTS = "h"


class Level(IntEnum):
    LOW = 10
    HIGH = 20


@dataclass
class Item:
    label: str = ""
    weight: float = 0.0
    kind: ClassVar[str] = "item"
    _cache: dict[str, int] | None = None


@dataclass
class Box[T]:
    item: T | None = None
    items: list[T] | None = None


class Plain:
    name: str = ""
    count: int = 0
    _hidden: int = 0
    registry: ClassVar[dict[str, int]] = {}

    @property
    def doubled(self) -> int:
        return self.count * 2

    @doubled.setter
    def doubled(self, value: int) -> None:
        self.count = value // 2

    @property
    def read_only(self) -> str:
        return self.name


class Outer:
    class Inner:
        pass


# =============================================================================
# Naming
# =============================================================================


class TestTypeName:
    """Test type_name()."""

    def test_top_level_class(self) -> None:
        assert type_name(Item) == f"{__name__}.Item"

    def test_nested_class_uses_plus(self) -> None:
        assert type_name(Outer.Inner) == f"{__name__}.Outer+Inner"

    def test_local_class(self) -> None:
        class Local:
            pass

        assert type_name(Local) == f"{__name__}.Local"


# =============================================================================
# Annotations
# =============================================================================


class TestUnwrapAnnotation:
    """Test unwrap_annotation()."""

    @pytest.mark.parametrize("tp", [None, Any, object, type(None)])
    def test_unspecified(self, tp: Any) -> None:
        assert unwrap_annotation(tp) is None

    def test_optional(self) -> None:
        assert unwrap_annotation(Item | None) is Item

    def test_ambiguous_union(self) -> None:
        assert unwrap_annotation(Item | Plain) is None

    def test_annotated(self) -> None:
        assert unwrap_annotation(Annotated[int, "meta"]) is int

    def test_new_type(self) -> None:
        assert unwrap_annotation(UserId) is int

    def test_literal(self) -> None:
        assert unwrap_annotation(Literal["a", "b"]) is str

    def test_generic_type_alias(self) -> None:
        assert unwrap_annotation(Pair[int]) == tuple[int, int]


# =============================================================================
# Descriptors
# =============================================================================


class TestDescribeScalars:
    """Test describe_type() with scalar and enum types."""

    @pytest.mark.parametrize("tp", [bool, int, float, str])
    def test_primitives(self, tp: type) -> None:
        descriptor = describe_type(tp)

        assert descriptor is not None
        assert descriptor.kind is ContainerKind.SCALAR
        assert descriptor.coerce is not None

    def test_bool_is_not_coerced_as_int(self) -> None:
        descriptor = describe_type(bool)

        assert descriptor is not None
        assert descriptor.coerce is not None
        assert descriptor.coerce(2.0) is True

    def test_enum(self) -> None:
        descriptor = describe_type(Level)

        assert descriptor is not None
        assert descriptor.kind is ContainerKind.ENUM

    def test_unspecified_is_none(self) -> None:
        assert describe_type(Any) is None


class TestDescribeCollections:
    """Test describe_type() with collection annotations."""

    def test_generic_list(self) -> None:
        descriptor = describe_type(list[int])

        assert descriptor is not None
        assert descriptor.kind is ContainerKind.SEQUENCE
        assert descriptor.element_type is int
        assert descriptor.is_generic

    def test_bare_list(self) -> None:
        descriptor = describe_type(list)

        assert descriptor is not None
        assert descriptor.kind is ContainerKind.SEQUENCE
        assert descriptor.element_type is None
        assert not descriptor.is_generic
        assert descriptor.is_sequence

    def test_deque(self) -> None:
        descriptor = describe_type(deque[str])

        assert descriptor is not None
        assert descriptor.kind is ContainerKind.SEQUENCE
        assert descriptor.build_type is deque

    def test_dict(self) -> None:
        descriptor = describe_type(dict[str, Item])

        assert descriptor is not None
        assert not descriptor.is_sequence
        assert descriptor.kind is ContainerKind.MAPPING
        assert descriptor.key_type is str
        assert descriptor.element_type is Item

    def test_abstract_mapping_builds_dict(self) -> None:
        descriptor = describe_type(Mapping[str, int])

        assert descriptor is not None
        assert descriptor.build_type is dict

    def test_abstract_sequence_builds_list(self) -> None:
        descriptor = describe_type(Sequence[int])

        assert descriptor is not None
        assert descriptor.kind is ContainerKind.SEQUENCE
        assert descriptor.build_type is list

    def test_homogeneous_tuple(self) -> None:
        descriptor = describe_type(tuple[int, ...])

        assert descriptor is not None
        assert descriptor.kind is ContainerKind.ARRAY
        assert descriptor.element_type_at(5) is int
        assert descriptor.is_sequence

    def test_heterogeneous_tuple(self) -> None:
        descriptor = describe_type(tuple[int, str])

        assert descriptor is not None
        assert descriptor.element_types == (int, str)
        assert descriptor.element_type_at(1) is str
        assert descriptor.element_type_at(2) is None

    def test_frozenset_is_built_as_set(self) -> None:
        descriptor = describe_type(frozenset[int])

        assert descriptor is not None
        assert descriptor.build_type is set
        assert descriptor.freeze is frozenset


class TestDescribeRecords:
    """Test describe_type() with record types."""

    def test_dataclass_fields_in_order(self) -> None:
        descriptor = describe_type(Item)

        assert descriptor is not None
        assert descriptor.kind is ContainerKind.RECORD
        assert [f.name for f in descriptor.fields] == ["label", "weight"]
        assert descriptor.field("weight").type is float

    def test_private_and_classvar_members_are_skipped(self) -> None:
        descriptor = describe_type(Item)

        assert descriptor is not None
        assert descriptor.field("_cache") is None
        assert descriptor.field("kind") is None

    def test_plain_class_members_and_properties(self) -> None:
        descriptor = describe_type(Plain)

        assert descriptor is not None
        assert [f.name for f in descriptor.fields] == ["name", "count", "doubled"]
        assert descriptor.field("doubled").type is int

    def test_field_accessors(self) -> None:
        descriptor = describe_type(Plain)
        assert descriptor is not None
        obj = Plain()

        descriptor.field("doubled").set(obj, 8)

        assert obj.count == 4
        assert descriptor.field("count").get(obj) == 4

    def test_generic_record_substitutes_parameters(self) -> None:
        descriptor = describe_type(Box[int])

        assert descriptor is not None
        assert descriptor.runtime_type is Box
        assert unwrap_annotation(descriptor.field("item").type) is int
        assert unwrap_annotation(descriptor.field("items").type) == list[int]

    def test_custom_name_function(self) -> None:
        descriptor = describe_type(Item, name_of=lambda cls: cls.__name__.lower())

        assert descriptor is not None
        assert descriptor.name == "item"


# =============================================================================
# Coercion
# =============================================================================


class TestCoercion:
    """Test scalar conversion helpers."""

    def test_to_int_rounds_half_to_even(self) -> None:
        assert to_int(2.5) == 2
        assert to_int(3.5) == 4

    def test_to_int_from_strings(self) -> None:
        assert to_int("12") == 12
        assert to_int("1.0") == 1

    @pytest.mark.parametrize("value", ["x", float("nan"), [1]])
    def test_to_int_rejects(self, value: Any) -> None:
        with pytest.raises(ValueConversionError):
            to_int(value)

    def test_to_bool(self) -> None:
        assert to_bool("yes") is True
        assert to_bool("False") is False
        assert to_bool(0.0) is False
        with pytest.raises(ValueConversionError):
            to_bool("maybe")

    def test_to_float(self) -> None:
        assert to_float(True) == 1.0
        assert to_float("2.5") == 2.5

    def test_to_str(self) -> None:
        assert to_str(3.0) == "3"
        assert to_str(3.25) == "3.25"
        assert to_str(True) == "true"


class TestEnums:
    """Test enum ordinals and parsing."""

    def test_ordinal_of_int_enum_is_value(self) -> None:
        assert enum_ordinal(Level.HIGH) == 20

    def test_ordinal_of_value_enum_is_position(self) -> None:
        assert enum_ordinal(Suit.HEARTS) == 1

    def test_parse_by_name(self) -> None:
        coerce = enum_coercion(Suit)

        assert coerce("hearts") is Suit.HEARTS

    def test_parse_numeric_string(self) -> None:
        coerce = enum_coercion(Level)

        assert coerce("10") is Level.LOW

    def test_parse_ordinal(self) -> None:
        assert enum_coercion(Suit)(0.0) is Suit.CLUBS
        assert enum_coercion(Level)(20.0) is Level.HIGH

    def test_undefined_value_raises(self) -> None:
        with pytest.raises(ValueConversionError):
            enum_coercion(Level)(15.0)
