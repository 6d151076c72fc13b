"""Type catalog and per-engine type registry.

The catalog is the explicit set of types that name resolution may find.
Hosts populate it with ``serializable`` (or ``TypeCatalog.add``) before the
first decode. The registry layers the engine-scoped caches on top of it:
resolved names, descriptors, default instances and custom factories, plus
the ordered implicit namespaces used to resolve short names.

Registries are not thread-safe. Give each thread its own engine, or guard
shared use with an external lock.
"""

from __future__ import annotations

import inspect
from collections.abc import Callable, Iterator
from dataclasses import dataclass
from typing import Any, overload

import structlog

from treecodec.codecs import ScalarCodecs
from treecodec.errors import UnconstructibleTypeError
from treecodec.types import (
    NAMESPACE_SEPARATOR,
    NESTED_SEPARATOR,
    ContainerKind,
    TypeDescriptor,
    describe_type,
    type_name,
)

type Factory = Callable[[], Any]

_SHORTHAND_SEPARATOR = "-"


# =============================================================================
# Catalog
# =============================================================================


class TypeCatalog:
    """Known types, addressable by name.

    Every type is reachable under its derived name (``app.models.Point``);
    an alias passed at registration becomes its preferred name.
    """

    def __init__(self) -> None:
        self._by_name: dict[str, type] = {}
        self._names: dict[type, str] = {}

    def add[T](self, cls: type[T], name: str | None = None) -> type[T]:
        """Make cls resolvable by name.

        Args:
            cls: The class to add
            name: Optional alias, used instead of the derived name on output

        Raises:
            ValueError: If the name already belongs to a different class

        """
        full_name = type_name(cls)
        preferred = name if name is not None else full_name
        for key in dict.fromkeys((full_name, preferred)):
            if (existing := self._by_name.get(key)) and existing is not cls:
                msg = (
                    f"Type name '{key}' already registered to {existing!r}. "
                    "Choose a different name."
                )
                raise ValueError(msg)
        self._by_name[full_name] = cls
        self._by_name[preferred] = cls
        self._names[cls] = preferred
        return cls

    def remove(self, cls: type) -> bool:
        """Forget cls under every name it was added with."""
        if cls not in self._names:
            return False
        del self._names[cls]
        for key in [k for k, v in self._by_name.items() if v is cls]:
            del self._by_name[key]
        return True

    def find(self, name: str, *, ignore_case: bool = False) -> type | None:
        """Return the class registered under name, or None."""
        if (found := self._by_name.get(name)) is not None:
            return found
        if ignore_case:
            wanted = name.casefold()
            for key, cls in self._by_name.items():
                if key.casefold() == wanted:
                    return cls
        return None

    def name_of(self, cls: type) -> str:
        """Return the preferred name of cls, derived if it was never added."""
        return self._names.get(cls) or type_name(cls)

    def __contains__(self, cls: object) -> bool:
        return cls in self._names

    def __iter__(self) -> Iterator[type]:
        return iter(self._names)

    def __len__(self) -> int:
        return len(self._names)


default_catalog = TypeCatalog()


@overload
def serializable[T](cls: type[T], /) -> type[T]: ...


@overload
def serializable[T](
    *,
    name: str | None = None,
    catalog: TypeCatalog | None = None,
) -> Callable[[type[T]], type[T]]: ...


def serializable(
    cls: type | None = None,
    /,
    *,
    name: str | None = None,
    catalog: TypeCatalog | None = None,
) -> Any:
    """Class decorator adding a type to a catalog (the default one if omitted).

    Usage:
        @serializable
        @dataclass
        class Point:
            x: float = 0.0
            y: float = 0.0

        @serializable(name="widget")
        @dataclass
        class Widget: ...
    """
    target = catalog if catalog is not None else default_catalog

    def decorate(klass: type) -> type:
        return target.add(klass, name)

    if cls is not None:
        return decorate(cls)
    return decorate


# =============================================================================
# Registry
# =============================================================================


@dataclass(frozen=True)
class NamespacePrefix:
    """Implicit qualification tried when resolving a short type name."""

    prefix: str
    nested: bool = False

    def qualify(self, name: str) -> str:
        separator = NESTED_SEPARATOR if self.nested else NAMESPACE_SEPARATOR
        return f"{self.prefix}{separator}{name}"


def expand_shorthand(name: str) -> str:
    """Turn dash shorthand into class-name form: ``foo-bar`` becomes ``FooBar``."""
    segments = name.split(_SHORTHAND_SEPARATOR)
    return "".join(segment[:1].upper() + segment[1:] for segment in segments)


class TypeRegistry:
    """Engine-scoped type information and construction.

    Caches are filled lazily and never invalidated while the registry is in
    use; ``clear`` drops everything when the owning engine is closed.
    """

    def __init__(
        self,
        catalog: TypeCatalog | None = None,
        scalars: ScalarCodecs | None = None,
        *,
        logger: Any | None = None,
    ) -> None:
        self.catalog = catalog if catalog is not None else default_catalog
        self.scalars = scalars if scalars is not None else ScalarCodecs.with_builtins()
        self._logger = logger if logger is not None else structlog.get_logger(__name__)
        self._named_types: dict[tuple[str, bool], TypeDescriptor] = {}
        self._descriptors: dict[Any, TypeDescriptor | None] = {}
        self._default_instances: dict[Any, Any] = {}
        self._factories: dict[Any, Factory] = {}
        self._namespaces: list[NamespacePrefix] = []

    # -------------------------------------------------------------------------
    # Descriptors and names
    # -------------------------------------------------------------------------

    def describe(self, tp: Any) -> TypeDescriptor | None:
        """Return the cached descriptor of a class or annotation.

        Returns None when the annotation leaves the type unspecified.
        """
        if tp not in self._descriptors:
            self._descriptors[tp] = describe_type(
                tp,
                name_of=self.name_of,
                scalars=self.scalars,
            )
        return self._descriptors[tp]

    def name_of(self, cls: type) -> str:
        """Registered name of cls as written into the type key."""
        return self.catalog.name_of(cls)

    def resolve_type_name(
        self,
        name: str,
        *,
        ignore_case: bool = False,
    ) -> TypeDescriptor | None:
        """Resolve a type name to a descriptor.

        Dash shorthand is expanded first. The cache is consulted, then the
        catalog, then each implicit namespace in the order it was added.
        The first hit is cached under the requested name and case mode.

        Returns:
            The descriptor, or None if no known type matches

        """
        if _SHORTHAND_SEPARATOR in name:
            name = expand_shorthand(name)

        if (cached := self._named_types.get((name, ignore_case))) is not None:
            return cached

        cls = self._find_including_implicits(name, ignore_case=ignore_case)
        if cls is None:
            self._logger.debug("type_name_unresolved", type_name=name)
            return None

        descriptor = self.describe(cls)
        if descriptor is None:
            return None
        self._named_types[name, ignore_case] = descriptor
        self._logger.debug(
            "type_name_resolved",
            type_name=name,
            resolved=descriptor.name,
        )
        return descriptor

    def _find_including_implicits(self, name: str, *, ignore_case: bool) -> type | None:
        cls = self.catalog.find(name, ignore_case=ignore_case)
        if cls is not None:
            return cls
        for namespace in self._namespaces:
            cls = self.catalog.find(namespace.qualify(name), ignore_case=ignore_case)
            if cls is not None:
                return cls
        return None

    # -------------------------------------------------------------------------
    # Implicit namespaces
    # -------------------------------------------------------------------------

    def add_implicit_namespace(self, prefix: str, *, is_namespace: bool = True) -> None:
        """Append a prefix to the short-name search list.

        Args:
            prefix: Module path (``app.models``) or enclosing class name
                (``app.models.Outer``)
            is_namespace: False when prefix names a class whose nested
                classes are being looked up

        """
        self._namespaces.append(NamespacePrefix(prefix, nested=not is_namespace))

    def remove_implicit_namespace(self, prefix: str) -> None:
        """Remove every entry with this prefix from the search list."""
        self._namespaces = [ns for ns in self._namespaces if ns.prefix != prefix]

    @property
    def implicit_namespaces(self) -> tuple[NamespacePrefix, ...]:
        return tuple(self._namespaces)

    # -------------------------------------------------------------------------
    # Construction
    # -------------------------------------------------------------------------

    def register_factory(self, tp: Any, factory: Factory) -> None:
        """Use factory instead of default construction for tp."""
        self._factories[tp] = factory
        self._logger.debug("factory_registered", type=_display(tp))

    def unregister_factory(self, tp: Any) -> None:
        """Restore default construction for tp."""
        self._factories.pop(tp, None)

    def create_instance(self, tp: Any, size_hint: int = 0) -> Any:
        """Create a fresh instance of tp to deserialize into.

        A registered factory wins. Fixed-length (tuple) types get a buffer of
        size_hint empty slots, frozen by the caller once filled. Everything
        else is built with its no-argument constructor.

        Raises:
            UnconstructibleTypeError: If none of these applies

        """
        descriptor = self.describe(tp)
        factory = self._factories.get(tp)
        if factory is None and descriptor is not None:
            factory = self._factories.get(descriptor.runtime_type)
        if factory is not None:
            return factory()

        if descriptor is None:
            msg = f"Cannot create an instance of unspecified type {_display(tp)}"
            raise UnconstructibleTypeError(msg, tp)

        if descriptor.kind is ContainerKind.ARRAY:
            return [None] * size_hint

        build_type = descriptor.build_type
        if inspect.isabstract(build_type) or not _accepts_no_arguments(build_type):
            msg = (
                f"Cannot construct {_display(tp)}: it has no factory and no "
                "no-argument constructor"
            )
            raise UnconstructibleTypeError(msg, tp)
        return build_type()

    def get_default_instance(self, tp: Any) -> Any:
        """Return the shared reference instance of tp, creating it once.

        The instance is only ever read (to compare field defaults against);
        callers must not mutate it.
        """
        if tp not in self._default_instances:
            self._default_instances[tp] = self.create_instance(tp, 0)
            self._logger.debug("default_instance_created", type=_display(tp))
        return self._default_instances[tp]

    def clear(self) -> None:
        """Drop every cache, factory and implicit namespace."""
        self._namespaces.clear()
        self._descriptors.clear()
        self._factories.clear()
        self._default_instances.clear()
        self._named_types.clear()


def _accepts_no_arguments(cls: type) -> bool:
    try:
        signature = inspect.signature(cls)
    except (TypeError, ValueError):
        # builtins without introspectable signatures
        return True
    try:
        signature.bind()
    except TypeError:
        return False
    return True


def _display(tp: Any) -> str:
    return getattr(tp, "__qualname__", None) or repr(tp)
