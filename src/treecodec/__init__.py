"""treecodec - Convert typed object graphs to value trees and back."""

from treecodec.codecs import ScalarCodecs
from treecodec.errors import (
    CodecError,
    DecodeResult,
    ErrorKind,
    NotAStructError,
    SpuriousFieldError,
    UnconstructibleTypeError,
    UnexpectedCollectionError,
    UnexpectedNullError,
    UnknownTypeError,
    ValueConversionError,
    ValueModelError,
)
from treecodec.formats.json import (
    from_json,
    to_json,
)
from treecodec.options import CodecOptions
from treecodec.registry import (
    NamespacePrefix,
    TypeCatalog,
    TypeRegistry,
    default_catalog,
    serializable,
)
from treecodec.serializer import Serializer
from treecodec.types import (
    ContainerKind,
    FieldDescriptor,
    TypeDescriptor,
    describe_type,
    type_name,
)
from treecodec.values import (
    DEFAULT_TYPE_KEY,
    Value,
    ValueKind,
    kind_of,
    normalize,
)

__all__ = [
    "DEFAULT_TYPE_KEY",
    # Errors
    "CodecError",
    # Configuration
    "CodecOptions",
    # Type descriptors
    "ContainerKind",
    "DecodeResult",
    "ErrorKind",
    "FieldDescriptor",
    # Registry
    "NamespacePrefix",
    "NotAStructError",
    "ScalarCodecs",
    # Engine
    "Serializer",
    "SpuriousFieldError",
    "TypeCatalog",
    "TypeDescriptor",
    "TypeRegistry",
    "UnconstructibleTypeError",
    "UnexpectedCollectionError",
    "UnexpectedNullError",
    "UnknownTypeError",
    # Value model
    "Value",
    "ValueConversionError",
    "ValueKind",
    "ValueModelError",
    "default_catalog",
    "describe_type",
    "from_json",
    "kind_of",
    "normalize",
    "serializable",
    "to_json",
    "type_name",
]
