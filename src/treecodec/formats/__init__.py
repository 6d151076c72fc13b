"""Format adapters for serialization.

Each format module provides to_<format> and from_<format> functions
that wrap the engine's value tree conversion.
"""

from treecodec.formats.json import from_json, to_json

__all__ = ["from_json", "to_json"]
