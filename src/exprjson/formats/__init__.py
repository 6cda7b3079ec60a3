"""Format adapters for serialization.

Each format module provides to_<format> and from_<format> functions
that work with the core builtins encoding of expression trees.
"""

from exprjson.formats.json import (
    ExpressionConverter,
    ExpressionJSONEncoder,
    from_json,
    to_json,
)

__all__ = ["ExpressionConverter", "ExpressionJSONEncoder", "from_json", "to_json"]
