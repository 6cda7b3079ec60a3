"""JSON format adapter and pluggable converter for expression trees."""

from __future__ import annotations

import json
from typing import TYPE_CHECKING, Any

from exprjson.nodes import Expression
from exprjson.serialization import ExpressionSerializer, default_serializer

if TYPE_CHECKING:
    from collections.abc import Mapping


def to_json(
    node: Expression | None,
    *,
    indent: int | None = 2,
    serializer: ExpressionSerializer | None = None,
) -> str:
    """Serialize an expression tree to a JSON string.

    Args:
        node: The tree to serialize
        indent: JSON indentation level (default 2, None for compact)
        serializer: Serializer to use instead of the process-wide default

    Returns:
        JSON string representation

    """
    serializer = serializer or default_serializer()
    return json.dumps(serializer.to_dict(node), indent=indent)


def from_json(s: str, *, serializer: ExpressionSerializer | None = None) -> Expression | None:
    """Deserialize a JSON string to an expression tree.

    Raises:
        FormatError: If the JSON doesn't contain an expression record

    """
    serializer = serializer or default_serializer()
    return serializer.from_dict(json.loads(s))


class ExpressionConverter:
    """Converter hook for general-purpose serializers.

    Handles any value whose declared type is, or derives from, ``Expression``.

    Usage:
        converter = ExpressionConverter()
        if converter.can_convert(field_type):
            data = converter.write(value)
    """

    def __init__(self, serializer: ExpressionSerializer | None = None) -> None:
        self.serializer = serializer or default_serializer()

    def can_convert(self, typ: Any) -> bool:
        return isinstance(typ, type) and issubclass(typ, Expression)

    def write(self, value: Expression | None) -> dict[str, Any] | None:
        return self.serializer.to_dict(value)

    def read(self, data: Mapping[str, Any] | None) -> Expression | None:
        return self.serializer.from_dict(None if data is None else dict(data))


class ExpressionJSONEncoder(json.JSONEncoder):
    """``json.JSONEncoder`` that writes expression trees found anywhere in a document.

    Usage:
        json.dumps({"filter": tree}, cls=ExpressionJSONEncoder)
    """

    def __init__(
        self,
        *args: Any,
        serializer: ExpressionSerializer | None = None,
        **kwargs: Any,
    ) -> None:
        super().__init__(*args, **kwargs)
        self.converter = ExpressionConverter(serializer)

    def default(self, o: Any) -> Any:
        if isinstance(o, Expression):
            return self.converter.write(o)
        return super().default(o)
