"""Serialization functions for expression trees."""

from __future__ import annotations

import json
from typing import TYPE_CHECKING, Any

from exprjson.codecs import ValueCodec
from exprjson.decoder import Decoder
from exprjson.encoder import Encoder
from exprjson.resolver import MetadataResolver

if TYPE_CHECKING:
    from exprjson.nodes import Expression


class ExpressionSerializer:
    """Long-lived codec service: a resolver cache plus a value codec.

    Every call runs its own ``Encoder`` or ``Decoder``, so one serializer can
    be shared between threads; only the resolver's caches are shared state.

    Usage:
        serializer = ExpressionSerializer(resolver=MetadataResolver())
        data = serializer.to_dict(tree)
        tree = serializer.from_dict(data)
    """

    def __init__(
        self,
        resolver: MetadataResolver | None = None,
        codec: ValueCodec | None = None,
    ) -> None:
        self.resolver = resolver if resolver is not None else MetadataResolver()
        self.codec = codec if codec is not None else ValueCodec()

    def to_dict(self, node: Expression | None) -> dict[str, Any] | None:
        """Encode a tree to JSON-compatible builtins."""
        return Encoder(self.resolver, self.codec).encode(node)

    def from_dict(self, data: dict[str, Any] | None) -> Expression | None:
        """Decode a tree from JSON-compatible builtins."""
        return Decoder(self.resolver, self.codec).decode(data)

    def to_json(self, node: Expression | None, *, indent: int | None = 2) -> str:
        """Encode a tree to a JSON string.

        Args:
            node: The tree to encode
            indent: JSON indentation level (default 2, None for compact)

        """
        return json.dumps(self.to_dict(node), indent=indent)

    def from_json(self, s: str) -> Expression | None:
        """Decode a tree from a JSON string."""
        return self.from_dict(json.loads(s))


_default = ExpressionSerializer()


def default_serializer() -> ExpressionSerializer:
    """The process-wide serializer backing the module functions."""
    return _default


def to_dict(node: Expression | None) -> dict[str, Any] | None:
    """Serialize a tree to a dictionary.

    Raises:
        UnsupportedNodeError: If the tree contains an unsupported node kind
        ResolutionError: If a type cannot be referenced by import path

    """
    return _default.to_dict(node)


def from_dict(data: dict[str, Any] | None) -> Expression | None:
    """Deserialize a tree from a dictionary.

    Raises:
        FormatError: If the record is malformed
        UnsupportedNodeError: If the record names an unsupported node kind
        ResolutionError: If a type or member cannot be resolved

    """
    return _default.from_dict(data)


def to_json(node: Expression | None) -> str:
    """Serialize a tree to a JSON string."""
    return _default.to_json(node)


def from_json(s: str) -> Expression | None:
    """Deserialize a tree from a JSON string."""
    return _default.from_json(s)
