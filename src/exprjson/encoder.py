"""Encoder: expression tree to nested builtins records."""

from __future__ import annotations

from typing import TYPE_CHECKING, Any, get_origin

from exprjson.errors import UnsupportedNodeError
from exprjson.identity import ParameterNames, declared_names
from exprjson.nodes import (
    Binary,
    Block,
    Conditional,
    Constant,
    Default,
    Index,
    Invocation,
    Lambda,
    MemberAccess,
    MethodCall,
    New,
    NewArray,
    Parameter,
    RuntimeVariables,
    TypeBinary,
    Unary,
)

if TYPE_CHECKING:
    from collections.abc import Iterable

    from exprjson.codecs import ValueCodec
    from exprjson.members import MemberInfo
    from exprjson.nodes import Expression
    from exprjson.resolver import MetadataResolver
    from exprjson.types import TypeRef


def type_record(ref: TypeRef) -> dict[str, Any]:
    """Convert a TypeRef to its wire record."""
    return {
        "qualifier": ref.qualifier,
        "typeName": ref.name,
        "genericArguments": [type_record(arg) for arg in ref.generic_arguments],
    }


class Encoder:
    """Encodes one expression tree per instance.

    Parameter names are tracked for the lifetime of the encoder, so use a
    fresh encoder for each top-level tree. The first call treats its node as
    the root and reserves every declared parameter name found under it.
    """

    def __init__(self, resolver: MetadataResolver, codec: ValueCodec) -> None:
        self.resolver = resolver
        self.codec = codec
        self._names = ParameterNames()
        self._started = False

    def encode(self, node: Expression | None) -> dict[str, Any] | None:
        """Encode a node and its children; ``None`` encodes to ``None``.

        Reducible nodes are reduced to a fixed point first.

        Raises:
            UnsupportedNodeError: If the tree contains an unsupported kind
            ResolutionError: If a type cannot be referenced by import path
            TypeError: If a constant value cannot be written without losing
                its type

        """
        if node is None:
            return None
        if not self._started:
            self._started = True
            self._names.reserve(declared_names(node))
        while node.can_reduce:
            node = node.reduce()

        record: dict[str, Any] = {
            "nodeKind": str(node.node_type),
            "resultType": self._type(node.type),
            "typeName": node.tag,
        }
        record.update(self._fields(node))
        return record

    def _fields(self, node: Expression) -> dict[str, Any]:
        match node:
            case Binary():
                return {
                    "left": self.encode(node.left),
                    "right": self.encode(node.right),
                    "method": self._member(node.method),
                    "conversion": self.encode(node.conversion),
                    "liftToNull": node.lift_to_null,
                }
            case Unary():
                return {
                    "operand": self.encode(node.operand),
                    "method": self._member(node.method),
                }
            case Constant():
                return {"value": self._constant(node)}
            case Conditional():
                return {
                    "test": self.encode(node.test),
                    "ifTrue": self.encode(node.if_true),
                    "ifFalse": self.encode(node.if_false),
                }
            case MemberAccess():
                return {
                    "expression": self.encode(node.expression),
                    "member": self._member(node.member),
                }
            case MethodCall():
                return {
                    "object": self.encode(node.instance),
                    "method": self._member(node.method),
                    "arguments": self._all(node.arguments),
                }
            case New():
                return {
                    "constructor": self._member(node.constructor),
                    "arguments": self._all(node.arguments),
                    "members": (
                        None
                        if node.members is None
                        else [self._member(m) for m in node.members]
                    ),
                }
            case NewArray():
                return {
                    "elementType": self._type(node.element_type),
                    "expressions": self._all(node.expressions),
                }
            case Index():
                return {
                    "object": self.encode(node.instance),
                    "indexer": self._member(node.indexer),
                    "arguments": self._all(node.arguments),
                }
            case Invocation():
                return {
                    "expression": self.encode(node.expression),
                    "arguments": self._all(node.arguments),
                }
            case Lambda():
                return {
                    "name": node.name,
                    "parameters": self._all(node.parameters),
                    "body": self.encode(node.body),
                    "tailCall": node.tail_call,
                }
            case Parameter():
                return {"name": self._names.name_of(node)}
            case TypeBinary():
                return {
                    "expression": self.encode(node.expression),
                    "typeOperand": self._type(node.type_operand),
                }
            case Block():
                return {
                    "variables": self._all(node.variables),
                    "expressions": self._all(node.expressions),
                }
            case Default():
                return {}
            case RuntimeVariables():
                return {"variables": self._all(node.variables)}
            case _:
                raise UnsupportedNodeError(node.node_type)

    def _all(self, nodes: Iterable[Expression]) -> list[dict[str, Any] | None]:
        return [self.encode(n) for n in nodes]

    def _type(self, tp: Any) -> dict[str, Any] | None:
        if tp is None:
            return None
        return type_record(self.resolver.describe_type(tp))

    def _member(self, member: MemberInfo | None) -> dict[str, Any] | None:
        if member is None:
            return None
        return {
            "type": self._type(member.declaring_type),
            "memberType": str(member.kind),
            "name": member.name,
            "signature": member.signature,
            "generic": (
                [self._type(arg) for arg in member.generic_arguments]
                if member.generic_arguments
                else None
            ),
        }

    def _constant(self, node: Constant) -> dict[str, Any] | None:
        if node.value is None:
            return None
        declared = node.type
        value_type = type(node.value)
        wrapper = declared if (get_origin(declared) or declared) is value_type else value_type
        return {
            "type": self._type(wrapper),
            "value": self.codec.encode(node.value, wrapper),
        }
