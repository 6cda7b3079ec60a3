"""Decoder: nested builtins records back to an expression tree."""

from __future__ import annotations

from typing import TYPE_CHECKING, Any

from exprjson.errors import ExpressionSerializationError, FormatError, UnsupportedNodeError
from exprjson.identity import ParameterTable
from exprjson.members import MemberKind
from exprjson.nodes import (
    UNSUPPORTED,
    Binary,
    Block,
    Conditional,
    Constant,
    Default,
    Expression,
    ExpressionType,
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
    from collections.abc import Callable

    from exprjson.codecs import ValueCodec
    from exprjson.members import MemberInfo
    from exprjson.resolver import MetadataResolver

_UNSUPPORTED_KINDS = UNSUPPORTED | {ExpressionType.LIST_INIT, ExpressionType.MEMBER_INIT}

# Tags of node classes that exist in memory but have no wire form
UNSUPPORTED_TAGS = frozenset(
    cls.tag
    for cls in Expression.registry.values()
    if cls.kinds & _UNSUPPORTED_KINDS
)


def _require(data: dict[str, Any], field: str, record: str) -> Any:
    value = data.get(field)
    if value is None:
        msg = "Missing required field"
        raise FormatError(msg, record=record, field=field)
    return value


def _expect[T](value: Any, typ: type[T], record: str, field: str) -> T:
    if not isinstance(value, typ):
        msg = f"Expected {typ.__name__}, got {type(value).__name__}"
        raise FormatError(msg, record=record, field=field)
    return value


def _flag(data: dict[str, Any], field: str, record: str) -> bool:
    value = data.get(field)
    if value is None:
        return False
    return _expect(value, bool, record, field)


def _text(data: dict[str, Any], field: str, record: str) -> str | None:
    value = data.get(field)
    if value is None:
        return None
    return _expect(value, str, record, field)


class Decoder:
    """Decodes one expression tree per instance.

    Parameters are reconciled by wire name for the lifetime of the decoder,
    so use a fresh decoder for each top-level record.
    """

    def __init__(self, resolver: MetadataResolver, codec: ValueCodec) -> None:
        self.resolver = resolver
        self.codec = codec
        self._parameters = ParameterTable()
        self._builders: dict[
            str, Callable[[dict[str, Any], ExpressionType, Any], Expression]
        ] = {
            Binary.tag: self._binary,
            Unary.tag: self._unary,
            Constant.tag: self._constant,
            Conditional.tag: self._conditional,
            MemberAccess.tag: self._member_access,
            MethodCall.tag: self._method_call,
            New.tag: self._new,
            NewArray.tag: self._new_array,
            Index.tag: self._index,
            Invocation.tag: self._invocation,
            Lambda.tag: self._lambda,
            Parameter.tag: self._parameter,
            TypeBinary.tag: self._type_binary,
            Block.tag: self._block,
            Default.tag: self._default,
            RuntimeVariables.tag: self._runtime_variables,
        }

    def decode(self, data: dict[str, Any] | None) -> Expression | None:
        """Decode a record and its children; ``None`` decodes to ``None``.

        Raises:
            FormatError: If the record is malformed
            UnsupportedNodeError: If the record names an unsupported kind
            ResolutionError: If a named type or member cannot be resolved

        """
        if data is None:
            return None
        if not isinstance(data, dict):
            msg = f"Expected an object, got {type(data).__name__}"
            raise FormatError(msg, record="expression")

        tag = _expect(_require(data, "typeName", "expression"), str, "expression", "typeName")
        if tag in UNSUPPORTED_TAGS:
            raise UnsupportedNodeError(tag)
        builder = self._builders.get(tag)
        if builder is None:
            msg = f"Unknown expression type '{tag}'"
            raise FormatError(msg, record="expression", field="typeName")

        kind_text = _expect(_require(data, "nodeKind", tag), str, tag, "nodeKind")
        try:
            kind = ExpressionType(kind_text)
        except ValueError as e:
            msg = f"Unknown node kind '{kind_text}'"
            raise FormatError(msg, record=tag, field="nodeKind") from e
        if kind in _UNSUPPORTED_KINDS:
            raise UnsupportedNodeError(kind)
        if kind not in Expression.registry[tag].kinds:
            msg = f"Node kind '{kind}' does not belong to '{tag}'"
            raise FormatError(msg, record=tag, field="nodeKind")

        result_type = self._type(data.get("resultType"), tag, "resultType")
        try:
            return builder(data, kind, result_type)
        except ExpressionSerializationError:
            raise
        except (TypeError, ValueError) as e:
            raise FormatError(str(e), record=tag) from e

    # =========================================================================
    # Field helpers
    # =========================================================================

    def _child(self, data: dict[str, Any], field: str, record: str) -> Expression:
        return self.decode(_expect(_require(data, field, record), dict, record, field))

    def _optional(self, data: dict[str, Any], field: str, record: str) -> Expression | None:
        value = data.get(field)
        if value is None:
            return None
        return self.decode(_expect(value, dict, record, field))

    def _children(
        self, data: dict[str, Any], field: str, record: str
    ) -> tuple[Expression, ...]:
        items = data.get(field)
        if items is None:
            return ()
        _expect(items, list, record, field)
        return tuple(self.decode(_expect(item, dict, record, field)) for item in items)

    def _parameters_of(
        self, data: dict[str, Any], field: str, record: str
    ) -> tuple[Parameter, ...]:
        nodes = self._children(data, field, record)
        for node in nodes:
            if not isinstance(node, Parameter):
                msg = f"Expected parameter, got '{node.tag}'"
                raise FormatError(msg, record=record, field=field)
        return nodes

    def _type(self, data: Any, record: str, field: str) -> Any:
        if data is None:
            return None
        _expect(data, dict, record, field)
        qualifier = data.get("qualifier")
        name = data.get("typeName")
        arguments = data.get("genericArguments") or []
        _expect(arguments, list, record, field)
        resolved = [self._type(arg, record, field) for arg in arguments]
        if qualifier is None and name is None:
            return resolved
        return self.resolver.resolve_type(
            _expect(qualifier, str, record, field),
            _expect(name, str, record, field),
            resolved,
        )

    def _member(self, data: Any, record: str, field: str) -> MemberInfo | None:
        if data is None:
            return None
        _expect(data, dict, record, field)
        tp = self._type(_require(data, "type", field), field, "type")
        name = _expect(_require(data, "name", field), str, field, "name")
        signature = _expect(_require(data, "signature", field), str, field, "signature")
        member_type = _require(data, "memberType", field)
        try:
            kind = MemberKind(member_type)
        except ValueError as e:
            msg = f"Unknown member type '{member_type}'"
            raise FormatError(msg, record=field, field="memberType") from e
        generic = data.get("generic") or []
        _expect(generic, list, field, "generic")
        arguments = [self._type(arg, field, "generic") for arg in generic]

        if kind is MemberKind.CONSTRUCTOR:
            return self.resolver.resolve_constructor(tp, signature)
        if kind is MemberKind.METHOD:
            return self.resolver.resolve_callable(tp, name, signature, arguments)
        return self.resolver.resolve_member(tp, name, signature, kind)

    # =========================================================================
    # Builders
    # =========================================================================

    def _binary(self, data: dict[str, Any], kind: ExpressionType, tp: Any) -> Expression:
        left = self._child(data, "left", "binary")
        right = self._child(data, "right", "binary")
        method = self._member(data.get("method"), "binary", "method")
        conversion = self._optional(data, "conversion", "binary")
        if conversion is not None and not isinstance(conversion, Lambda):
            msg = f"Expected lambda, got '{conversion.tag}'"
            raise FormatError(msg, record="binary", field="conversion")
        return Binary(
            kind,
            left,
            right,
            method,
            conversion,
            _flag(data, "liftToNull", "binary"),
            type=tp,
        )

    def _unary(self, data: dict[str, Any], kind: ExpressionType, tp: Any) -> Expression:
        operand = self._optional(data, "operand", "unary")
        if operand is None and kind is not ExpressionType.THROW:
            msg = "Missing required field"
            raise FormatError(msg, record="unary", field="operand")
        method = self._member(data.get("method"), "unary", "method")
        return Unary(kind, operand, method, type=tp)

    def _constant(self, data: dict[str, Any], kind: ExpressionType, tp: Any) -> Expression:
        wrapper = data.get("value")
        if wrapper is None:
            return Constant(None, type=tp)
        _expect(wrapper, dict, "constant", "value")
        value_type = self._type(_require(wrapper, "type", "value"), "value", "type")
        return Constant(self.codec.decode(wrapper.get("value"), value_type), type=tp)

    def _conditional(
        self, data: dict[str, Any], kind: ExpressionType, tp: Any
    ) -> Expression:
        return Conditional(
            self._child(data, "test", "conditional"),
            self._child(data, "ifTrue", "conditional"),
            self._child(data, "ifFalse", "conditional"),
            type=tp,
        )

    def _member_access(
        self, data: dict[str, Any], kind: ExpressionType, tp: Any
    ) -> Expression:
        expression = self._optional(data, "expression", "member")
        member = self._member(_require(data, "member", "member"), "member", "member")
        return MemberAccess(expression, member, type=tp)

    def _method_call(
        self, data: dict[str, Any], kind: ExpressionType, tp: Any
    ) -> Expression:
        instance = self._optional(data, "object", "methodCall")
        method = self._member(
            _require(data, "method", "methodCall"), "methodCall", "method"
        )
        arguments = self._children(data, "arguments", "methodCall")
        return MethodCall(instance, method, arguments, type=tp)

    def _new(self, data: dict[str, Any], kind: ExpressionType, tp: Any) -> Expression:
        constructor = self._member(_require(data, "constructor", "new"), "new", "constructor")
        arguments = self._children(data, "arguments", "new")
        members = data.get("members")
        if members is not None:
            _expect(members, list, "new", "members")
            members = tuple(self._member(m, "new", "members") for m in members)
        return New(constructor, arguments, members, type=tp)

    def _new_array(
        self, data: dict[str, Any], kind: ExpressionType, tp: Any
    ) -> Expression:
        element_type = self._type(
            _require(data, "elementType", "newArray"), "newArray", "elementType"
        )
        expressions = self._children(data, "expressions", "newArray")
        return NewArray(kind, element_type, expressions, type=tp)

    def _index(self, data: dict[str, Any], kind: ExpressionType, tp: Any) -> Expression:
        instance = self._child(data, "object", "index")
        indexer = self._member(data.get("indexer"), "index", "indexer")
        arguments = self._children(data, "arguments", "index")
        return Index(instance, indexer, arguments, type=tp)

    def _invocation(
        self, data: dict[str, Any], kind: ExpressionType, tp: Any
    ) -> Expression:
        expression = self._child(data, "expression", "invocation")
        arguments = self._children(data, "arguments", "invocation")
        return Invocation(expression, arguments, type=tp)

    def _lambda(self, data: dict[str, Any], kind: ExpressionType, tp: Any) -> Expression:
        # parameters first so that references in the body find their binding
        parameters = self._parameters_of(data, "parameters", "lambda")
        body = self._child(data, "body", "lambda")
        return Lambda(
            body,
            parameters,
            _text(data, "name", "lambda"),
            _flag(data, "tailCall", "lambda"),
            type=tp,
        )

    def _parameter(
        self, data: dict[str, Any], kind: ExpressionType, tp: Any
    ) -> Expression:
        name = _expect(_require(data, "name", "parameter"), str, "parameter", "name")
        return self._parameters.get_or_create(name, tp)

    def _type_binary(
        self, data: dict[str, Any], kind: ExpressionType, tp: Any
    ) -> Expression:
        expression = self._child(data, "expression", "typeBinary")
        operand = self._type(
            _require(data, "typeOperand", "typeBinary"), "typeBinary", "typeOperand"
        )
        return TypeBinary(kind, expression, operand, type=tp)

    def _block(self, data: dict[str, Any], kind: ExpressionType, tp: Any) -> Expression:
        variables = self._parameters_of(data, "variables", "block")
        expressions = self._children(data, "expressions", "block")
        return Block(expressions, variables, type=tp)

    def _default(self, data: dict[str, Any], kind: ExpressionType, tp: Any) -> Expression:
        if tp is None:
            msg = "Missing required field"
            raise FormatError(msg, record="default", field="resultType")
        return Default(tp)

    def _runtime_variables(
        self, data: dict[str, Any], kind: ExpressionType, tp: Any
    ) -> Expression:
        return RuntimeVariables(
            self._parameters_of(data, "variables", "runtimeVariables"), type=tp
        )
