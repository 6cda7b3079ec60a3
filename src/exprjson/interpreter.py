"""Interpreters over expression trees, including a reference evaluator."""

from __future__ import annotations

import ctypes
import math
import operator
import types
from abc import ABC, abstractmethod
from collections import ChainMap
from collections.abc import MutableSequence
from decimal import Decimal
from typing import TYPE_CHECKING, Any, Union, get_args, get_origin

from exprjson.errors import UnsupportedNodeError
from exprjson.nodes import (
    ARITHMETIC,
    COMPARISONS,
    COMPOUND_ASSIGNMENTS,
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
    from collections.abc import Callable, Iterable, Mapping, Sequence

E = ExpressionType

type Scope = ChainMap[Parameter, Any]

# Fixed-width integer types; values stay Python ints, the node type sets the width
INTEGER_TYPES = (
    ctypes.c_int8,
    ctypes.c_int16,
    ctypes.c_int32,
    ctypes.c_int64,
    ctypes.c_uint8,
    ctypes.c_uint16,
    ctypes.c_uint32,
    ctypes.c_uint64,
)

_DEFAULTS: dict[Any, Any] = {
    int: 0,
    float: 0.0,
    bool: False,
    complex: 0j,
    Decimal: Decimal(0),
} | dict.fromkeys(INTEGER_TYPES, 0)


def _divide(left: Any, right: Any) -> Any:
    if isinstance(left, int) and isinstance(right, int):
        quotient = abs(left) // abs(right)
        return quotient if (left < 0) == (right < 0) else -quotient
    return left / right


def _remainder(left: Any, right: Any) -> Any:
    if isinstance(left, int) and isinstance(right, int):
        return left - right * _divide(left, right)
    if isinstance(left, float) or isinstance(right, float):
        return math.fmod(left, right)
    return left % right


_OPERATORS: dict[ExpressionType, Callable[[Any, Any], Any]] = {
    E.ADD: operator.add,
    E.ADD_CHECKED: operator.add,
    E.SUBTRACT: operator.sub,
    E.SUBTRACT_CHECKED: operator.sub,
    E.MULTIPLY: operator.mul,
    E.MULTIPLY_CHECKED: operator.mul,
    E.DIVIDE: _divide,
    E.MODULO: _remainder,
    E.POWER: operator.pow,
    E.AND: operator.and_,
    E.OR: operator.or_,
    E.EXCLUSIVE_OR: operator.xor,
    E.LEFT_SHIFT: operator.lshift,
    E.RIGHT_SHIFT: operator.rshift,
    E.EQUAL: operator.eq,
    E.NOT_EQUAL: operator.ne,
    E.LESS_THAN: operator.lt,
    E.LESS_THAN_OR_EQUAL: operator.le,
    E.GREATER_THAN: operator.gt,
    E.GREATER_THAN_OR_EQUAL: operator.ge,
}

_CHECKED = frozenset(
    {
        E.ADD_CHECKED,
        E.SUBTRACT_CHECKED,
        E.MULTIPLY_CHECKED,
        E.NEGATE_CHECKED,
        E.CONVERT_CHECKED,
    },
)


def _non_null(tp: Any) -> Any:
    """Strip ``None`` from an optional type."""
    if get_origin(tp) in (Union, types.UnionType):
        options = [arg for arg in get_args(tp) if arg is not type(None)]
        if len(options) == 1:
            return options[0]
    return tp


def is_instance(value: Any, tp: Any) -> bool:
    """``isinstance`` that accepts parameterized and union types."""
    if tp is Any or tp is object:
        return value is not None
    if get_origin(tp) in (Union, types.UnionType):
        return any(is_instance(value, arg) for arg in get_args(tp))
    if tp in INTEGER_TYPES:
        return isinstance(value, int)
    origin = get_origin(tp) or tp
    return isinstance(origin, type) and isinstance(value, origin)


def default_value(tp: Any) -> Any:
    """Default value of a type: zero for numbers, ``None`` otherwise."""
    return _DEFAULTS.get(tp)


def fit(value: Any, tp: Any, *, checked: bool) -> Any:
    """Wrap (or, when checked, range-check) an integer to a fixed-width type.

    Raises:
        OverflowError: If ``checked`` and the value does not fit

    """
    tp = _non_null(tp)
    if tp not in INTEGER_TYPES or value is None:
        return value
    exact = int(value)
    wrapped = tp(exact).value
    if checked and wrapped != exact:
        msg = f"Arithmetic operation resulted in an overflow: {value} does not fit {tp.__name__}"
        raise OverflowError(msg)
    return wrapped


def convert(value: Any, tp: Any, *, checked: bool = False) -> Any:
    """Numeric conversion to ``tp``; other targets keep the value unchanged."""
    if value is None:
        return None
    target = _non_null(tp)
    if target in INTEGER_TYPES:
        return fit(value, target, checked=checked)
    if target is int or target is float or target is Decimal or target is complex:
        return target(value)
    if target is bool:
        return bool(value)
    return value


class Interpreter[Ctx, R](ABC):
    """Base class for expression interpreters.

    Subclass and implement `eval` with pattern matching on node types.

    Type Parameters:
        Ctx: Type of evaluation context (use None if no context needed)
        R: Return type of run()

    Interpreters are reusable across multiple runs with different contexts.
    """

    def __init__(self, expression: Expression) -> None:
        self.expression = expression

    def run(self, ctx: Ctx) -> R:
        """Run the expression with the given context.

        Args:
            ctx: The evaluation context (variables, environment, etc.)

        Returns:
            The result of evaluating the expression

        """
        self.ctx = ctx
        return self.eval(self.expression)

    @abstractmethod
    def eval(self, node: Expression) -> R:
        """Evaluate a node. Implement with pattern matching on node types."""
        ...


class VariableView(MutableSequence):
    """Live view over variables captured by a RuntimeVariables node."""

    def __init__(self, scope: Scope, variables: Sequence[Parameter]) -> None:
        self._scope = scope
        self._variables = tuple(variables)

    def __getitem__(self, index: int) -> Any:
        return self._scope[self._variables[index]]

    def __setitem__(self, index: int, value: Any) -> None:
        _store(self._scope, self._variables[index], value)

    def __delitem__(self, index: int) -> None:
        msg = "Runtime variables cannot be removed"
        raise TypeError(msg)

    def __len__(self) -> int:
        return len(self._variables)

    def insert(self, index: int, value: Any) -> None:
        msg = "Runtime variables cannot be added"
        raise TypeError(msg)


def _store(scope: Scope, parameter: Parameter, value: Any) -> None:
    for frame in scope.maps:
        if parameter in frame:
            frame[parameter] = value
            return
    msg = f"Parameter '{parameter.name}' is not bound"
    raise KeyError(msg)


class Evaluator(Interpreter[ChainMap[Parameter, Any], Any]):
    """Evaluates a tree directly, with Python semantics plus fixed-width ints.

    The context maps parameters to values; lambdas evaluate to Python closures
    over the scope they were created in.

    Usage:
        x = Parameter(int, "x")
        double = Lambda(Binary(ExpressionType.MULTIPLY, x, Constant(2)), (x,))
        evaluate(double)(21)  # 42
    """

    def eval(self, node: Expression) -> Any:
        match node:
            case Constant(value=value):
                return value
            case Parameter():
                try:
                    return self.ctx[node]
                except KeyError:
                    msg = f"Parameter '{node.name}' is not bound"
                    raise KeyError(msg) from None
            case Binary():
                return self._binary(node)
            case Unary():
                return self._unary(node)
            case Conditional(test=test, if_true=if_true, if_false=if_false):
                return self.eval(if_true) if self.eval(test) else self.eval(if_false)
            case MemberAccess(expression=expression, member=member):
                instance = None if expression is None else self.eval(expression)
                return member.get_value(instance)
            case MethodCall(instance=instance, method=method, arguments=arguments):
                target = None if instance is None else self.eval(instance)
                return method.invoke(target, self._all(arguments))
            case New(constructor=constructor, arguments=arguments):
                return constructor.invoke(None, self._all(arguments))
            case NewArray(node_type=E.NEW_ARRAY_INIT, expressions=expressions):
                return self._all(expressions)
            case NewArray(element_type=element_type, expressions=bounds):
                return _allocate(element_type, self._all(bounds))
            case Index(instance=instance, indexer=indexer, arguments=arguments):
                target = self.eval(instance)
                keys = self._all(arguments)
                if indexer is not None:
                    return indexer.invoke(target, keys)
                return target[keys[0] if len(keys) == 1 else tuple(keys)]
            case Invocation(expression=expression, arguments=arguments):
                return self.eval(expression)(*self._all(arguments))
            case Lambda():
                return self._closure(node)
            case TypeBinary(node_type=E.TYPE_IS, expression=expression, type_operand=tp):
                return is_instance(self.eval(expression), tp)
            case TypeBinary(expression=expression, type_operand=tp):
                value = self.eval(expression)
                return value is not None and type(value) is (get_origin(tp) or tp)
            case Block(expressions=expressions, variables=variables):
                return self._block(expressions, variables)
            case Default(type=tp):
                return default_value(tp)
            case RuntimeVariables(variables=variables):
                return VariableView(self.ctx, variables)
            case _ if node.can_reduce:
                return self.eval(node.reduce())
            case _:
                raise UnsupportedNodeError(node.node_type)

    def _all(self, nodes: Iterable[Expression]) -> list[Any]:
        return [self.eval(n) for n in nodes]

    def _closure(self, node: Lambda) -> Callable[..., Any]:
        scope = self.ctx
        parameters = node.parameters

        def closure(*arguments: Any) -> Any:
            if len(arguments) != len(parameters):
                msg = f"Lambda expects {len(parameters)} arguments, got {len(arguments)}"
                raise TypeError(msg)
            frame = dict(zip(parameters, arguments, strict=True))
            return Evaluator(node.body).run(scope.new_child(frame))

        closure.__name__ = node.name or "<lambda>"
        return closure

    def _block(
        self,
        expressions: Sequence[Expression],
        variables: Sequence[Parameter],
    ) -> Any:
        outer = self.ctx
        self.ctx = outer.new_child({v: default_value(v.type) for v in variables})
        try:
            result = None
            for expression in expressions:
                result = self.eval(expression)
            return result
        finally:
            self.ctx = outer

    def _assign(self, target: Expression, value: Any) -> None:
        match target:
            case Parameter():
                _store(self.ctx, target, value)
            case MemberAccess(expression=expression, member=member):
                member.set_value(None if expression is None else self.eval(expression), value)
            case Index(instance=instance, arguments=arguments):
                keys = self._all(arguments)
                self.eval(instance)[keys[0] if len(keys) == 1 else tuple(keys)] = value
            case _:
                msg = f"Expression of kind '{target.node_type}' cannot be assigned to"
                raise TypeError(msg)

    def _binary(self, node: Binary) -> Any:
        kind = node.node_type
        if kind is E.ASSIGN:
            value = self.eval(node.right)
            self._assign(node.left, value)
            return value
        if kind in COMPOUND_ASSIGNMENTS:
            value = self._apply(
                node, COMPOUND_ASSIGNMENTS[kind], self.eval(node.left), self.eval(node.right)
            )
            self._assign(node.left, value)
            return value
        if kind is E.AND_ALSO:
            left = self.eval(node.left)
            return left and self.eval(node.right)
        if kind is E.OR_ELSE:
            left = self.eval(node.left)
            return left or self.eval(node.right)
        if kind is E.COALESCE:
            left = self.eval(node.left)
            if left is None:
                return self.eval(node.right)
            if node.conversion is not None:
                return self.eval(node.conversion)(left)
            return left
        if kind is E.ARRAY_INDEX:
            return self.eval(node.left)[self.eval(node.right)]
        return self._apply(node, kind, self.eval(node.left), self.eval(node.right))

    def _apply(self, node: Binary, kind: ExpressionType, left: Any, right: Any) -> Any:
        if node.method is not None:
            return node.method.invoke(None, [left, right])
        if left is None or right is None:
            return _lifted(node, kind, left, right)
        result = _OPERATORS[kind](left, right)
        if kind in ARITHMETIC:
            return fit(result, node.type, checked=kind in _CHECKED)
        return result

    def _unary(self, node: Unary) -> Any:
        kind = node.node_type
        if kind is E.QUOTE:
            return node.operand
        if kind is E.THROW:
            if node.operand is None:
                msg = "No exception is being handled"
                raise RuntimeError(msg)
            raise self.eval(node.operand)

        value = self.eval(node.operand)
        if node.method is not None and kind not in _INCREMENT_ASSIGNMENTS:
            return node.method.invoke(None, [value])
        match kind:
            case E.CONVERT | E.CONVERT_CHECKED:
                return convert(value, node.type, checked=kind in _CHECKED)
            case E.TYPE_AS:
                return value if is_instance(value, node.type) else None
            case E.UNBOX:
                return value
            case E.ARRAY_LENGTH:
                return len(value)
            case E.IS_TRUE:
                return value is True
            case E.IS_FALSE:
                return value is False
        if value is None:
            return None
        match kind:
            case E.NEGATE | E.NEGATE_CHECKED:
                return fit(-value, node.type, checked=kind in _CHECKED)
            case E.UNARY_PLUS:
                return +value
            case E.NOT:
                if isinstance(value, bool):
                    return not value
                return fit(~value, node.type, checked=False)
            case E.ONES_COMPLEMENT:
                return fit(~value, node.type, checked=False)
            case E.INCREMENT:
                return fit(value + 1, node.type, checked=False)
            case E.DECREMENT:
                return fit(value - 1, node.type, checked=False)
        step = _INCREMENT_ASSIGNMENTS[kind]
        updated = (
            node.method.invoke(None, [value])
            if node.method is not None
            else fit(value + step, node.type, checked=False)
        )
        self._assign(node.operand, updated)
        return updated if kind in (E.PRE_INCREMENT_ASSIGN, E.PRE_DECREMENT_ASSIGN) else value


_INCREMENT_ASSIGNMENTS: dict[ExpressionType, int] = {
    E.PRE_INCREMENT_ASSIGN: 1,
    E.POST_INCREMENT_ASSIGN: 1,
    E.PRE_DECREMENT_ASSIGN: -1,
    E.POST_DECREMENT_ASSIGN: -1,
}


def _lifted(node: Binary, kind: ExpressionType, left: Any, right: Any) -> Any:
    """Operator result when an operand is null."""
    if kind not in COMPARISONS:
        return None
    if node.lift_to_null:
        return None
    if kind is E.EQUAL:
        return left is None and right is None
    if kind is E.NOT_EQUAL:
        return not (left is None and right is None)
    return False


def _allocate(element_type: Any, bounds: Sequence[int]) -> list[Any]:
    size, *rest = bounds
    if not rest:
        return [default_value(element_type) for _ in range(size)]
    return [_allocate(element_type, rest) for _ in range(size)]


def evaluate(node: Expression, scope: Mapping[Parameter, Any] | None = None) -> Any:
    """Evaluate a tree; a Lambda evaluates to a Python callable.

    Args:
        node: The tree to evaluate
        scope: Values of free parameters

    """
    return Evaluator(node).run(ChainMap(dict(scope or {})))
