"""Display form of expression trees, e.g. ``c => (c.A + c.B)``."""

from __future__ import annotations

from typing import TYPE_CHECKING

from exprjson.errors import UnsupportedNodeError
from exprjson.identity import ParameterNames, declared_names
from exprjson.nodes import (
    Binary,
    Block,
    Conditional,
    Constant,
    Default,
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
from exprjson.types import type_name

if TYPE_CHECKING:
    from collections.abc import Iterable

    from exprjson.members import MemberInfo
    from exprjson.nodes import Expression

E = ExpressionType

_SYMBOLS: dict[ExpressionType, str] = {
    E.ADD: "+",
    E.SUBTRACT: "-",
    E.MULTIPLY: "*",
    E.DIVIDE: "/",
    E.MODULO: "%",
    E.POWER: "**",
    E.AND: "&",
    E.OR: "|",
    E.EXCLUSIVE_OR: "^",
    E.LEFT_SHIFT: "<<",
    E.RIGHT_SHIFT: ">>",
    E.AND_ALSO: "&&",
    E.OR_ELSE: "||",
    E.EQUAL: "==",
    E.NOT_EQUAL: "!=",
    E.LESS_THAN: "<",
    E.LESS_THAN_OR_EQUAL: "<=",
    E.GREATER_THAN: ">",
    E.GREATER_THAN_OR_EQUAL: ">=",
    E.COALESCE: "??",
    E.ASSIGN: "=",
    E.ADD_ASSIGN: "+=",
    E.SUBTRACT_ASSIGN: "-=",
    E.MULTIPLY_ASSIGN: "*=",
    E.DIVIDE_ASSIGN: "/=",
    E.MODULO_ASSIGN: "%=",
    E.POWER_ASSIGN: "**=",
    E.AND_ASSIGN: "&=",
    E.OR_ASSIGN: "|=",
    E.EXCLUSIVE_OR_ASSIGN: "^=",
    E.LEFT_SHIFT_ASSIGN: "<<=",
    E.RIGHT_SHIFT_ASSIGN: ">>=",
}

_CHECKED_SYMBOLS: dict[ExpressionType, str] = {
    E.ADD_CHECKED: "+",
    E.SUBTRACT_CHECKED: "-",
    E.MULTIPLY_CHECKED: "*",
    E.ADD_ASSIGN_CHECKED: "+=",
    E.SUBTRACT_ASSIGN_CHECKED: "-=",
    E.MULTIPLY_ASSIGN_CHECKED: "*=",
}


class _Display:
    def __init__(self) -> None:
        self.names = ParameterNames()

    def show(self, node: Expression | None) -> str:
        if node is None:
            return "null"
        while node.can_reduce:
            node = node.reduce()
        match node:
            case Binary():
                return self._binary(node)
            case Unary():
                return self._unary(node)
            case Constant(value=value):
                return "null" if value is None else repr(value)
            case Conditional(test=test, if_true=if_true, if_false=if_false):
                return f"IIF({self.show(test)}, {self.show(if_true)}, {self.show(if_false)})"
            case MemberAccess(expression=expression, member=member):
                return f"{self._target(expression, member)}.{member.name}"
            case MethodCall(instance=instance, method=method, arguments=arguments):
                generic = ""
                if method.generic_arguments:
                    generic = f"[{', '.join(type_name(a) for a in method.generic_arguments)}]"
                return (
                    f"{self._target(instance, method)}.{method.name}{generic}"
                    f"({self._join(arguments)})"
                )
            case New(constructor=constructor, arguments=arguments):
                return f"new {type_name(constructor.declaring_type)}({self._join(arguments)})"
            case NewArray(node_type=E.NEW_ARRAY_INIT, element_type=tp, expressions=items):
                return f"new {type_name(tp)}[] {{{self._join(items)}}}"
            case NewArray(element_type=tp, expressions=bounds):
                return f"new {type_name(tp)}[{self._join(bounds)}]"
            case Index(instance=instance, arguments=arguments):
                return f"{self.show(instance)}[{self._join(arguments)}]"
            case Invocation(expression=expression, arguments=arguments):
                callee = self.show(expression)
                return f"Invoke({', '.join([callee, *map(self.show, arguments)])})"
            case Lambda(body=body, parameters=parameters):
                names = [self.show(p) for p in parameters]
                head = names[0] if len(names) == 1 else f"({', '.join(names)})"
                return f"{head} => {self.show(body)}"
            case Parameter():
                return self.names.name_of(node)
            case TypeBinary(node_type=kind, expression=expression, type_operand=tp):
                word = "Is" if kind is E.TYPE_IS else "TypeEqual"
                return f"({self.show(expression)} {word} {type_name(tp)})"
            case Block(expressions=expressions, variables=variables):
                declared = f"var {self._join(variables)}; " if variables else ""
                body = "".join(f"{self.show(e)}; " for e in expressions)
                return f"{{{declared}{body}}}"
            case Default(type=tp):
                return f"default({type_name(tp)})"
            case RuntimeVariables(variables=variables):
                return f"RuntimeVariables({self._join(variables)})"
            case _:
                raise UnsupportedNodeError(node.node_type)

    def _join(self, nodes: Iterable[Expression]) -> str:
        return ", ".join(self.show(n) for n in nodes)

    def _target(self, instance: Expression | None, member: MemberInfo) -> str:
        return type_name(member.declaring_type) if instance is None else self.show(instance)

    def _binary(self, node: Binary) -> str:
        kind = node.node_type
        left, right = self.show(node.left), self.show(node.right)
        if kind is E.ARRAY_INDEX:
            return f"{left}[{right}]"
        if node.conversion is not None:
            return f"Coalesce({left}, {right}, {self.show(node.conversion)})"
        if kind in _CHECKED_SYMBOLS:
            return f"checked({left} {_CHECKED_SYMBOLS[kind]} {right})"
        return f"({left} {_SYMBOLS[kind]} {right})"

    def _unary(self, node: Unary) -> str:
        kind = node.node_type
        operand = self.show(node.operand)
        match kind:
            case E.CONVERT | E.CONVERT_CHECKED:
                return f"{kind}({operand}, {type_name(node.type)})"
            case E.TYPE_AS:
                return f"({operand} As {type_name(node.type)})"
            case E.NEGATE:
                return f"-{operand}"
            case E.UNARY_PLUS:
                return f"+{operand}"
            case E.NEGATE_CHECKED:
                return f"checked(-{operand})"
            case E.ONES_COMPLEMENT:
                return f"~{operand}"
            case E.QUOTE:
                return operand
            case E.PRE_INCREMENT_ASSIGN:
                return f"++{operand}"
            case E.PRE_DECREMENT_ASSIGN:
                return f"--{operand}"
            case E.POST_INCREMENT_ASSIGN:
                return f"{operand}++"
            case E.POST_DECREMENT_ASSIGN:
                return f"{operand}--"
            case _:
                return f"{kind}({operand})"


def to_display(node: Expression | None) -> str:
    """Render a tree in a compact, human-readable form.

    Unnamed parameters are shown with the names the encoder would give them,
    so a decoded tree displays exactly like the tree it was encoded from.
    """
    display = _Display()
    display.names.reserve(declared_names(node))
    return display.show(node)
