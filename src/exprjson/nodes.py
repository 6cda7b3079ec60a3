"""Expression tree nodes with automatic tag registration.

Each node class is a frozen dataclass registered under a tag, which doubles as
the wire ``typeName`` discriminator. A class covers one family of node kinds
(``Binary`` covers every binary operator); the exact kind is kept in
``node_type``. ``type`` is the result type of the node and is inferred from
the children when it is not given.

``Parameter`` nodes compare and hash by identity: the same parameter object is
shared by every site that references it, which turns the tree into a DAG.
"""

from __future__ import annotations

import types
from collections.abc import Callable, MutableSequence, Sequence
from dataclasses import dataclass
from enum import StrEnum
from typing import TYPE_CHECKING, Any, ClassVar, dataclass_transform, get_args, get_origin

if TYPE_CHECKING:
    from collections.abc import Iterable

    from exprjson.members import MemberInfo


class ExpressionType(StrEnum):
    """Node kinds; the value is the wire ``nodeKind``."""

    ADD = "Add"
    ADD_CHECKED = "AddChecked"
    AND = "And"
    AND_ALSO = "AndAlso"
    ARRAY_LENGTH = "ArrayLength"
    ARRAY_INDEX = "ArrayIndex"
    CALL = "Call"
    COALESCE = "Coalesce"
    CONDITIONAL = "Conditional"
    CONSTANT = "Constant"
    CONVERT = "Convert"
    CONVERT_CHECKED = "ConvertChecked"
    DIVIDE = "Divide"
    EQUAL = "Equal"
    EXCLUSIVE_OR = "ExclusiveOr"
    GREATER_THAN = "GreaterThan"
    GREATER_THAN_OR_EQUAL = "GreaterThanOrEqual"
    INVOKE = "Invoke"
    LAMBDA = "Lambda"
    LEFT_SHIFT = "LeftShift"
    LESS_THAN = "LessThan"
    LESS_THAN_OR_EQUAL = "LessThanOrEqual"
    LIST_INIT = "ListInit"
    MEMBER_ACCESS = "MemberAccess"
    MEMBER_INIT = "MemberInit"
    MODULO = "Modulo"
    MULTIPLY = "Multiply"
    MULTIPLY_CHECKED = "MultiplyChecked"
    NEGATE = "Negate"
    UNARY_PLUS = "UnaryPlus"
    NEGATE_CHECKED = "NegateChecked"
    NEW = "New"
    NEW_ARRAY_INIT = "NewArrayInit"
    NEW_ARRAY_BOUNDS = "NewArrayBounds"
    NOT = "Not"
    NOT_EQUAL = "NotEqual"
    OR = "Or"
    OR_ELSE = "OrElse"
    PARAMETER = "Parameter"
    POWER = "Power"
    QUOTE = "Quote"
    RIGHT_SHIFT = "RightShift"
    SUBTRACT = "Subtract"
    SUBTRACT_CHECKED = "SubtractChecked"
    TYPE_AS = "TypeAs"
    TYPE_IS = "TypeIs"
    ASSIGN = "Assign"
    BLOCK = "Block"
    DEBUG_INFO = "DebugInfo"
    DECREMENT = "Decrement"
    DYNAMIC = "Dynamic"
    DEFAULT = "Default"
    EXTENSION = "Extension"
    GOTO = "Goto"
    INCREMENT = "Increment"
    INDEX = "Index"
    LABEL = "Label"
    RUNTIME_VARIABLES = "RuntimeVariables"
    LOOP = "Loop"
    SWITCH = "Switch"
    THROW = "Throw"
    TRY = "Try"
    UNBOX = "Unbox"
    ADD_ASSIGN = "AddAssign"
    AND_ASSIGN = "AndAssign"
    DIVIDE_ASSIGN = "DivideAssign"
    EXCLUSIVE_OR_ASSIGN = "ExclusiveOrAssign"
    LEFT_SHIFT_ASSIGN = "LeftShiftAssign"
    MODULO_ASSIGN = "ModuloAssign"
    MULTIPLY_ASSIGN = "MultiplyAssign"
    OR_ASSIGN = "OrAssign"
    POWER_ASSIGN = "PowerAssign"
    RIGHT_SHIFT_ASSIGN = "RightShiftAssign"
    SUBTRACT_ASSIGN = "SubtractAssign"
    ADD_ASSIGN_CHECKED = "AddAssignChecked"
    MULTIPLY_ASSIGN_CHECKED = "MultiplyAssignChecked"
    SUBTRACT_ASSIGN_CHECKED = "SubtractAssignChecked"
    PRE_INCREMENT_ASSIGN = "PreIncrementAssign"
    PRE_DECREMENT_ASSIGN = "PreDecrementAssign"
    POST_INCREMENT_ASSIGN = "PostIncrementAssign"
    POST_DECREMENT_ASSIGN = "PostDecrementAssign"
    TYPE_EQUAL = "TypeEqual"
    ONES_COMPLEMENT = "OnesComplement"
    IS_TRUE = "IsTrue"
    IS_FALSE = "IsFalse"


E = ExpressionType

# Compound assignment -> the operator it applies before assigning
COMPOUND_ASSIGNMENTS: dict[ExpressionType, ExpressionType] = {
    E.ADD_ASSIGN: E.ADD,
    E.ADD_ASSIGN_CHECKED: E.ADD_CHECKED,
    E.SUBTRACT_ASSIGN: E.SUBTRACT,
    E.SUBTRACT_ASSIGN_CHECKED: E.SUBTRACT_CHECKED,
    E.MULTIPLY_ASSIGN: E.MULTIPLY,
    E.MULTIPLY_ASSIGN_CHECKED: E.MULTIPLY_CHECKED,
    E.DIVIDE_ASSIGN: E.DIVIDE,
    E.MODULO_ASSIGN: E.MODULO,
    E.POWER_ASSIGN: E.POWER,
    E.AND_ASSIGN: E.AND,
    E.OR_ASSIGN: E.OR,
    E.EXCLUSIVE_OR_ASSIGN: E.EXCLUSIVE_OR,
    E.LEFT_SHIFT_ASSIGN: E.LEFT_SHIFT,
    E.RIGHT_SHIFT_ASSIGN: E.RIGHT_SHIFT,
}

COMPARISONS = frozenset(
    {
        E.EQUAL,
        E.NOT_EQUAL,
        E.LESS_THAN,
        E.LESS_THAN_OR_EQUAL,
        E.GREATER_THAN,
        E.GREATER_THAN_OR_EQUAL,
    },
)

ARITHMETIC = frozenset(
    {
        E.ADD,
        E.ADD_CHECKED,
        E.SUBTRACT,
        E.SUBTRACT_CHECKED,
        E.MULTIPLY,
        E.MULTIPLY_CHECKED,
        E.DIVIDE,
        E.MODULO,
        E.POWER,
        E.AND,
        E.OR,
        E.EXCLUSIVE_OR,
        E.LEFT_SHIFT,
        E.RIGHT_SHIFT,
    },
)

# Kinds the codec refuses to encode or decode
UNSUPPORTED = frozenset(
    {
        E.DEBUG_INFO,
        E.DYNAMIC,
        E.EXTENSION,
        E.GOTO,
        E.LABEL,
        E.LOOP,
        E.SWITCH,
        E.TRY,
    },
)


def element_type(tp: Any) -> Any:
    """Element type of a sequence type, ``Any`` when unknown."""
    origin = get_origin(tp)
    args = get_args(tp)
    if isinstance(origin, type) and issubclass(origin, Sequence) and args:
        return args[0]
    return Any


def is_nullable(tp: Any) -> bool:
    return type(None) in get_args(tp) or tp is type(None)


@dataclass(frozen=True)
@dataclass_transform(frozen_default=True)
class Expression:
    """Base for expression nodes.

    Subclasses declare either a ``node_type`` field (families with several
    kinds, validated against ``kinds``) or a ``node_type`` ClassVar (single
    kind). Every subclass ends with an optional ``type`` field.
    """

    tag: ClassVar[str]
    kinds: ClassVar[frozenset[ExpressionType]] = frozenset()
    sequences: ClassVar[tuple[str, ...]] = ()
    registry: ClassVar[dict[str, type[Expression]]] = {}

    def __init_subclass__(
        cls,
        tag: str | None = None,
        kinds: Iterable[ExpressionType] = (),
    ) -> None:
        """Register node subclass with automatic tag derivation."""
        dataclass(frozen=True)(cls)
        cls.tag = tag if tag is not None else cls.__name__[0].lower() + cls.__name__[1:]
        single = cls.__dict__.get("node_type")
        if kinds:
            cls.kinds = frozenset(kinds)
        elif isinstance(single, ExpressionType):
            cls.kinds = frozenset({single})

        if (existing := Expression.registry.get(cls.tag)) and existing is not cls:
            msg = (
                f"Tag '{cls.tag}' already registered to {existing}. "
                "Choose a different tag."
            )
            raise ValueError(msg)

        Expression.registry[cls.tag] = cls

    def __post_init__(self) -> None:
        node_type = getattr(self, "node_type", None)
        if node_type not in type(self).kinds:
            msg = f"{node_type} is not a valid kind for {type(self).__name__}"
            raise ValueError(msg)
        for name in type(self).sequences:
            value = getattr(self, name)
            if value is not None and not isinstance(value, tuple):
                object.__setattr__(self, name, tuple(value))
        if getattr(self, "type", None) is None:
            object.__setattr__(self, "type", self.infer_type())

    def infer_type(self) -> Any:
        """Result type used when none was given explicitly."""
        return Any

    @property
    def can_reduce(self) -> bool:
        """Whether the node rewrites to simpler supported nodes."""
        return False

    def reduce(self) -> Expression:
        """Rewrite to a simpler equivalent; non-reducible nodes return themselves."""
        return self


class Binary(
    Expression,
    tag="binary",
    kinds=ARITHMETIC
    | COMPARISONS
    | frozenset(COMPOUND_ASSIGNMENTS)
    | {E.AND_ALSO, E.OR_ELSE, E.COALESCE, E.ARRAY_INDEX, E.ASSIGN},
):
    """Binary operator, comparison, short-circuit logic or assignment."""

    node_type: ExpressionType
    left: Expression
    right: Expression
    method: MemberInfo | None = None
    conversion: Lambda | None = None
    lift_to_null: bool = False
    type: Any = None

    def infer_type(self) -> Any:
        kind = self.node_type
        if kind in COMPARISONS:
            if self.lift_to_null and (
                is_nullable(self.left.type) or is_nullable(self.right.type)
            ):
                return bool | None
            return bool
        if kind is E.ASSIGN or kind in COMPOUND_ASSIGNMENTS:
            return self.left.type
        if self.method is not None:
            return self.method.type
        if kind in (E.AND_ALSO, E.OR_ELSE):
            return bool
        if kind is E.COALESCE:
            return self.conversion.body.type if self.conversion else self.right.type
        if kind is E.ARRAY_INDEX:
            return element_type(self.left.type)
        return self.left.type


class Unary(
    Expression,
    tag="unary",
    kinds={
        E.ARRAY_LENGTH,
        E.CONVERT,
        E.CONVERT_CHECKED,
        E.NEGATE,
        E.NEGATE_CHECKED,
        E.UNARY_PLUS,
        E.NOT,
        E.ONES_COMPLEMENT,
        E.INCREMENT,
        E.DECREMENT,
        E.IS_TRUE,
        E.IS_FALSE,
        E.PRE_INCREMENT_ASSIGN,
        E.PRE_DECREMENT_ASSIGN,
        E.POST_INCREMENT_ASSIGN,
        E.POST_DECREMENT_ASSIGN,
        E.QUOTE,
        E.THROW,
        E.TYPE_AS,
        E.UNBOX,
    },
):
    """Unary operator; conversions carry their target as ``type``."""

    node_type: ExpressionType
    operand: Expression | None
    method: MemberInfo | None = None
    type: Any = None

    def infer_type(self) -> Any:
        kind = self.node_type
        if kind in (E.CONVERT, E.CONVERT_CHECKED, E.TYPE_AS, E.UNBOX):
            msg = f"{kind} requires an explicit target type"
            raise ValueError(msg)
        if kind is E.THROW:
            return type(None)
        if kind is E.ARRAY_LENGTH:
            return int
        if kind in (E.IS_TRUE, E.IS_FALSE):
            return bool
        if kind is E.QUOTE:
            return Lambda
        if self.method is not None:
            return self.method.type
        return self.operand.type if self.operand is not None else Any


class Constant(Expression):
    """Literal value."""

    node_type: ClassVar[ExpressionType] = E.CONSTANT
    value: Any
    type: Any = None

    def infer_type(self) -> Any:
        return object if self.value is None else type(self.value)


class Conditional(Expression):
    """``if_true if test else if_false``."""

    node_type: ClassVar[ExpressionType] = E.CONDITIONAL
    test: Expression
    if_true: Expression
    if_false: Expression
    type: Any = None

    def infer_type(self) -> Any:
        return self.if_true.type


class MemberAccess(Expression, tag="member"):
    """Field or property read; ``expression`` is None for class-level members."""

    node_type: ClassVar[ExpressionType] = E.MEMBER_ACCESS
    expression: Expression | None
    member: MemberInfo
    type: Any = None

    def infer_type(self) -> Any:
        return self.member.type


class MethodCall(Expression, tag="methodCall"):
    """Method call; ``instance`` is None for static and class methods."""

    node_type: ClassVar[ExpressionType] = E.CALL
    sequences: ClassVar[tuple[str, ...]] = ("arguments",)
    instance: Expression | None
    method: MemberInfo
    arguments: tuple[Expression, ...] = ()
    type: Any = None

    def infer_type(self) -> Any:
        return self.method.type


class New(Expression):
    """Constructor call, with optional member bindings for record-style objects."""

    node_type: ClassVar[ExpressionType] = E.NEW
    sequences: ClassVar[tuple[str, ...]] = ("arguments", "members")
    constructor: MemberInfo
    arguments: tuple[Expression, ...] = ()
    members: tuple[MemberInfo, ...] | None = None
    type: Any = None

    def infer_type(self) -> Any:
        return self.constructor.type


class NewArray(
    Expression,
    tag="newArray",
    kinds={E.NEW_ARRAY_INIT, E.NEW_ARRAY_BOUNDS},
):
    """List built from elements (init form) or from dimension sizes (bounds form)."""

    node_type: ExpressionType
    element_type: Any
    expressions: tuple[Expression, ...] = ()
    type: Any = None
    sequences: ClassVar[tuple[str, ...]] = ("expressions",)

    def infer_type(self) -> Any:
        result = self.element_type
        depth = 1 if self.node_type is E.NEW_ARRAY_INIT else len(self.expressions)
        for _ in range(depth):
            result = list[result]
        return result


class Index(Expression):
    """Indexer read; ``indexer`` is None for plain sequence indexing."""

    node_type: ClassVar[ExpressionType] = E.INDEX
    sequences: ClassVar[tuple[str, ...]] = ("arguments",)
    instance: Expression
    indexer: MemberInfo | None
    arguments: tuple[Expression, ...] = ()
    type: Any = None

    def infer_type(self) -> Any:
        if self.indexer is not None:
            return self.indexer.type
        return element_type(self.instance.type)


class Invocation(Expression):
    """Call of a callable value, such as a lambda or a function-typed field."""

    node_type: ClassVar[ExpressionType] = E.INVOKE
    sequences: ClassVar[tuple[str, ...]] = ("arguments",)
    expression: Expression
    arguments: tuple[Expression, ...] = ()
    type: Any = None

    def infer_type(self) -> Any:
        if isinstance(self.expression, Lambda):
            return self.expression.body.type
        callee = self.expression.type
        if get_origin(callee) is Callable and get_args(callee):
            return get_args(callee)[-1]
        return Any


class Lambda(Expression):
    """Closure over ``parameters``."""

    node_type: ClassVar[ExpressionType] = E.LAMBDA
    sequences: ClassVar[tuple[str, ...]] = ("parameters",)
    body: Expression
    parameters: tuple[Parameter, ...] = ()
    name: str | None = None
    tail_call: bool = False
    type: Any = None

    def infer_type(self) -> Any:
        return types.FunctionType


class Parameter(Expression):
    """Parameter or block variable, shared by reference between its uses."""

    node_type: ClassVar[ExpressionType] = E.PARAMETER
    type: Any
    name: str | None = None

    def __eq__(self, other: object) -> bool:
        return self is other

    def __hash__(self) -> int:
        return id(self)


class TypeBinary(Expression, tag="typeBinary", kinds={E.TYPE_IS, E.TYPE_EQUAL}):
    """``isinstance`` test (TypeIs) or exact type test (TypeEqual)."""

    node_type: ExpressionType
    expression: Expression
    type_operand: Any
    type: Any = None

    def infer_type(self) -> Any:
        return bool


class Block(Expression):
    """Sequence of expressions with local variables; yields the last value."""

    node_type: ClassVar[ExpressionType] = E.BLOCK
    sequences: ClassVar[tuple[str, ...]] = ("expressions", "variables")
    expressions: tuple[Expression, ...]
    variables: tuple[Parameter, ...] = ()
    type: Any = None

    def infer_type(self) -> Any:
        return self.expressions[-1].type if self.expressions else type(None)


class Default(Expression):
    """Default value of ``type``."""

    node_type: ClassVar[ExpressionType] = E.DEFAULT
    type: Any


class RuntimeVariables(Expression):
    """Live, writable view over a set of variables."""

    node_type: ClassVar[ExpressionType] = E.RUNTIME_VARIABLES
    sequences: ClassVar[tuple[str, ...]] = ("variables",)
    variables: tuple[Parameter, ...]
    type: Any = None

    def infer_type(self) -> Any:
        return MutableSequence


# =============================================================================
# Reducible nodes
# =============================================================================


class ListInit(Expression):
    """Collection initializer: construct, then call ``add_method`` per item."""

    node_type: ClassVar[ExpressionType] = E.LIST_INIT
    sequences: ClassVar[tuple[str, ...]] = ("initializers",)
    new_expression: New
    add_method: MemberInfo
    initializers: tuple[Expression, ...]
    type: Any = None

    def infer_type(self) -> Any:
        return self.new_expression.type

    @property
    def can_reduce(self) -> bool:
        return True

    def reduce(self) -> Expression:
        target = Parameter(self.type)
        return Block(
            expressions=(
                Binary(E.ASSIGN, target, self.new_expression),
                *(
                    MethodCall(target, self.add_method, (item,))
                    for item in self.initializers
                ),
                target,
            ),
            variables=(target,),
            type=self.type,
        )


class MemberInit(Expression):
    """Object initializer: construct, then assign each bound member."""

    node_type: ClassVar[ExpressionType] = E.MEMBER_INIT
    sequences: ClassVar[tuple[str, ...]] = ("bindings",)
    new_expression: New
    bindings: tuple[tuple[MemberInfo, Expression], ...]
    type: Any = None

    def infer_type(self) -> Any:
        return self.new_expression.type

    @property
    def can_reduce(self) -> bool:
        return True

    def reduce(self) -> Expression:
        target = Parameter(self.type)
        return Block(
            expressions=(
                Binary(E.ASSIGN, target, self.new_expression),
                *(
                    Binary(E.ASSIGN, MemberAccess(target, member), value)
                    for member, value in self.bindings
                ),
                target,
            ),
            variables=(target,),
            type=self.type,
        )


# =============================================================================
# Control flow nodes (not serializable)
# =============================================================================


class Loop(Expression):
    node_type: ClassVar[ExpressionType] = E.LOOP
    body: Expression
    type: Any = None

    def infer_type(self) -> Any:
        return type(None)


class Goto(Expression):
    node_type: ClassVar[ExpressionType] = E.GOTO
    target: str
    value: Expression | None = None
    type: Any = None


class Label(Expression):
    node_type: ClassVar[ExpressionType] = E.LABEL
    name: str
    default: Expression | None = None
    type: Any = None


class Switch(Expression):
    node_type: ClassVar[ExpressionType] = E.SWITCH
    sequences: ClassVar[tuple[str, ...]] = ("cases",)
    value: Expression
    cases: tuple[tuple[Expression, Expression], ...] = ()
    default: Expression | None = None
    type: Any = None


class Try(Expression):
    node_type: ClassVar[ExpressionType] = E.TRY
    sequences: ClassVar[tuple[str, ...]] = ("handlers",)
    body: Expression
    handlers: tuple[Expression, ...] = ()
    finally_: Expression | None = None
    type: Any = None

    def infer_type(self) -> Any:
        return self.body.type


class Dynamic(Expression):
    node_type: ClassVar[ExpressionType] = E.DYNAMIC
    sequences: ClassVar[tuple[str, ...]] = ("arguments",)
    binder: str
    arguments: tuple[Expression, ...] = ()
    type: Any = None


class DebugInfo(Expression):
    node_type: ClassVar[ExpressionType] = E.DEBUG_INFO
    document: str
    start_line: int
    end_line: int
    type: Any = None

    def infer_type(self) -> Any:
        return type(None)
