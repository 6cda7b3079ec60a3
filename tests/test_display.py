"""Tests for the display form of expression trees."""

from __future__ import annotations

import pytest

from exprjson.catalog import constructor, indexer, member, method
from exprjson.display import to_display
from exprjson.errors import UnsupportedNodeError
from exprjson.nodes import (
    Binary,
    Block,
    Conditional,
    Constant,
    Default,
    ExpressionType,
    Index,
    Lambda,
    Loop,
    MemberAccess,
    MethodCall,
    New,
    NewArray,
    Parameter,
    TypeBinary,
    Unary,
)
from samples import Box, Context

E = ExpressionType

c = Parameter(Context, "c")


class TestDisplay:
    """Test rendering of each node family."""

    @pytest.mark.parametrize(
        ("node", "expected"),
        [
            (Binary(E.ADD, Constant(1), Constant(2)), "(1 + 2)"),
            (Binary(E.ADD_CHECKED, Constant(1), Constant(2)), "checked(1 + 2)"),
            (Binary(E.AND_ALSO, Constant(True), Constant(False)), "(True && False)"),
            (Binary(E.COALESCE, Constant(None, type=int | None), Constant(1)), "(null ?? 1)"),
            (Conditional(Constant(True), Constant(1), Constant(2)), "IIF(True, 1, 2)"),
            (Unary(E.CONVERT, Constant(1.5), type=int), "Convert(1.5, int)"),
            (Unary(E.NEGATE_CHECKED, Constant(1)), "checked(-1)"),
            (Unary(E.NOT, Constant(True)), "Not(True)"),
            (Unary(E.ARRAY_LENGTH, Constant([1])), "ArrayLength([1])"),
            (TypeBinary(E.TYPE_IS, Constant(1), int), "(1 Is int)"),
            (Default(int | None), "default(int | None)"),
            (Constant("s"), "'s'"),
            (NewArray(E.NEW_ARRAY_INIT, int, [Constant(1), Constant(2)]), "new int[] {1, 2}"),
            (NewArray(E.NEW_ARRAY_BOUNDS, int, [Constant(2), Constant(3)]), "new int[2, 3]"),
        ],
    )
    def test_simple_nodes(self, node: object, expected: str) -> None:
        """Test nodes that do not involve members."""
        assert to_display(node) == expected

    def test_members(self) -> None:
        """Test instance members, static members and generic calls."""
        tree = Lambda(
            Binary(
                E.ADD,
                MemberAccess(c, member(Context, "A")),
                MethodCall(None, method(Context, "static_sum"), [Constant(1), Constant(2)]),
            ),
            [c],
        )
        assert to_display(tree) == "c => (c.A + Context.static_sum(1, 2))"
        call = MethodCall(None, method(Context, "first", int), [Constant([1])])
        assert to_display(call) == "Context.first[int]([1])"

    def test_construction_and_indexing(self) -> None:
        """Test constructors and indexers."""
        assert to_display(New(constructor(Box[int]), [Constant(1)])) == "new Box[int](1)"
        assert to_display(Index(c, indexer(Context), [Constant(0)])) == "c[0]"

    def test_lambda_with_several_parameters(self) -> None:
        """Test the parenthesized parameter list."""
        x, y = Parameter(int, "x"), Parameter(int, "y")
        assert to_display(Lambda(Binary(E.MULTIPLY, x, y), [x, y])) == "(x, y) => (x * y)"

    def test_unnamed_parameters(self) -> None:
        """Test unnamed parameters use their generated wire names."""
        a, b = Parameter(int), Parameter(int)
        assert to_display(Lambda(Binary(E.SUBTRACT, a, b), [a, b])) == (
            "($p0, $p1) => ($p0 - $p1)"
        )

    def test_block(self) -> None:
        """Test blocks list variables and statements."""
        v = Parameter(int, "v")
        node = Block([Binary(E.ASSIGN, v, Constant(1)), Unary(E.POST_INCREMENT_ASSIGN, v)], [v])
        assert to_display(node) == "{var v; (v = 1); v++; }"

    def test_unsupported(self) -> None:
        """Test unsupported nodes have no display form."""
        with pytest.raises(UnsupportedNodeError):
            to_display(Loop(Constant(1)))
