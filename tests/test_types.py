"""Tests for exprjson.types module."""

from __future__ import annotations

import typing
from collections.abc import Callable
from typing import Any, TypeVar

import pytest

from exprjson.errors import ResolutionError
from exprjson.types import (
    NoneType,
    TypeRef,
    bind_type_params,
    describe_type,
    instantiate,
    locate,
    parameterized_bases,
    substitute_type_params,
    type_name,
)
from samples import Box, Context, IntBox

T = TypeVar("T")


class TestTypeName:
    """Test human-readable type names."""

    @pytest.mark.parametrize(
        ("tp", "expected"),
        [
            (int, "int"),
            (NoneType, "None"),
            (list[int], "list[int]"),
            (dict[str, list[int]], "dict[str, list[int]]"),
            (int | None, "int | None"),
            (typing.Optional[str], "str | None"),  # noqa: UP045
            (Callable[[int, str], bool], "Callable[[int, str], bool]"),
            (Callable[..., int], "Callable[..., int]"),
            (Any, "Any"),
            (T, "T"),
            (Box[int], "Box[int]"),
        ],
    )
    def test_names(self, tp: Any, expected: str) -> None:
        """Test type_name over common type forms."""
        assert type_name(tp) == expected


class TestDescribeType:
    """Test building wire references."""

    def test_plain_class(self) -> None:
        """Test a builtin class."""
        assert describe_type(int) == TypeRef("builtins", "int")

    def test_user_class(self) -> None:
        """Test a class from an importable module."""
        assert describe_type(Context) == TypeRef("samples", "Context")

    def test_parameterized(self) -> None:
        """Test generic arguments are described recursively."""
        ref = describe_type(dict[str, list[int]])
        assert ref == TypeRef(
            "builtins",
            "dict",
            (
                TypeRef("builtins", "str"),
                TypeRef("builtins", "list", (TypeRef("builtins", "int"),)),
            ),
        )

    def test_union_is_typing_union(self) -> None:
        """Test both union spellings share one reference."""
        expected = TypeRef(
            "typing", "Union", (TypeRef("builtins", "int"), TypeRef("types", "NoneType"))
        )
        assert describe_type(int | None) == expected
        assert describe_type(typing.Optional[int]) == expected  # noqa: UP045

    def test_callable_argument_list(self) -> None:
        """Test the parameter list of Callable is a bare argument list."""
        ref = describe_type(Callable[[int], str])
        assert ref.qualifier == "collections.abc"
        assert ref.name == "Callable"
        assert ref.generic_arguments[0] == TypeRef(None, None, (TypeRef("builtins", "int"),))

    def test_local_class_cannot_be_referenced(self) -> None:
        """Test classes defined in a function have no import path."""

        class Local:
            pass

        with pytest.raises(ResolutionError, match="local scope"):
            describe_type(Local)

    def test_locate_relocated_types(self) -> None:
        """Test types whose module attribute does not import them back."""
        assert locate(NoneType) == ("types", "NoneType")


class TestInstantiate:
    """Test binding generic arguments."""

    def test_single_argument(self) -> None:
        """Test a one-parameter generic."""
        assert instantiate(list, (int,)) == list[int]
        assert instantiate(Box, (str,)) == Box[str]

    def test_several_arguments(self) -> None:
        """Test a multi-parameter generic."""
        assert instantiate(dict, (str, int)) == dict[str, int]

    def test_callable_with_argument_list(self) -> None:
        """Test Callable accepts its argument list."""
        assert instantiate(Callable, ([int], str)) == Callable[[int], str]

    def test_no_arguments_returns_definition(self) -> None:
        """Test the empty case."""
        assert instantiate(Box, ()) is Box

    def test_non_generic_raises(self) -> None:
        """Test non-generic types reject arguments."""
        with pytest.raises(ResolutionError, match="cannot be instantiated"):
            instantiate(Context, (int,))


class TestSubstitution:
    """Test type parameter substitution."""

    def test_nested(self) -> None:
        """Test substitution inside generic aliases."""
        assert substitute_type_params(list[T], {T: int}) == list[int]
        assert substitute_type_params(dict[str, T], {T: float}) == dict[str, float]

    def test_union(self) -> None:
        """Test substitution inside `|` unions."""
        assert substitute_type_params(T | None, {T: int}) == int | None

    def test_argument_list(self) -> None:
        """Test substitution inside Callable argument lists."""
        assert substitute_type_params(Callable[[T], T], {T: int}) == Callable[[int], int]

    def test_bind_type_params(self) -> None:
        """Test mapping class parameters to arguments."""
        (param,) = Box.__type_params__
        assert bind_type_params(Box[int]) == {param: int}
        assert bind_type_params(Context) == {}

    def test_parameterized_bases(self) -> None:
        """Test arguments are carried through generic base classes."""

        class Labeled[U](Box[U]):
            pass

        class IntLabeled(Labeled[int]):
            pass

        assert parameterized_bases(IntBox) == {Box: Box[int]}
        assert parameterized_bases(IntLabeled) == {Labeled: Labeled[int], Box: Box[int]}
        assert parameterized_bases(Labeled[str]) == {Box: Box[str]}
        assert parameterized_bases(Context) == {}
