"""Tests for the constant value codec."""

from __future__ import annotations

import base64
from collections import deque
from dataclasses import dataclass
from datetime import date, datetime, time, timedelta
from decimal import Decimal
from enum import StrEnum
from typing import Any

import pytest

from exprjson.codecs import TypeCodecs, ValueCodec, decode_value, encode_value
from samples import Color, Person, Point


@dataclass(frozen=True)
class Money:
    """External-style type registered with a custom codec."""

    cents: int


# =============================================================================
# Test: TypeCodecs Registration API
# =============================================================================


class TestTypeCodecsRegistration:
    """Test the TypeCodecs.register() API."""

    def test_register_custom_type(self) -> None:
        """Test registering a type with encode/decode functions."""
        TypeCodecs.register(Money, encode=lambda m: m.cents, decode=Money)
        try:
            encoded = encode_value(Money(250))
            assert encoded == {"tag": "Money", "val": 250}
            assert decode_value(encoded, Money) == Money(250)
        finally:
            TypeCodecs.unregister(Money)

    def test_name_collision_raises(self) -> None:
        """Test two different types may not share a tag name."""

        class Decimal:  # noqa: A001
            pass

        with pytest.raises(ValueError, match="already registered"):
            TypeCodecs.register(Decimal, encode=str, decode=lambda s: Decimal())

    def test_unregister_unknown(self) -> None:
        """Test unregistering a type that was never registered."""
        assert TypeCodecs.unregister(Money) is False

    def test_clear_restores_builtins(self) -> None:
        """Test clear() drops custom codecs and keeps builtin ones."""
        TypeCodecs.register(Money, encode=lambda m: m.cents, decode=Money)
        TypeCodecs.clear()
        assert TypeCodecs.get(Money) is None
        assert TypeCodecs.get(datetime) is not None


# =============================================================================
# Test: Builtin types
# =============================================================================


class TestBuiltinValues:
    """Test values JSON cannot carry natively."""

    @pytest.mark.parametrize(
        ("value", "tag"),
        [
            (b"\x00\x01", "bytes"),
            (datetime(2024, 1, 2, 3, 4, 5), "datetime"),  # noqa: DTZ001
            (date(2024, 1, 2), "date"),
            (time(3, 4, 5), "time"),
            (timedelta(seconds=90), "timedelta"),
            (Decimal("1.25"), "Decimal"),
            ((1, 2), "tuple"),
            (frozenset({1}), "frozenset"),
        ],
    )
    def test_tagged(self, value: Any, tag: str) -> None:
        """Test registered builtins are tagged and decode without a type."""
        encoded = encode_value(value)
        assert encoded["tag"] == tag
        assert decode_value(encoded) == value

    def test_bytes_are_base64(self) -> None:
        """Test bytes payload encoding."""
        assert encode_value(b"hi")["val"] == base64.b64encode(b"hi").decode("ascii")

    def test_primitives_pass_through(self) -> None:
        """Test JSON-native values are left alone."""
        for value in (1, 1.5, "s", True, None):
            assert encode_value(value) == value
            assert decode_value(value, type(value)) == value

    def test_int_payload_for_float_type(self) -> None:
        """Test whole floats written as ints decode as floats."""
        result = decode_value(2, float)
        assert result == 2.0
        assert isinstance(result, float)

    def test_typed_tuple(self) -> None:
        """Test heterogeneous tuples use per-position types."""
        encoded = encode_value((Decimal("1.5"), "a"))
        assert decode_value(encoded, tuple[Decimal, str]) == (Decimal("1.5"), "a")


class TestStructuredValues:
    """Test collections, enums and objects."""

    def test_list_of_tagged(self) -> None:
        """Test element types guide list decoding."""
        value = [date(2024, 1, 1), date(2024, 1, 2)]
        assert decode_value(encode_value(value), list[date]) == value

    def test_dict_with_int_keys(self) -> None:
        """Test non-string keys come back with their declared type."""
        encoded = encode_value({1: "a", 2: "b"}, dict[int, str])
        assert encoded == {"1": "a", "2": "b"}
        assert decode_value(encoded, dict[int, str]) == {1: "a", 2: "b"}

    def test_enum(self) -> None:
        """Test enums travel by value."""
        assert encode_value(Color.RED, Color) == "red"
        assert decode_value("red", Color) is Color.RED

    def test_dataclass(self) -> None:
        """Test dataclasses are rebuilt through their constructor."""
        encoded = encode_value(Point(1.0, 2.5), Point)
        assert encoded == {"x": 1.0, "y": 2.5}
        assert decode_value(encoded, Point) == Point(1.0, 2.5)

    def test_plain_object(self) -> None:
        """Test plain objects are rebuilt attribute-wise."""
        person = Person()
        person.name = "Ada"
        person.age = 36
        decoded = decode_value(encode_value(person, Person), Person)
        assert isinstance(decoded, Person)
        assert (decoded.name, decoded.age) == ("Ada", 36)

    def test_typed_elements(self) -> None:
        """Test enums and objects inside declared containers."""
        encoded = encode_value([Color.RED, Color.GREEN], list[Color])
        assert encoded == ["red", "green"]
        assert decode_value(encoded, list[Color]) == [Color.RED, Color.GREEN]
        points = {"origin": Point(0.0, 0.0)}
        encoded = encode_value(points, dict[str, Point])
        assert decode_value(encoded, dict[str, Point]) == points
        encoded = encode_value(frozenset({Color.RED}), frozenset[Color])
        assert decode_value(encoded, frozenset[Color]) == frozenset({Color.RED})

    def test_optional(self) -> None:
        """Test optional types decode through their non-null member."""
        assert decode_value(encode_value(date(2024, 5, 6)), date | None) == date(2024, 5, 6)
        assert decode_value(None, date | None) is None

    def test_untyped_dict(self) -> None:
        """Test dicts without a declared type decode tagged members."""
        encoded = encode_value({"when": date(2024, 1, 1)})
        assert decode_value(encoded) == {"when": date(2024, 1, 1)}

    def test_unencodable_value(self) -> None:
        """Test functions have no builtins representation."""
        with pytest.raises(TypeError, match="Cannot encode value of type function"):
            encode_value(lambda: None)

    def test_unknown_tag(self) -> None:
        """Test decoding a tag with no codec."""
        with pytest.raises(TypeError, match="Unknown type tag: Nope"):
            decode_value({"tag": "Nope", "val": 1})


class TestUntypedValues:
    """Test values whose type the wire cannot carry without a declaration."""

    def test_int_keys_need_a_key_type(self) -> None:
        """Test int keys are not turned into strings silently."""
        with pytest.raises(TypeError, match="mapping key of type int with no declared key type"):
            encode_value({1: "a"})

    def test_enum_in_untyped_list(self) -> None:
        """Test enum members need a declared element type."""
        with pytest.raises(TypeError, match="Cannot encode Color value with no declared type"):
            encode_value([Color.RED])

    def test_object_in_untyped_list(self) -> None:
        """Test objects need a declared element type."""
        with pytest.raises(TypeError, match="Cannot encode Point value"):
            encode_value([Point(1.0, 2.0)])

    def test_object_declared_as_other_type(self) -> None:
        """Test a subclass instance is not written as its declared base."""

        @dataclass
        class Point3(Point):
            z: float = 0.0

        with pytest.raises(TypeError, match="declared type"):
            encode_value([Point3(1.0, 2.0)], list[Point])

    def test_str_enum_is_not_a_plain_string(self) -> None:
        """Test str-valued enum members still need their type."""

        class Mode(StrEnum):
            FAST = "fast"

        with pytest.raises(TypeError):
            encode_value(["x", Mode.FAST])
        assert encode_value(Mode.FAST, Mode) == "fast"

    def test_unregistered_sequence(self) -> None:
        """Test sequences other than lists are not written as lists."""
        with pytest.raises(TypeError, match="Cannot encode value of type deque"):
            encode_value(deque([1]))

    def test_tag_shaped_dict_is_escaped(self) -> None:
        """Test a user dict that looks like a tagged value."""
        value = {"tag": "bytes", "val": "YWJj"}
        encoded = encode_value(value)
        assert encoded == {"tag": "dict", "val": {"tag": "bytes", "val": "YWJj"}}
        assert decode_value(encoded) == value
        assert decode_value(encoded, dict[str, str]) == value

    def test_nested_tag_shaped_dict(self) -> None:
        """Test escaping applies at any depth."""
        value = [{"tag": "x", "val": {"tag": "y", "val": 1}}]
        assert decode_value(encode_value(value)) == value

    def test_dict_tag_is_reserved(self) -> None:
        """Test no codec may claim the escape tag."""

        class dict:  # noqa: A001, N801
            pass

        with pytest.raises(ValueError, match="reserved"):
            TypeCodecs.register(dict, encode=str, decode=lambda s: dict())


class TestValueCodec:
    """Test the codec service used by the encoder and decoder."""

    def test_encode_decode(self) -> None:
        """Test the service delegates to the builtins conversion."""
        codec = ValueCodec()
        data = codec.encode(Decimal("3.5"), Decimal)
        assert codec.decode(data, Decimal) == Decimal("3.5")
