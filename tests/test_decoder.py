"""Tests for decoding records, with an emphasis on malformed input."""

from __future__ import annotations

import copy
from typing import Any

import pytest

from exprjson.catalog import member
from exprjson.errors import (
    AmbiguousSignatureError,
    FormatError,
    ResolutionError,
    UnsupportedNodeError,
)
from exprjson.nodes import (
    Binary,
    Constant,
    ExpressionType,
    Lambda,
    MemberAccess,
    Parameter,
    Unary,
)
from exprjson.serialization import ExpressionSerializer
from samples import Context

E = ExpressionType

INT = {"qualifier": "builtins", "typeName": "int", "genericArguments": []}


@pytest.fixture
def serializer() -> ExpressionSerializer:
    return ExpressionSerializer()


def constant(value: int) -> dict[str, Any]:
    return {
        "nodeKind": "Constant",
        "resultType": INT,
        "typeName": "constant",
        "value": {"type": INT, "value": value},
    }


def add(left: Any, right: Any) -> dict[str, Any]:
    return {
        "nodeKind": "Add",
        "resultType": INT,
        "typeName": "binary",
        "left": left,
        "right": right,
        "method": None,
        "conversion": None,
        "liftToNull": False,
    }


# =============================================================================
# Well-formed input
# =============================================================================


class TestDecode:
    """Test decoding hand-written records."""

    def test_null(self, serializer: ExpressionSerializer) -> None:
        """Test null decodes to no node."""
        assert serializer.from_dict(None) is None

    def test_binary(self, serializer: ExpressionSerializer) -> None:
        """Test a simple tree."""
        node = serializer.from_dict(add(constant(1), constant(2)))
        assert isinstance(node, Binary)
        assert node.node_type is E.ADD
        assert node.type is int
        assert isinstance(node.left, Constant)
        assert node.left.value == 1

    def test_optional_flags_default_to_false(self, serializer: ExpressionSerializer) -> None:
        """Test liftToNull and tailCall may be omitted."""
        record = add(constant(1), constant(2))
        del record["liftToNull"]
        assert serializer.from_dict(record).lift_to_null is False

        x = {"nodeKind": "Parameter", "resultType": INT, "typeName": "parameter", "name": "x"}
        lam = {
            "nodeKind": "Lambda",
            "resultType": None,
            "typeName": "lambda",
            "parameters": [x],
            "body": x,
        }
        node = serializer.from_dict(lam)
        assert isinstance(node, Lambda)
        assert node.tail_call is False
        assert node.name is None

    def test_missing_result_type_is_inferred(self, serializer: ExpressionSerializer) -> None:
        """Test nodes without a result type infer it from their children."""
        record = add(constant(1), constant(2))
        del record["resultType"]
        assert serializer.from_dict(record).type is int

    def test_parameter_references_share_one_node(
        self, serializer: ExpressionSerializer
    ) -> None:
        """Test every record naming the same parameter yields the same object."""
        p = Parameter(int, "p")
        c = Parameter(Context, "c")
        tree = Lambda(Binary(E.ADD, p, MemberAccess(c, member(Context, "A"))), [p, c])
        node = serializer.from_dict(serializer.to_dict(tree))
        left = node.body.left
        assert left is node.parameters[0]
        assert node.body.right.expression is node.parameters[1]

    def test_throw_without_operand(self, serializer: ExpressionSerializer) -> None:
        """Test rethrow records carry no operand."""
        record = serializer.to_dict(Unary(E.THROW, None))
        assert record["operand"] is None
        node = serializer.from_dict(record)
        assert node.node_type is E.THROW
        assert node.operand is None


# =============================================================================
# Malformed input
# =============================================================================


class TestFormatErrors:
    """Test structurally invalid records."""

    def test_not_an_object(self, serializer: ExpressionSerializer) -> None:
        """Test a record that is not a JSON object."""
        with pytest.raises(FormatError, match="Expected an object"):
            serializer.from_dict([1, 2])  # type: ignore[arg-type]

    def test_missing_type_name(self, serializer: ExpressionSerializer) -> None:
        """Test the discriminator is required."""
        record = constant(1)
        del record["typeName"]
        with pytest.raises(FormatError, match="Missing required field") as exc_info:
            serializer.from_dict(record)
        assert exc_info.value.field == "typeName"

    def test_unknown_type_name(self, serializer: ExpressionSerializer) -> None:
        """Test an unrecognized discriminator."""
        record = constant(1) | {"typeName": "frobnicate"}
        with pytest.raises(FormatError, match="Unknown expression type 'frobnicate'"):
            serializer.from_dict(record)

    def test_unknown_node_kind(self, serializer: ExpressionSerializer) -> None:
        """Test an unrecognized node kind."""
        record = constant(1) | {"nodeKind": "Frobnicate"}
        with pytest.raises(FormatError, match="Unknown node kind 'Frobnicate'"):
            serializer.from_dict(record)

    def test_kind_outside_family(self, serializer: ExpressionSerializer) -> None:
        """Test a kind that the named family cannot hold."""
        record = add(constant(1), constant(2)) | {"nodeKind": "Negate"}
        with pytest.raises(FormatError, match="does not belong to 'binary'"):
            serializer.from_dict(record)

    def test_missing_child(self, serializer: ExpressionSerializer) -> None:
        """Test a required child that is absent."""
        record = add(constant(1), None)
        with pytest.raises(FormatError) as exc_info:
            serializer.from_dict(record)
        assert exc_info.value.record == "binary"
        assert exc_info.value.field == "right"

    def test_wrong_field_type(self, serializer: ExpressionSerializer) -> None:
        """Test a field holding the wrong JSON type."""
        record = add(constant(1), constant(2)) | {"liftToNull": "yes"}
        with pytest.raises(FormatError, match="Expected bool, got str"):
            serializer.from_dict(record)

    def test_arguments_not_a_list(self, serializer: ExpressionSerializer) -> None:
        """Test a sequence field holding an object."""
        record = {
            "nodeKind": "Invoke",
            "resultType": None,
            "typeName": "invocation",
            "expression": constant(1),
            "arguments": {"oops": True},
        }
        with pytest.raises(FormatError, match="Expected list, got dict"):
            serializer.from_dict(record)

    def test_lambda_parameters_must_be_parameters(
        self, serializer: ExpressionSerializer
    ) -> None:
        """Test a lambda whose parameter list holds another node."""
        record = {
            "nodeKind": "Lambda",
            "resultType": None,
            "typeName": "lambda",
            "parameters": [constant(1)],
            "body": constant(1),
        }
        with pytest.raises(FormatError, match="Expected parameter, got 'constant'"):
            serializer.from_dict(record)

    def test_unary_needs_operand(self, serializer: ExpressionSerializer) -> None:
        """Test only Throw may omit its operand."""
        record = {"nodeKind": "Negate", "resultType": INT, "typeName": "unary"}
        with pytest.raises(FormatError, match="Missing required field"):
            serializer.from_dict(record)

    def test_conversion_must_be_lambda(self, serializer: ExpressionSerializer) -> None:
        """Test the coalesce conversion slot."""
        record = add(constant(1), constant(2)) | {
            "nodeKind": "Coalesce",
            "conversion": constant(3),
        }
        with pytest.raises(FormatError, match="Expected lambda"):
            serializer.from_dict(record)

    def test_default_needs_result_type(self, serializer: ExpressionSerializer) -> None:
        """Test Default records carry their type."""
        record = {"nodeKind": "Default", "resultType": None, "typeName": "default"}
        with pytest.raises(FormatError, match="resultType"):
            serializer.from_dict(record)

    def test_conversion_without_target(self, serializer: ExpressionSerializer) -> None:
        """Test node construction errors surface as format errors."""
        record = {
            "nodeKind": "Convert",
            "resultType": None,
            "typeName": "unary",
            "operand": constant(1),
        }
        with pytest.raises(FormatError, match="requires an explicit target type"):
            serializer.from_dict(record)

    def test_unknown_member_type(self, serializer: ExpressionSerializer) -> None:
        """Test a member record with an unrecognized member kind."""
        c = Parameter(Context, "c")
        record = serializer.to_dict(MemberAccess(c, member(Context, "A")))
        record["member"]["memberType"] = "event"
        with pytest.raises(FormatError, match="Unknown member type 'event'"):
            serializer.from_dict(record)


class TestUnsupported:
    """Test records naming unsupported kinds."""

    @pytest.mark.parametrize("tag", ["loop", "switch", "try", "listInit", "memberInit"])
    def test_unsupported_tag(self, serializer: ExpressionSerializer, tag: str) -> None:
        """Test unsupported discriminators."""
        record = {"nodeKind": "Loop", "resultType": None, "typeName": tag}
        with pytest.raises(UnsupportedNodeError):
            serializer.from_dict(record)

    @pytest.mark.parametrize("kind", ["Loop", "Goto", "ListInit", "Extension"])
    def test_unsupported_kind(self, serializer: ExpressionSerializer, kind: str) -> None:
        """Test unsupported node kinds under a supported discriminator."""
        record = constant(1) | {"nodeKind": kind}
        with pytest.raises(UnsupportedNodeError) as exc_info:
            serializer.from_dict(record)
        assert exc_info.value.kind == kind

    def test_nested_unsupported(self, serializer: ExpressionSerializer) -> None:
        """Test an unsupported record deep inside the tree."""
        record = add(constant(1), add(constant(2), {"nodeKind": "Loop", "typeName": "loop"}))
        with pytest.raises(UnsupportedNodeError):
            serializer.from_dict(record)


class TestResolution:
    """Test records naming types or members that cannot be found."""

    def test_unknown_result_type(self, serializer: ExpressionSerializer) -> None:
        """Test an unresolvable type reference."""
        record = constant(1) | {
            "resultType": {"qualifier": "samples", "typeName": "Nope", "genericArguments": []},
        }
        with pytest.raises(ResolutionError, match=r"samples\.Nope"):
            serializer.from_dict(record)

    def test_unknown_member(self, serializer: ExpressionSerializer) -> None:
        """Test an unresolvable member name."""
        c = Parameter(Context, "c")
        record = serializer.to_dict(MemberAccess(c, member(Context, "A")))
        record["member"]["name"] = "Missing"
        with pytest.raises(ResolutionError, match="could not be found"):
            serializer.from_dict(record)

    def test_signature_mismatch(self, serializer: ExpressionSerializer) -> None:
        """Test a member whose signature matches no candidate."""
        c = Parameter(Context, "c")
        record = serializer.to_dict(MemberAccess(c, member(Context, "A")))
        record["member"]["signature"] = "str A"
        with pytest.raises(AmbiguousSignatureError):
            serializer.from_dict(record)

    def test_failed_decode_leaves_cache_usable(self, serializer: ExpressionSerializer) -> None:
        """Test a failed call does not poison later calls on the same serializer."""
        c = Parameter(Context, "c")
        good = serializer.to_dict(MemberAccess(c, member(Context, "A")))
        bad = copy.deepcopy(good)
        bad["member"]["name"] = "Missing"
        with pytest.raises(ResolutionError):
            serializer.from_dict(bad)
        assert isinstance(serializer.from_dict(good), MemberAccess)


class TestSameNameParameters:
    """Test the name-keyed reconciliation of parameters."""

    def test_same_named_parameters_unify(self, serializer: ExpressionSerializer) -> None:
        """Test two distinct parameters named alike decode to one node."""
        outer = Parameter(int, "x")
        inner = Parameter(int, "x")
        tree = Lambda(Lambda(Binary(E.ADD, outer, inner), [inner]), [outer])
        node = serializer.from_dict(serializer.to_dict(tree))
        body = node.body.body
        assert body.left is body.right
        assert node.parameters[0] is node.body.parameters[0]
