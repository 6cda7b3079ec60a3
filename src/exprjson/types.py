"""Type references: naming, locating and instantiating runtime types."""

from __future__ import annotations

import types
import typing
from dataclasses import dataclass
from typing import Any, TypeVar, get_args, get_origin

from exprjson.errors import ResolutionError

NoneType = type(None)

_UNION_ORIGINS: tuple[Any, ...] = (typing.Union, types.UnionType)

# Runtime types whose __module__/__qualname__ do not point back at them
_RELOCATED: dict[Any, tuple[str, str]] = {
    NoneType: ("types", "NoneType"),
    types.FunctionType: ("types", "FunctionType"),
    types.BuiltinFunctionType: ("types", "BuiltinFunctionType"),
    types.MethodType: ("types", "MethodType"),
    types.UnionType: ("typing", "Union"),
    typing.Union: ("typing", "Union"),
}


@dataclass(frozen=True)
class TypeRef:
    """Wire-level reference to a type.

    A reference with neither qualifier nor name is a bare argument list, as
    found in the parameter slot of ``Callable[[int, str], bool]``.
    """

    qualifier: str | None
    name: str | None
    generic_arguments: tuple[TypeRef, ...] = ()


def type_name(tp: Any) -> str:
    """Get a short human-readable name for a runtime type."""
    if tp is None or tp is NoneType:
        return "None"
    if tp is Ellipsis:
        return "..."
    if isinstance(tp, list):
        return "[" + ", ".join(type_name(arg) for arg in tp) + "]"
    if isinstance(tp, TypeVar):
        return tp.__name__
    origin = get_origin(tp)
    args = get_args(tp)
    if origin in _UNION_ORIGINS:
        return " | ".join(type_name(arg) for arg in args)
    if origin is not None and args:
        return f"{type_name(origin)}[{', '.join(type_name(arg) for arg in args)}]"
    if tp is Any:
        return "Any"
    if isinstance(tp, type):
        return tp.__qualname__
    return repr(tp)


def locate(obj: Any) -> tuple[str, str]:
    """Return the (module, qualified name) pair that imports ``obj`` back.

    Raises:
        ResolutionError: If the object cannot be reached by import path

    """
    if (known := _RELOCATED.get(obj)) is not None:
        return known
    module = getattr(obj, "__module__", None)
    qualname = getattr(obj, "__qualname__", None)
    if not isinstance(module, str) or not isinstance(qualname, str):
        msg = f"Type {type_name(obj)} has no importable name"
        raise ResolutionError(msg, name=type_name(obj))
    if "<locals>" in qualname:
        msg = f"Type {qualname} is defined in a local scope and cannot be referenced"
        raise ResolutionError(msg, qualifier=module, name=qualname)
    return module, qualname


def describe_type(tp: Any) -> TypeRef:
    """Build the TypeRef for a runtime type."""
    if isinstance(tp, list):
        return TypeRef(None, None, tuple(describe_type(arg) for arg in tp))
    if tp is Ellipsis:
        return TypeRef("builtins", "Ellipsis")
    if tp is None:
        tp = NoneType

    origin = get_origin(tp)
    args = get_args(tp)
    if origin is not None and args:
        base = typing.Union if origin in _UNION_ORIGINS else origin
        qualifier, name = locate(base)
        return TypeRef(qualifier, name, tuple(describe_type(arg) for arg in args))

    qualifier, name = locate(tp)
    return TypeRef(qualifier, name)


def instantiate(definition: Any, arguments: tuple[Any, ...]) -> Any:
    """Bind generic arguments to a generic type definition.

    Raises:
        ResolutionError: If the definition does not accept the arguments

    """
    if not arguments:
        return definition
    try:
        return definition[arguments if len(arguments) > 1 else arguments[0]]
    except TypeError as e:
        msg = (
            f"Type {type_name(definition)} cannot be instantiated with "
            f"[{', '.join(type_name(arg) for arg in arguments)}]"
        )
        raise ResolutionError(msg, name=type_name(definition)) from e


def type_parameters(tp: Any) -> tuple[Any, ...]:
    """Get the PEP 695 / Generic type parameters declared by a class."""
    return tuple(getattr(tp, "__type_params__", ()) or getattr(tp, "__parameters__", ()))


def substitute_type_params(type_expr: Any, substitutions: dict[Any, Any]) -> Any:
    """Recursively substitute type parameters in a type expression."""
    if isinstance(type_expr, list):
        return [substitute_type_params(arg, substitutions) for arg in type_expr]

    if type_expr in substitutions:
        return substitutions[type_expr]

    origin = get_origin(type_expr)
    args = get_args(type_expr)

    if origin is None or not args:
        return type_expr

    new_args = tuple(substitute_type_params(arg, substitutions) for arg in args)

    # UnionType (| operator) needs special reconstruction
    if isinstance(type_expr, types.UnionType):
        result = new_args[0]
        for arg in new_args[1:]:
            result = result | arg
        return result

    return origin[new_args]


def bind_type_params(tp: Any) -> dict[Any, Any]:
    """Map the type parameters of a parameterized class to its arguments."""
    origin = get_origin(tp)
    if origin is None:
        return {}
    params = type_parameters(origin)
    args = get_args(tp)
    if len(params) != len(args):
        return {}
    return dict(zip(params, args, strict=True))


def parameterized_bases(tp: Any) -> dict[type, Any]:
    """Map each generic base class of ``tp`` to its parameterization.

    Arguments are carried down the hierarchy, so for
    ``class IntBox(Box[int])`` the result maps ``Box`` to ``Box[int]``.
    """
    owner = get_origin(tp) or tp
    if not isinstance(owner, type):
        return {}
    found: dict[type, Any] = {}
    pending = [(owner, bind_type_params(tp))]
    while pending:
        cls, bindings = pending.pop()
        for base in types.get_original_bases(cls):
            origin = get_origin(base)
            if not isinstance(origin, type) or origin in found:
                continue
            if origin is typing.Generic or origin is typing.Protocol:
                continue
            bound = substitute_type_params(base, bindings)
            found[origin] = bound
            pending.append((origin, bind_type_params(bound)))
    return found
