"""Runtime type/member catalog queried by the metadata resolver.

The reflection catalog reads the live interpreter: modules are imported with
importlib, members are discovered from class dictionaries and annotations, and
signatures are rebuilt from ``inspect.signature`` plus ``get_type_hints``.
"""

from __future__ import annotations

import importlib
import inspect
import logging
import typing
from abc import ABC, abstractmethod
from typing import Any, ClassVar, get_args, get_origin, get_type_hints

from exprjson.errors import ResolutionError
from exprjson.members import CONSTRUCTOR_NAME, MemberInfo, MemberKind, format_signature
from exprjson.types import (
    NoneType,
    bind_type_params,
    instantiate,
    parameterized_bases,
    substitute_type_params,
    type_name,
    type_parameters,
)

logger = logging.getLogger(__name__)

_MISSING = object()

# typing.Union and friends are instances of this rather than classes
_SpecialForm = type(typing.Union)


def _is_type_like(obj: Any) -> bool:
    return (
        isinstance(obj, type | _SpecialForm)
        or obj is Ellipsis
        or get_origin(obj) is not None
    )


class Catalog(ABC):
    """Source of runtime types and their members."""

    @abstractmethod
    def find_type(self, qualifier: str, name: str) -> Any:
        """Find the (possibly generic) type ``name`` defined in ``qualifier``.

        Raises:
            ResolutionError: If no such type exists, or the name refers to
                something other than a type

        """
        ...

    @abstractmethod
    def members(self, tp: Any, name: str) -> list[MemberInfo]:
        """List every member of ``tp`` declared under ``name``.

        Constructors are listed under ``"__init__"``. An empty list means the
        type has no member by that name.
        """
        ...

    def instantiate(self, definition: Any, arguments: tuple[Any, ...]) -> Any:
        """Bind generic arguments to a generic type definition."""
        return instantiate(definition, arguments)


class ReflectionCatalog(Catalog):
    """Catalog backed by importlib and the inspect module."""

    def find_type(self, qualifier: str, name: str) -> Any:
        try:
            obj: Any = importlib.import_module(qualifier)
        except ImportError as e:
            msg = f"Type could not be found: {qualifier}.{name}"
            raise ResolutionError(msg, qualifier=qualifier, name=name) from e

        for part in name.split("."):
            try:
                obj = getattr(obj, part)
            except AttributeError as e:
                msg = f"Type could not be found: {qualifier}.{name}"
                raise ResolutionError(msg, qualifier=qualifier, name=name) from e
        if not _is_type_like(obj):
            msg = f"{qualifier}.{name} is not a type"
            raise ResolutionError(msg, qualifier=qualifier, name=name)
        logger.debug("Loaded type %s.%s", qualifier, name)
        return obj

    def members(self, tp: Any, name: str) -> list[MemberInfo]:
        owner = get_origin(tp) or tp
        if not isinstance(owner, type):
            return []
        if name == CONSTRUCTOR_NAME:
            return [self._constructor(tp, owner)]

        raw = owner.__dict__.get(name, _MISSING)
        if isinstance(raw, property):
            return [self._property(tp, owner, name, raw)]
        if isinstance(raw, staticmethod | classmethod) or (
            raw is not _MISSING and inspect.isroutine(raw)
        ):
            return [self._method(tp, owner, name, raw)]
        if name in inspect.get_annotations(owner) or raw is not _MISSING:
            return [self._field(tp, owner, name, raw)]
        return []

    def find_member(self, tp: Any, name: str) -> MemberInfo:
        """Find ``name`` on ``tp`` or the first base class that declares it.

        An inherited member is described against the base as ``tp`` sees it,
        so ``get`` on ``class IntBox(Box[int])`` belongs to ``Box[int]``.

        Raises:
            ResolutionError: If no class in the MRO declares the member

        """
        owner = get_origin(tp) or tp
        if name == CONSTRUCTOR_NAME:
            return self._constructor(tp, owner)
        bases = parameterized_bases(tp)
        for base in inspect.getmro(owner):
            if name in base.__dict__ or name in inspect.get_annotations(base):
                found = self.members(tp if base is owner else bases.get(base, base), name)
                if found:
                    return found[0]
        msg = f"Member '{name}' could not be found on type {type_name(tp)}"
        raise ResolutionError(msg, qualifier=getattr(owner, "__module__", None), name=name)

    def _field(self, tp: Any, owner: type, name: str, raw: Any) -> MemberInfo:
        hints = _hints(owner)
        definition = hints.get(name, type(raw) if raw is not _MISSING else Any)
        static = False
        if get_origin(definition) is ClassVar:
            static = True
            definition = get_args(definition)[0] if get_args(definition) else Any
        return MemberInfo(
            declaring_type=tp,
            name=name,
            kind=MemberKind.FIELD,
            type=substitute_type_params(definition, bind_type_params(tp)),
            signature=format_signature(MemberKind.FIELD, name, definition),
            static=static,
            target=None if raw is _MISSING else raw,
        )

    def _property(self, tp: Any, owner: type, name: str, raw: property) -> MemberInfo:
        returns = _hints(raw.fget, owner).get("return", Any) if raw.fget else Any
        return MemberInfo(
            declaring_type=tp,
            name=name,
            kind=MemberKind.PROPERTY,
            type=substitute_type_params(returns, bind_type_params(tp)),
            signature=format_signature(MemberKind.PROPERTY, name, returns),
            target=raw,
        )

    def _method(self, tp: Any, owner: type, name: str, raw: Any) -> MemberInfo:
        static = isinstance(raw, staticmethod | classmethod)
        fn = raw.__func__ if static else raw
        skip_first = not isinstance(raw, staticmethod)
        hints = _hints(fn, owner)
        texts, definitions = _parameters(fn, hints, skip_first=skip_first)
        returns = hints.get("return", Any)
        type_params = tuple(getattr(fn, "__type_params__", ()))
        bindings = bind_type_params(tp)
        return MemberInfo(
            declaring_type=tp,
            name=name,
            kind=MemberKind.METHOD,
            type=substitute_type_params(returns, bindings),
            signature=format_signature(
                MemberKind.METHOD, name, returns, texts, type_params
            ),
            parameters=tuple(substitute_type_params(p, bindings) for p in definitions),
            static=static,
            type_params=type_params,
            target=raw,
        )

    def _constructor(self, tp: Any, owner: type) -> MemberInfo:
        init = owner.__init__
        view = tp
        if inspect.isfunction(init):
            definer = next(
                (b for b in owner.__mro__ if b.__dict__.get("__init__") is init), owner
            )
            view = parameterized_bases(tp).get(definer, tp)
            hints = {**_hints(definer), **_hints(init, definer)}
            texts, definitions = _parameters(init, hints, skip_first=True)
        elif init is object.__init__ and owner.__new__ is object.__new__:
            texts, definitions = [], []
        else:
            texts, definitions = ["..."], []
        bindings = bind_type_params(view)
        return MemberInfo(
            declaring_type=tp,
            name=CONSTRUCTOR_NAME,
            kind=MemberKind.CONSTRUCTOR,
            type=tp,
            signature=format_signature(
                MemberKind.CONSTRUCTOR, CONSTRUCTOR_NAME, NoneType, texts
            ),
            parameters=tuple(substitute_type_params(p, bindings) for p in definitions),
            target=init,
        )


def _hints(obj: Any, owner: type | None = None) -> dict[str, Any]:
    """Evaluate annotations, falling back to ``Any`` for unresolvable names."""
    localns = {p.__name__: p for p in getattr(obj, "__type_params__", ())}
    if owner is not None:
        localns = {p.__name__: p for p in type_parameters(owner)} | localns
    try:
        return get_type_hints(obj, localns=localns or None)
    except (NameError, TypeError) as e:
        logger.debug("Annotations of %r could not be evaluated: %s", obj, e)
        return {}


def _parameters(
    fn: Any,
    hints: dict[str, Any],
    *,
    skip_first: bool,
) -> tuple[list[str], list[Any]]:
    """Return the signature texts and annotated types of a callable's parameters."""
    try:
        params = list(inspect.signature(fn).parameters.values())
    except (TypeError, ValueError):
        return ["..."], []
    if skip_first and params:
        params = params[1:]

    texts: list[str] = []
    definitions: list[Any] = []
    for param in params:
        annotation = hints.get(param.name, Any)
        prefix = ""
        if param.kind is inspect.Parameter.VAR_POSITIONAL:
            prefix = "*"
        elif param.kind is inspect.Parameter.VAR_KEYWORD:
            prefix = "**"
        texts.append(prefix + type_name(annotation))
        definitions.append(annotation)
    return texts, definitions


_reflection = ReflectionCatalog()


def member(tp: Any, name: str) -> MemberInfo:
    """Describe a field, property or method of ``tp`` for building trees."""
    return _reflection.find_member(tp, name)


def method(tp: Any, name: str, *generic_arguments: Any) -> MemberInfo:
    """Describe a method, instantiating it when generic arguments are given."""
    info = _reflection.find_member(tp, name)
    if info.kind is not MemberKind.METHOD:
        msg = f"'{name}' on {type_name(tp)} is a {info.kind}, not a method"
        raise TypeError(msg)
    return info.make_generic(*generic_arguments) if generic_arguments else info


def constructor(tp: Any) -> MemberInfo:
    """Describe the constructor of ``tp``."""
    return _reflection.find_member(tp, CONSTRUCTOR_NAME)


def indexer(tp: Any) -> MemberInfo:
    """Describe the ``__getitem__`` indexer of ``tp``."""
    return method(tp, "__getitem__")
