"""Metadata resolver: maps wire names and signatures back to runtime entities.

Resolved types and members are cached for the lifetime of the resolver and
never evicted; the descriptor space is bounded by the program's own types.
Cache hits are plain dictionary reads, cache fills are serialized by a lock
so that concurrent first-time resolutions of one key resolve (or fail) once.
"""

from __future__ import annotations

import logging
import threading
from typing import TYPE_CHECKING, Any, get_origin

from exprjson.catalog import Catalog, ReflectionCatalog
from exprjson.errors import AmbiguousSignatureError, ResolutionError
from exprjson.members import CONSTRUCTOR_NAME, MemberInfo, MemberKind
from exprjson.types import TypeRef, describe_type, type_name

if TYPE_CHECKING:
    from collections.abc import Sequence

logger = logging.getLogger(__name__)

_MISSING = object()

type _MemberKey = tuple[str, MemberKind | None, tuple[Any, ...]]


def _freeze(arguments: Sequence[Any]) -> tuple[Any, ...]:
    """Make generic arguments usable as a cache key (argument lists become tuples)."""
    return tuple(
        ("[]", _freeze(arg)) if isinstance(arg, list) else arg for arg in arguments
    )


def _module_of(tp: Any) -> str | None:
    return getattr(get_origin(tp) or tp, "__module__", None)


class MetadataResolver:
    """Resolves types and members named on the wire, with a multi-level cache.

    Usage:
        resolver = MetadataResolver()
        tp = resolver.resolve_type("builtins", "dict", (str, int))
        get = resolver.resolve_callable(dict, "get", "Any get(Any, Any)")

    Pass a custom ``Catalog`` to resolve against something other than the
    live interpreter; each resolver owns its caches, so tests can use an
    isolated instance.
    """

    def __init__(self, catalog: Catalog | None = None) -> None:
        self.catalog = catalog if catalog is not None else ReflectionCatalog()
        # qualifier -> name -> generic arguments -> type
        self._types: dict[str, dict[str, dict[tuple[Any, ...], Any]]] = {}
        # type -> name -> (signature, kind, generic arguments) -> member
        self._members: dict[Any, dict[str, dict[_MemberKey, MemberInfo]]] = {}
        # type -> TypeRef
        self._refs: dict[Any, TypeRef] = {}
        self._lock = threading.Lock()

    def resolve_type(
        self,
        qualifier: str,
        name: str,
        generic_arguments: Sequence[Any] = (),
    ) -> Any:
        """Resolve a (qualifier, name, generic arguments) triple to a type.

        Raises:
            ResolutionError: If the type cannot be found or instantiated

        """
        key = _freeze(generic_arguments)
        cached = self._types.get(qualifier, {}).get(name, {}).get(key, _MISSING)
        if cached is not _MISSING:
            return cached

        with self._lock:
            by_args = self._types.setdefault(qualifier, {}).setdefault(name, {})
            if key in by_args:
                return by_args[key]
            definition = by_args.get(())
            if definition is None:
                definition = self.catalog.find_type(qualifier, name)
                by_args[()] = definition
            resolved = (
                self.catalog.instantiate(definition, tuple(generic_arguments))
                if generic_arguments
                else definition
            )
            by_args[key] = resolved
            logger.debug("Cached type %s.%s%s", qualifier, name, list(key) or "")
            return resolved

    def resolve_member(
        self,
        tp: Any,
        name: str,
        signature: str,
        kind: MemberKind | None = None,
    ) -> MemberInfo:
        """Resolve a field, property or method of ``tp`` by name and signature.

        Raises:
            ResolutionError: If ``tp`` has no member called ``name``
            AmbiguousSignatureError: If zero or several candidates match
                ``signature``

        """
        return self._resolve(tp, name, signature, kind, ())

    def resolve_callable(
        self,
        tp: Any,
        name: str,
        signature: str,
        generic_arguments: Sequence[Any] = (),
    ) -> MemberInfo:
        """Resolve a method, binding generic arguments for generic definitions.

        Raises:
            ResolutionError: If the method cannot be found or does not accept
                the generic arguments
            AmbiguousSignatureError: If zero or several candidates match
                ``signature``

        """
        return self._resolve(tp, name, signature, MemberKind.METHOD, generic_arguments)

    def resolve_constructor(self, tp: Any, signature: str) -> MemberInfo:
        """Resolve the constructor of ``tp`` with the given signature."""
        return self._resolve(
            tp, CONSTRUCTOR_NAME, signature, MemberKind.CONSTRUCTOR, ()
        )

    def describe_type(self, tp: Any) -> TypeRef:
        """Build (and cache) the wire reference for a runtime type."""
        if isinstance(tp, list):
            return describe_type(tp)
        try:
            cached = self._refs.get(tp)
        except TypeError:
            return describe_type(tp)
        if cached is None:
            cached = describe_type(tp)
            with self._lock:
                self._refs.setdefault(tp, cached)
        return cached

    def _resolve(
        self,
        tp: Any,
        name: str,
        signature: str,
        kind: MemberKind | None,
        generic_arguments: Sequence[Any],
    ) -> MemberInfo:
        key: _MemberKey = (signature, kind, _freeze(generic_arguments))
        cached = self._members.get(tp, {}).get(name, {}).get(key)
        if cached is not None:
            return cached

        with self._lock:
            by_key = self._members.setdefault(tp, {}).setdefault(name, {})
            if key in by_key:
                return by_key[key]
            found = self._lookup(tp, name, signature, kind)
            if generic_arguments:
                found = self._bind(found, generic_arguments)
            by_key[key] = found
            logger.debug("Cached member %s", found)
            return found

    def _lookup(
        self,
        tp: Any,
        name: str,
        signature: str,
        kind: MemberKind | None,
    ) -> MemberInfo:
        candidates = [
            m
            for m in self.catalog.members(tp, name)
            if kind is None or m.kind is kind
        ]
        if not candidates:
            what = kind or "member"
            msg = f"{what.capitalize()} '{name}' could not be found on type {type_name(tp)}"
            raise ResolutionError(
                msg, qualifier=_module_of(tp), name=name, signature=signature
            )

        matches = [m for m in candidates if m.signature == signature]
        if len(matches) != 1:
            problem = "No candidate matches" if not matches else "Several candidates match"
            msg = (
                f"{problem} signature '{signature}' for '{name}' on type "
                f"{type_name(tp)}; candidates: {[m.signature for m in candidates]}"
            )
            raise AmbiguousSignatureError(
                msg,
                name=name,
                signature=signature,
                candidates=[m.signature for m in candidates],
                qualifier=_module_of(tp),
            )
        return matches[0]

    def _bind(self, found: MemberInfo, generic_arguments: Sequence[Any]) -> MemberInfo:
        try:
            return found.make_generic(*generic_arguments)
        except TypeError as e:
            raise ResolutionError(
                str(e), name=found.name, signature=found.signature
            ) from e

