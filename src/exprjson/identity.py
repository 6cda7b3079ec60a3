"""Parameter identity tracking for one encode or decode pass."""

from __future__ import annotations

import dataclasses
import logging
from typing import TYPE_CHECKING, Any

from exprjson.nodes import Constant, Expression, Parameter

if TYPE_CHECKING:
    from collections.abc import Iterable

logger = logging.getLogger(__name__)

GENERATED_PREFIX = "$p"


def declared_names(tree: Expression | None) -> set[str]:
    """Collect the declared name of every parameter reachable from ``tree``."""
    names: set[str] = set()
    visited: set[int] = set()
    pending: list[Any] = [tree]
    while pending:
        item = pending.pop()
        if isinstance(item, tuple):
            pending.extend(item)
        elif isinstance(item, Expression) and id(item) not in visited:
            visited.add(id(item))
            if isinstance(item, Parameter):
                if item.name is not None:
                    names.add(item.name)
            elif not isinstance(item, Constant):
                pending.extend(getattr(item, f.name) for f in dataclasses.fields(item))
    return names


class ParameterNames:
    """Encode side: assigns each parameter object one wire name.

    Keyed by object identity. The first occurrence fixes the name: the
    declared name when present, otherwise ``$p<n>`` with the smallest ``n``
    not reserved and not yet used in this pass. Generated names depend only
    on traversal order, so encoding the same tree twice gives the same output.
    """

    def __init__(self) -> None:
        self._names: dict[int, str] = {}
        # keeps keyed parameters alive so ids are not reused mid-pass
        self._seen: list[Parameter] = []
        self._used: set[str] = set()
        self._counter = 0

    def reserve(self, names: Iterable[str]) -> None:
        """Keep generated names clear of ``names``.

        Pass the declared names of the whole tree before naming starts, so a
        parameter declared as ``$p0`` deep in the tree is not merged with an
        unnamed one met earlier.
        """
        self._used.update(names)

    def name_of(self, parameter: Parameter) -> str:
        key = id(parameter)
        if (name := self._names.get(key)) is not None:
            return name
        name = parameter.name if parameter.name is not None else self._generate()
        self._names[key] = name
        self._seen.append(parameter)
        self._used.add(name)
        return name

    def _generate(self) -> str:
        while True:
            name = f"{GENERATED_PREFIX}{self._counter}"
            self._counter += 1
            if name not in self._used:
                return name


class ParameterTable:
    """Decode side: maps wire names to the parameter node built for them.

    A record naming an already-seen parameter yields the existing node, so
    every reference shares one binding. Keyed by name only: two distinct
    parameters that share a name in one tree decode to a single node.
    """

    def __init__(self) -> None:
        self._parameters: dict[str, Parameter] = {}

    def get_or_create(self, name: str, type_: Any) -> Parameter:
        """Return the node bound to ``name``, creating it with ``type_`` on first use."""
        if (existing := self._parameters.get(name)) is not None:
            logger.debug("Reusing parameter %s", name)
            return existing
        parameter = Parameter(type_, name)
        self._parameters[name] = parameter
        return parameter

    def __contains__(self, name: object) -> bool:
        return name in self._parameters

    def __len__(self) -> int:
        return len(self._parameters)
