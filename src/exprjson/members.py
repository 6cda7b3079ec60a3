"""Member descriptors: resolved handles to fields, properties, methods and constructors."""

from __future__ import annotations

from dataclasses import dataclass, field, replace
from enum import StrEnum
from typing import TYPE_CHECKING, Any, get_origin

from exprjson.types import substitute_type_params, type_name

if TYPE_CHECKING:
    from collections.abc import Sequence

CONSTRUCTOR_NAME = "__init__"


class MemberKind(StrEnum):
    """Kind of a type member."""

    FIELD = "field"
    PROPERTY = "property"
    METHOD = "method"
    CONSTRUCTOR = "constructor"


def format_signature(
    kind: MemberKind,
    name: str,
    returns: Any,
    parameters: Sequence[str] = (),
    type_params: Sequence[Any] = (),
) -> str:
    """Build the canonical signature string of a member.

    Fields and properties read ``"<type> <name>"``; callables read
    ``"<return> <name>[<type params>](<parameter types>)"``, e.g.
    ``"int method(str)"`` or ``"T first[T](list[T])"``.
    """
    if kind in (MemberKind.FIELD, MemberKind.PROPERTY):
        return f"{type_name(returns)} {name}"
    generic = ""
    if type_params:
        generic = "[" + ", ".join(type_name(p) for p in type_params) + "]"
    return f"{type_name(returns)} {name}{generic}({', '.join(parameters)})"


@dataclass(frozen=True)
class MemberInfo:
    """A resolved member of a runtime type.

    ``signature`` always describes the generic *definition*, so that every
    instantiation of a generic method shares it; ``generic_arguments`` holds
    the bound arguments of an instantiated generic method.
    """

    declaring_type: Any
    name: str
    kind: MemberKind
    type: Any
    signature: str
    parameters: tuple[Any, ...] = ()
    static: bool = False
    type_params: tuple[Any, ...] = ()
    generic_arguments: tuple[Any, ...] = ()
    target: Any = field(default=None, compare=False, repr=False)

    @property
    def owner(self) -> Any:
        """The class object that holds the member."""
        return get_origin(self.declaring_type) or self.declaring_type

    @property
    def is_generic_definition(self) -> bool:
        return bool(self.type_params) and not self.generic_arguments

    def make_generic(self, *arguments: Any) -> MemberInfo:
        """Instantiate a generic method definition with concrete type arguments.

        Raises:
            TypeError: If the member is not a generic definition or the
                argument count does not match its type parameters

        """
        if not self.is_generic_definition:
            msg = f"{self.signature} is not a generic method definition"
            raise TypeError(msg)
        if len(arguments) != len(self.type_params):
            msg = (
                f"{self.signature} expects {len(self.type_params)} type "
                f"arguments but got {len(arguments)}"
            )
            raise TypeError(msg)
        substitutions = dict(zip(self.type_params, arguments, strict=True))
        return replace(
            self,
            type=substitute_type_params(self.type, substitutions),
            parameters=tuple(
                substitute_type_params(p, substitutions) for p in self.parameters
            ),
            generic_arguments=tuple(arguments),
        )

    def get_value(self, instance: Any) -> Any:
        """Read a field or property (from the class when ``instance`` is None)."""
        return getattr(self.owner if instance is None else instance, self.name)

    def set_value(self, instance: Any, value: Any) -> None:
        """Write a field or property."""
        setattr(self.owner if instance is None else instance, self.name, value)

    def invoke(self, instance: Any, arguments: Sequence[Any]) -> Any:
        """Call a method or constructor."""
        if self.kind is MemberKind.CONSTRUCTOR:
            return self.owner(*arguments)
        if self.kind is not MemberKind.METHOD:
            msg = f"{self.signature} is not callable"
            raise TypeError(msg)
        if self.static or instance is None:
            return getattr(self.owner, self.name)(*arguments)
        return getattr(instance, self.name)(*arguments)

    def __str__(self) -> str:
        return f"{type_name(self.declaring_type)}.{self.signature}"
