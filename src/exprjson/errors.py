"""Exception types raised while encoding and decoding expression trees.

Every error aborts the current encode or decode call. Callers should treat
any of them as "this value cannot be round-tripped".
"""

from __future__ import annotations

from typing import TYPE_CHECKING, Any

if TYPE_CHECKING:
    from collections.abc import Sequence


class ExpressionSerializationError(Exception):
    """Base class for all expression codec errors."""


class ResolutionError(ExpressionSerializationError, LookupError):
    """A type or member named on the wire could not be found."""

    def __init__(
        self,
        message: str,
        *,
        qualifier: str | None = None,
        name: str | None = None,
        signature: str | None = None,
    ) -> None:
        super().__init__(message)
        self.qualifier = qualifier
        self.name = name
        self.signature = signature


class AmbiguousSignatureError(ResolutionError):
    """Zero or several candidates match the requested signature."""

    def __init__(
        self,
        message: str,
        *,
        name: str,
        signature: str,
        candidates: Sequence[str] = (),
        qualifier: str | None = None,
    ) -> None:
        super().__init__(message, qualifier=qualifier, name=name, signature=signature)
        self.candidates = tuple(candidates)


class UnsupportedNodeError(ExpressionSerializationError, NotImplementedError):
    """The node kind is outside the supported set."""

    def __init__(self, kind: Any) -> None:
        super().__init__(f"Expression of kind '{kind}' is not supported")
        self.kind = kind


class FormatError(ExpressionSerializationError, ValueError):
    """Wire input is structurally malformed."""

    def __init__(
        self,
        message: str,
        *,
        record: str | None = None,
        field: str | None = None,
    ) -> None:
        if record is not None and field is not None:
            message = f"{message} (field '{field}' of '{record}' record)"
        elif record is not None:
            message = f"{message} ('{record}' record)"
        super().__init__(message)
        self.record = record
        self.field = field
