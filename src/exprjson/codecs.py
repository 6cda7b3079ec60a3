"""Value codec for constant payloads: type codec registry and builtins conversion."""

from __future__ import annotations

import base64
import dataclasses
import types
from collections.abc import Callable, Mapping
from datetime import date, datetime, time, timedelta
from decimal import Decimal
from enum import Enum
from typing import Any, ClassVar, Union, get_args, get_origin, get_type_hints

# Type tag format: {"tag": "<type_name>", "val": <encoded_value>}
# Used for non-JSON-native values so they decode without a declared type.
_TAG_KEY = "tag"
_VAL_KEY = "val"

_PRIMITIVES = (str, int, float, bool, type(None))


class TypeCodecs:
    """Registry of encode/decode functions for values JSON cannot carry natively.

    Usage:
        TypeCodecs.register(
            UUID,
            encode=str,
            decode=UUID,
        )
    """

    _registry: ClassVar[
        dict[type, tuple[Callable[[Any], Any], Callable[[Any], Any]]]
    ] = {}

    @classmethod
    def register[T](
        cls,
        typ: type[T],
        encode: Callable[[T], Any],
        decode: Callable[[Any], T],
    ) -> None:
        """Register encode/decode functions for a type.

        Args:
            typ: The type to register (e.g., datetime, UUID)
            encode: Function to convert T → JSON-compatible builtins
            decode: Function to convert JSON-compatible builtins → T

        Raises:
            ValueError: If a different type with the same __name__ is already
                registered, or the type is named ``dict``. This ensures
                tag-based decoding is unambiguous.

        """
        type_name = typ.__name__
        if type_name == "dict":
            msg = f"Cannot register {typ!r}: the 'dict' tag is reserved for escaped dicts."
            raise ValueError(msg)
        for existing_type in cls._registry:
            if existing_type is not typ and existing_type.__name__ == type_name:
                msg = (
                    f"Cannot register {typ!r}: a different type with name "
                    f"'{type_name}' is already registered ({existing_type!r}). "
                    f"Type names must be unique for tag-based decoding."
                )
                raise ValueError(msg)

        cls._registry[typ] = (encode, decode)

    @classmethod
    def get[T](
        cls,
        typ: type[T],
    ) -> tuple[Callable[[T], Any], Callable[[Any], T]] | None:
        """Get codec for type, or None if not registered."""
        return cls._registry.get(typ)

    @classmethod
    def get_by_name(
        cls,
        type_name: str,
    ) -> tuple[type, Callable[[Any], Any]] | None:
        """Get type and decoder by type name (for tag-based decoding)."""
        for typ, (_, decode) in cls._registry.items():
            if typ.__name__ == type_name:
                return typ, decode
        return None

    @classmethod
    def unregister(cls, typ: type) -> bool:
        """Unregister a type's codec.

        Returns:
            True if the type was registered and removed, False otherwise.

        """
        if typ in cls._registry:
            del cls._registry[typ]
            return True
        return False

    @classmethod
    def clear(cls) -> None:
        """Clear codec registry and re-register builtins."""
        cls._registry.clear()
        _register_builtins()


def _register_builtins() -> None:
    """Pre-register codecs for Python builtin types."""
    TypeCodecs.register(
        bytes,
        encode=lambda b: base64.b64encode(b).decode("ascii"),
        decode=base64.b64decode,
    )
    TypeCodecs.register(
        datetime,
        encode=lambda dt: dt.isoformat(),
        decode=datetime.fromisoformat,
    )
    TypeCodecs.register(
        date,
        encode=lambda d: d.isoformat(),
        decode=date.fromisoformat,
    )
    TypeCodecs.register(
        time,
        encode=lambda t: t.isoformat(),
        decode=time.fromisoformat,
    )
    TypeCodecs.register(
        timedelta,
        encode=lambda td: td.total_seconds(),
        decode=lambda s: timedelta(seconds=s),
    )
    TypeCodecs.register(Decimal, encode=str, decode=Decimal)
    TypeCodecs.register(set, encode=list, decode=set)
    TypeCodecs.register(frozenset, encode=list, decode=frozenset)
    TypeCodecs.register(tuple, encode=list, decode=tuple)


_register_builtins()


def _wrap_tagged(type_name: str, value: Any) -> dict[str, Any]:
    return {_TAG_KEY: type_name, _VAL_KEY: value}


def _is_type_tag(data: Any) -> bool:
    """Check if data is a ``{"tag", "val"}`` envelope."""
    return isinstance(data, dict) and set(data.keys()) == {_TAG_KEY, _VAL_KEY}


def _attributes(obj: Any) -> dict[str, Any]:
    if dataclasses.is_dataclass(obj):
        return {f.name: getattr(obj, f.name) for f in dataclasses.fields(obj)}
    return {k: v for k, v in vars(obj).items() if not k.startswith("_")}


def _field_types(cls: type) -> dict[str, Any]:
    try:
        return get_type_hints(cls)
    except (NameError, TypeError):
        return {}


def _non_null(typ: Any) -> Any:
    if get_origin(typ) in (Union, types.UnionType):
        options = [arg for arg in get_args(typ) if arg is not type(None)]
        return options[0] if len(options) == 1 else Any
    return typ


def _element_types(typ: Any, count: int) -> list[Any]:
    """Per-item types of a sequence of ``count`` items declared as ``typ``."""
    args = get_args(typ)
    if get_origin(typ) is tuple and args and args[-1] is not Ellipsis and len(args) == count:
        return list(args)
    return [args[0] if args else Any] * count


def _lost_type(cls: type, typ: Any) -> TypeError:
    declared = "no declared type" if typ is Any else f"declared type {typ!r}"
    msg = (
        f"Cannot encode {cls.__qualname__} value with {declared}; "
        f"it would not decode as {cls.__qualname__}"
    )
    return TypeError(msg)


def encode_value(obj: Any, typ: Any = Any) -> Any:
    """Convert a constant value to JSON-compatible Python builtins.

    Registered types are wrapped in a type tag and decode on their own.
    Enum members, objects and non-string mapping keys are written without
    their type, so ``typ`` must declare it exactly (``list[Color]`` for a
    list of enum members). A dict whose keys are exactly ``tag`` and ``val``
    is wrapped in a ``dict`` tag so it is not read back as a tagged value.

    Raises:
        TypeError: If the value has no builtins representation, or ``typ``
            does not carry the type needed to decode it again

    """
    if typ is object:
        typ = Any
    typ = _non_null(typ)
    cls = type(obj)

    if isinstance(obj, Enum):
        if typ is not cls:
            raise _lost_type(cls, typ)
        return encode_value(obj.value)
    if isinstance(obj, _PRIMITIVES):
        return obj

    if codec := TypeCodecs.get(cls):
        encode, _ = codec
        payload_type = typ if cls in (set, frozenset, tuple) else Any
        return _wrap_tagged(cls.__name__, encode_value(encode(obj), payload_type))

    if isinstance(obj, list):
        return [
            encode_value(item, item_type)
            for item, item_type in zip(obj, _element_types(typ, len(obj)), strict=True)
        ]
    if isinstance(obj, dict):
        args = get_args(typ)
        key_type, value_type = args if len(args) == 2 else (Any, Any)
        encoded = {_encode_key(k, key_type): encode_value(v, value_type) for k, v in obj.items()}
        return _wrap_tagged("dict", encoded) if _is_type_tag(encoded) else encoded
    if (dataclasses.is_dataclass(obj) or hasattr(obj, "__dict__")) and not isinstance(
        obj, type | types.FunctionType | types.ModuleType
    ):
        if (get_origin(typ) or typ) is not cls:
            raise _lost_type(cls, typ)
        hints = _field_types(cls)
        return {k: encode_value(v, hints.get(k, Any)) for k, v in _attributes(obj).items()}

    msg = f"Cannot encode value of type {cls.__qualname__}"
    raise TypeError(msg)


def _encode_key(key: Any, typ: Any) -> str:
    if type(key) is str:
        return key
    if isinstance(key, Enum | int | float) and type(key) is typ:
        return str(key.value) if isinstance(key, Enum) else str(key)
    declared = "no declared key type" if typ is Any else f"declared key type {typ!r}"
    msg = f"Cannot encode mapping key of type {type(key).__qualname__} with {declared}"
    raise TypeError(msg)


def decode_value(data: Any, typ: Any = Any) -> Any:
    """Rebuild a constant value from builtins, guided by its declared type.

    Raises:
        TypeError: If a tag names no registered codec

    """
    if data is None:
        return None

    if _is_type_tag(data):
        return _decode_tagged(data, typ)

    origin = get_origin(typ)
    args = get_args(typ)

    if typ is Any or typ is object:
        return _decode_untyped(data)

    if origin in (Union, types.UnionType):
        options = [arg for arg in args if arg is not type(None)]
        return decode_value(data, options[0] if len(options) == 1 else Any)

    if isinstance(data, list):
        element = args[0] if args else Any
        return [decode_value(item, element) for item in data]

    if isinstance(data, dict):
        cls = origin or typ
        if isinstance(cls, type) and issubclass(cls, Mapping):
            key_type, value_type = args if len(args) == 2 else (Any, Any)
            return {
                _decode_key(k, key_type): decode_value(v, value_type)
                for k, v in data.items()
            }
        if isinstance(cls, type):
            return _decode_object(data, cls)
        return _decode_untyped(data)

    if isinstance(typ, type) and issubclass(typ, Enum):
        return typ(data)
    if typ is float and isinstance(data, int) and not isinstance(data, bool):
        return float(data)
    return data


def _decode_tagged(data: dict[str, Any], typ: Any) -> Any:
    tag_name, raw_value = data[_TAG_KEY], data[_VAL_KEY]
    args = get_args(typ)

    if tag_name == "dict":
        key_type, value_type = args if len(args) == 2 else (Any, Any)
        return {
            _decode_key(k, key_type): decode_value(v, value_type) for k, v in raw_value.items()
        }
    if tag_name == "tuple":
        if args and args[-1] is not Ellipsis and len(args) == len(raw_value):
            return tuple(
                decode_value(item, arg) for item, arg in zip(raw_value, args, strict=True)
            )
        element = args[0] if args else Any
        return tuple(decode_value(item, element) for item in raw_value)

    codec_entry = TypeCodecs.get_by_name(tag_name)
    if codec_entry is None:
        msg = f"Unknown type tag: {tag_name}"
        raise TypeError(msg)
    tagged_type, decode = codec_entry

    if tagged_type in (set, frozenset):
        element = args[0] if args else Any
        return decode([decode_value(item, element) for item in raw_value])
    return decode(raw_value)


def _decode_untyped(data: Any) -> Any:
    if _is_type_tag(data):
        return _decode_tagged(data, Any)
    if isinstance(data, list):
        return [_decode_untyped(item) for item in data]
    if isinstance(data, dict):
        return {k: _decode_untyped(v) for k, v in data.items()}
    return data


def _decode_key(key: str, typ: Any) -> Any:
    if isinstance(typ, type) and issubclass(typ, Enum):
        value_type = type(next(iter(typ)).value)
        return typ(value_type(key))
    if typ in (int, float):
        return typ(key)
    if typ is bool:
        return key == "True"
    return key


def _decode_object(data: dict[str, Any], cls: type) -> Any:
    """Rebuild a dataclass through its constructor, other objects attribute-wise."""
    hints = _field_types(cls)
    values = {k: decode_value(v, hints.get(k, Any)) for k, v in data.items()}
    if dataclasses.is_dataclass(cls):
        init = {f.name for f in dataclasses.fields(cls) if f.init}
        obj = cls(**{k: v for k, v in values.items() if k in init})
        for k, v in values.items():
            if k not in init:
                object.__setattr__(obj, k, v)
        return obj
    obj = cls.__new__(cls)
    obj.__dict__.update(values)
    return obj


class ValueCodec:
    """Encodes constant payloads to builtins and back.

    The declared type is passed to both directions.
    """

    def encode(self, value: Any, typ: Any) -> Any:
        return encode_value(value, typ)

    def decode(self, data: Any, typ: Any) -> Any:
        return decode_value(data, typ)
