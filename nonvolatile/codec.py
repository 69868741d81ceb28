"""Value codecs.

A codec turns a Python value into text for the manifest and back again as a
requested type. ``State`` never looks at types itself; it hands the type the
caller asked for to the codec and treats any failure as "not stored as that
type".
"""

from __future__ import annotations

import dataclasses
import json
import math
import typing
from typing import Any, Protocol, Union

from .errors import SerializeError, TypeMismatchError


class Codec(Protocol):
    """``encode`` raises ``SerializeError`` for values it cannot store.

    ``decode`` raises ``TypeMismatchError`` (or any ``ValueError``) when the
    text is malformed or not of the requested type; ``State.get`` reports
    either as absence.
    """

    def encode(self, value: Any) -> str: ...

    def decode(self, text: str, type_: Any = object) -> Any: ...


def _to_jsonable(value: Any) -> Any:
    if value is None or isinstance(value, (bool, int, str)):
        return value
    if isinstance(value, float):
        if not math.isfinite(value):
            raise SerializeError(f"non-finite float cannot be stored: {value!r}")
        return value
    if dataclasses.is_dataclass(value) and not isinstance(value, type):
        return {f.name: _to_jsonable(getattr(value, f.name)) for f in dataclasses.fields(value)}
    if isinstance(value, (list, tuple)):
        return [_to_jsonable(v) for v in value]
    if isinstance(value, dict):
        out = {}
        for k, v in value.items():
            if not isinstance(k, str):
                raise SerializeError(f"dict keys must be str, got {type(k).__name__}")
            out[k] = _to_jsonable(v)
        return out
    raise SerializeError(f"unsupported value type: {type(value).__name__}")


def _mismatch(obj: Any, type_: Any) -> TypeMismatchError:
    return TypeMismatchError(f"stored {type(obj).__name__} is not a {getattr(type_, '__name__', type_)}")


def _coerce(obj: Any, type_: Any) -> Any:
    if type_ is object or type_ is Any:
        return obj
    if type_ is None or type_ is type(None):
        if obj is None:
            return None
        raise _mismatch(obj, type_)

    origin = typing.get_origin(type_)
    args = typing.get_args(type_)

    if origin is Union:
        for arg in args:
            try:
                return _coerce(obj, arg)
            except TypeMismatchError:
                continue
        raise _mismatch(obj, type_)

    if type_ is bool:
        if isinstance(obj, bool):
            return obj
        raise _mismatch(obj, type_)
    if type_ is int:
        if isinstance(obj, int) and not isinstance(obj, bool):
            return obj
        raise _mismatch(obj, type_)
    if type_ is float:
        if isinstance(obj, (int, float)) and not isinstance(obj, bool):
            return float(obj)
        raise _mismatch(obj, type_)
    if type_ is str:
        if isinstance(obj, str):
            return obj
        raise _mismatch(obj, type_)

    if type_ is list or origin is list:
        if not isinstance(obj, list):
            raise _mismatch(obj, type_)
        if not args:
            return list(obj)
        return [_coerce(v, args[0]) for v in obj]

    if type_ is tuple or origin is tuple:
        if not isinstance(obj, list):
            raise _mismatch(obj, type_)
        if not args:
            return tuple(obj)
        if len(args) == 2 and args[1] is Ellipsis:
            return tuple(_coerce(v, args[0]) for v in obj)
        if len(args) != len(obj):
            raise TypeMismatchError(f"expected {len(args)} items, stored {len(obj)}")
        return tuple(_coerce(v, t) for v, t in zip(obj, args))

    if type_ is dict or origin is dict:
        if not isinstance(obj, dict):
            raise _mismatch(obj, type_)
        if not args:
            return dict(obj)
        if args[0] is not str:
            raise TypeMismatchError("only str dict keys can be stored")
        return {k: _coerce(v, args[1]) for k, v in obj.items()}

    if isinstance(type_, type) and dataclasses.is_dataclass(type_):
        if not isinstance(obj, dict):
            raise _mismatch(obj, type_)
        try:
            hints = typing.get_type_hints(type_)
        except (NameError, TypeError):
            hints = {}
        fields = {f.name: f for f in dataclasses.fields(type_) if f.init}
        if set(obj) - set(fields):
            raise TypeMismatchError(f"unexpected fields for {type_.__name__}: {sorted(set(obj) - set(fields))}")
        kwargs = {name: _coerce(obj[name], hints.get(name, Any)) for name in fields if name in obj}
        try:
            return type_(**kwargs)
        except TypeError as e:
            raise TypeMismatchError(f"cannot build {type_.__name__}: {e}") from e

    raise TypeMismatchError(f"unsupported target type: {type_!r}")


class JsonCodec:
    """Default codec: one compact JSON document per value.

    Supports JSON scalars, lists, tuples, str-keyed dicts and dataclasses.
    Decoding is strict about scalar kinds (``True`` is not an ``int``), but an
    ``int`` is accepted where a ``float`` is requested.
    """

    def encode(self, value: Any) -> str:
        return json.dumps(_to_jsonable(value), separators=(",", ":"), allow_nan=False)

    def decode(self, text: str, type_: Any = object) -> Any:
        try:
            obj = json.loads(text)
        except (TypeError, ValueError) as e:
            raise TypeMismatchError(f"stored value is not valid JSON: {e}") from e
        return _coerce(obj, type_)
