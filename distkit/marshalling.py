"""Serialisation of actor messages.

Messages are encoded with :mod:`pickle`, restricted to built-in values, a few
date and time types and classes that have been passed to :func:`register`.
Anything else — functions, locks, open files, unregistered classes — is
refused on both encoding and decoding.
"""

from __future__ import annotations

import datetime
import io
import pickle
from typing import Any, TypeVar

T = TypeVar("T", bound=type)


class MarshalError(Exception):
    """A message could not be marshalled or unmarshalled."""


_BUILTIN_TYPES: frozenset[type] = frozenset(
    {type(None), bool, int, float, complex, str, bytes, bytearray, list, tuple, dict, set, frozenset}
)

_SAFE_GLOBALS: dict[tuple[str, str], type] = {
    (t.__module__, t.__qualname__): t
    for t in (
        complex,
        bytearray,
        set,
        frozenset,
        datetime.date,
        datetime.time,
        datetime.datetime,
        datetime.timedelta,
        datetime.timezone,
    )
}

_registry: dict[tuple[str, str], type] = {}


def _key(cls: type) -> tuple[str, str]:
    return cls.__module__, cls.__qualname__


def _is_allowed(cls: type) -> bool:
    if cls in _BUILTIN_TYPES:
        return True
    key = _key(cls)
    return _SAFE_GLOBALS.get(key) is cls or _registry.get(key) is cls


def register(cls: T) -> T:
    """Allow instances of ``cls`` in messages. Usable as a class decorator."""
    if not isinstance(cls, type):
        raise TypeError(f"only classes can be registered, not {cls!r}")
    _registry[_key(cls)] = cls
    return cls


class _Pickler(pickle.Pickler):
    def reducer_override(self, obj: Any) -> Any:
        cls = obj if isinstance(obj, type) else type(obj)
        if not _is_allowed(cls):
            raise MarshalError(f"type {cls.__module__}.{cls.__qualname__} is not registered")
        return NotImplemented


class _Unpickler(pickle.Unpickler):
    def find_class(self, module: str, name: str) -> Any:
        key = (module, name)
        found = _registry.get(key) or _SAFE_GLOBALS.get(key)
        if found is None:
            raise MarshalError(f"type {module}.{name} is not registered")
        return found


def marshal(message: Any) -> bytes:
    """Encode a message to bytes."""
    buffer = io.BytesIO()
    try:
        _Pickler(buffer, protocol=pickle.HIGHEST_PROTOCOL).dump(message)
    except MarshalError:
        raise
    except (pickle.PicklingError, TypeError, AttributeError, RecursionError) as exc:
        raise MarshalError(f"cannot marshal {type(message).__name__}: {exc}") from exc
    return buffer.getvalue()


def unmarshal(data: bytes) -> Any:
    """Decode bytes produced by :func:`marshal`."""
    try:
        return _Unpickler(io.BytesIO(data)).load()
    except MarshalError:
        raise
    except Exception as exc:
        raise MarshalError(f"cannot unmarshal message: {exc}") from exc