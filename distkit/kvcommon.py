"""Request and reply types shared by the key-value client and server, and
the length-prefixed framing used on their connections."""

from __future__ import annotations

import struct
from dataclasses import dataclass, field
from typing import Any

from distkit.marshalling import register

_HEADER = struct.Struct(">I")


@register
@dataclass(frozen=True)
class GetArgs:
    key: str


@register
@dataclass(frozen=True)
class GetReply:
    """The value for a key; ``ok`` is False when the key is absent."""

    value: str
    ok: bool


@register
@dataclass(frozen=True)
class ListArgs:
    prefix: str


@register
@dataclass(frozen=True)
class ListReply:
    """Every (key, value) pair whose key starts with the requested prefix."""

    entries: dict[str, str] = field(default_factory=dict)


@register
@dataclass(frozen=True)
class PutArgs:
    key: str
    value: str


@register
@dataclass(frozen=True)
class PutReply:
    pass


def write_frame(stream: Any, payload: bytes) -> None:
    """Send one frame: a 4-byte big-endian length, then the payload."""
    if len(payload) > 0xFFFFFFFF:
        raise ValueError("frame payload too large")
    stream.sendall(_HEADER.pack(len(payload)) + bytes(payload))


def read_frame(stream: Any) -> bytes:
    """Receive one frame written by :func:`write_frame`.

    Raises :class:`EOFError` if the stream ends before a whole frame arrives.
    """
    (length,) = _HEADER.unpack(_read_exact(stream, _HEADER.size))
    return _read_exact(stream, length)


def _read_exact(stream: Any, size: int) -> bytes:
    data = bytearray()
    while len(data) < size:
        chunk = stream.recv(size - len(data))
        if not chunk:
            raise EOFError("stream ended inside a frame" if data else "stream ended")
        data += chunk
    return bytes(data)