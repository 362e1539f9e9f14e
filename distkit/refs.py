"""References to actors, local or remote."""

from __future__ import annotations

import json
from dataclasses import dataclass

from distkit.marshalling import register


@register
@dataclass(frozen=True)
class ActorRef:
    """Names an actor: the address of its actor system and a counter within it.

    Refs compare and hash by value, can be sent inside messages and make
    sense across the network.
    """

    address: str
    counter: int

    def uid(self) -> str:
        """A unique identifier string, useful for tie-breaking."""
        return f"{self.address}/{self.counter}"

    def to_json(self) -> str:
        """Encode as a compact JSON object with ``Address`` and ``Counter``."""
        return json.dumps({"Address": self.address, "Counter": self.counter}, separators=(",", ":"))


def ref_from_json(text: str) -> ActorRef:
    """Decode a ref encoded by :meth:`ActorRef.to_json`.

    Missing fields take their zero values; anything that is not a JSON
    object of the right field types raises :class:`ValueError`.
    """
    data = json.loads(text)
    if not isinstance(data, dict):
        raise ValueError(f"not an actor ref: {text!r}")
    address = data.get("Address", "")
    counter = data.get("Counter", 0)
    if not isinstance(address, str) or not isinstance(counter, int) or isinstance(counter, bool):
        raise ValueError(f"not an actor ref: {text!r}")
    return ActorRef(address, counter)