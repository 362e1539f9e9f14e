"""The context an actor is given to send messages and learn its own ref."""

from __future__ import annotations

import math
import threading
import time
from collections import Counter
from typing import Any

from distkit.refs import ActorRef


class ActorContext:
    """Exposes to one actor the part of its actor system it may use.

    ``self_ref`` is the actor's own ref. The context also counts how many
    messages the actor has sent to each ref, for :meth:`max_message_rate`.
    """

    def __init__(self, system: Any, self_ref: ActorRef) -> None:
        self.self_ref = self_ref
        self._system = system
        self._sends: Counter[ActorRef] = Counter()
        self._lock = threading.Lock()
        self._start = time.monotonic()

    def is_local(self, ref: ActorRef) -> bool:
        """Whether ``ref`` names an actor in the same actor system."""
        return self._system.is_local(ref)

    def tell(self, ref: ActorRef, message: Any) -> None:
        """Send a message to a local or remote actor.

        Messages to the same ref are delivered in the order sent, if at all.
        """
        with self._lock:
            self._sends[ref] += 1
        self._system.tell_from_actor(ref, message)

    def tell_after(self, ref: ActorRef, message: Any, delay: float) -> None:
        """Send a message after ``delay`` seconds, without blocking."""
        self._system.tell_after_from_actor(ref, message, delay)
        with self._lock:
            self._sends[ref] += 1

    def max_message_rate(self) -> float:
        """Highest messages per second sent to any one ref, computed generously.

        The actor's age is rounded up to whole seconds with some leeway.
        """
        with self._lock:
            seconds = math.floor(time.monotonic() - self._start + 1.1)
            return max((count / seconds for count in self._sends.values()), default=0.0)