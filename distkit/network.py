"""In-process RPC over a simulated network.

The network can lose requests, lose replies, delay messages and disconnect
particular endpoints. Arguments and replies are serialised on the way
through, so a call never shares objects between caller and handler.

Typical use::

    net = Network()
    end = net.make_end("a->b")
    server = Server()
    server.add_service(Service(receiver))
    net.add_server("b", server)
    net.connect("a->b", "b")
    net.enable("a->b", True)
    reply = end.call("Receiver.method", args)   # None if no reply arrived

A handler is a public method of the receiver taking exactly one argument
(the request) and returning the reply.
"""

from __future__ import annotations

import inspect
import pickle
import queue
import random
import threading
import time
import types
from typing import Any, Hashable

_POLL_INTERVAL = 0.1
_VARIADIC_FLAGS = inspect.CO_VARARGS | inspect.CO_VARKEYWORDS


def _encode(value: Any) -> bytes:
    return pickle.dumps(value)


def _decode(data: bytes) -> Any:
    return pickle.loads(data)


class ClientEnd:
    """A client endpoint that sends RPCs to whichever server it is connected to."""

    def __init__(self, endname: Hashable, network: "Network") -> None:
        self.endname = endname
        self._network = network

    def __str__(self) -> str:
        return str(self.endname)

    def __repr__(self) -> str:
        return f"ClientEnd({self.endname!r})"

    def call(self, svc_meth: str, args: Any) -> Any:
        """Send an RPC and wait for its reply.

        Returns the decoded reply, or None when no reply was received: the
        request or reply was lost, the server is down or unreachable.
        Always returns eventually, unless the handler itself never returns.
        """
        reply = self._network._process(self.endname, svc_meth, _encode(args))
        return None if reply is None else _decode(reply)


class Network:
    """Holds endpoints, servers and the connections between them."""

    def __init__(self) -> None:
        self._lock = threading.Lock()
        self._reliable = True
        self._long_delays = False
        self._long_reordering = False
        self._ends: dict[Hashable, ClientEnd] = {}
        self._enabled: dict[Hashable, bool] = {}
        self._servers: dict[Hashable, Server | None] = {}
        self._connections: dict[Hashable, Hashable | None] = {}

    def set_reliable(self, yes: bool) -> None:
        """False means requests and replies may be delayed or dropped."""
        with self._lock:
            self._reliable = yes

    def set_long_reordering(self, yes: bool) -> None:
        """True means replies are sometimes delayed for a long time."""
        with self._lock:
            self._long_reordering = yes

    def set_long_delays(self, yes: bool) -> None:
        """True means calls over a disabled connection take a long time to fail."""
        with self._lock:
            self._long_delays = yes

    def make_end(self, endname: Hashable) -> ClientEnd:
        """Create a new, disabled and unconnected client endpoint."""
        with self._lock:
            if endname in self._ends:
                raise ValueError(f"endpoint {endname!r} already exists")
            end = ClientEnd(endname, self)
            self._ends[endname] = end
            self._enabled[endname] = False
            self._connections[endname] = None
            return end

    def add_server(self, servername: Hashable, server: "Server") -> None:
        with self._lock:
            self._servers[servername] = server

    def delete_server(self, servername: Hashable) -> None:
        """Remove a server; calls in flight to it then fail."""
        with self._lock:
            self._servers[servername] = None

    def connect(self, endname: Hashable, servername: Hashable) -> None:
        """Route an endpoint's calls to the named server."""
        with self._lock:
            self._connections[endname] = servername

    def enable(self, endname: Hashable, enabled: bool) -> None:
        with self._lock:
            self._enabled[endname] = enabled

    def get_count(self, servername: Hashable) -> int:
        """Number of RPCs the named server has received."""
        with self._lock:
            server = self._servers.get(servername)
        if server is None:
            raise LookupError(f"no server named {servername!r}")
        return server.get_count()

    def _endname_info(self, endname: Hashable):
        with self._lock:
            servername = self._connections.get(endname)
            server = self._servers.get(servername) if servername is not None else None
            return (
                self._enabled.get(endname, False),
                servername,
                server,
                self._reliable,
                self._long_reordering,
                self._long_delays,
            )

    def _is_server_dead(self, endname: Hashable, servername: Hashable, server: "Server") -> bool:
        with self._lock:
            return not self._enabled.get(endname, False) or self._servers.get(servername) is not server

    def _process(self, endname: Hashable, svc_meth: str, payload: bytes) -> bytes | None:
        enabled, servername, server, reliable, long_reordering, long_delays = self._endname_info(endname)

        if not (enabled and servername is not None and server is not None):
            # Simulate no reply and an eventual timeout.
            ms = random.randrange(7000) if long_delays else random.randrange(100)
            time.sleep(ms / 1000)
            return None

        if not reliable:
            time.sleep(random.randrange(27) / 1000)
            if random.randrange(1000) < 100:
                return None

        outcomes: queue.Queue = queue.Queue(maxsize=1)

        def run_handler() -> None:
            try:
                outcomes.put((True, server.dispatch(svc_meth, payload)))
            except BaseException as exc:  # handed back to the caller
                outcomes.put((False, exc))

        threading.Thread(target=run_handler, daemon=True).start()

        reply: bytes | None = None
        answered = False
        while True:
            try:
                succeeded, value = outcomes.get(timeout=_POLL_INTERVAL)
            except queue.Empty:
                if self._is_server_dead(endname, servername, server):
                    break
                continue
            if not succeeded:
                raise value
            reply, answered = value, True
            break

        # No reply if the server was removed while the handler ran.
        if not answered or self._is_server_dead(endname, servername, server):
            return None
        if not reliable and random.randrange(1000) < 100:
            return None
        if long_reordering and random.randrange(900) < 600:
            ms = 200 + random.randrange(1 + random.randrange(2000))
            time.sleep(ms / 1000)
        return reply


class Server:
    """A collection of services sharing one RPC endpoint."""

    def __init__(self) -> None:
        self._lock = threading.Lock()
        self._services: dict[str, Service] = {}
        self._count = 0

    def add_service(self, service: "Service") -> None:
        with self._lock:
            self._services[service.name] = service

    def dispatch(self, svc_meth: str, args: bytes) -> bytes:
        """Run "Service.method" on encoded arguments and return the encoded reply."""
        with self._lock:
            self._count += 1
            service_name, _, method_name = svc_meth.rpartition(".")
            service = self._services.get(service_name)
            choices = sorted(self._services)
        if service is None:
            raise LookupError(
                f"unknown service {service_name!r} in {svc_meth!r}; expecting one of {choices}"
            )
        return service.dispatch(method_name, args)

    def get_count(self) -> int:
        with self._lock:
            return self._count


def _static_lookup(cls: type, attr: str) -> Any:
    for klass in cls.__mro__:
        if attr in vars(klass):
            return vars(klass)[attr]
    return None


def _is_handler(func: Any) -> bool:
    if not isinstance(func, types.FunctionType):
        return False
    code = func.__code__
    return (
        code.co_argcount == 2
        and code.co_kwonlyargcount == 0
        and not code.co_flags & _VARIADIC_FLAGS
    )


class Service:
    """An object whose one-argument public methods can be called over RPC."""

    def __init__(self, receiver: Any) -> None:
        cls = type(receiver)
        self.name = cls.__name__
        self._methods = {
            attr: getattr(receiver, attr)
            for attr in dir(cls)
            if not attr.startswith("_") and _is_handler(_static_lookup(cls, attr))
        }

    @property
    def method_names(self) -> frozenset[str]:
        return frozenset(self._methods)

    def dispatch(self, method_name: str, args: bytes) -> bytes:
        """Decode the arguments, call the handler and encode its reply."""
        handler = self._methods.get(method_name)
        if handler is None:
            raise LookupError(
                f"unknown method {method_name!r} in service {self.name!r}; "
                f"expecting one of {sorted(self._methods)}"
            )
        return _encode(handler(_decode(args)))