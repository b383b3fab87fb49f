"""A simulated RPC network for testing distributed services.

The network can lose requests, lose replies, delay messages and disconnect
particular hosts entirely. Arguments and replies travel as labgob-encoded
bytes, so RPCs never share references to program objects.

A :class:`Network` holds client ends and servers. ``make_end(name)`` creates
a client end-point; ``add_server(name, server)`` attaches a :class:`Server`;
``connect(endname, servername)`` wires an end to a server; and
``enable(endname, flag)`` turns the end on or off. A server bundles one or
more :class:`Service` objects, each of which exposes the public one-argument
methods of a receiver object as handlers.

``end.call("Raft.append_entries", args)`` sends the request and returns the
handler's reply. It raises :class:`RPCError` when the network lost the
request or the reply, or when the server is down.
"""

from __future__ import annotations

import io
import queue
import random
import threading
import time
import types
from typing import Any, Callable, Hashable

from distlab.labgob import LabDecoder, LabEncoder

_POLL_INTERVAL = 0.1


class RPCError(ConnectionError):
    """No reply arrived: the request or reply was lost, or the server is down."""


def _encode(value: Any) -> bytes:
    buffer = io.BytesIO()
    LabEncoder(buffer).encode(value)
    return buffer.getvalue()


def _decode(data: bytes) -> Any:
    return LabDecoder(io.BytesIO(data)).decode()


class ClientEnd:
    """A client end-point that talks to one server of a network."""

    def __init__(self, network: Network, endname: Hashable) -> None:
        self._network = network
        self.endname = endname

    def call(self, svc_meth: str, args: Any) -> Any:
        """Send an RPC such as ``"Service.method"`` and return the reply."""
        return _decode(self._network._deliver(self.endname, svc_meth, _encode(args)))

    def __repr__(self) -> str:
        return f"ClientEnd({self.endname!r})"


class Network:
    """Routes calls from client ends to servers, simulating faults."""

    def __init__(self) -> None:
        self._lock = threading.Lock()
        self._reliable = True
        self._long_delays = False
        self._long_reordering = False
        self._ends: dict[Hashable, ClientEnd] = {}
        self._enabled: dict[Hashable, bool] = {}
        self._servers: dict[Hashable, Server | None] = {}
        self._connections: dict[Hashable, Hashable] = {}
        self._done = threading.Event()
        self._count = 0
        self._bytes = 0
        self._rng = random.Random()

    def __enter__(self) -> Network:
        return self

    def __exit__(self, *exc_info: object) -> None:
        self.cleanup()

    def cleanup(self) -> None:
        """Shut the network down; later calls fail at once."""
        self._done.set()

    def reliable(self, yes: bool) -> None:
        """When false, requests and replies are delayed and sometimes dropped."""
        with self._lock:
            self._reliable = yes

    def long_reordering(self, yes: bool) -> None:
        """When true, replies are sometimes held back for a long time."""
        with self._lock:
            self._long_reordering = yes

    def long_delays(self, yes: bool) -> None:
        """When true, calls on disabled ends take up to seven seconds to fail."""
        with self._lock:
            self._long_delays = yes

    def make_end(self, endname: Hashable) -> ClientEnd:
        """Create a disabled, unconnected client end named ``endname``."""
        with self._lock:
            if endname in self._ends:
                raise ValueError(f"make_end: {endname!r} already exists")
            end = ClientEnd(self, endname)
            self._ends[endname] = end
            self._enabled[endname] = False
            self._connections[endname] = None
            return end

    def add_server(self, servername: Hashable, server: Server) -> None:
        with self._lock:
            self._servers[servername] = server

    def delete_server(self, servername: Hashable) -> None:
        """Remove a server; calls in progress on it fail."""
        with self._lock:
            self._servers[servername] = None

    def connect(self, endname: Hashable, servername: Hashable) -> None:
        """Wire a client end to a server."""
        with self._lock:
            self._connections[endname] = servername

    def enable(self, endname: Hashable, enabled: bool) -> None:
        with self._lock:
            self._enabled[endname] = enabled

    def get_count(self, servername: Hashable) -> int:
        """Number of RPCs a server has received."""
        with self._lock:
            server = self._servers.get(servername)
        if server is None:
            raise KeyError(f"no server named {servername!r}")
        return server.get_count()

    def get_total_count(self) -> int:
        """Number of RPCs sent over the network."""
        with self._lock:
            return self._count

    def get_total_bytes(self) -> int:
        """Bytes of arguments sent and replies delivered."""
        with self._lock:
            return self._bytes

    def _read_endname_info(self, endname: Hashable) -> tuple:
        with self._lock:
            enabled = self._enabled.get(endname, False)
            servername = self._connections.get(endname)
            server = self._servers.get(servername) if servername is not None else None
            return enabled, servername, server, self._reliable, self._long_reordering

    def _is_server_dead(self, endname: Hashable, servername: Hashable, server: Server) -> bool:
        with self._lock:
            return not self._enabled.get(endname, False) or self._servers.get(servername) is not server

    def _deliver(self, endname: Hashable, svc_meth: str, data: bytes) -> bytes:
        if self._done.is_set():
            raise RPCError("network has been shut down")
        with self._lock:
            self._count += 1
            self._bytes += len(data)
        return self._process(endname, svc_meth, data)

    def _process(self, endname: Hashable, svc_meth: str, data: bytes) -> bytes:
        enabled, servername, server, reliable, long_reordering = self._read_endname_info(endname)
        rng = self._rng

        if not (enabled and servername is not None and server is not None):
            # Simulate no reply and an eventual timeout.
            ms = rng.randrange(7000) if self._long_delays else rng.randrange(100)
            time.sleep(ms / 1000)
            raise RPCError(f"no reply on {endname!r}")

        if not reliable:
            time.sleep(rng.randrange(27) / 1000)
            if rng.randrange(1000) < 100:
                raise RPCError("request lost")

        outcome: queue.Queue = queue.Queue(maxsize=1)

        def run() -> None:
            try:
                outcome.put((True, server.dispatch(svc_meth, data)))
            except BaseException as exc:  # handed back to the caller
                outcome.put((False, exc))

        threading.Thread(target=run, daemon=True).start()

        result = None
        while result is None:
            try:
                result = outcome.get(timeout=_POLL_INTERVAL)
            except queue.Empty:
                if self._is_server_dead(endname, servername, server):
                    break

        # Never reply for a server that was deleted while the handler ran.
        if result is None or self._is_server_dead(endname, servername, server):
            raise RPCError(f"server {servername!r} is gone")
        succeeded, payload = result
        if not succeeded:
            raise payload
        if not reliable and rng.randrange(1000) < 100:
            raise RPCError("reply lost")
        if long_reordering and rng.randrange(900) < 600:
            ms = 200 + rng.randrange(1 + rng.randrange(2000))
            time.sleep(ms / 1000)
        with self._lock:
            self._bytes += len(payload)
        return payload


class Server:
    """A collection of services sharing one RPC end-point."""

    def __init__(self) -> None:
        self._lock = threading.Lock()
        self._services: dict[str, Service] = {}
        self._count = 0

    def add_service(self, svc: Service) -> None:
        with self._lock:
            self._services[svc.name] = svc

    def dispatch(self, svc_meth: str, args: bytes) -> bytes:
        """Run ``"Service.method"`` on encoded arguments; return the encoded reply."""
        with self._lock:
            self._count += 1
            service_name, dot, method_name = svc_meth.rpartition(".")
            service = self._services.get(service_name)
            choices = sorted(self._services)
        if not dot:
            raise ValueError(f"RPC name {svc_meth!r} has no service part")
        if service is None:
            raise LookupError(
                f"unknown service {service_name} in {svc_meth}; expecting one of {choices}"
            )
        return service.dispatch(method_name, args)

    def get_count(self) -> int:
        """Number of incoming RPCs."""
        with self._lock:
            return self._count


def _is_handler(function: types.FunctionType) -> bool:
    """True for a plain method taking exactly one argument besides self."""
    code = function.__code__
    required_keywords = code.co_kwonlyargcount - len(function.__kwdefaults__ or {})
    return code.co_argcount == 2 and required_keywords == 0


class Service:
    """Exposes the public one-argument methods of ``rcvr`` as RPC handlers.

    The service is named after the receiver's class. A handler takes the
    decoded arguments and returns the reply.
    """

    def __init__(self, rcvr: Any) -> None:
        cls = type(rcvr)
        self.name = cls.__name__
        self._methods: dict[str, Callable[[Any], Any]] = {}
        for name in dir(cls):
            if name.startswith("_"):
                continue
            attribute = getattr(cls, name)
            if isinstance(attribute, types.FunctionType) and _is_handler(attribute):
                self._methods[name] = getattr(rcvr, name)

    def dispatch(self, method_name: str, args: bytes) -> bytes:
        """Decode ``args``, run the handler and return its encoded reply."""
        method = self._methods.get(method_name)
        if method is None:
            raise LookupError(
                f"unknown method {method_name} in {self.name}; "
                f"expecting one of {sorted(self._methods)}"
            )
        return _encode(method(_decode(args)))