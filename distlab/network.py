"""A simulated network that carries RPCs between named clients and servers.

The network can lose requests and replies, delay them, reorder replies and
cut clients off, so that code built on it can be tested against an
unreliable transport.
"""

from __future__ import annotations

import logging
import random
import threading
import time
from concurrent.futures import CancelledError, Future, ThreadPoolExecutor, wait
from dataclasses import dataclass, field
from typing import Any, Callable, TypeVar

from distlab import codec
from distlab.codec import DecodeError, EncodeError, Message
from distlab.errors import DecodeFailed, EncodeFailed, ReceiveFailed, RpcTimeout, Stopped
from distlab.server import Server

log = logging.getLogger(__name__)

M = TypeVar("M", bound=Message)

_DEAD_CHECK_INTERVAL = 0.1


class RpcHooks:
    """Interceptors run around every dispatch made by a client.

    The default methods let everything through unchanged.
    """

    def before_dispatch(self, fq_name: str, request: bytes) -> None:
        """Called before the request reaches the server; raise to fail the call."""

    def after_dispatch(self, fq_name: str, response: bytes | Exception) -> bytes:
        """Called with the reply, or the error the dispatch ended with.

        Return the reply to deliver, or raise to fail the call.
        """
        if isinstance(response, Exception):
            raise response
        return response


class _HookSlot:
    """Hooks shared by a client and the calls it has in flight."""

    def __init__(self) -> None:
        self._lock = threading.Lock()
        self._hooks: RpcHooks | None = None

    def get(self) -> RpcHooks | None:
        with self._lock:
            return self._hooks

    def set(self, hooks: RpcHooks | None) -> None:
        with self._lock:
            self._hooks = hooks


@dataclass(eq=False)
class Rpc:
    """One call in flight: who made it, what it names and where the reply goes."""

    client_name: str
    fq_name: str
    request: bytes = field(repr=False)
    hooks: _HookSlot = field(repr=False, default_factory=_HookSlot)
    reply: Future = field(repr=False, default_factory=Future)


class Client:
    """An end-point through which a named client sends calls to the network."""

    def __init__(self, name: str, network: Network) -> None:
        self.name = name
        self._network = network
        self._hooks = _HookSlot()

    def call(self, fq_name: str, request: Message, response_type: type[M]) -> M:
        """Send request to "service.method" and wait for the decoded reply.

        Raises an RpcError when the call fails.
        """
        try:
            data = codec.encode(request)
        except EncodeError as exc:
            raise EncodeFailed(exc) from exc
        rpc = Rpc(self.name, fq_name, data, self._hooks)
        self._network._submit(rpc)
        try:
            reply = rpc.reply.result()
        except CancelledError:
            raise ReceiveFailed() from None
        try:
            return codec.decode(response_type, reply)
        except DecodeError as exc:
            raise DecodeFailed(exc) from exc

    def spawn(self, fn: Callable[..., Any], *args: Any) -> Future:
        """Run fn(*args) on the network's worker threads."""
        return self._network.spawn(fn, *args)

    def set_hooks(self, hooks: RpcHooks) -> None:
        self._hooks.set(hooks)

    def clear_hooks(self) -> None:
        self._hooks.set(None)

    def __repr__(self) -> str:
        return f"Client(name={self.name!r})"


class Network:
    """Routes calls from clients to the servers they are connected to."""

    def __init__(self) -> None:
        self._lock = threading.Lock()
        self._enabled: dict[str, bool] = {}
        self._servers: dict[str, Server | None] = {}
        self._connections: dict[str, str | None] = {}
        self._reliable = True
        self._long_delays = False
        self._long_reordering = False
        self._count = 0
        self._closed = False
        self._random = random.Random()
        self._worker = ThreadPoolExecutor(thread_name_prefix="distlab-worker")

    def __enter__(self) -> Network:
        return self

    def __exit__(self, *exc_info: object) -> None:
        self.close()

    def add_server(self, server: Server) -> None:
        with self._lock:
            self._servers[server.name()] = server

    def delete_server(self, name: str) -> None:
        """Kill a server: calls in flight to it fail with Stopped."""
        with self._lock:
            if name in self._servers:
                self._servers[name] = None

    def create_client(self, name: str) -> Client:
        """Create a disabled, unconnected client end-point."""
        with self._lock:
            self._enabled[name] = False
            self._connections[name] = None
        return Client(name, self)

    def connect(self, client_name: str, server_name: str) -> None:
        """Connect a client to a server."""
        with self._lock:
            self._connections[client_name] = server_name

    def enable(self, client_name: str, enabled: bool) -> None:
        """Enable or disable a client."""
        log.debug("client %s is %s", client_name, "enabled" if enabled else "disabled")
        with self._lock:
            self._enabled[client_name] = enabled

    def set_reliable(self, yes: bool) -> None:
        with self._lock:
            self._reliable = yes

    def set_long_reordering(self, yes: bool) -> None:
        with self._lock:
            self._long_reordering = yes

    def set_long_delays(self, yes: bool) -> None:
        with self._lock:
            self._long_delays = yes

    def count(self, server_name: str) -> int:
        """Number of calls the named live server has dispatched."""
        with self._lock:
            server = self._servers.get(server_name)
        if server is None:
            raise KeyError(f"no live server named {server_name!r}")
        return server.count()

    def total_count(self) -> int:
        """Number of calls the network has carried."""
        with self._lock:
            return self._count

    def spawn(self, fn: Callable[..., Any], *args: Any) -> Future:
        """Run fn(*args) on the network's worker threads."""
        with self._lock:
            if self._closed:
                raise Stopped()
            return self._worker.submit(fn, *args)

    def close(self) -> None:
        """Stop accepting calls; later calls fail with Stopped."""
        with self._lock:
            self._closed = True
        self._worker.shutdown(wait=False)

    def _submit(self, rpc: Rpc) -> None:
        with self._lock:
            if self._closed:
                raise Stopped()
        threading.Thread(target=self._deliver, args=(rpc,), daemon=True).start()

    def _deliver(self, rpc: Rpc) -> None:
        if not rpc.reply.set_running_or_notify_cancel():
            return
        try:
            response = self._process(rpc)
        except Exception as exc:
            rpc.reply.set_exception(exc)
        else:
            rpc.reply.set_result(response)

    def _is_server_dead(self, client_name: str, server_name: str, server_id: int) -> bool:
        with self._lock:
            if not self._enabled.get(client_name, False):
                return True
            server = self._servers.get(server_name)
            return server is None or server.id != server_id

    def _process(self, rpc: Rpc) -> bytes:
        rand = self._random
        with self._lock:
            self._count += 1
            enabled = self._enabled.get(rpc.client_name, False)
            server_name = self._connections.get(rpc.client_name)
            server = self._servers.get(server_name) if server_name is not None else None
            reliable = self._reliable
            long_reordering = self._long_reordering
            long_delays = self._long_delays
        log.debug("%r process: enabled=%s reliable=%s", rpc, enabled, reliable)

        if not enabled or server is None:
            # Simulate no reply and an eventual timeout.
            ms = rand.randrange(7000) if long_delays else rand.randrange(100)
            log.debug("%r delay %dms then timeout", rpc, ms)
            time.sleep(ms / 1000)
            raise RpcTimeout()

        if not reliable:
            time.sleep(rand.randrange(27) / 1000)
            if rand.randrange(1000) < 100:
                # Drop the request, as if it had timed out.
                raise RpcTimeout()

        drop_reply = not reliable and rand.randrange(1000) < 100
        reorder_ms: int | None = None
        if long_reordering and rand.randrange(900) < 600:
            upper = 1 + rand.randrange(2000)
            reorder_ms = 200 + rand.randrange(upper)

        hooks = rpc.hooks.get()
        if hooks is not None:
            hooks.before_dispatch(rpc.fq_name, rpc.request)

        outcome: bytes | Exception
        try:
            outcome = self._dispatch_watched(rpc, server)
        except Exception as exc:
            outcome = exc

        hooks = rpc.hooks.get()
        if hooks is not None:
            response = hooks.after_dispatch(rpc.fq_name, outcome)
        elif isinstance(outcome, Exception):
            raise outcome
        else:
            response = outcome

        if self._is_server_dead(rpc.client_name, server.name(), server.id):
            raise Stopped()
        if drop_reply:
            raise RpcTimeout()
        if reorder_ms is not None:
            log.debug("%r long reordering %dms", rpc, reorder_ms)
            time.sleep(reorder_ms / 1000)
        return response

    def _dispatch_watched(self, rpc: Rpc, server: Server) -> bytes:
        """Dispatch on a separate thread, failing with Stopped if the server dies meanwhile."""
        pending: Future = Future()

        def run() -> None:
            pending.set_running_or_notify_cancel()
            try:
                pending.set_result(server.dispatch(rpc.fq_name, rpc.request))
            except Exception as exc:
                pending.set_exception(exc)

        threading.Thread(target=run, daemon=True).start()
        while True:
            done, _ = wait([pending], timeout=_DEAD_CHECK_INTERVAL)
            if done:
                return pending.result()
            if self._is_server_dead(rpc.client_name, server.name(), server.id):
                log.debug("%s is dead", server.name())
                raise Stopped()