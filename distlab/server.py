"""RPC servers: named collections of services that dispatch encoded requests."""

from __future__ import annotations

import abc
import itertools
import threading
from collections.abc import Callable, Mapping
from types import MappingProxyType

from distlab.errors import OtherError, Unimplemented

Handler = Callable[[bytes], bytes]

_ids = itertools.count()
_ids_lock = threading.Lock()


def _next_id() -> int:
    with _ids_lock:
        return next(_ids)


class HandlerFactory(abc.ABC):
    """Produces the handler for a method of one service."""

    @abc.abstractmethod
    def handler(self, name: str) -> Handler:
        """Return a callable mapping an encoded request to an encoded reply.

        The callable raises an RpcError when the call fails.
        """


class ServerBuilder:
    """Collects services under unique names before a server is built."""

    def __init__(self, name: str) -> None:
        self.name = name
        self._services: dict[str, HandlerFactory] = {}

    @property
    def services(self) -> Mapping[str, HandlerFactory]:
        """Registered services by name, read only."""
        return MappingProxyType(self._services)

    def add_service(self, service_name: str, factory: HandlerFactory) -> None:
        """Register a service; raises OtherError if the name is taken."""
        if service_name in self._services:
            raise OtherError(f"{service_name} has already registered")
        self._services[service_name] = factory

    def build(self) -> Server:
        """Create a server with a fresh id holding the registered services."""
        return Server(self.name, dict(self._services))


class Server:
    """A named server that routes "service.method" calls to handlers."""

    __slots__ = ("_name", "_id", "_services", "_count", "_lock")

    def __init__(self, name: str, services: Mapping[str, HandlerFactory]) -> None:
        self._name = name
        self._id = _next_id()
        self._services = dict(services)
        self._count = 0
        self._lock = threading.Lock()

    @property
    def id(self) -> int:
        """Unique identity of this server instance."""
        return self._id

    def count(self) -> int:
        """Number of calls dispatched so far, failed ones included."""
        with self._lock:
            return self._count

    def name(self) -> str:
        return self._name

    def dispatch(self, fq_name: str, request: bytes) -> bytes:
        """Run the handler for fq_name on request and return its reply.

        Raises Unimplemented when the service or method is unknown.
        """
        with self._lock:
            self._count += 1
        parts = fq_name.split(".")
        if len(parts) < 2:
            raise Unimplemented(f"unknown {fq_name}")
        service_name, method_name = parts[0], parts[1]
        factory = self._services.get(service_name)
        if factory is None:
            raise Unimplemented(f"unknown {fq_name}")
        return factory.handler(method_name)(request)

    def __repr__(self) -> str:
        return f"Server(name={self._name!r}, id={self._id})"