"""Typed RPC services built on the simulated network.

A service definition lists the methods of a service with their request
and reply message types. It registers an implementation with a server and
wraps a raw network client into one that calls the methods by name.
"""

from __future__ import annotations

from collections.abc import Iterable, Mapping
from concurrent.futures import Future
from dataclasses import dataclass
from types import MappingProxyType
from typing import Any, Callable

from distlab import codec
from distlab.codec import DecodeError, EncodeError, Message
from distlab.errors import DecodeFailed, EncodeFailed, Unimplemented
from distlab.network import Client
from distlab.server import Handler, HandlerFactory, ServerBuilder


@dataclass(frozen=True)
class RpcMethod:
    """One method of a service with its request and reply message types."""

    name: str
    request_type: type[Message]
    response_type: type[Message]


class _ServiceFactory(HandlerFactory):
    """Handlers that decode requests, call the implementation and encode replies."""

    def __init__(self, definition: ServiceDefinition, implementation: Any) -> None:
        self._definition = definition
        self._implementation = implementation

    def handler(self, name: str) -> Handler:
        method = self._definition.methods.get(name)
        service_name = self._definition.name
        if method is None:

            def unknown(request: bytes) -> bytes:
                raise Unimplemented(f"unknown {name} in {service_name}")

            return unknown

        target = getattr(self._implementation, name)

        def handle(request: bytes) -> bytes:
            try:
                decoded = codec.decode(method.request_type, request)
            except DecodeError as exc:
                raise DecodeFailed(exc) from exc
            reply = target(decoded)
            if not isinstance(reply, method.response_type):
                raise EncodeFailed(
                    EncodeError(
                        f"{service_name}.{name} returned {type(reply).__name__}, "
                        f"expected {method.response_type.__name__}"
                    )
                )
            try:
                return codec.encode(reply)
            except EncodeError as exc:
                raise EncodeFailed(exc) from exc

        return handle


class ServiceDefinition:
    """A named service and the methods it offers."""

    def __init__(self, name: str, methods: Iterable[RpcMethod]) -> None:
        by_name: dict[str, RpcMethod] = {}
        for method in methods:
            if method.name in by_name:
                raise ValueError(f"method {method.name!r} is declared more than once in {name}")
            by_name[method.name] = method
        if not by_name:
            raise ValueError("empty service is not allowed")
        self.name = name
        self._methods = by_name

    @property
    def methods(self) -> Mapping[str, RpcMethod]:
        """Methods by name, read only."""
        return MappingProxyType(self._methods)

    def add_service(self, implementation: Any, builder: ServerBuilder) -> None:
        """Register implementation under this service's name.

        The implementation must have a callable for every method; it gets the
        decoded request and returns the reply message. Raises OtherError if
        the builder already holds a service of this name.
        """
        missing = [
            name for name in self._methods if not callable(getattr(implementation, name, None))
        ]
        if missing:
            raise TypeError(
                f"{type(implementation).__name__} does not implement {', '.join(missing)}"
            )
        builder.add_service(self.name, _ServiceFactory(self, implementation))

    def client(self, client: Client) -> ServiceClient:
        """Wrap a network client so that it calls this service."""
        return ServiceClient(self, client)

    def __repr__(self) -> str:
        return f"ServiceDefinition(name={self.name!r}, methods={list(self._methods)})"


class ServiceClient:
    """Calls the methods of one service through a network client.

    Methods can be called by name with call(), or as attributes.
    """

    def __init__(self, definition: ServiceDefinition, client: Client) -> None:
        self._definition = definition
        self._client = client

    @property
    def definition(self) -> ServiceDefinition:
        return self._definition

    @property
    def raw(self) -> Client:
        """The underlying network client."""
        return self._client

    def call(self, method: str, request: Message) -> Message:
        """Call method with request and return the decoded reply.

        Raises an RpcError when the call fails.
        """
        rpc_method = self._definition.methods.get(method)
        if rpc_method is None:
            raise Unimplemented(f"unknown {method} in {self._definition.name}")
        fq_name = f"{self._definition.name}.{method}"
        return self._client.call(fq_name, request, rpc_method.response_type)

    def spawn(self, fn: Callable[..., Any], *args: Any) -> Future:
        """Run fn(*args) on the network's worker threads."""
        return self._client.spawn(fn, *args)

    def __getattr__(self, name: str) -> Callable[[Message], Message]:
        if name.startswith("_"):
            raise AttributeError(name)
        if name not in self._definition.methods:
            raise AttributeError(f"service {self._definition.name} has no method {name!r}")

        def invoke(request: Message) -> Message:
            return self.call(name, request)

        return invoke

    def __repr__(self) -> str:
        return f"ServiceClient(service={self._definition.name!r}, client={self._client!r})"