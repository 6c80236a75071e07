"""A minimal echo service that sends a number to a server and back."""

from __future__ import annotations

import argparse
import dataclasses
from collections.abc import Sequence
from dataclasses import dataclass
from typing import ClassVar

from distlab.codec import Field, FieldKind, Message
from distlab.network import Network
from distlab.server import ServerBuilder
from distlab.service import RpcMethod, ServiceDefinition


@dataclass
class Echo(Message):
    """A message carrying one integer."""

    FIELDS: ClassVar[tuple[Field, ...]] = (Field("x", 1, FieldKind.INT64),)

    x: int = 0


ECHO = ServiceDefinition("echo", [RpcMethod("ping", Echo, Echo)])


class EchoService:
    """Replies with the request it was given."""

    def ping(self, request: Echo) -> Echo:
        return dataclasses.replace(request)


def main(argv: Sequence[str] | None = None) -> int:
    """Send one echo through a simulated network and print the reply."""
    parser = argparse.ArgumentParser(description="Send an echo request and print the reply.")
    parser.parse_args(argv)

    server_name = "echo_server"
    client_name = "client"
    with Network() as network:
        builder = ServerBuilder(server_name)
        ECHO.add_service(EchoService(), builder)
        network.add_server(builder.build())

        client = ECHO.client(network.create_client(client_name))
        network.enable(client_name, True)
        network.connect(client_name, server_name)

        request = Echo(x=777)
        reply = client.call("ping", request)
        if reply != request:
            raise RuntimeError(f"echo returned {reply!r}, expected {request!r}")
        print(reply)
    return 0


if __name__ == "__main__":
    raise SystemExit(main())