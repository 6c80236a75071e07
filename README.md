# distlab

Building blocks for experimenting with distributed systems in pure Python:

- **`distlab.codec`**: a small protobuf-compatible message codec. Messages
  are dataclasses that subclass `Message` and list their wire layout as
  `Field` entries.
- **`distlab.server`**, **`distlab.network`**, **`distlab.service`**: a
  simulated RPC network. Servers are assembled with a `ServerBuilder`.
  Clients are created by a `Network`, and the network can drop, delay or
  reorder traffic, cut clients off and kill servers.
- **`distlab.checker`**, **`distlab.model`**, **`distlab.models`**: a
  linearizability checker for recorded histories, the `Model` interface it
  checks against, and a key/value model (`KvModel`) with a parser for its
  history logs.
- **`distlab.echo`**: a minimal echo service and a command that runs it.

## Installation

```
pip install .
```

## Messages

```python
from dataclasses import dataclass
from typing import ClassVar

from distlab.codec import Field, FieldKind, Message, decode, encode

@dataclass
class Point(Message):
    FIELDS: ClassVar[tuple[Field, ...]] = (
        Field("x", 1, FieldKind.INT64),
        Field("label", 2, FieldKind.STRING),
        Field("tags", 3, FieldKind.BYTES, repeated=True),
    )

    x: int = 0
    label: str = ""
    tags: list[bytes] = dataclasses.field(default_factory=list)

data = encode(Point(x=-3, label="origin"))
assert decode(Point, data) == Point(x=-3, label="origin")
```

Supported field kinds are `INT32`, `INT64`, `UINT32`, `UINT64`, `BOOL`,
`ENUM`, `STRING` and `BYTES`. Every attribute needs a default, and fields
holding their default are left out of the encoding. Values that do not fit
their field raise `EncodeError`. Malformed input raises `DecodeError`, whose
message names the message and field where decoding failed. Unknown tags are
skipped. `Message.encoded_len()` gives the encoded size and
`Message.clear()` resets every attribute to its default.

`distlab.fixture` holds a sample message, `Msg`, with an enumerated
`MsgType`.

## Simulated RPC

```python
from distlab.echo import Echo, EchoService
from distlab.network import Network
from distlab.server import ServerBuilder
from distlab.service import RpcMethod, ServiceDefinition

echo = ServiceDefinition("echo", [RpcMethod("ping", Echo, Echo)])

with Network() as net:
    builder = ServerBuilder("echo_server")
    echo.add_service(EchoService(), builder)
    net.add_server(builder.build())

    client = echo.client(net.create_client("client"))
    net.enable("client", True)
    net.connect("client", "echo_server")

    print(client.call("ping", Echo(x=777)))
    print(client.ping(Echo(x=1)))  # methods can also be called as attributes
```

A new client starts disabled and unconnected. Calls from a disabled or
unconnected client time out after a short random delay.

Failed calls raise subclasses of `distlab.errors.RpcError`:

- `RpcTimeout`: the request or the reply was lost.
- `Stopped`: the server was removed with `Network.delete_server`, the client
  was disabled while the call was in flight, or the network was closed.
- `Unimplemented`: no such service or method.
- `EncodeFailed` and `DecodeFailed`: a message could not be encoded or
  decoded.
- `ReceiveFailed`: the reply was abandoned before it was sent.
- `OtherError`: anything else, for example a service name registered twice.

Errors compare equal when they are of the same class and carry the same
details.

Network behaviour can be changed while it runs:

- `set_reliable(False)` delays requests a little and drops about one request
  and one reply in ten.
- `set_long_reordering(True)` holds back many replies for up to a couple of
  seconds.
- `set_long_delays(True)` makes calls from disabled clients wait up to seven
  seconds before timing out.

`Network.count(server_name)` and `Network.total_count()` report how many
calls a server has dispatched and how many the network has carried.

To intercept calls, subclass `distlab.network.RpcHooks` and install it with
`Client.set_hooks`. `before_dispatch` may raise to fail a call before it
reaches the server. `after_dispatch` receives the reply bytes, or the
exception the dispatch ended with, and returns the reply to deliver or
raises. `Client.clear_hooks` removes them.

`Network.spawn` and `Client.spawn` run a function on the network's worker
threads and return a `concurrent.futures.Future`.

To run the bundled echo round trip:

```
distlab-echo
```

## Checking linearizability

```python
from distlab.checker import check_events
from distlab.models import KvModel, parse_kv_log

with open("history.txt") as log:
    events = parse_kv_log(log)

print(check_events(KvModel(), events))
```

`parse_kv_log` reads lines such as
`{:process 0, :type :invoke, :f :put, :key "k", :value "v"}` and the
matching `:type :ok` lines. Calls still pending at the end get an empty
reply, and an unrecognised line raises `ValueError`.

`check_operations` does the same for a list of timed
`distlab.model.Operation`s. Both functions take an optional timeout in
seconds or as a `timedelta`. Zero means wait for the answer. A check that
times out reports the history as linearizable.

Each partition returned by the model's `partition` or `partition_event` is
checked on its own thread. To check another system, subclass
`distlab.model.Model` and implement `init` and `step`.

## What it does not do

All traffic stays inside one Python process. The network is a simulation
for tests and experiments and opens no sockets. Nothing is persisted.

## Running the tests

```
pip install .[test]
pytest
```