from dataclasses import dataclass
from typing import ClassVar

import pytest

from distlab.codec import DecodeError, Field, FieldKind, Message
from distlab.errors import DecodeFailed, OtherError, Unimplemented
from distlab.server import HandlerFactory, Server, ServerBuilder


@dataclass
class JunkArgs(Message):
    FIELDS: ClassVar[tuple[Field, ...]] = (Field("x", 1, FieldKind.INT64),)
    x: int = 0


@dataclass
class JunkReply(Message):
    FIELDS: ClassVar[tuple[Field, ...]] = (Field("x", 1, FieldKind.STRING),)
    x: str = ""


class JunkFactory(HandlerFactory):
    def __init__(self):
        self.log2 = []

    def handler(self, name):
        def handle(request):
            if name not in ("handler2", "handler4"):
                raise Unimplemented(f"unknown {name} in junk")
            try:
                args = JunkArgs.decode(request)
            except DecodeError as exc:
                raise DecodeFailed(exc) from exc
            if name == "handler2":
                self.log2.append(args.x)
                return JunkReply(f"handler2-{args.x}").encode()
            return JunkReply("pointer").encode()

        return handle


def build_server(name="test"):
    builder = ServerBuilder(name)
    builder.add_service("junk", JunkFactory())
    return builder.build()


def test_service_dispatch():
    builder = ServerBuilder("test")
    junk = JunkFactory()
    builder.add_service("junk", junk)
    prev_len = len(builder.services)
    with pytest.raises(OtherError):
        builder.add_service("junk", junk)
    assert len(builder.services) == prev_len
    server = builder.build()

    reply = JunkReply.decode(server.dispatch("junk.handler4", b""))
    assert reply == JunkReply("pointer")

    with pytest.raises(DecodeFailed):
        server.dispatch("junk.handler4", b"bad message")
    with pytest.raises(Unimplemented):
        server.dispatch("badjunk.handler4", b"")
    with pytest.raises(Unimplemented):
        server.dispatch("junk.badhandler", b"")


def test_duplicate_service_message():
    builder = ServerBuilder("test")
    builder.add_service("junk", JunkFactory())
    with pytest.raises(OtherError) as info:
        builder.add_service("junk", JunkFactory())
    assert info.value == OtherError("junk has already registered")


def test_missing_method_part_is_unimplemented():
    server = build_server()
    with pytest.raises(Unimplemented) as info:
        server.dispatch("junk", b"")
    assert info.value == Unimplemented("unknown junk")


def test_unknown_service_message():
    server = build_server()
    with pytest.raises(Unimplemented) as info:
        server.dispatch("badjunk.handler4", b"")
    assert info.value == Unimplemented("unknown badjunk.handler4")


def test_extra_name_parts_are_ignored():
    server = build_server()
    reply = JunkReply.decode(server.dispatch("junk.handler4.extra", b""))
    assert reply.x == "pointer"


def test_count_includes_failed_dispatches():
    server = build_server()
    server.dispatch("junk.handler4", b"")
    for fq_name in ("badjunk.handler4", "junk.badhandler", "junk"):
        with pytest.raises(Unimplemented):
            server.dispatch(fq_name, b"")
    assert server.count() == 4


def test_handler_receives_request():
    builder = ServerBuilder("test")
    junk = JunkFactory()
    builder.add_service("junk", junk)
    server = builder.build()
    for i in range(17):
        reply = JunkReply.decode(server.dispatch("junk.handler2", JunkArgs(i).encode()))
        assert reply.x == f"handler2-{i}"
    assert junk.log2 == list(range(17))
    assert server.count() == 17


def test_name_and_unique_ids():
    first = build_server("alpha")
    second = build_server("alpha")
    assert first.name() == "alpha"
    assert first.id != second.id
    assert "alpha" in repr(first)


def test_built_server_independent_of_builder():
    builder = ServerBuilder("test")
    server = builder.build()
    builder.add_service("junk", JunkFactory())
    with pytest.raises(Unimplemented):
        server.dispatch("junk.handler4", b"")
    assert isinstance(server, Server)
    assert server.count() == 1