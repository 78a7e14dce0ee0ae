import socket

import pytest

from zinx.config import GlobalConfig
from zinx.connection import ConnectionClosedError, PropertyNotFoundError, SendTimeoutError
from zinx.datapack import DataPack
from zinx.demo_server import (
    HelloZinxRouter,
    PingRouter,
    build_server,
    do_connection_begin,
    do_connection_lost,
)
from zinx.message import new_msg_package
from zinx.router import Request


class FakeConnection:
    def __init__(self, fail=None):
        self.fail = fail
        self.attempts = 0
        self.buffered = []
        self.direct = []
        self.properties = {}
        self.lookups = []

    def send_buff_msg(self, msg_id, data):
        self.attempts += 1
        if self.fail is not None:
            raise self.fail
        self.buffered.append((msg_id, data))

    def send_msg(self, msg_id, data):
        self.attempts += 1
        if self.fail is not None:
            raise self.fail
        self.direct.append((msg_id, data))

    def set_property(self, key, value):
        self.properties[key] = value

    def get_property(self, key):
        self.lookups.append(key)
        try:
            return self.properties[key]
        except KeyError:
            raise PropertyNotFoundError("no property found") from None


def test_ping_router_replies_with_id_zero():
    conn = FakeConnection()
    PingRouter().handle(Request(connection=conn, msg=new_msg_package(0, b"ping")))
    assert conn.buffered == [(0, b"ping...ping...ping[FromServer]")]


def test_hello_router_replies_with_id_one():
    conn = FakeConnection()
    HelloZinxRouter().handle(Request(connection=conn, msg=new_msg_package(1, b"hi")))
    assert conn.buffered == [(1, b"Hello Zinx Router V0.10")]


def test_router_swallows_send_error():
    conn = FakeConnection(fail=SendTimeoutError("send buff msg timeout"))
    PingRouter().handle(Request(connection=conn, msg=new_msg_package(0, b"x")))
    assert conn.attempts == 1
    assert conn.buffered == []


def test_connection_begin_sets_properties_and_greets():
    conn = FakeConnection()
    do_connection_begin(conn)
    assert set(conn.properties) == {"Name", "Home"}
    assert conn.direct == [(2, b"DoConnection BEGIN...")]


def test_connection_begin_survives_closed_connection():
    conn = FakeConnection(fail=ConnectionClosedError("connection closed when send msg"))
    do_connection_begin(conn)
    assert conn.attempts == 1
    assert "Name" in conn.properties


def test_connection_lost_reads_properties_without_them():
    conn = FakeConnection()
    do_connection_lost(conn)
    assert conn.lookups == ["Name", "Home"]


def _read(sock, packet):
    def exact(size):
        buf = b""
        while len(buf) < size:
            chunk = sock.recv(size - len(buf))
            assert chunk
            buf += chunk
        return buf

    msg = packet.unpack(exact(packet.head_len))
    msg.data = exact(msg.data_len) if msg.data_len else b""
    return msg


@pytest.fixture
def running_server():
    config = GlobalConfig(host="127.0.0.1", tcp_port=0, worker_pool_size=2)
    server = build_server(config)
    server.start()
    try:
        yield server
    finally:
        server.stop()


def test_server_round_trip(running_server):
    packet = DataPack(4096)
    host, port = running_server.address
    with socket.create_connection((host, port), timeout=5) as sock:
        greeting = _read(sock, packet)
        assert (greeting.msg_id, greeting.data) == (2, b"DoConnection BEGIN...")
        sock.sendall(packet.pack(new_msg_package(0, b"ping")))
        reply = _read(sock, packet)
        assert (reply.msg_id, reply.data) == (0, b"ping...ping...ping[FromServer]")
        sock.sendall(packet.pack(new_msg_package(1, b"hello")))
        reply = _read(sock, packet)
        assert (reply.msg_id, reply.data) == (1, b"Hello Zinx Router V0.10")


def test_build_server_registers_routers():
    server = build_server(GlobalConfig(host="127.0.0.1", tcp_port=0))
    assert sorted(server.msg_handler.apis) == [0, 1]
    assert server.on_conn_start is do_connection_begin
    assert server.on_conn_stop is do_connection_lost