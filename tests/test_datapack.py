import io
import socket
import threading

import pytest

from zinx.config import GlobalConfig, set_global_config
from zinx.datapack import DataPack, Packet, PacketTooLargeError
from zinx.message import Message, new_msg_package


def _read_messages(stream, dp):
    messages = []
    while True:
        head = stream.read(dp.head_len)
        if len(head) < dp.head_len:
            return messages
        msg = dp.unpack(head)
        if msg.data_len > 0:
            msg.data = stream.read(msg.data_len)
        messages.append(msg)


def _sticky_payload(dp):
    msg1 = Message(msg_id=0, data_len=5, data=b"hello")
    msg2 = Message(msg_id=1, data_len=7, data=b"world!!")
    return dp.pack(msg1) + dp.pack(msg2)


def test_head_len_is_eight():
    assert DataPack(0).head_len == 8


def test_pack_wire_format():
    dp = DataPack(0)
    packed = dp.pack(Message(msg_id=0, data_len=5, data=b"hello"))
    assert packed == b"\x05\x00\x00\x00\x00\x00\x00\x00hello"


def test_pack_then_unpack_header_round_trip():
    dp = DataPack(0)
    packed = dp.pack(new_msg_package(1, b"world!!"))
    head = dp.unpack(packed[: dp.head_len])
    assert head.msg_id == 1
    assert head.data_len == 7
    assert head.data == b""
    assert packed[dp.head_len:] == b"world!!"


def test_sticky_packets_split_from_buffer():
    dp = DataPack(0)
    messages = _read_messages(io.BytesIO(_sticky_payload(dp)), dp)
    assert [(m.msg_id, m.data_len, m.data) for m in messages] == [
        (0, 5, b"hello"),
        (1, 7, b"world!!"),
    ]


def test_sticky_packets_over_socket():
    dp = DataPack(0)
    payload = _sticky_payload(dp)
    server, client = socket.socketpair()

    def writer():
        client.sendall(payload)
        client.close()

    thread = threading.Thread(target=writer)
    thread.start()
    with server.makefile("rb") as stream:
        received = _read_messages(stream, dp)
    thread.join(timeout=5)
    server.close()
    assert [(m.msg_id, m.data_len, m.data) for m in received] == [
        (0, 5, b"hello"),
        (1, 7, b"world!!"),
    ]


def test_unpack_rejects_too_large():
    dp = DataPack(4)
    packed = dp.pack(new_msg_package(0, b"hello"))
    with pytest.raises(PacketTooLargeError):
        dp.unpack(packed[:8])


def test_unpack_at_limit_is_accepted():
    dp = DataPack(5)
    head = dp.unpack(dp.pack(new_msg_package(2, b"hello"))[:8])
    assert head.data_len == 5


def test_zero_limit_means_unlimited():
    dp = DataPack(0)
    head = dp.unpack(dp.pack(Message(msg_id=1, data_len=10_000_000))[:8])
    assert head.data_len == 10_000_000


def test_unpack_short_header_raises():
    with pytest.raises(ValueError):
        DataPack(0).unpack(b"\x01\x02\x03")


def test_limit_defaults_to_global_config():
    set_global_config(GlobalConfig(max_packet_size=4))
    try:
        dp = DataPack()
        with pytest.raises(PacketTooLargeError):
            dp.unpack(dp.pack(new_msg_package(0, b"hello"))[:8])
    finally:
        set_global_config(None)


def test_custom_packet_subclass_and_abstract_base():
    calls = []

    class DemoPacket(DataPack):
        def pack(self, msg):
            calls.append(msg.msg_id)
            return super().pack(msg)

    dp = DemoPacket(0)
    packed = dp.pack(new_msg_package(3, b"abc"))
    head = dp.unpack(packed[: dp.head_len])
    assert (head.msg_id, head.data_len) == (3, 3)
    assert packed[dp.head_len:] == b"abc"
    assert calls == [3]

    class Incomplete(Packet):
        def pack(self, msg):
            return b""

    with pytest.raises(TypeError):
        Incomplete()