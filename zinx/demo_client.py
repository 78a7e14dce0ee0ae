"""Demo client that pings a server with framed messages and prints the replies."""

from __future__ import annotations

import argparse
import socket
import time
from typing import Optional

from zinx.datapack import DataPack, Packet
from zinx.message import Message, new_msg_package

PING_DATA = b"Zinx client Demo Test MsgID=0, [Ping]"


def _recv_exact(sock: socket.socket, size: int) -> bytes:
    buf = bytearray()
    while len(buf) < size:
        chunk = sock.recv(size - len(buf))
        if not chunk:
            raise EOFError("connection closed by peer")
        buf += chunk
    return bytes(buf)


def read_message(sock: socket.socket, packet: Packet) -> Message:
    """Read one framed message, header then payload."""
    msg = packet.unpack(_recv_exact(sock, packet.head_len))
    msg.data = _recv_exact(sock, msg.data_len) if msg.data_len > 0 else b""
    return msg


def ping(sock: socket.socket, packet: Packet, msg_id: int, data: bytes) -> Message:
    """Send one message and read the next message that arrives."""
    sock.sendall(packet.pack(new_msg_package(msg_id, data)))
    return read_message(sock, packet)


def run_client(host: str = "127.0.0.1", port: int = 8999,
               count: Optional[int] = None, interval: float = 1.0) -> list[Message]:
    """Ping ``count`` times (forever when None) and return the messages received.

    Stops early, keeping what was read, if the server closes the connection.
    """
    packet = DataPack()
    received: list[Message] = []
    with socket.create_connection((host, port)) as sock:
        sent = 0
        while count is None or sent < count:
            try:
                msg = ping(sock, packet, 0, PING_DATA)
            except (EOFError, OSError):
                print("read head error")
                break
            except ValueError as exc:
                print("server unpack err:", exc)
                break
            sent += 1
            received.append(msg)
            if msg.data_len > 0:
                print("==> Test Router:[Ping] Recv Msg: ID=", msg.msg_id,
                      ", len=", msg.data_len,
                      ", data=", msg.data.decode("utf-8", "replace"))
            if count is None or sent < count:
                time.sleep(interval)
    return received


def main(argv: Optional[list[str]] = None) -> int:
    """Command-line entry point; returns 1 if the server cannot be reached."""
    parser = argparse.ArgumentParser(description="Ping a zinx server.")
    parser.add_argument("--host", default="127.0.0.1")
    parser.add_argument("--port", type=int, default=8999)
    parser.add_argument("--count", type=int, default=None)
    parser.add_argument("--interval", type=float, default=1.0)
    options = parser.parse_args(argv)
    try:
        run_client(options.host, options.port, options.count, options.interval)
    except OSError as exc:
        print("client start err, exit!", exc)
        return 1
    return 0