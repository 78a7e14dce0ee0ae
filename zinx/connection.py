"""One client connection: a reader thread, a writer thread and per-connection properties."""

from __future__ import annotations

import queue
import socket
import threading
from contextlib import suppress
from typing import Any

from zinx import zlog
from zinx.config import get_global_config
from zinx.message import new_msg_package
from zinx.router import Request

_BUFF_SEND_TIMEOUT = 0.005
_WRITER_POLL = 0.05


class ConnectionClosedError(ConnectionError):
    """The connection has already been closed."""


class SendTimeoutError(TimeoutError):
    """The buffered send queue stayed full for too long."""


class PropertyNotFoundError(KeyError):
    """No property is set under the requested key."""


class Connection:
    """A TCP connection served by a server.

    The server must provide ``conn_mgr``, ``packet``, ``call_on_conn_start``
    and ``call_on_conn_stop``; its ``config`` attribute, if present, is used
    instead of the global config. ``done`` is set once the connection stops.
    """

    def __init__(self, server: Any, sock: socket.socket, conn_id: int,
                 msg_handler: Any) -> None:
        self.server = server
        self.sock = sock
        self.conn_id = conn_id
        self.msg_handler = msg_handler
        self.config = getattr(server, "config", None) or get_global_config()
        self.done = threading.Event()
        # A zero-length channel is unbuffered; a one-slot queue is the closest match.
        self._msg_buff: queue.Queue = queue.Queue(
            maxsize=max(1, self.config.max_msg_chan_len))
        self._lock = threading.Lock()
        self._property_lock = threading.Lock()
        self._properties: dict[str, Any] = {}
        self._closed = False
        server.conn_mgr.add(self)

    @property
    def closed(self) -> bool:
        with self._lock:
            return self._closed

    def _recv_exact(self, size: int) -> bytes:
        buf = bytearray()
        while len(buf) < size:
            chunk = self.sock.recv(size - len(buf))
            if not chunk:
                raise EOFError("connection closed by peer")
            buf += chunk
        return bytes(buf)

    def start_writer(self) -> None:
        """Send queued buffered messages until the connection stops."""
        zlog.info("[Writer Goroutine is running]")
        try:
            while not self.done.is_set():
                try:
                    data = self._msg_buff.get(timeout=_WRITER_POLL)
                except queue.Empty:
                    continue
                try:
                    self.sock.sendall(data)
                except OSError as exc:
                    zlog.error("Send Buff Data error:, ", exc, " Conn Writer exit")
                    return
        finally:
            zlog.info(self.conn_id, "[conn Writer exit!]")

    def start_reader(self) -> None:
        """Read framed messages and dispatch them until an error or a stop."""
        zlog.info("[Reader Goroutine is running]")
        packet = self.server.packet
        try:
            while not self.done.is_set():
                try:
                    msg = packet.unpack(self._recv_exact(packet.head_len))
                    if msg.data_len > 0:
                        msg.data = self._recv_exact(msg.data_len)
                    else:
                        msg.data = b""
                except (OSError, EOFError, ValueError) as exc:
                    zlog.info("read msg error ", exc)
                    return
                request = Request(connection=self, msg=msg)
                if self.config.worker_pool_size > 0:
                    self.msg_handler.send_msg_to_task_queue(request)
                else:
                    threading.Thread(target=self.msg_handler.do_msg_handler,
                                     args=(request,), daemon=True).start()
        finally:
            self.stop()
            zlog.info(self.conn_id, "[conn Reader exit!]")

    def start(self) -> None:
        """Run the connection; blocks until it stops, then tears it down."""
        threading.Thread(target=self.start_reader, daemon=True,
                         name=f"zinx-reader-{self.conn_id}").start()
        threading.Thread(target=self.start_writer, daemon=True,
                         name=f"zinx-writer-{self.conn_id}").start()
        self.server.call_on_conn_start(self)
        self.done.wait()
        self._finalize()

    def stop(self) -> None:
        """Ask the connection to stop; teardown happens in start()."""
        self.done.set()

    def remote_addr(self) -> Any:
        return self.sock.getpeername()

    def send_msg(self, msg_id: int, data: bytes) -> None:
        """Frame and write a message straight to the socket."""
        with self._lock:
            if self._closed:
                raise ConnectionClosedError("connection closed when send msg")
            payload = self.server.packet.pack(new_msg_package(msg_id, data))
            self.sock.sendall(payload)

    def send_buff_msg(self, msg_id: int, data: bytes) -> None:
        """Frame a message and hand it to the writer thread."""
        with self._lock:
            if self._closed:
                raise ConnectionClosedError("Connection closed when send buff msg")
            payload = self.server.packet.pack(new_msg_package(msg_id, data))
            try:
                self._msg_buff.put(payload, timeout=_BUFF_SEND_TIMEOUT)
            except queue.Full:
                raise SendTimeoutError("send buff msg timeout") from None

    def set_property(self, key: str, value: Any) -> None:
        with self._property_lock:
            self._properties[key] = value

    def get_property(self, key: str) -> Any:
        with self._property_lock:
            try:
                return self._properties[key]
            except KeyError:
                raise PropertyNotFoundError("no property found") from None

    def remove_property(self, key: str) -> None:
        with self._property_lock:
            self._properties.pop(key, None)

    def _finalize(self) -> None:
        self.server.call_on_conn_stop(self)
        with self._lock:
            if self._closed:
                return
            zlog.info("Conn Stop()...ConnID = ", self.conn_id)
            with suppress(OSError):
                self.sock.shutdown(socket.SHUT_RDWR)
            with suppress(OSError):
                self.sock.close()
            self.server.conn_mgr.remove(self)
            self._closed = True