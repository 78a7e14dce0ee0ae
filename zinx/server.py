"""TCP server that accepts framed connections and routes their messages."""

from __future__ import annotations

import queue
import socket
import threading
from contextlib import suppress
from typing import Any, Callable, Optional

from zinx import zlog
from zinx.config import GlobalConfig, get_global_config
from zinx.connection import Connection
from zinx.connmanager import ConnManager
from zinx.datapack import DataPack, Packet
from zinx.msghandler import MsgHandle
from zinx.router import BaseRouter

Option = Callable[["Server"], None]
ConnHook = Callable[[Any], None]

_ACCEPT_POLL = 0.2
_SERVE_POLL = 0.5
_UINT32_MASK = 0xFFFFFFFF


def with_packet(pack: Packet) -> Option:
    """Option replacing the server's default framing with ``pack``."""

    def apply(server: "Server") -> None:
        server.packet = pack

    return apply


def _print_banner(config: GlobalConfig) -> None:
    line = "─" * 54
    print(f"┌{line}┐")
    print(f"│ {('Zinx server: ' + config.name)[:52]:<52} │")
    print(f"└{line}┘")
    print(f"[Zinx] Version: {config.version}, MaxConn: {config.max_conn}, "
          f"MaxPacketSize: {config.max_packet_size}")


class Server:
    """A TCP server whose connections dispatch messages to routers by message id.

    Options passed positionally are applied in order after the defaults are
    set. ``config`` defaults to the process-wide configuration.
    """

    def __init__(self, *args: Option, config: Optional[GlobalConfig] = None) -> None:
        self.config = config if config is not None else get_global_config()
        _print_banner(self.config)
        self.name = self.config.name
        self.ip_version = "tcp4"
        self.ip = self.config.host
        self.port = self.config.tcp_port
        self.msg_handler = MsgHandle(self.config.worker_pool_size,
                                     self.config.max_worker_task_len)
        self.conn_mgr = ConnManager()
        self.on_conn_start: Optional[ConnHook] = None
        self.on_conn_stop: Optional[ConnHook] = None
        self.packet: Packet = DataPack(self.config.max_packet_size)
        self._listener: Optional[socket.socket] = None
        self._accept_thread: Optional[threading.Thread] = None
        self._exit = threading.Event()
        self._next_conn_id = 0
        for option in args:
            option(self)

    def __enter__(self) -> "Server":
        self.start()
        return self

    def __exit__(self, *exc_info: object) -> None:
        self.stop()

    @property
    def address(self) -> Optional[tuple]:
        """The (host, port) the server listens on, or None when not started."""
        listener = self._listener
        return listener.getsockname() if listener is not None else None

    def start(self) -> None:
        """Bind the listening socket and accept connections on a background thread."""
        if self._listener is not None:
            raise RuntimeError("server is already started")
        zlog.info(f"[START] Server name: {self.name},listenner at IP: {self.ip}, "
                  f"Port {self.port} is starting")
        self._exit.clear()
        listener = socket.create_server((self.ip, self.port), family=socket.AF_INET)
        listener.settimeout(_ACCEPT_POLL)
        self.msg_handler.start_worker_pool()
        self._listener = listener
        zlog.info("start Zinx server  ", self.name, " succ, now listenning...")
        self._accept_thread = threading.Thread(
            target=self._accept_loop, args=(listener,),
            name=f"zinx-accept-{self.name}", daemon=True)
        self._accept_thread.start()

    def _accept_loop(self, listener: socket.socket) -> None:
        while not self._exit.is_set():
            try:
                sock, addr = listener.accept()
            except socket.timeout:
                continue
            except OSError as exc:
                if self._exit.is_set():
                    break
                zlog.error("Accept err ", exc)
                continue
            sock.setblocking(True)
            zlog.info("Get conn remote addr = ", addr)
            if len(self.conn_mgr) >= self.config.max_conn:
                with suppress(OSError):
                    sock.close()
                continue
            conn = Connection(self, sock, self._next_conn_id, self.msg_handler)
            self._next_conn_id = (self._next_conn_id + 1) & _UINT32_MASK
            threading.Thread(target=conn.start, name=f"zinx-conn-{conn.conn_id}",
                             daemon=True).start()
        zlog.info("Listener closed")

    def _stop_workers(self) -> None:
        for task_queue in self.msg_handler.task_queues:
            with suppress(queue.Full):
                task_queue.put_nowait(None)
        self.msg_handler.task_queues.clear()
        self.msg_handler.workers.clear()

    def stop(self) -> None:
        """Stop every connection, close the listener and release the workers."""
        zlog.info("[STOP] Zinx server , name ", self.name)
        self.conn_mgr.clear_conn()
        self._exit.set()
        listener, self._listener = self._listener, None
        if listener is not None:
            with suppress(OSError):
                listener.close()
        thread, self._accept_thread = self._accept_thread, None
        if thread is not None and thread is not threading.current_thread():
            thread.join()
        self._stop_workers()

    def serve(self) -> None:
        """Start the server and block until stop() is called or the user interrupts."""
        self.start()
        try:
            while not self._exit.wait(_SERVE_POLL):
                pass
        except KeyboardInterrupt:
            self.stop()

    def add_router(self, msg_id: int, router: BaseRouter) -> None:
        """Bind a router to a message id."""
        self.msg_handler.add_router(msg_id, router)

    def call_on_conn_start(self, conn: Any) -> None:
        if self.on_conn_start is not None:
            zlog.info("---> CallOnConnStart....")
            self.on_conn_start(conn)

    def call_on_conn_stop(self, conn: Any) -> None:
        if self.on_conn_stop is not None:
            zlog.info("---> CallOnConnStop....")
            self.on_conn_stop(conn)