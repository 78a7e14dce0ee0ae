"""Demo server: ping and hello routers plus connection hooks."""

from __future__ import annotations

from typing import Any, Optional

from zinx import zlog
from zinx.config import GlobalConfig, load_config
from zinx.router import BaseRouter, Request
from zinx.server import Server

PING_REPLY = b"ping...ping...ping[FromServer]"
HELLO_REPLY = b"Hello Zinx Router V0.10"
BEGIN_MESSAGE = b"DoConnection BEGIN..."


class PingRouter(BaseRouter):
    """Answers message id 0 with a ping reply on the buffered channel."""

    def handle(self, request: Request) -> None:
        zlog.debug("Call PingRouter Handle")
        zlog.debug("recv from client : msgId=", request.msg_id,
                   ", data=", request.data.decode("utf-8", "replace"))
        try:
            request.connection.send_buff_msg(0, PING_REPLY)
        except Exception as exc:  # noqa: BLE001 - a failed reply is only logged
            zlog.error(exc)


class HelloZinxRouter(BaseRouter):
    """Answers message id 1 with a greeting on the buffered channel."""

    def handle(self, request: Request) -> None:
        zlog.debug("Call HelloZinxRouter Handle")
        zlog.debug("recv from client : msgId=", request.msg_id,
                   ", data=", request.data.decode("utf-8", "replace"))
        try:
            request.connection.send_buff_msg(1, HELLO_REPLY)
        except Exception as exc:  # noqa: BLE001 - a failed reply is only logged
            zlog.error(exc)


def do_connection_begin(conn: Any) -> None:
    """Tag a new connection with properties and greet it with message id 2."""
    zlog.debug("DoConnecionBegin is Called ... ")
    zlog.debug("Set conn Name, Home done!")
    conn.set_property("Name", "zinx-demo")
    conn.set_property("Home", "https://example.com/zinx")
    try:
        conn.send_msg(2, BEGIN_MESSAGE)
    except Exception as exc:  # noqa: BLE001 - a failed greeting is only logged
        zlog.error(exc)


def do_connection_lost(conn: Any) -> None:
    """Report the properties of a connection that is going away."""
    for key in ("Name", "Home"):
        try:
            value = conn.get_property(key)
        except KeyError:
            continue
        zlog.error(f"Conn Property {key} = ", value)
    zlog.debug("DoConneciotnLost is Called ... ")


def build_server(config: Optional[GlobalConfig] = None) -> Server:
    """A server with the demo hooks and routers registered."""
    server = Server(config=config)
    server.on_conn_start = do_connection_begin
    server.on_conn_stop = do_connection_lost
    server.add_router(0, PingRouter())
    server.add_router(1, HelloZinxRouter())
    return server


def main(argv: Optional[list[str]] = None) -> int:
    """Run the demo server until interrupted."""
    server = build_server(load_config(argv))
    server.serve()
    return 0