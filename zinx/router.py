"""Requests handed to routers, and the router base class with pre/post hooks."""

from __future__ import annotations

from dataclasses import dataclass
from typing import Any

from zinx.message import Message


@dataclass
class Request:
    """A message received on a connection."""

    connection: Any
    msg: Message

    @property
    def data(self) -> bytes:
        return self.msg.data

    @property
    def msg_id(self) -> int:
        return self.msg.msg_id


class BaseRouter:
    """Router whose three hooks do nothing; subclasses override what they need."""

    def pre_handle(self, request: Request) -> None:
        """Called before handle."""

    def handle(self, request: Request) -> None:
        """Process the request."""

    def post_handle(self, request: Request) -> None:
        """Called after handle."""