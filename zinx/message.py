"""The message unit carried over the wire: an id, a payload and its length."""

from __future__ import annotations

from dataclasses import dataclass


@dataclass
class Message:
    """One framed message.

    ``data_len`` is the length announced in the header; it is kept separately
    from ``data`` because a freshly unpacked header carries no payload yet.
    """

    msg_id: int = 0
    data: bytes = b""
    data_len: int = 0


def new_msg_package(msg_id: int, data: bytes) -> Message:
    """A message whose announced length matches its payload."""
    payload = bytes(data)
    return Message(msg_id=msg_id, data=payload, data_len=len(payload))