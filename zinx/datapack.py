"""Length-prefixed framing: an 8-byte little-endian header followed by the payload."""

from __future__ import annotations

import abc
import struct
from typing import Optional

from zinx.message import Message

_HEADER = struct.Struct("<II")


class PacketTooLargeError(ValueError):
    """The header announces more payload than the configured maximum."""


class Packet(abc.ABC):
    """A framing scheme that turns messages into bytes and headers back into messages."""

    @property
    @abc.abstractmethod
    def head_len(self) -> int:
        """Number of header bytes to read before calling unpack."""

    @abc.abstractmethod
    def pack(self, msg: Message) -> bytes:
        """Serialize a whole message, header and payload."""

    @abc.abstractmethod
    def unpack(self, binary_data: bytes) -> Message:
        """Parse a header into a message with no payload yet."""


class DataPack(Packet):
    """Header of data length then message id, both uint32 little-endian.

    ``max_packet_size`` of None defers to the global config at unpack time;
    zero means no limit.
    """

    HEAD_LEN = _HEADER.size

    def __init__(self, max_packet_size: Optional[int] = None) -> None:
        self.max_packet_size = max_packet_size

    @property
    def head_len(self) -> int:
        return self.HEAD_LEN

    def _limit(self) -> int:
        if self.max_packet_size is not None:
            return self.max_packet_size
        from zinx.config import get_global_config

        return get_global_config().max_packet_size

    def pack(self, msg: Message) -> bytes:
        return _HEADER.pack(msg.data_len, msg.msg_id) + bytes(msg.data)

    def unpack(self, binary_data: bytes) -> Message:
        if len(binary_data) < _HEADER.size:
            raise ValueError(
                f"header needs {_HEADER.size} bytes, got {len(binary_data)}")
        data_len, msg_id = _HEADER.unpack_from(binary_data)
        limit = self._limit()
        if limit > 0 and data_len > limit:
            raise PacketTooLargeError("too large msg data received")
        return Message(msg_id=msg_id, data=b"", data_len=data_len)