"""Wire format of the datagrams exchanged between clients and the file server.

Every field is a 32-bit big-endian signed integer or a length-prefixed byte
string, in this order: message type, file name, fid, position, size,
sequence number, restart number, payload.
"""

from __future__ import annotations

import enum
import struct
from dataclasses import dataclass

DATAGRAM_SIZE = 4096
PAYLOAD_SIZE = 512

_INT = struct.Struct("!i")


class ProtocolError(ValueError):
    """Raised when a message cannot be encoded or a datagram cannot be decoded."""


class MsgType(enum.IntEnum):
    """Kinds of requests and replies."""

    OPEN = 0
    READ = 1
    WRITE = 2
    TRUNC = 3
    OPEN_REP = 4
    READ_DONE = 5
    WRITE_DONE = 6
    TRUNC_DONE = 7


def _pack_int(value: int, label: str) -> bytes:
    try:
        return _INT.pack(value)
    except struct.error:
        raise ProtocolError(f"{label} {value!r} does not fit in 32 bits") from None


class _Reader:
    """Sequential reader over a received datagram."""

    def __init__(self, data: bytes) -> None:
        self._data = memoryview(bytes(data))
        self._offset = 0

    def take(self, count: int) -> bytes:
        end = self._offset + count
        if end > len(self._data):
            raise ProtocolError("datagram is truncated")
        chunk = bytes(self._data[self._offset:end])
        self._offset = end
        return chunk

    def int(self) -> int:
        (value,) = _INT.unpack(self.take(_INT.size))
        return value

    def blob(self) -> bytes:
        length = self.int()
        if length < 0:
            raise ProtocolError(f"negative field length {length}")
        return self.take(length)


@dataclass
class Message:
    """One request or reply."""

    type: MsgType
    name: str | None = None
    fid: int = -1
    pos: int = -1
    size: int = -1
    seqno: int = -1
    rn: int = 0
    payload: bytes | None = None

    def encode(self) -> bytes:
        """Serialize the message.

        The payload is written as exactly ``size`` bytes, cut or padded with
        zero bytes; a missing payload is written as an empty field.
        """
        name = b"" if self.name is None else self.name.encode("utf-8", "surrogateescape")
        parts = [
            _pack_int(int(self.type), "type"),
            _pack_int(len(name), "name length"),
            name,
        ]
        for label, value in (
            ("fid", self.fid),
            ("pos", self.pos),
            ("size", self.size),
            ("seqno", self.seqno),
            ("rn", self.rn),
        ):
            parts.append(_pack_int(value, label))
        if self.payload is None:
            parts.append(_pack_int(0, "payload length"))
        else:
            if self.size < 0:
                raise ProtocolError(f"cannot send a payload with negative size {self.size}")
            body = bytes(self.payload[: self.size]).ljust(self.size, b"\0")
            parts.append(_pack_int(self.size, "payload length"))
            parts.append(body)
        return b"".join(parts)

    @classmethod
    def decode(cls, data: bytes) -> Message:
        """Parse a datagram; bytes after the payload are ignored."""
        reader = _Reader(data)
        raw_type = reader.int()
        try:
            msg_type = MsgType(raw_type)
        except ValueError:
            raise ProtocolError(f"unknown message type {raw_type}") from None
        name = reader.blob().decode("utf-8", "surrogateescape")
        fid = reader.int()
        pos = reader.int()
        size = reader.int()
        seqno = reader.int()
        rn = reader.int()
        payload = reader.blob()
        return cls(msg_type, name, fid, pos, size, seqno, rn, payload)


def encode(message: Message) -> bytes:
    """Serialize ``message``."""
    return message.encode()


def decode(data: bytes) -> Message:
    """Parse a datagram into a :class:`Message`."""
    return Message.decode(data)