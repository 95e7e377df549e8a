"""Framed messages exchanged between the waymux daemon and its clients.

A frame is one opcode byte, a big-endian unsigned 64-bit payload length
and the payload itself.
"""

from __future__ import annotations

import socket
import struct
from dataclasses import dataclass
from enum import IntEnum

U64SIZE = 8
U8SIZE = 1
SESSION_TYPE = "weston"

_SIZE = struct.Struct(">Q")
_CHUNK = 64 * 1024


class ProtocolError(Exception):
    """Raised when a frame or structure cannot be read or written."""


class Opcode(IntEnum):
    """Request and reply opcodes."""

    # Client -> server
    REGISTER_HOST = 0
    STOP_HOST = 1
    START_SESSION = 2
    STOP_SESSION = 3
    STOP_ALL_SESSIONS = 4
    LIST_SESSIONS = 5
    WHO_AM_I = 6
    # Server replies
    SUCCESS = 7
    ERROR = 8


@dataclass
class Message:
    """One frame: an opcode and its payload.

    The opcode is a plain ``int`` when the peer sent a value that is not a
    known :class:`Opcode`, so that the receiver can reject it itself.
    """

    opcode: Opcode | int
    data: bytes = b""


class MessageSocket:
    """Reads and writes :class:`Message` frames over a connected socket."""

    def __init__(self, conn: socket.socket) -> None:
        self.conn = conn

    def __enter__(self) -> MessageSocket:
        return self

    def __exit__(self, *exc_info: object) -> None:
        self.close()

    def _recv_exact(self, size: int, what: str) -> bytes:
        parts: list[bytes] = []
        remaining = size
        while remaining > 0:
            try:
                chunk = self.conn.recv(min(remaining, _CHUNK))
            except OSError as exc:
                raise ProtocolError(f"failed to read {what}: {exc}") from exc
            if not chunk:
                raise ProtocolError(
                    f"failed to read {what}: connection closed after "
                    f"{size - remaining} of {size} bytes"
                )
            parts.append(chunk)
            remaining -= len(chunk)
        return b"".join(parts)

    def next(self) -> Message:
        """Read the next frame from the connection."""
        opcode_byte = self._recv_exact(U8SIZE, "opcode")[0]
        (size,) = _SIZE.unpack(self._recv_exact(U64SIZE, "size"))
        data = self._recv_exact(size, "payload") if size else b""
        try:
            opcode: Opcode | int = Opcode(opcode_byte)
        except ValueError:
            opcode = opcode_byte
        return Message(opcode, data)

    def write_message(self, msg: Message) -> int:
        """Send a frame and return the number of bytes written."""
        data = bytes(msg.data or b"")
        opcode = int(msg.opcode)
        if not 0 <= opcode <= 0xFF:
            raise ProtocolError(f"opcode out of range: {opcode}")
        steps = (
            ("opcode", bytes([opcode])),
            ("size", _SIZE.pack(len(data))),
            ("payload", data),
        )
        written = 0
        for what, chunk in steps:
            if not chunk:
                continue
            try:
                self.conn.sendall(chunk)
            except OSError as exc:
                raise ProtocolError(f"failed to write {what}: {exc}") from exc
            written += len(chunk)
        return written

    def close(self) -> None:
        """Close the underlying connection."""
        self.conn.close()