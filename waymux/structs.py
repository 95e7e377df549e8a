"""Payload structures carried inside waymux messages.

Integers are little-endian unsigned 64-bit values; strings are a length
prefix followed by the raw bytes.
"""

from __future__ import annotations

import io
import struct
from dataclasses import dataclass, field
from typing import BinaryIO

from waymux.protocol import U64SIZE, ProtocolError

_U64 = struct.Struct("<Q")
_ENCODING = "utf-8"
_ERRORS = "surrogateescape"


def _write(w: BinaryIO, data: bytes, what: str) -> int:
    try:
        w.write(data)
    except OSError as exc:
        raise ProtocolError(f"failed to write {what}: {exc}") from exc
    return len(data)


def _read_exact(r: BinaryIO, size: int, what: str) -> bytes:
    try:
        data = r.read(size)
    except OSError as exc:
        raise ProtocolError(f"failed to read {what}: {exc}") from exc
    data = data or b""
    if len(data) != size:
        raise ProtocolError(
            f"failed to read {what}: expected {size} bytes, got {len(data)}"
        )
    return data


def write_uint64(w: BinaryIO, v: int) -> int:
    """Write ``v`` as a little-endian uint64; return the bytes written."""
    if not 0 <= v < 1 << 64:
        raise ValueError(f"value does not fit in an unsigned 64-bit integer: {v}")
    return _write(w, _U64.pack(v), "uint64 content")


def read_uint64(r: BinaryIO) -> int:
    """Read a little-endian uint64."""
    (value,) = _U64.unpack(_read_exact(r, U64SIZE, "uint64 content"))
    return value


def write_string(w: BinaryIO, s: str) -> int:
    """Write a length-prefixed string; return the bytes written."""
    data = s.encode(_ENCODING, _ERRORS)
    written = write_uint64(w, len(data))
    return written + _write(w, data, "string content")


def read_string(r: BinaryIO) -> str:
    """Read a length-prefixed string."""
    try:
        size = read_uint64(r)
    except ProtocolError as exc:
        raise ProtocolError(f"failed to read string size: {exc}") from exc
    return _read_exact(r, size, "string content").decode(_ENCODING, _ERRORS)


def _read_field(reader, r: BinaryIO, what: str):
    try:
        return reader(r)
    except ProtocolError as exc:
        raise ProtocolError(f"failed to read {what}: {exc}") from exc


@dataclass
class HostCompositor:
    """The wayland session registered as host for waymux sessions."""

    xdg_runtime_dir: str
    wayland_display: str
    pid: int

    def write_to(self, w: BinaryIO) -> int:
        """Serialise to ``w``; return the bytes written."""
        return (
            write_string(w, self.xdg_runtime_dir)
            + write_string(w, self.wayland_display)
            + write_uint64(w, self.pid)
        )

    def to_bytes(self) -> bytes:
        buf = io.BytesIO()
        self.write_to(buf)
        return buf.getvalue()


def read_host_compositor(r: BinaryIO) -> HostCompositor:
    """Read a :class:`HostCompositor` from ``r``."""
    return HostCompositor(
        xdg_runtime_dir=_read_field(read_string, r, "xdg runtime directory"),
        wayland_display=_read_field(read_string, r, "wayland display"),
        pid=_read_field(read_uint64, r, "pid"),
    )


@dataclass
class SessionInit:
    """A request to start a compositor as another user."""

    username: str
    password: str = field(repr=False)
    compositor_path: str

    def write_to(self, w: BinaryIO) -> int:
        """Serialise to ``w``; return the bytes written."""
        return (
            write_string(w, self.username)
            + write_string(w, self.password)
            + write_string(w, self.compositor_path)
        )

    def to_bytes(self) -> bytes:
        buf = io.BytesIO()
        self.write_to(buf)
        return buf.getvalue()


def read_session_init(r: BinaryIO) -> SessionInit:
    """Read a :class:`SessionInit` from ``r``."""
    return SessionInit(
        username=_read_field(read_string, r, "username"),
        password=_read_field(read_string, r, "password"),
        compositor_path=_read_field(read_string, r, "compositor path"),
    )