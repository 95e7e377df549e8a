"""Client-side connection to the waymux daemon."""

from __future__ import annotations

import os
import socket

from waymux.daemon import LOCK_FILE, SOCKET_PATH
from waymux.protocol import MessageSocket


class DaemonNotRunningError(ConnectionError):
    """Raised when no waymux daemon lock file exists."""


def connect_to_socket(
    lock_file: str = LOCK_FILE, socket_path: str = SOCKET_PATH
) -> MessageSocket:
    """Connect to a running daemon and return the message socket."""
    try:
        os.stat(lock_file)
    except FileNotFoundError as exc:
        raise DaemonNotRunningError("waymux is not running") from exc

    conn = socket.socket(socket.AF_UNIX, socket.SOCK_STREAM)
    try:
        conn.connect(socket_path)
    except OSError as exc:
        conn.close()
        raise ConnectionError(f"failed to connect to waymux socket: {exc}") from exc
    return MessageSocket(conn)