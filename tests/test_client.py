import socket
import tempfile
from pathlib import Path

import pytest

from waymux.client import DaemonNotRunningError, connect_to_socket
from waymux.protocol import Message, MessageSocket, Opcode


@pytest.fixture
def short_dir():
    with tempfile.TemporaryDirectory(prefix="wm") as path:
        yield Path(path)


def test_missing_lock_file_means_not_running(short_dir):
    with pytest.raises(DaemonNotRunningError, match="waymux is not running"):
        connect_to_socket(str(short_dir / "lock"), str(short_dir / "sock"))


def test_missing_socket_is_connection_error(short_dir):
    lock = short_dir / "lock"
    lock.write_text("1")
    with pytest.raises(ConnectionError) as info:
        connect_to_socket(str(lock), str(short_dir / "sock"))
    assert not isinstance(info.value, DaemonNotRunningError)
    assert "failed to connect to waymux socket" in str(info.value)


def test_connects_and_exchanges_messages(short_dir):
    lock = short_dir / "lock"
    lock.write_text("1")
    sock_path = str(short_dir / "sock")
    server = socket.socket(socket.AF_UNIX, socket.SOCK_STREAM)
    server.bind(sock_path)
    server.listen()
    with server:
        with connect_to_socket(str(lock), sock_path) as client:
            conn, _ = server.accept()
            with MessageSocket(conn) as peer:
                client.write_message(Message(Opcode.WHO_AM_I, b"hello"))
                assert peer.next() == Message(Opcode.WHO_AM_I, b"hello")
                peer.write_message(Message(Opcode.SUCCESS))
                assert client.next() == Message(Opcode.SUCCESS, b"")