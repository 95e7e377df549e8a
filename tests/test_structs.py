import io

import pytest

from waymux.protocol import U64SIZE, ProtocolError
from waymux.structs import (
    HostCompositor,
    SessionInit,
    read_host_compositor,
    read_session_init,
    read_string,
    read_uint64,
    write_string,
    write_uint64,
)


def test_write_uint64_is_little_endian():
    buf = io.BytesIO()
    assert write_uint64(buf, 1) == U64SIZE
    assert buf.getvalue() == b"\x01" + bytes(U64SIZE - 1)


@pytest.mark.parametrize("value", [0, 1, 255, 256, 1 << 32, (1 << 64) - 1])
def test_uint64_round_trip(value):
    buf = io.BytesIO()
    write_uint64(buf, value)
    buf.seek(0)
    assert read_uint64(buf) == value
    assert buf.read() == b""


@pytest.mark.parametrize("value", [-1, 1 << 64])
def test_write_uint64_rejects_out_of_range(value):
    with pytest.raises(ValueError):
        write_uint64(io.BytesIO(), value)


def test_read_uint64_short_input_raises():
    with pytest.raises(ProtocolError, match="expected 8 bytes, got 3"):
        read_uint64(io.BytesIO(b"\x01\x02\x03"))


@pytest.mark.parametrize("text", ["", "weston", "wayland-1", "héllo wörld ✓"])
def test_string_round_trip(text):
    buf = io.BytesIO()
    written = write_string(buf, text)
    raw = buf.getvalue()
    assert written == len(raw)
    assert int.from_bytes(raw[:U64SIZE], "little") == len(text.encode("utf-8"))
    buf.seek(0)
    assert read_string(buf) == text


def test_read_string_truncated_content_raises():
    buf = io.BytesIO()
    write_string(buf, "/run/user/1000")
    truncated = io.BytesIO(buf.getvalue()[:-2])
    with pytest.raises(ProtocolError, match="string content"):
        read_string(truncated)


def test_read_string_missing_size_raises():
    with pytest.raises(ProtocolError, match="string size"):
        read_string(io.BytesIO(b""))


def test_sequential_strings():
    buf = io.BytesIO()
    for text in ("a", "bc", ""):
        write_string(buf, text)
    buf.seek(0)
    assert [read_string(buf) for _ in range(3)] == ["a", "bc", ""]


def test_host_compositor_round_trip():
    host = HostCompositor("/run/user/1000", "/run/user/1000/wayland-1", 4242)
    buf = io.BytesIO()
    written = host.write_to(buf)
    assert written == len(buf.getvalue())
    buf.seek(0)
    assert read_host_compositor(buf) == host


def test_host_compositor_to_bytes_matches_write_to():
    host = HostCompositor("/tmp/xdg", "wayland-0", 7)
    buf = io.BytesIO()
    host.write_to(buf)
    assert host.to_bytes() == buf.getvalue()
    assert read_host_compositor(io.BytesIO(host.to_bytes())) == host


def test_host_compositor_pid_is_trailing_uint64():
    host = HostCompositor("x", "y", 99)
    raw = host.to_bytes()
    assert int.from_bytes(raw[-U64SIZE:], "little") == host.pid


def test_host_compositor_missing_pid_raises():
    raw = HostCompositor("/tmp/xdg", "wayland-0", 7).to_bytes()
    with pytest.raises(ProtocolError, match="pid"):
        read_host_compositor(io.BytesIO(raw[:-U64SIZE]))


def test_host_compositor_negative_pid_rejected():
    with pytest.raises(ValueError):
        HostCompositor("/tmp/xdg", "wayland-0", -1).to_bytes()


def test_session_init_round_trip():
    password = "password"
    init = SessionInit(username="alice", password=password, compositor_path="/usr/bin/weston")
    buf = io.BytesIO()
    written = init.write_to(buf)
    assert written == len(buf.getvalue())
    buf.seek(0)
    restored = read_session_init(buf)
    assert restored == init
    assert restored.password == password


def test_session_init_repr_hides_password():
    password = "secret"
    init = SessionInit(username="alice", password=password, compositor_path="/usr/bin/weston")
    text = repr(init)
    assert "alice" in text
    assert password not in text


def test_session_init_field_order():
    password = "password"
    raw = SessionInit(username="bob", password=password, compositor_path="/bin/sway").to_bytes()
    buf = io.BytesIO(raw)
    assert [read_string(buf) for _ in range(3)] == ["bob", password, "/bin/sway"]


def test_session_init_truncated_raises():
    password = "password"
    raw = SessionInit(username="bob", password=password, compositor_path="/bin/sway").to_bytes()
    with pytest.raises(ProtocolError, match="compositor path"):
        read_session_init(io.BytesIO(raw[:-3]))