"""The waymux daemon: accepts requests on a unix socket and starts sessions."""

from __future__ import annotations

import argparse
import io
import logging
import os
import shutil
import signal
import socket
import subprocess
import threading
from typing import Callable, Optional

from waymux.protocol import Message, MessageSocket, Opcode, ProtocolError
from waymux.structs import (
    HostCompositor,
    SessionInit,
    read_host_compositor,
    read_session_init,
)

LOCK_FILE = "/var/run/waymux.lock"
SOCKET_PATH = "/var/run/waymux.sock"

_SESSION_COMMAND = 'XDG_RUNTIME_DIR="$XDG_RUNTIME_DIR" $CMD'
_CHKPWD_PATHS = ("/usr/sbin/unix_chkpwd", "/sbin/unix_chkpwd")

log = logging.getLogger(__name__)

Authenticator = Callable[[str, str], None]
Launcher = Callable[[SessionInit, HostCompositor], "subprocess.Popen"]


class AlreadyRunningError(RuntimeError):
    """Raised when the lock file shows another daemon is running."""

    def __init__(self, message: str = "waymux is already running") -> None:
        super().__init__(message)


def _check_password(username: str, password: str) -> None:
    """Verify a user's password with the system's password helper.

    Raises :class:`PermissionError` when the password is rejected.
    """
    helper = shutil.which("unix_chkpwd") or next(
        (path for path in _CHKPWD_PATHS if os.path.exists(path)), None
    )
    if helper is None:
        raise FileNotFoundError("password helper unix_chkpwd not found")
    result = subprocess.run(
        [helper, username, "nonull"],
        input=password.encode("utf-8", "surrogateescape") + b"\0",
        stdout=subprocess.DEVNULL,
        stderr=subprocess.DEVNULL,
        check=False,
    )
    if result.returncode != 0:
        raise PermissionError("authentication failure")


def _launch_session(session: SessionInit, host: HostCompositor) -> subprocess.Popen:
    """Start the requested compositor as the session's user."""
    return subprocess.Popen(
        ["su", session.username, "-c", _SESSION_COMMAND],
        env={
            "XDG_RUNTIME_DIR": host.xdg_runtime_dir,
            "CMD": session.compositor_path,
        },
    )


def _watch(process) -> None:
    returncode = process.wait()
    if returncode:
        log.error("session terminated with exit status %s", returncode)


def _remove(path: str, what: str) -> None:
    try:
        os.remove(path)
    except OSError as exc:
        log.error("Failed to remove %s: %s", what, exc)


class Daemon:
    """Serves waymux requests arriving on a unix socket."""

    def __init__(
        self,
        lock_file: str = LOCK_FILE,
        socket_path: str = SOCKET_PATH,
        authenticator: Optional[Authenticator] = None,
        launcher: Optional[Launcher] = None,
    ) -> None:
        self.lock_file = lock_file
        self.socket_path = socket_path
        self.authenticator = authenticator or _check_password
        self.launcher = launcher or _launch_session
        self.host_compositor: Optional[HostCompositor] = None
        self._listener: Optional[socket.socket] = None
        self._thread: Optional[threading.Thread] = None
        self._stopping = threading.Event()

    def create_lock_file(self) -> None:
        """Create the lock file holding this process's pid."""
        try:
            fd = os.open(self.lock_file, os.O_WRONLY | os.O_CREAT | os.O_EXCL, 0o644)
        except FileExistsError as exc:
            raise AlreadyRunningError() from exc
        with os.fdopen(fd, "w") as handle:
            handle.write(str(os.getpid()))

    @staticmethod
    def _reply(sock: MessageSocket, opcode: Opcode, text: str = "") -> Opcode:
        sock.write_message(Message(opcode, text.encode("utf-8")))
        return opcode

    def accept(self, conn: socket.socket) -> Opcode:
        """Handle one request on ``conn`` and return the reply opcode sent.

        Raises when the request cannot be carried out and no reply was sent.
        """
        sock = MessageSocket(conn)
        message = sock.next()
        match message.opcode:
            case Opcode.REGISTER_HOST:
                self._register_host(message)
            case Opcode.STOP_HOST:
                if self.host_compositor is None:
                    return self._reply(sock, Opcode.ERROR)
                os.kill(self.host_compositor.pid, signal.SIGINT)
            case Opcode.START_SESSION:
                if self.host_compositor is None:
                    return self._reply(sock, Opcode.ERROR, "host not initialized")
                session = self._read_session(message)
                try:
                    self.authenticator(session.username, session.password)
                except PermissionError as exc:
                    return self._reply(
                        sock, Opcode.ERROR, f"authentication failed: {exc}"
                    )
                process = self.launcher(session, self.host_compositor)
                threading.Thread(target=_watch, args=(process,), daemon=True).start()
            case _:
                return self._reply(sock, Opcode.ERROR, "invalid opcode")
        return self._reply(sock, Opcode.SUCCESS)

    def _register_host(self, message: Message) -> None:
        try:
            self.host_compositor = read_host_compositor(io.BytesIO(message.data))
        except ProtocolError as exc:
            self.host_compositor = None
            raise ProtocolError(f"failed to read register host: {exc}") from exc
        os.chmod(self.host_compositor.xdg_runtime_dir, 0o777)
        os.chmod(self.host_compositor.wayland_display, 0o777)

    @staticmethod
    def _read_session(message: Message) -> SessionInit:
        try:
            return read_session_init(io.BytesIO(message.data))
        except ProtocolError as exc:
            raise ProtocolError(f"failed to read session init: {exc}") from exc

    def start_listener(self) -> None:
        """Bind the socket and serve it from a background thread."""
        try:
            os.remove(self.socket_path)
        except FileNotFoundError:
            pass
        listener = socket.socket(socket.AF_UNIX, socket.SOCK_STREAM)
        try:
            listener.bind(self.socket_path)
            listener.listen()
            os.chmod(self.socket_path, 0o777)
        except OSError:
            listener.close()
            raise
        self._listener = listener
        self._stopping.clear()
        self._thread = threading.Thread(target=self.serve_forever, daemon=True)
        self._thread.start()

    def serve_forever(self) -> None:
        """Accept and handle connections until :meth:`shutdown` is called."""
        listener = self._listener
        if listener is None:
            raise RuntimeError("listener not started")
        while not self._stopping.is_set():
            try:
                conn, _ = listener.accept()
            except OSError as exc:
                if self._stopping.is_set():
                    break
                log.error("Failed to accept connection: %s", exc)
                continue
            with conn:
                try:
                    self.accept(conn)
                except Exception as exc:  # a bad client must not stop the loop
                    log.error("Failed to process connection: %s", exc)

    def shutdown(self) -> None:
        """Stop listening and remove the lock file and socket."""
        self._stopping.set()
        listener, self._listener = self._listener, None
        if listener is not None:
            try:
                listener.shutdown(socket.SHUT_RDWR)
            except OSError:
                pass
            listener.close()
        _remove(self.lock_file, "lock file")
        _remove(self.socket_path, "socket")
        thread, self._thread = self._thread, None
        if thread is not None and thread is not threading.current_thread():
            thread.join(timeout=5)


def main(argv=None) -> int:
    parser = argparse.ArgumentParser(prog="waymux-daemon")
    parser.add_argument("--lock-file", default=LOCK_FILE)
    parser.add_argument("--socket", default=SOCKET_PATH)
    args = parser.parse_args(argv)

    logging.basicConfig(level=logging.INFO)
    log.info("Starting waymux-daemon...")
    daemon = Daemon(args.lock_file, args.socket)
    log.info("Creating lockfile...")
    try:
        daemon.create_lock_file()
    except (AlreadyRunningError, OSError) as exc:
        log.error("Failed to create lockfile: %s", exc)
        return 1

    def _stop(signum, frame):
        daemon.shutdown()
        raise SystemExit(1)

    signal.signal(signal.SIGINT, _stop)
    signal.signal(signal.SIGTERM, _stop)

    log.info("Starting listener...")
    try:
        daemon.start_listener()
    except OSError as exc:
        log.error("Failed to start listener: %s", exc)
        daemon.shutdown()
        return 1
    log.info("Listening at %s", args.socket)
    while True:
        signal.pause()