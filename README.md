# waymux

waymux starts Wayland compositor sessions for other users inside the
current (host) Wayland session. A privileged daemon listens on a Unix
socket. Clients tell it which session is the host, then ask it to start
compositors for users whose passwords check out.

## Running the daemon

The daemon must run as root. It writes under `/var/run`, checks passwords
and starts sessions as other users:

```
waymux-daemon
```

Options:

- `--lock-file PATH`: the lock file (default `/var/run/waymux.lock`)
- `--socket PATH`: the listening socket (default `/var/run/waymux.sock`)

On start it creates the lock file, which holds its process id. If the lock
file already exists, it logs an error and exits with status 1. It then
removes any stale socket, listens on the socket and makes it
world-writable (mode 0777). On SIGINT or SIGTERM it stops listening, removes
the lock file and the socket, and exits with status 1.

The daemon handles one request per connection and sends one reply:

- `Opcode.REGISTER_HOST`: the payload is a `HostCompositor`. The daemon
  stores it and sets its runtime directory and display socket to mode 0777.
- `Opcode.STOP_HOST`: sends SIGINT to the registered host's process. If no
  host is registered, it replies `Opcode.ERROR` with an empty payload.
- `Opcode.START_SESSION`: the payload is a `SessionInit`. If no host is
  registered, the reply is `Opcode.ERROR` with `host not initialized`. The
  password is checked with the system's `unix_chkpwd` helper. A rejected
  password gets `Opcode.ERROR` with `authentication failed: ...`. Otherwise
  the daemon runs
  `su <username> -c 'XDG_RUNTIME_DIR="$XDG_RUNTIME_DIR" $CMD'`, with
  `XDG_RUNTIME_DIR` set to the host's runtime directory and `CMD` set to the
  compositor path. A background thread logs a non-zero exit status.
- Any other opcode gets `Opcode.ERROR` with `invalid opcode`.

A request that succeeds gets `Opcode.SUCCESS` with an empty payload. If a
request fails in a way that has no error reply, such as a malformed payload
or a failing `chmod`, the daemon logs the failure and closes the connection
without replying.

`waymux.daemon.Daemon` can also be used from Python. Its constructor takes
`lock_file`, `socket_path`, and optional `authenticator` and `launcher`
callables that replace the password check and the session start. The
methods are `create_lock_file()`, `start_listener()`, `serve_forever()`,
`accept(conn)` and `shutdown()`.

## Wire protocol

Each message is one opcode byte, then a big-endian unsigned 64-bit payload
length, then the payload. `waymux.protocol` provides `Opcode`, `Message` and
`MessageSocket`. A `MessageSocket` reads and writes messages over any
connected socket. A short read or a failed write raises `ProtocolError`.

```python
from waymux.client import connect_to_socket
from waymux.protocol import Message, Opcode
from waymux.structs import HostCompositor, SessionInit

with connect_to_socket() as sock:
    host = HostCompositor(
        xdg_runtime_dir="/run/user/1000",
        wayland_display="/run/user/1000/wayland-0",
        pid=4242,
    )
    sock.write_message(Message(Opcode.REGISTER_HOST, host.to_bytes()))
    reply = sock.next()
    assert reply.opcode is Opcode.SUCCESS

password = "password"
with connect_to_socket() as sock:
    session = SessionInit(
        username="alice", password=password, compositor_path="weston"
    )
    sock.write_message(Message(Opcode.START_SESSION, session.to_bytes()))
    reply = sock.next()
    print(reply.opcode, reply.data.decode())
```

The payload structures are in `waymux.structs`. Integers are little-endian
unsigned 64-bit values. A string is a 64-bit length followed by its UTF-8
bytes. `write_uint64`, `read_uint64`, `write_string` and `read_string` work
on binary file objects. `read_host_compositor` and `read_session_init`
decode whole structures.

## Connecting from a client

`waymux.client.connect_to_socket(lock_file, socket_path)` connects to the
default paths unless other paths are given. It raises
`DaemonNotRunningError` when the lock file is missing, and
`ConnectionError` when the socket cannot be reached. Otherwise it returns a
connected `MessageSocket`.

## What it does not do

- There is no graphical front end and no client command. Requests are sent
  from Python through `connect_to_socket` and `MessageSocket`.
- `Opcode.STOP_SESSION`, `Opcode.STOP_ALL_SESSIONS`,
  `Opcode.LIST_SESSIONS` and `Opcode.WHO_AM_I` are defined, but the daemon
  answers them with `invalid opcode`. Started sessions are not tracked, so
  they cannot be listed or stopped through the daemon.

## Tests

```
pip install -e .[test]
pytest
```