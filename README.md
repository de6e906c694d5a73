# udpfileserver

A small file server that answers requests sent as UDP datagrams. Clients
open, read, write and truncate files under one base directory on the server.

## Installing

```
pip install .
```

## Running the server

```
udpfileserver <PORT> <FS_PATH> [--duration SECONDS]
```

`PORT` is the UDP port to listen on. `FS_PATH` is the directory that holds
the served files. It is created if it does not exist. The server binds to a
non-loopback IPv4 address of the machine and falls back to `127.0.0.1` when
it finds none. It prints the address and port when it starts. It runs for
`--duration` seconds, 100000 by default, or until interrupted with Ctrl-C,
and then shuts down.

The server keeps a restart number in `rn.txt` in the working directory. The
first run writes 0. Each later run reads the stored number, adds one and
writes it back. The number is sent in every reply, so clients can tell when
the server has restarted.

## Protocol

Each datagram is one message. Every integer is a 32-bit big-endian signed
value. The fields come in this order:

1. the message type (`MsgType`): `OPEN`, `READ`, `WRITE`, `TRUNC`, and the
   replies `OPEN_REP`, `READ_DONE`, `WRITE_DONE`, `TRUNC_DONE`
2. the file name, as its length followed by its bytes
3. the file id, position, size, sequence number and restart number
4. the payload, as its length followed by its bytes

`udpfileserver.protocol.Message` holds one message. `Message.encode()` (or
`encode(message)`) writes the payload as exactly `size` bytes, cut or padded
with zero bytes, and writes a missing payload as an empty field.
`Message.decode(data)` (or `decode(data)`) parses a datagram and ignores any
bytes after the payload. Truncated data, an unknown message type, a negative
field length, or a value that does not fit in 32 bits raises `ProtocolError`.
Reply datagrams are padded with zero bytes to 4096 bytes.

## How requests are handled

- `OPEN`: if the file id is not in the table of open files, the file is
  opened, or created if it does not exist. It gets the next id from the
  server's counter. The reply `OPEN_REP` carries that id.
- `READ`: reads up to `size` bytes from `pos`. The reply `READ_DONE`
  carries the bytes read and their count as its size.
- `WRITE`: writes the first `size` bytes of the payload at `pos`. The reply
  `WRITE_DONE` carries the number of bytes written.
- `TRUNC`: truncates the file to `size` bytes. It is ignored when the file
  id is negative. The reply is `TRUNC_DONE`.

For `READ`, `WRITE` and `TRUNC`, a file id that is not in the table makes
the server reopen the file by name and register it under the client's id.
A request whose handling fails gets no reply.

## Using the server from Python

```python
from udpfileserver.server import FileServer

server = FileServer("./files", "127.0.0.1", 9000, "rn.txt")
server.start()
print(server.address)
...
server.stop()
```

Port 0 picks a free port. After `start()`, `server.address` shows which port
was chosen. `serve_forever()` starts the server and blocks until it is
stopped.

`FileServer.handle(message)` takes a request `Message` and returns the reply
`Message`, or `None`. `FileServer.handle_datagram(data)` does the same with
raw bytes. Both work without a socket, which is useful in tests or over
another transport.

While the server runs, a background thread calls `collect_garbage()` every
30 seconds. It closes and drops files that have been idle for more than
60 seconds.

The table of open files is `udpfileserver.filetable.FileTable`.
`load_restart_number(path)` and `find_interface_address()` in
`udpfileserver.server` are available on their own.

## What it does not do

- The package has no client. Requests are built with `Message` and sent
  over UDP by your own code.
- There is no authentication.
- File names are joined to the base directory as given, with no checks.
- There are no requests to close, delete or list files.

## Running the tests

```
pip install .[test]
pytest
```