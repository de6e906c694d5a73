"""UDP file server that opens, reads, writes and truncates files under a base directory."""

from __future__ import annotations

import ipaddress
import logging
import os
import socket
import struct
import threading

from .filetable import FileTable, OpenFile
from .protocol import DATAGRAM_SIZE, Message, MsgType, ProtocolError

DEFAULT_HOST = "127.0.0.1"
DEFAULT_RN_FILE = "rn.txt"
GC_INTERVAL = 30
FRESHNESS = 60

_RN = struct.Struct("=i")
_POLL = 0.2

log = logging.getLogger(__name__)


def load_restart_number(path: str | os.PathLike) -> int:
    """Return this run's restart number and store it in ``path``.

    A new file starts the count at 0; an existing one holds the previous
    number, which is incremented and written back.
    """
    path = os.fspath(path)
    try:
        fd = os.open(path, os.O_RDWR | os.O_CREAT | os.O_EXCL, 0o644)
    except FileExistsError:
        fd = os.open(path, os.O_RDWR)
        try:
            raw = os.read(fd, _RN.size)
            rn = _RN.unpack(raw)[0] + 1 if len(raw) == _RN.size else 0
            os.lseek(fd, 0, os.SEEK_SET)
            os.ftruncate(fd, _RN.size)
            os.write(fd, _RN.pack(rn))
        finally:
            os.close(fd)
    else:
        rn = 0
        try:
            os.write(fd, _RN.pack(rn))
        finally:
            os.close(fd)
    log.info("rn:%d", rn)
    return rn


def _bindable(address: str) -> bool:
    try:
        with socket.socket(socket.AF_INET, socket.SOCK_DGRAM) as probe:
            probe.bind((address, 0))
    except OSError:
        return False
    return True


def find_interface_address() -> str | None:
    """Return an IPv4 address of a non-loopback local interface, or None."""
    candidates: list[str] = []
    try:
        with socket.socket(socket.AF_INET, socket.SOCK_DGRAM) as probe:
            # Connecting a datagram socket sends nothing; it only picks a route.
            probe.connect(("10.255.255.255", 1))
            candidates.append(probe.getsockname()[0])
    except OSError:
        pass
    try:
        infos = socket.getaddrinfo(socket.gethostname(), None, socket.AF_INET)
        candidates.extend(info[4][0] for info in infos)
    except OSError:
        pass
    for candidate in candidates:
        address = ipaddress.ip_address(candidate)
        if address.is_loopback or address.is_unspecified:
            continue
        if _bindable(candidate):
            return candidate
    return None


class FileServer:
    """Serves file requests arriving as datagrams on one UDP socket."""

    def __init__(
        self,
        base_dir: str | os.PathLike,
        host: str | None = None,
        port: int = 0,
        rn_path: str | os.PathLike = DEFAULT_RN_FILE,
    ) -> None:
        self.base_dir = os.fspath(base_dir)
        if host is None:
            host = find_interface_address()
            if host is None:
                log.warning("No suitable network interface found")
                host = DEFAULT_HOST
        self.host = host
        self.port = port
        try:
            os.mkdir(self.base_dir, 0o777)
        except FileExistsError:
            pass
        self.rn = load_restart_number(rn_path)
        self.files = FileTable()
        self._next_fid = 0
        self._lock = threading.RLock()
        self._stop = threading.Event()
        self._sock: socket.socket | None = None
        self._threads: list[threading.Thread] = []

    @property
    def address(self) -> tuple[str, int]:
        """The host and port the server listens on."""
        return self.host, self.port

    def _path(self, name: str) -> str:
        return f"{self.base_dir}/{name}"

    def _open_fd(self, name: str) -> int:
        return os.open(self._path(name), os.O_RDWR | os.O_CREAT, 0o644)

    def _reply(
        self, request: Message, kind: MsgType, fid: int, size: int, payload: bytes | None
    ) -> Message:
        return Message(
            kind, request.name, fid, request.pos, size, request.seqno, self.rn, payload
        )

    def reopen(self, name: str, fid: int) -> OpenFile:
        """Open ``name`` again and register it under the client's ``fid``."""
        with self._lock:
            fd = self._open_fd(name)
            entry = self.files.add(name, fd, fid)
            self._next_fid += 1
            return entry

    def _entry_for(self, message: Message) -> OpenFile:
        entry = self.files.find_by_fid(message.fid)
        if entry is None:
            entry = self.reopen(message.name, message.fid)
        entry.touch()
        return entry

    def handle(self, message: Message) -> Message | None:
        """Carry out one request and return the reply, or None when none is sent.

        Raises OSError when a file cannot be reopened or positioned.
        """
        if message.name is None:
            log.warning("%s: file name is missing", message.type.name)
            return None
        with self._lock:
            if message.type is MsgType.OPEN:
                return self._do_open(message)
            if message.type is MsgType.READ:
                return self._do_read(message)
            if message.type is MsgType.WRITE:
                return self._do_write(message)
            if message.type is MsgType.TRUNC:
                return self._do_truncate(message)
        log.warning("ignoring %s message", message.type.name)
        return None

    def _do_open(self, message: Message) -> Message | None:
        log.info("got open for %s", message.name)
        entry = self.files.find_by_fid(message.fid)
        if entry is None:
            log.info("file info not exists try to create")
            try:
                fd = self._open_fd(message.name)
            except OSError as exc:
                log.error("open %s: %s", self._path(message.name), exc)
                return None
            entry = self.files.add(message.name, fd, self._next_fid)
            self._next_fid += 1
        entry.touch()
        payload = message.payload if message.size >= 0 else None
        return self._reply(message, MsgType.OPEN_REP, entry.fid, message.size, payload)

    def _do_read(self, message: Message) -> Message:
        log.info("got read for %s", message.name)
        entry = self._entry_for(message)
        wanted = max(message.size, 0)
        os.lseek(entry.fd, message.pos, os.SEEK_SET)
        chunks: list[bytes] = []
        count = 0
        while count < wanted:
            try:
                chunk = os.read(entry.fd, wanted - count)
            except OSError as exc:
                log.error("read: %s", exc)
                break
            if not chunk:
                log.info("reached eof")
                break
            chunks.append(chunk)
            count += len(chunk)
        data = b"".join(chunks)
        return self._reply(message, MsgType.READ_DONE, entry.fid, len(data), data)

    def _do_write(self, message: Message) -> Message:
        log.info("got write")
        entry = self._entry_for(message)
        data = memoryview((message.payload or b"")[: max(message.size, 0)])
        os.lseek(entry.fd, message.pos, os.SEEK_SET)
        count = 0
        while count < len(data):
            try:
                written = os.write(entry.fd, data[count:])
            except OSError as exc:
                log.error("write: %s", exc)
                break
            if written == 0:
                break
            count += written
        return self._reply(message, MsgType.WRITE_DONE, entry.fid, count, message.payload)

    def _do_truncate(self, message: Message) -> Message | None:
        if message.fid < 0:
            log.warning("truncate: invalid fid %d", message.fid)
            return None
        log.info("got truncate")
        entry = self._entry_for(message)
        try:
            os.ftruncate(entry.fd, message.size)
        except OSError as exc:
            log.error("truncate %s: %s", message.name, exc)
        payload = b"" if message.size >= 0 else None
        return self._reply(message, MsgType.TRUNC_DONE, entry.fid, message.size, payload)

    def handle_datagram(self, data: bytes) -> bytes | None:
        """Decode a datagram, handle it, and return the reply datagram or None."""
        try:
            message = Message.decode(data)
        except ProtocolError as exc:
            log.warning("bad datagram: %s", exc)
            return None
        try:
            reply = self.handle(message)
            if reply is None:
                return None
            raw = reply.encode()
        except (OSError, ProtocolError) as exc:
            log.error("%s for %s failed: %s", message.type.name, message.name, exc)
            return None
        return raw.ljust(DATAGRAM_SIZE, b"\0")

    def collect_garbage(self, now: float | None = None) -> list[OpenFile]:
        """Close and drop files idle for longer than the freshness limit."""
        with self._lock:
            stale = self.files.expire(FRESHNESS, now)
            for entry in stale:
                try:
                    os.close(entry.fd)
                except OSError:
                    pass
        log.info("garbage collection removed %d file(s)", len(stale))
        description = self.files.describe()
        if description:
            log.info("%s", description)
        return stale

    def start(self) -> None:
        """Bind the socket and start the receiver and garbage-collector threads."""
        if self._sock is not None:
            raise RuntimeError("server already started")
        sock = socket.socket(socket.AF_INET, socket.SOCK_DGRAM)
        try:
            sock.setsockopt(socket.SOL_SOCKET, socket.SO_REUSEADDR, 1)
            if hasattr(socket, "SO_REUSEPORT"):
                try:
                    sock.setsockopt(socket.SOL_SOCKET, socket.SO_REUSEPORT, 1)
                except OSError:
                    pass
            sock.bind((self.host, self.port))
        except OSError:
            sock.close()
            raise
        sock.settimeout(_POLL)
        self._sock = sock
        self.port = sock.getsockname()[1]
        self._stop.clear()
        log.info("IP address: %s, PORT: %d", self.host, self.port)
        self._threads = [
            threading.Thread(target=self._receive_loop, args=(sock,), daemon=True),
            threading.Thread(target=self._gc_loop, daemon=True),
        ]
        for thread in self._threads:
            thread.start()

    def stop(self) -> None:
        """Stop the threads, close the socket and every open file."""
        self._stop.set()
        for thread in self._threads:
            if thread is not threading.current_thread():
                thread.join()
        self._threads = []
        if self._sock is not None:
            self._sock.close()
            self._sock = None
        self.files.close_all()

    def serve_forever(self) -> None:
        """Start the server and block until it is stopped."""
        self.start()
        try:
            while not self._stop.wait(_POLL):
                pass
        finally:
            self.stop()

    def _receive_loop(self, sock: socket.socket) -> None:
        while not self._stop.is_set():
            try:
                data, client = sock.recvfrom(DATAGRAM_SIZE)
            except socket.timeout:
                continue
            except OSError as exc:
                if not self._stop.is_set():
                    log.error("recvfrom: %s", exc)
                break
            if not data:
                continue
            reply = self.handle_datagram(data)
            if reply is None:
                continue
            try:
                sock.sendto(reply, client)
            except OSError as exc:
                log.error("sendto %s:%d: %s", client[0], client[1], exc)

    def _gc_loop(self) -> None:
        while not self._stop.wait(GC_INTERVAL):
            log.info("garbage collection started")
            self.collect_garbage()