"""Thread-safe table of files the server currently holds open."""

from __future__ import annotations

import os
import threading
import time
from dataclasses import dataclass, field
from typing import Iterator


@dataclass
class OpenFile:
    """An open file and the identifier handed to clients for it."""

    name: str
    fd: int
    fid: int
    last_activity: float = field(default_factory=time.time)

    def touch(self, now: float | None = None) -> None:
        """Record activity on the file."""
        self.last_activity = time.time() if now is None else now


class FileTable:
    """Open files, most recently added first."""

    def __init__(self) -> None:
        self._entries: list[OpenFile] = []
        self._lock = threading.RLock()

    def add(self, name: str, fd: int, fid: int) -> OpenFile:
        """Register an open file and return its entry."""
        entry = OpenFile(name, fd, fid)
        with self._lock:
            self._entries.insert(0, entry)
        return entry

    def remove(self, name: str) -> OpenFile:
        """Drop the newest entry for ``name``; raise KeyError if there is none."""
        with self._lock:
            for index, entry in enumerate(self._entries):
                if entry.name == name:
                    return self._entries.pop(index)
        raise KeyError(name)

    def find_by_name(self, name: str) -> OpenFile | None:
        """Return the newest entry for ``name``, or None."""
        with self._lock:
            return next((e for e in self._entries if e.name == name), None)

    def find_by_fid(self, fid: int) -> OpenFile | None:
        """Return the newest entry with identifier ``fid``, or None."""
        with self._lock:
            return next((e for e in self._entries if e.fid == fid), None)

    def expire(self, max_age: float, now: float | None = None) -> list[OpenFile]:
        """Remove and return entries idle for longer than ``max_age`` seconds."""
        current = time.time() if now is None else now
        with self._lock:
            stale = [e for e in self._entries if current - e.last_activity > max_age]
            self._entries = [e for e in self._entries if current - e.last_activity <= max_age]
        return stale

    def close_all(self) -> None:
        """Close every file descriptor and empty the table."""
        with self._lock:
            entries, self._entries = self._entries, []
        for entry in entries:
            try:
                os.close(entry.fd)
            except OSError:
                pass

    def describe(self) -> str:
        """One line per entry, newest first."""
        with self._lock:
            return "\n".join(
                f"File name: {e.name}, fd: {e.fd}, fid: {e.fid}" for e in self._entries
            )

    def __len__(self) -> int:
        with self._lock:
            return len(self._entries)

    def __iter__(self) -> Iterator[OpenFile]:
        with self._lock:
            snapshot = list(self._entries)
        return iter(snapshot)