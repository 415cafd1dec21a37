"""Locking primitives for shared install state.

RWLock guards the registry mappings (many readers, one writer).
NameLocks serializes install/uninstall work on the same package name
while letting different names proceed in parallel.
"""

import threading
from collections.abc import Iterator
from contextlib import contextmanager


class RWLock:
    """Writer-preferring reader/writer lock.

    New readers wait while a writer holds or is waiting for the lock, so a
    steady stream of readers cannot starve a writer.
    """

    def __init__(self) -> None:
        self._cond = threading.Condition(threading.Lock())
        self._readers = 0
        self._writer = False
        self._waiting_writers = 0

    @contextmanager
    def read(self) -> Iterator[None]:
        with self._cond:
            while self._writer or self._waiting_writers:
                self._cond.wait()
            self._readers += 1
        try:
            yield
        finally:
            with self._cond:
                self._readers -= 1
                if self._readers == 0:
                    self._cond.notify_all()

    @contextmanager
    def write(self) -> Iterator[None]:
        with self._cond:
            self._waiting_writers += 1
            try:
                while self._writer or self._readers:
                    self._cond.wait()
            finally:
                self._waiting_writers -= 1
            self._writer = True
        try:
            yield
        finally:
            with self._cond:
                self._writer = False
                self._cond.notify_all()


class NameLocks:
    """Per-name advisory locks.

    Locks are created on first use and kept for the process lifetime; the
    number of distinct package names touched by one process is small.
    """

    def __init__(self) -> None:
        self._locks: dict[str, threading.Lock] = {}
        self._lock = threading.Lock()

    def _get(self, name: str) -> threading.Lock:
        with self._lock:
            lock = self._locks.get(name)
            if lock is None:
                lock = threading.Lock()
                self._locks[name] = lock
            return lock

    @contextmanager
    def hold(self, name: str) -> Iterator[None]:
        """Hold the lock for ``name`` for the duration of the block."""
        lock = self._get(name)
        with lock:
            yield

    def is_held(self, name: str) -> bool:
        """Check whether some caller currently holds ``name``."""
        with self._lock:
            lock = self._locks.get(name)
        return lock is not None and lock.locked()
