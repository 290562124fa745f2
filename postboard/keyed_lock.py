"""Reader-writer locks and a registry that hands out one lock per key."""

from __future__ import annotations

import threading
from contextlib import contextmanager
from typing import Dict, Iterator


class RWLock:
    """A reader-writer lock; waiting writers keep new readers out."""

    def __init__(self) -> None:
        self._cond = threading.Condition(threading.Lock())
        self._readers = 0
        self._writer = False
        self._waiting_writers = 0

    def acquire_read(self) -> None:
        with self._cond:
            while self._writer or self._waiting_writers:
                self._cond.wait()
            self._readers += 1

    def release_read(self) -> None:
        with self._cond:
            if self._readers == 0:
                raise RuntimeError("release_read called without a held read lock")
            self._readers -= 1
            if self._readers == 0:
                self._cond.notify_all()

    def acquire_write(self) -> None:
        with self._cond:
            self._waiting_writers += 1
            try:
                while self._writer or self._readers:
                    self._cond.wait()
            finally:
                self._waiting_writers -= 1
            self._writer = True

    def release_write(self) -> None:
        with self._cond:
            if not self._writer:
                raise RuntimeError("release_write called without a held write lock")
            self._writer = False
            self._cond.notify_all()

    @contextmanager
    def read_locked(self) -> Iterator["RWLock"]:
        self.acquire_read()
        try:
            yield self
        finally:
            self.release_read()

    @contextmanager
    def write_locked(self) -> Iterator["RWLock"]:
        self.acquire_write()
        try:
            yield self
        finally:
            self.release_write()


class KeyedLock:
    """Hands out the same RWLock for the same key, creating it on first use."""

    def __init__(self) -> None:
        self._locks: Dict[str, RWLock] = {}
        self._guard = threading.Lock()

    def get(self, key: str) -> RWLock:
        with self._guard:
            lock = self._locks.get(key)
            if lock is None:
                lock = self._locks[key] = RWLock()
            return lock