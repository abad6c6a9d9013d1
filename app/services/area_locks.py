"""
Per-area mutual exclusion.

Every orchestrator transition holds the lock for its area for the whole
read-compute-write sequence, so two edits to the same area never interleave.
Different areas never contend. Entries are dropped once no thread holds or
waits for them.
"""
from __future__ import annotations

import threading
from contextlib import contextmanager
from typing import Iterator


class AreaLockRegistry:

    def __init__(self) -> None:
        self._guard = threading.Lock()
        self._locks: dict[str, threading.Lock] = {}
        self._users: dict[str, int] = {}

    @contextmanager
    def hold(self, area_id: str) -> Iterator[None]:
        with self._guard:
            lock = self._locks.setdefault(area_id, threading.Lock())
            self._users[area_id] = self._users.get(area_id, 0) + 1
        try:
            with lock:
                yield
        finally:
            with self._guard:
                self._users[area_id] -= 1
                if self._users[area_id] == 0:
                    del self._users[area_id]
                    del self._locks[area_id]

    def __len__(self) -> int:
        with self._guard:
            return len(self._locks)


_registry = AreaLockRegistry()


def get_area_locks() -> AreaLockRegistry:
    return _registry
