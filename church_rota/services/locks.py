"""Per-target commit locks."""

from __future__ import annotations

import threading
from contextlib import contextmanager
from datetime import date
from typing import Dict, Hashable, Tuple

from church_rota.errors import SchedulingTimeoutError


class CommitLockTable:
    """
    Exclusive locks keyed by (activity_type_id, date).

    Drafting never takes these; writes to stored programs do, so two writers
    for the same target are serialized while unrelated targets proceed.
    """

    def __init__(self, timeout: float = 5.0):
        self.timeout = timeout
        self._guard = threading.Lock()
        self._locks: Dict[Hashable, threading.Lock] = {}

    def _lock_for(self, key: Hashable) -> threading.Lock:
        with self._guard:
            lock = self._locks.get(key)
            if lock is None:
                lock = threading.Lock()
                self._locks[key] = lock
            return lock

    @contextmanager
    def hold(self, activity_type_id: int, target_date: date, timeout: float | None = None):
        key: Tuple[int, date] = (activity_type_id, target_date)
        wait = self.timeout if timeout is None else timeout
        lock = self._lock_for(key)
        if not lock.acquire(timeout=wait):
            raise SchedulingTimeoutError(
                f"Timed out after {wait}s waiting to commit activity {activity_type_id} on {target_date}"
            )
        try:
            yield
        finally:
            lock.release()

    def __len__(self) -> int:
        with self._guard:
            return len(self._locks)
