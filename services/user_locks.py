"""Per-user mutual exclusion within one process."""

from __future__ import annotations

import threading
from contextlib import contextmanager


class UserLockRegistry:
    """Hands out one lock per user id.

    Entries are dropped once no thread holds or waits on them, so the
    registry does not grow with the number of users ever seen.
    """

    def __init__(self):
        self._guard = threading.Lock()
        self._locks: dict[int, threading.Lock] = {}
        self._users: dict[int, int] = {}

    @contextmanager
    def hold(self, user_id: int):
        key = int(user_id)
        with self._guard:
            lock = self._locks.get(key)
            if lock is None:
                lock = threading.Lock()
                self._locks[key] = lock
            self._users[key] = self._users.get(key, 0) + 1

        lock.acquire()
        try:
            yield
        finally:
            lock.release()
            with self._guard:
                remaining = self._users[key] - 1
                if remaining:
                    self._users[key] = remaining
                else:
                    del self._users[key]
                    del self._locks[key]

    def __len__(self):
        with self._guard:
            return len(self._locks)


default_registry = UserLockRegistry()
