# fieldops/locks.py

from contextlib import ExitStack, contextmanager
from threading import Lock
from typing import Dict, Hashable


class KeyedLock:
    """One mutex per key; holders of different keys never wait on each other."""

    def __init__(self):
        self._guard = Lock()
        self._locks: Dict[Hashable, Lock] = {}

    def _lock_for(self, key: Hashable) -> Lock:
        with self._guard:
            lock = self._locks.get(key)
            if lock is None:
                lock = self._locks[key] = Lock()
            return lock

    @contextmanager
    def hold(self, key: Hashable):
        lock = self._lock_for(key)
        with lock:
            yield

    @contextmanager
    def hold_many(self, *keys: Hashable):
        """Hold every distinct key, always acquired in sorted order."""
        with ExitStack() as stack:
            for key in sorted(set(keys)):
                stack.enter_context(self.hold(key))
            yield


# Guards check-then-write sequences per service person id
service_person_locks = KeyedLock()
