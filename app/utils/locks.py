import threading
from contextlib import contextmanager
from typing import Dict, Hashable


class KeyedLock:
    """
    One threading.Lock per key, created on demand.

    Used to serialise read-modify-write on a single mistake, concept-stat or
    session row inside this process. Row locks (SELECT ... FOR UPDATE) cover
    writers in other processes.
    """

    def __init__(self):
        self._guard = threading.Lock()
        self._locks: Dict[Hashable, threading.Lock] = {}
        self._holders: Dict[Hashable, int] = {}

    @contextmanager
    def hold(self, key: Hashable):
        with self._guard:
            lock = self._locks.get(key)
            if lock is None:
                lock = self._locks[key] = threading.Lock()
            self._holders[key] = self._holders.get(key, 0) + 1
        lock.acquire()
        try:
            yield
        finally:
            lock.release()
            with self._guard:
                self._holders[key] -= 1
                if self._holders[key] == 0:
                    # nobody waiting, forget the key
                    del self._holders[key]
                    del self._locks[key]

    def __len__(self) -> int:
        with self._guard:
            return len(self._locks)


# Process-wide registry shared by all services
row_locks = KeyedLock()
