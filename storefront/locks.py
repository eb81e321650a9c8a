"""Per-key lock registry.

Stock counters, carts and orders are each guarded by a lock scoped to a
single entity (product id, user id, order id) so unrelated entities never
contend with each other. The registry's own guard is only held while looking
up or creating a lock, never while the entity lock is held.
"""

import threading
from contextlib import contextmanager
from typing import Dict, Hashable, Iterator


class KeyedLocks:
    """Lazily created ``threading.Lock`` per key.

    Args:
        name: Label used in ``repr`` (e.g. "stock", "cart").
    """

    def __init__(self, name: str):
        self.name = name
        self._guard = threading.Lock()
        self._locks: Dict[Hashable, threading.Lock] = {}

    def get(self, key: Hashable) -> threading.Lock:
        """Return the lock for ``key``, creating it on first use."""
        with self._guard:
            lock = self._locks.get(key)
            if lock is None:
                lock = self._locks[key] = threading.Lock()
            return lock

    @contextmanager
    def hold(self, key: Hashable) -> Iterator[None]:
        """Hold the lock for ``key`` for the duration of the block."""
        lock = self.get(key)
        with lock:
            yield

    def __len__(self) -> int:
        with self._guard:
            return len(self._locks)

    def __repr__(self) -> str:
        return f"KeyedLocks({self.name!r}, keys={len(self)})"
