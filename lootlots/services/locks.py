"""Process-local exclusive locks keyed by resource name."""
from __future__ import annotations

import threading
from typing import Dict, Hashable


class LockTable:
    """Hands out one re-entrant lock per key, created on first use."""

    def __init__(self):
        self._guard = threading.Lock()
        self._locks: Dict[Hashable, threading.RLock] = {}

    def lock_for(self, key: Hashable) -> threading.RLock:
        with self._guard:
            lock = self._locks.get(key)
            if lock is None:
                lock = self._locks[key] = threading.RLock()
            return lock

    def option(self, option_id: int) -> threading.RLock:
        return self.lock_for(("option", option_id))

    def bindings(self) -> threading.RLock:
        # one lock for every first-time class binding; no ordering between classes
        return self.lock_for("class-bindings")
