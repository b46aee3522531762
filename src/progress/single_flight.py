# src/progress/single_flight.py
"""In-process single-flight guard keyed by run id.

Check-and-add happens without an intervening await, so on one event loop
at most one coroutine holds a key. Not shared across processes.
"""

from __future__ import annotations


class SingleFlightGuard:
    def __init__(self) -> None:
        self._active: set[str] = set()

    def try_acquire(self, key: str) -> bool:
        """Claim ``key``; False if another caller already holds it."""
        if key in self._active:
            return False
        self._active.add(key)
        return True

    def release(self, key: str) -> None:
        self._active.discard(key)

    def is_active(self, key: str) -> bool:
        return key in self._active
