# src/progress/chapter_cache.py
"""Per-run chapter count cache with TTL eviction."""

from __future__ import annotations

import time
from typing import Callable

DEFAULT_TTL_S = 300.0


class ChapterCountCache:
    """Maps run_id to a chapter count for ``ttl_s`` seconds.

    Expired entries are ignored on read and removed by ``purge_expired``,
    which every ``set`` also runs.
    """

    def __init__(
        self,
        ttl_s: float = DEFAULT_TTL_S,
        clock: Callable[[], float] = time.monotonic,
    ) -> None:
        self._ttl_s = ttl_s
        self._clock = clock
        self._entries: dict[str, tuple[int, float]] = {}

    def get(self, run_id: str) -> int | None:
        entry = self._entries.get(run_id)
        if entry is None:
            return None
        count, stored_at = entry
        if self._clock() - stored_at >= self._ttl_s:
            return None
        return count

    def set(self, run_id: str, count: int) -> None:
        self.purge_expired()
        self._entries[run_id] = (count, self._clock())

    def invalidate(self, run_id: str) -> None:
        self._entries.pop(run_id, None)

    def purge_expired(self) -> int:
        """Drop expired entries; returns how many were removed."""
        now = self._clock()
        expired = [
            run_id
            for run_id, (_, stored_at) in self._entries.items()
            if now - stored_at >= self._ttl_s
        ]
        for run_id in expired:
            del self._entries[run_id]
        return len(expired)

    def __len__(self) -> int:
        return len(self._entries)
