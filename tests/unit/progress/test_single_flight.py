# tests/unit/progress/test_single_flight.py
"""Tests for progress/single_flight.py."""

from __future__ import annotations

from storyloom.progress.single_flight import SingleFlightGuard


class TestSingleFlightGuard:
    def test_acquire_release(self):
        guard = SingleFlightGuard()
        assert guard.try_acquire("r1")
        assert not guard.try_acquire("r1")
        assert guard.try_acquire("r2")
        guard.release("r1")
        assert guard.try_acquire("r1")

    def test_release_unknown_is_noop(self):
        guard = SingleFlightGuard()
        guard.release("nope")
        assert not guard.is_active("nope")
