# src/ledger/ledger_factory.py
"""Factory for Step Ledger instantiation."""

from __future__ import annotations

from storyloom.config.settings import Settings
from storyloom.ledger.base_ledger import BaseStepLedger


def create_ledger(settings: Settings | None = None) -> BaseStepLedger:
    """Instantiate the configured ledger backend.

    Args:
        settings: Application settings. Defaults to the in-memory backend.

    Returns:
        Configured BaseStepLedger implementation.
    """
    backend = "memory" if settings is None else settings.ledger_backend

    if backend == "memory":
        from storyloom.ledger.memory_ledger import MemoryStepLedger
        return MemoryStepLedger()

    if backend == "sqlite":
        from storyloom.ledger.sqlite_ledger import SqliteStepLedger
        return SqliteStepLedger(db_path=settings.ledger_sqlite_path)  # type: ignore[union-attr]

    raise ValueError(f"Unsupported ledger backend: {backend!r}")
