# tests/unit/ledger/test_ledger_factory.py
"""Tests for ledger/ledger_factory.py."""

from __future__ import annotations

from storyloom.config.settings import Settings
from storyloom.ledger.ledger_factory import create_ledger
from storyloom.ledger.memory_ledger import MemoryStepLedger
from storyloom.ledger.sqlite_ledger import SqliteStepLedger


class TestCreateLedger:
    def test_default_is_memory(self):
        assert isinstance(create_ledger(), MemoryStepLedger)

    def test_memory(self):
        settings = Settings(_env_file=None, ledger_backend="memory")
        assert isinstance(create_ledger(settings), MemoryStepLedger)

    def test_sqlite(self, tmp_path):
        settings = Settings(
            _env_file=None, ledger_backend="sqlite", ledger_sqlite_path=tmp_path / "l.db"
        )
        ledger = create_ledger(settings)
        assert isinstance(ledger, SqliteStepLedger)
        ledger.close()
        assert (tmp_path / "l.db").exists()
