# src/ledger/sqlite_ledger.py
"""SQLite-backed Step Ledger (LEDGER_BACKEND=sqlite).

Uses stdlib sqlite3. Two tables: ``workflow_runs`` and ``workflow_steps``.
A partial unique index allows at most one queued/running run per story;
a losing concurrent insert re-reads the winner.
"""

from __future__ import annotations

import json
import logging
import sqlite3
from contextlib import contextmanager
from pathlib import Path
from typing import Any, Iterator

from storyloom.core.errors import NotFoundError, StoryloomError, TransientPersistenceError
from storyloom.core.models import (
    Run,
    RunStatus,
    Step,
    StepStatus,
    apply_run_update,
    apply_step_write,
    generate_run_id,
)
from storyloom.ledger.base_ledger import BaseStepLedger

logger = logging.getLogger(__name__)

_SCHEMA = """
CREATE TABLE IF NOT EXISTS workflow_runs (
    run_id TEXT PRIMARY KEY,
    story_id TEXT NOT NULL,
    status TEXT NOT NULL,
    current_step TEXT,
    error_message TEXT,
    metadata TEXT NOT NULL DEFAULT '{}',
    started_at TEXT,
    ended_at TEXT,
    created_at TEXT NOT NULL,
    updated_at TEXT NOT NULL
);
CREATE INDEX IF NOT EXISTS idx_runs_story ON workflow_runs(story_id);
CREATE UNIQUE INDEX IF NOT EXISTS ux_runs_active_story
    ON workflow_runs(story_id) WHERE status IN ('queued', 'running');

CREATE TABLE IF NOT EXISTS workflow_steps (
    run_id TEXT NOT NULL,
    step_name TEXT NOT NULL,
    status TEXT NOT NULL,
    detail TEXT,
    started_at TEXT,
    ended_at TEXT,
    created_at TEXT NOT NULL,
    updated_at TEXT NOT NULL,
    PRIMARY KEY (run_id, step_name)
);
"""

_RUN_COLUMNS = (
    "run_id, story_id, status, current_step, error_message, metadata, "
    "started_at, ended_at, created_at, updated_at"
)
_STEP_COLUMNS = (
    "run_id, step_name, status, detail, started_at, ended_at, created_at, updated_at"
)


def _iso(value: Any) -> str | None:
    return value.isoformat() if value is not None else None


class SqliteStepLedger(BaseStepLedger):
    """SQLite ledger; safe for one process with many coroutines."""

    def __init__(self, db_path: Path | str, timeout_s: float = 5.0) -> None:
        if str(db_path) == ":memory:":
            self._db_path = None
            target = ":memory:"
        else:
            self._db_path = Path(db_path).expanduser()
            self._db_path.parent.mkdir(parents=True, exist_ok=True)
            target = str(self._db_path)
        self._conn = sqlite3.connect(target, timeout=timeout_s)
        self._conn.row_factory = sqlite3.Row
        self._conn.execute("PRAGMA journal_mode=WAL")
        self._conn.executescript(_SCHEMA)

    @contextmanager
    def _guard(self) -> Iterator[None]:
        try:
            yield
        except sqlite3.OperationalError as e:
            raise TransientPersistenceError(f"sqlite ledger unavailable: {e}") from e

    # --- Runs ---

    async def create_or_get_run(
        self,
        story_id: str,
        run_id: str | None = None,
        metadata: dict[str, Any] | None = None,
    ) -> Run:
        with self._guard():
            if run_id is not None:
                existing = self._select_run(run_id)
                if existing is not None:
                    return existing

            active = self._select_active_run(story_id)
            if active is not None:
                if run_id is not None:
                    logger.warning(
                        "Story %s already has active run %s; ignoring requested id %s",
                        story_id, active.run_id, run_id,
                    )
                return active

            run = Run(
                run_id=run_id or generate_run_id(),
                story_id=story_id,
                metadata=dict(metadata or {}),
            )
            try:
                with self._conn:
                    self._insert_run(run)
            except sqlite3.IntegrityError:
                # Lost the race: another writer created the active run first
                winner = self._select_active_run(story_id)
                if winner is None and run_id is not None:
                    winner = self._select_run(run_id)
                if winner is None:
                    raise
                logger.info(
                    "Concurrent run creation for story %s resolved to %s",
                    story_id, winner.run_id,
                )
                return winner

            logger.info("Created run %s for story %s", run.run_id, story_id)
            return run

    async def update_run(
        self,
        run_id: str,
        *,
        status: RunStatus | None = None,
        current_step: str | None = None,
        error_message: str | None = None,
        metadata: dict[str, Any] | None = None,
    ) -> Run:
        with self._guard():
            run = self._select_run(run_id)
            if run is None:
                raise NotFoundError("run", run_id)
            updated = apply_run_update(
                run,
                status=status,
                current_step=current_step,
                error_message=error_message,
                metadata=metadata,
            )
            try:
                with self._conn:
                    self._conn.execute(
                        """UPDATE workflow_runs SET
                               status = ?, current_step = ?, error_message = ?,
                               metadata = ?, started_at = ?, ended_at = ?, updated_at = ?
                           WHERE run_id = ?""",
                        (
                            updated.status.value,
                            updated.current_step,
                            updated.error_message,
                            json.dumps(updated.metadata, default=str),
                            _iso(updated.started_at),
                            _iso(updated.ended_at),
                            _iso(updated.updated_at),
                            run_id,
                        ),
                    )
            except sqlite3.IntegrityError as e:
                raise StoryloomError(
                    f"Cannot reactivate run {run_id}: story {run.story_id} "
                    "already has an active run"
                ) from e
            return updated

    async def find_run(self, run_id: str) -> Run | None:
        with self._guard():
            return self._select_run(run_id)

    # --- Steps ---

    async def store_step_result(
        self,
        run_id: str,
        step_name: str,
        status: StepStatus,
        result: Any = None,
    ) -> None:
        with self._guard():
            with self._conn:
                existing = self._select_step(run_id, step_name)
                step = apply_step_write(existing, run_id, step_name, status, result)
                self._conn.execute(
                    f"INSERT OR REPLACE INTO workflow_steps ({_STEP_COLUMNS}) "
                    "VALUES (?, ?, ?, ?, ?, ?, ?, ?)",
                    (
                        step.run_id,
                        step.step_name,
                        step.status.value,
                        json.dumps(step.detail, default=str),
                        _iso(step.started_at),
                        _iso(step.ended_at),
                        _iso(step.created_at),
                        _iso(step.updated_at),
                    ),
                )

    async def get_run_steps(self, run_id: str) -> list[Step]:
        with self._guard():
            cursor = self._conn.execute(
                f"SELECT {_STEP_COLUMNS} FROM workflow_steps WHERE run_id = ? "
                "ORDER BY created_at, step_name",
                (run_id,),
            )
            return [self._row_to_step(row) for row in cursor.fetchall()]

    async def find_step(self, run_id: str, step_name: str) -> Step | None:
        with self._guard():
            return self._select_step(run_id, step_name)

    def close(self) -> None:
        """Close the database connection."""
        self._conn.close()

    # --- Row helpers ---

    def _insert_run(self, run: Run) -> None:
        self._conn.execute(
            f"INSERT INTO workflow_runs ({_RUN_COLUMNS}) "
            "VALUES (?, ?, ?, ?, ?, ?, ?, ?, ?, ?)",
            (
                run.run_id,
                run.story_id,
                run.status.value,
                run.current_step,
                run.error_message,
                json.dumps(run.metadata, default=str),
                _iso(run.started_at),
                _iso(run.ended_at),
                _iso(run.created_at),
                _iso(run.updated_at),
            ),
        )

    def _select_run(self, run_id: str) -> Run | None:
        row = self._conn.execute(
            f"SELECT {_RUN_COLUMNS} FROM workflow_runs WHERE run_id = ?", (run_id,)
        ).fetchone()
        return self._row_to_run(row) if row else None

    def _select_active_run(self, story_id: str) -> Run | None:
        row = self._conn.execute(
            f"SELECT {_RUN_COLUMNS} FROM workflow_runs "
            "WHERE story_id = ? AND status IN ('queued', 'running') "
            "ORDER BY created_at DESC LIMIT 1",
            (story_id,),
        ).fetchone()
        return self._row_to_run(row) if row else None

    def _select_step(self, run_id: str, step_name: str) -> Step | None:
        row = self._conn.execute(
            f"SELECT {_STEP_COLUMNS} FROM workflow_steps "
            "WHERE run_id = ? AND step_name = ?",
            (run_id, step_name),
        ).fetchone()
        return self._row_to_step(row) if row else None

    @staticmethod
    def _row_to_run(row: sqlite3.Row) -> Run:
        data = dict(row)
        data["metadata"] = json.loads(data["metadata"] or "{}")
        return Run(**data)

    @staticmethod
    def _row_to_step(row: sqlite3.Row) -> Step:
        data = dict(row)
        data["detail"] = json.loads(data["detail"]) if data["detail"] else None
        return Step(**data)
