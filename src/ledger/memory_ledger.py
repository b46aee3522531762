# src/ledger/memory_ledger.py
"""In-process Step Ledger (LEDGER_BACKEND=memory).

Intended for tests and single-process development. State is lost on exit.
"""

from __future__ import annotations

import asyncio
import logging
from typing import Any

from storyloom.core.errors import NotFoundError
from storyloom.core.models import (
    ACTIVE_RUN_STATUSES,
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


class MemoryStepLedger(BaseStepLedger):
    """Dict-backed ledger guarded by an asyncio lock."""

    def __init__(self) -> None:
        self._runs: dict[str, Run] = {}
        self._steps: dict[tuple[str, str], Step] = {}
        self._lock = asyncio.Lock()

    async def create_or_get_run(
        self,
        story_id: str,
        run_id: str | None = None,
        metadata: dict[str, Any] | None = None,
    ) -> Run:
        async with self._lock:
            if run_id is not None and run_id in self._runs:
                return self._runs[run_id].model_copy(deep=True)

            for run in self._runs.values():
                if run.story_id == story_id and run.status in ACTIVE_RUN_STATUSES:
                    if run_id is not None:
                        logger.warning(
                            "Story %s already has active run %s; ignoring requested id %s",
                            story_id, run.run_id, run_id,
                        )
                    return run.model_copy(deep=True)

            run = Run(
                run_id=run_id or generate_run_id(),
                story_id=story_id,
                metadata=dict(metadata or {}),
            )
            self._runs[run.run_id] = run
            logger.info("Created run %s for story %s", run.run_id, story_id)
            return run.model_copy(deep=True)

    async def update_run(
        self,
        run_id: str,
        *,
        status: RunStatus | None = None,
        current_step: str | None = None,
        error_message: str | None = None,
        metadata: dict[str, Any] | None = None,
    ) -> Run:
        async with self._lock:
            run = self._runs.get(run_id)
            if run is None:
                raise NotFoundError("run", run_id)
            updated = apply_run_update(
                run,
                status=status,
                current_step=current_step,
                error_message=error_message,
                metadata=metadata,
            )
            self._runs[run_id] = updated
            return updated.model_copy(deep=True)

    async def find_run(self, run_id: str) -> Run | None:
        run = self._runs.get(run_id)
        return run.model_copy(deep=True) if run else None

    async def store_step_result(
        self,
        run_id: str,
        step_name: str,
        status: StepStatus,
        result: Any = None,
    ) -> None:
        async with self._lock:
            key = (run_id, step_name)
            self._steps[key] = apply_step_write(
                self._steps.get(key), run_id, step_name, status, result
            )

    async def get_run_steps(self, run_id: str) -> list[Step]:
        steps = [s for (rid, _), s in self._steps.items() if rid == run_id]
        steps.sort(key=lambda s: (s.created_at, s.step_name))
        return [s.model_copy(deep=True) for s in steps]

    async def find_step(self, run_id: str, step_name: str) -> Step | None:
        step = self._steps.get((run_id, step_name))
        return step.model_copy(deep=True) if step else None
