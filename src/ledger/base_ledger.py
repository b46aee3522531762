# src/ledger/base_ledger.py
"""Abstract Step Ledger interface.

The ledger persists runs and their step results. It never retries: store
connectivity failures surface as TransientPersistenceError and the caller
decides.
"""

from __future__ import annotations

from abc import ABC, abstractmethod
from typing import Any

from storyloom.core.models import Run, RunStatus, Step, StepStatus


class BaseStepLedger(ABC):
    """Unified interface for run/step persistence backends."""

    @abstractmethod
    async def create_or_get_run(
        self,
        story_id: str,
        run_id: str | None = None,
        metadata: dict[str, Any] | None = None,
    ) -> Run:
        """Return the run with ``run_id`` or the story's active run, else create one.

        A new run starts ``queued``. Concurrent callers for the same story
        converge on a single active run.
        """

    @abstractmethod
    async def update_run(
        self,
        run_id: str,
        *,
        status: RunStatus | None = None,
        current_step: str | None = None,
        error_message: str | None = None,
        metadata: dict[str, Any] | None = None,
    ) -> Run:
        """Apply a partial update; raises NotFoundError for an unknown run."""

    @abstractmethod
    async def find_run(self, run_id: str) -> Run | None:
        """Return the run or None."""

    async def get_run(self, run_id: str) -> Run:
        """Return the run; raises NotFoundError when absent."""
        from storyloom.core.errors import NotFoundError

        run = await self.find_run(run_id)
        if run is None:
            raise NotFoundError("run", run_id)
        return run

    @abstractmethod
    async def store_step_result(
        self,
        run_id: str,
        step_name: str,
        status: StepStatus,
        result: Any = None,
    ) -> None:
        """Upsert the step keyed by (run_id, step_name)."""

    @abstractmethod
    async def get_run_steps(self, run_id: str) -> list[Step]:
        """All steps of a run, in creation order then name."""

    @abstractmethod
    async def find_step(self, run_id: str, step_name: str) -> Step | None:
        """Return a single step or None."""

    async def get_step_result(self, run_id: str, step_name: str) -> Step:
        """Return a single step; raises NotFoundError when absent."""
        from storyloom.core.errors import NotFoundError

        step = await self.find_step(run_id, step_name)
        if step is None:
            raise NotFoundError("step", f"{run_id}/{step_name}")
        return step

    def close(self) -> None:
        """Release backend resources."""
