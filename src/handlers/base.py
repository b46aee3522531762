# src/handlers/base.py
"""Shared lifecycle for step handlers.

Every handler follows the same shape:

1. ``prepare`` validates the request and loads inputs (no writes; input
   errors surface as StepInputError and leave the run untouched).
2. The run is marked ``running`` with ``current_step`` set and the step is
   recorded as ``running``.
3. ``generate`` calls the external collaborators and returns the detail.
4. The step is stored ``completed`` and ``after_store`` runs.
5. Story progress is recomputed best-effort.

A failure in 3 or 4 records the step as ``failed``, fails the run with
the error message, and re-raises.
"""

from __future__ import annotations

import logging
from abc import ABC, abstractmethod
from dataclasses import dataclass
from typing import Any, Generic, TypeVar

from storyloom.core.models import RunStatus, StepStatus
from storyloom.core.step_names import StepName
from storyloom.handlers.models import StepRequest, StepResult
from storyloom.ledger.base_ledger import BaseStepLedger
from storyloom.logging.context import set_run_context, set_step_context
from storyloom.progress.estimator import ProgressEstimator

logger = logging.getLogger(__name__)

RequestT = TypeVar("RequestT", bound=StepRequest)


@dataclass
class PreparedStep:
    """Output of ``prepare``: the resolved step plus whatever inputs it loaded."""

    step: StepName
    inputs: Any = None
    context_id: str | None = None


class BaseStepHandler(ABC, Generic[RequestT]):
    """Template for one pipeline step."""

    def __init__(self, ledger: BaseStepLedger, progress: ProgressEstimator) -> None:
        self._ledger = ledger
        self._progress = progress

    @abstractmethod
    async def prepare(self, request: RequestT) -> PreparedStep:
        """Validate the request and load step inputs."""

    @abstractmethod
    async def generate(self, request: RequestT, prepared: PreparedStep) -> dict[str, Any]:
        """Produce the step detail to store."""

    async def after_store(
        self, request: RequestT, prepared: PreparedStep, detail: dict[str, Any]
    ) -> None:
        """Hook run after the step is stored as completed."""

    async def execute(self, request: RequestT) -> StepResult:
        set_run_context(request.story_id, request.run_id)
        await self._ledger.get_run(request.run_id)

        prepared = await self.prepare(request)
        step_name = str(prepared.step)
        set_step_context(step_name)

        await self._ledger.update_run(
            request.run_id, status=RunStatus.RUNNING, current_step=step_name
        )
        await self._ledger.store_step_result(request.run_id, step_name, StepStatus.RUNNING)
        logger.info("Step %s started", step_name)

        try:
            detail = await self.generate(request, prepared)
            await self._ledger.store_step_result(
                request.run_id, step_name, StepStatus.COMPLETED, detail
            )
            await self.after_store(request, prepared, detail)
        except Exception as e:
            await self._record_failure(request.run_id, step_name, e)
            raise

        logger.info("Step %s completed", step_name)
        await self._refresh_progress(request.run_id)
        return StepResult(
            story_id=request.story_id,
            run_id=request.run_id,
            step_name=step_name,
            detail=detail,
            context_id=prepared.context_id,
        )

    async def _record_failure(self, run_id: str, step_name: str, error: Exception) -> None:
        message = str(error) or type(error).__name__
        logger.error("Step %s failed: %s", step_name, message)
        try:
            await self._ledger.store_step_result(
                run_id, step_name, StepStatus.FAILED,
                {"error": message, "error_type": type(error).__name__},
            )
            await self._ledger.update_run(
                run_id, status=RunStatus.FAILED, error_message=message
            )
        except Exception:
            logger.exception("Could not record failure of step %s", step_name)

    async def _refresh_progress(self, run_id: str) -> None:
        try:
            await self._progress.update_story_progress(run_id)
        except Exception as e:
            logger.warning("Progress update failed for run %s (non-fatal): %s", run_id, e)
