# src/handlers/inputs.py
"""Read earlier step results back out of the ledger."""

from __future__ import annotations

from typing import Any

from pydantic import ValidationError

from storyloom.core.errors import StepInputError
from storyloom.core.models import StepStatus
from storyloom.core.step_names import StepKind, StepName
from storyloom.handlers.models import Outline
from storyloom.ledger.base_ledger import BaseStepLedger


async def load_outline(ledger: BaseStepLedger, run_id: str) -> Outline:
    """The run's completed outline.

    Raises:
        StepInputError: If the outline step is missing, incomplete or unreadable.
    """
    step = await ledger.find_step(run_id, str(StepName.outline()))
    if step is None or step.status != StepStatus.COMPLETED:
        raise StepInputError(f"Run {run_id} has no completed outline")
    try:
        return Outline.model_validate(step.detail)
    except ValidationError as e:
        raise StepInputError(f"Stored outline for run {run_id} is invalid: {e}") from e


async def load_completed(
    ledger: BaseStepLedger, run_id: str, kind: StepKind
) -> dict[int, dict[str, Any]]:
    """Completed per-chapter step details of ``kind``, keyed by chapter number."""
    found: dict[int, dict[str, Any]] = {}
    for step in await ledger.get_run_steps(run_id):
        if step.status != StepStatus.COMPLETED:
            continue
        name = StepName.parse(step.step_name)
        if name is None or name.kind != kind or name.chapter is None:
            continue
        found[name.chapter] = step.detail if isinstance(step.detail, dict) else {}
    return dict(sorted(found.items()))


async def load_detail(ledger: BaseStepLedger, run_id: str, step: StepName) -> dict[str, Any] | None:
    """Detail of a completed single step, or None."""
    found = await ledger.find_step(run_id, str(step))
    if found is None or found.status != StepStatus.COMPLETED:
        return None
    return found.detail if isinstance(found.detail, dict) else None


def require_all_chapters(
    outline: Outline, chapters: dict[int, dict[str, Any]], run_id: str
) -> None:
    missing = [
        ch.chapter_number for ch in outline.chapters if ch.chapter_number not in chapters
    ]
    if missing:
        raise StepInputError(
            f"Run {run_id} is missing written chapters: {', '.join(map(str, missing))}"
        )
