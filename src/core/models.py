# src/core/models.py
"""Shared Pydantic domain models used across modules.

Runs and steps are owned by the ledger; story records by the story store.
No module redefines these types; all imports come from core.models.
"""

from __future__ import annotations

import uuid
from datetime import datetime, timezone
from enum import Enum
from typing import Any

from pydantic import BaseModel, Field


def utcnow() -> datetime:
    """Timezone-aware current UTC time."""
    return datetime.now(timezone.utc)


def generate_run_id() -> str:
    """Generate a run ID: yyyymmdd_hhmm_{5 hex}."""
    ts = utcnow().strftime("%Y%m%d_%H%M")
    return f"{ts}_{uuid.uuid4().hex[:5]}"


# === RUNS ===


class RunStatus(str, Enum):
    QUEUED = "queued"
    RUNNING = "running"
    FAILED = "failed"
    COMPLETED = "completed"
    CANCELLED = "cancelled"

    @property
    def is_terminal(self) -> bool:
        return self in _TERMINAL_RUN_STATUSES


_TERMINAL_RUN_STATUSES = frozenset(
    {RunStatus.COMPLETED, RunStatus.FAILED, RunStatus.CANCELLED}
)
ACTIVE_RUN_STATUSES: tuple[RunStatus, ...] = (RunStatus.QUEUED, RunStatus.RUNNING)


class Run(BaseModel):
    """One end-to-end generation attempt for a story."""

    run_id: str
    story_id: str
    status: RunStatus = RunStatus.QUEUED
    current_step: str | None = None
    error_message: str | None = None
    metadata: dict[str, Any] = Field(default_factory=dict)
    started_at: datetime | None = None
    ended_at: datetime | None = None
    created_at: datetime = Field(default_factory=utcnow)
    updated_at: datetime = Field(default_factory=utcnow)


# === STEPS ===


class StepStatus(str, Enum):
    PENDING = "pending"
    RUNNING = "running"
    FAILED = "failed"
    COMPLETED = "completed"


class Step(BaseModel):
    """Outcome of a named unit of work within a run, keyed by (run_id, step_name)."""

    run_id: str
    step_name: str
    status: StepStatus
    detail: Any = None
    started_at: datetime | None = None
    ended_at: datetime | None = None
    created_at: datetime = Field(default_factory=utcnow)
    updated_at: datetime = Field(default_factory=utcnow)


def apply_step_write(
    existing: Step | None,
    run_id: str,
    step_name: str,
    status: StepStatus,
    detail: Any,
) -> Step:
    """Build the step row resulting from an upsert.

    ``created_at`` and ``started_at`` survive a replay; ``running`` stamps
    ``started_at`` and ``completed``/``failed`` stamp ``ended_at``.
    """
    now = utcnow()
    step = Step(
        run_id=run_id,
        step_name=step_name,
        status=status,
        detail=detail,
        started_at=existing.started_at if existing else None,
        ended_at=existing.ended_at if existing else None,
        created_at=existing.created_at if existing else now,
        updated_at=now,
    )
    if status == StepStatus.RUNNING:
        step.started_at = now
        step.ended_at = None
    elif status in (StepStatus.COMPLETED, StepStatus.FAILED):
        step.ended_at = now
    return step


def apply_run_update(
    run: Run,
    *,
    status: RunStatus | None = None,
    current_step: str | None = None,
    error_message: str | None = None,
    metadata: dict[str, Any] | None = None,
) -> Run:
    """Return a copy of ``run`` with merge-semantics updates applied."""
    now = utcnow()
    updated = run.model_copy(deep=True)
    if status is not None:
        updated.status = status
        if status == RunStatus.RUNNING:
            if updated.started_at is None:
                updated.started_at = now
            updated.ended_at = None
        if status.is_terminal:
            updated.ended_at = now
        # A replayed or finished run no longer carries the earlier failure
        if status in (RunStatus.RUNNING, RunStatus.COMPLETED):
            updated.error_message = None
    if current_step is not None:
        updated.current_step = current_step
    if error_message is not None:
        updated.error_message = error_message
    if metadata:
        updated.metadata = {**updated.metadata, **metadata}
    updated.updated_at = now
    return updated


# === STORY RECORDS ===


class StoryRecord(BaseModel):
    """Minimal story row: read for chapter count, written for progress and covers."""

    story_id: str
    title: str = ""
    chapter_count: int | None = None
    completion_percentage: int = 0
    status: str = "draft"
    cover_uri: str | None = None
    back_cover_uri: str | None = None
    updated_at: datetime = Field(default_factory=utcnow)
