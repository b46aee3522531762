# src/progress/models.py
"""Progress estimation results."""

from __future__ import annotations

from pydantic import BaseModel, Field


class ProgressCalculation(BaseModel):
    """Snapshot of a run's estimated progress."""

    completed_percentage: int
    total_estimated_time: float
    elapsed_time: float
    remaining_time: float
    current_step: str
    completed_steps: list[str] = Field(default_factory=list)
    total_steps: int
    chapter_count: int


class ProgressUpdate(BaseModel):
    """What ``update_story_progress`` wrote to the story record."""

    run_id: str
    story_id: str
    completed_percentage: int
    published: bool = False
