# src/api/models.py
"""Public API result types."""

from __future__ import annotations

from pydantic import BaseModel, Field

from storyloom.core.models import Run, Step


class RunWithSteps(BaseModel):
    """A run and its full step audit trail."""

    run: Run
    steps: list[Step] = Field(default_factory=list)

    def step(self, step_name: str) -> Step | None:
        for s in self.steps:
            if s.step_name == step_name:
                return s
        return None
