# src/progress/step_table.py
"""Static step table: expected seconds per step kind.

Per-chapter kinds are weighted once per chapter in the total and once per
completed chapter step in the elapsed time.
"""

from __future__ import annotations

import math
from dataclasses import dataclass
from typing import Iterable, Mapping

from storyloom.core.step_names import StepKind, StepName

DEFAULT_CHAPTER_COUNT = 4


@dataclass(frozen=True)
class StepEstimate:
    kind: StepKind
    seconds: float

    @property
    def per_chapter(self) -> bool:
        return self.kind.per_chapter


StepTable = Mapping[StepKind, StepEstimate]

DEFAULT_STEP_TABLE: StepTable = {
    e.kind: e
    for e in (
        StepEstimate(StepKind.GENERATE_OUTLINE, 15),
        StepEstimate(StepKind.WRITE_CHAPTERS, 25),
        StepEstimate(StepKind.GENERATE_FRONT_COVER, 60),
        StepEstimate(StepKind.GENERATE_BACK_COVER, 60),
        StepEstimate(StepKind.GENERATE_IMAGES, 30),
        StepEstimate(StepKind.ASSEMBLE, 10),
        StepEstimate(StepKind.GENERATE_AUDIOBOOK, 20),
        StepEstimate(StepKind.DONE, 1),
    )
}


def total_estimated_time(chapter_count: int, table: StepTable = DEFAULT_STEP_TABLE) -> float:
    """Expected seconds for a whole run with ``chapter_count`` chapters."""
    return sum(
        e.seconds * chapter_count if e.per_chapter else e.seconds
        for e in table.values()
    )


def total_steps(chapter_count: int, table: StepTable = DEFAULT_STEP_TABLE) -> int:
    """Number of individual steps a run with ``chapter_count`` chapters executes."""
    return sum(chapter_count if e.per_chapter else 1 for e in table.values())


def step_time(step: StepName, table: StepTable = DEFAULT_STEP_TABLE) -> float:
    """Seconds credited for one completed step (one chapter unit for per-chapter kinds)."""
    estimate = table.get(step.kind)
    return estimate.seconds if estimate else 0.0


def elapsed_time(step_names: Iterable[str], table: StepTable = DEFAULT_STEP_TABLE) -> float:
    """Seconds credited for completed steps; unknown names count for nothing."""
    elapsed = 0.0
    for name in step_names:
        step = StepName.parse(name)
        if step is not None:
            elapsed += step_time(step, table)
    return elapsed


def to_percentage(elapsed: float, total: float) -> int:
    """Half-up rounded percentage clamped to [0, 100]; a zero total yields 0."""
    if total <= 0:
        return 0
    value = math.floor(100 * elapsed / total + 0.5)
    return max(0, min(int(value), 100))
