# src/logging/context.py
"""Contextual logging support: attach story_id, run_id, step and provider to log records.

Handlers set these once per invocation; every record emitted while the
context is set carries them, including records from the ledger, the
context manager and the progress estimator.
"""

from __future__ import annotations

import contextvars
from dataclasses import dataclass
from typing import Any

_story_id: contextvars.ContextVar[str | None] = contextvars.ContextVar(
    "story_id", default=None
)
_run_id: contextvars.ContextVar[str | None] = contextvars.ContextVar(
    "run_id", default=None
)
_step: contextvars.ContextVar[str | None] = contextvars.ContextVar(
    "step", default=None
)
_provider: contextvars.ContextVar[str | None] = contextvars.ContextVar(
    "provider", default=None
)


@dataclass
class LogContext:
    """Immutable snapshot of current logging context."""

    story_id: str | None = None
    run_id: str | None = None
    step: str | None = None
    provider: str | None = None

    def as_dict(self) -> dict[str, Any]:
        """Return non-None fields as dict for JSON log injection."""
        return {k: v for k, v in self.__dict__.items() if v is not None}


def get_context() -> LogContext:
    """Snapshot current context variables."""
    return LogContext(
        story_id=_story_id.get(),
        run_id=_run_id.get(),
        step=_step.get(),
        provider=_provider.get(),
    )


def set_run_context(story_id: str, run_id: str) -> None:
    """Set run-level context (called once per handler invocation)."""
    _story_id.set(story_id)
    _run_id.set(run_id)


def set_step_context(step: str, provider: str | None = None) -> None:
    """Set step-level context."""
    _step.set(step)
    _provider.set(provider)


def clear_context() -> None:
    """Reset all context variables."""
    _story_id.set(None)
    _run_id.set(None)
    _step.set(None)
    _provider.set(None)


def set_provider_context(provider: str | None) -> None:
    """Set the provider for the current step without touching the step name."""
    _provider.set(provider)
