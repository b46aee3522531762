# src/core/errors.py
"""Error taxonomy shared by the ledger, context stores, estimator and handlers."""

from __future__ import annotations


class StoryloomError(Exception):
    """Base class for all storyloom errors."""


class NotFoundError(StoryloomError):
    """Unknown run, step or context. Never retried."""

    def __init__(self, kind: str, identifier: str) -> None:
        self.kind = kind
        self.identifier = identifier
        super().__init__(f"{kind} not found: {identifier}")


class TransientPersistenceError(StoryloomError):
    """Store connectivity or lock failure that may succeed on retry."""


class ProviderContinuityDegenerateError(StoryloomError):
    """Stateful call and its stateless fallback both returned empty content."""

    def __init__(self, provider: str, context_id: str | None) -> None:
        self.provider = provider
        self.context_id = context_id
        super().__init__(
            f"Provider '{provider}' returned empty content for context "
            f"{context_id!r} after stateless fallback"
        )


class OutlineValidationError(StoryloomError):
    """Generated outline is missing required structure."""

    def __init__(self, problems: list[str]) -> None:
        self.problems = problems
        super().__init__("Invalid outline: " + "; ".join(problems))


class StepInputError(StoryloomError):
    """Handler request rejected before any generation happened."""


class RetryExhaustedError(StoryloomError):
    """All attempts of a retried operation failed."""

    def __init__(self, label: str, attempts: int, last_error: Exception) -> None:
        self.label = label
        self.attempts = attempts
        self.last_error = last_error
        super().__init__(
            f"'{label}' failed after {attempts} attempts: {last_error}"
        )
