# src/core/retry.py
"""Fixed-backoff async retry loop.

Used by the progress estimator around its read-compute-write body; the
ledger and context stores never retry on their own.
"""

from __future__ import annotations

import asyncio
import logging
from typing import Any, Awaitable, Callable

from storyloom.core.errors import RetryExhaustedError, TransientPersistenceError

logger = logging.getLogger(__name__)


async def with_retry(
    fn: Callable[..., Awaitable[Any]],
    *args: Any,
    attempts: int = 3,
    delay_s: float = 1.0,
    retry_on: tuple[type[BaseException], ...] = (TransientPersistenceError,),
    label: str = "operation",
    **kwargs: Any,
) -> Any:
    """Execute an async function, retrying on the given error types.

    Errors outside ``retry_on`` propagate immediately.

    Raises:
        RetryExhaustedError: If every attempt raised a retryable error.
    """
    if attempts < 1:
        raise ValueError("attempts must be >= 1")

    attempt = 0
    while True:
        attempt += 1
        try:
            return await fn(*args, **kwargs)
        except retry_on as e:
            if attempt >= attempts:
                raise RetryExhaustedError(label, attempt, e) from e  # type: ignore[arg-type]
            logger.warning(
                "%s failed (attempt %d/%d), retrying in %.1fs: %s",
                label, attempt, attempts, delay_s, e,
            )
            await asyncio.sleep(delay_s)
