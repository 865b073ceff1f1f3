"""Bounded optimistic retry for credential store writes."""

import asyncio
import random
from collections.abc import Awaitable, Callable
from typing import TypeVar

import structlog

from inkwell.config import settings
from inkwell.core.exceptions import DatabaseException, WriteConflictError

logger = structlog.get_logger(__name__)

T = TypeVar("T")


async def with_optimistic_retry(
    operation: Callable[[], Awaitable[T]],
    max_attempts: int | None = None,
    backoff_seconds: float | None = None,
    operation_name: str = "store_write",
) -> T:
    """
    Run ``operation`` until it completes without a write conflict.

    Args:
        operation: Zero-argument coroutine factory; called once per attempt
        max_attempts: Attempts before giving up (defaults to settings)
        backoff_seconds: Base delay; attempt ``n`` waits ``n * base`` plus up to
            ``base`` of random jitter
        operation_name: Label for log events

    Returns:
        Whatever ``operation`` returns

    Raises:
        DatabaseException: If every attempt hit a write conflict
    """
    attempts = max_attempts or settings.token_rotation_max_attempts
    base_delay = (
        settings.token_rotation_backoff_seconds if backoff_seconds is None else backoff_seconds
    )

    for attempt in range(1, attempts + 1):
        try:
            return await operation()
        except WriteConflictError as e:
            logger.warning(
                "refresh_token_write_conflict",
                operation=operation_name,
                attempt=attempt,
                max_attempts=attempts,
                error=str(e),
            )
            if attempt == attempts:
                raise DatabaseException(
                    f"Could not complete {operation_name} after {attempts} attempts"
                ) from e
            await asyncio.sleep(base_delay * attempt + random.uniform(0, base_delay))

    # Unreachable with attempts >= 1
    raise DatabaseException(f"Could not complete {operation_name}")
