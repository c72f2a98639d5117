"""Retry with exponential backoff for explicitly retried reads.

Nothing in the engine retries on its own. Callers opt in, e.g. the sync
service when ``fetch_retries`` is configured, or a UI offering a manual
"try again" after a ``PersistenceFailure``.
"""

import asyncio
import logging
from collections.abc import Awaitable, Callable
from typing import TypeVar

from canopy.domain.shared import GatewayError, RuleViolation, TaskNotFound

logger = logging.getLogger(__name__)

T = TypeVar("T")

# Failures that will not go away by asking again
PERMANENT_ERRORS: tuple[type[Exception], ...] = (TaskNotFound, RuleViolation)


async def retry_async(
    operation: Callable[[], Awaitable[T]],
    retries: int = 3,
    min_delay: float = 1.0,
    factor: float = 2.0,
) -> T:
    """Await ``operation()``, retrying gateway failures with backoff.

    Args:
        operation: Zero-argument callable returning the awaitable
        retries: Extra attempts after the first one
        min_delay: Delay in seconds before the first retry
        factor: Multiplier applied to the delay after each retry

    Returns:
        The operation's result

    Raises:
        GatewayError: The last failure once attempts are exhausted, or
            immediately for permanent errors
    """
    attempt = 0
    while True:
        try:
            return await operation()
        except PERMANENT_ERRORS:
            raise
        except GatewayError as exc:
            if attempt >= retries:
                raise
            delay = min_delay * factor**attempt
            attempt += 1
            logger.warning(f"Attempt {attempt}/{retries + 1} failed ({exc}); retrying in {delay:.2f}s")
            await asyncio.sleep(delay)
