"""Bounded exponential backoff for busy-store conditions."""

import asyncio
import logging
from collections.abc import Callable
from dataclasses import dataclass
from typing import TypeVar

from visit_engine.domain.errors import RetryExhaustedError, StoreBusyError

T = TypeVar("T")

_logger = logging.getLogger(__name__)


@dataclass(frozen=True)
class RetryPolicy:
    """Attempt budget and base delay for busy retries."""

    attempts: int = 5
    base_delay_seconds: float = 0.05

    async def run(self, func: Callable[[], T], *, action: str) -> T:
        """Run ``func`` under this policy."""
        return await with_busy_retry(
            func,
            action=action,
            attempts=self.attempts,
            base_delay_seconds=self.base_delay_seconds,
        )


async def with_busy_retry(
    func: Callable[[], T],
    *,
    action: str,
    attempts: int = 5,
    base_delay_seconds: float = 0.05,
) -> T:
    """Run a store call, retrying on StoreBusyError with exponential backoff.

    Any other exception propagates immediately. After ``attempts`` busy
    failures a RetryExhaustedError is raised carrying the last cause.
    """
    attempt = 0
    while True:
        try:
            return func()
        except StoreBusyError as exc:
            attempt += 1
            if attempt >= attempts:
                _logger.warning(
                    "Store busy during %s, giving up after %s attempts", action, attempt
                )
                raise RetryExhaustedError(action, attempt, exc) from exc
            delay = base_delay_seconds * 2 ** (attempt - 1)
            _logger.warning(
                "Store busy during %s (attempt %s/%s), retrying in %.3fs",
                action,
                attempt,
                attempts,
                delay,
            )
            await asyncio.sleep(delay)
