"""Bounded retry with a flat delay between attempts.

Every step that talks to the browser is wrapped on its own, since the steps
fail for different transient reasons (element not rendered yet, navigation
race, empty result set).
"""

from __future__ import annotations

import asyncio
import logging
from dataclasses import dataclass
from typing import Awaitable, Callable, Optional, Tuple, Type, TypeVar

from .errors import CaptureError, ValidationError

logger = logging.getLogger(__name__)

T = TypeVar("T")


@dataclass(frozen=True)
class RetryPolicy:
    max_attempts: int = 3
    delay: float = 1.0
    # Deterministic failures: re-raised on the first occurrence.
    never_retry: Tuple[Type[BaseException], ...] = (ValidationError, CaptureError)


async def with_retry(
    operation: Callable[[], Awaitable[T]],
    policy: RetryPolicy = RetryPolicy(),
    *,
    label: Optional[str] = None,
) -> T:
    """Run ``operation`` up to ``policy.max_attempts`` times.

    The delay is flat, not exponential. When every attempt fails the last
    exception is re-raised unchanged so callers can match on its type.
    Exceptions listed in ``policy.never_retry`` abort immediately.
    """
    name = label or getattr(operation, "__name__", "operation")
    attempts = max(1, policy.max_attempts)

    for attempt in range(1, attempts + 1):
        try:
            return await operation()
        except policy.never_retry:
            raise
        except Exception as e:
            if attempt >= attempts:
                logger.error("%s failed after %d attempts: %s", name, attempts, e)
                raise
            logger.warning(
                "%s attempt %d/%d failed, retrying in %.2fs: %s",
                name,
                attempt,
                attempts,
                policy.delay,
                e,
            )
            await asyncio.sleep(policy.delay)

    raise AssertionError("unreachable")  # pragma: no cover
