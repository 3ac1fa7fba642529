from __future__ import annotations

import asyncio
import logging
import random
from typing import Awaitable, Callable, TypeVar

from pydantic import BaseModel

from docqa.core.config import Settings
from docqa.core.errors import DocQAError

logger = logging.getLogger(__name__)

T = TypeVar("T")


class RetryPolicy(BaseModel):
    max_retries: int = 3
    base_delay: float = 1.0
    max_delay: float = 10.0
    timeout: float | None = 30.0

    @classmethod
    def from_settings(cls, settings: Settings) -> RetryPolicy:
        return cls(
            max_retries=settings.MAX_RETRIES,
            base_delay=settings.RETRY_BASE_DELAY,
            max_delay=settings.RETRY_MAX_DELAY,
            timeout=settings.EXTERNAL_TIMEOUT,
        )


def backoff_delay(attempt: int, base_delay: float, max_delay: float, rand: Callable[[], float] = random.random) -> float:
    """Exponential delay for a zero-based attempt, plus up to 10% jitter."""
    delay = min(base_delay * (2 ** attempt), max_delay)
    return delay + rand() * 0.1 * delay


async def with_timeout(aw: Awaitable[T], seconds: float | None, message: str = "Operation timed out") -> T:
    if seconds is None:
        return await aw
    try:
        return await asyncio.wait_for(aw, timeout=seconds)
    except asyncio.TimeoutError as e:
        raise DocQAError.timeout(message, seconds=seconds) from e


async def retry_with_backoff(
    fn: Callable[[], Awaitable[T]],
    *,
    max_retries: int = 3,
    base_delay: float = 1.0,
    max_delay: float = 10.0,
    timeout: float | None = None,
    label: str = "external call",
    sleep: Callable[[float], Awaitable[None]] = asyncio.sleep,
) -> T:
    """Await ``fn()`` until it succeeds or ``max_retries`` retries are used up.

    ``fn`` is a zero-argument factory so that every attempt gets a fresh
    coroutine. A ``DocQAError`` whose kind is not retryable propagates on the
    first failure. Once attempts are exhausted a ``DocQAError`` propagates
    as-is; anything else is wrapped as an ``EXTERNAL_SERVICE`` error.
    """
    last_exc: Exception | None = None
    for attempt in range(max_retries + 1):
        try:
            return await with_timeout(fn(), timeout, f"{label} timed out")
        except DocQAError as e:
            if not e.retryable:
                raise
            last_exc = e
        except Exception as e:
            last_exc = e

        if attempt == max_retries:
            break
        delay = backoff_delay(attempt, base_delay, max_delay)
        logger.warning(
            "%s failed (attempt %d/%d): %s; retrying in %.2fs",
            label, attempt + 1, max_retries + 1, last_exc, delay,
        )
        await sleep(delay)

    if isinstance(last_exc, DocQAError):
        raise last_exc
    raise DocQAError.external(label, f"{label} failed after {max_retries + 1} attempts: {last_exc}") from last_exc


async def retry_with_policy(
    fn: Callable[[], Awaitable[T]],
    policy: RetryPolicy,
    *,
    label: str = "external call",
    sleep: Callable[[float], Awaitable[None]] = asyncio.sleep,
) -> T:
    return await retry_with_backoff(
        fn,
        max_retries=policy.max_retries,
        base_delay=policy.base_delay,
        max_delay=policy.max_delay,
        timeout=policy.timeout,
        label=label,
        sleep=sleep,
    )
