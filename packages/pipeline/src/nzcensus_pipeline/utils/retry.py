"""
utils/retry.py — Optional exponential-backoff retry decorator for async downloads.

Uses tenacity under the hood. The pipeline is a one-shot batch run, so the
default is a single attempt (settings.download_attempts = 1); raising the
setting turns on retries for transient transport errors only.

Usage:
    from nzcensus_pipeline.utils.retry import with_retry

    @with_retry(max_attempts=3, base_delay=1.0, retry_on=(httpx.TransportError,))
    async def fetch(url: str) -> bytes:
        ...

    # Or wrap at call time when the attempt count comes from settings:
    fetch_once = with_retry(max_attempts=settings.download_attempts)(fetch)
"""

from __future__ import annotations

import functools
from collections.abc import Callable, Coroutine
from typing import Any, TypeVar

import structlog
from tenacity import (
    AsyncRetrying,
    retry_if_exception_type,
    stop_after_attempt,
    wait_exponential,
)

log = structlog.get_logger(__name__)

F = TypeVar("F", bound=Callable[..., Coroutine[Any, Any, Any]])


def with_retry(
    max_attempts: int = 1,
    base_delay: float = 1.0,
    max_delay: float = 30.0,
    retry_on: type[Exception] | tuple[type[Exception], ...] = Exception,
) -> Callable[[F], F]:
    """
    Decorator that retries an async function with exponential backoff.

    Delays: base_delay * 2^(attempt-1), capped at max_delay.
    The last exception is re-raised unchanged once attempts run out.

    Args:
        max_attempts: Total attempts before raising (1 = no retry).
        base_delay:   Initial delay in seconds.
        max_delay:    Maximum delay cap in seconds.
        retry_on:     Exception type(s) that trigger a retry.

    Returns:
        Decorated async function.
    """

    def decorator(fn: F) -> F:
        @functools.wraps(fn)
        async def wrapper(*args: Any, **kwargs: Any) -> Any:
            attempt_log = log.bind(function=fn.__qualname__)
            async for attempt in AsyncRetrying(
                stop=stop_after_attempt(max_attempts),
                wait=wait_exponential(multiplier=base_delay, max=max_delay),
                retry=retry_if_exception_type(retry_on),
                reraise=True,
            ):
                with attempt:
                    attempt_num = attempt.retry_state.attempt_number
                    if attempt_num > 1:
                        attempt_log.warning(
                            "retry_attempt",
                            attempt=attempt_num,
                            max_attempts=max_attempts,
                        )
                    return await fn(*args, **kwargs)

        return wrapper  # type: ignore[return-value]

    return decorator
