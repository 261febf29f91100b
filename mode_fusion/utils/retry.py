"""Retry helpers with exponential backoff for mode analyzer calls."""

from __future__ import annotations

from collections.abc import Awaitable, Callable
from dataclasses import dataclass
from typing import TypeVar

from loguru import logger
from tenacity import (
    AsyncRetrying,
    RetryCallState,
    retry_if_exception_type,
    stop_after_attempt,
    wait_exponential,
)

T = TypeVar("T")


@dataclass(frozen=True)
class RetryPolicy:
    """Backoff settings for a single analyzer invocation.

    Attributes:
        max_attempts: Total attempts including the first call.
        base_delay: Initial delay between attempts in seconds.
        max_delay: Upper bound on a single delay in seconds.
        retry_on: Exception types that trigger another attempt.

    """

    max_attempts: int = 1
    base_delay: float = 0.05
    max_delay: float = 2.0
    retry_on: tuple[type[BaseException], ...] = (Exception,)

    @property
    def enabled(self) -> bool:
        """Whether more than one attempt is allowed."""
        return self.max_attempts > 1


def _log_retry(label: str) -> Callable[[RetryCallState], None]:
    def before_sleep(state: RetryCallState) -> None:
        exc = state.outcome.exception() if state.outcome else None
        logger.warning(f"Retrying {label} (attempt {state.attempt_number} failed: {exc})")

    return before_sleep


async def call_with_retry(
    func: Callable[[], Awaitable[T]],
    policy: RetryPolicy,
    label: str = "call",
) -> tuple[T, int]:
    """Await ``func`` under ``policy``, retrying on matching exceptions.

    Args:
        func: Zero-argument coroutine factory; called once per attempt.
        policy: Retry settings.
        label: Name used in retry log messages.

    Returns:
        Tuple of (result, attempts used).

    Raises:
        Exception: The last exception once attempts are exhausted.

    """
    if not policy.enabled:
        return await func(), 1

    attempts = 0
    async for attempt in AsyncRetrying(
        stop=stop_after_attempt(policy.max_attempts),
        wait=wait_exponential(
            multiplier=policy.base_delay, min=policy.base_delay, max=policy.max_delay
        ),
        retry=retry_if_exception_type(policy.retry_on),
        before_sleep=_log_retry(label),
        reraise=True,
    ):
        with attempt:
            attempts = attempt.retry_state.attempt_number
            result = await func()
    return result, attempts
