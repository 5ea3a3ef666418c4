"""
Retry wrapper: bounded exponential backoff around a step.

    policy = RetryPolicy(initial_delay=1.0, backoff_factor=2, max_attempts=3)
    step = with_retry(step, policy)

Attempt n (n >= 2) starts after waiting initial_delay * backoff_factor ** (n - 2)
after the previous failure, so with the policy above attempts happen at
offsets ~0s, 1s, 3s before the last error is re-raised.

Retries assume the wrapped action is safe to repeat (at-least-once). Side
effects from a failed attempt are not rolled back. Errors that cannot get
better by repeating (SchemaError, GraphError, InvalidKeyError) and tool
failures flagged retry_safe=False (a non-idempotent tool called without an
idempotency key) are re-raised immediately.
"""

import asyncio
import functools
import random
from dataclasses import replace
from typing import Any, Awaitable, Callable

from pydantic import BaseModel, ConfigDict, Field

from agentflow.core.config import Settings, get_settings
from agentflow.core.errors import OrchestrationError, ToolExecutionError
from agentflow.core.logging import get_logger

log = get_logger(__name__)

Sleep = Callable[[float], Awaitable[Any]]


class RetryPolicy(BaseModel):
    model_config = ConfigDict(frozen=True)

    initial_delay:  float = Field(1.0, ge=0)   # seconds
    backoff_factor: float = Field(2.0, gt=1)
    max_attempts:   int   = Field(3, ge=1)
    jitter:         float = Field(0.0, ge=0)   # added on top, never below the floor

    @classmethod
    def from_settings(cls, settings: Settings | None = None) -> "RetryPolicy":
        settings = settings or get_settings()
        return cls(
            initial_delay=settings.retry_initial_delay,
            backoff_factor=settings.retry_backoff_factor,
            max_attempts=settings.retry_max_attempts,
            jitter=settings.retry_jitter,
        )

    def delay_for(self, attempt: int) -> float:
        """Wait after failed attempt number `attempt` (1-based)."""
        delay = self.initial_delay * self.backoff_factor ** (attempt - 1)
        if self.jitter:
            delay += random.uniform(0, self.jitter)
        return delay

    def minimum_total_delay(self) -> float:
        """Sum of the backoff series across all retries, jitter excluded."""
        n = self.max_attempts - 1
        return self.initial_delay * (self.backoff_factor ** n - 1) / (self.backoff_factor - 1)


def is_retryable(exc: BaseException) -> bool:
    if isinstance(exc, ToolExecutionError):
        return exc.retryable and exc.retry_safe
    if isinstance(exc, OrchestrationError):
        return exc.retryable
    return isinstance(exc, Exception)


def _record_attempts(exc: BaseException, attempts: int, step: str | None) -> None:
    exc.retry_attempts = attempts
    if isinstance(exc, OrchestrationError):
        exc.attempts = attempts
        if step and not exc.step:
            exc.step = step


async def retry_call(
    fn: Callable[[], Awaitable[Any]],
    policy: RetryPolicy,
    *,
    step: str | None = None,
    sleep: Sleep = asyncio.sleep,
) -> Any:
    """Await fn() until it succeeds or the policy gives up; re-raise the last error."""
    attempt = 0
    while True:
        attempt += 1
        try:
            return await fn()
        except Exception as exc:
            if not is_retryable(exc):
                _record_attempts(exc, attempt, step)
                raise
            if attempt >= policy.max_attempts:
                _record_attempts(exc, attempt, step)
                log.error(
                    "step_retry_exhausted",
                    step=step,
                    attempts=attempt,
                    error_type=type(exc).__name__,
                    error=str(exc),
                )
                raise
            delay = policy.delay_for(attempt)
            log.warning(
                "step_retry",
                step=step,
                attempt=attempt,
                max_attempts=policy.max_attempts,
                delay_s=round(delay, 3),
                error_type=type(exc).__name__,
            )
            await sleep(delay)


def retry_async(policy: RetryPolicy, *, sleep: Sleep = asyncio.sleep):
    """Decorator form for any coroutine function."""
    def deco(fn: Callable[..., Awaitable[Any]]):
        @functools.wraps(fn)
        async def wrapper(*args, **kwargs):
            return await retry_call(lambda: fn(*args, **kwargs), policy, step=fn.__name__, sleep=sleep)
        return wrapper
    return deco


def with_retry(step, policy: RetryPolicy, *, sleep: Sleep = asyncio.sleep):
    """
    Return a copy of `step` whose execution is retried under `policy`.
    Behaves identically to `step` on success.
    """
    async def run_with_retry(state, context):
        return await retry_call(lambda: step.execute(state, context), policy, step=step.name, sleep=sleep)

    return replace(step, fn=run_with_retry, retry=None)
