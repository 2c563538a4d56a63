"""
Retry policies and a generic ``call_with_retry`` primitive built on tenacity.

A :class:`RetryPolicy` bundles the attempt cap, the backoff schedule and the
predicate deciding which exceptions are worth another attempt.  The same
primitive drives the transcription request, each analysis chunk call and the
writes to the job store.

Usage::

    from callscribe.retry import TRANSCRIPTION_POLICY, call_with_retry

    text = call_with_retry(lambda: request_transcript(...), TRANSCRIPTION_POLICY)
"""

from __future__ import annotations

import time
from dataclasses import dataclass, replace
from typing import Callable, Optional, TypeVar

from tenacity import RetryCallState, Retrying, retry_if_exception, stop_after_attempt

from .errors import is_retryable

T = TypeVar("T")


def exponential_backoff(base: float = 1.0, cap: float = 10.0) -> Callable[[int], float]:
    """Return ``k -> min(base * 2**k, cap)``, the delay before attempt ``k``."""

    def _backoff(attempt: int) -> float:
        return min(base * (2 ** attempt), cap)

    return _backoff


def fixed_backoff(delay: float) -> Callable[[int], float]:
    return lambda attempt: delay


def _any_exception(exc: BaseException) -> bool:
    return isinstance(exc, Exception)


@dataclass(frozen=True)
class RetryPolicy:
    max_attempts: int
    backoff: Callable[[int], float]
    retry_on: Callable[[BaseException], bool] = is_retryable
    sleep: Callable[[float], None] = time.sleep

    def without_sleep(self) -> "RetryPolicy":
        return replace(self, sleep=lambda seconds: None)


TRANSCRIPTION_POLICY = RetryPolicy(max_attempts=3, backoff=exponential_backoff(1.0, 10.0))
ANALYSIS_POLICY = RetryPolicy(max_attempts=3, backoff=exponential_backoff(1.0, 10.0))
PERSISTENCE_POLICY = RetryPolicy(max_attempts=3, backoff=fixed_backoff(1.0), retry_on=_any_exception)


def call_with_retry(
    fn: Callable[[], T],
    policy: RetryPolicy,
    *,
    before_retry: Optional[Callable[[int, BaseException], None]] = None,
) -> T:
    """Call ``fn`` until it succeeds or ``policy`` gives up.

    Args:
        fn: Zero-argument callable performing one attempt.
        policy: Attempt cap, backoff schedule and retryable predicate.
        before_retry: Optional hook called as ``before_retry(attempt, error)``
            right before sleeping ahead of zero-based ``attempt``.

    Returns:
        Whatever ``fn`` returned on the successful attempt.

    Raises:
        The last exception raised by ``fn`` once attempts are exhausted, or
        immediately if the exception is not retryable.
    """

    def _wait(state: RetryCallState) -> float:
        # attempt_number counts completed attempts, i.e. the next zero-based index.
        return policy.backoff(state.attempt_number)

    def _before_sleep(state: RetryCallState) -> None:
        if before_retry is not None and state.outcome is not None:
            before_retry(state.attempt_number, state.outcome.exception())

    retrying = Retrying(
        stop=stop_after_attempt(policy.max_attempts),
        wait=_wait,
        retry=retry_if_exception(policy.retry_on),
        before_sleep=_before_sleep,
        sleep=policy.sleep,
        reraise=True,
    )
    return retrying(fn)
