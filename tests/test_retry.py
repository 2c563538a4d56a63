import pytest

from callscribe.errors import ConfigurationError, RemoteError, TransportTimeout
from callscribe.retry import (
    PERSISTENCE_POLICY,
    TRANSCRIPTION_POLICY,
    RetryPolicy,
    call_with_retry,
    exponential_backoff,
)


def _flaky(failures):
    calls = {'n': 0}

    def fn():
        calls['n'] += 1
        if calls['n'] <= len(failures):
            raise failures[calls['n'] - 1]
        return 'ok'

    return fn, calls


def test_backoff_schedule_is_exponential_and_capped():
    backoff = exponential_backoff(1.0, 10.0)
    assert [backoff(k) for k in range(1, 6)] == [2.0, 4.0, 8.0, 10.0, 10.0]


def test_waits_follow_policy_before_each_retry():
    slept = []
    policy = RetryPolicy(max_attempts=3, backoff=exponential_backoff(), sleep=slept.append)
    fn, calls = _flaky([TransportTimeout('t'), RemoteError('r', 500)])
    retries = []
    assert call_with_retry(fn, policy, before_retry=lambda k, e: retries.append((k, type(e)))) == 'ok'
    assert calls['n'] == 3
    assert slept == [2.0, 4.0]
    assert retries == [(1, TransportTimeout), (2, RemoteError)]


def test_last_error_is_raised_after_exhaustion():
    fn, calls = _flaky([TransportTimeout('first'), TransportTimeout('second'), TransportTimeout('third')])
    with pytest.raises(TransportTimeout, match='third'):
        call_with_retry(fn, TRANSCRIPTION_POLICY.without_sleep())
    assert calls['n'] == 3


def test_non_retryable_error_aborts_immediately():
    fn, calls = _flaky([ConfigurationError('no key')])
    with pytest.raises(ConfigurationError):
        call_with_retry(fn, TRANSCRIPTION_POLICY.without_sleep())
    assert calls['n'] == 1


def test_persistence_policy_retries_any_exception_with_fixed_delay():
    slept = []
    policy = RetryPolicy(
        max_attempts=PERSISTENCE_POLICY.max_attempts,
        backoff=PERSISTENCE_POLICY.backoff,
        retry_on=PERSISTENCE_POLICY.retry_on,
        sleep=slept.append,
    )
    fn, calls = _flaky([OSError('db down'), OSError('db down')])
    assert call_with_retry(fn, policy) == 'ok'
    assert slept == [1.0, 1.0]
