import pytest

from errors import RemoteNotConfigured, RemoteRejected, RemoteUnavailable
from retry import RetryPolicy, new_idempotency_key


class Flaky:
    def __init__(self, failures, result='ok'):
        self.failures = list(failures)
        self.result = result
        self.calls = 0

    def __call__(self):
        self.calls += 1
        if self.failures:
            raise self.failures.pop(0)
        return self.result


def test_retries_transient_errors_with_exponential_backoff():
    sleeps = []
    policy = RetryPolicy(max_attempts=3, backoff=0.5, factor=2, sleep=sleeps.append)
    fn = Flaky([RemoteUnavailable('down'), RemoteUnavailable('down')])

    assert policy.call(fn) == 'ok'
    assert fn.calls == 3
    assert sleeps == [0.5, 1.0]


def test_gives_up_after_max_attempts():
    policy = RetryPolicy(max_attempts=2, backoff=0, sleep=lambda s: None)
    fn = Flaky([RemoteUnavailable('a'), RemoteUnavailable('b'), RemoteUnavailable('c')])

    with pytest.raises(RemoteUnavailable, match='b'):
        policy.call(fn)
    assert fn.calls == 2


@pytest.mark.parametrize('exc', [RemoteRejected('denied', status=403), RemoteNotConfigured(), ValueError('bug')])
def test_does_not_retry_permanent_errors(exc):
    policy = RetryPolicy(max_attempts=5, backoff=0)
    fn = Flaky([exc])

    with pytest.raises(type(exc)):
        policy.call(fn)
    assert fn.calls == 1


def test_max_attempts_must_be_positive():
    with pytest.raises(ValueError):
        RetryPolicy(max_attempts=0)


def test_idempotency_keys_are_unique():
    assert new_idempotency_key() != new_idempotency_key()
