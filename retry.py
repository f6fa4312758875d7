import logging
import time
import uuid

from errors import RemoteUnavailable

logger = logging.getLogger(__name__)


def new_idempotency_key():
    """Client-generated record id; reusing it on retries makes inserts idempotent."""
    return str(uuid.uuid4())


class RetryPolicy:
    """Retry transient remote failures with exponential backoff.

    Delay before attempt ``n`` (n >= 2) is ``backoff * factor ** (n - 2)``.
    Exceptions outside ``retry_on``, or carrying ``retryable = False``, are
    raised straight away.
    """

    def __init__(self, max_attempts=3, backoff=0.6, factor=2.0, retry_on=(RemoteUnavailable,), sleep=time.sleep):
        if max_attempts < 1:
            raise ValueError("max_attempts must be at least 1")
        self.max_attempts = max_attempts
        self.backoff = backoff
        self.factor = factor
        self.retry_on = retry_on
        self._sleep = sleep

    @classmethod
    def from_config(cls, cfg):
        return cls(
            max_attempts=cfg.get('REMOTE_RETRY_ATTEMPTS', 3),
            backoff=cfg.get('REMOTE_RETRY_BACKOFF', 0.6),
        )

    def is_retryable(self, exc):
        return isinstance(exc, self.retry_on) and getattr(exc, 'retryable', True)

    def delay(self, attempt):
        return self.backoff * (self.factor ** (attempt - 1))

    def call(self, fn, *args, **kwargs):
        attempt = 1
        while True:
            try:
                return fn(*args, **kwargs)
            except Exception as e:
                if not self.is_retryable(e) or attempt >= self.max_attempts:
                    raise
                wait = self.delay(attempt)
                logger.warning("Attempt %d/%d of %s failed (%s), retrying in %.2fs",
                               attempt, self.max_attempts, getattr(fn, '__name__', fn), e, wait)
                if wait > 0:
                    self._sleep(wait)
                attempt += 1
