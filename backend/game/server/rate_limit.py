"""Token bucket rate limiter for WebSocket message throttling."""

import time


class TokenBucket:
    """Allow ``burst`` messages at once, refilled at ``rate`` tokens per second.

    consume() returns False once the bucket is empty; the caller should
    reject the message instead of processing it.
    """

    def __init__(self, rate: float, burst: int) -> None:
        self._rate = rate
        self._burst = burst
        self._tokens = float(burst)
        self._last_refill = time.monotonic()

    def _refill(self) -> None:
        now = time.monotonic()
        self._tokens = min(self._burst, self._tokens + (now - self._last_refill) * self._rate)
        self._last_refill = now

    def consume(self) -> bool:
        """Take one token if available."""
        self._refill()
        if self._tokens < 1.0:
            return False
        self._tokens -= 1.0
        return True
