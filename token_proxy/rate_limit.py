"""
Per-client throttle for the token routes. Each code or refresh exchange costs the
provider a token-endpoint call made with our client secret, so one caller looping on
/refresh must not get the proxy's client id rate limited upstream.
"""
import math
import threading
import time
from collections import deque
from collections.abc import Callable

WINDOW_SECONDS = 60


class TokenRouteLimiter:
    """Sliding window of accepted request times per client key."""

    def __init__(self, window_seconds: float = WINDOW_SECONDS, clock: Callable[[], float] = time.monotonic):
        self.window_seconds = window_seconds
        self._clock = clock
        self._hits: dict[str, deque[float]] = {}
        self._lock = threading.Lock()

    def acquire(self, key: str, limit: int) -> int | None:
        """
        Count one request for key. Returns None when accepted, else the Retry-After
        seconds until the oldest request in the window expires. limit <= 0 disables.
        """
        if limit <= 0:
            return None
        now = self._clock()
        with self._lock:
            hits = self._hits.setdefault(key, deque())
            while hits and hits[0] <= now - self.window_seconds:
                hits.popleft()
            if len(hits) >= limit:
                return max(1, math.ceil(hits[0] + self.window_seconds - now))
            hits.append(now)
            return None

    def reset(self) -> None:
        with self._lock:
            self._hits.clear()


token_limiter = TokenRouteLimiter()
