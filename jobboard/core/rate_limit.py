"""
Fixed-window rate limiting.

Counters are per process and keyed by client address. Limiters live on
``app.state`` so each app instance counts independently.
"""

import time
from datetime import timedelta
from typing import Callable, Dict, Tuple

from fastapi import Request

from jobboard.core.exceptions import RateLimitExceeded

# Drop finished windows once this many clients are tracked
_PRUNE_THRESHOLD = 10_000


class RateLimiter:
    """Allow at most ``limit`` hits per ``window`` for each key."""

    def __init__(self, limit: int, window: timedelta, clock: Callable[[], float] = time.monotonic):
        self.limit = limit
        self.window_seconds = window.total_seconds()
        self._clock = clock
        self._windows: Dict[str, Tuple[float, int]] = {}

    def hit(self, key: str) -> bool:
        """Record a hit for ``key``. Returns False once the limit is exceeded."""
        now = self._clock()
        window_start, count = self._windows.get(key, (now, 0))

        if now - window_start >= self.window_seconds:
            window_start, count = now, 0

        if count >= self.limit:
            return False

        self._windows[key] = (window_start, count + 1)
        if len(self._windows) > _PRUNE_THRESHOLD:
            self._prune(now)
        return True

    def reset(self) -> None:
        self._windows.clear()

    def _prune(self, now: float) -> None:
        self._windows = {
            key: value
            for key, value in self._windows.items()
            if now - value[0] < self.window_seconds
        }


def client_key(request: Request, trust_forwarded_for: bool = False) -> str:
    """
    Client address used as the rate-limit key.

    Only the last ``X-Forwarded-For`` hop is ever used, since that is the one
    written by the proxy in front of us; earlier hops come from the client.
    The header is ignored unless ``trust_forwarded_for`` is set.
    """
    if trust_forwarded_for:
        forwarded = request.headers.get("x-forwarded-for")
        if forwarded:
            hop = forwarded.split(",")[-1].strip()
            if hop:
                return hop
    return request.client.host if request.client else "unknown"


def limit_requests(state_attr: str, message: str):
    """Dependency that enforces the limiter stored at ``app.state.<state_attr>``."""

    async def rate_limit_checker(request: Request) -> None:
        limiter = getattr(request.app.state, state_attr, None)
        if limiter is None:
            return
        trust = getattr(request.app.state, "trust_forwarded_for", False)
        if not limiter.hit(client_key(request, trust)):
            raise RateLimitExceeded(message)

    return rate_limit_checker


auth_rate_limit = limit_requests("auth_rate_limiter", "Too many auth attempts. Try again later.")
api_rate_limit = limit_requests("api_rate_limiter", "Too many requests. Please slow down.")
