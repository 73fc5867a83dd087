# babybites/services/rate_limiter.py
"""
Fixed-window, in-memory rate limiter keyed by "<account>:<operation>".

Single process only: counters live in this process's memory and are lost
on restart. Two concurrent requests can race on the read-increment-write,
which can only over-admit slightly. Multi-instance deployments need a
shared counter store instead.
"""
from __future__ import annotations

import logging
import math
import time
from dataclasses import dataclass
from typing import Callable, Dict

from babybites.config.settings import settings

logger = logging.getLogger(__name__)

CLEANUP_INTERVAL_SECONDS = 5 * 60


@dataclass(frozen=True)
class RateLimitConfig:
    limit: int
    window_seconds: int


@dataclass(frozen=True)
class RateLimitResult:
    success: bool
    limit: int
    remaining: int
    reset: float  # epoch seconds when the current window ends
    now: float

    @property
    def retry_after(self) -> int:
        return max(0, math.ceil(self.reset - self.now))

    def headers(self) -> Dict[str, str]:
        return {
            "X-RateLimit-Limit": str(self.limit),
            "X-RateLimit-Remaining": str(self.remaining),
            "X-RateLimit-Reset": str(int(self.reset)),
            "Retry-After": str(self.retry_after),
        }


@dataclass
class _Window:
    count: int
    reset: float


class FixedWindowRateLimiter:

    def __init__(self, clock: Callable[[], float] = time.time) -> None:
        self._clock = clock
        self._windows: Dict[str, _Window] = {}
        self._last_cleanup = clock()

    def _cleanup(self, now: float) -> None:
        if now - self._last_cleanup < CLEANUP_INTERVAL_SECONDS:
            return
        self._last_cleanup = now
        expired = [k for k, w in self._windows.items() if w.reset < now]
        for key in expired:
            self._windows.pop(key, None)
        if expired:
            logger.debug("rate limiter swept %d expired windows", len(expired))

    def hit(self, key: str, limit: int, window_seconds: int) -> RateLimitResult:
        now = self._clock()
        self._cleanup(now)

        window = self._windows.get(key)
        if window is None or window.reset < now:
            window = _Window(count=1, reset=now + window_seconds)
            self._windows[key] = window
            return RateLimitResult(True, limit, limit - 1, window.reset, now)

        if window.count >= limit:
            return RateLimitResult(False, limit, 0, window.reset, now)

        window.count += 1
        return RateLimitResult(True, limit, limit - window.count, window.reset, now)

    def check(self, key: str, config: RateLimitConfig) -> RateLimitResult:
        return self.hit(key, config.limit, config.window_seconds)

    def size(self) -> int:
        return len(self._windows)


def rate_limit_key(account_id: str, operation: str) -> str:
    return f"{account_id}:{operation}"


RATE_LIMITS = {
    "ai_generation": RateLimitConfig(
        settings.rate_limit_ai_requests, settings.rate_limit_ai_window_seconds
    ),
    "api": RateLimitConfig(
        settings.rate_limit_api_requests, settings.rate_limit_api_window_seconds
    ),
}

rate_limiter = FixedWindowRateLimiter()
