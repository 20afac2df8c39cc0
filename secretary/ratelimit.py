"""Fixed-window request counters for the authentication endpoints.

Counters live in a bounded LRU map keyed by client IP, so memory stays capped
no matter how many clients appear. The map is process-local; with several
instances each one counts separately.
"""
from __future__ import annotations

import time
from collections import OrderedDict
from dataclasses import dataclass
from typing import Callable, Optional

from fastapi import Request
from fastapi.responses import JSONResponse
from loguru import logger

from .errors import RateLimitedError, error_payload


@dataclass
class _Window:
    count: int
    reset_at: float


class FixedWindowLimiter:
    def __init__(
        self,
        max_attempts: int,
        window_sec: float,
        max_keys: int = 10_000,
        clock: Callable[[], float] = time.monotonic,
    ) -> None:
        self.max_attempts = max_attempts
        self.window_sec = window_sec
        self.max_keys = max_keys
        self._clock = clock
        self._windows: "OrderedDict[str, _Window]" = OrderedDict()

    def __len__(self) -> int:
        return len(self._windows)

    def hit(self, key: str) -> bool:
        """Count one request for ``key``; False once the limit is exceeded."""
        now = self._clock()
        window = self._windows.get(key)
        if window is None or now > window.reset_at:
            window = _Window(count=0, reset_at=now + self.window_sec)
        window.count += 1
        self._windows[key] = window
        self._windows.move_to_end(key)
        while len(self._windows) > self.max_keys:
            self._windows.popitem(last=False)
        return window.count <= self.max_attempts

    def reset(self) -> None:
        self._windows.clear()


class AuthRateLimitMiddleware:
    """HTTP middleware callable, registered with ``app.middleware("http")``."""

    def __init__(self, limiter: FixedWindowLimiter, prefix: str = "/api/auth", key_func: Optional[Callable[[Request], str]] = None) -> None:
        self.limiter = limiter
        self.prefix = prefix
        self.key_func = key_func or (lambda request: request.client.host if request.client else "unknown")

    async def __call__(self, request: Request, call_next):
        if not request.url.path.startswith(self.prefix):
            return await call_next(request)
        key = self.key_func(request)
        if not self.limiter.hit(key):
            logger.bind(tag="auth.ratelimit").warning("rate limit exceeded", client=key)
            return JSONResponse(
                error_payload(RateLimitedError.default_message),
                status_code=RateLimitedError.status_code,
            )
        return await call_next(request)
