"""
Authentication rate limiting

Fixed-window attempt counter per client IP, applied to the credential
endpoints as a route dependency:

    @router.post("/auth/signin", dependencies=[Depends(auth_rate_limit)])

Counters live in process memory; each worker keeps its own.
"""

import threading
import time
from dataclasses import dataclass
from typing import Dict, Optional

from fastapi import HTTPException, Request

from config import AUTH_RATE_LIMIT_ATTEMPTS, AUTH_RATE_LIMIT_WINDOW_SECONDS
from structured_logging import log_security_event


@dataclass
class RateLimitResult:
    allowed: bool
    attempts: int
    retry_after_seconds: Optional[int] = None


@dataclass
class _Window:
    count: int
    reset_at: float


class AuthRateLimiter:
    """Allow `max_attempts` per client in every `window_seconds` window."""

    def __init__(self, max_attempts: int = AUTH_RATE_LIMIT_ATTEMPTS,
                 window_seconds: int = AUTH_RATE_LIMIT_WINDOW_SECONDS, clock=time.monotonic):
        self.max_attempts = max_attempts
        self.window_seconds = window_seconds
        self._clock = clock
        self._windows: Dict[str, _Window] = {}
        self._lock = threading.Lock()

    def hit(self, client_id: str) -> RateLimitResult:
        """Count one attempt for `client_id`. Refused attempts are not counted."""
        now = self._clock()
        with self._lock:
            for key in [k for k, w in self._windows.items() if now >= w.reset_at]:
                del self._windows[key]

            window = self._windows.get(client_id)
            if window is None:
                self._windows[client_id] = _Window(count=1, reset_at=now + self.window_seconds)
                return RateLimitResult(allowed=True, attempts=1)

            if window.count >= self.max_attempts:
                retry_after = max(1, int(window.reset_at - now))
                return RateLimitResult(allowed=False, attempts=window.count, retry_after_seconds=retry_after)

            window.count += 1
            return RateLimitResult(allowed=True, attempts=window.count)

    def reset(self):
        with self._lock:
            self._windows.clear()


auth_rate_limiter = AuthRateLimiter()


def client_id_for(request: Request) -> str:
    forwarded = request.headers.get("x-forwarded-for")
    if forwarded:
        return forwarded.split(",")[0].strip()
    if request.client:
        return request.client.host
    return "unknown"


def auth_rate_limit(request: Request):
    """Route dependency; answers 429 once the client has used up its window."""
    client_id = client_id_for(request)
    result = auth_rate_limiter.hit(client_id)
    if not result.allowed:
        log_security_event(
            "auth_rate_limited",
            "medium",
            details=f"{result.attempts} attempts on {request.url.path}",
            client_ip=client_id,
        )
        raise HTTPException(
            status_code=429,
            detail="Too many authentication attempts. Please try again later.",
            headers={
                "X-Error-Code": "TOO_MANY_AUTH_ATTEMPTS",
                "Retry-After": str(result.retry_after_seconds),
            },
        )
