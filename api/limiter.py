"""
api/limiter.py -- Rate limiter for the authentication endpoints.

RateLimiter wraps the `limits` library (the counter engine underneath
slowapi) as an explicit object: api/main.py builds one in lifespan startup,
stores it on app.state.rate_limiter and closes it on shutdown. Routes opt in
with Depends(enforce_auth_rate_limit); only register and login do, so
unrelated traffic is never counted.

Policy (Settings):
  auth_rate_limit_requests per auth_rate_limit_window_seconds, per
  (route path, client address) key. Default 5 per 15 minutes.

Window strategy:
  fixed-window (default) -- one counter per key per window. A client can
      burst up to 2x the limit across a window boundary; accepted.
  moving-window -- timestamps per hit, no boundary burst, more memory.

Storage:
  memory:// keeps counters in this process. The limits MemoryStorage
  increments under a lock, so concurrent requests never lose a hit. With
  several instances each has its own counters; set RATE_LIMIT_STORAGE_URI to
  a shared store (redis://...) to make the limit authoritative.

Client address is the socket peer (request.client.host). X-Forwarded-For is
not trusted -- behind a proxy, run uvicorn with --proxy-headers so the peer
address is rewritten by a component that knows which hops are trusted.
"""

from __future__ import annotations

import logging
import math
import time
from dataclasses import dataclass
from enum import Enum

from fastapi import Request
from limits import RateLimitItemPerSecond
from limits.storage import MemoryStorage, storage_from_string
from limits.strategies import FixedWindowRateLimiter, MovingWindowRateLimiter

from core.config import Settings
from core.errors import RateLimitError

logger = logging.getLogger("authgate.limiter")

_STRATEGIES = {
    "fixed-window": FixedWindowRateLimiter,
    "moving-window": MovingWindowRateLimiter,
}


class Decision(str, Enum):
    ALLOWED = "allowed"
    LIMITED = "limited"


@dataclass(frozen=True)
class RateLimitResult:
    decision: Decision
    remaining: int
    retry_after: int  # seconds until the window frees a slot; 0 when allowed

    @property
    def allowed(self) -> bool:
        return self.decision is Decision.ALLOWED


class RateLimiter:
    """Counts hits per key and reports whether the key is over its limit.

    Usage:
        limiter = RateLimiter(max_requests=5, window_seconds=900)
        if not limiter.check("/api/auth/login:10.0.0.1").allowed:
            ...  # respond 429, do not run the handler
        limiter.close()
    """

    def __init__(
        self,
        max_requests: int,
        window_seconds: int,
        storage_uri: str = "memory://",
        strategy: str = "fixed-window",
    ) -> None:
        if strategy not in _STRATEGIES:
            raise ValueError(f"Unknown rate limit strategy: {strategy!r}")
        self.max_requests = max_requests
        self.window_seconds = window_seconds
        self._item = RateLimitItemPerSecond(max_requests, window_seconds)
        self._storage = storage_from_string(storage_uri)
        self._limiter = _STRATEGIES[strategy](self._storage)

    @classmethod
    def from_settings(cls, settings: Settings) -> RateLimiter:
        return cls(
            max_requests=settings.auth_rate_limit_requests,
            window_seconds=settings.auth_rate_limit_window_seconds,
            storage_uri=settings.rate_limit_storage_uri,
            strategy=settings.rate_limit_strategy,
        )

    def check(self, key: str) -> RateLimitResult:
        """Record one hit for key and return whether it is within the limit.

        Limited hits never extend the window, so a client that keeps
        hammering is released when the current window ends.
        """
        allowed = self._limiter.hit(self._item, key)
        stats = self._limiter.get_window_stats(self._item, key)
        if allowed:
            return RateLimitResult(Decision.ALLOWED, remaining=stats.remaining, retry_after=0)
        retry_after = max(1, math.ceil(stats.reset_time - time.time()))
        return RateLimitResult(Decision.LIMITED, remaining=0, retry_after=retry_after)

    def reset(self) -> None:
        """Drop every counter. Tests call this between cases."""
        self._storage.reset()

    def close(self) -> None:
        """Release per-process counters on shutdown.

        Shared stores are left untouched: other instances still rely on them.
        """
        if isinstance(self._storage, MemoryStorage):
            self._storage.reset()


def client_address(request: Request) -> str:
    return request.client.host if request.client else "unknown"


def enforce_auth_rate_limit(request: Request) -> None:
    """FastAPI dependency: raise RateLimitError (429) when the caller is over the limit.

    Declared in the route decorator's dependencies=[...] so it runs before the
    handler -- a throttled login never reaches the bcrypt comparison.
    """
    limiter: RateLimiter = request.app.state.rate_limiter
    key = f"{request.url.path}:{client_address(request)}"
    result = limiter.check(key)
    if not result.allowed:
        logger.warning("Rate limit exceeded for %s (retry in %ds)", key, result.retry_after)
        raise RateLimitError(retry_after=result.retry_after)
