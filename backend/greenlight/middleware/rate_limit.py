"""
Greenlight — Rate Limiting Middleware
======================================

What:  Per-client token-bucket limiter.
How:   Each client IP owns a bucket holding up to ``burst`` tokens. The bucket
       starts full and refills continuously at ``rps`` tokens per second. A
       request spends one token; an empty bucket means 429 with a Retry-After
       header.

Algorithm: Token Bucket
    tokens = min(burst, tokens + elapsed * rps)
    allow  = tokens >= 1 (then tokens -= 1)

    With the defaults (rps=2, burst=4) a client can send 4 requests at once,
    then one request every 0.5s.

Housekeeping:
    Buckets for clients not seen in CLIENT_TTL seconds are dropped. The sweep
    runs at most once every SWEEP_INTERVAL seconds, piggy-backed on requests.

State lives in process memory. Each uvicorn worker enforces its own limit.
"""

import logging
import math
import time
from typing import Callable, Dict, Optional

from starlette.middleware.base import BaseHTTPMiddleware, RequestResponseEndpoint
from starlette.requests import Request
from starlette.responses import JSONResponse, Response
from starlette.types import ASGIApp

from greenlight.config import settings
from greenlight.exceptions import RateLimitExceededError, error_payload
from greenlight.middleware.request_id import request_id_var

logger = logging.getLogger(__name__)


class TokenBucket:
    __slots__ = ("rate", "capacity", "tokens", "updated_at", "last_seen")

    def __init__(self, rate: float, capacity: int, now: float):
        self.rate = rate
        self.capacity = float(capacity)
        self.tokens = float(capacity)
        self.updated_at = now
        self.last_seen = now

    def _refill(self, now: float) -> None:
        elapsed = max(0.0, now - self.updated_at)
        self.tokens = min(self.capacity, self.tokens + elapsed * self.rate)
        self.updated_at = now

    def allow(self, now: float) -> bool:
        self._refill(now)
        self.last_seen = now
        if self.tokens >= 1.0:
            self.tokens -= 1.0
            return True
        return False

    def retry_after(self) -> int:
        """Whole seconds until one token is available again (at least 1)."""
        missing = max(0.0, 1.0 - self.tokens)
        return max(1, math.ceil(missing / self.rate))


class RateLimitMiddleware(BaseHTTPMiddleware):
    """
    Configuration (constructor kwargs override settings):
        rps:     LIMITER_RPS, refill rate in tokens per second (default: 2)
        burst:   LIMITER_BURST, bucket capacity (default: 4)
        enabled: LIMITER_ENABLED (default: True)
        clock:   monotonic time source; tests inject a fake

    Excluded paths:
        /v1/healthcheck and the API documentation.
    """

    EXCLUDED_PATHS = {"/v1/healthcheck", "/docs", "/openapi.json", "/redoc"}
    CLIENT_TTL = 180.0
    SWEEP_INTERVAL = 60.0

    def __init__(
        self,
        app: ASGIApp,
        rps: Optional[float] = None,
        burst: Optional[int] = None,
        enabled: Optional[bool] = None,
        clock: Callable[[], float] = time.monotonic,
    ):
        super().__init__(app)
        self.rps = settings.limiter_rps if rps is None else rps
        self.burst = settings.limiter_burst if burst is None else burst
        self.enabled = settings.limiter_enabled if enabled is None else enabled
        self._clock = clock
        self._clients: Dict[str, TokenBucket] = {}
        self._last_sweep = clock()

    async def dispatch(
        self, request: Request, call_next: RequestResponseEndpoint
    ) -> Response:
        if not self.enabled or request.url.path in self.EXCLUDED_PATHS:
            return await call_next(request)

        client_ip = request.client.host if request.client else "unknown"
        now = self._clock()

        bucket = self._clients.get(client_ip)
        if bucket is None:
            bucket = TokenBucket(self.rps, self.burst, now)
            self._clients[client_ip] = bucket

        allowed = bucket.allow(now)
        self._sweep(now)

        if not allowed:
            exc = RateLimitExceededError(retry_after=bucket.retry_after())
            logger.warning(
                "Rate limit exceeded for IP %s (rps=%s, burst=%s)",
                client_ip,
                self.rps,
                self.burst,
            )
            return JSONResponse(
                status_code=exc.status_code,
                content=error_payload(exc.message, request_id_var.get("")),
                headers={"Retry-After": str(exc.retry_after)},
            )

        return await call_next(request)

    def _sweep(self, now: float) -> None:
        if now - self._last_sweep < self.SWEEP_INTERVAL:
            return
        self._last_sweep = now
        stale = [
            ip for ip, bucket in self._clients.items()
            if now - bucket.last_seen > self.CLIENT_TTL
        ]
        for ip in stale:
            del self._clients[ip]
        if stale:
            logger.debug("Dropped %d idle rate-limit buckets", len(stale))
