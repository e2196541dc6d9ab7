"""
HTTP middleware

- Sliding-window rate limiting per client IP (global and payment processing)
- Security response headers
- Request body size cap
- Request logging
"""

import logging
import time
from collections import defaultdict, deque

from fastapi import Request, status
from fastapi.responses import JSONResponse
from starlette.middleware.base import BaseHTTPMiddleware

from app.core.config import get_settings
from app.core.errors import error_body
from app.core.replay import client_ip

logger = logging.getLogger(__name__)
settings = get_settings()

PAYMENT_PROCESSING_PATHS = {"/api/payments", "/api/payments/process"}


class SlidingWindowLimiter:
    """At most `calls` hits per key inside any `period` seconds."""

    def __init__(self, calls: int, period: int):
        self.calls = calls
        self.period = period
        self.clients = defaultdict(deque)

    def is_rate_limited(self, key: str) -> bool:
        now = time.time()
        hits = self.clients[key]

        # Clean old entries
        while hits and hits[0] <= now - self.period:
            hits.popleft()

        if len(hits) >= self.calls:
            return True

        hits.append(now)
        return False

    def reset(self) -> None:
        self.clients.clear()


global_limiter = SlidingWindowLimiter(settings.rate_limit_calls, settings.rate_limit_period)
payment_limiter = SlidingWindowLimiter(settings.payment_rate_limit_calls, settings.rate_limit_period)


def _too_many_requests(period: int, message: str) -> JSONResponse:
    return JSONResponse(
        status_code=status.HTTP_429_TOO_MANY_REQUESTS,
        content=error_body(message),
        headers={"Retry-After": str(period)},
    )


class RateLimitMiddleware(BaseHTTPMiddleware):
    """Rate limiting middleware to prevent abuse"""

    def __init__(
        self,
        app,
        limiter: SlidingWindowLimiter = global_limiter,
        payments: SlidingWindowLimiter = payment_limiter,
    ):
        super().__init__(app)
        self.limiter = limiter
        self.payments = payments

    async def dispatch(self, request: Request, call_next):
        ip = client_ip(request)

        if self.limiter.is_rate_limited(ip):
            logger.warning(f"Rate limit exceeded for IP: {ip}")
            return _too_many_requests(
                self.limiter.period,
                "Too many requests, please try again later.",
            )

        path = request.url.path.rstrip("/")
        if request.method == "POST" and path in PAYMENT_PROCESSING_PATHS:
            if self.payments.is_rate_limited(ip):
                logger.warning(f"Payment rate limit exceeded for IP: {ip}")
                return _too_many_requests(
                    self.payments.period,
                    "Too many payment attempts, please try again later.",
                )

        return await call_next(request)


class SecurityHeadersMiddleware(BaseHTTPMiddleware):
    """Add security headers to all responses"""

    async def dispatch(self, request: Request, call_next):
        response = await call_next(request)

        response.headers["X-Content-Type-Options"] = "nosniff"
        response.headers["X-Frame-Options"] = "DENY"
        response.headers["Referrer-Policy"] = "strict-origin-when-cross-origin"
        response.headers["Permissions-Policy"] = "geolocation=(), microphone=(), camera=()"

        if request.url.scheme == "https":
            response.headers["Strict-Transport-Security"] = "max-age=31536000; includeSubDomains"

        return response


class BodySizeLimitMiddleware(BaseHTTPMiddleware):
    """Reject bodies larger than the configured limit with 413."""

    def __init__(self, app, max_bytes: int = settings.max_body_bytes):
        super().__init__(app)
        self.max_bytes = max_bytes

    async def dispatch(self, request: Request, call_next):
        content_length = request.headers.get("content-length")
        if content_length and content_length.isdigit() and int(content_length) > self.max_bytes:
            logger.warning(
                f"Rejected {request.method} {request.url.path}: "
                f"body of {content_length} bytes exceeds {self.max_bytes}"
            )
            return JSONResponse(
                status_code=status.HTTP_413_REQUEST_ENTITY_TOO_LARGE,
                content=error_body("Request body too large"),
            )
        return await call_next(request)


class RequestLoggingMiddleware(BaseHTTPMiddleware):
    async def dispatch(self, request: Request, call_next):
        start = time.perf_counter()
        response = await call_next(request)
        elapsed_ms = (time.perf_counter() - start) * 1000
        logger.info(
            f"{request.method} {request.url.path} -> {response.status_code} "
            f"({elapsed_ms:.1f}ms)"
        )
        return response
