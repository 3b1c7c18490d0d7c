"""
API Middleware

- Request logging (request id and actor bound into every log line)
- Per-actor rate limiting
"""

import time
from collections import defaultdict
from typing import Callable, Dict, List
import asyncio

from fastapi import Request, Response
from starlette.middleware.base import BaseHTTPMiddleware
import structlog

from resalebooks.config import get_settings

logger = structlog.get_logger(__name__)
settings = get_settings()


class RequestLoggingMiddleware(BaseHTTPMiddleware):
    """Log all requests with timing information"""

    async def dispatch(self, request: Request, call_next: Callable) -> Response:
        start_time = time.perf_counter()
        request_id = request.headers.get("X-Request-ID", str(time.time_ns()))

        structlog.contextvars.clear_contextvars()
        structlog.contextvars.bind_contextvars(
            request_id=request_id,
            actor_id=request.headers.get(settings.security.actor_header),
        )

        logger.info(
            "Request started",
            method=request.method,
            path=request.url.path,
            client=request.client.host if request.client else None,
        )

        response = await call_next(request)

        duration_ms = (time.perf_counter() - start_time) * 1000
        logger.info(
            "Request completed",
            status_code=response.status_code,
            duration_ms=round(duration_ms, 2),
        )

        response.headers["X-Response-Time"] = f"{duration_ms:.2f}ms"
        response.headers["X-Request-ID"] = request_id
        return response


class RateLimitMiddleware(BaseHTTPMiddleware):
    """
    Sliding-window in-memory rate limiter keyed by actor (or client host
    for anonymous calls). Limits are per worker process.
    """

    def __init__(self, app, max_requests: int = 100, window_seconds: int = 60):
        super().__init__(app)
        self.max_requests = max_requests
        self.window_seconds = window_seconds
        self._requests: Dict[str, List[float]] = defaultdict(list)
        self._lock = asyncio.Lock()

    def _key(self, request: Request) -> str:
        actor_id = request.headers.get(settings.security.actor_header)
        if actor_id:
            return f"actor:{actor_id}"
        return f"host:{request.client.host if request.client else 'unknown'}"

    async def dispatch(self, request: Request, call_next: Callable) -> Response:
        key = self._key(request)
        now = time.time()

        async with self._lock:
            recent = [t for t in self._requests[key] if now - t < self.window_seconds]
            if len(recent) >= self.max_requests:
                self._requests[key] = recent
                logger.warning("Rate limit exceeded", key=key, requests=len(recent))
                return Response(
                    content='{"error": "Rate limit exceeded", "operation": null}',
                    status_code=429,
                    media_type="application/json",
                    headers={
                        "Retry-After": str(self.window_seconds),
                        "X-RateLimit-Limit": str(self.max_requests),
                        "X-RateLimit-Remaining": "0",
                    },
                )
            recent.append(now)
            self._requests[key] = recent
            remaining = self.max_requests - len(recent)

        response = await call_next(request)
        response.headers["X-RateLimit-Limit"] = str(self.max_requests)
        response.headers["X-RateLimit-Remaining"] = str(remaining)
        return response
