import time
import uuid
import logging
from typing import Sequence

from fastapi import Request
from fastapi.responses import JSONResponse
from starlette.middleware.base import BaseHTTPMiddleware
from starlette.types import ASGIApp

from .application.ports.rate_limiter import RateLimiter

logger = logging.getLogger(__name__)


class RateLimitMiddleware(BaseHTTPMiddleware):
    def __init__(self, app: ASGIApp, limiter: RateLimiter, max_requests: int = 60, window_seconds: int = 60, path_prefixes: Sequence[str] = ("/users",)):
        super().__init__(app)
        self.limiter = limiter
        self.max_requests = max_requests
        self.window_seconds = window_seconds
        self.path_prefixes = tuple(path_prefixes)

    async def dispatch(self, request: Request, call_next):
        if self.max_requests <= 0 or not request.url.path.startswith(self.path_prefixes):
            return await call_next(request)

        client_ip = request.client.host if request.client else "unknown"
        try:
            decision = self.limiter.hit(client_ip, self.max_requests, self.window_seconds)
        except Exception as e:
            # A broken limiter backend must not take the API down
            logger.warning(f"Rate limiter unavailable, letting request through: {e}")
            return await call_next(request)

        headers = {
            "X-RateLimit-Limit": str(decision.limit),
            "X-RateLimit-Remaining": str(decision.remaining),
        }
        if not decision.allowed:
            logger.warning(f"Rate limit exceeded for IP: {client_ip}")
            headers["Retry-After"] = str(decision.retry_after)
            return JSONResponse(
                status_code=429,
                content={"message": "Too many requests. Please try again later."},
                headers=headers,
            )

        response = await call_next(request)
        response.headers.update(headers)
        return response


class SecurityMiddleware(BaseHTTPMiddleware):
    async def dispatch(self, request: Request, call_next):
        response = await call_next(request)
        response.headers["X-Content-Type-Options"] = "nosniff"
        response.headers["X-Frame-Options"] = "DENY"
        response.headers["Referrer-Policy"] = "strict-origin-when-cross-origin"
        return response


class LoggingMiddleware(BaseHTTPMiddleware):
    async def dispatch(self, request: Request, call_next):
        request_id = request.headers.get("X-Request-ID") or uuid.uuid4().hex
        request.state.request_id = request_id
        start_time = time.time()

        response = await call_next(request)

        duration = time.time() - start_time
        logger.info(f"{request.method} {request.url.path} -> {response.status_code} in {duration:.3f}s [{request_id}]")
        response.headers["X-Request-ID"] = request_id
        return response


class ErrorHandlingMiddleware(BaseHTTPMiddleware):
    def __init__(self, app: ASGIApp, debug: bool = False):
        super().__init__(app)
        self.debug = debug

    async def dispatch(self, request: Request, call_next):
        try:
            return await call_next(request)
        except Exception as e:
            logger.error(f"Unhandled error on {request.method} {request.url.path}: {e}", exc_info=True)
            message = f"Internal server error: {e}" if self.debug else "Internal server error"
            return JSONResponse(status_code=500, content={"message": message})
