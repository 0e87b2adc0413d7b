"""HTTP middleware: security headers, body size limit, request logging, rate limiting"""
import time
from typing import List
from fastapi import Request, status
from fastapi.responses import JSONResponse
from slowapi import Limiter
from slowapi.errors import RateLimitExceeded
from slowapi.util import get_remote_address
from starlette.datastructures import Headers
from starlette.middleware.base import BaseHTTPMiddleware
from starlette.types import ASGIApp, Message, Receive, Scope, Send
from taskflow.config import Settings
from taskflow.errors import error_response
from taskflow.utils.monitoring import RequestMetrics, StructuredLogger

MAX_BODY_BYTES = 10 * 1024 * 1024

RATE_LIMIT_MESSAGE = "Too many requests, please try again later"


class SecurityHeadersMiddleware(BaseHTTPMiddleware):
    """Add security headers to every response"""

    def __init__(self, app, hsts: bool = False, hsts_max_age: int = 15552000):
        super().__init__(app)
        self.hsts = hsts
        self.hsts_max_age = hsts_max_age

    async def dispatch(self, request: Request, call_next):
        response = await call_next(request)

        response.headers["X-Content-Type-Options"] = "nosniff"
        response.headers["X-Frame-Options"] = "SAMEORIGIN"
        response.headers["X-XSS-Protection"] = "0"
        response.headers["X-DNS-Prefetch-Control"] = "off"
        response.headers["Referrer-Policy"] = "no-referrer"
        response.headers["Cross-Origin-Resource-Policy"] = "same-origin"
        response.headers["Cross-Origin-Opener-Policy"] = "same-origin"

        if self.hsts:
            response.headers["Strict-Transport-Security"] = f"max-age={self.hsts_max_age}; includeSubDomains"

        return response


class BodySizeLimitMiddleware:
    """Reject request bodies larger than ``max_bytes`` before routing.

    A declared Content-Length is checked up front. A body without one
    (chunked transfer encoding) is read in full first, up to the limit,
    and replayed to the application only if it fits.
    """

    def __init__(self, app: ASGIApp, max_bytes: int = MAX_BODY_BYTES):
        self.app = app
        self.max_bytes = max_bytes

    async def __call__(self, scope: Scope, receive: Receive, send: Send):
        if scope["type"] != "http":
            await self.app(scope, receive, send)
            return

        content_length = Headers(scope=scope).get("content-length")
        if content_length is not None:
            try:
                size = int(content_length)
            except ValueError:
                response = JSONResponse(
                    status_code=status.HTTP_400_BAD_REQUEST,
                    content={"success": False, "message": "Invalid Content-Length header"},
                )
                await response(scope, receive, send)
                return
            if size > self.max_bytes:
                await self.reject(scope, size)(scope, receive, send)
                return
            await self.app(scope, receive, send)
            return

        messages: List[Message] = []
        received = 0
        while True:
            message = await receive()
            messages.append(message)
            if message["type"] != "http.request":
                break
            received += len(message.get("body", b""))
            if received > self.max_bytes:
                await self.reject(scope, received)(scope, receive, send)
                return
            if not message.get("more_body", False):
                break

        async def replay() -> Message:
            if messages:
                return messages.pop(0)
            return await receive()

        await self.app(scope, replay, send)

    def reject(self, scope: Scope, size: int) -> JSONResponse:
        StructuredLogger.log_event(
            "payload_too_large",
            f"Rejected body of at least {size} bytes",
            metadata={"path": scope.get("path"), "limit": self.max_bytes},
            level="WARNING",
        )
        return JSONResponse(
            status_code=413,
            content={
                "success": False,
                "message": f"Request payload too large (limit {self.max_bytes // (1024 * 1024)}MB)",
            },
        )


class ErrorResponseMiddleware(BaseHTTPMiddleware):
    """Answer unhandled exceptions inside the stack so outer middleware still sees the response"""

    def __init__(self, app, settings: Settings):
        super().__init__(app)
        self.settings = settings

    async def dispatch(self, request: Request, call_next):
        try:
            return await call_next(request)
        except Exception as e:
            return error_response(request, e, self.settings)


class RequestLoggingMiddleware(BaseHTTPMiddleware):
    """Log every request with its status and duration"""

    def __init__(self, app, metrics: RequestMetrics):
        super().__init__(app)
        self.metrics = metrics

    async def dispatch(self, request: Request, call_next):
        start_time = time.time()
        response = await call_next(request)
        duration = time.time() - start_time

        self.metrics.record_request(response.status_code, duration)
        StructuredLogger.log_event(
            "request_completed",
            f"{request.method} {request.url.path} {response.status_code}",
            metadata={
                "method": request.method,
                "path": request.url.path,
                "status_code": response.status_code,
                "duration": round(duration, 4),
                "client_ip": request.client.host if request.client else None,
            },
            level="DEBUG" if request.url.path == "/health" else "INFO",
        )
        return response


def create_limiter(settings: Settings) -> Limiter:
    """Fixed-window limiter keyed by client IP, shared by every route"""
    return Limiter(
        key_func=get_remote_address,
        application_limits=[settings.rate_limit],
        strategy="fixed-window",
        storage_uri="memory://",
        headers_enabled=False,
    )


def rate_limit_exceeded_handler(request: Request, exc: RateLimitExceeded) -> JSONResponse:
    """Structured rejection payload for clients over the limit.

    Kept synchronous: slowapi's middleware calls it without awaiting.
    """
    StructuredLogger.log_event(
        "rate_limited",
        f"Rate limit exceeded for {get_remote_address(request)}",
        metadata={"path": request.url.path, "limit": str(exc.detail)},
        level="WARNING",
    )
    return JSONResponse(
        status_code=status.HTTP_429_TOO_MANY_REQUESTS,
        content={"success": False, "message": RATE_LIMIT_MESSAGE},
    )
