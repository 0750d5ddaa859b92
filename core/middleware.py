"""
Application Middleware and Error Handlers for the Social Feed API.

This module defines the FastAPI middleware that handles cross-cutting concerns
(request correlation, error handling, performance logging, security headers,
request size limits) and the exception handlers that render every failure as
the API's standard ``{"success": false, "message": ..., "error": ...}`` body.

Key Middleware Components:
- `CorrelationMiddleware`: Assigns a correlation ID to every request and echoes
  it in the `X-Correlation-ID` response header.
- `ErrorHandlingMiddleware`: Last line of defense. Any exception that escapes
  the application is logged with its traceback and answered with a generic 500.
- `PerformanceMiddleware`: Logs request start/completion, adds `X-Process-Time`
  and warns about slow requests.
- `SecurityHeadersMiddleware`: Adds standard security headers to every response.
- `RequestValidationMiddleware`: Rejects bodies larger than the configured limit
  before they are read.

Exception Handlers (`register_exception_handlers`):
- `SocialAPIException` subclasses keep their own status code and message.
- Request schema failures become 400 ``INVALID_CONTENT``.
- Starlette HTTP errors (unknown route, wrong method) keep their status code.
"""

import time
import uuid
from typing import Callable

from fastapi import FastAPI, Request, Response
from fastapi.exceptions import RequestValidationError
from fastapi.responses import JSONResponse
from starlette.exceptions import HTTPException as StarletteHTTPException
from starlette.middleware.base import BaseHTTPMiddleware
from starlette.types import ASGIApp

from .exceptions import SocialAPIException, error_body, to_error_response
from .logging_config import get_logger, set_correlation_id

logger = get_logger("core.middleware")


class CorrelationMiddleware(BaseHTTPMiddleware):
    """Middleware to add correlation IDs to requests"""

    async def dispatch(self, request: Request, call_next: Callable) -> Response:
        correlation_id = (
            request.headers.get("X-Correlation-ID")
            or request.headers.get("X-Request-ID")
            or str(uuid.uuid4())
        )

        set_correlation_id(correlation_id)
        request.state.correlation_id = correlation_id

        response = await call_next(request)
        response.headers["X-Correlation-ID"] = correlation_id
        return response


class ErrorHandlingMiddleware(BaseHTTPMiddleware):
    """Turns unhandled exceptions into a generic 500 response"""

    async def dispatch(self, request: Request, call_next: Callable) -> Response:
        try:
            return await call_next(request)
        except Exception as e:
            logger.error(
                f"Unexpected error: {str(e)}",
                extra={
                    "error_type": type(e).__name__,
                    "path": request.url.path,
                    "method": request.method,
                },
                exc_info=True,
            )
            return JSONResponse(
                status_code=500,
                content=error_body("Internal server error", "INTERNAL_ERROR"),
            )


class PerformanceMiddleware(BaseHTTPMiddleware):
    """Middleware for performance monitoring and logging"""

    def __init__(self, app: ASGIApp, slow_request_threshold: float = 1.0):
        super().__init__(app)
        self.slow_request_threshold = slow_request_threshold

    async def dispatch(self, request: Request, call_next: Callable) -> Response:
        start_time = time.time()

        logger.info(
            f"Request started: {request.method} {request.url.path}",
            extra={
                "method": request.method,
                "path": request.url.path,
                "client_ip": request.client.host if request.client else None,
            },
        )

        response = await call_next(request)

        process_time = time.time() - start_time
        response.headers["X-Process-Time"] = str(round(process_time * 1000, 2))

        logger.info(
            f"Request completed: {request.method} {request.url.path} - {response.status_code}",
            extra={
                "method": request.method,
                "path": request.url.path,
                "status_code": response.status_code,
                "process_time_ms": round(process_time * 1000, 2),
            },
        )

        if process_time > self.slow_request_threshold:
            logger.warning(
                f"Slow request detected: {request.method} {request.url.path}",
                extra={
                    "method": request.method,
                    "path": request.url.path,
                    "process_time_ms": round(process_time * 1000, 2),
                },
            )

        return response


class SecurityHeadersMiddleware(BaseHTTPMiddleware):
    """Security headers middleware"""

    SECURITY_HEADERS = {
        "X-Content-Type-Options": "nosniff",
        "X-Frame-Options": "DENY",
        "Referrer-Policy": "strict-origin-when-cross-origin",
    }

    async def dispatch(self, request: Request, call_next: Callable) -> Response:
        response = await call_next(request)
        for header, value in self.SECURITY_HEADERS.items():
            response.headers[header] = value
        return response


class RequestValidationMiddleware(BaseHTTPMiddleware):
    """Rejects oversized request bodies"""

    def __init__(self, app: ASGIApp, max_request_size: int = 100 * 1024 * 1024):
        super().__init__(app)
        # Base64 video payloads are large
        self.max_request_size = max_request_size

    async def dispatch(self, request: Request, call_next: Callable) -> Response:
        content_length = request.headers.get("content-length")
        if content_length and content_length.isdigit():
            if int(content_length) > self.max_request_size:
                logger.warning(
                    f"Request too large: {content_length} bytes",
                    extra={
                        "content_length": int(content_length),
                        "max_size": self.max_request_size,
                        "path": request.url.path,
                    },
                )
                return JSONResponse(
                    status_code=413,
                    content=error_body(
                        f"Request size exceeds maximum allowed size of {self.max_request_size} bytes",
                        "REQUEST_TOO_LARGE",
                    ),
                )

        return await call_next(request)


async def handle_application_error(request: Request, exc: SocialAPIException) -> JSONResponse:
    log = logger.error if exc.status_code >= 500 else logger.warning
    log(
        f"Application error: {exc.message}",
        extra={
            "error_code": exc.error_code,
            "details": exc.details,
            "path": request.url.path,
            "method": request.method,
        },
    )
    return to_error_response(exc)


async def handle_request_validation_error(
    request: Request, exc: RequestValidationError
) -> JSONResponse:
    errors = exc.errors()
    if errors:
        first = errors[0]
        field = ".".join(str(part) for part in first.get("loc", ()) if part != "body")
        message = f"{field}: {first.get('msg')}" if field else str(first.get("msg"))
    else:
        message = "Invalid request"

    logger.warning(
        f"Request validation failed: {message}",
        extra={"path": request.url.path, "method": request.method},
    )
    return JSONResponse(status_code=400, content=error_body(message, "INVALID_CONTENT"))


async def handle_http_error(request: Request, exc: StarletteHTTPException) -> JSONResponse:
    logger.warning(
        f"HTTP exception: {exc.status_code} - {exc.detail}",
        extra={"status_code": exc.status_code, "path": request.url.path},
    )
    return JSONResponse(
        status_code=exc.status_code,
        content=error_body(str(exc.detail), f"HTTP_{exc.status_code}"),
        headers=getattr(exc, "headers", None),
    )


def register_exception_handlers(app: FastAPI):
    app.add_exception_handler(SocialAPIException, handle_application_error)
    app.add_exception_handler(RequestValidationError, handle_request_validation_error)
    app.add_exception_handler(StarletteHTTPException, handle_http_error)
