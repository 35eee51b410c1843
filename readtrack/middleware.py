"""
HTTP middleware for the reading tracker API

- CORS configuration per environment
- Request ID tracking
- Per-request log line with user, status, timing and streak
- Catch-all exception handler

Usage:
    from readtrack.middleware import setup_middleware

    app = FastAPI()
    setup_middleware(app, environment="production", cors_origins=[...])
"""

import logging
import re
import time
import uuid
from typing import Callable, List, Optional
from urllib.parse import urlencode

from fastapi import FastAPI, Request, Response, status
from fastapi.middleware.cors import CORSMiddleware
from fastapi.responses import JSONResponse
from starlette.middleware.base import BaseHTTPMiddleware

logger = logging.getLogger(__name__)


# ============================================================================
# CORS Configuration
# ============================================================================

def get_cors_config(environment: str = "development", origins: Optional[List[str]] = None) -> dict:
    """
    CORS settings for an environment.

    Explicit origins win; development falls back to the local frontends.
    """
    if environment == "production":
        return {
            "allow_origins": origins or [],
            "allow_credentials": True,
            "allow_methods": ["GET", "POST", "PATCH", "DELETE"],
            "allow_headers": ["Content-Type", "X-User-ID", "X-Request-ID"],
            "expose_headers": ["X-Request-ID"],
            "max_age": 600,
        }
    return {
        "allow_origins": origins or [
            "http://localhost:3000",
            "http://localhost:5000",
            "http://127.0.0.1:3000",
            "http://127.0.0.1:5000",
        ],
        "allow_credentials": True,
        "allow_methods": ["*"],
        "allow_headers": ["*"],
        "expose_headers": ["*"],
        "max_age": 3600,
    }


# ============================================================================
# Request ID Middleware
# ============================================================================

# Accepted client request ids: short plain tokens
REQUEST_ID_PATTERN = re.compile(r"[A-Za-z0-9._-]{1,64}")


class RequestIDMiddleware(BaseHTTPMiddleware):
    """
    Attach a request id to every request for tracing.

    A well-formed X-Request-ID from the client is kept, anything else is
    replaced by a uuid4. The id is stored on request.state and echoed back
    in the response.
    """

    async def dispatch(self, request: Request, call_next: Callable) -> Response:
        client_id = request.headers.get("X-Request-ID")
        if client_id and REQUEST_ID_PATTERN.fullmatch(client_id):
            request_id = client_id
        else:
            request_id = str(uuid.uuid4())
        request.state.request_id = request_id

        response = await call_next(request)

        response.headers["X-Request-ID"] = request_id
        return response


# ============================================================================
# Request Logging Middleware
# ============================================================================

class RequestLoggingMiddleware(BaseHTTPMiddleware):
    """
    One log line per request, written once the response is known.

    The line names the authenticated user and, for tracked routes, the daily
    streak after the request. Both are read from request.state where the
    identity and activity dependencies leave them, so unauthenticated
    requests log as "anonymous". Credential-like query values are masked.

    Level follows the outcome: 5xx is ERROR, 4xx WARNING, the rest INFO.
    Health checks log at DEBUG.
    """

    SENSITIVE_PARAMS = {
        "password",
        "token",
        "secret",
        "api_key",
        "key",
    }
    QUIET_PATHS = {"/health"}

    def _mask_sensitive_data(self, data: dict) -> dict:
        masked = {}
        for key, value in data.items():
            if any(sensitive in key.lower() for sensitive in self.SENSITIVE_PARAMS):
                masked[key] = "***MASKED***"
            else:
                masked[key] = value
        return masked

    def _target(self, request: Request) -> str:
        query = self._mask_sensitive_data(dict(request.query_params))
        if not query:
            return request.url.path
        return f"{request.url.path}?{urlencode(query)}"

    def _level(self, path: str, status_code: int) -> int:
        if status_code >= 500:
            return logging.ERROR
        if status_code >= 400:
            return logging.WARNING
        if path in self.QUIET_PATHS:
            return logging.DEBUG
        return logging.INFO

    async def dispatch(self, request: Request, call_next: Callable) -> Response:
        start_time = time.perf_counter()
        request_id = getattr(request.state, "request_id", "unknown")

        try:
            response = await call_next(request)
        except Exception:
            user_id = getattr(request.state, "user_id", None) or "anonymous"
            logger.error(
                f"{request.method} {self._target(request)} raised user={user_id}",
                extra={"request_id": request_id, "user_id": user_id},
                exc_info=True
            )
            raise

        duration_ms = round((time.perf_counter() - start_time) * 1000, 2)
        user_id = getattr(request.state, "user_id", None) or "anonymous"
        daily_streak = getattr(request.state, "daily_streak", None)

        message = f"{request.method} {self._target(request)} {response.status_code} {duration_ms}ms user={user_id}"
        if daily_streak is not None:
            message += f" streak={daily_streak}"

        logger.log(
            self._level(request.url.path, response.status_code),
            message,
            extra={
                "request_id": request_id,
                "user_id": user_id,
                "status_code": response.status_code,
                "duration_ms": duration_ms,
                "daily_streak": daily_streak,
            }
        )
        return response


# ============================================================================
# Exception Handler
# ============================================================================

async def unhandled_exception_handler(request: Request, exc: Exception) -> JSONResponse:
    """Consistent 500 body with the request id, no stack trace"""
    request_id = getattr(request.state, "request_id", "unknown")

    logger.error(
        f"Unhandled exception on {request.method} {request.url.path}: {str(exc)}",
        extra={"request_id": request_id},
        exc_info=True
    )

    return JSONResponse(
        status_code=status.HTTP_500_INTERNAL_SERVER_ERROR,
        content={
            "detail": "An unexpected error occurred. Please try again later.",
            "request_id": request_id,
        }
    )


# ============================================================================
# Setup Function
# ============================================================================

def setup_middleware(
    app: FastAPI,
    environment: str = "development",
    cors_origins: Optional[List[str]] = None,
) -> None:
    """Register CORS, request id, request logging and the 500 handler"""
    app.add_middleware(CORSMiddleware, **get_cors_config(environment, cors_origins))

    # Added last so it runs first and the id is available to the logger
    app.add_middleware(RequestLoggingMiddleware)
    app.add_middleware(RequestIDMiddleware)

    app.add_exception_handler(Exception, unhandled_exception_handler)
    logger.info(f"Middleware configured for environment: {environment}")
