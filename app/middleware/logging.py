"""
Access Logging Middleware

Logs every API request with a correlation id, status and duration.
"""

import time
import uuid
from typing import Callable

from fastapi import Request, Response
from starlette.middleware.base import BaseHTTPMiddleware
from starlette.types import ASGIApp

from app.helpers.network import get_client_ip
from app.logging import get_logger

logger = get_logger("access")

SKIP_PATHS = {"/", "/api/health", "/docs", "/redoc", "/openapi.json"}


class AccessLoggingMiddleware(BaseHTTPMiddleware):
    """
    Captures:
    - Request details (path, method, client IP, user agent)
    - Performance (duration)
    - Correlation (X-Request-ID, reused when the client sends one)
    """

    def __init__(self, app: ASGIApp, enabled: bool = True):
        super().__init__(app)
        self.enabled = enabled

    async def dispatch(self, request: Request, call_next: Callable) -> Response:
        request_id = request.headers.get("x-request-id") or str(uuid.uuid4())
        request.state.request_id = request_id

        if not self.enabled or request.url.path in SKIP_PATHS:
            response = await call_next(request)
            response.headers["X-Request-ID"] = request_id
            return response

        start_time = time.perf_counter()
        response = await call_next(request)
        duration = round(time.perf_counter() - start_time, 4)

        logger.request(
            "API request",
            method=request.method,
            path=request.url.path,
            status_code=response.status_code,
            duration=duration,
            ip=get_client_ip(request),
            request_id=request_id,
            user_agent=request.headers.get("user-agent", ""),
        )

        response.headers["X-Request-ID"] = request_id
        return response
