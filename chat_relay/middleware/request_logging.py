"""
Request logging middleware.
Logs HTTP requests and responses for monitoring and debugging.
"""
import json
import logging
import time
from typing import Callable, Optional

from fastapi import Request, Response
from starlette.middleware.base import BaseHTTPMiddleware

logger = logging.getLogger(__name__)

SENSITIVE_FIELDS = {"password", "token", "secret", "api_key", "keys", "auth", "p256dh"}


class RequestLoggingMiddleware(BaseHTTPMiddleware):
    """Middleware for logging HTTP requests and responses."""

    def __init__(self, app, ignore_paths: tuple = (), log_bodies: bool = True):
        super().__init__(app)
        self.log_bodies = log_bodies
        self.ignore_paths = ignore_paths or (
            "/health",
            "/docs",
            "/openapi.json",
            "/redoc",
            "/favicon.ico",
        )

    async def dispatch(self, request: Request, call_next: Callable) -> Response:
        # Skip logging for ignored paths
        if request.url.path in self.ignore_paths:
            return await call_next(request)

        start_time = time.time()

        request_log = {
            "type": "request",
            "method": request.method,
            "path": request.url.path,
            "query_params": dict(request.query_params),
            "client_ip": self._get_client_ip(request),
            "user_agent": request.headers.get("user-agent"),
            "timestamp": start_time,
        }

        # Body is read (and cached on request.state) for every write request
        # so the error middleware can reuse it.
        if request.method in ("POST", "PUT", "PATCH", "DELETE"):
            body = await self._get_request_body(request)
            if body and self.log_bodies:
                request_log["body"] = body

        logger.info(json.dumps(request_log, default=str))

        response = await call_next(request)

        # For streamed responses this measures time to first byte
        process_time = time.time() - start_time

        response_log = {
            "type": "response",
            "method": request.method,
            "path": request.url.path,
            "status_code": response.status_code,
            "process_time_ms": round(process_time * 1000, 2),
            "client_ip": self._get_client_ip(request),
            "timestamp": time.time(),
        }

        if hasattr(response, "body"):
            response_log["response_size_bytes"] = len(response.body)

        if response.status_code >= 500:
            logger.error(json.dumps(response_log))
        elif response.status_code >= 400:
            logger.warning(json.dumps(response_log))
        else:
            logger.info(json.dumps(response_log))

        response.headers["X-Process-Time"] = str(process_time)

        return response

    def _get_client_ip(self, request: Request) -> str:
        """Extract client IP address from request."""
        forwarded = request.headers.get("x-forwarded-for")
        if forwarded:
            return forwarded.split(",")[0].strip()

        real_ip = request.headers.get("x-real-ip")
        if real_ip:
            return real_ip

        if request.client:
            return request.client.host

        return "unknown"

    async def _get_request_body(self, request: Request) -> Optional[dict]:
        """
        Safely extract and summarize request body.
        Returns None if body cannot be read or parsed.
        """
        try:
            if hasattr(request.state, "body"):
                body_bytes = request.state.body
            else:
                # Read body and cache it for downstream handlers
                body_bytes = await request.body()
                request.state.body = body_bytes

            if not body_bytes:
                return None

            body_data = json.loads(body_bytes.decode("utf-8"))
        except (UnicodeDecodeError, json.JSONDecodeError):
            return None

        if not isinstance(body_data, dict):
            return None

        summary = {}
        for key, value in body_data.items():
            if key.lower() in SENSITIVE_FIELDS:
                summary[key] = "***REDACTED***"
            elif key == "messages" and isinstance(value, list):
                # Conversation text stays out of the logs
                summary[key] = f"<{len(value)} messages>"
            else:
                summary[key] = value
        return summary
