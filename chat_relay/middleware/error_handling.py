"""
Error handling middleware.
Centralizes error handling and response formatting for the relay.
"""
import json
import logging
import traceback
from typing import Callable, Optional

from fastapi import Request, Response, status
from fastapi.responses import JSONResponse
from pydantic import ValidationError
from starlette.middleware.base import BaseHTTPMiddleware

from chat_relay.services.upstream.exceptions import UpstreamRejected, UpstreamUnavailable

logger = logging.getLogger(__name__)


def upstream_status(error: UpstreamRejected) -> int:
    """HTTP status to return for a provider rejection.

    Client and server error codes are passed through so callers can tell a
    rate limit (429) from a bad model name (400/404); anything else is 502.
    """
    if error.status_code is not None and 400 <= error.status_code < 600:
        return error.status_code
    return status.HTTP_502_BAD_GATEWAY


class ErrorHandlingMiddleware(BaseHTTPMiddleware):
    """Middleware for centralized error handling and logging."""

    async def _get_request_body(self, request: Request) -> Optional[dict]:
        """
        Safely extract request body for error logging.
        """
        try:
            if hasattr(request.state, "body"):
                body_bytes = request.state.body
            else:
                body_bytes = await request.body()
                request.state.body = body_bytes

            if not body_bytes:
                return None

            body_str = body_bytes.decode("utf-8")
            return json.loads(body_str)
        except (UnicodeDecodeError, json.JSONDecodeError, RuntimeError):
            return None

    async def dispatch(self, request: Request, call_next: Callable) -> Response:
        try:
            response = await call_next(request)
            return response

        except ValidationError as e:
            body = await self._get_request_body(request)

            logger.warning(
                "Validation error",
                extra={
                    "path": request.url.path,
                    "method": request.method,
                    "errors": e.errors(),
                    "request_body": body,
                },
            )
            return JSONResponse(
                status_code=status.HTTP_422_UNPROCESSABLE_ENTITY,
                content={
                    "error": "Validation Error",
                    "message": "Invalid input data",
                    "details": {"errors": json.loads(e.json())},
                },
            )

        except UpstreamRejected as e:
            logger.warning(
                "Upstream rejected request",
                extra={
                    "path": request.url.path,
                    "method": request.method,
                    "provider": e.provider,
                    "model": e.model,
                    "status_code": e.status_code,
                },
            )
            return JSONResponse(
                status_code=upstream_status(e),
                content={
                    "error": "Upstream Rejected",
                    "message": e.message,
                    "details": {
                        "upstream_status": e.status_code,
                        "provider": e.provider,
                        "model": e.model,
                    },
                },
            )

        except UpstreamUnavailable as e:
            logger.error(
                "Upstream unavailable",
                extra={
                    "path": request.url.path,
                    "method": request.method,
                    "provider": e.provider,
                    "model": e.model,
                    "error": str(e),
                },
            )
            return JSONResponse(
                status_code=status.HTTP_502_BAD_GATEWAY,
                content={
                    "error": "Upstream Unavailable",
                    "message": "The language model provider could not be reached. Please try again.",
                    "details": {"provider": e.provider, "model": e.model},
                },
            )

        except Exception as e:
            body = await self._get_request_body(request)

            tb_str = traceback.format_exc()

            from chat_relay.config.settings import get_settings

            is_production = get_settings().is_production

            logger.error(
                "Unhandled error",
                extra={
                    "path": request.url.path,
                    "method": request.method,
                    "error": str(e),
                    "error_type": type(e).__name__,
                    "request_body": body,
                    "traceback": tb_str if not is_production else None,
                },
                exc_info=True,
            )

            # Don't expose internal errors in production
            if is_production:
                message = "An internal error occurred. Please try again later."
            else:
                message = f"{type(e).__name__}: {str(e)}"

            response_content = {
                "error": "Internal Server Error",
                "message": message,
            }

            if not is_production:
                response_content["details"] = {"traceback": tb_str}

            return JSONResponse(
                status_code=status.HTTP_500_INTERNAL_SERVER_ERROR,
                content=response_content,
            )
