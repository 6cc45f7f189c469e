"""
Error taxonomy for the chat relay.

Every failure carries enough context (provider, model, upstream status) for
the error middleware to build a response and for logs to be useful:
- UpstreamUnavailable: network, DNS, connect or idle-timeout failures
- UpstreamRejected: the provider answered with a non-2xx status
- MalformedFrame: a single upstream SSE line could not be parsed
"""

from __future__ import annotations

from typing import Any, Dict, Optional


class RelayError(Exception):
    """Base relay error with upstream context."""

    def __init__(
        self,
        message: str,
        provider: str = "unknown",
        model: str = "unknown",
        status_code: Optional[int] = None,
        response_data: Optional[Dict[str, Any]] = None,
    ):
        super().__init__(message)
        self.message = message
        self.provider = provider
        self.model = model
        self.status_code = status_code
        self.response_data = response_data or {}


class UpstreamUnavailable(RelayError):
    """The provider could not be reached or stopped responding."""

    error_type = "upstream_unavailable"


class UpstreamTimeout(UpstreamUnavailable):
    """No bytes arrived from the provider within the idle timeout."""

    error_type = "upstream_timeout"

    def __init__(self, idle_timeout: float, **kwargs):
        super().__init__(
            f"Upstream sent no data for {idle_timeout:g}s", **kwargs
        )
        self.idle_timeout = idle_timeout


class UpstreamRejected(RelayError):
    """The provider returned a non-2xx response."""

    error_type = "upstream_rejected"

    def __init__(self, message: str, status_code: int, **kwargs):
        super().__init__(message, status_code=status_code, **kwargs)


class MalformedFrame(RelayError):
    """A single upstream SSE data line is not valid JSON."""

    error_type = "malformed_frame"

    def __init__(self, message: str, raw_data: str = ""):
        super().__init__(message)
        self.raw_data = raw_data
