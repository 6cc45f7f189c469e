"""Upstream LLM provider access."""

from .client import UpstreamClient, UpstreamStream
from .exceptions import (
    MalformedFrame,
    RelayError,
    UpstreamRejected,
    UpstreamTimeout,
    UpstreamUnavailable,
)

__all__ = [
    "MalformedFrame",
    "RelayError",
    "UpstreamClient",
    "UpstreamRejected",
    "UpstreamStream",
    "UpstreamTimeout",
    "UpstreamUnavailable",
]
