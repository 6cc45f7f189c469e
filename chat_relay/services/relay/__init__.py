"""Streaming chat relay: upstream SSE in, relay SSE out."""

from .reframer import ChatRelay, RelayState, RelayStats
from .sse import DONE_SENTINEL, SSELineBuffer

__all__ = [
    "ChatRelay",
    "DONE_SENTINEL",
    "RelayState",
    "RelayStats",
    "SSELineBuffer",
]
