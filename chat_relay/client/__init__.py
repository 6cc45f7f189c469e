"""Python consumer for the relay's SSE stream."""

from .consumer import RelayClient, RelayRejected, RelayStreamError, StreamConsumer

__all__ = ["RelayClient", "RelayRejected", "RelayStreamError", "StreamConsumer"]
