"""
Relay re-framer.

Reads the provider's SSE byte stream and re-emits it in the relay's own
format, so browser code never depends on the provider's chunk schema.

A ChatRelay serves exactly one request:

    IDLE -> STREAMING -> DONE | ABORTED | UPSTREAM_ERROR

Frames are produced only while STREAMING. Whichever terminal state is
reached, the upstream response is released exactly once.
"""
import asyncio
import logging
from dataclasses import asdict, dataclass
from enum import Enum
from typing import AsyncGenerator, AsyncIterator, Awaitable, Callable, Optional, Protocol

from chat_relay.services.relay.sse import (
    SSELineBuffer,
    encode_content_frame,
    encode_done_frame,
    encode_error_frame,
    extract_delta_content,
    is_done,
    parse_data_line,
)
from chat_relay.services.upstream.exceptions import (
    MalformedFrame,
    RelayError,
    UpstreamRejected,
    UpstreamTimeout,
)

logger = logging.getLogger(__name__)


class RelayState(Enum):
    IDLE = "idle"
    STREAMING = "streaming"
    DONE = "done"
    ABORTED = "aborted"
    UPSTREAM_ERROR = "upstream_error"


TERMINAL_STATES = frozenset(
    {RelayState.DONE, RelayState.ABORTED, RelayState.UPSTREAM_ERROR}
)


class ByteStream(Protocol):
    """What the relay needs from an upstream response."""

    provider: str
    model: str

    def aiter_bytes(self) -> AsyncIterator[bytes]:
        ...

    async def aclose(self) -> None:
        ...


@dataclass
class RelayStats:
    fragments: int = 0
    characters: int = 0
    malformed_frames: int = 0
    ignored_frames: int = 0


class ChatRelay:
    """Translate one upstream completion stream into relay SSE frames."""

    def __init__(
        self,
        upstream: ByteStream,
        idle_timeout: Optional[float] = 30.0,
        is_disconnected: Optional[Callable[[], Awaitable[bool]]] = None,
    ):
        """
        Args:
            upstream: Open upstream stream; the relay takes ownership of it
            idle_timeout: Max seconds to wait for the next upstream read,
                None to wait forever
            is_disconnected: Optional probe checked before each read, e.g.
                starlette's Request.is_disconnected
        """
        self.upstream = upstream
        self.idle_timeout = idle_timeout
        self._is_disconnected = is_disconnected
        self.state = RelayState.IDLE
        self.stats = RelayStats()
        self.error: Optional[RelayError] = None
        self._lines = SSELineBuffer()
        self._chunks: Optional[AsyncIterator[bytes]] = None
        self._closed = False

    def _transition(self, new_state: RelayState) -> None:
        if self.state in TERMINAL_STATES:
            return
        logger.debug(f"Relay state {self.state.value} -> {new_state.value}")
        self.state = new_state

    async def _read_chunk(self) -> Optional[bytes]:
        try:
            return await self._chunks.__anext__()
        except StopAsyncIteration:
            return None

    async def _next_chunk(self) -> Optional[bytes]:
        """Next upstream chunk, or None once the upstream body has ended."""
        if self.idle_timeout is None:
            return await self._read_chunk()
        try:
            return await asyncio.wait_for(self._read_chunk(), self.idle_timeout)
        except asyncio.TimeoutError as e:
            raise UpstreamTimeout(
                self.idle_timeout,
                provider=self.upstream.provider,
                model=self.upstream.model,
            ) from e

    def _translate(self, line: str) -> Optional[str]:
        """Map one upstream line to a relay frame, or None if nothing to send."""
        payload = parse_data_line(line)
        if payload is None:
            return None

        if is_done(payload):
            return self._done_frame()

        try:
            content = extract_delta_content(payload)
        except MalformedFrame as e:
            self.stats.malformed_frames += 1
            logger.warning(
                "Skipping malformed upstream frame",
                extra={"error": str(e), "raw_data": e.raw_data[:200]},
            )
            return None

        if content is None:
            self.stats.ignored_frames += 1
            return None

        self.stats.fragments += 1
        self.stats.characters += len(content)
        return encode_content_frame(content)

    def _done_frame(self) -> str:
        """Terminal sentinel; a stream that produced no text is an upstream error."""
        if self.stats.fragments == 0:
            raise UpstreamRejected(
                "Upstream returned an empty completion",
                status_code=502,
                provider=self.upstream.provider,
                model=self.upstream.model,
            )
        self._transition(RelayState.DONE)
        return encode_done_frame()

    async def frames(self) -> AsyncGenerator[str, None]:
        """
        Yield relay SSE frames until the upstream completes or fails.

        Always ends with `[DONE]` on success and with an error frame on
        upstream failure, including a stream that ended without any text.
        A disconnecting client (generator closed or task cancelled) releases
        the upstream and reports nothing.
        """
        if self.state is not RelayState.IDLE:
            raise RuntimeError("ChatRelay instances are single-use")

        self._transition(RelayState.STREAMING)
        self._chunks = self.upstream.aiter_bytes().__aiter__()

        try:
            while True:
                if self._is_disconnected is not None and await self._is_disconnected():
                    logger.info("Client disconnected; cancelling upstream read")
                    self._transition(RelayState.ABORTED)
                    return

                chunk = await self._next_chunk()
                if chunk is None:
                    break

                for line in self._lines.feed(chunk):
                    frame = self._translate(line)
                    if frame is None:
                        continue
                    yield frame
                    if self.state is RelayState.DONE:
                        return

            for line in self._lines.flush():
                frame = self._translate(line)
                if frame is None:
                    continue
                yield frame
                if self.state is RelayState.DONE:
                    return

            logger.info("Upstream ended without [DONE]; closing relay stream")
            yield self._done_frame()

        except RelayError as e:
            self.error = e
            self._transition(RelayState.UPSTREAM_ERROR)
            logger.error(
                f"Upstream failed mid-stream: {e}",
                extra={
                    "provider": self.upstream.provider,
                    "model": self.upstream.model,
                    "error_type": getattr(e, "error_type", type(e).__name__),
                    "fragments_sent": self.stats.fragments,
                },
            )
            yield encode_error_frame(getattr(e, "error_type", "upstream_error"), e.message)

        except (asyncio.CancelledError, GeneratorExit):
            self._transition(RelayState.ABORTED)
            logger.info("Relay stream closed by client; cancelling upstream read")
            raise

        finally:
            await self.close()
            logger.info(
                f"Relay finished in state {self.state.value}",
                extra={"model": self.upstream.model, **asdict(self.stats)},
            )

    async def close(self) -> None:
        """Release the upstream connection; later calls are no-ops."""
        if self._closed:
            return
        self._closed = True
        self._transition(RelayState.ABORTED)

        chunks = self._chunks
        try:
            if chunks is not None and hasattr(chunks, "aclose"):
                await chunks.aclose()
        finally:
            await self.upstream.aclose()
