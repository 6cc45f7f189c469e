"""
Client side of the relay: read `/relay/chat` SSE progressively.

StreamConsumer is transport-agnostic (feed it bytes as they arrive);
RelayClient wires it to an httpx streaming request.
"""
import json
import logging
from typing import Any, AsyncIterable, Callable, Dict, List, Optional, Sequence

import httpx

from chat_relay.services.relay.sse import SSELineBuffer, is_done, parse_data_line

logger = logging.getLogger(__name__)

FragmentCallback = Callable[[str], None]
CompleteCallback = Callable[[str], None]


class RelayStreamError(Exception):
    """The relay reported an upstream failure inside the stream."""

    def __init__(self, message: str, error_type: str = "upstream_error"):
        super().__init__(message)
        self.message = message
        self.error_type = error_type


class RelayRejected(Exception):
    """The relay refused the request before streaming started."""

    def __init__(self, message: str, status_code: int, details: Optional[Dict[str, Any]] = None):
        super().__init__(f"{status_code}: {message}")
        self.message = message
        self.status_code = status_code
        self.details = details or {}


class StreamConsumer:
    """
    Accumulate relay SSE frames into the full assistant message.

    Callbacks:
        on_fragment(fragment): every content fragment, in arrival order
        on_complete(full_text): exactly once, on `[DONE]` or when the
            stream ends without it
        on_error(RelayStreamError): on an error frame, or when the stream
            ends without a single fragment; completion is then never
            reported. Without on_error the error is raised from
            `finish`/`consume` instead.
    """

    def __init__(
        self,
        on_fragment: Optional[FragmentCallback] = None,
        on_complete: Optional[CompleteCallback] = None,
        on_error: Optional[Callable[[RelayStreamError], None]] = None,
    ):
        self.on_fragment = on_fragment
        self.on_complete = on_complete
        self.on_error = on_error
        self.fragments: List[str] = []
        self.finished = False
        self.saw_sentinel = False
        self.error: Optional[RelayStreamError] = None
        self._lines = SSELineBuffer()

    @property
    def full_text(self) -> str:
        return "".join(self.fragments)

    def feed(self, data: bytes) -> None:
        """Process one chunk of the response body."""
        if self.finished:
            return
        for line in self._lines.feed(data):
            self._handle_line(line)
            if self.finished:
                return

    def finish(self) -> str:
        """Finalize after the body ended; returns the accumulated text."""
        if not self.finished:
            for line in self._lines.flush():
                self._handle_line(line)
                if self.finished:
                    break
        if not self.finished:
            logger.warning("Relay stream ended without [DONE]; keeping partial text")
            self._complete()

        if self.error is not None and self.on_error is None:
            raise self.error
        return self.full_text

    async def consume(self, chunks: AsyncIterable[bytes]) -> str:
        async for chunk in chunks:
            self.feed(chunk)
            if self.finished:
                break
        return self.finish()

    def _handle_line(self, line: str) -> None:
        payload = parse_data_line(line)
        if payload is None:
            return

        if is_done(payload):
            self.saw_sentinel = True
            self._complete()
            return

        try:
            data = json.loads(payload)
        except json.JSONDecodeError:
            logger.warning(f"Ignoring unparsable relay frame: {payload[:200]!r}")
            return
        if not isinstance(data, dict):
            return

        error = data.get("error")
        if error:
            if isinstance(error, dict):
                self._fail(
                    RelayStreamError(
                        error.get("message") or "Relay stream failed",
                        error_type=error.get("type") or "upstream_error",
                    )
                )
            else:
                self._fail(RelayStreamError(str(error)))
            return

        content = data.get("content")
        if isinstance(content, str) and content:
            self.fragments.append(content)
            if self.on_fragment is not None:
                self.on_fragment(content)

    def _complete(self) -> None:
        if not self.fragments:
            self._fail(
                RelayStreamError("Relay stream ended without any text", error_type="empty_stream")
            )
            return
        self.finished = True
        if self.on_complete is not None:
            self.on_complete(self.full_text)

    def _fail(self, error: RelayStreamError) -> None:
        self.finished = True
        self.error = error
        if self.on_error is not None:
            self.on_error(error)


class RelayClient:
    """Minimal async client for a running relay."""

    def __init__(
        self,
        base_url: str,
        http_client: Optional[httpx.AsyncClient] = None,
        timeout: float = 60.0,
    ):
        self.base_url = base_url.rstrip("/")
        self._owns_client = http_client is None
        self._http = http_client or httpx.AsyncClient(timeout=timeout)

    async def stream_chat(
        self,
        messages: Sequence[Dict[str, str]],
        model: Optional[str] = None,
        on_fragment: Optional[FragmentCallback] = None,
    ) -> str:
        """
        Send a conversation to `/relay/chat` and return the full reply.

        Raises:
            RelayRejected: non-2xx status; no fragment has been delivered
            RelayStreamError: the relay was unreachable, dropped the
                connection before any text, reported an upstream failure
                mid-stream, or ended without any text
        """
        payload: Dict[str, Any] = {"messages": list(messages)}
        if model:
            payload["model"] = model

        consumer = StreamConsumer(on_fragment=on_fragment)
        try:
            async with self._http.stream(
                "POST", f"{self.base_url}/relay/chat", json=payload
            ) as response:
                if not response.is_success:
                    body = await response.aread()
                    raise _rejection(response.status_code, body)
                async for chunk in response.aiter_bytes():
                    consumer.feed(chunk)
                    if consumer.finished:
                        break
        except httpx.TransportError as e:
            if consumer.fragments:
                logger.warning(f"Relay stream interrupted: {e}")
            else:
                raise RelayStreamError(
                    f"Relay connection failed before any text: {e}", error_type="relay_unavailable"
                ) from e
        return consumer.finish()

    async def aclose(self) -> None:
        if self._owns_client:
            await self._http.aclose()

    async def __aenter__(self) -> "RelayClient":
        return self

    async def __aexit__(self, exc_type, exc_val, exc_tb) -> None:
        await self.aclose()


def _rejection(status_code: int, body: bytes) -> RelayRejected:
    try:
        data = json.loads(body) if body else {}
    except json.JSONDecodeError:
        return RelayRejected(body.decode("utf-8", errors="replace"), status_code)
    if isinstance(data, dict):
        return RelayRejected(
            str(data.get("message") or data.get("detail") or data.get("error") or ""),
            status_code,
            details=data.get("details") if isinstance(data.get("details"), dict) else None,
        )
    return RelayRejected(str(data), status_code)
