"""
Upstream chat-completion client.

Talks to an OpenAI-compatible provider (OpenRouter by default) over httpx.
One attempt per call: failures are raised to the caller, never retried.
"""
import json
import logging
from typing import Any, AsyncIterator, Dict, List, Optional, Sequence, Union

import httpx
from pydantic import BaseModel

from chat_relay.config.settings import Settings
from chat_relay.services.upstream.exceptions import (
    UpstreamRejected,
    UpstreamUnavailable,
)

logger = logging.getLogger(__name__)

MessageLike = Union[BaseModel, Dict[str, Any]]


def _serialize_messages(messages: Sequence[MessageLike]) -> List[Dict[str, Any]]:
    return [
        message.model_dump() if isinstance(message, BaseModel) else dict(message)
        for message in messages
    ]


def _error_message(status_code: int, body: bytes) -> tuple:
    """Pull a readable message out of a provider error body.

    Returns:
        (message, parsed_body) where parsed_body is {} if the body is not JSON
    """
    text = body.decode("utf-8", errors="replace").strip()
    try:
        data = json.loads(text) if text else {}
    except json.JSONDecodeError:
        return (text or f"HTTP {status_code}", {"raw": text})

    if not isinstance(data, dict):
        return (text, {"raw": data})

    error = data.get("error")
    if isinstance(error, dict) and error.get("message"):
        return (str(error["message"]), data)
    if isinstance(error, str):
        return (error, data)
    if data.get("message"):
        return (str(data["message"]), data)
    return (text or f"HTTP {status_code}", data)


class UpstreamStream:
    """An open streaming response from the provider.

    Owns the underlying httpx response; `aclose` releases it and may be
    called any number of times.
    """

    def __init__(self, response: httpx.Response, provider: str, model: str):
        self._response = response
        self.provider = provider
        self.model = model
        self.closed = False

    @property
    def status_code(self) -> int:
        return self._response.status_code

    async def aiter_bytes(self) -> AsyncIterator[bytes]:
        try:
            async for chunk in self._response.aiter_bytes():
                yield chunk
        except (httpx.TransportError, httpx.StreamError) as e:
            raise UpstreamUnavailable(
                f"Upstream stream failed: {e}",
                provider=self.provider,
                model=self.model,
            ) from e

    async def aclose(self) -> None:
        if self.closed:
            return
        self.closed = True
        await self._response.aclose()


class UpstreamClient:
    """Client for the provider's chat-completions endpoint."""

    def __init__(
        self,
        base_url: str,
        api_key: str,
        default_model: str,
        provider: str = "openrouter",
        extra_headers: Optional[Dict[str, str]] = None,
        connect_timeout: float = 10.0,
        idle_timeout: float = 30.0,
        http_client: Optional[httpx.AsyncClient] = None,
    ):
        """
        Initialize upstream client.

        Args:
            base_url: Provider API root, e.g. https://openrouter.ai/api/v1
            api_key: Bearer credential
            default_model: Model used when a request does not name one
            provider: Provider label for logs and errors
            extra_headers: Provider-specific headers sent with every request
            connect_timeout: Seconds allowed to establish the connection
            idle_timeout: Seconds allowed between two reads of the body
            http_client: Shared httpx client; one is created if omitted
        """
        self.endpoint = base_url.rstrip("/") + "/chat/completions"
        self.api_key = api_key
        self.default_model = default_model
        self.provider = provider
        self.extra_headers = extra_headers or {}
        self.timeout = httpx.Timeout(
            connect=connect_timeout,
            read=idle_timeout,
            write=connect_timeout,
            pool=connect_timeout,
        )
        self._owns_client = http_client is None
        self._http = http_client or httpx.AsyncClient(timeout=self.timeout)

    @classmethod
    def from_settings(
        cls, settings: Settings, http_client: Optional[httpx.AsyncClient] = None
    ) -> "UpstreamClient":
        headers = {}
        if settings.upstream_referer:
            headers["HTTP-Referer"] = settings.upstream_referer
        if settings.upstream_title:
            headers["X-Title"] = settings.upstream_title

        return cls(
            base_url=settings.upstream_base_url,
            api_key=settings.openrouter_api_key,
            default_model=settings.default_model,
            extra_headers=headers,
            connect_timeout=settings.upstream_connect_timeout,
            idle_timeout=settings.upstream_idle_timeout,
            http_client=http_client,
        )

    def _headers(self, stream: bool) -> Dict[str, str]:
        headers = {
            "Authorization": f"Bearer {self.api_key}",
            "Content-Type": "application/json",
            "Accept": "text/event-stream" if stream else "application/json",
        }
        headers.update(self.extra_headers)
        return headers

    async def _send(
        self, messages: Sequence[MessageLike], model: str, stream: bool
    ) -> httpx.Response:
        payload = {
            "model": model,
            "messages": _serialize_messages(messages),
            "stream": stream,
        }
        request = self._http.build_request(
            "POST",
            self.endpoint,
            json=payload,
            headers=self._headers(stream),
            timeout=self.timeout,
        )
        try:
            response = await self._http.send(request, stream=True)
        except httpx.TransportError as e:
            logger.error(f"Upstream {self.provider} unreachable: {e}")
            raise UpstreamUnavailable(
                f"Could not reach upstream provider: {e}",
                provider=self.provider,
                model=model,
            ) from e

        if response.is_success:
            return response

        try:
            body = await response.aread()
        except httpx.TransportError:
            body = b""
        finally:
            await response.aclose()

        message, data = _error_message(response.status_code, body)
        logger.warning(
            "Upstream rejected request",
            extra={
                "provider": self.provider,
                "model": model,
                "status_code": response.status_code,
                "upstream_message": message,
            },
        )
        raise UpstreamRejected(
            message,
            status_code=response.status_code,
            provider=self.provider,
            model=model,
            response_data=data,
        )

    async def open_stream(
        self, messages: Sequence[MessageLike], model: Optional[str] = None
    ) -> UpstreamStream:
        """
        Open a streaming chat completion.

        Args:
            messages: Ordered conversation, oldest first
            model: Provider model id; falls back to the default model

        Returns:
            UpstreamStream positioned at the start of the SSE body

        Raises:
            UpstreamUnavailable: The provider could not be reached
            UpstreamRejected: The provider answered with a non-2xx status
        """
        model = model or self.default_model
        response = await self._send(messages, model, stream=True)
        logger.info(f"Upstream stream opened: provider={self.provider} model={model}")
        return UpstreamStream(response, provider=self.provider, model=model)

    async def complete(
        self, messages: Sequence[MessageLike], model: Optional[str] = None
    ) -> str:
        """Run a single non-streaming completion and return the assistant text."""
        model = model or self.default_model
        response = await self._send(messages, model, stream=False)
        try:
            body = await response.aread()
        except httpx.TransportError as e:
            raise UpstreamUnavailable(
                f"Upstream response failed: {e}",
                provider=self.provider,
                model=model,
            ) from e
        finally:
            await response.aclose()

        try:
            data = json.loads(body)
            content = data["choices"][0]["message"]["content"]
        except (json.JSONDecodeError, KeyError, IndexError, TypeError) as e:
            raise UpstreamRejected(
                f"Upstream returned an unusable completion: {e}",
                status_code=502,
                provider=self.provider,
                model=model,
            ) from e

        if not content:
            raise UpstreamRejected(
                "Upstream returned an empty completion",
                status_code=502,
                provider=self.provider,
                model=model,
                response_data=data,
            )
        return content

    async def aclose(self) -> None:
        if self._owns_client:
            await self._http.aclose()

    async def __aenter__(self) -> "UpstreamClient":
        return self

    async def __aexit__(self, exc_type, exc_val, exc_tb) -> None:
        await self.aclose()
