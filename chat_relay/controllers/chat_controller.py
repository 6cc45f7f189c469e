"""
Relay controller for chat functionality.

Opens the upstream completion and hands the open stream to a ChatRelay.
"""
import logging
from typing import Awaitable, Callable, Optional

from fastapi import HTTPException, status

from chat_relay.api.models.chat import ChatRequest, CompletionResponse
from chat_relay.config.settings import Settings
from chat_relay.services.relay import ChatRelay
from chat_relay.services.upstream import UpstreamClient

logger = logging.getLogger(__name__)


class RelayController:
    """Controller for relay chat operations."""

    def __init__(self, upstream: UpstreamClient, settings: Settings):
        self.upstream = upstream
        self.settings = settings

    def _validate_request(self, request: ChatRequest) -> None:
        """
        Validate chat request.

        Args:
            request: ChatRequest with messages and optional model

        Raises:
            HTTPException 400: If the last message has no content
        """
        if not request.messages[-1].content.strip():
            raise HTTPException(
                status_code=status.HTTP_400_BAD_REQUEST,
                detail="last message content cannot be empty",
            )

    async def open_relay(
        self,
        request: ChatRequest,
        is_disconnected: Optional[Callable[[], Awaitable[bool]]] = None,
    ) -> ChatRelay:
        """
        Open the upstream stream and wrap it in a relay.

        Called before the StreamingResponse is created, so upstream
        rejections and connection failures still become plain HTTP errors.

        Raises:
            UpstreamUnavailable: Provider unreachable
            UpstreamRejected: Provider returned non-2xx
        """
        stream = await self.upstream.open_stream(request.messages, request.model)
        logger.info(
            f"Relaying {len(request.messages)} messages to model {stream.model}"
        )
        return ChatRelay(
            stream,
            idle_timeout=self.settings.upstream_idle_timeout,
            is_disconnected=is_disconnected,
        )

    async def complete(self, request: ChatRequest) -> CompletionResponse:
        """Single-shot completion for clients that cannot read SSE."""
        model = request.model or self.upstream.default_model
        content = await self.upstream.complete(request.messages, model)
        return CompletionResponse(content=content, model=model)
