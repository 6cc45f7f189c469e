"""
Relay chat endpoints.

Streams LLM completions to browsers as Server-Sent Events.
"""
from fastapi import APIRouter, Depends, Request, status
from fastapi.responses import StreamingResponse
from starlette.background import BackgroundTask

from chat_relay.api.dependencies.relay import get_relay_controller
from chat_relay.api.models import ChatRequest, CompletionResponse, ErrorResponse
from chat_relay.controllers.chat_controller import RelayController

SSE_HEADERS = {
    "Cache-Control": "no-cache",
    "Connection": "keep-alive",
    "X-Accel-Buffering": "no",
}

ERROR_RESPONSES = {
    400: {"model": ErrorResponse, "description": "Invalid request"},
    429: {"model": ErrorResponse, "description": "Upstream rate limit or quota"},
    502: {"model": ErrorResponse, "description": "Upstream unavailable"},
    500: {"model": ErrorResponse, "description": "Internal server error"},
}

# ============================================================================
# Router
# ============================================================================

router = APIRouter()


# ============================================================================
# Endpoints
# ============================================================================


@router.post("/relay/chat", status_code=status.HTTP_200_OK, responses=ERROR_RESPONSES)
async def relay_chat(
    request: ChatRequest,
    http_request: Request,
    controller: RelayController = Depends(get_relay_controller),
) -> StreamingResponse:
    """
    Stream a chat completion as SSE.

    Frames are `data: {"content": "..."}` per fragment and `data: [DONE]`
    at the end. The upstream request is opened before streaming starts, so a
    provider rejection (e.g. 429) is returned as an ordinary error response.
    """
    controller._validate_request(request)
    relay = await controller.open_relay(
        request, is_disconnected=http_request.is_disconnected
    )

    return StreamingResponse(
        relay.frames(),
        media_type="text/event-stream",
        headers=SSE_HEADERS,
        background=BackgroundTask(relay.close),
    )


@router.post(
    "/relay/chat/complete",
    response_model=CompletionResponse,
    responses=ERROR_RESPONSES,
)
async def relay_chat_complete(
    request: ChatRequest,
    controller: RelayController = Depends(get_relay_controller),
) -> CompletionResponse:
    """Return the whole completion in one JSON response."""
    controller._validate_request(request)
    return await controller.complete(request)
