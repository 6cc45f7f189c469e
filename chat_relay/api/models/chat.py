"""
Request and response models for relay chat endpoints.
"""
from typing import List, Literal, Optional

from pydantic import BaseModel, Field


class ChatMessage(BaseModel):
    """A single conversation turn."""

    role: Literal["system", "user", "assistant"]
    content: str


class ChatRequest(BaseModel):
    """Payload for relay chat.

    - messages: Full conversation, oldest first. The relay keeps no history,
      so callers resend everything on each turn.
    - model: Optional provider model id (defaults to settings.default_model)
    """
    messages: List[ChatMessage] = Field(min_length=1)
    model: Optional[str] = None


class CompletionResponse(BaseModel):
    """Non-streaming completion result."""

    content: str
    model: str
