from .chat import ChatMessage, ChatRequest, CompletionResponse
from .error import ErrorResponse
from .notifications import PushSubscription, SubscriptionStatus

__all__ = [
    "ErrorResponse",
    "ChatMessage",
    "ChatRequest",
    "CompletionResponse",
    "PushSubscription",
    "SubscriptionStatus",
]
