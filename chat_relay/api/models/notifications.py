"""
Push subscription payloads.
"""
from typing import Any, Dict, Optional

from pydantic import BaseModel, ConfigDict


class PushSubscription(BaseModel):
    """Browser PushSubscription JSON; extra fields are kept as-is."""

    model_config = ConfigDict(extra="allow")

    endpoint: str
    keys: Optional[Dict[str, Any]] = None


class SubscriptionStatus(BaseModel):
    endpoint: str
    subscribed: bool
    created: bool = False
