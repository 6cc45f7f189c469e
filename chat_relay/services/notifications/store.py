"""
Push subscription registry.

Subscriptions are opaque to the relay: a browser PushSubscription JSON keyed
by its endpoint URL. Persistence is left to the store implementation.
"""
import asyncio
from typing import Any, Dict, List, Protocol


class SubscriptionStore(Protocol):
    """Interface for registering push subscriptions."""

    async def add(self, key: str, subscription: Dict[str, Any]) -> bool:
        """Store a subscription. Returns False if the key was already present."""
        ...

    async def remove(self, key: str) -> bool:
        """Drop a subscription. Returns False if the key was unknown."""
        ...

    async def list(self) -> List[Dict[str, Any]]:
        """Return all subscriptions in registration order."""
        ...


class InMemorySubscriptionStore:
    """Process-local store; contents are lost on restart."""

    def __init__(self):
        self._items: Dict[str, Dict[str, Any]] = {}
        self._lock = asyncio.Lock()

    async def add(self, key: str, subscription: Dict[str, Any]) -> bool:
        async with self._lock:
            is_new = key not in self._items
            self._items[key] = dict(subscription)
            return is_new

    async def remove(self, key: str) -> bool:
        async with self._lock:
            return self._items.pop(key, None) is not None

    async def list(self) -> List[Dict[str, Any]]:
        async with self._lock:
            return [dict(item) for item in self._items.values()]
