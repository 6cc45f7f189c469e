from .store import InMemorySubscriptionStore, SubscriptionStore

__all__ = ["InMemorySubscriptionStore", "SubscriptionStore"]
