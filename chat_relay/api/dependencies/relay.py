"""
Dependencies for relay endpoints.

The shared UpstreamClient and SubscriptionStore live on app.state; they are
created in the application lifespan, or lazily on first use.
"""
import logging

from fastapi import Depends, Request

from chat_relay.config.settings import Settings, get_settings
from chat_relay.controllers.chat_controller import RelayController
from chat_relay.services.notifications import InMemorySubscriptionStore, SubscriptionStore
from chat_relay.services.upstream import UpstreamClient

logger = logging.getLogger(__name__)


def get_upstream_client(
    request: Request, settings: Settings = Depends(get_settings)
) -> UpstreamClient:
    client = getattr(request.app.state, "upstream_client", None)
    if client is None:
        if not settings.openrouter_api_key:
            logger.warning("OPENROUTER_API_KEY is not set; upstream calls will be rejected")
        client = UpstreamClient.from_settings(settings)
        request.app.state.upstream_client = client
    return client


def get_relay_controller(
    upstream: UpstreamClient = Depends(get_upstream_client),
    settings: Settings = Depends(get_settings),
) -> RelayController:
    """Dependency injection for RelayController."""
    return RelayController(upstream, settings)


def get_subscription_store(request: Request) -> SubscriptionStore:
    store = getattr(request.app.state, "subscription_store", None)
    if store is None:
        store = InMemorySubscriptionStore()
        request.app.state.subscription_store = store
    return store
