"""
Push notification subscription endpoints.

Only registration lives here; sending pushes is handled elsewhere.
"""
import logging

from fastapi import APIRouter, Depends, HTTPException, Query, Response, status

from chat_relay.api.dependencies.relay import get_subscription_store
from chat_relay.api.models import PushSubscription, SubscriptionStatus
from chat_relay.services.notifications import SubscriptionStore

logger = logging.getLogger(__name__)

router = APIRouter()


@router.post("/notifications/subscriptions", response_model=SubscriptionStatus)
async def subscribe(
    subscription: PushSubscription,
    response: Response,
    store: SubscriptionStore = Depends(get_subscription_store),
) -> SubscriptionStatus:
    created = await store.add(subscription.endpoint, subscription.model_dump())
    response.status_code = status.HTTP_201_CREATED if created else status.HTTP_200_OK
    logger.info(f"Push subscription {'registered' if created else 'refreshed'}")
    return SubscriptionStatus(endpoint=subscription.endpoint, subscribed=True, created=created)


@router.delete("/notifications/subscriptions", response_model=SubscriptionStatus)
async def unsubscribe(
    endpoint: str = Query(..., min_length=1),
    store: SubscriptionStore = Depends(get_subscription_store),
) -> SubscriptionStatus:
    if not await store.remove(endpoint):
        raise HTTPException(
            status_code=status.HTTP_404_NOT_FOUND,
            detail="subscription not found",
        )
    return SubscriptionStatus(endpoint=endpoint, subscribed=False)
