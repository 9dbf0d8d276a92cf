# backend/rentitforward/routes/v1/push.py
"""
Push subscription routes - API v1

Endpoints:
    GET /vapid-public-key - Key the browser needs to create a subscription
    POST /subscribe - Register this device for booking push notifications
    DELETE /unsubscribe - Forget a device
"""

import asyncio
import logging

from fastapi import APIRouter, Body, Depends, HTTPException, status
from sqlalchemy.orm import Session

from ...api.dependencies import get_current_active_user, get_db
from ...core.config import settings
from ...models.user import User
from ...schemas.push import (
    PushStatusResponse,
    PushSubscribeRequest,
    PushUnsubscribeRequest,
    VapidPublicKeyResponse,
)
from ...services.push_notification_service import PushNotificationService

logger = logging.getLogger(__name__)

router = APIRouter(tags=["push-v1"])


@router.get("/vapid-public-key", response_model=VapidPublicKeyResponse)
async def get_vapid_public_key() -> VapidPublicKeyResponse:
    """Public: the browser needs this before it can subscribe."""
    if not PushNotificationService.is_configured():
        raise HTTPException(
            status_code=status.HTTP_503_SERVICE_UNAVAILABLE,
            detail="Push notifications not configured",
        )
    return VapidPublicKeyResponse(public_key=settings.vapid_public_key)


@router.post("/subscribe", response_model=PushStatusResponse)
async def subscribe_to_push(
    payload: PushSubscribeRequest = Body(...),
    current_user: User = Depends(get_current_active_user),
    db: Session = Depends(get_db),
) -> PushStatusResponse:
    service = PushNotificationService(db)
    await asyncio.to_thread(
        service.subscribe,
        current_user.id,
        payload.endpoint,
        payload.p256dh_key,
        payload.auth_key,
        payload.user_agent,
    )
    return PushStatusResponse(success=True, message="Subscribed to push notifications")


@router.delete("/unsubscribe", response_model=PushStatusResponse)
async def unsubscribe_from_push(
    payload: PushUnsubscribeRequest = Body(...),
    current_user: User = Depends(get_current_active_user),
    db: Session = Depends(get_db),
) -> PushStatusResponse:
    service = PushNotificationService(db)
    deleted = await asyncio.to_thread(service.unsubscribe, current_user.id, payload.endpoint)
    if deleted:
        return PushStatusResponse(success=True, message="Unsubscribed from push notifications")
    return PushStatusResponse(success=False, message="Subscription not found")
