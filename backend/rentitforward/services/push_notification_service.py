# backend/rentitforward/services/push_notification_service.py
"""
Push notification service for web push subscriptions and delivery.
"""

from __future__ import annotations

import json
import logging
from typing import Any, Dict, List, Optional

from pywebpush import WebPushException, webpush
from sqlalchemy.orm import Session

from ..core.config import secret_or_plain, settings
from ..models.notification import PushSubscription
from ..repositories.notification_repository import NotificationRepository
from .base import BaseService

logger = logging.getLogger(__name__)

DEFAULT_ICON = "/icons/icon-192x192.png"


class PushNotificationService(BaseService):
    """Service for managing web push notifications."""

    def __init__(
        self,
        db: Session,
        notification_repository: Optional[NotificationRepository] = None,
    ) -> None:
        super().__init__(db)
        self.notification_repository = notification_repository or NotificationRepository(db)
        self._frontend_base = settings.frontend_url.rstrip("/")

    @BaseService.measure_operation("subscribe")
    def subscribe(
        self,
        user_id: str,
        endpoint: str,
        p256dh_key: str,
        auth_key: str,
        user_agent: Optional[str] = None,
    ) -> PushSubscription:
        """Store (or refresh) a browser push subscription for a user."""
        with self.transaction():
            return self.notification_repository.create_subscription(
                user_id=user_id,
                endpoint=endpoint,
                p256dh_key=p256dh_key,
                auth_key=auth_key,
                user_agent=user_agent,
            )

    def unsubscribe(self, user_id: str, endpoint: str) -> bool:
        with self.transaction():
            return self.notification_repository.delete_subscription(user_id, endpoint)

    def get_user_subscriptions(self, user_id: str) -> List[PushSubscription]:
        return self.notification_repository.get_user_subscriptions(user_id)

    @BaseService.measure_operation("send_push_notification")
    def send_push_notification(
        self,
        user_id: str,
        title: str,
        body: str,
        url: Optional[str] = None,
        tag: Optional[str] = None,
        data: Optional[Dict[str, Any]] = None,
    ) -> Dict[str, int]:
        """
        Send push notification to all of a user's subscribed devices.

        Returns:
            dict with 'sent', 'failed', 'expired' counts
        """
        counts = {"sent": 0, "failed": 0, "expired": 0}
        if not self.is_configured():
            self.logger.debug("Push notifications not configured; skipping send")
            return counts

        payload = self._build_payload(title=title, body=body, url=url, tag=tag, data=data)
        for subscription in self.get_user_subscriptions(user_id):
            counts[self._send_to_subscription(subscription, payload)] += 1
        return counts

    def _send_to_subscription(self, subscription: PushSubscription, payload: str) -> str:
        """
        Deliver to one endpoint and return the outcome key.

        Subscriptions the push service reports as gone (404/410) are deleted.
        """
        try:
            webpush(
                subscription_info={
                    "endpoint": subscription.endpoint,
                    "keys": {
                        "p256dh": subscription.p256dh_key,
                        "auth": subscription.auth_key,
                    },
                },
                data=payload,
                vapid_private_key=secret_or_plain(settings.vapid_private_key).strip(),
                vapid_claims={"sub": settings.vapid_claims_email},
            )
            return "sent"
        except WebPushException as exc:
            status_code = getattr(getattr(exc, "response", None), "status_code", None)
            if status_code in (404, 410):
                self.logger.info(
                    "Push subscription expired; deleting endpoint=%s user_id=%s",
                    subscription.endpoint,
                    subscription.user_id,
                )
                with self.transaction():
                    self.notification_repository.delete_subscription(
                        subscription.user_id,
                        subscription.endpoint,
                    )
                return "expired"

            self.logger.error("Push send failed: %s", exc)
            return "failed"

    def _build_payload(
        self,
        title: str,
        body: str,
        url: Optional[str] = None,
        tag: Optional[str] = None,
        data: Optional[Dict[str, Any]] = None,
    ) -> str:
        """Build JSON payload for push notification."""
        payload_data: Dict[str, Any] = dict(data or {})
        if url:
            payload_data.setdefault("url", url)

        payload: Dict[str, Any] = {
            "title": title,
            "body": body,
            "icon": f"{self._frontend_base}{DEFAULT_ICON}",
            "tag": tag,
            "data": payload_data or None,
        }
        return json.dumps({key: value for key, value in payload.items() if value is not None})

    @staticmethod
    def is_configured() -> bool:
        """Check if VAPID keys are configured."""
        return settings.push_configured
