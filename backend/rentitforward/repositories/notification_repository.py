"""Persistence for the notification channels: opt-outs, in-app inbox rows and push devices."""

from __future__ import annotations

from typing import Any, List, Optional, cast

from sqlalchemy.orm import Query, Session

from ..core.exceptions import RepositoryException
from ..models.notification import (
    NOTIFICATION_CATEGORIES,
    NOTIFICATION_CHANNELS,
    Notification,
    NotificationPreference,
    PushSubscription,
)
from .base_repository import BaseRepository


class NotificationRepository(BaseRepository[Notification]):
    """Channel preferences, the in-app inbox and web push devices for members."""

    def __init__(self, db: Session) -> None:
        super().__init__(db, Notification)

    @staticmethod
    def _check(category: str, channel: Optional[str] = None) -> None:
        if category not in NOTIFICATION_CATEGORIES:
            raise RepositoryException(f"Invalid notification category: {category}")
        if channel is not None and channel not in NOTIFICATION_CHANNELS:
            raise RepositoryException(f"Invalid notification channel: {channel}")

    def is_channel_enabled(self, user_id: str, category: str, channel: str) -> bool:
        """Members receive every channel until they switch one off."""
        preference = cast(
            Optional[NotificationPreference],
            self.db.query(NotificationPreference)
            .filter_by(user_id=user_id, category=category, channel=channel)
            .first(),
        )
        return preference is None or bool(preference.enabled)

    def set_channel_enabled(
        self, user_id: str, category: str, channel: str, enabled: bool
    ) -> NotificationPreference:
        self._check(category, channel)
        preference = cast(
            Optional[NotificationPreference],
            self.db.query(NotificationPreference)
            .filter_by(user_id=user_id, category=category, channel=channel)
            .first(),
        )
        if preference is None:
            preference = NotificationPreference(
                user_id=user_id, category=category, channel=channel
            )
            self.db.add(preference)
        preference.enabled = enabled
        self.db.flush()
        return preference

    def create_notification(
        self,
        user_id: str,
        category: str,
        type: str,
        title: str,
        body: str | None = None,
        data: dict[str, Any] | None = None,
    ) -> Notification:
        self._check(category)
        return self.create(
            user_id=user_id, category=category, type=type, title=title, body=body, data=data
        )

    # Push devices
    def _devices(self, user_id: str) -> Query:
        return self.db.query(PushSubscription).filter(PushSubscription.user_id == user_id)

    def create_subscription(
        self,
        user_id: str,
        endpoint: str,
        p256dh_key: str,
        auth_key: str,
        user_agent: str | None = None,
    ) -> PushSubscription:
        """Register a device, or refresh its keys when the browser re-subscribes."""
        subscription = cast(
            Optional[PushSubscription],
            self._devices(user_id).filter(PushSubscription.endpoint == endpoint).first(),
        )
        if subscription is None:
            subscription = PushSubscription(user_id=user_id, endpoint=endpoint)
            self.db.add(subscription)
        subscription.p256dh_key = p256dh_key
        subscription.auth_key = auth_key
        subscription.user_agent = user_agent
        self.db.flush()
        return subscription

    def get_user_subscriptions(self, user_id: str) -> List[PushSubscription]:
        return cast(
            List[PushSubscription],
            self._devices(user_id)
            .order_by(PushSubscription.created_at.desc(), PushSubscription.id.desc())
            .all(),
        )

    def delete_subscription(self, user_id: str, endpoint: str) -> bool:
        deleted = (
            self._devices(user_id)
            .filter(PushSubscription.endpoint == endpoint)
            .delete(synchronize_session=False)
        )
        return bool(deleted)


__all__ = ["NotificationRepository"]
