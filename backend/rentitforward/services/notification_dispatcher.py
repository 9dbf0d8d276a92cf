# backend/rentitforward/services/notification_dispatcher.py
"""
Notification fan-out for booking events.

Each event is written to the recipient's in-app inbox and then offered to
web push and email according to the recipient's per-category preferences.
Delivery is best effort: a failing channel is logged and counted, and
``notify`` never raises into the booking flow that triggered it.
"""

from __future__ import annotations

from collections import defaultdict
from datetime import date, datetime
from decimal import Decimal
import logging
from typing import Any, Dict, Iterable, Optional

from sqlalchemy.orm import Session

from ..core.config import settings
from ..monitoring.prometheus_metrics import prometheus_metrics
from ..repositories.notification_repository import NotificationRepository
from ..repositories.user_repository import UserRepository
from .base import BaseService
from .email import EmailService
from .notification_templates import NotificationTemplate, get_template
from .push_notification_service import PushNotificationService
from .template_service import TemplateService

logger = logging.getLogger(__name__)


def _render(template: Optional[str], context: Dict[str, Any]) -> Optional[str]:
    if template is None:
        return None
    try:
        return template.format_map(defaultdict(str, context))
    except (ValueError, KeyError, IndexError):
        logger.warning(f"Could not render notification text: {template!r}")
        return template


def _jsonable(value: Any) -> Any:
    if isinstance(value, (datetime, date)):
        return value.isoformat()
    if isinstance(value, Decimal):
        return str(value)
    if isinstance(value, dict):
        return {key: _jsonable(item) for key, item in value.items()}
    if isinstance(value, (list, tuple)):
        return [_jsonable(item) for item in value]
    return value


class NotificationDispatcher(BaseService):
    """Sends in-app, push and email notifications for booking events."""

    def __init__(
        self,
        db: Session,
        notification_repository: Optional[NotificationRepository] = None,
        push_service: Optional[PushNotificationService] = None,
        email_service: Optional[EmailService] = None,
        template_service: Optional[TemplateService] = None,
    ) -> None:
        super().__init__(db)
        self.notification_repository = notification_repository or NotificationRepository(db)
        self.user_repository = UserRepository(db)
        self.push_service = push_service or PushNotificationService(
            db, self.notification_repository
        )
        self.email_service = email_service or EmailService(db)
        self.template_service = template_service or TemplateService()

    def notify(self, user_id: str, kind: str, context: Optional[Dict[str, Any]] = None) -> bool:
        """
        Deliver one notification.

        Returns True when every attempted channel succeeded. Never raises.
        """
        template = get_template(kind)
        if template is None:
            self.logger.error(f"Unknown notification kind {kind!r} for user {user_id}")
            return False

        context = dict(context or {})
        title = _render(template.title, context) or template.title
        body = _render(template.body_template, context) or ""
        url = _render(template.url_template, context)

        ok = self._deliver_in_app(user_id, template, title, body, url, context)
        if self._channel_enabled(user_id, template.category, "push"):
            ok = self._deliver_push(user_id, template, title, body, url, context) and ok
        else:
            prometheus_metrics.record_notification("push", kind, "skipped")
        if self._channel_enabled(user_id, template.category, "email"):
            ok = self._deliver_email(user_id, template, title, body, url, context) and ok
        else:
            prometheus_metrics.record_notification("email", kind, "skipped")
        return ok

    def notify_many(
        self, user_ids: Iterable[str], kind: str, context: Optional[Dict[str, Any]] = None
    ) -> Dict[str, bool]:
        return {user_id: self.notify(user_id, kind, context) for user_id in user_ids}

    def _channel_enabled(self, user_id: str, category: str, channel: str) -> bool:
        try:
            return self.notification_repository.is_channel_enabled(user_id, category, channel)
        except Exception as exc:
            self.logger.error(f"Preference lookup failed for user {user_id}: {exc}")
            return False

    def _deliver_in_app(
        self,
        user_id: str,
        template: NotificationTemplate,
        title: str,
        body: str,
        url: Optional[str],
        context: Dict[str, Any],
    ) -> bool:
        data = _jsonable({**context, "url": url})
        try:
            with self.transaction():
                self.notification_repository.create_notification(
                    user_id=user_id,
                    category=template.category,
                    type=template.type,
                    title=title,
                    body=body,
                    data=data,
                )
        except Exception as exc:
            self.logger.error(f"In-app notification {template.type} failed for user {user_id}: {exc}")
            prometheus_metrics.record_notification("in_app", template.type, "failed")
            return False
        prometheus_metrics.record_notification("in_app", template.type, "sent")
        return True

    def _deliver_push(
        self,
        user_id: str,
        template: NotificationTemplate,
        title: str,
        body: str,
        url: Optional[str],
        context: Dict[str, Any],
    ) -> bool:
        try:
            self.push_service.send_push_notification(
                user_id=user_id,
                title=title,
                body=body,
                url=url,
                tag=f"{template.type}:{context.get('booking_id', '')}",
                data={"type": template.type, "booking_id": context.get("booking_id")},
            )
        except Exception as exc:
            self.logger.error(f"Push notification {template.type} failed for user {user_id}: {exc}")
            prometheus_metrics.record_notification("push", template.type, "failed")
            return False
        prometheus_metrics.record_notification("push", template.type, "sent")
        return True

    def _deliver_email(
        self,
        user_id: str,
        template: NotificationTemplate,
        title: str,
        body: str,
        url: Optional[str],
        context: Dict[str, Any],
    ) -> bool:
        if not template.email_subject_template or not template.email_template:
            return True
        try:
            user = self.user_repository.get_by_id(user_id, load_relationships=False)
            if user is None or not user.email:
                self.logger.warning(f"No email address for user {user_id}; skipping {template.type}")
                return True
            subject = _render(template.email_subject_template, context) or title
            html = self.template_service.render_template(
                template.email_template,
                context={
                    "recipient_name": user.full_name,
                    "title": title,
                    "body": body,
                    "cta_url": f"{settings.frontend_url.rstrip('/')}{url}" if url else None,
                },
            )
            self.email_service.send_email(
                to_email=str(user.email),
                subject=subject,
                html_content=html,
                reply_to=settings.reply_to_email,
            )
        except Exception as exc:
            self.logger.error(f"Email notification {template.type} failed for user {user_id}: {exc}")
            prometheus_metrics.record_notification("email", template.type, "failed")
            return False
        prometheus_metrics.record_notification("email", template.type, "sent")
        return True
