"""Web push subscriptions and delivery."""

import json
from unittest.mock import MagicMock, patch

from pydantic import SecretStr
import pytest
from pywebpush import WebPushException

from rentitforward.core.config import settings
from rentitforward.services.push_notification_service import PushNotificationService

WEBPUSH = "rentitforward.services.push_notification_service.webpush"


@pytest.fixture
def push_service(db):
    return PushNotificationService(db)


@pytest.fixture
def vapid(monkeypatch):
    monkeypatch.setattr(settings, "vapid_public_key", "BPublicKey")
    monkeypatch.setattr(settings, "vapid_private_key", SecretStr("private-key"))


def subscribe(service, user, endpoint="https://push.example.com/abc"):
    return service.subscribe(user.id, endpoint, "p256dh-key", "auth-key", "Firefox")


class TestSubscriptions:
    def test_subscribe_twice_refreshes_keys(self, push_service, renter):
        subscribe(push_service, renter)
        push_service.subscribe(renter.id, "https://push.example.com/abc", "new-p256dh", "new-auth")

        subscriptions = push_service.get_user_subscriptions(renter.id)
        assert len(subscriptions) == 1
        assert subscriptions[0].p256dh_key == "new-p256dh"
        assert subscriptions[0].user_agent is None

    def test_unsubscribe(self, push_service, renter):
        subscribe(push_service, renter)

        assert push_service.unsubscribe(renter.id, "https://push.example.com/abc") is True
        assert push_service.unsubscribe(renter.id, "https://push.example.com/abc") is False
        assert push_service.get_user_subscriptions(renter.id) == []


class TestDelivery:
    def test_unconfigured_push_sends_nothing(self, push_service, renter):
        subscribe(push_service, renter)

        with patch(WEBPUSH) as webpush:
            counts = push_service.send_push_notification(renter.id, "Hi", "Body")

        webpush.assert_not_called()
        assert counts == {"sent": 0, "failed": 0, "expired": 0}

    def test_sends_to_every_device(self, push_service, renter, vapid):
        subscribe(push_service, renter, "https://push.example.com/laptop")
        subscribe(push_service, renter, "https://push.example.com/phone")

        with patch(WEBPUSH) as webpush:
            counts = push_service.send_push_notification(
                renter.id, "Booking approved", "See you soon", url="/bookings/1"
            )

        assert counts["sent"] == 2
        payload = json.loads(webpush.call_args.kwargs["data"])
        assert payload["title"] == "Booking approved"
        assert payload["data"] == {"url": "/bookings/1"}
        assert webpush.call_args.kwargs["vapid_private_key"] == "private-key"

    def test_gone_endpoint_is_deleted(self, push_service, renter, vapid):
        subscribe(push_service, renter)
        gone = WebPushException("Gone", response=MagicMock(status_code=410))

        with patch(WEBPUSH, side_effect=gone):
            counts = push_service.send_push_notification(renter.id, "Hi", "Body")

        assert counts["expired"] == 1
        assert push_service.get_user_subscriptions(renter.id) == []

    def test_other_failures_keep_the_subscription(self, push_service, renter, vapid):
        subscribe(push_service, renter)
        error = WebPushException("Server error", response=MagicMock(status_code=500))

        with patch(WEBPUSH, side_effect=error):
            counts = push_service.send_push_notification(renter.id, "Hi", "Body")

        assert counts["failed"] == 1
        assert len(push_service.get_user_subscriptions(renter.id)) == 1
