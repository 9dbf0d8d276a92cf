"""Push subscription endpoints."""

from fastapi.testclient import TestClient
from pydantic import SecretStr
import pytest

from rentitforward.api.dependencies import get_db
from rentitforward.auth import create_access_token
from rentitforward.core.config import settings
from rentitforward.main import create_app
from rentitforward.services.push_notification_service import PushNotificationService

ENDPOINT = "https://push.example.com/device-1"


@pytest.fixture
def client(db):
    app = create_app()
    app.dependency_overrides[get_db] = lambda: db
    return TestClient(app)


def auth_headers(user):
    return {"Authorization": f"Bearer {create_access_token({'sub': user.id})}"}


def test_public_key_unavailable_without_vapid(client):
    response = client.get("/api/v1/push/vapid-public-key")

    assert response.status_code == 503


def test_public_key(client, monkeypatch):
    monkeypatch.setattr(settings, "vapid_public_key", "BPublicKey")
    monkeypatch.setattr(settings, "vapid_private_key", SecretStr("private-key"))

    response = client.get("/api/v1/push/vapid-public-key")

    assert response.status_code == 200
    assert response.json() == {"public_key": "BPublicKey"}


def test_subscribe_then_unsubscribe(client, db, renter):
    response = client.post(
        "/api/v1/push/subscribe",
        json={"endpoint": ENDPOINT, "p256dh": "p256dh-key", "auth": "auth-key"},
        headers=auth_headers(renter),
    )
    assert response.status_code == 200
    assert response.json()["success"] is True
    assert [s.endpoint for s in PushNotificationService(db).get_user_subscriptions(renter.id)] == [
        ENDPOINT
    ]

    response = client.request(
        "DELETE",
        "/api/v1/push/unsubscribe",
        json={"endpoint": ENDPOINT},
        headers=auth_headers(renter),
    )
    assert response.json()["success"] is True

    response = client.request(
        "DELETE",
        "/api/v1/push/unsubscribe",
        json={"endpoint": ENDPOINT},
        headers=auth_headers(renter),
    )
    assert response.json() == {"success": False, "message": "Subscription not found"}


def test_subscribe_requires_keys(client, renter):
    response = client.post(
        "/api/v1/push/subscribe", json={"endpoint": ENDPOINT}, headers=auth_headers(renter)
    )

    assert response.status_code == 422


def test_subscribe_requires_auth(client):
    response = client.post(
        "/api/v1/push/subscribe",
        json={"endpoint": ENDPOINT, "p256dh": "p256dh-key", "auth": "auth-key"},
    )

    assert response.status_code == 401
