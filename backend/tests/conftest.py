# backend/tests/conftest.py
"""
Pytest configuration for the Rent It Forward backend.

Every test gets its own in-memory SQLite database, so commits made by the
services under test never leak between tests. Stripe and notifications are
replaced with MagicMocks; the clock is frozen and can be moved forward.
"""

import os

# Settings are read at import time; pin them before any package import.
os.environ["ENVIRONMENT"] = "test"
os.environ["DATABASE_URL"] = "sqlite://"
os.environ["STRIPE_SECRET_KEY"] = ""
os.environ["EMAIL_PROVIDER"] = "console"
os.environ["VAPID_PRIVATE_KEY"] = ""

from datetime import timedelta
from decimal import Decimal
from typing import Any, Callable, Iterator
from unittest.mock import MagicMock

import pytest
from sqlalchemy import create_engine
from sqlalchemy.orm import Session, sessionmaker
from sqlalchemy.pool import StaticPool

from rentitforward import models  # noqa: F401
from rentitforward.database import Base
from rentitforward.models.booking import Booking
from rentitforward.models.listing import Listing
from rentitforward.models.user import User
from rentitforward.services.booking_service import BookingService
from rentitforward.services.notification_dispatcher import NotificationDispatcher
from rentitforward.services.payment_gateway import (
    AuthorizationResult,
    GatewayResult,
    PaymentGateway,
)
from tests.helpers import TODAY, FrozenClock, booking_request


@pytest.fixture
def engine():
    engine = create_engine(
        "sqlite://",
        connect_args={"check_same_thread": False},
        poolclass=StaticPool,
        future=True,
    )
    Base.metadata.create_all(bind=engine)
    yield engine
    Base.metadata.drop_all(bind=engine)
    engine.dispose()


@pytest.fixture
def session_factory(engine) -> sessionmaker:
    return sessionmaker(autocommit=False, autoflush=False, bind=engine, expire_on_commit=False)


@pytest.fixture
def db(session_factory) -> Iterator[Session]:
    session = session_factory()
    try:
        yield session
    finally:
        session.rollback()
        session.close()


@pytest.fixture
def clock() -> FrozenClock:
    return FrozenClock()


@pytest.fixture
def gateway() -> MagicMock:
    """PaymentGateway stand-in that succeeds and returns predictable references."""
    gateway = MagicMock(spec=PaymentGateway)
    gateway.ensure_customer.side_effect = lambda user_id, email, name: f"cus_{user_id}"
    gateway.authorize.side_effect = lambda **kwargs: AuthorizationResult(
        payment_intent_id=f"pi_{kwargs['idempotency_key']}",
        client_secret=f"pi_{kwargs['idempotency_key']}_secret",
        status="requires_capture",
    )
    gateway.capture.side_effect = lambda payment_intent_id, **kwargs: GatewayResult(
        reference=payment_intent_id, status="succeeded"
    )
    gateway.void.side_effect = lambda payment_intent_id, **kwargs: GatewayResult(
        reference=payment_intent_id, status="canceled"
    )
    gateway.refund.side_effect = lambda payment_intent_id, **kwargs: GatewayResult(
        reference=f"re_{kwargs['idempotency_key']}",
        status="succeeded",
        amount=kwargs["amount_minor"],
    )
    gateway.transfer.side_effect = lambda **kwargs: GatewayResult(
        reference=f"tr_{kwargs['idempotency_key']}",
        status="paid",
        amount=kwargs["amount_minor"],
    )
    return gateway


@pytest.fixture
def dispatcher() -> MagicMock:
    dispatcher = MagicMock(spec=NotificationDispatcher)
    dispatcher.notify.return_value = True
    dispatcher.notify_many.side_effect = lambda user_ids, kind, context=None: {
        user_id: True for user_id in user_ids
    }
    return dispatcher


@pytest.fixture
def review_scheduler() -> MagicMock:
    return MagicMock()


@pytest.fixture
def booking_service(db, gateway, dispatcher, clock, review_scheduler) -> BookingService:
    return BookingService(
        db,
        payment_gateway=gateway,
        dispatcher=dispatcher,
        review_scheduler=review_scheduler,
        clock=clock,
    )


# ---------------------------------------------------------------------------
# Factories
# ---------------------------------------------------------------------------


@pytest.fixture
def make_user(db) -> Callable[..., User]:
    counter = {"n": 0}

    def _make_user(**overrides: Any) -> User:
        counter["n"] += 1
        values = {
            "email": f"member{counter['n']}@example.com",
            "full_name": f"Member {counter['n']}",
            "points_balance": 0,
        }
        values.update(overrides)
        user = User(**values)
        db.add(user)
        db.commit()
        return user

    return _make_user


@pytest.fixture
def owner(make_user) -> User:
    return make_user(full_name="Olivia Owner", stripe_account_id="acct_owner")


@pytest.fixture
def renter(make_user) -> User:
    return make_user(full_name="Riley Renter", points_balance=100)


@pytest.fixture
def make_listing(db) -> Callable[..., Listing]:
    def _make_listing(owner: User, **overrides: Any) -> Listing:
        values = {
            "owner_id": owner.id,
            "title": "Cordless drill",
            "daily_rate": Decimal("50.00"),
            "security_deposit": Decimal("0.00"),
            "is_active": True,
        }
        values.update(overrides)
        listing = Listing(**values)
        db.add(listing)
        db.commit()
        return listing

    return _make_listing


@pytest.fixture
def listing(make_listing, owner) -> Listing:
    return make_listing(owner)


@pytest.fixture
def pending_booking(booking_service, renter, listing) -> Booking:
    """A request the owner has not answered yet (pending_payment)."""
    outcome = booking_service.authorize_booking(
        renter, booking_request(listing, TODAY + timedelta(days=10))
    )
    return outcome.booking


@pytest.fixture
def confirmed_booking(booking_service, pending_booking, owner) -> Booking:
    return booking_service.approve_booking(pending_booking.id, owner).booking

