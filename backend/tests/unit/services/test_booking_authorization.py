"""BookingService.authorize_booking: request creation and payment hold."""

from datetime import timedelta
from decimal import Decimal

import pytest
import ulid

from rentitforward.core.config import settings
from rentitforward.core.exceptions import (
    BookingConflictException,
    ListingUnavailableException,
    NotFoundException,
    PaymentAuthorizationFailedException,
    PointsBalanceChangedException,
    SelfBookingException,
    ValidationException,
)
from rentitforward.models.availability import AvailabilityEntry, AvailabilityStatus
from rentitforward.models.booking import Booking, BookingStatus
from rentitforward.models.user import User
from rentitforward.services.booking_service import BookingService
from tests.helpers import NOW, TODAY, booking_request


def _naive(value):
    return value.replace(tzinfo=None)


class TestAuthorizeBooking:
    def test_creates_pending_payment_booking_with_hold(
        self, monkeypatch, booking_service, renter, listing, owner, gateway, dispatcher, db
    ):
        monkeypatch.setattr(settings, "service_fee_rate", 0.10)
        start = TODAY + timedelta(days=14)

        outcome = booking_service.authorize_booking(renter, booking_request(listing, start))

        booking = outcome.booking
        assert booking.status == BookingStatus.PENDING_PAYMENT.value
        assert booking.total_amount == Decimal("110.00")
        assert booking.duration_days == 2
        assert booking.tentative_hold is True
        assert booking.payment_intent_id == f"pi_booking-{booking.id}-authorize"
        assert outcome.client_secret == f"pi_booking-{booking.id}-authorize_secret"
        assert _naive(booking.approval_deadline) == _naive(NOW + timedelta(hours=48))
        assert _naive(booking.hold_expires_at) == _naive(NOW + timedelta(hours=24))

        kwargs = gateway.authorize.call_args.kwargs
        assert kwargs["amount_minor"] == 11000
        assert kwargs["idempotency_key"] == f"booking-{booking.id}-authorize"
        assert kwargs["customer_id"] == f"cus_{renter.id}"

        entries = db.query(AvailabilityEntry).filter_by(booking_id=booking.id).all()
        assert sorted(entry.date for entry in entries) == [start, start + timedelta(days=1)]
        assert {entry.status for entry in entries} == {AvailabilityStatus.TENTATIVE.value}

        dispatcher.notify.assert_called_once()
        assert dispatcher.notify.call_args.args[:2] == (owner.id, "booking_requested")

    def test_redeemed_points_are_deducted(self, booking_service, renter, listing, db):
        outcome = booking_service.authorize_booking(
            renter, booking_request(listing, TODAY + timedelta(days=3), points_to_redeem=40)
        )

        db.refresh(renter)
        assert renter.points_balance == 60
        assert outcome.booking.points_redeemed == 40
        assert outcome.booking.points_credit == Decimal("4.00")

    def test_zero_total_skips_authorization(
        self, booking_service, make_listing, owner, renter, gateway
    ):
        cheap = make_listing(owner, daily_rate=Decimal("1.00"))

        outcome = booking_service.authorize_booking(
            renter, booking_request(cheap, TODAY + timedelta(days=3), days=1, points_to_redeem=100)
        )

        assert outcome.booking.total_amount == Decimal("0.00")
        assert outcome.booking.status == BookingStatus.PENDING_PAYMENT.value
        assert outcome.booking.payment_intent_id is None
        assert outcome.client_secret is None
        gateway.authorize.assert_not_called()

    def test_owner_cannot_book_own_listing(self, booking_service, owner, listing):
        with pytest.raises(SelfBookingException):
            booking_service.authorize_booking(owner, booking_request(listing, TODAY + timedelta(days=3)))

    def test_inactive_listing_is_rejected(self, booking_service, make_listing, owner, renter):
        hidden = make_listing(owner, is_active=False)

        with pytest.raises(ListingUnavailableException):
            booking_service.authorize_booking(renter, booking_request(hidden, TODAY + timedelta(days=3)))

    def test_unknown_listing(self, booking_service, renter, listing):
        request = booking_request(listing, TODAY + timedelta(days=3), listing_id=str(ulid.ULID()))

        with pytest.raises(NotFoundException):
            booking_service.authorize_booking(renter, request)

    def test_past_start_date_is_rejected(self, booking_service, renter, listing, gateway):
        with pytest.raises(ValidationException) as exc_info:
            booking_service.authorize_booking(renter, booking_request(listing, TODAY - timedelta(days=1)))

        assert exc_info.value.code == "INVALID_DATES"
        gateway.ensure_customer.assert_not_called()

    @pytest.mark.parametrize(
        "override", [{"daily_rate": Decimal("45.00")}, {"duration_days": 3}]
    )
    def test_client_price_mismatch(self, booking_service, renter, listing, override):
        request = booking_request(listing, TODAY + timedelta(days=3), **override)

        with pytest.raises(ValidationException) as exc_info:
            booking_service.authorize_booking(renter, request)

        assert exc_info.value.code == "PRICE_MISMATCH"

    def test_overlapping_request_conflicts(
        self, booking_service, pending_booking, make_user, listing, gateway
    ):
        other = make_user()
        request = booking_request(listing, pending_booking.start_date + timedelta(days=1))

        with pytest.raises(BookingConflictException) as exc_info:
            booking_service.authorize_booking(other, request)

        assert exc_info.value.details["conflicting_dates"] == [
            (pending_booking.start_date + timedelta(days=1)).isoformat()
        ]
        assert gateway.authorize.call_count == 1

    def test_adjacent_request_does_not_conflict(self, booking_service, pending_booking, make_user, listing):
        other = make_user()

        outcome = booking_service.authorize_booking(
            other, booking_request(listing, pending_booking.end_date)
        )

        assert outcome.booking.status == BookingStatus.PENDING_PAYMENT.value

    def test_declined_authorization_discards_booking(
        self, booking_service, renter, listing, gateway, db
    ):
        gateway.authorize.side_effect = PaymentAuthorizationFailedException("Card declined")

        with pytest.raises(PaymentAuthorizationFailedException):
            booking_service.authorize_booking(
                renter, booking_request(listing, TODAY + timedelta(days=3), points_to_redeem=10)
            )

        assert db.query(Booking).count() == 0
        assert db.query(AvailabilityEntry).count() == 0
        db.refresh(renter)
        assert renter.points_balance == 100

    def test_lost_date_race_voids_hold_and_discards_booking(
        self, monkeypatch, booking_service, pending_booking, make_user, listing, gateway, db
    ):
        # Both requests pass the pre-check; the ledger's unique constraint decides
        monkeypatch.setattr(
            booking_service.availability_repository, "find_conflicts", lambda *args, **kwargs: []
        )
        other = make_user()

        with pytest.raises(BookingConflictException):
            booking_service.authorize_booking(
                other, booking_request(listing, pending_booking.start_date)
            )

        assert gateway.authorize.call_count == 2
        gateway.void.assert_called_once()
        assert gateway.void.call_args.kwargs["idempotency_key"].endswith("-void")
        assert db.query(Booking).count() == 1
        remaining = db.query(AvailabilityEntry).all()
        assert {entry.booking_id for entry in remaining} == {pending_booking.id}

    def test_points_cannot_be_spent_twice(
        self, session_factory, booking_service, renter, listing, gateway, dispatcher, clock, db
    ):
        other = session_factory()
        try:
            # Loaded before the first request spends the balance
            stale_renter = other.get(User, renter.id)
            booking_service.authorize_booking(
                renter, booking_request(listing, TODAY + timedelta(days=3), points_to_redeem=100)
            )

            with pytest.raises(PointsBalanceChangedException) as exc_info:
                BookingService(
                    other, payment_gateway=gateway, dispatcher=dispatcher, clock=clock
                ).authorize_booking(
                    stale_renter,
                    booking_request(listing, TODAY + timedelta(days=20), points_to_redeem=100),
                )
        finally:
            other.close()

        assert exc_info.value.status_code == 409
        assert exc_info.value.code == "POINTS_BALANCE_CHANGED"
        gateway.void.assert_called_once()
        assert db.query(Booking).count() == 1
        db.refresh(renter)
        assert renter.points_balance == 0
