"""The background sweep that expires unanswered requests and stalled holds."""

from datetime import timedelta
from decimal import Decimal

from rentitforward.core.constants import (
    REASON_APPROVAL_DEADLINE_PASSED,
    REASON_AUTHORIZATION_INCOMPLETE,
)
from rentitforward.models.availability import AvailabilityEntry
from rentitforward.models.booking import Booking, BookingStatus
from tests.helpers import NOW, TODAY, booking_request


def _stalled_booking(db, listing, renter):
    booking = Booking(
        listing_id=listing.id,
        renter_id=renter.id,
        owner_id=listing.owner_id,
        start_date=TODAY + timedelta(days=20),
        end_date=TODAY + timedelta(days=21),
        duration_days=1,
        daily_rate=Decimal("50.00"),
        rental_fee=Decimal("50.00"),
        total_amount=Decimal("57.50"),
        status=BookingStatus.PENDING.value,
        hold_expires_at=NOW + timedelta(hours=24),
        approval_deadline=NOW + timedelta(hours=48),
    )
    db.add(booking)
    db.commit()
    return booking


def test_nothing_expires_before_deadline(booking_service, pending_booking, clock):
    clock.advance(hours=47)

    counts = booking_service.expire_overdue_bookings()

    assert counts == {"expired_approvals": 0, "expired_holds": 0, "failed": 0}
    assert pending_booking.status == BookingStatus.PENDING_PAYMENT.value


def test_unanswered_request_expires_after_deadline(
    booking_service, pending_booking, renter, owner, gateway, dispatcher, clock, db
):
    intent_id = pending_booking.payment_intent_id
    clock.advance(hours=48, minutes=1)

    counts = booking_service.expire_overdue_bookings()

    assert counts["expired_approvals"] == 1
    db.refresh(pending_booking)
    assert pending_booking.status == BookingStatus.CANCELLED.value
    assert pending_booking.cancellation_reason == REASON_APPROVAL_DEADLINE_PASSED
    assert pending_booking.cancelled_by_id is None
    gateway.void.assert_called_once_with(
        intent_id, idempotency_key=f"booking-{pending_booking.id}-void"
    )
    assert db.query(AvailabilityEntry).count() == 0
    assert dispatcher.notify_many.call_args.args[:2] == ([renter.id, owner.id], "booking_expired")


def test_expiry_restores_redeemed_points(booking_service, renter, listing, clock, db):
    booking_service.authorize_booking(
        renter, booking_request(listing, TODAY + timedelta(days=6), points_to_redeem=25)
    )
    clock.advance(hours=49)

    booking_service.expire_overdue_bookings()

    db.refresh(renter)
    assert renter.points_balance == 100


def test_stalled_authorization_is_cleaned_up_quietly(
    booking_service, listing, renter, dispatcher, gateway, clock, db
):
    booking = _stalled_booking(db, listing, renter)
    clock.advance(hours=25)

    counts = booking_service.expire_overdue_bookings()

    assert counts["expired_holds"] == 1
    db.refresh(booking)
    assert booking.status == BookingStatus.CANCELLED.value
    assert booking.cancellation_reason == REASON_AUTHORIZATION_INCOMPLETE
    gateway.void.assert_not_called()
    dispatcher.notify_many.assert_not_called()


def test_sweep_is_idempotent(booking_service, pending_booking, clock):
    clock.advance(hours=49)
    booking_service.expire_overdue_bookings()

    counts = booking_service.expire_overdue_bookings()

    assert counts == {"expired_approvals": 0, "expired_holds": 0, "failed": 0}


def test_confirmed_bookings_are_left_alone(booking_service, confirmed_booking, clock):
    clock.advance(days=5)

    counts = booking_service.expire_overdue_bookings()

    assert counts["expired_approvals"] == 0
    assert confirmed_booking.status == BookingStatus.CONFIRMED.value
