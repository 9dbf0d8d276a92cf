"""Unit tests for cancellation fees and refunds."""

from datetime import date, datetime, timezone
from decimal import Decimal

import pytest

from rentitforward.models.booking import Booking, BookingStatus
from rentitforward.services.cancellation_policy import CancellationPolicy, rental_start_utc


def _booking(status: BookingStatus, total="110.00", deposit="0.00", start=date(2030, 3, 10)):
    return Booking(
        status=status.value,
        start_date=start,
        end_date=date(2030, 3, 12),
        total_amount=Decimal(total),
        security_deposit=Decimal(deposit),
    )


@pytest.fixture
def policy():
    return CancellationPolicy(late_cancellation_hours=24, late_cancellation_fee_rate=0.5)


@pytest.mark.parametrize("status", [BookingStatus.PENDING, BookingStatus.PENDING_PAYMENT])
def test_uncaptured_booking_costs_nothing(policy, status):
    quote = policy.evaluate(_booking(status), cancelled_by_owner=False)

    assert quote.cancellation_fee == Decimal("0.00")
    assert quote.refund_amount == Decimal("0.00")
    assert quote.requires_refund is False


def test_owner_cancellation_refunds_everything(policy):
    now = datetime(2030, 3, 9, 23, 0, tzinfo=timezone.utc)

    quote = policy.evaluate(_booking(BookingStatus.CONFIRMED), cancelled_by_owner=True, now=now)

    assert quote.cancellation_fee == Decimal("0.00")
    assert quote.refund_amount == Decimal("110.00")
    assert quote.requires_refund is True


def test_renter_cancelling_early_gets_full_refund(policy):
    now = datetime(2030, 3, 8, 0, 0, tzinfo=timezone.utc)

    quote = policy.evaluate(_booking(BookingStatus.CONFIRMED), cancelled_by_owner=False, now=now)

    assert quote.cancellation_fee == Decimal("0.00")
    assert quote.refund_amount == Decimal("110.00")


def test_renter_cancelling_late_keeps_half_of_rental_charges(policy):
    now = datetime(2030, 3, 9, 12, 0, tzinfo=timezone.utc)
    booking = _booking(BookingStatus.CONFIRMED, total="160.00", deposit="50.00")

    quote = policy.evaluate(booking, cancelled_by_owner=False, now=now)

    assert quote.cancellation_fee == Decimal("55.00")
    assert quote.refund_amount == Decimal("105.00")
    assert quote.requires_refund is True


def test_exactly_at_cutoff_counts_as_early(policy):
    booking = _booking(BookingStatus.CONFIRMED)
    now = datetime(2030, 3, 9, 0, 0, tzinfo=timezone.utc)

    quote = policy.evaluate(booking, cancelled_by_owner=False, now=now)

    assert quote.cancellation_fee == Decimal("0.00")


def test_in_progress_refunds_deposit_only(policy):
    booking = _booking(BookingStatus.IN_PROGRESS, total="160.00", deposit="50.00")

    quote = policy.evaluate(booking, cancelled_by_owner=False)

    assert quote.refund_amount == Decimal("50.00")
    assert quote.cancellation_fee == Decimal("110.00")


def test_in_progress_without_deposit_needs_no_refund(policy):
    quote = policy.evaluate(_booking(BookingStatus.IN_PROGRESS), cancelled_by_owner=False)

    assert quote.refund_amount == Decimal("0.00")
    assert quote.requires_refund is False


def test_zero_total_never_requires_refund(policy):
    booking = _booking(BookingStatus.CONFIRMED, total="0.00")

    quote = policy.evaluate(booking, cancelled_by_owner=True)

    assert quote.requires_refund is False


def test_rental_starts_at_midnight_utc():
    assert rental_start_utc(_booking(BookingStatus.CONFIRMED)) == datetime(
        2030, 3, 10, tzinfo=timezone.utc
    )
