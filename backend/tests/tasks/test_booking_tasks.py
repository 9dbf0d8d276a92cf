"""Celery task bodies and the beat schedule."""

from unittest.mock import MagicMock

from celery.schedules import crontab

from rentitforward.services.review_service import ReviewService
from rentitforward.tasks.beat_schedule import CELERYBEAT_SCHEDULE, get_beat_schedule
from rentitforward.tasks.booking_tasks import (
    run_expiry_sweep,
    run_payout_retry,
    run_review_requests,
)
from tests.helpers import complete_rental


def test_expiry_sweep_delegates_to_service(db):
    service = MagicMock()
    service.expire_overdue_bookings.return_value = {"expired_approvals": 2, "expired_holds": 0, "failed": 0}

    assert run_expiry_sweep(db, booking_service=service)["expired_approvals"] == 2


def test_expiry_sweep_against_real_bookings(db, booking_service, pending_booking, clock):
    clock.advance(hours=49)

    results = run_expiry_sweep(db, booking_service=booking_service)

    assert results["expired_approvals"] == 1


def test_payout_retry_delegates_to_service(db):
    service = MagicMock()
    service.retry_pending_payouts.return_value = {"released": 1, "failed": 0, "awaiting_owner_account": 0}

    assert run_payout_retry(db, booking_service=service)["released"] == 1


def test_review_requests_after_completion(
    db, booking_service, confirmed_booking, renter, owner, dispatcher, clock
):
    complete_rental(booking_service, confirmed_booking, renter, owner, clock)

    sent = run_review_requests(
        db, confirmed_booking.id, review_service=ReviewService(db, dispatcher=dispatcher)
    )

    assert sent == {renter.id: True, owner.id: True}


def test_beat_schedule_runs_both_sweeps():
    schedule = get_beat_schedule("production")

    assert set(schedule) == {"expire-overdue-bookings", "retry-pending-payouts"}
    assert schedule["expire-overdue-bookings"]["task"].endswith("expire_overdue_bookings")
    assert schedule["expire-overdue-bookings"]["schedule"] == crontab(minute="*/15")


def test_development_override_does_not_leak_into_base_schedule():
    development = get_beat_schedule("development")

    assert development["retry-pending-payouts"]["schedule"] == crontab(minute="*/30")
    assert CELERYBEAT_SCHEDULE["retry-pending-payouts"]["schedule"] == crontab(minute=5)
