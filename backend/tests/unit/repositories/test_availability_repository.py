"""Per-date availability ledger."""

from datetime import timedelta

import pytest

from rentitforward.core.exceptions import BookingConflictException
from rentitforward.models.availability import AvailabilityStatus
from rentitforward.repositories.availability_repository import AvailabilityRepository
from tests.helpers import TODAY


@pytest.fixture
def repository(db):
    return AvailabilityRepository(db)


def test_find_conflicts_returns_only_taken_dates(repository, pending_booking, listing):
    start = pending_booking.start_date
    asked = [start - timedelta(days=1), start, start + timedelta(days=1), start + timedelta(days=2)]

    assert repository.find_conflicts(listing.id, asked) == [start, start + timedelta(days=1)]
    assert repository.find_conflicts(listing.id, []) == []


def test_same_date_cannot_be_held_twice(repository, pending_booking, listing, db):
    with pytest.raises(BookingConflictException) as exc_info:
        repository.hold_tentative(listing.id, [pending_booking.start_date], pending_booking.id)

    assert exc_info.value.details["conflicting_dates"] == [pending_booking.start_date.isoformat()]
    assert len(repository.entries_for_booking(pending_booking.id)) == 2


def test_other_listings_do_not_conflict(repository, pending_booking, make_listing, owner, db):
    other = make_listing(owner, title="Ladder")

    entries = repository.hold_tentative(other.id, [pending_booking.start_date], pending_booking.id)
    db.commit()

    assert len(entries) == 1


def test_promote_and_release(repository, pending_booking, listing, db):
    assert repository.promote_to_booked(pending_booking.id) == 2
    db.commit()
    statuses = {entry.status for entry in repository.entries_for_booking(pending_booking.id)}
    assert statuses == {AvailabilityStatus.BOOKED.value}

    assert repository.release(pending_booking.id) == 2
    db.commit()
    assert repository.list_availability(listing.id, TODAY, TODAY + timedelta(days=30)) == []
