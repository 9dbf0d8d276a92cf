# backend/tests/helpers.py
"""Shared builders for booking tests."""

from datetime import date, datetime, timedelta, timezone
from typing import Any, List, Optional

from rentitforward.models.listing import Listing
from rentitforward.schemas.booking import (
    AuthorizeBookingRequest,
    PhotoIn,
    ReturnVerificationRequest,
    VerificationRequest,
)

# Far enough ahead that fixture dates never fall in the real past
NOW = datetime(2030, 3, 1, 9, 0, tzinfo=timezone.utc)
TODAY = NOW.date()


class FrozenClock:
    """Callable clock the booking service reads instead of the wall clock."""

    def __init__(self, now: datetime = NOW) -> None:
        self.now = now

    def __call__(self) -> datetime:
        return self.now

    def advance(self, **delta: float) -> datetime:
        self.now = self.now + timedelta(**delta)
        return self.now

    def set_date(self, day: date, hour: int = 9) -> datetime:
        self.now = datetime(day.year, day.month, day.day, hour, 0, tzinfo=timezone.utc)
        return self.now


def booking_request(
    listing: Listing,
    start: date,
    days: int = 2,
    **overrides: Any,
) -> AuthorizeBookingRequest:
    values: dict = {
        "listing_id": listing.id,
        "start_date": start,
        "end_date": start + timedelta(days=days),
    }
    values.update(overrides)
    return AuthorizeBookingRequest(**values)


def photos(count: int = 3, at: Optional[datetime] = None) -> List[PhotoIn]:
    taken = at or NOW
    return [
        PhotoIn(url=f"https://cdn.example.com/evidence/{i}.jpg", captured_at=taken)
        for i in range(count)
    ]


def start_rental(service: Any, booking: Any, renter: Any, owner: Any, clock: FrozenClock) -> Any:
    """Walk a confirmed booking through dual pickup confirmation."""
    clock.set_date(booking.start_date)
    service.confirm_pickup(booking.id, renter, VerificationRequest(photos=photos(3)))
    return service.confirm_pickup(booking.id, owner, VerificationRequest(photos=[])).booking


def complete_rental(service: Any, booking: Any, renter: Any, owner: Any, clock: FrozenClock) -> Any:
    """Walk a confirmed booking through pickup and return."""
    start_rental(service, booking, renter, owner, clock)
    clock.set_date(booking.end_date)
    service.confirm_return(booking.id, renter, ReturnVerificationRequest(photos=photos(3)))
    return service.confirm_return(booking.id, owner, ReturnVerificationRequest(photos=[])).booking
