"""Listing availability schemas."""

import datetime
from typing import List, Optional

from ._strict_base import StrictModel


class AvailabilityEntryResponse(StrictModel):
    date: datetime.date
    status: str
    booking_id: str
    blocked_reason: Optional[str] = None


class ListingAvailabilityResponse(StrictModel):
    listing_id: str
    start: datetime.date
    end: datetime.date
    entries: List[AvailabilityEntryResponse]
