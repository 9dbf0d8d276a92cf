# backend/rentitforward/models/availability.py
"""
Availability ledger rows.

One row per (listing, date) that is not free. A missing row means the date
is free. The unique constraint is what arbitrates two renters racing for the
same date.
"""

from enum import Enum

from sqlalchemy import (
    CheckConstraint,
    Column,
    Date,
    DateTime,
    ForeignKey,
    String,
    UniqueConstraint,
)
from sqlalchemy.sql import func
import ulid

from ..database import Base


class AvailabilityStatus(str, Enum):
    TENTATIVE = "tentative"
    BOOKED = "booked"


class AvailabilityEntry(Base):
    __tablename__ = "availability_entries"

    id = Column(String(26), primary_key=True, default=lambda: str(ulid.ULID()))
    listing_id = Column(String(26), ForeignKey("listings.id"), nullable=False, index=True)
    date = Column(Date, nullable=False)
    status = Column(String(20), nullable=False, default=AvailabilityStatus.TENTATIVE.value)
    booking_id = Column(String(26), ForeignKey("bookings.id"), nullable=False, index=True)
    blocked_reason = Column(String(255), nullable=True)
    created_at = Column(DateTime(timezone=True), server_default=func.now())
    updated_at = Column(DateTime(timezone=True), onupdate=func.now())

    __table_args__ = (
        UniqueConstraint("listing_id", "date", name="uq_availability_listing_date"),
        CheckConstraint(
            "status IN ('tentative', 'booked')", name="ck_availability_entries_status"
        ),
    )

    def __repr__(self) -> str:
        return f"<AvailabilityEntry {self.listing_id} {self.date} {self.status} -> {self.booking_id}>"
