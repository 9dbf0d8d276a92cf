# backend/rentitforward/models/booking_photo.py
"""Pickup and return evidence photos attached to a booking."""

from sqlalchemy import CheckConstraint, Column, DateTime, Float, ForeignKey, Index, Integer, String, Text
from sqlalchemy.orm import relationship
import ulid

from ..database import Base


class BookingPhoto(Base):
    """One evidence photo, uploaded to object storage before submission."""

    __tablename__ = "booking_photos"

    id = Column(String(26), primary_key=True, default=lambda: str(ulid.ULID()))
    booking_id = Column(
        String(26), ForeignKey("bookings.id", ondelete="CASCADE"), nullable=False, index=True
    )
    phase = Column(String(10), nullable=False)
    party = Column(String(10), nullable=False)
    position = Column(Integer, nullable=False, default=0)
    url = Column(Text, nullable=False)
    captured_at = Column(DateTime(timezone=True), nullable=False)
    latitude = Column(Float, nullable=True)
    longitude = Column(Float, nullable=True)
    description = Column(String(500), nullable=True)

    booking = relationship("Booking", back_populates="photos")

    __table_args__ = (
        CheckConstraint("phase IN ('pickup', 'return')", name="ck_booking_photos_phase"),
        CheckConstraint("party IN ('renter', 'owner')", name="ck_booking_photos_party"),
        Index("ix_booking_photos_booking_phase", "booking_id", "phase", "party"),
    )
