# backend/rentitforward/models/review.py
"""Post-rental reviews, one per reviewer per booking."""

from enum import Enum

from sqlalchemy import (
    CheckConstraint,
    Column,
    DateTime,
    ForeignKey,
    Integer,
    String,
    Text,
    UniqueConstraint,
)
from sqlalchemy.sql import func
import ulid

from ..database import Base


class ReviewType(str, Enum):
    RENTER_TO_OWNER = "renter_to_owner"
    OWNER_TO_RENTER = "owner_to_renter"


class Review(Base):
    __tablename__ = "reviews"

    id = Column(String(26), primary_key=True, default=lambda: str(ulid.ULID()))
    booking_id = Column(String(26), ForeignKey("bookings.id"), nullable=False, index=True)
    listing_id = Column(String(26), ForeignKey("listings.id"), nullable=False, index=True)
    reviewer_id = Column(String(26), ForeignKey("users.id"), nullable=False)
    reviewee_id = Column(String(26), ForeignKey("users.id"), nullable=False, index=True)
    rating = Column(Integer, nullable=False)
    comment = Column(Text, nullable=True)
    type = Column(String(20), nullable=False)
    created_at = Column(DateTime(timezone=True), server_default=func.now())

    __table_args__ = (
        UniqueConstraint("booking_id", "reviewer_id", name="uq_reviews_booking_reviewer"),
        CheckConstraint("rating BETWEEN 1 AND 5", name="check_rating_range"),
        CheckConstraint(
            "type IN ('renter_to_owner', 'owner_to_renter')", name="ck_reviews_type"
        ),
    )
