# backend/rentitforward/models/booking.py
"""
Booking model for the Rent It Forward platform.

A booking is one rental of a listing by a renter for a date range. The price
breakdown is snapshotted at authorization time and never recomputed; any
change to dates or extras needs an explicit re-price.

Lifecycle:
    pending -> pending_payment -> confirmed -> in_progress -> completed
    with cancellation possible from any non-terminal status.
"""

from enum import Enum
from typing import Any, Dict, FrozenSet, List, Optional, cast

from sqlalchemy import (
    Boolean,
    CheckConstraint,
    Column,
    Date,
    DateTime,
    ForeignKey,
    Index,
    Integer,
    Numeric,
    String,
    Text,
)
from sqlalchemy.orm import relationship
from sqlalchemy.sql import func
import ulid

from ..database import Base


class BookingStatus(str, Enum):
    """Booking lifecycle statuses."""

    PENDING = "pending"  # Created, authorization not yet complete
    PENDING_PAYMENT = "pending_payment"  # Funds authorized, waiting on the owner
    CONFIRMED = "confirmed"  # Owner approved, funds captured
    IN_PROGRESS = "in_progress"  # Both parties confirmed pickup
    COMPLETED = "completed"  # Both parties confirmed return
    CANCELLED = "cancelled"


class BookingParty(str, Enum):
    RENTER = "renter"
    OWNER = "owner"


class PayoutStatus(str, Enum):
    RELEASED = "released"
    FAILED = "failed"
    AWAITING_OWNER_ACCOUNT = "awaiting_owner_account"


ALLOWED_TRANSITIONS: Dict[BookingStatus, FrozenSet[BookingStatus]] = {
    BookingStatus.PENDING: frozenset({BookingStatus.PENDING_PAYMENT, BookingStatus.CANCELLED}),
    BookingStatus.PENDING_PAYMENT: frozenset({BookingStatus.CONFIRMED, BookingStatus.CANCELLED}),
    BookingStatus.CONFIRMED: frozenset({BookingStatus.IN_PROGRESS, BookingStatus.CANCELLED}),
    BookingStatus.IN_PROGRESS: frozenset({BookingStatus.COMPLETED, BookingStatus.CANCELLED}),
    BookingStatus.COMPLETED: frozenset(),
    BookingStatus.CANCELLED: frozenset(),
}

TERMINAL_STATUSES = frozenset({BookingStatus.COMPLETED, BookingStatus.CANCELLED})
PRE_CAPTURE_STATUSES = frozenset({BookingStatus.PENDING, BookingStatus.PENDING_PAYMENT})


def can_transition(current: BookingStatus, target: BookingStatus) -> bool:
    """Check a status change against the lifecycle graph."""
    return target in ALLOWED_TRANSITIONS[current]


class Booking(Base):
    """Rental transaction between a renter and a listing owner."""

    __tablename__ = "bookings"

    id = Column(String(26), primary_key=True, index=True, default=lambda: str(ulid.ULID()))

    # Parties
    listing_id = Column(String(26), ForeignKey("listings.id"), nullable=False, index=True)
    renter_id = Column(String(26), ForeignKey("users.id"), nullable=False, index=True)
    owner_id = Column(String(26), ForeignKey("users.id"), nullable=False, index=True)

    # Period (end date is exclusive: a 10-15..10-17 booking covers two days)
    start_date = Column(Date, nullable=False)
    end_date = Column(Date, nullable=False)
    duration_days = Column(Integer, nullable=False)

    # Price snapshot
    currency = Column(String(3), nullable=False, default="aud")
    daily_rate = Column(Numeric(10, 2), nullable=False)
    rental_fee = Column(Numeric(10, 2), nullable=False)
    service_fee = Column(Numeric(10, 2), nullable=False, default=0)
    insurance_fee = Column(Numeric(10, 2), nullable=False, default=0)
    security_deposit = Column(Numeric(10, 2), nullable=False, default=0)
    points_redeemed = Column(Integer, nullable=False, default=0)
    points_credit = Column(Numeric(10, 2), nullable=False, default=0)
    total_amount = Column(Numeric(10, 2), nullable=False)

    status = Column(String(20), nullable=False, default=BookingStatus.PENDING.value, index=True)
    renter_notes = Column(Text, nullable=True)

    # Payment linkage
    payment_intent_id = Column(String(255), nullable=True, comment="Current Stripe payment intent")
    tentative_hold = Column(Boolean, nullable=False, default=False)
    hold_expires_at = Column(DateTime(timezone=True), nullable=True)
    approval_deadline = Column(DateTime(timezone=True), nullable=True)
    payment_captured_at = Column(DateTime(timezone=True), nullable=True)
    confirmed_at = Column(DateTime(timezone=True), nullable=True)

    # Pickup verification
    pickup_renter_confirmed = Column(Boolean, nullable=False, default=False)
    pickup_renter_confirmed_at = Column(DateTime(timezone=True), nullable=True)
    pickup_owner_confirmed = Column(Boolean, nullable=False, default=False)
    pickup_owner_confirmed_at = Column(DateTime(timezone=True), nullable=True)
    pickup_confirmed_at = Column(DateTime(timezone=True), nullable=True)

    # Return verification
    return_renter_confirmed = Column(Boolean, nullable=False, default=False)
    return_renter_confirmed_at = Column(DateTime(timezone=True), nullable=True)
    return_owner_confirmed = Column(Boolean, nullable=False, default=False)
    return_owner_confirmed_at = Column(DateTime(timezone=True), nullable=True)
    return_confirmed_at = Column(DateTime(timezone=True), nullable=True)

    # Cancellation / rejection
    cancelled_at = Column(DateTime(timezone=True), nullable=True)
    cancelled_by_id = Column(String(26), ForeignKey("users.id"), nullable=True)
    cancellation_reason = Column(Text, nullable=True)
    owner_note = Column(Text, nullable=True)
    cancellation_fee = Column(Numeric(10, 2), nullable=True)
    refund_amount = Column(Numeric(10, 2), nullable=True)

    # Fund release
    payout_status = Column(String(30), nullable=True, index=True)
    owner_payout_amount = Column(Numeric(10, 2), nullable=True)
    platform_commission = Column(Numeric(10, 2), nullable=True)
    transfer_id = Column(String(255), nullable=True)
    deposit_refund_id = Column(String(255), nullable=True)
    funds_released_at = Column(DateTime(timezone=True), nullable=True)

    created_at = Column(DateTime(timezone=True), server_default=func.now())
    updated_at = Column(DateTime(timezone=True), onupdate=func.now())

    # Relationships
    listing = relationship("Listing", foreign_keys=[listing_id])
    renter = relationship("User", foreign_keys=[renter_id])
    owner = relationship("User", foreign_keys=[owner_id])
    photos = relationship(
        "BookingPhoto",
        back_populates="booking",
        order_by="BookingPhoto.position",
        cascade="all, delete-orphan",
    )

    __table_args__ = (
        CheckConstraint(
            "status IN ('pending', 'pending_payment', 'confirmed', 'in_progress', "
            "'completed', 'cancelled')",
            name="ck_bookings_status",
        ),
        CheckConstraint("end_date > start_date", name="check_end_after_start"),
        CheckConstraint("duration_days > 0", name="check_duration_positive"),
        CheckConstraint("daily_rate > 0", name="check_rate_positive"),
        CheckConstraint("rental_fee >= 0", name="check_rental_fee_non_negative"),
        CheckConstraint("service_fee >= 0", name="check_service_fee_non_negative"),
        CheckConstraint("insurance_fee >= 0", name="check_insurance_fee_non_negative"),
        CheckConstraint("security_deposit >= 0", name="check_deposit_non_negative"),
        CheckConstraint("points_redeemed >= 0", name="check_points_non_negative"),
        CheckConstraint("points_credit >= 0", name="check_credit_non_negative"),
        CheckConstraint("total_amount >= 0", name="check_total_non_negative"),
        Index("ix_bookings_status_deadline", "status", "approval_deadline"),
        Index("ix_bookings_listing_dates", "listing_id", "start_date", "end_date"),
    )

    def __repr__(self) -> str:
        return (
            f"<Booking {self.id}: listing={self.listing_id}, renter={self.renter_id}, "
            f"{self.start_date}..{self.end_date}, status={self.status}>"
        )

    @property
    def status_enum(self) -> BookingStatus:
        return BookingStatus(cast(str, self.status))

    def party_of(self, user_id: str) -> Optional[BookingParty]:
        """Return which side of the booking the user is on, if any."""
        if user_id == self.renter_id:
            return BookingParty.RENTER
        if user_id == self.owner_id:
            return BookingParty.OWNER
        return None

    def counterparty_id(self, user_id: str) -> str:
        return cast(str, self.owner_id if user_id == self.renter_id else self.renter_id)

    def photos_for(self, phase: str, party: Optional[str] = None) -> List[Any]:
        return [
            photo
            for photo in self.photos
            if photo.phase == phase and (party is None or photo.party == party)
        ]
