# backend/rentitforward/models/user.py
"""
User model for the Rent It Forward platform.

A single account can act as renter or owner; the role is decided per booking.
"""

from sqlalchemy import Boolean, CheckConstraint, Column, DateTime, Integer, Numeric, String
from sqlalchemy.sql import func
import ulid

from ..database import Base


class User(Base):
    """Marketplace member (renter and/or owner)."""

    __tablename__ = "users"

    id = Column(String(26), primary_key=True, index=True, default=lambda: str(ulid.ULID()))
    email = Column(String(255), unique=True, nullable=False, index=True)
    full_name = Column(String(255), nullable=False, default="")
    is_active = Column(Boolean, nullable=False, default=True)

    # Loyalty points, redeemable against the rental total
    points_balance = Column(Integer, nullable=False, default=0)

    # Stripe linkage
    stripe_customer_id = Column(String(255), nullable=True, comment="Stripe customer for renters")
    stripe_account_id = Column(
        String(255), nullable=True, comment="Stripe connected account for owner payouts"
    )

    # Review aggregate
    rating = Column(Numeric(2, 1), nullable=True)
    total_reviews = Column(Integer, nullable=False, default=0)

    created_at = Column(DateTime(timezone=True), server_default=func.now())
    updated_at = Column(DateTime(timezone=True), onupdate=func.now())

    __table_args__ = (
        CheckConstraint("points_balance >= 0", name="check_points_non_negative"),
    )

    def __repr__(self) -> str:
        return f"<User {self.id}: {self.email}>"
