# backend/rentitforward/models/listing.py
"""Listing model: an item an owner offers for rent at a daily rate."""

from sqlalchemy import (
    Boolean,
    CheckConstraint,
    Column,
    DateTime,
    ForeignKey,
    Integer,
    Numeric,
    String,
    Text,
)
from sqlalchemy.orm import relationship
from sqlalchemy.sql import func
import ulid

from ..database import Base


class Listing(Base):
    __tablename__ = "listings"

    id = Column(String(26), primary_key=True, index=True, default=lambda: str(ulid.ULID()))
    owner_id = Column(String(26), ForeignKey("users.id"), nullable=False, index=True)
    title = Column(String(255), nullable=False)
    description = Column(Text, nullable=True)
    daily_rate = Column(Numeric(10, 2), nullable=False)
    security_deposit = Column(Numeric(10, 2), nullable=False, default=0)
    is_active = Column(Boolean, nullable=False, default=True)

    rating = Column(Numeric(2, 1), nullable=True)
    review_count = Column(Integer, nullable=False, default=0)

    created_at = Column(DateTime(timezone=True), server_default=func.now())
    updated_at = Column(DateTime(timezone=True), onupdate=func.now())

    owner = relationship("User", foreign_keys=[owner_id])

    __table_args__ = (
        CheckConstraint("daily_rate > 0", name="check_daily_rate_positive"),
        CheckConstraint("security_deposit >= 0", name="check_deposit_non_negative"),
    )

    def __repr__(self) -> str:
        return f"<Listing {self.id}: {self.title} owner={self.owner_id}>"
