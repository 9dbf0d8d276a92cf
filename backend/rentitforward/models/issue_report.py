# backend/rentitforward/models/issue_report.py
"""Issue reports raised by either party (damage, late return, missing parts...)."""

from enum import Enum

from sqlalchemy import CheckConstraint, Column, DateTime, ForeignKey, Numeric, String, Text
from sqlalchemy.sql import func
from sqlalchemy.types import JSON
import ulid

from ..database import Base


class IssueSeverity(str, Enum):
    LOW = "low"
    MEDIUM = "medium"
    HIGH = "high"
    CRITICAL = "critical"


class IssueReport(Base):
    __tablename__ = "issue_reports"

    id = Column(String(26), primary_key=True, default=lambda: str(ulid.ULID()))
    booking_id = Column(String(26), ForeignKey("bookings.id"), nullable=False, index=True)
    reporter_id = Column(String(26), ForeignKey("users.id"), nullable=False)
    reporter_role = Column(String(10), nullable=False)
    issue_type = Column(String(50), nullable=False)
    severity = Column(String(10), nullable=False, default=IssueSeverity.MEDIUM.value)
    title = Column(String(255), nullable=False)
    description = Column(Text, nullable=False)
    estimated_cost = Column(Numeric(10, 2), nullable=True)
    photos = Column(JSON, nullable=True)
    status = Column(String(20), nullable=False, default="open")
    created_at = Column(DateTime(timezone=True), server_default=func.now())

    __table_args__ = (
        CheckConstraint(
            "severity IN ('low', 'medium', 'high', 'critical')", name="ck_issue_reports_severity"
        ),
        CheckConstraint("reporter_role IN ('renter', 'owner')", name="ck_issue_reports_role"),
    )
