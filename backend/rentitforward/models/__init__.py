"""
SQLAlchemy models for the Rent It Forward booking backend.

Importing this package registers every table on ``Base.metadata``.
"""

from .availability import AvailabilityEntry, AvailabilityStatus
from .booking import (
    ALLOWED_TRANSITIONS,
    Booking,
    BookingParty,
    BookingStatus,
    PayoutStatus,
    can_transition,
)
from .booking_photo import BookingPhoto
from .issue_report import IssueReport, IssueSeverity
from .listing import Listing
from .notification import Notification, NotificationPreference, PushSubscription
from .review import Review, ReviewType
from .user import User

__all__ = [
    "ALLOWED_TRANSITIONS",
    "AvailabilityEntry",
    "AvailabilityStatus",
    "Booking",
    "BookingParty",
    "BookingPhoto",
    "BookingStatus",
    "IssueReport",
    "IssueSeverity",
    "Listing",
    "Notification",
    "NotificationPreference",
    "PayoutStatus",
    "PushSubscription",
    "Review",
    "ReviewType",
    "User",
    "can_transition",
]
