"""
Repository layer for the Rent It Forward platform.

Repositories encapsulate queries and flush changes; services decide when to
commit.
"""

from .availability_repository import AvailabilityRepository
from .base_repository import BaseRepository
from .booking_repository import BookingRepository
from .issue_report_repository import IssueReportRepository
from .listing_repository import ListingRepository
from .notification_repository import NotificationRepository
from .review_repository import ReviewRepository
from .user_repository import UserRepository

__all__ = [
    "AvailabilityRepository",
    "BaseRepository",
    "BookingRepository",
    "IssueReportRepository",
    "ListingRepository",
    "NotificationRepository",
    "ReviewRepository",
    "UserRepository",
]
