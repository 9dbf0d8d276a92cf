# backend/rentitforward/services/review_service.py
"""
Review Service for the Rent It Forward platform

Handles post-rental reviews:
- One review per party per completed booking
- Rating aggregates on the reviewee and, for renter reviews, the listing
- Review request reminders sent after the rental completes
"""

import logging
from typing import Dict, Optional

from sqlalchemy.orm import Session

from ..core.constants import MAX_NOTE_LENGTH, MAX_RATING, MIN_RATING
from ..core.exceptions import (
    BusinessRuleException,
    ConflictException,
    ForbiddenException,
    NotFoundException,
    RepositoryException,
    ValidationException,
)
from ..models.booking import Booking, BookingParty, BookingStatus
from ..models.review import Review, ReviewType
from ..models.user import User
from ..repositories.booking_repository import BookingRepository
from ..repositories.listing_repository import ListingRepository
from ..repositories.review_repository import ReviewRepository
from ..repositories.user_repository import UserRepository
from .base import BaseService
from .notification_dispatcher import NotificationDispatcher

logger = logging.getLogger(__name__)


class ReviewService(BaseService):
    """Service layer for reviews between renters and owners."""

    def __init__(self, db: Session, dispatcher: Optional[NotificationDispatcher] = None):
        super().__init__(db)
        self.repository = ReviewRepository(db)
        self.booking_repository = BookingRepository(db)
        self.listing_repository = ListingRepository(db)
        self.user_repository = UserRepository(db)
        self.dispatcher = dispatcher or NotificationDispatcher(db)

    @BaseService.measure_operation("submit_review")
    def submit_review(
        self,
        booking_id: str,
        reviewer: User,
        rating: int,
        comment: Optional[str] = None,
    ) -> Review:
        """
        Record a review for the other party of a completed booking.

        Raises:
            ValidationException: rating out of range or comment too long
            NotFoundException: booking does not exist
            ForbiddenException: reviewer is not a party
            BusinessRuleException: booking is not completed
            ConflictException: reviewer already reviewed this booking
        """
        if not MIN_RATING <= rating <= MAX_RATING:
            raise ValidationException(
                f"Rating must be between {MIN_RATING} and {MAX_RATING}", code="INVALID_RATING"
            )
        if comment is not None and len(comment) > MAX_NOTE_LENGTH:
            raise ValidationException(
                f"Comment must be at most {MAX_NOTE_LENGTH} characters", code="INVALID_COMMENT"
            )

        booking = self._get_booking(booking_id)
        party = booking.party_of(reviewer.id)
        if party is None:
            raise ForbiddenException("You are not a party to this booking")
        if booking.status_enum != BookingStatus.COMPLETED:
            raise BusinessRuleException(
                "Reviews can only be left once the rental is completed",
                code="BOOKING_NOT_COMPLETED",
            )
        if self.repository.exists_for_reviewer(booking.id, reviewer.id):
            raise ConflictException(
                "You have already reviewed this booking", code="REVIEW_ALREADY_SUBMITTED"
            )

        review_type = (
            ReviewType.RENTER_TO_OWNER if party == BookingParty.RENTER else ReviewType.OWNER_TO_RENTER
        )
        reviewee_id = booking.counterparty_id(reviewer.id)

        with self.transaction():
            try:
                review = self.repository.create(
                    booking_id=booking.id,
                    listing_id=booking.listing_id,
                    reviewer_id=reviewer.id,
                    reviewee_id=reviewee_id,
                    rating=rating,
                    comment=comment,
                    type=review_type.value,
                )
            except RepositoryException as exc:
                # unique (booking_id, reviewer_id) lost to a concurrent submit
                if self.repository.exists_for_reviewer(booking.id, reviewer.id):
                    raise ConflictException(
                        "You have already reviewed this booking", code="REVIEW_ALREADY_SUBMITTED"
                    ) from exc
                raise

            average, count = self.repository.rating_for_user(reviewee_id)
            reviewee = self.user_repository.get_by_id(reviewee_id, load_relationships=False)
            if reviewee is not None:
                reviewee.rating = average
                reviewee.total_reviews = count

            if review_type == ReviewType.RENTER_TO_OWNER:
                listing_average, listing_count = self.repository.rating_for_listing(booking.listing_id)
                listing = self.listing_repository.get_by_id(booking.listing_id, load_relationships=False)
                if listing is not None:
                    listing.rating = listing_average
                    listing.review_count = listing_count

        self.log_operation(
            "review_submitted",
            booking_id=booking.id,
            reviewer_id=reviewer.id,
            review_type=review_type.value,
            rating=rating,
        )
        self.dispatcher.notify(
            reviewee_id,
            "review_received",
            {
                "booking_id": booking.id,
                "listing_title": booking.listing.title if booking.listing else "your item",
                "reviewer_name": reviewer.full_name or "Someone",
                "rating": rating,
            },
        )
        return review

    @BaseService.measure_operation("request_reviews")
    def request_reviews(self, booking_id: str) -> Dict[str, bool]:
        """Remind each party who has not reviewed yet to leave a review."""
        booking = self._get_booking(booking_id)
        if booking.status_enum != BookingStatus.COMPLETED:
            self.logger.info(f"Skipping review requests for booking {booking_id} ({booking.status})")
            return {}

        pending = [
            user_id
            for user_id in (booking.renter_id, booking.owner_id)
            if not self.repository.exists_for_reviewer(booking.id, user_id)
        ]
        context = {
            "booking_id": booking.id,
            "listing_title": booking.listing.title if booking.listing else "your item",
        }
        return self.dispatcher.notify_many(pending, "review_requested", context)

    def _get_booking(self, booking_id: str) -> Booking:
        booking = self.booking_repository.get_booking_with_details(booking_id)
        if booking is None:
            raise NotFoundException("Booking not found", code="BOOKING_NOT_FOUND")
        return booking
