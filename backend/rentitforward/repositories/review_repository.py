# backend/rentitforward/repositories/review_repository.py
"""Review data access and rating aggregation."""

from decimal import ROUND_HALF_UP, Decimal
import logging
from typing import Optional, Tuple

from sqlalchemy import func
from sqlalchemy.exc import SQLAlchemyError
from sqlalchemy.orm import Session

from ..core.exceptions import RepositoryException
from ..models.review import Review, ReviewType
from .base_repository import BaseRepository

logger = logging.getLogger(__name__)


def _round_rating(value: Optional[float]) -> Optional[Decimal]:
    if value is None:
        return None
    return Decimal(str(value)).quantize(Decimal("0.1"), rounding=ROUND_HALF_UP)


class ReviewRepository(BaseRepository[Review]):
    def __init__(self, db: Session):
        super().__init__(db, Review)
        self.logger = logging.getLogger(__name__)

    def exists_for_reviewer(self, booking_id: str, reviewer_id: str) -> bool:
        return self.exists(booking_id=booking_id, reviewer_id=reviewer_id)

    def rating_for_user(self, user_id: str) -> Tuple[Optional[Decimal], int]:
        """Average rating (one decimal) and count of reviews about a user."""
        try:
            avg, count = (
                self.db.query(func.avg(Review.rating), func.count(Review.id))
                .filter(Review.reviewee_id == user_id)
                .one()
            )
        except SQLAlchemyError as e:
            self.logger.error(f"Error aggregating ratings for user {user_id}: {str(e)}")
            raise RepositoryException(f"Failed to aggregate ratings: {str(e)}")
        return _round_rating(avg), int(count or 0)

    def rating_for_listing(self, listing_id: str) -> Tuple[Optional[Decimal], int]:
        """Average of renter reviews for a listing."""
        try:
            avg, count = (
                self.db.query(func.avg(Review.rating), func.count(Review.id))
                .filter(
                    Review.listing_id == listing_id,
                    Review.type == ReviewType.RENTER_TO_OWNER.value,
                )
                .one()
            )
        except SQLAlchemyError as e:
            self.logger.error(f"Error aggregating ratings for listing {listing_id}: {str(e)}")
            raise RepositoryException(f"Failed to aggregate ratings: {str(e)}")
        return _round_rating(avg), int(count or 0)
