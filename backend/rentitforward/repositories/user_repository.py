# backend/rentitforward/repositories/user_repository.py
"""User data access: loyalty points, Stripe linkage and rating aggregates."""

import logging

from sqlalchemy.exc import SQLAlchemyError
from sqlalchemy.orm import Session

from ..core.exceptions import RepositoryException
from ..models.user import User
from .base_repository import BaseRepository

logger = logging.getLogger(__name__)


class UserRepository(BaseRepository[User]):
    def __init__(self, db: Session):
        super().__init__(db, User)
        self.logger = logging.getLogger(__name__)

    def redeem_points(self, user_id: str, points: int) -> bool:
        """
        Deduct ``points`` in a single conditional UPDATE.

        Returns False when the stored balance no longer covers the
        redemption, in which case nothing is changed.
        """
        try:
            updated = (
                self.db.query(User)
                .filter(User.id == user_id, User.points_balance >= points)
                .update(
                    {User.points_balance: User.points_balance - points},
                    synchronize_session="fetch",
                )
            )
            self.db.flush()
            return bool(updated)
        except SQLAlchemyError as e:
            self.logger.error(f"Error redeeming points for user {user_id}: {str(e)}")
            raise RepositoryException(f"Failed to redeem points: {str(e)}")

    def credit_points(self, user_id: str, points: int) -> None:
        """Give ``points`` back to a user; the increment happens in the database."""
        try:
            updated = (
                self.db.query(User)
                .filter(User.id == user_id)
                .update(
                    {User.points_balance: User.points_balance + points},
                    synchronize_session="fetch",
                )
            )
            if not updated:
                raise RepositoryException(f"User {user_id} not found")
            self.db.flush()
        except SQLAlchemyError as e:
            self.logger.error(f"Error crediting points for user {user_id}: {str(e)}")
            raise RepositoryException(f"Failed to credit points: {str(e)}")
