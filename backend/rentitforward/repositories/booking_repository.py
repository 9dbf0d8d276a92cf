# backend/rentitforward/repositories/booking_repository.py
"""
Booking Repository for the Rent It Forward platform

Implements data access for the booking lifecycle:
- Booking CRUD with eager-loaded parties and evidence
- Compare-and-set status writes so concurrent approvals cannot double-apply
- Sweep queries for overdue approvals, stale holds and unpaid owners
- Evidence photo replacement per phase and party
"""

from datetime import datetime
import logging
from typing import Any, Dict, Iterable, List, Optional, cast

from sqlalchemy import and_, or_
from sqlalchemy.exc import SQLAlchemyError
from sqlalchemy.orm import Query, Session, joinedload, selectinload

from ..core.exceptions import RepositoryException
from ..models.booking import Booking, BookingStatus, PayoutStatus, can_transition
from ..models.booking_photo import BookingPhoto
from .base_repository import BaseRepository

logger = logging.getLogger(__name__)


class BookingRepository(BaseRepository[Booking]):
    """Repository for booking data access."""

    def __init__(self, db: Session):
        """Initialize with Booking model."""
        super().__init__(db, Booking)
        self.logger = logging.getLogger(__name__)

    def compare_and_set_status(
        self,
        booking_id: str,
        expected: Iterable[BookingStatus],
        new_status: BookingStatus,
        **values: Any,
    ) -> int:
        """
        Move a booking to ``new_status`` only if it is still in ``expected``.

        Returns the number of rows changed: 0 means another request got there
        first and the caller should re-read the booking.

        Raises:
            RepositoryException: an expected status cannot lead to ``new_status``
        """
        expected = list(expected)
        illegal = [status.value for status in expected if not can_transition(status, new_status)]
        if illegal:
            raise RepositoryException(
                f"Illegal booking transition {illegal} -> {new_status.value} for {booking_id}"
            )
        expected_values = [status.value for status in expected]
        try:
            updated = (
                self.db.query(Booking)
                .filter(Booking.id == booking_id, Booking.status.in_(expected_values))
                .update(
                    {"status": new_status.value, **values},
                    synchronize_session="fetch",
                )
            )
            self.db.flush()
            return int(updated)
        except SQLAlchemyError as e:
            self.logger.error(f"Error updating status of booking {booking_id}: {str(e)}")
            raise RepositoryException(f"Failed to update booking status: {str(e)}")

    def get_booking_with_details(self, booking_id: str) -> Optional[Booking]:
        return self.get_by_id(booking_id, load_relationships=True)

    def find_expired_pending_payment(self, now: datetime, limit: int = 200) -> List[Booking]:
        """
        Get bookings the owner never answered.

        Returns bookings that are:
        - Status: pending_payment
        - Approval deadline at or before ``now``
        """
        try:
            return cast(
                List[Booking],
                self.db.query(Booking)
                .filter(
                    and_(
                        Booking.status == BookingStatus.PENDING_PAYMENT.value,
                        Booking.approval_deadline.isnot(None),
                        Booking.approval_deadline <= now,
                    )
                )
                .order_by(Booking.approval_deadline)
                .limit(limit)
                .all(),
            )
        except SQLAlchemyError as e:
            self.logger.error(f"Error getting expired approvals: {str(e)}")
            raise RepositoryException(f"Failed to get expired approvals: {str(e)}")

    def find_stale_pending(self, now: datetime, limit: int = 200) -> List[Booking]:
        """
        Get bookings whose authorization never completed.

        Returns bookings that are:
        - Status: pending
        - Hold expiry at or before ``now``
        """
        try:
            return cast(
                List[Booking],
                self.db.query(Booking)
                .filter(
                    and_(
                        Booking.status == BookingStatus.PENDING.value,
                        Booking.hold_expires_at.isnot(None),
                        Booking.hold_expires_at <= now,
                    )
                )
                .order_by(Booking.hold_expires_at)
                .limit(limit)
                .all(),
            )
        except SQLAlchemyError as e:
            self.logger.error(f"Error getting stale pending bookings: {str(e)}")
            raise RepositoryException(f"Failed to get stale pending bookings: {str(e)}")

    def find_pending_payouts(self, limit: int = 200) -> List[Booking]:
        """
        Get completed bookings whose owner payout still needs to go out.

        Returns bookings that are:
        - Status: completed
        - Payout status: failed, awaiting_owner_account, or never recorded
        """
        try:
            return cast(
                List[Booking],
                self.db.query(Booking)
                .filter(
                    and_(
                        Booking.status == BookingStatus.COMPLETED.value,
                        or_(
                            Booking.payout_status.is_(None),
                            Booking.payout_status.in_(
                                [PayoutStatus.FAILED.value, PayoutStatus.AWAITING_OWNER_ACCOUNT.value]
                            ),
                        ),
                    )
                )
                .order_by(Booking.return_confirmed_at)
                .limit(limit)
                .all(),
            )
        except SQLAlchemyError as e:
            self.logger.error(f"Error getting pending payouts: {str(e)}")
            raise RepositoryException(f"Failed to get pending payouts: {str(e)}")

    def mark_payout_failed(self, booking_id: str) -> int:
        """Flag a payout for the retry sweep unless it already went out."""
        try:
            updated = (
                self.db.query(Booking)
                .filter(
                    Booking.id == booking_id,
                    or_(
                        Booking.payout_status.is_(None),
                        Booking.payout_status != PayoutStatus.RELEASED.value,
                    ),
                )
                .update({"payout_status": PayoutStatus.FAILED.value}, synchronize_session="fetch")
            )
            self.db.flush()
            return int(updated)
        except SQLAlchemyError as e:
            self.logger.error(f"Error flagging payout for booking {booking_id}: {str(e)}")
            raise RepositoryException(f"Failed to flag payout: {str(e)}")

    def replace_photos(
        self,
        booking: Booking,
        phase: str,
        party: str,
        photos: List[Dict[str, Any]],
    ) -> List[BookingPhoto]:
        """Swap one party's evidence for a phase with a fresh set."""
        try:
            for existing in booking.photos_for(phase, party):
                booking.photos.remove(existing)
            self.db.flush()

            created = [
                BookingPhoto(
                    booking_id=booking.id,
                    phase=phase,
                    party=party,
                    position=position,
                    **photo,
                )
                for position, photo in enumerate(photos)
            ]
            booking.photos.extend(created)
            self.db.flush()
            return created
        except SQLAlchemyError as e:
            self.logger.error(f"Error replacing {phase} photos for booking {booking.id}: {str(e)}")
            raise RepositoryException(f"Failed to store evidence photos: {str(e)}")

    # Helper method overrides

    def _apply_eager_loading(self, query: Query) -> Query:
        """Load both parties, the listing and evidence with the booking."""
        return query.options(
            joinedload(Booking.listing),
            joinedload(Booking.renter),
            joinedload(Booking.owner),
            selectinload(Booking.photos),
        )
