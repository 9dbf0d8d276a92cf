# backend/rentitforward/repositories/availability_repository.py
"""
Availability ledger repository.

A listing's calendar is stored as one row per unavailable date. Rows are
written as ``tentative`` while the owner decides, promoted to ``booked`` on
approval and deleted when the booking ends up cancelled. The
``(listing_id, date)`` unique constraint is the final arbiter when two
requests race for the same dates.
"""

from datetime import date
import logging
from typing import Any, Dict, Iterable, List, Sequence

from sqlalchemy.exc import IntegrityError, SQLAlchemyError
from sqlalchemy.orm import Session

from ..core.constants import BLOCK_REASON_CONFIRMED, BLOCK_REASON_PENDING
from ..core.exceptions import BookingConflictException, RepositoryException
from ..models.availability import AvailabilityEntry, AvailabilityStatus
from .base_repository import BaseRepository

logger = logging.getLogger(__name__)


class AvailabilityRepository(BaseRepository[AvailabilityEntry]):
    """Data access for per-date availability entries."""

    def __init__(self, db: Session):
        super().__init__(db, AvailabilityEntry)
        self.logger = logging.getLogger(__name__)

    def list_availability(self, listing_id: str, start: date, end: date) -> List[Dict[str, Any]]:
        """
        Ledger contents for ``start <= date <= end``.

        Dates with no row are free and are not returned.
        """
        try:
            entries = (
                self.db.query(AvailabilityEntry)
                .filter(
                    AvailabilityEntry.listing_id == listing_id,
                    AvailabilityEntry.date >= start,
                    AvailabilityEntry.date <= end,
                )
                .order_by(AvailabilityEntry.date)
                .all()
            )
        except SQLAlchemyError as e:
            self.logger.error(f"Error listing availability for {listing_id}: {str(e)}")
            raise RepositoryException(f"Failed to list availability: {str(e)}")

        return [
            {
                "date": entry.date,
                "status": entry.status,
                "booking_id": entry.booking_id,
                "blocked_reason": entry.blocked_reason,
            }
            for entry in entries
        ]

    def find_conflicts(self, listing_id: str, dates: Sequence[date]) -> List[date]:
        """Return the subset of ``dates`` that already carry an entry."""
        if not dates:
            return []
        try:
            rows = (
                self.db.query(AvailabilityEntry.date)
                .filter(
                    AvailabilityEntry.listing_id == listing_id,
                    AvailabilityEntry.date.in_(list(dates)),
                )
                .order_by(AvailabilityEntry.date)
                .all()
            )
        except SQLAlchemyError as e:
            self.logger.error(f"Error checking conflicts for {listing_id}: {str(e)}")
            raise RepositoryException(f"Failed to check availability conflicts: {str(e)}")
        return [row[0] for row in rows]

    def hold_tentative(
        self, listing_id: str, dates: Iterable[date], booking_id: str
    ) -> List[AvailabilityEntry]:
        """
        Insert one tentative entry per date.

        A uniqueness violation rolls the session back and surfaces as a
        BookingConflictException naming the dates that were lost.
        """
        requested = list(dates)
        try:
            return self.bulk_create(
                [
                    {
                        "listing_id": listing_id,
                        "date": day,
                        "status": AvailabilityStatus.TENTATIVE.value,
                        "booking_id": booking_id,
                        "blocked_reason": BLOCK_REASON_PENDING,
                    }
                    for day in requested
                ]
            )
        except IntegrityError as exc:
            self.logger.warning(
                f"Availability race lost for listing {listing_id} (booking {booking_id}): {exc.orig}"
            )
            self.db.rollback()
            conflicts = self.find_conflicts(listing_id, requested)
            raise BookingConflictException(conflicting_dates=conflicts or requested) from exc

    def promote_to_booked(self, booking_id: str) -> int:
        """Flip every tentative entry of a booking to booked."""
        try:
            updated = (
                self.db.query(AvailabilityEntry)
                .filter(
                    AvailabilityEntry.booking_id == booking_id,
                    AvailabilityEntry.status == AvailabilityStatus.TENTATIVE.value,
                )
                .update(
                    {
                        AvailabilityEntry.status: AvailabilityStatus.BOOKED.value,
                        AvailabilityEntry.blocked_reason: BLOCK_REASON_CONFIRMED,
                    },
                    synchronize_session=False,
                )
            )
            self.db.flush()
            return int(updated)
        except SQLAlchemyError as e:
            self.logger.error(f"Error promoting availability for booking {booking_id}: {str(e)}")
            raise RepositoryException(f"Failed to promote availability: {str(e)}")

    def release(self, booking_id: str) -> int:
        """Delete every entry belonging to a booking, freeing its dates."""
        try:
            deleted = (
                self.db.query(AvailabilityEntry)
                .filter(AvailabilityEntry.booking_id == booking_id)
                .delete(synchronize_session=False)
            )
            self.db.flush()
            return int(deleted)
        except SQLAlchemyError as e:
            self.logger.error(f"Error releasing availability for booking {booking_id}: {str(e)}")
            raise RepositoryException(f"Failed to release availability: {str(e)}")

    def entries_for_booking(self, booking_id: str) -> List[AvailabilityEntry]:
        return self.find_by(booking_id=booking_id)
