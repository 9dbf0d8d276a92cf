# backend/rentitforward/tasks/booking_tasks.py
"""
Celery tasks for the booking lifecycle.

Each task opens its own session. The work itself lives in plain functions
that take a session so it can be exercised without a broker.
"""

import logging
from typing import Any, Callable, Dict, Optional, ParamSpec, Protocol, TypeVar, cast

from celery.result import AsyncResult
from sqlalchemy.orm import Session

from ..database import SessionLocal
from ..services.booking_service import BookingService
from ..services.review_service import ReviewService
from .celery_app import celery_app

P = ParamSpec("P")
R = TypeVar("R", covariant=True)

logger = logging.getLogger(__name__)


class TaskWrapper(Protocol[P, R]):
    def __call__(self, *args: P.args, **kwargs: P.kwargs) -> R:
        ...

    delay: Callable[..., AsyncResult]
    apply_async: Callable[..., AsyncResult]


def typed_task(
    *task_args: Any, **task_kwargs: Any
) -> Callable[[Callable[P, R]], TaskWrapper[P, R]]:
    """Return a typed Celery task decorator for mypy."""

    return cast(
        Callable[[Callable[P, R]], TaskWrapper[P, R]],
        celery_app.task(*task_args, **task_kwargs),
    )


def run_expiry_sweep(db: Session, booking_service: Optional[BookingService] = None) -> Dict[str, int]:
    service = booking_service or BookingService(db)
    return service.expire_overdue_bookings()


def run_payout_retry(db: Session, booking_service: Optional[BookingService] = None) -> Dict[str, int]:
    service = booking_service or BookingService(db)
    return service.retry_pending_payouts()


def run_review_requests(
    db: Session, booking_id: str, review_service: Optional[ReviewService] = None
) -> Dict[str, bool]:
    service = review_service or ReviewService(db)
    return service.request_reviews(booking_id)


@typed_task(bind=True, max_retries=3, name="rentitforward.tasks.booking_tasks.expire_overdue_bookings")
def expire_overdue_bookings(self: Any) -> Dict[str, int]:
    """
    Cancel bookings whose approval deadline or payment hold has run out.

    Runs every 15 minutes.
    """
    db: Session = SessionLocal()
    try:
        results = run_expiry_sweep(db)
        logger.info(f"Expiry sweep results: {results}")
        return results
    except Exception as exc:
        logger.error(f"Expiry sweep failed: {exc}")
        raise self.retry(exc=exc, countdown=60)
    finally:
        db.close()


@typed_task(bind=True, max_retries=3, name="rentitforward.tasks.booking_tasks.retry_pending_payouts")
def retry_pending_payouts(self: Any) -> Dict[str, int]:
    """Re-attempt owner payouts that failed or were waiting on a payout account."""
    db: Session = SessionLocal()
    try:
        results = run_payout_retry(db)
        logger.info(f"Payout retry results: {results}")
        return results
    except Exception as exc:
        logger.error(f"Payout retry failed: {exc}")
        raise self.retry(exc=exc, countdown=300)
    finally:
        db.close()


@typed_task(bind=True, max_retries=3, name="rentitforward.tasks.booking_tasks.send_review_requests")
def send_review_requests(self: Any, booking_id: str) -> Dict[str, bool]:
    """Ask both parties of a completed booking for a review."""
    db: Session = SessionLocal()
    try:
        return run_review_requests(db, booking_id)
    except Exception as exc:
        logger.error(f"Review requests for booking {booking_id} failed: {exc}")
        raise self.retry(exc=exc, countdown=600)
    finally:
        db.close()
