# backend/rentitforward/api/dependencies/services.py
"""
Service layer dependencies for dependency injection.

This module provides factory functions that create service instances
with their required dependencies properly injected.
"""

from fastapi import Depends
from sqlalchemy.orm import Session

from ...services.booking_service import BookingService
from ...services.email import EmailService
from ...services.notification_dispatcher import NotificationDispatcher
from ...services.payment_gateway import PaymentGateway
from ...services.review_service import ReviewService
from .database import get_db


def get_email_service(db: Session = Depends(get_db)) -> EmailService:
    """Get EmailService instance with proper dependencies."""
    return EmailService(db)


def get_notification_dispatcher(
    db: Session = Depends(get_db), email_service: EmailService = Depends(get_email_service)
) -> NotificationDispatcher:
    """
    Get notification dispatcher instance.

    Args:
        db: Database session
        email_service: Email service for the email channel

    Returns:
        NotificationDispatcher instance
    """
    return NotificationDispatcher(db, email_service=email_service)


def get_payment_gateway(db: Session = Depends(get_db)) -> PaymentGateway:
    return PaymentGateway(db)


def get_booking_service(
    db: Session = Depends(get_db),
    payment_gateway: PaymentGateway = Depends(get_payment_gateway),
    dispatcher: NotificationDispatcher = Depends(get_notification_dispatcher),
) -> BookingService:
    """
    Get booking service instance with all dependencies.

    Args:
        db: Database session
        payment_gateway: Stripe adapter
        dispatcher: Notification fan-out

    Returns:
        BookingService instance
    """
    return BookingService(db, payment_gateway=payment_gateway, dispatcher=dispatcher)


def get_review_service(
    db: Session = Depends(get_db),
    dispatcher: NotificationDispatcher = Depends(get_notification_dispatcher),
) -> ReviewService:
    return ReviewService(db, dispatcher=dispatcher)
