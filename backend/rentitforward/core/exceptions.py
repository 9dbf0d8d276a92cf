# backend/rentitforward/core/exceptions.py
"""
Domain-specific exceptions for the Rent It Forward platform.

These exceptions provide clear, business-focused error messages
that can be caught and handled appropriately at the API layer.
"""

from datetime import date
from typing import Any, Dict, Iterable, Optional

from fastapi import HTTPException, status

HTTP_422_UNPROCESSABLE: int = getattr(status, "HTTP_422_UNPROCESSABLE_CONTENT", 422)


class DomainException(Exception):
    """Base exception for all domain-specific errors."""

    status_code: int = status.HTTP_500_INTERNAL_SERVER_ERROR

    def __init__(
        self,
        message: str,
        code: Optional[str] = None,
        details: Optional[Dict[str, Any]] = None,
    ) -> None:
        self.message = message
        self.code = code or self.__class__.__name__
        self.details = details or {}
        super().__init__(self.message)

    def to_http_exception(self) -> HTTPException:
        """Convert to an HTTPException using the class status code."""
        return HTTPException(
            status_code=self.status_code,
            detail={
                "message": self.message,
                "code": self.code,
                "details": self.details,
            },
        )


class ValidationException(DomainException):
    """Raised when business validation fails."""

    status_code = status.HTTP_400_BAD_REQUEST


class NotFoundException(DomainException):
    """Raised when a requested resource is not found."""

    status_code = status.HTTP_404_NOT_FOUND


class ConflictException(DomainException):
    """Raised when there's a conflict with existing data."""

    status_code = status.HTTP_409_CONFLICT


class BusinessRuleException(DomainException):
    """Raised when a business rule is violated."""

    status_code = HTTP_422_UNPROCESSABLE


class UnauthorizedException(DomainException):
    """Raised when user is not authenticated."""

    status_code = status.HTTP_401_UNAUTHORIZED


class ForbiddenException(DomainException):
    """Raised when user lacks permission for an action."""

    status_code = status.HTTP_403_FORBIDDEN


class PaymentFailedException(DomainException):
    """Raised when the payments processor rejects an operation."""

    status_code = status.HTTP_402_PAYMENT_REQUIRED


class DependencyUnavailableException(DomainException):
    """Raised when storage or a third-party dependency cannot be reached."""

    status_code = status.HTTP_503_SERVICE_UNAVAILABLE


class ServiceException(DomainException):
    """Raised when a service operation fails."""

    def to_http_exception(self) -> HTTPException:
        return HTTPException(
            status_code=status.HTTP_500_INTERNAL_SERVER_ERROR,
            detail={
                "message": self.message or "An error occurred processing your request",
                "code": self.code,
                "details": self.details if self.details else {},
            },
        )


# Specific business exceptions


class BookingConflictException(ConflictException):
    """Raised when requested dates overlap an existing hold or booking."""

    def __init__(
        self,
        message: Optional[str] = None,
        *,
        conflicting_dates: Optional[Iterable[date]] = None,
    ):
        dates = sorted({d.isoformat() for d in conflicting_dates or []})
        super().__init__(
            message=message or "The selected dates are no longer available",
            code="DATE_CONFLICT",
            details={"conflicting_dates": dates} if dates else {},
        )


class PointsBalanceChangedException(ConflictException):
    """Raised when redeemed points were spent elsewhere before the booking was saved."""

    def __init__(self, points_requested: int):
        super().__init__(
            message="Your points balance changed while this booking was being made",
            code="POINTS_BALANCE_CHANGED",
            details={"points_requested": points_requested},
        )


class InvalidStatusTransitionException(ConflictException):
    """Raised when a booking cannot move from its current status."""

    def __init__(self, current_status: str, action: str):
        super().__init__(
            message=f"Cannot {action} a booking with status '{current_status}'",
            code="INVALID_STATUS_TRANSITION",
            details={"current_status": current_status, "action": action},
        )


class SelfBookingException(ForbiddenException):
    """Raised when an owner tries to rent their own listing."""

    def __init__(self) -> None:
        super().__init__(message="You cannot book your own listing", code="SELF_BOOKING")


class ListingUnavailableException(BusinessRuleException):
    """Raised when a listing is not accepting bookings."""

    def __init__(self, listing_id: str):
        super().__init__(
            message="This listing is not available for booking",
            code="LISTING_UNAVAILABLE",
            details={"listing_id": listing_id},
        )


class ApprovalDeadlinePassedException(DomainException):
    """Raised when the owner acts after the approval deadline."""

    status_code = status.HTTP_410_GONE

    def __init__(self, deadline: str):
        super().__init__(
            message="The approval deadline for this booking has passed",
            code="APPROVAL_DEADLINE_PASSED",
            details={"approval_deadline": deadline},
        )


class PaymentSetupFailedException(PaymentFailedException):
    """Raised when a payment customer cannot be created for the renter."""

    def __init__(self, message: str = "Unable to set up payment for this account"):
        super().__init__(message=message, code="PAYMENT_SETUP_FAILED")


class PaymentAuthorizationFailedException(PaymentFailedException):
    """Raised when the authorization hold is declined."""

    def __init__(self, message: str = "Payment authorization failed"):
        super().__init__(message=message, code="PAYMENT_AUTHORIZATION_FAILED")


class RepositoryException(Exception):
    """
    Exception raised for repository layer errors.

    This exception is used when data access operations fail,
    such as database connection issues, query failures, or
    constraint violations.
    """
