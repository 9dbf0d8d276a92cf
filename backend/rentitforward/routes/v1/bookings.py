# backend/rentitforward/routes/v1/bookings.py
"""
Booking routes - API v1

Versioned booking endpoints under /api/v1/bookings.
All business logic delegated to BookingService and ReviewService.

Endpoints:
    POST /authorize - Request a rental and hold the payment
    GET /{booking_id} - Booking details for either party
    POST /{booking_id}/approve - Owner accepts and captures
    POST /{booking_id}/reject - Owner declines and releases the hold
    POST /{booking_id}/pickup-verification - Confirm handover with photos
    POST /{booking_id}/return-verification - Confirm return with photos
    POST /{booking_id}/cancel - Cancel under the cancellation policy
    POST /{booking_id}/issues - Report a problem with the rental
    POST /{booking_id}/reviews - Review the other party
"""

import asyncio
import logging
from typing import Annotated, NoReturn

from fastapi import APIRouter, Body, Depends, HTTPException, Path, status

from ...api.dependencies import get_booking_service, get_current_active_user, get_review_service
from ...core.constants import ULID_PATH_PATTERN
from ...core.exceptions import DomainException
from ...models.user import User
from ...schemas.booking import (
    AuthorizeBookingRequest,
    AuthorizeBookingResponse,
    BookingActionResponse,
    BookingResponse,
    CancelBookingRequest,
    IssueReportRequest,
    IssueReportResponse,
    PriceBreakdownResponse,
    RejectBookingRequest,
    ReturnVerificationRequest,
    VerificationRequest,
    VerificationResponse,
)
from ...schemas.review import ReviewCreate, ReviewResponse
from ...services.booking_service import BookingService
from ...services.review_service import ReviewService

logger = logging.getLogger(__name__)

# V1 router - no prefix here, will be added when mounting in main.py
router = APIRouter(tags=["bookings-v1"])

BookingId = Annotated[
    str,
    Path(
        description="Booking ULID",
        pattern=ULID_PATH_PATTERN,
        examples=["01HF4G12ABCDEF3456789XYZAB"],
    ),
]


def handle_domain_exception(exc: DomainException) -> NoReturn:
    """Convert domain exceptions to HTTP exceptions."""
    if hasattr(exc, "to_http_exception"):
        raise exc.to_http_exception()
    raise HTTPException(status_code=status.HTTP_500_INTERNAL_SERVER_ERROR, detail=str(exc))


@router.post(
    "/authorize",
    response_model=AuthorizeBookingResponse,
    status_code=status.HTTP_201_CREATED,
    responses={
        402: {"description": "Payment setup or authorization failed"},
        404: {"description": "Listing not found"},
        409: {"description": "Dates not available"},
        422: {"description": "Listing not accepting bookings"},
    },
)
async def authorize_booking(
    payload: AuthorizeBookingRequest = Body(...),
    current_user: User = Depends(get_current_active_user),
    booking_service: BookingService = Depends(get_booking_service),
) -> AuthorizeBookingResponse:
    """
    Request a rental.

    Holds the total on the renter's card and notifies the owner. The hold is
    captured only when the owner approves.
    """
    try:
        outcome = await asyncio.to_thread(booking_service.authorize_booking, current_user, payload)
        return AuthorizeBookingResponse(
            booking_id=outcome.booking.id,
            status=outcome.booking.status,
            price_breakdown=PriceBreakdownResponse(**outcome.price_breakdown.to_payload()),
            client_secret=outcome.client_secret,
            approval_deadline=outcome.booking.approval_deadline,
        )
    except DomainException as e:
        handle_domain_exception(e)


@router.get(
    "/{booking_id}",
    response_model=BookingResponse,
    responses={403: {"description": "Not a party"}, 404: {"description": "Booking not found"}},
)
async def get_booking(
    booking_id: BookingId,
    current_user: User = Depends(get_current_active_user),
    booking_service: BookingService = Depends(get_booking_service),
) -> BookingResponse:
    try:
        booking = await asyncio.to_thread(
            booking_service.get_booking_for_user, booking_id, current_user
        )
        return BookingResponse.model_validate(booking)
    except DomainException as e:
        handle_domain_exception(e)


@router.post(
    "/{booking_id}/approve",
    response_model=BookingActionResponse,
    responses={
        402: {"description": "Capture failed"},
        409: {"description": "Booking cannot be approved"},
        410: {"description": "Approval deadline passed"},
    },
)
async def approve_booking(
    booking_id: BookingId,
    current_user: User = Depends(get_current_active_user),
    booking_service: BookingService = Depends(get_booking_service),
) -> BookingActionResponse:
    """Approve a request. Repeating the call on a confirmed booking is a no-op."""
    try:
        result = await asyncio.to_thread(booking_service.approve_booking, booking_id, current_user)
        return BookingActionResponse(
            message="Booking already approved" if result.already_processed else "Booking approved",
            already_processed=result.already_processed,
            booking=BookingResponse.model_validate(result.booking),
        )
    except DomainException as e:
        handle_domain_exception(e)


@router.post(
    "/{booking_id}/reject",
    response_model=BookingActionResponse,
    responses={409: {"description": "Booking cannot be rejected"}},
)
async def reject_booking(
    booking_id: BookingId,
    payload: RejectBookingRequest = Body(...),
    current_user: User = Depends(get_current_active_user),
    booking_service: BookingService = Depends(get_booking_service),
) -> BookingActionResponse:
    try:
        booking = await asyncio.to_thread(
            booking_service.reject_booking, booking_id, current_user, payload.reason, payload.note
        )
        return BookingActionResponse(
            message="Booking rejected", booking=BookingResponse.model_validate(booking)
        )
    except DomainException as e:
        handle_domain_exception(e)


@router.post(
    "/{booking_id}/pickup-verification",
    response_model=VerificationResponse,
    responses={
        409: {"description": "Booking is not awaiting pickup"},
        422: {"description": "Outside the pickup window or renter evidence missing"},
    },
)
async def confirm_pickup(
    booking_id: BookingId,
    payload: VerificationRequest = Body(...),
    current_user: User = Depends(get_current_active_user),
    booking_service: BookingService = Depends(get_booking_service),
) -> VerificationResponse:
    try:
        result = await asyncio.to_thread(
            booking_service.confirm_pickup, booking_id, current_user, payload
        )
        return VerificationResponse(
            message="Rental started" if result.both_confirmed else "Pickup confirmed",
            both_confirmed=result.both_confirmed,
            booking=BookingResponse.model_validate(result.booking),
        )
    except DomainException as e:
        handle_domain_exception(e)


@router.post(
    "/{booking_id}/return-verification",
    response_model=VerificationResponse,
    responses={
        409: {"description": "Booking is not in progress"},
        422: {"description": "Outside the return window or renter evidence missing"},
    },
)
async def confirm_return(
    booking_id: BookingId,
    payload: ReturnVerificationRequest = Body(...),
    current_user: User = Depends(get_current_active_user),
    booking_service: BookingService = Depends(get_booking_service),
) -> VerificationResponse:
    try:
        result = await asyncio.to_thread(
            booking_service.confirm_return, booking_id, current_user, payload
        )
        return VerificationResponse(
            message="Rental completed" if result.both_confirmed else "Return confirmed",
            both_confirmed=result.both_confirmed,
            issue_report_id=result.issue_report.id if result.issue_report else None,
            booking=BookingResponse.model_validate(result.booking),
        )
    except DomainException as e:
        handle_domain_exception(e)


@router.post(
    "/{booking_id}/cancel",
    response_model=BookingActionResponse,
    responses={
        402: {"description": "Refund failed"},
        409: {"description": "Booking already finished"},
    },
)
async def cancel_booking(
    booking_id: BookingId,
    payload: CancelBookingRequest = Body(...),
    current_user: User = Depends(get_current_active_user),
    booking_service: BookingService = Depends(get_booking_service),
) -> BookingActionResponse:
    """Cancel a booking."""
    try:
        booking = await asyncio.to_thread(
            booking_service.cancel_booking, booking_id, current_user, payload.reason
        )
        return BookingActionResponse(
            message="Booking cancelled", booking=BookingResponse.model_validate(booking)
        )
    except DomainException as e:
        handle_domain_exception(e)


@router.post(
    "/{booking_id}/issues",
    response_model=IssueReportResponse,
    status_code=status.HTTP_201_CREATED,
)
async def report_issue(
    booking_id: BookingId,
    payload: IssueReportRequest = Body(...),
    current_user: User = Depends(get_current_active_user),
    booking_service: BookingService = Depends(get_booking_service),
) -> IssueReportResponse:
    try:
        report = await asyncio.to_thread(
            booking_service.report_issue, booking_id, current_user, payload
        )
        return IssueReportResponse.model_validate(report)
    except DomainException as e:
        handle_domain_exception(e)


@router.post(
    "/{booking_id}/reviews",
    response_model=ReviewResponse,
    status_code=status.HTTP_201_CREATED,
    responses={409: {"description": "Already reviewed"}, 422: {"description": "Not completed"}},
)
async def submit_review(
    booking_id: BookingId,
    payload: ReviewCreate = Body(...),
    current_user: User = Depends(get_current_active_user),
    review_service: ReviewService = Depends(get_review_service),
) -> ReviewResponse:
    try:
        review = await asyncio.to_thread(
            review_service.submit_review,
            booking_id,
            current_user,
            payload.rating,
            payload.comment,
        )
        return ReviewResponse.model_validate(review)
    except DomainException as e:
        handle_domain_exception(e)
