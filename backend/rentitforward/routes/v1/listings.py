# backend/rentitforward/routes/v1/listings.py
"""
Listing routes - API v1

Endpoints:
    GET /{listing_id}/availability - Held and booked dates for a listing
"""

import asyncio
from datetime import date
import logging
from typing import Annotated, NoReturn

from fastapi import APIRouter, Depends, HTTPException, Path, Query, status

from ...api.dependencies import get_booking_service, get_current_active_user
from ...core.constants import ULID_PATH_PATTERN
from ...core.exceptions import DomainException
from ...models.user import User
from ...schemas.availability import AvailabilityEntryResponse, ListingAvailabilityResponse
from ...services.booking_service import BookingService

logger = logging.getLogger(__name__)

router = APIRouter(tags=["listings-v1"])


def handle_domain_exception(exc: DomainException) -> NoReturn:
    """Convert domain exceptions to HTTP exceptions."""
    if hasattr(exc, "to_http_exception"):
        raise exc.to_http_exception()
    raise HTTPException(status_code=status.HTTP_500_INTERNAL_SERVER_ERROR, detail=str(exc))


@router.get(
    "/{listing_id}/availability",
    response_model=ListingAvailabilityResponse,
    responses={404: {"description": "Listing not found"}},
)
async def get_listing_availability(
    listing_id: Annotated[
        str, Path(description="Listing ULID", pattern=ULID_PATH_PATTERN)
    ],
    start: date = Query(..., description="First date to include"),
    end: date = Query(..., description="Last date to include"),
    current_user: User = Depends(get_current_active_user),
    booking_service: BookingService = Depends(get_booking_service),
) -> ListingAvailabilityResponse:
    """Dates that are held or booked between ``start`` and ``end`` inclusive."""
    try:
        entries = await asyncio.to_thread(booking_service.list_availability, listing_id, start, end)
        return ListingAvailabilityResponse(
            listing_id=listing_id,
            start=start,
            end=end,
            entries=[AvailabilityEntryResponse(**entry) for entry in entries],
        )
    except DomainException as e:
        handle_domain_exception(e)
