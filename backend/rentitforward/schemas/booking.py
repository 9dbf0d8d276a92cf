# backend/rentitforward/schemas/booking.py
"""
Booking schemas for the Rent It Forward platform.

Request bodies reject unknown fields. Money is carried as Decimal and
serialized as a string so no precision is lost on the way to the client.
"""

from datetime import date, datetime
from decimal import Decimal
import re
from typing import List, Literal, Optional

from pydantic import ConfigDict, Field, ValidationInfo, field_validator, model_validator

from ..core.constants import (
    MAX_ISSUE_DESCRIPTION_LENGTH,
    MAX_NOTE_LENGTH,
    MAX_REASON_LENGTH,
    MIN_ISSUE_DESCRIPTION_LENGTH,
    MIN_REJECTION_REASON_LENGTH,
)
from ._strict_base import StrictModel, StrictRequestModel

DATE_ONLY_REGEX = re.compile(r"^\d{4}-\d{2}-\d{2}$")
MAX_PHOTOS_PER_SUBMISSION = 8

Severity = Literal["low", "medium", "high", "critical"]


def _ensure_date_only(value: object, field_name: str) -> object:
    if isinstance(value, str):
        candidate = value.strip()
        if not DATE_ONLY_REGEX.fullmatch(candidate):
            raise ValueError(f"{field_name} must be a YYYY-MM-DD date-only string")
        return candidate
    return value


def _ensure_http_url(value: str) -> str:
    if not value.lower().startswith(("http://", "https://")):
        raise ValueError("Photo URL must start with http:// or https://")
    return value


class AuthorizeBookingRequest(StrictRequestModel):
    """Create a rental request and place the payment hold."""

    listing_id: str = Field(..., min_length=26, max_length=26, description="Listing to rent")
    start_date: date = Field(..., description="First day of the rental")
    end_date: date = Field(..., description="Return day (exclusive)")
    daily_rate: Optional[Decimal] = Field(
        None, gt=0, description="Rate the client priced with; must match the listing"
    )
    duration_days: Optional[int] = Field(
        None, ge=1, description="Duration the client priced with; must match the dates"
    )
    include_insurance: bool = False
    security_deposit: Optional[Decimal] = Field(
        None, ge=0, description="Defaults to the listing's deposit"
    )
    points_to_redeem: int = Field(0, ge=0)
    payment_method_id: Optional[str] = Field(None, max_length=255)
    notes: Optional[str] = Field(None, max_length=MAX_NOTE_LENGTH)

    @field_validator("start_date", "end_date", mode="before")
    @classmethod
    def _date_only(cls, value: object, info: ValidationInfo) -> object:
        return _ensure_date_only(value, info.field_name)

    @model_validator(mode="after")
    def _end_after_start(self) -> "AuthorizeBookingRequest":
        if self.end_date <= self.start_date:
            raise ValueError("end_date must be after start_date")
        return self


class RejectBookingRequest(StrictRequestModel):
    reason: str = Field(..., min_length=MIN_REJECTION_REASON_LENGTH, max_length=MAX_REASON_LENGTH)
    note: Optional[str] = Field(None, max_length=MAX_NOTE_LENGTH)


class CancelBookingRequest(StrictRequestModel):
    reason: str = Field(..., min_length=1, max_length=MAX_REASON_LENGTH)


class PhotoIn(StrictRequestModel):
    """An evidence photo already uploaded to object storage."""

    url: str = Field(..., max_length=2048)
    captured_at: datetime
    latitude: Optional[float] = Field(None, ge=-90, le=90)
    longitude: Optional[float] = Field(None, ge=-180, le=180)
    description: Optional[str] = Field(None, max_length=500)

    @field_validator("url")
    @classmethod
    def _http_url(cls, value: str) -> str:
        return _ensure_http_url(value)


class DamageReport(StrictRequestModel):
    issue_type: str = Field(..., min_length=1, max_length=50)
    severity: Severity = "medium"
    description: str = Field(
        ..., min_length=MIN_ISSUE_DESCRIPTION_LENGTH, max_length=MAX_ISSUE_DESCRIPTION_LENGTH
    )
    estimated_cost: Optional[Decimal] = Field(None, ge=0)


class VerificationRequest(StrictRequestModel):
    """Pickup confirmation from one party."""

    photos: List[PhotoIn] = Field(default_factory=list, max_length=MAX_PHOTOS_PER_SUBMISSION)
    notes: Optional[str] = Field(None, max_length=MAX_NOTE_LENGTH)


class ReturnVerificationRequest(VerificationRequest):
    """Return confirmation, optionally flagging damage."""

    damage_report: Optional[DamageReport] = None


class IssueReportRequest(StrictRequestModel):
    issue_type: str = Field(..., min_length=1, max_length=50)
    severity: Severity = "medium"
    title: str = Field(..., min_length=1, max_length=255)
    description: str = Field(
        ..., min_length=MIN_ISSUE_DESCRIPTION_LENGTH, max_length=MAX_ISSUE_DESCRIPTION_LENGTH
    )
    estimated_cost: Optional[Decimal] = Field(None, ge=0)
    photos: List[str] = Field(default_factory=list, max_length=MAX_PHOTOS_PER_SUBMISSION)

    @field_validator("photos")
    @classmethod
    def _http_urls(cls, value: List[str]) -> List[str]:
        return [_ensure_http_url(url) for url in value]


# Responses


class PriceBreakdownResponse(StrictModel):
    daily_rate: Decimal
    duration_days: int
    rental_fee: Decimal
    service_fee: Decimal
    insurance_fee: Decimal
    security_deposit: Decimal
    points_redeemed: int
    points_credit: Decimal
    total_amount: Decimal
    currency: str


class BookingPhotoResponse(StrictModel):
    model_config = ConfigDict(from_attributes=True, extra="forbid")

    id: str
    phase: str
    party: str
    position: int
    url: str
    captured_at: datetime
    latitude: Optional[float] = None
    longitude: Optional[float] = None
    description: Optional[str] = None


class BookingResponse(StrictModel):
    model_config = ConfigDict(from_attributes=True, extra="forbid")

    id: str
    listing_id: str
    renter_id: str
    owner_id: str
    start_date: date
    end_date: date
    duration_days: int
    status: str
    currency: str
    daily_rate: Decimal
    rental_fee: Decimal
    service_fee: Decimal
    insurance_fee: Decimal
    security_deposit: Decimal
    points_redeemed: int
    points_credit: Decimal
    total_amount: Decimal
    approval_deadline: Optional[datetime] = None
    confirmed_at: Optional[datetime] = None
    pickup_renter_confirmed: bool = False
    pickup_owner_confirmed: bool = False
    pickup_confirmed_at: Optional[datetime] = None
    return_renter_confirmed: bool = False
    return_owner_confirmed: bool = False
    return_confirmed_at: Optional[datetime] = None
    cancelled_at: Optional[datetime] = None
    cancellation_reason: Optional[str] = None
    cancellation_fee: Optional[Decimal] = None
    refund_amount: Optional[Decimal] = None
    payout_status: Optional[str] = None
    photos: List[BookingPhotoResponse] = Field(default_factory=list)


class AuthorizeBookingResponse(StrictModel):
    success: bool = True
    booking_id: str
    status: str
    price_breakdown: PriceBreakdownResponse
    client_secret: Optional[str] = None
    approval_deadline: Optional[datetime] = None


class BookingActionResponse(StrictModel):
    success: bool = True
    message: str
    already_processed: bool = False
    booking: BookingResponse


class VerificationResponse(StrictModel):
    success: bool = True
    message: str
    both_confirmed: bool
    issue_report_id: Optional[str] = None
    booking: BookingResponse


class IssueReportResponse(StrictModel):
    model_config = ConfigDict(from_attributes=True, extra="forbid")

    success: bool = True
    id: str
    booking_id: str
    reporter_role: str
    issue_type: str
    severity: str
    title: str
    status: str
