"""Centralized pricing calculations for rental bookings."""

from __future__ import annotations

from dataclasses import dataclass
from datetime import date, datetime, timezone
from decimal import ROUND_HALF_UP, Decimal
from typing import Any, Dict, Optional

from ..core.config import settings
from ..core.exceptions import ValidationException

CENT = Decimal("0.01")


def quantize_money(value: Decimal) -> Decimal:
    """Round to cents, half-up."""
    return value.quantize(CENT, rounding=ROUND_HALF_UP)


def to_minor_units(amount: Decimal) -> int:
    """Convert a currency amount to the processor's integer minor units."""
    return int((quantize_money(amount) * 100).quantize(Decimal("1"), rounding=ROUND_HALF_UP))


def _decimal(value: Any) -> Decimal:
    return Decimal(str(value))


@dataclass(frozen=True)
class PriceBreakdown:
    """Price snapshot written onto a booking at authorization time."""

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

    @property
    def total_minor_units(self) -> int:
        return to_minor_units(self.total_amount)

    def to_payload(self) -> Dict[str, Any]:
        return {
            "daily_rate": self.daily_rate,
            "duration_days": self.duration_days,
            "rental_fee": self.rental_fee,
            "service_fee": self.service_fee,
            "insurance_fee": self.insurance_fee,
            "security_deposit": self.security_deposit,
            "points_redeemed": self.points_redeemed,
            "points_credit": self.points_credit,
            "total_amount": self.total_amount,
            "currency": self.currency,
        }

    def booking_fields(self) -> Dict[str, Any]:
        """Column values for the Booking row."""
        return self.to_payload()


def rental_duration_days(start_date: date, end_date: date) -> int:
    """Days between start and end, end exclusive."""
    return (end_date - start_date).days


def validate_rental_dates(
    start_date: date,
    end_date: date,
    *,
    today: Optional[date] = None,
) -> int:
    """
    Check a requested rental period and return its length in days.

    Raises:
        ValidationException: if the period is empty, too long or in the past
    """
    today = today or datetime.now(timezone.utc).date()
    if end_date <= start_date:
        raise ValidationException(
            "End date must be after start date",
            code="INVALID_DATES",
            details={"start_date": start_date.isoformat(), "end_date": end_date.isoformat()},
        )
    if start_date < today:
        raise ValidationException(
            "Start date cannot be in the past",
            code="INVALID_DATES",
            details={"start_date": start_date.isoformat()},
        )

    duration = rental_duration_days(start_date, end_date)
    if duration < settings.min_booking_days or duration > settings.max_booking_days:
        raise ValidationException(
            f"Rental period must be between {settings.min_booking_days} and "
            f"{settings.max_booking_days} days",
            code="INVALID_DURATION",
            details={"duration_days": duration},
        )
    return duration


def calculate_price(
    *,
    daily_rate: Any,
    duration_days: int,
    include_insurance: bool = False,
    security_deposit: Any = 0,
    points_requested: int = 0,
    points_balance: int = 0,
    service_fee_rate: Optional[float] = None,
    insurance_rate: Optional[float] = None,
    points_to_currency_rate: Optional[float] = None,
    currency: Optional[str] = None,
) -> PriceBreakdown:
    """
    Compute the booking price breakdown.

    rental = rate * days; the service fee and optional insurance are
    percentages of the rental; redeemed points reduce the total but never
    below zero. Rates default to the configured platform values.
    """
    if duration_days <= 0:
        raise ValidationException("Duration must be at least one day", code="INVALID_DURATION")
    if points_requested < 0:
        raise ValidationException("points_to_redeem must be non-negative", code="NEGATIVE_POINTS")

    rate = quantize_money(_decimal(daily_rate))
    if rate <= 0:
        raise ValidationException("Daily rate must be positive", code="INVALID_RATE")
    deposit = quantize_money(_decimal(security_deposit or 0))
    if deposit < 0:
        raise ValidationException("Security deposit cannot be negative", code="INVALID_DEPOSIT")

    fee_rate = _decimal(settings.service_fee_rate if service_fee_rate is None else service_fee_rate)
    cover_rate = _decimal(settings.insurance_rate if insurance_rate is None else insurance_rate)
    point_value = _decimal(
        settings.points_to_currency_rate
        if points_to_currency_rate is None
        else points_to_currency_rate
    )

    rental_fee = quantize_money(rate * duration_days)
    service_fee = quantize_money(rental_fee * fee_rate)
    insurance_fee = quantize_money(rental_fee * cover_rate) if include_insurance else Decimal("0.00")

    points_applied = min(points_requested, max(points_balance, 0))
    points_credit = quantize_money(point_value * points_applied)

    gross = rental_fee + service_fee + insurance_fee + deposit
    total = max(Decimal("0.00"), quantize_money(gross - points_credit))

    return PriceBreakdown(
        daily_rate=rate,
        duration_days=duration_days,
        rental_fee=rental_fee,
        service_fee=service_fee,
        insurance_fee=insurance_fee,
        security_deposit=deposit,
        points_redeemed=points_applied,
        points_credit=points_credit,
        total_amount=total,
        currency=(currency or settings.stripe_currency).lower(),
    )
