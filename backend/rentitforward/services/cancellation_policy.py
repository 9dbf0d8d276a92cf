"""Cancellation fee and refund rules for rental bookings."""

from __future__ import annotations

from dataclasses import dataclass
from datetime import datetime, time, timezone
from decimal import Decimal
from typing import Optional

from ..core.config import settings
from ..models.booking import PRE_CAPTURE_STATUSES, Booking, BookingStatus
from .pricing_service import quantize_money


@dataclass(frozen=True)
class CancellationQuote:
    cancellation_fee: Decimal
    refund_amount: Decimal
    policy_basis: str
    requires_refund: bool


def rental_start_utc(booking: Booking) -> datetime:
    """The rental is treated as starting at midnight UTC on its start date."""
    return datetime.combine(booking.start_date, time.min, tzinfo=timezone.utc)


class CancellationPolicy:
    """Determines the fee kept and the amount refunded when a booking is cancelled."""

    def __init__(
        self,
        late_cancellation_hours: Optional[int] = None,
        late_cancellation_fee_rate: Optional[float] = None,
    ) -> None:
        self.late_cancellation_hours = (
            settings.late_cancellation_hours
            if late_cancellation_hours is None
            else late_cancellation_hours
        )
        self.late_cancellation_fee_rate = Decimal(
            str(
                settings.late_cancellation_fee_rate
                if late_cancellation_fee_rate is None
                else late_cancellation_fee_rate
            )
        )

    def evaluate(
        self,
        booking: Booking,
        *,
        cancelled_by_owner: bool,
        now: Optional[datetime] = None,
    ) -> CancellationQuote:
        now = now or datetime.now(timezone.utc)
        total = quantize_money(Decimal(str(booking.total_amount or 0)))
        deposit = quantize_money(Decimal(str(booking.security_deposit or 0)))
        status = booking.status_enum

        if status in PRE_CAPTURE_STATUSES:
            return CancellationQuote(
                cancellation_fee=Decimal("0.00"),
                refund_amount=Decimal("0.00"),
                policy_basis="Not yet charged: authorization released",
                requires_refund=False,
            )

        if cancelled_by_owner:
            return CancellationQuote(
                cancellation_fee=Decimal("0.00"),
                refund_amount=total,
                policy_basis="Cancelled by owner: full refund",
                requires_refund=total > 0,
            )

        if status == BookingStatus.IN_PROGRESS:
            refund = min(deposit, total)
            return CancellationQuote(
                cancellation_fee=quantize_money(total - refund),
                refund_amount=refund,
                policy_basis="Rental already started: security deposit refunded",
                requires_refund=refund > 0,
            )

        hours_before_start = (rental_start_utc(booking) - now).total_seconds() / 3600
        if hours_before_start >= self.late_cancellation_hours:
            return CancellationQuote(
                cancellation_fee=Decimal("0.00"),
                refund_amount=total,
                policy_basis=f">={self.late_cancellation_hours} hours before start: full refund",
                requires_refund=total > 0,
            )

        fee = quantize_money((total - deposit) * self.late_cancellation_fee_rate)
        fee = max(Decimal("0.00"), min(fee, total))
        refund = quantize_money(total - fee)
        return CancellationQuote(
            cancellation_fee=fee,
            refund_amount=refund,
            policy_basis=(
                f"<{self.late_cancellation_hours} hours before start: "
                f"{int(self.late_cancellation_fee_rate * 100)}% of rental charges retained"
            ),
            requires_refund=refund > 0,
        )
