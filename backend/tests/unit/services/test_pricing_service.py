"""Unit tests for booking price calculation."""

from datetime import date
from decimal import Decimal

import pytest

from rentitforward.core.exceptions import ValidationException
from rentitforward.services.pricing_service import (
    calculate_price,
    quantize_money,
    to_minor_units,
    validate_rental_dates,
)


class TestCalculatePrice:
    def test_two_day_rental_with_ten_percent_fee(self):
        breakdown = calculate_price(
            daily_rate=Decimal("50.00"), duration_days=2, service_fee_rate=0.10
        )

        assert breakdown.rental_fee == Decimal("100.00")
        assert breakdown.service_fee == Decimal("10.00")
        assert breakdown.insurance_fee == Decimal("0.00")
        assert breakdown.total_amount == Decimal("110.00")
        assert breakdown.total_minor_units == 11000

    def test_insurance_and_deposit_are_added(self):
        breakdown = calculate_price(
            daily_rate="40",
            duration_days=3,
            include_insurance=True,
            security_deposit="100",
            service_fee_rate=0.15,
            insurance_rate=0.10,
        )

        assert breakdown.rental_fee == Decimal("120.00")
        assert breakdown.service_fee == Decimal("18.00")
        assert breakdown.insurance_fee == Decimal("12.00")
        assert breakdown.security_deposit == Decimal("100.00")
        assert breakdown.total_amount == Decimal("250.00")

    def test_points_are_capped_at_balance(self):
        breakdown = calculate_price(
            daily_rate="50",
            duration_days=2,
            points_requested=500,
            points_balance=100,
            service_fee_rate=0.10,
            points_to_currency_rate=0.10,
        )

        assert breakdown.points_redeemed == 100
        assert breakdown.points_credit == Decimal("10.00")
        assert breakdown.total_amount == Decimal("100.00")

    def test_total_never_goes_negative(self):
        breakdown = calculate_price(
            daily_rate="1.00",
            duration_days=1,
            points_requested=1000,
            points_balance=1000,
            points_to_currency_rate=0.10,
        )

        assert breakdown.total_amount == Decimal("0.00")
        assert breakdown.total_minor_units == 0

    def test_fee_rounds_half_up_to_cents(self):
        breakdown = calculate_price(daily_rate="33.33", duration_days=1, service_fee_rate=0.15)

        # 33.33 * 0.15 = 4.9995
        assert breakdown.service_fee == Decimal("5.00")

    def test_currency_defaults_to_settings_lowercased(self):
        breakdown = calculate_price(daily_rate="10", duration_days=1, currency="AUD")

        assert breakdown.currency == "aud"

    @pytest.mark.parametrize(
        "kwargs, code",
        [
            ({"daily_rate": "0", "duration_days": 1}, "INVALID_RATE"),
            ({"daily_rate": "10", "duration_days": 0}, "INVALID_DURATION"),
            ({"daily_rate": "10", "duration_days": 1, "points_requested": -1}, "NEGATIVE_POINTS"),
            ({"daily_rate": "10", "duration_days": 1, "security_deposit": "-5"}, "INVALID_DEPOSIT"),
        ],
    )
    def test_invalid_inputs(self, kwargs, code):
        with pytest.raises(ValidationException) as exc_info:
            calculate_price(**kwargs)

        assert exc_info.value.code == code


class TestRentalDates:
    TODAY = date(2030, 3, 1)

    def test_duration_is_end_exclusive(self):
        assert validate_rental_dates(date(2030, 3, 10), date(2030, 3, 12), today=self.TODAY) == 2

    def test_start_today_is_allowed(self):
        assert validate_rental_dates(self.TODAY, date(2030, 3, 2), today=self.TODAY) == 1

    def test_end_before_start_is_rejected(self):
        with pytest.raises(ValidationException) as exc_info:
            validate_rental_dates(date(2030, 3, 12), date(2030, 3, 12), today=self.TODAY)

        assert exc_info.value.code == "INVALID_DATES"

    def test_past_start_is_rejected(self):
        with pytest.raises(ValidationException) as exc_info:
            validate_rental_dates(date(2030, 2, 27), date(2030, 3, 2), today=self.TODAY)

        assert exc_info.value.code == "INVALID_DATES"

    def test_too_long_is_rejected(self):
        with pytest.raises(ValidationException) as exc_info:
            validate_rental_dates(date(2030, 3, 2), date(2031, 3, 10), today=self.TODAY)

        assert exc_info.value.code == "INVALID_DURATION"


def test_money_helpers():
    assert quantize_money(Decimal("10.005")) == Decimal("10.01")
    assert to_minor_units(Decimal("110.00")) == 11000
    assert to_minor_units(Decimal("0.1")) == 10
