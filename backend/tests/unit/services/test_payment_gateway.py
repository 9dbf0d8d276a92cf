"""PaymentGateway in mock mode and against a patched Stripe client."""

from unittest.mock import MagicMock, patch

from pydantic import SecretStr
import pytest
import stripe

from rentitforward.core.config import settings
from rentitforward.core.exceptions import (
    PaymentAuthorizationFailedException,
    PaymentFailedException,
    PaymentSetupFailedException,
)
from rentitforward.services.payment_gateway import PaymentGateway


class TestMockMode:
    @pytest.fixture
    def gateway(self, db):
        return PaymentGateway(db)

    def test_customer_reference_is_stored_on_user(self, gateway, renter, db):
        customer_id = gateway.ensure_customer(renter.id, renter.email, renter.full_name)

        assert customer_id == f"mock_cust_{renter.id}"
        db.commit()
        db.refresh(renter)
        assert renter.stripe_customer_id == customer_id
        assert gateway.ensure_customer(renter.id, renter.email, renter.full_name) == customer_id

    def test_references_are_deterministic(self, gateway):
        auth = gateway.authorize(customer_id="cus_1", amount_minor=11000, idempotency_key="booking-b1-authorize")

        assert auth.payment_intent_id == "mock_pi_booking-b1-authorize"
        assert auth.status == "requires_capture"
        assert gateway.capture(auth.payment_intent_id, idempotency_key="k").status == "succeeded"
        assert gateway.void(auth.payment_intent_id, idempotency_key="k").status == "canceled"
        refund = gateway.refund(auth.payment_intent_id, amount_minor=500, idempotency_key="booking-b1-refund")
        assert refund.reference == "mock_re_booking-b1-refund"
        assert refund.amount == 500
        transfer = gateway.transfer(
            destination_account_id="acct_1", amount_minor=8000, idempotency_key="booking-b1-payout"
        )
        assert transfer.reference == "mock_tr_booking-b1-payout"

    @pytest.mark.parametrize(
        "call",
        [
            lambda g: g.authorize(customer_id="cus_1", amount_minor=0, idempotency_key="k"),
            lambda g: g.refund("pi_1", amount_minor=0, idempotency_key="k"),
            lambda g: g.transfer(destination_account_id="acct_1", amount_minor=-1, idempotency_key="k"),
        ],
    )
    def test_non_positive_amounts_are_refused(self, gateway, call):
        with pytest.raises(PaymentFailedException):
            call(gateway)


class TestStripeMode:
    @pytest.fixture
    def gateway(self, db, monkeypatch):
        monkeypatch.setattr(settings, "stripe_secret_key", SecretStr("sk_test_123"))
        monkeypatch.setattr(stripe, "api_key", None)
        monkeypatch.setattr(stripe, "default_http_client", None)
        monkeypatch.setattr(stripe, "max_network_retries", 0)
        return PaymentGateway(db)

    def test_authorize_uses_manual_capture_and_idempotency_key(self, gateway):
        intent = MagicMock(id="pi_123", client_secret="pi_123_secret", status="requires_capture")
        with patch.object(stripe.PaymentIntent, "create", return_value=intent) as create:
            result = gateway.authorize(
                customer_id="cus_1",
                amount_minor=11000,
                idempotency_key="booking-b1-authorize",
                payment_method_id="pm_card",
                metadata={"booking_id": "b1"},
            )

        kwargs = create.call_args.kwargs
        assert kwargs["capture_method"] == "manual"
        assert kwargs["amount"] == 11000
        assert kwargs["idempotency_key"] == "booking-b1-authorize"
        assert kwargs["confirm"] is True
        assert result.payment_intent_id == "pi_123"

    def test_declined_authorization(self, gateway):
        with patch.object(
            stripe.PaymentIntent, "create", side_effect=stripe.StripeError("Your card was declined.")
        ):
            with pytest.raises(PaymentAuthorizationFailedException):
                gateway.authorize(customer_id="cus_1", amount_minor=11000, idempotency_key="k")

    def test_customer_creation_failure(self, gateway, renter):
        with patch.object(stripe.Customer, "create", side_effect=stripe.StripeError("boom")):
            with pytest.raises(PaymentSetupFailedException):
                gateway.ensure_customer(renter.id, renter.email, renter.full_name)

    def test_transfer_failure(self, gateway):
        with patch.object(stripe.Transfer, "create", side_effect=stripe.StripeError("restricted")):
            with pytest.raises(PaymentFailedException) as exc_info:
                gateway.transfer(destination_account_id="acct_1", amount_minor=8000, idempotency_key="k")

        assert exc_info.value.code == "PAYOUT_FAILED"
