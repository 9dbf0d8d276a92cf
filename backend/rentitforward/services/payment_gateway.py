"""
Payment gateway for the Rent It Forward platform

The only module that talks to Stripe. Bookings authorize the full total with
a manual-capture PaymentIntent when requested, capture it on owner approval,
and settle the owner's share through a Connect transfer once the rental is
returned.

Every call carries an idempotency key derived from the booking id so retried
requests never double-charge. Amounts are always integer minor units.

When no Stripe secret key is configured the gateway runs in mock mode and
returns deterministic ``mock_*`` references so local development and CI can
exercise the full booking flow.
"""

from dataclasses import dataclass
import logging
from typing import Any, Dict, Optional

from sqlalchemy.orm import Session
import stripe

from ..core.config import secret_or_plain, settings
from ..core.exceptions import (
    PaymentAuthorizationFailedException,
    PaymentFailedException,
    PaymentSetupFailedException,
)
from ..repositories.user_repository import UserRepository
from .base import BaseService

logger: logging.Logger = logging.getLogger(__name__)


@dataclass(frozen=True)
class AuthorizationResult:
    payment_intent_id: str
    client_secret: Optional[str]
    status: str


@dataclass(frozen=True)
class GatewayResult:
    reference: str
    status: str
    amount: Optional[int] = None


class PaymentGateway(BaseService):
    """Stripe customer, authorization, capture, refund and payout calls."""

    def __init__(self, db: Session):
        super().__init__(db)
        self.user_repository = UserRepository(db)

        self.stripe_configured = False
        if settings.stripe_configured:
            stripe.api_key = secret_or_plain(settings.stripe_secret_key)
            # 8s overall timeout; 1 retry for transient failures
            stripe.default_http_client = stripe.RequestsClient(timeout=8)
            stripe.max_network_retries = 1
            self.stripe_configured = True
        else:
            self.logger.warning("Stripe secret key not configured - gateway will operate in mock mode")

        self.logger = logging.getLogger(__name__)

    # ------------------------------------------------------------------ #
    # Customers
    # ------------------------------------------------------------------ #

    @BaseService.measure_operation("gateway_ensure_customer")
    def ensure_customer(self, user_id: str, email: str, name: str) -> str:
        """
        Return the user's Stripe customer id, creating the customer if needed.

        The reference is stored on the user row (flushed, committed by the caller).

        Raises:
            PaymentSetupFailedException: if Stripe rejects the customer
        """
        user = self.user_repository.get_by_id(user_id, load_relationships=False)
        if user is not None and user.stripe_customer_id:
            return str(user.stripe_customer_id)

        if not self.stripe_configured:
            customer_id = f"mock_cust_{user_id}"
            self.logger.warning(f"Stripe not configured; using mock customer for user {user_id}")
        else:
            try:
                customer = stripe.Customer.create(
                    email=email,
                    name=name,
                    metadata={"user_id": user_id},
                    idempotency_key=f"user-{user_id}-customer",
                )
            except stripe.StripeError as e:
                self.logger.error(f"Stripe error creating customer for user {user_id}: {str(e)}")
                raise PaymentSetupFailedException(f"Failed to set up payment customer: {str(e)}")
            customer_id = str(customer.id)
            self.logger.info(f"Created Stripe customer {customer_id} for user {user_id}")

        if user is not None:
            user.stripe_customer_id = customer_id
            self.db.flush()
        return customer_id

    # ------------------------------------------------------------------ #
    # Payment intents
    # ------------------------------------------------------------------ #

    @BaseService.measure_operation("gateway_authorize")
    def authorize(
        self,
        *,
        customer_id: str,
        amount_minor: int,
        idempotency_key: str,
        payment_method_id: Optional[str] = None,
        metadata: Optional[Dict[str, Any]] = None,
        currency: Optional[str] = None,
    ) -> AuthorizationResult:
        """
        Place a manual-capture hold for ``amount_minor``.

        With a payment method the intent is confirmed off-session straight
        away; otherwise the client secret is handed back for the frontend
        to confirm.
        """
        if amount_minor <= 0:
            raise PaymentAuthorizationFailedException("Authorization amount must be positive")

        if not self.stripe_configured:
            self.logger.warning(f"Stripe not configured; mock authorization for {idempotency_key}")
            return AuthorizationResult(
                payment_intent_id=f"mock_pi_{idempotency_key}",
                client_secret=f"mock_pi_{idempotency_key}_secret",
                status="requires_capture",
            )

        stripe_kwargs: Dict[str, Any] = {
            "amount": amount_minor,
            "currency": (currency or settings.stripe_currency).lower(),
            "customer": customer_id,
            "capture_method": "manual",
            "metadata": {key: str(value) for key, value in (metadata or {}).items()},
            "idempotency_key": idempotency_key,
        }
        if payment_method_id:
            stripe_kwargs.update(
                {"payment_method": payment_method_id, "confirm": True, "off_session": True}
            )

        try:
            intent = stripe.PaymentIntent.create(**stripe_kwargs)
        except stripe.StripeError as e:
            self.logger.error(f"Stripe error authorizing {idempotency_key}: {str(e)}")
            raise PaymentAuthorizationFailedException(f"Payment authorization failed: {str(e)}")

        return AuthorizationResult(
            payment_intent_id=str(intent.id),
            client_secret=getattr(intent, "client_secret", None),
            status=str(getattr(intent, "status", "")),
        )

    @BaseService.measure_operation("gateway_capture")
    def capture(self, payment_intent_id: str, *, idempotency_key: str) -> GatewayResult:
        """Capture a previously authorized PaymentIntent in full."""
        if not self.stripe_configured:
            self.logger.warning(f"Stripe not configured; mock capture of {payment_intent_id}")
            return GatewayResult(reference=payment_intent_id, status="succeeded")

        try:
            intent = stripe.PaymentIntent.capture(payment_intent_id, idempotency_key=idempotency_key)
        except stripe.StripeError as e:
            self.logger.error(f"Stripe error capturing payment intent: {str(e)}")
            raise PaymentFailedException(
                f"Failed to capture payment: {str(e)}", code="PAYMENT_CAPTURE_FAILED"
            )

        return GatewayResult(
            reference=str(intent.id),
            status=str(getattr(intent, "status", "")),
            amount=getattr(intent, "amount_received", None),
        )

    @BaseService.measure_operation("gateway_void")
    def void(self, payment_intent_id: str, *, idempotency_key: str) -> GatewayResult:
        """Cancel an uncaptured PaymentIntent, releasing the hold on the card."""
        if not self.stripe_configured:
            self.logger.warning(f"Stripe not configured; mock void of {payment_intent_id}")
            return GatewayResult(reference=payment_intent_id, status="canceled")

        try:
            intent = stripe.PaymentIntent.cancel(payment_intent_id, idempotency_key=idempotency_key)
        except stripe.StripeError as e:
            self.logger.error(f"Stripe error canceling payment intent: {str(e)}")
            raise PaymentFailedException(
                f"Failed to release authorization: {str(e)}", code="PAYMENT_VOID_FAILED"
            )

        return GatewayResult(reference=str(intent.id), status=str(getattr(intent, "status", "")))

    @BaseService.measure_operation("gateway_refund")
    def refund(
        self,
        payment_intent_id: str,
        *,
        amount_minor: int,
        idempotency_key: str,
        reason: str = "requested_by_customer",
    ) -> GatewayResult:
        """Refund part or all of a captured PaymentIntent."""
        if amount_minor <= 0:
            raise PaymentFailedException("Refund amount must be positive", code="PAYMENT_REFUND_FAILED")

        if not self.stripe_configured:
            self.logger.warning(f"Stripe not configured; mock refund for {idempotency_key}")
            return GatewayResult(
                reference=f"mock_re_{idempotency_key}", status="succeeded", amount=amount_minor
            )

        try:
            refund = stripe.Refund.create(
                payment_intent=payment_intent_id,
                amount=amount_minor,
                reason=reason,
                idempotency_key=idempotency_key,
            )
        except stripe.StripeError as e:
            self.logger.error(f"Stripe error refunding {payment_intent_id}: {str(e)}")
            raise PaymentFailedException(f"Failed to refund payment: {str(e)}", code="PAYMENT_REFUND_FAILED")

        return GatewayResult(
            reference=str(refund.id),
            status=str(getattr(refund, "status", "")),
            amount=getattr(refund, "amount", amount_minor),
        )

    # ------------------------------------------------------------------ #
    # Connect payouts
    # ------------------------------------------------------------------ #

    @BaseService.measure_operation("gateway_transfer")
    def transfer(
        self,
        *,
        destination_account_id: str,
        amount_minor: int,
        idempotency_key: str,
        metadata: Optional[Dict[str, Any]] = None,
        currency: Optional[str] = None,
    ) -> GatewayResult:
        """Pay an owner's connected account."""
        if amount_minor <= 0:
            raise PaymentFailedException("Transfer amount must be positive", code="PAYOUT_FAILED")

        if not self.stripe_configured:
            self.logger.warning(f"Stripe not configured; mock transfer for {idempotency_key}")
            return GatewayResult(
                reference=f"mock_tr_{idempotency_key}", status="paid", amount=amount_minor
            )

        metadata = metadata or {}
        booking_id = metadata.get("booking_id")
        try:
            transfer = stripe.Transfer.create(  # type: ignore[attr-defined]
                amount=amount_minor,
                currency=(currency or settings.stripe_currency).lower(),
                destination=destination_account_id,
                transfer_group=f"booking:{booking_id}" if booking_id else None,
                metadata={key: str(value) for key, value in metadata.items()},
                idempotency_key=idempotency_key,
            )
        except stripe.StripeError as e:
            self.logger.error(f"Stripe error transferring to {destination_account_id}: {str(e)}")
            raise PaymentFailedException(f"Failed to pay out owner: {str(e)}", code="PAYOUT_FAILED")

        self.logger.info(
            "Issued owner payout",
            extra={
                "booking_id": booking_id,
                "transfer_id": getattr(transfer, "id", None),
                "amount_minor": amount_minor,
            },
        )
        return GatewayResult(reference=str(transfer.id), status="paid", amount=amount_minor)
