# backend/rentitforward/services/booking_service.py
"""
Booking Service for the Rent It Forward platform

Drives the rental lifecycle:
- Rental requests with a manual-capture payment hold
- Owner approval (capture) and rejection (void)
- Dual-party pickup and return verification with photo evidence
- Cancellation under the cancellation policy
- Fund release to the owner and deposit refund to the renter
- Background expiry of unanswered requests and stalled authorizations

Payment calls never run inside a database transaction. Each operation reads
and validates, talks to the gateway, and then writes its result with a
compare-and-set on the booking status so a concurrent request for the same
booking cannot apply twice. Notifications go out only after the write has
committed.
"""

from __future__ import annotations

from dataclasses import dataclass
from datetime import date, datetime, timedelta, timezone
from decimal import Decimal
import logging
from typing import Any, Callable, Dict, List, Optional

from sqlalchemy.orm import Session

from ..core.config import settings
from ..core.constants import (
    MAX_NOTE_LENGTH,
    MAX_REASON_LENGTH,
    MIN_REJECTION_REASON_LENGTH,
    REASON_APPROVAL_DEADLINE_PASSED,
    REASON_AUTHORIZATION_INCOMPLETE,
)
from ..core.exceptions import (
    ApprovalDeadlinePassedException,
    BookingConflictException,
    BusinessRuleException,
    ForbiddenException,
    InvalidStatusTransitionException,
    ListingUnavailableException,
    NotFoundException,
    PaymentAuthorizationFailedException,
    PaymentFailedException,
    PointsBalanceChangedException,
    SelfBookingException,
    ValidationException,
)
from ..models.booking import (
    PRE_CAPTURE_STATUSES,
    TERMINAL_STATUSES,
    Booking,
    BookingParty,
    BookingStatus,
    PayoutStatus,
)
from ..models.issue_report import IssueReport
from ..models.user import User
from ..monitoring.prometheus_metrics import prometheus_metrics
from ..repositories.availability_repository import AvailabilityRepository
from ..repositories.booking_repository import BookingRepository
from ..repositories.issue_report_repository import IssueReportRepository
from ..repositories.listing_repository import ListingRepository
from ..repositories.user_repository import UserRepository
from ..schemas.booking import (
    AuthorizeBookingRequest,
    DamageReport,
    IssueReportRequest,
    ReturnVerificationRequest,
    VerificationRequest,
)
from .base import BaseService
from .cancellation_policy import CancellationPolicy
from .notification_dispatcher import NotificationDispatcher
from .payment_gateway import PaymentGateway
from .pricing_service import (
    PriceBreakdown,
    calculate_price,
    quantize_money,
    to_minor_units,
    validate_rental_dates,
)

logger = logging.getLogger(__name__)

CAPTURED_STATUSES = (BookingStatus.CONFIRMED, BookingStatus.IN_PROGRESS, BookingStatus.COMPLETED)
ISSUE_REPORTABLE_STATUSES = CAPTURED_STATUSES


def _as_utc(value: Optional[datetime]) -> Optional[datetime]:
    """SQLite hands back naive datetimes; everything is stored in UTC."""
    if value is None:
        return None
    if value.tzinfo is None:
        return value.replace(tzinfo=timezone.utc)
    return value.astimezone(timezone.utc)


def _utc_now() -> datetime:
    return datetime.now(timezone.utc)


@dataclass
class AuthorizationOutcome:
    booking: Booking
    price_breakdown: PriceBreakdown
    client_secret: Optional[str]


@dataclass
class BookingActionResult:
    booking: Booking
    already_processed: bool = False


@dataclass
class VerificationResult:
    booking: Booking
    both_confirmed: bool
    issue_report: Optional[IssueReport] = None


class BookingService(BaseService):
    """
    Service layer for the booking lifecycle.

    The gateway, dispatcher, review scheduler and clock are injectable so the
    lifecycle can be exercised without Stripe, Celery or a real wall clock.
    """

    def __init__(
        self,
        db: Session,
        payment_gateway: Optional[PaymentGateway] = None,
        dispatcher: Optional[NotificationDispatcher] = None,
        cancellation_policy: Optional[CancellationPolicy] = None,
        review_scheduler: Optional[Callable[[str], Any]] = None,
        clock: Optional[Callable[[], datetime]] = None,
    ):
        super().__init__(db)
        self.repository = BookingRepository(db)
        self.availability_repository = AvailabilityRepository(db)
        self.listing_repository = ListingRepository(db)
        self.user_repository = UserRepository(db)
        self.issue_repository = IssueReportRepository(db)
        self.payment_gateway = payment_gateway or PaymentGateway(db)
        self.dispatcher = dispatcher or NotificationDispatcher(db)
        self.cancellation_policy = cancellation_policy or CancellationPolicy()
        self.review_scheduler = review_scheduler
        self._clock = clock or _utc_now

    def _now(self) -> datetime:
        return _as_utc(self._clock()) or _utc_now()

    # ------------------------------------------------------------------ #
    # Request and authorization
    # ------------------------------------------------------------------ #

    @BaseService.measure_operation("authorize_booking")
    def authorize_booking(self, renter: User, request: AuthorizeBookingRequest) -> AuthorizationOutcome:
        """
        Create a rental request and hold the total on the renter's card.

        The booking row is committed as ``pending`` before the gateway is
        called so the authorization can reference it; any failure after that
        point deletes it again.

        Raises:
            NotFoundException: listing does not exist
            ListingUnavailableException: listing is not accepting bookings
            SelfBookingException: renter owns the listing
            ValidationException: bad dates or a client price mismatch
            BookingConflictException: any requested date is taken
            PointsBalanceChangedException: the redeemed points were spent concurrently
            PaymentSetupFailedException / PaymentAuthorizationFailedException
        """
        listing = self.listing_repository.get_by_id(request.listing_id)
        if listing is None:
            raise NotFoundException("Listing not found", code="LISTING_NOT_FOUND")
        if not listing.is_active:
            raise ListingUnavailableException(listing.id)
        if listing.owner_id == renter.id:
            raise SelfBookingException()

        now = self._now()
        duration = validate_rental_dates(request.start_date, request.end_date, today=now.date())
        if request.duration_days is not None and request.duration_days != duration:
            raise ValidationException(
                "Duration does not match the selected dates",
                code="PRICE_MISMATCH",
                details={"expected_duration_days": duration, "duration_days": request.duration_days},
            )

        rental_dates = [request.start_date + timedelta(days=offset) for offset in range(duration)]
        conflicts = self.availability_repository.find_conflicts(listing.id, rental_dates)
        if conflicts:
            raise BookingConflictException(conflicting_dates=conflicts)

        breakdown = calculate_price(
            daily_rate=listing.daily_rate,
            duration_days=duration,
            include_insurance=request.include_insurance,
            security_deposit=(
                request.security_deposit
                if request.security_deposit is not None
                else listing.security_deposit
            ),
            points_requested=request.points_to_redeem,
            points_balance=int(renter.points_balance or 0),
        )
        if request.daily_rate is not None and quantize_money(request.daily_rate) != breakdown.daily_rate:
            raise ValidationException(
                "Daily rate does not match the listing",
                code="PRICE_MISMATCH",
                details={"expected_daily_rate": str(breakdown.daily_rate)},
            )

        # Phase 1: customer reference and pending booking
        customer_id = self.payment_gateway.ensure_customer(
            renter.id, renter.email, renter.full_name or renter.email
        )
        with self.transaction():
            booking = self.repository.create(
                listing_id=listing.id,
                renter_id=renter.id,
                owner_id=listing.owner_id,
                start_date=request.start_date,
                end_date=request.end_date,
                status=BookingStatus.PENDING.value,
                renter_notes=request.notes,
                hold_expires_at=now + timedelta(hours=settings.hold_expiry_hours),
                approval_deadline=now + timedelta(hours=settings.approval_deadline_hours),
                **breakdown.booking_fields(),
            )
        booking_id = booking.id

        # Phase 2: payment hold (no transaction open)
        payment_intent_id: Optional[str] = None
        client_secret: Optional[str] = None
        if breakdown.total_minor_units > 0:
            try:
                authorization = self.payment_gateway.authorize(
                    customer_id=customer_id,
                    amount_minor=breakdown.total_minor_units,
                    idempotency_key=f"booking-{booking_id}-authorize",
                    payment_method_id=request.payment_method_id,
                    metadata={
                        "booking_id": booking_id,
                        "listing_id": listing.id,
                        "renter_id": renter.id,
                    },
                    currency=breakdown.currency,
                )
            except PaymentFailedException as exc:
                self._discard_booking(booking_id)
                raise PaymentAuthorizationFailedException(exc.message) from exc
            except Exception:
                self._discard_booking(booking_id)
                raise
            payment_intent_id = authorization.payment_intent_id
            client_secret = authorization.client_secret

        # Phase 3: claim the dates and move to pending_payment
        try:
            with self.transaction():
                self.availability_repository.hold_tentative(listing.id, rental_dates, booking_id)
                updated = self.repository.compare_and_set_status(
                    booking_id,
                    [BookingStatus.PENDING],
                    BookingStatus.PENDING_PAYMENT,
                    payment_intent_id=payment_intent_id,
                    tentative_hold=True,
                )
                if not updated:
                    raise BookingConflictException(
                        "This booking request expired before payment was authorized"
                    )
                if breakdown.points_redeemed and not self.user_repository.redeem_points(
                    renter.id, breakdown.points_redeemed
                ):
                    raise PointsBalanceChangedException(breakdown.points_redeemed)
        except (BookingConflictException, PointsBalanceChangedException):
            if payment_intent_id:
                self._void_quietly(booking_id, payment_intent_id)
            self._discard_booking(booking_id)
            raise

        booking = self._get_booking(booking_id)
        prometheus_metrics.record_booking_transition(
            BookingStatus.PENDING.value, BookingStatus.PENDING_PAYMENT.value
        )
        self.log_operation(
            "booking_authorized",
            booking_id=booking_id,
            listing_id=listing.id,
            renter_id=renter.id,
            total_amount=str(breakdown.total_amount),
        )
        self.dispatcher.notify(
            booking.owner_id, "booking_requested", self._notification_context(booking)
        )
        return AuthorizationOutcome(booking=booking, price_breakdown=breakdown, client_secret=client_secret)

    # ------------------------------------------------------------------ #
    # Owner decision
    # ------------------------------------------------------------------ #

    @BaseService.measure_operation("approve_booking")
    def approve_booking(self, booking_id: str, owner: User) -> BookingActionResult:
        """
        Capture the held payment and confirm the booking.

        Approving a booking that is already confirmed (or further along) is a
        no-op so a double-clicked approve never captures twice.
        """
        booking = self._get_booking(booking_id)
        if booking.owner_id != owner.id:
            raise ForbiddenException("Only the listing owner can approve this booking")

        status = booking.status_enum
        if status in CAPTURED_STATUSES:
            return BookingActionResult(booking=booking, already_processed=True)
        if status != BookingStatus.PENDING_PAYMENT:
            raise InvalidStatusTransitionException(status.value, "approve")

        now = self._now()
        deadline = _as_utc(booking.approval_deadline)
        if deadline is not None and deadline <= now:
            raise ApprovalDeadlinePassedException(deadline.isoformat())

        captured = False
        if booking.payment_intent_id:
            self.payment_gateway.capture(
                booking.payment_intent_id, idempotency_key=f"booking-{booking_id}-capture"
            )
            captured = True
        elif Decimal(str(booking.total_amount)) > 0:
            raise BusinessRuleException(
                "No payment authorization on file for this booking", code="PAYMENT_NOT_AUTHORIZED"
            )

        with self.transaction():
            updated = self.repository.compare_and_set_status(
                booking_id,
                [BookingStatus.PENDING_PAYMENT],
                BookingStatus.CONFIRMED,
                confirmed_at=now,
                payment_captured_at=now,
                tentative_hold=False,
            )
            if updated:
                self.availability_repository.promote_to_booked(booking_id)

        booking = self._reload(booking)
        if not updated:
            if booking.status_enum in CAPTURED_STATUSES:
                return BookingActionResult(booking=booking, already_processed=True)
            if captured and booking.status_enum == BookingStatus.CANCELLED:
                # Cancelled or expired between our capture and our status write
                self._refund_lost_capture(booking)
            raise InvalidStatusTransitionException(booking.status, "approve")

        prometheus_metrics.record_booking_transition(
            BookingStatus.PENDING_PAYMENT.value, BookingStatus.CONFIRMED.value
        )
        self.log_operation("booking_approved", booking_id=booking_id, owner_id=owner.id)
        self.dispatcher.notify(
            booking.renter_id, "booking_approved", self._notification_context(booking)
        )
        return BookingActionResult(booking=booking)

    @BaseService.measure_operation("reject_booking")
    def reject_booking(
        self,
        booking_id: str,
        owner: User,
        reason: str,
        note: Optional[str] = None,
    ) -> Booking:
        """Decline a request: release the hold, the dates and any redeemed points."""
        reason = (reason or "").strip()
        if not MIN_REJECTION_REASON_LENGTH <= len(reason) <= MAX_REASON_LENGTH:
            raise ValidationException(
                f"Rejection reason must be between {MIN_REJECTION_REASON_LENGTH} and "
                f"{MAX_REASON_LENGTH} characters",
                code="INVALID_REASON",
            )
        if note is not None and len(note) > MAX_NOTE_LENGTH:
            raise ValidationException(
                f"Note must be at most {MAX_NOTE_LENGTH} characters", code="INVALID_NOTE"
            )

        booking = self._get_booking(booking_id)
        if booking.owner_id != owner.id:
            raise ForbiddenException("Only the listing owner can reject this booking")
        status = booking.status_enum
        if status not in PRE_CAPTURE_STATUSES:
            raise InvalidStatusTransitionException(status.value, "reject")

        if booking.payment_intent_id:
            self._void_quietly(booking_id, booking.payment_intent_id)

        now = self._now()
        with self.transaction():
            updated = self.repository.compare_and_set_status(
                booking_id,
                PRE_CAPTURE_STATUSES,
                BookingStatus.CANCELLED,
                cancelled_at=now,
                cancelled_by_id=owner.id,
                cancellation_reason=reason,
                owner_note=note,
                cancellation_fee=Decimal("0.00"),
                refund_amount=Decimal("0.00"),
                tentative_hold=False,
            )
            if updated:
                self.availability_repository.release(booking_id)
                if status == BookingStatus.PENDING_PAYMENT:
                    self._restore_points(booking)

        booking = self._reload(booking)
        if not updated:
            raise InvalidStatusTransitionException(booking.status, "reject")

        prometheus_metrics.record_booking_transition(status.value, BookingStatus.CANCELLED.value)
        self.log_operation("booking_rejected", booking_id=booking_id, owner_id=owner.id)
        self.dispatcher.notify(
            booking.renter_id,
            "booking_rejected",
            self._notification_context(booking, reason=reason, owner_note=note or ""),
        )
        return booking

    # ------------------------------------------------------------------ #
    # Pickup and return verification
    # ------------------------------------------------------------------ #

    @BaseService.measure_operation("confirm_pickup")
    def confirm_pickup(
        self, booking_id: str, user: User, verification: VerificationRequest
    ) -> VerificationResult:
        """
        Record one party's pickup confirmation.

        When both parties have confirmed the rental starts.
        """
        booking = self._get_booking(booking_id)
        party = self._require_party(booking, user)
        if booking.status_enum != BookingStatus.CONFIRMED:
            raise InvalidStatusTransitionException(booking.status, "confirm pickup for")

        today = self._now().date()
        window_opens = booking.start_date - timedelta(days=settings.pickup_early_days)
        if not window_opens <= today <= booking.end_date:
            raise BusinessRuleException(
                f"Pickup can be confirmed between {window_opens.isoformat()} and "
                f"{booking.end_date.isoformat()}",
                code="OUTSIDE_PICKUP_WINDOW",
                details={"opens": window_opens.isoformat(), "closes": booking.end_date.isoformat()},
            )

        return self._record_verification(booking, party, "pickup", verification)

    @BaseService.measure_operation("confirm_return")
    def confirm_return(
        self, booking_id: str, user: User, verification: ReturnVerificationRequest
    ) -> VerificationResult:
        """
        Record one party's return confirmation.

        When both parties have confirmed the rental completes, funds are
        released and both parties are asked for a review.
        """
        booking = self._get_booking(booking_id)
        party = self._require_party(booking, user)
        if booking.status_enum != BookingStatus.IN_PROGRESS:
            raise InvalidStatusTransitionException(booking.status, "confirm return for")

        today = self._now().date()
        if today < booking.start_date:
            raise BusinessRuleException(
                f"Return can be confirmed from {booking.start_date.isoformat()}",
                code="OUTSIDE_RETURN_WINDOW",
                details={"opens": booking.start_date.isoformat()},
            )

        result = self._record_verification(
            booking, party, "return", verification, damage_report=verification.damage_report
        )
        if result.both_confirmed:
            try:
                self.release_funds(booking_id)
            except Exception as exc:
                # The rental is already completed; the payout sweep retries
                self.logger.error(f"Fund release for completed booking {booking_id} failed: {exc}")
                self.db.rollback()
                self._mark_payout_failed(booking_id)
            self._schedule_review_requests(booking_id)
            result.booking = self._reload(result.booking)
        return result

    def _record_verification(
        self,
        booking: Booking,
        party: BookingParty,
        phase: str,
        verification: VerificationRequest,
        damage_report: Optional[DamageReport] = None,
    ) -> VerificationResult:
        self._validate_evidence(booking, party, phase, len(verification.photos))

        expected, target = (
            (BookingStatus.CONFIRMED, BookingStatus.IN_PROGRESS)
            if phase == "pickup"
            else (BookingStatus.IN_PROGRESS, BookingStatus.COMPLETED)
        )
        now = self._now()
        issue_report: Optional[IssueReport] = None

        with self.transaction():
            setattr(booking, f"{phase}_{party.value}_confirmed", True)
            setattr(booking, f"{phase}_{party.value}_confirmed_at", now)
            self.repository.replace_photos(
                booking,
                phase,
                party.value,
                [photo.model_dump() for photo in verification.photos],
            )
            both_confirmed = bool(
                getattr(booking, f"{phase}_renter_confirmed")
                and getattr(booking, f"{phase}_owner_confirmed")
            )
            if damage_report is not None:
                issue_report = self.issue_repository.create(
                    booking_id=booking.id,
                    reporter_id=booking.renter_id if party == BookingParty.RENTER else booking.owner_id,
                    reporter_role=party.value,
                    issue_type=damage_report.issue_type,
                    severity=damage_report.severity,
                    title=f"Damage reported at {phase}",
                    description=damage_report.description,
                    estimated_cost=damage_report.estimated_cost,
                    photos=[photo.url for photo in verification.photos],
                )
            if both_confirmed:
                updated = self.repository.compare_and_set_status(
                    booking.id, [expected], target, **{f"{phase}_confirmed_at": now}
                )
                if not updated:
                    raise InvalidStatusTransitionException(
                        booking.status, f"confirm {phase} for"
                    )

        booking = self._reload(booking)
        submitter_id = booking.renter_id if party == BookingParty.RENTER else booking.owner_id
        self.log_operation(
            f"{phase}_confirmed",
            booking_id=booking.id,
            party=party.value,
            photo_count=len(verification.photos),
            both_confirmed=both_confirmed,
        )

        if issue_report is not None:
            self.dispatcher.notify(
                booking.counterparty_id(submitter_id),
                "issue_reported",
                self._notification_context(
                    booking,
                    submitted_by=party.value,
                    severity=issue_report.severity,
                    issue_title=issue_report.title,
                ),
            )

        if both_confirmed:
            prometheus_metrics.record_booking_transition(expected.value, target.value)
            kind = "rental_started" if phase == "pickup" else "rental_completed"
            self.dispatcher.notify_many(
                [booking.renter_id, booking.owner_id], kind, self._notification_context(booking)
            )
        else:
            kind = (
                "pickup_verification_requested"
                if phase == "pickup"
                else "return_verification_requested"
            )
            self.dispatcher.notify(
                booking.counterparty_id(submitter_id),
                kind,
                self._notification_context(booking, submitted_by=party.value),
            )

        return VerificationResult(
            booking=booking, both_confirmed=both_confirmed, issue_report=issue_report
        )

    def _validate_evidence(
        self, booking: Booking, party: BookingParty, phase: str, photo_count: int
    ) -> None:
        minimum = settings.min_evidence_photos if party == BookingParty.RENTER else 0
        maximum = settings.max_evidence_photos
        if not minimum <= photo_count <= maximum:
            raise ValidationException(
                f"{party.value.capitalize()} {phase} confirmation needs between {minimum} and "
                f"{maximum} photos",
                code="EVIDENCE_PHOTO_COUNT",
                details={"photo_count": photo_count, "min": minimum, "max": maximum},
            )
        if party == BookingParty.OWNER and not booking.photos_for(phase, BookingParty.RENTER.value):
            raise BusinessRuleException(
                f"The renter must submit {phase} photos first",
                code="RENTER_EVIDENCE_REQUIRED",
            )

    # ------------------------------------------------------------------ #
    # Cancellation
    # ------------------------------------------------------------------ #

    @BaseService.measure_operation("cancel_booking")
    def cancel_booking(self, booking_id: str, user: User, reason: str) -> Booking:
        """
        Cancel a booking from either side.

        Before capture the hold is simply released. After capture the
        cancellation policy decides the refund, which must succeed before
        anything is written.
        """
        reason = (reason or "").strip()
        if not 1 <= len(reason) <= MAX_REASON_LENGTH:
            raise ValidationException(
                f"Cancellation reason must be between 1 and {MAX_REASON_LENGTH} characters",
                code="INVALID_REASON",
            )

        # Phase 1: read and validate
        booking = self._get_booking(booking_id)
        party = self._require_party(booking, user)
        status = booking.status_enum
        if status in TERMINAL_STATUSES:
            raise InvalidStatusTransitionException(status.value, "cancel")

        now = self._now()
        quote = self.cancellation_policy.evaluate(
            booking, cancelled_by_owner=party == BookingParty.OWNER, now=now
        )

        # Phase 2: gateway calls
        if status in PRE_CAPTURE_STATUSES:
            if booking.payment_intent_id:
                self._void_quietly(booking_id, booking.payment_intent_id)
        elif quote.requires_refund and booking.payment_intent_id:
            self.payment_gateway.refund(
                booking.payment_intent_id,
                amount_minor=to_minor_units(quote.refund_amount),
                idempotency_key=f"booking-{booking_id}-refund",
                reason="requested_by_customer",
            )

        # Phase 3: write the outcome
        with self.transaction():
            updated = self.repository.compare_and_set_status(
                booking_id,
                [status],
                BookingStatus.CANCELLED,
                cancelled_at=now,
                cancelled_by_id=user.id,
                cancellation_reason=reason,
                cancellation_fee=quote.cancellation_fee,
                refund_amount=quote.refund_amount,
                tentative_hold=False,
            )
            if updated:
                self.availability_repository.release(booking_id)
                if status != BookingStatus.PENDING and quote.cancellation_fee == 0:
                    self._restore_points(booking)

        booking = self._reload(booking)
        if not updated:
            self.logger.error(
                f"Booking {booking_id} changed to {booking.status} while cancelling; "
                f"gateway result may need reconciliation"
            )
            raise InvalidStatusTransitionException(booking.status, "cancel")

        prometheus_metrics.record_booking_transition(status.value, BookingStatus.CANCELLED.value)
        self.log_operation(
            "booking_cancelled",
            booking_id=booking_id,
            cancelled_by=party.value,
            policy_basis=quote.policy_basis,
            refund_amount=str(quote.refund_amount),
        )
        self.dispatcher.notify_many(
            [booking.renter_id, booking.owner_id],
            "booking_cancelled",
            self._notification_context(
                booking,
                reason=reason,
                cancelled_by=party.value,
                refund_amount=quote.refund_amount,
                cancellation_fee=quote.cancellation_fee,
            ),
        )
        return booking

    # ------------------------------------------------------------------ #
    # Fund release
    # ------------------------------------------------------------------ #

    @BaseService.measure_operation("release_funds")
    def release_funds(self, booking_id: str) -> Booking:
        """
        Pay the owner their share and return the deposit to the renter.

        Gateway failures are recorded as ``payout_status=failed`` for the
        retry sweep and never undo the completion.
        """
        booking = self._get_booking(booking_id)
        if booking.status_enum != BookingStatus.COMPLETED:
            raise InvalidStatusTransitionException(booking.status, "release funds for")
        if booking.payout_status == PayoutStatus.RELEASED.value:
            return booking

        rental_fee = quantize_money(Decimal(str(booking.rental_fee)))
        commission = quantize_money(
            rental_fee * Decimal(str(settings.platform_commission_rate))
        )
        owner_payout = quantize_money(rental_fee - commission)
        deposit_refund = min(
            quantize_money(Decimal(str(booking.security_deposit or 0))),
            quantize_money(Decimal(str(booking.total_amount or 0))),
        )

        owner = self.user_repository.get_by_id(booking.owner_id, load_relationships=False)
        if owner is None or not owner.stripe_account_id:
            with self.transaction():
                booking.payout_status = PayoutStatus.AWAITING_OWNER_ACCOUNT.value
                booking.owner_payout_amount = owner_payout
                booking.platform_commission = commission
            self.logger.warning(
                f"Owner {booking.owner_id} has no payout account; payout for booking "
                f"{booking_id} is on hold"
            )
            return booking

        transfer_id: Optional[str] = booking.transfer_id
        deposit_refund_id: Optional[str] = booking.deposit_refund_id
        try:
            if not transfer_id and owner_payout > 0:
                transfer = self.payment_gateway.transfer(
                    destination_account_id=str(owner.stripe_account_id),
                    amount_minor=to_minor_units(owner_payout),
                    idempotency_key=f"booking-{booking_id}-payout",
                    metadata={"booking_id": booking_id, "listing_id": booking.listing_id},
                    currency=booking.currency,
                )
                transfer_id = transfer.reference
            if not deposit_refund_id and deposit_refund > 0 and booking.payment_intent_id:
                refund = self.payment_gateway.refund(
                    booking.payment_intent_id,
                    amount_minor=to_minor_units(deposit_refund),
                    idempotency_key=f"booking-{booking_id}-deposit",
                    reason="requested_by_customer",
                )
                deposit_refund_id = refund.reference
        except PaymentFailedException as exc:
            with self.transaction():
                booking.payout_status = PayoutStatus.FAILED.value
                booking.owner_payout_amount = owner_payout
                booking.platform_commission = commission
                booking.transfer_id = transfer_id
                booking.deposit_refund_id = deposit_refund_id
            self.logger.error(f"Fund release failed for booking {booking_id}: {exc.message}")
            return booking

        with self.transaction():
            booking.payout_status = PayoutStatus.RELEASED.value
            booking.owner_payout_amount = owner_payout
            booking.platform_commission = commission
            booking.transfer_id = transfer_id
            booking.deposit_refund_id = deposit_refund_id
            booking.funds_released_at = self._now()

        self.log_operation(
            "funds_released",
            booking_id=booking_id,
            owner_payout=str(owner_payout),
            commission=str(commission),
            deposit_refund=str(deposit_refund),
        )
        context = self._notification_context(
            booking, owner_payout=owner_payout, deposit_refund=deposit_refund
        )
        self.dispatcher.notify(booking.owner_id, "funds_released", context)
        if deposit_refund > 0:
            self.dispatcher.notify(booking.renter_id, "deposit_refunded", context)
        return booking

    @BaseService.measure_operation("retry_pending_payouts")
    def retry_pending_payouts(self) -> Dict[str, int]:
        counts = {"released": 0, "failed": 0, "awaiting_owner_account": 0}
        for booking in self.repository.find_pending_payouts():
            try:
                booking = self.release_funds(booking.id)
            except Exception as exc:
                self.logger.error(f"Payout retry crashed for booking {booking.id}: {exc}")
                self.db.rollback()
                counts["failed"] += 1
                continue
            counts[booking.payout_status] = counts.get(booking.payout_status, 0) + 1
        return counts

    # ------------------------------------------------------------------ #
    # Expiry sweep
    # ------------------------------------------------------------------ #

    @BaseService.measure_operation("expire_overdue_bookings")
    def expire_overdue_bookings(self) -> Dict[str, int]:
        """
        Cancel requests the owner never answered and holds that never completed.

        Each booking is handled in its own transaction so one failure does
        not block the rest of the sweep.
        """
        now = self._now()
        counts = {"expired_approvals": 0, "expired_holds": 0, "failed": 0}

        for booking in self.repository.find_expired_pending_payment(now):
            if self._expire_booking(booking, REASON_APPROVAL_DEADLINE_PASSED, now):
                counts["expired_approvals"] += 1
            else:
                counts["failed"] += 1

        for booking in self.repository.find_stale_pending(now):
            if self._expire_booking(booking, REASON_AUTHORIZATION_INCOMPLETE, now):
                counts["expired_holds"] += 1
            else:
                counts["failed"] += 1

        if any(counts.values()):
            self.logger.info(f"Expiry sweep finished: {counts}")
        return counts

    def _expire_booking(self, booking: Booking, reason: str, now: datetime) -> bool:
        booking_id = booking.id
        status = booking.status_enum
        try:
            if booking.payment_intent_id:
                self._void_quietly(booking_id, booking.payment_intent_id)
            with self.transaction():
                updated = self.repository.compare_and_set_status(
                    booking_id,
                    [status],
                    BookingStatus.CANCELLED,
                    cancelled_at=now,
                    cancelled_by_id=None,
                    cancellation_reason=reason,
                    cancellation_fee=Decimal("0.00"),
                    refund_amount=Decimal("0.00"),
                    tentative_hold=False,
                )
                if updated:
                    self.availability_repository.release(booking_id)
                    if status == BookingStatus.PENDING_PAYMENT:
                        self._restore_points(booking)
        except Exception as exc:
            self.logger.error(f"Failed to expire booking {booking_id}: {exc}")
            self.db.rollback()
            return False

        if not updated:
            return True

        booking = self._reload(booking)
        prometheus_metrics.record_booking_transition(status.value, BookingStatus.CANCELLED.value)
        self.log_operation("booking_expired", booking_id=booking_id, reason=reason)
        if status == BookingStatus.PENDING_PAYMENT:
            self.dispatcher.notify_many(
                [booking.renter_id, booking.owner_id],
                "booking_expired",
                self._notification_context(booking, reason=reason),
            )
        return True

    # ------------------------------------------------------------------ #
    # Issues and read paths
    # ------------------------------------------------------------------ #

    @BaseService.measure_operation("report_issue")
    def report_issue(self, booking_id: str, user: User, request: IssueReportRequest) -> IssueReport:
        booking = self._get_booking(booking_id)
        party = self._require_party(booking, user)
        if booking.status_enum not in ISSUE_REPORTABLE_STATUSES:
            raise InvalidStatusTransitionException(booking.status, "report an issue on")

        with self.transaction():
            report = self.issue_repository.create(
                booking_id=booking.id,
                reporter_id=user.id,
                reporter_role=party.value,
                issue_type=request.issue_type,
                severity=request.severity,
                title=request.title,
                description=request.description,
                estimated_cost=request.estimated_cost,
                photos=list(request.photos),
            )

        self.log_operation(
            "issue_reported", booking_id=booking.id, severity=request.severity, party=party.value
        )
        self.dispatcher.notify(
            booking.counterparty_id(user.id),
            "issue_reported",
            self._notification_context(
                booking, submitted_by=party.value, severity=request.severity, issue_title=request.title
            ),
        )
        return report

    def get_booking_for_user(self, booking_id: str, user: User) -> Booking:
        booking = self._get_booking(booking_id)
        self._require_party(booking, user)
        return booking

    def list_availability(self, listing_id: str, start: date, end: date) -> List[Dict[str, Any]]:
        if end < start:
            raise ValidationException("end must not be before start", code="INVALID_DATES")
        if (end - start).days > settings.max_booking_days:
            raise ValidationException(
                f"Availability range cannot exceed {settings.max_booking_days} days",
                code="INVALID_DATES",
            )
        if self.listing_repository.get_by_id(listing_id, load_relationships=False) is None:
            raise NotFoundException("Listing not found", code="LISTING_NOT_FOUND")
        return self.availability_repository.list_availability(listing_id, start, end)

    # ------------------------------------------------------------------ #
    # Helpers
    # ------------------------------------------------------------------ #

    def _get_booking(self, booking_id: str) -> Booking:
        booking = self.repository.get_booking_with_details(booking_id)
        if booking is None:
            raise NotFoundException("Booking not found", code="BOOKING_NOT_FOUND")
        return booking

    def _reload(self, booking: Booking) -> Booking:
        self.db.refresh(booking)
        return booking

    @staticmethod
    def _require_party(booking: Booking, user: User) -> BookingParty:
        party = booking.party_of(user.id)
        if party is None:
            raise ForbiddenException("You are not a party to this booking")
        return party

    def _restore_points(self, booking: Booking) -> None:
        points = int(booking.points_redeemed or 0)
        if points > 0:
            self.user_repository.credit_points(booking.renter_id, points)

    def _void_quietly(self, booking_id: str, payment_intent_id: str) -> None:
        """Release an authorization; a failure here must not block the caller."""
        try:
            self.payment_gateway.void(payment_intent_id, idempotency_key=f"booking-{booking_id}-void")
        except Exception as exc:
            self.logger.warning(
                f"Could not void payment intent {payment_intent_id} for booking {booking_id}: {exc}"
            )

    def _refund_lost_capture(self, booking: Booking) -> None:
        """Give back a full capture whose booking was cancelled underneath the approval."""
        booking_id = booking.id
        total = quantize_money(Decimal(str(booking.total_amount or 0)))
        try:
            refund = self.payment_gateway.refund(
                booking.payment_intent_id,
                amount_minor=to_minor_units(total),
                idempotency_key=f"booking-{booking_id}-capture-refund",
                reason="requested_by_customer",
            )
        except PaymentFailedException as exc:
            self.logger.error(
                f"Booking {booking_id} was cancelled after its payment was captured and the "
                f"refund of {total} failed; manual refund required: {exc.message}"
            )
            raise

        with self.transaction():
            booking.refund_amount = total
            booking.cancellation_fee = Decimal("0.00")
        self.log_operation(
            "capture_refunded", booking_id=booking_id, refund_id=refund.reference, amount=str(total)
        )

    def _mark_payout_failed(self, booking_id: str) -> None:
        try:
            with self.transaction():
                self.repository.mark_payout_failed(booking_id)
        except Exception as exc:
            self.logger.error(f"Could not record failed payout for booking {booking_id}: {exc}")

    def _discard_booking(self, booking_id: str) -> None:
        """Compensating delete for a request whose authorization did not stick."""
        try:
            with self.transaction():
                self.availability_repository.release(booking_id)
                self.repository.delete(booking_id)
        except Exception as exc:
            self.logger.error(f"Failed to discard booking {booking_id}: {exc}")

    def _schedule_review_requests(self, booking_id: str) -> None:
        try:
            if self.review_scheduler is not None:
                self.review_scheduler(booking_id)
                return
            from ..tasks.booking_tasks import send_review_requests

            send_review_requests.apply_async(
                args=[booking_id], countdown=settings.review_request_delay_hours * 3600
            )
        except Exception as exc:
            self.logger.error(f"Could not schedule review requests for booking {booking_id}: {exc}")

    @staticmethod
    def _notification_context(booking: Booking, **extra: Any) -> Dict[str, Any]:
        listing = booking.listing
        renter = booking.renter
        owner = booking.owner
        deadline = _as_utc(booking.approval_deadline)
        context: Dict[str, Any] = {
            "booking_id": booking.id,
            "listing_id": booking.listing_id,
            "listing_title": listing.title if listing is not None else "your item",
            "renter_name": (renter.full_name or renter.email) if renter is not None else "A renter",
            "owner_name": (owner.full_name or owner.email) if owner is not None else "The owner",
            "start_date": booking.start_date.isoformat(),
            "end_date": booking.end_date.isoformat(),
            "total_amount": booking.total_amount,
            "approval_deadline": deadline.strftime("%d %b %Y %H:%M UTC") if deadline else "",
        }
        context.update(extra)
        return context
