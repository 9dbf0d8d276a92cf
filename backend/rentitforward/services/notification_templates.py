"""Copy and routing for every booking notification kind."""

from __future__ import annotations

from dataclasses import dataclass
from typing import Dict, Optional

BOOKING_EMAIL_TEMPLATE = "email/booking_update.html"


@dataclass(frozen=True)
class NotificationTemplate:
    category: str
    type: str
    title: str
    body_template: str
    url_template: Optional[str] = None
    email_subject_template: Optional[str] = None
    email_template: Optional[str] = BOOKING_EMAIL_TEMPLATE


BOOKING_REQUESTED = NotificationTemplate(
    category="booking_updates",
    type="booking_requested",
    title="New rental request",
    body_template="{renter_name} wants to rent {listing_title} from {start_date} to {end_date}. "
    "Please respond by {approval_deadline}.",
    url_template="/dashboard/bookings/{booking_id}",
    email_subject_template="New rental request for {listing_title}",
)

BOOKING_APPROVED = NotificationTemplate(
    category="booking_updates",
    type="booking_approved",
    title="Booking approved",
    body_template="{owner_name} approved your rental of {listing_title} from {start_date} "
    "to {end_date}. Your payment of ${total_amount} has been captured.",
    url_template="/dashboard/bookings/{booking_id}",
    email_subject_template="Your booking of {listing_title} is confirmed",
)

BOOKING_REJECTED = NotificationTemplate(
    category="booking_updates",
    type="booking_rejected",
    title="Booking declined",
    body_template="Your request for {listing_title} was declined: {reason}. "
    "The payment hold on your card has been released.",
    url_template="/browse",
    email_subject_template="Your request for {listing_title} was declined",
)

BOOKING_EXPIRED = NotificationTemplate(
    category="booking_updates",
    type="booking_expired",
    title="Booking request expired",
    body_template="The request for {listing_title} from {start_date} to {end_date} expired "
    "without a response. No payment was taken.",
    url_template="/dashboard/bookings/{booking_id}",
    email_subject_template="Booking request for {listing_title} expired",
)

BOOKING_CANCELLED = NotificationTemplate(
    category="booking_updates",
    type="booking_cancelled",
    title="Booking cancelled",
    body_template="The rental of {listing_title} from {start_date} to {end_date} was cancelled: "
    "{reason}. Refund: ${refund_amount}.",
    url_template="/dashboard/bookings/{booking_id}",
    email_subject_template="Booking cancelled: {listing_title}",
)

PICKUP_VERIFICATION_REQUESTED = NotificationTemplate(
    category="booking_updates",
    type="pickup_verification_requested",
    title="Confirm pickup",
    body_template="The {submitted_by} confirmed pickup of {listing_title}. "
    "Please add your confirmation to start the rental.",
    url_template="/dashboard/bookings/{booking_id}/pickup",
)

RENTAL_STARTED = NotificationTemplate(
    category="booking_updates",
    type="rental_started",
    title="Rental started",
    body_template="Pickup of {listing_title} is confirmed by both parties. "
    "Return is due on {end_date}.",
    url_template="/dashboard/bookings/{booking_id}",
)

RETURN_VERIFICATION_REQUESTED = NotificationTemplate(
    category="booking_updates",
    type="return_verification_requested",
    title="Confirm return",
    body_template="The {submitted_by} confirmed the return of {listing_title}. "
    "Please add your confirmation to complete the rental.",
    url_template="/dashboard/bookings/{booking_id}/return",
)

RENTAL_COMPLETED = NotificationTemplate(
    category="booking_updates",
    type="rental_completed",
    title="Rental completed",
    body_template="The rental of {listing_title} is complete. Thanks for renting it forward!",
    url_template="/dashboard/bookings/{booking_id}",
    email_subject_template="Rental complete: {listing_title}",
)

FUNDS_RELEASED = NotificationTemplate(
    category="payments",
    type="funds_released",
    title="Payout sent",
    body_template="${owner_payout} for {listing_title} has been sent to your account.",
    url_template="/dashboard/earnings",
    email_subject_template="Payout sent for {listing_title}",
)

DEPOSIT_REFUNDED = NotificationTemplate(
    category="payments",
    type="deposit_refunded",
    title="Deposit refunded",
    body_template="Your ${deposit_refund} security deposit for {listing_title} has been refunded.",
    url_template="/dashboard/bookings/{booking_id}",
    email_subject_template="Deposit refunded for {listing_title}",
)

ISSUE_REPORTED = NotificationTemplate(
    category="booking_updates",
    type="issue_reported",
    title="Issue reported",
    body_template="The {submitted_by} reported a {severity} issue with {listing_title}: {issue_title}",
    url_template="/dashboard/bookings/{booking_id}",
    email_subject_template="Issue reported on {listing_title}",
)

REVIEW_REQUESTED = NotificationTemplate(
    category="reviews",
    type="review_requested",
    title="How did it go?",
    body_template="Leave a review for your rental of {listing_title}.",
    url_template="/dashboard/bookings/{booking_id}/review",
    email_subject_template="Review your rental of {listing_title}",
)

REVIEW_RECEIVED = NotificationTemplate(
    category="reviews",
    type="review_received",
    title="New review",
    body_template="{reviewer_name} left you a {rating}-star review.",
    url_template="/dashboard/reviews",
)

TEMPLATES: Dict[str, NotificationTemplate] = {
    template.type: template
    for template in (
        BOOKING_REQUESTED,
        BOOKING_APPROVED,
        BOOKING_REJECTED,
        BOOKING_EXPIRED,
        BOOKING_CANCELLED,
        PICKUP_VERIFICATION_REQUESTED,
        RENTAL_STARTED,
        RETURN_VERIFICATION_REQUESTED,
        RENTAL_COMPLETED,
        FUNDS_RELEASED,
        DEPOSIT_REFUNDED,
        ISSUE_REPORTED,
        REVIEW_REQUESTED,
        REVIEW_RECEIVED,
    )
}


def get_template(kind: str) -> Optional[NotificationTemplate]:
    return TEMPLATES.get(kind)
