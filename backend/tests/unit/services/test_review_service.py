"""Reviews left after a completed rental."""

from decimal import Decimal

import pytest

from rentitforward.core.exceptions import (
    BusinessRuleException,
    ConflictException,
    ForbiddenException,
    ValidationException,
)
from rentitforward.models.review import ReviewType
from rentitforward.services.review_service import ReviewService
from tests.helpers import complete_rental


@pytest.fixture
def review_service(db, dispatcher):
    return ReviewService(db, dispatcher=dispatcher)


@pytest.fixture
def completed_booking(booking_service, confirmed_booking, renter, owner, clock):
    return complete_rental(booking_service, confirmed_booking, renter, owner, clock)


class TestSubmitReview:
    def test_renter_review_updates_owner_and_listing(
        self, review_service, completed_booking, renter, owner, listing, dispatcher, db
    ):
        dispatcher.notify.reset_mock()

        review = review_service.submit_review(completed_booking.id, renter, 4, "Worked great")

        assert review.type == ReviewType.RENTER_TO_OWNER.value
        assert review.reviewee_id == owner.id
        db.refresh(owner)
        db.refresh(listing)
        assert owner.total_reviews == 1
        assert owner.rating == Decimal("4.0")
        assert listing.review_count == 1
        assert listing.rating == Decimal("4.0")
        dispatcher.notify.assert_called_once()
        assert dispatcher.notify.call_args.args[:2] == (owner.id, "review_received")

    def test_owner_review_leaves_listing_rating_alone(
        self, review_service, completed_booking, renter, owner, listing, db
    ):
        review = review_service.submit_review(completed_booking.id, owner, 5)

        assert review.type == ReviewType.OWNER_TO_RENTER.value
        db.refresh(renter)
        db.refresh(listing)
        assert renter.total_reviews == 1
        assert listing.review_count == 0

    def test_second_review_from_same_party_conflicts(self, review_service, completed_booking, renter):
        review_service.submit_review(completed_booking.id, renter, 5)

        with pytest.raises(ConflictException) as exc_info:
            review_service.submit_review(completed_booking.id, renter, 3)

        assert exc_info.value.code == "REVIEW_ALREADY_SUBMITTED"

    def test_booking_must_be_completed(self, review_service, confirmed_booking, renter):
        with pytest.raises(BusinessRuleException) as exc_info:
            review_service.submit_review(confirmed_booking.id, renter, 5)

        assert exc_info.value.code == "BOOKING_NOT_COMPLETED"

    @pytest.mark.parametrize("rating", [0, 6])
    def test_rating_range(self, review_service, completed_booking, renter, rating):
        with pytest.raises(ValidationException):
            review_service.submit_review(completed_booking.id, renter, rating)

    def test_stranger_cannot_review(self, review_service, completed_booking, make_user):
        with pytest.raises(ForbiddenException):
            review_service.submit_review(completed_booking.id, make_user(), 5)


class TestRequestReviews:
    def test_only_parties_without_a_review_are_asked(
        self, review_service, completed_booking, renter, owner, dispatcher
    ):
        review_service.submit_review(completed_booking.id, renter, 5)

        sent = review_service.request_reviews(completed_booking.id)

        assert sent == {owner.id: True}
        assert dispatcher.notify_many.call_args.args[:2] == ([owner.id], "review_requested")

    def test_unfinished_booking_is_skipped(self, review_service, confirmed_booking):
        assert review_service.request_reviews(confirmed_booking.id) == {}
