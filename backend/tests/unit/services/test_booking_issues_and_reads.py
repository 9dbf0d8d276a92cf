"""Issue reports, booking reads and listing availability."""

from datetime import timedelta

import pytest
import ulid

from rentitforward.core.exceptions import (
    ForbiddenException,
    InvalidStatusTransitionException,
    NotFoundException,
    ValidationException,
)
from rentitforward.schemas.booking import IssueReportRequest
from tests.helpers import TODAY


def _issue(**overrides):
    values = {
        "issue_type": "missing_part",
        "severity": "medium",
        "title": "Battery missing",
        "description": "The spare battery was not in the case",
        "photos": ["https://cdn.example.com/issues/1.jpg"],
    }
    values.update(overrides)
    return IssueReportRequest(**values)


class TestReportIssue:
    def test_renter_reports_issue_on_confirmed_booking(
        self, booking_service, confirmed_booking, renter, owner, dispatcher
    ):
        report = booking_service.report_issue(confirmed_booking.id, renter, _issue())

        assert report.booking_id == confirmed_booking.id
        assert report.reporter_id == renter.id
        assert report.reporter_role == "renter"
        assert report.status == "open"
        assert report.photos == ["https://cdn.example.com/issues/1.jpg"]
        assert dispatcher.notify.call_args.args[:2] == (owner.id, "issue_reported")

    def test_issue_needs_captured_booking(self, booking_service, pending_booking, renter):
        with pytest.raises(InvalidStatusTransitionException):
            booking_service.report_issue(pending_booking.id, renter, _issue())

    def test_stranger_cannot_report(self, booking_service, confirmed_booking, make_user):
        with pytest.raises(ForbiddenException):
            booking_service.report_issue(confirmed_booking.id, make_user(), _issue())


class TestReads:
    def test_parties_can_read_booking(self, booking_service, pending_booking, renter, owner):
        assert booking_service.get_booking_for_user(pending_booking.id, renter).id == pending_booking.id
        assert booking_service.get_booking_for_user(pending_booking.id, owner).id == pending_booking.id

    def test_stranger_cannot_read_booking(self, booking_service, pending_booking, make_user):
        with pytest.raises(ForbiddenException):
            booking_service.get_booking_for_user(pending_booking.id, make_user())

    def test_unknown_booking(self, booking_service, renter):
        with pytest.raises(NotFoundException):
            booking_service.get_booking_for_user(str(ulid.ULID()), renter)

    def test_availability_lists_held_dates(self, booking_service, pending_booking, listing):
        entries = booking_service.list_availability(
            listing.id, TODAY, TODAY + timedelta(days=30)
        )

        assert [entry["date"] for entry in entries] == [
            pending_booking.start_date,
            pending_booking.start_date + timedelta(days=1),
        ]
        assert {entry["status"] for entry in entries} == {"tentative"}
        assert {entry["booking_id"] for entry in entries} == {pending_booking.id}

    def test_availability_range_is_validated(self, booking_service, listing):
        with pytest.raises(ValidationException):
            booking_service.list_availability(listing.id, TODAY, TODAY - timedelta(days=1))
        with pytest.raises(ValidationException):
            booking_service.list_availability(listing.id, TODAY, TODAY + timedelta(days=400))

    def test_availability_for_unknown_listing(self, booking_service):
        with pytest.raises(NotFoundException):
            booking_service.list_availability(str(ulid.ULID()), TODAY, TODAY + timedelta(days=7))
