"""Application-wide constants for the Rent It Forward platform."""

from __future__ import annotations

BRAND_NAME = "Rent It Forward"

# Availability ledger reasons shown to owners on their calendar
BLOCK_REASON_PENDING = "Pending approval"
BLOCK_REASON_CONFIRMED = "Confirmed booking"

# Text constraints
MIN_REJECTION_REASON_LENGTH = 10
MAX_REASON_LENGTH = 500
MAX_NOTE_LENGTH = 1000
MIN_ISSUE_DESCRIPTION_LENGTH = 10
MAX_ISSUE_DESCRIPTION_LENGTH = 2000

# Reviews
MIN_RATING = 1
MAX_RATING = 5

# Cancellation reasons written by the sweep
REASON_APPROVAL_DEADLINE_PASSED = "Approval deadline passed"
REASON_AUTHORIZATION_INCOMPLETE = "Payment authorization did not complete"

# ULID path parameter
ULID_PATH_PATTERN = r"^[0-9A-HJKMNP-TV-Z]{26}$"
