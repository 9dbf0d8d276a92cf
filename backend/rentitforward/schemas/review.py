"""Review schemas."""

from datetime import datetime
from typing import Optional

from pydantic import ConfigDict, Field

from ..core.constants import MAX_NOTE_LENGTH, MAX_RATING, MIN_RATING
from ._strict_base import StrictModel, StrictRequestModel


class ReviewCreate(StrictRequestModel):
    rating: int = Field(..., ge=MIN_RATING, le=MAX_RATING)
    comment: Optional[str] = Field(None, max_length=MAX_NOTE_LENGTH)


class ReviewResponse(StrictModel):
    model_config = ConfigDict(from_attributes=True, extra="forbid")

    success: bool = True
    id: str
    booking_id: str
    reviewer_id: str
    reviewee_id: str
    rating: int
    comment: Optional[str] = None
    type: str
    created_at: Optional[datetime] = None
