# backend/rentitforward/repositories/listing_repository.py
"""Listing data access."""

import logging
from typing import Optional

from sqlalchemy.orm import Query, Session, joinedload

from ..models.listing import Listing
from .base_repository import BaseRepository

logger = logging.getLogger(__name__)


class ListingRepository(BaseRepository[Listing]):
    def __init__(self, db: Session):
        super().__init__(db, Listing)
        self.logger = logging.getLogger(__name__)

    def get_active(self, listing_id: str) -> Optional[Listing]:
        return self.find_one_by(id=listing_id, is_active=True)

    def _apply_eager_loading(self, query: Query) -> Query:
        return query.options(joinedload(Listing.owner))
