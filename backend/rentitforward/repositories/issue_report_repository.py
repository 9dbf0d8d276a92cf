# backend/rentitforward/repositories/issue_report_repository.py
"""Issue report data access."""

import logging
from typing import List

from sqlalchemy.orm import Session

from ..models.issue_report import IssueReport
from .base_repository import BaseRepository

logger = logging.getLogger(__name__)


class IssueReportRepository(BaseRepository[IssueReport]):
    def __init__(self, db: Session):
        super().__init__(db, IssueReport)
        self.logger = logging.getLogger(__name__)

    def list_for_booking(self, booking_id: str) -> List[IssueReport]:
        return (
            self.db.query(IssueReport)
            .filter(IssueReport.booking_id == booking_id)
            .order_by(IssueReport.created_at)
            .all()
        )
