"""Report repository implementation."""

import datetime
import logging
from typing import Any, Dict, List, Optional, Tuple

from sqlalchemy.orm import Session

from mediclean.domain.value_objects import ReportFrequency, ReportStatus
from mediclean.models import Report

from .base import BaseRepository

logger = logging.getLogger(__name__)


class ReportRepository(BaseRepository[Report]):
    """Repository for generated and scheduled reports."""

    def __init__(self, db_session: Session):
        super().__init__(db_session, Report)

    def list(self, filters: Dict[str, Any], page: int = 1, limit: int = 10) -> Tuple[List[Report], int]:
        """List reports.

        Args:
            filters: Optional ``generated_by``, ``type``, ``status``,
                ``start_date`` and ``end_date`` (over ``created_at``)
            page: 1-based page number
            limit: Page size

        Returns:
            Tuple of (reports, total)
        """
        query = self.query()
        for field in ('generated_by', 'type', 'status'):
            if filters.get(field) is not None:
                query = query.filter(getattr(Report, field) == filters[field])
        if filters.get('start_date'):
            query = query.filter(Report.created_at >= filters['start_date'])
        if filters.get('end_date'):
            query = query.filter(Report.created_at <= filters['end_date'])
        return self.paginate(query.order_by(Report.created_at.desc(), Report.id.desc()), page, limit)

    def due_scheduled(self, now: Optional[datetime.datetime] = None) -> List[Report]:
        """Scheduled reports whose next run has passed."""
        now = now or datetime.datetime.utcnow()
        return (
            self.query()
            .filter(
                Report.frequency != ReportFrequency.ONCE.value,
                Report.next_run.isnot(None),
                Report.next_run <= now,
                Report.status != ReportStatus.GENERATING.value,
            )
            .order_by(Report.next_run)
            .all()
        )

    def retention_candidates(self) -> List[Report]:
        """One-off reports; retention is checked per row since it varies."""
        return self.query().filter(Report.frequency == ReportFrequency.ONCE.value).all()
