"""Audit log repository implementation."""

import datetime
import logging
from typing import Any, Dict, List, Optional, Tuple

from sqlalchemy import String, cast, func, or_
from sqlalchemy.orm import Query, Session

from mediclean.domain.value_objects import AuditSeverity
from mediclean.models import AuditLog

from .base import BaseRepository

logger = logging.getLogger(__name__)


class AuditLogRepository(BaseRepository[AuditLog]):
    """Repository for the append-only audit trail."""

    def __init__(self, db_session: Session):
        super().__init__(db_session, AuditLog)

    def filtered(self, filters: Dict[str, Any]) -> Query:
        """Build a search query.

        Args:
            filters: Optional ``action``, ``status``, ``severity``,
                ``entity_type``, ``performed_by``, ``start_date``,
                ``end_date`` and ``search`` (substring of the changes JSON)

        Returns:
            SQLAlchemy query
        """
        query = self.query()
        for field in ('action', 'status', 'severity', 'entity_type', 'performed_by'):
            if filters.get(field) is not None:
                query = query.filter(getattr(AuditLog, field) == filters[field])
        if filters.get('start_date'):
            query = query.filter(AuditLog.created_at >= filters['start_date'])
        if filters.get('end_date'):
            query = query.filter(AuditLog.created_at <= filters['end_date'])
        if filters.get('search'):
            pattern = f"%{filters['search'].lower()}%"
            query = query.filter(func.lower(cast(AuditLog.changes, String)).like(pattern))
        return query

    def search(self, filters: Dict[str, Any], page: int = 1, limit: int = 10) -> Tuple[List[AuditLog], int]:
        query = self.filtered(filters).order_by(AuditLog.created_at.desc(), AuditLog.id.desc())
        return self.paginate(query, page, limit)

    def entity_history(self, entity_type: str, entity_id: int) -> List[AuditLog]:
        return (
            self.query()
            .filter(AuditLog.entity_type == entity_type, AuditLog.entity_id == entity_id)
            .order_by(AuditLog.created_at.asc(), AuditLog.id.asc())
            .all()
        )

    def recent(self, limit: int = 20) -> List[AuditLog]:
        return self.query().order_by(AuditLog.created_at.desc(), AuditLog.id.desc()).limit(limit).all()

    def critical(self, page: int = 1, limit: int = 10,
                 since: Optional[datetime.datetime] = None) -> Tuple[List[AuditLog], int]:
        query = self.query().filter(or_(
            AuditLog.severity == AuditSeverity.CRITICAL.value,
            AuditLog.status == 'failure',
        ))
        if since:
            query = query.filter(AuditLog.created_at >= since)
        return self.paginate(query.order_by(AuditLog.created_at.desc(), AuditLog.id.desc()), page, limit)

    def counts_by(self, column_name: str, filters: Dict[str, Any]) -> Dict[Any, int]:
        column = getattr(AuditLog, column_name)
        rows = (
            self.filtered(filters)
            .with_entities(column, func.count(AuditLog.id))
            .group_by(column)
            .all()
        )
        return {key: count for key, count in rows}

    def created_timestamps(self, filters: Dict[str, Any]) -> List[datetime.datetime]:
        return [row[0] for row in self.filtered(filters).with_entities(AuditLog.created_at).all()]

    def delete_older_than(self, cutoff: datetime.datetime) -> int:
        """Hard-delete entries created before ``cutoff``. Returns the row count."""
        deleted = (
            self.db.query(AuditLog)
            .filter(AuditLog.created_at < cutoff)
            .delete(synchronize_session=False)
        )
        self.db.commit()
        logger.info(f"Deleted {deleted} audit log entries older than {cutoff.isoformat()}")
        return deleted
