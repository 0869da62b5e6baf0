"""Audit trail service.

Every mutating service operation records an entry here. Failures to write
an audit entry are logged but never break the operation being audited.
"""

import datetime
import logging
from collections import Counter
from typing import Any, Dict, List, Mapping, Optional

from sqlalchemy.exc import SQLAlchemyError

from mediclean.domain.trends import period_key
from mediclean.domain.value_objects import AuditAction, AuditSeverity, EntityType
from mediclean.models import AuditLog, User
from mediclean.repositories import AuditLogRepository

from .common import pagination

logger = logging.getLogger(__name__)


class AuditService:
    """Records and queries audit log entries."""

    def __init__(self, audit_repo: AuditLogRepository, config: Optional[Mapping[str, Any]] = None,
                 request_info: Optional[Dict[str, Optional[str]]] = None):
        """Initialize audit service.

        Args:
            audit_repo: Audit log repository
            config: Application configuration mapping
            request_info: ``ip_address`` and ``user_agent`` of the current request
        """
        self.audit_repo = audit_repo
        self.config = config or {}
        self.request_info = request_info or {}

    def log_action(self, action: AuditAction, entity_type: EntityType, entity_id: Optional[int] = None,
                   actor: Optional[User] = None, changes: Optional[Dict[str, Any]] = None,
                   severity: AuditSeverity = AuditSeverity.INFO, status: str = 'success',
                   error_code: Optional[str] = None, error_message: Optional[str] = None,
                   performed_by: Optional[int] = None) -> Optional[AuditLog]:
        """Record an audited action.

        Args:
            action: What happened
            entity_type: Kind of entity affected
            entity_id: Affected entity id, if any
            actor: User performing the action (None for system jobs)
            changes: JSON-serializable description of the change
            severity: Entry severity
            status: ``success`` or ``failure``
            error_code: Error code for failures
            error_message: Error text for failures
            performed_by: Explicit user id when no actor object is at hand

        Returns:
            Created entry, or None if it could not be stored
        """
        try:
            return self.audit_repo.create(
                action=AuditAction.from_string(action).value,
                severity=AuditSeverity.from_string(severity).value,
                entity_type=EntityType.from_string(entity_type).value,
                entity_id=entity_id,
                performed_by=actor.id if actor is not None else performed_by,
                user_role=actor.role if actor is not None else None,
                status=status,
                changes=changes,
                error_code=error_code,
                error_message=error_message,
                ip_address=self.request_info.get('ip_address'),
                user_agent=self.request_info.get('user_agent'),
            )
        except SQLAlchemyError as e:
            self.audit_repo.db.rollback()
            logger.error(
                f"Failed to write audit entry {action} on {entity_type}:{entity_id}: {e}",
                extra={"action": str(action), "entity_type": str(entity_type), "entity_id": entity_id},
            )
            return None

    def search(self, filters: Dict[str, Any], page: int = 1, limit: int = 10) -> Dict[str, Any]:
        entries, total = self.audit_repo.search(filters, page, limit)
        return {
            'logs': [entry.to_dict() for entry in entries],
            'pagination': pagination(page, limit, total),
        }

    def entity_history(self, entity_type: str, entity_id: int) -> List[Dict[str, Any]]:
        entity_type = EntityType.from_string(entity_type).value
        return [entry.to_dict() for entry in self.audit_repo.entity_history(entity_type, entity_id)]

    def recent_activity(self, limit: int = 20) -> List[Dict[str, Any]]:
        return [entry.to_dict() for entry in self.audit_repo.recent(limit)]

    def critical_events(self, page: int = 1, limit: int = 10, days: Optional[int] = None) -> Dict[str, Any]:
        since = datetime.datetime.utcnow() - datetime.timedelta(days=days) if days else None
        entries, total = self.audit_repo.critical(page, limit, since)
        return {
            'logs': [entry.to_dict() for entry in entries],
            'pagination': pagination(page, limit, total),
        }

    def statistics(self, filters: Dict[str, Any]) -> Dict[str, Any]:
        """Counts by action, entity type, status and user, plus a daily distribution."""
        by_day = Counter(period_key(ts, 'day') for ts in self.audit_repo.created_timestamps(filters) if ts)
        by_user = self.audit_repo.counts_by('performed_by', filters)
        return {
            'by_action': self.audit_repo.counts_by('action', filters),
            'by_entity_type': self.audit_repo.counts_by('entity_type', filters),
            'by_status': self.audit_repo.counts_by('status', filters),
            'by_severity': self.audit_repo.counts_by('severity', filters),
            'by_user': [
                {'user_id': user_id, 'count': count}
                for user_id, count in sorted(by_user.items(), key=lambda item: -item[1])
            ],
            'time_distribution': [{'date': day, 'count': by_day[day]} for day in sorted(by_day)],
        }

    def cleanup(self, retention_days: Optional[int] = None) -> int:
        """Delete entries older than the retention period."""
        days = retention_days or int(self.config.get('AUDIT_RETENTION_DAYS', 90))
        cutoff = datetime.datetime.utcnow() - datetime.timedelta(days=days)
        return self.audit_repo.delete_older_than(cutoff)
