"""Notification repository implementation.

Individual notifications carry their own read state; broadcasts keep it
on one ``NotificationRecipient`` row per user. Queries here merge the two.
"""

import datetime
import logging
from typing import Any, Dict, List, Optional, Tuple

from sqlalchemy import and_, or_
from sqlalchemy.orm import Query, Session, selectinload

from mediclean.domain.value_objects import NotificationStatus
from mediclean.models import Notification, NotificationRecipient

from .base import BaseRepository

logger = logging.getLogger(__name__)


class NotificationRepository(BaseRepository[Notification]):
    """Repository for notifications and their broadcast recipients."""

    def __init__(self, db_session: Session):
        super().__init__(db_session, Notification)

    @staticmethod
    def _addressed_to(user_id: int, status: Optional[str] = None):
        individual = [Notification.is_broadcast.is_(False), Notification.user_id == user_id]
        recipient = [NotificationRecipient.user_id == user_id]
        if status:
            individual.append(Notification.status == status)
            recipient.append(NotificationRecipient.status == status)
        return or_(
            and_(*individual),
            and_(Notification.is_broadcast.is_(True), Notification.recipients.any(and_(*recipient))),
        )

    @staticmethod
    def _not_expired(now: datetime.datetime):
        return or_(Notification.expires_at.is_(None), Notification.expires_at > now)

    def for_user(self, user_id: int, filters: Dict[str, Any],
                 now: Optional[datetime.datetime] = None) -> Query:
        """Notifications visible to ``user_id``.

        Args:
            user_id: Recipient
            filters: Optional ``status``, ``type``, ``category``, ``priority``
                and ``include_expired``
            now: Reference time for expiry

        Returns:
            SQLAlchemy query ordered newest first
        """
        now = now or datetime.datetime.utcnow()
        query = (
            self.query()
            .options(selectinload(Notification.recipients))
            .filter(self._addressed_to(user_id, filters.get('status')))
        )
        for field in ('type', 'category', 'priority'):
            if filters.get(field):
                query = query.filter(getattr(Notification, field) == filters[field])
        if not filters.get('include_expired'):
            query = query.filter(self._not_expired(now))
        return query.order_by(Notification.created_at.desc(), Notification.id.desc())

    def list_for_user(self, user_id: int, filters: Dict[str, Any], page: int = 1,
                      limit: int = 10) -> Tuple[List[Notification], int]:
        return self.paginate(self.for_user(user_id, filters), page, limit)

    def unread_count(self, user_id: int, now: Optional[datetime.datetime] = None) -> int:
        now = now or datetime.datetime.utcnow()
        return (
            self.query()
            .filter(self._addressed_to(user_id, NotificationStatus.UNREAD.value))
            .filter(self._not_expired(now))
            .count()
        )

    def unread_for_user(self, user_id: int) -> List[Notification]:
        return (
            self.query()
            .options(selectinload(Notification.recipients))
            .filter(self._addressed_to(user_id, NotificationStatus.UNREAD.value))
            .all()
        )

    def get_with_recipients(self, notification_id: int) -> Optional[Notification]:
        return (
            self.query()
            .options(selectinload(Notification.recipients))
            .filter(Notification.id == notification_id)
            .first()
        )

    def statistics(self) -> Dict[str, List[Dict[str, Any]]]:
        """Count and read count per type, category and priority.

        A broadcast counts once per recipient; read means read or archived.
        """
        read_states = (NotificationStatus.READ.value, NotificationStatus.ARCHIVED.value)
        stats = {}
        for field in ('type', 'category', 'priority'):
            column = getattr(Notification, field)
            buckets: Dict[str, Dict[str, int]] = {}
            rows = (
                self.query()
                .with_entities(column, Notification.status)
                .filter(Notification.is_broadcast.is_(False))
                .all()
            )
            rows += (
                self.db.query(column, NotificationRecipient.status)
                .select_from(Notification)
                .join(NotificationRecipient, NotificationRecipient.notification_id == Notification.id)
                .filter(Notification.is_deleted.is_(False))
                .all()
            )
            for key, status in rows:
                bucket = buckets.setdefault(key, {'count': 0, 'read_count': 0})
                bucket['count'] += 1
                if status in read_states:
                    bucket['read_count'] += 1
            stats[f"by_{field}"] = [
                {field: key, 'count': b['count'], 'read_count': b['read_count']}
                for key, b in sorted(buckets.items(), key=lambda item: -item[1]['count'])
            ]
        return stats
