"""Pickup request repository implementation.

Listing filters, the overdue filter, proximity search and the grouped
counts used by the pickup statistics.
"""

import datetime
import logging
from typing import Any, Dict, List, Optional, Sequence, Tuple

from sqlalchemy import and_, case, func, or_
from sqlalchemy.orm import Query, Session, selectinload

from mediclean.domain.value_objects import GeoPoint, PickupStatus, Priority
from mediclean.models import PickupRequest

from .base import BaseRepository
from .geo import sort_by_distance, within_box

logger = logging.getLogger(__name__)

_ACTIVE = (PickupStatus.PENDING.value, PickupStatus.ASSIGNED.value)


def priority_rank():
    """SQL expression ordering priorities low=1 .. urgent=4."""
    return case(
        {p.value: p.rank for p in Priority},
        value=PickupRequest.priority,
        else_=0,
    )


def overdue_clause(now: datetime.datetime):
    """Pending requests older than their priority's threshold."""
    return and_(
        PickupRequest.status == PickupStatus.PENDING.value,
        or_(*[
            and_(PickupRequest.priority == p.value,
                 PickupRequest.requested_at < now - p.overdue_after)
            for p in Priority
        ]),
    )


class PickupRepository(BaseRepository[PickupRequest]):
    """Repository for pickup requests."""

    def __init__(self, db_session: Session):
        super().__init__(db_session, PickupRequest)

    def query(self, include_deleted: bool = False) -> Query:
        return super().query(include_deleted).options(
            selectinload(PickupRequest.history),
            selectinload(PickupRequest.waste_logs),
        )

    def filtered(self, filters: Dict[str, Any], now: Optional[datetime.datetime] = None) -> Query:
        """Build a query from list filters.

        Args:
            filters: Any of ``status``, ``clinic_id``, ``collector_id``,
                ``waste_type``, ``priority``, ``start_date``, ``end_date``,
                ``min_volume``, ``max_volume``, ``is_emergency``,
                ``is_scheduled`` and ``is_overdue``
            now: Reference time for the overdue filter

        Returns:
            SQLAlchemy query
        """
        query = self.query()
        for field in ('status', 'clinic_id', 'collector_id', 'waste_type', 'priority'):
            value = filters.get(field)
            if value is not None and value != '':
                query = query.filter(getattr(PickupRequest, field) == value)
        if filters.get('start_date'):
            query = query.filter(PickupRequest.requested_at >= filters['start_date'])
        if filters.get('end_date'):
            query = query.filter(PickupRequest.requested_at <= filters['end_date'])
        if filters.get('min_volume') is not None:
            query = query.filter(PickupRequest.volume_kg >= filters['min_volume'])
        if filters.get('max_volume') is not None:
            query = query.filter(PickupRequest.volume_kg <= filters['max_volume'])
        if filters.get('is_emergency') is not None:
            query = query.filter(PickupRequest.is_emergency.is_(bool(filters['is_emergency'])))
        if filters.get('is_scheduled') is not None:
            query = query.filter(PickupRequest.is_scheduled.is_(bool(filters['is_scheduled'])))
        if filters.get('is_overdue') is not None:
            clause = overdue_clause(now or datetime.datetime.utcnow())
            query = query.filter(clause if filters['is_overdue'] else ~clause)
        return query

    def list(self, filters: Dict[str, Any], page: int = 1, limit: int = 10,
             sort: str = 'priority') -> Tuple[List[PickupRequest], int]:
        query = self.filtered(filters)
        if sort == 'priority':
            query = query.order_by(priority_rank().desc(), PickupRequest.requested_at.desc(),
                                   PickupRequest.id.desc())
        else:
            query = query.order_by(PickupRequest.requested_at.desc(), PickupRequest.id.desc())
        return self.paginate(query, page, limit)

    def find_all(self, filters: Dict[str, Any]) -> List[PickupRequest]:
        return self.filtered(filters).order_by(PickupRequest.requested_at).all()

    def get_many(self, ids: Sequence[int]) -> Dict[int, PickupRequest]:
        if not ids:
            return {}
        rows = self.query().filter(PickupRequest.id.in_(list(ids))).all()
        return {row.id: row for row in rows}

    def count_active_for_clinic(self, clinic_id: int) -> int:
        return (
            super().query()
            .filter(PickupRequest.clinic_id == clinic_id, PickupRequest.status.in_(_ACTIVE))
            .count()
        )

    def find_nearby(self, point: GeoPoint, radius_m: float,
                    filters: Dict[str, Any]) -> List[Tuple[PickupRequest, float]]:
        candidates = within_box(self.filtered(filters), PickupRequest, point, radius_m).all()
        return sort_by_distance(candidates, point, radius_m)

    def _grouped_counts(self, column, filters: Dict[str, Any]) -> Dict[str, int]:
        rows = (
            super().query()
            .with_entities(column, func.count(PickupRequest.id))
            .filter(*self._plain_criteria(filters))
            .group_by(column)
            .all()
        )
        return {key: count for key, count in rows}

    def _plain_criteria(self, filters: Dict[str, Any]) -> list:
        criteria = []
        for field in ('clinic_id', 'collector_id'):
            if filters.get(field) is not None:
                criteria.append(getattr(PickupRequest, field) == filters[field])
        if filters.get('start_date'):
            criteria.append(PickupRequest.requested_at >= filters['start_date'])
        if filters.get('end_date'):
            criteria.append(PickupRequest.requested_at <= filters['end_date'])
        return criteria

    def status_counts(self, filters: Optional[Dict[str, Any]] = None) -> Dict[str, int]:
        """Count per status; every status is present, zero when absent."""
        counts = {status.value: 0 for status in PickupStatus}
        counts.update(self._grouped_counts(PickupRequest.status, filters or {}))
        return counts

    def priority_counts(self, filters: Optional[Dict[str, Any]] = None) -> Dict[str, int]:
        counts = {priority.value: 0 for priority in Priority}
        counts.update(self._grouped_counts(PickupRequest.priority, filters or {}))
        return counts

    def status_breakdown(self, filters: Dict[str, Any]) -> List[Dict[str, Any]]:
        """Per-status count and volume, most frequent first."""
        rows = (
            super().query()
            .with_entities(PickupRequest.status, func.count(PickupRequest.id),
                           func.sum(PickupRequest.volume_kg))
            .filter(*self._plain_criteria(filters))
            .group_by(PickupRequest.status)
            .all()
        )
        breakdown = [
            {'status': status, 'count': count, 'total_volume': float(volume or 0.0)}
            for status, count, volume in rows
        ]
        breakdown.sort(key=lambda item: item['count'], reverse=True)
        return breakdown

    def volume_statistics(self, filters: Dict[str, Any]) -> Dict[str, Any]:
        count, total, avg, max_v, min_v = (
            super().query()
            .with_entities(func.count(PickupRequest.id), func.sum(PickupRequest.volume_kg),
                           func.avg(PickupRequest.volume_kg), func.max(PickupRequest.volume_kg),
                           func.min(PickupRequest.volume_kg))
            .filter(*self._plain_criteria(filters))
            .one()
        )
        return {
            'total_volume': float(total or 0.0),
            'avg_volume': float(avg or 0.0),
            'max_volume': float(max_v or 0.0),
            'min_volume': float(min_v or 0.0),
            'total_requests': count or 0,
        }

    def collected_volume_since(self, collector_id: int, since: datetime.datetime) -> float:
        total = (
            super().query()
            .with_entities(func.sum(func.coalesce(PickupRequest.actual_weight, PickupRequest.volume_kg)))
            .filter(
                PickupRequest.collector_id == collector_id,
                PickupRequest.status == PickupStatus.COLLECTED.value,
                PickupRequest.collected_at >= since,
            )
            .scalar()
        )
        return float(total or 0.0)
