"""Waste log repository implementation."""

import datetime
import logging
from typing import Any, Dict, List, Optional, Sequence, Tuple

from sqlalchemy import func
from sqlalchemy.orm import Query, Session

from mediclean.domain.value_objects import GeoPoint
from mediclean.models import WasteLog

from .base import BaseRepository
from .geo import sort_by_distance, within_box

logger = logging.getLogger(__name__)


class WasteLogRepository(BaseRepository[WasteLog]):
    """Repository for clinic waste logs."""

    def __init__(self, db_session: Session):
        super().__init__(db_session, WasteLog)

    def filtered(self, filters: Dict[str, Any]) -> Query:
        """Build a query from the list filters.

        Recognised keys: ``clinic_id``, ``category``, ``start_date``,
        ``end_date``, ``min_volume`` and ``max_volume``. Missing or ``None``
        values are ignored.
        """
        query = self.query()
        if filters.get('clinic_id') is not None:
            query = query.filter(WasteLog.clinic_id == filters['clinic_id'])
        if filters.get('category'):
            query = query.filter(WasteLog.category == filters['category'])
        if filters.get('start_date'):
            query = query.filter(WasteLog.logged_at >= filters['start_date'])
        if filters.get('end_date'):
            query = query.filter(WasteLog.logged_at <= filters['end_date'])
        if filters.get('min_volume') is not None:
            query = query.filter(WasteLog.volume_kg >= filters['min_volume'])
        if filters.get('max_volume') is not None:
            query = query.filter(WasteLog.volume_kg <= filters['max_volume'])
        return query

    def list(self, filters: Dict[str, Any], page: int = 1, limit: int = 10) -> Tuple[List[WasteLog], int]:
        query = self.filtered(filters).order_by(WasteLog.logged_at.desc(), WasteLog.id.desc())
        return self.paginate(query, page, limit)

    def find_all(self, filters: Dict[str, Any]) -> List[WasteLog]:
        return self.filtered(filters).order_by(WasteLog.logged_at).all()

    def get_for_clinic(self, ids: Sequence[int], clinic_id: int) -> List[WasteLog]:
        """Logs among ``ids`` that belong to ``clinic_id``."""
        if not ids:
            return []
        return (
            self.query()
            .filter(WasteLog.id.in_(list(ids)), WasteLog.clinic_id == clinic_id)
            .all()
        )

    def find_nearby(self, point: GeoPoint, radius_m: float,
                    filters: Optional[Dict[str, Any]] = None) -> List[Tuple[WasteLog, float]]:
        candidates = within_box(self.filtered(filters or {}), WasteLog, point, radius_m).all()
        return sort_by_distance(candidates, point, radius_m)

    def volume_since(self, clinic_id: int, since: datetime.datetime) -> float:
        """Total logged volume for a clinic from ``since`` onward."""
        total = (
            self.query()
            .with_entities(func.coalesce(func.sum(WasteLog.volume_kg), 0.0))
            .filter(WasteLog.clinic_id == clinic_id, WasteLog.logged_at >= since)
            .scalar()
        )
        return float(total or 0.0)

    def category_breakdown(self, filters: Dict[str, Any]) -> List[Dict[str, Any]]:
        """Per-category count and volume aggregates, largest total first."""
        rows = (
            self.filtered(filters)
            .with_entities(
                WasteLog.category,
                func.count(WasteLog.id),
                func.sum(WasteLog.volume_kg),
                func.avg(WasteLog.volume_kg),
                func.min(WasteLog.volume_kg),
                func.max(WasteLog.volume_kg),
            )
            .group_by(WasteLog.category)
            .all()
        )
        breakdown = [
            {
                'category': category,
                'count': count,
                'total_volume': float(total or 0.0),
                'avg_volume': float(avg or 0.0),
                'min_volume': float(min_v or 0.0),
                'max_volume': float(max_v or 0.0),
            }
            for category, count, total, avg, min_v, max_v in rows
        ]
        breakdown.sort(key=lambda item: item['total_volume'], reverse=True)
        return breakdown

    def volume_stats(self, filters: Dict[str, Any]) -> Dict[str, Any]:
        count, total, avg, min_v, max_v = (
            self.filtered(filters)
            .with_entities(
                func.count(WasteLog.id),
                func.sum(WasteLog.volume_kg),
                func.avg(WasteLog.volume_kg),
                func.min(WasteLog.volume_kg),
                func.max(WasteLog.volume_kg),
            )
            .one()
        )
        return {
            'total_volume': float(total or 0.0),
            'avg_volume': float(avg or 0.0),
            'min_volume': float(min_v or 0.0),
            'max_volume': float(max_v or 0.0),
            'count': count or 0,
        }
