"""Waste log service.

Clinics record the waste they produce; logs stay editable for a short
window and feed the monthly volume threshold alert.
"""

import datetime
import logging
from collections import defaultdict
from typing import Any, Dict, Mapping, Optional

from mediclean.domain.rules import flatten_waste_log, waste_log_errors
from mediclean.domain.trends import calculate_trends
from mediclean.domain.value_objects import (
    AuditAction, EntityType, GeoPoint, NotificationCategory, NotificationType, Priority,
    UserRole,
)
from mediclean.errors import AuthorizationError, NotFoundError, ValidationError
from mediclean.models import User, WasteLog
from mediclean.repositories import WasteLogRepository
from mediclean.utils.cache import TTLCache

from .common import ensure_role, has_role, pagination

logger = logging.getLogger(__name__)

_COLUMN_STATE = (
    'category', 'subcategory', 'handling_instructions', 'storage_temperature_min',
    'storage_temperature_max', 'storage_humidity_min', 'storage_humidity_max',
)


def month_start(moment: datetime.datetime) -> datetime.datetime:
    return moment.replace(day=1, hour=0, minute=0, second=0, microsecond=0)


class WasteLogService:
    """Business logic for waste logs."""

    def __init__(self, waste_log_repo: WasteLogRepository, notifications=None, audit=None,
                 config: Optional[Mapping[str, Any]] = None, cache: Optional[TTLCache] = None):
        self.waste_log_repo = waste_log_repo
        self.notifications = notifications
        self.audit = audit
        self.config = config or {}
        self.cache = cache

    @property
    def edit_window_hours(self) -> int:
        return int(self.config.get('WASTE_LOG_EDIT_WINDOW_HOURS', 24))

    @property
    def monthly_threshold_kg(self) -> float:
        return float(self.config.get('WASTE_MONTHLY_THRESHOLD_KG', 500.0))

    def _scope(self, actor: User, filters: Dict[str, Any]) -> Dict[str, Any]:
        scoped = dict(filters)
        if has_role(actor, UserRole.CLINIC):
            scoped['clinic_id'] = actor.id
        return scoped

    def _get_visible(self, actor: User, log_id: int) -> WasteLog:
        log = self.waste_log_repo.get_by_id(log_id)
        if log is None or (has_role(actor, UserRole.CLINIC) and log.clinic_id != actor.id):
            raise NotFoundError("Waste log not found", details={'id': log_id})
        return log

    def _invalidate_pickups(self, log: WasteLog) -> None:
        """Drop cached pickups whose serialized volume and log ids include ``log``."""
        if self.cache is None:
            return
        for pickup in log.pickup_requests:
            self.cache.delete(pickup.id)

    def _get_mutable(self, actor: User, log_id: int) -> WasteLog:
        log = self._get_visible(actor, log_id)
        if log.clinic_id != actor.id and not has_role(actor, UserRole.ADMIN):
            raise AuthorizationError("You can only modify your own waste logs")
        if not log.is_editable(self.edit_window_hours):
            raise ValidationError(
                f"Waste logs can only be changed within {self.edit_window_hours} hours of logging",
                code='EDIT_WINDOW_EXPIRED',
            )
        return log

    def create(self, actor: User, payload: Dict[str, Any]) -> Dict[str, Any]:
        """Record a waste log for the acting clinic.

        Raises:
            AuthorizationError: If the actor is not a clinic
            ValidationError: If cross-field rules fail
        """
        ensure_role(actor, UserRole.CLINIC, message="Only clinics can log waste")
        columns = flatten_waste_log(payload)
        errors = waste_log_errors(columns)
        if errors:
            raise ValidationError("Invalid waste log", details=errors)
        if 'longitude' not in columns and actor.location is not None:
            columns['longitude'], columns['latitude'] = actor.longitude, actor.latitude
        columns.setdefault('logged_at', datetime.datetime.utcnow())

        log = self.waste_log_repo.create(clinic_id=actor.id, **columns)
        self._audit(AuditAction.CREATE, log, actor, {'category': log.category, 'volume_kg': log.volume_kg})

        if self.notifications is not None:
            self.notifications.notify(
                actor,
                NotificationType.WASTE_LOG_CREATED,
                "Waste Log Recorded",
                f"{log.volume_kg:g} kg of {log.category} waste has been logged (#{log.id})",
                priority=Priority.LOW,
                related=(EntityType.WASTE_LOG, log.id),
            )
            self._check_monthly_threshold(actor, log)
        return log.to_dict()

    def _check_monthly_threshold(self, clinic: User, log: WasteLog) -> None:
        """Alert once, on the log that pushes the month's volume over the threshold."""
        since = month_start(log.logged_at)
        total = self.waste_log_repo.volume_since(clinic.id, since)
        threshold = self.monthly_threshold_kg
        if total - log.volume_kg < threshold <= total:
            logger.warning(
                f"Clinic {clinic.id} exceeded monthly waste threshold: {total:.1f} kg",
                extra={"clinic_id": clinic.id, "total_kg": total, "threshold_kg": threshold},
            )
            self.notifications.notify(
                clinic,
                NotificationType.WASTE_THRESHOLD_EXCEEDED,
                "Monthly Waste Threshold Exceeded",
                f"Logged waste this month reached {total:.1f} kg, above the {threshold:g} kg threshold",
                priority=Priority.HIGH,
                data={'total_volume': total, 'threshold': threshold},
                related=(EntityType.WASTE_LOG, log.id),
            )

    def list(self, actor: User, filters: Dict[str, Any], page: int = 1, limit: int = 10) -> Dict[str, Any]:
        logs, total = self.waste_log_repo.list(self._scope(actor, filters), page, limit)
        return {'waste_logs': [log.to_dict() for log in logs], 'pagination': pagination(page, limit, total)}

    def get(self, actor: User, log_id: int) -> Dict[str, Any]:
        return self._get_visible(actor, log_id).to_dict()

    def update(self, actor: User, log_id: int, payload: Dict[str, Any]) -> Dict[str, Any]:
        log = self._get_mutable(actor, log_id)
        changes = flatten_waste_log(payload)
        if not changes:
            raise ValidationError("No updatable fields supplied")

        merged = {field: getattr(log, field) for field in _COLUMN_STATE}
        merged.update(changes)
        errors = waste_log_errors(merged)
        if errors:
            raise ValidationError("Invalid waste log", details=errors)

        for field, value in changes.items():
            setattr(log, field, value)
        self.waste_log_repo.save(log)
        self._invalidate_pickups(log)
        self._audit(AuditAction.UPDATE, log, actor, _jsonable(changes))

        if self.notifications is not None and log.clinic is not None:
            self.notifications.notify(
                log.clinic,
                NotificationType.WASTE_LOG_UPDATED,
                "Waste Log Updated",
                f"Waste log #{log.id} has been updated",
                priority=Priority.LOW,
                related=(EntityType.WASTE_LOG, log.id),
            )
        return log.to_dict()

    def delete(self, actor: User, log_id: int) -> None:
        log = self._get_mutable(actor, log_id)
        self.waste_log_repo.delete(log.id)
        self._invalidate_pickups(log)
        self._audit(AuditAction.DELETE, log, actor)

    def nearby(self, actor: User, coordinates, radius_m: float, filters: Optional[Dict[str, Any]] = None) -> list:
        point = GeoPoint.from_coordinates(coordinates)
        results = self.waste_log_repo.find_nearby(point, radius_m, self._scope(actor, filters or {}))
        return [{**log.to_dict(), 'distance_m': round(distance, 1)} for log, distance in results]

    def statistics(self, actor: User, filters: Dict[str, Any]) -> Dict[str, Any]:
        """Category breakdown, volume aggregates and daily/weekly/monthly trends."""
        scoped = self._scope(actor, filters)
        daily = defaultdict(lambda: {'count': 0, 'volume': 0.0})
        for log in self.waste_log_repo.find_all(scoped):
            bucket = daily[log.logged_at.date()]
            bucket['count'] += 1
            bucket['volume'] += log.volume_kg
        points = [
            {'date': day, 'count': values['count'], 'volume': values['volume'], 'avg_response_time': None}
            for day, values in sorted(daily.items())
        ]
        return {
            'category_breakdown': self.waste_log_repo.category_breakdown(scoped),
            'volume_stats': self.waste_log_repo.volume_stats(scoped),
            'time_distribution': calculate_trends(points),
        }

    def _audit(self, action, log, actor, changes=None) -> None:
        if self.audit is not None:
            self.audit.log_action(action, EntityType.WASTE_LOG, log.id, actor, changes)


def _jsonable(values: Dict[str, Any]) -> Dict[str, Any]:
    return {
        key: value.isoformat() if isinstance(value, datetime.datetime) else value
        for key, value in values.items()
    }
