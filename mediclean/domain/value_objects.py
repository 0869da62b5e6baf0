"""Value objects for the domain layer.

Value objects are immutable and defined by their attributes. They carry the
validation and the business rules that do not depend on storage: the pickup
status machine, priority deadlines, coordinates and time slots.
"""

import math
import re
from dataclasses import dataclass
from datetime import timedelta
from enum import Enum
from typing import Dict, FrozenSet, List, Tuple

EARTH_RADIUS_M = 6_371_000.0
TIME_PATTERN = re.compile(r'^([01]?[0-9]|2[0-3]):[0-5][0-9]$')


class _StrEnum(str, Enum):
    """String enum with tolerant parsing."""

    @classmethod
    def from_string(cls, value: str):
        """Parse a value, ignoring case and surrounding whitespace."""
        if isinstance(value, cls):
            return value
        normalized = str(value or '').strip().lower()
        for member in cls:
            if member.value == normalized:
                return member
        raise ValueError(f"Invalid {cls.__name__}: {value}")

    @classmethod
    def values(cls) -> List[str]:
        return [member.value for member in cls]

    def __str__(self) -> str:
        return self.value


class UserRole(_StrEnum):
    ADMIN = 'admin'
    CLINIC = 'clinic'
    COLLECTOR = 'collector'
    HEALTH = 'health'

    @classmethod
    def self_registrable(cls) -> List[str]:
        """Roles a user may pick when registering without an admin."""
        return [cls.CLINIC.value, cls.COLLECTOR.value, cls.HEALTH.value]


class UserStatus(_StrEnum):
    ACTIVE = 'active'
    INACTIVE = 'inactive'
    SUSPENDED = 'suspended'


class WasteCategory(_StrEnum):
    SHARPS = 'sharps'
    BIOHAZARD = 'biohazard'
    EXPIRED_MEDS = 'expired_meds'
    OTHERS = 'others'

    @property
    def requires_handling_instructions(self) -> bool:
        return self in (WasteCategory.BIOHAZARD, WasteCategory.EXPIRED_MEDS)


class Priority(_StrEnum):
    LOW = 'low'
    MEDIUM = 'medium'
    HIGH = 'high'
    URGENT = 'urgent'

    @property
    def rank(self) -> int:
        """Ordering weight, urgent highest."""
        return _PRIORITY_RANK[self]

    @property
    def overdue_after(self) -> timedelta:
        """How long a pending request may wait before it counts as overdue."""
        return timedelta(hours=_OVERDUE_HOURS[self])


_PRIORITY_RANK = {Priority.LOW: 1, Priority.MEDIUM: 2, Priority.HIGH: 3, Priority.URGENT: 4}
_OVERDUE_HOURS = {Priority.URGENT: 2, Priority.HIGH: 6, Priority.MEDIUM: 24, Priority.LOW: 48}


class PickupStatus(_StrEnum):
    PENDING = 'pending'
    ASSIGNED = 'assigned'
    COLLECTED = 'collected'
    CANCELLED = 'cancelled'

    @property
    def is_terminal(self) -> bool:
        return not _TRANSITIONS[self]

    @property
    def is_active(self) -> bool:
        return self in (PickupStatus.PENDING, PickupStatus.ASSIGNED)

    def allowed_transitions(self) -> FrozenSet['PickupStatus']:
        return _TRANSITIONS[self]

    def can_transition_to(self, target: 'PickupStatus') -> bool:
        return target in _TRANSITIONS[self]

    def validate_transition(self, target: 'PickupStatus') -> None:
        """Raise ``ValueError`` when ``target`` is not reachable from this status."""
        if self.is_terminal:
            raise ValueError(f"Cannot change status of a {self.value} pickup request")
        if not self.can_transition_to(target):
            allowed = ', '.join(sorted(s.value for s in _TRANSITIONS[self]))
            raise ValueError(
                f"Invalid status transition from {self.value} to {target.value}. Allowed: {allowed}"
            )


_TRANSITIONS: Dict[PickupStatus, FrozenSet[PickupStatus]] = {
    PickupStatus.PENDING: frozenset({PickupStatus.ASSIGNED, PickupStatus.CANCELLED}),
    PickupStatus.ASSIGNED: frozenset({PickupStatus.COLLECTED, PickupStatus.CANCELLED}),
    PickupStatus.COLLECTED: frozenset(),
    PickupStatus.CANCELLED: frozenset(),
}


class QualityRating(_StrEnum):
    GOOD = 'good'
    FAIR = 'fair'
    POOR = 'poor'


class ContainerType(_StrEnum):
    BAG = 'bag'
    BOX = 'box'
    CONTAINER = 'container'
    OTHER = 'other'


class ContainerCondition(_StrEnum):
    NEW = 'new'
    USED = 'used'
    DAMAGED = 'damaged'


class DocumentType(_StrEnum):
    LICENSE = 'license'
    PERMIT = 'permit'
    CERTIFICATION = 'certification'
    INSURANCE = 'insurance'


class DocumentStatus(_StrEnum):
    PENDING = 'pending'
    VERIFIED = 'verified'
    REJECTED = 'rejected'


class NotificationType(_StrEnum):
    PICKUP_REQUEST = 'pickup_request'
    PICKUP_ASSIGNED = 'pickup_assigned'
    PICKUP_COMPLETED = 'pickup_completed'
    PICKUP_CANCELLED = 'pickup_cancelled'
    WASTE_LOG_CREATED = 'waste_log_created'
    WASTE_LOG_UPDATED = 'waste_log_updated'
    WASTE_THRESHOLD_EXCEEDED = 'waste_threshold_exceeded'
    SYSTEM_MAINTENANCE = 'system_maintenance'
    EMERGENCY_ALERT = 'emergency_alert'
    ACCOUNT_UPDATE = 'account_update'
    COMPLIANCE_ALERT = 'compliance_alert'
    REPORT_READY = 'report_ready'

    @property
    def requires_creator(self) -> bool:
        return self in (NotificationType.SYSTEM_MAINTENANCE, NotificationType.EMERGENCY_ALERT)

    @classmethod
    def for_pickup_status(cls, status: PickupStatus) -> 'NotificationType':
        """Notification type announcing that a pickup reached ``status``."""
        return {
            PickupStatus.PENDING: cls.PICKUP_REQUEST,
            PickupStatus.ASSIGNED: cls.PICKUP_ASSIGNED,
            PickupStatus.COLLECTED: cls.PICKUP_COMPLETED,
            PickupStatus.CANCELLED: cls.PICKUP_CANCELLED,
        }[status]


class NotificationCategory(_StrEnum):
    OPERATIONAL = 'operational'
    ADMINISTRATIVE = 'administrative'
    SYSTEM = 'system'
    EMERGENCY = 'emergency'


class NotificationChannel(_StrEnum):
    IN_APP = 'in_app'
    EMAIL = 'email'
    SMS = 'sms'
    ALL = 'all'

    @classmethod
    def resolve(cls, preferred: List[str]) -> 'NotificationChannel':
        """Collapse a preference list to the single channel stored on a notification."""
        channels = {cls.from_string(c) for c in preferred or []}
        if not channels:
            return cls.IN_APP
        if cls.ALL in channels or len(channels) > 1:
            return cls.ALL
        return channels.pop()


class NotificationStatus(_StrEnum):
    UNREAD = 'unread'
    READ = 'read'
    ARCHIVED = 'archived'


class ReportType(_StrEnum):
    WASTE = 'waste'
    PICKUP = 'pickup'
    CLINIC_PERFORMANCE = 'clinic_performance'


class ReportFormat(_StrEnum):
    JSON = 'json'
    CSV = 'csv'
    EXCEL = 'excel'


class ReportStatus(_StrEnum):
    PENDING = 'pending'
    GENERATING = 'generating'
    COMPLETED = 'completed'
    FAILED = 'failed'


class ReportFrequency(_StrEnum):
    ONCE = 'once'
    DAILY = 'daily'
    WEEKLY = 'weekly'
    MONTHLY = 'monthly'
    QUARTERLY = 'quarterly'

    @classmethod
    def schedulable(cls) -> List[str]:
        return [f.value for f in cls if f is not cls.ONCE]


class AuditAction(_StrEnum):
    CREATE = 'create'
    UPDATE = 'update'
    DELETE = 'delete'
    VIEW = 'view'
    LOGIN = 'login'
    LOGOUT = 'logout'
    STATUS_CHANGE = 'status_change'
    ASSIGN = 'assign'
    CANCEL = 'cancel'
    EXPORT = 'export'
    SCHEDULE = 'schedule'
    VERIFY = 'verify'
    RESET_PASSWORD = 'reset_password'
    CHANGE_ROLE = 'change_role'
    ARCHIVE = 'archive'


class AuditSeverity(_StrEnum):
    INFO = 'info'
    WARNING = 'warning'
    ERROR = 'error'
    CRITICAL = 'critical'


class EntityType(_StrEnum):
    USER = 'user'
    WASTE_LOG = 'waste_log'
    PICKUP_REQUEST = 'pickup_request'
    REPORT = 'report'
    NOTIFICATION = 'notification'
    SETTINGS = 'settings'


DEFAULT_NOTIFICATION_PREFERENCES: Dict[str, List[str]] = {
    NotificationType.PICKUP_REQUEST.value: ['in_app', 'email'],
    NotificationType.PICKUP_ASSIGNED.value: ['in_app', 'email', 'sms'],
    NotificationType.PICKUP_COMPLETED.value: ['in_app', 'email'],
    NotificationType.WASTE_THRESHOLD_EXCEEDED.value: ['in_app', 'email', 'sms'],
    NotificationType.SYSTEM_MAINTENANCE.value: ['in_app'],
}


@dataclass(frozen=True)
class GeoPoint:
    """A WGS84 point stored as (longitude, latitude)."""

    longitude: float
    latitude: float

    def __post_init__(self):
        if isinstance(self.longitude, bool) or isinstance(self.latitude, bool):
            raise ValueError("Coordinates must be numbers")
        try:
            lng = float(self.longitude)
            lat = float(self.latitude)
        except (TypeError, ValueError):
            raise ValueError("Coordinates must be numbers")
        if not -180 <= lng <= 180:
            raise ValueError("Longitude must be between -180 and 180")
        if not -90 <= lat <= 90:
            raise ValueError("Latitude must be between -90 and 90")
        object.__setattr__(self, 'longitude', lng)
        object.__setattr__(self, 'latitude', lat)

    @classmethod
    def from_coordinates(cls, coordinates) -> 'GeoPoint':
        """Build from a ``[longitude, latitude]`` pair."""
        if not isinstance(coordinates, (list, tuple)) or len(coordinates) != 2:
            raise ValueError("Coordinates must be an array of [longitude, latitude]")
        return cls(coordinates[0], coordinates[1])

    def distance_to(self, other: 'GeoPoint') -> float:
        """Great-circle distance in metres (haversine)."""
        lat1, lat2 = math.radians(self.latitude), math.radians(other.latitude)
        dlat = lat2 - lat1
        dlng = math.radians(other.longitude - self.longitude)
        a = math.sin(dlat / 2) ** 2 + math.cos(lat1) * math.cos(lat2) * math.sin(dlng / 2) ** 2
        return 2 * EARTH_RADIUS_M * math.asin(min(1.0, math.sqrt(a)))

    def bounding_box(self, radius_m: float) -> Tuple[Tuple[float, float], List[Tuple[float, float]]]:
        """Return ``((min_lat, max_lat), [(min_lng, max_lng), ...])`` enclosing the radius.

        A box crossing the antimeridian is split into two longitude ranges.
        The box is a cheap SQL prefilter; callers still check the exact distance.
        """
        dlat = math.degrees(radius_m / EARTH_RADIUS_M)
        min_lat, max_lat = self.latitude - dlat, self.latitude + dlat
        cos_lat = math.cos(math.radians(self.latitude))
        if min_lat <= -90.0 or max_lat >= 90.0 or cos_lat < 1e-6:
            # the circle reaches a pole, so every longitude is in range
            return (max(-90.0, min_lat), min(90.0, max_lat)), [(-180.0, 180.0)]

        dlng = math.degrees(radius_m / (EARTH_RADIUS_M * cos_lat))
        if dlng >= 180.0:
            return (min_lat, max_lat), [(-180.0, 180.0)]
        min_lng, max_lng = self.longitude - dlng, self.longitude + dlng
        if min_lng < -180.0:
            return (min_lat, max_lat), [(min_lng + 360.0, 180.0), (-180.0, max_lng)]
        if max_lng > 180.0:
            return (min_lat, max_lat), [(min_lng, 180.0), (-180.0, max_lng - 360.0)]
        return (min_lat, max_lat), [(min_lng, max_lng)]

    def to_geojson(self) -> Dict:
        return {'type': 'Point', 'coordinates': [self.longitude, self.latitude]}


@dataclass(frozen=True)
class TimeSlot:
    """Preferred pickup window within a day, as HH:MM strings."""

    start: str
    end: str

    def __post_init__(self):
        for label, value in (('start', self.start), ('end', self.end)):
            if not value or not TIME_PATTERN.match(value):
                raise ValueError(f"Invalid {label} time format. Use HH:MM")
        if self._minutes(self.start) >= self._minutes(self.end):
            raise ValueError("Time slot start must be before end")

    @staticmethod
    def _minutes(value: str) -> int:
        hours, minutes = value.split(':')
        return int(hours) * 60 + int(minutes)

    @property
    def duration_minutes(self) -> int:
        return self._minutes(self.end) - self._minutes(self.start)
