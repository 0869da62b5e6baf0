from __future__ import annotations

import calendar
import datetime
from typing import Any, Dict, Optional

from passlib.context import CryptContext
from sqlalchemy import (
    JSON, Boolean, Column, DateTime, Float, ForeignKey, Integer, String, Table,
    Text, UniqueConstraint,
)
from sqlalchemy.orm import DeclarativeMeta, declarative_base, relationship

from .domain.value_objects import (
    DEFAULT_NOTIFICATION_PREFERENCES, GeoPoint, NotificationStatus, PickupStatus,
    Priority, ReportFrequency, UserStatus,
)

Base: DeclarativeMeta = declarative_base()

# Password hashing context
pwd_context = CryptContext(schemes=["bcrypt"], deprecated="auto")


def _iso(value: Optional[datetime.datetime]) -> Optional[str]:
    return value.isoformat() if value else None


def add_months(moment: datetime.datetime, months: int) -> datetime.datetime:
    """Shift by calendar months, clamping the day to the target month's length."""
    month_index = moment.month - 1 + months
    year = moment.year + month_index // 12
    month = month_index % 12 + 1
    day = min(moment.day, calendar.monthrange(year, month)[1])
    return moment.replace(year=year, month=month, day=day)


class SoftDeleteMixin:
    is_deleted = Column(Boolean, default=False, nullable=False, index=True)
    deleted_at = Column(DateTime, nullable=True)

    def soft_delete(self) -> None:
        self.is_deleted = True
        self.deleted_at = datetime.datetime.utcnow()


class LocationMixin:
    longitude = Column(Float, nullable=True, index=True)
    latitude = Column(Float, nullable=True, index=True)

    @property
    def location(self) -> Optional[GeoPoint]:
        if self.longitude is None or self.latitude is None:
            return None
        return GeoPoint(self.longitude, self.latitude)

    @location.setter
    def location(self, point: Optional[GeoPoint]) -> None:
        self.longitude = point.longitude if point else None
        self.latitude = point.latitude if point else None

    def _location_dict(self) -> Optional[Dict[str, Any]]:
        point = self.location
        return point.to_geojson() if point else None


# =======================
# Users
# =======================


class User(SoftDeleteMixin, LocationMixin, Base):
    """Clinic, collector, health-authority or admin account."""

    __tablename__ = "users"

    id = Column(Integer, primary_key=True)
    username = Column(String(64), unique=True, nullable=False, index=True)
    email = Column(String(256), unique=True, nullable=False, index=True)
    hashed_password = Column(String(255), nullable=False)
    phone = Column(String(32), nullable=True)
    role = Column(String(32), nullable=False, index=True)
    status = Column(String(32), nullable=False, default=UserStatus.ACTIVE.value, index=True)
    is_active = Column(Boolean, default=True)

    is_verified = Column(Boolean, default=False)
    verified_at = Column(DateTime, nullable=True)
    verified_by = Column(Integer, ForeignKey("users.id"), nullable=True)

    street = Column(String(256), nullable=True)
    city = Column(String(128), nullable=True)
    state = Column(String(128), nullable=True)
    postal_code = Column(String(16), nullable=True)
    country = Column(String(128), nullable=True)

    service_radius_km = Column(Float, default=10.0)
    operating_hours = Column(JSON, nullable=True)
    notification_preferences = Column(JSON, nullable=True)

    failed_login_attempts = Column(Integer, default=0)
    account_locked_until = Column(DateTime, nullable=True)
    last_login_at = Column(DateTime, nullable=True)
    last_password_change = Column(DateTime, nullable=True)
    password_reset_token_hash = Column(String(128), nullable=True, index=True)
    password_reset_expires_at = Column(DateTime, nullable=True)

    created_at = Column(DateTime, default=datetime.datetime.utcnow)
    updated_at = Column(DateTime, default=datetime.datetime.utcnow, onupdate=datetime.datetime.utcnow)

    documents = relationship(
        "VerificationDocument", back_populates="user", cascade="all, delete-orphan",
        order_by="VerificationDocument.id",
    )

    def __repr__(self) -> str:  # pragma: no cover - trivial
        return f"<User id={self.id} username={self.username} role={self.role}>"

    def set_password(self, password: str) -> None:
        """Hash and store ``password``."""
        self.hashed_password = pwd_context.hash(password)
        self.last_password_change = datetime.datetime.utcnow()

    def verify_password(self, password: str) -> bool:
        """Check ``password`` against the stored hash."""
        return pwd_context.verify(password, self.hashed_password)

    def is_account_locked(self, now: Optional[datetime.datetime] = None) -> bool:
        """Whether a lockout is still in effect."""
        if not self.account_locked_until:
            return False
        return (now or datetime.datetime.utcnow()) < self.account_locked_until

    def lock_account(self, duration_minutes: int = 30) -> None:
        self.account_locked_until = datetime.datetime.utcnow() + datetime.timedelta(minutes=duration_minutes)

    def unlock_account(self) -> None:
        self.failed_login_attempts = 0
        self.account_locked_until = None

    def register_failed_login(self, max_attempts: int = 5, lockout_minutes: int = 30) -> int:
        """Count a failed login, locking the account at ``max_attempts``.

        Returns:
            Remaining attempts before lockout (0 when just locked)
        """
        self.failed_login_attempts = (self.failed_login_attempts or 0) + 1
        if self.failed_login_attempts >= max_attempts:
            self.lock_account(lockout_minutes)
            return 0
        return max_attempts - self.failed_login_attempts

    def record_login(self) -> None:
        self.failed_login_attempts = 0
        self.account_locked_until = None
        self.last_login_at = datetime.datetime.utcnow()

    @property
    def can_login(self) -> bool:
        return bool(self.is_active) and not self.is_deleted and self.status == UserStatus.ACTIVE.value

    def preferences_for(self, notification_type: str) -> list:
        prefs = self.notification_preferences or DEFAULT_NOTIFICATION_PREFERENCES
        return list(prefs.get(notification_type, ['in_app']))

    def to_dict(self, include_private: bool = False) -> Dict[str, Any]:
        data = {
            'id': self.id,
            'username': self.username,
            'email': self.email,
            'role': self.role,
            'status': self.status,
            'is_active': self.is_active,
            'is_verified': self.is_verified,
            'location': self._location_dict(),
            'created_at': _iso(self.created_at),
        }
        if include_private:
            data.update({
                'phone': self.phone,
                'address': {
                    'street': self.street,
                    'city': self.city,
                    'state': self.state,
                    'postal_code': self.postal_code,
                    'country': self.country,
                },
                'service_area': {
                    'center': self._location_dict(),
                    'radius_km': self.service_radius_km,
                },
                'operating_hours': self.operating_hours or {},
                'notification_preferences': self.notification_preferences or {},
                'verification': {
                    'is_verified': self.is_verified,
                    'verified_at': _iso(self.verified_at),
                    'verified_by': self.verified_by,
                    'documents': [doc.to_dict() for doc in self.documents],
                },
                'last_login_at': _iso(self.last_login_at),
                'last_password_change': _iso(self.last_password_change),
                'updated_at': _iso(self.updated_at),
            })
        return data


class VerificationDocument(Base):
    """License, permit or certificate backing a collector's verification."""

    __tablename__ = "verification_documents"

    id = Column(Integer, primary_key=True)
    user_id = Column(Integer, ForeignKey("users.id"), nullable=False, index=True)
    doc_type = Column(String(32), nullable=False)
    number = Column(String(128), nullable=False)
    issued_by = Column(String(256), nullable=True)
    issued_at = Column(DateTime, nullable=True)
    expires_at = Column(DateTime, nullable=True)
    status = Column(String(32), nullable=False, default='pending')
    created_at = Column(DateTime, default=datetime.datetime.utcnow)

    user = relationship("User", back_populates="documents")

    def __repr__(self) -> str:  # pragma: no cover - trivial
        return f"<VerificationDocument id={self.id} user_id={self.user_id} type={self.doc_type}>"

    def to_dict(self) -> Dict[str, Any]:
        return {
            'id': self.id,
            'type': self.doc_type,
            'number': self.number,
            'issued_by': self.issued_by,
            'issued_at': _iso(self.issued_at),
            'expires_at': _iso(self.expires_at),
            'status': self.status,
        }


# =======================
# Waste logs
# =======================

pickup_waste_logs = Table(
    "pickup_waste_logs",
    Base.metadata,
    Column("pickup_request_id", Integer, ForeignKey("pickup_requests.id"), primary_key=True),
    Column("waste_log_id", Integer, ForeignKey("waste_logs.id"), primary_key=True),
)


class WasteLog(SoftDeleteMixin, LocationMixin, Base):
    """Waste produced by a clinic and awaiting pickup."""

    __tablename__ = "waste_logs"

    id = Column(Integer, primary_key=True)
    clinic_id = Column(Integer, ForeignKey("users.id"), nullable=False, index=True)
    category = Column(String(32), nullable=False, index=True)
    subcategory = Column(String(128), nullable=True)
    volume_kg = Column(Float, nullable=False)
    description = Column(String(500), nullable=True)
    handling_instructions = Column(Text, nullable=True)

    storage_temperature_min = Column(Float, nullable=True)
    storage_temperature_max = Column(Float, nullable=True)
    storage_humidity_min = Column(Float, nullable=True)
    storage_humidity_max = Column(Float, nullable=True)
    storage_special_requirements = Column(Text, nullable=True)

    container_type = Column(String(32), nullable=False)
    container_quantity = Column(Integer, nullable=False, default=1)
    container_condition = Column(String(32), nullable=False, default='new')

    images = Column(JSON, default=list)
    logged_at = Column(DateTime, default=datetime.datetime.utcnow, index=True)

    created_at = Column(DateTime, default=datetime.datetime.utcnow)
    updated_at = Column(DateTime, default=datetime.datetime.utcnow, onupdate=datetime.datetime.utcnow)

    clinic = relationship("User", foreign_keys=[clinic_id])
    pickup_requests = relationship(
        "PickupRequest", secondary="pickup_waste_logs", back_populates="waste_logs",
    )

    def __repr__(self) -> str:  # pragma: no cover - trivial
        return f"<WasteLog id={self.id} clinic_id={self.clinic_id} category={self.category}>"

    def is_editable(self, window_hours: int = 24, now: Optional[datetime.datetime] = None) -> bool:
        """Logs can be changed only for a short window after they are recorded."""
        if self.is_deleted:
            return False
        now = now or datetime.datetime.utcnow()
        return (now - self.logged_at) <= datetime.timedelta(hours=window_hours)

    def to_dict(self) -> Dict[str, Any]:
        return {
            'id': self.id,
            'clinic_id': self.clinic_id,
            'category': self.category,
            'subcategory': self.subcategory,
            'volume_kg': self.volume_kg,
            'description': self.description,
            'handling_instructions': self.handling_instructions,
            'storage_conditions': {
                'temperature': {'min': self.storage_temperature_min, 'max': self.storage_temperature_max},
                'humidity': {'min': self.storage_humidity_min, 'max': self.storage_humidity_max},
                'special_requirements': self.storage_special_requirements,
            },
            'container_info': {
                'type': self.container_type,
                'quantity': self.container_quantity,
                'condition': self.container_condition,
            },
            'images': self.images or [],
            'location': self._location_dict(),
            'logged_at': _iso(self.logged_at),
            'pickup_request_ids': [pickup.id for pickup in self.pickup_requests],
            'created_at': _iso(self.created_at),
            'updated_at': _iso(self.updated_at),
        }


# =======================
# Pickup requests
# =======================


class PickupRequest(SoftDeleteMixin, LocationMixin, Base):
    """A clinic's request to have waste collected."""

    __tablename__ = "pickup_requests"

    id = Column(Integer, primary_key=True)
    clinic_id = Column(Integer, ForeignKey("users.id"), nullable=False, index=True)
    collector_id = Column(Integer, ForeignKey("users.id"), nullable=True, index=True)
    waste_type = Column(String(32), nullable=False, index=True)
    volume_kg = Column(Float, nullable=False)
    priority = Column(String(16), nullable=False, default=Priority.MEDIUM.value, index=True)
    description = Column(String(500), nullable=True)
    status = Column(String(16), nullable=False, default=PickupStatus.PENDING.value, index=True)

    is_scheduled = Column(Boolean, default=False)
    preferred_date = Column(DateTime, nullable=True)
    preferred_time_start = Column(String(5), nullable=True)
    preferred_time_end = Column(String(5), nullable=True)

    is_emergency = Column(Boolean, default=False, index=True)
    emergency_reason = Column(String(500), nullable=True)
    response_deadline = Column(DateTime, nullable=True)

    route_sequence = Column(Integer, nullable=True)
    estimated_arrival = Column(DateTime, nullable=True)
    estimated_duration_minutes = Column(Integer, nullable=True)
    route_distance_km = Column(Float, nullable=True)

    actual_weight = Column(Float, nullable=True)
    container_count = Column(Integer, nullable=True)
    photo_urls = Column(JSON, default=list)
    clinic_staff_signature = Column(String(256), nullable=True)
    collector_signature = Column(String(256), nullable=True)
    signed_at = Column(DateTime, nullable=True)
    collection_notes = Column(String(500), nullable=True)

    waste_segregation = Column(String(8), nullable=True)
    packaging_quality = Column(String(8), nullable=True)
    quality_comments = Column(String(500), nullable=True)

    requested_at = Column(DateTime, default=datetime.datetime.utcnow, index=True)
    collected_at = Column(DateTime, nullable=True)
    cancelled_at = Column(DateTime, nullable=True)
    cancellation_reason = Column(String(500), nullable=True)
    cancelled_by = Column(Integer, ForeignKey("users.id"), nullable=True)

    created_at = Column(DateTime, default=datetime.datetime.utcnow)
    updated_at = Column(DateTime, default=datetime.datetime.utcnow, onupdate=datetime.datetime.utcnow)

    clinic = relationship("User", foreign_keys=[clinic_id])
    collector = relationship("User", foreign_keys=[collector_id])
    waste_logs = relationship(
        "WasteLog", secondary="pickup_waste_logs", back_populates="pickup_requests",
    )
    history = relationship(
        "PickupStatusHistory", back_populates="pickup_request",
        cascade="all, delete-orphan", order_by="PickupStatusHistory.id",
    )

    def __repr__(self) -> str:  # pragma: no cover - trivial
        return f"<PickupRequest id={self.id} status={self.status} priority={self.priority}>"

    @property
    def status_enum(self) -> PickupStatus:
        return PickupStatus.from_string(self.status)

    @property
    def priority_enum(self) -> Priority:
        return Priority.from_string(self.priority)

    def record_status(self, status: str, note: Optional[str] = None,
                      changed_by: Optional[int] = None) -> None:
        """Append a history entry for ``status`` without validating the transition."""
        self.history.append(PickupStatusHistory(
            status=status, note=note, changed_by=changed_by,
            changed_at=datetime.datetime.utcnow(),
        ))

    def change_status(self, target: PickupStatus, note: Optional[str] = None,
                      changed_by: Optional[int] = None) -> None:
        """Move to ``target`` through the status machine.

        Raises:
            ValueError: If the transition is not allowed
        """
        self.status_enum.validate_transition(target)
        now = datetime.datetime.utcnow()
        self.status = target.value
        if target is PickupStatus.COLLECTED:
            self.collected_at = now
        elif target is PickupStatus.CANCELLED:
            self.cancelled_at = now
        self.record_status(target.value, note, changed_by)

    # Derived values ---------------------------------------------------------

    def is_overdue(self, now: Optional[datetime.datetime] = None) -> bool:
        if self.status != PickupStatus.PENDING.value or not self.requested_at:
            return False
        now = now or datetime.datetime.utcnow()
        return now - self.requested_at > self.priority_enum.overdue_after

    @property
    def response_time_hours(self) -> Optional[float]:
        if self.status != PickupStatus.COLLECTED.value or not self.collected_at or not self.requested_at:
            return None
        return (self.collected_at - self.requested_at).total_seconds() / 3600

    @property
    def wait_time_hours(self) -> Optional[float]:
        if self.status not in (PickupStatus.ASSIGNED.value, PickupStatus.COLLECTED.value):
            return None
        for entry in self.history:
            if entry.status == PickupStatus.ASSIGNED.value:
                return (entry.changed_at - self.requested_at).total_seconds() / 3600
        return None

    @property
    def is_editable(self) -> bool:
        return self.status_enum.is_active and not self.is_deleted

    @property
    def is_deletable(self) -> bool:
        return self.status == PickupStatus.PENDING.value and not self.is_deleted

    def is_emergency_expired(self, now: Optional[datetime.datetime] = None) -> bool:
        if not self.is_emergency or not self.response_deadline:
            return False
        return (now or datetime.datetime.utcnow()) > self.response_deadline

    @property
    def total_waste_volume(self) -> float:
        linked = [log.volume_kg for log in self.waste_logs if not log.is_deleted]
        return sum(linked) if linked else self.volume_kg

    def to_dict(self) -> Dict[str, Any]:
        return {
            'id': self.id,
            'clinic_id': self.clinic_id,
            'collector_id': self.collector_id,
            'waste_type': self.waste_type,
            'volume_kg': self.volume_kg,
            'priority': self.priority,
            'description': self.description,
            'status': self.status,
            'waste_log_ids': [log.id for log in self.waste_logs],
            'scheduled_pickup': {
                'is_scheduled': bool(self.is_scheduled),
                'preferred_date': _iso(self.preferred_date),
                'preferred_time_slot': (
                    {'start': self.preferred_time_start, 'end': self.preferred_time_end}
                    if self.preferred_time_start else None
                ),
            },
            'emergency': {
                'is_emergency': bool(self.is_emergency),
                'reason': self.emergency_reason,
                'response_deadline': _iso(self.response_deadline),
            },
            'location': self._location_dict(),
            'route_details': {
                'sequence': self.route_sequence,
                'estimated_arrival': _iso(self.estimated_arrival),
                'estimated_duration': self.estimated_duration_minutes,
                'distance': self.route_distance_km,
            },
            'collection_details': {
                'actual_weight': self.actual_weight,
                'container_count': self.container_count,
                'photos_urls': self.photo_urls or [],
                'signature': {
                    'clinic_staff': self.clinic_staff_signature,
                    'collector': self.collector_signature,
                    'timestamp': _iso(self.signed_at),
                },
                'notes': self.collection_notes,
            },
            'quality_control': {
                'waste_segregation': self.waste_segregation,
                'packaging_quality': self.packaging_quality,
                'comments': self.quality_comments,
            },
            'status_history': [entry.to_dict() for entry in self.history],
            'requested_at': _iso(self.requested_at),
            'collected_at': _iso(self.collected_at),
            'cancelled_at': _iso(self.cancelled_at),
            'cancellation_reason': self.cancellation_reason,
            'response_time_hours': self.response_time_hours,
            'wait_time_hours': self.wait_time_hours,
            'is_overdue': self.is_overdue(),
            'is_editable': self.is_editable,
            'is_deletable': self.is_deletable,
            'is_emergency_expired': self.is_emergency_expired(),
            'total_waste_volume': self.total_waste_volume,
            'created_at': _iso(self.created_at),
            'updated_at': _iso(self.updated_at),
        }


class PickupStatusHistory(Base):
    __tablename__ = "pickup_status_history"

    id = Column(Integer, primary_key=True)
    pickup_request_id = Column(Integer, ForeignKey("pickup_requests.id"), nullable=False, index=True)
    status = Column(String(16), nullable=False)
    note = Column(String(200), nullable=True)
    changed_by = Column(Integer, ForeignKey("users.id"), nullable=True)
    changed_at = Column(DateTime, default=datetime.datetime.utcnow)

    pickup_request = relationship("PickupRequest", back_populates="history")

    def __repr__(self) -> str:  # pragma: no cover - trivial
        return f"<PickupStatusHistory request={self.pickup_request_id} status={self.status}>"

    def to_dict(self) -> Dict[str, Any]:
        return {
            'status': self.status,
            'note': self.note,
            'changed_by': self.changed_by,
            'updated_at': _iso(self.changed_at),
        }


# =======================
# Notifications
# =======================


class Notification(SoftDeleteMixin, Base):
    """In-app notification, addressed to one user or broadcast to roles."""

    __tablename__ = "notifications"

    id = Column(Integer, primary_key=True)
    is_broadcast = Column(Boolean, default=False, index=True)
    target_roles = Column(JSON, default=list)

    # individual notifications only
    user_id = Column(Integer, ForeignKey("users.id"), nullable=True, index=True)
    status = Column(String(16), nullable=True, index=True)
    read_at = Column(DateTime, nullable=True)
    archived_at = Column(DateTime, nullable=True)

    type = Column(String(64), nullable=False, index=True)
    title = Column(String(200), nullable=False)
    message = Column(String(2000), nullable=False)
    priority = Column(String(16), nullable=False, default=Priority.MEDIUM.value, index=True)
    category = Column(String(32), nullable=False, index=True)
    channel = Column(String(16), nullable=False, default='in_app')
    data = Column(JSON, nullable=True)
    expires_at = Column(DateTime, nullable=True, index=True)
    created_by = Column(Integer, ForeignKey("users.id"), nullable=True)
    related_entity_type = Column(String(32), nullable=True)
    related_entity_id = Column(Integer, nullable=True)

    created_at = Column(DateTime, default=datetime.datetime.utcnow, index=True)

    recipients = relationship(
        "NotificationRecipient", back_populates="notification", cascade="all, delete-orphan",
    )

    def __repr__(self) -> str:  # pragma: no cover - trivial
        return f"<Notification id={self.id} type={self.type} broadcast={self.is_broadcast}>"

    def is_expired(self, now: Optional[datetime.datetime] = None) -> bool:
        if not self.expires_at:
            return False
        return (now or datetime.datetime.utcnow()) > self.expires_at

    def _recipient(self, user_id: int) -> Optional['NotificationRecipient']:
        for recipient in self.recipients:
            if recipient.user_id == user_id:
                return recipient
        return None

    def state_for(self, user_id: int):
        """Per-user ``(status, read_at, archived_at)``; broadcasts track each recipient."""
        target = self._recipient(user_id) if self.is_broadcast else self
        if target is None:
            return None
        return target.status, target.read_at, target.archived_at

    def addressed_to(self, user_id: int) -> bool:
        if self.is_broadcast:
            return self._recipient(user_id) is not None
        return self.user_id == user_id

    def mark_read(self, user_id: int) -> bool:
        """Mark unread as read for ``user_id``. Returns True when something changed."""
        target = self._recipient(user_id) if self.is_broadcast else (self if self.user_id == user_id else None)
        if target is None or target.status != NotificationStatus.UNREAD.value:
            return False
        target.status = NotificationStatus.READ.value
        target.read_at = datetime.datetime.utcnow()
        return True

    def archive(self, user_id: int) -> bool:
        target = self._recipient(user_id) if self.is_broadcast else (self if self.user_id == user_id else None)
        if target is None or target.status == NotificationStatus.ARCHIVED.value:
            return False
        target.status = NotificationStatus.ARCHIVED.value
        target.archived_at = datetime.datetime.utcnow()
        return True

    def to_dict(self, viewer_id: Optional[int] = None) -> Dict[str, Any]:
        status, read_at, archived_at = self.status, self.read_at, self.archived_at
        if self.is_broadcast and viewer_id is not None:
            state = self.state_for(viewer_id)
            if state:
                status, read_at, archived_at = state
        return {
            'id': self.id,
            'is_broadcast': bool(self.is_broadcast),
            'target_roles': self.target_roles or [],
            'user_id': self.user_id,
            'type': self.type,
            'title': self.title,
            'message': self.message,
            'priority': self.priority,
            'category': self.category,
            'channel': self.channel,
            'data': self.data,
            'status': status,
            'read_at': _iso(read_at),
            'archived_at': _iso(archived_at),
            'expires_at': _iso(self.expires_at),
            'is_expired': self.is_expired(),
            'is_urgent': self.priority == Priority.URGENT.value,
            'created_by': self.created_by,
            'related_entity': (
                {'type': self.related_entity_type, 'id': self.related_entity_id}
                if self.related_entity_type else None
            ),
            'created_at': _iso(self.created_at),
        }


class NotificationRecipient(Base):
    __tablename__ = "notification_recipients"
    __table_args__ = (UniqueConstraint("notification_id", "user_id", name="uq_notification_recipient"),)

    id = Column(Integer, primary_key=True)
    notification_id = Column(Integer, ForeignKey("notifications.id"), nullable=False, index=True)
    user_id = Column(Integer, ForeignKey("users.id"), nullable=False, index=True)
    status = Column(String(16), nullable=False, default=NotificationStatus.UNREAD.value, index=True)
    read_at = Column(DateTime, nullable=True)
    archived_at = Column(DateTime, nullable=True)

    notification = relationship("Notification", back_populates="recipients")

    def __repr__(self) -> str:  # pragma: no cover - trivial
        return f"<NotificationRecipient notification={self.notification_id} user={self.user_id}>"


# =======================
# Reports
# =======================


class Report(SoftDeleteMixin, Base):
    """Generated (or scheduled) waste, pickup or performance report."""

    __tablename__ = "reports"

    id = Column(Integer, primary_key=True)
    type = Column(String(32), nullable=False, index=True)
    title = Column(String(256), nullable=False)
    description = Column(Text, nullable=True)
    parameters = Column(JSON, default=dict)
    format = Column(String(16), nullable=False)
    data = Column(JSON, nullable=True)
    generated_by = Column(Integer, ForeignKey("users.id"), nullable=False, index=True)
    status = Column(String(16), nullable=False, default='pending', index=True)

    error_code = Column(String(64), nullable=True)
    error_message = Column(Text, nullable=True)

    record_count = Column(Integer, nullable=True)
    file_size = Column(Integer, nullable=True)
    generation_time_ms = Column(Integer, nullable=True)
    checksum = Column(String(64), nullable=True)

    frequency = Column(String(16), nullable=False, default=ReportFrequency.ONCE.value)
    next_run = Column(DateTime, nullable=True, index=True)
    last_run = Column(DateTime, nullable=True)
    recipients = Column(JSON, default=list)
    retention_days = Column(Integer, default=30)

    view_roles = Column(JSON, default=list)
    tags = Column(JSON, default=list)

    created_at = Column(DateTime, default=datetime.datetime.utcnow, index=True)
    updated_at = Column(DateTime, default=datetime.datetime.utcnow, onupdate=datetime.datetime.utcnow)

    def __repr__(self) -> str:  # pragma: no cover - trivial
        return f"<Report id={self.id} type={self.type} status={self.status}>"

    @property
    def is_scheduled(self) -> bool:
        return self.frequency != ReportFrequency.ONCE.value

    def is_due(self, now: Optional[datetime.datetime] = None) -> bool:
        if not self.is_scheduled or not self.next_run:
            return False
        return self.next_run <= (now or datetime.datetime.utcnow())

    def is_expired(self, now: Optional[datetime.datetime] = None) -> bool:
        if not self.retention_days or not self.created_at:
            return False
        expires = self.created_at + datetime.timedelta(days=self.retention_days)
        return (now or datetime.datetime.utcnow()) > expires

    def calculate_next_run(self, now: Optional[datetime.datetime] = None) -> Optional[datetime.datetime]:
        now = now or datetime.datetime.utcnow()
        frequency = ReportFrequency.from_string(self.frequency)
        if frequency is ReportFrequency.DAILY:
            return now + datetime.timedelta(days=1)
        if frequency is ReportFrequency.WEEKLY:
            return now + datetime.timedelta(days=7)
        if frequency is ReportFrequency.MONTHLY:
            return add_months(now, 1)
        if frequency is ReportFrequency.QUARTERLY:
            return add_months(now, 3)
        return None

    def to_dict(self, include_data: bool = False) -> Dict[str, Any]:
        payload = {
            'id': self.id,
            'type': self.type,
            'title': self.title,
            'description': self.description,
            'parameters': self.parameters or {},
            'format': self.format,
            'generated_by': self.generated_by,
            'status': self.status,
            'error': (
                {'code': self.error_code, 'message': self.error_message}
                if self.error_code else None
            ),
            'metadata': {
                'record_count': self.record_count,
                'file_size': self.file_size,
                'generation_time': self.generation_time_ms,
                'checksum': self.checksum,
            },
            'schedule': {
                'frequency': self.frequency,
                'next_run': _iso(self.next_run),
                'last_run': _iso(self.last_run),
                'recipients': self.recipients or [],
                'retention_days': self.retention_days,
            },
            'is_scheduled': self.is_scheduled,
            'view_roles': self.view_roles or [],
            'tags': self.tags or [],
            'created_at': _iso(self.created_at),
        }
        if include_data:
            payload['data'] = self.data
        return payload


# =======================
# Audit trail
# =======================


class AuditLog(Base):
    __tablename__ = "audit_logs"

    id = Column(Integer, primary_key=True)
    action = Column(String(32), nullable=False, index=True)
    severity = Column(String(16), nullable=False, default='info', index=True)
    entity_type = Column(String(32), nullable=False, index=True)
    entity_id = Column(Integer, nullable=True, index=True)
    performed_by = Column(Integer, ForeignKey("users.id"), nullable=True, index=True)
    user_role = Column(String(32), nullable=True)
    status = Column(String(16), nullable=False, default='success')
    changes = Column(JSON, nullable=True)
    error_code = Column(String(64), nullable=True)
    error_message = Column(Text, nullable=True)
    ip_address = Column(String(45), nullable=True)  # IPv6 compatible
    user_agent = Column(Text, nullable=True)
    created_at = Column(DateTime, default=datetime.datetime.utcnow, index=True)

    def __repr__(self) -> str:  # pragma: no cover - trivial
        return f"<AuditLog id={self.id} action={self.action} entity={self.entity_type}:{self.entity_id}>"

    def to_dict(self) -> Dict[str, Any]:
        return {
            'id': self.id,
            'action': self.action,
            'severity': self.severity,
            'entity_type': self.entity_type,
            'entity_id': self.entity_id,
            'performed_by': self.performed_by,
            'user_role': self.user_role,
            'status': self.status,
            'changes': self.changes,
            'error': (
                {'code': self.error_code, 'message': self.error_message}
                if self.error_code else None
            ),
            'ip_address': self.ip_address,
            'user_agent': self.user_agent,
            'created_at': _iso(self.created_at),
        }
