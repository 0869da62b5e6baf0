"""User account management service."""

import datetime
import logging
from typing import Any, Dict, Mapping, Optional

from mediclean.domain.value_objects import (
    AuditAction, DocumentStatus, EntityType, GeoPoint, NotificationCategory,
    NotificationType, PickupStatus, UserRole, UserStatus,
)
from mediclean.errors import AuthorizationError, ValidationError
from mediclean.models import User, VerificationDocument
from mediclean.repositories import PickupRepository, UserRepository

from .common import ensure_role, found, has_role, pagination

logger = logging.getLogger(__name__)

DEFAULT_NEARBY_RADIUS_KM = 10


class UserService:
    """Profile, preferences, verification and admin operations on users."""

    def __init__(self, user_repo: UserRepository, pickup_repo: PickupRepository,
                 notifications=None, audit=None, config: Optional[Mapping[str, Any]] = None):
        self.user_repo = user_repo
        self.pickup_repo = pickup_repo
        self.notifications = notifications
        self.audit = audit
        self.config = config or {}

    def get_user(self, actor: User, user_id: int) -> Dict[str, Any]:
        """Self, admins and health users see the full profile."""
        if actor.id != user_id and not has_role(actor, UserRole.ADMIN, UserRole.HEALTH):
            raise AuthorizationError("You can only view your own profile")
        user = found(self.user_repo.get_by_id(user_id), 'User', user_id)
        return user.to_dict(include_private=True)

    def update_profile(self, actor: User, payload: Dict[str, Any]) -> Dict[str, Any]:
        """Update phone, address, location and operating hours of ``actor``."""
        changes = {}
        if 'phone' in payload:
            actor.phone = payload['phone']
            changes['phone'] = payload['phone']
        if payload.get('address'):
            for field, value in payload['address'].items():
                setattr(actor, field, value)
            changes['address'] = payload['address']
        if payload.get('location'):
            actor.location = GeoPoint.from_coordinates(payload['location']['coordinates'])
            changes['location'] = payload['location']['coordinates']
        if 'operating_hours' in payload:
            actor.operating_hours = {**(actor.operating_hours or {}), **payload['operating_hours']}
            changes['operating_hours'] = payload['operating_hours']
        if not changes:
            raise ValidationError("No updatable fields supplied")

        self.user_repo.save(actor)
        self._audit(AuditAction.UPDATE, actor, actor, changes)
        return actor.to_dict(include_private=True)

    def admin_update(self, actor: User, user_id: int, payload: Dict[str, Any]) -> Dict[str, Any]:
        """Change a user's status and/or role.

        A status other than active also deactivates the account.
        """
        ensure_role(actor, UserRole.ADMIN)
        user = found(self.user_repo.get_by_id(user_id), 'User', user_id)

        changes = {}
        if payload.get('role') and payload['role'] != user.role:
            changes['role'] = {'from': user.role, 'to': payload['role']}
            user.role = UserRole.from_string(payload['role']).value
        if payload.get('status') and payload['status'] != user.status:
            changes['status'] = {'from': user.status, 'to': payload['status']}
            user.status = UserStatus.from_string(payload['status']).value
            user.is_active = user.status == UserStatus.ACTIVE.value
        if not changes:
            return user.to_dict(include_private=True)

        self.user_repo.save(user)
        action = AuditAction.CHANGE_ROLE if 'role' in changes else AuditAction.UPDATE
        self._audit(action, user, actor, changes)
        if self.notifications is not None:
            summary = ', '.join(f"{field} is now {change['to']}" for field, change in changes.items())
            self.notifications.notify(
                user,
                NotificationType.ACCOUNT_UPDATE,
                "Account Updated",
                f"An administrator updated your account: {summary}.",
                category=NotificationCategory.ADMINISTRATIVE,
                related=(EntityType.USER, user.id),
                created_by=actor.id,
            )
        return user.to_dict(include_private=True)

    def update_notification_preferences(self, actor: User, preferences: Dict[str, list]) -> Dict[str, Any]:
        actor.notification_preferences = {**(actor.notification_preferences or {}), **preferences}
        self.user_repo.save(actor)
        self._audit(AuditAction.UPDATE, actor, actor, {'notification_preferences': preferences})
        return actor.notification_preferences

    def update_service_area(self, actor: User, coordinates, radius_km: float) -> Dict[str, Any]:
        ensure_role(actor, UserRole.COLLECTOR, message="Only collectors have a service area")
        actor.location = GeoPoint.from_coordinates(coordinates)
        actor.service_radius_km = radius_km
        self.user_repo.save(actor)
        self._audit(AuditAction.UPDATE, actor, actor, {'service_area': {'center': list(coordinates),
                                                                        'radius_km': radius_km}})
        return actor.to_dict(include_private=True)['service_area']

    def add_document(self, actor: User, payload: Dict[str, Any]) -> Dict[str, Any]:
        ensure_role(actor, UserRole.COLLECTOR, message="Only collectors submit verification documents")
        document = VerificationDocument(
            doc_type=payload['type'],
            number=payload['number'],
            issued_by=payload.get('issued_by'),
            issued_at=payload.get('issued_at'),
            expires_at=payload.get('expires_at'),
            status=DocumentStatus.PENDING.value,
        )
        actor.documents.append(document)
        self.user_repo.save(actor)
        self._audit(AuditAction.UPDATE, actor, actor, {'document': {'type': document.doc_type,
                                                                    'number': document.number}})
        return document.to_dict()

    def verify_user(self, actor: User, user_id: int) -> Dict[str, Any]:
        ensure_role(actor, UserRole.ADMIN)
        user = found(self.user_repo.get_by_id(user_id), 'User', user_id)
        user.is_verified = True
        user.verified_at = datetime.datetime.utcnow()
        user.verified_by = actor.id
        for document in user.documents:
            document.status = DocumentStatus.VERIFIED.value
        self.user_repo.save(user)
        self._audit(AuditAction.VERIFY, user, actor, {'documents': len(user.documents)})
        if self.notifications is not None:
            self.notifications.notify(
                user,
                NotificationType.ACCOUNT_UPDATE,
                "Account Verified",
                "Your account and documents have been verified by an administrator.",
                category=NotificationCategory.ADMINISTRATIVE,
                related=(EntityType.USER, user.id),
                created_by=actor.id,
            )
        return user.to_dict(include_private=True)

    def search(self, actor: User, filters: Dict[str, Any], page: int = 1, limit: int = 10) -> Dict[str, Any]:
        ensure_role(actor, UserRole.ADMIN)
        users, total = self.user_repo.search(
            role=filters.get('role'), status=filters.get('status'), q=filters.get('q'),
            page=page, limit=limit,
        )
        return {'users': [u.to_dict() for u in users], 'pagination': pagination(page, limit, total)}

    def delete_account(self, actor: User, user_id: int) -> None:
        if actor.id != user_id and not has_role(actor, UserRole.ADMIN):
            raise AuthorizationError("You can only delete your own account")
        user = found(self.user_repo.get_by_id(user_id), 'User', user_id)
        user.is_active = False
        user.status = UserStatus.INACTIVE.value
        user.soft_delete()
        self.user_repo.save(user)
        self._audit(AuditAction.DELETE, user, actor)
        logger.info(f"User {user.id} deleted by {actor.id}")

    def nearby_collectors(self, coordinates, radius_km: Optional[float] = None) -> list:
        point = GeoPoint.from_coordinates(coordinates)
        radius_m = (radius_km or DEFAULT_NEARBY_RADIUS_KM) * 1000
        return [
            {**collector.to_dict(), 'service_radius_km': collector.service_radius_km,
             'distance_m': round(distance, 1)}
            for collector, distance in self.user_repo.find_nearby_collectors(point, radius_m)
        ]

    def collector_stats(self, actor: User, collector_id: int) -> Dict[str, Any]:
        """Pickup counts per status and volume collected over the last 30 days."""
        if actor.id != collector_id and not has_role(actor, UserRole.ADMIN, UserRole.HEALTH):
            raise AuthorizationError("You can only view your own statistics")
        collector = found(self.user_repo.get_by_id(collector_id), 'User', collector_id)
        if collector.role != UserRole.COLLECTOR.value:
            raise ValidationError("User is not a collector")

        since = datetime.datetime.utcnow() - datetime.timedelta(days=30)
        counts = self.pickup_repo.status_counts({'collector_id': collector_id})
        return {
            'collector_id': collector_id,
            'status_counts': counts,
            'total_assigned': sum(counts.values()),
            'completed': counts[PickupStatus.COLLECTED.value],
            'collected_volume_30d': self.pickup_repo.collected_volume_since(collector_id, since),
        }

    def _audit(self, action, user, actor, changes=None) -> None:
        if self.audit is not None:
            self.audit.log_action(action, EntityType.USER, user.id, actor, changes)
