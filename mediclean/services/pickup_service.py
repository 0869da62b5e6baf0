"""Pickup request service.

Owns the pickup lifecycle: creation limits, the status machine with its
history, collector assignment, cancellation, priority changes, bulk
operations and the read-through cache of serialized requests.
"""

import datetime
import logging
from collections import defaultdict
from typing import Any, Dict, List, Mapping, Optional

from mediclean.domain.rules import pickup_request_errors
from mediclean.domain.trends import calculate_trends
from mediclean.domain.value_objects import (
    AuditAction, EntityType, GeoPoint, NotificationCategory, NotificationType,
    PickupStatus, Priority, UserRole,
)
from mediclean.errors import AuthorizationError, NotFoundError, ValidationError
from mediclean.models import PickupRequest, User
from mediclean.repositories import PickupRepository, UserRepository, WasteLogRepository
from mediclean.utils.cache import TTLCache

from .common import ensure_role, has_role, pagination

logger = logging.getLogger(__name__)

DEFAULT_NEARBY_RADIUS_M = 5000
MAX_NEARBY_RADIUS_M = 50000
MAX_BULK_ITEMS = 50
NOTE_MAX_LENGTH = 200

CLINIC_FIELDS = {'waste_type', 'volume_kg', 'description', 'scheduled_pickup', 'location'}
COLLECTOR_FIELDS = {'status', 'note', 'cancellation_reason', 'collection_details', 'quality_control'}


def _truncate(note: Optional[str]) -> Optional[str]:
    if note is None:
        return None
    return note[:NOTE_MAX_LENGTH]


class PickupService:
    """Business logic for pickup requests."""

    def __init__(self, pickup_repo: PickupRepository, user_repo: UserRepository,
                 waste_log_repo: WasteLogRepository, notifications=None, audit=None,
                 cache: Optional[TTLCache] = None, config: Optional[Mapping[str, Any]] = None):
        """Initialize pickup service.

        Args:
            pickup_repo: Pickup request repository
            user_repo: User repository, for collector checks
            waste_log_repo: Waste log repository, for linking logs
            notifications: NotificationService
            audit: AuditService
            cache: Cache of serialized requests keyed by id
            config: Application configuration mapping
        """
        self.pickup_repo = pickup_repo
        self.user_repo = user_repo
        self.waste_log_repo = waste_log_repo
        self.notifications = notifications
        self.audit = audit
        self.cache = cache
        self.config = config or {}

    @property
    def max_active_requests(self) -> int:
        return int(self.config.get('PICKUP_MAX_ACTIVE_REQUESTS', 5))

    @property
    def cancellation_window(self) -> datetime.timedelta:
        return datetime.timedelta(hours=int(self.config.get('PICKUP_CANCELLATION_WINDOW_HOURS', 48)))

    # Cache ------------------------------------------------------------------

    def _invalidate(self, pickup_id: int) -> None:
        if self.cache is not None:
            self.cache.delete(pickup_id)

    def _serialize(self, pickup: PickupRequest) -> Dict[str, Any]:
        data = pickup.to_dict()
        if self.cache is not None:
            self.cache.set(pickup.id, data)
        return data

    # Access -----------------------------------------------------------------

    @staticmethod
    def _can_read(actor: User, clinic_id: int, collector_id: Optional[int]) -> bool:
        if has_role(actor, UserRole.ADMIN, UserRole.HEALTH):
            return True
        if has_role(actor, UserRole.CLINIC):
            return clinic_id == actor.id
        if has_role(actor, UserRole.COLLECTOR):
            return collector_id == actor.id
        return False

    def _load(self, pickup_id: int) -> PickupRequest:
        pickup = self.pickup_repo.get_by_id(pickup_id)
        if pickup is None:
            raise NotFoundError("Pickup request not found", details={'id': pickup_id})
        return pickup

    def _load_visible(self, actor: User, pickup_id: int) -> PickupRequest:
        pickup = self._load(pickup_id)
        if not self._can_read(actor, pickup.clinic_id, pickup.collector_id):
            raise AuthorizationError("You do not have access to this pickup request")
        return pickup

    def _valid_collector(self, collector_id: int) -> User:
        collector = self.user_repo.get_by_id(collector_id)
        if collector is None or collector.role != UserRole.COLLECTOR.value or not collector.can_login:
            raise ValidationError("Collector not found or not active", code='INVALID_COLLECTOR',
                                  details={'collector_id': collector_id})
        return collector

    # Create -----------------------------------------------------------------

    def create(self, actor: User, payload: Dict[str, Any], emergency: bool = False) -> Dict[str, Any]:
        """Create a pickup request for the acting clinic.

        Args:
            actor: Clinic placing the request
            payload: Validated request body
            emergency: Force the emergency flag (emergency endpoint)

        Returns:
            Serialized request

        Raises:
            AuthorizationError: If the actor is not a clinic
            ValidationError: On rule violations, the active-request limit or
                unknown waste logs
        """
        ensure_role(actor, UserRole.CLINIC, message="Only clinics can request pickups")

        scheduled = payload.get('scheduled_pickup') or {}
        slot = scheduled.get('preferred_time_slot') or {}
        urgent = payload.get('emergency') or {}
        columns = {
            'waste_type': payload['waste_type'],
            'volume_kg': payload['volume_kg'],
            'priority': Priority.from_string(payload.get('priority', Priority.MEDIUM.value)).value,
            'description': payload.get('description'),
            'is_scheduled': bool(scheduled.get('is_scheduled')),
            'preferred_date': scheduled.get('preferred_date'),
            'preferred_time_start': slot.get('start'),
            'preferred_time_end': slot.get('end'),
            'is_emergency': emergency or bool(urgent.get('is_emergency')),
            'emergency_reason': urgent.get('reason'),
            'response_deadline': urgent.get('response_deadline'),
        }
        errors = pickup_request_errors(columns)
        if errors:
            raise ValidationError("Invalid pickup request", details=errors)
        if columns['is_emergency']:
            columns['priority'] = Priority.URGENT.value

        active = self.pickup_repo.count_active_for_clinic(actor.id)
        if active >= self.max_active_requests:
            raise ValidationError(
                f"Maximum of {self.max_active_requests} active pickup requests reached",
                code='ACTIVE_REQUEST_LIMIT',
                details={'active_requests': active},
            )

        waste_log_ids = list(dict.fromkeys(payload.get('waste_log_ids') or []))
        waste_logs = self.waste_log_repo.get_for_clinic(waste_log_ids, actor.id)
        if len(waste_logs) != len(waste_log_ids):
            missing = sorted(set(waste_log_ids) - {log.id for log in waste_logs})
            raise ValidationError("Waste logs not found for this clinic", details={'waste_log_ids': missing})

        pickup = PickupRequest(clinic_id=actor.id, status=PickupStatus.PENDING.value,
                               requested_at=datetime.datetime.utcnow(), **columns)
        if payload.get('location'):
            pickup.location = GeoPoint.from_coordinates(payload['location']['coordinates'])
        else:
            pickup.location = actor.location
        pickup.waste_logs = waste_logs
        pickup.record_status(PickupStatus.PENDING.value,
                             'Emergency pickup request created' if pickup.is_emergency
                             else 'Pickup request created', actor.id)
        self.pickup_repo.add(pickup)

        logger.info(
            f"Pickup request {pickup.id} created by clinic {actor.id}",
            extra={"pickup_id": pickup.id, "priority": pickup.priority, "emergency": pickup.is_emergency},
        )
        self._audit(AuditAction.CREATE, pickup, actor, {
            'priority': pickup.priority, 'volume_kg': pickup.volume_kg, 'is_emergency': pickup.is_emergency,
        })
        self._notify_created(actor, pickup)
        return self._serialize(pickup)

    def _notify_created(self, clinic: User, pickup: PickupRequest) -> None:
        if self.notifications is None:
            return
        self.notifications.notify(
            clinic,
            NotificationType.PICKUP_REQUEST,
            "New Pickup Request Created",
            f"{pickup.priority.upper()} priority pickup request #{pickup.id} has been created",
            priority=Priority.from_string(pickup.priority),
            related=(EntityType.PICKUP_REQUEST, pickup.id),
        )
        if pickup.is_emergency:
            try:
                self.notifications.broadcast(
                    [UserRole.ADMIN.value],
                    NotificationType.EMERGENCY_ALERT,
                    "Emergency Pickup Request",
                    f"Emergency pickup request #{pickup.id} from {clinic.username}: {pickup.emergency_reason}",
                    priority=Priority.URGENT,
                    category=NotificationCategory.EMERGENCY,
                    related=(EntityType.PICKUP_REQUEST, pickup.id),
                    created_by=clinic.id,
                    data={'response_deadline': pickup.response_deadline.isoformat()
                          if pickup.response_deadline else None},
                )
            except ValidationError as e:
                logger.warning(f"Emergency alert for pickup {pickup.id} not sent: {e.message}")

    # Read -------------------------------------------------------------------

    @staticmethod
    def _with_time_flags(data: Dict[str, Any]) -> Dict[str, Any]:
        """Copy of a cached serialization with the clock-dependent flags recomputed."""
        now = datetime.datetime.utcnow()
        requested_at = data.get('requested_at')
        emergency = data.get('emergency') or {}
        deadline = emergency.get('response_deadline')
        overdue_after = Priority.from_string(data['priority']).overdue_after
        overdue = bool(
            requested_at and data['status'] == PickupStatus.PENDING.value
            and now - datetime.datetime.fromisoformat(requested_at) > overdue_after
        )
        expired = bool(emergency.get('is_emergency') and deadline
                       and now > datetime.datetime.fromisoformat(deadline))
        return {**data, 'is_overdue': overdue, 'is_emergency_expired': expired}

    def get(self, actor: User, pickup_id: int) -> Dict[str, Any]:
        """Serialized request, served from the cache when fresh."""
        data = self.cache.get(pickup_id) if self.cache is not None else None
        if data is None:
            data = self._serialize(self._load(pickup_id))
        else:
            data = self._with_time_flags(data)
        if not self._can_read(actor, data['clinic_id'], data['collector_id']):
            raise AuthorizationError("You do not have access to this pickup request")
        return data

    def list_all(self, actor: User, filters: Dict[str, Any], page: int = 1, limit: int = 10) -> Dict[str, Any]:
        """Admin listing, urgent first, with status and priority counts."""
        ensure_role(actor, UserRole.ADMIN, UserRole.HEALTH)
        pickups, total = self.pickup_repo.list(filters, page, limit)
        status_counts = self.pickup_repo.status_counts(filters)
        return {
            'pickup_requests': [p.to_dict() for p in pickups],
            'pagination': pagination(page, limit, total),
            'statistics': {
                'status_counts': status_counts,
                'priority_counts': self.pickup_repo.priority_counts(filters),
                'total_requests': sum(status_counts.values()),
            },
        }

    def history(self, actor: User, filters: Dict[str, Any], page: int = 1, limit: int = 10) -> Dict[str, Any]:
        ensure_role(actor, UserRole.CLINIC)
        pickups, total = self.pickup_repo.list({**filters, 'clinic_id': actor.id}, page, limit, sort='recent')
        return {'pickup_requests': [p.to_dict() for p in pickups], 'pagination': pagination(page, limit, total)}

    def collector_queue(self, actor: User, filters: Dict[str, Any], page: int = 1,
                        limit: int = 10) -> Dict[str, Any]:
        ensure_role(actor, UserRole.COLLECTOR)
        pickups, total = self.pickup_repo.list({**filters, 'collector_id': actor.id}, page, limit)
        return {'pickup_requests': [p.to_dict() for p in pickups], 'pagination': pagination(page, limit, total)}

    def status_counts(self, filters: Optional[Dict[str, Any]] = None) -> Dict[str, int]:
        return self.pickup_repo.status_counts(filters)

    def priority_counts(self, filters: Optional[Dict[str, Any]] = None) -> Dict[str, int]:
        return self.pickup_repo.priority_counts(filters)

    def nearby(self, actor: User, coordinates, radius_m: Optional[float] = None,
               filters: Optional[Dict[str, Any]] = None) -> List[Dict[str, Any]]:
        """Requests around a point, nearest first; pending ones unless told otherwise."""
        ensure_role(actor, UserRole.COLLECTOR, UserRole.ADMIN)
        point = GeoPoint.from_coordinates(coordinates)
        radius = min(radius_m or DEFAULT_NEARBY_RADIUS_M, MAX_NEARBY_RADIUS_M)
        filters = dict(filters or {})
        filters.setdefault('status', PickupStatus.PENDING.value)
        return [
            {**pickup.to_dict(), 'distance_m': round(distance, 1)}
            for pickup, distance in self.pickup_repo.find_nearby(point, radius, filters)
        ]

    # Status machine ---------------------------------------------------------

    def _apply_status(self, pickup: PickupRequest, target: PickupStatus, actor: User,
                      note: Optional[str] = None, collector: Optional[User] = None,
                      reason: Optional[str] = None) -> None:
        """Validate and apply one transition, with its side fields."""
        try:
            pickup.status_enum.validate_transition(target)
        except ValueError as e:
            raise ValidationError(str(e), code='INVALID_STATUS_TRANSITION')
        if target is PickupStatus.ASSIGNED:
            if collector is None:
                raise ValidationError("A collector is required to assign a pickup request")
            pickup.collector_id = collector.id
        if target is PickupStatus.CANCELLED:
            reason = reason or note
            if not reason:
                raise ValidationError("A cancellation reason is required")
            pickup.cancellation_reason = reason
            pickup.cancelled_by = actor.id
        pickup.change_status(target, _truncate(note), actor.id)

    def update(self, actor: User, pickup_id: int, payload: Dict[str, Any]) -> Dict[str, Any]:
        """Update a request's status and/or details, according to the actor's role.

        Clinics edit details of their own editable requests; collectors move
        their assigned requests through the status machine and record
        collection details; admins may do both.
        """
        pickup = self._load_visible(actor, pickup_id)
        fields = {key for key, value in payload.items() if value is not None}

        if has_role(actor, UserRole.CLINIC):
            forbidden = fields - CLINIC_FIELDS
            if forbidden:
                raise AuthorizationError("Clinics can only edit request details",
                                         details={'fields': sorted(forbidden)})
        elif has_role(actor, UserRole.COLLECTOR):
            forbidden = fields - COLLECTOR_FIELDS
            if forbidden:
                raise AuthorizationError("Collectors can only update status and collection details",
                                         details={'fields': sorted(forbidden)})
        elif not has_role(actor, UserRole.ADMIN):
            raise AuthorizationError("You cannot modify pickup requests")

        if not fields:
            raise ValidationError("No updatable fields supplied")
        if pickup.status_enum.is_terminal:
            raise ValidationError(f"Cannot update a {pickup.status} pickup request",
                                  code='INVALID_STATUS_TRANSITION')

        previous_status = pickup.status
        self._apply_details(pickup, payload)

        target = PickupStatus.from_string(payload['status']) if payload.get('status') else None
        collector = None
        if target is not None and target.value != previous_status:
            if target is PickupStatus.ASSIGNED:
                collector_id = payload.get('collector_id') or pickup.collector_id
                if not collector_id:
                    raise ValidationError("collector_id is required when assigning a pickup request")
                collector = self._valid_collector(collector_id)
            self._apply_status(pickup, target, actor, payload.get('note'), collector,
                               payload.get('cancellation_reason'))
        elif payload.get('collector_id') is not None:
            raise ValidationError("collector_id can only be set together with status 'assigned'")

        self.pickup_repo.save(pickup)
        self._invalidate(pickup.id)

        if pickup.status != previous_status:
            self._audit(AuditAction.STATUS_CHANGE, pickup, actor, {
                'from': previous_status, 'to': pickup.status, 'note': payload.get('note'),
            })
            self._notify_status(pickup, collector)
        else:
            self._audit(AuditAction.UPDATE, pickup, actor, {'fields': sorted(fields)})
        return self._serialize(pickup)

    def _apply_details(self, pickup: PickupRequest, payload: Dict[str, Any]) -> None:
        for field in ('waste_type', 'volume_kg', 'description'):
            if payload.get(field) is not None:
                setattr(pickup, field, payload[field])

        scheduled = payload.get('scheduled_pickup')
        if scheduled:
            state = {
                'is_scheduled': scheduled.get('is_scheduled', pickup.is_scheduled),
                'preferred_date': scheduled.get('preferred_date', pickup.preferred_date),
            }
            errors = pickup_request_errors(state)
            if errors:
                raise ValidationError("Invalid scheduled pickup", details=errors)
            pickup.is_scheduled = bool(state['is_scheduled'])
            pickup.preferred_date = state['preferred_date']
            slot = scheduled.get('preferred_time_slot')
            if slot:
                pickup.preferred_time_start, pickup.preferred_time_end = slot['start'], slot['end']

        if payload.get('location'):
            pickup.location = GeoPoint.from_coordinates(payload['location']['coordinates'])

        route = payload.get('route_details')
        if route:
            for key, column in (('sequence', 'route_sequence'), ('estimated_arrival', 'estimated_arrival'),
                                ('estimated_duration', 'estimated_duration_minutes'),
                                ('distance', 'route_distance_km')):
                if route.get(key) is not None:
                    setattr(pickup, column, route[key])

        details = payload.get('collection_details')
        if details:
            for key, column in (('actual_weight', 'actual_weight'), ('container_count', 'container_count'),
                                ('photos_urls', 'photo_urls'), ('notes', 'collection_notes')):
                if details.get(key) is not None:
                    setattr(pickup, column, details[key])
            signature = details.get('signature') or {}
            if signature.get('clinic_staff') is not None:
                pickup.clinic_staff_signature = signature['clinic_staff']
            if signature.get('collector') is not None:
                pickup.collector_signature = signature['collector']
            if signature:
                pickup.signed_at = signature.get('timestamp') or datetime.datetime.utcnow()

        quality = payload.get('quality_control')
        if quality:
            for key, column in (('waste_segregation', 'waste_segregation'),
                                ('packaging_quality', 'packaging_quality'),
                                ('comments', 'quality_comments')):
                if quality.get(key) is not None:
                    setattr(pickup, column, quality[key])

    def _notify_status(self, pickup: PickupRequest, collector: Optional[User] = None) -> None:
        """Tell the collector about an assignment, otherwise the clinic about the new status."""
        if self.notifications is None:
            return
        status = pickup.status_enum
        notification_type = NotificationType.for_pickup_status(status)
        related = (EntityType.PICKUP_REQUEST, pickup.id)
        if status is PickupStatus.ASSIGNED:
            recipient = collector or pickup.collector
            if recipient is not None:
                self.notifications.notify(
                    recipient, notification_type, "Pickup Request Assigned",
                    f"Pickup request #{pickup.id} has been assigned to you",
                    priority=Priority.from_string(pickup.priority), related=related,
                )
            return
        if pickup.clinic is not None:
            self.notifications.notify(
                pickup.clinic, notification_type, f"Pickup Request {status.value.title()}",
                f"Your pickup request #{pickup.id} is now {status.value}",
                priority=Priority.from_string(pickup.priority), related=related,
            )

    def assign(self, actor: User, pickup_id: int, collector_id: int, note: Optional[str] = None) -> Dict[str, Any]:
        """Assign a collector; notifies both the collector and the clinic."""
        ensure_role(actor, UserRole.ADMIN)
        pickup = self._load(pickup_id)
        collector = self._valid_collector(collector_id)
        self._apply_status(pickup, PickupStatus.ASSIGNED, actor,
                           note or f"Assigned to collector {collector.username}", collector)
        self.pickup_repo.save(pickup)
        self._invalidate(pickup.id)
        self._audit(AuditAction.ASSIGN, pickup, actor, {'collector_id': collector.id})
        self._notify_assignment(pickup, collector)
        return self._serialize(pickup)

    def _notify_assignment(self, pickup: PickupRequest, collector: User) -> None:
        if self.notifications is None:
            return
        related = (EntityType.PICKUP_REQUEST, pickup.id)
        priority = Priority.from_string(pickup.priority)
        self.notifications.notify(
            collector, NotificationType.PICKUP_ASSIGNED, "Pickup Request Assigned",
            f"Pickup request #{pickup.id} has been assigned to you", priority=priority, related=related,
        )
        if pickup.clinic is not None:
            self.notifications.notify(
                pickup.clinic, NotificationType.PICKUP_ASSIGNED, "Collector Assigned",
                f"Collector {collector.username} has been assigned to pickup request #{pickup.id}",
                priority=priority, related=related,
            )

    def cancel(self, actor: User, pickup_id: int, reason: str) -> Dict[str, Any]:
        """Cancel a request.

        Clinics may cancel their own requests within the cancellation window;
        admins may cancel any active request.

        Raises:
            AuthorizationError: If the actor may not cancel this request
            ValidationError: Missing reason, expired window or terminal status
        """
        pickup = self._load(pickup_id)
        if has_role(actor, UserRole.CLINIC):
            if pickup.clinic_id != actor.id:
                raise AuthorizationError("You can only cancel your own pickup requests")
            if datetime.datetime.utcnow() - pickup.requested_at > self.cancellation_window:
                hours = int(self.cancellation_window.total_seconds() // 3600)
                raise ValidationError(f"Pickup requests can only be cancelled within {hours} hours",
                                      code='CANCELLATION_WINDOW_EXPIRED')
        elif not has_role(actor, UserRole.ADMIN):
            raise AuthorizationError("Only the requesting clinic or an admin can cancel")
        if not reason or not reason.strip():
            raise ValidationError("A cancellation reason is required")

        self._apply_status(pickup, PickupStatus.CANCELLED, actor, reason, reason=reason)
        self.pickup_repo.save(pickup)
        self._invalidate(pickup.id)
        self._audit(AuditAction.CANCEL, pickup, actor, {'reason': reason})

        if self.notifications is not None:
            related = (EntityType.PICKUP_REQUEST, pickup.id)
            message = f"Pickup request #{pickup.id} has been cancelled: {reason}"
            recipients = [pickup.clinic, pickup.collector]
            for recipient in recipients:
                if recipient is not None:
                    self.notifications.notify(recipient, NotificationType.PICKUP_CANCELLED,
                                              "Pickup Request Cancelled", message, related=related)
        return self._serialize(pickup)

    def update_priority(self, actor: User, pickup_id: int, priority: str, note: Optional[str] = None) -> Dict[str, Any]:
        ensure_role(actor, UserRole.ADMIN)
        pickup = self._load(pickup_id)
        new_priority = Priority.from_string(priority)
        if pickup.status_enum.is_terminal:
            raise ValidationError(f"Cannot change priority of a {pickup.status} pickup request")
        if pickup.is_emergency and new_priority is not Priority.URGENT:
            raise ValidationError("Emergency requests must keep urgent priority")

        previous = pickup.priority
        pickup.priority = new_priority.value
        text = f"Priority changed to {new_priority.value}"
        if note:
            text = f"{text}: {note}"
        pickup.record_status(pickup.status, _truncate(text), actor.id)
        self.pickup_repo.save(pickup)
        self._invalidate(pickup.id)
        self._audit(AuditAction.UPDATE, pickup, actor, {'priority': {'from': previous, 'to': new_priority.value}})
        return self._serialize(pickup)

    def delete(self, actor: User, pickup_id: int) -> None:
        ensure_role(actor, UserRole.ADMIN)
        pickup = self._load(pickup_id)
        if not pickup.is_deletable:
            raise ValidationError("Only pending pickup requests can be deleted")
        pickup.soft_delete()
        self.pickup_repo.save(pickup)
        self._invalidate(pickup.id)
        self._audit(AuditAction.DELETE, pickup, actor)

    # Bulk -------------------------------------------------------------------

    def bulk_update_status(self, actor: User, items: List[Dict[str, Any]]) -> Dict[str, Any]:
        """Apply many status changes, all or nothing.

        Every item is validated first; if any fails, a ValidationError
        listing ``{index, id, error}`` entries is raised and nothing changes.

        Returns:
            ``{success, modified_count, matched_count}``
        """
        ensure_role(actor, UserRole.ADMIN, UserRole.COLLECTOR)
        if not items:
            raise ValidationError("At least one update is required")
        if len(items) > MAX_BULK_ITEMS:
            raise ValidationError(f"At most {MAX_BULK_ITEMS} updates are allowed per request")

        pickups = self.pickup_repo.get_many([item['id'] for item in items])
        errors = []
        seen = set()
        plan = []
        for index, item in enumerate(items):
            pickup_id = item['id']
            pickup = pickups.get(pickup_id)
            error = None
            try:
                target = PickupStatus.from_string(item['status'])
            except ValueError as e:
                target, error = None, str(e)
            if error is None:
                if pickup_id in seen:
                    error = "Duplicate pickup request in batch"
                elif pickup is None:
                    error = "Pickup request not found"
                elif has_role(actor, UserRole.COLLECTOR) and pickup.collector_id != actor.id:
                    error = "Pickup request is not assigned to you"
                elif not pickup.status_enum.can_transition_to(target):
                    error = f"Invalid status transition from {pickup.status} to {target.value}"
                elif target is PickupStatus.ASSIGNED and not pickup.collector_id:
                    error = "A collector must be assigned first"
                elif target is PickupStatus.CANCELLED and not item.get('note'):
                    error = "A cancellation reason is required"
            seen.add(pickup_id)
            if error:
                errors.append({'index': index, 'id': pickup_id, 'error': error})
            else:
                plan.append((pickup, target, item.get('note')))

        if errors:
            raise ValidationError("Bulk status update failed validation", code='BULK_VALIDATION_FAILED',
                                  details=errors)

        for pickup, target, note in plan:
            if target is PickupStatus.CANCELLED:
                pickup.cancellation_reason = note
                pickup.cancelled_by = actor.id
            pickup.change_status(target, _truncate(note), actor.id)
        self.pickup_repo.db.commit()

        for pickup, target, note in plan:
            self._invalidate(pickup.id)
            self._audit(AuditAction.STATUS_CHANGE, pickup, actor, {'to': target.value, 'note': note, 'bulk': True})
            self._notify_status(pickup)
        logger.info(f"Bulk status update by {actor.id}: {len(plan)} requests")
        return {'success': True, 'modified_count': len(plan), 'matched_count': len(pickups)}

    def bulk_assign(self, actor: User, items: List[Dict[str, Any]]) -> Dict[str, Any]:
        """Assign collectors to many pending requests, all or nothing."""
        ensure_role(actor, UserRole.ADMIN)
        if not items:
            raise ValidationError("At least one assignment is required")
        if len(items) > MAX_BULK_ITEMS:
            raise ValidationError(f"At most {MAX_BULK_ITEMS} assignments are allowed per request")

        pickups = self.pickup_repo.get_many([item['pickup_id'] for item in items])
        collectors: Dict[int, Optional[User]] = {}
        errors = []
        seen = set()
        plan = []
        for index, item in enumerate(items):
            pickup = pickups.get(item['pickup_id'])
            collector_id = item['collector_id']
            if collector_id not in collectors:
                candidate = self.user_repo.get_by_id(collector_id)
                valid = candidate is not None and candidate.role == UserRole.COLLECTOR.value and candidate.can_login
                collectors[collector_id] = candidate if valid else None
            collector = collectors[collector_id]

            if item['pickup_id'] in seen:
                error = "Duplicate pickup request in batch"
            elif pickup is None:
                error = "Pickup request not found"
            elif pickup.status != PickupStatus.PENDING.value:
                error = f"Pickup request is {pickup.status}, expected pending"
            elif collector is None:
                error = "Collector not found or not active"
            else:
                error = None
            seen.add(item['pickup_id'])
            if error:
                errors.append({'index': index, 'id': item['pickup_id'], 'error': error})
            else:
                plan.append((pickup, collector, item.get('note')))

        if errors:
            raise ValidationError("Bulk assignment failed validation", code='BULK_VALIDATION_FAILED',
                                  details=errors)

        for pickup, collector, note in plan:
            pickup.collector_id = collector.id
            pickup.change_status(PickupStatus.ASSIGNED,
                                 _truncate(note or f"Assigned to collector {collector.username}"), actor.id)
        self.pickup_repo.db.commit()

        for pickup, collector, _ in plan:
            self._invalidate(pickup.id)
            self._audit(AuditAction.ASSIGN, pickup, actor, {'collector_id': collector.id, 'bulk': True})
            self._notify_assignment(pickup, collector)
        return {'success': True, 'modified_count': len(plan), 'matched_count': len(pickups)}

    # Statistics -------------------------------------------------------------

    def statistics(self, actor: User, filters: Dict[str, Any]) -> Dict[str, Any]:
        """Status breakdown, volume statistics and response-time trends.

        Clinics and collectors only see their own requests.
        """
        scoped = dict(filters)
        if has_role(actor, UserRole.CLINIC):
            scoped['clinic_id'] = actor.id
        elif has_role(actor, UserRole.COLLECTOR):
            scoped['collector_id'] = actor.id

        # response_time_hours stays None until a request is collected
        daily = defaultdict(lambda: {'count': 0, 'volume': 0.0, 'response_times': []})
        for pickup in self.pickup_repo.find_all(scoped):
            bucket = daily[pickup.requested_at.date()]
            bucket['count'] += 1
            bucket['volume'] += pickup.volume_kg
            if pickup.response_time_hours is not None:
                bucket['response_times'].append(pickup.response_time_hours)
        points = [
            {
                'date': day,
                'count': values['count'],
                'volume': values['volume'],
                'avg_response_time': (sum(values['response_times']) / len(values['response_times'])
                                      if values['response_times'] else None),
            }
            for day, values in sorted(daily.items())
        ]
        return {
            'status_breakdown': self.pickup_repo.status_breakdown(scoped),
            'volume_statistics': self.pickup_repo.volume_statistics(scoped),
            'time_distribution': calculate_trends(points),
        }

    def _audit(self, action, pickup, actor, changes=None) -> None:
        if self.audit is not None:
            self.audit.log_action(action, EntityType.PICKUP_REQUEST, pickup.id, actor, changes)
