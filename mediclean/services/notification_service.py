"""Notification service.

Creates individual and broadcast notifications, resolves the delivery
channel from each recipient's preferences and manages per-user read state.
Delivery itself is out of scope: dispatch is only logged.
"""

import logging
from typing import Any, Dict, Iterable, List, Optional, Tuple

from mediclean.domain.value_objects import (
    AuditAction, EntityType, NotificationCategory, NotificationChannel,
    NotificationStatus, NotificationType, Priority, UserRole,
)
from mediclean.errors import AuthorizationError, NotFoundError, ValidationError
from mediclean.models import Notification, NotificationRecipient, User
from mediclean.repositories import NotificationRepository, UserRepository

from .common import ensure_role, found, has_role, pagination

logger = logging.getLogger(__name__)

MAX_BROADCAST_RECIPIENTS = 1000


class NotificationService:
    """Business logic for notifications."""

    def __init__(self, notification_repo: NotificationRepository, user_repo: UserRepository,
                 audit=None):
        self.notification_repo = notification_repo
        self.user_repo = user_repo
        self.audit = audit

    # Creation ---------------------------------------------------------------

    def notify(self, recipient: User, notification_type: NotificationType, title: str, message: str,
               priority: Priority = Priority.MEDIUM,
               category: NotificationCategory = NotificationCategory.OPERATIONAL,
               data: Optional[Dict[str, Any]] = None,
               related: Optional[Tuple[EntityType, int]] = None,
               created_by: Optional[int] = None, expires_at=None,
               channel: Optional[NotificationChannel] = None) -> Notification:
        """Create an individual notification for ``recipient``.

        Args:
            recipient: Target user
            notification_type: Notification type
            title: Short title
            message: Body text
            priority: Notification priority
            category: Notification category
            data: Extra JSON payload
            related: ``(entity_type, entity_id)`` the notification refers to
            created_by: Creating user id; required for maintenance and emergency types
            expires_at: Optional expiry
            channel: Explicit channel, otherwise resolved from preferences

        Returns:
            Created notification

        Raises:
            ValidationError: If ``created_by`` is missing where it is required
        """
        notification_type = NotificationType.from_string(notification_type)
        if notification_type.requires_creator and created_by is None:
            raise ValidationError(f"created_by is required for {notification_type.value} notifications")
        if channel is None:
            channel = NotificationChannel.resolve(recipient.preferences_for(notification_type.value))

        notification = self.notification_repo.create(
            is_broadcast=False,
            user_id=recipient.id,
            status=NotificationStatus.UNREAD.value,
            type=notification_type.value,
            title=title,
            message=message,
            priority=Priority.from_string(priority).value,
            category=NotificationCategory.from_string(category).value,
            channel=NotificationChannel.from_string(channel).value,
            data=data,
            expires_at=expires_at,
            created_by=created_by,
            related_entity_type=EntityType.from_string(related[0]).value if related else None,
            related_entity_id=related[1] if related else None,
        )
        self._dispatch(notification, [recipient.id])
        return notification

    def broadcast(self, roles: Iterable[str], notification_type: NotificationType, title: str,
                  message: str, priority: Priority = Priority.MEDIUM,
                  category: NotificationCategory = NotificationCategory.SYSTEM,
                  data: Optional[Dict[str, Any]] = None,
                  related: Optional[Tuple[EntityType, int]] = None,
                  created_by: Optional[int] = None, expires_at=None,
                  channel: Optional[NotificationChannel] = None) -> Notification:
        """Fan a notification out to every active user holding one of ``roles``.

        Raises:
            ValidationError: On unknown roles, no recipients, or too many recipients
        """
        try:
            roles = sorted({UserRole.from_string(role).value for role in roles})
        except ValueError as e:
            raise ValidationError(str(e))
        if not roles:
            raise ValidationError("At least one target role is required")
        notification_type = NotificationType.from_string(notification_type)
        if notification_type.requires_creator and created_by is None:
            raise ValidationError(f"created_by is required for {notification_type.value} notifications")

        users = self.user_repo.get_active_by_roles(roles, limit=MAX_BROADCAST_RECIPIENTS + 1)
        if not users:
            raise ValidationError("No active recipients found for the target roles",
                                  details={'target_roles': roles})
        if len(users) > MAX_BROADCAST_RECIPIENTS:
            raise ValidationError(f"Broadcast exceeds {MAX_BROADCAST_RECIPIENTS} recipients")

        if channel is None:
            preferred = {c for user in users for c in user.preferences_for(notification_type.value)}
            channel = NotificationChannel.resolve(sorted(preferred))

        notification = Notification(
            is_broadcast=True,
            target_roles=roles,
            type=notification_type.value,
            title=title,
            message=message,
            priority=Priority.from_string(priority).value,
            category=NotificationCategory.from_string(category).value,
            channel=NotificationChannel.from_string(channel).value,
            data=data,
            expires_at=expires_at,
            created_by=created_by,
            related_entity_type=EntityType.from_string(related[0]).value if related else None,
            related_entity_id=related[1] if related else None,
        )
        notification.recipients = [NotificationRecipient(user_id=user.id) for user in users]
        self.notification_repo.add(notification)
        self._dispatch(notification, [user.id for user in users])
        return notification

    def _dispatch(self, notification: Notification, user_ids: List[int]) -> None:
        logger.info(
            f"Dispatching notification {notification.id} ({notification.type}) "
            f"to {len(user_ids)} recipient(s) via {notification.channel}",
            extra={
                "notification_id": notification.id,
                "type": notification.type,
                "channel": notification.channel,
                "recipients": user_ids[:20],
            },
        )

    def create(self, actor: User, payload: Dict[str, Any]) -> Dict[str, Any]:
        """Create a notification through the API.

        Non-admin, non-health users may only address themselves.
        """
        user_id = payload['user_id']
        if user_id != actor.id and not has_role(actor, UserRole.ADMIN, UserRole.HEALTH):
            raise AuthorizationError("You can only create notifications for yourself")
        recipient = found(self.user_repo.get_by_id(user_id), 'User', user_id)

        related = payload.get('related_entity')
        notification = self.notify(
            recipient,
            payload['type'],
            payload['title'],
            payload['message'],
            priority=payload.get('priority', Priority.MEDIUM.value),
            category=payload['category'],
            data=payload.get('data'),
            related=(related['type'], related['id']) if related else None,
            created_by=actor.id,
            expires_at=payload.get('expires_at'),
            channel=payload.get('channel'),
        )
        self._audit(AuditAction.CREATE, notification, actor, {'type': notification.type, 'user_id': user_id})
        return notification.to_dict()

    def create_broadcast(self, actor: User, payload: Dict[str, Any]) -> Dict[str, Any]:
        ensure_role(actor, UserRole.ADMIN, UserRole.HEALTH)
        related = payload.get('related_entity')
        notification = self.broadcast(
            payload['target_roles'],
            payload['type'],
            payload['title'],
            payload['message'],
            priority=payload.get('priority', Priority.MEDIUM.value),
            category=payload['category'],
            data=payload.get('data'),
            related=(related['type'], related['id']) if related else None,
            created_by=actor.id,
            expires_at=payload.get('expires_at'),
            channel=payload.get('channel'),
        )
        self._audit(AuditAction.CREATE, notification, actor, {
            'type': notification.type,
            'target_roles': notification.target_roles,
            'recipient_count': len(notification.recipients),
        })
        result = notification.to_dict()
        result['recipient_count'] = len(notification.recipients)
        return result

    # Reading ----------------------------------------------------------------

    def list_for_user(self, actor: User, filters: Dict[str, Any], page: int = 1,
                      limit: int = 10) -> Dict[str, Any]:
        notifications, total = self.notification_repo.list_for_user(actor.id, filters, page, limit)
        return {
            'notifications': [n.to_dict(viewer_id=actor.id) for n in notifications],
            'pagination': pagination(page, limit, total),
        }

    def unread_count(self, actor: User) -> int:
        return self.notification_repo.unread_count(actor.id)

    def _get_addressed(self, actor: User, notification_id: int) -> Notification:
        notification = self.notification_repo.get_with_recipients(notification_id)
        if notification is None or not notification.addressed_to(actor.id):
            raise NotFoundError("Notification not found", details={'id': notification_id})
        return notification

    # State changes ----------------------------------------------------------

    def mark_read(self, actor: User, notification_id: int) -> Dict[str, Any]:
        notification = self._get_addressed(actor, notification_id)
        if notification.mark_read(actor.id):
            self.notification_repo.save(notification)
        return notification.to_dict(viewer_id=actor.id)

    def archive(self, actor: User, notification_id: int) -> Dict[str, Any]:
        notification = self._get_addressed(actor, notification_id)
        if notification.archive(actor.id):
            self.notification_repo.save(notification)
            self._audit(AuditAction.ARCHIVE, notification, actor)
        return notification.to_dict(viewer_id=actor.id)

    def mark_all_read(self, actor: User) -> int:
        """Mark every unread notification of ``actor`` read. Returns how many changed."""
        changed = 0
        for notification in self.notification_repo.unread_for_user(actor.id):
            if notification.mark_read(actor.id):
                changed += 1
        if changed:
            self.notification_repo.db.commit()
        logger.info(f"Marked {changed} notifications read for user {actor.id}")
        return changed

    def delete(self, actor: User, notification_id: int) -> None:
        """Soft delete a notification.

        Individual notifications can be removed by their recipient. Broadcasts
        are shared, so only their creator or an admin may remove them.
        """
        notification = found(self.notification_repo.get_with_recipients(notification_id),
                             'Notification', notification_id)
        if notification.is_broadcast:
            allowed = notification.created_by == actor.id or has_role(actor, UserRole.ADMIN)
        else:
            allowed = notification.user_id == actor.id
        if not allowed:
            if notification.addressed_to(actor.id) or has_role(actor, UserRole.ADMIN):
                raise AuthorizationError("You can only delete your own notifications")
            raise NotFoundError("Notification not found", details={'id': notification_id})
        self.notification_repo.delete(notification.id)
        self._audit(AuditAction.DELETE, notification, actor)

    def statistics(self, actor: User) -> Dict[str, Any]:
        ensure_role(actor, UserRole.ADMIN)
        return self.notification_repo.statistics()

    def _audit(self, action: AuditAction, notification: Notification, actor: Optional[User],
               changes: Optional[Dict[str, Any]] = None) -> None:
        if self.audit is not None:
            self.audit.log_action(action, EntityType.NOTIFICATION, notification.id, actor, changes)
