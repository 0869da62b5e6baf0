"""Domain layer: value objects and storage-independent business rules."""

from .value_objects import (
    AuditAction, AuditSeverity, EntityType, GeoPoint, NotificationCategory,
    NotificationChannel, NotificationStatus, NotificationType, PickupStatus,
    Priority, ReportFormat, ReportFrequency, ReportStatus, ReportType, TimeSlot,
    UserRole, UserStatus, WasteCategory, DEFAULT_NOTIFICATION_PREFERENCES,
)
from .trends import calculate_trends, period_key

__all__ = [
    'AuditAction', 'AuditSeverity', 'EntityType', 'GeoPoint',
    'NotificationCategory', 'NotificationChannel', 'NotificationStatus',
    'NotificationType', 'PickupStatus', 'Priority', 'ReportFormat',
    'ReportFrequency', 'ReportStatus', 'ReportType', 'TimeSlot', 'UserRole',
    'UserStatus', 'WasteCategory', 'DEFAULT_NOTIFICATION_PREFERENCES',
    'calculate_trends', 'period_key',
]
