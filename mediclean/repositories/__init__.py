"""Repository pattern implementation.

Data access layer for MediClean; services talk to the database only
through these classes.
"""

from .base import BaseRepository
from .user_repository import UserRepository
from .waste_log_repository import WasteLogRepository
from .pickup_repository import PickupRepository
from .notification_repository import NotificationRepository
from .report_repository import ReportRepository
from .audit_log_repository import AuditLogRepository

__all__ = [
    'BaseRepository',
    'UserRepository',
    'WasteLogRepository',
    'PickupRepository',
    'NotificationRepository',
    'ReportRepository',
    'AuditLogRepository',
]
