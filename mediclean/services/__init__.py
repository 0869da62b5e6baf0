"""Service layer implementations.

Services hold the business rules and orchestrate repository operations.
``ServiceContainer`` wires them together for one request.
"""

from typing import Any, Dict, Mapping, Optional

from .audit_service import AuditService
from .auth_service import AuthService
from .notification_service import NotificationService
from .pickup_service import PickupService
from .report_service import ReportService
from .statistics_service import StatisticsService
from .user_service import UserService
from .waste_log_service import WasteLogService


class ServiceContainer:
    """All services bound to one repository container."""

    def __init__(self, repos, config: Optional[Mapping[str, Any]] = None, cache=None,
                 request_info: Optional[Dict[str, Optional[str]]] = None):
        """Initialize service container.

        Args:
            repos: RepositoryContainer for the current session
            config: Application configuration mapping
            cache: Cache of serialized pickup requests
            request_info: ``ip_address`` and ``user_agent`` recorded in the audit log
        """
        self.repos = repos
        config = config or {}
        self.audit = AuditService(repos.audit_logs, config, request_info)
        self.notifications = NotificationService(repos.notifications, repos.users, self.audit)
        self.auth = AuthService(repos.users, self.notifications, self.audit, config)
        self.users = UserService(repos.users, repos.pickups, self.notifications, self.audit, config)
        self.waste_logs = WasteLogService(repos.waste_logs, self.notifications, self.audit, config, cache)
        self.pickups = PickupService(repos.pickups, repos.users, repos.waste_logs,
                                     self.notifications, self.audit, cache, config)
        self.statistics = StatisticsService(repos)
        self.reports = ReportService(repos, self.statistics, self.notifications, self.audit)


__all__ = [
    'AuditService',
    'AuthService',
    'NotificationService',
    'PickupService',
    'ReportService',
    'ServiceContainer',
    'StatisticsService',
    'UserService',
    'WasteLogService',
]
