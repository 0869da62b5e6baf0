"""Database dependency injection.

One SQLAlchemy session per request, kept on ``flask.g`` and closed on
app-context teardown. Routes receive a ServiceContainer through the
``with_services`` decorator.
"""

import logging
from functools import wraps

from flask import current_app, g, request
from sqlalchemy.orm import Session

from mediclean.repositories import (
    AuditLogRepository,
    NotificationRepository,
    PickupRepository,
    ReportRepository,
    UserRepository,
    WasteLogRepository,
)
from mediclean.services import ServiceContainer

logger = logging.getLogger(__name__)


def get_db_session() -> Session:
    """Session bound to the current app context, created on first use."""
    if 'db_session' not in g:
        g.db_session = current_app.extensions['db_session_factory']()
    return g.db_session


def close_db_session(exception=None) -> None:
    db = g.pop('db_session', None)
    if db is None:
        return
    if exception is not None:
        db.rollback()
    db.close()


class RepositoryContainer:
    """Container for all repository instances."""

    def __init__(self, db: Session):
        """Initialize repository container.

        Args:
            db: Database session
        """
        self.db = db
        self._user_repo = None
        self._waste_log_repo = None
        self._pickup_repo = None
        self._notification_repo = None
        self._report_repo = None
        self._audit_log_repo = None

    @property
    def users(self) -> UserRepository:
        if self._user_repo is None:
            self._user_repo = UserRepository(self.db)
        return self._user_repo

    @property
    def waste_logs(self) -> WasteLogRepository:
        if self._waste_log_repo is None:
            self._waste_log_repo = WasteLogRepository(self.db)
        return self._waste_log_repo

    @property
    def pickups(self) -> PickupRepository:
        if self._pickup_repo is None:
            self._pickup_repo = PickupRepository(self.db)
        return self._pickup_repo

    @property
    def notifications(self) -> NotificationRepository:
        if self._notification_repo is None:
            self._notification_repo = NotificationRepository(self.db)
        return self._notification_repo

    @property
    def reports(self) -> ReportRepository:
        if self._report_repo is None:
            self._report_repo = ReportRepository(self.db)
        return self._report_repo

    @property
    def audit_logs(self) -> AuditLogRepository:
        if self._audit_log_repo is None:
            self._audit_log_repo = AuditLogRepository(self.db)
        return self._audit_log_repo


def get_repositories() -> RepositoryContainer:
    return RepositoryContainer(get_db_session())


def get_services():
    """ServiceContainer for the current request."""
    request_info = {
        'ip_address': request.remote_addr,
        'user_agent': request.headers.get('User-Agent'),
    }
    return ServiceContainer(
        get_repositories(),
        config=current_app.config,
        cache=current_app.extensions.get('pickup_cache'),
        request_info=request_info,
    )


def with_services(func):
    """Decorator to inject the request's ServiceContainer into route handlers.

    Usage:
        @bp.route('/pickup/<int:pickup_id>')
        @with_services
        def get_pickup(services, pickup_id):
            return jsonify(services.pickups.get(g.user, pickup_id))
    """
    @wraps(func)
    def wrapper(*args, **kwargs):
        return func(get_services(), *args, **kwargs)
    return wrapper
