"""User repository implementation.

Handles database operations for User accounts: credential lookups, admin
search and the collector proximity search.
"""

import datetime
import logging
from typing import List, Optional, Sequence, Tuple

from sqlalchemy import func, or_
from sqlalchemy.orm import Session

from mediclean.domain.value_objects import GeoPoint, UserRole, UserStatus
from mediclean.models import User

from .base import BaseRepository
from .geo import sort_by_distance, within_box

logger = logging.getLogger(__name__)


class UserRepository(BaseRepository[User]):
    """Repository for User model with authentication features."""

    def __init__(self, db_session: Session):
        super().__init__(db_session, User)

    def get_by_username(self, username: str) -> Optional[User]:
        return self.query().filter(User.username == username).first()

    def get_by_email(self, email: str) -> Optional[User]:
        return self.query().filter(User.email == email.strip().lower()).first()

    def get_by_username_or_email(self, identifier: str) -> Optional[User]:
        """Get user by username or email.

        Args:
            identifier: Username or email to search for

        Returns:
            User instance if found, None otherwise
        """
        identifier = identifier.strip()
        return (
            self.query()
            .filter(or_(User.username == identifier, User.email == identifier.lower()))
            .first()
        )

    def username_or_email_taken(self, username: str, email: str) -> bool:
        """Check both columns, including soft-deleted accounts which keep their unique keys."""
        return (
            self.query(include_deleted=True)
            .filter(or_(User.username == username, User.email == email.strip().lower()))
            .count()
            > 0
        )

    def get_by_reset_token_hash(self, token_hash: str) -> Optional[User]:
        return self.query().filter(User.password_reset_token_hash == token_hash).first()

    def search(self, role: Optional[str] = None, status: Optional[str] = None,
               q: Optional[str] = None, page: int = 1, limit: int = 10) -> Tuple[List[User], int]:
        """Admin user search.

        Args:
            role: Exact role filter
            status: Exact status filter
            q: Case-insensitive substring over username and email
            page: 1-based page number
            limit: Page size

        Returns:
            Tuple of (users, total)
        """
        query = self.query()
        if role:
            query = query.filter(User.role == role)
        if status:
            query = query.filter(User.status == status)
        if q:
            pattern = f"%{q.lower()}%"
            query = query.filter(or_(func.lower(User.username).like(pattern),
                                     func.lower(User.email).like(pattern)))
        return self.paginate(query.order_by(User.created_at.desc(), User.id.desc()), page, limit)

    def find_nearby_collectors(self, point: GeoPoint, radius_m: float) -> List[Tuple[User, float]]:
        """Active, verified collectors within ``radius_m`` metres, nearest first."""
        query = self.query().filter(
            User.role == UserRole.COLLECTOR.value,
            User.is_active.is_(True),
            User.is_verified.is_(True),
        )
        candidates = within_box(query, User, point, radius_m).all()
        return sort_by_distance(candidates, point, radius_m)

    def get_active_by_roles(self, roles: Sequence[str], limit: Optional[int] = None) -> List[User]:
        """Active accounts holding one of ``roles``."""
        query = self.query().filter(
            User.role.in_(list(roles)),
            User.is_active.is_(True),
            User.status == UserStatus.ACTIVE.value,
        ).order_by(User.id)
        if limit is not None:
            query = query.limit(limit)
        return query.all()

    def get_existing_ids(self, ids: Sequence[int]) -> List[int]:
        if not ids:
            return []
        return [row.id for row in self.query().filter(User.id.in_(list(ids))).all()]

    def count_by_role(self, role: str) -> int:
        return self.query().filter(User.role == role).count()

    def count_active(self) -> int:
        return self.query().filter(User.is_active.is_(True)).count()

    def count_created_since(self, since: datetime.datetime) -> int:
        return self.query().filter(User.created_at >= since).count()
