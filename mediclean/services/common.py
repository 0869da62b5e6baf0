"""Helpers shared by the service classes."""

import math
from typing import Any, Dict, Iterable, Optional

from mediclean.domain.value_objects import UserRole
from mediclean.errors import AuthorizationError, NotFoundError
from mediclean.models import User


def pagination(page: int, limit: int, total: int) -> Dict[str, Any]:
    """Pagination block returned alongside every list."""
    pages = math.ceil(total / limit) if limit else 0
    return {
        'page': page,
        'limit': limit,
        'total': total,
        'pages': pages,
        'has_next': page < pages,
        'has_prev': page > 1,
    }


def has_role(actor: Optional[User], *roles: UserRole) -> bool:
    return actor is not None and actor.role in {UserRole.from_string(r).value for r in roles}


def ensure_role(actor: Optional[User], *roles: UserRole, message: Optional[str] = None) -> None:
    """Raise AuthorizationError unless ``actor`` holds one of ``roles``."""
    if not has_role(actor, *roles):
        allowed = ', '.join(UserRole.from_string(r).value for r in roles)
        raise AuthorizationError(message or f"This action requires one of the roles: {allowed}")


def found(instance, label: str, identifier: Any):
    """Return ``instance`` or raise NotFoundError."""
    if instance is None:
        raise NotFoundError(f"{label} not found", details={'id': identifier})
    return instance


def drop_none(values: Dict[str, Any], keep: Iterable[str] = ()) -> Dict[str, Any]:
    keep = set(keep)
    return {key: value for key, value in values.items() if value is not None or key in keep}
