"""Authentication service.

Handles registration, login with lockout, JWT issuance and revocation, and
the password reset and change flows.
"""

import datetime
import hashlib
import logging
import secrets
from typing import Any, Dict, Mapping, Optional

from flask import current_app
from flask_jwt_extended import create_access_token, create_refresh_token, get_jti

from mediclean.domain.value_objects import (
    DEFAULT_NOTIFICATION_PREFERENCES, AuditAction, AuditSeverity, EntityType, GeoPoint,
    NotificationCategory, NotificationType, Priority, UserRole, UserStatus,
)
from mediclean.errors import AuthenticationError, ConflictError, ValidationError
from mediclean.models import User
from mediclean.repositories import UserRepository

logger = logging.getLogger(__name__)


def hash_token(token: str) -> str:
    """SHA-256 digest stored in place of a reset token."""
    return hashlib.sha256(token.encode('utf-8')).hexdigest()


class AuthService:
    """Authentication and session management."""

    def __init__(self, user_repo: UserRepository, notifications=None, audit=None,
                 config: Optional[Mapping[str, Any]] = None):
        """Initialize auth service.

        Args:
            user_repo: User repository instance
            notifications: NotificationService used for account messages
            audit: AuditService recording logins and account changes
            config: Application configuration mapping
        """
        self.user_repo = user_repo
        self.notifications = notifications
        self.audit = audit
        self.config = config or {}

    @property
    def max_login_attempts(self) -> int:
        return int(self.config.get('MAX_LOGIN_ATTEMPTS', 5))

    @property
    def lockout_minutes(self) -> int:
        return int(self.config.get('ACCOUNT_LOCKOUT_MINUTES', 30))

    # Tokens -----------------------------------------------------------------

    @staticmethod
    def token_claims(user: User) -> Dict[str, Any]:
        return {
            'roles': [user.role],
            'email': user.email,
            'username': user.username,
            'status': user.status,
        }

    def create_tokens(self, user: User) -> Dict[str, Any]:
        """Create access and refresh tokens for ``user``.

        Returns:
            Dictionary with both tokens, their JTIs and the access lifetime
        """
        claims = self.token_claims(user)
        access_token = create_access_token(identity=str(user.id), additional_claims=claims)
        refresh_token = create_refresh_token(identity=str(user.id), additional_claims=claims)
        logger.info(f"Tokens created for user: {user.username}")
        return {
            'access_token': access_token,
            'refresh_token': refresh_token,
            'access_jti': get_jti(access_token),
            'refresh_jti': get_jti(refresh_token),
            'token_type': 'Bearer',
            'expires_in': int(current_app.config['JWT_ACCESS_TOKEN_EXPIRES'].total_seconds()),
        }

    def revoke_token(self, jti: str) -> None:
        current_app.jwt_blacklist.add(jti)
        logger.info(f"Token revoked: {jti}")

    # Registration & login ---------------------------------------------------

    def register(self, payload: Dict[str, Any]) -> Dict[str, Any]:
        """Register a new account.

        Args:
            payload: Validated registration data (username, email, password,
                role and optional phone, address and location)

        Returns:
            Dictionary with ``user`` and ``tokens``

        Raises:
            ValidationError: If the role cannot be self-assigned
            ConflictError: If the username or email is taken
        """
        role = UserRole.from_string(payload.get('role', UserRole.CLINIC.value))
        if role.value not in UserRole.self_registrable():
            raise ValidationError("This role cannot be chosen at registration",
                                  details={'role': role.value})

        email = payload['email'].strip().lower()
        if self.user_repo.username_or_email_taken(payload['username'], email):
            raise ConflictError("Username or email already registered", code='USER_EXISTS')

        user = User(
            username=payload['username'],
            email=email,
            phone=payload.get('phone'),
            role=role.value,
            status=UserStatus.ACTIVE.value,
            is_active=True,
            notification_preferences=dict(DEFAULT_NOTIFICATION_PREFERENCES),
        )
        user.set_password(payload['password'])
        address = payload.get('address') or {}
        for field in ('street', 'city', 'state', 'postal_code', 'country'):
            setattr(user, field, address.get(field))
        if payload.get('location'):
            user.location = GeoPoint.from_coordinates(payload['location']['coordinates'])
        self.user_repo.add(user)
        logger.info(f"New user registered: {user.username} ({user.email}) as {user.role}")

        if self.notifications is not None:
            self.notifications.notify(
                user,
                NotificationType.ACCOUNT_UPDATE,
                "Welcome to MediClean",
                f"Your {user.role} account has been created successfully.",
                priority=Priority.LOW,
                category=NotificationCategory.ADMINISTRATIVE,
                related=(EntityType.USER, user.id),
            )
        self._audit(AuditAction.CREATE, user, user, {'role': user.role})
        return {'user': user.to_dict(include_private=True), 'tokens': self.create_tokens(user)}

    def login(self, identifier: str, password: str) -> Dict[str, Any]:
        """Authenticate by username or email.

        Raises:
            AuthenticationError: For unknown users, bad passwords, or locked,
                inactive, suspended or deleted accounts
        """
        user = self.user_repo.get_by_username_or_email(identifier)
        if not user:
            logger.warning(f"Authentication failed: unknown identifier {identifier}")
            raise AuthenticationError("Invalid credentials", code='INVALID_CREDENTIALS')

        if user.is_account_locked():
            logger.warning(f"Authentication failed: account locked for {user.username}")
            raise AuthenticationError(
                "Account is temporarily locked due to failed login attempts",
                code='ACCOUNT_LOCKED',
                details={'locked_until': user.account_locked_until.isoformat()},
            )

        if not user.can_login:
            logger.warning(f"Authentication failed: account {user.username} is {user.status}")
            raise AuthenticationError("Account is not active", code='ACCOUNT_INACTIVE')

        if not user.verify_password(password):
            remaining = user.register_failed_login(self.max_login_attempts, self.lockout_minutes)
            self.user_repo.save(user)
            self._audit(AuditAction.LOGIN, user, user, None, status='failure',
                        severity=AuditSeverity.WARNING, error_code='INVALID_CREDENTIALS')
            logger.warning(
                f"Authentication failed: invalid password for {user.username}",
                extra={"user": user.id, "remaining_attempts": remaining},
            )
            if remaining == 0:
                raise AuthenticationError(
                    f"Too many failed login attempts. Account locked for {self.lockout_minutes} minutes",
                    code='ACCOUNT_LOCKED',
                )
            raise AuthenticationError("Invalid credentials", code='INVALID_CREDENTIALS',
                                      details={'remaining_attempts': remaining})

        user.record_login()
        self.user_repo.save(user)
        self._audit(AuditAction.LOGIN, user, user)
        logger.info(f"User {user.username} authenticated successfully")
        return {'user': user.to_dict(include_private=True), 'tokens': self.create_tokens(user)}

    def refresh(self, user: Optional[User]) -> Dict[str, Any]:
        """New access token for the refresh token's owner."""
        if user is None or not user.can_login:
            raise AuthenticationError("User is not active", code='ACCOUNT_INACTIVE')
        access_token = create_access_token(identity=str(user.id), additional_claims=self.token_claims(user))
        return {
            'access_token': access_token,
            'token_type': 'Bearer',
            'expires_in': int(current_app.config['JWT_ACCESS_TOKEN_EXPIRES'].total_seconds()),
        }

    def logout(self, user: User, jti: str) -> None:
        self.revoke_token(jti)
        self._audit(AuditAction.LOGOUT, user, user)

    # Passwords --------------------------------------------------------------

    def forgot_password(self, email: str) -> Optional[str]:
        """Issue a reset token for ``email``.

        Returns:
            The raw token, or None when no active account matches. Callers
            must answer identically in both cases.
        """
        user = self.user_repo.get_by_email(email)
        if not user or not user.can_login:
            logger.info("Password reset requested for unknown or inactive email")
            return None

        token = secrets.token_hex(32)
        minutes = int(self.config.get('PASSWORD_RESET_TOKEN_MINUTES', 10))
        user.password_reset_token_hash = hash_token(token)
        user.password_reset_expires_at = datetime.datetime.utcnow() + datetime.timedelta(minutes=minutes)
        self.user_repo.save(user)
        logger.info(f"Password reset token issued for user {user.id}")
        return token

    def reset_password(self, token: str, new_password: str) -> Dict[str, Any]:
        user = self.user_repo.get_by_reset_token_hash(hash_token(token))
        now = datetime.datetime.utcnow()
        if not user or not user.password_reset_expires_at or user.password_reset_expires_at < now:
            raise ValidationError("Token is invalid or has expired", code='INVALID_RESET_TOKEN')

        user.set_password(new_password)
        user.password_reset_token_hash = None
        user.password_reset_expires_at = None
        user.unlock_account()
        self.user_repo.save(user)
        self._audit(AuditAction.RESET_PASSWORD, user, user)
        logger.info(f"Password reset for user {user.username}")
        return {'user': user.to_dict(), 'tokens': self.create_tokens(user)}

    def change_password(self, user: User, current_password: str, new_password: str) -> Dict[str, Any]:
        """Change the password after checking the current one.

        Raises:
            AuthenticationError: If ``current_password`` is wrong
        """
        if not user.verify_password(current_password):
            self._audit(AuditAction.UPDATE, user, user, {'field': 'password'}, status='failure',
                        severity=AuditSeverity.WARNING, error_code='INVALID_PASSWORD')
            raise AuthenticationError("Current password is incorrect", code='INVALID_PASSWORD')
        if current_password == new_password:
            raise ValidationError("New password must differ from the current password")

        user.set_password(new_password)
        self.user_repo.save(user)
        self._audit(AuditAction.UPDATE, user, user, {'field': 'password'})
        logger.info(f"Password changed for user {user.username}")
        return {'tokens': self.create_tokens(user)}

    def _audit(self, action, user, actor, changes=None, **kwargs) -> None:
        if self.audit is not None:
            self.audit.log_action(action, EntityType.USER, user.id, actor, changes, **kwargs)
