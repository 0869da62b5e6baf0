"""Security configuration for JWT authentication and rate limiting.

Configures Flask-JWT-Extended and Flask-Limiter from the application config.
"""

import logging
from datetime import timedelta
from typing import Any, Dict, Optional

from flask import Flask, request
from flask_jwt_extended import JWTManager
from flask_limiter import Limiter

from mediclean.database import get_db_session
from mediclean.repositories import UserRepository
from mediclean.security.decorators import apply_security_headers, rate_limit_key_func

logger = logging.getLogger(__name__)


class SecurityConfig:
    """Security configuration constants."""

    JWT_ALGORITHM = 'HS256'
    JWT_TOKEN_LOCATION = ['headers']

    RATELIMIT_STRATEGY = 'fixed-window'
    RATELIMIT_HEADERS_ENABLED = True

    # Named API rate limits
    RATE_LIMITS = {
        'default': '100 per 15 minutes',
        'auth': '10 per minute',
        'read': '500 per hour',
        'write': '30 per hour',
        'bulk': '10 per hour',
        'analytics': '50 per hour',
        'emergency': '5 per day',
    }

    CORS_METHODS = ['GET', 'POST', 'PUT', 'PATCH', 'DELETE', 'OPTIONS']
    CORS_HEADERS = ['Content-Type', 'Authorization']


def init_security(app: Flask) -> tuple[JWTManager, Limiter]:
    """Initialize security components.

    Args:
        app: Flask application instance

    Returns:
        Tuple of (jwt_manager, limiter)
    """
    app.config['JWT_ACCESS_TOKEN_EXPIRES'] = timedelta(minutes=app.config['JWT_ACCESS_TOKEN_EXPIRE_MINUTES'])
    app.config['JWT_REFRESH_TOKEN_EXPIRES'] = timedelta(days=app.config['JWT_REFRESH_TOKEN_EXPIRE_DAYS'])
    app.config['JWT_ALGORITHM'] = SecurityConfig.JWT_ALGORITHM
    app.config['JWT_TOKEN_LOCATION'] = SecurityConfig.JWT_TOKEN_LOCATION
    app.config['JWT_ENCODE_AUDIENCE'] = app.config['JWT_AUDIENCE']
    app.config['JWT_DECODE_AUDIENCE'] = app.config['JWT_AUDIENCE']
    app.config['JWT_ENCODE_ISSUER'] = app.config['JWT_ISSUER']
    app.config['JWT_DECODE_ISSUER'] = app.config['JWT_ISSUER']

    app.config.setdefault('RATELIMIT_ENABLED', True)
    app.config.setdefault('RATELIMIT_STORAGE_URI', app.config.get('REDIS_URL') or 'memory://')

    jwt = JWTManager(app)

    limiter = Limiter(
        key_func=rate_limit_key_func,
        app=app,
        default_limits=[SecurityConfig.RATE_LIMITS['default']],
        storage_uri=app.config['RATELIMIT_STORAGE_URI'],
        strategy=SecurityConfig.RATELIMIT_STRATEGY,
        headers_enabled=SecurityConfig.RATELIMIT_HEADERS_ENABLED,
    )

    # Revoked token JTIs; process-local
    blacklisted_tokens = set()

    @jwt.token_in_blocklist_loader
    def check_if_token_revoked(jwt_header: Dict[str, Any], jwt_payload: Dict[str, Any]) -> bool:
        return jwt_payload['jti'] in blacklisted_tokens

    @jwt.user_lookup_loader
    def load_user(jwt_header: Dict[str, Any], jwt_payload: Dict[str, Any]):
        """Resolve the token subject to a live, non-deleted user."""
        try:
            user_id = int(jwt_payload['sub'])
        except (TypeError, ValueError):
            return None
        return UserRepository(get_db_session()).get_by_id(user_id)

    @jwt.user_lookup_error_loader
    def user_lookup_error_callback(jwt_header: Dict[str, Any], jwt_payload: Dict[str, Any]) -> tuple:
        return {
            'error': 'User not found',
            'code': 'USER_NOT_FOUND'
        }, 401

    @jwt.revoked_token_loader
    def revoked_token_callback(jwt_header: Dict[str, Any], jwt_payload: Dict[str, Any]) -> tuple:
        return {
            'error': 'Token has been revoked',
            'code': 'TOKEN_REVOKED'
        }, 401

    @jwt.expired_token_loader
    def expired_token_callback(jwt_header: Dict[str, Any], jwt_payload: Dict[str, Any]) -> tuple:
        return {
            'error': 'Token has expired',
            'code': 'TOKEN_EXPIRED'
        }, 401

    @jwt.invalid_token_loader
    def invalid_token_callback(error: str) -> tuple:
        return {
            'error': 'Invalid token',
            'code': 'INVALID_TOKEN',
            'details': error
        }, 401

    @jwt.unauthorized_loader
    def missing_token_callback(error: str) -> tuple:
        return {
            'error': 'Authorization token required',
            'code': 'MISSING_TOKEN'
        }, 401

    @jwt.needs_fresh_token_loader
    def token_not_fresh_callback(jwt_header: Dict[str, Any], jwt_payload: Dict[str, Any]) -> tuple:
        return {
            'error': 'Fresh token required',
            'code': 'FRESH_TOKEN_REQUIRED'
        }, 401

    @limiter.request_filter
    def rate_limit_exempt() -> bool:
        return request.endpoint == 'health.health_check'

    @app.after_request
    def api_security_headers(response):
        # Error responses raised past the route decorators still get the headers
        if request.path.startswith('/api/'):
            apply_security_headers(response)
        return response

    app.jwt_blacklist = blacklisted_tokens

    return jwt, limiter


def get_rate_limit(operation: str) -> str:
    """Get rate limit for specific operation.

    Args:
        operation: One of default, auth, read, write, bulk, analytics, emergency

    Returns:
        Rate limit string
    """
    return SecurityConfig.RATE_LIMITS.get(operation, SecurityConfig.RATE_LIMITS['default'])


def cors_origin(origins, request_origin: Optional[str]) -> Optional[str]:
    """Value for Access-Control-Allow-Origin, or None when the origin is not allowed."""
    if '*' in origins:
        return '*'
    if request_origin and request_origin in origins:
        return request_origin
    return None
