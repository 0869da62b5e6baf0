"""Security decorators for API endpoints.

Provides authentication, authorization, rate limiting, and validation decorators.
The usual order on a route is::

    @bp.route(...)
    @security_headers()
    @log_api_request()
    @jwt_required_with_logging()
    @apply_rate_limit(get_rate_limit('read'))
    @require_roles('admin')
    @validate_json(schema)
"""

import calendar
import logging
import time
from functools import wraps
from typing import Callable

from flask import current_app, g, jsonify, request
from flask_jwt_extended import get_current_user, get_jwt, get_jwt_identity, verify_jwt_in_request
from marshmallow import Schema, ValidationError

logger = logging.getLogger(__name__)

SECURITY_HEADERS = {
    'X-Content-Type-Options': 'nosniff',
    'X-Frame-Options': 'DENY',
    'X-XSS-Protection': '1; mode=block',
    'Strict-Transport-Security': 'max-age=31536000; includeSubDomains',
    'Content-Security-Policy': "default-src 'self'",
    'Referrer-Policy': 'strict-origin-when-cross-origin',
}


def _log_validation_failure(err: ValidationError) -> None:
    logger.warning(
        f"Validation error from {request.remote_addr}: {err.messages}",
        extra={
            "endpoint": request.endpoint,
            "method": request.method,
            "ip": request.remote_addr,
            "validation_errors": err.messages
        }
    )


def _validation_response(err: ValidationError):
    return jsonify({
        "error": "Validation failed",
        "code": "VALIDATION_ERROR",
        "details": err.messages
    }), 400


def validate_json(schema: Schema):
    """Decorator for validating JSON request data using Marshmallow schema.

    Args:
        schema: Marshmallow schema for validation

    Returns:
        Decorated function with validated data in g.validated_data
    """
    def decorator(f: Callable) -> Callable:
        @wraps(f)
        def decorated_function(*args, **kwargs):
            if not request.is_json:
                return jsonify({
                    "error": "Content-Type must be application/json",
                    "code": "INVALID_CONTENT_TYPE"
                }), 400

            json_data = request.get_json(silent=True)
            if json_data is None:
                return jsonify({
                    "error": "No JSON data provided",
                    "code": "NO_JSON_DATA"
                }), 400

            try:
                g.validated_data = schema.load(json_data)
            except ValidationError as err:
                _log_validation_failure(err)
                return _validation_response(err)

            return f(*args, **kwargs)

        return decorated_function
    return decorator


def validate_query(schema: Schema):
    """Decorator validating the query string; the result is stored in g.query_params."""
    def decorator(f: Callable) -> Callable:
        @wraps(f)
        def decorated_function(*args, **kwargs):
            try:
                g.query_params = schema.load(request.args.to_dict())
            except ValidationError as err:
                _log_validation_failure(err)
                return _validation_response(err)
            return f(*args, **kwargs)

        return decorated_function
    return decorator


def _auth_failure(message: str, code: str):
    logger.warning(
        f"Authentication failed from {request.remote_addr}: {message}",
        extra={
            "endpoint": request.endpoint,
            "method": request.method,
            "ip": request.remote_addr,
            "user": getattr(g, 'current_user', None),
        }
    )
    return jsonify({"error": message, "code": code}), 401


def jwt_required_with_logging(optional: bool = False, refresh: bool = False):
    """JWT authentication decorator with enhanced logging.

    Loads the token's user into ``g.user`` and rejects tokens of inactive
    users and tokens issued before the user's last password change. Token
    errors are logged and left to the JWT error handlers.

    Args:
        optional: If True, JWT is optional and won't fail if missing
        refresh: Require a refresh token instead of an access token

    Returns:
        Decorated function with user identity in g.current_user
    """
    def decorator(f: Callable) -> Callable:
        @wraps(f)
        def decorated_function(*args, **kwargs):
            try:
                verify_jwt_in_request(optional=optional, refresh=refresh)
            except Exception as err:
                logger.warning(
                    f"Authentication failed from {request.remote_addr}: {err}",
                    extra={
                        "endpoint": request.endpoint,
                        "method": request.method,
                        "ip": request.remote_addr,
                        "error": str(err)
                    }
                )
                raise

            g.current_user = get_jwt_identity()
            g.jwt_claims = get_jwt() if g.current_user else {}
            g.user = get_current_user() if g.current_user else None

            if g.current_user:
                user = g.user
                if not user.can_login:
                    return _auth_failure("Account is not active", "ACCOUNT_INACTIVE")
                if user.last_password_change is not None:
                    changed = calendar.timegm(user.last_password_change.utctimetuple())
                    if changed > g.jwt_claims.get('iat', 0):
                        return _auth_failure("Password changed, please log in again", "PASSWORD_CHANGED")

                logger.info(
                    f"Authenticated request from user {g.current_user}",
                    extra={
                        "user": g.current_user,
                        "endpoint": request.endpoint,
                        "method": request.method,
                        "ip": request.remote_addr
                    }
                )

            return f(*args, **kwargs)

        return decorated_function
    return decorator


def require_roles(*roles: str):
    """Authorization decorator requiring specific roles.

    Roles come from the loaded user, so role changes apply to tokens
    already issued.

    Args:
        *roles: Required roles (e.g., 'admin', 'clinic')

    Returns:
        Decorated function that checks user roles
    """
    def decorator(f: Callable) -> Callable:
        @wraps(f)
        def decorated_function(*args, **kwargs):
            if not getattr(g, 'current_user', None):
                return jsonify({
                    "error": "Authentication required",
                    "code": "AUTHENTICATION_REQUIRED"
                }), 401

            user = getattr(g, 'user', None)
            user_roles = [user.role] if user is not None else g.jwt_claims.get('roles', [])

            if not any(role in user_roles for role in roles):
                logger.warning(
                    f"Authorization failed: User {g.current_user} lacks required roles {roles}",
                    extra={
                        "user": g.current_user,
                        "required_roles": roles,
                        "user_roles": user_roles,
                        "endpoint": request.endpoint,
                        "method": request.method,
                        "ip": request.remote_addr
                    }
                )

                return jsonify({
                    "error": "Insufficient permissions",
                    "code": "INSUFFICIENT_PERMISSIONS",
                    "required_roles": list(roles)
                }), 403

            return f(*args, **kwargs)

        return decorated_function
    return decorator


def log_api_request(include_response_time: bool = True):
    """Decorator for API request logging.

    Args:
        include_response_time: Whether to log response time

    Returns:
        Decorated function with request/response logging
    """
    def decorator(f: Callable) -> Callable:
        @wraps(f)
        def decorated_function(*args, **kwargs):
            start_time = time.time() if include_response_time else None

            logger.info(
                f"API Request: {request.method} {request.path}",
                extra={
                    "method": request.method,
                    "path": request.path,
                    "endpoint": request.endpoint,
                    "ip": request.remote_addr,
                    "user_agent": request.headers.get('User-Agent'),
                    "content_length": request.content_length,
                    "query_params": dict(request.args),
                }
            )

            try:
                response = f(*args, **kwargs)
            except Exception as err:
                logger.info(
                    f"API Error: {request.method} {request.path} - {type(err).__name__}: {err}",
                    extra={
                        "method": request.method,
                        "path": request.path,
                        "endpoint": request.endpoint,
                        "ip": request.remote_addr,
                        "error": str(err),
                        "user": getattr(g, 'current_user', None)
                    }
                )
                raise

            if include_response_time:
                duration = time.time() - start_time
                logger.info(
                    f"API Response: {request.method} {request.path} - {duration:.3f}s",
                    extra={
                        "method": request.method,
                        "path": request.path,
                        "endpoint": request.endpoint,
                        "ip": request.remote_addr,
                        "response_time": duration,
                        "user": getattr(g, 'current_user', None)
                    }
                )

            return response

        return decorated_function
    return decorator


def rate_limit_key_func():
    """Rate limit key: the authenticated user if known, otherwise the client IP."""
    if getattr(g, 'current_user', None):
        return f"user:{g.current_user}"
    return f"ip:{request.remote_addr}"


def apply_rate_limit(limit_str: str):
    """Decorator factory that applies Flask-Limiter limits at runtime.

    The Limiter instance is attached to the app (app.extensions['limiter'])
    after route modules are imported, so binding is deferred to the first
    call and cached per limiter.

    Args:
        limit_str: rate limit string (e.g., '10 per minute')
    """
    def decorator(f):
        bound = {}

        @wraps(f)
        def wrapper(*args, **kwargs):
            limiter = current_app.extensions.get('limiter')
            if limiter is None:
                return f(*args, **kwargs)

            limited = bound.get(id(limiter))
            if limited is None:
                limited = bound[id(limiter)] = limiter.limit(limit_str)(f)
            return limited(*args, **kwargs)

        return wrapper

    return decorator


def apply_security_headers(response):
    for header, value in SECURITY_HEADERS.items():
        response.headers[header] = value
    return response


def security_headers():
    """Decorator to add security headers to responses."""
    def decorator(f: Callable) -> Callable:
        @wraps(f)
        def decorated_function(*args, **kwargs):
            response = current_app.make_response(f(*args, **kwargs))
            return apply_security_headers(response)

        return decorated_function
    return decorator
