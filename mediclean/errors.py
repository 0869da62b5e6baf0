"""Domain exceptions and their JSON error responses.

Services raise these; ``register_error_handlers`` turns them into the
``{"error", "code", "details"}`` payload every endpoint returns on failure.
"""

import logging
from typing import Any, Optional

from flask import Flask, jsonify
from sqlalchemy.exc import IntegrityError, NoResultFound
from werkzeug.exceptions import HTTPException

logger = logging.getLogger(__name__)


class AppError(Exception):
    """Base class for expected, client-visible failures."""

    status_code = 500
    code = 'INTERNAL_ERROR'

    def __init__(self, message: str, details: Optional[Any] = None, code: Optional[str] = None):
        super().__init__(message)
        self.message = message
        self.details = details
        if code:
            self.code = code

    def to_dict(self) -> dict:
        payload = {'error': self.message, 'code': self.code}
        if self.details is not None:
            payload['details'] = self.details
        return payload


class ValidationError(AppError):
    status_code = 400
    code = 'VALIDATION_ERROR'


class AuthenticationError(AppError):
    status_code = 401
    code = 'AUTHENTICATION_FAILED'


class AuthorizationError(AppError):
    status_code = 403
    code = 'FORBIDDEN'


class NotFoundError(AppError):
    status_code = 404
    code = 'NOT_FOUND'


class ConflictError(AppError):
    status_code = 409
    code = 'CONFLICT'


class InternalError(AppError):
    status_code = 500
    code = 'INTERNAL_ERROR'


def register_error_handlers(app: Flask) -> None:
    """Attach JSON error handlers to the application."""

    @app.errorhandler(AppError)
    def handle_app_error(error: AppError):
        if error.status_code >= 500:
            logger.error(f"Internal error: {error.message}", exc_info=True)
        else:
            logger.info(f"{error.code}: {error.message}")
        return jsonify(error.to_dict()), error.status_code

    @app.errorhandler(NoResultFound)
    def handle_no_result(error: NoResultFound):
        return jsonify({'error': str(error) or 'Resource not found', 'code': 'NOT_FOUND'}), 404

    @app.errorhandler(IntegrityError)
    def handle_integrity_error(error: IntegrityError):
        logger.warning(f"Integrity error: {error.orig}")
        return jsonify({'error': 'Duplicate entry found', 'code': 'DUPLICATE_ENTRY'}), 409

    @app.errorhandler(404)
    def not_found(error):
        return jsonify({'error': 'Endpoint not found', 'code': 'ROUTE_NOT_FOUND'}), 404

    @app.errorhandler(405)
    def method_not_allowed(error):
        return jsonify({'error': 'Method not allowed', 'code': 'METHOD_NOT_ALLOWED'}), 405

    @app.errorhandler(429)
    def too_many_requests(error):
        return jsonify({
            'error': 'Too many requests, please try again later',
            'code': 'RATE_LIMITED',
            'details': getattr(error, 'description', None)
        }), 429

    @app.errorhandler(Exception)
    def internal_error(error: Exception):
        if isinstance(error, HTTPException):
            return jsonify({'error': error.description, 'code': error.name.upper().replace(' ', '_')}), error.code
        logger.exception(f"Unhandled error: {error}")
        return jsonify({'error': 'Internal server error', 'code': 'INTERNAL_ERROR'}), 500
