"""Authentication API endpoints.

Registration, login, token refresh and revocation, profile and the
password reset and change flows.
"""

import logging

from flask import Blueprint, current_app, g, jsonify

from mediclean.database import with_services
from mediclean.security.config import get_rate_limit
from mediclean.security.decorators import (
    apply_rate_limit, jwt_required_with_logging, log_api_request, security_headers, validate_json,
)
from mediclean.routes.helpers import jwt_required
from mediclean.validation.schemas import (
    change_password_schema, forgot_password_schema, login_schema, register_schema,
    reset_password_schema,
)

logger = logging.getLogger(__name__)

# Registered in create_app with url_prefix='/api/v1/auth'
bp = Blueprint('auth', __name__)

AUTH_LIMIT = get_rate_limit('auth')


@bp.route('/register', methods=['POST'])
@security_headers()
@log_api_request()
@apply_rate_limit(AUTH_LIMIT)
@validate_json(register_schema)
@with_services
def register(services):
    """User registration endpoint.

    Rate limited to prevent spam registration.
    """
    result = services.auth.register(g.validated_data)
    return jsonify({
        'message': 'Registration successful',
        'user': result['user'],
        **result['tokens']
    }), 201


@bp.route('/login', methods=['POST'])
@security_headers()
@log_api_request()
@apply_rate_limit(AUTH_LIMIT)
@validate_json(login_schema)
@with_services
def login(services):
    """User login endpoint; accepts a username or an email as identifier."""
    data = g.validated_data
    result = services.auth.login(data['identifier'], data['password'])
    return jsonify({
        'message': 'Login successful',
        'user': result['user'],
        **result['tokens']
    })


@bp.route('/refresh', methods=['POST'])
@security_headers()
@log_api_request()
@jwt_required_with_logging(refresh=True)
@apply_rate_limit(AUTH_LIMIT)
@with_services
def refresh(services):
    """Token refresh endpoint.

    Requires a valid refresh token.
    """
    return jsonify(services.auth.refresh(g.user))


@bp.route('/logout', methods=['POST'])
@security_headers()
@log_api_request()
@jwt_required
@with_services
def logout(services):
    """Revoke the presented access token."""
    services.auth.logout(g.user, g.jwt_claims['jti'])
    return jsonify({'message': 'Successfully logged out'})


@bp.route('/profile', methods=['GET'])
@security_headers()
@log_api_request()
@jwt_required
def profile():
    return jsonify({'user': g.user.to_dict(include_private=True)})


@bp.route('/forgot-password', methods=['POST'])
@security_headers()
@log_api_request()
@apply_rate_limit(AUTH_LIMIT)
@validate_json(forgot_password_schema)
@with_services
def forgot_password(services):
    """Request a password reset token.

    The answer is the same whether or not the email is registered. The token
    itself is only echoed back in testing or debug mode.
    """
    token = services.auth.forgot_password(g.validated_data['email'])
    body = {'message': 'If the email is registered, a password reset link has been sent'}
    if token and (current_app.config.get('TESTING') or current_app.config.get('DEBUG')):
        body['reset_token'] = token
    return jsonify(body)


@bp.route('/reset-password', methods=['POST'])
@security_headers()
@log_api_request()
@apply_rate_limit(AUTH_LIMIT)
@validate_json(reset_password_schema)
@with_services
def reset_password(services):
    data = g.validated_data
    result = services.auth.reset_password(data['token'], data['password'])
    return jsonify({
        'message': 'Password has been reset',
        'user': result['user'],
        **result['tokens']
    })


@bp.route('/change-password', methods=['POST'])
@security_headers()
@log_api_request()
@jwt_required
@apply_rate_limit(AUTH_LIMIT)
@validate_json(change_password_schema)
@with_services
def change_password(services):
    """Change the password; previously issued tokens stop working."""
    data = g.validated_data
    result = services.auth.change_password(g.user, data['current_password'], data['new_password'])
    return jsonify({
        'message': 'Password changed successfully',
        **result['tokens']
    })
