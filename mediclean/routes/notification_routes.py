"""Notification API endpoints."""

import logging

from flask import Blueprint, g, jsonify

from mediclean.database import with_services
from mediclean.routes.helpers import (
    READ_LIMIT, WRITE_LIMIT, admin_required, jwt_required, no_content, query_with_paging,
)
from mediclean.security.decorators import (
    apply_rate_limit, log_api_request, require_roles, security_headers, validate_json, validate_query,
)
from mediclean.validation.schemas import broadcast_schema, notification_create_schema, notification_query_schema

logger = logging.getLogger(__name__)

bp = Blueprint('notifications', __name__)


@bp.route('/', methods=['GET'])
@security_headers()
@log_api_request()
@jwt_required
@apply_rate_limit(READ_LIMIT)
@validate_query(notification_query_schema)
@with_services
def list_notifications(services):
    """Individual and broadcast notifications of the caller, newest first."""
    filters, page, limit = query_with_paging()
    return jsonify(services.notifications.list_for_user(g.user, filters, page, limit))


@bp.route('/unread-count', methods=['GET'])
@security_headers()
@log_api_request()
@jwt_required
@apply_rate_limit(READ_LIMIT)
@with_services
def unread_count(services):
    return jsonify({'unread_count': services.notifications.unread_count(g.user)})


@bp.route('/', methods=['POST'])
@security_headers()
@log_api_request()
@jwt_required
@apply_rate_limit(WRITE_LIMIT)
@validate_json(notification_create_schema)
@with_services
def create_notification(services):
    notification = services.notifications.create(g.user, g.validated_data)
    return jsonify({'notification': notification}), 201


@bp.route('/broadcast', methods=['POST'])
@security_headers()
@log_api_request()
@jwt_required
@apply_rate_limit(WRITE_LIMIT)
@require_roles('admin', 'health')
@validate_json(broadcast_schema)
@with_services
def create_broadcast(services):
    """Send one notification to every active user of the target roles."""
    notification = services.notifications.create_broadcast(g.user, g.validated_data)
    return jsonify({'notification': notification}), 201


@bp.route('/mark-all-read', methods=['POST'])
@security_headers()
@log_api_request()
@jwt_required
@apply_rate_limit(WRITE_LIMIT)
@with_services
def mark_all_read(services):
    updated = services.notifications.mark_all_read(g.user)
    return jsonify({'message': 'All notifications marked as read', 'updated_count': updated})


@bp.route('/statistics', methods=['GET'])
@security_headers()
@log_api_request()
@jwt_required
@apply_rate_limit(READ_LIMIT)
@admin_required
@with_services
def notification_statistics(services):
    return jsonify(services.notifications.statistics(g.user))


@bp.route('/<int:notification_id>/read', methods=['PATCH'])
@security_headers()
@log_api_request()
@jwt_required
@apply_rate_limit(WRITE_LIMIT)
@with_services
def mark_read(services, notification_id: int):
    return jsonify({'notification': services.notifications.mark_read(g.user, notification_id)})


@bp.route('/<int:notification_id>/archive', methods=['PATCH'])
@security_headers()
@log_api_request()
@jwt_required
@apply_rate_limit(WRITE_LIMIT)
@with_services
def archive(services, notification_id: int):
    return jsonify({'notification': services.notifications.archive(g.user, notification_id)})


@bp.route('/<int:notification_id>', methods=['DELETE'])
@security_headers()
@log_api_request()
@jwt_required
@apply_rate_limit(WRITE_LIMIT)
@with_services
def delete_notification(services, notification_id: int):
    services.notifications.delete(g.user, notification_id)
    return no_content()
