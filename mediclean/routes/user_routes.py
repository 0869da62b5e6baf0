"""User management API endpoints."""

import logging

from flask import Blueprint, g, jsonify

from mediclean.database import with_services
from mediclean.routes.helpers import (
    READ_LIMIT, WRITE_LIMIT, admin_required, jwt_required, no_content, query_with_paging,
)
from mediclean.security.decorators import (
    apply_rate_limit, log_api_request, require_roles, security_headers, validate_json, validate_query,
)
from mediclean.validation.schemas import (
    admin_user_update_schema, collector_nearby_schema, document_schema,
    notification_preferences_schema, profile_update_schema, service_area_schema, user_search_schema,
)

logger = logging.getLogger(__name__)

bp = Blueprint('users', __name__)


@bp.route('/', methods=['GET'])
@security_headers()
@log_api_request()
@jwt_required
@apply_rate_limit(READ_LIMIT)
@admin_required
@validate_query(user_search_schema)
@with_services
def search_users(services):
    """Search users by role, status and username/email fragment."""
    filters, page, limit = query_with_paging()
    return jsonify(services.users.search(g.user, filters, page, limit))


@bp.route('/<int:user_id>', methods=['GET'])
@security_headers()
@log_api_request()
@jwt_required
@apply_rate_limit(READ_LIMIT)
@with_services
def get_user(services, user_id: int):
    return jsonify({'user': services.users.get_user(g.user, user_id)})


@bp.route('/me', methods=['PATCH'])
@security_headers()
@log_api_request()
@jwt_required
@apply_rate_limit(WRITE_LIMIT)
@validate_json(profile_update_schema)
@with_services
def update_profile(services):
    return jsonify({'user': services.users.update_profile(g.user, g.validated_data)})


@bp.route('/<int:user_id>', methods=['PATCH'])
@security_headers()
@log_api_request()
@jwt_required
@apply_rate_limit(WRITE_LIMIT)
@admin_required
@validate_json(admin_user_update_schema)
@with_services
def admin_update_user(services, user_id: int):
    """Change another user's status or role."""
    return jsonify({'user': services.users.admin_update(g.user, user_id, g.validated_data)})


@bp.route('/<int:user_id>', methods=['DELETE'])
@security_headers()
@log_api_request()
@jwt_required
@apply_rate_limit(WRITE_LIMIT)
@with_services
def delete_user(services, user_id: int):
    services.users.delete_account(g.user, user_id)
    return no_content()


@bp.route('/me/notification-preferences', methods=['PUT'])
@security_headers()
@log_api_request()
@jwt_required
@apply_rate_limit(WRITE_LIMIT)
@validate_json(notification_preferences_schema)
@with_services
def update_notification_preferences(services):
    preferences = services.users.update_notification_preferences(g.user, g.validated_data['preferences'])
    return jsonify({'notification_preferences': preferences})


@bp.route('/me/service-area', methods=['PUT'])
@security_headers()
@log_api_request()
@jwt_required
@apply_rate_limit(WRITE_LIMIT)
@require_roles('collector')
@validate_json(service_area_schema)
@with_services
def update_service_area(services):
    data = g.validated_data
    area = services.users.update_service_area(g.user, data['coordinates'], data['radius_km'])
    return jsonify({'service_area': area})


@bp.route('/me/documents', methods=['POST'])
@security_headers()
@log_api_request()
@jwt_required
@apply_rate_limit(WRITE_LIMIT)
@require_roles('collector')
@validate_json(document_schema)
@with_services
def add_document(services):
    return jsonify({'document': services.users.add_document(g.user, g.validated_data)}), 201


@bp.route('/<int:user_id>/verify', methods=['PATCH'])
@security_headers()
@log_api_request()
@jwt_required
@apply_rate_limit(WRITE_LIMIT)
@admin_required
@with_services
def verify_user(services, user_id: int):
    return jsonify({'user': services.users.verify_user(g.user, user_id)})


@bp.route('/collectors/nearby', methods=['GET'])
@security_headers()
@log_api_request()
@jwt_required
@apply_rate_limit(READ_LIMIT)
@validate_query(collector_nearby_schema)
@with_services
def nearby_collectors(services):
    """Active, verified collectors around a point, nearest first."""
    params = g.query_params
    collectors = services.users.nearby_collectors(
        (params['longitude'], params['latitude']), params.get('radius_km')
    )
    return jsonify({'collectors': collectors, 'total': len(collectors)})


@bp.route('/collectors/<int:collector_id>/stats', methods=['GET'])
@security_headers()
@log_api_request()
@jwt_required
@apply_rate_limit(READ_LIMIT)
@with_services
def collector_stats(services, collector_id: int):
    return jsonify(services.users.collector_stats(g.user, collector_id))
