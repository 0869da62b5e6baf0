"""Pickup request API endpoints.

Creation (regular and emergency), role-specific listings, the status
lifecycle, collector assignment, bulk operations and statistics.
"""

import logging

from flask import Blueprint, g, jsonify

from mediclean.database import with_services
from mediclean.routes.helpers import (
    READ_LIMIT, WRITE_LIMIT, admin_required, jwt_required, no_content, query_with_paging,
)
from mediclean.security.config import get_rate_limit
from mediclean.security.decorators import (
    apply_rate_limit, log_api_request, require_roles, security_headers, validate_json, validate_query,
)
from mediclean.validation.schemas import (
    assign_collector_schema, bulk_assign_schema, bulk_status_schema, cancel_pickup_schema,
    emergency_pickup_schema, pickup_create_schema, pickup_nearby_schema, pickup_query_schema,
    pickup_update_schema, priority_update_schema, statistics_query_schema,
)

logger = logging.getLogger(__name__)

bp = Blueprint('pickup', __name__)


@bp.route('/request', methods=['POST'])
@security_headers()
@log_api_request()
@jwt_required
@apply_rate_limit(WRITE_LIMIT)
@require_roles('clinic')
@validate_json(pickup_create_schema)
@with_services
def create_pickup_request(services):
    """Create a pickup request for the calling clinic."""
    pickup = services.pickups.create(g.user, g.validated_data)
    return jsonify({'pickup_request': pickup}), 201


@bp.route('/emergency', methods=['POST'])
@security_headers()
@log_api_request()
@jwt_required
@apply_rate_limit(get_rate_limit('emergency'))
@require_roles('clinic')
@validate_json(emergency_pickup_schema)
@with_services
def create_emergency_pickup(services):
    """Create an urgent emergency pickup and alert the admins."""
    pickup = services.pickups.create(g.user, g.validated_data, emergency=True)
    return jsonify({'pickup_request': pickup}), 201


@bp.route('/history', methods=['GET'])
@security_headers()
@log_api_request()
@jwt_required
@apply_rate_limit(READ_LIMIT)
@require_roles('clinic')
@validate_query(pickup_query_schema)
@with_services
def pickup_history(services):
    filters, page, limit = query_with_paging()
    return jsonify(services.pickups.history(g.user, filters, page, limit))


@bp.route('/collector', methods=['GET'])
@security_headers()
@log_api_request()
@jwt_required
@apply_rate_limit(READ_LIMIT)
@require_roles('collector')
@validate_query(pickup_query_schema)
@with_services
def collector_queue(services):
    filters, page, limit = query_with_paging()
    return jsonify(services.pickups.collector_queue(g.user, filters, page, limit))


@bp.route('/all', methods=['GET'])
@security_headers()
@log_api_request()
@jwt_required
@apply_rate_limit(READ_LIMIT)
@require_roles('admin', 'health')
@validate_query(pickup_query_schema)
@with_services
def list_all_pickups(services):
    """All requests, urgent first, with status and priority counts."""
    filters, page, limit = query_with_paging()
    return jsonify(services.pickups.list_all(g.user, filters, page, limit))


@bp.route('/statistics', methods=['GET'])
@security_headers()
@log_api_request()
@jwt_required
@apply_rate_limit(get_rate_limit('analytics'))
@validate_query(statistics_query_schema)
@with_services
def pickup_statistics(services):
    return jsonify(services.pickups.statistics(g.user, g.query_params))


@bp.route('/nearby', methods=['GET'])
@security_headers()
@log_api_request()
@jwt_required
@apply_rate_limit(READ_LIMIT)
@require_roles('collector', 'admin')
@validate_query(pickup_nearby_schema)
@with_services
def nearby_pickups(services):
    """Requests around a point; pending ones unless a status is given."""
    params = dict(g.query_params)
    coordinates = (params.pop('longitude'), params.pop('latitude'))
    radius = params.pop('radius', None)
    pickups = services.pickups.nearby(g.user, coordinates, radius, params)
    return jsonify({'pickup_requests': pickups, 'total': len(pickups)})


@bp.route('/bulk/assign', methods=['POST'])
@security_headers()
@log_api_request()
@jwt_required
@apply_rate_limit(get_rate_limit('bulk'))
@admin_required
@validate_json(bulk_assign_schema)
@with_services
def bulk_assign(services):
    """Assign collectors to many pending requests; all or nothing."""
    result = services.pickups.bulk_assign(g.user, g.validated_data['assignments'])
    return jsonify({
        'message': 'Collectors assigned successfully',
        'updated_count': result['modified_count']
    })


@bp.route('/bulk/status', methods=['PATCH'])
@security_headers()
@log_api_request()
@jwt_required
@apply_rate_limit(get_rate_limit('bulk'))
@require_roles('admin', 'collector')
@validate_json(bulk_status_schema)
@with_services
def bulk_update_status(services):
    """Apply many status changes; nothing is applied if any item is invalid."""
    result = services.pickups.bulk_update_status(g.user, g.validated_data['updates'])
    return jsonify({
        'message': 'Pickup statuses updated successfully',
        'updated_count': result['modified_count']
    })


@bp.route('/<int:pickup_id>', methods=['GET'])
@security_headers()
@log_api_request()
@jwt_required
@apply_rate_limit(READ_LIMIT)
@with_services
def get_pickup(services, pickup_id: int):
    return jsonify({'pickup_request': services.pickups.get(g.user, pickup_id)})


@bp.route('/<int:pickup_id>', methods=['PATCH'])
@security_headers()
@log_api_request()
@jwt_required
@apply_rate_limit(WRITE_LIMIT)
@validate_json(pickup_update_schema)
@with_services
def update_pickup(services, pickup_id: int):
    """Update details or status, depending on the caller's role."""
    return jsonify({'pickup_request': services.pickups.update(g.user, pickup_id, g.validated_data)})


@bp.route('/<int:pickup_id>/assign', methods=['PATCH'])
@security_headers()
@log_api_request()
@jwt_required
@apply_rate_limit(WRITE_LIMIT)
@admin_required
@validate_json(assign_collector_schema)
@with_services
def assign_collector(services, pickup_id: int):
    data = g.validated_data
    pickup = services.pickups.assign(g.user, pickup_id, data['collector_id'], data.get('note'))
    return jsonify({'pickup_request': pickup})


@bp.route('/<int:pickup_id>/priority', methods=['PATCH'])
@security_headers()
@log_api_request()
@jwt_required
@apply_rate_limit(WRITE_LIMIT)
@admin_required
@validate_json(priority_update_schema)
@with_services
def update_priority(services, pickup_id: int):
    data = g.validated_data
    pickup = services.pickups.update_priority(g.user, pickup_id, data['priority'], data.get('note'))
    return jsonify({'pickup_request': pickup})


@bp.route('/<int:pickup_id>/cancel', methods=['PATCH'])
@security_headers()
@log_api_request()
@jwt_required
@apply_rate_limit(WRITE_LIMIT)
@require_roles('clinic', 'admin')
@validate_json(cancel_pickup_schema)
@with_services
def cancel_pickup(services, pickup_id: int):
    pickup = services.pickups.cancel(g.user, pickup_id, g.validated_data['reason'])
    return jsonify({'pickup_request': pickup})


@bp.route('/<int:pickup_id>', methods=['DELETE'])
@security_headers()
@log_api_request()
@jwt_required
@apply_rate_limit(WRITE_LIMIT)
@admin_required
@with_services
def delete_pickup(services, pickup_id: int):
    services.pickups.delete(g.user, pickup_id)
    return no_content()
