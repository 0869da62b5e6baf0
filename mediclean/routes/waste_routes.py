"""Waste log API endpoints."""

import logging

from flask import Blueprint, g, jsonify

from mediclean.database import with_services
from mediclean.routes.helpers import READ_LIMIT, WRITE_LIMIT, jwt_required, no_content, query_with_paging
from mediclean.security.config import get_rate_limit
from mediclean.security.decorators import (
    apply_rate_limit, log_api_request, require_roles, security_headers, validate_json, validate_query,
)
from mediclean.services.pickup_service import DEFAULT_NEARBY_RADIUS_M
from mediclean.validation.schemas import (
    statistics_query_schema, waste_log_create_schema, waste_log_query_schema, waste_log_update_schema,
    waste_nearby_schema,
)

logger = logging.getLogger(__name__)

bp = Blueprint('waste', __name__)


@bp.route('/', methods=['POST'])
@security_headers()
@log_api_request()
@jwt_required
@apply_rate_limit(WRITE_LIMIT)
@require_roles('clinic')
@validate_json(waste_log_create_schema)
@with_services
def create_waste_log(services):
    """Log produced waste; may raise a monthly threshold alert."""
    return jsonify({'waste_log': services.waste_logs.create(g.user, g.validated_data)}), 201


@bp.route('/', methods=['GET'])
@security_headers()
@log_api_request()
@jwt_required
@apply_rate_limit(READ_LIMIT)
@validate_query(waste_log_query_schema)
@with_services
def list_waste_logs(services):
    filters, page, limit = query_with_paging()
    return jsonify(services.waste_logs.list(g.user, filters, page, limit))


@bp.route('/statistics', methods=['GET'])
@security_headers()
@log_api_request()
@jwt_required
@apply_rate_limit(get_rate_limit('analytics'))
@validate_query(statistics_query_schema)
@with_services
def waste_statistics(services):
    return jsonify(services.waste_logs.statistics(g.user, g.query_params))


@bp.route('/nearby', methods=['GET'])
@security_headers()
@log_api_request()
@jwt_required
@apply_rate_limit(READ_LIMIT)
@validate_query(waste_nearby_schema)
@with_services
def nearby_waste_logs(services):
    params = dict(g.query_params)
    coordinates = (params.pop('longitude'), params.pop('latitude'))
    radius = params.pop('radius', None) or DEFAULT_NEARBY_RADIUS_M
    logs = services.waste_logs.nearby(g.user, coordinates, radius, params)
    return jsonify({'waste_logs': logs, 'total': len(logs)})


@bp.route('/<int:log_id>', methods=['GET'])
@security_headers()
@log_api_request()
@jwt_required
@apply_rate_limit(READ_LIMIT)
@with_services
def get_waste_log(services, log_id: int):
    return jsonify({'waste_log': services.waste_logs.get(g.user, log_id)})


@bp.route('/<int:log_id>', methods=['PATCH'])
@security_headers()
@log_api_request()
@jwt_required
@apply_rate_limit(WRITE_LIMIT)
@validate_json(waste_log_update_schema)
@with_services
def update_waste_log(services, log_id: int):
    """Edit a log within its edit window; owner or admin."""
    return jsonify({'waste_log': services.waste_logs.update(g.user, log_id, g.validated_data)})


@bp.route('/<int:log_id>', methods=['DELETE'])
@security_headers()
@log_api_request()
@jwt_required
@apply_rate_limit(WRITE_LIMIT)
@with_services
def delete_waste_log(services, log_id: int):
    services.waste_logs.delete(g.user, log_id)
    return no_content()
