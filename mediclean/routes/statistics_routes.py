"""Statistics API endpoints."""

import logging

from flask import Blueprint, g, jsonify

from mediclean.database import with_services
from mediclean.routes.helpers import jwt_required
from mediclean.security.config import get_rate_limit
from mediclean.security.decorators import apply_rate_limit, log_api_request, security_headers, validate_query
from mediclean.validation.schemas import date_range_query_schema, statistics_query_schema

logger = logging.getLogger(__name__)

bp = Blueprint('statistics', __name__)

ANALYTICS_LIMIT = get_rate_limit('analytics')


@bp.route('/dashboard', methods=['GET'])
@security_headers()
@log_api_request()
@jwt_required
@apply_rate_limit(ANALYTICS_LIMIT)
@validate_query(date_range_query_schema)
@with_services
def dashboard(services):
    """Role-scoped overview, last 30 days by default."""
    params = g.query_params
    return jsonify(services.statistics.dashboard(g.user, params.get('start_date'), params.get('end_date')))


@bp.route('/waste', methods=['GET'])
@security_headers()
@log_api_request()
@jwt_required
@apply_rate_limit(ANALYTICS_LIMIT)
@validate_query(statistics_query_schema)
@with_services
def waste_statistics(services):
    return jsonify(services.statistics.waste_statistics(g.user, g.query_params))


@bp.route('/pickups', methods=['GET'])
@security_headers()
@log_api_request()
@jwt_required
@apply_rate_limit(ANALYTICS_LIMIT)
@validate_query(statistics_query_schema)
@with_services
def pickup_statistics(services):
    return jsonify(services.statistics.pickup_statistics(g.user, g.query_params))


@bp.route('/clinics/<int:clinic_id>/performance', methods=['GET'])
@security_headers()
@log_api_request()
@jwt_required
@apply_rate_limit(ANALYTICS_LIMIT)
@validate_query(date_range_query_schema)
@with_services
def clinic_performance(services, clinic_id: int):
    """Compliance and performance scores of one clinic."""
    params = g.query_params
    return jsonify(services.statistics.clinic_performance(
        g.user, clinic_id, params.get('start_date'), params.get('end_date')
    ))
