"""Audit log API endpoints; admin only."""

import logging

from flask import Blueprint, g, jsonify

from mediclean.database import with_services
from mediclean.domain.value_objects import EntityType
from mediclean.errors import ValidationError
from mediclean.routes.helpers import READ_LIMIT, WRITE_LIMIT, admin_required, jwt_required, query_with_paging
from mediclean.security.decorators import (
    apply_rate_limit, log_api_request, security_headers, validate_json, validate_query,
)
from mediclean.validation.schemas import (
    audit_cleanup_schema, audit_critical_query_schema, audit_query_schema, date_range_query_schema,
)

logger = logging.getLogger(__name__)

bp = Blueprint('audit', __name__)


@bp.route('/', methods=['GET'])
@security_headers()
@log_api_request()
@jwt_required
@apply_rate_limit(READ_LIMIT)
@admin_required
@validate_query(audit_query_schema)
@with_services
def search_audit_logs(services):
    filters, page, limit = query_with_paging()
    return jsonify(services.audit.search(filters, page, limit))


@bp.route('/recent', methods=['GET'])
@security_headers()
@log_api_request()
@jwt_required
@apply_rate_limit(READ_LIMIT)
@admin_required
@with_services
def recent_activity(services):
    return jsonify({'logs': services.audit.recent_activity()})


@bp.route('/critical', methods=['GET'])
@security_headers()
@log_api_request()
@jwt_required
@apply_rate_limit(READ_LIMIT)
@admin_required
@validate_query(audit_critical_query_schema)
@with_services
def critical_events(services):
    """Critical entries and failed actions."""
    filters, page, limit = query_with_paging()
    return jsonify(services.audit.critical_events(page, limit, filters.get('days')))


@bp.route('/statistics', methods=['GET'])
@security_headers()
@log_api_request()
@jwt_required
@apply_rate_limit(READ_LIMIT)
@admin_required
@validate_query(date_range_query_schema)
@with_services
def audit_statistics(services):
    return jsonify(services.audit.statistics(g.query_params))


@bp.route('/entity/<string:entity_type>/<int:entity_id>', methods=['GET'])
@security_headers()
@log_api_request()
@jwt_required
@apply_rate_limit(READ_LIMIT)
@admin_required
@with_services
def entity_history(services, entity_type: str, entity_id: int):
    if entity_type not in EntityType.values():
        raise ValidationError(f"Unknown entity type: {entity_type}",
                              details={'allowed': EntityType.values()})
    return jsonify({'logs': services.audit.entity_history(entity_type, entity_id)})


@bp.route('/cleanup', methods=['POST'])
@security_headers()
@log_api_request()
@jwt_required
@apply_rate_limit(WRITE_LIMIT)
@admin_required
@validate_json(audit_cleanup_schema)
@with_services
def cleanup_audit_logs(services):
    """Delete entries older than the retention period."""
    deleted = services.audit.cleanup(g.validated_data.get('retention_days'))
    return jsonify({'message': 'Old audit entries removed', 'deleted_count': deleted})
