"""Report API endpoints: generation, scheduling, listing and export."""

import io
import logging

from flask import Blueprint, g, jsonify, send_file

from mediclean.database import with_services
from mediclean.routes.helpers import (
    READ_LIMIT, WRITE_LIMIT, admin_required, jwt_required, no_content, query_with_paging,
)
from mediclean.security.config import get_rate_limit
from mediclean.security.decorators import (
    apply_rate_limit, log_api_request, require_roles, security_headers, validate_json, validate_query,
)
from mediclean.validation.schemas import (
    report_download_schema, report_generate_schema, report_query_schema, report_schedule_schema,
)

logger = logging.getLogger(__name__)

bp = Blueprint('reports', __name__)


@bp.route('/generate', methods=['POST'])
@security_headers()
@log_api_request()
@jwt_required
@apply_rate_limit(get_rate_limit('analytics'))
@validate_json(report_generate_schema)
@with_services
def generate_report(services):
    """Generate a waste, pickup or clinic performance report synchronously."""
    return jsonify({'report': services.reports.generate(g.user, g.validated_data)}), 201


@bp.route('/schedule', methods=['POST'])
@security_headers()
@log_api_request()
@jwt_required
@apply_rate_limit(WRITE_LIMIT)
@require_roles('admin', 'health')
@validate_json(report_schedule_schema)
@with_services
def schedule_report(services):
    return jsonify({'report': services.reports.schedule(g.user, g.validated_data)}), 201


@bp.route('/run-due', methods=['POST'])
@security_headers()
@log_api_request()
@jwt_required
@apply_rate_limit(WRITE_LIMIT)
@admin_required
@with_services
def run_due_reports(services):
    """Generate every scheduled report whose next run has passed."""
    return jsonify(services.reports.run_due())


@bp.route('/cleanup', methods=['POST'])
@security_headers()
@log_api_request()
@jwt_required
@apply_rate_limit(WRITE_LIMIT)
@admin_required
@with_services
def cleanup_reports(services):
    deleted = services.reports.cleanup_expired()
    return jsonify({'message': 'Expired reports removed', 'deleted_count': deleted})


@bp.route('/', methods=['GET'])
@security_headers()
@log_api_request()
@jwt_required
@apply_rate_limit(READ_LIMIT)
@validate_query(report_query_schema)
@with_services
def list_reports(services):
    filters, page, limit = query_with_paging()
    return jsonify(services.reports.list(g.user, filters, page, limit))


@bp.route('/<int:report_id>', methods=['GET'])
@security_headers()
@log_api_request()
@jwt_required
@apply_rate_limit(READ_LIMIT)
@with_services
def get_report(services, report_id: int):
    return jsonify({'report': services.reports.get(g.user, report_id)})


@bp.route('/<int:report_id>/download', methods=['GET'])
@security_headers()
@log_api_request()
@jwt_required
@apply_rate_limit(READ_LIMIT)
@validate_query(report_download_schema)
@with_services
def download_report(services, report_id: int):
    """Export a completed report as json, csv or excel."""
    body, mimetype, filename = services.reports.download(g.user, report_id, g.query_params.get('format'))
    if isinstance(body, str):
        body = body.encode('utf-8')
    return send_file(io.BytesIO(body), mimetype=mimetype, as_attachment=True, download_name=filename)


@bp.route('/<int:report_id>', methods=['DELETE'])
@security_headers()
@log_api_request()
@jwt_required
@apply_rate_limit(WRITE_LIMIT)
@with_services
def delete_report(services, report_id: int):
    services.reports.delete(g.user, report_id)
    return no_content()
