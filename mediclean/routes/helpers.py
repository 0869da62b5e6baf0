"""Small helpers shared by the API blueprints."""

from typing import Any, Dict, Tuple

from flask import g

from mediclean.security.config import get_rate_limit
from mediclean.security.decorators import jwt_required_with_logging, require_roles

jwt_required = jwt_required_with_logging()
admin_required = require_roles('admin')

READ_LIMIT = get_rate_limit('read')
WRITE_LIMIT = get_rate_limit('write')


def query_with_paging() -> Tuple[Dict[str, Any], int, int]:
    """Split validated query parameters into (filters, page, limit)."""
    filters = dict(getattr(g, 'query_params', {}))
    page = filters.pop('page', 1)
    limit = filters.pop('limit', 10)
    return filters, page, limit


def no_content():
    return '', 204
