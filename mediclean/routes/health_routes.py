"""Health check endpoint."""

import datetime
import logging

from flask import Blueprint, jsonify
from sqlalchemy import text
from sqlalchemy.exc import SQLAlchemyError

from mediclean.database import get_db_session
from mediclean.security.decorators import log_api_request, security_headers

logger = logging.getLogger(__name__)

bp = Blueprint('health', __name__)


@bp.route('/health')
@security_headers()
@log_api_request()
def health_check():
    """Health check endpoint; not rate limited."""
    timestamp = datetime.datetime.utcnow().isoformat()
    try:
        get_db_session().execute(text('SELECT 1'))
    except SQLAlchemyError as e:
        logger.error(f"Health check failed: {e}")
        return jsonify({
            "status": "error",
            "database": "disconnected",
            "timestamp": timestamp
        }), 503

    return jsonify({
        "status": "ok",
        "database": "connected",
        "timestamp": timestamp
    })
