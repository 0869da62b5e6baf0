"""API blueprints.

Each blueprint is registered by ``create_app`` under its ``/api/v1`` prefix.
"""

from .audit_routes import bp as audit_bp
from .auth_routes import bp as auth_bp
from .health_routes import bp as health_bp
from .notification_routes import bp as notification_bp
from .pickup_routes import bp as pickup_bp
from .report_routes import bp as report_bp
from .statistics_routes import bp as statistics_bp
from .user_routes import bp as user_bp
from .waste_routes import bp as waste_bp

API_PREFIX = '/api/v1'

# (blueprint, url_prefix)
BLUEPRINTS = [
    (health_bp, API_PREFIX),
    (auth_bp, f'{API_PREFIX}/auth'),
    (user_bp, f'{API_PREFIX}/users'),
    (waste_bp, f'{API_PREFIX}/waste'),
    (pickup_bp, f'{API_PREFIX}/pickup'),
    (notification_bp, f'{API_PREFIX}/notifications'),
    (report_bp, f'{API_PREFIX}/reports'),
    (statistics_bp, f'{API_PREFIX}/statistics'),
    (audit_bp, f'{API_PREFIX}/audit'),
]

__all__ = [
    'API_PREFIX', 'BLUEPRINTS', 'audit_bp', 'auth_bp', 'health_bp', 'notification_bp',
    'pickup_bp', 'report_bp', 'statistics_bp', 'user_bp', 'waste_bp',
]
