"""Security module for API protection.

Provides authentication, authorization, rate limiting, and input validation.
"""

from .config import init_security, SecurityConfig, get_rate_limit, cors_origin
from .decorators import (
    validate_json, validate_query, jwt_required_with_logging, require_roles,
    log_api_request, security_headers, rate_limit_key_func, apply_rate_limit
)

__all__ = [
    'init_security',
    'SecurityConfig',
    'get_rate_limit',
    'cors_origin',
    'validate_json',
    'validate_query',
    'jwt_required_with_logging',
    'require_roles',
    'log_api_request',
    'security_headers',
    'rate_limit_key_func',
    'apply_rate_limit'
]
