"""Configuration management using environment variables.

Settings are read with python-decouple from the process environment or a
``.env`` file in the working directory.
"""

from decouple import config
from typing import Any, Dict, List, Mapping, Optional


def _csv(value: str) -> List[str]:
    return [item.strip() for item in value.split(',') if item.strip()]


class Config:
    """Base configuration class."""

    # Database
    DATABASE_URL: str = config('DATABASE_URL', default='sqlite:///mediclean.db')

    # Application
    SECRET_KEY: str = config('SECRET_KEY', default='dev-secret-key-change-in-production')
    JWT_SECRET_KEY: str = config('JWT_SECRET_KEY', default='dev-jwt-secret-change-in-production')
    JWT_ACCESS_TOKEN_EXPIRE_MINUTES: int = config('JWT_ACCESS_TOKEN_EXPIRE_MINUTES', default=1440, cast=int)
    JWT_REFRESH_TOKEN_EXPIRE_DAYS: int = config('JWT_REFRESH_TOKEN_EXPIRE_DAYS', default=7, cast=int)
    JWT_AUDIENCE: str = config('JWT_AUDIENCE', default='mediclean')
    JWT_ISSUER: str = config('JWT_ISSUER', default='mediclean-auth')

    # Environment
    DEBUG: bool = config('DEBUG', default=False, cast=bool)
    ENVIRONMENT: str = config('ENVIRONMENT', default='development')

    # Security
    CORS_ORIGINS: List[str] = config('CORS_ORIGINS', default='*', cast=_csv)
    MAX_LOGIN_ATTEMPTS: int = config('MAX_LOGIN_ATTEMPTS', default=5, cast=int)
    ACCOUNT_LOCKOUT_MINUTES: int = config('ACCOUNT_LOCKOUT_MINUTES', default=30, cast=int)
    PASSWORD_RESET_TOKEN_MINUTES: int = config('PASSWORD_RESET_TOKEN_MINUTES', default=10, cast=int)

    # Logging
    LOG_LEVEL: str = config('LOG_LEVEL', default='INFO')
    LOG_FILE: str = config('LOG_FILE', default='')

    # Rate limit storage (empty means in-process memory)
    REDIS_URL: str = config('REDIS_URL', default='')

    # Pickup workflow
    PICKUP_MAX_ACTIVE_REQUESTS: int = config('PICKUP_MAX_ACTIVE_REQUESTS', default=5, cast=int)
    PICKUP_CANCELLATION_WINDOW_HOURS: int = config('PICKUP_CANCELLATION_WINDOW_HOURS', default=48, cast=int)
    PICKUP_CACHE_TTL_SECONDS: int = config('PICKUP_CACHE_TTL_SECONDS', default=300, cast=int)
    PICKUP_CACHE_MAX_ENTRIES: int = config('PICKUP_CACHE_MAX_ENTRIES', default=1000, cast=int)

    # Waste logs
    WASTE_LOG_EDIT_WINDOW_HOURS: int = config('WASTE_LOG_EDIT_WINDOW_HOURS', default=24, cast=int)
    WASTE_MONTHLY_THRESHOLD_KG: float = config('WASTE_MONTHLY_THRESHOLD_KG', default=500.0, cast=float)

    # Audit
    AUDIT_RETENTION_DAYS: int = config('AUDIT_RETENTION_DAYS', default=90, cast=int)

    @property
    def is_postgresql(self) -> bool:
        """Check if using PostgreSQL database."""
        return self.DATABASE_URL.startswith('postgresql')

    @property
    def is_sqlite(self) -> bool:
        """Check if using SQLite database."""
        return self.DATABASE_URL.startswith('sqlite')

    @property
    def is_production(self) -> bool:
        return self.ENVIRONMENT == 'production'

    def as_dict(self) -> Dict[str, Any]:
        """All upper-case settings, ready for ``app.config.from_mapping``."""
        return {name: getattr(self, name) for name in dir(self) if name.isupper()}

    def validate(self, values: Optional[Mapping[str, Any]] = None) -> None:
        """Fail fast on settings that would make the service unsafe to run.

        Args:
            values: Effective settings, e.g. the app config after test
                overrides; defaults to this instance

        Raises:
            RuntimeError: If a required setting is missing or too weak
        """
        values = self.as_dict() if values is None else values
        if not values.get('DATABASE_URL'):
            raise RuntimeError("DATABASE_URL must be set")
        if values.get('ENVIRONMENT') == 'production' and len(values.get('JWT_SECRET_KEY') or '') < 32:
            raise RuntimeError("JWT_SECRET_KEY must be at least 32 characters in production")


class DevelopmentConfig(Config):
    """Development configuration."""
    DEBUG = True


class ProductionConfig(Config):
    """Production configuration."""
    DEBUG = False
    LOG_LEVEL = 'WARNING'


class TestingConfig(Config):
    """Testing configuration."""
    DATABASE_URL = 'sqlite:///test.db'
    DEBUG = True


def get_config() -> Config:
    """Get configuration based on environment."""
    env = config('ENVIRONMENT', default='development')

    if env == 'production':
        return ProductionConfig()
    elif env == 'testing':
        return TestingConfig()
    else:
        return DevelopmentConfig()


# Global config instance
settings = get_config()
