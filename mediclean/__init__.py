import logging

from flask import Flask, request
from sqlalchemy import create_engine
from sqlalchemy.orm import sessionmaker

from .config import settings
from .database import close_db_session
from .docs import init_api_docs
from .errors import register_error_handlers
from .routes import BLUEPRINTS
from .security.config import SecurityConfig, cors_origin, init_security
from .utils.cache import TTLCache

LOG_FORMAT = "%(asctime)s %(levelname)s %(name)s %(message)s"


def configure_logging(level: str, log_file: str = '') -> None:
    root = logging.getLogger()
    root.setLevel(getattr(logging, str(level).upper(), logging.INFO))
    if not root.handlers:
        handler = logging.StreamHandler()
        handler.setFormatter(logging.Formatter(LOG_FORMAT))
        root.addHandler(handler)
    if log_file and not any(
        isinstance(h, logging.FileHandler) and h.baseFilename.endswith(log_file) for h in root.handlers
    ):
        file_handler = logging.FileHandler(log_file)
        file_handler.setFormatter(logging.Formatter(LOG_FORMAT))
        root.addHandler(file_handler)


def create_app(test_config=None):
    app = Flask(__name__)

    # Load configuration from settings, then apply overrides
    app.config.from_mapping(settings.as_dict())
    if test_config:
        app.config.update(test_config)

    configure_logging(app.config['LOG_LEVEL'], app.config.get('LOG_FILE', ''))
    settings.validate(app.config)

    # Configure SQLAlchemy engine/session using the effective DATABASE_URL
    db_uri = app.config['DATABASE_URL']

    if db_uri.startswith('postgresql'):
        engine = create_engine(
            db_uri,
            pool_size=10,
            max_overflow=20,
            pool_pre_ping=True,
            pool_recycle=3600,
            echo=app.config.get('SQL_ECHO', False)
        )
    else:
        engine = create_engine(
            db_uri,
            connect_args={"check_same_thread": False},
            echo=app.config.get('SQL_ECHO', False)
        )

    SessionLocal = sessionmaker(bind=engine)

    app.extensions["db_engine"] = engine
    app.extensions["db_session_factory"] = SessionLocal
    app.extensions["pickup_cache"] = TTLCache(
        ttl_seconds=app.config['PICKUP_CACHE_TTL_SECONDS'],
        max_entries=app.config['PICKUP_CACHE_MAX_ENTRIES'],
    )
    app.teardown_appcontext(close_db_session)

    # Initialize security (JWT, rate limiting, security headers)
    jwt_manager, limiter = init_security(app)
    app.extensions["jwt_manager"] = jwt_manager
    app.extensions["limiter"] = limiter

    @app.after_request
    def add_cors_headers(response):
        origin = cors_origin(app.config['CORS_ORIGINS'], request.headers.get('Origin'))
        if origin:
            response.headers['Access-Control-Allow-Origin'] = origin
            response.headers['Access-Control-Allow-Methods'] = ', '.join(SecurityConfig.CORS_METHODS)
            response.headers['Access-Control-Allow-Headers'] = ', '.join(SecurityConfig.CORS_HEADERS)
            if origin != '*':
                response.headers['Vary'] = 'Origin'
        return response

    register_error_handlers(app)

    for blueprint, url_prefix in BLUEPRINTS:
        app.register_blueprint(blueprint, url_prefix=url_prefix)
    init_api_docs(app)

    # helper to create DB tables based on SQLAlchemy models
    def init_db():
        from .models import Base

        Base.metadata.create_all(bind=engine)
        logging.getLogger(__name__).info("Database tables created")

    app.init_db = init_db

    return app
