import os
import sys

import pytest
from sqlalchemy import create_engine
from sqlalchemy.orm import sessionmaker

# Ensure repo root is on sys.path so tests can import the app package
REPO_ROOT = os.path.dirname(os.path.dirname(__file__))
if REPO_ROOT not in sys.path:
    sys.path.insert(0, REPO_ROOT)

from mediclean import create_app  # noqa: E402
from mediclean.database import RepositoryContainer, get_db_session  # noqa: E402
from mediclean.models import Base, User  # noqa: E402
from mediclean.services import ServiceContainer  # noqa: E402
from mediclean.utils.cache import TTLCache  # noqa: E402

PASSWORD = 'Secret@123'
ROME = [12.4964, 41.9028]

TEST_CONFIG = {
    'TESTING': True,
    'RATELIMIT_ENABLED': False,
    'SECRET_KEY': 'test-secret-key',
    'JWT_SECRET_KEY': 'test-jwt-secret-key-long-enough-for-hs256',
    'LOG_LEVEL': 'WARNING',
}

SERVICE_CONFIG = {
    'PICKUP_MAX_ACTIVE_REQUESTS': 3,
    'PICKUP_CANCELLATION_WINDOW_HOURS': 48,
    'WASTE_LOG_EDIT_WINDOW_HOURS': 24,
    'WASTE_MONTHLY_THRESHOLD_KG': 100.0,
    'AUDIT_RETENTION_DAYS': 90,
}


def make_user(session, role, username, password=PASSWORD, location=ROME, **fields):
    """Insert an active user directly, bypassing registration rules."""
    user = User(
        username=username,
        email=f"{username}@example.com",
        role=role,
        status='active',
        is_active=True,
        **fields,
    )
    if location:
        user.longitude, user.latitude = location
    user.set_password(password)
    session.add(user)
    session.commit()
    session.refresh(user)
    return user


@pytest.fixture
def app(tmp_path):
    db_file = tmp_path / "mediclean_test.db"
    app = create_app({**TEST_CONFIG, 'DATABASE_URL': f"sqlite:///{db_file}"})
    app.init_db()
    yield app
    app.extensions['db_engine'].dispose()


@pytest.fixture
def client(app):
    with app.test_client() as client:
        yield client


@pytest.fixture
def users(app):
    """One active user per role; returns their ids keyed by role."""
    with app.app_context():
        session = get_db_session()
        return {
            role: make_user(session, role, f"{role}_user").id
            for role in ('admin', 'clinic', 'collector', 'health')
        }


@pytest.fixture
def login(client, users):
    def _login(role, password=PASSWORD):
        r = client.post('/api/v1/auth/login', json={'identifier': f"{role}_user", 'password': password})
        assert r.status_code == 200, r.get_json()
        return {'Authorization': f"Bearer {r.get_json()['access_token']}"}
    return _login


# Service-level fixtures run against a plain in-memory session, no Flask app


@pytest.fixture
def session():
    engine = create_engine('sqlite://')
    Base.metadata.create_all(bind=engine)
    db = sessionmaker(bind=engine)()
    try:
        yield db
    finally:
        db.close()
        engine.dispose()


@pytest.fixture
def services(session):
    return ServiceContainer(RepositoryContainer(session), config=SERVICE_CONFIG, cache=TTLCache())


@pytest.fixture
def actors(session):
    return {
        'admin': make_user(session, 'admin', 'admin_one'),
        'clinic': make_user(session, 'clinic', 'clinic_one'),
        'other_clinic': make_user(session, 'clinic', 'clinic_two', location=[9.19, 45.4642]),
        'collector': make_user(session, 'collector', 'collector_one'),
        'health': make_user(session, 'health', 'health_one'),
    }
