#!/usr/bin/env python3
"""Create the database tables and an initial admin account.

Usage (from repo root):
python3 scripts/init_db.py --username admin --email admin@mediclean.local --password 'Admin@123'
"""

import argparse
import logging
import sys
from pathlib import Path

# Add project root to Python path
project_root = Path(__file__).parent.parent
sys.path.insert(0, str(project_root))

from mediclean import create_app
from mediclean.database import get_db_session
from mediclean.domain.value_objects import DEFAULT_NOTIFICATION_PREFERENCES, UserRole, UserStatus
from mediclean.models import User
from mediclean.repositories import UserRepository

logger = logging.getLogger(__name__)


def create_admin(username: str, email: str, password: str) -> bool:
    """Create the admin account unless the username or email exists.

    Returns:
        True when a new account was created
    """
    users = UserRepository(get_db_session())
    if users.username_or_email_taken(username, email):
        logger.info(f"Admin user {username} already exists, skipping")
        return False

    admin = User(
        username=username,
        email=email.lower(),
        role=UserRole.ADMIN.value,
        status=UserStatus.ACTIVE.value,
        is_active=True,
        is_verified=True,
        notification_preferences=dict(DEFAULT_NOTIFICATION_PREFERENCES),
    )
    admin.set_password(password)
    users.add(admin)
    logger.info(f"Admin user {username} created")
    return True


def main() -> int:
    parser = argparse.ArgumentParser(description="Initialize the MediClean database")
    parser.add_argument('--username', default='admin')
    parser.add_argument('--email', default='admin@mediclean.local')
    parser.add_argument('--password', required=True, help='Must satisfy the password policy')
    args = parser.parse_args()

    app = create_app()
    with app.app_context():
        app.init_db()
        create_admin(args.username, args.email, args.password)
    return 0


if __name__ == "__main__":
    sys.exit(main())
