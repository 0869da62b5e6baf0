#!/usr/bin/env python3
"""Generate due scheduled reports and remove expired ones.

Meant to run from cron, e.g. every 15 minutes:
*/15 * * * * cd /srv/mediclean && python3 scripts/run_scheduled_reports.py
"""

import argparse
import logging
import sys
from pathlib import Path

# Add project root to Python path
project_root = Path(__file__).parent.parent
sys.path.insert(0, str(project_root))

from mediclean import create_app
from mediclean.database import get_repositories
from mediclean.services import ServiceContainer

logger = logging.getLogger(__name__)


def run(app, cleanup: bool = True) -> dict:
    with app.app_context():
        services = ServiceContainer(get_repositories(), config=app.config)
        result = services.reports.run_due()
        if cleanup:
            result['expired_removed'] = services.reports.cleanup_expired()
    logger.info(f"Scheduled report run finished: {result}")
    return result


def main() -> int:
    parser = argparse.ArgumentParser(description="Run due scheduled reports")
    parser.add_argument('--no-cleanup', action='store_true', help='Skip removal of expired reports')
    args = parser.parse_args()

    result = run(create_app(), cleanup=not args.no_cleanup)
    return 1 if result.get('failed') else 0


if __name__ == "__main__":
    sys.exit(main())
