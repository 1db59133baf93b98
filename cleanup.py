"""
Run the session janitor once.

Meant for an external scheduler, e.g. a cron entry:

    */30 * * * * cd /srv/app && python cleanup.py
"""

import sys

from core.config import settings
from core.database import create_db_engine, create_session_factory
from core.errors import StoreUnavailable
from core.logging_config import setup_logging
from services.janitor_service import JanitorService
from utils.logger import get_logger

logger = get_logger(__name__)


def main() -> int:
    setup_logging(log_level=settings.LOG_LEVEL, log_dir=settings.LOG_DIR)

    engine = create_db_engine(settings.DATABASE_URL, settings.STORE_TIMEOUT_SECONDS)
    janitor = JanitorService(
        create_session_factory(engine),
        session_retention_days=settings.SESSION_RETENTION_DAYS,
        refresh_retention_days=settings.REFRESH_TOKEN_RETENTION_DAYS,
    )
    try:
        deleted = janitor.run()
    except StoreUnavailable:
        logger.error("Cleanup aborted - store unavailable")
        return 1
    finally:
        engine.dispose()

    logger.info("Cleanup finished", extra=deleted)
    return 0


if __name__ == "__main__":
    sys.exit(main())
