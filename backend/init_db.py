"""
Create the database schema.

The service also does this on every start; run this script to prepare a
database ahead of time:
    python init_db.py
"""

import logging
import sys

from urlshort.config import get_settings
from urlshort.core.exceptions import StorageError
from urlshort.database import create_db_engine
from urlshort.logging_config import setup_logging
from urlshort.services.url_store import UrlStore


def init_database() -> int:
    """Create all database tables"""
    settings = get_settings()
    setup_logging(settings.LOG_LEVEL, settings.LOG_FORMAT)
    logger = logging.getLogger("urlshort.init_db")

    engine = create_db_engine(settings.DATABASE_URL)
    try:
        UrlStore(engine, logger=logger).init_schema()
    except StorageError as e:
        logger.error("Database initialization failed", extra={"error": str(e)})
        return 1
    finally:
        engine.dispose()

    return 0


if __name__ == "__main__":
    sys.exit(init_database())
