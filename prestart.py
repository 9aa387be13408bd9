"""Ждет готовности базы и применяет миграции перед запуском API."""
import logging
import sys
import time

from alembic import command
from alembic.config import Config
from sqlalchemy import create_engine
from sqlalchemy.exc import OperationalError

from branch_logistics.core.config import settings

logging.basicConfig(level=logging.INFO)
logger = logging.getLogger(__name__)

MAX_TRIES = 60
WAIT_SECONDS = 1


def _sync_db_url() -> str:
    return settings.database_url.replace("+asyncpg", "+psycopg2")


def check_db_connection() -> bool:
    engine = create_engine(_sync_db_url())
    try:
        for _ in range(MAX_TRIES):
            try:
                with engine.connect():
                    logger.info("Database connection successful.")
                    return True
            except OperationalError:
                logger.info("Database not ready yet, waiting %s second(s)...", WAIT_SECONDS)
                time.sleep(WAIT_SECONDS)
    finally:
        engine.dispose()
    logger.error("Could not connect to the database after multiple attempts.")
    return False


def run_migrations() -> None:
    logger.info("Running database migrations...")
    alembic_cfg = Config("alembic.ini")
    alembic_cfg.set_main_option("script_location", "migrations")
    command.upgrade(alembic_cfg, "head")
    logger.info("Migrations applied successfully.")


def main() -> int:
    if not check_db_connection():
        return 1
    run_migrations()
    return 0


if __name__ == "__main__":
    sys.exit(main())
