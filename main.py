"""Точка входа: инициализация логирования, мониторинга и базы данных

The scheduling core is a library; this module prepares the process that
hosts it (an API, a worker, a shell) and can be run directly to create
the schema.
"""

import asyncio
import logging
import sys

import sentry_sdk
from sentry_sdk.integrations.logging import LoggingIntegration

from config import (
    DB_TYPE,
    LOG_FILE,
    SENTRY_DSN,
    SENTRY_ENABLED,
    SENTRY_ENVIRONMENT,
    SENTRY_TRACES_SAMPLE_RATE,
)
from database.db_adapter import db_adapter
from database.queries import Database

logger = logging.getLogger(__name__)


def setup_logging() -> None:
    """stdout + файл, формат как в config"""
    logging.basicConfig(
        level=logging.INFO,
        format="%(asctime)s - %(name)s - %(levelname)s - %(message)s",
        handlers=[
            logging.StreamHandler(sys.stdout),
            logging.FileHandler(LOG_FILE, encoding="utf-8"),
        ],
        force=True,
    )


def init_sentry() -> bool:
    """Инициализация Sentry (если включён)"""
    if not (SENTRY_ENABLED and SENTRY_DSN):
        return False

    sentry_logging = LoggingIntegration(level=logging.INFO, event_level=logging.ERROR)
    sentry_sdk.init(
        dsn=SENTRY_DSN,
        environment=SENTRY_ENVIRONMENT,
        traces_sample_rate=SENTRY_TRACES_SAMPLE_RATE,
        integrations=[sentry_logging],
        release="studio-agenda@1.0.0",
        attach_stacktrace=True,
        send_default_pii=False,
    )
    logger.info(f"Sentry initialized: {SENTRY_ENVIRONMENT} environment")
    return True


async def startup() -> None:
    """Пул соединений и схема БД"""
    await db_adapter.init_pool()
    await Database.init_db()
    logger.info(f"✅ Storage ready ({DB_TYPE})")


async def shutdown() -> None:
    await db_adapter.close_pool()
    logger.info("Storage closed")


async def main() -> None:
    """Создать схему и завершиться"""
    setup_logging()
    init_sentry()
    try:
        await startup()
    except Exception as e:
        logger.critical(f"Startup failed: {e}", exc_info=True)
        if SENTRY_ENABLED:
            sentry_sdk.capture_exception(e)
            sentry_sdk.flush(timeout=2.0)
        sys.exit(1)
    finally:
        await shutdown()


if __name__ == "__main__":
    asyncio.run(main())
