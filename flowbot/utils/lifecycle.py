# /flowbot/utils/lifecycle.py

import logging
from contextlib import asynccontextmanager
from fastapi import FastAPI

from flowbot.utils.logging import setup_logging
from flowbot.services.db_service import db_service
from flowbot.config.settings import settings

# This file manages the application's lifespan, handling startup tasks like
# preparing database indexes and shutdown tasks like closing connections.

logger = logging.getLogger(__name__)


@asynccontextmanager
async def lifespan(app: FastAPI):
    """Application lifespan manager for startup and shutdown events."""
    setup_logging()

    logger.info(f"Application starting up ({settings.environment})...")

    await db_service.create_indexes()

    logger.info("Application startup complete. Ready to accept connections.")

    yield  # Application is now running

    logger.info("Application shutting down...")

    db_service.close()
