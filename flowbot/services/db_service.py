# /flowbot/services/db_service.py

import logging
import tenacity
from motor.motor_asyncio import AsyncIOMotorClient
from pymongo.errors import AutoReconnect, NetworkTimeout

from flowbot.config.settings import settings

logger = logging.getLogger(__name__)

CONFIG_COLLECTION = "configs"
SESSION_COLLECTION = "sessions"


# Transient connectivity errors are retried; everything else propagates to the caller.
retry_transient = tenacity.retry(
    retry=tenacity.retry_if_exception_type((AutoReconnect, NetworkTimeout)),
    stop=tenacity.stop_after_attempt(3),
    wait=tenacity.wait_exponential(multiplier=0.2, min=0.2, max=2),
    before_sleep=tenacity.before_sleep_log(logger, logging.WARNING),
    reraise=True,
)


class DatabaseService:
    """
    Owns the MongoDB client and the collections holding flow configurations
    and chat sessions.
    """

    def __init__(self, mongo_uri: str, db_name: str = settings.mongo_db_name):
        try:
            self.client = AsyncIOMotorClient(
                mongo_uri,
                maxPoolSize=settings.max_pool_size,
                minPoolSize=settings.min_pool_size,
                tls=settings.mongo_ssl,
                tz_aware=True,
                serverSelectionTimeoutMS=5000,
                connectTimeoutMS=10000
            )
            self.db = self.client[db_name]
            logger.info("MongoDB client initialized successfully.")
        except Exception as e:
            logger.error(f"Error initializing MongoDB client: {e}")
            raise

    @property
    def configs(self):
        return self.db[CONFIG_COLLECTION]

    @property
    def sessions(self):
        return self.db[SESSION_COLLECTION]

    # ==================== Index Management ====================

    async def create_indexes(self) -> None:
        """Create all necessary database indexes on startup."""
        indexes = [
            (CONFIG_COLLECTION, [("updatedAt", -1)], {}),
            (SESSION_COLLECTION, [("sessionId", 1)], {"unique": True}),
            (SESSION_COLLECTION, [("lastActivity", -1)], {}),
        ]

        for collection, keys, options in indexes:
            try:
                await self.db[collection].create_index(keys, **options)
                logger.debug(f"Created index on {collection}: {keys}")
            except Exception as e:
                logger.error(f"Failed to create index on {collection} {keys}: {e}")

        logger.info("Database indexes created successfully.")

    async def health_check(self) -> bool:
        """
        Check MongoDB connection health.

        Returns:
            True if connection is healthy
        """
        try:
            await self.client.admin.command('ping')
            return True
        except Exception as e:
            logger.error(f"MongoDB health check failed: {e}")
            return False

    def close(self) -> None:
        self.client.close()


# Globally accessible instance
db_service = DatabaseService(settings.mongo_uri)
