from __future__ import annotations

import logging

from motor.motor_asyncio import AsyncIOMotorClient, AsyncIOMotorCollection

from linkpreview.core.config import Settings

logger = logging.getLogger(__name__)


class DatabaseManager:
    """MongoDB connection manager for the ``mongo`` cache backend.

    Constructed and owned by the application lifespan; pass the instance to
    whatever needs a collection.

    Lifecycle::

        db = DatabaseManager(settings)
        await db.connect()   # call once at startup
        ...
        await db.disconnect()  # call once at shutdown
    """

    def __init__(self, settings: Settings) -> None:
        self._settings = settings
        self._client: AsyncIOMotorClient | None = None

    async def connect(self) -> None:
        """Open the Motor client and verify connectivity with a ping."""
        self._client = AsyncIOMotorClient(
            self._settings.mongo_uri,
            maxPoolSize=self._settings.mongo_max_pool_size,
        )
        await self._client.admin.command("ping")
        logger.info("Connected to MongoDB at %s.", self._settings.mongo_uri)

    async def disconnect(self) -> None:
        """Close the Motor client and release all pooled connections."""
        if self._client is not None:
            self._client.close()
            self._client = None
            logger.info("Disconnected from MongoDB.")

    def get_collection(self, name: str) -> AsyncIOMotorCollection:
        """Return a Motor collection by name from the configured database."""
        if self._client is None:
            raise RuntimeError(
                "DatabaseManager is not connected. Call connect() first."
            )
        return self._client[self._settings.mongo_db][name]
