"""MongoDB client lifecycle for the auth service."""

from typing import Optional

import structlog
from motor.motor_asyncio import AsyncIOMotorClient, AsyncIOMotorCollection, AsyncIOMotorDatabase
from pymongo.errors import ConnectionFailure, ServerSelectionTimeoutError
from tenacity import (
    AsyncRetrying,
    retry_if_exception_type,
    stop_after_attempt,
    wait_exponential,
)

from jobboard.config import Settings

logger = structlog.get_logger(__name__)


class MongoDB:
    """
    Owns the motor client for one process.

    Created by the app lifespan and handed to request handlers through
    ``app.state``; nothing else holds a reference to the client.
    """

    def __init__(self, settings: Settings):
        self.settings = settings
        self.client: Optional[AsyncIOMotorClient] = None
        self.db: Optional[AsyncIOMotorDatabase] = None

    async def connect(self) -> None:
        """
        Connect to MongoDB and verify the server answers.
        Retries with exponential backoff before giving up.
        """
        if self.client is not None:
            return

        self.client = AsyncIOMotorClient(
            self.settings.MONGO_URI,
            maxPoolSize=self.settings.MONGO_MAX_POOL_SIZE,
            serverSelectionTimeoutMS=self.settings.MONGO_SERVER_SELECTION_TIMEOUT_MS,
            socketTimeoutMS=self.settings.MONGO_SOCKET_TIMEOUT_MS,
            tz_aware=True,
        )
        if self.settings.MONGO_DB_NAME:
            self.db = self.client[self.settings.MONGO_DB_NAME]
        else:
            self.db = self.client.get_default_database("jobboard")

        try:
            async for attempt in AsyncRetrying(
                stop=stop_after_attempt(self.settings.MONGO_CONNECT_RETRIES),
                wait=wait_exponential(multiplier=1, min=1, max=10),
                retry=retry_if_exception_type((ConnectionFailure, ServerSelectionTimeoutError)),
                reraise=True,
            ):
                with attempt:
                    await self.db.command("ping")
        except Exception as e:
            logger.error("mongodb_connect_failed", error=str(e))
            self.client.close()
            self.client = None
            self.db = None
            raise

        logger.info("mongodb_connected", database=self.db.name)

    def disconnect(self) -> None:
        if self.client is not None:
            self.client.close()
            self.client = None
            self.db = None
            logger.info("mongodb_disconnected")

    @property
    def users(self) -> AsyncIOMotorCollection:
        if self.db is None:
            raise RuntimeError("MongoDB is not connected")
        return self.db[self.settings.MONGO_USERS_COLLECTION]
