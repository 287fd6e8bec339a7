"""Process-wide MongoDB handle, opened and closed by the app lifespan."""

import logging

from motor.motor_asyncio import AsyncIOMotorClient, AsyncIOMotorDatabase

from blog_auth.config import get_settings

logger = logging.getLogger(__name__)

_client: AsyncIOMotorClient | None = None
_db: AsyncIOMotorDatabase | None = None


async def connect_to_mongo() -> AsyncIOMotorDatabase:
    """Open the client once. Datetimes come back timezone-aware (UTC)."""
    global _client, _db
    if _db is None:
        settings = get_settings()
        _client = AsyncIOMotorClient(settings.mongodb_url, tz_aware=True)
        _db = _client[settings.mongodb_db_name]
        logger.info(f"Using MongoDB database '{settings.mongodb_db_name}'")
    return _db


async def close_mongo_connection() -> None:
    global _client, _db
    if _client is not None:
        _client.close()
    _client = None
    _db = None


def get_database() -> AsyncIOMotorDatabase:
    """FastAPI dependency; overridden with a mongomock database in tests."""
    if _db is None:
        raise RuntimeError("Database not initialized. Call connect_to_mongo first.")
    return _db
