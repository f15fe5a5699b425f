import logging

from pymongo import MongoClient
from pymongo.database import Database
from pymongo.errors import PyMongoError

from adapter.mongodb import DATABASE_NAME

logger = logging.getLogger(__name__)

_client_cache: MongoClient | None = None


def reset_client() -> None:
    global _client_cache
    if _client_cache is not None:
        _client_cache.close()
    _client_cache = None


def get_mongodb_client(dsn: str, timeout: float) -> MongoClient:
    """Return the process-wide MongoDB client, connecting on first use.

    ``timeout`` (seconds) becomes the client-side operation timeout, so every
    driver call made on behalf of a request is bounded by the request deadline.

    Raises:
        ConnectionError: the server cannot be reached
    """
    global _client_cache

    if _client_cache is not None:
        return _client_cache

    try:
        client = MongoClient(
            dsn,
            tz_aware=True,
            timeoutMS=int(timeout * 1000),
            serverSelectionTimeoutMS=5000,
            connectTimeoutMS=5000,
            maxPoolSize=50,
            retryWrites=True,
            retryReads=True,
        )
        client.admin.command('ping')
    except PyMongoError as e:
        logger.error("[MONGODB] Initial connection failed", extra={"error": str(e)[:200]})
        raise ConnectionError(f"failed to connect to MongoDB: {e}") from e

    _client_cache = client
    logger.info("[MONGODB] Connected successfully")
    return client


def get_database(client: MongoClient) -> Database:
    """Database named in the DSN, or the service default."""
    return client.get_default_database(default=DATABASE_NAME)
