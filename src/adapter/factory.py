"""Backend selection at startup."""

import logging

from port.user_repository import UserRepository
from utils.config import RELATIONAL_DATABASES, ConfigError, Settings

logger = logging.getLogger(__name__)


def build_user_repository(settings: Settings) -> UserRepository:
    """Connect to the configured backend and return its user repository.

    Raises:
        ConfigError: unknown database selector
        ConnectionError: the backend cannot be reached
    """
    if settings.is_document_store:
        from adapter.mongodb.connection import get_database, get_mongodb_client
        from adapter.mongodb.user_repository import MongoUserRepository

        client = get_mongodb_client(settings.dsn, settings.timeout)
        repo = MongoUserRepository(get_database(client))
        if not repo.ensure_indexes():
            logger.warning("Failed to create some MongoDB indexes")
        return repo

    if settings.database in RELATIONAL_DATABASES:
        from adapter.postgres.pool import init_pool
        from adapter.postgres.user_repository import PostgresUserRepository

        repo = PostgresUserRepository(init_pool(settings.dsn, settings.timeout))
        if not repo.ensure_schema():
            raise ConnectionError("failed to create users schema")
        return repo

    raise ConfigError(f"database flag {settings.database} not valid")
