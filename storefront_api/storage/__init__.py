"""Storage module with factories for the database pool and product cache."""

from loguru import logger

from ..config import Settings, settings
from .cache import TTLCache, product_key, product_list_key
from .database import Database
from .schema import metadata


def create_database(config: Settings | None = None) -> Database:
    """Create the database wrapper from settings.

    Args:
        config: Settings to use. Uses the module settings if not provided.

    Returns:
        Unconnected Database instance; call ``startup()`` before use.
    """
    config = config or settings
    database = Database(
        config.effective_database_url,
        pool_min=config.db_pool_min,
        pool_max=config.db_pool_max,
        query_timeout=config.db_query_timeout_seconds,
        query_retries=config.db_query_retries,
        connect_retries=config.db_connect_retries,
        create_tables=config.create_tables,
    )
    logger.info(f"Creating {'PostgreSQL' if database.is_postgres else 'SQLite'} database")
    return database


def create_cache(config: Settings | None = None) -> TTLCache:
    """Create the in-process product cache."""
    config = config or settings
    return TTLCache(
        ttl_seconds=config.product_cache_ttl_seconds,
        max_entries=config.product_cache_max_entries,
    )


__all__ = [
    "Database",
    "TTLCache",
    "create_cache",
    "create_database",
    "metadata",
    "product_key",
    "product_list_key",
]
