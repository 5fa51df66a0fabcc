"""Motor connection pool for the index optimizer.

No managers. No locks. Just Motor's async connection pool, kept in module
state so the optimizer can be built from the configured database without
threading a client through every call.
"""

import logging

from motor.motor_asyncio import AsyncIOMotorClient, AsyncIOMotorDatabase

from mongosense.config.settings import settings
from mongosense.exceptions import ConfigurationError

logger = logging.getLogger(__name__)


# ============================================================================
# MODULE STATE
# ============================================================================

_client: AsyncIOMotorClient | None = None
_database: AsyncIOMotorDatabase | None = None
_database_name: str | None = None


# ============================================================================
# INITIALIZATION (Call Once at Startup)
# ============================================================================


def initialize(
    connection_uri: str,
    database_name: str,
    min_pool_size: int = 1,
    max_pool_size: int = 10,
    timeout_seconds: int = 30,
) -> AsyncIOMotorDatabase:
    """Initialize the database connection pool.

    Motor connects lazily, so this never blocks or touches the network.

    Args:
        connection_uri: MongoDB connection string
        database_name: Name of database to use
        min_pool_size: Minimum connections in pool
        max_pool_size: Maximum connections in pool
        timeout_seconds: Server selection and connect timeout

    Returns:
        The Motor database handle
    """
    global _client, _database, _database_name

    logger.info(f"Initializing Motor connection pool for database: {database_name}")

    _client = AsyncIOMotorClient(
        connection_uri,
        minPoolSize=min_pool_size,
        maxPoolSize=max_pool_size,
        serverSelectionTimeoutMS=timeout_seconds * 1000,
        connectTimeoutMS=timeout_seconds * 1000,
    )

    _database = _client[database_name]
    _database_name = database_name

    logger.info(f"✓ Database connection pool ready (pool: {min_pool_size}-{max_pool_size})")
    return _database


def initialize_from_settings() -> AsyncIOMotorDatabase:
    """Initialize the pool from the global settings."""
    return initialize(
        connection_uri=settings.mongodb_connection_string,
        database_name=settings.mongodb_database,
        min_pool_size=settings.mongodb_min_pool_size,
        max_pool_size=settings.mongodb_max_pool_size,
        timeout_seconds=settings.mongodb_timeout,
    )


# ============================================================================
# ACCESS
# ============================================================================


def get_database() -> AsyncIOMotorDatabase:
    """Get the database instance.

    Raises:
        ConfigurationError: If database not initialized
    """
    if _database is None:
        raise ConfigurationError(
            message="Database not initialized",
            details={"hint": "Call database.initialize() at startup"},
        )
    return _database


def get_client() -> AsyncIOMotorClient:
    """Get the Motor client instance.

    Raises:
        ConfigurationError: If client not initialized
    """
    if _client is None:
        raise ConfigurationError(
            message="Database client not initialized",
            details={"hint": "Call database.initialize() at startup"},
        )
    return _client


def get_database_name() -> str:
    """Get the current database name."""
    if _database_name is None:
        raise ConfigurationError(message="Database not initialized")
    return _database_name


# ============================================================================
# HEALTH CHECK
# ============================================================================


async def health_check() -> bool:
    """Check if database is reachable.

    Returns:
        True if database responds to ping, False otherwise
    """
    if _client is None:
        return False

    try:
        await _client.admin.command("ping")
        return True
    except Exception as error:
        logger.warning(f"Database health check failed: {error}")
        return False


# ============================================================================
# SHUTDOWN
# ============================================================================


def shutdown() -> None:
    """Close database connections gracefully."""
    global _client, _database, _database_name

    if _client is not None:
        logger.info("Closing database connections...")
        _client.close()
        _client = None
        _database = None
        _database_name = None
        logger.info("✓ Database connections closed")
