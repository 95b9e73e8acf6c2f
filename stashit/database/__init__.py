import logging
from .postgres import (
    init_postgres_db,
    close_postgres_db,
    check_postgres_connection,
    AsyncSessionLocal,
)
from .redis import init_redis, close_redis, get_redis, health_check as redis_health_check

logger = logging.getLogger(__name__)


async def init_databases():
    """Initialize PostgreSQL and Redis"""
    try:
        await init_postgres_db()
        logger.info("PostgreSQL initialization completed")

        await init_redis()
        logger.info("Redis initialization completed")

        logger.info("All databases initialized successfully")
    except Exception as e:
        logger.error(f"Database initialization failed: {e}")
        raise


async def close_databases():
    """Close all database connections"""
    try:
        await close_postgres_db()
        await close_redis()
        logger.info("All database connections closed")
    except Exception as e:
        logger.error(f"Error closing database connections: {e}")


async def check_database_health():
    """Check health of all database connections"""
    postgres_status = await check_postgres_connection()
    redis_status = await redis_health_check()

    return {
        "postgres": postgres_status,
        "redis": redis_status.get("status") == "healthy",
        "overall": postgres_status
    }

__all__ = [
    "init_databases",
    "close_databases",
    "check_database_health",
    "get_redis",
    "AsyncSessionLocal",
]
