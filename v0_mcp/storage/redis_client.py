# v0_mcp/storage/redis_client.py
import logging
from typing import Optional

import redis.asyncio as aioredis

from ..settings import settings

logger = logging.getLogger(__name__)

_redis_client: Optional[aioredis.Redis] = None


async def initialize_redis_client() -> aioredis.Redis:
    """
    Establishes the shared Redis connection using global settings.
    Skips initialization if a client already exists (including one injected
    through set_redis_client).
    """
    global _redis_client
    if _redis_client is not None:
        logger.debug("Redis client already initialized. Skipping re-initialization.")
        return _redis_client

    connection_params = {
        "host": settings.redis_host,
        "port": settings.redis_port,
        "db": settings.redis_db,
        "decode_responses": False,  # bytes in, bytes out; callers decode explicitly
    }
    if settings.redis_password:
        connection_params["password"] = settings.redis_password
    if settings.redis_ssl:
        connection_params["ssl"] = True

    logger.info(
        f"Connecting to Redis at {connection_params['host']}:"
        f"{connection_params['port']}, DB: {connection_params['db']}"
    )
    client = aioredis.Redis(**connection_params)
    try:
        await client.ping()
    except Exception as e:
        logger.error(f"Failed to connect to Redis: {e}", exc_info=True)
        await client.aclose()
        raise
    logger.info("Successfully connected to Redis and pinged.")
    _redis_client = client
    return _redis_client


def set_redis_client(client: Optional[aioredis.Redis]) -> None:
    """Installs an already constructed client (used by tests and embedding apps)."""
    global _redis_client
    _redis_client = client


async def get_redis_client() -> aioredis.Redis:
    """
    Returns the shared Redis client.

    Raises:
        RuntimeError: If the client is not initialized
    """
    if _redis_client is None:
        raise RuntimeError("Redis client not initialized. Call initialize_redis_client() first.")
    return _redis_client


async def close_redis_client() -> None:
    global _redis_client
    if _redis_client is not None:
        logger.info("Closing Redis connection.")
        await _redis_client.aclose()
        _redis_client = None
        logger.info("Redis connection closed.")
    else:
        logger.info("No active Redis connection to close.")
