# v0_mcp/storage/__init__.py
"""Durable storage layer: a shared Redis connection and namespaced KV stores."""

from .redis_client import (
    initialize_redis_client,
    get_redis_client,
    set_redis_client,
    close_redis_client,
)
from .kv_store import (
    AbstractKVStore,
    RedisKVNamespace,
    RedisLoggingNamespace,
    OAUTH_KV,
    API_KV,
    SESSION_KV,
    LOGGING_KV,
)

__all__ = [
    "initialize_redis_client",
    "get_redis_client",
    "set_redis_client",
    "close_redis_client",
    "AbstractKVStore",
    "RedisKVNamespace",
    "RedisLoggingNamespace",
    "OAUTH_KV",
    "API_KV",
    "SESSION_KV",
    "LOGGING_KV",
]
