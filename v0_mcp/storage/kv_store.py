# v0_mcp/storage/kv_store.py
import base64
import gzip
import json
import logging
from abc import ABC, abstractmethod
from datetime import datetime, timezone
from typing import Any, Dict, List, Optional

import redis.asyncio as aioredis
from redis.exceptions import RedisError

from .redis_client import get_redis_client

logger = logging.getLogger(__name__)

# Serialized payloads above this many bytes are gzipped in compressing namespaces
COMPRESSION_THRESHOLD_BYTES = 500

LOGGING_CONFIG_TTL_SECONDS = 60 * 60 * 24
LOGGING_CONFIG_MAX_AGE_MS = 24 * 60 * 60 * 1000


class AbstractKVStore(ABC):
    """Narrow get/put/delete/list contract over a durable store."""

    @abstractmethod
    async def get(self, key: str) -> Optional[Any]:
        """Return the JSON value stored under key, or None."""
        pass

    @abstractmethod
    async def put(self, key: str, value: Any, ttl_seconds: Optional[int] = None) -> None:
        """Store a JSON-serializable value, optionally expiring after ttl_seconds."""
        pass

    @abstractmethod
    async def delete(self, key: str) -> None:
        pass

    @abstractmethod
    async def list(self, prefix: str = "") -> List[str]:
        """Return keys (without the namespace prefix) starting with prefix."""
        pass


def wrap_payload(value: Any) -> Dict[str, Any]:
    """
    Build the storage envelope for a value.

    Large payloads become {"data": <base64 gzip>, "isGzip": True}; small ones
    keep the JSON text in "data".
    """
    serialized = json.dumps(value, separators=(",", ":"))
    raw = serialized.encode("utf-8")
    if len(raw) > COMPRESSION_THRESHOLD_BYTES:
        compressed = gzip.compress(raw)
        return {"data": base64.b64encode(compressed).decode("ascii"), "isGzip": True}
    return {"data": serialized, "isGzip": False}


def unwrap_payload(stored: Any) -> Any:
    """Inverse of wrap_payload. Values without the envelope are returned as-is."""
    if isinstance(stored, dict) and set(stored.keys()) == {"data", "isGzip"}:
        if stored["isGzip"]:
            raw = gzip.decompress(base64.b64decode(stored["data"]))
            return json.loads(raw.decode("utf-8"))
        data = stored["data"]
        return json.loads(data) if isinstance(data, str) else data
    return stored


class RedisKVNamespace(AbstractKVStore):
    """
    Redis-backed key namespace. Every key is stored as '{prefix}{key}'.

    Reads fail open: a Redis error is logged and reported as a miss.
    """

    def __init__(self, prefix: str, compress: bool = False):
        self.prefix = prefix
        self.compress = compress

    async def _get_client(self) -> aioredis.Redis:
        return await get_redis_client()

    def _full_key(self, key: str) -> str:
        return f"{self.prefix}{key}"

    async def get(self, key: str) -> Optional[Any]:
        try:
            client = await self._get_client()
            data_bytes = await client.get(self._full_key(key))
        except (RedisError, RuntimeError, OSError) as e:
            logger.warning(f"KV get failed for '{self._full_key(key)}', treating as miss: {e}")
            return None

        if data_bytes is None:
            return None
        try:
            stored = json.loads(data_bytes.decode("utf-8"))
            return unwrap_payload(stored) if self.compress else stored
        except (ValueError, OSError, KeyError) as e:
            logger.error(f"Error deserializing KV value for '{self._full_key(key)}': {e}")
            return None

    async def put(self, key: str, value: Any, ttl_seconds: Optional[int] = None) -> None:
        stored = wrap_payload(value) if self.compress else value
        client = await self._get_client()
        await client.set(
            self._full_key(key),
            json.dumps(stored).encode("utf-8"),
            ex=ttl_seconds if ttl_seconds and ttl_seconds > 0 else None,
        )

    async def delete(self, key: str) -> None:
        client = await self._get_client()
        await client.delete(self._full_key(key))

    async def list(self, prefix: str = "") -> List[str]:
        try:
            client = await self._get_client()
            keys: List[str] = []
            async for raw_key in client.scan_iter(match=f"{self.prefix}{prefix}*"):
                key = raw_key.decode("utf-8") if isinstance(raw_key, bytes) else raw_key
                keys.append(key[len(self.prefix):])
            return keys
        except (RedisError, RuntimeError, OSError) as e:
            logger.warning(f"KV list failed for prefix '{self.prefix}{prefix}': {e}")
            return []


class RedisLoggingNamespace(RedisKVNamespace):
    """Logging namespace with helpers for per-session logging configs."""

    def __init__(self):
        super().__init__("logging:")

    @staticmethod
    def _config_key(session_id: str) -> str:
        return f"config:{session_id}"

    async def get_config(self, session_id: str) -> Optional[Dict[str, Any]]:
        return await self.get(self._config_key(session_id))

    async def set_config(self, session_id: str, config: Dict[str, Any]) -> None:
        await self.put(self._config_key(session_id), config, ttl_seconds=LOGGING_CONFIG_TTL_SECONDS)

    async def delete_config(self, session_id: str) -> None:
        await self.delete(self._config_key(session_id))

    async def cleanup(self, older_than_ms: int = LOGGING_CONFIG_MAX_AGE_MS) -> int:
        """Delete configs whose updated_at is older than the threshold."""
        now = datetime.now(timezone.utc)
        removed = 0
        for key in await self.list("config:"):
            config = await self.get(key)
            if not config:
                continue
            updated_raw = config.get("updated_at")
            try:
                updated_at = datetime.fromisoformat(str(updated_raw).replace("Z", "+00:00"))
            except ValueError:
                logger.warning(f"Logging config '{key}' has unparseable updated_at: {updated_raw}")
                continue
            if updated_at.tzinfo is None:
                updated_at = updated_at.replace(tzinfo=timezone.utc)
            if (now - updated_at).total_seconds() * 1000 > older_than_ms:
                await self.delete(key)
                removed += 1
        if removed:
            logger.info(f"Logging KV cleanup removed {removed} stale config(s).")
        return removed


OAUTH_KV = RedisKVNamespace("oauth:")
API_KV = RedisKVNamespace("api:", compress=True)
SESSION_KV = RedisKVNamespace("session:")
LOGGING_KV = RedisLoggingNamespace()
