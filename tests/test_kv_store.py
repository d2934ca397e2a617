# tests/test_kv_store.py
import json
from datetime import datetime, timedelta, timezone

from v0_mcp.storage import RedisKVNamespace, RedisLoggingNamespace
from v0_mcp.storage.kv_store import COMPRESSION_THRESHOLD_BYTES, unwrap_payload, wrap_payload


def test_small_payload_stays_plain():
    wrapped = wrap_payload({"a": 1})
    assert wrapped == {"data": '{"a":1}', "isGzip": False}
    assert unwrap_payload(wrapped) == {"a": 1}


def test_large_payload_is_gzipped():
    value = {"blob": "x" * (COMPRESSION_THRESHOLD_BYTES + 10)}
    wrapped = wrap_payload(value)
    assert wrapped["isGzip"] is True
    assert unwrap_payload(wrapped) == value


def test_unwrapped_values_pass_through():
    assert unwrap_payload({"plain": True}) == {"plain": True}


async def test_namespace_prefixes_keys(redis_client):
    kv = RedisKVNamespace("oauth:")
    await kv.put("auth_code:abc", {"client_id": "c"}, ttl_seconds=60)

    assert await redis_client.exists("oauth:auth_code:abc")
    assert 0 < await redis_client.ttl("oauth:auth_code:abc") <= 60
    assert await kv.get("auth_code:abc") == {"client_id": "c"}


async def test_compressing_namespace_stores_envelope(redis_client):
    kv = RedisKVNamespace("api:", compress=True)
    value = {"files": ["y" * 600]}
    await kv.put("bundle", value)

    stored = json.loads(await redis_client.get("api:bundle"))
    assert stored["isGzip"] is True
    assert await kv.get("bundle") == value


async def test_list_and_delete(redis_client):
    kv = RedisKVNamespace("session:")
    await kv.put("one", {"n": 1})
    await kv.put("two", {"n": 2})
    assert sorted(await kv.list()) == ["one", "two"]

    await kv.delete("one")
    assert await kv.get("one") is None
    assert await kv.list() == ["two"]


async def test_get_fails_open_without_redis():
    kv = RedisKVNamespace("oauth:")
    assert await kv.get("anything") is None


async def test_logging_cleanup_removes_old_configs(redis_client):
    kv = RedisLoggingNamespace()
    now = datetime.now(timezone.utc)
    stale = (now - timedelta(seconds=10)).isoformat()
    await kv.set_config("old", {"session_id": "old", "updated_at": stale})
    await kv.set_config("fresh", {"session_id": "fresh", "updated_at": now.isoformat()})

    assert await kv.cleanup(older_than_ms=5_000) == 1
    assert await kv.get_config("old") is None
    assert await kv.get_config("fresh") is not None
