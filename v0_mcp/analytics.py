# v0_mcp/analytics.py
"""
Best-effort usage counters.

Every tracking call swallows its own failures: analytics must never affect
the request that triggered it.
"""
import logging
from typing import Dict, Optional

from redis.exceptions import RedisError

from .storage import get_redis_client

logger = logging.getLogger(__name__)

ANALYTICS_COUNTERS_KEY = "analytics:counters"
USER_AGENT_MAX_LENGTH = 128


def truncate(value: Optional[str], length: int = 32) -> str:
    return (value or "")[:length]


def normalize_user_agent(user_agent: Optional[str]) -> str:
    """Passes the header through untouched apart from truncation."""
    if not user_agent:
        return "unknown"
    return user_agent[:USER_AGENT_MAX_LENGTH]


async def track(event: str, properties: Dict[str, str]) -> None:
    safe_props = {
        k: truncate(v, USER_AGENT_MAX_LENGTH if k == "userAgent" else 32)
        for k, v in properties.items()
    }
    try:
        client = await get_redis_client()
        await client.hincrby(ANALYTICS_COUNTERS_KEY, event, 1)
        logger.debug(f"analytics event={event} props={safe_props}")
    except (RedisError, RuntimeError, OSError) as e:
        logger.warning(f"Failed to track analytics event '{event}': {e}")


async def get_counters() -> Dict[str, int]:
    try:
        client = await get_redis_client()
        raw = await client.hgetall(ANALYTICS_COUNTERS_KEY)
    except (RedisError, RuntimeError, OSError) as e:
        logger.warning(f"Failed to read analytics counters: {e}")
        return {}
    return {
        (k.decode("utf-8") if isinstance(k, bytes) else k): int(v)
        for k, v in raw.items()
    }


async def track_auth_started(client_id: str, scope: str) -> None:
    await track("mcp_auth_started", {"clientId": client_id, "scope": scope})


async def track_auth_success(client_id: str, scope: str) -> None:
    await track("mcp_auth_success", {"clientId": client_id, "scope": scope})


async def track_auth_failure(client_id: str, error_type: str) -> None:
    await track("mcp_auth_failure", {"clientId": client_id, "errorType": error_type})


async def track_tool_usage(tool_name: str, session_id: str, user_agent: Optional[str] = None) -> None:
    await track("mcp_tool_usage", {
        "toolName": tool_name,
        "sessionId": session_id,
        "userAgent": normalize_user_agent(user_agent),
    })


async def track_prompt_usage(prompt_name: str, session_id: str) -> None:
    await track("mcp_prompt_usage", {"promptName": prompt_name, "sessionId": session_id})


async def track_resource_usage(resource_type: str, session_id: str) -> None:
    await track("mcp_resource_usage", {"resourceType": resource_type, "sessionId": session_id})


async def track_session_start(client_id: str, session_id: str, user_agent: Optional[str] = None) -> None:
    await track("mcp_session_start", {
        "clientId": client_id,
        "sessionId": session_id,
        "userAgent": normalize_user_agent(user_agent),
    })


async def track_error(error_type: str, context: str) -> None:
    await track("mcp_error", {"errorType": error_type, "context": context})
