# v0_mcp/admin/endpoints.py
import logging
from datetime import datetime, timezone
from typing import Annotated, Any, Dict, List, Optional

from fastapi import APIRouter, Depends, HTTPException, Path, Query, status
from pydantic import BaseModel, Field

from .. import analytics
from ..dependencies import (
    get_admin_api_key,
    get_mcp_logger,
    get_rate_limiter,
    get_session_file_store,
    get_session_manager,
    get_sse_manager,
)
from ..mcp_logging import MCPLogger, RateLimiter, SSEManager
from ..resources import SessionFileStore
from ..sessions import SessionManager

logger = logging.getLogger(__name__)

# Maintenance router - requires admin API key authentication
admin_router = APIRouter(
    prefix="/admin",
    tags=["Admin - Maintenance"],
    dependencies=[Depends(get_admin_api_key)]
)


class CleanupRequest(BaseModel):
    older_than_ms: int = Field(default=24 * 60 * 60 * 1000, ge=0, description="Age cutoff for logging configs and rate-limit entries.")
    sse_max_age_seconds: Optional[int] = Field(default=None, ge=0, description="Age cutoff for SSE channels. Defaults to the configured staleness threshold.")


class CleanupResult(BaseModel):
    configs_cleaned: int
    rate_limits_cleaned: int
    sse_connections_cleaned: int
    timestamp: datetime


@admin_router.get("/stats")
async def get_server_stats_endpoint(
    session_manager: Annotated[SessionManager, Depends(get_session_manager)],
    sse_manager: Annotated[SSEManager, Depends(get_sse_manager)],
) -> Dict[str, Any]:
    """Active session count and live SSE channels."""
    return {
        "activeSessions": await session_manager.get_active_session_count(),
        "sse": sse_manager.get_stats(),
        "timestamp": datetime.now(timezone.utc).isoformat(),
    }


@admin_router.get("/sessions/{session_id}/logging")
async def get_session_logging_stats_endpoint(
    session_id: Annotated[str, Path(description="The MCP session to inspect")],
    session_manager: Annotated[SessionManager, Depends(get_session_manager)],
    mcp_logger: Annotated[MCPLogger, Depends(get_mcp_logger)],
    file_store: Annotated[SessionFileStore, Depends(get_session_file_store)],
) -> Dict[str, Any]:
    session = await session_manager.get_session(session_id)
    if not session:
        raise HTTPException(status_code=status.HTTP_404_NOT_FOUND, detail="Session not found")
    stats = await mcp_logger.get_session_stats(session_id)
    file_stats = await file_store.get_file_stats(session_id)
    return {**stats, "session": session.model_dump(mode="json", exclude={"encrypted_api_key"}), "files": file_stats.model_dump()}


@admin_router.get("/rate-limits")
async def get_rate_limits_endpoint(
    rate_limiter: Annotated[RateLimiter, Depends(get_rate_limiter)],
    session_ids: Annotated[List[str], Query(alias="session_id", description="Session ids to report on.")],
) -> Dict[str, Any]:
    info = await rate_limiter.get_rate_limit_info(session_ids)
    return {sid: status_.model_dump() for sid, status_ in info.items()}


@admin_router.post("/sessions/{session_id}/rate-limit/reset", status_code=status.HTTP_200_OK)
async def reset_rate_limit_endpoint(
    session_id: Annotated[str, Path(description="The MCP session whose logging rate limit to reset")],
    rate_limiter: Annotated[RateLimiter, Depends(get_rate_limiter)],
) -> Dict[str, Any]:
    logger.info(f"API: Resetting logging rate limit for session {session_id}")
    await rate_limiter.reset_rate_limit(session_id)
    return {"sessionId": session_id, "reset": True}


@admin_router.post("/cleanup", response_model=CleanupResult)
async def run_cleanup_endpoint(
    mcp_logger: Annotated[MCPLogger, Depends(get_mcp_logger)],
    sse_manager: Annotated[SSEManager, Depends(get_sse_manager)],
    request: Optional[CleanupRequest] = None,
):
    """Removes stale logging configs, rate-limit keys and SSE channels."""
    request = request or CleanupRequest()
    logging_result = await mcp_logger.cleanup(request.older_than_ms)
    sse_cleaned = await sse_manager.cleanup(request.sse_max_age_seconds)
    logger.info(f"API: Cleanup finished: {logging_result}, sse={sse_cleaned}")
    return CleanupResult(
        configs_cleaned=logging_result["configsCleaned"],
        rate_limits_cleaned=logging_result["rateLimitsCleaned"],
        sse_connections_cleaned=sse_cleaned,
        timestamp=datetime.now(timezone.utc),
    )


@admin_router.get("/analytics")
async def get_analytics_endpoint() -> Dict[str, int]:
    return await analytics.get_counters()
