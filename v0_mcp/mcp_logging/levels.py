# v0_mcp/mcp_logging/levels.py
from enum import Enum
from datetime import datetime, timezone
from typing import Any, Dict, Literal, Optional

from pydantic import BaseModel, Field


class LogLevel(str, Enum):
    """RFC 5424 severities, most severe first."""
    EMERGENCY = "emergency"
    ALERT = "alert"
    CRITICAL = "critical"
    ERROR = "error"
    WARNING = "warning"
    NOTICE = "notice"
    INFO = "info"
    DEBUG = "debug"


LOG_LEVEL_PRIORITY: Dict[LogLevel, int] = {
    LogLevel.EMERGENCY: 0,
    LogLevel.ALERT: 1,
    LogLevel.CRITICAL: 2,
    LogLevel.ERROR: 3,
    LogLevel.WARNING: 4,
    LogLevel.NOTICE: 5,
    LogLevel.INFO: 6,
    LogLevel.DEBUG: 7,
}

DEFAULT_MIN_LEVEL = LogLevel.INFO
DEFAULT_MAX_MESSAGES = 100
DEFAULT_WINDOW_MS = 60000


def is_valid_log_level(level: Any) -> bool:
    return isinstance(level, str) and level in LogLevel._value2member_map_


def should_log_at_level(message_level: LogLevel, session_min_level: LogLevel) -> bool:
    """True iff the message is at least as severe as the session floor (inclusive)."""
    return LOG_LEVEL_PRIORITY[LogLevel(message_level)] <= LOG_LEVEL_PRIORITY[LogLevel(session_min_level)]


def _utcnow_iso() -> str:
    return datetime.now(timezone.utc).isoformat()


class RateLimitConfig(BaseModel):
    max_messages: int = DEFAULT_MAX_MESSAGES
    window_ms: int = DEFAULT_WINDOW_MS


class LoggingConfig(BaseModel):
    """Per-session log policy, persisted under `logging:config:{session_id}`."""
    session_id: str
    min_level: LogLevel = DEFAULT_MIN_LEVEL
    rate_limit: RateLimitConfig = Field(default_factory=RateLimitConfig)
    created_at: str = Field(default_factory=_utcnow_iso)
    updated_at: str = Field(default_factory=_utcnow_iso)


class LogMessageParams(BaseModel):
    level: LogLevel
    logger: Optional[str] = None
    data: Any = None


class LogMessageNotification(BaseModel):
    jsonrpc: Literal["2.0"] = "2.0"
    method: Literal["notifications/message"] = "notifications/message"
    params: LogMessageParams


class RateLimitStatus(BaseModel):
    count: int
    remaining: int
    reset_time: int
    limited: bool
