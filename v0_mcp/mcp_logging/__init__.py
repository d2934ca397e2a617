# v0_mcp/mcp_logging/__init__.py
"""
MCP protocol logging: per-session levels, redaction, rate limiting and the
SSE push channels that carry `notifications/message` to clients.
"""

from .levels import (
    LOG_LEVEL_PRIORITY,
    LogLevel,
    LoggingConfig,
    RateLimitConfig,
    RateLimitStatus,
    is_valid_log_level,
    should_log_at_level,
)
from .log_filters import REDACTION_MARKER, create_safe_log_data, redact_sensitive_data
from .rate_limiter import RateLimiter, rate_limiter
from .sse_manager import SSEConnection, SSEManager, sse_manager
from .logger import MCPLogger, mcp_logger

__all__ = [
    "LOG_LEVEL_PRIORITY",
    "LogLevel",
    "LoggingConfig",
    "RateLimitConfig",
    "RateLimitStatus",
    "is_valid_log_level",
    "should_log_at_level",
    "REDACTION_MARKER",
    "create_safe_log_data",
    "redact_sensitive_data",
    "RateLimiter",
    "rate_limiter",
    "SSEConnection",
    "SSEManager",
    "sse_manager",
    "MCPLogger",
    "mcp_logger",
]
