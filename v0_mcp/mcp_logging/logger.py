# v0_mcp/mcp_logging/logger.py
import logging
from datetime import datetime, timezone
from typing import Any, Dict, Optional

from pydantic import ValidationError

from ..storage import LOGGING_KV, RedisLoggingNamespace
from ..storage.kv_store import LOGGING_CONFIG_MAX_AGE_MS
from .levels import (
    LogLevel,
    LogMessageNotification,
    LogMessageParams,
    LoggingConfig,
    RateLimitConfig,
    is_valid_log_level,
    should_log_at_level,
)
from .log_filters import create_safe_log_data
from .rate_limiter import RateLimiter, rate_limiter as default_rate_limiter
from .sse_manager import SSEManager, sse_manager as default_sse_manager

logger = logging.getLogger(__name__)

DEFAULT_LOGGER_NAME = "mcp-server"
RATE_LIMIT_LOGGER_NAME = "rate-limiter"


class MCPLogger:
    """
    Emits `notifications/message` log notifications to MCP clients, filtered
    by the session's minimum level and rate limit, with sensitive data
    redacted.

    `log` never raises: logging must not break the operation that triggered it.
    """

    def __init__(
        self,
        logging_kv: Optional[RedisLoggingNamespace] = None,
        rate_limiter: Optional[RateLimiter] = None,
        sse_manager: Optional[SSEManager] = None,
    ):
        self.logging_kv = logging_kv or LOGGING_KV
        self.rate_limiter = rate_limiter or default_rate_limiter
        self.sse_manager = sse_manager or default_sse_manager

    async def _load_config(self, session_id: str) -> Optional[LoggingConfig]:
        raw = await self.logging_kv.get_config(session_id)
        if not raw:
            return None
        try:
            return LoggingConfig.model_validate(raw)
        except ValidationError as e:
            logger.warning(f"Discarding malformed logging config for session {session_id}: {e}")
            return None

    async def _save_config(self, config: LoggingConfig) -> None:
        await self.logging_kv.set_config(config.session_id, config.model_dump(mode="json"))

    async def _get_session_config(self, session_id: str) -> LoggingConfig:
        config = await self._load_config(session_id)
        if config is None:
            config = LoggingConfig(session_id=session_id)
            await self._save_config(config)
        return config

    async def set_log_level(self, session_id: str, level: str) -> LoggingConfig:
        """
        Raises:
            ValueError: If level is not one of the RFC 5424 level names
        """
        if not is_valid_log_level(level):
            raise ValueError(f"Invalid log level: {level}")
        config = await self._load_config(session_id) or LoggingConfig(session_id=session_id)
        config.min_level = LogLevel(level)
        config.updated_at = datetime.now(timezone.utc).isoformat()
        await self._save_config(config)
        logger.debug(f"Session {session_id} log level set to {level}")
        return config

    async def get_logging_config(self, session_id: str) -> LoggingConfig:
        return await self._get_session_config(session_id)

    async def update_rate_limit(self, session_id: str, max_messages: int, window_ms: int) -> LoggingConfig:
        config = await self._get_session_config(session_id)
        config.rate_limit = RateLimitConfig(max_messages=max_messages, window_ms=window_ms)
        config.updated_at = datetime.now(timezone.utc).isoformat()
        await self._save_config(config)
        return config

    @staticmethod
    def create_log_notification(level: LogLevel, logger_name: Optional[str], data: Any) -> Dict[str, Any]:
        return LogMessageNotification(
            params=LogMessageParams(level=level, logger=logger_name, data=data)
        ).model_dump(mode="json", exclude_none=True)

    async def _deliver(self, session_id: str, notification: Dict[str, Any]) -> None:
        delivered = await self.sse_manager.send_notification(session_id, notification)
        if not delivered:
            params = notification["params"]
            logger.debug(
                f"No SSE channel for session {session_id}; "
                f"[{params['level']}] {params.get('logger')}: {params.get('data')}"
            )

    async def log(
        self,
        session_id: str,
        level: LogLevel,
        logger_name: str = DEFAULT_LOGGER_NAME,
        data: Any = None,
    ) -> bool:
        """Returns True iff the message passed level and rate-limit checks and was emitted."""
        try:
            config = await self._get_session_config(session_id)
            if not should_log_at_level(level, config.min_level):
                return False

            allowed = await self.rate_limiter.check_rate_limit(
                session_id,
                config.rate_limit.max_messages,
                config.rate_limit.window_ms,
            )
            if not allowed:
                if should_log_at_level(LogLevel.WARNING, config.min_level) and \
                        await self.rate_limiter.mark_warning_sent(session_id, config.rate_limit.window_ms):
                    warning = self.create_log_notification(
                        LogLevel.WARNING,
                        RATE_LIMIT_LOGGER_NAME,
                        {"message": "Rate limit exceeded for logging", "sessionId": session_id},
                    )
                    await self._deliver(session_id, warning)
                return False

            notification = self.create_log_notification(level, logger_name, create_safe_log_data(data))
            await self._deliver(session_id, notification)
            return True
        except Exception as e:
            logger.error(f"MCPLogger.log failed for session {session_id}: {e}", exc_info=True)
            return False

    async def emergency(self, session_id: str, logger_name: str, data: Any) -> bool:
        return await self.log(session_id, LogLevel.EMERGENCY, logger_name, data)

    async def alert(self, session_id: str, logger_name: str, data: Any) -> bool:
        return await self.log(session_id, LogLevel.ALERT, logger_name, data)

    async def critical(self, session_id: str, logger_name: str, data: Any) -> bool:
        return await self.log(session_id, LogLevel.CRITICAL, logger_name, data)

    async def error(self, session_id: str, logger_name: str, data: Any) -> bool:
        return await self.log(session_id, LogLevel.ERROR, logger_name, data)

    async def warning(self, session_id: str, logger_name: str, data: Any) -> bool:
        return await self.log(session_id, LogLevel.WARNING, logger_name, data)

    async def notice(self, session_id: str, logger_name: str, data: Any) -> bool:
        return await self.log(session_id, LogLevel.NOTICE, logger_name, data)

    async def info(self, session_id: str, logger_name: str, data: Any) -> bool:
        return await self.log(session_id, LogLevel.INFO, logger_name, data)

    async def debug(self, session_id: str, logger_name: str, data: Any) -> bool:
        return await self.log(session_id, LogLevel.DEBUG, logger_name, data)

    async def get_session_stats(self, session_id: str) -> Dict[str, Any]:
        config = await self._get_session_config(session_id)
        status = await self.rate_limiter.get_rate_limit_status(
            session_id, config.rate_limit.max_messages, config.rate_limit.window_ms
        )
        return {
            "config": config.model_dump(mode="json"),
            "rateLimitStatus": status.model_dump(),
            "hasConnection": self.sse_manager.has_connection(session_id),
            "timestamp": datetime.now(timezone.utc).isoformat(),
        }

    async def clear_session(self, session_id: str) -> None:
        await self.logging_kv.delete_config(session_id)
        await self.rate_limiter.reset_rate_limit(session_id)

    async def cleanup(self, older_than_ms: int = LOGGING_CONFIG_MAX_AGE_MS) -> Dict[str, int]:
        configs_cleaned = await self.logging_kv.cleanup(older_than_ms)
        rate_limits_cleaned = await self.rate_limiter.cleanup(older_than_ms)
        return {"configsCleaned": configs_cleaned, "rateLimitsCleaned": rate_limits_cleaned}


mcp_logger = MCPLogger()
