# v0_mcp/settings.py
from pydantic_settings import BaseSettings, SettingsConfigDict
from pydantic import Field
from typing import Optional
import logging
from pathlib import Path

logger = logging.getLogger(__name__)

# This file lives at <project>/v0_mcp/settings.py
PROJECT_ROOT = Path(__file__).parent.parent.resolve()
DOTENV_PATH = PROJECT_ROOT / ".env"

if DOTENV_PATH.exists():
    logger.info(f"SETTINGS: .env file found at {DOTENV_PATH}")
else:
    logger.debug(
        f"SETTINGS: .env file not found at {DOTENV_PATH}. "
        "Relying on OS env vars or defaults."
    )


class Settings(BaseSettings):
    """Application settings with environment variable support."""

    app_name: str = "v0 MCP Server"
    app_version: str = "1.0.0"
    debug_mode: bool = False
    log_level: str = "INFO"

    # Redis backs every durable namespace (oauth, api, session, logging, ratelimit)
    redis_host: str = "localhost"
    redis_port: int = 6379
    redis_db: int = 0
    redis_password: Optional[str] = None
    redis_ssl: bool = False

    public_base_url: Optional[str] = Field(
        default=None,
        description="Externally visible base URL. Derived from request headers when unset."
    )

    # Backend design API
    v0_api_base_url: str = "https://api.v0.dev/v1"
    v0_api_timeout_seconds: float = 120.0
    v0_fallback_api_key: Optional[str] = Field(
        default=None,
        description="Organisation key used only when a session has no bound credential."
    )

    # MCP session behaviour
    first_party_client_name: str = "v0-mcp"
    session_ttl_seconds: int = 3600 * 24
    sse_ping_interval_seconds: float = 30.0
    sse_stale_connection_seconds: int = 3600
    sse_cleanup_interval_seconds: float = 300.0

    admin_api_key: Optional[str] = Field(
        default=None,
        description="API Key for accessing admin routes."
    )

    model_config = SettingsConfigDict(
        env_file=DOTENV_PATH if DOTENV_PATH.exists() else None,
        extra="ignore",
        env_file_encoding="utf-8"
    )


settings = Settings()

logger.debug(
    f"SETTINGS: redis={settings.redis_host}:{settings.redis_port}/{settings.redis_db}, "
    f"v0_api_base_url='{settings.v0_api_base_url}', "
    f"admin_api_key={'********' if settings.admin_api_key else 'None'}"
)
