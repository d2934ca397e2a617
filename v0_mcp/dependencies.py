# v0_mcp/dependencies.py
import logging
from typing import Annotated, Optional

from fastapi import Header, HTTPException, Request, status

from .external_services import V0Client, V0ClientFactory
from .mcp_logging import MCPLogger, RateLimiter, SSEManager, mcp_logger, rate_limiter, sse_manager
from .oauth.provider import V0OAuthProvider
from .resources import SessionFileStore, session_file_store
from .sessions import RedisSessionStore, SessionManager
from .settings import settings

logger = logging.getLogger(__name__)

_oauth_provider: Optional[V0OAuthProvider] = None
_session_manager: Optional[SessionManager] = None


async def get_admin_api_key(
    x_admin_api_key: Annotated[
        Optional[str],
        Header(description="The API Key for accessing admin routes.")
    ] = None
) -> str:
    """
    Validates admin API key authentication for protected admin endpoints.

    Returns the validated API key if authentication succeeds.
    Raises HTTPException with appropriate status codes for various failure scenarios.
    """
    if not settings.admin_api_key:
        logger.critical("ADMIN_API_KEY is not configured on the server. Admin endpoints are effectively disabled.")
        raise HTTPException(
            status_code=status.HTTP_503_SERVICE_UNAVAILABLE,
            detail="Admin API service is not configured properly (API Key missing on server).",
        )

    if not x_admin_api_key:
        logger.warning("Admin API: Missing X-Admin-API-Key header.")
        raise HTTPException(
            status_code=status.HTTP_401_UNAUTHORIZED,
            detail="Not authenticated: X-Admin-API-Key header missing.",
            headers={"WWW-Authenticate": 'Basic realm="Admin Area"'},
        )

    if x_admin_api_key != settings.admin_api_key:
        logger.warning("Admin API: Invalid X-Admin-API-Key provided.")
        raise HTTPException(
            status_code=status.HTTP_403_FORBIDDEN,
            detail="Forbidden: Invalid API Key.",
            headers={"WWW-Authenticate": 'Basic realm="Admin Area"'},
        )

    return x_admin_api_key


def get_base_url(request: Request) -> str:
    """
    Externally visible origin of this server, without a trailing slash.
    Honours reverse-proxy forwarding headers when no public URL is configured.
    """
    if settings.public_base_url:
        return settings.public_base_url.rstrip("/")
    proto = request.headers.get("x-forwarded-proto") or request.url.scheme
    host = request.headers.get("x-forwarded-host") or request.headers.get("host") or request.url.netloc
    return f"{proto.split(',')[0].strip()}://{host.split(',')[0].strip()}"


def get_oauth_provider() -> V0OAuthProvider:
    global _oauth_provider
    if _oauth_provider is None:
        _oauth_provider = V0OAuthProvider()
    return _oauth_provider


def get_session_manager() -> SessionManager:
    global _session_manager
    if _session_manager is None:
        _session_manager = SessionManager(store=RedisSessionStore(session_ttl_seconds=settings.session_ttl_seconds))
        logger.info("SessionManager (Redis-backed) initialized.")
    return _session_manager


def get_session_file_store() -> SessionFileStore:
    return session_file_store


def get_mcp_logger() -> MCPLogger:
    return mcp_logger


def get_sse_manager() -> SSEManager:
    return sse_manager


def get_rate_limiter() -> RateLimiter:
    return rate_limiter


def get_v0_client_factory() -> V0ClientFactory:
    """Builds backend clients per request. Tests override this to inject a mock transport."""
    return lambda api_key: V0Client(api_key)
