# v0_mcp/main.py
import asyncio
import logging
from contextlib import asynccontextmanager, suppress
from typing import Dict, Union

from dotenv import load_dotenv
load_dotenv()

from fastapi import FastAPI, Request
from fastapi.middleware.cors import CORSMiddleware
from fastapi.responses import JSONResponse
from redis.exceptions import RedisError

from .settings import settings
from .admin.endpoints import admin_router
from .mcp_handlers.router import MCPAuthenticationRequired, mcp_router
from .mcp_logging import sse_manager
from .oauth.endpoints import oauth_router
from .oauth.errors import OAuthError
from .storage import close_redis_client, get_redis_client, initialize_redis_client

# Configure logging based on debug mode setting
if not logging.getLogger().hasHandlers():
    logging.basicConfig(
        level="DEBUG" if settings.debug_mode else settings.log_level.upper(),
        format='%(asctime)s - %(name)s [%(levelname)s] - %(message)s'
    )

logger = logging.getLogger(__name__)
logger.setLevel(logging.DEBUG if settings.debug_mode else logging.INFO)


async def _periodic_sse_cleanup() -> None:
    """Safety net for channels whose readers vanished without a disconnect."""
    while True:
        await asyncio.sleep(settings.sse_cleanup_interval_seconds)
        try:
            await sse_manager.cleanup()
        except Exception as e:
            logger.error(f"Periodic SSE cleanup failed: {e}", exc_info=True)


@asynccontextmanager
async def v0_mcp_app_lifespan(app_instance: FastAPI):
    """
    Connects Redis before serving and runs the SSE cleanup task for the
    lifetime of the application.
    """
    logger.info("Application startup initiated.")
    try:
        await initialize_redis_client()
    except Exception as e:
        logger.error(f"Error during storage backend initialization: {e}", exc_info=True)
        raise

    cleanup_task = asyncio.create_task(_periodic_sse_cleanup())
    logger.info(f"{settings.app_name} startup complete.")
    try:
        yield
    finally:
        logger.info("Application shutdown initiated.")
        cleanup_task.cancel()
        with suppress(asyncio.CancelledError):
            await cleanup_task
        for session_id in list(sse_manager.get_stats()["connectionsBySession"]):
            await sse_manager.remove_connection(session_id)
        try:
            await close_redis_client()
        except Exception as e_td:
            logger.error(f"Teardown error: {e_td}", exc_info=True)
        logger.info("All components torn down.")


app = FastAPI(
    title=settings.app_name,
    debug=settings.debug_mode,
    version=settings.app_version,
    lifespan=v0_mcp_app_lifespan
)

app.add_middleware(
    CORSMiddleware,
    allow_origins=["*"],
    allow_methods=["GET", "POST", "DELETE", "OPTIONS"],
    allow_headers=["*"],
    expose_headers=["mcp-session-id", "www-authenticate"],
)


@app.exception_handler(OAuthError)
@app.exception_handler(MCPAuthenticationRequired)
async def flat_error_body_handler(request: Request, exc: Union[OAuthError, MCPAuthenticationRequired]):
    """Renders the error detail as the whole body instead of nesting it under "detail"."""
    return JSONResponse(exc.detail, status_code=exc.status_code, headers=exc.headers)


@app.get("/")
async def root_api():
    return {
        "message": f"Welcome to {settings.app_name}!",
        "version": settings.app_version,
        "mcp_endpoint": "/mcp",
        "authorization_server": "/.well-known/oauth-authorization-server",
    }


@app.get("/health")
async def health_api():
    """Health check endpoint that validates Redis connectivity."""
    store_statuses: Dict[str, str] = {}
    all_healthy = True
    try:
        redis_client = await get_redis_client()
        await redis_client.ping()
        store_statuses["redis"] = "healthy"
    except (RedisError, RuntimeError, OSError) as e:
        store_statuses["redis"] = f"unhealthy: {e}"
        all_healthy = False

    return {
        "status": "healthy" if all_healthy else "degraded",
        "details": store_statuses,
        "sse_connections": sse_manager.get_stats()["totalConnections"],
    }


@app.get("/ping")
async def ping_api():
    return {"pong": True}


app.include_router(oauth_router)
app.include_router(mcp_router)
app.include_router(admin_router)

logger.info(f"{settings.app_name} initialized. Routers mounted.")
