# tests/conftest.py
import json
import logging
from typing import Any, Callable, Dict, List, Optional

import fakeredis
import fakeredis.aioredis
import httpx
import pytest

from v0_mcp import dependencies
from v0_mcp.external_services import V0Client
from v0_mcp.mcp_handlers import MCPRequestContext
from v0_mcp.mcp_logging import MCPLogger, RateLimiter, SSEManager
from v0_mcp.resources import SessionFileStore
from v0_mcp.settings import settings
from v0_mcp.storage import set_redis_client

logging.basicConfig(
    level=logging.DEBUG,
    format="%(asctime)s - %(name)s - [%(levelname)s] - %(message)s",
)

TEST_ADMIN_API_KEY = "test-admin-key"
TEST_V0_API_KEY = "v0_test_key_1234567890"
TEST_CLIENT_ID = "test-client"
TEST_REDIRECT_URI = "http://localhost:3000/callback"


class FakeV0Backend:
    """
    Canned v0 API. Routes are keyed by (method, path relative to the API
    base); every request is recorded for assertions.
    """

    def __init__(self):
        self.requests: List[httpx.Request] = []
        self.routes: Dict[tuple, Callable[[httpx.Request], httpx.Response]] = {}
        self.base_path = httpx.URL(settings.v0_api_base_url).path.rstrip("/")

    def add(self, method: str, path: str, body: Any = None, status_code: int = 200) -> None:
        self.routes[(method, path)] = lambda request: httpx.Response(status_code, json=body)

    def handler(self, request: httpx.Request) -> httpx.Response:
        self.requests.append(request)
        path = request.url.path[len(self.base_path):]
        route = self.routes.get((request.method, path))
        if route is None:
            return httpx.Response(404, json={"error": {"message": f"No route for {request.method} {path}"}})
        return route(request)

    def client_factory(self) -> Callable[[str], V0Client]:
        transport = httpx.MockTransport(self.handler)
        return lambda api_key: V0Client(api_key, transport=transport)

    def last_json(self) -> Dict[str, Any]:
        return json.loads(self.requests[-1].content)


@pytest.fixture
async def redis_client():
    client = fakeredis.aioredis.FakeRedis(server=fakeredis.FakeServer())
    set_redis_client(client)
    yield client
    set_redis_client(None)
    await client.aclose()


@pytest.fixture
def v0_backend() -> FakeV0Backend:
    return FakeV0Backend()


@pytest.fixture
def sse_manager() -> SSEManager:
    return SSEManager()


@pytest.fixture
def file_store(redis_client) -> SessionFileStore:
    return SessionFileStore()


@pytest.fixture
def mcp_logger(redis_client, sse_manager) -> MCPLogger:
    return MCPLogger(rate_limiter=RateLimiter(), sse_manager=sse_manager)


@pytest.fixture
def make_context(file_store, mcp_logger, v0_backend):
    """Builds a handler context bound to the fake backend."""

    def _make(method: str, params: Optional[Dict[str, Any]] = None, session_id: str = "session-1",
              api_key: Optional[str] = TEST_V0_API_KEY, request_id: Any = 1) -> MCPRequestContext:
        return MCPRequestContext(
            request_id=request_id,
            method=method,
            params=params or {},
            session_id=session_id,
            api_key=api_key,
            file_store=file_store,
            mcp_logger=mcp_logger,
            v0_client_factory=v0_backend.client_factory(),
        )

    return _make


@pytest.fixture
async def app_client(redis_client, v0_backend, file_store, mcp_logger, sse_manager, monkeypatch):
    """
    The application behind an in-process transport. Lifespan does not run;
    Redis is the injected fake and per-test collaborators replace the
    module singletons.
    """
    from v0_mcp.main import app

    monkeypatch.setattr(settings, "admin_api_key", TEST_ADMIN_API_KEY)
    monkeypatch.setattr(settings, "public_base_url", None)
    monkeypatch.setattr(settings, "v0_fallback_api_key", None)
    monkeypatch.setattr(dependencies, "_oauth_provider", None)
    monkeypatch.setattr(dependencies, "_session_manager", None)

    app.dependency_overrides[dependencies.get_v0_client_factory] = v0_backend.client_factory
    app.dependency_overrides[dependencies.get_session_file_store] = lambda: file_store
    app.dependency_overrides[dependencies.get_mcp_logger] = lambda: mcp_logger
    app.dependency_overrides[dependencies.get_sse_manager] = lambda: sse_manager

    transport = httpx.ASGITransport(app=app)
    async with httpx.AsyncClient(transport=transport, base_url="http://testserver") as client:
        yield client
    app.dependency_overrides.clear()
