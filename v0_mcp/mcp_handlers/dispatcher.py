# v0_mcp/mcp_handlers/dispatcher.py
import logging
from typing import Any, Awaitable, Callable, Dict, Optional, Union

from pydantic import BaseModel, ConfigDict, Field

from ..external_services import V0ClientFactory
from ..mcp_logging import MCPLogger
from ..oauth.models import AccessToken
from ..resources import SessionFileStore
from .errors import MCPError, MCPErrors, RequestId, with_error_handling

logger = logging.getLogger(__name__)

JSONRPC_VERSION = "2.0"

# Methods that may be answered over a held-open SSE response
STREAMABLE_METHODS = frozenset({"logging/setLevel", "tools/call"})


class MCPRequestContext(BaseModel):
    """Everything a method handler needs for one JSON-RPC request."""

    model_config = ConfigDict(arbitrary_types_allowed=True)

    request_id: RequestId = None
    method: str
    params: Dict[str, Any] = Field(default_factory=dict)
    session_id: str
    token: Optional[str] = None
    access_token: Optional[AccessToken] = None
    api_key: Optional[str] = None
    user_agent: Optional[str] = None

    file_store: SessionFileStore
    mcp_logger: MCPLogger
    v0_client_factory: V0ClientFactory


MCPHandler = Callable[[MCPRequestContext], Awaitable[Any]]

MCP_HANDLERS: Dict[str, MCPHandler] = {}


def mcp_method(name: str) -> Callable[[MCPHandler], MCPHandler]:
    """Registers a coroutine as the handler for a JSON-RPC method."""
    def decorator(func: MCPHandler) -> MCPHandler:
        MCP_HANDLERS[name] = func
        return func
    return decorator


def create_success_response(request_id: RequestId, result: Any) -> Dict[str, Any]:
    return {"jsonrpc": JSONRPC_VERSION, "id": request_id, "result": result}


def create_error_response(request_id: RequestId, error: Union[MCPError, BaseException]) -> Dict[str, Any]:
    if not isinstance(error, MCPError):
        error = MCPErrors.internal_error(str(error) or type(error).__name__)
    return error.to_jsonrpc(request_id)


def should_stream(accept_header: Optional[str], method: Optional[str]) -> bool:
    return bool(accept_header) and "text/event-stream" in accept_header and method in STREAMABLE_METHODS


async def execute_mcp_method(method: str, context: MCPRequestContext) -> Dict[str, Any]:
    """
    Runs the handler registered for method and returns a complete JSON-RPC
    envelope. Never raises: every failure becomes an error envelope.
    """
    async def run() -> Any:
        handler = MCP_HANDLERS.get(method)
        if handler is None:
            raise MCPErrors.method_not_found(method)
        return await handler(context)

    try:
        result = await with_error_handling(run, f"MCP:{method}")
    except MCPError as e:
        return create_error_response(context.request_id, e)
    return create_success_response(context.request_id, result)
