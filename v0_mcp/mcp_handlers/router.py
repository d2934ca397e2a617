# v0_mcp/mcp_handlers/router.py
import asyncio
import json
import logging
from typing import Annotated, Any, AsyncIterator, Dict, Optional

from fastapi import APIRouter, Depends, Header, HTTPException, Request, Response, status
from fastapi.responses import JSONResponse, StreamingResponse

from ..dependencies import (
    get_base_url,
    get_mcp_logger,
    get_oauth_provider,
    get_session_file_store,
    get_session_manager,
    get_sse_manager,
    get_v0_client_factory,
)
from ..external_services import V0ClientFactory
from ..mcp_logging import MCPLogger, SSEManager
from ..mcp_logging.sse_manager import format_sse_data, format_sse_event
from ..oauth.models import AccessToken
from ..oauth.provider import V0OAuthProvider
from ..resources import SessionFileStore
from ..sessions import ClientInfo, SessionData, SessionManager
from ..settings import settings
from ..utils.security import DecryptionError
from .dispatcher import (
    JSONRPC_VERSION,
    MCPRequestContext,
    execute_mcp_method,
    should_stream,
)
from .errors import JSONRPCErrorCode, MCPErrors

logger = logging.getLogger(__name__)

mcp_router = APIRouter(tags=["MCP"])

SESSION_HEADER = "mcp-session-id"
STREAM_POLL_INTERVAL_SECONDS = 0.05
SSE_HEADERS = {
    "Cache-Control": "no-cache",
    "Connection": "keep-alive",
    "X-Accel-Buffering": "no",
}


class MCPAuthenticationRequired(HTTPException):
    """
    401 for the MCP endpoint. The body is a JSON-RPC error envelope and the
    challenge header points the client at the authorization server.
    """

    def __init__(self, base_url: str, message: str = "Authorization required"):
        authorization_uri = f"{base_url}/authorize"
        resource_metadata_url = f"{base_url}/.well-known/oauth-protected-resource"
        detail = {
            "jsonrpc": JSONRPC_VERSION,
            "error": {
                "code": int(JSONRPCErrorCode.SERVER_ERROR),
                "message": message,
                "data": {
                    "type": "auth_error",
                    "authorization_uri": authorization_uri,
                    "resource_metadata_url": resource_metadata_url,
                },
            },
            "id": None,
        }
        challenge = (
            f'Bearer realm="{base_url}", authorization_uri="{authorization_uri}", '
            f'resource_metadata_url="{resource_metadata_url}"'
        )
        super().__init__(
            status_code=status.HTTP_401_UNAUTHORIZED,
            detail=detail,
            headers={"WWW-Authenticate": challenge},
        )


async def require_access_token(
    base_url: Annotated[str, Depends(get_base_url)],
    oauth_provider: Annotated[V0OAuthProvider, Depends(get_oauth_provider)],
    authorization: Annotated[Optional[str], Header()] = None,
) -> AccessToken:
    """Bearer token from the Authorization header, validated against the token store."""
    if not authorization:
        logger.info("MCP request without Authorization header rejected.")
        raise MCPAuthenticationRequired(base_url)

    scheme, _, token = authorization.partition(" ")
    token = token.strip()
    if scheme.lower() != "bearer" or not token:
        logger.warning("Malformed Authorization header on MCP request.")
        raise MCPAuthenticationRequired(base_url)

    access_token = await oauth_provider.validate_token(token)
    if access_token is None:
        logger.info("Unknown or expired access token presented to MCP endpoint.")
        raise MCPAuthenticationRequired(base_url, "Invalid or expired access token")
    return access_token


def _client_info_from(params: Dict[str, Any]) -> Optional[ClientInfo]:
    raw = params.get("clientInfo")
    if not isinstance(raw, dict) or not isinstance(raw.get("name"), str):
        return None
    return ClientInfo(name=raw["name"], version=str(raw.get("version") or "unknown"))


def _validate_envelope(body: Any) -> Optional[str]:
    """Returns a description of what is wrong with the envelope, or None."""
    if not isinstance(body, dict):
        return "Request must be a JSON object"
    if body.get("jsonrpc") != JSONRPC_VERSION:
        return "jsonrpc must be \"2.0\""
    if not isinstance(body.get("method"), str) or not body["method"]:
        return "method must be a non-empty string"
    if "id" in body and body["id"] is not None and not isinstance(body["id"], (str, int)):
        return "id must be a string, number or null"
    if "params" in body and body["params"] is not None and not isinstance(body["params"], dict):
        return "params must be an object"
    return None


async def _stream_response(
    context: MCPRequestContext,
    sse_manager: SSEManager,
    session_id: str,
) -> AsyncIterator[str]:
    """
    Held-open response for one request: log notifications emitted while the
    handler runs are flushed ahead of the final result frame.
    """
    connection = await sse_manager.add_connection(session_id)
    task = asyncio.create_task(execute_mcp_method(context.method, context))
    try:
        while not task.done():
            frame = await connection.next_frame(timeout=STREAM_POLL_INTERVAL_SECONDS)
            if frame is not None:
                yield frame
        for frame in connection.drain():
            yield frame
        yield format_sse_data(task.result())
    except Exception as e:
        logger.error(f"Streaming response for session {session_id} failed: {e}", exc_info=True)
        yield format_sse_data(MCPErrors.internal_error(str(e)).to_jsonrpc(context.request_id))
    finally:
        if not task.done():
            task.cancel()
        await sse_manager.remove_connection(session_id, connection)


@mcp_router.post("/mcp")
async def handle_mcp_post(
    request: Request,
    access_token: Annotated[AccessToken, Depends(require_access_token)],
    session_manager: Annotated[SessionManager, Depends(get_session_manager)],
    file_store: Annotated[SessionFileStore, Depends(get_session_file_store)],
    mcp_logger: Annotated[MCPLogger, Depends(get_mcp_logger)],
    sse_manager: Annotated[SSEManager, Depends(get_sse_manager)],
    v0_client_factory: Annotated[V0ClientFactory, Depends(get_v0_client_factory)],
    mcp_session_id: Annotated[Optional[str], Header()] = None,
    accept: Annotated[Optional[str], Header()] = None,
    user_agent: Annotated[Optional[str], Header()] = None,
):
    raw_body = await request.body()
    try:
        body = json.loads(raw_body)
    except (json.JSONDecodeError, UnicodeDecodeError) as e:
        logger.info(f"Unparseable MCP request body: {e}")
        return JSONResponse(MCPErrors.parse_error(str(e)).to_jsonrpc(None), status_code=status.HTTP_400_BAD_REQUEST)

    problem = _validate_envelope(body)
    if problem:
        request_id = body.get("id") if isinstance(body, dict) and isinstance(body.get("id"), (str, int)) else None
        return JSONResponse(
            MCPErrors.invalid_request(problem).to_jsonrpc(request_id),
            status_code=status.HTTP_400_BAD_REQUEST,
        )

    method: str = body["method"]
    params: Dict[str, Any] = body.get("params") or {}
    request_id = body.get("id")
    is_notification = "id" not in body

    if mcp_session_id:
        existing = await session_manager.get_session(mcp_session_id)
        if existing and not await session_manager.owns_session(existing, access_token):
            logger.warning(f"Client {access_token.client_id} presented session {mcp_session_id} bound to another credential")
            raise HTTPException(status_code=status.HTTP_404_NOT_FOUND, detail="Session not found")

    client_info = _client_info_from(params) if method == "initialize" else None
    session, is_new = await session_manager.create_or_get_session(mcp_session_id, client_info)
    if is_new:
        logger.info(f"MCP session {session.id} opened by client {access_token.client_id}")

    try:
        api_key = await session_manager.bind_credential(session, access_token)
    except DecryptionError as e:
        logger.error(f"Failed to decrypt credential for session {session.id}: {e}")
        raise MCPAuthenticationRequired(get_base_url(request), "Access token could not be decrypted")

    context = MCPRequestContext(
        request_id=request_id,
        method=method,
        params=params,
        session_id=session.id,
        token=access_token.token,
        access_token=access_token,
        api_key=api_key,
        user_agent=user_agent,
        file_store=file_store,
        mcp_logger=mcp_logger,
        v0_client_factory=v0_client_factory,
    )
    session_headers = {SESSION_HEADER: session.id}

    if is_notification:
        envelope = await execute_mcp_method(method, context)
        if "error" in envelope:
            logger.info(f"Notification {method} failed: {envelope['error'].get('message')}")
        return Response(status_code=status.HTTP_202_ACCEPTED, headers=session_headers)

    if should_stream(accept, method):
        logger.debug(f"Streaming {method} for session {session.id}")
        return StreamingResponse(
            _stream_response(context, sse_manager, session.id),
            media_type="text/event-stream",
            headers={**SSE_HEADERS, **session_headers},
        )

    envelope = await execute_mcp_method(method, context)
    return JSONResponse(envelope, headers=session_headers)


async def _resolve_known_session(
    session_manager: SessionManager,
    session_id: Optional[str],
    access_token: AccessToken,
) -> SessionData:
    session = await session_manager.get_session(session_id) if session_id else None
    if session is None or not await session_manager.owns_session(session, access_token):
        raise HTTPException(status_code=status.HTTP_404_NOT_FOUND, detail="Session not found")
    return session


async def _notification_stream(
    request: Request,
    sse_manager: SSEManager,
    session_id: str,
) -> AsyncIterator[str]:
    connection = await sse_manager.add_connection(session_id)
    await sse_manager.send_event(session_id, "connected", {"sessionId": session_id})
    try:
        while not connection.closed:
            if await request.is_disconnected():
                logger.info(f"SSE client disconnected for session {session_id}")
                break
            frame = await connection.next_frame(timeout=settings.sse_ping_interval_seconds)
            if frame is not None:
                yield frame
            elif not connection.closed:
                yield format_sse_event("ping", {"sessionId": session_id})
    finally:
        await sse_manager.remove_connection(session_id, connection)


@mcp_router.get("/mcp")
async def handle_mcp_get(
    request: Request,
    access_token: Annotated[AccessToken, Depends(require_access_token)],
    session_manager: Annotated[SessionManager, Depends(get_session_manager)],
    sse_manager: Annotated[SSEManager, Depends(get_sse_manager)],
    accept: Annotated[Optional[str], Header()] = None,
    mcp_session_id: Annotated[Optional[str], Header()] = None,
):
    """Opens the out-of-band notification stream for an existing session."""
    session = await _resolve_known_session(session_manager, mcp_session_id, access_token)
    if not accept or "text/event-stream" not in accept:
        return JSONResponse(
            MCPErrors.streaming_not_supported("GET /mcp").to_jsonrpc(None),
            status_code=status.HTTP_406_NOT_ACCEPTABLE,
        )
    await session_manager.touch(session.id)
    return StreamingResponse(
        _notification_stream(request, sse_manager, session.id),
        media_type="text/event-stream",
        headers={**SSE_HEADERS, SESSION_HEADER: session.id},
    )


@mcp_router.delete("/mcp")
async def handle_mcp_delete(
    access_token: Annotated[AccessToken, Depends(require_access_token)],
    session_manager: Annotated[SessionManager, Depends(get_session_manager)],
    file_store: Annotated[SessionFileStore, Depends(get_session_file_store)],
    mcp_logger: Annotated[MCPLogger, Depends(get_mcp_logger)],
    sse_manager: Annotated[SSEManager, Depends(get_sse_manager)],
    mcp_session_id: Annotated[Optional[str], Header()] = None,
):
    """Tears down a session and everything keyed by it."""
    session = await _resolve_known_session(session_manager, mcp_session_id, access_token)
    await sse_manager.remove_connection(session.id)
    await file_store.clear_session(session.id)
    await mcp_logger.clear_session(session.id)
    await session_manager.clear_session(session.id)
    logger.info(f"MCP session {session.id} terminated by client {access_token.client_id}")
    return {"sessionId": session.id, "terminated": True}
