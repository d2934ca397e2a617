# v0_mcp/mcp_handlers/handlers.py
"""
Handlers for the fixed set of MCP methods. Each is registered in
MCP_HANDLERS through @mcp_method and receives the request context.
"""
import json
import logging
from datetime import datetime, timezone
from typing import Any, Dict, List

from .. import analytics
from ..mcp_logging import LOG_LEVEL_PRIORITY, is_valid_log_level
from ..resources import SessionFile, parse_file_uri
from ..settings import settings
from ..utils.mime_types import get_mime_type
from .dispatcher import MCPRequestContext, mcp_method
from .errors import JSONRPCErrorCode, MCPError, MCPErrors, validate_required, validate_type
from .prompts import V0_PROMPTS, get_prompt_content
from .tools import TOOL_DEFINITIONS, TOOL_EXECUTORS, get_user_info

logger = logging.getLogger(__name__)

PROTOCOL_VERSION = "2025-03-26"
SERVER_NAME = "v0-mcp"

USER_CONFIG_URI = "v0://user/config"
SESSION_STATS_URI = "v0://session/stats"
CHAT_URI_PREFIX = "v0://chats/"


def _utcnow_iso() -> str:
    return datetime.now(timezone.utc).isoformat()


def _json_text(value: Any) -> str:
    return json.dumps(value, indent=2, default=str)


def _display_name(session_file: SessionFile) -> str:
    return session_file.file.name or f"{session_file.file.language}_file_{session_file.id[-8:]}"


async def _tool_failure(ctx: MCPRequestContext, name: str, error: str) -> Dict[str, Any]:
    logger.warning(f"Tool {name} failed for session {ctx.session_id}: {error}")
    await analytics.track_error("tool_execution_failed", name)
    await ctx.mcp_logger.error(ctx.session_id, "tool-execution", {
        "message": "Tool execution failed",
        "toolName": name,
        "error": error,
    })
    return {
        "content": [{"type": "text", "text": f"Error executing {name}: {error}"}],
        "isError": True,
    }


@mcp_method("initialize")
async def handle_initialize(ctx: MCPRequestContext) -> Dict[str, Any]:
    client_id = ctx.access_token.client_id if ctx.access_token else "anonymous"
    await analytics.track_session_start(client_id, ctx.session_id, ctx.user_agent)
    return {
        "protocolVersion": PROTOCOL_VERSION,
        "capabilities": {
            "resources": {"subscribe": False, "listChanged": False},
            "tools": {"listChanged": False},
            "prompts": {"listChanged": False},
            "logging": {},
        },
        "serverInfo": {"name": SERVER_NAME, "version": settings.app_version},
    }


@mcp_method("notifications/initialized")
async def handle_initialized(ctx: MCPRequestContext) -> Dict[str, Any]:
    logger.debug(f"Client finished initialization for session {ctx.session_id}")
    return {}


@mcp_method("logging/setLevel")
async def handle_set_level(ctx: MCPRequestContext) -> Dict[str, Any]:
    level = ctx.params.get("level")
    if not is_valid_log_level(level):
        raise MCPErrors.invalid_log_level(level, [lvl.value for lvl in LOG_LEVEL_PRIORITY])

    await ctx.mcp_logger.set_log_level(ctx.session_id, level)
    await ctx.mcp_logger.info(ctx.session_id, "mcp-server", {
        "message": "Log level changed",
        "newLevel": level,
        "timestamp": _utcnow_iso(),
    })
    return {}


@mcp_method("tools/list")
async def handle_tools_list(ctx: MCPRequestContext) -> Dict[str, Any]:
    return {"tools": TOOL_DEFINITIONS}


@mcp_method("tools/call")
async def handle_tools_call(ctx: MCPRequestContext) -> Dict[str, Any]:
    """
    Runs one tool against the v0 API.

    Argument validation errors surface as JSON-RPC errors. Backend and
    execution failures are reported in-band with isError so the model can
    see them.
    """
    name = ctx.params.get("name")
    executor = TOOL_EXECUTORS.get(name) if isinstance(name, str) else None
    if executor is None:
        raise MCPErrors.tool_not_found(str(name))

    arguments = ctx.params.get("arguments") or {}
    validate_type(arguments, "object", "arguments")

    await analytics.track_tool_usage(name, ctx.session_id, ctx.user_agent)
    await ctx.mcp_logger.debug(ctx.session_id, "tool-execution", {
        "message": "Tool execution started",
        "toolName": name,
        "arguments": arguments,
    })

    api_key = ctx.api_key or settings.v0_fallback_api_key
    if not api_key:
        raise MCPErrors.invalid_api_key()

    try:
        async with ctx.v0_client_factory(api_key) as client:
            result = await executor(ctx, client, arguments)
    except MCPError as e:
        if e.code == JSONRPCErrorCode.INVALID_PARAMS:
            raise
        return await _tool_failure(ctx, name, e.message)
    except Exception as e:
        return await _tool_failure(ctx, name, str(e))

    await ctx.mcp_logger.info(ctx.session_id, "tool-execution", {
        "message": "Tool execution completed successfully",
        "toolName": name,
    })
    return {"content": [{"type": "text", "text": _json_text(result)}]}


@mcp_method("prompts/list")
async def handle_prompts_list(ctx: MCPRequestContext) -> Dict[str, Any]:
    return {"prompts": [p.model_dump() for p in V0_PROMPTS]}


@mcp_method("prompts/get")
async def handle_prompts_get(ctx: MCPRequestContext) -> Dict[str, Any]:
    name = validate_type(validate_required(ctx.params.get("name"), "name"), "string", "name")
    arguments = ctx.params.get("arguments") or {}
    try:
        message = get_prompt_content(name, arguments)
    except KeyError:
        raise MCPErrors.invalid_params(f"Unknown prompt: {name}", {"name": name})

    await analytics.track_prompt_usage(name, ctx.session_id)
    definition = next(p for p in V0_PROMPTS if p.name == name)
    return {"description": definition.description, "messages": [message]}


@mcp_method("resources/list")
async def handle_resources_list(ctx: MCPRequestContext) -> Dict[str, Any]:
    await analytics.track_resource_usage("list", ctx.session_id)

    session_files = await ctx.file_store.get_session_files(ctx.session_id)
    last_chat_id = await ctx.file_store.get_last_chat_id(ctx.session_id)

    resources: List[Dict[str, Any]] = [
        {
            "uri": USER_CONFIG_URI,
            "name": "v0 User Configuration",
            "description": "User configuration and settings from v0",
            "mimeType": "application/json",
        },
        {
            "uri": SESSION_STATS_URI,
            "name": "Session File Statistics",
            "description": "Statistics about files generated in this session",
            "mimeType": "application/json",
        },
    ]
    if last_chat_id:
        resources.append({
            "uri": f"{CHAT_URI_PREFIX}{last_chat_id}",
            "name": f"Chat {last_chat_id} Files",
            "description": f"Files from the last interacted chat ({last_chat_id})",
            "mimeType": "application/json",
        })
    for session_file in session_files:
        resources.append({
            "uri": session_file.uri,
            "name": _display_name(session_file),
            "description": f"{session_file.file.language} file from chat {session_file.chat_id}",
            "mimeType": get_mime_type(session_file.file.language),
        })
    return {"resources": resources}


@mcp_method("resources/read")
async def handle_resources_read(ctx: MCPRequestContext) -> Dict[str, Any]:
    uri = validate_type(validate_required(ctx.params.get("uri"), "uri"), "string", "uri")
    await analytics.track_resource_usage("read", ctx.session_id)

    if uri == USER_CONFIG_URI:
        api_key = ctx.api_key or settings.v0_fallback_api_key
        if not api_key:
            raise MCPErrors.invalid_api_key()
        async with ctx.v0_client_factory(api_key) as client:
            user_info = await get_user_info(ctx, client, {})
        return {"contents": [{"uri": uri, "mimeType": "application/json", "text": _json_text(user_info)}]}

    if uri == SESSION_STATS_URI:
        stats = await ctx.file_store.get_file_stats(ctx.session_id)
        return {"contents": [{"uri": uri, "mimeType": "application/json", "text": _json_text(stats.model_dump())}]}

    if uri.startswith(CHAT_URI_PREFIX):
        chat_id = uri[len(CHAT_URI_PREFIX):]
        if chat_id:
            chat_files = await ctx.file_store.get_chat_files(ctx.session_id, chat_id)
            file_list = [
                {
                    "id": f.id,
                    "filename": _display_name(f),
                    "language": f.file.language,
                    "uri": f.uri,
                    "createdAt": f.created_at.isoformat(),
                    "messageId": f.message_id,
                }
                for f in chat_files
            ]
            text = _json_text({"chatId": chat_id, "files": file_list})
            return {"contents": [{"uri": uri, "mimeType": "application/json", "text": text}]}

    parsed = parse_file_uri(uri)
    if parsed and parsed["session_id"] == ctx.session_id:
        session_file = await ctx.file_store.get_file_by_uri(uri)
        if session_file:
            return {
                "contents": [{
                    "uri": uri,
                    "mimeType": get_mime_type(session_file.file.language),
                    "text": session_file.file.content,
                }]
            }

    raise MCPErrors.resource_not_found("resource", uri)
