# v0_mcp/mcp_handlers/tools.py
import logging
from typing import Any, Awaitable, Callable, Dict, List, Mapping, Optional

from ..external_services import V0APIError, V0Client
from ..resources import SessionFile
from .dispatcher import MCPRequestContext
from .errors import validate_enum, validate_required, validate_type

logger = logging.getLogger(__name__)

CHAT_PRIVACY_VALUES = ("public", "private", "team-edit", "team", "unlisted")

TOOL_DEFINITIONS: List[Dict[str, Any]] = [
    {
        "name": "create_chat",
        "description": "Create a new v0 chat session with AI",
        "inputSchema": {
            "type": "object",
            "properties": {
                "message": {"type": "string", "description": "The message to send to v0"},
                "system": {"type": "string", "description": "System prompt for the chat"},
                "chatPrivacy": {
                    "type": "string",
                    "enum": list(CHAT_PRIVACY_VALUES),
                    "description": "Chat privacy setting",
                },
                "projectId": {"type": "string", "description": "Project ID to associate with the chat"},
            },
            "required": ["message"],
        },
    },
    {
        "name": "get_user_info",
        "description": "Retrieve user information from v0",
        "inputSchema": {"type": "object", "properties": {}},
    },
    {
        "name": "create_project",
        "description": "Create a new project in v0",
        "inputSchema": {
            "type": "object",
            "properties": {
                "name": {"type": "string", "description": "The name of the project"},
                "description": {"type": "string", "description": "The description of the project"},
            },
            "required": ["name"],
        },
    },
    {
        "name": "create_message",
        "description": "Add a new message to an existing v0 chat",
        "inputSchema": {
            "type": "object",
            "properties": {
                "chatId": {"type": "string", "description": "The ID of the chat to add a message to"},
                "message": {"type": "string", "description": "The message content to send"},
            },
            "required": ["chatId", "message"],
        },
    },
    {
        "name": "find_chats",
        "description": "Search and list v0 chats with optional filtering",
        "inputSchema": {
            "type": "object",
            "properties": {
                "limit": {"type": "string", "description": "Maximum number of chats to return"},
                "offset": {"type": "string", "description": "Number of chats to skip for pagination"},
                "isFavorite": {"type": "string", "description": "Filter by favorite status (true/false)"},
            },
        },
    },
    {
        "name": "favorite_chat",
        "description": "Mark a v0 chat as favorite or remove from favorites",
        "inputSchema": {
            "type": "object",
            "properties": {
                "chatId": {"type": "string", "description": "The ID of the chat to favorite/unfavorite"},
                "isFavorite": {
                    "type": "boolean",
                    "description": "Whether to favorite (true) or unfavorite (false) the chat",
                },
            },
            "required": ["chatId", "isFavorite"],
        },
    },
    {
        "name": "list_files",
        "description": "List files generated for a chat in the current session, fetching them from v0 when none are cached",
        "inputSchema": {
            "type": "object",
            "properties": {
                "chatId": {"type": "string", "description": "The chat whose files to list"},
                "language": {"type": "string", "description": "Filter files by programming language"},
                "includeStats": {"type": "boolean", "description": "Include file statistics in response"},
            },
            "required": ["chatId"],
        },
    },
    {
        "name": "get_chat_by_id",
        "description": "Retrieve a v0 chat with its latest version and files",
        "inputSchema": {
            "type": "object",
            "properties": {
                "chatId": {"type": "string", "description": "The ID of the chat to retrieve"},
            },
            "required": ["chatId"],
        },
    },
    {
        "name": "init_chat",
        "description": "Initialize a new v0 chat from existing source files",
        "inputSchema": {
            "type": "object",
            "properties": {
                "files": {
                    "type": "array",
                    "description": "Files to seed the chat with",
                    "items": {
                        "type": "object",
                        "properties": {
                            "name": {"type": "string", "description": "File name including path"},
                            "content": {"type": "string", "description": "File content"},
                            "url": {"type": "string", "description": "URL to fetch the file from"},
                        },
                        "required": ["name"],
                    },
                },
                "chatPrivacy": {
                    "type": "string",
                    "enum": list(CHAT_PRIVACY_VALUES),
                    "description": "Chat privacy setting",
                },
                "projectId": {"type": "string", "description": "Project ID to associate with the chat"},
            },
            "required": ["files"],
        },
    },
]


def _optional_string(args: Mapping[str, Any], name: str) -> Optional[str]:
    value = args.get(name)
    if value is None:
        return None
    return validate_type(value, "string", name)


def _required_string(args: Mapping[str, Any], name: str) -> str:
    return validate_type(validate_required(args.get(name), name), "string", name)


def _file_summary(session_file: SessionFile) -> Dict[str, Any]:
    return {
        "id": session_file.id,
        "filename": session_file.file.name,
        "language": session_file.file.language,
        "chatId": session_file.chat_id,
        "uri": session_file.uri,
        "createdAt": session_file.created_at.isoformat(),
        "messageId": session_file.message_id,
    }


def _non_empty_files(files: Any, content_field: str) -> List[Dict[str, Any]]:
    if not isinstance(files, list):
        return []
    return [f for f in files if isinstance(f, dict) and f.get(content_field)]


async def _store_generated_files(
    ctx: MCPRequestContext,
    chat_id: str,
    payload: Mapping[str, Any],
    message_id: Optional[str] = None,
) -> List[SessionFile]:
    """
    Caches files from a chat/message payload, preferring latestVersion.files
    over the legacy files list. Records chat_id as the last chat either way.
    """
    latest_version = payload.get("latestVersion") or {}
    latest_files = _non_empty_files(latest_version.get("files"), "content")
    if latest_files:
        return await ctx.file_store.add_files_from_chat(
            ctx.session_id, chat_id, latest_files, message_id, is_latest_version=True
        )
    legacy_files = _non_empty_files(payload.get("files"), "source")
    if legacy_files:
        return await ctx.file_store.add_files_from_chat(ctx.session_id, chat_id, legacy_files, message_id)
    await ctx.file_store.set_last_chat_id(ctx.session_id, chat_id)
    return []


async def create_chat(ctx: MCPRequestContext, client: V0Client, args: Mapping[str, Any]) -> Dict[str, Any]:
    message = _required_string(args, "message")
    chat_privacy = args.get("chatPrivacy")
    if chat_privacy is not None:
        validate_enum(chat_privacy, CHAT_PRIVACY_VALUES, "chatPrivacy")

    chat = await client.create_chat(
        message=message,
        system=_optional_string(args, "system"),
        chat_privacy=chat_privacy,
        project_id=_optional_string(args, "projectId"),
        model_configuration=args.get("modelConfiguration"),
    )
    chat_id = chat.get("id")
    added = await _store_generated_files(ctx, chat_id, chat) if chat_id else []
    return {
        "chatId": chat_id,
        "message": message,
        "webUrl": chat.get("webUrl") or chat.get("url"),
        "demoUrl": (chat.get("latestVersion") or {}).get("demoUrl"),
        "filesGenerated": len(added),
        "files": [_file_summary(f) for f in added],
    }


async def get_user_info(ctx: MCPRequestContext, client: V0Client, args: Mapping[str, Any]) -> Dict[str, Any]:
    user = await client.get_user()
    try:
        plan = await client.get_user_plan()
    except V0APIError as e:
        logger.info(f"User plan unavailable: {e}")
        plan = None
    try:
        scopes = await client.get_user_scopes()
    except V0APIError as e:
        logger.info(f"User scopes unavailable: {e}")
        scopes = []
    return {
        "id": user.get("id"),
        "name": user.get("name"),
        "email": user.get("email"),
        "plan": plan,
        "scopes": scopes or [],
    }


async def create_project(ctx: MCPRequestContext, client: V0Client, args: Mapping[str, Any]) -> Dict[str, Any]:
    project = await client.create_project(
        name=_required_string(args, "name"),
        description=_optional_string(args, "description"),
    )
    return {
        "projectId": project.get("id"),
        "name": project.get("name"),
        "description": project.get("description"),
        "webUrl": project.get("webUrl"),
        "createdAt": project.get("createdAt"),
    }


async def create_message(ctx: MCPRequestContext, client: V0Client, args: Mapping[str, Any]) -> Dict[str, Any]:
    chat_id = _required_string(args, "chatId")
    message = _required_string(args, "message")
    response = await client.send_message(chat_id, message, model_configuration=args.get("modelConfiguration"))
    added = await _store_generated_files(ctx, chat_id, response, message_id=response.get("id"))
    return {
        "chatId": chat_id,
        "messageId": response.get("id"),
        "message": message,
        "webUrl": response.get("webUrl") or response.get("url"),
        "demo": response.get("demo") or (response.get("latestVersion") or {}).get("demoUrl"),
        "model": (response.get("modelConfiguration") or {}).get("modelId", "default"),
        "filesGenerated": len(added),
        "files": [_file_summary(f) for f in added],
    }


async def find_chats(ctx: MCPRequestContext, client: V0Client, args: Mapping[str, Any]) -> Dict[str, Any]:
    response = await client.find_chats(
        limit=_optional_string(args, "limit"),
        offset=_optional_string(args, "offset"),
        is_favorite=_optional_string(args, "isFavorite"),
    )
    chats = response.get("data") or []
    return {
        "chats": [
            {
                "id": chat.get("id"),
                "name": chat.get("name") or "Untitled",
                "privacy": chat.get("privacy"),
                "favorite": bool(chat.get("favorite")),
                "updatedAt": chat.get("updatedAt"),
                "webUrl": chat.get("webUrl"),
            }
            for chat in chats
        ],
        "count": len(chats),
    }


async def favorite_chat(ctx: MCPRequestContext, client: V0Client, args: Mapping[str, Any]) -> Dict[str, Any]:
    chat_id = _required_string(args, "chatId")
    is_favorite = validate_type(validate_required(args.get("isFavorite"), "isFavorite"), "boolean", "isFavorite")
    response = await client.favorite_chat(chat_id, is_favorite)
    return {
        "chatId": chat_id,
        "isFavorite": response.get("favorited", is_favorite),
    }


async def get_chat_by_id(ctx: MCPRequestContext, client: V0Client, args: Mapping[str, Any]) -> Dict[str, Any]:
    chat_id = _required_string(args, "chatId")
    chat = await client.get_chat(chat_id)
    latest_version = chat.get("latestVersion") or {}
    await _store_generated_files(ctx, chat_id, chat, message_id=latest_version.get("id"))

    if latest_version.get("files"):
        versions = [
            {"name": f.get("name"), "locked": bool(f.get("locked")), "chars": len(f.get("content") or "")}
            for f in latest_version["files"]
        ]
    else:
        versions = [
            {"name": (f.get("meta") or {}).get("filename") or f.get("lang"), "chars": len(f.get("source") or "")}
            for f in chat.get("files") or []
        ]
    return {
        "id": chat.get("id", chat_id),
        "name": chat.get("name") or "Untitled",
        "privacy": chat.get("privacy"),
        "favorite": bool(chat.get("favorite")),
        "updatedAt": chat.get("updatedAt"),
        "webUrl": chat.get("webUrl"),
        "demoUrl": latest_version.get("demoUrl"),
        "files": versions,
        "totalFiles": len(versions),
    }


async def list_files(ctx: MCPRequestContext, client: V0Client, args: Mapping[str, Any]) -> Dict[str, Any]:
    chat_id = _required_string(args, "chatId")
    language = _optional_string(args, "language")
    include_stats = args.get("includeStats", False)
    if include_stats is not None:
        validate_type(include_stats, "boolean", "includeStats")

    chat_files = await ctx.file_store.get_chat_files(ctx.session_id, chat_id)
    if not chat_files:
        await ctx.mcp_logger.debug(ctx.session_id, "tool-execution", {
            "message": "No files found for chatId, auto-fetching from v0",
            "chatId": chat_id,
        })
        try:
            await get_chat_by_id(ctx, client, {"chatId": chat_id})
        except V0APIError as e:
            await ctx.mcp_logger.error(ctx.session_id, "tool-execution", {
                "message": "Failed to auto-fetch files from v0",
                "chatId": chat_id,
                "error": e.message,
            })
            return {
                "success": False,
                "error": f"Failed to fetch files for chat {chat_id}: {e.message}",
                "files": [],
                "chatId": chat_id,
                "totalFiles": 0,
            }
        chat_files = await ctx.file_store.get_chat_files(ctx.session_id, chat_id)
        await ctx.mcp_logger.info(ctx.session_id, "tool-execution", {
            "message": "Successfully auto-fetched and populated files from v0",
            "chatId": chat_id,
            "filesFound": len(chat_files),
        })

    if language:
        chat_files = [f for f in chat_files if f.file.language.lower() == language.lower()]

    files = [{**_file_summary(f), "content": f.file.content} for f in chat_files]
    result: Dict[str, Any] = {"files": files, "chatId": chat_id, "totalFiles": len(files)}
    if language:
        result["filteredByLanguage"] = language
    if include_stats:
        stats = await ctx.file_store.get_file_stats(ctx.session_id)
        result["stats"] = {
            "totalFiles": stats.total_files,
            "byLanguage": stats.by_language,
            "byChatId": stats.by_chat_id,
        }
    return result


async def init_chat(ctx: MCPRequestContext, client: V0Client, args: Mapping[str, Any]) -> Dict[str, Any]:
    files = validate_type(validate_required(args.get("files"), "files"), "array", "files")
    seed_files: List[Dict[str, Any]] = []
    for index, entry in enumerate(files):
        validate_type(entry, "object", f"files[{index}]")
        seed = {"name": _required_string(entry, "name")}
        for optional_field in ("content", "url"):
            value = _optional_string(entry, optional_field)
            if value is not None:
                seed[optional_field] = value
        seed_files.append(seed)

    chat_privacy = args.get("chatPrivacy")
    if chat_privacy is not None:
        validate_enum(chat_privacy, CHAT_PRIVACY_VALUES, "chatPrivacy")

    chat = await client.init_chat(seed_files, chat_privacy=chat_privacy, project_id=_optional_string(args, "projectId"))
    chat_id = chat.get("id")
    added = await _store_generated_files(ctx, chat_id, chat) if chat_id else []
    return {
        "chatId": chat_id,
        "webUrl": chat.get("webUrl") or chat.get("url"),
        "privacy": chat.get("privacy", chat_privacy),
        "filesSubmitted": len(seed_files),
        "filesCached": len(added),
    }


ToolExecutor = Callable[[MCPRequestContext, V0Client, Mapping[str, Any]], Awaitable[Dict[str, Any]]]

TOOL_EXECUTORS: Dict[str, ToolExecutor] = {
    "create_chat": create_chat,
    "get_user_info": get_user_info,
    "create_project": create_project,
    "create_message": create_message,
    "find_chats": find_chats,
    "favorite_chat": favorite_chat,
    "list_files": list_files,
    "get_chat_by_id": get_chat_by_id,
    "init_chat": init_chat,
}
