# tests/test_handlers.py
import json

from v0_mcp.mcp_handlers import MCPErrorCode, JSONRPCErrorCode, execute_mcp_method, should_stream
from v0_mcp.settings import settings

CHAT_PAYLOAD = {
    "id": "chat-1",
    "webUrl": "https://v0.dev/chat/chat-1",
    "latestVersion": {
        "id": "ver-1",
        "demoUrl": "https://demo.v0.dev/chat-1",
        "files": [
            {"object": "file", "name": "app/page.tsx", "content": "export default function Page() {}", "locked": False},
            {"object": "file", "name": "app/globals.css", "content": "body { margin: 0 }", "locked": False},
            {"object": "file", "name": "empty.ts", "content": "", "locked": False},
        ],
    },
}


def _tool_result(envelope):
    assert "error" not in envelope, envelope
    return json.loads(envelope["result"]["content"][0]["text"])


async def _call_tool(make_context, name, arguments=None, **kwargs):
    ctx = make_context("tools/call", {"name": name, "arguments": arguments or {}}, **kwargs)
    return await execute_mcp_method("tools/call", ctx)


def test_streaming_selection():
    assert should_stream("application/json, text/event-stream", "tools/call")
    assert should_stream("text/event-stream", "logging/setLevel")
    assert not should_stream("text/event-stream", "tools/list")
    assert not should_stream("application/json", "tools/call")
    assert not should_stream(None, "tools/call")


async def test_initialize_reports_capabilities(make_context):
    envelope = await execute_mcp_method("initialize", make_context("initialize", request_id="init-1"))
    assert envelope["id"] == "init-1"
    result = envelope["result"]
    assert result["protocolVersion"] == "2025-03-26"
    assert set(result["capabilities"]) == {"resources", "tools", "prompts", "logging"}
    assert result["serverInfo"]["name"] == "v0-mcp"


async def test_unknown_method(make_context):
    envelope = await execute_mcp_method("bogus/method", make_context("bogus/method"))
    assert envelope["error"]["code"] == JSONRPCErrorCode.METHOD_NOT_FOUND


async def test_set_level_validates(make_context, mcp_logger):
    ok = await execute_mcp_method("logging/setLevel", make_context("logging/setLevel", {"level": "debug"}))
    assert ok["result"] == {}
    assert (await mcp_logger.get_logging_config("session-1")).min_level == "debug"

    bad = await execute_mcp_method("logging/setLevel", make_context("logging/setLevel", {"level": "LOUD"}))
    assert bad["error"]["code"] == MCPErrorCode.INVALID_LOG_LEVEL
    assert "debug" in bad["error"]["data"]["validLevels"]


async def test_tools_list_has_all_tools(make_context):
    envelope = await execute_mcp_method("tools/list", make_context("tools/list"))
    names = {tool["name"] for tool in envelope["result"]["tools"]}
    assert names == {
        "create_chat", "get_user_info", "create_project", "create_message", "find_chats",
        "favorite_chat", "list_files", "get_chat_by_id", "init_chat",
    }


async def test_create_chat_caches_generated_files(make_context, v0_backend, file_store):
    v0_backend.add("POST", "/chats", CHAT_PAYLOAD)

    result = _tool_result(await _call_tool(make_context, "create_chat", {"message": "Build a landing page"}))

    assert result["chatId"] == "chat-1"
    assert result["demoUrl"] == "https://demo.v0.dev/chat-1"
    assert result["filesGenerated"] == 2
    assert v0_backend.last_json() == {"message": "Build a landing page"}
    assert v0_backend.requests[-1].headers["authorization"] == "Bearer v0_test_key_1234567890"
    assert await file_store.get_last_chat_id("session-1") == "chat-1"


async def test_argument_errors_are_jsonrpc_errors(make_context, v0_backend):
    envelope = await _call_tool(make_context, "create_chat", {})
    assert envelope["error"]["code"] == JSONRPCErrorCode.INVALID_PARAMS
    assert v0_backend.requests == []

    envelope = await _call_tool(make_context, "create_chat", {"message": "x", "chatPrivacy": "secret"})
    assert envelope["error"]["code"] == JSONRPCErrorCode.INVALID_PARAMS


async def test_backend_failure_is_reported_in_band(make_context, v0_backend):
    v0_backend.add("POST", "/projects", {"error": {"message": "quota exceeded"}}, status_code=429)

    envelope = await _call_tool(make_context, "create_project", {"name": "demo"})

    result = envelope["result"]
    assert result["isError"] is True
    assert result["content"][0]["text"] == "Error executing create_project: HTTP 429: quota exceeded"


async def test_unknown_tool(make_context):
    envelope = await _call_tool(make_context, "delete_everything")
    assert envelope["error"]["code"] == MCPErrorCode.TOOL_NOT_FOUND


async def test_missing_api_key(make_context, monkeypatch):
    monkeypatch.setattr(settings, "v0_fallback_api_key", None)
    envelope = await _call_tool(make_context, "get_user_info", api_key=None)
    assert envelope["error"]["code"] == MCPErrorCode.INVALID_API_KEY


async def test_fallback_api_key_is_used(make_context, v0_backend, monkeypatch):
    monkeypatch.setattr(settings, "v0_fallback_api_key", "org-key")
    v0_backend.add("GET", "/user", {"id": "u1", "name": "Ada", "email": "ada@example.com"})

    result = _tool_result(await _call_tool(make_context, "get_user_info", api_key=None))

    assert result["name"] == "Ada"
    assert result["plan"] is None
    assert result["scopes"] == []
    assert v0_backend.requests[0].headers["authorization"] == "Bearer org-key"


async def test_find_and_favorite_chats(make_context, v0_backend):
    v0_backend.add("GET", "/chats", {"data": [{"id": "c1", "favorite": True}, {"id": "c2", "name": "Shop"}]})
    v0_backend.add("PUT", "/chats/c2/favorite", {"id": "c2", "favorited": True})

    found = _tool_result(await _call_tool(make_context, "find_chats", {"limit": "10"}))
    assert found["count"] == 2
    assert [c["name"] for c in found["chats"]] == ["Untitled", "Shop"]
    assert v0_backend.requests[0].url.params["limit"] == "10"

    favorited = _tool_result(await _call_tool(make_context, "favorite_chat", {"chatId": "c2", "isFavorite": True}))
    assert favorited == {"chatId": "c2", "isFavorite": True}


async def test_create_message_handles_legacy_files(make_context, v0_backend):
    v0_backend.add("POST", "/chats/chat-7/messages", {
        "id": "msg-1",
        "files": [{"lang": "python", "source": "print(1)", "meta": {"filename": "main.py"}}],
        "modelConfiguration": {"modelId": "v0-1.5-md"},
    })

    result = _tool_result(await _call_tool(make_context, "create_message", {"chatId": "chat-7", "message": "add a script"}))

    assert result["messageId"] == "msg-1"
    assert result["model"] == "v0-1.5-md"
    assert result["files"][0]["filename"] == "main.py"
    assert result["files"][0]["messageId"] == "msg-1"


async def test_list_files_auto_fetches_and_filters(make_context, v0_backend):
    v0_backend.add("GET", "/chats/chat-1", CHAT_PAYLOAD)

    result = _tool_result(await _call_tool(
        make_context, "list_files", {"chatId": "chat-1", "language": "CSS", "includeStats": True}
    ))

    assert result["totalFiles"] == 1
    assert result["files"][0]["content"] == "body { margin: 0 }"
    assert result["filteredByLanguage"] == "CSS"
    assert result["stats"]["totalFiles"] == 2

    cached = _tool_result(await _call_tool(make_context, "list_files", {"chatId": "chat-1"}))
    assert cached["totalFiles"] == 2
    assert len(v0_backend.requests) == 1


async def test_list_files_reports_fetch_failure(make_context):
    result = _tool_result(await _call_tool(make_context, "list_files", {"chatId": "missing"}))
    assert result["success"] is False
    assert result["files"] == []


async def test_init_chat_sends_seed_files(make_context, v0_backend):
    v0_backend.add("POST", "/chats/init", {"id": "chat-9", "webUrl": "https://v0.dev/chat/chat-9", "privacy": "private"})

    result = _tool_result(await _call_tool(make_context, "init_chat", {
        "files": [{"name": "README.md", "content": "# hi"}, {"name": "logo.svg", "url": "https://x/logo.svg"}],
        "chatPrivacy": "private",
    }))

    assert result["filesSubmitted"] == 2
    assert result["chatId"] == "chat-9"
    assert v0_backend.last_json()["type"] == "files"


async def test_prompts(make_context):
    listed = await execute_mcp_method("prompts/list", make_context("prompts/list"))
    names = [p["name"] for p in listed["result"]["prompts"]]
    assert "create_v0_chat" in names

    got = await execute_mcp_method("prompts/get", make_context(
        "prompts/get", {"name": "create_v0_chat", "arguments": {"project_type": "dashboard", "complexity": "complex"}}
    ))
    text = got["result"]["messages"][0]["content"]["text"]
    assert "dashboard" in text and "v0-1.5-lg" in text

    missing = await execute_mcp_method("prompts/get", make_context("prompts/get", {"name": "nope"}))
    assert missing["error"]["code"] == JSONRPCErrorCode.INVALID_PARAMS


async def test_resources_list_and_read(make_context, v0_backend, file_store):
    v0_backend.add("POST", "/chats", CHAT_PAYLOAD)
    await _call_tool(make_context, "create_chat", {"message": "Build"})

    listed = await execute_mcp_method("resources/list", make_context("resources/list"))
    uris = [r["uri"] for r in listed["result"]["resources"]]
    assert uris[:3] == ["v0://user/config", "v0://session/stats", "v0://chats/chat-1"]
    file_uris = [u for u in uris if u.startswith("v0://session/session-1/files/")]
    assert len(file_uris) == 2

    read = await execute_mcp_method("resources/read", make_context("resources/read", {"uri": file_uris[0]}))
    content = read["result"]["contents"][0]
    assert content["text"] == "export default function Page() {}"

    chat = await execute_mcp_method("resources/read", make_context("resources/read", {"uri": "v0://chats/chat-1"}))
    assert len(json.loads(chat["result"]["contents"][0]["text"])["files"]) == 2

    stats = await execute_mcp_method("resources/read", make_context("resources/read", {"uri": "v0://session/stats"}))
    assert json.loads(stats["result"]["contents"][0]["text"])["total_files"] == 2


async def test_files_of_other_sessions_are_not_readable(make_context, v0_backend):
    v0_backend.add("POST", "/chats", CHAT_PAYLOAD)
    await _call_tool(make_context, "create_chat", {"message": "Build"}, session_id="owner")
    listed = await execute_mcp_method("resources/list", make_context("resources/list", session_id="owner"))
    file_uri = listed["result"]["resources"][-1]["uri"]

    envelope = await execute_mcp_method(
        "resources/read", make_context("resources/read", {"uri": file_uri}, session_id="intruder")
    )
    assert envelope["error"]["code"] == MCPErrorCode.RESOURCE_NOT_FOUND


async def test_user_config_resource(make_context, v0_backend):
    v0_backend.add("GET", "/user", {"id": "u1", "name": "Ada", "email": "ada@example.com"})
    v0_backend.add("GET", "/user/plan", {"plan": "premium"})
    v0_backend.add("GET", "/user/scopes", {"data": []})

    read = await execute_mcp_method("resources/read", make_context("resources/read", {"uri": "v0://user/config"}))

    config = json.loads(read["result"]["contents"][0]["text"])
    assert config["id"] == "u1"
    assert config["plan"] == {"plan": "premium"}
