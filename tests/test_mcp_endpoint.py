# tests/test_mcp_endpoint.py
import json
import logging
from typing import Any, Dict, List, Optional
from urllib.parse import parse_qs, urlparse

import httpx

from v0_mcp.oauth.pkce import generate_pkce_code_challenge, generate_pkce_code_verifier
from v0_mcp.settings import settings

from conftest import TEST_CLIENT_ID, TEST_REDIRECT_URI, TEST_V0_API_KEY
from test_handlers import CHAT_PAYLOAD

logger = logging.getLogger("MCPEndpointTest")

MCP_PROTOCOL_VERSION = "2025-03-26"


class MCPTestHelperClient:
    """
    Drives the OAuth flow and the MCP endpoint the way a real client does,
    keeping the access token and session id between calls.
    """

    def __init__(self, http: httpx.AsyncClient):
        self.http = http
        self.access_token: Optional[str] = None
        self.refresh_token: Optional[str] = None
        self.mcp_session_id: Optional[str] = None
        self.request_counter = 0

    def _generate_mcp_request_id(self) -> str:
        self.request_counter += 1
        return f"e2e-{self.request_counter}"

    def _headers(self, accept: str = "application/json") -> Dict[str, str]:
        headers = {"Accept": accept, "Content-Type": "application/json"}
        if self.access_token:
            headers["Authorization"] = f"Bearer {self.access_token}"
        if self.mcp_session_id:
            headers["mcp-session-id"] = self.mcp_session_id
        return headers

    async def authorize(self, api_key: str = TEST_V0_API_KEY, state: str = "xyz") -> str:
        """Submits the consent form and returns the authorization code from the redirect."""
        self.code_verifier = generate_pkce_code_verifier()
        response = await self.http.post("/authorize", data={
            "client_id": TEST_CLIENT_ID,
            "redirect_uri": TEST_REDIRECT_URI,
            "code_challenge": generate_pkce_code_challenge(self.code_verifier),
            "code_challenge_method": "S256",
            "state": state,
            "v0_api_key": api_key,
        })
        assert response.status_code == 302, response.text
        location = urlparse(response.headers["location"])
        assert f"{location.scheme}://{location.netloc}{location.path}" == TEST_REDIRECT_URI
        query = parse_qs(location.query)
        assert query["state"] == [state]
        assert query["iss"] == ["http://testserver"]
        return query["code"][0]

    async def exchange_code(self, code: str) -> Dict[str, Any]:
        response = await self.http.post("/token", data={
            "grant_type": "authorization_code",
            "code": code,
            "redirect_uri": TEST_REDIRECT_URI,
            "client_id": TEST_CLIENT_ID,
            "code_verifier": self.code_verifier,
        })
        assert response.status_code == 200, response.text
        body = response.json()
        self.access_token = body["access_token"]
        self.refresh_token = body["refresh_token"]
        return body

    async def login(self) -> None:
        await self.exchange_code(await self.authorize())

    async def _make_mcp_protocol_request(
        self,
        method: str,
        params: Optional[Dict[str, Any]] = None,
        notification: bool = False,
        accept: str = "application/json",
    ) -> httpx.Response:
        payload: Dict[str, Any] = {"jsonrpc": "2.0", "method": method}
        if params is not None:
            payload["params"] = params
        if not notification:
            payload["id"] = self._generate_mcp_request_id()
        logger.debug(f"MCP request -> {method}")
        response = await self.http.post("/mcp", json=payload, headers=self._headers(accept))
        if "mcp-session-id" in response.headers:
            self.mcp_session_id = response.headers["mcp-session-id"]
        return response

    async def call(self, method: str, params: Optional[Dict[str, Any]] = None) -> Dict[str, Any]:
        response = await self._make_mcp_protocol_request(method, params)
        assert response.status_code == 200, response.text
        return response.json()

    async def initialize(self) -> Dict[str, Any]:
        envelope = await self.call("initialize", {
            "protocolVersion": MCP_PROTOCOL_VERSION,
            "capabilities": {},
            "clientInfo": {"name": "e2e-client", "version": "0.1"},
        })
        response = await self._make_mcp_protocol_request("notifications/initialized", notification=True)
        assert response.status_code == 202
        return envelope


def _sse_payloads(body: str) -> List[Dict[str, Any]]:
    return [json.loads(line[len("data: "):]) for line in body.splitlines() if line.startswith("data: ")]


async def test_unauthenticated_request_gets_challenge(app_client):
    response = await app_client.post("/mcp", json={"jsonrpc": "2.0", "id": 1, "method": "tools/list"})

    assert response.status_code == 401
    challenge = response.headers["www-authenticate"]
    assert challenge.startswith('Bearer realm="http://testserver"')
    assert 'resource_metadata_url="http://testserver/.well-known/oauth-protected-resource"' in challenge
    body = response.json()
    assert body["error"]["code"] == -32000
    assert body["error"]["data"]["type"] == "auth_error"


async def test_unknown_token_is_rejected(app_client):
    response = await app_client.post(
        "/mcp",
        json={"jsonrpc": "2.0", "id": 1, "method": "tools/list"},
        headers={"Authorization": "Bearer not-a-real-token"},
    )
    assert response.status_code == 401
    assert response.json()["error"]["message"] == "Invalid or expired access token"


async def test_discovery_metadata(app_client):
    server = (await app_client.get("/.well-known/oauth-authorization-server")).json()
    assert server["issuer"] == "http://testserver"
    assert server["authorization_endpoint"] == "http://testserver/authorize"

    resource = (await app_client.get("/.well-known/oauth-protected-resource")).json()
    assert resource["authorization_servers"] == ["http://testserver"]


async def test_forwarded_headers_shape_the_base_url(app_client):
    response = await app_client.get(
        "/.well-known/oauth-authorization-server",
        headers={"x-forwarded-proto": "https", "x-forwarded-host": "mcp.example.com, internal"},
    )
    assert response.json()["issuer"] == "https://mcp.example.com"


async def test_token_errors_are_flat_oauth_bodies(app_client):
    response = await app_client.post("/token", data={"grant_type": "authorization_code", "code": "nope"})
    assert response.status_code == 400
    assert response.json()["error"] == "invalid_grant"

    response = await app_client.post("/token", data={"grant_type": "password"})
    assert response.json()["error"] == "unsupported_grant_type"


async def test_authorize_requires_api_key(app_client):
    response = await app_client.post("/authorize", data={
        "client_id": TEST_CLIENT_ID, "redirect_uri": TEST_REDIRECT_URI, "code_challenge": "abc",
    })
    assert response.status_code == 400
    assert response.json()["error"] == "invalid_request"


async def test_custom_scheme_redirect_goes_through_success_page(app_client):
    response = await app_client.post("/authorize", data={
        "client_id": TEST_CLIENT_ID,
        "redirect_uri": "cursor://anysphere.cursor-mcp/oauth/callback",
        "code_challenge": generate_pkce_code_challenge(generate_pkce_code_verifier()),
        "v0_api_key": TEST_V0_API_KEY,
    })
    assert response.status_code == 302
    assert response.headers["location"].startswith("http://testserver/auth/success?")

    page = await app_client.get(response.headers["location"])
    assert page.status_code == 200
    assert "cursor://anysphere.cursor-mcp/oauth/callback?code=" in page.text


async def test_script_redirect_schemes_are_rejected(app_client):
    success = await app_client.get(
        "/auth/success", params={"redirect_uri": "javascript:alert(document.domain)//", "code": "x"}
    )
    assert success.status_code == 400
    assert success.json()["error"] == "invalid_request"
    assert "<script>" not in success.text

    for uri in ("JavaScript:alert(1)", " data:text/html,hi", "vbscript:msgbox(1)"):
        response = await app_client.post("/authorize", data={
            "client_id": TEST_CLIENT_ID,
            "redirect_uri": uri,
            "code_challenge": generate_pkce_code_challenge(generate_pkce_code_verifier()),
            "v0_api_key": TEST_V0_API_KEY,
        })
        assert response.status_code == 400, uri
        assert response.json()["error"] == "invalid_request"


async def test_full_session_flow(app_client, v0_backend):
    client = MCPTestHelperClient(app_client)
    await client.login()

    init = await client.initialize()
    assert init["result"]["protocolVersion"] == MCP_PROTOCOL_VERSION
    assert client.mcp_session_id

    tools = await client.call("tools/list")
    assert len(tools["result"]["tools"]) == 9

    v0_backend.add("POST", "/chats", CHAT_PAYLOAD)
    created = await client.call("tools/call", {"name": "create_chat", "arguments": {"message": "Build a landing page"}})
    result = json.loads(created["result"]["content"][0]["text"])
    assert result["filesGenerated"] == 2
    assert v0_backend.requests[-1].headers["authorization"] == f"Bearer {TEST_V0_API_KEY}"

    resources = (await client.call("resources/list"))["result"]["resources"]
    file_uris = [r["uri"] for r in resources if r["uri"].startswith(f"v0://session/{client.mcp_session_id}/files/")]
    assert len(file_uris) == 2

    read = await client.call("resources/read", {"uri": file_uris[0]})
    assert read["result"]["contents"][0]["text"] == "export default function Page() {}"

    deleted = await app_client.delete("/mcp", headers=client._headers())
    assert deleted.json() == {"sessionId": client.mcp_session_id, "terminated": True}

    gone = await app_client.get("/mcp", headers=client._headers("text/event-stream"))
    assert gone.status_code == 404


async def test_refreshed_token_still_carries_the_key(app_client, v0_backend):
    client = MCPTestHelperClient(app_client)
    await client.login()
    old_token = client.access_token

    response = await app_client.post("/token", data={"grant_type": "refresh_token", "refresh_token": client.refresh_token})
    assert response.status_code == 200
    client.access_token = response.json()["access_token"]
    assert client.access_token != old_token

    v0_backend.add("GET", "/user", {"id": "u1", "name": "Ada"})
    envelope = await client.call("tools/call", {"name": "get_user_info", "arguments": {}})
    assert json.loads(envelope["result"]["content"][0]["text"])["name"] == "Ada"


async def test_streamed_tool_call_carries_log_notifications(app_client, v0_backend):
    client = MCPTestHelperClient(app_client)
    await client.login()
    await client.initialize()
    await client.call("logging/setLevel", {"level": "debug"})

    v0_backend.add("POST", "/chats", CHAT_PAYLOAD)
    response = await client._make_mcp_protocol_request(
        "tools/call",
        {"name": "create_chat", "arguments": {"message": "Build"}},
        accept="application/json, text/event-stream",
    )

    assert response.status_code == 200
    assert response.headers["content-type"].startswith("text/event-stream")
    payloads = _sse_payloads(response.text)
    notifications = [p for p in payloads if p.get("method") == "notifications/message"]
    assert [n["params"]["data"]["message"] for n in notifications] == [
        "Tool execution started",
        "Tool execution completed successfully",
    ]
    final = payloads[-1]
    assert final["id"] == f"e2e-{client.request_counter}"
    assert json.loads(final["result"]["content"][0]["text"])["chatId"] == "chat-1"


async def test_protocol_errors(app_client):
    client = MCPTestHelperClient(app_client)
    await client.login()
    await client.initialize()

    garbage = await app_client.post("/mcp", content=b"{not json", headers=client._headers())
    assert garbage.status_code == 400
    assert garbage.json()["error"]["code"] == -32700
    assert garbage.json()["id"] is None

    wrong_version = await app_client.post(
        "/mcp", json={"jsonrpc": "1.0", "id": 5, "method": "tools/list"}, headers=client._headers()
    )
    assert wrong_version.status_code == 400
    assert wrong_version.json()["error"]["code"] == -32600
    assert wrong_version.json()["id"] == 5

    unknown = await client.call("does/not/exist")
    assert unknown["error"]["code"] == -32601


async def test_session_is_bound_to_its_credential(app_client, v0_backend):
    owner = MCPTestHelperClient(app_client)
    await owner.login()
    await owner.initialize()
    v0_backend.add("POST", "/chats", CHAT_PAYLOAD)
    await owner.call("tools/call", {"name": "create_chat", "arguments": {"message": "Build"}})
    resources = (await owner.call("resources/list"))["result"]["resources"]
    file_uri = next(r["uri"] for r in resources if "/files/" in r["uri"])

    intruder = MCPTestHelperClient(app_client)
    await intruder.exchange_code(await intruder.authorize(api_key="v0_other_key_0987654321"))
    intruder.mcp_session_id = owner.mcp_session_id

    read = await intruder._make_mcp_protocol_request("resources/read", {"uri": file_uri})
    assert read.status_code == 404
    stream = await app_client.get("/mcp", headers=intruder._headers("text/event-stream"))
    assert stream.status_code == 404
    deleted = await app_client.delete("/mcp", headers=intruder._headers())
    assert deleted.status_code == 404

    # the owner logging in again presents the same key under a new token
    returning = MCPTestHelperClient(app_client)
    await returning.login()
    returning.mcp_session_id = owner.mcp_session_id
    content = (await returning.call("resources/read", {"uri": file_uri}))["result"]["contents"][0]
    assert content["text"] == "export default function Page() {}"


async def test_notification_stream_requires_event_stream_accept(app_client):
    client = MCPTestHelperClient(app_client)
    await client.login()
    await client.initialize()

    response = await app_client.get("/mcp", headers=client._headers("application/json"))
    assert response.status_code == 406
    assert response.json()["error"]["code"] == -1400


async def test_session_is_created_per_unknown_id(app_client):

    client = MCPTestHelperClient(app_client)
    await client.login()
    client.mcp_session_id = "client-picked-id"

    response = await client._make_mcp_protocol_request("tools/list")
    assert response.headers["mcp-session-id"] == "client-picked-id"


async def test_delete_unknown_session(app_client):
    client = MCPTestHelperClient(app_client)
    await client.login()
    client.mcp_session_id = "never-seen"

    response = await app_client.delete("/mcp", headers=client._headers())
    assert response.status_code == 404


async def test_health_and_root(app_client):
    health = (await app_client.get("/health")).json()
    assert health["status"] == "healthy"
    assert (await app_client.get("/ping")).json() == {"pong": True}
    assert (await app_client.get("/")).json()["mcp_endpoint"] == "/mcp"


async def test_fallback_key_not_needed_when_token_carries_one(app_client, v0_backend, monkeypatch):
    monkeypatch.setattr(settings, "v0_fallback_api_key", "org-key")
    client = MCPTestHelperClient(app_client)
    await client.login()

    v0_backend.add("GET", "/user", {"id": "u1"})
    await client.call("tools/call", {"name": "get_user_info", "arguments": {}})
    assert v0_backend.requests[0].headers["authorization"] == f"Bearer {TEST_V0_API_KEY}"
