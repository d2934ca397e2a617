# tests/test_cli.py
import json

import pytest
import requests
from typer.testing import CliRunner

from v0_mcp.cli import config as cli_config
from v0_mcp.cli.main_cli import app
from v0_mcp.oauth.pkce import generate_pkce_code_challenge

runner = CliRunner()


class _FakeResponse:
    def __init__(self, status_code, payload):
        self.status_code = status_code
        self._payload = payload
        self.text = json.dumps(payload)

    def json(self):
        return self._payload


@pytest.fixture
def captured_requests(monkeypatch):
    calls = []

    def fake_request(method, url, **kwargs):
        calls.append({"method": method, "url": url, **kwargs})
        return _FakeResponse(200, {"ok": True})

    monkeypatch.setattr(cli_config, "V0_MCP_CLI_API_BASE_URL", "http://mcp.local")
    monkeypatch.setattr(cli_config, "V0_MCP_CLI_ADMIN_API_KEY", "cli-admin-key")
    monkeypatch.setattr(requests, "request", fake_request)
    return calls


def test_generate_pkce_outputs_matching_pair():
    result = runner.invoke(app, ["utils", "generate-pkce", "--length", "43"])
    assert result.exit_code == 0
    pair = json.loads(result.output)
    assert len(pair["code_verifier"]) == 43
    assert pair["code_challenge"] == generate_pkce_code_challenge(pair["code_verifier"])


def test_generate_pkce_rejects_unknown_method():
    result = runner.invoke(app, ["utils", "generate-pkce", "--method", "S512"])
    assert result.exit_code == 1


def test_admin_rate_limits_sends_repeated_session_ids(captured_requests):
    result = runner.invoke(app, ["admin", "rate-limits", "s1", "s2"])
    assert result.exit_code == 0, result.output
    call = captured_requests[0]
    assert call["url"] == "http://mcp.local/admin/rate-limits"
    assert call["params"] == {"session_id": ["s1", "s2"]}
    assert call["headers"]["X-Admin-API-Key"] == "cli-admin-key"


def test_admin_cleanup_payload(captured_requests):
    result = runner.invoke(app, ["admin", "cleanup", "--older-than-ms", "1000"])
    assert result.exit_code == 0, result.output
    assert captured_requests[0]["method"] == "POST"
    assert captured_requests[0]["json"] == {"older_than_ms": 1000}


def test_api_error_exits_nonzero(monkeypatch):
    monkeypatch.setattr(cli_config, "V0_MCP_CLI_ADMIN_API_KEY", "k")
    monkeypatch.setattr(requests, "request", lambda *a, **kw: _FakeResponse(403, {"detail": "Forbidden"}))
    result = runner.invoke(app, ["admin", "stats"])
    assert result.exit_code == 1
    assert "Forbidden" in result.output
