# tests/test_errors.py
import pytest

from v0_mcp.external_services import V0APIError
from v0_mcp.mcp_handlers import (
    JSONRPCErrorCode,
    MCPError,
    MCPErrorCode,
    MCPErrors,
    classify_exception,
    validate_enum,
    validate_required,
    validate_type,
    with_error_handling,
)


def test_envelope_omits_absent_data():
    envelope = MCPErrors.method_not_found("foo/bar").to_jsonrpc(7)
    assert envelope == {
        "jsonrpc": "2.0",
        "id": 7,
        "error": {"code": -32601, "message": "Method not found: foo/bar", "data": {"method": "foo/bar"}},
    }
    assert "data" not in MCPErrors.token_expired().to_dict()


def test_severity_stays_internal():
    error = MCPErrors.internal_error("boom")
    assert set(error.to_dict()) == {"code", "message"}
    assert not error.recoverable


@pytest.mark.parametrize("status_code, expected", [
    (404, MCPErrorCode.V0_CHAT_NOT_FOUND),
    (429, MCPErrorCode.V0_RATE_LIMITED),
    (401, MCPErrorCode.INVALID_API_KEY),
    (403, MCPErrorCode.INVALID_API_KEY),
    (500, MCPErrorCode.V0_API_ERROR),
])
def test_backend_errors_map_by_status(status_code, expected):
    assert classify_exception(V0APIError("HTTP error", status_code)).code == expected


@pytest.mark.parametrize("message, expected", [
    ("Thing not found", MCPErrorCode.RESOURCE_NOT_FOUND),
    ("request unauthorized", MCPErrorCode.UNAUTHORIZED),
    ("invalid payload", JSONRPCErrorCode.INVALID_PARAMS),
    ("something else", JSONRPCErrorCode.INTERNAL_ERROR),
])
def test_generic_errors_map_by_message(message, expected):
    assert classify_exception(RuntimeError(message)).code == expected


def test_internal_error_keeps_stack_in_data():
    try:
        {}["missing"]
    except KeyError as e:
        error = classify_exception(e)

    assert error.data["originalError"] == "KeyError"
    assert "Traceback" in error.data["stack"]


def test_mcp_errors_pass_through():
    original = MCPErrors.tool_not_found("x")
    assert classify_exception(original) is original


async def test_with_error_handling_runs_hook_and_reclassifies():
    seen = []

    async def failing():
        raise RuntimeError("resource not found")

    async def hook(exc):
        seen.append(exc)
        raise ValueError("hook failures are swallowed")

    with pytest.raises(MCPError) as exc_info:
        await with_error_handling(failing, "lookup", on_error=hook)

    assert exc_info.value.code == MCPErrorCode.RESOURCE_NOT_FOUND
    assert isinstance(seen[0], RuntimeError)


def test_validators():
    assert validate_required("x", "name") == "x"
    with pytest.raises(MCPError):
        validate_required(None, "name")
    with pytest.raises(MCPError) as exc_info:
        validate_type(True, "number", "count")
    assert exc_info.value.data["params"]["actual"] == "boolean"
    assert validate_enum("public", ["public", "private"], "privacy") == "public"
    with pytest.raises(MCPError):
        validate_enum("secret", ["public", "private"], "privacy")
