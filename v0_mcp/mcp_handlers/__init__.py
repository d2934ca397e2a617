# v0_mcp/mcp_handlers/__init__.py
"""
JSON-RPC dispatch for the MCP endpoint. Importing the package registers
every method handler in MCP_HANDLERS.
"""

from .errors import (
    ErrorSeverity,
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
from .dispatcher import (
    MCP_HANDLERS,
    STREAMABLE_METHODS,
    MCPRequestContext,
    create_error_response,
    create_success_response,
    execute_mcp_method,
    mcp_method,
    should_stream,
)
from . import handlers
from .prompts import V0_PROMPTS, get_prompt_content
from .tools import TOOL_DEFINITIONS, TOOL_EXECUTORS

__all__ = [
    "ErrorSeverity",
    "JSONRPCErrorCode",
    "MCPError",
    "MCPErrorCode",
    "MCPErrors",
    "classify_exception",
    "validate_enum",
    "validate_required",
    "validate_type",
    "with_error_handling",
    "MCP_HANDLERS",
    "STREAMABLE_METHODS",
    "MCPRequestContext",
    "create_error_response",
    "create_success_response",
    "execute_mcp_method",
    "mcp_method",
    "should_stream",
    "handlers",
    "V0_PROMPTS",
    "get_prompt_content",
    "TOOL_DEFINITIONS",
    "TOOL_EXECUTORS",
]
