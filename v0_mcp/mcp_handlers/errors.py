# v0_mcp/mcp_handlers/errors.py
import logging
import traceback
from enum import Enum, IntEnum
from typing import Any, Awaitable, Callable, Dict, Iterable, Optional, TypeVar, Union

from ..external_services import V0APIError

logger = logging.getLogger(__name__)

T = TypeVar("T")
RequestId = Optional[Union[str, int]]


class JSONRPCErrorCode(IntEnum):
    PARSE_ERROR = -32700
    INVALID_REQUEST = -32600
    METHOD_NOT_FOUND = -32601
    INVALID_PARAMS = -32602
    INTERNAL_ERROR = -32603
    # Implementation-defined server errors occupy -32099..-32000
    SERVER_ERROR = -32000


class MCPErrorCode(IntEnum):
    # Authentication
    UNAUTHORIZED = -1000
    FORBIDDEN = -1001
    TOKEN_EXPIRED = -1002
    INVALID_API_KEY = -1003

    # Resources
    RESOURCE_NOT_FOUND = -1100
    RESOURCE_ACCESS_DENIED = -1101
    RESOURCE_UNAVAILABLE = -1102
    RESOURCE_CONFLICT = -1103

    # Tools
    TOOL_NOT_FOUND = -1200
    TOOL_EXECUTION_FAILED = -1201
    TOOL_TIMEOUT = -1202
    TOOL_INVALID_ARGS = -1203

    # v0 API
    V0_API_ERROR = -1300
    V0_CHAT_NOT_FOUND = -1301
    V0_RATE_LIMITED = -1302
    V0_SERVICE_UNAVAILABLE = -1303

    # Streaming
    STREAMING_NOT_SUPPORTED = -1400
    STREAM_CLOSED = -1401
    STREAM_ERROR = -1402

    # Logging
    INVALID_LOG_LEVEL = -1500
    LOGGING_DISABLED = -1501


class ErrorSeverity(str, Enum):
    LOW = "low"
    MEDIUM = "medium"
    HIGH = "high"
    CRITICAL = "critical"


class MCPError(Exception):
    """
    A protocol error carrying a JSON-RPC error code.

    severity and recoverable feed internal classification only; they never
    appear on the wire.
    """

    def __init__(
        self,
        code: int,
        message: str,
        data: Any = None,
        severity: ErrorSeverity = ErrorSeverity.MEDIUM,
        recoverable: bool = True,
    ):
        super().__init__(message)
        self.code = int(code)
        self.message = message
        self.data = data
        self.severity = severity
        self.recoverable = recoverable

    def to_dict(self) -> Dict[str, Any]:
        error: Dict[str, Any] = {"code": self.code, "message": self.message}
        if self.data is not None:
            error["data"] = self.data
        return error

    def to_jsonrpc(self, request_id: RequestId = None) -> Dict[str, Any]:
        return {"jsonrpc": "2.0", "id": request_id, "error": self.to_dict()}

    def __repr__(self) -> str:
        return f"MCPError(code={self.code}, message={self.message!r})"


class MCPErrors:
    """Factories for the errors the server raises."""

    @staticmethod
    def parse_error(data: Any = None) -> MCPError:
        return MCPError(JSONRPCErrorCode.PARSE_ERROR, "Parse error", data, ErrorSeverity.HIGH, False)

    @staticmethod
    def invalid_request(data: Any = None) -> MCPError:
        return MCPError(JSONRPCErrorCode.INVALID_REQUEST, "Invalid Request", data)

    @staticmethod
    def method_not_found(method: str) -> MCPError:
        return MCPError(JSONRPCErrorCode.METHOD_NOT_FOUND, f"Method not found: {method}", {"method": method})

    @staticmethod
    def invalid_params(message: str, params: Any = None) -> MCPError:
        data = {"params": params} if params is not None else None
        return MCPError(JSONRPCErrorCode.INVALID_PARAMS, f"Invalid params: {message}", data)

    @staticmethod
    def internal_error(message: str, data: Any = None) -> MCPError:
        return MCPError(
            JSONRPCErrorCode.INTERNAL_ERROR, f"Internal error: {message}", data, ErrorSeverity.CRITICAL, False
        )

    @staticmethod
    def unauthorized(message: str = "Unauthorized") -> MCPError:
        return MCPError(MCPErrorCode.UNAUTHORIZED, message, None, ErrorSeverity.HIGH)

    @staticmethod
    def forbidden(message: str = "Forbidden") -> MCPError:
        return MCPError(MCPErrorCode.FORBIDDEN, message, None, ErrorSeverity.HIGH)

    @staticmethod
    def token_expired() -> MCPError:
        return MCPError(MCPErrorCode.TOKEN_EXPIRED, "Access token has expired", None, ErrorSeverity.HIGH)

    @staticmethod
    def invalid_api_key(message: str = "Invalid or missing v0 API key") -> MCPError:
        return MCPError(MCPErrorCode.INVALID_API_KEY, message, None, ErrorSeverity.HIGH)

    @staticmethod
    def resource_not_found(resource: str, resource_id: Optional[str] = None) -> MCPError:
        return MCPError(
            MCPErrorCode.RESOURCE_NOT_FOUND, f"Resource not found: {resource}", {"resource": resource, "id": resource_id}
        )

    @staticmethod
    def tool_not_found(tool_name: str) -> MCPError:
        return MCPError(MCPErrorCode.TOOL_NOT_FOUND, f"Tool not found: {tool_name}", {"toolName": tool_name})

    @staticmethod
    def tool_execution_failed(tool_name: str, error: str) -> MCPError:
        return MCPError(
            MCPErrorCode.TOOL_EXECUTION_FAILED,
            f"Tool execution failed: {tool_name}",
            {"toolName": tool_name, "error": error},
        )

    @staticmethod
    def v0_api_error(message: str, status_code: Optional[int] = None) -> MCPError:
        return MCPError(MCPErrorCode.V0_API_ERROR, f"V0 API error: {message}", {"statusCode": status_code}, ErrorSeverity.HIGH)

    @staticmethod
    def v0_chat_not_found(chat_id: str) -> MCPError:
        return MCPError(MCPErrorCode.V0_CHAT_NOT_FOUND, f"Chat not found: {chat_id}", {"chatId": chat_id})

    @staticmethod
    def v0_rate_limited(message: str = "Rate limited by v0 API") -> MCPError:
        return MCPError(MCPErrorCode.V0_RATE_LIMITED, message, None, ErrorSeverity.MEDIUM)

    @staticmethod
    def streaming_not_supported(method: str) -> MCPError:
        return MCPError(
            MCPErrorCode.STREAMING_NOT_SUPPORTED,
            f"Streaming not supported for method: {method}",
            {"method": method},
            ErrorSeverity.LOW,
        )

    @staticmethod
    def invalid_log_level(level: Any, valid_levels: Iterable[str]) -> MCPError:
        return MCPError(
            MCPErrorCode.INVALID_LOG_LEVEL,
            f"Invalid log level: {level}",
            {"level": level, "validLevels": list(valid_levels)},
        )


def classify_exception(exc: BaseException, operation_name: str = "operation") -> MCPError:
    """
    Maps any exception onto the taxonomy. Typed backend errors are mapped by
    status code; everything else falls back to message keywords.
    """
    if isinstance(exc, MCPError):
        return exc

    if isinstance(exc, V0APIError):
        status = exc.status_code
        if status == 404:
            return MCPError(MCPErrorCode.V0_CHAT_NOT_FOUND, exc.message, {"statusCode": status})
        if status == 429:
            return MCPError(MCPErrorCode.V0_RATE_LIMITED, exc.message, {"statusCode": status})
        if status in (401, 403):
            return MCPError(MCPErrorCode.INVALID_API_KEY, exc.message, {"statusCode": status}, ErrorSeverity.HIGH)
        return MCPErrors.v0_api_error(exc.message, status)

    message = str(exc) or type(exc).__name__
    lowered = message.lower()
    if "not found" in lowered:
        return MCPErrors.resource_not_found(operation_name, message)
    if "unauthorized" in lowered or "forbidden" in lowered:
        return MCPErrors.unauthorized(message)
    if "invalid" in lowered or "malformed" in lowered:
        return MCPErrors.invalid_params(message)
    return MCPErrors.internal_error(
        message,
        {
            "stack": "".join(traceback.format_exception(type(exc), exc, exc.__traceback__)),
            "originalError": type(exc).__name__,
        },
    )


async def with_error_handling(
    operation: Callable[[], Awaitable[T]],
    operation_name: str,
    on_error: Optional[Callable[[BaseException], Awaitable[None]]] = None,
) -> T:
    """
    Awaits operation(), re-raising any failure as a classified MCPError.
    on_error runs first and its own failures are only logged.
    """
    try:
        return await operation()
    except Exception as e:
        if isinstance(e, MCPError):
            logger.info(f"Error in {operation_name}: {e.message}")
        else:
            logger.error(f"Error in {operation_name}: {e}", exc_info=True)
        if on_error is not None:
            try:
                await on_error(e)
            except Exception as hook_error:
                logger.warning(f"on_error hook for {operation_name} failed: {hook_error}")
        raise classify_exception(e, operation_name) from e


def validate_required(value: Optional[T], param_name: str) -> T:
    if value is None:
        raise MCPErrors.invalid_params(f"Missing required parameter: {param_name}")
    return value


_TYPE_NAMES = {
    "string": str,
    "boolean": bool,
    "number": (int, float),
    "object": dict,
    "array": list,
}


def _type_name(value: Any) -> str:
    if isinstance(value, bool):
        return "boolean"
    for name, py_type in _TYPE_NAMES.items():
        if isinstance(value, py_type):
            return name
    return "null" if value is None else type(value).__name__


def validate_type(value: Any, expected_type: str, param_name: str) -> Any:
    """expected_type uses JSON type names: string, boolean, number, object, array."""
    actual = _type_name(value)
    if actual != expected_type:
        raise MCPErrors.invalid_params(
            f"Parameter {param_name} must be {expected_type}, got {actual}",
            {"expected": expected_type, "actual": actual, "value": value},
        )
    return value


def validate_enum(value: Any, valid_values: Iterable[str], param_name: str) -> str:
    valid = list(valid_values)
    if value not in valid:
        raise MCPErrors.invalid_params(
            f"Parameter {param_name} must be one of: {', '.join(valid)}",
            {"validValues": valid, "received": value},
        )
    return value
