# v0_mcp/mcp_logging/log_filters.py
"""
Redaction of sensitive values before anything is pushed to an MCP client.

Two mechanisms apply: string leaves are scrubbed by a fixed set of regular
expressions, and any mapping key that looks sensitive has its whole value
replaced with the marker.
"""
import logging
import re
from typing import Any, Dict, Set

logger = logging.getLogger(__name__)

REDACTION_MARKER = "[REDACTED]"

# Keyword and separator are kept; only the value is replaced
_CREDENTIALS_PATTERN = re.compile(
    r"(api[\s_-]?key|token|secret|password|auth|bearer|jwt|session[_-]?id)([\s:=\"'`]+)(\S+)",
    re.IGNORECASE,
)

SENSITIVE_PATTERNS: Dict[str, "re.Pattern[str]"] = {
    "email": re.compile(r"\b[A-Za-z0-9._%+-]+@[A-Za-z0-9.-]+\.[A-Z|a-z]{2,}\b"),
    "credit_card": re.compile(r"\b(?:\d{4}[-\s]?){3}\d{4}\b"),
    "phone": re.compile(r"\b\d{3}[-.]?\d{3}[-.]?\d{4}\b"),
    "ssn": re.compile(r"\b\d{3}-?\d{2}-?\d{4}\b"),
    "url_with_credentials": re.compile(r"https?://[^@/\s]*:[^@/\s]*@[^\s]*"),
    "private_key": re.compile(
        r"-----BEGIN\s+(?:PRIVATE\s+KEY|RSA\s+PRIVATE\s+KEY)-----[\s\S]*?"
        r"-----END\s+(?:PRIVATE\s+KEY|RSA\s+PRIVATE\s+KEY)-----",
        re.IGNORECASE,
    ),
}

SENSITIVE_FIELD_NAMES: Set[str] = {
    "password", "secret", "token", "key", "auth", "authorization",
    "bearer", "jwt", "sessionid", "session_id", "apikey", "api_key",
    "clientsecret", "client_secret", "refreshtoken", "refresh_token",
    "accesstoken", "access_token", "privatekey", "private_key",
    "encryptedapikey", "encrypted_api_key", "email", "phone", "ssn",
    "creditcard", "credit_card", "cardnumber", "card_number",
}

SENSITIVE_FIELD_STEMS = (
    "password", "secret", "token", "key", "auth", "bearer",
    "jwt", "session", "api", "private", "encrypted", "email",
)


def is_sensitive_field_name(field_name: str) -> bool:
    lowered = str(field_name).lower()
    if lowered in SENSITIVE_FIELD_NAMES:
        return True
    return any(stem in lowered for stem in SENSITIVE_FIELD_STEMS)


def redact_string(text: str) -> str:
    result = _CREDENTIALS_PATTERN.sub(lambda m: f"{m.group(1)}{m.group(2)}{REDACTION_MARKER}", text)
    for pattern in SENSITIVE_PATTERNS.values():
        result = pattern.sub(REDACTION_MARKER, result)
    return result


def _redact(data: Any, ancestors: Set[int]) -> Any:
    if data is None or isinstance(data, (bool, int, float)):
        return data
    if isinstance(data, str):
        return redact_string(data)

    if isinstance(data, (dict, list, tuple)):
        if id(data) in ancestors:
            return REDACTION_MARKER
        ancestors.add(id(data))
        try:
            if isinstance(data, dict):
                return {
                    key: REDACTION_MARKER if is_sensitive_field_name(key) else _redact(value, ancestors)
                    for key, value in data.items()
                }
            return [_redact(item, ancestors) for item in data]
        finally:
            ancestors.discard(id(data))

    return data


def redact_sensitive_data(data: Any) -> Any:
    """
    Returns a redacted copy of data. Cycles are cut with the marker at the
    point of recursion. Redacting redacted output is a no-op.
    """
    return _redact(data, set())


def create_safe_log_data(original_data: Any) -> Any:
    try:
        return redact_sensitive_data(original_data)
    except Exception as e:
        logger.error(f"Redaction failed for {type(original_data).__name__}: {e}")
        return {
            "error": "Failed to process log data",
            "originalType": type(original_data).__name__,
            "message": "Sensitive data filtering failed - original data redacted for safety",
        }
