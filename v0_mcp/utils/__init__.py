# v0_mcp/utils/__init__.py

"""
Utility module initialization file.

Exposes the credential codec and MIME type helpers.
"""

from .security import (
    ApiKeyCipher,
    DecryptionError,
    decrypt_api_key,
    encrypt_api_key,
    generate_access_token,
    generate_refresh_token,
)
from .mime_types import get_mime_type

__all__ = [
    "ApiKeyCipher",
    "DecryptionError",
    "decrypt_api_key",
    "encrypt_api_key",
    "generate_access_token",
    "generate_refresh_token",
    "get_mime_type",
]
