# v0_mcp/utils/security.py
import base64
import binascii
import hashlib
import logging
import secrets

from cryptography.exceptions import InvalidTag
from cryptography.hazmat.primitives.ciphers.aead import AESGCM

logger = logging.getLogger(__name__)

NONCE_LENGTH = 16
TAG_LENGTH = 16


class DecryptionError(Exception):
    """Raised for any failure to recover a plaintext API key."""

    def __init__(self, message: str = "Decryption failed"):
        super().__init__(message)


def _derive_key(client_id: str) -> bytes:
    """SHA-256 of the client identifier gives the 256-bit AES key."""
    return hashlib.sha256(client_id.encode("utf-8")).digest()


def encrypt_api_key(api_key: str, client_id: str) -> str:
    """
    Encrypt an API key with AES-256-GCM keyed by the OAuth client id.

    Returns base64(nonce || ciphertext || tag).
    """
    nonce = secrets.token_bytes(NONCE_LENGTH)
    # AESGCM appends the 16-byte tag to the ciphertext
    sealed = AESGCM(_derive_key(client_id)).encrypt(nonce, api_key.encode("utf-8"), None)
    return base64.b64encode(nonce + sealed).decode("ascii")


def decrypt_api_key(encrypted_data: str, client_id: str) -> str:
    """
    Decrypt a blob produced by encrypt_api_key.

    Malformed base64, truncated blobs and tag mismatches all raise the same
    DecryptionError so callers cannot tell tampering from corruption.
    """
    try:
        blob = base64.b64decode(encrypted_data.encode("ascii"), validate=True)
    except (binascii.Error, ValueError, UnicodeEncodeError):
        raise DecryptionError()

    if len(blob) < NONCE_LENGTH + TAG_LENGTH:
        raise DecryptionError()

    nonce, sealed = blob[:NONCE_LENGTH], blob[NONCE_LENGTH:]
    try:
        plaintext = AESGCM(_derive_key(client_id)).decrypt(nonce, sealed, None)
        return plaintext.decode("utf-8")
    except (InvalidTag, UnicodeDecodeError, ValueError):
        logger.debug("API key decryption failed (tag mismatch or corrupt data).")
        raise DecryptionError()


class ApiKeyCipher:
    """Binds the codec to one client identifier."""

    def __init__(self, client_id: str):
        if not client_id:
            raise ValueError("client_id is required for API key encryption.")
        self.client_id = client_id

    def encrypt(self, api_key: str) -> str:
        return encrypt_api_key(api_key, self.client_id)

    def decrypt(self, encrypted_data: str) -> str:
        return decrypt_api_key(encrypted_data, self.client_id)


def generate_access_token() -> str:
    """32 random bytes, base64url encoded without padding."""
    return secrets.token_urlsafe(32)


def generate_refresh_token() -> str:
    return secrets.token_urlsafe(32)
