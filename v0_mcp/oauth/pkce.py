# v0_mcp/oauth/pkce.py
import base64
import hashlib
import re
import secrets

# RFC 7636 bounds the verifier to 43..128 characters
MIN_VERIFIER_LENGTH = 43
MAX_VERIFIER_LENGTH = 128
DEFAULT_VERIFIER_LENGTH = 64

SUPPORTED_CHALLENGE_METHODS = ("S256", "plain")

_VERIFIER_CHARSET = re.compile(r"^[A-Za-z0-9\-._~]+$")


def generate_pkce_code_verifier(length: int = DEFAULT_VERIFIER_LENGTH) -> str:
    """
    Generates a random code verifier drawn from the RFC 7636 unreserved
    alphabet (base64url output is a subset of it).
    """
    if not (MIN_VERIFIER_LENGTH <= length <= MAX_VERIFIER_LENGTH):
        raise ValueError(
            f"PKCE code verifier length must be between {MIN_VERIFIER_LENGTH} "
            f"and {MAX_VERIFIER_LENGTH} characters."
        )
    return secrets.token_urlsafe(length)[:length]


def generate_pkce_code_challenge(code_verifier: str, method: str = "S256") -> str:
    """
    Derives the code challenge for a verifier.

    S256: base64url(sha256(verifier)) without padding. plain: the verifier.
    """
    if method == "S256":
        digest = hashlib.sha256(code_verifier.encode("ascii")).digest()
        return base64.urlsafe_b64encode(digest).rstrip(b"=").decode("ascii")
    if method == "plain":
        return code_verifier
    raise ValueError(f"Unsupported PKCE code challenge method: {method}. Must be 'S256' or 'plain'.")


def verify_pkce_code_verifier(code_verifier: str, code_challenge: str, method: str = "S256") -> bool:
    """Constant-time comparison of a presented verifier against the stored challenge."""
    if not code_verifier or not code_challenge:
        return False
    if not validate_pkce_code_verifier_format(code_verifier):
        return False
    try:
        expected = generate_pkce_code_challenge(code_verifier, method)
    except (ValueError, UnicodeEncodeError):
        return False
    return secrets.compare_digest(expected.encode("ascii"), code_challenge.encode("utf-8"))


def validate_pkce_code_verifier_format(code_verifier: str) -> bool:
    """Checks length and character set of a verifier as per RFC 7636."""
    if not (MIN_VERIFIER_LENGTH <= len(code_verifier) <= MAX_VERIFIER_LENGTH):
        return False
    return bool(_VERIFIER_CHARSET.match(code_verifier))
