# v0_mcp/oauth/__init__.py
# OAuth 2.1 authorization server for the v0 MCP endpoint.
# The router lives in .endpoints and is mounted by the application.

# Core OAuth models and data structures
from .models import (
    DEFAULT_SCOPE,
    SUPPORTED_SCOPES,
    AccessToken,
    AuthCodeCredential,
    AuthorizationState,
    TokenResponse,
)

# OAuth error types and exception handling
from .errors import (
    OAuthError,
    InvalidRequestError,
    InvalidGrantError,
    UnsupportedGrantTypeError,
    InvalidRedirectUriError,
    ServerError,
)

# PKCE (Proof Key for Code Exchange) utilities
from .pkce import (
    generate_pkce_code_verifier,
    generate_pkce_code_challenge,
    verify_pkce_code_verifier,
)

# Main OAuth provider implementation
from .provider import V0OAuthProvider

__all__ = [
    "DEFAULT_SCOPE",
    "SUPPORTED_SCOPES",
    "AccessToken",
    "AuthCodeCredential",
    "AuthorizationState",
    "TokenResponse",
    "OAuthError",
    "InvalidRequestError",
    "InvalidGrantError",
    "UnsupportedGrantTypeError",
    "InvalidRedirectUriError",
    "ServerError",
    "generate_pkce_code_verifier",
    "generate_pkce_code_challenge",
    "verify_pkce_code_verifier",
    "V0OAuthProvider",
]
