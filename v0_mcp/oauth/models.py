# v0_mcp/oauth/models.py
from pydantic import BaseModel, Field
from typing import Optional, List
from datetime import datetime, timezone

DEFAULT_SCOPE = "mcp:tools mcp:resources"
SUPPORTED_SCOPES = ["mcp:tools", "mcp:resources"]


def _utcnow() -> datetime:
    return datetime.now(timezone.utc)


class AuthorizationState(BaseModel):
    """Pending authorization attempt, stored under oauth:auth_code:{code}."""
    client_id: str
    redirect_uri: str
    code_challenge: str
    code_challenge_method: str = "S256"
    scope: str = DEFAULT_SCOPE
    created_at: datetime = Field(default_factory=_utcnow)
    expires_at: datetime


class AuthCodeCredential(BaseModel):
    """Encrypted backend API key bound to an authorization code (api:auth_code_key:{code})."""
    user_id: str
    encrypted_api_key: str
    is_active: bool = True
    created_at: datetime = Field(default_factory=_utcnow)
    last_used_at: datetime = Field(default_factory=_utcnow)


class AccessToken(BaseModel):
    """
    Bearer credential record stored under api:access_token:{token}.

    For tokens minted by a code exchange, `token` is the encrypted API key
    itself. `encrypted_api_key` always holds the ciphertext so refreshed
    tokens can still be decrypted with `client_id`.
    """
    token: str
    client_id: str
    scope: str = DEFAULT_SCOPE
    created_at: datetime = Field(default_factory=_utcnow)
    expires_at: datetime
    refresh_token: str
    refresh_expires_at: datetime
    encrypted_api_key: str
    user_id: Optional[str] = None

    def is_expired(self, now: Optional[datetime] = None) -> bool:
        return self.expires_at <= (now or _utcnow())

    def is_refresh_expired(self, now: Optional[datetime] = None) -> bool:
        return self.refresh_expires_at <= (now or _utcnow())


class TokenResponse(BaseModel):
    """OAuth token response structure as per RFC 6749."""
    access_token: str
    token_type: str = "Bearer"
    expires_in: int
    refresh_token: str
    scope: str


class IntrospectionResponse(BaseModel):
    """RFC 7662 introspection result."""
    active: bool
    client_id: Optional[str] = None
    scope: Optional[str] = None
    exp: Optional[int] = None
    iat: Optional[int] = None


class AuthorizationServerMetadata(BaseModel):
    """OAuth 2.0 server metadata as defined in RFC 8414 for discovery endpoint."""
    issuer: str
    authorization_endpoint: str
    token_endpoint: str
    introspection_endpoint: str
    revocation_endpoint: str
    registration_endpoint: str
    scopes_supported: List[str] = Field(default_factory=lambda: list(SUPPORTED_SCOPES))
    response_types_supported: List[str] = ["code"]
    grant_types_supported: List[str] = ["authorization_code", "refresh_token"]
    code_challenge_methods_supported: List[str] = ["S256", "plain"]
    token_endpoint_auth_methods_supported: List[str] = ["none"]
    authorization_response_iss_parameter_supported: bool = True


class ProtectedResourceMetadata(BaseModel):
    """OAuth protected resource metadata advertised by the MCP endpoint."""
    resource: str
    authorization_servers: List[str]
    scopes_supported: List[str] = Field(default_factory=lambda: list(SUPPORTED_SCOPES))
    bearer_methods_supported: List[str] = ["header"]
    resource_documentation: Optional[str] = None


class ClientRegistrationRequest(BaseModel):
    """RFC 7591 dynamic client registration request (subset)."""
    redirect_uris: List[str] = Field(default_factory=list)
    client_name: Optional[str] = None
    client_uri: Optional[str] = None


class ClientRegistrationResponse(BaseModel):
    client_id: str
    client_secret: str
    client_id_issued_at: int
    client_secret_expires_at: int = 0
    redirect_uris: List[str]
    grant_types: List[str] = ["authorization_code", "refresh_token"]
    response_types: List[str] = ["code"]
    client_name: str = "MCP Client"
    client_uri: Optional[str] = None
    token_endpoint_auth_method: str = "none"
    scope: str = DEFAULT_SCOPE
    registration_client_uri: str
    registration_access_token: str
