# v0_mcp/oauth/provider.py
import hashlib
import logging
from datetime import datetime, timedelta, timezone
from typing import Optional
from urllib.parse import urlencode, urlsplit, urlunsplit, parse_qsl
from uuid import uuid4

from pydantic import ValidationError

from ..storage import API_KV, OAUTH_KV, AbstractKVStore
from ..utils.security import encrypt_api_key, generate_refresh_token, generate_access_token
from .errors import InvalidGrantError, InvalidRequestError, UnsupportedGrantTypeError
from .models import (
    AccessToken,
    AuthCodeCredential,
    AuthorizationServerMetadata,
    AuthorizationState,
    DEFAULT_SCOPE,
    ProtectedResourceMetadata,
    SUPPORTED_SCOPES,
    TokenResponse,
)
from .pkce import SUPPORTED_CHALLENGE_METHODS, verify_pkce_code_verifier

logger = logging.getLogger(__name__)

AUTH_CODE_LIFETIME_SECONDS = 600  # 10 minutes
ACCESS_TOKEN_LIFETIME_SECONDS = 432000  # 5 days
REFRESH_TOKEN_LIFETIME_SECONDS = 2592000  # 30 days

ACCESS_TOKEN_KEY_PREFIX = "access_token:"


def _utcnow() -> datetime:
    return datetime.now(timezone.utc)


def build_redirect_uri(base_uri: str, params: dict) -> str:
    """Merges params into the query string of base_uri, dropping empty values."""
    parts = urlsplit(base_uri)
    query = dict(parse_qsl(parts.query, keep_blank_values=True))
    query.update({k: v for k, v in params.items() if v})
    return urlunsplit((parts.scheme, parts.netloc, parts.path, urlencode(query), parts.fragment))


class V0OAuthProvider:
    """
    Authorization-code + PKCE + refresh-token provider.

    The access token issued by a code exchange is the encrypted backend API
    key itself, so no separate token-to-credential table is needed.
    """

    def __init__(self, oauth_store: Optional[AbstractKVStore] = None, api_store: Optional[AbstractKVStore] = None):
        self.oauth_store = oauth_store or OAUTH_KV
        self.api_store = api_store or API_KV

    @staticmethod
    def _auth_code_key(code: str) -> str:
        return f"auth_code:{code}"

    @staticmethod
    def _auth_code_credential_key(code: str) -> str:
        return f"auth_code_key:{code}"

    @staticmethod
    def _access_token_key(token: str) -> str:
        return f"{ACCESS_TOKEN_KEY_PREFIX}{token}"

    async def _discard_code(self, code: str) -> None:
        await self.oauth_store.delete(self._auth_code_key(code))
        await self.api_store.delete(self._auth_code_credential_key(code))

    async def generate_authorization_code(
        self,
        client_id: str,
        redirect_uri: str,
        code_challenge: str,
        code_challenge_method: str,
        scope: str,
        raw_api_key: str,
    ) -> str:
        """Encrypts the API key, stores the one-shot authorization state and returns the code."""
        if not client_id or not redirect_uri or not code_challenge:
            raise InvalidRequestError("client_id, redirect_uri and code_challenge are required")
        if code_challenge_method not in SUPPORTED_CHALLENGE_METHODS:
            raise InvalidRequestError(f"Unsupported code_challenge_method: {code_challenge_method}")
        if not raw_api_key:
            raise InvalidRequestError("V0 API key is required")

        code = str(uuid4())
        now = _utcnow()
        state = AuthorizationState(
            client_id=client_id,
            redirect_uri=redirect_uri,
            code_challenge=code_challenge,
            code_challenge_method=code_challenge_method,
            scope=scope or DEFAULT_SCOPE,
            created_at=now,
            expires_at=now + timedelta(seconds=AUTH_CODE_LIFETIME_SECONDS),
        )
        credential = AuthCodeCredential(
            user_id=f"user_{hashlib.sha256(raw_api_key.encode('utf-8')).hexdigest()[:16]}",
            encrypted_api_key=encrypt_api_key(raw_api_key, client_id),
            created_at=now,
            last_used_at=now,
        )

        await self.oauth_store.put(
            self._auth_code_key(code), state.model_dump(mode="json"), ttl_seconds=AUTH_CODE_LIFETIME_SECONDS
        )
        await self.api_store.put(
            self._auth_code_credential_key(code),
            credential.model_dump(mode="json"),
            ttl_seconds=AUTH_CODE_LIFETIME_SECONDS,
        )
        logger.info(f"Authorization code issued for client '{client_id}' (scope: '{state.scope}').")
        return code

    async def exchange_code_for_token(
        self,
        code: str,
        client_id: str,
        redirect_uri: str,
        code_verifier: str,
    ) -> Optional[AccessToken]:
        """
        Exchanges a one-shot authorization code for an access token.

        Returns None (never raises) for unknown, mismatched, expired or
        PKCE-failing codes; the code is deleted on every such path.
        """
        if not code:
            return None

        state_raw = await self.oauth_store.get(self._auth_code_key(code))
        credential_raw = await self.api_store.get(self._auth_code_credential_key(code))
        if not state_raw or not credential_raw:
            logger.info(f"Token exchange: unknown authorization code '{code[:8]}...'.")
            await self._discard_code(code)
            return None

        try:
            state = AuthorizationState.model_validate(state_raw)
            credential = AuthCodeCredential.model_validate(credential_raw)
        except ValidationError as e:
            logger.error(f"Token exchange: corrupt authorization record for code '{code[:8]}...': {e}")
            await self._discard_code(code)
            return None

        if state.client_id != client_id or state.redirect_uri != redirect_uri:
            logger.warning(f"Token exchange: client_id/redirect_uri mismatch for client '{client_id}'.")
            await self._discard_code(code)
            return None

        if state.expires_at <= _utcnow():
            logger.info(f"Token exchange: authorization code expired for client '{client_id}'.")
            await self._discard_code(code)
            return None

        if not verify_pkce_code_verifier(code_verifier, state.code_challenge, state.code_challenge_method):
            logger.warning(
                f"Token exchange: PKCE verification failed for client '{client_id}' "
                f"(method {state.code_challenge_method})."
            )
            await self._discard_code(code)
            return None

        now = _utcnow()
        access_token = AccessToken(
            token=credential.encrypted_api_key,
            client_id=client_id,
            scope=state.scope,
            created_at=now,
            expires_at=now + timedelta(seconds=ACCESS_TOKEN_LIFETIME_SECONDS),
            refresh_token=generate_refresh_token(),
            refresh_expires_at=now + timedelta(seconds=REFRESH_TOKEN_LIFETIME_SECONDS),
            encrypted_api_key=credential.encrypted_api_key,
            user_id=credential.user_id,
        )
        await self._save_access_token(access_token)
        await self._discard_code(code)
        logger.info(f"Token exchange succeeded for client '{client_id}'.")
        return access_token

    async def _save_access_token(self, access_token: AccessToken) -> None:
        await self.api_store.put(
            self._access_token_key(access_token.token),
            access_token.model_dump(mode="json"),
            ttl_seconds=ACCESS_TOKEN_LIFETIME_SECONDS,
        )

    async def validate_token(self, token: str) -> Optional[AccessToken]:
        """Store lookup plus expiry check. Expired tokens are reported as absent."""
        if not token:
            return None
        raw = await self.api_store.get(self._access_token_key(token))
        if not raw:
            return None
        try:
            access_token = AccessToken.model_validate(raw)
        except ValidationError as e:
            logger.error(f"Corrupt access token record: {e}")
            return None
        if access_token.is_expired():
            return None
        return access_token

    async def refresh_token(self, refresh_token: str) -> Optional[AccessToken]:
        """
        Finds the record holding refresh_token by scanning stored access tokens
        and replaces it with a new token pair carrying the same encrypted key.
        """
        if not refresh_token:
            return None

        for key in await self.api_store.list(ACCESS_TOKEN_KEY_PREFIX):
            raw = await self.api_store.get(key)
            if not raw or raw.get("refresh_token") != refresh_token:
                continue
            try:
                old = AccessToken.model_validate(raw)
            except ValidationError as e:
                logger.error(f"Corrupt access token record under '{key}': {e}")
                return None

            if old.is_refresh_expired():
                logger.info(f"Refresh token expired for client '{old.client_id}'.")
                await self.api_store.delete(key)
                return None

            now = _utcnow()
            renewed = old.model_copy(update={
                "token": generate_access_token(),
                "refresh_token": generate_refresh_token(),
                "created_at": now,
                "expires_at": now + timedelta(seconds=ACCESS_TOKEN_LIFETIME_SECONDS),
                "refresh_expires_at": now + timedelta(seconds=REFRESH_TOKEN_LIFETIME_SECONDS),
            })
            await self._save_access_token(renewed)
            await self.api_store.delete(key)
            logger.info(f"Access token refreshed for client '{old.client_id}'.")
            return renewed

        return None

    async def revoke_token(self, token: str) -> None:
        """Unconditional, idempotent delete."""
        if token:
            await self.api_store.delete(self._access_token_key(token))

    async def handle_token_request(
        self,
        grant_type: Optional[str],
        code: Optional[str] = None,
        client_id: Optional[str] = None,
        redirect_uri: Optional[str] = None,
        code_verifier: Optional[str] = None,
        refresh_token: Optional[str] = None,
    ) -> TokenResponse:
        """Dispatches a /token request by grant type."""
        if grant_type == "authorization_code":
            access_token = await self.exchange_code_for_token(
                code or "", client_id or "", redirect_uri or "", code_verifier or ""
            )
        elif grant_type == "refresh_token":
            access_token = await self.refresh_token(refresh_token or "")
        else:
            raise UnsupportedGrantTypeError(f"Grant type '{grant_type}' is not supported.")

        if access_token is None:
            raise InvalidGrantError()

        return TokenResponse(
            access_token=access_token.token,
            expires_in=max(0, int((access_token.expires_at - _utcnow()).total_seconds())),
            refresh_token=access_token.refresh_token,
            scope=access_token.scope,
        )

    def get_authorization_server_metadata(self, base_url: str) -> AuthorizationServerMetadata:
        base_url = base_url.rstrip("/")
        return AuthorizationServerMetadata(
            issuer=base_url,
            authorization_endpoint=f"{base_url}/authorize",
            token_endpoint=f"{base_url}/token",
            introspection_endpoint=f"{base_url}/introspect",
            revocation_endpoint=f"{base_url}/revoke",
            registration_endpoint=f"{base_url}/register",
            scopes_supported=list(SUPPORTED_SCOPES),
        )

    def get_protected_resource_metadata(self, resource_url: str, auth_server_url: str) -> ProtectedResourceMetadata:
        return ProtectedResourceMetadata(
            resource=resource_url,
            authorization_servers=[auth_server_url],
            resource_documentation=f"{auth_server_url.rstrip('/')}/docs",
        )
