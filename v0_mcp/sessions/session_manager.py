# v0_mcp/sessions/session_manager.py
import hmac
import logging
from typing import Dict, Optional, Tuple
from uuid import uuid4

from ..oauth.models import AccessToken
from ..settings import settings
from ..utils.security import ApiKeyCipher, DecryptionError
from .session_data import ClientInfo, SessionData
from .session_store import AbstractSessionStore

logger = logging.getLogger(__name__)


class SessionManager:
    """
    Manages session lifecycle: creation, lookup, credential binding and
    deactivation.

    The store is authoritative. The decrypted-key map is a process-local
    read-through cache over the ciphertext kept in the session record.
    """

    def __init__(self, store: AbstractSessionStore):
        if not isinstance(store, AbstractSessionStore):
            raise TypeError("SessionManager requires an instance of AbstractSessionStore.")
        self.store = store
        self._api_key_cache: Dict[str, str] = {}
        logger.info(f"SessionManager initialized with store: {type(store).__name__}")

    def _generate_session_id(self) -> str:
        return uuid4().hex

    @staticmethod
    def _client_type_for(client_info: Optional[ClientInfo]) -> str:
        if client_info and client_info.name == settings.first_party_client_name:
            return "mcpserver"
        return "generic"

    async def create_or_get_session(
        self,
        session_id: Optional[str] = None,
        client_info: Optional[ClientInfo] = None,
    ) -> Tuple[SessionData, bool]:
        """
        Returns (session, is_new). An unknown or inactive session id is
        re-created under the same id.
        """
        if session_id:
            existing = await self.get_session(session_id)
            if existing:
                existing.touch()
                if client_info:
                    existing.client_name = client_info.name
                    existing.client_version = client_info.version
                    existing.client_type = self._client_type_for(client_info)
                await self.store.save_session(existing)
                logger.debug(f"Existing session resumed: {session_id} (type: {existing.client_type})")
                return existing, False

        new_session = SessionData(
            id=session_id or self._generate_session_id(),
            client_name=client_info.name if client_info else None,
            client_version=client_info.version if client_info else None,
            client_type=self._client_type_for(client_info),
        )
        await self.store.save_session(new_session)
        logger.info(f"Session created: {new_session.id} (type: {new_session.client_type})")
        return new_session, True

    async def get_session(self, session_id: str) -> Optional[SessionData]:
        """Active sessions only."""
        if not session_id:
            return None
        session = await self.store.load_session(session_id)
        if session and session.is_active:
            return session
        return None

    async def touch(self, session_id: str) -> None:
        session = await self.get_session(session_id)
        if session:
            session.touch()
            await self.store.save_session(session)

    async def owns_session(self, session: SessionData, access_token: AccessToken) -> bool:
        """
        True when access_token may act on session. A session with no bound
        credential is claimable; a bound one only accepts the same client
        presenting the same v0 API key.
        """
        if not session.client_id:
            return True
        if session.client_id != access_token.client_id:
            return False
        if session.encrypted_api_key == access_token.encrypted_api_key:
            return True
        bound_key = await self.get_session_api_key(session.id)
        try:
            presented_key = ApiKeyCipher(access_token.client_id).decrypt(access_token.encrypted_api_key)
        except DecryptionError:
            return False
        return bound_key is not None and hmac.compare_digest(bound_key, presented_key)

    async def bind_credential(self, session: SessionData, access_token: AccessToken) -> str:
        """
        Decrypts the API key carried by access_token, records the ciphertext on
        the session and caches the plaintext for this process.

        Raises:
            DecryptionError: If the ciphertext does not decrypt under the token's client id
        """
        api_key = ApiKeyCipher(access_token.client_id).decrypt(access_token.encrypted_api_key)
        if (
            session.encrypted_api_key != access_token.encrypted_api_key
            or session.client_id != access_token.client_id
        ):
            session.encrypted_api_key = access_token.encrypted_api_key
            session.client_id = access_token.client_id
            session.touch()
            await self.store.save_session(session)
        self._api_key_cache[session.id] = api_key
        return api_key

    async def get_session_api_key(self, session_id: str) -> Optional[str]:
        cached = self._api_key_cache.get(session_id)
        if cached:
            return cached
        session = await self.get_session(session_id)
        if not session or not session.encrypted_api_key or not session.client_id:
            return None
        try:
            api_key = ApiKeyCipher(session.client_id).decrypt(session.encrypted_api_key)
        except DecryptionError:
            logger.error(f"Failed to decrypt API key for session {session_id}")
            return None
        self._api_key_cache[session_id] = api_key
        return api_key

    async def clear_session(self, session_id: str) -> bool:
        """Deactivates the session and drops its credential. Returns False if it was unknown."""
        self._api_key_cache.pop(session_id, None)
        session = await self.store.load_session(session_id)
        if not session:
            return False
        session.is_active = False
        session.encrypted_api_key = None
        await self.store.save_session(session)
        logger.info(f"Session {session_id} cleared and deactivated")
        return True

    async def get_active_session_count(self) -> int:
        count = 0
        for session_id in await self.store.list_session_ids():
            session = await self.store.load_session(session_id)
            if session and session.is_active:
                count += 1
        return count
