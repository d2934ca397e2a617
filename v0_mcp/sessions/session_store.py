# v0_mcp/sessions/session_store.py
import logging
from abc import ABC, abstractmethod
from typing import List, Optional

from pydantic import ValidationError

from ..settings import settings
from ..storage import SESSION_KV, AbstractKVStore
from .session_data import SessionData

logger = logging.getLogger(__name__)


class AbstractSessionStore(ABC):
    """
    Abstract base class defining the interface for session storage implementations.
    """

    @abstractmethod
    async def load_session(self, session_id: str) -> Optional[SessionData]:
        """Load session data by session id."""
        pass

    @abstractmethod
    async def save_session(self, session_data: SessionData) -> None:
        """Save session data to storage."""
        pass

    @abstractmethod
    async def list_session_ids(self) -> List[str]:
        pass


class RedisSessionStore(AbstractSessionStore):
    """
    Session records in the `session:` namespace with a rolling TTL that is
    refreshed on every save.
    """

    def __init__(self, kv: Optional[AbstractKVStore] = None, session_ttl_seconds: Optional[int] = None):
        self.kv = kv or SESSION_KV
        self.session_ttl_seconds = session_ttl_seconds or settings.session_ttl_seconds
        logger.debug(f"RedisSessionStore initialized. Session TTL: {self.session_ttl_seconds}s")

    async def load_session(self, session_id: str) -> Optional[SessionData]:
        raw = await self.kv.get(session_id)
        if not raw:
            logger.debug(f"No session found for id: '{session_id}'")
            return None
        try:
            return SessionData.model_validate(raw)
        except ValidationError as e:
            logger.error(f"Error deserializing session '{session_id}': {e}")
            return None

    async def save_session(self, session_data: SessionData) -> None:
        await self.kv.put(
            session_data.id,
            session_data.model_dump(mode="json"),
            ttl_seconds=self.session_ttl_seconds,
        )
        logger.debug(f"Saved session '{session_data.id}', TTL: {self.session_ttl_seconds}s")

    async def list_session_ids(self) -> List[str]:
        # file-cache bundles live under a different namespace, so every key here is a session
        return await self.kv.list()
