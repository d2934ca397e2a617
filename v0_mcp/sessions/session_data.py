# v0_mcp/sessions/session_data.py
from pydantic import BaseModel, ConfigDict, Field
from typing import Literal, Optional
from datetime import datetime, timezone


class ClientInfo(BaseModel):
    """clientInfo block sent by the MCP client in `initialize`."""
    name: str
    version: Optional[str] = None


class SessionData(BaseModel):
    """
    One logical client connection, correlated across stateless HTTP calls
    by the mcp-session-id header.
    """

    model_config = ConfigDict(validate_assignment=True)

    id: str = Field(description="Session identifier (client-issued or server-generated).")
    client_id: Optional[str] = Field(
        default=None,
        description="OAuth client whose key decrypts the bound credential."
    )
    client_name: Optional[str] = None
    client_version: Optional[str] = None
    client_type: Literal["mcpserver", "generic"] = "generic"

    created_at: datetime = Field(default_factory=lambda: datetime.now(timezone.utc))
    last_activity: datetime = Field(default_factory=lambda: datetime.now(timezone.utc))
    is_active: bool = True

    # Ciphertext only; the plaintext key never leaves process memory
    encrypted_api_key: Optional[str] = None

    @property
    def has_api_key(self) -> bool:
        return bool(self.encrypted_api_key)

    def touch(self) -> None:
        """Bumps last_activity to the current UTC time."""
        self.last_activity = datetime.now(timezone.utc)
