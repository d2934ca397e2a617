# v0_mcp/sessions/__init__.py
"""
Session management module.

Provides the session record, its storage abstraction and the manager that
correlates stateless requests into logical MCP sessions.
"""

from .session_data import ClientInfo, SessionData
from .session_store import AbstractSessionStore, RedisSessionStore
from .session_manager import SessionManager

__all__ = [
    "ClientInfo",
    "SessionData",
    "AbstractSessionStore",
    "RedisSessionStore",
    "SessionManager",
]
