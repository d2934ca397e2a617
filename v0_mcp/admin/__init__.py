# v0_mcp/admin/__init__.py
"""Maintenance endpoints guarded by the admin API key."""

from .endpoints import admin_router, CleanupRequest, CleanupResult

__all__ = ["admin_router", "CleanupRequest", "CleanupResult"]
