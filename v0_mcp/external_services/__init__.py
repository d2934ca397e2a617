# v0_mcp/external_services/__init__.py

"""
Module for integrating with external services.
"""

from .v0_client import V0APIError, V0Client, V0ClientFactory

__all__ = ["V0APIError", "V0Client", "V0ClientFactory"]
