"""
Connectors Package for the Sweep Engine.

This package provides the directory connector contract, an in-memory
directory and the ldap3-backed Active Directory connector.
"""

from typing import Any, Dict, Optional

from .base_connector import ConnectorResult, DirectoryConnector, MockDirectoryConnector


def create_connector(settings: Optional[Dict[str, Any]] = None, mock: bool = False) -> DirectoryConnector:
    """Build the directory connector for the given settings."""
    settings = settings or {}
    if mock or settings.get("mock_mode"):
        return MockDirectoryConnector.from_records(settings.get("mock_accounts") or [])

    from .ldap_connector import LdapDirectoryConnector

    return LdapDirectoryConnector(settings)


__all__ = [
    "ConnectorResult",
    "DirectoryConnector",
    "MockDirectoryConnector",
    "create_connector",
]
