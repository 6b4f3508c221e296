"""Delegated authentication for Outlook MCP.

This package acquires, caches, and refreshes Microsoft Graph access
tokens for the signed-in user.

Quick Start:
    ```python
    from outlook_mcp.auth import IdentityClient, TokenManager, TokenStorage

    manager = TokenManager(
        storage=TokenStorage(),
        identity=IdentityClient(client_id="your-client-id", authority=authority),
        account_id="your-client-id@common",
    )

    # Cached, refreshed, or interactive - whichever is cheapest
    token = await manager.get_valid_token()
    ```
"""

from outlook_mcp.auth.identity import IdentityClient
from outlook_mcp.auth.models import (
    AcquisitionState,
    CredentialRecord,
    StoredToken,
    TokenMetadata,
    TokenStatus,
)
from outlook_mcp.auth.token_manager import TokenManager
from outlook_mcp.auth.token_storage import TokenStorage

__all__ = [
    "AcquisitionState",
    "CredentialRecord",
    "IdentityClient",
    "StoredToken",
    "TokenManager",
    "TokenMetadata",
    "TokenStatus",
    "TokenStorage",
]
