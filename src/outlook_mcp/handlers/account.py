"""Account tool handlers backed by the token manager."""

from typing import Any

from outlook_mcp.auth.token_manager import TokenManager
from outlook_mcp.schemas import EmptyRequest, parse_request


class AccountHandlers:
    """Handlers for sign-in status and sign-out."""

    def __init__(self, token_manager: TokenManager) -> None:
        self.token_manager = token_manager

    async def get_auth_status(self, arguments: dict[str, Any]) -> dict[str, Any]:
        """Report authentication state without contacting Microsoft."""
        parse_request(EmptyRequest, arguments)
        return self.token_manager.status()

    async def sign_out(self, arguments: dict[str, Any]) -> dict[str, Any]:
        parse_request(EmptyRequest, arguments)
        removed = await self.token_manager.sign_out()
        return {"status": "signed_out", "cache_cleared": removed}
