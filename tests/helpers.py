"""Test doubles and builders shared across the test suite."""

import asyncio
from collections.abc import Callable
from datetime import datetime, timedelta, timezone
from typing import Any

import httpx

from outlook_mcp.auth.models import CredentialRecord
from outlook_mcp.errors import InteractionRequired

ACCOUNT_ID = "test-client@common"
GRAPH_BASE = "https://graph.microsoft.com/v1.0"


def make_record(
    access_token: str = "test_access_token_abc123",
    expires_in: timedelta = timedelta(hours=1),
    refresh_token: str | None = "test_refresh_token_xyz789",
    now: datetime | None = None,
) -> CredentialRecord:
    """Build a credential expiring ``expires_in`` from ``now``."""
    return CredentialRecord(
        access_token=access_token,
        refresh_token=refresh_token,
        expires_at=(now or datetime.now(timezone.utc)) + expires_in,
        account_id=ACCOUNT_ID,
        username="user@contoso.com",
        scopes=["User.Read", "Calendars.ReadWrite"],
    )


class FakeIdentity:
    """Scriptable stand-in for IdentityClient.

    Each call pops the next scripted outcome: a CredentialRecord is
    returned, an exception is raised. ``gate`` lets a test hold the call
    open until it sets the event.
    """

    def __init__(self) -> None:
        self.refresh_results: list[CredentialRecord | Exception] = []
        self.interactive_results: list[CredentialRecord | Exception] = []
        self.refresh_calls: list[str] = []
        self.interactive_calls = 0
        self.gate: asyncio.Event | None = None

    async def _outcome(self, results: list[CredentialRecord | Exception]) -> CredentialRecord:
        if self.gate is not None:
            await self.gate.wait()
        outcome = results.pop(0)
        if isinstance(outcome, Exception):
            raise outcome
        return outcome

    async def refresh(self, refresh_token: str, scopes: list[str]) -> CredentialRecord:
        self.refresh_calls.append(refresh_token)
        if not self.refresh_results:
            raise InteractionRequired("Sign-in required: no refresh scripted", "invalid_grant")
        return await self._outcome(self.refresh_results)

    async def acquire_interactive(self, scopes: list[str]) -> CredentialRecord:
        self.interactive_calls += 1
        return await self._outcome(self.interactive_results)


class GraphRecorder:
    """Route table for httpx.MockTransport that records every request."""

    def __init__(self) -> None:
        self.requests: list[httpx.Request] = []
        self.routes: dict[tuple[str, str], Callable[[httpx.Request], httpx.Response]] = {}

    def add(self, method: str, path: str, response: Any, status_code: int = 200) -> None:
        """Register a canned JSON response (or a callable) for method + path."""
        if callable(response):
            self.routes[(method, path)] = response
        elif response is None:
            self.routes[(method, path)] = lambda request: httpx.Response(status_code)
        else:
            self.routes[(method, path)] = lambda request: httpx.Response(
                status_code, json=response
            )

    def handler(self, request: httpx.Request) -> httpx.Response:
        self.requests.append(request)
        path = request.url.path.removeprefix("/v1.0")
        route = self.routes.get((request.method, path))
        if route is None:
            return httpx.Response(
                404, json={"error": {"code": "ErrorItemNotFound", "message": "Not found"}}
            )
        return route(request)

    def calls(self, method: str) -> list[httpx.Request]:
        return [r for r in self.requests if r.method == method]
