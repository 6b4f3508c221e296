"""Shared pytest fixtures for outlook-mcp tests.

This module provides reusable fixtures for credentials, token storage,
a scriptable identity client, and a Graph gateway backed by
``httpx.MockTransport``.
"""

from datetime import datetime, timedelta, timezone
from pathlib import Path

import httpx
import pytest

from outlook_mcp.auth.models import CredentialRecord, StoredToken, TokenMetadata
from outlook_mcp.auth.token_manager import TokenManager
from outlook_mcp.auth.token_storage import TokenStorage
from outlook_mcp.config import Settings
from outlook_mcp.gateway import GraphGateway
from tests.helpers import ACCOUNT_ID, GRAPH_BASE, FakeIdentity, GraphRecorder, make_record

# =============================================================================
# Token Fixtures
# =============================================================================


@pytest.fixture
def valid_token() -> CredentialRecord:
    """Create a valid, non-expired credential."""
    return make_record()


@pytest.fixture
def expired_token() -> CredentialRecord:
    """Create an expired credential with a refresh token."""
    return make_record(
        access_token="expired_access_token",
        expires_in=timedelta(hours=-1),
        refresh_token="test_refresh_token",
    )


@pytest.fixture
def token_metadata() -> TokenMetadata:
    """Create token metadata for testing."""
    return TokenMetadata(
        service_name=ACCOUNT_ID,
        created_at=datetime.now(timezone.utc) - timedelta(days=1),
    )


@pytest.fixture
def stored_token(valid_token: CredentialRecord, token_metadata: TokenMetadata) -> StoredToken:
    """Create a complete stored token for testing."""
    return StoredToken(version=1, metadata=token_metadata, token=valid_token)


# =============================================================================
# Token Storage Fixtures
# =============================================================================


@pytest.fixture
def temp_token_path(tmp_path: Path) -> Path:
    """Get the path for a temporary tokens.json file."""
    return tmp_path / ".outlook-mcp" / "tokens.json"


@pytest.fixture
def token_storage(temp_token_path: Path) -> TokenStorage:
    """Create a TokenStorage instance with temporary storage."""
    return TokenStorage(token_path=temp_token_path)


# =============================================================================
# Token Manager Fixtures
# =============================================================================


@pytest.fixture
def identity() -> FakeIdentity:
    return FakeIdentity()


@pytest.fixture
def token_manager(token_storage: TokenStorage, identity: FakeIdentity) -> TokenManager:
    """Create a TokenManager with temporary storage and a fake identity client."""
    return TokenManager(
        storage=token_storage,
        identity=identity,  # type: ignore[arg-type]
        account_id=ACCOUNT_ID,
        allow_interactive=False,
    )


@pytest.fixture
def authenticated_manager(
    token_manager: TokenManager, token_storage: TokenStorage, valid_token: CredentialRecord
) -> TokenManager:
    """Token manager whose cache already holds a valid credential."""
    token_storage.store(ACCOUNT_ID, valid_token)
    return token_manager


@pytest.fixture
def settings(temp_token_path: Path) -> Settings:
    return Settings(client_id="test-client", token_path=temp_token_path, allow_interactive=False)


# =============================================================================
# Graph Fixtures
# =============================================================================


@pytest.fixture
def graph() -> GraphRecorder:
    return GraphRecorder()


@pytest.fixture
def http_client(graph: GraphRecorder) -> httpx.AsyncClient:
    return httpx.AsyncClient(transport=httpx.MockTransport(graph.handler))


@pytest.fixture
def gateway(authenticated_manager: TokenManager, http_client: httpx.AsyncClient) -> GraphGateway:
    return GraphGateway(authenticated_manager, GRAPH_BASE, http_client=http_client)


# =============================================================================
# CLI Test Fixtures
# =============================================================================


@pytest.fixture
def cli_runner():
    """Create a Click CLI test runner."""
    from click.testing import CliRunner

    return CliRunner()
