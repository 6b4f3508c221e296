"""Runtime configuration for outlook-mcp.

Configuration is read from environment variables once at startup and
is immutable afterwards.

Environment Variables:
    OUTLOOK_CLIENT_ID: Entra ID application (client) ID (required).
        ``CLIENT_ID`` is accepted as a fallback.
    OUTLOOK_TENANT_ID: Directory (tenant) ID (default: common).
        ``TENANT_ID`` is accepted as a fallback.
    OUTLOOK_REDIRECT_URI: Redirect URI registered for the public client
        (default: http://localhost:8789/callback).
    OUTLOOK_MCP_TOKEN_PATH: Token cache file (default: ~/.outlook-mcp/tokens.json).
    OUTLOOK_MCP_SCOPES: Space or comma separated Graph scopes.
    OUTLOOK_MCP_SKEW_SECONDS: Early-refresh margin in seconds (default: 60).
    OUTLOOK_MCP_ALLOW_INTERACTIVE: Open a browser sign-in when silent
        acquisition fails (default: true).
    OUTLOOK_GRAPH_BASE_URL: Graph endpoint (default: https://graph.microsoft.com/v1.0).
    OUTLOOK_MCP_SERVER_NAME: MCP server name (default: outlook-mcp).
    OUTLOOK_MCP_LOG_LEVEL: Logging level (default: INFO).
"""

import os
from collections.abc import Mapping
from pathlib import Path

from pydantic import BaseModel, ConfigDict, Field

from outlook_mcp.__version__ import __version__
from outlook_mcp.errors import ConfigurationError

DEFAULT_TENANT_ID = "common"
DEFAULT_REDIRECT_URI = "http://localhost:8789/callback"
DEFAULT_GRAPH_BASE_URL = "https://graph.microsoft.com/v1.0"
DEFAULT_SKEW_SECONDS = 60

# Delegated Graph permissions used by the published tools
OUTLOOK_SCOPES = [
    "User.Read",
    "Calendars.ReadWrite",
    "Mail.ReadWrite",
    "Mail.Send",
    "People.Read",
]


def default_token_path() -> Path:
    """Get the per-user token cache path.

    Returns:
        Path to tokens.json in ~/.outlook-mcp/
    """
    return Path.home() / ".outlook-mcp" / "tokens.json"


def _parse_bool(value: str) -> bool:
    return value.strip().lower() in ("1", "true", "yes", "on")


def _parse_scopes(value: str) -> list[str]:
    return [scope for scope in value.replace(",", " ").split() if scope]


class Settings(BaseModel):
    """Immutable server settings.

    Attributes:
        client_id: Entra ID application (client) ID.
        tenant_id: Directory ID, or ``common`` / ``organizations``.
        redirect_uri: Loopback redirect used by interactive sign-in.
        token_path: Location of the token cache file.
        scopes: Delegated Graph scopes requested at sign-in.
        skew_seconds: Seconds before expiry at which a token counts as expired.
        allow_interactive: Whether the server may open a browser sign-in.
        graph_base_url: Microsoft Graph base URL.
        server_name: Name announced to MCP clients.
        server_version: Version announced to MCP clients.
        log_level: Root logging level name.
    """

    model_config = ConfigDict(frozen=True)

    client_id: str = Field(..., min_length=1)
    tenant_id: str = DEFAULT_TENANT_ID
    redirect_uri: str = DEFAULT_REDIRECT_URI
    token_path: Path = Field(default_factory=default_token_path)
    scopes: list[str] = Field(default_factory=lambda: list(OUTLOOK_SCOPES))
    skew_seconds: int = Field(default=DEFAULT_SKEW_SECONDS, ge=0)
    allow_interactive: bool = True
    graph_base_url: str = DEFAULT_GRAPH_BASE_URL
    server_name: str = "outlook-mcp"
    server_version: str = __version__
    log_level: str = "INFO"

    @property
    def authority(self) -> str:
        """Entra ID authority URL for the configured tenant."""
        return f"https://login.microsoftonline.com/{self.tenant_id}"

    @property
    def account_key(self) -> str:
        """Token cache key for the single account this process serves."""
        return f"{self.client_id}@{self.tenant_id}"

    @classmethod
    def from_env(cls, environ: Mapping[str, str] | None = None) -> "Settings":
        """Load settings from environment variables.

        Args:
            environ: Mapping to read instead of ``os.environ``.

        Returns:
            Populated Settings instance.

        Raises:
            ConfigurationError: If the client ID is missing or a value is invalid.
        """
        env = os.environ if environ is None else environ

        client_id = env.get("OUTLOOK_CLIENT_ID") or env.get("CLIENT_ID")
        if not client_id:
            raise ConfigurationError(
                "Client ID required. Set the OUTLOOK_CLIENT_ID environment variable "
                "to the application ID of your Entra ID app registration."
            )

        values: dict[str, object] = {"client_id": client_id}

        tenant_id = env.get("OUTLOOK_TENANT_ID") or env.get("TENANT_ID")
        if tenant_id:
            values["tenant_id"] = tenant_id
        if env.get("OUTLOOK_REDIRECT_URI"):
            values["redirect_uri"] = env["OUTLOOK_REDIRECT_URI"]
        if env.get("OUTLOOK_MCP_TOKEN_PATH"):
            values["token_path"] = Path(env["OUTLOOK_MCP_TOKEN_PATH"]).expanduser()
        if env.get("OUTLOOK_MCP_SCOPES"):
            values["scopes"] = _parse_scopes(env["OUTLOOK_MCP_SCOPES"])
        if env.get("OUTLOOK_MCP_ALLOW_INTERACTIVE"):
            values["allow_interactive"] = _parse_bool(env["OUTLOOK_MCP_ALLOW_INTERACTIVE"])
        if env.get("OUTLOOK_GRAPH_BASE_URL"):
            values["graph_base_url"] = env["OUTLOOK_GRAPH_BASE_URL"].rstrip("/")
        if env.get("OUTLOOK_MCP_SERVER_NAME"):
            values["server_name"] = env["OUTLOOK_MCP_SERVER_NAME"]
        if env.get("OUTLOOK_MCP_LOG_LEVEL"):
            values["log_level"] = env["OUTLOOK_MCP_LOG_LEVEL"].upper()

        skew = env.get("OUTLOOK_MCP_SKEW_SECONDS")
        if skew:
            try:
                values["skew_seconds"] = int(skew)
            except ValueError as e:
                raise ConfigurationError(
                    f"OUTLOOK_MCP_SKEW_SECONDS must be an integer, got {skew!r}"
                ) from e

        try:
            return cls.model_validate(values)
        except ValueError as e:
            raise ConfigurationError(f"Invalid configuration: {e}") from e
