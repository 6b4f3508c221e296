"""Command-line interface for outlook-mcp."""

import asyncio
import os
import sys

import click

from outlook_mcp.__version__ import __version__
from outlook_mcp.config import Settings
from outlook_mcp.errors import ConfigurationError, OutlookMCPError


def _load_settings(client_id: str | None = None, tenant_id: str | None = None) -> Settings:
    """Load settings, letting command-line options override the environment."""
    env = dict(os.environ)
    if client_id:
        env["OUTLOOK_CLIENT_ID"] = client_id
    if tenant_id:
        env["OUTLOOK_TENANT_ID"] = tenant_id

    try:
        return Settings.from_env(env)
    except ConfigurationError as e:
        click.echo(f"❌ Error: {e}")
        click.echo("")
        click.echo("Set environment variables:")
        click.echo("  export OUTLOOK_CLIENT_ID='your-application-id'")
        click.echo("  export OUTLOOK_TENANT_ID='your-tenant-id'  # optional, default: common")
        click.echo("")
        click.echo("Or pass as options:")
        click.echo("  outlook-mcp setup --client-id=... --tenant-id=...")
        sys.exit(1)


@click.group()
@click.version_option(version=__version__)
def main() -> None:
    """Outlook MCP Server - Connect Claude to Microsoft Outlook.

    This tool provides 19 tools across:
    - Calendar (events, attendees)
    - Mail (list, read, send, drafts)
    - People (search)
    - Scheduling (free/busy, meeting times)
    - Account (status, sign-out)
    """
    pass


@main.command()
@click.option("--client-id", help="Entra ID application (client) ID")
@click.option("--tenant-id", help="Directory (tenant) ID, default: common")
@click.option("--force", is_flag=True, help="Sign in again even if a valid token is cached")
def setup(client_id: str | None, tenant_id: str | None, force: bool) -> None:
    """Sign in to Microsoft and cache the credential.

    This will:
    1. Open browser for Microsoft sign-in and consent
    2. Store tokens securely at ~/.outlook-mcp/tokens.json

    Requires:
    - OUTLOOK_CLIENT_ID environment variable or --client-id option
    """
    from outlook_mcp.auth import TokenStatus
    from outlook_mcp.server.outlook_server import build_token_manager

    settings = _load_settings(client_id, tenant_id)
    manager = build_token_manager(settings)

    if not force and manager.cached_status() == TokenStatus.VALID:
        click.echo("✓ Already authenticated!")
        click.echo(f"Token stored at: {settings.token_path}")
        click.echo("")

        if not click.confirm("Re-authenticate?"):
            return

    click.echo("Starting Microsoft sign-in...")
    click.echo("Browser will open for Microsoft consent...")
    click.echo("")

    try:
        credential = asyncio.run(manager.sign_in())
    except OutlookMCPError as e:
        click.echo(f"❌ Authentication failed: {e.message}")
        sys.exit(1)

    click.echo("✓ Authentication successful!")
    if credential.username:
        click.echo(f"Signed in as: {credential.username}")
    click.echo(f"Token stored at: {settings.token_path}")
    click.echo("")
    click.echo("Run 'outlook-mcp doctor' to verify setup.")


@main.command()
def mcp() -> None:
    """Start the MCP server for Claude Desktop integration.

    Starts the stdio MCP server that provides 19 tools across:
    - Calendar (6 tools): Events and attendees
    - Mail (7 tools): List, read, send, drafts, read state, delete
    - People (2 tools): Search and lookup
    - Scheduling (2 tools): Free/busy and meeting suggestions
    - Account (2 tools): Auth status and sign-out

    Run 'outlook-mcp setup' first, or set OUTLOOK_MCP_ALLOW_INTERACTIVE=true
    to let the server open a browser sign-in on first use.

    This command is typically invoked by Claude Desktop via the MCP protocol.
    """
    from outlook_mcp.auth import TokenStatus
    from outlook_mcp.server import main as server_main
    from outlook_mcp.server.outlook_server import build_token_manager

    settings = _load_settings()
    status = build_token_manager(settings).cached_status()

    if status in (TokenStatus.MISSING, TokenStatus.INVALID) and not settings.allow_interactive:
        click.echo("❌ Not authenticated. Run 'outlook-mcp setup' first.", err=True)
        sys.exit(1)

    try:
        click.echo("Starting Outlook MCP server...", err=True)
        click.echo("Server provides 19 tools for Claude Desktop", err=True)
        click.echo("", err=True)
        server_main()
    except KeyboardInterrupt:
        click.echo("\nServer stopped.", err=True)


@main.command()
def logout() -> None:
    """Remove the cached Microsoft credential."""
    from outlook_mcp.server.outlook_server import build_token_manager

    settings = _load_settings()
    manager = build_token_manager(settings)

    if asyncio.run(manager.sign_out()):
        click.echo("✓ Signed out. Cached credential removed.")
    else:
        click.echo("No cached credential found.")


@main.command()
def doctor() -> None:
    """Check installation, configuration and authentication status.

    Verifies:
    1. Python dependencies installed
    2. Entra ID application configured
    3. Token validity
    """
    from outlook_mcp.auth import TokenStatus
    from outlook_mcp.server.outlook_server import build_token_manager

    click.echo("Outlook MCP Status:")
    click.echo("")

    # Check dependencies
    click.echo("Dependencies:")
    try:
        import httpx  # noqa: F401
        import mcp  # noqa: F401
        import msal  # noqa: F401

        click.echo("  ✓ msal installed")
        click.echo("  ✓ httpx installed")
        click.echo("  ✓ mcp installed")
    except ImportError as e:
        click.echo(f"  ❌ Missing dependency: {e}")
        sys.exit(1)

    click.echo("")

    settings = _load_settings()
    click.echo("Configuration:")
    click.echo(f"  Client ID: {settings.client_id}")
    click.echo(f"  Tenant: {settings.tenant_id}")
    click.echo(f"  Scopes: {', '.join(settings.scopes)}")
    click.echo("")

    manager = build_token_manager(settings)
    status = manager.cached_status()

    click.echo("Authentication:")
    click.echo(f"  Token file: {settings.token_path}")

    if status is None:
        click.echo("  ❌ Token file cannot be read")
        sys.exit(1)
    elif status == TokenStatus.MISSING:
        click.echo("  ❌ Not authenticated")
        click.echo("")
        click.echo("Run 'outlook-mcp setup' to authenticate.")
        sys.exit(1)
    elif status == TokenStatus.INVALID:
        click.echo("  ❌ Token file corrupted")
        click.echo("")
        click.echo("Run 'outlook-mcp setup' to re-authenticate.")
        sys.exit(1)
    elif status == TokenStatus.EXPIRED:
        record = manager.storage.load(settings.account_key)
        if record is None or not record.refresh_token:
            click.echo("  ❌ Token expired and cannot be refreshed")
            click.echo("")
            click.echo("Run 'outlook-mcp setup' to re-authenticate.")
            sys.exit(1)
        click.echo("  ⚠️  Token expired (can be refreshed)")
        click.echo("")
        click.echo("Run 'outlook-mcp setup' or token will refresh automatically on use.")
    elif status == TokenStatus.VALID:
        click.echo("  ✓ Authenticated")
        record = manager.storage.load(settings.account_key)
        if record:
            click.echo(f"  Token expires: {record.expires_at.strftime('%Y-%m-%d %H:%M:%S UTC')}")
            if record.username:
                click.echo(f"  Account: {record.username}")

    click.echo("")
    click.echo("✓ Ready to use!")


if __name__ == "__main__":
    main()
