"""MCP server implementation for Microsoft Outlook.

Provides 19 tools across Calendar, Mail, People, Scheduling and Account:

Calendar Tools (6):
- List events in a time window
- Create, get, update and delete events
- Add attendees without duplicating existing ones

Mail Tools (7):
- List and get messages
- Send messages and create drafts
- Mark read/unread and delete

People Tools (2), Scheduling Tools (2), Account Tools (2)

Resources: default calendar events, inbox messages

Transport: Stdio (for Claude Desktop)
Authentication: Microsoft identity platform (delegated) with automatic refresh
"""

from outlook_mcp.config import Settings
from outlook_mcp.server.outlook_server import OutlookServer, main


def create_server(settings: Settings | None = None) -> OutlookServer:
    """Create and configure an Outlook MCP server.

    Args:
        settings: Settings to use; loaded from the environment when omitted.

    Returns:
        OutlookServer: Configured server instance ready to run.

    Example:
        >>> server = create_server()
        >>> asyncio.run(server.run())
    """
    return OutlookServer(settings or Settings.from_env())


__all__ = ["create_server", "OutlookServer", "main"]
