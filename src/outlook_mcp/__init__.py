"""Outlook MCP Server.

Connect Claude to Microsoft Outlook calendar, mail, and people APIs
through Microsoft Graph.
"""

from outlook_mcp.__version__ import __version__

__all__ = ["__version__"]
