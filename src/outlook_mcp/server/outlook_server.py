"""Outlook MCP server for Claude Desktop integration.

This MCP server exposes Outlook calendar, mail, people and scheduling
operations backed by Microsoft Graph. Tokens are owned by a single
TokenManager; every Graph call goes through the GraphGateway, which
refreshes and retries once when a token is rejected.
"""

import asyncio
import logging
import sys
from typing import Any

from mcp.server import Server
from mcp.server.lowlevel.helper_types import ReadResourceContents
from mcp.server.stdio import stdio_server
from mcp.types import CallToolResult, Resource, TextContent, Tool

from outlook_mcp.auth import IdentityClient, TokenManager, TokenStorage
from outlook_mcp.config import DEFAULT_GRAPH_BASE_URL, Settings
from outlook_mcp.errors import ConfigurationError
from outlook_mcp.gateway import GraphGateway
from outlook_mcp.handlers import (
    AccountHandlers,
    CalendarHandlers,
    MailHandlers,
    PeopleHandlers,
    ScheduleHandlers,
)
from outlook_mcp.registry import ToolRegistry
from outlook_mcp.schemas import (
    AddAttendeesRequest,
    EmptyRequest,
    EventCreateRequest,
    EventIdRequest,
    EventUpdateRequest,
    FindMeetingTimesQuery,
    GetScheduleQuery,
    ListEmailsQuery,
    ListEventsQuery,
    MessageIdRequest,
    PersonIdRequest,
    SearchPeopleQuery,
    SendEmailRequest,
)

logger = logging.getLogger(__name__)

LOG_FORMAT = "%(asctime)s %(levelname)s %(name)s: %(message)s"

CALENDAR_RESOURCE_URI = f"{DEFAULT_GRAPH_BASE_URL}/me/calendar/events"
INBOX_RESOURCE_URI = f"{DEFAULT_GRAPH_BASE_URL}/me/mailFolders/inbox/messages"


def build_token_manager(settings: Settings) -> TokenManager:
    """Create the token manager described by the settings."""
    identity = IdentityClient(
        client_id=settings.client_id,
        authority=settings.authority,
        redirect_uri=settings.redirect_uri,
        account_id=settings.account_key,
    )
    return TokenManager(
        storage=TokenStorage(settings.token_path),
        identity=identity,
        account_id=settings.account_key,
        scopes=settings.scopes,
        skew_seconds=settings.skew_seconds,
        allow_interactive=settings.allow_interactive,
    )


class OutlookServer:
    """MCP server for Microsoft Outlook via Microsoft Graph.

    Provides 19 tools:
    - Calendar: list, create, get, update, delete events; add attendees
    - Mail: list, get, send, draft, mark read/unread, delete
    - People: search and get
    - Scheduling: free/busy and meeting time suggestions
    - Account: auth status and sign-out

    and two resources (calendar events and inbox messages).

    Attributes:
        settings: Immutable runtime settings.
        server: MCP Server instance.
        token_manager: Owner of the delegated credential.
        gateway: Authenticated Graph call wrapper.
        registry: Published tools and resources.
    """

    def __init__(
        self,
        settings: Settings,
        token_manager: TokenManager | None = None,
        gateway: GraphGateway | None = None,
    ) -> None:
        """Initialize the Outlook MCP server.

        Args:
            settings: Runtime settings.
            token_manager: Token manager to use instead of building one.
            gateway: Gateway to use instead of building one.
        """
        self.settings = settings
        self.server = Server(settings.server_name, version=settings.server_version)
        self.token_manager = token_manager or build_token_manager(settings)
        self.gateway = gateway or GraphGateway(self.token_manager, settings.graph_base_url)

        self.calendar = CalendarHandlers(self.gateway)
        self.mail = MailHandlers(self.gateway)
        self.people = PeopleHandlers(self.gateway)
        self.schedule = ScheduleHandlers(self.gateway)
        self.account = AccountHandlers(self.token_manager)

        self.registry = ToolRegistry()
        self._register_tools()
        self._register_resources()
        self._setup_handlers()

    def _register_tools(self) -> None:
        register = self.registry.register

        # Calendar
        register(
            "list_calendar_events",
            "List calendar events. Provide startDateTime and endDateTime (ISO 8601) "
            "to limit the window; supports top, filter and orderBy.",
            ListEventsQuery,
            self.calendar.list_events,
        )
        register(
            "create_calendar_event",
            "Create a calendar event with subject, start/end (dateTime + timeZone), "
            "and optional location, attendees and body.",
            EventCreateRequest,
            self.calendar.create_event,
        )
        register(
            "get_calendar_event",
            "Get a calendar event by ID.",
            EventIdRequest,
            self.calendar.get_event,
        )
        register(
            "update_calendar_event",
            "Update a calendar event. Only the fields provided are changed.",
            EventUpdateRequest,
            self.calendar.update_event,
        )
        register(
            "delete_calendar_event",
            "Delete a calendar event by ID.",
            EventIdRequest,
            self.calendar.delete_event,
        )
        register(
            "add_event_attendees",
            "Add attendees to an existing event. Attendees already invited "
            "(matched by email address, case-insensitively) are skipped.",
            AddAttendeesRequest,
            self.calendar.add_attendees,
        )

        # Mail
        register(
            "list_emails",
            "List emails in a mail folder (default: inbox); supports top, filter, "
            "orderBy and select.",
            ListEmailsQuery,
            self.mail.list_emails,
        )
        register(
            "get_email",
            "Get an email by ID, including its body.",
            MessageIdRequest,
            self.mail.get_email,
        )
        register(
            "send_email",
            "Send an email to one or more recipients.",
            SendEmailRequest,
            self.mail.send_email,
        )
        register(
            "create_draft",
            "Create a draft email in the Drafts folder without sending it.",
            SendEmailRequest,
            self.mail.create_draft,
        )
        register(
            "mark_email_as_read",
            "Mark an email as read.",
            MessageIdRequest,
            self.mail.mark_as_read,
        )
        register(
            "mark_email_as_unread",
            "Mark an email as unread.",
            MessageIdRequest,
            self.mail.mark_as_unread,
        )
        register(
            "delete_email",
            "Delete an email by ID (moves it to Deleted Items).",
            MessageIdRequest,
            self.mail.delete_email,
        )

        # People
        register(
            "search_people",
            "Search people relevant to you by name or email address.",
            SearchPeopleQuery,
            self.people.search_people,
        )
        register(
            "get_person",
            "Get a person by ID.",
            PersonIdRequest,
            self.people.get_person,
        )

        # Scheduling
        register(
            "get_schedule",
            "Get free/busy availability for users, rooms or distribution lists.",
            GetScheduleQuery,
            self.schedule.get_schedule,
        )
        register(
            "find_meeting_times",
            "Suggest meeting times based on attendee availability.",
            FindMeetingTimesQuery,
            self.schedule.find_meeting_times,
        )

        # Account
        register(
            "get_auth_status",
            "Show Microsoft sign-in status. Does not contact Microsoft.",
            EmptyRequest,
            self.account.get_auth_status,
        )
        register(
            "sign_out",
            "Sign out and remove the cached Microsoft credential.",
            EmptyRequest,
            self.account.sign_out,
        )

    def _register_resources(self) -> None:
        self.registry.register_resource(
            CALENDAR_RESOURCE_URI,
            "calendar",
            "Events in the signed-in user's default calendar",
            self.calendar.list_raw_events,
        )
        self.registry.register_resource(
            INBOX_RESOURCE_URI,
            "inbox",
            "Messages in the signed-in user's inbox",
            self.mail.list_raw_inbox,
        )

    def _setup_handlers(self) -> None:
        """Register MCP protocol handlers."""

        @self.server.list_tools()
        async def list_tools() -> list[Tool]:
            return self.registry.tools()

        # Arguments are validated by the request models, not the JSON schema
        @self.server.call_tool(validate_input=False)
        async def call_tool(name: str, arguments: dict[str, Any]) -> CallToolResult:
            return await self.handle_call_tool(name, arguments)

        @self.server.list_resources()
        async def list_resources() -> list[Resource]:
            return self.registry.resources()

        @self.server.read_resource()
        async def read_resource(uri: Any) -> list[ReadResourceContents]:
            return await self.handle_read_resource(str(uri))

    async def handle_call_tool(
        self, name: str, arguments: dict[str, Any] | None
    ) -> CallToolResult:
        """Run a tool and wrap its JSON result (or failure) as text content.

        Failures keep their structured payload and are flagged with isError.
        """
        result = await self.registry.dispatch(name, arguments)
        return CallToolResult(
            content=[TextContent(type="text", text=result.to_json())],
            isError=result.is_error,
        )

    async def handle_read_resource(self, uri: str) -> list[ReadResourceContents]:
        text = await self.registry.read_resource(uri)
        return [ReadResourceContents(content=text, mime_type=self.registry.mime_type(uri))]

    async def close(self) -> None:
        await self.gateway.close()

    async def run(self) -> None:
        """Run the MCP server using stdio transport."""
        logger.info(f"Starting {self.settings.server_name} {self.settings.server_version}")
        try:
            async with stdio_server() as (read_stream, write_stream):
                await self.server.run(
                    read_stream,
                    write_stream,
                    self.server.create_initialization_options(),
                )
        finally:
            await self.close()


def configure_logging(level: str = "INFO") -> None:
    """Send logs to stderr; stdout carries the MCP protocol."""
    logging.basicConfig(level=level, format=LOG_FORMAT, stream=sys.stderr)


def main() -> None:
    """Entry point for the Outlook MCP server."""
    try:
        settings = Settings.from_env()
    except ConfigurationError as e:
        configure_logging()
        logger.error(str(e))
        raise SystemExit(1) from e

    configure_logging(settings.log_level)
    server = OutlookServer(settings)
    asyncio.run(server.run())


if __name__ == "__main__":
    main()
