"""Mail tool handlers."""

from typing import Any

from outlook_mcp.formatting import format_email
from outlook_mcp.gateway import GraphGateway
from outlook_mcp.schemas import (
    ListEmailsQuery,
    MessageIdRequest,
    SendEmailRequest,
    parse_request,
)


def _message_path(message_id: str) -> str:
    return f"/me/messages/{message_id}"


class MailHandlers:
    """Handlers for mail tools."""

    def __init__(self, gateway: GraphGateway) -> None:
        self.gateway = gateway

    async def _fetch_folder(self, query: ListEmailsQuery) -> list[dict[str, Any]]:
        params: dict[str, Any] = {}
        if query.filter:
            params["$filter"] = query.filter
        if query.top:
            params["$top"] = str(query.top)
        if query.order_by:
            params["$orderby"] = query.order_by
        if query.select:
            params["$select"] = query.select

        response = await self.gateway.call(
            "GET", f"/me/mailFolders/{query.folder}/messages", params=params or None
        )
        return (response or {}).get("value", [])

    async def list_emails(self, arguments: dict[str, Any]) -> list[dict[str, Any]]:
        """List messages in a mail folder (default: inbox).

        Args:
            arguments: Tool arguments matching ListEmailsQuery.

        Returns:
            Formatted messages in the order Graph returned them.
        """
        query: ListEmailsQuery = parse_request(ListEmailsQuery, arguments)
        return [format_email(message) for message in await self._fetch_folder(query)]

    async def list_raw_inbox(self) -> list[dict[str, Any]]:
        """Fetch the default inbox page unformatted (inbox resource)."""
        return await self._fetch_folder(ListEmailsQuery())

    async def get_email(self, arguments: dict[str, Any]) -> dict[str, Any]:
        request: MessageIdRequest = parse_request(MessageIdRequest, arguments)
        return await self.gateway.call("GET", _message_path(request.message_id))

    async def send_email(self, arguments: dict[str, Any]) -> dict[str, Any]:
        """Send a message through /me/sendMail."""
        request: SendEmailRequest = parse_request(SendEmailRequest, arguments)
        await self.gateway.call(
            "POST",
            "/me/sendMail",
            json_data={
                "message": request.to_message(),
                "saveToSentItems": request.save_to_sent_items,
            },
        )
        return {"status": "sent", "subject": request.subject}

    async def create_draft(self, arguments: dict[str, Any]) -> dict[str, Any]:
        """Save a message to the Drafts folder without sending it."""
        request: SendEmailRequest = parse_request(SendEmailRequest, arguments)
        return await self.gateway.call("POST", "/me/messages", json_data=request.to_message())

    async def _set_read(self, arguments: dict[str, Any], is_read: bool) -> dict[str, Any]:
        request: MessageIdRequest = parse_request(MessageIdRequest, arguments)
        await self.gateway.call(
            "PATCH", _message_path(request.message_id), json_data={"isRead": is_read}
        )
        return {"status": "read" if is_read else "unread", "messageId": request.message_id}

    async def mark_as_read(self, arguments: dict[str, Any]) -> dict[str, Any]:
        return await self._set_read(arguments, True)

    async def mark_as_unread(self, arguments: dict[str, Any]) -> dict[str, Any]:
        return await self._set_read(arguments, False)

    async def delete_email(self, arguments: dict[str, Any]) -> dict[str, Any]:
        request: MessageIdRequest = parse_request(MessageIdRequest, arguments)
        await self.gateway.call("DELETE", _message_path(request.message_id))
        return {"status": "deleted", "messageId": request.message_id}
