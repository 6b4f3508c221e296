"""Calendar tool handlers."""

import logging
from typing import Any

from outlook_mcp.errors import ValidationFailed
from outlook_mcp.formatting import format_event
from outlook_mcp.gateway import GraphGateway
from outlook_mcp.schemas import (
    AddAttendeesRequest,
    EventCreateRequest,
    EventIdRequest,
    EventUpdateRequest,
    ListEventsQuery,
    parse_request,
)

logger = logging.getLogger(__name__)

EVENTS_PATH = "/me/calendar/events"


def _event_path(event_id: str) -> str:
    return f"{EVENTS_PATH}/{event_id}"


def _attendee_key(attendee: dict[str, Any]) -> str | None:
    address = (attendee.get("emailAddress") or {}).get("address")
    return address.lower() if address else None


def merge_attendees(
    existing: list[dict[str, Any]], new: list[dict[str, Any]]
) -> tuple[list[dict[str, Any]], int]:
    """Union two attendee lists by lower-cased email address.

    Existing attendees keep their position; new ones are appended in the
    order given. Attendees without an address are kept from the existing
    list and dropped from the new list.

    Args:
        existing: Attendees currently on the event (Graph shape).
        new: Attendees to add (Graph shape).

    Returns:
        Tuple of (merged list, number of attendees added).
    """
    seen = {key for key in (_attendee_key(a) for a in existing) if key}
    # response status is read-only on PATCH
    merged = [{k: v for k, v in a.items() if k != "status"} for a in existing]

    added = 0
    for attendee in new:
        key = _attendee_key(attendee)
        if not key or key in seen:
            continue
        seen.add(key)
        merged.append(attendee)
        added += 1

    return merged, added


class CalendarHandlers:
    """Handlers for calendar event tools."""

    def __init__(self, gateway: GraphGateway) -> None:
        self.gateway = gateway

    async def list_events(self, arguments: dict[str, Any]) -> list[dict[str, Any]]:
        """List events, optionally limited to a time window.

        Args:
            arguments: Tool arguments matching ListEventsQuery.

        Returns:
            Formatted events in the order Graph returned them.
        """
        query: ListEventsQuery = parse_request(ListEventsQuery, arguments)

        params: dict[str, Any] = {}
        filters = []
        if query.start_date_time and query.end_date_time:
            filters.append(
                f"start/dateTime ge '{query.start_date_time}' "
                f"and end/dateTime le '{query.end_date_time}'"
            )
        if query.filter:
            filters.append(query.filter)
        if filters:
            params["$filter"] = " and ".join(filters)
        if query.top:
            params["$top"] = str(query.top)
        if query.order_by:
            params["$orderby"] = query.order_by

        response = await self.gateway.call("GET", EVENTS_PATH, params=params or None)
        events = (response or {}).get("value", [])
        return [format_event(event) for event in events]

    async def list_raw_events(self) -> list[dict[str, Any]]:
        """Fetch the default event page unformatted (calendar resource)."""
        response = await self.gateway.call("GET", EVENTS_PATH)
        return (response or {}).get("value", [])

    async def create_event(self, arguments: dict[str, Any]) -> dict[str, Any]:
        """Create a calendar event and return it as Graph stored it."""
        request: EventCreateRequest = parse_request(EventCreateRequest, arguments)
        return await self.gateway.call("POST", EVENTS_PATH, json_data=request.to_graph())

    async def get_event(self, arguments: dict[str, Any]) -> dict[str, Any]:
        request: EventIdRequest = parse_request(EventIdRequest, arguments)
        return await self.gateway.call("GET", _event_path(request.event_id))

    async def update_event(self, arguments: dict[str, Any]) -> dict[str, Any]:
        """Apply a sparse update to an event.

        Only fields present in the arguments are sent; a field given as
        null is cleared.

        Raises:
            ValidationFailed: If no field besides eventId was supplied.
        """
        request = parse_request(EventUpdateRequest, arguments)
        patch = request.to_patch()
        if not patch:
            raise ValidationFailed("Invalid arguments: no fields to update")
        return await self.gateway.call("PATCH", _event_path(request.event_id), json_data=patch)

    async def delete_event(self, arguments: dict[str, Any]) -> dict[str, Any]:
        request: EventIdRequest = parse_request(EventIdRequest, arguments)
        await self.gateway.call("DELETE", _event_path(request.event_id))
        return {"status": "deleted", "eventId": request.event_id}

    async def add_attendees(self, arguments: dict[str, Any]) -> dict[str, Any]:
        """Add attendees to an existing event.

        Graph has no append operation for attendees, so the event is
        fetched, the attendee lists are merged by case-insensitive email
        address, and the full list is written back. When every attendee is
        already present the event is returned unchanged without an update.

        Args:
            arguments: Tool arguments matching AddAttendeesRequest.

        Returns:
            The updated event, or the fetched event when nothing changed.
        """
        request: AddAttendeesRequest = parse_request(AddAttendeesRequest, arguments)
        path = _event_path(request.event_id)

        event = await self.gateway.call("GET", path)
        existing = event.get("attendees") or []
        new = [attendee.to_graph() for attendee in request.attendees]

        merged, added = merge_attendees(existing, new)
        if added == 0:
            logger.info(f"All attendees already on event {request.event_id}, nothing to update")
            return event

        logger.info(f"Adding {added} attendee(s) to event {request.event_id}")
        return await self.gateway.call("PATCH", path, json_data={"attendees": merged})
