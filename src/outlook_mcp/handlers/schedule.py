"""Free/busy and meeting-time tool handlers."""

from typing import Any

from outlook_mcp.formatting import format_schedule, format_suggestion
from outlook_mcp.gateway import GraphGateway
from outlook_mcp.schemas import FindMeetingTimesQuery, GetScheduleQuery, parse_request


class ScheduleHandlers:
    """Handlers for getSchedule and findMeetingTimes."""

    def __init__(self, gateway: GraphGateway) -> None:
        self.gateway = gateway

    async def get_schedule(self, arguments: dict[str, Any]) -> list[dict[str, Any]]:
        """Get free/busy availability for users, rooms or lists.

        Args:
            arguments: Tool arguments matching GetScheduleQuery.

        Returns:
            One entry per schedule with decoded availability slots.
        """
        query: GetScheduleQuery = parse_request(GetScheduleQuery, arguments)
        response = await self.gateway.call(
            "POST", "/me/calendar/getSchedule", json_data=query.to_graph()
        )
        return [format_schedule(item) for item in (response or {}).get("value", [])]

    async def find_meeting_times(self, arguments: dict[str, Any]) -> list[dict[str, Any]]:
        """Suggest meeting times for a group of attendees.

        Args:
            arguments: Tool arguments matching FindMeetingTimesQuery.

        Returns:
            Formatted suggestions, empty when Graph finds none.
        """
        query: FindMeetingTimesQuery = parse_request(FindMeetingTimesQuery, arguments)
        response = await self.gateway.call(
            "POST", "/me/findMeetingTimes", json_data=query.to_graph()
        )
        suggestions = (response or {}).get("meetingTimeSuggestions") or []
        return [format_suggestion(suggestion) for suggestion in suggestions]
