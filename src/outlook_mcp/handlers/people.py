"""People tool handlers."""

from typing import Any

from outlook_mcp.formatting import format_person
from outlook_mcp.gateway import GraphGateway
from outlook_mcp.schemas import (
    DEFAULT_PEOPLE_SELECT,
    PersonIdRequest,
    SearchPeopleQuery,
    parse_request,
)


class PeopleHandlers:
    """Handlers for the /me/people relevance API."""

    def __init__(self, gateway: GraphGateway) -> None:
        self.gateway = gateway

    async def search_people(self, arguments: dict[str, Any]) -> list[dict[str, Any]]:
        """Search people relevant to the signed-in user.

        Args:
            arguments: Tool arguments matching SearchPeopleQuery.

        Returns:
            Formatted people ranked by Graph relevance.
        """
        query: SearchPeopleQuery = parse_request(SearchPeopleQuery, arguments)

        params: dict[str, Any] = {}
        if query.search_term:
            params["$search"] = f'"{query.search_term}"'
        if query.filter:
            params["$filter"] = query.filter
        params["$select"] = query.select or DEFAULT_PEOPLE_SELECT
        if query.top:
            params["$top"] = str(query.top)

        response = await self.gateway.call("GET", "/me/people", params=params)
        return [format_person(person) for person in (response or {}).get("value", [])]

    async def get_person(self, arguments: dict[str, Any]) -> dict[str, Any]:
        request: PersonIdRequest = parse_request(PersonIdRequest, arguments)
        return await self.gateway.call("GET", f"/me/people/{request.person_id}")
