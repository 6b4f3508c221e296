"""Request models for the Outlook tools.

Field names follow the Microsoft Graph wire format (camelCase aliases)
so validated requests can be sent to Graph with
``model_dump(by_alias=True)``. Python code uses the snake_case names.

These models double as the tools' declared input schemas via
``model_json_schema(by_alias=True)``.
"""

from typing import Any, Literal, Optional

from pydantic import (
    BaseModel,
    ConfigDict,
    Field,
    PositiveInt,
    ValidationError,
    create_model,
)
from pydantic.alias_generators import to_camel

from outlook_mcp.errors import ValidationFailed


class GraphModel(BaseModel):
    """Base for Graph-shaped models: camelCase aliases, unknown fields rejected."""

    model_config = ConfigDict(
        alias_generator=to_camel,
        populate_by_name=True,
        extra="forbid",
    )

    def to_graph(self) -> dict[str, Any]:
        """Dump set fields with Graph field names."""
        return self.model_dump(by_alias=True, exclude_none=True)


# =============================================================================
# Shared shapes
# =============================================================================


class EmailAddress(GraphModel):
    address: str = Field(..., min_length=1, description="Email address")
    name: str | None = Field(default=None, description="Display name")


class Recipient(GraphModel):
    email_address: EmailAddress


class Attendee(GraphModel):
    email_address: EmailAddress
    type: Literal["required", "optional", "resource"] | None = Field(
        default=None, description="Attendee type (default: required)"
    )


class DateTimeTimeZone(GraphModel):
    date_time: str = Field(..., description="Local date and time, e.g. 2025-01-15T10:00:00")
    time_zone: str = Field(..., description="Time zone name, e.g. 'Pacific Standard Time' or 'UTC'")


class ItemBody(GraphModel):
    content_type: Literal["text", "html"]
    content: str


class Location(GraphModel):
    display_name: str


class TimeSlot(GraphModel):
    start: DateTimeTimeZone
    end: DateTimeTimeZone


class TimeConstraint(GraphModel):
    activity_domain: Literal["work", "personal", "unrestricted", "unknown"] | None = None
    time_slots: list[TimeSlot] = Field(..., min_length=1)


# =============================================================================
# Calendar
# =============================================================================


class EventCreateRequest(GraphModel):
    """Input for creating a calendar event."""

    subject: str
    start: DateTimeTimeZone
    end: DateTimeTimeZone
    location: Location | None = None
    attendees: list[Attendee] | None = None
    body: ItemBody | None = None
    is_all_day: bool | None = None


def _optional_event_fields() -> dict[str, Any]:
    """Every EventCreateRequest field, made optional with a None default."""
    fields: dict[str, Any] = {}
    for name, info in EventCreateRequest.model_fields.items():
        fields[name] = (
            Optional[info.annotation],  # noqa: UP007
            Field(default=None, description=info.description),
        )
    return fields


class _EventUpdateBase(GraphModel):
    event_id: str = Field(..., min_length=1, description="ID of the event to update")

    def to_patch(self) -> dict[str, Any]:
        """Build the sparse PATCH body.

        Only fields present in the input are included; a field explicitly
        set to null is sent as null so Graph clears it.
        """
        patch = self.model_dump(by_alias=True, exclude_unset=True)
        patch.pop("eventId", None)
        return patch


EventUpdateRequest = create_model(
    "EventUpdateRequest",
    __base__=_EventUpdateBase,
    __doc__="Sparse update of a calendar event; same fields as EventCreateRequest.",
    **_optional_event_fields(),
)


class EventIdRequest(GraphModel):
    event_id: str = Field(..., min_length=1, description="ID of the event")


class AddAttendeesRequest(GraphModel):
    event_id: str = Field(..., min_length=1, description="ID of the event")
    attendees: list[Attendee] = Field(..., min_length=1, description="Attendees to add")


class ListEventsQuery(GraphModel):
    start_date_time: str | None = Field(
        default=None, description="Window start (ISO 8601), used with endDateTime"
    )
    end_date_time: str | None = Field(
        default=None, description="Window end (ISO 8601), used with startDateTime"
    )
    top: PositiveInt | None = Field(default=None, description="Maximum number of events")
    filter: str | None = Field(default=None, description="Additional OData $filter expression")
    order_by: str | None = Field(default=None, description="OData $orderby, e.g. 'start/dateTime'")


# =============================================================================
# Mail
# =============================================================================


class ListEmailsQuery(GraphModel):
    top: PositiveInt | None = Field(default=None, description="Maximum number of messages")
    filter: str | None = Field(default=None, description="OData $filter expression")
    order_by: str | None = Field(default=None, description="OData $orderby expression")
    select: str | None = Field(default=None, description="Comma separated fields to return")
    folder: str = Field(default="inbox", min_length=1, description="Mail folder (default: inbox)")


class MessageIdRequest(GraphModel):
    message_id: str = Field(..., min_length=1, description="ID of the email message")


class SendEmailRequest(GraphModel):
    """Input for sending an email or creating a draft."""

    subject: str
    body: ItemBody
    to_recipients: list[Recipient] = Field(..., min_length=1)
    cc_recipients: list[Recipient] | None = None
    bcc_recipients: list[Recipient] | None = None
    importance: Literal["low", "normal", "high"] | None = None
    save_to_sent_items: bool = True

    def to_message(self) -> dict[str, Any]:
        """Build the Graph message resource (without send options)."""
        message = self.model_dump(
            by_alias=True,
            exclude_none=True,
            exclude={"save_to_sent_items"},
        )
        return message


# =============================================================================
# People
# =============================================================================

DEFAULT_PEOPLE_SELECT = (
    "id,displayName,givenName,surname,userPrincipalName,"
    "scoredEmailAddresses,jobTitle,department,personType"
)


class SearchPeopleQuery(GraphModel):
    search_term: str | None = Field(default=None, description="Name or address to search for")
    filter: str | None = Field(default=None, description="OData $filter expression")
    select: str | None = Field(default=None, description="Comma separated fields to return")
    top: PositiveInt | None = Field(default=None, description="Maximum number of people")


class PersonIdRequest(GraphModel):
    person_id: str = Field(..., min_length=1, description="ID of the person")


# =============================================================================
# Schedule
# =============================================================================


class GetScheduleQuery(GraphModel):
    schedules: list[str] = Field(
        ..., min_length=1, description="Email addresses of users, rooms or distribution lists"
    )
    start_time: DateTimeTimeZone
    end_time: DateTimeTimeZone
    availability_view_interval: int = Field(
        default=30, ge=5, le=1440, description="Slot length in minutes (default: 30)"
    )


class FindMeetingTimesQuery(GraphModel):
    attendees: list[Attendee] = Field(..., min_length=1)
    time_constraint: TimeConstraint
    meeting_duration: str = Field(default="PT1H", description="ISO 8601 duration (default: PT1H)")
    max_candidates: PositiveInt = Field(default=10, description="Maximum suggestions (default: 10)")
    minimum_attendee_percentage: float | None = Field(default=None, ge=0, le=100)


class EmptyRequest(GraphModel):
    """Input for tools that take no arguments."""


# =============================================================================
# Validation
# =============================================================================


def parse_request(model: type[GraphModel], arguments: dict[str, Any] | None) -> Any:
    """Validate tool arguments against a request model.

    Args:
        model: Request model class.
        arguments: Raw tool arguments.

    Returns:
        Validated model instance.

    Raises:
        ValidationFailed: If the arguments do not match the model.
    """
    try:
        return model.model_validate(arguments or {})
    except ValidationError as e:
        errors = [
            {
                "field": ".".join(str(part) for part in err["loc"]) or "(root)",
                "message": err["msg"],
            }
            for err in e.errors()
        ]
        summary = "; ".join(f"{err['field']}: {err['message']}" for err in errors)
        raise ValidationFailed(f"Invalid arguments: {summary}", errors=errors) from e
