"""Presentation helpers that reshape Graph resources for tool output."""

import re
from datetime import datetime
from typing import Any

AVAILABILITY_LABELS = {
    "0": "free",
    "1": "tentative",
    "2": "busy",
    "3": "out of office",
    "4": "working elsewhere",
}

# Graph emits up to 7 fractional digits; datetime accepts at most 6
_FRACTION_RE = re.compile(r"(\.\d{6})\d+")


def parse_graph_datetime(value: str) -> datetime:
    """Parse a Graph ``dateTime`` string.

    Args:
        value: ISO 8601 string such as ``2025-01-15T10:00:00.0000000`` or
            ``2025-01-15T10:00:00Z``.

    Returns:
        Parsed datetime (naive when the input carries no offset).

    Raises:
        ValueError: If the string is not ISO 8601.
    """
    text = value.strip()
    if text.endswith("Z"):
        text = text[:-1] + "+00:00"
    text = _FRACTION_RE.sub(r"\1", text)
    return datetime.fromisoformat(text)


def to_display(value: str | None) -> str:
    """Render a Graph timestamp as ``M/D/YYYY, H:MM:SS AM``.

    Unparsable values are returned unchanged; empty values become ``Unknown``.
    """
    if not value:
        return "Unknown"
    try:
        dt = parse_graph_datetime(value)
    except ValueError:
        return value

    hour = dt.hour % 12 or 12
    meridiem = "AM" if dt.hour < 12 else "PM"
    return f"{dt.month}/{dt.day}/{dt.year}, {hour}:{dt.minute:02d}:{dt.second:02d} {meridiem}"


def _address(entry: dict[str, Any] | None) -> str | None:
    if not entry:
        return None
    return (entry.get("emailAddress") or {}).get("address")


def format_event(event: dict[str, Any]) -> dict[str, Any]:
    """Flatten a Graph event for display."""
    start = event.get("start") or {}
    end = event.get("end") or {}
    location = (event.get("location") or {}).get("displayName")
    addresses = [a for a in (_address(att) for att in event.get("attendees") or []) if a]

    return {
        "id": event.get("id"),
        "subject": event.get("subject"),
        "start": to_display(start.get("dateTime")),
        "end": to_display(end.get("dateTime")),
        "timeZone": start.get("timeZone"),
        "location": location or "No location",
        "isAllDay": event.get("isAllDay") or False,
        "attendees": ", ".join(addresses) if addresses else "No attendees",
        "preview": event.get("bodyPreview") or "",
    }


def format_email(message: dict[str, Any]) -> dict[str, Any]:
    """Flatten a Graph message for display."""
    sender = (message.get("from") or {}).get("emailAddress") or {}
    received = message.get("receivedDateTime")

    return {
        "id": message.get("id"),
        "subject": message.get("subject") or "(No Subject)",
        "from": sender.get("address") or "Unknown",
        "fromName": sender.get("name"),
        "received": to_display(received) if received else "Unknown",
        "isRead": message.get("isRead"),
        "importance": message.get("importance") or "normal",
        "hasAttachments": message.get("hasAttachments") or False,
        "preview": message.get("bodyPreview") or "",
    }


def format_person(person: dict[str, Any]) -> dict[str, Any]:
    """Flatten a Graph person for display."""
    scored = person.get("scoredEmailAddresses") or []
    email = next((s.get("address") for s in scored if s.get("address")), None)

    return {
        "id": person.get("id"),
        "displayName": person.get("displayName") or "Unknown",
        "email": email or person.get("userPrincipalName"),
        "jobTitle": person.get("jobTitle") or "",
        "department": person.get("department") or "",
        "personType": (person.get("personType") or {}).get("subclass"),
    }


def format_schedule(schedule: dict[str, Any]) -> dict[str, Any]:
    """Decode a getSchedule entry's availability view."""
    view = schedule.get("availabilityView") or ""
    result: dict[str, Any] = {
        "userId": schedule.get("scheduleId"),
        "availability": [AVAILABILITY_LABELS.get(slot, "unknown") for slot in view],
        "detailedItems": schedule.get("scheduleItems") or [],
    }
    if schedule.get("error"):
        result["error"] = schedule["error"].get("message") or schedule["error"]
    return result


def format_suggestion(suggestion: dict[str, Any]) -> dict[str, Any]:
    """Flatten a findMeetingTimes suggestion for display."""
    slot = suggestion.get("meetingTimeSlot") or {}
    start = slot.get("start") or {}
    end = slot.get("end") or {}

    return {
        "startTime": to_display(start.get("dateTime")),
        "endTime": to_display(end.get("dateTime")),
        "timeZone": start.get("timeZone"),
        "confidence": suggestion.get("confidence") or 0,
        "organizerAvailability": suggestion.get("organizerAvailability") or "unknown",
        "attendeeAvailability": [
            {
                "attendee": _address(item.get("attendee")),
                "availability": item.get("availability"),
            }
            for item in suggestion.get("attendeeAvailability") or []
        ],
    }
