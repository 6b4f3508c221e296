"""Tool handlers grouped by Microsoft Graph area.

Each handler takes the raw tool arguments, validates them against a
request model from ``outlook_mcp.schemas``, calls Graph through the
gateway, and reshapes the result for display.
"""

from outlook_mcp.handlers.account import AccountHandlers
from outlook_mcp.handlers.calendar import CalendarHandlers, merge_attendees
from outlook_mcp.handlers.mail import MailHandlers
from outlook_mcp.handlers.people import PeopleHandlers
from outlook_mcp.handlers.schedule import ScheduleHandlers

__all__ = [
    "AccountHandlers",
    "CalendarHandlers",
    "MailHandlers",
    "PeopleHandlers",
    "ScheduleHandlers",
    "merge_attendees",
]
