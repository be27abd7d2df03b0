import asyncio
import logging
from typing import Any, Optional

from bridge import ToolDescriptor, ToolParameter
from errors import ValidationError
from tools.auth_config import CalendarServiceCell
from tools.validation import (
    opt_string,
    parse_iso_datetime,
    reject_undeclared,
    require_string,
    require_time_zone,
)

CALENDAR_ID = "primary"
DEFAULT_TIME_ZONE = "America/New_York"

descriptor = ToolDescriptor(
    name="create_calendar_event",
    description="Creates a new event in the user's Google Calendar.",
    parameters=(
        ToolParameter("summary", "string", True, "A brief summary or title for the event."),
        ToolParameter(
            "start_time", "string", True,
            "The start time for the event in ISO 8601 format (e.g., 2025-11-17T13:00:00).",
        ),
        ToolParameter(
            "end_time", "string", True,
            "The end time for the event in ISO 8601 format (e.g., 2025-11-17T15:00:00).",
        ),
        ToolParameter("location", "string", False, "The physical location of the event."),
        ToolParameter("description", "string", False, "A detailed description for the event."),
        ToolParameter(
            "time_zone", "string", False,
            "IANA time zone ID for the event (e.g., America/New_York, Europe/Berlin). "
            "If not provided, America/New_York is used.",
        ),
    ),
)


def build_event(
    summary: str,
    start_time: str,
    end_time: str,
    time_zone: str,
    location: Optional[str] = None,
    description: Optional[str] = None,
) -> dict:
    """Validate inputs and build a Calendar v3 event body."""
    summary = require_string({"summary": summary}, "summary")
    start = parse_iso_datetime(start_time, "start_time")
    end = parse_iso_datetime(end_time, "end_time")
    time_zone = require_time_zone(time_zone)

    # The zone is attached as given; it is not derived from any parsed offset
    event = {
        "summary": summary,
        "start": {"dateTime": start.isoformat(), "timeZone": time_zone},
        "end": {"dateTime": end.isoformat(), "timeZone": time_zone},
    }
    if location:
        event["location"] = location
    if description:
        event["description"] = description
    return event


class CalendarTool:
    """Native tool that writes events to the user's primary Google Calendar.

    Each call creates a new event; there is no deduplication.
    """

    def __init__(self, services: CalendarServiceCell, calendar_id: str = CALENDAR_ID):
        self.services = services
        self.calendar_id = calendar_id
        self.descriptor = descriptor

    async def __call__(self, arguments: Optional[dict[str, Any]] = None) -> str:
        arguments = dict(arguments or {})
        try:
            reject_undeclared(arguments, [p.name for p in self.descriptor.parameters], self.descriptor.name)
        except ValidationError as e:
            logging.error(f"Rejected create_calendar_event arguments: {e}")
            return f"❌ An error occurred while creating the event: {e}."

        return await self.create_event(
            summary=opt_string(arguments, "summary", ""),
            start_time=opt_string(arguments, "start_time", ""),
            end_time=opt_string(arguments, "end_time", ""),
            location=opt_string(arguments, "location"),
            description=opt_string(arguments, "description"),
            time_zone=opt_string(arguments, "time_zone", DEFAULT_TIME_ZONE),
        )

    async def create_event(
        self,
        summary: str,
        start_time: str,
        end_time: str,
        location: Optional[str] = None,
        description: Optional[str] = None,
        time_zone: str = DEFAULT_TIME_ZONE,
    ) -> str:
        logging.info(
            f"Tool called: create_calendar_event summary={summary!r} start={start_time} "
            f"end={end_time} tz={time_zone} location={location!r}"
        )
        try:
            service = await self.services.get()
            event = build_event(summary, start_time, end_time, time_zone, location, description)

            request = service.events().insert(calendarId=self.calendar_id, body=event)
            created = await asyncio.to_thread(request.execute)
        except Exception as e:
            logging.error(f"Failed to create event: {e}")
            return (
                f"❌ An error occurred while creating the event: {e}. "
                "Please check the application console for more details."
            )

        link = created.get("htmlLink") or created.get("id", "")
        logging.info(f"✅ Event created successfully. id={created.get('id')} link={link}")
        return f"✅ Event created successfully in time zone '{time_zone}'. You can view it at: {link}"
