"""Date and public-holiday tools."""

import logging
from datetime import date, datetime
from typing import Callable, List, Optional, Tuple

import httpx
from icalendar import Calendar
from pydantic import BaseModel

from ..config import Settings
from ..errors import ProviderError, ToolArgumentError
from ..models import Conversation
from . import Tool
from .http import send

logger = logging.getLogger(__name__)

HOLIDAY_TIMEOUT = 10.0
NO_SUMMARY = "No summary"
NO_HOLIDAYS = "No holidays found matching your criteria."


def local_now() -> datetime:
    return datetime.now().astimezone()


class GetTodayDateTool(Tool):
    name = "get_today_date"
    description = "Get today's date and time in RFC3339 format"

    def __init__(self, clock: Callable[[], datetime] = local_now):
        self.clock = clock

    async def execute(self, raw_args: str) -> str:
        return self.clock().isoformat(timespec="seconds")


# --- Holidays ---
Holiday = Tuple[date, str]


def parse_bound(value: str, field: str) -> Optional[date]:
    """Reads an RFC 3339 timestamp or a plain ``YYYY-MM-DD`` date."""
    value = value.strip()
    if not value:
        return None
    if value.endswith(("Z", "z")):
        value = value[:-1] + "+00:00"
    try:
        return datetime.fromisoformat(value).date()
    except ValueError:
        raise ToolArgumentError(
            f"failed to parse tool call arguments: {field} must be an RFC3339 date"
        ) from None


def parse_holidays(content: bytes) -> List[Holiday]:
    """Extracts ``(date, summary)`` pairs from an iCalendar document.

    Events without a usable DTSTART are skipped. The result is sorted by date,
    then by summary, so the feed's own ordering never leaks through.
    """
    try:
        calendar = Calendar.from_ical(content)
    except ValueError as exc:
        raise ProviderError("holiday lookup", f"failed to parse calendar: {exc}") from exc

    holidays = []
    for event in calendar.walk("VEVENT"):
        start = event.get("DTSTART")
        value = getattr(start, "dt", None)
        if isinstance(value, datetime):
            value = value.date()
        if not isinstance(value, date):
            continue
        summary = str(event.get("SUMMARY", "")).strip() or NO_SUMMARY
        holidays.append((value, summary))
    holidays.sort()
    return holidays


def select_holidays(
    holidays: List[Holiday],
    after: Optional[date] = None,
    before: Optional[date] = None,
    max_count: int = 0,
) -> List[Holiday]:
    selected = []
    for day, summary in holidays:
        if max_count > 0 and len(selected) >= max_count:
            break
        if before is not None and day > before:
            continue
        if after is not None and day < after:
            continue
        selected.append((day, summary))
    return selected


class HolidayArgs(BaseModel):
    before_date: str = ""
    after_date: str = ""
    max_count: int = 0


class GetHolidaysTool(Tool):
    name = "get_holidays"
    description = (
        "Gets local bank and public holidays. Each line is a single holiday "
        "in the format 'YYYY-MM-DD: Holiday Name'."
    )
    parameters = {
        "type": "object",
        "properties": {
            "before_date": {
                "type": "string",
                "description": (
                    "Optional date in RFC3339 format to get holidays on or "
                    "before this date. If not provided, all holidays will be "
                    "returned."
                ),
            },
            "after_date": {
                "type": "string",
                "description": (
                    "Optional date in RFC3339 format to get holidays on or "
                    "after this date. If not provided, all holidays will be "
                    "returned."
                ),
            },
            "max_count": {
                "type": "integer",
                "description": (
                    "Optional maximum number of holidays to return. If not "
                    "provided, all holidays will be returned."
                ),
            },
        },
    }

    def __init__(
        self,
        conversation: Optional[Conversation],
        http_client: httpx.AsyncClient,
        settings: Optional[Settings] = None,
    ):
        self.conversation = conversation
        self.http_client = http_client
        self.settings = settings if settings is not None else Settings()

    async def execute(self, raw_args: str) -> str:
        args = self.parse_args(raw_args, HolidayArgs)
        before = parse_bound(args.before_date, "before_date")
        after = parse_bound(args.after_date, "after_date")

        link = self.settings.holiday_calendar_link
        logger.info("Loading calendar", extra={"link": link})
        response = await send(
            self.http_client, "holiday lookup", "GET", link, timeout=HOLIDAY_TIMEOUT
        )
        holidays = select_holidays(
            parse_holidays(response.content), after, before, args.max_count
        )
        if not holidays:
            return NO_HOLIDAYS
        return "\n".join(f"{day.isoformat()}: {summary}" for day, summary in holidays)
