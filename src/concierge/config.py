"""Environment-driven settings for the assistant and its tools."""

import os
from typing import Mapping, Optional

from pydantic import BaseModel

DEFAULT_HOLIDAY_CALENDAR_LINK = "https://www.officeholidays.com/ics/spain/catalonia"
DEFAULT_WEATHER_BASE_URL = "https://api.weatherapi.com"
DEFAULT_AMADEUS_BASE_URL = "https://test.api.amadeus.com"
DEFAULT_FORECAST_DAYS = 3
DEFAULT_MAX_TURNS = 15


class Settings(BaseModel):
    """Configuration consumed by the orchestrator and the built-in tools.

    Use :meth:`from_env` to build an instance from environment variables;
    construct it directly in tests.
    """

    weather_api_key: str = ""
    weather_base_url: str = DEFAULT_WEATHER_BASE_URL
    weather_default_location: str = ""
    weather_forecast_days: int = DEFAULT_FORECAST_DAYS

    holiday_calendar_link: str = DEFAULT_HOLIDAY_CALENDAR_LINK

    amadeus_api_key: str = ""
    amadeus_api_secret: str = ""
    amadeus_base_url: str = DEFAULT_AMADEUS_BASE_URL

    title_model: str = "gpt-5"
    reply_model: str = "gpt-4.1"
    max_turns: int = DEFAULT_MAX_TURNS

    @classmethod
    def from_env(cls, environ: Optional[Mapping[str, str]] = None) -> "Settings":
        env = os.environ if environ is None else environ

        def text(key: str, default: str = "") -> str:
            return env.get(key, "").strip() or default

        def positive(key: str, default: int) -> int:
            try:
                value = int(env.get(key, "").strip())
            except ValueError:
                return default
            return value if value > 0 else default

        return cls(
            weather_api_key=text("WEATHER_API_KEY"),
            weather_base_url=text("WEATHER_API_BASE_URL", DEFAULT_WEATHER_BASE_URL),
            weather_default_location=text("WEATHER_DEFAULT_LOCATION"),
            weather_forecast_days=positive(
                "WEATHER_FORECAST_DAYS", DEFAULT_FORECAST_DAYS
            ),
            holiday_calendar_link=text(
                "HOLIDAY_CALENDAR_LINK", DEFAULT_HOLIDAY_CALENDAR_LINK
            ),
            amadeus_api_key=text("AMADEUS_API_KEY"),
            amadeus_api_secret=text("AMADEUS_API_SECRET"),
            amadeus_base_url=text("AMADEUS_BASE_URL", DEFAULT_AMADEUS_BASE_URL),
            title_model=text("OPENAI_TITLE_MODEL", "gpt-5"),
            reply_model=text("OPENAI_REPLY_MODEL", "gpt-4.1"),
            max_turns=positive("CONCIERGE_MAX_TURNS", DEFAULT_MAX_TURNS),
        )
