"""Current weather and multi-day forecasts from WeatherAPI.com."""

import logging
import re
from typing import Any, List, Optional, Pattern, Sequence

import httpx
from pydantic import BaseModel, Field, field_validator

from ..config import DEFAULT_FORECAST_DAYS, Settings
from ..errors import LocationRequiredError, MissingCredentialsError
from ..models import Conversation
from . import Tool
from .http import decode, send

logger = logging.getLogger(__name__)

WEATHER_TIMEOUT = 5.0
MIN_FORECAST_DAYS = 1
MAX_FORECAST_DAYS = 7

# --- Location heuristics ---
# Phrasings are matched against user messages, newest first. Anything that is
# not one of these phrasings falls through to the configured default.
_STOP = r"[^?.!,;\n]+"
CURRENT_PATTERNS = (re.compile(rf"weather\s+in\s+({_STOP})", re.IGNORECASE),)
FORECAST_PATTERNS = (
    re.compile(rf"forecast\s+(?:for|in)\s+({_STOP})", re.IGNORECASE),
    re.compile(rf"weather\s+in\s+({_STOP})", re.IGNORECASE),
    re.compile(rf"\bin\s+({_STOP})", re.IGNORECASE),
    re.compile(r"\b([A-Z][\w'-]*(?:\s+[A-Z][\w'-]*)*)\s+forecast\b"),
)
_TRAILING_FILLER = re.compile(
    r"(?:\s+(?:please|pls|today|tonight|tomorrow|right now|now|currently"
    r"|this weekend|this week|next week))+\s*$",
    re.IGNORECASE,
)


def clean_location(candidate: str) -> str:
    return _TRAILING_FILLER.sub("", candidate.strip()).strip()


def extract_location(
    conversation: Optional[Conversation], patterns: Sequence[Pattern[str]]
) -> str:
    """Finds a location in the user's messages, or returns ``""``."""
    if conversation is None:
        return ""
    for message in reversed(conversation.user_messages()):
        for pattern in patterns:
            match = pattern.search(message.content)
            if not match:
                continue
            location = clean_location(match.group(1))
            if location:
                return location
    return ""


# --- Provider payloads ---
class _Condition(BaseModel):
    text: str = ""


class _Location(BaseModel):
    name: str = ""


class _Current(BaseModel):
    temp_c: float = 0
    feelslike_c: float = 0
    wind_kph: float = 0
    humidity: int = 0
    condition: _Condition = Field(default_factory=_Condition)


class CurrentWeatherResponse(BaseModel):
    location: _Location = Field(default_factory=_Location)
    current: _Current = Field(default_factory=_Current)


class _Day(BaseModel):
    maxtemp_c: float = 0
    mintemp_c: float = 0
    daily_chance_of_rain: int = 0
    condition: _Condition = Field(default_factory=_Condition)

    @field_validator("daily_chance_of_rain", mode="before")
    @classmethod
    def _int_or_string(cls, value: Any) -> Any:
        # The provider sends this as a number or a numeric string.
        if value is None:
            return 0
        if isinstance(value, str):
            value = value.strip()
            return int(float(value)) if value else 0
        if isinstance(value, float):
            return int(value)
        return value


class _ForecastDay(BaseModel):
    date: str = ""
    day: _Day = Field(default_factory=_Day)


class _Forecast(BaseModel):
    forecastday: List[_ForecastDay] = Field(default_factory=list)


class ForecastResponse(BaseModel):
    location: _Location = Field(default_factory=_Location)
    forecast: _Forecast = Field(default_factory=_Forecast)


def _api_error(body: Any) -> Optional[str]:
    if isinstance(body, dict):
        error = body.get("error")
        if isinstance(error, dict) and error.get("message"):
            return f"api error: {error['message']}"
    return None


async def fetch_current_weather(
    client: httpx.AsyncClient,
    api_key: str,
    location: str,
    base_url: str,
    timeout: float = WEATHER_TIMEOUT,
) -> CurrentWeatherResponse:
    response = await send(
        client,
        "weather lookup",
        "GET",
        f"{base_url.rstrip('/')}/v1/current.json",
        params={"key": api_key, "q": location, "aqi": "no"},
        timeout=timeout,
        extract_error=_api_error,
    )
    return decode(response, CurrentWeatherResponse, "weather lookup")


async def fetch_forecast(
    client: httpx.AsyncClient,
    api_key: str,
    location: str,
    days: int,
    base_url: str,
    timeout: float = WEATHER_TIMEOUT,
) -> ForecastResponse:
    response = await send(
        client,
        "forecast lookup",
        "GET",
        f"{base_url.rstrip('/')}/v1/forecast.json",
        params={
            "key": api_key,
            "q": location,
            "days": str(days),
            "aqi": "no",
            "alerts": "no",
        },
        timeout=timeout,
        extract_error=_api_error,
    )
    return decode(response, ForecastResponse, "forecast lookup")


def format_current(payload: CurrentWeatherResponse) -> str:
    current = payload.current
    return (
        f"{payload.location.name}: {current.temp_c:.0f}°C, "
        f"{current.condition.text}. Feels {current.feelslike_c:.0f}°C. "
        f"Wind {current.wind_kph:.0f} kph. Humidity {current.humidity}%"
    )


def format_forecast(payload: ForecastResponse, fallback_name: str) -> str:
    days = payload.forecast.forecastday
    name = payload.location.name or fallback_name
    lines = [f"{name} forecast ({len(days)} day{'' if len(days) == 1 else 's'}):"]
    for entry in days:
        day = entry.day
        lines.append(
            f"{entry.date}: {day.condition.text}, "
            f"{day.mintemp_c:.0f}–{day.maxtemp_c:.0f}°C, "
            f"rain {day.daily_chance_of_rain}%"
        )
    return "\n".join(lines)


# --- Tools ---
class WeatherArgs(BaseModel):
    location: str = ""


class ForecastArgs(BaseModel):
    location: str = ""
    days: int = 0


class _WeatherTool(Tool):
    patterns: Sequence[Pattern[str]] = CURRENT_PATTERNS
    operation = "weather lookup"
    example = "weather in Paris"

    def __init__(
        self,
        conversation: Optional[Conversation],
        http_client: httpx.AsyncClient,
        settings: Optional[Settings] = None,
    ):
        self.conversation = conversation
        self.http_client = http_client
        self.settings = settings if settings is not None else Settings()

    def resolve_location(self, explicit: str) -> str:
        location = explicit.strip()
        if not location:
            location = extract_location(self.conversation, self.patterns)
        if not location:
            location = self.settings.weather_default_location.strip()
        if not location:
            raise LocationRequiredError(
                f"{self.operation} failed: please provide a location "
                f"(e.g., '{self.example}')"
            )
        return location

    def require_api_key(self) -> str:
        if not self.settings.weather_api_key:
            raise MissingCredentialsError(
                f"{self.operation} failed: missing WEATHER_API_KEY"
            )
        return self.settings.weather_api_key


class GetWeatherTool(_WeatherTool):
    name = "get_weather"
    description = "Get the current weather at the given location"
    parameters = {
        "type": "object",
        "properties": {
            "location": {
                "type": "string",
                "description": "City or place name, e.g. 'Barcelona'",
            }
        },
        "required": ["location"],
    }

    async def execute(self, raw_args: str) -> str:
        args = self.parse_args(raw_args, WeatherArgs)
        location = self.resolve_location(args.location)
        api_key = self.require_api_key()
        logger.info("Fetching current weather", extra={"location": location})
        payload = await fetch_current_weather(
            self.http_client, api_key, location, self.settings.weather_base_url
        )
        return format_current(payload)


class GetWeatherForecastTool(_WeatherTool):
    name = "get_weather_forecast"
    description = "Get a daily weather forecast for the given location"
    parameters = {
        "type": "object",
        "properties": {
            "location": {
                "type": "string",
                "description": "City or place name, e.g. 'Barcelona'",
            },
            "days": {
                "type": "integer",
                "description": "Number of days to forecast (1-7)",
                "minimum": MIN_FORECAST_DAYS,
                "maximum": MAX_FORECAST_DAYS,
            },
        },
        "required": ["location"],
    }
    patterns = FORECAST_PATTERNS
    operation = "forecast lookup"
    example = "3-day forecast for Barcelona"

    def resolve_days(self, requested: int) -> int:
        days = requested
        if days <= 0:
            days = self.settings.weather_forecast_days
        if days <= 0:
            days = DEFAULT_FORECAST_DAYS
        return max(MIN_FORECAST_DAYS, min(MAX_FORECAST_DAYS, days))

    async def execute(self, raw_args: str) -> str:
        args = self.parse_args(raw_args, ForecastArgs)
        location = self.resolve_location(args.location)
        days = self.resolve_days(args.days)
        api_key = self.require_api_key()
        logger.info(
            "Fetching weather forecast", extra={"location": location, "days": days}
        )
        payload = await fetch_forecast(
            self.http_client,
            api_key,
            location,
            days,
            self.settings.weather_base_url,
        )
        return format_forecast(payload, location)
