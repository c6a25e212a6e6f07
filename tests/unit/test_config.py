"""Tests for environment-driven settings."""

from concierge.config import (
    DEFAULT_AMADEUS_BASE_URL,
    DEFAULT_HOLIDAY_CALENDAR_LINK,
    DEFAULT_WEATHER_BASE_URL,
    Settings,
)


class TestSettingsFromEnv:
    def test_defaults_with_empty_environment(self):
        settings = Settings.from_env({})

        assert settings.weather_api_key == ""
        assert settings.weather_base_url == DEFAULT_WEATHER_BASE_URL
        assert settings.weather_forecast_days == 3
        assert settings.holiday_calendar_link == DEFAULT_HOLIDAY_CALENDAR_LINK
        assert settings.amadeus_base_url == DEFAULT_AMADEUS_BASE_URL
        assert settings.title_model == "gpt-5"
        assert settings.reply_model == "gpt-4.1"
        assert settings.max_turns == 15

    def test_reads_every_variable(self):
        settings = Settings.from_env(
            {
                "WEATHER_API_KEY": "wk",
                "WEATHER_API_BASE_URL": "https://weather.example",
                "WEATHER_DEFAULT_LOCATION": "Girona",
                "WEATHER_FORECAST_DAYS": "5",
                "HOLIDAY_CALENDAR_LINK": "https://example.com/cal.ics",
                "AMADEUS_API_KEY": "ak",
                "AMADEUS_API_SECRET": "as",
                "AMADEUS_BASE_URL": "https://amadeus.example",
                "OPENAI_TITLE_MODEL": "title-model",
                "OPENAI_REPLY_MODEL": "reply-model",
                "CONCIERGE_MAX_TURNS": "4",
            }
        )

        assert settings.weather_api_key == "wk"
        assert settings.weather_base_url == "https://weather.example"
        assert settings.weather_default_location == "Girona"
        assert settings.weather_forecast_days == 5
        assert settings.holiday_calendar_link == "https://example.com/cal.ics"
        assert settings.amadeus_api_key == "ak"
        assert settings.amadeus_api_secret == "as"
        assert settings.amadeus_base_url == "https://amadeus.example"
        assert settings.title_model == "title-model"
        assert settings.reply_model == "reply-model"
        assert settings.max_turns == 4

    def test_unparseable_integers_fall_back(self):
        settings = Settings.from_env(
            {"WEATHER_FORECAST_DAYS": "lots", "CONCIERGE_MAX_TURNS": ""}
        )
        assert settings.weather_forecast_days == 3
        assert settings.max_turns == 15

    def test_blank_values_use_defaults(self):
        settings = Settings.from_env({"HOLIDAY_CALENDAR_LINK": "   "})
        assert settings.holiday_calendar_link == DEFAULT_HOLIDAY_CALENDAR_LINK

    def test_reads_process_environment(self, monkeypatch):
        monkeypatch.setenv("WEATHER_DEFAULT_LOCATION", "Sitges")
        assert Settings.from_env().weather_default_location == "Sitges"

    def test_non_positive_integers_fall_back(self):
        settings = Settings.from_env(
            {"WEATHER_FORECAST_DAYS": "-2", "CONCIERGE_MAX_TURNS": "0"}
        )
        assert settings.weather_forecast_days == 3
        assert settings.max_turns == 15
