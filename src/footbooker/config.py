"""Booking configuration loaded from a JSON settings file and the environment.

Priority (highest first): explicit kwargs, FOOTBOOKER_* environment variables,
.env file, settings JSON file. Nested fields use "__" in environment variable
names, e.g. FOOTBOOKER_CREDENTIALS__PASSWORD.
"""

import json
from pathlib import Path
from typing import Literal

from pydantic import BaseModel, Field, field_validator, model_validator
from pydantic_settings import (
    BaseSettings,
    JsonConfigSettingsSource,
    PydanticBaseSettingsSource,
    SettingsConfigDict,
)

from src.footbooker.slots import parse_datetime, parse_time, weekday_index

DEFAULT_SETTINGS_PATH = "settings/foot_booker_settings.json"

# Activity type guid of "Football" on the site; stable across seasons
FOOTBALL_ACTIVITY_GUID = "50ba1b7a-67f4-4c8d-a575-7dc8b5a43a30"

Strategy = Literal["dateAndTimeOrder", "weekdayAndTimeOrder"]


class Credentials(BaseModel):
    login: str = Field(default="", description="Account e-mail")
    password: str = Field(default="", description="Account password")


class DateAndTimeOrder(BaseModel):
    """Fixed, priority-ordered list of date-times (local unless zoned)."""

    booking_preference: list[str] = Field(min_length=1)

    @field_validator("booking_preference")
    @classmethod
    def _valid_datetimes(cls, values: list[str]) -> list[str]:
        for value in values:
            parse_datetime(value)
        return values


class WeekdayAndTimeOrder(BaseModel):
    """Next occurrence of a weekday, at least ``offset`` days away, plus ordered times."""

    weekday: str | int
    offset: int = Field(default=0, ge=0)
    booking_preference: list[str] = Field(min_length=1)

    @field_validator("weekday")
    @classmethod
    def _valid_weekday(cls, value: str | int) -> str | int:
        weekday_index(value)
        return value

    @field_validator("booking_preference")
    @classmethod
    def _valid_times(cls, values: list[str]) -> list[str]:
        for value in values:
            parse_time(value)
        return values


class FootbookerConfig(BaseSettings):
    """Configuration for one booking run."""

    credentials: Credentials = Field(default_factory=Credentials)
    hostname: str = Field(default="", description="Booking site host name, no scheme")
    strategy: Strategy = Field(default="dateAndTimeOrder")
    date_and_time_order: DateAndTimeOrder | None = None
    weekday_and_time_order: WeekdayAndTimeOrder | None = None
    reason_to_cancel: str = Field(
        default="Booked a more convenient slot",
        description="Reason sent when cancelling a superseded booking",
    )

    # Timing, in milliseconds like the settings files always had
    timeout: int = Field(default=180000, gt=0, description="Overall run deadline (ms)")
    retry_timeout: int = Field(default=100, ge=0, description="Delay between passes (ms)")
    request_timeout: float = Field(default=30.0, gt=0, description="Per HTTP request (s)")

    upgrade: bool = Field(
        default=True,
        description="After booking, try once more for a more preferred slot",
    )
    activity_type_guid: str | None = Field(
        default=FOOTBALL_ACTIVITY_GUID,
        description="Activity type to book; empty resolves activity_name remotely",
    )
    activity_name: str = Field(default="Football")

    # Logging
    log_json: bool = Field(default=False, description="Output logs in JSON format")
    log_level: str = Field(default="INFO")
    log_file: str | None = Field(default=None, description="Also append logs here")

    model_config = SettingsConfigDict(
        env_prefix="FOOTBOOKER_",
        env_nested_delimiter="__",
        case_sensitive=False,
        env_file=".env",
        env_file_encoding="utf-8",
        json_file=DEFAULT_SETTINGS_PATH,
        json_file_encoding="utf-8",
        extra="ignore",
    )

    @classmethod
    def settings_customise_sources(
        cls,
        settings_cls: type[BaseSettings],
        init_settings: PydanticBaseSettingsSource,
        env_settings: PydanticBaseSettingsSource,
        dotenv_settings: PydanticBaseSettingsSource,
        file_secret_settings: PydanticBaseSettingsSource,
    ) -> tuple[PydanticBaseSettingsSource, ...]:
        return (
            init_settings,
            env_settings,
            dotenv_settings,
            JsonConfigSettingsSource(settings_cls),
            file_secret_settings,
        )

    @model_validator(mode="after")
    def _strategy_block_present(self) -> "FootbookerConfig":
        if self.strategy == "dateAndTimeOrder" and self.date_and_time_order is None:
            raise ValueError("strategy dateAndTimeOrder needs a date_and_time_order block")
        if self.strategy == "weekdayAndTimeOrder" and self.weekday_and_time_order is None:
            raise ValueError("strategy weekdayAndTimeOrder needs a weekday_and_time_order block")
        return self

    @property
    def timeout_seconds(self) -> float:
        return self.timeout / 1000

    @property
    def retry_seconds(self) -> float:
        return self.retry_timeout / 1000


def load_config(settings_path: str | None = None, **overrides) -> FootbookerConfig:
    """Load configuration, reading the JSON settings file at ``settings_path``.

    Args:
        settings_path: JSON settings file; defaults to settings/foot_booker_settings.json.
        **overrides: Field values taking precedence over every other source.

    Raises:
        pydantic.ValidationError: If the merged settings are invalid.
    """
    if settings_path is None or settings_path == DEFAULT_SETTINGS_PATH:
        return FootbookerConfig(**overrides)

    class _FileConfig(FootbookerConfig):
        model_config = SettingsConfigDict(json_file=settings_path)

    return _FileConfig(**overrides)


# Template written by generate_settings(); placeholders only
SETTINGS_TEMPLATE: dict = {
    "credentials": {"login": "email@host.com", "password": "password"},
    "hostname": "the.site.co.uk",
    "strategy": "weekdayAndTimeOrder",
    "reason_to_cancel": "Booked a more convenient slot",
    "timeout": 180000,
    "retry_timeout": 100,
    "date_and_time_order": {
        "booking_preference": [
            "2017-10-11T20:00:00",
            "2017-10-11T21:00:00",
            "2017-10-11T19:00:00",
        ]
    },
    "weekday_and_time_order": {
        "weekday": "wednesday",
        "offset": 7,
        "booking_preference": ["20:00", "21:00", "19:00"],
    },
}


def _merge(base: dict, override: dict) -> dict:
    merged = dict(base)
    for key, value in override.items():
        if isinstance(value, dict) and isinstance(merged.get(key), dict):
            merged[key] = _merge(merged[key], value)
        else:
            merged[key] = value
    return merged


def generate_settings(settings_path: str = DEFAULT_SETTINGS_PATH) -> Path:
    """Write the settings template, keeping every value already in the file.

    Returns:
        Path of the written settings file.
    """
    path = Path(settings_path)
    path.parent.mkdir(parents=True, exist_ok=True)

    existing: dict = {}
    if path.exists():
        existing = json.loads(path.read_text(encoding="utf-8"))

    path.write_text(
        json.dumps(_merge(SETTINGS_TEMPLATE, existing), indent=4) + "\n",
        encoding="utf-8",
    )
    return path
