"""Pydantic models for the booking site's JSON payloads.

Remote field names are PascalCase (Guid, StartDateTime, ...); the models expose
snake_case attributes and accept either spelling. Timestamps are parsed into
aware UTC datetimes so they can be compared as instants.
"""

from datetime import datetime
from typing import Any

from pydantic import BaseModel, ConfigDict, Field, ValidationInfo, field_validator

from src.footbooker.slots import normalize_to_utc


class RemoteModel(BaseModel):
    model_config = ConfigDict(populate_by_name=True, extra="ignore")


class Envelope(RemoteModel):
    """Response wrapper: Code 200 means success, anything else carries Message."""

    code: int | None = Field(default=None, alias="Code")
    message: str | None = Field(default=None, alias="Message")
    data: Any = Field(default=None, alias="Data")

    @property
    def ok(self) -> bool:
        return self.code == 200


class TimedModel(RemoteModel):
    """Parses StartDateTime/EndDateTime into UTC instants.

    A timestamp without a zone is read in the ``tz`` passed as validation
    context (the client passes its own), or the system zone when there is none.
    """

    @field_validator("start_time", "end_time", mode="before", check_fields=False)
    @classmethod
    def _to_instant(cls, value: Any, info: ValidationInfo) -> Any:
        if isinstance(value, (str, datetime)):
            tz = (info.context or {}).get("tz")
            return normalize_to_utc(value, tz)
        return value


class ActivityType(RemoteModel):
    guid: str = Field(alias="Guid")
    name: str = Field(alias="Name")


class AvailableSession(TimedModel):
    """A slot offered on a given date. Bookable iff availability >= 0."""

    guid: str = Field(alias="Guid")
    name: str | None = Field(default=None, alias="Name")
    start_time: datetime = Field(alias="StartDateTime")
    end_time: datetime | None = Field(default=None, alias="EndDateTime")
    availability: int = Field(default=0, alias="Availability")


class Booking(TimedModel):
    """A booking held by the account."""

    guid: str = Field(alias="Guid")
    start_time: datetime = Field(alias="StartDateTime")
    end_time: datetime | None = Field(default=None, alias="EndDateTime")
    activity_name: str | None = Field(default=None, alias="ActivityName")
    description: str | None = Field(default=None, alias="Description")
    person_guid: str | None = Field(default=None, alias="PersonGuid")  # assignee
