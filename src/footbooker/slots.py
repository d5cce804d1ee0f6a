"""Slot matching: time-zone normalization, exact-instant matching, preference order.

The booking site speaks UTC instants ("2017-09-17T08:00:00.0000000Z") while
preferences are written as wall-clock times of wherever the job runs. Every
comparison therefore happens between timezone-aware instants, never between
strings.

Strings without zone information are local wall-clock time. "Local" is the
process's system time zone unless an explicit ``tz`` is passed, which is what
the tests do to pin a UTC+1 context.
"""

import re
from datetime import date, datetime, time, timedelta, timezone, tzinfo
from typing import TYPE_CHECKING, Iterable, Sequence

if TYPE_CHECKING:
    from src.footbooker.models import AvailableSession

# JavaScript-style weekday indexes (0 = Sunday), as used in existing settings files
WEEKDAYS: dict[str, int] = {
    "sunday": 0,
    "monday": 1,
    "tuesday": 2,
    "wednesday": 3,
    "thursday": 4,
    "friday": 5,
    "saturday": 6,
}

_ZULU = re.compile(r"[zZ]$")
# .NET timestamps carry 7 fractional digits; datetime accepts at most 6
_LONG_FRACTION = re.compile(r"(\.\d{6})\d+")

DateLike = str | date | datetime
TimeLike = str | time


def _clean_iso(value: str) -> str:
    value = _ZULU.sub("+00:00", value.strip())
    return _LONG_FRACTION.sub(r"\1", value)


def _localize(naive: datetime, tz: tzinfo | None) -> datetime:
    """Attach the local zone to a wall-clock datetime."""
    if tz is None:
        return naive.astimezone()
    return naive.replace(tzinfo=tz)


def parse_datetime(value: DateLike, tz: tzinfo | None = None) -> datetime:
    """Parse an ISO date/time (or pass through a datetime) into an aware datetime.

    Raises:
        ValueError: If the string is not an ISO 8601 date or date-time.
    """
    if isinstance(value, datetime):
        parsed = value
    elif isinstance(value, date):
        parsed = datetime(value.year, value.month, value.day)
    else:
        parsed = datetime.fromisoformat(_clean_iso(value))

    if parsed.tzinfo is None:
        return _localize(parsed, tz)
    return parsed


def parse_time(value: TimeLike) -> time:
    """Parse "21:00", "21:00Z" or "21:00+02:00". Zone info is kept when present."""
    if isinstance(value, time):
        return value
    return time.fromisoformat(_clean_iso(value))


def normalize_to_utc(value: DateLike, tz: tzinfo | None = None) -> datetime:
    """Return the UTC instant for a zoned or local date-time.

    Zoned input is taken exactly as given, naive input as local wall-clock time.
    Normalizing an already normalized instant returns the same instant.
    """
    return parse_datetime(value, tz).astimezone(timezone.utc)


def local_date(value: DateLike, tz: tzinfo | None = None) -> date:
    """Calendar date of ``value`` as seen in local time."""
    if isinstance(value, date) and not isinstance(value, datetime):
        return value
    return parse_datetime(value, tz).astimezone(tz).date()


def date_only(value: DateLike, tz: tzinfo | None = None) -> datetime:
    """Midnight of the local calendar date of ``value``, expressed in UTC.

    The availability endpoint is keyed by date: 2017-09-17T20:00 local becomes
    2017-09-17T00:00:00Z whatever the local offset is.
    """
    day = local_date(value, tz)
    return datetime(day.year, day.month, day.day, tzinfo=timezone.utc)


def combine_date_and_time(
    date_value: DateLike, time_value: TimeLike, tz: tzinfo | None = None
) -> datetime:
    """Compose a date with a time of day into one UTC instant.

    The calendar date comes from the local reading of ``date_value``. The time
    of day is local unless it carries its own zone, in which case that zone
    governs. In a UTC+1 context:

        ("2017-10-25T23:00", "21:00")   -> 2017-10-25T20:00:00Z
        ("2017-10-25T23:00Z", "21:00")  -> 2017-10-26T20:00:00Z
        ("2017-10-25T23:00", "21:00Z")  -> 2017-10-25T21:00:00Z
        ("2017-10-25T23:00Z", "21:00Z") -> 2017-10-26T21:00:00Z
    """
    day = local_date(date_value, tz)
    time_of_day = parse_time(time_value)
    combined = datetime.combine(day, time_of_day)
    if time_of_day.tzinfo is None:
        combined = _localize(combined, tz)
    return combined.astimezone(timezone.utc)


def find_match(
    desired: DateLike,
    sessions: Iterable["AvailableSession"],
    tz: tzinfo | None = None,
) -> str | None:
    """Return the guid of the session starting exactly at ``desired``, if any."""
    target = normalize_to_utc(desired, tz)
    for session in sessions:
        if session.start_time == target:
            return session.guid
    return None


def weekday_index(weekday: str | int) -> int:
    """Resolve a weekday name, three-letter abbreviation or 0-6 index (0 = Sunday).

    Raises:
        ValueError: If the weekday is not recognized.
    """
    if isinstance(weekday, int) and not isinstance(weekday, bool):
        if 0 <= weekday <= 6:
            return weekday
    elif isinstance(weekday, str):
        key = weekday.strip().lower()
        if key.isdigit() and 0 <= int(key) <= 6:
            return int(key)
        for name, index in WEEKDAYS.items():
            if key == name or (len(key) == 3 and name.startswith(key)):
                return index
    raise ValueError(f'"{weekday}" is not a valid weekday')


def next_date_for_weekday(
    weekday: str | int,
    offset: int = 0,
    now: DateLike | None = None,
    tz: tzinfo | None = None,
) -> date:
    """Nearest calendar date on or after ``now + offset`` days falling on ``weekday``."""
    index = weekday_index(weekday)
    reference = local_date(now if now is not None else datetime.now(timezone.utc), tz)
    start = reference + timedelta(days=offset)
    start_index = (start.weekday() + 1) % 7
    return start + timedelta(days=(index - start_index) % 7)


def more_prioritized(
    booked: DateLike, preferences: Sequence[DateLike], tz: tzinfo | None = None
) -> list:
    """Entries strictly before the first preference equal to ``booked``.

    The whole list is returned when no entry matches. Used to retry only the
    slots that beat the one already held.
    """
    booked_instant = normalize_to_utc(booked, tz)
    result = []
    for preference in preferences:
        if normalize_to_utc(preference, tz) == booked_instant:
            return result
        result.append(preference)
    return result


def to_remote_iso(value: DateLike, tz: tzinfo | None = None) -> str:
    """Render an instant the way the site expects: 2017-09-17T00:00:00.000Z."""
    instant = normalize_to_utc(value, tz)
    return instant.strftime("%Y-%m-%dT%H:%M:%S") + f".{instant.microsecond // 1000:03d}Z"


def to_local_display(value: DateLike, tz: tzinfo | None = None) -> str:
    """Human-readable local rendering, used for the final report."""
    return parse_datetime(value, tz).astimezone(tz).strftime("%a %d %b %Y %H:%M %Z")
