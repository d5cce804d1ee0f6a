"""Turn the configured strategy into the run's priority-ordered preference list.

Both strategies resolve to UTC instants once, before the first pass; the list
is then read-only for the rest of the run.
"""

from datetime import datetime, tzinfo

from src.footbooker.config import DateAndTimeOrder, FootbookerConfig, WeekdayAndTimeOrder
from src.footbooker.errors import ConfigError
from src.footbooker.logging import get_logger
from src.footbooker.slots import (
    DateLike,
    combine_date_and_time,
    next_date_for_weekday,
    normalize_to_utc,
    to_local_display,
)

logger = get_logger(__name__)


def date_and_time_order(
    block: DateAndTimeOrder, tz: tzinfo | None = None
) -> tuple[datetime, ...]:
    """Fixed date-times, in the order they were configured."""
    return tuple(normalize_to_utc(value, tz) for value in block.booking_preference)


def weekday_and_time_order(
    block: WeekdayAndTimeOrder, now: DateLike | None = None, tz: tzinfo | None = None
) -> tuple[datetime, ...]:
    """Configured times of day on the next matching weekday at least ``offset`` days out."""
    day = next_date_for_weekday(block.weekday, block.offset, now=now, tz=tz)
    return tuple(combine_date_and_time(day, value, tz) for value in block.booking_preference)


def build_preferences(
    config: FootbookerConfig, now: DateLike | None = None, tz: tzinfo | None = None
) -> tuple[datetime, ...]:
    """Resolve the preference list for ``config.strategy``.

    Raises:
        ConfigError: If the strategy's settings block is missing.
    """
    if config.strategy == "dateAndTimeOrder" and config.date_and_time_order:
        preferences = date_and_time_order(config.date_and_time_order, tz)
    elif config.strategy == "weekdayAndTimeOrder" and config.weekday_and_time_order:
        preferences = weekday_and_time_order(config.weekday_and_time_order, now, tz)
    else:
        raise ConfigError(f"No settings for strategy {config.strategy!r}")

    logger.info(
        "preferences_resolved",
        strategy=config.strategy,
        slots=[to_local_display(value, tz) for value in preferences],
    )
    return preferences
