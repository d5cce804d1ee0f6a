"""Run driver: wire the configuration into an engine and enforce the deadline.

A run ends booked, failed (login refused, site unreachable at login) or timed
out. Only a failure is an error exit; a scheduler simply tries again another
day after a timeout.
"""

import asyncio
import enum
from dataclasses import dataclass
from datetime import tzinfo

from src.footbooker.client import SessionClient
from src.footbooker.config import FootbookerConfig
from src.footbooker.engine import BookingEngine, BookingResult
from src.footbooker.errors import AuthError, DeadlineExceeded, FootbookerError
from src.footbooker.logging import get_logger
from src.footbooker.slots import DateLike
from src.footbooker.strategies import build_preferences

logger = get_logger(__name__)


class Outcome(str, enum.Enum):
    BOOKED = "booked"
    TIMED_OUT = "timed_out"
    FAILED = "failed"


@dataclass
class RunReport:
    outcome: Outcome
    result: BookingResult | None = None
    held_booking_guid: str | None = None
    error: str | None = None

    @property
    def exit_code(self) -> int:
        return 1 if self.outcome is Outcome.FAILED else 0


def build_client(config: FootbookerConfig, tz: tzinfo | None = None) -> SessionClient:
    return SessionClient(
        config.hostname,
        activity_type_guid=config.activity_type_guid or None,
        request_timeout=config.request_timeout,
        tz=tz,
    )


def build_engine(
    config: FootbookerConfig,
    client: SessionClient,
    now: DateLike | None = None,
    tz: tzinfo | None = None,
) -> BookingEngine:
    return BookingEngine(
        client,
        config.credentials,
        build_preferences(config, now=now, tz=tz),
        retry_interval=config.retry_seconds,
        reason_to_cancel=config.reason_to_cancel,
        upgrade=config.upgrade,
        activity_name=config.activity_name,
        tz=tz,
    )


async def run_booking(
    config: FootbookerConfig,
    client: SessionClient | None = None,
    now: DateLike | None = None,
    tz: tzinfo | None = None,
) -> RunReport:
    """Run one booking attempt under ``config.timeout``.

    Args:
        config: Run configuration.
        client: Session client to use; one is built from ``config`` if omitted.
        now: Reference time for weekday resolution (defaults to the current time).
        tz: Local zone; None means the system zone.
    """
    owns_client = client is None
    client = client or build_client(config, tz)
    engine = build_engine(config, client, now=now, tz=tz)

    logger.info(
        "run_started",
        strategy=config.strategy,
        host=config.hostname,
        timeout_ms=config.timeout,
        retry_ms=config.retry_timeout,
    )
    timed_out = False
    try:
        result = await asyncio.wait_for(engine.run(), timeout=config.timeout_seconds)
    except asyncio.TimeoutError:
        timed_out = True
        deadline = DeadlineExceeded(
            "Timed out before being able to make a booking"
            if engine.booking_guid is None
            else "Timed out while trying to upgrade the booking"
        )
        logger.error(
            "run_timed_out",
            message=str(deadline),
            timeout_ms=config.timeout,
            passes=engine.passes,
            held_booking_guid=engine.booking_guid,
            superseded_guid=engine.superseded_guid,
        )
        return RunReport(
            Outcome.TIMED_OUT, held_booking_guid=engine.booking_guid, error=str(deadline)
        )
    except AuthError as e:
        logger.error("run_failed", reason="authentication", error=str(e))
        return RunReport(Outcome.FAILED, error=str(e))
    except FootbookerError as e:
        logger.error("run_failed", reason=type(e).__name__, error=str(e))
        return RunReport(Outcome.FAILED, error=str(e))
    finally:
        # After a timeout a worker thread may still be inside a request on
        # this session; it is left open for the process exit to reclaim.
        if owns_client and not timed_out:
            client.close()

    return RunReport(Outcome.BOOKED, result=result, held_booking_guid=result.guid)
