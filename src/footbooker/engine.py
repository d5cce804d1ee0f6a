"""Booking engine: log in, book the best slot available, then try to upgrade.

States run Unauthenticated -> Authenticated -> Searching -> Booked ->
UpgradeAttempted -> Done, or Failed when login does not succeed.

A pass tries every preference once, in priority order, and stops at the first
booking. Passes repeat with a fixed wait until one succeeds; only the caller's
deadline (task cancellation) ends that loop. Once a slot is held, a single
extra pass over the strictly better preferences may replace it, cancelling the
old booking. Nothing that goes wrong after the first booking fails the run.

Remote calls are blocking requests calls and run in a worker thread, so a
cancelled run stops waiting for them immediately.
"""

import asyncio
import enum
from dataclasses import dataclass
from datetime import datetime, tzinfo
from typing import Callable, Sequence, TypeVar

from tenacity import (
    AsyncRetrying,
    RetryCallState,
    retry_if_exception_type,
    stop_never,
    wait_fixed,
)

from src.footbooker.client import SessionClient
from src.footbooker.config import Credentials
from src.footbooker.errors import (
    AllPreferencesExhausted,
    FootbookerError,
    NoMatchFound,
)
from src.footbooker.logging import get_logger
from src.footbooker.models import Booking
from src.footbooker.slots import find_match, more_prioritized, to_local_display

logger = get_logger(__name__)

T = TypeVar("T")


class EngineState(str, enum.Enum):
    UNAUTHENTICATED = "unauthenticated"
    AUTHENTICATED = "authenticated"
    SEARCHING = "searching"
    BOOKED = "booked"
    UPGRADE_ATTEMPTED = "upgrade_attempted"
    DONE = "done"
    FAILED = "failed"


@dataclass
class BookingResult:
    """Terminal result of a successful run.

    Attributes:
        guid: The authoritative booking.
        booking: Its queried details, None if the final query failed.
        upgraded: True if the upgrade pass replaced the first booking.
        superseded_guid: First booking still held because its cancellation failed.
    """

    guid: str
    booking: Booking | None = None
    upgraded: bool = False
    superseded_guid: str | None = None


class BookingEngine:
    """Drives one booking run over a SessionClient."""

    def __init__(
        self,
        client: SessionClient,
        credentials: Credentials,
        preferences: Sequence[datetime],
        retry_interval: float = 0.1,
        reason_to_cancel: str = "Booked a more convenient slot",
        upgrade: bool = True,
        activity_name: str = "Football",
        tz: tzinfo | None = None,
    ) -> None:
        """Initialize BookingEngine.

        Args:
            client: Session client; owned by this engine for the run.
            credentials: Login used once, at authentication.
            preferences: Desired start instants, most preferred first.
            retry_interval: Seconds to wait between failed passes.
            reason_to_cancel: Sent with the cancellation of a superseded booking.
            upgrade: Whether to run the upgrade pass after the first booking.
            activity_name: Activity to resolve when the client has no guid.
            tz: Local zone for matching; None means the system zone.
        """
        self.client = client
        self.credentials = credentials
        self.preferences = tuple(preferences)
        self.retry_interval = retry_interval
        self.reason_to_cancel = reason_to_cancel
        self.upgrade_enabled = upgrade
        self.activity_name = activity_name
        self.tz = tz

        self.state = EngineState.UNAUTHENTICATED
        self.booking_guid: str | None = None
        self.superseded_guid: str | None = None
        self.passes = 0

    async def _call(self, func: Callable[..., T], *args) -> T:
        return await asyncio.to_thread(func, *args)

    def _describe(self, desired: datetime) -> str:
        return to_local_display(desired, self.tz)

    async def authenticate(self) -> None:
        """Log in and make sure the activity type is known.

        Raises:
            AuthError: If the credentials are rejected.
            TransportError: If the site stays unreachable.
        """
        try:
            await self._call(self.client.authenticate, self.credentials)
            if not self.client.activity_type_guid:
                await self._call(self.client.resolve_activity_type, self.activity_name)
        except FootbookerError:
            self.state = EngineState.FAILED
            raise
        self.state = EngineState.AUTHENTICATED

    async def try_to_book(self, desired: datetime) -> str:
        """Book the session starting exactly at ``desired``. Returns the booking guid.

        Raises:
            NoMatchFound: If no available session starts at that instant.
            QueryError, BookingError, TransportError: From the client.
        """
        sessions = await self._call(self.client.list_available, desired)
        session_guid = find_match(desired, sessions, self.tz)
        if session_guid is None:
            raise NoMatchFound(
                f"Required session {desired.isoformat()} is not available"
            )
        return await self._call(self.client.book, desired, session_guid)

    async def search_pass(self, preferences: Sequence[datetime]) -> str:
        """Try each preference once, in order, until one books.

        Raises:
            AllPreferencesExhausted: If every preference failed.
        """
        self.passes += 1
        for desired in preferences:
            slot = self._describe(desired)
            logger.info("booking_attempt_started", slot=slot, pass_number=self.passes)
            try:
                booking_guid = await self.try_to_book(desired)
            except FootbookerError as e:
                logger.info(
                    "booking_attempt_failed",
                    slot=slot,
                    error=str(e),
                    error_type=type(e).__name__,
                )
                continue

            logger.info("booking_attempt_succeeded", slot=slot, booking_guid=booking_guid)
            return booking_guid

        raise AllPreferencesExhausted(
            f"None of the {len(preferences)} preferred slots could be booked"
        )

    def _log_failed_pass(self, retry_state: RetryCallState) -> None:
        error = retry_state.outcome.exception() if retry_state.outcome else None
        logger.warning(
            "booking_pass_failed",
            pass_number=retry_state.attempt_number,
            error=str(error),
        )
        logger.info(
            "retry_scheduled",
            next_pass=retry_state.attempt_number + 1,
            retry_in_seconds=self.retry_interval,
        )

    async def keep_trying(self) -> str:
        """Repeat passes over the full preference list until one books.

        Never gives up by itself; cancel the awaiting task to stop it.
        """
        self.state = EngineState.SEARCHING
        retrying = AsyncRetrying(
            retry=retry_if_exception_type(AllPreferencesExhausted),
            wait=wait_fixed(self.retry_interval),
            stop=stop_never,
            before_sleep=self._log_failed_pass,
            reraise=True,
        )
        booking_guid = await retrying(self.search_pass, self.preferences)

        self.booking_guid = booking_guid
        self.state = EngineState.BOOKED
        return booking_guid

    async def upgrade(self, booking_guid: str) -> str:
        """One best-effort pass over the slots better than the one booked.

        Returns the authoritative booking guid: the new one when the upgrade
        books, even if cancelling the old one fails; the old one otherwise.
        """
        self.state = EngineState.UPGRADE_ATTEMPTED
        try:
            current = await self._call(self.client.query_booking, booking_guid)
        except FootbookerError as e:
            logger.warning("upgrade_failed", booking_guid=booking_guid, error=str(e))
            return booking_guid

        better = more_prioritized(current.start_time, self.preferences, self.tz)
        if not better:
            logger.info("upgrade_skipped", reason="most_preferred_slot_booked")
            return booking_guid

        logger.info(
            "upgrade_started",
            booking_guid=booking_guid,
            candidates=[self._describe(value) for value in better],
        )
        try:
            new_guid = await self.search_pass(better)
        except AllPreferencesExhausted as e:
            logger.info("upgrade_failed", booking_guid=booking_guid, error=str(e))
            return booking_guid

        if new_guid == booking_guid:
            return booking_guid

        # The new booking is authoritative from here on, cancelled or not
        self.booking_guid = new_guid
        self.superseded_guid = booking_guid
        logger.info("upgrade_succeeded", booking_guid=new_guid, replaces=booking_guid)

        try:
            await self._call(self.client.cancel, booking_guid, self.reason_to_cancel)
        except FootbookerError as e:
            logger.warning(
                "cancel_failed_manual_intervention",
                kept_booking_guid=booking_guid,
                booking_guid=new_guid,
                error=str(e),
            )
        else:
            self.superseded_guid = None
            logger.info("cancel_succeeded", booking_guid=booking_guid)
        return new_guid

    async def run(self) -> BookingResult:
        """Authenticate, book, optionally upgrade, and report the final booking."""
        await self.authenticate()
        first_guid = await self.keep_trying()

        final_guid = first_guid
        if self.upgrade_enabled:
            final_guid = await self.upgrade(first_guid)

        booking: Booking | None = None
        try:
            booking = await self._call(self.client.query_booking, final_guid)
        except FootbookerError as e:
            logger.warning("booking_details_unavailable", booking_guid=final_guid, error=str(e))

        self.state = EngineState.DONE
        logger.info(
            "booking_confirmed",
            booking_guid=final_guid,
            start=to_local_display(booking.start_time, self.tz) if booking else None,
            activity=booking.activity_name if booking else None,
            upgraded=final_guid != first_guid,
        )
        return BookingResult(
            guid=final_guid,
            booking=booking,
            upgraded=final_guid != first_guid,
            superseded_guid=self.superseded_guid,
        )
