"""Cookie-authenticated JSON client for the facility booking site.

SessionClient owns the only requests.Session of a run. Its cookie jar is the
run's session state: the login page sets the anonymous cookies, validatelogin
adds the authentication cookie, and every later request carries the whole jar
and absorbs whatever new cookies the response sets.

Every endpoint answers with an envelope {Code, Message?, Data?}; Code 200 is
success, anything else is mapped onto the error taxonomy in errors.py.
"""

from datetime import tzinfo
from typing import Any

import requests
from pydantic import ValidationError
from tenacity import retry, retry_if_exception_type, stop_after_attempt, wait_fixed

from src.footbooker.config import FOOTBALL_ACTIVITY_GUID, Credentials
from src.footbooker.errors import (
    AuthError,
    BookingConflictError,
    BookingError,
    CancelError,
    QueryError,
    RemoteError,
    TransportError,
)
from src.footbooker.logging import get_logger
from src.footbooker.models import ActivityType, AvailableSession, Booking, Envelope
from src.footbooker.slots import DateLike, date_only, to_remote_iso

logger = get_logger(__name__)

# Substring of the add-booking message when someone else got the slot first:
# "Sorry, There is no space left to complete the booking. Please refresh ..."
_NO_SPACE_LEFT = "no space left"


def _is_bookable(item: Any) -> bool:
    """Availability check on the raw listing entry, before anything else is parsed.

    Entries that are not offered often carry no usable start time.
    """
    try:
        return int(item.get("Availability", 0)) >= 0
    except (AttributeError, TypeError, ValueError):
        return False


class SessionClient:
    """Sequential request/response client holding the run's cookie state."""

    LOGIN_PAGE = "/Accounts/Login.aspx"
    VALIDATE_LOGIN = "/Services/Commercial/api/security/validatelogin.json"
    LIST_ACTIVITY_TYPES = "/Services/Commercial/api/muga/listactivitytypes.json"
    LIST_AVAILABLE_SESSIONS = "/Services/Commercial/api/muga/ListAvailableSessions.json"
    ADD_BOOKING = "/Services/Commercial/api/muga/AddBooking.json"
    GET_BOOKING_INFORMATION = "/Services/Commercial/api/muga/GetBookingInformation.json"
    CANCEL_BOOKING = "/Services/Commercial/api/muga/CancelBooking.json"
    LIST_MY_BOOKINGS = "/Services/Commercial/api/muga/list.json"

    def __init__(
        self,
        hostname: str,
        activity_type_guid: str | None = FOOTBALL_ACTIVITY_GUID,
        request_timeout: float = 30.0,
        session: requests.Session | None = None,
        tz: tzinfo | None = None,
    ) -> None:
        """Initialize SessionClient.

        Args:
            hostname: Booking site host, e.g. "the.site.co.uk".
            activity_type_guid: Activity to query and book; None until resolved.
            request_timeout: Seconds before a single request is abandoned.
            session: Preconfigured requests session (tests inject one).
            tz: Local zone for date normalization; None means the system zone.
        """
        self.base_url = f"https://{hostname}"
        self.activity_type_guid = activity_type_guid
        self.request_timeout = request_timeout
        self.session = session or requests.Session()
        self.session.headers.setdefault("User-Agent", "Mozilla/5.0")
        self.tz = tz

    def __enter__(self) -> "SessionClient":
        return self

    def __exit__(self, *exc_info) -> None:
        self.close()

    def close(self) -> None:
        self.session.close()

    @property
    def cookies(self) -> dict[str, str]:
        """Snapshot of the accumulated cookie pairs."""
        return self.session.cookies.get_dict()

    # ------------------------------------------------------------------
    # Transport
    # ------------------------------------------------------------------

    def _send(self, method: str, path: str, payload: Any = None) -> requests.Response:
        url = f"{self.base_url}{path}"
        try:
            response = self.session.request(
                method, url, json=payload, timeout=self.request_timeout
            )
        except requests.RequestException as e:
            logger.warning("request_failed", method=method, path=path, error=str(e))
            raise TransportError(f"{method} {path} failed: {e}") from e

        logger.debug(
            "request_completed",
            method=method,
            path=path,
            status=response.status_code,
            cookies=sorted(self.cookies),
        )
        return response

    def _post(self, path: str, payload: Any = None) -> Envelope:
        response = self._send("POST", path, payload)
        try:
            return Envelope.model_validate(response.json())
        except (ValueError, ValidationError) as e:
            raise TransportError(
                f"POST {path} returned an unreadable body (HTTP {response.status_code})"
            ) from e

    @staticmethod
    def _raise_for_envelope(
        envelope: Envelope, action: str, error_cls: type[RemoteError]
    ) -> None:
        if envelope.ok:
            return
        raise error_cls(
            f"{action} failed: {envelope.message or 'no message'} (code {envelope.code})",
            code=envelope.code,
            remote_message=envelope.message,
        )

    def _require_activity_type(self) -> str:
        if not self.activity_type_guid:
            raise QueryError("Activity type is not resolved yet")
        return self.activity_type_guid

    # ------------------------------------------------------------------
    # Operations
    # ------------------------------------------------------------------

    @retry(
        stop=stop_after_attempt(2),
        wait=wait_fixed(5),
        retry=retry_if_exception_type(TransportError),
        reraise=True,
    )
    def authenticate(self, credentials: Credentials) -> None:
        """Collect the anonymous cookies, then exchange credentials for a session.

        Retries once on TransportError but fails fast on AuthError.

        Raises:
            AuthError: If the site rejects the credentials.
            TransportError: If the site cannot be reached.
        """
        logger.info("authentication_started", host=self.base_url)

        # Sets __cfduid and ASP.NET_SessionId
        login_page = self._send("GET", self.LOGIN_PAGE)
        if login_page.status_code >= 500:
            raise TransportError(f"Login page returned HTTP {login_page.status_code}")

        envelope = self._post(
            self.VALIDATE_LOGIN,
            {
                "Email": credentials.login,
                "Password": credentials.password,
                "PersistCookie": True,
            },
        )
        if not envelope.ok:
            logger.error(
                "authentication_failed", code=envelope.code, message=envelope.message
            )
        self._raise_for_envelope(envelope, "Login", AuthError)

        logger.info("authentication_succeeded", cookies=sorted(self.cookies))

    def list_activity_types(self) -> list[ActivityType]:
        envelope = self._post(self.LIST_ACTIVITY_TYPES)
        self._raise_for_envelope(envelope, "List activity types", QueryError)
        return [ActivityType.model_validate(item) for item in envelope.data or []]

    def resolve_activity_type(self, name: str) -> str:
        """Look up the guid of the activity called ``name`` and keep it for the run.

        Raises:
            QueryError: If the listing fails or has no activity with that name.
        """
        for activity in self.list_activity_types():
            if activity.name == name:
                self.activity_type_guid = activity.guid
                logger.info("activity_type_resolved", name=name, guid=activity.guid)
                return activity.guid
        raise QueryError(f"Activity type {name!r} is not offered")

    def list_available(self, day: DateLike) -> list[AvailableSession]:
        """Sessions of the activity on the calendar date of ``day`` that can be booked.

        Sessions with negative availability (over capacity or not offered) are
        dropped here and never reach the caller.

        Raises:
            QueryError: If the site refuses the query (e.g. date too far ahead),
                or a bookable session comes back without a usable start time.
        """
        booking_date = to_remote_iso(date_only(day, self.tz))
        envelope = self._post(
            self.LIST_AVAILABLE_SESSIONS,
            {
                "BookingDate": booking_date,
                "ActivityTypeGuid": self._require_activity_type(),
            },
        )
        self._raise_for_envelope(envelope, "List available sessions", QueryError)

        offered = envelope.data or []
        try:
            available = [
                AvailableSession.model_validate(item, context={"tz": self.tz})
                for item in offered
                if _is_bookable(item)
            ]
        except ValidationError as e:
            raise QueryError(
                f"Available sessions for {booking_date} came back malformed: {e}"
            ) from e
        logger.debug(
            "sessions_listed",
            date=booking_date,
            offered=len(offered),
            available=len(available),
        )
        return available

    def book(self, day: DateLike, session_guid: str) -> str:
        """Book an available session. Returns the new booking guid.

        Raises:
            BookingConflictError: If the slot was taken since it was listed.
            BookingError: For any other refusal.
        """
        envelope = self._post(
            self.ADD_BOOKING,
            {
                "ActivityTypeGuid": self._require_activity_type(),
                "SessionGuid": session_guid,
                "Date": to_remote_iso(date_only(day, self.tz)),
            },
        )
        if not envelope.ok and _NO_SPACE_LEFT in (envelope.message or "").lower():
            self._raise_for_envelope(envelope, "Add booking", BookingConflictError)
        self._raise_for_envelope(envelope, "Add booking", BookingError)

        data = envelope.data or {}
        booking_guid = data.get("Guid") if isinstance(data, dict) else None
        if not booking_guid:
            raise BookingError("Add booking succeeded without a booking guid", code=envelope.code)
        return booking_guid

    def query_booking(self, booking_guid: str) -> Booking:
        """Full details of a booking.

        Raises:
            QueryError: If the guid is unknown to the site.
        """
        envelope = self._post(self.GET_BOOKING_INFORMATION, {"Guid": booking_guid})
        self._raise_for_envelope(envelope, "Query booking information", QueryError)
        try:
            return Booking.model_validate(envelope.data, context={"tz": self.tz})
        except ValidationError as e:
            raise QueryError(f"Booking {booking_guid} came back incomplete: {e}") from e

    def cancel(self, booking_guid: str, reason: str) -> None:
        """Cancel a booking held by the account.

        Raises:
            CancelError: If the site refuses the cancellation.
        """
        envelope = self._post(
            self.CANCEL_BOOKING, {"Guid": booking_guid, "Reason": reason}
        )
        self._raise_for_envelope(envelope, "Cancel booking", CancelError)

    def list_my_bookings(self) -> list[Booking]:
        """Every booking currently held by the account."""
        envelope = self._post(self.LIST_MY_BOOKINGS, {"BookingDate": None})
        self._raise_for_envelope(envelope, "List booked sessions", QueryError)
        try:
            return [
                Booking.model_validate(item, context={"tz": self.tz})
                for item in envelope.data or []
            ]
        except ValidationError as e:
            raise QueryError(f"Booked sessions came back malformed: {e}") from e
