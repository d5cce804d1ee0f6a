"""Stubs shared by the test modules."""

from datetime import datetime, timedelta, timezone

import requests

from src.footbooker.config import FOOTBALL_ACTIVITY_GUID
from src.footbooker.errors import BookingConflictError, CancelError, QueryError
from src.footbooker.models import AvailableSession, Booking
from src.footbooker.slots import normalize_to_utc

# Fixed UTC+1 zone: the documented local context of the date arithmetic
UTC_PLUS_1 = timezone(timedelta(hours=1))


def instant(value: str) -> datetime:
    return normalize_to_utc(value, UTC_PLUS_1)


class StubResponse:
    def __init__(self, body=None, status_code=200, cookies=None):
        self._body = body
        self.status_code = status_code
        self.cookies = cookies or {}

    def json(self):
        if self._body is None:
            raise ValueError("No JSON object could be decoded")
        return self._body


class StubSession:
    """Stands in for requests.Session: scripted responses, real cookie jar."""

    def __init__(self, responses):
        self.headers = {}
        self.cookies = requests.cookies.RequestsCookieJar()
        self.responses = list(responses)
        self.calls = []
        self.closed = False

    def request(self, method, url, json=None, timeout=None):
        self.calls.append(
            {
                "method": method,
                "url": url,
                "json": json,
                "timeout": timeout,
                "cookies": self.cookies.get_dict(),
            }
        )
        response = self.responses.pop(0)
        if isinstance(response, Exception):
            raise response
        for name, value in response.cookies.items():
            self.cookies.set(name, value)
        return response

    def close(self):
        self.closed = True


class StubClient:
    """Scripted SessionClient recording every call.

    ``slots`` maps start instants to session guids. A session listed in
    ``opens_after`` only shows up once that many availability queries have
    been made, which is how slots "open at midnight" in these tests.
    """

    def __init__(
        self,
        slots=None,
        opens_after=None,
        conflicts=(),
        auth_error=None,
        cancel_error=False,
        final_query_error=False,
        activity_type_guid=FOOTBALL_ACTIVITY_GUID,
    ):
        self.slots = dict(slots or {})
        self.opens_after = dict(opens_after or {})
        self.conflicts = set(conflicts)
        self.auth_error = auth_error
        self.cancel_error = cancel_error
        self.final_query_error = final_query_error
        self.activity_type_guid = activity_type_guid
        self.bookings = {}
        self.cancelled = []
        self.calls = []
        self.list_count = 0
        self.query_count = 0
        self.closed = False

    def authenticate(self, credentials):
        self.calls.append(("authenticate", credentials.login))
        if self.auth_error:
            raise self.auth_error

    def resolve_activity_type(self, name):
        self.calls.append(("resolve_activity_type", name))
        self.activity_type_guid = "resolved-guid"
        return self.activity_type_guid

    def list_available(self, day):
        self.list_count += 1
        self.calls.append(("list_available", day))
        return [
            AvailableSession(guid=guid, start_time=start, availability=1)
            for start, guid in self.slots.items()
            if self.opens_after.get(guid, 0) < self.list_count
        ]

    def book(self, day, session_guid):
        self.calls.append(("book", session_guid))
        if session_guid in self.conflicts:
            raise BookingConflictError(
                "Add booking failed: Sorry, There is no space left", code=500
            )
        start = next(s for s, g in self.slots.items() if g == session_guid)
        booking_guid = f"booking-{session_guid}"
        self.bookings[booking_guid] = start
        return booking_guid

    def query_booking(self, booking_guid):
        self.query_count += 1
        self.calls.append(("query_booking", booking_guid))
        if self.final_query_error and self.query_count > 1:
            raise QueryError("Query booking information failed", code=500)
        return Booking(
            guid=booking_guid,
            start_time=self.bookings[booking_guid],
            activity_name="Football",
        )

    def cancel(self, booking_guid, reason):
        self.calls.append(("cancel", booking_guid, reason))
        if self.cancel_error:
            raise CancelError("Cancel booking failed: too late to cancel", code=500)
        self.cancelled.append(booking_guid)

    def close(self):
        self.closed = True

    def call_names(self):
        return [call[0] for call in self.calls]
