"""
Tests for SessionClient - the booking site protocol.

Tests cover:
- Login sequence and cookie accumulation
- Envelope code mapping onto the error taxonomy
- Availability filtering and date normalization
- Transport failures (connection errors, unreadable bodies)
"""

from datetime import datetime, timezone

import pytest
import requests
from tenacity import wait_none

from helpers import UTC_PLUS_1, StubResponse, StubSession
from src.footbooker.client import SessionClient
from src.footbooker.config import FOOTBALL_ACTIVITY_GUID, Credentials
from src.footbooker.errors import (
    AuthError,
    BookingConflictError,
    BookingError,
    CancelError,
    QueryError,
    TransportError,
)
from src.footbooker.slots import find_match

CREDENTIALS = Credentials(login="player@example.com", password="secret")


def make_client(*responses, **kwargs):
    session = StubSession(responses)
    client = SessionClient("the.site.co.uk", session=session, tz=UTC_PLUS_1, **kwargs)
    return client, session


def ok(data=None, **cookies):
    return StubResponse({"Code": 200, "Message": "Success", "Data": data}, cookies=cookies)


def failed(code, message):
    return StubResponse({"Code": code, "Message": message})


class TestAuthenticate:
    def test_login_sequence_accumulates_cookies(self):
        client, session = make_client(
            StubResponse(cookies={"ASP.NET_SessionId": "abc", "__cfduid": "cf"}),
            ok(**{".viciniteeFoms": "auth"}),
        )

        client.authenticate(CREDENTIALS)

        login_page, validate = session.calls
        assert login_page["method"] == "GET"
        assert login_page["url"] == "https://the.site.co.uk/Accounts/Login.aspx"
        assert validate["method"] == "POST"
        assert validate["url"].endswith("/api/security/validatelogin.json")
        assert validate["json"] == {
            "Email": "player@example.com",
            "Password": "secret",
            "PersistCookie": True,
        }
        # The login request already carries the anonymous cookies
        assert validate["cookies"] == {"ASP.NET_SessionId": "abc", "__cfduid": "cf"}
        assert client.cookies == {
            "ASP.NET_SessionId": "abc",
            "__cfduid": "cf",
            ".viciniteeFoms": "auth",
        }

    def test_later_requests_carry_the_authenticated_cookies(self):
        client, session = make_client(
            StubResponse(cookies={"ASP.NET_SessionId": "abc"}),
            ok(**{".viciniteeFoms": "auth"}),
            ok([]),
        )
        client.authenticate(CREDENTIALS)
        client.list_available("2017-09-17T20:00")

        assert session.calls[-1]["cookies"] == {
            "ASP.NET_SessionId": "abc",
            ".viciniteeFoms": "auth",
        }

    def test_rejected_credentials_surface_remote_message(self):
        client, _ = make_client(
            StubResponse(),
            failed(401, "Email or password was not recognised, please try again"),
        )

        with pytest.raises(AuthError) as exc_info:
            client.authenticate(CREDENTIALS)

        assert exc_info.value.code == 401
        assert "not recognised" in str(exc_info.value)
        assert exc_info.value.remote_message.startswith("Email or password")

    def test_transport_failure_retried_once_then_raised(self):
        client, session = make_client(
            requests.ConnectionError("connection refused"),
            requests.ConnectionError("connection refused"),
        )

        with pytest.raises(TransportError):
            SessionClient.authenticate.retry_with(wait=wait_none())(client, CREDENTIALS)

        assert len(session.calls) == 2

    def test_auth_error_not_retried(self):
        client, session = make_client(StubResponse(), failed(401, "nope"))

        with pytest.raises(AuthError):
            SessionClient.authenticate.retry_with(wait=wait_none())(client, CREDENTIALS)

        assert len(session.calls) == 2


class TestListAvailable:
    SESSIONS = [
        {
            "Guid": "s-09",
            "Name": "HSP session 1",
            "StartDateTime": "2017-09-17T08:00:00.0000000Z",
            "EndDateTime": "2017-09-17T08:45:00.0000000Z",
            "Availability": 0,
        },
        {
            "Guid": "s-10",
            "Name": "HSP session 2",
            "StartDateTime": "2017-09-17T09:00:00.0000000Z",
            "EndDateTime": "2017-09-17T09:45:00.0000000Z",
            "Availability": -100,
        },
        {
            "Guid": "s-20",
            "Name": "HSP session 11",
            "StartDateTime": "2017-09-17T19:00:00.0000000Z",
            "EndDateTime": "2017-09-17T19:45:00.0000000Z",
            "Availability": 4,
        },
    ]

    def test_request_keyed_by_local_date(self):
        client, session = make_client(ok(self.SESSIONS))

        client.list_available("2017-09-17T20:00")

        assert session.calls[0]["json"] == {
            "BookingDate": "2017-09-17T00:00:00.000Z",
            "ActivityTypeGuid": FOOTBALL_ACTIVITY_GUID,
        }

    def test_negative_availability_filtered(self):
        client, _ = make_client(ok(self.SESSIONS))

        sessions = client.list_available("2017-09-17T20:00")

        assert [s.guid for s in sessions] == ["s-09", "s-20"]
        assert sessions[1].start_time.isoformat() == "2017-09-17T19:00:00+00:00"

    def test_not_offered_entries_need_no_start_time(self):
        not_offered = [
            {"Guid": "s-x", "Availability": -1},
            {"Guid": "s-y", "StartDateTime": None, "Availability": -100},
        ]
        client, _ = make_client(ok(self.SESSIONS + not_offered))

        sessions = client.list_available("2017-09-17T20:00")

        assert [s.guid for s in sessions] == ["s-09", "s-20"]

    def test_bookable_entry_without_start_is_a_query_error(self):
        client, _ = make_client(ok([{"Guid": "s-x", "Availability": 1}]))

        with pytest.raises(QueryError, match="malformed"):
            client.list_available("2017-09-17T20:00")

    def test_zoneless_start_read_in_client_zone(self):
        client, _ = make_client(
            ok([{"Guid": "s-20", "StartDateTime": "2017-09-17T20:00:00", "Availability": 1}])
        )

        (session,) = client.list_available("2017-09-17")

        assert session.start_time == datetime(2017, 9, 17, 19, tzinfo=timezone.utc)

    def test_all_over_capacity_means_nothing_to_match(self):
        full = [dict(s, Availability=-50) for s in self.SESSIONS]
        client, _ = make_client(ok(full))

        sessions = client.list_available("2017-09-17T20:00")

        assert sessions == []
        assert find_match("2017-09-17T20:00", sessions, UTC_PLUS_1) is None

    def test_listed_sessions_match_their_own_start(self):
        client, _ = make_client(ok(self.SESSIONS))

        sessions = client.list_available("2017-09-17")

        for session in sessions:
            assert find_match(session.start_time, sessions) == session.guid

    def test_refused_query(self):
        client, _ = make_client(failed(500, "Unknown Error Occurred"))

        with pytest.raises(QueryError, match="Unknown Error Occurred"):
            client.list_available("2018-09-17")

    def test_unresolved_activity_type(self):
        client, session = make_client(activity_type_guid=None)

        with pytest.raises(QueryError):
            client.list_available("2017-09-17")
        assert session.calls == []


class TestBook:
    def test_returns_booking_guid(self):
        client, session = make_client(ok({"Guid": "8b525b11"}))

        assert client.book("2017-09-17T20:00", "s-20") == "8b525b11"
        assert session.calls[0]["json"] == {
            "ActivityTypeGuid": FOOTBALL_ACTIVITY_GUID,
            "SessionGuid": "s-20",
            "Date": "2017-09-17T00:00:00.000Z",
        }

    def test_slot_taken_is_a_conflict(self):
        client, _ = make_client(
            failed(
                500,
                "Sorry, There is no space left to complete the booking. "
                "Please refresh the page and try again",
            )
        )

        with pytest.raises(BookingConflictError):
            client.book("2017-09-17T20:00", "s-20")

    def test_other_refusal(self):
        client, _ = make_client(failed(500, "The parameters specified are not valid"))

        with pytest.raises(BookingError) as exc_info:
            client.book("2017-09-17T20:00", "s-20")
        assert not isinstance(exc_info.value, BookingConflictError)

    def test_success_without_guid(self):
        client, _ = make_client(ok({}))

        with pytest.raises(BookingError):
            client.book("2017-09-17T20:00", "s-20")


class TestBookingQueries:
    BOOKING = {
        "Guid": "e852a824",
        "StartDateTime": "2017-09-18T07:00:00.0000000Z",
        "EndDateTime": "2017-09-18T07:45:00.0000000Z",
        "ActivityName": "Football",
        "Description": None,
        "PersonGuid": None,
    }

    def test_query_booking(self):
        client, session = make_client(ok(self.BOOKING))

        booking = client.query_booking("e852a824")

        assert session.calls[0]["json"] == {"Guid": "e852a824"}
        assert booking.guid == "e852a824"
        assert booking.activity_name == "Football"
        assert booking.start_time.hour == 7

    def test_unknown_booking(self):
        client, _ = make_client(failed(500, "The parameters specified are not valid"))

        with pytest.raises(QueryError):
            client.query_booking("missing")

    def test_list_my_bookings(self):
        mine = dict(self.BOOKING, Description="Your Name", PersonGuid="b44e80a6")
        client, session = make_client(ok([mine]))

        bookings = client.list_my_bookings()

        assert session.calls[0]["json"] == {"BookingDate": None}
        assert [b.person_guid for b in bookings] == ["b44e80a6"]

    def test_list_my_bookings_malformed(self):
        client, _ = make_client(ok([{"Guid": "e852a824", "StartDateTime": "soon"}]))

        with pytest.raises(QueryError):
            client.list_my_bookings()

    def test_cancel(self):
        client, session = make_client(ok())

        client.cancel("e852a824", "Found a better slot")

        assert session.calls[0]["json"] == {"Guid": "e852a824", "Reason": "Found a better slot"}

    def test_cancel_refused(self):
        client, _ = make_client(failed(500, "Too late to cancel"))

        with pytest.raises(CancelError, match="Too late"):
            client.cancel("e852a824", "Found a better slot")


class TestActivityTypes:
    TYPES = [
        {"Guid": "c4ce9ac3", "Name": "Badminton"},
        {"Guid": FOOTBALL_ACTIVITY_GUID, "Name": "Football"},
        {"Guid": "069d9a11", "Name": "Football half court"},
    ]

    def test_resolve_by_exact_name(self):
        client, _ = make_client(ok(self.TYPES), activity_type_guid=None)

        assert client.resolve_activity_type("Football") == FOOTBALL_ACTIVITY_GUID
        assert client.activity_type_guid == FOOTBALL_ACTIVITY_GUID

    def test_unknown_activity(self):
        client, _ = make_client(ok(self.TYPES), activity_type_guid=None)

        with pytest.raises(QueryError):
            client.resolve_activity_type("Curling")


class TestTransport:
    def test_connection_error(self):
        client, _ = make_client(requests.Timeout("read timed out"))

        with pytest.raises(TransportError):
            client.query_booking("e852a824")

    def test_unreadable_body(self):
        client, _ = make_client(StubResponse(None, status_code=502))

        with pytest.raises(TransportError, match="502"):
            client.list_available("2017-09-17")

    def test_request_timeout_passed_through(self):
        client, session = make_client(ok([]), request_timeout=4.5)

        client.list_available("2017-09-17")

        assert session.calls[0]["timeout"] == 4.5

    def test_close(self):
        client, session = make_client()

        with client:
            pass

        assert session.closed
