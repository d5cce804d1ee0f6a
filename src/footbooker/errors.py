"""Error hierarchy for booking retry classification.

The hierarchy lets tenacity decide what is worth retrying (transient transport
failures, exhausted passes) and what must stop the run (bad credentials).

Example usage with tenacity:
    @retry(retry=retry_if_exception_type(TransportError), stop=stop_after_attempt(2))
    def authenticate(self, credentials):
        ...
"""


class FootbookerError(Exception):
    """Base exception for all booking errors."""

    pass


class ConfigError(FootbookerError):
    """Settings are missing or invalid for the selected strategy."""

    pass


class TransientError(FootbookerError):
    """Temporary failure that may succeed on retry."""

    pass


class TransportError(TransientError):
    """Network level failure: connection refused, TLS failure, timeout, garbled body."""

    pass


class RemoteError(FootbookerError):
    """The booking site answered with a non-success envelope code.

    Attributes:
        code: The envelope ``Code`` value (None when the envelope had none).
        remote_message: The envelope ``Message`` value, as reported by the site.
    """

    def __init__(self, message: str, code: int | None = None, remote_message: str | None = None) -> None:
        super().__init__(message)
        self.code = code
        self.remote_message = remote_message


class AuthError(RemoteError):
    """Login was rejected. Retrying with the same credentials will not help."""

    pass


class QueryError(RemoteError):
    """A read request (availability, booking details, listings) failed."""

    pass


class BookingError(RemoteError):
    """The add-booking request was refused."""

    pass


class BookingConflictError(BookingError):
    """The slot was taken by someone else between the query and the booking."""

    pass


class CancelError(RemoteError):
    """The cancel-booking request was refused."""

    pass


class NoMatchFound(FootbookerError):
    """No available session starts at the desired instant."""

    pass


class AllPreferencesExhausted(FootbookerError):
    """Every preference of a pass failed. Ends the pass, never the run."""

    pass


class DeadlineExceeded(FootbookerError):
    """The overall run deadline fired before a booking was made."""

    pass
