"""Domain errors.

Every error raised by the breathing domain and its services derives from
``BreathFlowError``. Each carries the HTTP status the API layer renders it
with, so route handlers can let them propagate.

Error Classification:

    CLIENT ERRORS (fix the request):
    - InvalidPattern: phase durations or name out of range
    - InvalidSessionRequest: bad target duration or pattern reference
    - InvalidReminder: malformed reminder time or weekdays
    - InvalidCredentials: login failed or wrong current password
    - InvalidProfile: profile, preference or feedback fields rejected
    - InvalidTransition: engine command not legal in the current state
    - SessionAlreadyActive: the user already has an unfinished session
    - ClientClockDisabled: tick requested while the server drives the clock
    - DuplicateResource: email, pattern name or feedback already taken

    LOOKUP ERRORS:
    - ResourceNotFound / SessionNotFound: unknown or foreign id

    STORAGE ERRORS (retryable by the caller):
    - PersistenceFailure: the session record write failed after retry
    - ConcurrentModification: stats row kept changing under us
"""

from typing import Any


class BreathFlowError(Exception):
    """Base class for all domain errors."""

    status_code: int = 500

    def __init__(self, message: str, **details: Any) -> None:
        super().__init__(message)
        self.message = message
        self.details = details

    def to_dict(self) -> dict[str, Any]:
        """Render as an API error body."""
        body: dict[str, Any] = {"status_code": self.status_code, "detail": self.message}
        if self.details:
            body["extra"] = self.details
        return body


class InvalidPattern(BreathFlowError, ValueError):
    """Pattern durations or name are invalid.

    Raised when a pattern is created, never while an engine runs.
    """

    status_code = 400

    def __init__(self, errors: list[str]) -> None:
        super().__init__("Invalid pattern: " + "; ".join(errors), errors=errors)
        self.errors = errors


class InvalidTransition(BreathFlowError):
    """Engine command is not legal in the current state."""

    status_code = 409


class InvalidSessionRequest(BreathFlowError):
    """Session target duration or pattern choice is invalid."""

    status_code = 400


class InvalidReminder(BreathFlowError):
    """Reminder time or weekdays are malformed."""

    status_code = 400


class InvalidCredentials(BreathFlowError):
    """Login email/password did not match an active account."""

    status_code = 401


class InvalidProfile(BreathFlowError):
    """Profile edit, password change or feedback is malformed."""

    status_code = 400


class ResourceNotFound(BreathFlowError):
    """Row does not exist or belongs to another user."""

    status_code = 404


class SessionNotFound(ResourceNotFound):
    """No active session with this handle for this user."""


class DuplicateResource(BreathFlowError):
    """Unique value (account email, pattern name) already taken."""

    status_code = 409


class SessionAlreadyActive(BreathFlowError):
    """The user already has an unfinished session."""

    status_code = 409


class ClientClockDisabled(BreathFlowError):
    """Manual ticks are rejected while the server drives the clock."""

    status_code = 409


class PersistenceFailure(BreathFlowError):
    """A session record could not be written.

    Non-fatal: the in-memory session is kept so the save can be retried.
    """

    status_code = 503


class ConcurrentModification(BreathFlowError):
    """Stats update kept hitting a stale read and gave up."""

    status_code = 409
