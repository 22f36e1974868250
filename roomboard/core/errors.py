# roomboard/core/errors.py
from __future__ import annotations


class RoomboardError(Exception):
    """
    Base class for all errors raised by the booking core.
    """


class ValidationError(RoomboardError, ValueError):
    """
    Raised when user-supplied input cannot be accepted (e.g. a day-of-month
    that does not exist, a booking without a room).

    The caller keeps its previous valid state; no partial value is produced.
    """


class NetworkError(RoomboardError, RuntimeError):
    """
    Raised when a remote capability (meeting query, booking submission,
    deletion) fails, including timeouts and non-2xx responses.

    `message` carries the server-provided text when one was available so it
    can be surfaced to the initiating caller.
    """

    def __init__(self, message: str, status_code: int | None = None) -> None:
        super().__init__(message)
        self.message = message
        self.status_code = status_code


class CancellationNotice(RoomboardError):
    """
    Internal signal that a fetch result belongs to a superseded request.

    Never surfaced to users.
    """


class ActionNotAllowed(RoomboardError):
    """
    Raised when a caller may not change a meeting (not the organizer, the
    meeting is no longer upcoming, or identifying data is missing).
    """

    def __init__(self, reason: str) -> None:
        super().__init__(reason)
        self.reason = reason


class DeletionNotAllowed(ActionNotAllowed):
    """
    The caller may not cancel the meeting.
    """


class EditNotAllowed(ActionNotAllowed):
    """
    The caller may not edit the meeting.
    """
