"""Error taxonomy and the shared error envelope.

Queue operations raise subclasses of `QueueError`. Each carries a stable
wire `code` so the MQTT service can turn it into the same `ErrorResponse`
envelope that clients already understand.
"""

from __future__ import annotations

from dataclasses import dataclass
from typing import Any


@dataclass(frozen=True)
class ErrorResponse:
    code: str
    message: str

    def to_message(self, *, corr_id: str | None = None) -> dict[str, Any]:
        msg: dict[str, Any] = {"type": "error", "code": self.code, "message": self.message}
        if corr_id is not None:
            msg["corr_id"] = corr_id
        return msg


class QueueError(Exception):
    """Base class for every error raised by the walk-in queue core."""

    code = "queue_error"

    def to_response(self) -> ErrorResponse:
        return ErrorResponse(self.code, str(self) or self.code)


class DuplicateEntry(QueueError):
    """The phone number is already waiting in this barber's queue."""

    code = "duplicate_entry"


class InvalidTransition(QueueError):
    """The requested status change is not allowed from the current status."""

    code = "invalid_transition"


class PersistenceError(QueueError):
    """The queue store failed; the transition was not applied."""

    code = "persistence_error"


class NotificationError(QueueError):
    """A best-effort message could not be delivered."""

    code = "notification_error"


class EntryNotFound(QueueError):
    code = "entry_not_found"


class BarberNotFound(QueueError):
    code = "barber_not_found"


class BarberUnavailable(QueueError):
    """The barber is not accepting walk-ins right now."""

    code = "barber_unavailable"


class InvalidRecord(ValueError):
    """A persisted queue record does not match the expected shape."""
