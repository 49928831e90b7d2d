"""QueueEntry: one customer's place in one barber's walk-in line.

Records coming back from a store are plain dicts (the persisted shape). We
never pass those around directly; `QueueEntry.from_record` validates them at
the boundary and everything inside the package works with the dataclass.
"""

from __future__ import annotations

from dataclasses import dataclass
from datetime import datetime, timezone
from enum import Enum
from typing import Any, Mapping

from .errors import InvalidRecord


class QueueStatus(str, Enum):
    WAITING = "waiting"
    IN_PROGRESS = "in_progress"
    COMPLETED = "completed"

    @property
    def is_active(self) -> bool:
        return self is not QueueStatus.COMPLETED


RECORD_FIELDS = (
    "id",
    "barber_id",
    "customer_name",
    "phone",
    "position",
    "join_time",
    "status",
    "estimated_wait_minutes",
)

# Fields a store update is allowed to touch.
MUTABLE_FIELDS = frozenset({"customer_name", "phone", "position", "status", "estimated_wait_minutes"})


def utc_now() -> datetime:
    return datetime.now(timezone.utc)


@dataclass(frozen=True)
class QueueEntry:
    id: str
    barber_id: str
    customer_name: str
    phone: str
    position: int
    join_time: datetime
    status: QueueStatus = QueueStatus.WAITING
    estimated_wait_minutes: int = 0

    @property
    def is_active(self) -> bool:
        return self.status.is_active

    def to_record(self) -> dict[str, Any]:
        """Return the persisted / wire shape of this entry."""
        return {
            "id": self.id,
            "barber_id": self.barber_id,
            "customer_name": self.customer_name,
            "phone": self.phone,
            "position": self.position,
            "join_time": self.join_time.isoformat(),
            "status": self.status.value,
            "estimated_wait_minutes": self.estimated_wait_minutes,
        }

    @classmethod
    def from_record(cls, record: Mapping[str, Any]) -> QueueEntry:
        """Parse and validate a persisted record.

        Raises:
            InvalidRecord: on missing keys, unknown status, bad position,
                negative wait or an unparseable timestamp.
        """
        missing = [k for k in RECORD_FIELDS if k not in record]
        if missing:
            raise InvalidRecord(f"queue record missing fields: {', '.join(missing)}")

        for key in ("id", "barber_id", "customer_name", "phone"):
            if not isinstance(record[key], str):
                raise InvalidRecord(f"{key} must be a string")
        if not record["id"] or not record["barber_id"]:
            raise InvalidRecord("id and barber_id must be non-empty")

        return cls(
            id=record["id"],
            barber_id=record["barber_id"],
            customer_name=record["customer_name"],
            phone=record["phone"],
            position=_parse_position(record["position"]),
            join_time=parse_timestamp(record["join_time"]),
            status=_parse_status(record["status"]),
            estimated_wait_minutes=_parse_wait(record["estimated_wait_minutes"]),
        )


def parse_timestamp(value: Any) -> datetime:
    """Parse an ISO 8601 timestamp (or pass a datetime through).

    Naive values are taken to be UTC.
    """
    if isinstance(value, datetime):
        ts = value
    elif isinstance(value, str):
        raw = value.strip()
        # Older Python versions reject the "Z" suffix.
        if raw.endswith("Z"):
            raw = raw[:-1] + "+00:00"
        try:
            ts = datetime.fromisoformat(raw)
        except ValueError as e:
            raise InvalidRecord(f"join_time is not ISO 8601: {value!r}") from e
    else:
        raise InvalidRecord(f"join_time must be a string, got {type(value).__name__}")

    if ts.tzinfo is None:
        ts = ts.replace(tzinfo=timezone.utc)
    return ts


def _parse_status(value: Any) -> QueueStatus:
    try:
        return QueueStatus(value)
    except ValueError as e:
        raise InvalidRecord(f"unknown queue status: {value!r}") from e


def _parse_position(value: Any) -> int:
    # bool is an int subclass; a True position is a bug upstream.
    if isinstance(value, bool) or not isinstance(value, int):
        raise InvalidRecord(f"position must be an integer, got {value!r}")
    if value < 1:
        raise InvalidRecord(f"position must be >= 1, got {value}")
    return value


def _parse_wait(value: Any) -> int:
    if isinstance(value, bool) or not isinstance(value, int):
        raise InvalidRecord(f"estimated_wait_minutes must be an integer, got {value!r}")
    if value < 0:
        raise InvalidRecord("estimated_wait_minutes must be >= 0")
    return value
