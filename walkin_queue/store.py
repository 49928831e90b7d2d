from __future__ import annotations

# Queue Store.
#
# Two layers, same split as the rest of the package:
# 1) `QueueStore`: the contract the state machine relies on (insert,
#    per-entry update, filtered query, per-barber change feed)
# 2) `InMemoryQueueStore`: a thread-safe implementation used by the queue
#    service and by the tests
#
# The store only guarantees atomicity per entry. Multi-entry rewrites (position
# recompute) may be applied partially and must be safe to re-run.
#
# Entries are kept as plain records (the persisted shape) and parsed back into
# `QueueEntry` on every read, like a document store would hand them back.

import logging
import threading
import uuid
from abc import ABC, abstractmethod
from typing import Any, Callable, Mapping

from .entry import MUTABLE_FIELDS, QueueEntry, QueueStatus
from .errors import EntryNotFound

logger = logging.getLogger(__name__)

Snapshot = list[QueueEntry]
SnapshotHandler = Callable[[Snapshot], None]
Unsubscribe = Callable[[], None]

ORDERINGS = ("position", "join_time")


def _sort_key(order_by: str) -> Callable[[QueueEntry], tuple]:
    if order_by == "position":
        return lambda e: (e.position, e.join_time, e.id)
    if order_by == "join_time":
        return lambda e: (e.join_time, e.id)
    raise ValueError(f"order_by must be one of {ORDERINGS}, got {order_by!r}")


class QueueStore(ABC):
    """Persistence contract for queue entries.

    Implementations raise `PersistenceError` when the backing provider fails
    and `EntryNotFound` for unknown ids.
    """

    @abstractmethod
    def insert(self, fields: Mapping[str, Any]) -> QueueEntry:
        """Store a new entry and return it with its generated id."""

    @abstractmethod
    def update(self, entry_id: str, **fields: Any) -> QueueEntry:
        """Apply a field-level update to one entry atomically."""

    @abstractmethod
    def get(self, entry_id: str) -> QueueEntry: ...

    @abstractmethod
    def query(
        self,
        barber_id: str,
        *,
        status: QueueStatus | None = None,
        phone: str | None = None,
        order_by: str = "position",
    ) -> list[QueueEntry]: ...

    @abstractmethod
    def subscribe(self, barber_id: str, on_change: SnapshotHandler) -> Unsubscribe:
        """Register a change-feed handler for one barber.

        The handler receives the full active snapshot right away and again
        after every mutation of that barber's entries.
        """

    def query_active(self, barber_id: str) -> list[QueueEntry]:
        """Entries that are not completed, ordered by position."""
        return [e for e in self.query(barber_id, order_by="position") if e.is_active]


class InMemoryQueueStore(QueueStore):
    """Thread-safe in-process store with a snapshot change feed."""

    def __init__(self, *, id_factory: Callable[[], str] | None = None) -> None:
        self._lock = threading.Lock()
        self._records: dict[str, dict[str, Any]] = {}
        self._subscribers: dict[str, list[SnapshotHandler]] = {}
        self._new_id = id_factory or (lambda: uuid.uuid4().hex)

    # -------------------- mutations --------------------

    def insert(self, fields: Mapping[str, Any]) -> QueueEntry:
        record = _to_record_values(fields)
        record.pop("id", None)
        record.setdefault("status", QueueStatus.WAITING.value)
        with self._lock:
            entry_id = self._new_id()
            record["id"] = entry_id
            # Validate before committing so a bad insert leaves no trace.
            entry = QueueEntry.from_record(record)
            self._records[entry_id] = record
        self._publish(entry.barber_id)
        return entry

    def update(self, entry_id: str, **fields: Any) -> QueueEntry:
        illegal = set(fields) - MUTABLE_FIELDS
        if illegal:
            raise ValueError(f"fields cannot be updated: {', '.join(sorted(illegal))}")

        with self._lock:
            current = self._records.get(entry_id)
            if current is None:
                raise EntryNotFound(f"queue entry {entry_id} not found")
            record = {**current, **_to_record_values(fields)}
            entry = QueueEntry.from_record(record)
            self._records[entry_id] = record
        self._publish(entry.barber_id)
        return entry

    # -------------------- reads --------------------

    def get(self, entry_id: str) -> QueueEntry:
        with self._lock:
            record = self._records.get(entry_id)
            if record is None:
                raise EntryNotFound(f"queue entry {entry_id} not found")
            return QueueEntry.from_record(record)

    def query(
        self,
        barber_id: str,
        *,
        status: QueueStatus | None = None,
        phone: str | None = None,
        order_by: str = "position",
    ) -> list[QueueEntry]:
        key = _sort_key(order_by)
        with self._lock:
            entries = [QueueEntry.from_record(r) for r in self._records.values() if r["barber_id"] == barber_id]
        if status is not None:
            entries = [e for e in entries if e.status is QueueStatus(status)]
        if phone is not None:
            entries = [e for e in entries if e.phone == phone]
        entries.sort(key=key)
        return entries

    # -------------------- change feed --------------------

    def subscribe(self, barber_id: str, on_change: SnapshotHandler) -> Unsubscribe:
        with self._lock:
            self._subscribers.setdefault(barber_id, []).append(on_change)

        def unsubscribe() -> None:
            with self._lock:
                handlers = self._subscribers.get(barber_id, [])
                if on_change in handlers:
                    handlers.remove(on_change)
                if not handlers:
                    self._subscribers.pop(barber_id, None)

        self._deliver(on_change, self.query_active(barber_id), barber_id)
        return unsubscribe

    def _publish(self, barber_id: str) -> None:
        with self._lock:
            handlers = list(self._subscribers.get(barber_id, []))
        if not handlers:
            return
        # One snapshot per mutation, shared by all handlers. Entries are frozen.
        snapshot = self.query_active(barber_id)
        for h in handlers:
            self._deliver(h, list(snapshot), barber_id)

    @staticmethod
    def _deliver(handler: SnapshotHandler, snapshot: Snapshot, barber_id: str) -> None:
        try:
            handler(snapshot)
        except Exception:
            # A broken viewer must not break the writer or other viewers.
            logger.exception("queue change-feed handler failed for barber %s", barber_id)


def _to_record_values(fields: Mapping[str, Any]) -> dict[str, Any]:
    record: dict[str, Any] = {}
    for k, v in fields.items():
        if isinstance(v, QueueStatus):
            v = v.value
        elif k == "join_time" and hasattr(v, "isoformat"):
            v = v.isoformat()
        record[k] = v
    return record
