from __future__ import annotations

# Queue view projection.
#
# Viewers never see raw entries. They get a projection that:
# - keeps only active entries, ordered by position
# - hides other customers' names behind "Customer"
# - recomputes the wait estimate from the current position
#
# The barber owning the queue sees every name; a customer sees only their own.

import logging
import threading
from dataclasses import dataclass
from typing import Any, Callable, Iterable

from .entry import QueueEntry, QueueStatus
from .positions import DEFAULT_AVERAGE_SERVICE_MINUTES
from .store import QueueStore

logger = logging.getLogger(__name__)

REDACTED_NAME = "Customer"


@dataclass(frozen=True)
class Viewer:
    """Who is looking at the queue: a signed-in user and/or a phone number."""

    user_id: str | None = None
    phone: str | None = None

    def owns_queue(self, barber_id: str) -> bool:
        return self.user_id is not None and self.user_id == barber_id

    def owns_entry(self, entry: QueueEntry) -> bool:
        return bool(self.phone) and self.phone.strip() == entry.phone

    @classmethod
    def from_message(cls, data: Any) -> Viewer:
        if not isinstance(data, dict):
            return cls()
        user_id = data.get("user_id")
        phone = data.get("phone")
        return cls(
            user_id=user_id if isinstance(user_id, str) and user_id else None,
            phone=phone if isinstance(phone, str) and phone else None,
        )


@dataclass(frozen=True)
class QueueViewEntry:
    id: str
    position: int
    display_name: str
    status: QueueStatus
    estimated_wait_minutes: int
    is_viewer: bool = False

    def to_message(self) -> dict[str, Any]:
        return {
            "id": self.id,
            "position": self.position,
            "display_name": self.display_name,
            "status": self.status.value,
            "estimated_wait_minutes": self.estimated_wait_minutes,
            "is_viewer": self.is_viewer,
        }


def project_queue(
    entries: Iterable[QueueEntry],
    viewer: Viewer,
    *,
    barber_id: str,
    average_service_minutes: int = DEFAULT_AVERAGE_SERVICE_MINUTES,
) -> list[QueueViewEntry]:
    is_owner = viewer.owns_queue(barber_id)
    active = sorted((e for e in entries if e.is_active), key=lambda e: (e.position, e.join_time, e.id))

    view: list[QueueViewEntry] = []
    for e in active:
        mine = viewer.owns_entry(e)
        view.append(
            QueueViewEntry(
                id=e.id,
                position=e.position,
                display_name=e.customer_name if (is_owner or mine) else REDACTED_NAME,
                status=e.status,
                estimated_wait_minutes=e.position * average_service_minutes,
                is_viewer=mine,
            )
        )
    return view


def own_entry(view: Iterable[QueueViewEntry]) -> QueueViewEntry | None:
    for item in view:
        if item.is_viewer:
            return item
    return None


class QueueWatcher:
    """Keeps a projected view current by listening to the store's change feed."""

    def __init__(
        self,
        store: QueueStore,
        barber_id: str,
        viewer: Viewer,
        on_view: Callable[[list[QueueViewEntry]], None] | None = None,
        *,
        average_service_minutes: int = DEFAULT_AVERAGE_SERVICE_MINUTES,
    ) -> None:
        self.barber_id = barber_id
        self.viewer = viewer
        self.average_service_minutes = average_service_minutes
        self._on_view = on_view
        self._lock = threading.Lock()
        self._view: list[QueueViewEntry] = []
        self._unsubscribe = store.subscribe(barber_id, self._on_snapshot)

    @property
    def view(self) -> list[QueueViewEntry]:
        with self._lock:
            return list(self._view)

    def close(self) -> None:
        self._unsubscribe()

    def _on_snapshot(self, snapshot: list[QueueEntry]) -> None:
        view = project_queue(
            snapshot,
            self.viewer,
            barber_id=self.barber_id,
            average_service_minutes=self.average_service_minutes,
        )
        with self._lock:
            self._view = view
        if self._on_view is not None:
            self._on_view(view)
