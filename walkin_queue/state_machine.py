from __future__ import annotations

# Queue state machine: the only code that changes an entry's status.
#
#   (none) --join--> waiting --start--> in_progress --complete--> completed
#
# `completed` is terminal. Every other move raises InvalidTransition before the
# store is touched.
#
# Ordering of side effects:
# - the store write happens first; if it fails we raise PersistenceError and
#   send nothing
# - notifications go out only after the state is committed and can never fail
#   the transition

import logging
import threading
from datetime import datetime
from typing import Callable

from .barbers import BarberDirectory
from .entry import QueueEntry, QueueStatus, utc_now
from .errors import BarberNotFound, BarberUnavailable, DuplicateEntry, InvalidTransition
from .notifications import Notifier
from .positions import (
    DEFAULT_AVERAGE_SERVICE_MINUTES,
    assign_on_join,
    estimate_wait_minutes,
    recompute_after_completion,
)
from .store import QueueStore

logger = logging.getLogger(__name__)

# status -> statuses it may move to
TRANSITIONS: dict[QueueStatus, frozenset[QueueStatus]] = {
    QueueStatus.WAITING: frozenset({QueueStatus.IN_PROGRESS}),
    QueueStatus.IN_PROGRESS: frozenset({QueueStatus.COMPLETED}),
    QueueStatus.COMPLETED: frozenset(),
}


def check_transition(entry: QueueEntry, target: QueueStatus) -> None:
    if target not in TRANSITIONS[entry.status]:
        raise InvalidTransition(f"cannot move entry {entry.id} from {entry.status.value} to {target.value}")


class QueueStateMachine:
    """Join / start / complete for walk-in queues.

    Args:
        store: where entries live.
        barbers: barber profiles (salon name, walk-in switches).
        notifier: best-effort message boundary.
        average_service_minutes: used for the join-time wait estimate.
        clock: returns the current aware datetime (tests pin it).
    """

    def __init__(
        self,
        store: QueueStore,
        barbers: BarberDirectory,
        notifier: Notifier,
        *,
        average_service_minutes: int = DEFAULT_AVERAGE_SERVICE_MINUTES,
        clock: Callable[[], datetime] = utc_now,
    ) -> None:
        self.store = store
        self.barbers = barbers
        self.notifier = notifier
        self.average_service_minutes = average_service_minutes
        self._clock = clock

        # Per-barber locks: every read-then-write on one barber's queue holds it.
        self._barber_locks: dict[str, threading.Lock] = {}
        self._barber_locks_guard = threading.Lock()

    # -------------------- transitions --------------------

    def join(self, barber_id: str, customer_name: str, phone: str) -> QueueEntry:
        customer_name = (customer_name or "").strip()
        phone = (phone or "").strip()
        if not customer_name:
            raise ValueError("customer_name required")
        if not phone:
            raise ValueError("phone required")

        barber = self.barbers.get(barber_id)
        if not barber.accepts_walk_ins:
            raise BarberUnavailable(f"{barber.salon_name} is not accepting walk-ins right now")

        with self._barber_lock(barber_id):
            if self.store.query(barber_id, status=QueueStatus.WAITING, phone=phone):
                raise DuplicateEntry("This phone number is already in the queue")

            position = assign_on_join(self.store.query_active(barber_id))
            wait = estimate_wait_minutes(position, self.average_service_minutes)
            entry = self.store.insert(
                {
                    "barber_id": barber_id,
                    "customer_name": customer_name,
                    "phone": phone,
                    "position": position,
                    "join_time": self._clock(),
                    "status": QueueStatus.WAITING,
                    "estimated_wait_minutes": wait,
                }
            )

        logger.info("joined barber %s queue: entry %s at #%d", barber_id, entry.id, entry.position)
        self.notifier.queue_confirmation(entry.phone, barber.salon_name, entry.position, entry.estimated_wait_minutes)
        return entry

    def start(self, entry_id: str, *, barber_id: str | None = None) -> QueueEntry:
        owner = self._load_for_barber(entry_id, barber_id).barber_id
        with self._barber_lock(owner):
            entry = self.store.get(entry_id)
            self._guard(entry, QueueStatus.IN_PROGRESS)
            updated = self.store.update(entry.id, status=QueueStatus.IN_PROGRESS)

        logger.info("started entry %s for barber %s", updated.id, updated.barber_id)
        return updated

    def complete(self, entry_id: str, *, barber_id: str | None = None) -> QueueEntry:
        owner = self._load_for_barber(entry_id, barber_id).barber_id
        with self._barber_lock(owner):
            # Re-read under the lock: a concurrent complete may have won.
            entry = self.store.get(entry_id)
            self._guard(entry, QueueStatus.COMPLETED)

            completed = self.store.update(entry.id, status=QueueStatus.COMPLETED)
            logger.info("completed entry %s for barber %s", completed.id, completed.barber_id)

            # If this raises, the entry stays completed and recompute_positions()
            # can be re-run; nobody is notified about a half-written order.
            recompute_after_completion(self.store, owner)
            nxt = self._next_waiting(owner)

        self._notify_next(owner, nxt)
        return completed

    # -------------------- queries / repair --------------------

    def active_queue(self, barber_id: str) -> list[QueueEntry]:
        return self.store.query_active(barber_id)

    def recompute_positions(self, barber_id: str) -> int:
        with self._barber_lock(barber_id):
            return recompute_after_completion(self.store, barber_id)

    # -------------------- internals --------------------

    def _next_waiting(self, barber_id: str) -> QueueEntry | None:
        waiting = self.store.query(barber_id, status=QueueStatus.WAITING, order_by="position")
        return waiting[0] if waiting else None

    def _notify_next(self, barber_id: str, nxt: QueueEntry | None) -> None:
        if nxt is None:
            return
        try:
            salon_name = self.barbers.get(barber_id).salon_name
        except BarberNotFound:
            logger.warning("barber %s has no profile; skipping next-in-line alerts", barber_id)
            return

        # Two separate messages to the same person for the same event. Kept as
        # two independent sends; whether one is redundant is a product call.
        self.notifier.queue_alert(nxt.phone, salon_name, nxt.position)
        self.notifier.next_in_line(nxt.phone, salon_name)

    def _load_for_barber(self, entry_id: str, barber_id: str | None) -> QueueEntry:
        entry = self.store.get(entry_id)
        if barber_id is not None and entry.barber_id != barber_id:
            logger.warning("barber %s tried to act on entry %s owned by %s", barber_id, entry.id, entry.barber_id)
            raise InvalidTransition(f"entry {entry.id} is not in barber {barber_id}'s queue")
        return entry

    def _guard(self, entry: QueueEntry, target: QueueStatus) -> None:
        try:
            check_transition(entry, target)
        except InvalidTransition as e:
            logger.warning("rejected transition: %s", e)
            raise

    def _barber_lock(self, barber_id: str) -> threading.Lock:
        with self._barber_locks_guard:
            lock = self._barber_locks.get(barber_id)
            if lock is None:
                lock = self._barber_locks[barber_id] = threading.Lock()
            return lock
