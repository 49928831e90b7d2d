from __future__ import annotations

# Position assignment.
#
# Walk-ins are first-come-first-served:
#   position on join         = number of active entries + 1
#   position after a removal = rank by join_time among the active entries
#
# The recompute ranks by join_time rather than by the stored position, so any
# earlier drift (for example two racing joins that got the same position) is
# repaired the next time somebody completes.

import logging
from typing import Iterable, Sequence, TYPE_CHECKING

from .entry import QueueEntry, QueueStatus

if TYPE_CHECKING:
    from .store import QueueStore

logger = logging.getLogger(__name__)

DEFAULT_AVERAGE_SERVICE_MINUTES = 20


def assign_on_join(active_entries: Sequence[QueueEntry]) -> int:
    """Next position for a new entrant.

    The caller must pass only active (non-completed) entries.
    """
    return len(active_entries) + 1


def estimate_wait_minutes(position: int, average_service_minutes: int = DEFAULT_AVERAGE_SERVICE_MINUTES) -> int:
    if position < 1:
        raise ValueError("position must be >= 1")
    if average_service_minutes < 0:
        raise ValueError("average_service_minutes must be >= 0")
    return position * average_service_minutes


def rank_active(entries: Iterable[QueueEntry]) -> dict[str, int]:
    """Map entry id -> 1-based rank among the active entries.

    Whoever is already in the chair stays ahead of the people still waiting;
    inside each group the earlier join wins.
    """
    active = [e for e in entries if e.is_active]
    active.sort(key=lambda e: (e.status is not QueueStatus.IN_PROGRESS, e.join_time, e.id))
    return {e.id: rank for rank, e in enumerate(active, start=1)}


def recompute_after_completion(store: QueueStore, barber_id: str) -> int:
    """Rewrite positions of the barber's active entries to a dense 1..N.

    Only entries whose position actually changes are written, so running this
    twice in a row is a no-op the second time. Returns the number of writes.
    """
    entries = store.query(barber_id, order_by="join_time")
    ranks = rank_active(entries)

    writes = 0
    for entry in entries:
        rank = ranks.get(entry.id)
        if rank is None or rank == entry.position:
            continue
        store.update(entry.id, position=rank)
        writes += 1

    if writes:
        logger.info("recomputed %d queue position(s) for barber %s", writes, barber_id)
    return writes
