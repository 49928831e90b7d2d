from datetime import datetime, timedelta, timezone

import pytest

from walkin_queue.entry import QueueEntry, QueueStatus
from walkin_queue.positions import assign_on_join, estimate_wait_minutes, rank_active, recompute_after_completion
from walkin_queue.store import InMemoryQueueStore

T0 = datetime(2024, 5, 1, 9, 0, tzinfo=timezone.utc)


def entry(entry_id, position, minutes, status=QueueStatus.WAITING):
    return QueueEntry(
        id=entry_id,
        barber_id="X",
        customer_name=entry_id,
        phone=f"+{entry_id}",
        position=position,
        join_time=T0 + timedelta(minutes=minutes),
        status=status,
    )


def test_assign_on_join_counts_active_entries():
    assert assign_on_join([]) == 1
    assert assign_on_join([entry("a", 1, 0), entry("b", 2, 1)]) == 3


def test_estimate_wait_minutes():
    assert estimate_wait_minutes(1, 20) == 20
    assert estimate_wait_minutes(2, 20) == 40
    with pytest.raises(ValueError):
        estimate_wait_minutes(0, 20)
    with pytest.raises(ValueError):
        estimate_wait_minutes(1, -5)


def test_rank_uses_join_time_not_stale_positions():
    entries = [
        entry("late", 1, 10),
        entry("early", 1, 0),  # duplicate position from a racing join
        entry("done", 2, 5, QueueStatus.COMPLETED),
    ]
    assert rank_active(entries) == {"early": 1, "late": 2}


def test_rank_keeps_in_progress_ahead_of_waiting():
    entries = [entry("w", 1, 0), entry("chair", 2, 3, QueueStatus.IN_PROGRESS)]
    assert rank_active(entries) == {"chair": 1, "w": 2}


def _seed(store, rows):
    ids = []
    for phone, position, minutes in rows:
        e = store.insert(
            {
                "barber_id": "X",
                "customer_name": phone,
                "phone": phone,
                "position": position,
                "join_time": T0 + timedelta(minutes=minutes),
                "estimated_wait_minutes": 0,
            }
        )
        ids.append(e.id)
    return ids


def test_recompute_repairs_gaps_and_duplicates():
    store = InMemoryQueueStore()
    a, b, c = _seed(store, [("+1", 2, 0), ("+2", 2, 1), ("+3", 7, 2)])

    writes = recompute_after_completion(store, "X")

    assert writes == 2
    assert [(e.id, e.position) for e in store.query_active("X")] == [(a, 1), (b, 2), (c, 3)]


def test_recompute_is_idempotent():
    store = InMemoryQueueStore()
    _seed(store, [("+1", 3, 0), ("+2", 5, 1)])

    recompute_after_completion(store, "X")
    first = {e.id: e.position for e in store.query("X")}
    assert recompute_after_completion(store, "X") == 0
    assert {e.id: e.position for e in store.query("X")} == first


def test_recompute_leaves_completed_tombstones_alone():
    store = InMemoryQueueStore()
    done, waiting = _seed(store, [("+1", 1, 0), ("+2", 2, 1)])
    store.update(done, status=QueueStatus.COMPLETED)

    recompute_after_completion(store, "X")

    assert store.get(done).position == 1
    assert store.get(done).status is QueueStatus.COMPLETED
    assert store.get(waiting).position == 1
