from datetime import datetime, timezone

import pytest

from walkin_queue.entry import QueueEntry, QueueStatus, parse_timestamp
from walkin_queue.errors import InvalidRecord

RECORD = {
    "id": "e1",
    "barber_id": "X",
    "customer_name": "Ada",
    "phone": "+2348000000001",
    "position": 1,
    "join_time": "2024-05-01T09:00:00+00:00",
    "status": "waiting",
    "estimated_wait_minutes": 20,
}


def test_from_record_parses_persisted_shape():
    entry = QueueEntry.from_record(RECORD)
    assert entry.status is QueueStatus.WAITING
    assert entry.join_time == datetime(2024, 5, 1, 9, 0, tzinfo=timezone.utc)
    assert entry.to_record() == RECORD


@pytest.mark.parametrize(
    "change",
    [
        {"status": "cancelled"},
        {"position": 0},
        {"position": "1"},
        {"position": True},
        {"estimated_wait_minutes": -1},
        {"join_time": "yesterday"},
        {"join_time": 12},
        {"phone": None},
        {"id": ""},
    ],
)
def test_from_record_rejects_bad_values(change):
    with pytest.raises(InvalidRecord):
        QueueEntry.from_record({**RECORD, **change})


def test_from_record_rejects_missing_fields():
    record = dict(RECORD)
    del record["status"]
    with pytest.raises(InvalidRecord, match="status"):
        QueueEntry.from_record(record)


def test_parse_timestamp_accepts_z_and_naive():
    assert parse_timestamp("2024-05-01T09:00:00Z") == datetime(2024, 5, 1, 9, tzinfo=timezone.utc)
    assert parse_timestamp("2024-05-01T09:00:00").tzinfo is timezone.utc


def test_active_statuses():
    assert QueueStatus.WAITING.is_active
    assert QueueStatus.IN_PROGRESS.is_active
    assert not QueueStatus.COMPLETED.is_active
