from datetime import datetime, timedelta, timezone

import pytest

from walkin_queue.barbers import BarberDirectory, BarberProfile
from walkin_queue.notifications import NotificationSender, Notifier
from walkin_queue.state_machine import QueueStateMachine
from walkin_queue.store import InMemoryQueueStore


class RecordingSender(NotificationSender):
    name = "recording"

    def __init__(self, result=True):
        self.result = result
        self.sent = []

    def send(self, phone, message):
        self.sent.append((phone, message))
        if isinstance(self.result, Exception):
            raise self.result
        return self.result


class TickingClock:
    """Each call is one minute after the previous one."""

    def __init__(self):
        self.now = datetime(2024, 5, 1, 9, 0, tzinfo=timezone.utc)

    def __call__(self):
        self.now += timedelta(minutes=1)
        return self.now


@pytest.fixture
def store():
    return InMemoryQueueStore()


@pytest.fixture
def barbers():
    return BarberDirectory([BarberProfile(barber_id="X", salon_name="Fade Lab")])


@pytest.fixture
def sender():
    return RecordingSender()


@pytest.fixture
def clock():
    return TickingClock()


@pytest.fixture
def machine(store, barbers, sender, clock):
    return QueueStateMachine(store, barbers, Notifier(sender), average_service_minutes=20, clock=clock)
