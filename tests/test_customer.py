import pytest

from walkin_queue import customer
from walkin_queue.config import get_settings
from walkin_queue.customer import format_view, snapshot_handler, view_from_snapshot
from walkin_queue.service import snapshot_message
from walkin_queue.view import Viewer


def test_snapshot_projects_for_viewer(machine):
    machine.join("X", "Ada", "+2348000000001")
    machine.join("X", "Ben", "+2348000000002")
    msg = snapshot_message("X", machine.active_queue("X"))

    view = view_from_snapshot(msg, Viewer(phone="+2348000000001"))

    assert [v.display_name for v in view] == ["Ada", "Customer"]
    text = format_view(view)
    assert "<- you" in text
    assert "~40 min" in text


def test_unusable_snapshots_are_ignored():
    assert view_from_snapshot({"type": "joined"}, Viewer()) is None
    assert view_from_snapshot({"type": "queue_snapshot", "barber_id": "X", "entries": "nope"}, Viewer()) is None
    bad = {"type": "queue_snapshot", "barber_id": "X", "entries": [{"id": "e1"}]}
    assert view_from_snapshot(bad, Viewer()) is None


def test_format_empty_view():
    assert "empty" in format_view([])


def test_snapshot_handler_uses_given_service_time(machine):
    machine.join("X", "Ada", "+1")
    machine.join("X", "Ben", "+2")
    shown = []

    handle = snapshot_handler(Viewer(phone="+1"), shown.append, average_service_minutes=15)
    handle("salon/v1/barbers/X/queue", snapshot_message("X", machine.active_queue("X")))
    handle("salon/v1/barbers/X/queue", {"type": "joined"})

    assert len(shown) == 1
    assert [v.estimated_wait_minutes for v in shown[0]] == [15, 30]


class FakeMqtt:
    instances = []

    def __init__(self, **kwargs):
        self.handlers = []
        self.subscribed = []
        self.stopped = False
        FakeMqtt.instances.append(self)

    def add_handler(self, handler, topic_filter):
        self.handlers.append((topic_filter, handler))

    def start(self):
        pass

    def subscribe(self, topic):
        self.subscribed.append(topic)

    def stop(self):
        self.stopped = True


@pytest.fixture
def configured_minutes(monkeypatch):
    monkeypatch.setenv("WALKIN_AVERAGE_SERVICE_MINUTES", "15")
    get_settings.cache_clear()
    yield 15
    get_settings.cache_clear()


def test_watch_queue_uses_configured_service_time(monkeypatch, machine, configured_minutes):
    machine.join("X", "Ada", "+1")
    snapshot = snapshot_message("X", machine.active_queue("X"))
    FakeMqtt.instances.clear()
    monkeypatch.setattr(customer, "MqttClient", FakeMqtt)

    def deliver_then_stop(seconds):
        (mqtt,) = FakeMqtt.instances
        for topic, handler in mqtt.handlers:
            handler(topic, snapshot)
        raise KeyboardInterrupt

    monkeypatch.setattr(customer.time, "sleep", deliver_then_stop)
    shown = []

    customer.watch_queue(
        mqtt_host="localhost",
        mqtt_port=1883,
        namespace="salon/v1",
        barber_id="X",
        viewer=Viewer(phone="+1"),
        on_view=shown.append,
    )

    (mqtt,) = FakeMqtt.instances
    assert mqtt.subscribed == ["salon/v1/barbers/X/queue"]
    assert mqtt.stopped
    assert [v.estimated_wait_minutes for v in shown[0]] == [configured_minutes]
