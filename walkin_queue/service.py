from __future__ import annotations

# The queue service is the *authoritative* owner of walk-in state.
#
# IMPORTANT: This file contains two layers:
# 1) `build_state_machine()` wiring the pure core (store, barbers, notifier)
# 2) `MqttQueueService` + `main()` (integration with the MQTT broker)
#
# Requests come in on `<ns>/queue/requests` and are answered on the
# `reply_to` topic carried by each request. Every store mutation is pushed out
# as a retained snapshot on `<ns>/barbers/<barber_id>/queue`.

import argparse
import logging
import time
from typing import Any, Callable, TYPE_CHECKING

from .barbers import BarberDirectory, BarberProfile
from .config import Settings, get_settings
from .entry import QueueEntry
from .errors import ErrorResponse, QueueError
from .mqtt_topics import DEFAULT_NAMESPACE, barber_queue_feed, queue_requests
from .notifications import Notifier, build_sender
from .state_machine import QueueStateMachine
from .store import InMemoryQueueStore, QueueStore, Unsubscribe
from .view import Viewer, project_queue

if TYPE_CHECKING:
    from .mqtt_client import MqttClient

logger = logging.getLogger(__name__)

Reply = dict[str, Any]


def build_state_machine(
    *,
    settings: Settings,
    barbers: BarberDirectory,
    store: QueueStore | None = None,
) -> QueueStateMachine:
    notifier = Notifier(build_sender(settings), history_size=settings.notification_history_size)
    return QueueStateMachine(
        store or InMemoryQueueStore(),
        barbers,
        notifier,
        average_service_minutes=settings.average_service_minutes,
    )


def snapshot_message(barber_id: str, entries: list[QueueEntry]) -> dict[str, Any]:
    return {
        "type": "queue_snapshot",
        "barber_id": barber_id,
        "entries": [e.to_record() for e in entries],
    }


class MqttQueueService:
    """MQTT adapter around the QueueStateMachine."""

    def __init__(self, *, mqtt: MqttClient, machine: QueueStateMachine, namespace: str = DEFAULT_NAMESPACE) -> None:
        self.mqtt = mqtt
        self.machine = machine
        self.namespace = namespace
        self._feeds: dict[str, Unsubscribe] = {}

        self._handlers: dict[str, Callable[[dict[str, Any]], Reply]] = {
            "join_queue": self._join,
            "start_entry": self._start,
            "complete_entry": self._complete,
            "get_queue": self._get_queue,
            "set_walk_in": self._set_walk_in,
            "set_available": self._set_available,
        }

    def start(self) -> None:
        self.mqtt.subscribe(queue_requests(self.namespace))
        self.mqtt.add_handler(self._handle_message, queue_requests(self.namespace))
        for profile in self.machine.barbers.all():
            self.publish_feed(profile.barber_id)

    def stop(self) -> None:
        """Detach all change-feed bridges. Call before disconnecting MQTT."""
        for unsubscribe in self._feeds.values():
            unsubscribe()
        self._feeds.clear()

    def publish_feed(self, barber_id: str) -> None:
        """Bridge the store's change feed for one barber onto MQTT."""
        if barber_id in self._feeds:
            return
        topic = barber_queue_feed(barber_id, self.namespace)

        def on_change(entries: list[QueueEntry]) -> None:
            self.mqtt.publish(topic, snapshot_message(barber_id, entries), retain=True)

        self._feeds[barber_id] = self.machine.store.subscribe(barber_id, on_change)

    # -------------------- request handling --------------------

    def handle_request(self, msg: dict[str, Any]) -> Reply:
        """Run one request against the state machine and build the reply."""
        mtype = msg.get("type")
        handler = self._handlers.get(mtype) if isinstance(mtype, str) else None
        if handler is None:
            return ErrorResponse("unknown_request", f"Unknown request type: {mtype!r}").to_message()

        try:
            return handler(msg)
        except QueueError as e:
            return e.to_response().to_message()
        except ValueError as e:
            return ErrorResponse("bad_request", str(e)).to_message()

    def _handle_message(self, topic: str, msg: dict[str, Any]) -> None:
        reply_to = msg.get("reply_to") if isinstance(msg.get("reply_to"), str) else None
        corr_id = msg.get("corr_id") if isinstance(msg.get("corr_id"), str) else None
        if not reply_to:
            return

        reply = dict(self.handle_request(msg))
        if corr_id is not None:
            reply["corr_id"] = corr_id
        self.mqtt.publish(reply_to, reply)

    def _join(self, msg: dict[str, Any]) -> Reply:
        barber_id = _required(msg, "barber_id")
        entry = self.machine.join(barber_id, str(msg.get("customer_name", "")), str(msg.get("phone", "")))
        self.publish_feed(barber_id)
        return {"type": "joined", "entry": entry.to_record()}

    def _start(self, msg: dict[str, Any]) -> Reply:
        entry = self.machine.start(_required(msg, "entry_id"), barber_id=_required(msg, "barber_id"))
        return {"type": "entry_updated", "entry": entry.to_record()}

    def _complete(self, msg: dict[str, Any]) -> Reply:
        entry = self.machine.complete(_required(msg, "entry_id"), barber_id=_required(msg, "barber_id"))
        return {"type": "entry_updated", "entry": entry.to_record()}

    def _get_queue(self, msg: dict[str, Any]) -> Reply:
        barber_id = _required(msg, "barber_id")
        self.machine.barbers.get(barber_id)
        view = project_queue(
            self.machine.active_queue(barber_id),
            Viewer.from_message(msg.get("viewer")),
            barber_id=barber_id,
            average_service_minutes=self.machine.average_service_minutes,
        )
        return {"type": "queue_view", "barber_id": barber_id, "entries": [v.to_message() for v in view]}

    def _set_walk_in(self, msg: dict[str, Any]) -> Reply:
        profile = self.machine.barbers.set_walk_in_enabled(_required(msg, "barber_id"), _flag(msg, "enabled"))
        return _barber_reply(profile)

    def _set_available(self, msg: dict[str, Any]) -> Reply:
        profile = self.machine.barbers.set_available(_required(msg, "barber_id"), _flag(msg, "available"))
        return _barber_reply(profile)


def _required(msg: dict[str, Any], key: str) -> str:
    value = msg.get(key)
    if not isinstance(value, str) or not value:
        raise ValueError(f"{key} required")
    return value


def _flag(msg: dict[str, Any], key: str) -> bool:
    value = msg.get(key)
    if not isinstance(value, bool):
        raise ValueError(f"{key} must be true or false")
    return value


def _barber_reply(profile: BarberProfile) -> Reply:
    return {
        "type": "barber_updated",
        "barber_id": profile.barber_id,
        "walk_in_enabled": profile.walk_in_enabled,
        "is_available": profile.is_available,
    }


def parse_barber_arg(value: str) -> BarberProfile:
    """Parse `ID:Salon name` from the command line."""
    barber_id, sep, salon_name = value.partition(":")
    barber_id = barber_id.strip()
    if not sep or not barber_id or not salon_name.strip():
        raise argparse.ArgumentTypeError(f"expected ID:SALON, got {value!r}")
    return BarberProfile(barber_id=barber_id, salon_name=salon_name.strip())


def main() -> None:
    # Import MQTT dependencies only when running the real service.
    from .mqtt_client import MqttClient

    parser = argparse.ArgumentParser(description="Walk-in queue service (MQTT)")
    parser.add_argument("--mqtt-host", default="127.0.0.1")
    parser.add_argument("--mqtt-port", type=int, default=1883)
    parser.add_argument("--namespace", default=DEFAULT_NAMESPACE)
    parser.add_argument(
        "--barber",
        type=parse_barber_arg,
        action="append",
        required=True,
        help="barber to serve, as ID:SALON (repeatable)",
    )
    parser.add_argument("--closed", action="append", default=[], help="barber ID that is not taking walk-ins")
    args = parser.parse_args()

    settings = get_settings()
    logging.basicConfig(level=settings.log_level.upper(), format="%(asctime)s %(levelname)s %(name)s: %(message)s")

    barbers = BarberDirectory(args.barber)
    for barber_id in args.closed:
        barbers.set_walk_in_enabled(barber_id, False)

    machine = build_state_machine(settings=settings, barbers=barbers)

    mqtt_client = MqttClient(client_id=f"queue-service-{int(time.time())}", host=args.mqtt_host, port=args.mqtt_port)
    mqtt_client.start()

    service = MqttQueueService(mqtt=mqtt_client, machine=machine, namespace=args.namespace)
    service.start()

    print(
        f"[queue-service] connected to MQTT {args.mqtt_host}:{args.mqtt_port}, namespace={args.namespace}, "
        f"barbers={', '.join(p.barber_id for p in barbers.all())}, notifications={settings.notification_provider}"
    )

    try:
        while True:
            time.sleep(1)
    except KeyboardInterrupt:
        pass
    finally:
        service.stop()
        mqtt_client.stop()
        machine.notifier.close()


if __name__ == "__main__":
    main()
