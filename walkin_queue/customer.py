from __future__ import annotations

# Customer client.
#
# Two things a walk-in customer does:
# - `join`: publish a join_queue request, wait for the reply, print it
# - `watch`: follow a barber's queue feed and print the projected view on
#   every snapshot (names of other customers are hidden)

import argparse
import logging
import time
from typing import Any, Callable

from .config import get_settings
from .entry import QueueEntry
from .errors import InvalidRecord
from .mqtt_client import MqttClient
from .mqtt_topics import DEFAULT_NAMESPACE, barber_queue_feed, queue_requests, queue_responses
from .positions import DEFAULT_AVERAGE_SERVICE_MINUTES
from .view import QueueViewEntry, Viewer, project_queue

logger = logging.getLogger(__name__)


def send_request(*, mqtt_host: str, mqtt_port: int, namespace: str, role: str, message: dict[str, Any]) -> dict:
    """One-shot request/response against the queue service."""
    # Unique client id so several clients can run concurrently.
    client_id = f"{role}-{int(time.time() * 1000)}"
    mqtt = MqttClient(client_id=client_id, host=mqtt_host, port=mqtt_port)
    mqtt.start()

    reply_topic = queue_responses(client_id, namespace)
    mqtt.subscribe(reply_topic)

    try:
        return mqtt.request(
            request_topic=queue_requests(namespace),
            response_topic=reply_topic,
            message=message,
            timeout=5.0,
        )
    finally:
        mqtt.stop()


def join_queue(*, mqtt_host: str, mqtt_port: int, namespace: str, barber_id: str, name: str, phone: str) -> dict:
    return send_request(
        mqtt_host=mqtt_host,
        mqtt_port=mqtt_port,
        namespace=namespace,
        role="customer",
        message={"type": "join_queue", "barber_id": barber_id, "customer_name": name, "phone": phone},
    )


def view_from_snapshot(
    msg: dict[str, Any],
    viewer: Viewer,
    *,
    average_service_minutes: int = DEFAULT_AVERAGE_SERVICE_MINUTES,
) -> list[QueueViewEntry] | None:
    """Project a `queue_snapshot` message; None if the message is unusable."""
    if msg.get("type") != "queue_snapshot" or not isinstance(msg.get("barber_id"), str):
        return None
    records = msg.get("entries")
    if not isinstance(records, list):
        return None
    try:
        entries = [QueueEntry.from_record(r) for r in records]
    except (InvalidRecord, TypeError) as e:
        logger.warning("ignoring malformed queue snapshot: %s", e)
        return None
    return project_queue(
        entries,
        viewer,
        barber_id=msg["barber_id"],
        average_service_minutes=average_service_minutes,
    )


def format_view(view: list[QueueViewEntry]) -> str:
    if not view:
        return "  (queue is empty)"
    lines = []
    for item in view:
        marker = " <- you" if item.is_viewer else ""
        status = item.status.value.replace("_", " ")
        lines.append(f"  #{item.position:<3} {item.display_name:<20} {status:<12} ~{item.estimated_wait_minutes} min{marker}")
    return "\n".join(lines)


def snapshot_handler(
    viewer: Viewer,
    show: Callable[[list[QueueViewEntry]], None],
    *,
    average_service_minutes: int = DEFAULT_AVERAGE_SERVICE_MINUTES,
) -> Callable[[str, dict[str, Any]], None]:
    """MQTT handler that projects each snapshot and passes it to `show`."""

    def on_snapshot(topic: str, msg: dict[str, Any]) -> None:
        view = view_from_snapshot(msg, viewer, average_service_minutes=average_service_minutes)
        if view is not None:
            show(view)

    return on_snapshot


def watch_queue(
    *,
    mqtt_host: str,
    mqtt_port: int,
    namespace: str,
    barber_id: str,
    viewer: Viewer,
    on_view: Callable[[list[QueueViewEntry]], None] | None = None,
    average_service_minutes: int | None = None,
) -> None:
    """Print the projected queue on every snapshot until Ctrl+C.

    Waits use the configured average service time unless one is passed.
    """
    show = on_view or (lambda view: print(f"[queue {barber_id}]\n{format_view(view)}", flush=True))
    if average_service_minutes is None:
        average_service_minutes = get_settings().average_service_minutes
    on_snapshot = snapshot_handler(viewer, show, average_service_minutes=average_service_minutes)

    mqtt = MqttClient(client_id=f"watch-{int(time.time() * 1000)}", host=mqtt_host, port=mqtt_port)

    topic = barber_queue_feed(barber_id, namespace)
    mqtt.add_handler(on_snapshot, topic)
    mqtt.start()
    mqtt.subscribe(topic)

    try:
        while True:
            time.sleep(1)
    except KeyboardInterrupt:
        pass
    finally:
        mqtt.stop()


def main() -> None:
    parser = argparse.ArgumentParser(description="Customer client (MQTT)")
    parser.add_argument("--barber-id", required=True)
    parser.add_argument("--name", required=True)
    parser.add_argument("--phone", required=True)
    parser.add_argument("--mqtt-host", default="127.0.0.1")
    parser.add_argument("--mqtt-port", type=int, default=1883)
    parser.add_argument("--namespace", default=DEFAULT_NAMESPACE)
    args = parser.parse_args()

    resp = join_queue(
        mqtt_host=args.mqtt_host,
        mqtt_port=args.mqtt_port,
        namespace=args.namespace,
        barber_id=args.barber_id,
        name=args.name,
        phone=args.phone,
    )
    if resp.get("type") == "joined":
        entry = resp["entry"]
        print(
            f"[customer {args.name}] joined {args.barber_id} at position #{entry['position']} "
            f"(~{entry['estimated_wait_minutes']} min)"
        )
    else:
        print(f"[customer {args.name}] error: {resp.get('message', resp)}")


if __name__ == "__main__":
    main()
