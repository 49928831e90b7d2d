from __future__ import annotations

# Barber client.
#
# The barber dashboard actions, one request each:
# - start:    waiting -> in_progress
# - complete: in_progress -> completed (the service renumbers and notifies)
# - walk-ins: open/close the walk-in queue
# - available: mark the barber in or out (joins need both switches on)

import argparse

from .customer import send_request
from .mqtt_topics import DEFAULT_NAMESPACE


def barber_request(*, mqtt_host: str, mqtt_port: int, namespace: str, barber_id: str, message: dict) -> dict:
    return send_request(
        mqtt_host=mqtt_host,
        mqtt_port=mqtt_port,
        namespace=namespace,
        role=f"barber-{barber_id}",
        message={**message, "barber_id": barber_id},
    )


def main() -> None:
    parser = argparse.ArgumentParser(description="Barber client (MQTT)")
    parser.add_argument("--barber-id", required=True)
    parser.add_argument("--mqtt-host", default="127.0.0.1")
    parser.add_argument("--mqtt-port", type=int, default=1883)
    parser.add_argument("--namespace", default=DEFAULT_NAMESPACE)
    sub = parser.add_subparsers(dest="action", required=True)

    p_start = sub.add_parser("start", help="start serving an entry")
    p_start.add_argument("--entry-id", required=True)

    p_done = sub.add_parser("complete", help="finish an entry")
    p_done.add_argument("--entry-id", required=True)

    p_walk = sub.add_parser("walk-ins", help="open or close the walk-in queue")
    p_walk.add_argument("state", choices=["on", "off"])

    p_avail = sub.add_parser("available", help="mark yourself available or away")
    p_avail.add_argument("state", choices=["on", "off"])

    args = parser.parse_args()

    if args.action == "start":
        message = {"type": "start_entry", "entry_id": args.entry_id}
    elif args.action == "complete":
        message = {"type": "complete_entry", "entry_id": args.entry_id}
    elif args.action == "walk-ins":
        message = {"type": "set_walk_in", "enabled": args.state == "on"}
    else:
        message = {"type": "set_available", "available": args.state == "on"}

    resp = barber_request(
        mqtt_host=args.mqtt_host,
        mqtt_port=args.mqtt_port,
        namespace=args.namespace,
        barber_id=args.barber_id,
        message=message,
    )

    if resp.get("type") == "entry_updated":
        entry = resp["entry"]
        print(f"[barber {args.barber_id}] {entry['customer_name']} (#{entry['position']}) is now {entry['status']}")
    elif resp.get("type") == "barber_updated":
        walk_ins = "open" if resp["walk_in_enabled"] else "closed"
        presence = "available" if resp["is_available"] else "away"
        print(f"[barber {args.barber_id}] walk-ins {walk_ins}, {presence}")
    else:
        print(f"[barber {args.barber_id}] error: {resp.get('message', resp)}")


if __name__ == "__main__":
    main()
