"""MQTT topic helpers.

We keep topic construction in one place so the service and its clients agree
on naming.

Topic layout under a configurable namespace (default: `salon/v1`):

Request/response:
- `<ns>/queue/requests`
- `<ns>/queue/responses/<client_id>`

Change feed:
- `<ns>/barbers/<barber_id>/queue`
    Retained snapshot of the barber's active entries, republished on every
    mutation. A new subscriber immediately receives the latest snapshot.

Use a different namespace to run independent salons on a shared broker.
"""

from __future__ import annotations

DEFAULT_NAMESPACE = "salon/v1"


def queue_requests(namespace: str = DEFAULT_NAMESPACE) -> str:
    return f"{namespace}/queue/requests"


def queue_responses(client_id: str, namespace: str = DEFAULT_NAMESPACE) -> str:
    return f"{namespace}/queue/responses/{client_id}"


def barber_queue_feed(barber_id: str, namespace: str = DEFAULT_NAMESPACE) -> str:
    return f"{namespace}/barbers/{barber_id}/queue"
