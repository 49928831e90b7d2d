"""Small MQTT helper built on top of paho-mqtt.

Why this exists:
- paho-mqtt is callback-based.
- The queue service and its clients need a *blocking request/response* helper
  and per-topic JSON handlers (change-feed watchers).

Design:
- `MqttClient` manages the connection and a background network loop.
- Handlers are registered against a topic filter (wildcards allowed) and are
  re-subscribed automatically after a reconnect.
- `request()` publishes a JSON message and waits for a correlated response.
- `publish(..., retain=True)` is used for change-feed snapshots so late
  subscribers get the current queue straight away.
"""

from __future__ import annotations

import json
import logging
import queue
import threading
import uuid
from dataclasses import dataclass
from typing import Any, Callable

import paho.mqtt.client as mqtt

logger = logging.getLogger(__name__)

MessageHandler = Callable[[str, dict[str, Any]], None]


@dataclass(frozen=True)
class PendingResponse:
    corr_id: str
    q: "queue.Queue[dict[str, Any]]"


class MqttClient:
    """Thin wrapper around paho-mqtt with JSON convenience APIs."""

    def __init__(
        self,
        *,
        client_id: str,
        host: str,
        port: int,
        keepalive: int = 30,
    ) -> None:
        self.client_id = client_id
        self.host = host
        self.port = port
        self.keepalive = keepalive

        self._client = mqtt.Client(mqtt.CallbackAPIVersion.VERSION2, client_id=client_id, clean_session=True)
        self._client.on_message = self._on_message
        self._client.on_connect = self._on_connect

        # (topic_filter, handler) pairs. A handler registered with "#" sees
        # everything that is not a correlated response.
        self._handlers: list[tuple[str, MessageHandler]] = []
        self._subscriptions: set[str] = set()

        # corr_id -> queue used by request()
        self._pending: dict[str, PendingResponse] = {}
        self._lock = threading.Lock()

        self._started = False

    def start(self) -> None:
        """Connect and start the background network loop."""
        if self._started:
            return
        self._client.connect(self.host, self.port, keepalive=self.keepalive)
        self._client.loop_start()
        self._started = True

    def stop(self) -> None:
        """Stop and disconnect."""
        if not self._started:
            return
        self._client.loop_stop()
        self._client.disconnect()
        self._started = False

    def add_handler(self, handler: MessageHandler, topic_filter: str = "#") -> None:
        with self._lock:
            self._handlers.append((topic_filter, handler))

    def subscribe(self, topic: str) -> None:
        with self._lock:
            self._subscriptions.add(topic)
        self._client.subscribe(topic, qos=1)

    def publish(self, topic: str, message: dict[str, Any], *, retain: bool = False) -> None:
        payload = json.dumps(message, separators=(",", ":")).encode("utf-8")
        self._client.publish(topic, payload=payload, qos=1, retain=retain)

    def request(
        self,
        *,
        request_topic: str,
        response_topic: str,
        message: dict[str, Any],
        timeout: float = 5.0,
    ) -> dict[str, Any]:
        """Publish a message and wait for a correlated response.

        The caller must ensure we are subscribed to `response_topic`.
        """
        corr_id = str(uuid.uuid4())
        msg = dict(message)
        msg["corr_id"] = corr_id
        msg["reply_to"] = response_topic

        q: "queue.Queue[dict[str, Any]]" = queue.Queue(maxsize=1)
        with self._lock:
            self._pending[corr_id] = PendingResponse(corr_id=corr_id, q=q)

        self.publish(request_topic, msg)

        try:
            return q.get(timeout=timeout)
        except queue.Empty as e:
            raise TimeoutError(f"No response for corr_id={corr_id}") from e
        finally:
            with self._lock:
                self._pending.pop(corr_id, None)

    # -------------------- internal callbacks --------------------

    def _on_connect(self, client: mqtt.Client, userdata: Any, flags: Any, reason_code: Any, properties: Any) -> None:
        if getattr(reason_code, "is_failure", False):
            logger.error("MQTT connect to %s:%s refused: %s", self.host, self.port, reason_code)
            return
        with self._lock:
            topics = sorted(self._subscriptions)
        for topic in topics:
            client.subscribe(topic, qos=1)

    def _on_message(self, client: mqtt.Client, userdata: Any, msg: mqtt.MQTTMessage) -> None:
        raw = msg.payload
        try:
            payload = raw.decode("utf-8") if isinstance(raw, bytes) else str(raw)
            data = json.loads(payload)
        except (UnicodeDecodeError, ValueError):
            logger.warning("dropping malformed MQTT payload on %s", msg.topic)
            return
        if not isinstance(data, dict):
            logger.warning("dropping non-object MQTT payload on %s", msg.topic)
            return

        # Correlated responses go to the waiting request() call only.
        corr_id = data.get("corr_id")
        if isinstance(corr_id, str) and "reply_to" not in data:
            with self._lock:
                pending = self._pending.get(corr_id)
            if pending is not None:
                try:
                    pending.q.put_nowait(data)
                except queue.Full:
                    pass
                return

        with self._lock:
            handlers = [h for f, h in self._handlers if mqtt.topic_matches_sub(f, msg.topic)]
        for h in handlers:
            try:
                h(msg.topic, data)
            except Exception:
                # Keep the network loop alive; a handler bug must not kill the client.
                logger.exception("MQTT handler failed for topic %s", msg.topic)
