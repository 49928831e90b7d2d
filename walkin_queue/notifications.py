"""Queue notifications (WhatsApp / SMS).

Everything here is best-effort. The queue state is the source of truth and
messages are advisory, so a failed send must never fail a join or completion.

Layout:
- `NotificationSender`: the provider contract, `send(phone, message) -> bool`.
- Concrete senders over HTTP (httpx): WhatsApp Cloud API, Termii, Twilio SMS,
  plus `LogOnlySender` for development.
- `Notifier`: renders the message templates, calls the sender and absorbs any
  failure. This is the only thing the state machine talks to.
"""

from __future__ import annotations

import logging
import re
import threading
from abc import ABC, abstractmethod
from collections import deque
from dataclasses import dataclass, field
from datetime import datetime
from enum import Enum
from typing import TYPE_CHECKING

import httpx

from .entry import utc_now
from .errors import NotificationError

if TYPE_CHECKING:
    from .config import Settings

logger = logging.getLogger(__name__)

WHATSAPP_API_BASE = "https://graph.facebook.com/v18.0"
TERMII_API_BASE = "https://api.ng.termii.com"
TWILIO_API_BASE = "https://api.twilio.com"


class MessageKind(str, Enum):
    QUEUE_CONFIRMATION = "queue_confirmation"
    QUEUE_ALERT = "queue_alert"
    NEXT_IN_LINE = "next_in_line"


# -------------------- templates --------------------


def queue_confirmation_message(salon_name: str, position: int, estimated_wait: int) -> str:
    return (
        f"You've joined the queue at {salon_name}!\n\n"
        f"Position: #{position}\n"
        f"Estimated wait: ~{estimated_wait} minutes\n\n"
        "We'll notify you when you're next in line."
    )


def queue_alert_message(salon_name: str, position: int) -> str:
    return (
        f"You're #{position} in line at {salon_name}!\n\n"
        "Get ready, you'll be called soon. Please be available for the next few minutes."
    )


def next_in_line_message(salon_name: str) -> str:
    return f"You're NEXT in line at {salon_name}. Please make your way to the chair."


# -------------------- phone formatting --------------------


def digits_only(phone: str) -> str:
    return re.sub(r"\D", "", phone)


def format_nigerian_phone(phone: str) -> str:
    """Digits in international format: a leading 0 becomes 234."""
    digits = digits_only(phone)
    if digits.startswith("0"):
        digits = "234" + digits[1:]
    return digits


def format_e164_default_us(phone: str) -> str:
    phone = phone.strip()
    if phone.startswith("+"):
        return phone
    return "+1" + digits_only(phone)


# -------------------- senders --------------------


class NotificationSender(ABC):
    """Provider contract. Return False for a rejected message.

    Transport failures may be raised as `NotificationError`.
    """

    name = "sender"

    @abstractmethod
    def send(self, phone: str, message: str) -> bool: ...

    def close(self) -> None:
        """Release transport resources. Most senders hold none."""


class LogOnlySender(NotificationSender):
    """Development sender: logs instead of delivering."""

    name = "log"

    def send(self, phone: str, message: str) -> bool:
        logger.info("notification to %s: %s", phone, message.replace("\n", " | "))
        return True


class HttpSender(NotificationSender):
    """Shared plumbing for HTTP providers."""

    def __init__(self, *, client: httpx.Client | None = None, timeout: float = 10.0) -> None:
        self._client = client or httpx.Client(timeout=timeout)

    @property
    @abstractmethod
    def is_configured(self) -> bool: ...

    @abstractmethod
    def _request(self, phone: str, message: str) -> httpx.Response: ...

    def send(self, phone: str, message: str) -> bool:
        if not self.is_configured:
            logger.error("%s credentials not configured", self.name)
            return False
        try:
            response = self._request(phone, message)
        except httpx.HTTPError as e:
            raise NotificationError(f"{self.name} request failed: {e}") from e

        if response.is_success:
            logger.debug("%s message sent to %s", self.name, phone)
            return True
        logger.warning("%s rejected message to %s: %s %s", self.name, phone, response.status_code, response.text)
        return False

    def close(self) -> None:
        self._client.close()


class WhatsAppCloudSender(HttpSender):
    name = "whatsapp"

    def __init__(
        self,
        *,
        access_token: str | None,
        phone_number_id: str | None,
        base_url: str = WHATSAPP_API_BASE,
        client: httpx.Client | None = None,
        timeout: float = 10.0,
    ) -> None:
        super().__init__(client=client, timeout=timeout)
        self._access_token = access_token or ""
        self._phone_number_id = phone_number_id or ""
        self._base_url = base_url.rstrip("/")

    @property
    def is_configured(self) -> bool:
        return bool(self._access_token and self._phone_number_id)

    def _request(self, phone: str, message: str) -> httpx.Response:
        return self._client.post(
            f"{self._base_url}/{self._phone_number_id}/messages",
            headers={"Authorization": f"Bearer {self._access_token}"},
            json={
                "messaging_product": "whatsapp",
                "to": digits_only(phone),
                "type": "text",
                "text": {"body": message},
            },
        )


class TermiiSender(HttpSender):
    """Termii gateway; `channel` is "whatsapp" or "generic" (SMS)."""

    name = "termii"

    def __init__(
        self,
        *,
        api_key: str | None,
        sender_id: str | None,
        channel: str = "whatsapp",
        base_url: str = TERMII_API_BASE,
        client: httpx.Client | None = None,
        timeout: float = 10.0,
    ) -> None:
        super().__init__(client=client, timeout=timeout)
        self._api_key = api_key or ""
        self._sender_id = sender_id or ""
        self._channel = channel
        self._base_url = base_url.rstrip("/")

    @property
    def is_configured(self) -> bool:
        return bool(self._api_key and self._sender_id)

    def _request(self, phone: str, message: str) -> httpx.Response:
        return self._client.post(
            f"{self._base_url}/api/sms/send",
            json={
                "api_key": self._api_key,
                "to": format_nigerian_phone(phone),
                "from": self._sender_id,
                "sms": message,
                "type": "plain",
                "channel": self._channel,
            },
        )


class TwilioSmsSender(HttpSender):
    name = "twilio"

    def __init__(
        self,
        *,
        account_sid: str | None,
        auth_token: str | None,
        from_number: str | None,
        base_url: str = TWILIO_API_BASE,
        client: httpx.Client | None = None,
        timeout: float = 10.0,
    ) -> None:
        super().__init__(client=client, timeout=timeout)
        self._account_sid = account_sid or ""
        self._auth_token = auth_token or ""
        self._from_number = from_number or ""
        self._base_url = base_url.rstrip("/")

    @property
    def is_configured(self) -> bool:
        return bool(self._account_sid and self._auth_token and self._from_number)

    def _request(self, phone: str, message: str) -> httpx.Response:
        return self._client.post(
            f"{self._base_url}/2010-04-01/Accounts/{self._account_sid}/Messages.json",
            auth=(self._account_sid, self._auth_token),
            data={"To": format_e164_default_us(phone), "From": self._from_number, "Body": message},
        )


def build_sender(settings: Settings, *, client: httpx.Client | None = None) -> NotificationSender:
    """Pick the configured provider (log-only when none is set)."""
    timeout = settings.notification_timeout_seconds
    provider = settings.notification_provider
    if provider == "whatsapp":
        return WhatsAppCloudSender(
            access_token=settings.whatsapp_access_token,
            phone_number_id=settings.whatsapp_phone_number_id,
            client=client,
            timeout=timeout,
        )
    if provider == "termii":
        return TermiiSender(
            api_key=settings.termii_api_key,
            sender_id=settings.termii_sender_id,
            channel=settings.termii_channel,
            client=client,
            timeout=timeout,
        )
    if provider == "twilio":
        return TwilioSmsSender(
            account_sid=settings.twilio_account_sid,
            auth_token=settings.twilio_auth_token,
            from_number=settings.twilio_from_number,
            client=client,
            timeout=timeout,
        )
    return LogOnlySender()


# -------------------- best-effort boundary --------------------


@dataclass(frozen=True)
class NotificationRecord:
    kind: MessageKind
    phone: str
    message: str
    delivered: bool
    sent_at: datetime = field(default_factory=utc_now)


class Notifier:
    """Renders queue messages and sends them without ever raising."""

    def __init__(self, sender: NotificationSender, *, history_size: int = 200) -> None:
        self.sender = sender
        self._lock = threading.Lock()
        self._history: deque[NotificationRecord] = deque(maxlen=history_size)

    @property
    def history(self) -> list[NotificationRecord]:
        with self._lock:
            return list(self._history)

    def close(self) -> None:
        self.sender.close()

    def queue_confirmation(self, phone: str, salon_name: str, position: int, estimated_wait: int) -> bool:
        message = queue_confirmation_message(salon_name, position, estimated_wait)
        return self.dispatch(MessageKind.QUEUE_CONFIRMATION, phone, message)

    def queue_alert(self, phone: str, salon_name: str, position: int) -> bool:
        return self.dispatch(MessageKind.QUEUE_ALERT, phone, queue_alert_message(salon_name, position))

    def next_in_line(self, phone: str, salon_name: str) -> bool:
        return self.dispatch(MessageKind.NEXT_IN_LINE, phone, next_in_line_message(salon_name))

    def dispatch(self, kind: MessageKind, phone: str, message: str) -> bool:
        delivered = False
        try:
            delivered = bool(self.sender.send(phone, message))
            if not delivered:
                logger.warning("%s notification to %s was not delivered", kind.value, phone)
        except NotificationError as e:
            logger.warning("%s notification to %s failed: %s", kind.value, phone, e)
        except Exception:
            logger.exception("%s notification to %s raised", kind.value, phone)

        with self._lock:
            self._history.append(NotificationRecord(kind=kind, phone=phone, message=message, delivered=delivered))
        return delivered
