import json

import httpx
import pytest

from walkin_queue.config import Settings
from walkin_queue.errors import NotificationError
from walkin_queue.notifications import (
    LogOnlySender,
    MessageKind,
    Notifier,
    TermiiSender,
    TwilioSmsSender,
    WhatsAppCloudSender,
    build_sender,
    format_nigerian_phone,
)


def mock_client(status=200, calls=None, exc=None):
    def handler(request):
        if calls is not None:
            calls.append(request)
        if exc is not None:
            raise exc
        return httpx.Response(status, json={"ok": status < 400})

    return httpx.Client(transport=httpx.MockTransport(handler))


def test_format_nigerian_phone():
    assert format_nigerian_phone("0803 000 0001") == "2348030000001"
    assert format_nigerian_phone("+234-803-000-0001") == "2348030000001"


def test_whatsapp_posts_text_message():
    calls = []
    sender = WhatsAppCloudSender(access_token="tok", phone_number_id="123", client=mock_client(calls=calls))

    assert sender.send("+234 800 000 0001", "hello") is True

    (request,) = calls
    assert request.url.path.endswith("/123/messages")
    assert request.headers["Authorization"] == "Bearer tok"
    body = json.loads(request.content)
    assert body["to"] == "2348000000001"
    assert body["text"] == {"body": "hello"}


def test_termii_payload():
    calls = []
    sender = TermiiSender(api_key="key", sender_id="Salon", channel="generic", client=mock_client(calls=calls))

    assert sender.send("08030000001", "hi") is True

    body = json.loads(calls[0].content)
    assert body["to"] == "2348030000001"
    assert body["from"] == "Salon"
    assert body["channel"] == "generic"
    assert body["api_key"] == "key"


def test_twilio_uses_form_and_basic_auth():
    calls = []
    sender = TwilioSmsSender(account_sid="AC1", auth_token="secret", from_number="+15550000", client=mock_client(calls=calls))

    assert sender.send("5551234", "hi") is True

    request = calls[0]
    assert request.url.path == "/2010-04-01/Accounts/AC1/Messages.json"
    assert request.headers["Authorization"].startswith("Basic ")
    assert b"To=%2B15551234" in request.content


def test_unconfigured_sender_returns_false_without_request():
    calls = []
    sender = WhatsAppCloudSender(access_token=None, phone_number_id=None, client=mock_client(calls=calls))
    assert sender.send("+1", "hi") is False
    assert calls == []


def test_rejected_message_returns_false():
    sender = WhatsAppCloudSender(access_token="t", phone_number_id="1", client=mock_client(status=400))
    assert sender.send("+1", "hi") is False


def test_transport_error_raises_notification_error():
    sender = WhatsAppCloudSender(
        access_token="t", phone_number_id="1", client=mock_client(exc=httpx.ConnectError("refused"))
    )
    with pytest.raises(NotificationError):
        sender.send("+1", "hi")


def test_notifier_absorbs_failures_and_records_history():
    sender = WhatsAppCloudSender(
        access_token="t", phone_number_id="1", client=mock_client(exc=httpx.ConnectError("refused"))
    )
    notifier = Notifier(sender, history_size=2)

    assert notifier.queue_alert("+1", "Fade Lab", 1) is False
    assert notifier.next_in_line("+1", "Fade Lab") is False
    assert notifier.queue_confirmation("+1", "Fade Lab", 3, 60) is False

    kinds = [r.kind for r in notifier.history]
    assert kinds == [MessageKind.NEXT_IN_LINE, MessageKind.QUEUE_CONFIRMATION]
    assert "~60 minutes" in notifier.history[-1].message


def test_build_sender_from_settings():
    assert isinstance(build_sender(Settings(_env_file=None)), LogOnlySender)

    settings = Settings(_env_file=None, notification_provider="termii", termii_api_key="k", termii_sender_id="S")
    sender = build_sender(settings, client=mock_client())
    assert isinstance(sender, TermiiSender)
    assert sender.is_configured


def test_notifier_close_releases_http_client():
    client = mock_client()
    notifier = Notifier(TwilioSmsSender(account_sid="AC1", auth_token="t", from_number="+1", client=client))

    notifier.close()
    assert client.is_closed

    Notifier(LogOnlySender()).close()
