import sys

import pytest

from walkin_queue import barber


@pytest.fixture
def sent(monkeypatch):
    calls = []

    def fake_request(**kwargs):
        calls.append(kwargs)
        return {"type": "barber_updated", "barber_id": "b1", "walk_in_enabled": True, "is_available": False}

    monkeypatch.setattr(barber, "barber_request", fake_request)
    return calls


def run_barber(monkeypatch, *argv):
    monkeypatch.setattr(sys, "argv", ["barber", "--barber-id", "b1", *argv])
    barber.main()


def test_available_off_sends_set_available(monkeypatch, sent, capsys):
    run_barber(monkeypatch, "available", "off")

    (call,) = sent
    assert call["barber_id"] == "b1"
    assert call["message"] == {"type": "set_available", "available": False}
    assert "walk-ins open, away" in capsys.readouterr().out


def test_walk_ins_on_sends_set_walk_in(monkeypatch, sent):
    run_barber(monkeypatch, "walk-ins", "on")

    assert sent[0]["message"] == {"type": "set_walk_in", "enabled": True}
