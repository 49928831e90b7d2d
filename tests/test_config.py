from walkin_queue.config import Settings


def test_defaults():
    settings = Settings(_env_file=None)
    assert settings.average_service_minutes == 20
    assert settings.notification_provider == "none"
    assert settings.termii_channel == "whatsapp"


def test_environment_overrides(monkeypatch):
    monkeypatch.setenv("WALKIN_AVERAGE_SERVICE_MINUTES", "15")
    monkeypatch.setenv("WALKIN_NOTIFICATION_PROVIDER", "whatsapp")
    monkeypatch.setenv("WALKIN_WHATSAPP_ACCESS_TOKEN", "tok")

    settings = Settings(_env_file=None)
    assert settings.average_service_minutes == 15
    assert settings.notification_provider == "whatsapp"
    assert settings.whatsapp_access_token == "tok"
