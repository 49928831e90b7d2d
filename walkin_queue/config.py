"""
Service configuration using Pydantic Settings.
Loads from WALKIN_* environment variables and a .env file.

MQTT connection details are command-line flags (see `app.py`); this covers
what should not end up in a shell history: provider credentials.
"""

from functools import lru_cache
from typing import Literal, Optional

from pydantic_settings import BaseSettings, SettingsConfigDict


class Settings(BaseSettings):
    """Settings for the walk-in queue service."""

    model_config = SettingsConfigDict(
        env_prefix="WALKIN_",
        env_file=".env",
        env_file_encoding="utf-8",
        case_sensitive=False,
        extra="ignore",
    )

    # Queue
    average_service_minutes: int = 20

    # Logging
    log_level: str = "INFO"

    # Notifications
    notification_provider: Literal["none", "whatsapp", "termii", "twilio"] = "none"
    notification_timeout_seconds: float = 10.0
    notification_history_size: int = 200

    # WhatsApp Cloud API
    whatsapp_access_token: Optional[str] = None
    whatsapp_phone_number_id: Optional[str] = None

    # Termii (WhatsApp / SMS gateway)
    termii_api_key: Optional[str] = None
    termii_sender_id: Optional[str] = None
    termii_channel: str = "whatsapp"

    # Twilio SMS
    twilio_account_sid: Optional[str] = None
    twilio_auth_token: Optional[str] = None
    twilio_from_number: Optional[str] = None


@lru_cache
def get_settings() -> Settings:
    """Get cached settings instance."""
    return Settings()
