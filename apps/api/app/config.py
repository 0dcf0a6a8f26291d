"""Application configuration utilities."""
from __future__ import annotations

import json
import os
from pathlib import Path
from typing import Any, Dict, Optional
from zoneinfo import ZoneInfo, ZoneInfoNotFoundError

from pydantic import BaseModel, Field, field_validator

_ENV_FALLBACKS = {
    "openai_api_key": "OPENAI_API_KEY",
    "openai_model": "OPENAI_MODEL",
    "reminders_enabled": "REMINDERS_ENABLED",
    "reminder_timezone": "REMINDER_TIMEZONE",
    "smtp_host": "SMTP_HOST",
    "smtp_port": "SMTP_PORT",
    "smtp_username": "EMAIL_USER",
    "smtp_password": "EMAIL_PASSWORD",
    "app_base_url": "APP_BASE_URL",
    "admin_email": "ADMIN_EMAIL",
}


class AppConfig(BaseModel):
    """Strongly typed configuration loaded from config.json."""

    openai_api_key: Optional[str] = Field(default=None)
    openai_model: str = Field(default="gpt-4o-mini")

    reminders_enabled: bool = Field(default=True)
    reminder_horizon_days: int = Field(default=3, ge=0)
    reminder_interval_seconds: int = Field(default=3600, ge=1)
    reminder_timezone: str = Field(default="UTC")

    smtp_host: str = Field(default="smtp.gmail.com")
    smtp_port: int = Field(default=465)
    smtp_username: Optional[str] = Field(default=None)
    smtp_password: Optional[str] = Field(default=None)
    email_from_name: str = Field(default="BabyTrack - Vaccine Reminder")

    app_base_url: str = Field(default="http://localhost:3000")
    admin_email: Optional[str] = Field(default=None)

    @field_validator("reminder_timezone")
    @classmethod
    def _known_timezone(cls, value: str) -> str:
        try:
            ZoneInfo(value)
        except (ZoneInfoNotFoundError, ValueError) as exc:
            raise ValueError(f"Unknown IANA timezone: {value!r}") from exc
        return value


def _config_path() -> Path:
    return Path(__file__).resolve().parents[1] / "config.json"


def load_config(path: Optional[Path] = None) -> AppConfig:
    """Load configuration from config.json, filling unset keys from the environment."""

    config_file = path or _config_path()
    contents: Dict[str, Any] = {}
    if config_file.exists():
        contents = json.loads(config_file.read_text())
    for key, env_name in _ENV_FALLBACKS.items():
        if contents.get(key) is not None:
            continue
        value = os.getenv(env_name)
        if value:
            contents[key] = value
    return AppConfig(**contents)


CONFIG = load_config()
