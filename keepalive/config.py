"""Keep-alive configuration — loaded from environment / .env file."""

from __future__ import annotations

from typing import Literal, get_args

from pydantic import field_validator
from pydantic_settings import BaseSettings

LogLevel = Literal["DEBUG", "INFO", "WARNING", "ERROR", "CRITICAL"]
LOG_LEVELS: tuple[str, ...] = get_args(LogLevel)


class Settings(BaseSettings):
    """Central configuration loaded from environment / .env file."""

    model_config = {"env_file": ".env", "env_file_encoding": "utf-8", "extra": "ignore"}

    # Targets
    fanfik_url: str = "https://fanfik.onrender.com"
    backup_urls: list[str] = [
        "https://fanfik-platform.onrender.com",
        "https://fanfik-app.onrender.com",
    ]

    # Schedule
    check_interval_ms: int = 4 * 60 * 1000 + 50 * 1000  # 4 min 50 s
    cron_step_minutes: int = 5  # */5 * * * *
    inter_probe_delay_ms: int = 1_000
    allow_overlapping_rounds: bool = True

    # Requests
    request_timeout_ms: int = 30_000
    fallback_timeout_ms: int = 15_000
    health_check_timeout_ms: int = 15_000
    user_agent: str = "FanFik-Keep-Alive/1.0"

    # Secondary health sub-check
    check_fics_api: bool = True
    app_marker: str = "fanfik"  # matched against the URL host
    health_check_path: str = "/api/fics"

    # Logging
    log_level: LogLevel = "INFO"
    log_to_file: bool = False
    log_file_path: str = "./keep-alive.log"
    stats_interval_minutes: int = 30

    # Notifications (optional — Slack / Telegram)
    notifications_enabled: bool = False
    min_success_rate: float = 80.0
    consecutive_errors: int = 3
    slack_webhook_url: str = ""
    telegram_bot_token: str = ""
    telegram_chat_id: str = ""

    @field_validator("log_level", mode="before")
    @classmethod
    def _upper_log_level(cls, v: object) -> object:
        return v.upper() if isinstance(v, str) else v

    def initial_urls(self) -> list[str]:
        """Primary URL first, then the backups, in configured order."""
        return [self.fanfik_url, *self.backup_urls]


settings = Settings()
