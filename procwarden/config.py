"""Centralized runtime settings loaded from environment variables."""

from __future__ import annotations

import signal
from typing import Optional

from pydantic import field_validator
from pydantic_settings import BaseSettings, SettingsConfigDict


class Settings(BaseSettings):
    """Runtime settings sourced from .env / environment."""

    model_config = SettingsConfigDict(
        env_file=".env",
        env_file_encoding="utf-8",
        case_sensitive=False,
        extra="ignore",
    )

    # ── General ──────────────────────────────────────────────────────
    procwarden_env: str = "development"
    procwarden_log_level: str = "INFO"

    # ── Config file ──────────────────────────────────────────────────
    config_file: str = "procwarden.yaml"
    default_pidfile: str = "proc.pid"
    default_workdir: str = "."
    default_allow: int = 5

    # ── Polling ──────────────────────────────────────────────────────
    poll_interval: float = 0.2       # seconds between liveness probes
    wait_timeout: float = 30.0       # <= 0 waits forever

    # ── Stopping ─────────────────────────────────────────────────────
    kill_signal: str = "KILL"

    @field_validator("kill_signal")
    @classmethod
    def _normalize_signal(cls, value: str) -> str:
        name = value.strip().upper()
        if name.startswith("SIG"):
            name = name[3:]
        if not hasattr(signal, f"SIG{name}"):
            raise ValueError(f"unknown signal: {value}")
        return name

    # ── Derived ──────────────────────────────────────────────────────
    @property
    def signal_number(self) -> int:
        """Return the numeric value of the configured kill signal."""
        return int(getattr(signal, f"SIG{self.kill_signal}"))

    @property
    def is_production(self) -> bool:
        return self.procwarden_env == "production"


_settings: Optional[Settings] = None


def get_settings() -> Settings:
    """Return the singleton Settings instance."""
    global _settings
    if _settings is None:
        _settings = Settings()
    return _settings
