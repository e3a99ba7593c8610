"""Canonical configuration surface for satsflow-core."""
from __future__ import annotations

from functools import lru_cache
from pathlib import Path
from typing import Literal, Optional

from pydantic import field_validator
from pydantic_settings import BaseSettings, SettingsConfigDict

from .constants import Intervals, Limits, Timeouts


class SatsflowSettings(BaseSettings):
    """Main satsflow configuration."""

    model_config = SettingsConfigDict(
        env_prefix="SATSFLOW_",
        env_file=".env",
        extra="ignore",
    )

    # Environment
    environment: Literal["dev", "test", "prod"] = "dev"

    # Logging
    log_level: str = "INFO"
    log_json: bool = True
    log_file: Optional[str] = None

    # Durable state (settings + conversation snapshot)
    data_dir: Path = Path("./data")

    # Orchestrator
    refill_cooldown_seconds: float = Intervals.AUTO_REFILL_COOLDOWN
    balance_check_interval_seconds: float = Intervals.BALANCE_CHECK

    # NWC payment executor
    nwc_poll_attempts: int = Limits.NWC_MAX_POLLS
    nwc_poll_interval_seconds: float = Intervals.NWC_POLL

    # Persistence batcher
    persist_debounce_seconds: float = Intervals.PERSIST_DEBOUNCE

    # Credential top-up endpoint
    topup_timeout_seconds: float = Timeouts.TOPUP_HTTP

    @field_validator("log_level", mode="before")
    @classmethod
    def normalize_log_level(cls, v: str) -> str:
        level = str(v or "INFO").strip().upper()
        if level not in ("DEBUG", "INFO", "WARNING", "ERROR", "CRITICAL"):
            raise ValueError(f"unknown log level: {v}")
        return level

    @field_validator(
        "refill_cooldown_seconds",
        "nwc_poll_interval_seconds",
        "persist_debounce_seconds",
        "topup_timeout_seconds",
    )
    @classmethod
    def require_positive(cls, v: float) -> float:
        if v <= 0:
            raise ValueError("must be greater than zero")
        return v

    @field_validator("balance_check_interval_seconds")
    @classmethod
    def require_non_negative(cls, v: float) -> float:
        if v < 0:
            raise ValueError("must not be negative")
        return v

    @field_validator("nwc_poll_attempts")
    @classmethod
    def require_attempt_budget(cls, v: int) -> int:
        if v < 1:
            raise ValueError("at least one poll attempt is required")
        return v

    @property
    def settings_dir(self) -> Path:
        return self.data_dir / "settings"

    @property
    def conversations_path(self) -> Path:
        return self.data_dir / "conversations.json"


@lru_cache
def load_settings(env_file: str | None = None) -> SatsflowSettings:
    """Load SatsflowSettings once per process to keep components consistent."""
    env_path = Path(env_file) if env_file else None
    return SatsflowSettings(_env_file=env_path)
