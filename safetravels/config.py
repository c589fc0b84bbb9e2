"""
safetravels/config.py — Pydantic BaseSettings configuration
All values come from the environment or a local .env file.
Invalid values surface as ConfigurationError at startup.
"""
from __future__ import annotations

from functools import lru_cache
from typing import Optional

from pydantic import ValidationError, field_validator
from pydantic_settings import BaseSettings, SettingsConfigDict

from safetravels.core.errors import ConfigurationError
from safetravels.core.tag_catalog import DEFAULT_TAGS


class Settings(BaseSettings):
    model_config = SettingsConfigDict(
        env_file=".env",
        env_file_encoding="utf-8",
        case_sensitive=False,
        extra="ignore",
    )

    # ── Application ────────────────────────────────────────────────────────────
    environment: str = "development"
    log_level: str = "INFO"
    port: int = 8000

    # ── Report storage ─────────────────────────────────────────────────────────
    reports_file: str = "data/safety_reports.json"

    # ── Submission throttle (fixed window, per network identity) ──────────────
    rate_limit_window_seconds: float = 3600.0
    rate_limit_quota: int = 3
    # 0 disables the background pruning thread
    rate_limit_prune_interval_seconds: float = 600.0

    # ── Network identity ──────────────────────────────────────────────────────
    # Header holding the client address when running behind a trusted proxy,
    # e.g. "X-Forwarded-For". None means use the socket peer address.
    trusted_proxy_header: Optional[str] = None
    # What to do when no origin can be determined: "reject" or "shared"
    missing_identity_policy: str = "reject"

    # ── Report content ────────────────────────────────────────────────────────
    allowed_tags: list[str] = list(DEFAULT_TAGS)
    max_comment_length: int = 280

    @field_validator("environment")
    @classmethod
    def validate_env(cls, v: str) -> str:
        allowed = {"development", "production", "testing"}
        if v not in allowed:
            raise ValueError(f"environment must be one of {allowed}")
        return v

    @field_validator("rate_limit_window_seconds")
    @classmethod
    def validate_window(cls, v: float) -> float:
        if v <= 0:
            raise ValueError("rate_limit_window_seconds must be positive")
        return v

    @field_validator("rate_limit_quota")
    @classmethod
    def validate_quota(cls, v: int) -> int:
        if v < 1:
            raise ValueError("rate_limit_quota must be at least 1")
        return v

    @field_validator("rate_limit_prune_interval_seconds")
    @classmethod
    def validate_prune_interval(cls, v: float) -> float:
        if v < 0:
            raise ValueError("rate_limit_prune_interval_seconds cannot be negative")
        return v

    @field_validator("missing_identity_policy")
    @classmethod
    def validate_identity_policy(cls, v: str) -> str:
        allowed = {"reject", "shared"}
        if v not in allowed:
            raise ValueError(f"missing_identity_policy must be one of {allowed}")
        return v

    @field_validator("max_comment_length")
    @classmethod
    def validate_comment_length(cls, v: int) -> int:
        if v < 0:
            raise ValueError("max_comment_length cannot be negative")
        return v

    @property
    def is_production(self) -> bool:
        return self.environment == "production"

    @property
    def is_development(self) -> bool:
        return self.environment == "development"


def load_settings(**overrides) -> Settings:
    """Build Settings, converting pydantic validation failures to ConfigurationError."""
    try:
        return Settings(**overrides)
    except ValidationError as exc:
        raise ConfigurationError(f"Invalid configuration: {exc}") from exc


@lru_cache()
def get_settings() -> Settings:
    """Return cached Settings instance. Use this everywhere."""
    return load_settings()
