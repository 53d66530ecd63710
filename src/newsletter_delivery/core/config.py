"""
Service Configuration

Centralized configuration read from the environment (and `.env`).
"""

import os
from typing import List, Optional

from dotenv import load_dotenv
from pydantic import BaseModel, Field

# Load environment variables from .env file
load_dotenv()


def _env_bool(name: str, default: str = "false") -> bool:
    return os.getenv(name, default).lower() == "true"


class RetryPolicy(BaseModel):
    """
    Delivery retry policy.

    `max_attempts` counts failed attempts; a task that fails this many
    times becomes terminal. Backoff after attempt n is
    `min(max_delay, base * 2**n)`, shortened by up to `jitter` of itself.
    """

    max_attempts: int = Field(default=5, ge=1)
    base_delay_seconds: float = Field(default=5.0, ge=0)
    max_delay_seconds: float = Field(default=300.0, ge=0)
    jitter: float = Field(default=0.2, ge=0, le=1)


class Settings:
    """Configuration for the newsletter delivery service."""

    def __init__(self):
        # Delivery queue
        self.retry_policy = RetryPolicy(
            max_attempts=int(os.getenv("DELIVERY_MAX_ATTEMPTS", "5")),
            base_delay_seconds=float(os.getenv("DELIVERY_BACKOFF_BASE_SECONDS", "5")),
            max_delay_seconds=float(os.getenv("DELIVERY_BACKOFF_MAX_SECONDS", "300")),
            jitter=float(os.getenv("DELIVERY_BACKOFF_JITTER", "0.2")),
        )
        self.lease_seconds: float = float(os.getenv("DELIVERY_LEASE_SECONDS", "120"))

        # Dispatcher
        self.workers: int = int(os.getenv("DELIVERY_WORKERS", "4"))
        self.idle_interval: float = float(os.getenv("DELIVERY_IDLE_INTERVAL", "1.0"))
        self.send_timeout: float = float(os.getenv("DELIVERY_SEND_TIMEOUT", "30"))
        self.skip_unsubscribed: bool = _env_bool("DELIVERY_SKIP_UNSUBSCRIBED")
        self.run_in_process: bool = _env_bool("DELIVERY_RUN_IN_PROCESS")

        # Email API
        self.email_base_url: str = os.getenv("EMAIL_API_BASE_URL", "https://api.postmarkapp.com")
        self.email_sender: str = os.getenv("EMAIL_SENDER", "newsletter@example.com")
        self.email_auth_token: str = os.getenv("EMAIL_AUTH_TOKEN", "")
        self.email_timeout: float = float(os.getenv("EMAIL_TIMEOUT_SECONDS", "10"))

        # Idempotency
        self.idempotency_retention_hours: int = int(os.getenv("IDEMPOTENCY_RETENTION_HOURS", "48"))

        # Observability
        self.log_level: str = os.getenv("LOG_LEVEL", "INFO").upper()
        self.log_structured: bool = _env_bool("LOG_STRUCTURED", "true")
        self.otlp_endpoint: Optional[str] = os.getenv("OTEL_EXPORTER_OTLP_ENDPOINT") or None

    def validate(self) -> List[str]:
        """Validate configuration and return list of issues."""
        issues = []

        if not self.email_auth_token:
            issues.append("WARNING: No email API token configured (EMAIL_AUTH_TOKEN)")

        if self.lease_seconds <= self.send_timeout:
            issues.append(
                "ERROR: DELIVERY_LEASE_SECONDS must exceed DELIVERY_SEND_TIMEOUT, "
                "otherwise a slow send can be reclaimed while still in flight"
            )

        if self.workers < 1:
            issues.append("ERROR: DELIVERY_WORKERS must be at least 1")

        if self.retry_policy.max_delay_seconds < self.retry_policy.base_delay_seconds:
            issues.append("WARNING: DELIVERY_BACKOFF_MAX_SECONDS is below the base delay")

        return issues


_settings: Optional[Settings] = None


def get_settings() -> Settings:
    global _settings
    if _settings is None:
        _settings = Settings()
    return _settings


def reset_settings() -> None:
    """Drop the cached settings (for testing)."""
    global _settings
    _settings = None
