"""Router configuration using pydantic-settings.

Settings are read from environment variables (no prefix, so the usual
GITHUB_WEBHOOK_SECRET / GITHUB_TOKEN names apply) and from a ``.env``
file in the working directory if present.

Only the webhook secret is required. Without GITHUB_TOKEN the router
still verifies and dispatches deliveries; handlers just skip their API
calls.
"""

import logging
from typing import List, Optional

from pydantic import ValidationError, field_validator
from pydantic_settings import BaseSettings, SettingsConfigDict

from .events.emitter import EventSinkType
from .webhook.errors import ConfigurationError


class RouterSettings(BaseSettings):
    """Webhook router configuration from environment variables.

    Required fields:
    - github_webhook_secret: Shared secret for X-Hub-Signature-256 checks
    """

    model_config = SettingsConfigDict(
        env_file=".env",
        case_sensitive=False,
        extra="ignore",
    )

    # -------------------------------------------------------------------------
    # GitHub Configuration
    # -------------------------------------------------------------------------
    # Shared secret configured on the GitHub webhook
    github_webhook_secret: str

    # API token for labels, comments and workflow dispatches
    github_token: Optional[str] = None

    # Base URL for GitHub API (supports GitHub Enterprise)
    github_base_url: str = "https://api.github.com"

    # -------------------------------------------------------------------------
    # Dispatch Configuration
    # -------------------------------------------------------------------------
    # Per-delivery handler deadline; 0 disables it
    handler_timeout_seconds: float = 10.0

    # How long a delivery id is remembered for deduplication; 0 disables it
    dedup_ttl_seconds: float = 0.0

    # Where delivery events go, as a JSON list, e.g. EVENT_SINKS='["logging"]'
    event_sinks: List[EventSinkType] = [EventSinkType.LOGGING, EventSinkType.METRICS]

    # -------------------------------------------------------------------------
    # Server Configuration
    # -------------------------------------------------------------------------
    host: str = "0.0.0.0"
    port: int = 3000
    log_level: str = "INFO"

    # -------------------------------------------------------------------------
    # Validators
    # -------------------------------------------------------------------------
    @field_validator("github_webhook_secret")
    @classmethod
    def validate_webhook_secret(cls, v: str) -> str:
        """Validate that webhook secret is not empty."""
        if not v or not v.strip():
            raise ValueError("github_webhook_secret cannot be empty")
        return v

    @field_validator("github_token")
    @classmethod
    def normalize_github_token(cls, v: Optional[str]) -> Optional[str]:
        """Treat a blank token as not configured."""
        if v is None or not v.strip():
            return None
        return v

    @field_validator("github_base_url")
    @classmethod
    def validate_github_base_url(cls, v: str) -> str:
        if not v.startswith(("http://", "https://")):
            raise ValueError("github_base_url must start with http:// or https://")
        return v.rstrip("/")

    @field_validator("handler_timeout_seconds", "dedup_ttl_seconds")
    @classmethod
    def validate_non_negative(cls, v: float) -> float:
        if v < 0:
            raise ValueError("must be zero or positive")
        return v

    @field_validator("port")
    @classmethod
    def validate_port(cls, v: int) -> int:
        """Validate that port is in valid range."""
        if not 1 <= v <= 65535:
            raise ValueError("port must be between 1 and 65535")
        return v

    @field_validator("log_level")
    @classmethod
    def validate_log_level(cls, v: str) -> str:
        level = v.upper()
        if not isinstance(logging.getLevelName(level), int):
            raise ValueError(f"unknown log level: {v}")
        return level


def get_settings() -> RouterSettings:
    """Create and return a RouterSettings instance.

    Raises:
        pydantic.ValidationError: If required fields are missing or invalid.
    """
    return RouterSettings()


def load_settings() -> RouterSettings:
    """Load settings, reporting invalid configuration as ConfigurationError.

    Raises:
        ConfigurationError: If the environment does not hold a valid
            configuration. The message lists the offending fields.
    """
    try:
        return get_settings()
    except ValidationError as e:
        fields = ", ".join(
            ".".join(str(part) for part in error["loc"]) for error in e.errors()
        )
        raise ConfigurationError(f"Invalid configuration: {fields}") from e
