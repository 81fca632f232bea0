"""Configuration management for the sync and matching pipelines."""

from typing import Optional

from pydantic import ValidationError
from pydantic_settings import BaseSettings, SettingsConfigDict


class Config(BaseSettings):
    """Application configuration from environment variables."""

    # Required
    supabase_url: str
    supabase_key: str

    # 360Giving
    threesixty_base_url: str = "https://api.threesixtygiving.org/api/v1"
    rate_limit_interval_seconds: float = 0.5

    # Scoring service (only needed for matching)
    anthropic_api_key: Optional[str] = None
    anthropic_model: str = "claude-sonnet-4-5-20250929"
    anthropic_max_tokens: int = 8000
    anthropic_temperature: float = 0.3

    # Matching / cache
    cache_ttl_days: int = 7
    default_currency: str = "GBP"

    # Sync defaults
    sync_max_organisations: int = 50
    sync_max_grants: int = 500

    log_level: str = "INFO"

    model_config = SettingsConfigDict(env_file=".env", case_sensitive=False, extra="ignore")


def validate_config() -> Config:
    """Load configuration from the environment.

    Every missing required variable is named in a single ValueError.
    """
    try:
        return Config()  # type: ignore[call-arg]
    except ValidationError as exc:
        missing = [
            str(error["loc"][0]).upper()
            for error in exc.errors()
            if error["type"] == "missing" and error["loc"]
        ]
        if not missing:
            raise
        raise ValueError(
            f"Missing required environment variable(s): {', '.join(missing)}. "
            "Set them in the environment or in a .env file."
        ) from exc


def load_config() -> Config:
    """Startup entry point used by the CLI."""
    return validate_config()
