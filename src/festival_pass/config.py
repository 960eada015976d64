"""Configuration management for the festival pass box office."""

from pydantic import Field
from pydantic_settings import BaseSettings, SettingsConfigDict


class Settings(BaseSettings):
    """Application settings loaded from environment variables."""

    # Database
    database_url: str = Field(
        default="sqlite:///./festival_pass.db",
        description="SQLAlchemy connection URL",
    )
    lock_timeout_seconds: float = Field(
        default=5.0, description="How long a write unit waits for the store lock"
    )

    # Application
    debug: bool = False
    environment: str = "development"
    log_level: str = "INFO"
    log_json: bool = True
    expose_internal_errors: bool = Field(
        default=False, description="Include store error text in error payloads"
    )

    # Card signing
    card_signing_secret: str | None = Field(
        default=None, description="Hex encoded HMAC key for card tokens"
    )
    card_prefix: str = "UMA25"
    default_card_validity_days: int = 365
    expiring_soon_days: int = 30

    # Box office
    annulment_window_days: int = 7
    default_register_id: str = "cassa1"

    model_config = SettingsConfigDict(
        env_file=".env",
        env_file_encoding="utf-8",
        case_sensitive=False,
        env_nested_delimiter="__",
    )


# Global settings instance
settings = Settings()
