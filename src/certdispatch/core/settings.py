"""Configuration management using Pydantic Settings."""

from pathlib import Path
from typing import Literal

from pydantic import Field
from pydantic_settings import BaseSettings, SettingsConfigDict


class Settings(BaseSettings):
    """Application settings loaded from ``CERTDISPATCH_*`` environment variables."""

    model_config = SettingsConfigDict(
        env_prefix="CERTDISPATCH_",
        env_file=".env",
        env_file_encoding="utf-8",
        extra="ignore",
    )

    # Database; None means the store is not configured
    database_path: str | None = "data/certdispatch.db"

    # Certificate types the recovery pass may dispatch without an operator
    automatable_types: list[str] = Field(default_factory=lambda: ["http", "dns"])

    # Action queue
    queue_max_size: int = Field(default=100, ge=1)
    queue_workers: int = Field(default=2, ge=1)

    # Issuer
    issuer_command: str = "acme.sh"
    issuer_timeout: float = Field(default=300.0, gt=0)
    certificates_dir: Path = Path("data/certificates")
    acme_webroot: Path = Path("data/acme-challenge")

    # Logging
    log_level: Literal["DEBUG", "INFO", "WARNING", "ERROR"] = "INFO"
    log_format: Literal["json", "console"] = "console"


_settings: Settings | None = None


def get_settings() -> Settings:
    """Get or create settings instance."""
    global _settings
    if _settings is None:
        _settings = Settings()
    return _settings


def reset_settings() -> None:
    """Reset settings (for testing)."""
    global _settings
    _settings = None
