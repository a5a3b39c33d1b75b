# Runtime settings for the token exchange server.
# Created: 2026-02-20
#
# Values come from GRANTGATE_* environment variables or a local .env file.

from __future__ import annotations

from pathlib import Path

from pydantic import Field
from pydantic_settings import BaseSettings, SettingsConfigDict


class Settings(BaseSettings):
    """Token server configuration."""

    model_config = SettingsConfigDict(
        env_prefix="GRANTGATE_",
        env_file=".env",
        env_file_encoding="utf-8",
        extra="ignore",
    )

    # Token lifetimes (seconds). access_token_ttl=0 disables access token expiry.
    access_token_ttl: int = Field(default=3600, ge=0)
    code_ttl: int = Field(default=600, gt=0)
    issue_refresh_tokens: bool = True

    # Secure code scheme
    code_generation_attempts: int = Field(default=10, ge=1)
    token_bytes: int = Field(default=32, ge=16)
    bcrypt_rounds: int = Field(default=12, ge=4, le=31)

    # Structured (JWT) bearer tokens
    jwt_secret: str | None = None
    jwt_algorithm: str = "HS256"

    # JSON file mirroring registered clients and grants; in-memory only if unset
    storage_path: Path | None = None

    log_level: str = "INFO"
    host: str = "127.0.0.1"
    port: int = 8787

    @classmethod
    def load(cls) -> Settings:
        """Read settings from the environment."""
        return cls()


_settings: Settings | None = None


def get_settings() -> Settings:
    global _settings
    if _settings is None:
        _settings = Settings.load()
    return _settings


def reset_settings() -> None:
    """Reset singleton (for testing)."""
    global _settings
    _settings = None
