"""Configuration management for duo-ledger."""

from pathlib import Path

from pydantic_settings import BaseSettings, SettingsConfigDict

from .exceptions import ConfigurationError
from .models import Party


class Settings(BaseSettings):
    """Application settings loaded from environment variables."""

    model_config = SettingsConfigDict(
        env_file=".env",
        env_file_encoding="utf-8",
        case_sensitive=False,
        extra="ignore",
    )

    # Parties (display names only; ledger rows store Party.A / Party.B)
    party_a_name: str = "Party A"
    party_b_name: str = "Party B"

    # Single fixed ledger currency
    currency: str = "SGD"

    # Split rules
    split_rule_cache_ttl_seconds: float = 60.0

    # Database
    database_path: Path = Path.home() / ".duo_ledger" / "duo_ledger.db"
    db_busy_timeout_seconds: float = 5.0

    def __init__(self, **kwargs):
        """Initialize settings and create database directory if needed."""
        super().__init__(**kwargs)
        self.database_path.parent.mkdir(parents=True, exist_ok=True)

    def party_name(self, party: Party) -> str:
        """Display name for a Party."""
        return self.party_a_name if party is Party.A else self.party_b_name


def load_settings() -> Settings:
    """Load application settings from environment variables."""
    try:
        return Settings()
    except Exception as e:
        raise ConfigurationError(
            f"Failed to load settings. Check your environment and .env file.\n"
            f"Error: {e}"
        ) from e
