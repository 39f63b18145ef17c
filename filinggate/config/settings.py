"""
Settings - Application configuration using Pydantic Settings.

Loads from environment variables and .env files.
"""

from __future__ import annotations

from functools import lru_cache
from pathlib import Path

from pydantic_settings import BaseSettings, SettingsConfigDict


class Settings(BaseSettings):
    """Application settings."""

    # Paths
    data_dir: Path = Path("data")
    db_path: Path = Path("data/filinggate.db")

    # Provider calls
    provider_timeout_seconds: float = 300.0

    # Quality heuristics (business tuning constants)
    min_chars_per_page: int = 200
    fallback_page_coverage: float = 0.8
    fallback_text_coverage: float = 0.6
    top_code_count: int = 10

    # Google Document AI (primary provider)
    # Leave google_access_token empty to use Application Default Credentials
    documentai_project_id: str = ""
    documentai_location: str = "eu"
    documentai_processor_id: str = ""
    google_access_token: str = ""

    # Azure Document Intelligence (fallback provider)
    azure_di_endpoint: str = ""
    azure_di_key: str = ""
    azure_di_model: str = "prebuilt-layout"
    azure_di_api_version: str = "2023-07-31"
    azure_di_poll_interval_seconds: float = 2.0

    # Gemini (analysis model)
    gemini_model: str = "gemini-2.0-flash"
    gemini_rate_limit_rpm: int = 60
    analysis_max_tokens: int = 8192
    analysis_temperature: float = 0.2

    # Drive intake
    drive_download_retries: int = 3

    # API
    api_host: str = "0.0.0.0"
    api_port: int = 8000
    api_debug: bool = False

    # Logging
    log_level: str = "INFO"

    model_config = SettingsConfigDict(
        env_file=".env",
        env_file_encoding="utf-8",
        case_sensitive=False,
        extra="ignore",
    )

    @property
    def azure_configured(self) -> bool:
        """Fallback provider counts as configured only with endpoint and key."""
        return bool(self.azure_di_endpoint and self.azure_di_key)


@lru_cache
def get_settings() -> Settings:
    """Get cached settings instance."""
    return Settings()
