"""
Configuration Management for Finance Tracker

Uses pydantic-settings for type-safe configuration from environment variables.

DESIGN DECISION: All configuration is centralized here.
Ledger preferences (currency, rates, budget) are NOT configuration;
they live in the persisted LedgerSettings record and are edited by the user.
"""

from functools import lru_cache
from pathlib import Path

from pydantic import Field, field_validator
from pydantic_settings import BaseSettings, SettingsConfigDict


class AppSettings(BaseSettings):
    """
    Main application settings.
    
    Loads configuration from FINANCE_TRACKER_* environment variables
    and an optional .env file.
    """
    
    model_config = SettingsConfigDict(
        env_prefix="FINANCE_TRACKER_",
        env_file=".env",
        env_file_encoding="utf-8",
        extra="ignore"
    )
    
    # Storage
    storage_backend: str = Field(
        default="file",
        pattern="^(file|memory)$",
        description="Key-value substrate: a JSON file on disk or process memory"
    )
    storage_path: str = Field(
        default=".finance_tracker/storage.json",
        description="Path of the JSON file used by the file backend"
    )
    key_prefix: str = Field(
        default="financeTracker",
        min_length=1,
        description="Prefix for the transactions/settings/version keys"
    )
    data_version: str = Field(
        default="1.0.0",
        pattern=r"^\d+\.\d+\.\d+$",
        description="Version marker written with every transaction save"
    )
    
    # Interactive search
    search_debounce_ms: int = Field(
        default=300,
        ge=0,
        le=5000,
        description="Settle delay before a search pattern is evaluated"
    )
    
    # Logging
    log_level: str = Field(
        default="INFO",
        description="Log level name for the structlog/stdlib pipeline"
    )
    log_json: bool = Field(
        default=True,
        description="Render log lines as JSON (False uses the console renderer)"
    )
    
    @field_validator('log_level')
    @classmethod
    def normalize_log_level(cls, v: str) -> str:
        """Accept any case, reject unknown level names."""
        level = v.strip().upper()
        if level not in {"DEBUG", "INFO", "WARNING", "ERROR", "CRITICAL"}:
            raise ValueError(f"Unknown log level: {v}")
        return level
    
    @property
    def storage_file(self) -> Path:
        """Storage path as a Path."""
        return Path(self.storage_path).expanduser()
    
    @property
    def search_debounce_seconds(self) -> float:
        """Debounce delay in seconds."""
        return self.search_debounce_ms / 1000.0


@lru_cache()
def get_settings() -> AppSettings:
    """
    Get application settings (cached).
    
    Uses LRU cache to ensure settings are only loaded once.
    Call get_settings.cache_clear() to reload if needed.
    """
    return AppSettings()
