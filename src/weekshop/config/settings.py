"""Configuration settings for WeekShop."""
from functools import lru_cache
from pathlib import Path
from typing import Optional
from pydantic import field_validator
from pydantic_settings import BaseSettings, SettingsConfigDict


# Get project root directory (3 levels up from this file's package)
PROJECT_ROOT = Path(__file__).parent.parent.parent.parent

# Default log directory
DEFAULT_LOG_DIR = PROJECT_ROOT / "logs"
DEFAULT_LOG_FILE = DEFAULT_LOG_DIR / "weekshop.log"
DEFAULT_PREFERENCES_FILE = PROJECT_ROOT / ".weekshop" / "preferences.json"


class WeekShopSettings(BaseSettings):
    """Application settings with environment variable support."""

    # Database
    DB_URL: str = "sqlite:///weekshop.db"
    DB_ECHO: bool = False

    # Logging
    LOG_LEVEL: str = "INFO"
    LOG_FILE: Optional[Path] = DEFAULT_LOG_FILE
    LOG_FORMAT: str = "detailed"  # simple, detailed
    LOG_RETENTION_DAYS: int = 7
    LOG_ROTATION_SIZE_MB: int = 1

    # Ordering
    SEQUENCE_GAP: int = 10
    NEW_PRODUCT_SEQUENCE_STEP: int = 3

    # Search
    SEARCH_DEBOUNCE_MS: int = 300

    # Shop list
    ROLLBACK_ON_FAILURE: bool = False
    WEEK_START_DAY: int = 6  # datetime.weekday(), 6 == Sunday
    MAX_QUANTITY: int = 99

    # Remote store
    STORE_MAX_RETRIES: int = 3
    STORE_RETRY_DELAY: float = 0.2

    # Form defaults (best-effort local persistence)
    PREFERENCES_FILE: Optional[Path] = DEFAULT_PREFERENCES_FILE

    model_config = SettingsConfigDict(
        env_prefix="WEEKSHOP_",
        case_sensitive=False,
        env_file=PROJECT_ROOT / ".env",
        env_file_encoding="utf-8",
        extra="ignore"
    )

    def __init__(self, **kwargs):
        super().__init__(**kwargs)
        # Convert relative DB path to absolute path from project root
        if self.DB_URL.startswith("sqlite:///") and not self.DB_URL.startswith("sqlite:////"):
            relative_path = self.DB_URL.replace("sqlite:///", "")
            if relative_path and relative_path != ":memory:":
                absolute_path = PROJECT_ROOT / relative_path
                self.DB_URL = f"sqlite:///{absolute_path}"

        # Ensure log file path is absolute and parent directory exists
        if self.LOG_FILE:
            if not self.LOG_FILE.is_absolute():
                self.LOG_FILE = PROJECT_ROOT / self.LOG_FILE
            self.LOG_FILE.parent.mkdir(parents=True, exist_ok=True)

        if self.PREFERENCES_FILE and not self.PREFERENCES_FILE.is_absolute():
            self.PREFERENCES_FILE = PROJECT_ROOT / self.PREFERENCES_FILE

    @field_validator("LOG_LEVEL")
    @classmethod
    def validate_log_level(cls, v: str) -> str:
        valid_levels = ["TRACE", "DEBUG", "INFO", "SUCCESS", "WARNING", "ERROR", "CRITICAL"]
        v = v.upper()
        if v not in valid_levels:
            raise ValueError(f"Log level must be one of: {', '.join(valid_levels)}")
        return v

    @field_validator("LOG_FORMAT")
    @classmethod
    def validate_log_format(cls, v: str) -> str:
        valid_formats = ["simple", "detailed"]
        v = v.lower()
        if v not in valid_formats:
            raise ValueError(f"Log format must be one of: {', '.join(valid_formats)}")
        return v

    @field_validator("SEQUENCE_GAP", "NEW_PRODUCT_SEQUENCE_STEP")
    @classmethod
    def validate_positive_step(cls, v: int) -> int:
        if v < 2:
            raise ValueError("Sequence steps must be at least 2")
        return v

    @field_validator("SEARCH_DEBOUNCE_MS")
    @classmethod
    def validate_debounce(cls, v: int) -> int:
        if v < 0:
            raise ValueError("Debounce window cannot be negative")
        return v

    @field_validator("WEEK_START_DAY")
    @classmethod
    def validate_week_start(cls, v: int) -> int:
        if not 0 <= v <= 6:
            raise ValueError("Week start day must be between 0 (Monday) and 6 (Sunday)")
        return v

    @field_validator("MAX_QUANTITY")
    @classmethod
    def validate_max_quantity(cls, v: int) -> int:
        if v < 1:
            raise ValueError("Maximum quantity must be at least 1")
        return v


@lru_cache()
def get_settings() -> WeekShopSettings:
    """Get cached settings instance."""
    return WeekShopSettings()


def clear_settings_cache() -> None:
    """Clear the settings cache to force reload from environment."""
    get_settings.cache_clear()
