"""
fintrack settings, read from the environment and an optional .env file.

Each concern has its own pydantic-settings class with its own prefix.
The root Settings object builds them on access, so a missing Gemini key
only matters to code that actually asks for settings.gemini.
"""

import warnings
from functools import lru_cache
from pathlib import Path

from pydantic import Field, field_validator
from pydantic_settings import BaseSettings, SettingsConfigDict


def _split_csv(value: str) -> list[str]:
    return [item.strip() for item in value.split(",") if item.strip()]


class GeminiSettings(BaseSettings):
    """Model used for advice, bill scans and forecasts."""

    model_config = SettingsConfigDict(env_prefix="GEMINI_", extra="ignore")

    api_key: str
    model_name: str = "gemini-2.5-flash"
    max_tokens: int = Field(default=2048, ge=100, le=8192)
    # Free-text answers only; JSON answers always run at 0.1
    temperature: float = Field(default=0.3, ge=0.0, le=1.0)


class StorageSettings(BaseSettings):
    """Where the persistence slots live."""

    model_config = SettingsConfigDict(env_prefix="FINTRACK_STORAGE_", extra="ignore")

    backend: str = Field(default="json", pattern="^(memory|json|google_sheets)$")
    # json backend: one file holding every slot, and its size quota
    data_path: str = "fintrack_data.json"
    max_bytes: int = Field(default=5 * 1024 * 1024, ge=1024)


class GoogleSheetsSettings(BaseSettings):
    """Spreadsheet used by the google_sheets backend."""

    model_config = SettingsConfigDict(env_prefix="GOOGLE_SHEETS_", extra="ignore")

    credentials_path: str = Field(..., description="Service account key file")
    spreadsheet_id: str
    slots_sheet_name: str = "Slots"
    audit_sheet_name: str = "AuditLog"

    @field_validator("credentials_path")
    @classmethod
    def credentials_file_present(cls, v: str) -> str:
        # A warning only: the key is often mounted after the settings load
        if not Path(v).exists():
            warnings.warn(f"Google service account key not found at {v}")
        return v


class AppSettings(BaseSettings):
    """Store, advisor and receipt behaviour."""

    model_config = SettingsConfigDict(
        env_file=".env",
        env_file_encoding="utf-8",
        extra="ignore",
    )

    app_environment: str = "development"
    # Lowers the process log level to DEBUG
    debug_mode: bool = False

    default_currency: str = Field(default="VND", pattern="^(VND|USD)$")
    # Categories with these names cannot be deleted
    protected_category_names: str = "Khác,Other"

    forecast_lookback_days: int = Field(default=90, ge=1)
    forecast_horizon_days: int = Field(default=30, ge=1)
    # Cap on transactions included in an advice snapshot
    advice_recent_transactions: int = Field(default=50, ge=1, le=500)

    # A scanned total above this is flagged for the user to double-check
    max_transaction_amount: float = 1_000_000_000.0

    max_upload_size_mb: int = Field(default=10, ge=1, le=50)
    supported_image_formats: str = "jpg,jpeg,png,webp"
    receipt_max_dimension_px: int = Field(default=1280, ge=200)
    min_image_quality_score: float = Field(default=0.4, ge=0.0, le=1.0)

    @property
    def protected_categories(self) -> set[str]:
        return set(_split_csv(self.protected_category_names))

    @property
    def supported_formats_list(self) -> list[str]:
        return [fmt.lower() for fmt in _split_csv(self.supported_image_formats)]

    @property
    def max_upload_size_bytes(self) -> int:
        return self.max_upload_size_mb * 1024 * 1024


class Settings(BaseSettings):
    """Entry point to every settings group."""

    model_config = SettingsConfigDict(
        env_file=".env",
        env_file_encoding="utf-8",
        extra="ignore",
    )

    @property
    def gemini(self) -> GeminiSettings:
        return GeminiSettings()

    @property
    def storage(self) -> StorageSettings:
        return StorageSettings()

    @property
    def google_sheets(self) -> GoogleSheetsSettings:
        return GoogleSheetsSettings()

    @property
    def app(self) -> AppSettings:
        return AppSettings()


@lru_cache()
def get_settings() -> Settings:
    """Process-wide settings. get_settings.cache_clear() forces a reload."""
    return Settings()


def validate_all_settings() -> dict[str, bool]:
    """
    Try to load every settings group.

    Maps each group name to whether it loaded. A group that failed also
    gets a "<name>_error" entry with the reason.
    """
    results = {}
    settings = get_settings()

    for name in ("gemini", "storage", "google_sheets", "app"):
        try:
            getattr(settings, name)
        except Exception as e:
            results[name] = False
            results[f"{name}_error"] = str(e)
        else:
            results[name] = True

    return results
