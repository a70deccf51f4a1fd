"""
Configuration Management for autoledger

Uses pydantic-settings for type-safe configuration from environment variables.

DESIGN DECISION: All configuration is centralized here.
Every tunable of the capture pipeline and the pairing exchange is visible
in one place and validated when first loaded.
"""

from functools import lru_cache
from pathlib import Path
from typing import Optional

from pydantic import Field, field_validator
from pydantic_settings import BaseSettings, SettingsConfigDict


class CaptureSettings(BaseSettings):
    """
    Automatic capture toggles.

    Read-only from the reconciliation engine's point of view: the user
    flips these in the settings screen and the next run picks them up.
    """

    model_config = SettingsConfigDict(
        env_prefix="AUTOLEDGER_CAPTURE_",
        env_file=".env",
        env_file_encoding="utf-8",
        extra="ignore"
    )

    auto_save_income: bool = Field(
        default=True,
        description="Record income notifications automatically"
    )
    auto_save_expense: bool = Field(
        default=True,
        description="Record expense notifications automatically"
    )


class PairingSettings(BaseSettings):
    """Pairing-code sync configuration (client and code store)."""

    model_config = SettingsConfigDict(
        env_prefix="AUTOLEDGER_PAIRING_",
        env_file=".env",
        env_file_encoding="utf-8",
        extra="ignore"
    )

    upload_url: str = Field(
        default="http://localhost:8000/upload",
        description="Endpoint that stores an encrypted snapshot and returns a code"
    )
    download_url: str = Field(
        default="http://localhost:8000/download",
        description="Endpoint that exchanges a code for the encrypted snapshot"
    )
    code_ttl_seconds: int = Field(
        default=180,
        ge=1,
        description="How long a pairing code stays redeemable after creation"
    )
    code_length: int = Field(
        default=7,
        ge=4,
        le=16,
        description="Number of characters in a pairing code"
    )
    min_password_length: int = Field(
        default=4,
        ge=1,
        description="Shortest password accepted for export"
    )
    request_timeout_seconds: float = Field(
        default=15.0,
        gt=0,
        description="Timeout for upload/download HTTP calls"
    )
    kdf_iterations: int = Field(
        default=390_000,
        ge=1_000,
        description="PBKDF2 iterations used to derive the snapshot key"
    )


class RulesSettings(BaseSettings):
    """Remote parser-rules snapshot configuration."""

    model_config = SettingsConfigDict(
        env_prefix="AUTOLEDGER_RULES_",
        env_file=".env",
        env_file_encoding="utf-8",
        extra="ignore"
    )

    snapshot_url: Optional[str] = Field(
        default=None,
        description="URL of the JSON rules snapshot; bundled defaults are used when unset"
    )
    request_timeout_seconds: float = Field(
        default=10.0,
        gt=0,
        description="Timeout for the rules snapshot request"
    )


class GoogleSheetsSettings(BaseSettings):
    """Google Sheets ledger store configuration."""

    model_config = SettingsConfigDict(
        env_prefix="GOOGLE_SHEETS_",
        env_file=".env",
        env_file_encoding="utf-8",
        extra="ignore"
    )

    credentials_path: str = Field(
        ...,
        description="Path to Google service account credentials JSON"
    )
    spreadsheet_id: str = Field(
        ...,
        description="ID of the Google Sheets spreadsheet to use"
    )

    # Worksheet names within the spreadsheet
    chapters_sheet_name: str = Field(default="Chapters")
    records_sheet_name: str = Field(default="Records")
    categories_sheet_name: str = Field(default="Categories")
    audit_sheet_name: str = Field(
        default="AuditLog",
        description="Name of the sheet for audit logs"
    )

    @field_validator('credentials_path')
    @classmethod
    def validate_credentials_path(cls, v: str) -> str:
        """Warn if credentials file doesn't exist (but don't fail - might be mounted later)."""
        if not Path(v).exists():
            import warnings
            warnings.warn(
                f"Google credentials file not found at {v}. "
                "Make sure it exists before running the application."
            )
        return v


class AppSettings(BaseSettings):
    """
    Main application settings.

    Loads configuration from environment variables and .env file.
    """

    model_config = SettingsConfigDict(
        env_file=".env",
        env_file_encoding="utf-8",
        extra="ignore"
    )

    app_environment: str = Field(
        default="development",
        description="Application environment"
    )
    debug_mode: bool = Field(
        default=False,
        description="Enable debug mode"
    )
    log_level: str = Field(
        default="INFO",
        description="Minimum level for structured logs"
    )
    log_json: bool = Field(
        default=True,
        description="Render logs as JSON lines (console renderer otherwise)"
    )

    @field_validator('log_level')
    @classmethod
    def normalize_log_level(cls, v: str) -> str:
        level = v.strip().upper()
        if level not in {"DEBUG", "INFO", "WARNING", "ERROR", "CRITICAL"}:
            raise ValueError(f"Unknown log level: {v}")
        return level


class Settings(BaseSettings):
    """
    Root settings container.

    Aggregates all sub-settings for easy access.
    """

    model_config = SettingsConfigDict(
        env_file=".env",
        env_file_encoding="utf-8",
        extra="ignore"
    )

    # Sections are loaded lazily so a missing Sheets config does not
    # prevent the in-memory setup from starting.

    @property
    def capture(self) -> CaptureSettings:
        return CaptureSettings()

    @property
    def pairing(self) -> PairingSettings:
        return PairingSettings()

    @property
    def rules(self) -> RulesSettings:
        return RulesSettings()

    @property
    def google_sheets(self) -> GoogleSheetsSettings:
        return GoogleSheetsSettings()

    @property
    def app(self) -> AppSettings:
        return AppSettings()


@lru_cache()
def get_settings() -> Settings:
    """
    Get application settings (cached).

    Call get_settings.cache_clear() to reload if needed.
    """
    return Settings()


def validate_all_settings() -> dict[str, object]:
    """
    Validate all settings are properly configured.

    Returns a dict of {section_name: is_valid}, plus a
    ``<section>_error`` entry for every section that failed to load.
    """
    results: dict[str, object] = {}
    settings = get_settings()

    for section in ("capture", "pairing", "rules", "google_sheets", "app"):
        try:
            getattr(settings, section)
            results[section] = True
        except Exception as e:
            results[section] = False
            results[f"{section}_error"] = str(e)

    return results
