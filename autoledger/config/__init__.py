"""Configuration package."""

from autoledger.config.settings import (
    AppSettings,
    CaptureSettings,
    GoogleSheetsSettings,
    PairingSettings,
    RulesSettings,
    Settings,
    get_settings,
    validate_all_settings,
)

__all__ = [
    "AppSettings",
    "CaptureSettings",
    "GoogleSheetsSettings",
    "PairingSettings",
    "RulesSettings",
    "Settings",
    "get_settings",
    "validate_all_settings",
]
