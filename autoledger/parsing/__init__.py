"""Notification parsing package."""

from autoledger.parsing.notification_parser import (
    CANCELLATION_KEYWORDS,
    INCOME_KEYWORDS,
    TRANSFER_KEYWORDS,
    NotificationParser,
    normalize_text,
)

__all__ = [
    "CANCELLATION_KEYWORDS",
    "INCOME_KEYWORDS",
    "TRANSFER_KEYWORDS",
    "NotificationParser",
    "normalize_text",
]
