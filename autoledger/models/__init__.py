"""
Data Models Package

This package contains all Pydantic models used by autoledger.
All data flowing through the capture pipeline must conform to these schemas.
"""

from autoledger.models.ledger import (
    DEFAULT_CATEGORIES,
    Category,
    Chapter,
    LedgerDocument,
    LedgerExport,
    LedgerRecord,
    ParsedTransaction,
    RawNotification,
    TransactionType,
    format_chapter_title,
    utc_now,
)
from autoledger.models.rules import BankAlias, ClassificationRule, RuleSet
from autoledger.models.sync import SyncPackage
from autoledger.models.audit import (
    AuditEvent,
    AuditEventBuilder,
    AuditEventType,
    AuditSeverity,
)

__all__ = [
    # Ledger models
    "DEFAULT_CATEGORIES",
    "Category",
    "Chapter",
    "LedgerDocument",
    "LedgerExport",
    "LedgerRecord",
    "ParsedTransaction",
    "RawNotification",
    "TransactionType",
    "format_chapter_title",
    "utc_now",
    # Rule models
    "BankAlias",
    "ClassificationRule",
    "RuleSet",
    # Sync models
    "SyncPackage",
    # Audit models
    "AuditEvent",
    "AuditEventBuilder",
    "AuditEventType",
    "AuditSeverity",
]
