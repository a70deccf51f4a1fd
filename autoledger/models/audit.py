"""
Audit Models for autoledger

Every run of the capture pipeline and every pairing exchange is logged.
This provides:
1. Traceability of why a notification did or did not become a record
2. Debugging information when a batch aborts
3. A history the user can inspect

DESIGN DECISION: Audit logs are append-only. We never delete or modify them.
"""

import json
from datetime import datetime
from enum import Enum
from typing import Any, Optional
from uuid import UUID, uuid4

from pydantic import BaseModel, Field, field_validator

from autoledger.models.ledger import utc_now


DESCRIPTION_MAX_LENGTH = 500

# Titles come from notification text of any length; the full title goes
# into details, the description only carries a prefix
DESCRIPTION_TITLE_LENGTH = 80


def clip(text: str, limit: int = DESCRIPTION_TITLE_LENGTH) -> str:
    """Shorten ``text`` to ``limit`` characters, marking the cut with an ellipsis."""
    if len(text) <= limit:
        return text
    return text[: limit - 1] + "…"


class AuditEventType(str, Enum):
    """Types of events we audit."""
    # Reconciliation runs
    RUN_STARTED = "run_started"
    RUN_COMPLETED = "run_completed"
    RUN_ABORTED = "run_aborted"
    RUN_DROPPED = "run_dropped"

    # Per-notification outcomes
    NOTIFICATION_SKIPPED = "notification_skipped"
    DUPLICATE_SKIPPED = "duplicate_skipped"
    RECORD_CREATED = "record_created"
    RECORD_CANCELLED = "record_cancelled"
    CHAPTER_CREATED = "chapter_created"

    # Rules
    RULES_REPLACED = "rules_replaced"

    # Pairing sync
    SYNC_EXPORTED = "sync_exported"
    SYNC_IMPORTED = "sync_imported"
    SYNC_FAILED = "sync_failed"

    # Store failures
    STORAGE_ERROR = "storage_error"


class AuditSeverity(str, Enum):
    """Severity level for audit events."""
    DEBUG = "debug"
    INFO = "info"
    WARNING = "warning"
    ERROR = "error"
    CRITICAL = "critical"


class AuditEvent(BaseModel):
    """
    A single audit event.

    This is the core unit of our audit trail.
    """

    event_id: UUID = Field(default_factory=uuid4)
    timestamp: datetime = Field(
        default_factory=utc_now,
        description="When the event occurred (UTC)"
    )

    event_type: AuditEventType
    severity: AuditSeverity = AuditSeverity.INFO

    # Context - what entity is this about?
    entity_type: Optional[str] = Field(
        default=None,
        description="Type of entity (e.g., 'record', 'chapter', 'run')"
    )
    entity_id: Optional[str] = Field(
        default=None,
        description="Store key or code of the entity"
    )

    # Correlation - all events of one run or one sync share this
    correlation_id: Optional[UUID] = None

    description: str = Field(..., max_length=DESCRIPTION_MAX_LENGTH)
    details: dict[str, Any] = Field(default_factory=dict)

    error_message: Optional[str] = None

    @field_validator("description", mode="before")
    @classmethod
    def clip_description(cls, v: Any) -> Any:
        """An overlong description is shortened, never rejected."""
        if isinstance(v, str):
            return clip(v, DESCRIPTION_MAX_LENGTH)
        return v

    def to_log_dict(self) -> dict:
        """
        Convert to a dictionary suitable for structured logging.
        """
        return {
            "event_id": str(self.event_id),
            "timestamp": self.timestamp.isoformat(),
            "event_type": self.event_type.value,
            "severity": self.severity.value,
            "entity_type": self.entity_type,
            "entity_id": self.entity_id,
            "correlation_id": str(self.correlation_id) if self.correlation_id else None,
            "description": self.description,
            "details": self.details,
            "error_message": self.error_message,
        }

    def to_sheets_row(self) -> list:
        """
        Convert to a row suitable for Google Sheets storage.

        Returns columns in order:
        [event_id, timestamp, event_type, severity, entity_type, entity_id,
         correlation_id, description, details_json, error_message]
        """
        return [
            str(self.event_id),
            self.timestamp.isoformat(),
            self.event_type.value,
            self.severity.value,
            self.entity_type or "",
            self.entity_id or "",
            str(self.correlation_id) if self.correlation_id else "",
            self.description,
            json.dumps(self.details, ensure_ascii=False) if self.details else "",
            self.error_message or "",
        ]


class AuditEventBuilder:
    """
    Helper class to build audit events with common patterns.

    Usage:
        event = AuditEventBuilder.record_created(record_id, title, amount, correlation_id)
        event = AuditEventBuilder.run_dropped("app_foreground")
    """

    @staticmethod
    def run_started(
        batch_size: int,
        trigger: str,
        correlation_id: UUID,
    ) -> AuditEvent:
        return AuditEvent(
            event_type=AuditEventType.RUN_STARTED,
            severity=AuditSeverity.DEBUG,
            entity_type="run",
            correlation_id=correlation_id,
            description=f"Reconciliation started with {batch_size} notifications",
            details={"batch_size": batch_size, "trigger": trigger},
        )

    @staticmethod
    def run_completed(
        summary: dict[str, int],
        correlation_id: UUID,
    ) -> AuditEvent:
        return AuditEvent(
            event_type=AuditEventType.RUN_COMPLETED,
            entity_type="run",
            correlation_id=correlation_id,
            description=(
                f"Reconciliation completed: {summary.get('created', 0)} created, "
                f"{summary.get('cancelled', 0)} cancelled"
            ),
            details=summary,
        )

    @staticmethod
    def run_aborted(
        error_message: str,
        processed: int,
        remaining: int,
        correlation_id: UUID,
    ) -> AuditEvent:
        return AuditEvent(
            event_type=AuditEventType.RUN_ABORTED,
            severity=AuditSeverity.ERROR,
            entity_type="run",
            correlation_id=correlation_id,
            description=f"Reconciliation aborted after {processed} notifications",
            details={"processed": processed, "remaining": remaining},
            error_message=error_message,
        )

    @staticmethod
    def run_dropped(trigger: str) -> AuditEvent:
        return AuditEvent(
            event_type=AuditEventType.RUN_DROPPED,
            entity_type="run",
            description="Trigger dropped: a reconciliation run is already in progress",
            details={"trigger": trigger},
        )

    @staticmethod
    def notification_skipped(
        reason: str,
        position: int,
        correlation_id: UUID,
    ) -> AuditEvent:
        return AuditEvent(
            event_type=AuditEventType.NOTIFICATION_SKIPPED,
            severity=AuditSeverity.DEBUG,
            entity_type="notification",
            correlation_id=correlation_id,
            description=f"Notification #{position} skipped: {reason}",
            details={"reason": reason, "position": position},
        )

    @staticmethod
    def duplicate_skipped(
        title: str,
        amount: int,
        existing_id: Optional[str],
        correlation_id: UUID,
    ) -> AuditEvent:
        return AuditEvent(
            event_type=AuditEventType.DUPLICATE_SKIPPED,
            entity_type="record",
            entity_id=existing_id,
            correlation_id=correlation_id,
            description=f"Duplicate skipped: {clip(title)} - {amount:,}원",
            details={"title": title, "amount": amount},
        )

    @staticmethod
    def record_created(
        record_id: str,
        title: str,
        amount: int,
        correlation_id: UUID,
    ) -> AuditEvent:
        return AuditEvent(
            event_type=AuditEventType.RECORD_CREATED,
            entity_type="record",
            entity_id=record_id,
            correlation_id=correlation_id,
            description=f"Record saved: {clip(title)} - {amount:,}원",
            details={"title": title, "amount": amount},
        )

    @staticmethod
    def record_cancelled(
        record_id: str,
        title: str,
        amount: int,
        correlation_id: UUID,
    ) -> AuditEvent:
        return AuditEvent(
            event_type=AuditEventType.RECORD_CANCELLED,
            entity_type="record",
            entity_id=record_id,
            correlation_id=correlation_id,
            description=f"Record removed by cancellation: {clip(title)} - {amount:,}원",
            details={"title": title, "amount": amount},
        )

    @staticmethod
    def chapter_created(
        chapter_id: str,
        title: str,
        correlation_id: UUID,
    ) -> AuditEvent:
        return AuditEvent(
            event_type=AuditEventType.CHAPTER_CREATED,
            entity_type="chapter",
            entity_id=chapter_id,
            correlation_id=correlation_id,
            description=f"Chapter created: {clip(title)}",
            details={"title": title},
        )

    @staticmethod
    def rules_replaced(
        version: str,
        category_rules: int,
        bank_aliases: int,
    ) -> AuditEvent:
        return AuditEvent(
            event_type=AuditEventType.RULES_REPLACED,
            entity_type="rules",
            entity_id=version,
            description=f"Parser rules replaced ({version})",
            details={
                "category_rules": category_rules,
                "bank_aliases": bank_aliases,
            },
        )

    @staticmethod
    def sync_exported(
        pairing_code: str,
        counts: dict[str, int],
        correlation_id: UUID,
    ) -> AuditEvent:
        return AuditEvent(
            event_type=AuditEventType.SYNC_EXPORTED,
            entity_type="pairing_code",
            entity_id=pairing_code,
            correlation_id=correlation_id,
            description="Ledger snapshot exported under a pairing code",
            details=counts,
        )

    @staticmethod
    def sync_imported(
        pairing_code: str,
        counts: dict[str, int],
        correlation_id: UUID,
    ) -> AuditEvent:
        return AuditEvent(
            event_type=AuditEventType.SYNC_IMPORTED,
            entity_type="pairing_code",
            entity_id=pairing_code,
            correlation_id=correlation_id,
            description="Ledger overwritten from a pairing snapshot",
            details=counts,
        )

    @staticmethod
    def sync_failed(
        operation: str,
        error_type: str,
        error_message: str,
        correlation_id: UUID,
    ) -> AuditEvent:
        return AuditEvent(
            event_type=AuditEventType.SYNC_FAILED,
            severity=AuditSeverity.WARNING,
            entity_type="pairing_code",
            correlation_id=correlation_id,
            description=f"Pairing {operation} failed: {error_type}",
            details={"operation": operation, "error_type": error_type},
            error_message=error_message,
        )

    @staticmethod
    def storage_error(
        operation: str,
        error_message: str,
        correlation_id: Optional[UUID] = None,
    ) -> AuditEvent:
        return AuditEvent(
            event_type=AuditEventType.STORAGE_ERROR,
            severity=AuditSeverity.ERROR,
            description=f"Ledger store write failed: {operation}",
            details={"operation": operation},
            error_message=error_message,
            correlation_id=correlation_id,
        )
