"""
Reconciliation Engine

Merges a batch of captured notifications into the ledger.

Per notification, strictly in arrival order:
1. Parse → not financial? skip
2. Capture disabled for that type? skip
3. Cancellation → delete the first matching record (or skip)
4. Duplicate of an existing record? skip
5. Resolve (or create) the month chapter, then save a new record

DESIGN DECISION: The engine loads the chapters and records once per batch
and reflects every mutation into that in-memory snapshot before looking at
the next notification. Two alerts for the same payment in one batch
therefore collapse into one record, and a cancellation can remove a record
created earlier in the same batch.

CRITICAL: A store write failure aborts the REST of the batch. Mutations
already applied stay committed (there is no rollback); the notifications
are not acknowledged, and the next run re-reads them. The duplicate check
keeps that retry from saving the same payment twice.
"""

from datetime import datetime, time, timezone
from enum import Enum
from typing import Any, Iterable, Optional, Union
from uuid import UUID

import structlog
from pydantic import BaseModel, Field, ValidationError

from autoledger.audit import AuditLogger, create_correlation_id
from autoledger.config import CaptureSettings, get_settings
from autoledger.models.audit import AuditEventBuilder
from autoledger.models.ledger import (
    Chapter,
    LedgerRecord,
    ParsedTransaction,
    RawNotification,
    TransactionType,
)
from autoledger.parsing import NotificationParser
from autoledger.services.storage import LedgerStoreInterface, StorageError


logger = structlog.get_logger(__name__)


# =============================================================================
# STATE & RESULT MODELS
# =============================================================================

class EngineState(str, Enum):
    """Re-entrancy guard: at most one batch is reconciled at a time."""
    IDLE = "idle"
    RUNNING = "running"


class RunStatus(str, Enum):
    """How a batch ended."""
    COMPLETED = "completed"
    ABORTED = "aborted"


class ItemStatus(str, Enum):
    """What happened to one notification."""
    CREATED = "created"
    CANCELLED = "cancelled"
    DUPLICATE = "duplicate"
    SKIPPED = "skipped"
    FAILED = "failed"


class SkipReason(str, Enum):
    """Why a notification produced no ledger change."""
    MALFORMED = "malformed"
    NOT_FINANCIAL = "not_financial"
    TYPE_DISABLED = "type_disabled"
    CANCELLATION_UNMATCHED = "cancellation_unmatched"


class ItemOutcome(BaseModel):
    """Fate of a single notification within a batch."""

    position: int = Field(..., ge=0, description="Index in the batch")
    status: ItemStatus
    reason: Optional[SkipReason] = None
    record_id: Optional[str] = Field(
        default=None,
        description="Record created, deleted, or matched as duplicate"
    )
    chapter_id: Optional[str] = None
    title: Optional[str] = None
    amount: Optional[int] = None
    error_message: Optional[str] = None


class ReconciliationResult(BaseModel):
    """Summary of one reconciliation run."""

    status: RunStatus = RunStatus.COMPLETED
    correlation_id: UUID
    batch_size: int = 0

    created: int = 0
    cancelled: int = 0
    duplicates: int = 0
    skipped: int = 0
    chapters_created: int = 0

    items: list[ItemOutcome] = Field(default_factory=list)
    error_message: Optional[str] = None

    @property
    def processed(self) -> int:
        """Notifications fully handled (a failed item does not count)."""
        return sum(1 for item in self.items if item.status != ItemStatus.FAILED)

    @property
    def remaining(self) -> int:
        return self.batch_size - self.processed

    @property
    def mutated(self) -> bool:
        """Whether anything was written to the ledger store."""
        return bool(self.created or self.cancelled or self.chapters_created)

    def summary(self) -> dict[str, int]:
        return {
            "batch_size": self.batch_size,
            "created": self.created,
            "cancelled": self.cancelled,
            "duplicates": self.duplicates,
            "skipped": self.skipped,
            "chapters_created": self.chapters_created,
        }


# =============================================================================
# EXCEPTIONS
# =============================================================================

class ReconciliationError(Exception):
    """Base exception for the reconciliation engine."""
    pass


class ReconciliationBusyError(ReconciliationError):
    """
    A run is already in progress.

    Callers drop the trigger; the notifications stay queued on the device.
    """
    pass


class EngineStateError(ReconciliationError):
    """``reconcile`` was called without ``start``."""
    pass


# =============================================================================
# MATCHING HELPERS
# =============================================================================

def titles_overlap(a: str, b: str) -> bool:
    """Either title contains the other. An empty title matches nothing."""
    return bool(a) and bool(b) and (a in b or b in a)


def find_cancellation_target(
    records: Iterable[LedgerRecord],
    transaction: ParsedTransaction,
) -> Optional[LedgerRecord]:
    """First record with the same amount and an overlapping title."""
    for record in records:
        if record.amount == transaction.amount and titles_overlap(record.title, transaction.title):
            return record
    return None


def find_duplicate(
    records: Iterable[LedgerRecord],
    transaction: ParsedTransaction,
) -> Optional[LedgerRecord]:
    """First record with the same day, the same amount and an overlapping title."""
    for record in records:
        if (
            record.date == transaction.date
            and record.amount == transaction.amount
            and titles_overlap(record.title, transaction.title)
        ):
            return record
    return None


# =============================================================================
# ENGINE
# =============================================================================

NotificationInput = Union[RawNotification, dict[str, Any]]


class ReconciliationEngine:
    """
    Applies notification batches to a ledger store.

    Usage:
        engine = ReconciliationEngine(store)
        result = await engine.run(batch)

    ``run`` wraps ``start`` / ``reconcile`` / ``finish``. The trigger
    scheduler calls the three steps itself so the guard also covers reading
    and acknowledging the device queue.
    """

    def __init__(
        self,
        store: LedgerStoreInterface,
        parser: Optional[NotificationParser] = None,
        settings: Optional[CaptureSettings] = None,
        audit_logger: Optional[AuditLogger] = None,
    ):
        """
        Args:
            store: Ledger store to read from and write to
            parser: Notification parser (bundled rules if None)
            settings: Capture toggles. If None they are re-read from the
                environment at the start of every batch.
            audit_logger: Optional audit trail
        """
        self._store = store
        self._parser = parser or NotificationParser()
        self._settings = settings
        self._audit_logger = audit_logger
        self._state = EngineState.IDLE

    @property
    def state(self) -> EngineState:
        return self._state

    @property
    def is_running(self) -> bool:
        return self._state == EngineState.RUNNING

    def start(self) -> None:
        """
        Move IDLE → RUNNING.

        Raises:
            ReconciliationBusyError: If a run is already in progress
        """
        if self._state == EngineState.RUNNING:
            raise ReconciliationBusyError("A reconciliation run is already in progress")
        self._state = EngineState.RUNNING

    def finish(self) -> None:
        """Move back to IDLE. Safe to call when already idle."""
        self._state = EngineState.IDLE

    async def run(
        self,
        batch: list[NotificationInput],
        trigger: str = "manual",
    ) -> ReconciliationResult:
        """Guarded reconcile: start, reconcile, always finish."""
        self.start()
        try:
            return await self.reconcile(batch, trigger=trigger)
        finally:
            self.finish()

    async def reconcile(
        self,
        batch: list[NotificationInput],
        trigger: str = "manual",
        correlation_id: Optional[UUID] = None,
    ) -> ReconciliationResult:
        """
        Apply ``batch`` to the ledger store.

        Never raises for store failures: they end the run with status
        ABORTED.

        Raises:
            EngineStateError: If the engine was not started
        """
        if self._state != EngineState.RUNNING:
            raise EngineStateError("reconcile() requires a started engine")

        correlation_id = correlation_id or create_correlation_id()
        result = ReconciliationResult(
            correlation_id=correlation_id,
            batch_size=len(batch),
        )
        settings = self._settings or get_settings().capture

        if self._audit_logger:
            await self._audit_logger.log(AuditEventBuilder.run_started(
                batch_size=len(batch),
                trigger=trigger,
                correlation_id=correlation_id,
            ))

        try:
            chapters, records = await self._load_snapshot()
        except StorageError as e:
            await self._abort(result, str(e), "load_snapshot")
            return result

        for position, item in enumerate(batch):
            try:
                outcome = await self._apply(
                    position, item, chapters, records, settings, result
                )
            except StorageError as e:
                result.items.append(ItemOutcome(
                    position=position,
                    status=ItemStatus.FAILED,
                    error_message=str(e),
                ))
                await self._abort(result, str(e), "apply_notification")
                return result
            result.items.append(outcome)

        logger.info("reconciliation_completed", trigger=trigger, **result.summary())
        if self._audit_logger:
            await self._audit_logger.log(AuditEventBuilder.run_completed(
                summary=result.summary(),
                correlation_id=correlation_id,
            ))
        return result

    # -------------------------------------------------------------------------
    # Internals
    # -------------------------------------------------------------------------

    async def _load_snapshot(self) -> tuple[list[Chapter], list[LedgerRecord]]:
        chapter_docs = await self._store.chapters.get_all()
        record_docs = await self._store.records.get_all()
        try:
            chapters = [Chapter.model_validate(doc) for doc in chapter_docs]
            records = [LedgerRecord.model_validate(doc) for doc in record_docs]
        except ValidationError as e:
            raise StorageError(f"Unreadable ledger document: {e}") from e
        return chapters, records

    async def _abort(
        self,
        result: ReconciliationResult,
        error_message: str,
        operation: str,
    ) -> None:
        result.status = RunStatus.ABORTED
        result.error_message = error_message
        logger.error(
            "reconciliation_aborted",
            operation=operation,
            error=error_message,
            processed=result.processed,
            remaining=result.remaining,
        )
        if self._audit_logger:
            await self._audit_logger.log_storage_error(
                operation=operation,
                error_message=error_message,
                correlation_id=result.correlation_id,
            )
            await self._audit_logger.log(AuditEventBuilder.run_aborted(
                error_message=error_message,
                processed=result.processed,
                remaining=result.remaining,
                correlation_id=result.correlation_id,
            ))

    async def _skip(
        self,
        position: int,
        reason: SkipReason,
        result: ReconciliationResult,
        transaction: Optional[ParsedTransaction] = None,
    ) -> ItemOutcome:
        result.skipped += 1
        if self._audit_logger:
            await self._audit_logger.log(AuditEventBuilder.notification_skipped(
                reason=reason.value,
                position=position,
                correlation_id=result.correlation_id,
            ))
        return ItemOutcome(
            position=position,
            status=ItemStatus.SKIPPED,
            reason=reason,
            title=transaction.title if transaction else None,
            amount=transaction.amount if transaction else None,
        )

    async def _apply(
        self,
        position: int,
        item: NotificationInput,
        chapters: list[Chapter],
        records: list[LedgerRecord],
        settings: CaptureSettings,
        result: ReconciliationResult,
    ) -> ItemOutcome:
        """Handle one notification, mutating the snapshot lists in place."""
        try:
            notification = (
                item if isinstance(item, RawNotification)
                else RawNotification.model_validate(item)
            )
        except ValidationError:
            return await self._skip(position, SkipReason.MALFORMED, result)

        transaction = self._parser.parse(notification.combined_text)
        if transaction is None:
            return await self._skip(position, SkipReason.NOT_FINANCIAL, result)

        if not self._capture_enabled(transaction.type, settings):
            return await self._skip(position, SkipReason.TYPE_DISABLED, result, transaction)

        if transaction.is_cancellation:
            return await self._cancel(position, transaction, records, result)

        duplicate = find_duplicate(records, transaction)
        if duplicate is not None:
            result.duplicates += 1
            if self._audit_logger:
                await self._audit_logger.log(AuditEventBuilder.duplicate_skipped(
                    title=transaction.title,
                    amount=transaction.amount,
                    existing_id=duplicate.id,
                    correlation_id=result.correlation_id,
                ))
            return ItemOutcome(
                position=position,
                status=ItemStatus.DUPLICATE,
                record_id=duplicate.id,
                chapter_id=duplicate.chapter_id,
                title=transaction.title,
                amount=transaction.amount,
            )

        chapter = await self._resolve_chapter(transaction, chapters, result)
        order = sum(1 for r in records if r.chapter_id == chapter.chapter_id)
        record = LedgerRecord.from_transaction(transaction, chapter.chapter_id, order=order)
        record_id = await self._store.records.add(record.to_document())
        record = record.model_copy(update={"id": record_id})
        records.append(record)
        result.created += 1

        if self._audit_logger:
            await self._audit_logger.log(AuditEventBuilder.record_created(
                record_id=record_id,
                title=record.title,
                amount=record.amount,
                correlation_id=result.correlation_id,
            ))
        return ItemOutcome(
            position=position,
            status=ItemStatus.CREATED,
            record_id=record_id,
            chapter_id=chapter.chapter_id,
            title=record.title,
            amount=record.amount,
        )

    async def _cancel(
        self,
        position: int,
        transaction: ParsedTransaction,
        records: list[LedgerRecord],
        result: ReconciliationResult,
    ) -> ItemOutcome:
        target = find_cancellation_target(records, transaction)
        if target is None:
            return await self._skip(
                position, SkipReason.CANCELLATION_UNMATCHED, result, transaction
            )

        await self._store.records.delete(target.id)
        records.remove(target)
        result.cancelled += 1

        if self._audit_logger:
            await self._audit_logger.log(AuditEventBuilder.record_cancelled(
                record_id=target.id,
                title=target.title,
                amount=target.amount,
                correlation_id=result.correlation_id,
            ))
        return ItemOutcome(
            position=position,
            status=ItemStatus.CANCELLED,
            record_id=target.id,
            chapter_id=target.chapter_id,
            title=target.title,
            amount=target.amount,
        )

    async def _resolve_chapter(
        self,
        transaction: ParsedTransaction,
        chapters: list[Chapter],
        result: ReconciliationResult,
    ) -> Chapter:
        """Chapter titled like the transaction's month, created if missing."""
        for chapter in chapters:
            if chapter.title == transaction.chapter_title:
                return chapter

        tz = transaction.created_at.tzinfo or timezone.utc
        chapter = Chapter(
            title=transaction.chapter_title,
            created_at=datetime.combine(transaction.date, time.min, tzinfo=tz),
            order=len(chapters),
            is_temporary=False,
        )
        chapter_id = await self._store.chapters.add(chapter.to_document())
        chapter = chapter.model_copy(update={"chapter_id": chapter_id})
        chapters.append(chapter)
        result.chapters_created += 1

        if self._audit_logger:
            await self._audit_logger.log(AuditEventBuilder.chapter_created(
                chapter_id=chapter_id,
                title=chapter.title,
                correlation_id=result.correlation_id,
            ))
        return chapter

    @staticmethod
    def _capture_enabled(tx_type: TransactionType, settings: CaptureSettings) -> bool:
        if tx_type == TransactionType.INCOME:
            return settings.auto_save_income
        return settings.auto_save_expense
