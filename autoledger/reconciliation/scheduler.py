"""
Trigger Scheduler

Connects the native bridge to the reconciliation engine.

Three events start a run: the app's first load, the app returning to the
foreground, and the bridge reporting that its notification queue changed.
All of them go through ``trigger``, and therefore through the same
IDLE/RUNNING guard.

CRITICAL: The device queue is only acknowledged after a COMPLETED run.
A dropped, failed or aborted run leaves the notifications pending, so the
next trigger sees them again.
"""

import json
from enum import Enum
from typing import Any, Optional

import structlog

from autoledger.audit import AuditLogger
from autoledger.events import LedgerSignal, ledger_changed
from autoledger.models.audit import AuditEventBuilder
from autoledger.reconciliation.engine import (
    ReconciliationBusyError,
    ReconciliationEngine,
    ReconciliationResult,
    RunStatus,
)
from autoledger.services.bridge import NotificationBridge


logger = structlog.get_logger(__name__)


class TriggerSource(str, Enum):
    """What asked for a reconciliation run."""
    INITIAL_LOAD = "initial_load"
    APP_FOREGROUND = "app_foreground"
    DB_UPDATED = "db_updated"


class TriggerOutcome(str, Enum):
    """How a trigger ended."""
    DROPPED = "dropped"
    NO_ACCESS = "no_access"
    EMPTY = "empty"
    PROCESSED = "processed"
    ABORTED = "aborted"


def decode_pending(payload: Optional[str]) -> list[Any]:
    """
    Decode the bridge's JSON queue.

    Anything that is not a JSON array counts as an empty queue.
    """
    if not payload:
        return []
    try:
        decoded = json.loads(payload)
    except (TypeError, ValueError):
        logger.warning("pending_notifications_unreadable", length=len(payload))
        return []
    if not isinstance(decoded, list):
        logger.warning("pending_notifications_not_a_list", kind=type(decoded).__name__)
        return []
    return decoded


class TriggerScheduler:
    """
    Runs the engine over whatever the bridge has pending.

    Usage:
        scheduler = TriggerScheduler(bridge, engine)
        outcome = await scheduler.trigger(TriggerSource.APP_FOREGROUND)
    """

    def __init__(
        self,
        bridge: NotificationBridge,
        engine: ReconciliationEngine,
        signal: Optional[LedgerSignal] = None,
        audit_logger: Optional[AuditLogger] = None,
    ):
        self._bridge = bridge
        self._engine = engine
        self._signal = signal or ledger_changed
        self._audit_logger = audit_logger
        self.last_result: Optional[ReconciliationResult] = None

    async def trigger(self, source: TriggerSource) -> TriggerOutcome:
        """
        Reconcile the pending queue once.

        A trigger arriving while a run is in progress is dropped, not
        queued.
        """
        source = TriggerSource(source)

        # Checked before the first await
        try:
            self._engine.start()
        except ReconciliationBusyError:
            logger.info("reconciliation_trigger_dropped", source=source.value)
            if self._audit_logger:
                await self._audit_logger.log(AuditEventBuilder.run_dropped(source.value))
            return TriggerOutcome.DROPPED

        try:
            if not await self._bridge.has_notification_access():
                logger.info("notification_access_missing", source=source.value)
                return TriggerOutcome.NO_ACCESS

            batch = decode_pending(await self._bridge.get_pending_notifications())
            if not batch:
                return TriggerOutcome.EMPTY

            result = await self._engine.reconcile(batch, trigger=source.value)
            self.last_result = result

            if result.status == RunStatus.COMPLETED:
                await self._bridge.clear_notifications()
                self._signal.emit()
                return TriggerOutcome.PROCESSED

            if result.mutated:
                self._signal.emit()
            return TriggerOutcome.ABORTED
        finally:
            self._engine.finish()
