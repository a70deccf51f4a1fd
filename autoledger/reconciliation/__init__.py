"""Reconciliation package: batch merge of captured notifications."""

from autoledger.reconciliation.engine import (
    EngineState,
    EngineStateError,
    ItemOutcome,
    ItemStatus,
    ReconciliationBusyError,
    ReconciliationEngine,
    ReconciliationError,
    ReconciliationResult,
    RunStatus,
    SkipReason,
    find_cancellation_target,
    find_duplicate,
    titles_overlap,
)
from autoledger.reconciliation.scheduler import (
    TriggerOutcome,
    TriggerScheduler,
    TriggerSource,
    decode_pending,
)

__all__ = [
    # Engine
    "EngineState",
    "ItemOutcome",
    "ItemStatus",
    "ReconciliationEngine",
    "ReconciliationResult",
    "RunStatus",
    "SkipReason",
    "find_cancellation_target",
    "find_duplicate",
    "titles_overlap",
    # Exceptions
    "EngineStateError",
    "ReconciliationBusyError",
    "ReconciliationError",
    # Scheduler
    "TriggerOutcome",
    "TriggerScheduler",
    "TriggerSource",
    "decode_pending",
]
