"""
Application wiring for autoledger.

Builds the capture pipeline and the pairing service around one ledger
store:

    native bridge → TriggerScheduler → ReconciliationEngine
        → NotificationParser → RuleEngine → ledger store → ledger_changed

    PairingSyncService → remote code store ↔ another device

DESIGN DECISION: Every component takes its collaborators as constructor
arguments. This factory is the only place that picks concrete classes, so
tests and the CLI can assemble the same pipeline from in-memory parts.
"""

from dataclasses import dataclass
from typing import Optional

import structlog
from pydantic import ValidationError

from autoledger.audit import AuditLogger
from autoledger.parsing import NotificationParser
from autoledger.pairing import HttpRemoteCodeStore, PairingSyncService, RemoteCodeStore
from autoledger.reconciliation import ReconciliationEngine, TriggerScheduler
from autoledger.rules import RuleEngine
from autoledger.services.bridge import InMemoryNotificationBridge, NotificationBridge
from autoledger.services.storage import (
    InMemoryLedgerStore,
    LedgerStoreInterface,
    StorageError,
)


logger = structlog.get_logger(__name__)


@dataclass
class AppComponents:
    """Everything a front end needs, wired together."""

    store: LedgerStoreInterface
    audit_logger: AuditLogger
    rules: RuleEngine
    parser: NotificationParser
    engine: ReconciliationEngine
    scheduler: TriggerScheduler
    sync_service: PairingSyncService


def create_app_components(
    use_storage: bool = False,
    bridge: Optional[NotificationBridge] = None,
    remote: Optional[RemoteCodeStore] = None,
) -> AppComponents:
    """
    Factory function to create all application components.

    Args:
        use_storage: Back the ledger with Google Sheets. Falls back to
                    in-memory storage when Sheets is not configured.
        bridge: Notification bridge (an empty in-memory one if None)
        remote: Remote code store (HTTP client if None)

    Returns:
        AppComponents
    """
    store: LedgerStoreInterface = InMemoryLedgerStore()
    audit_logger = AuditLogger()  # Local-only logging

    if use_storage:
        # Imported here so in-memory setups do not need Google credentials
        from autoledger.services.storage.google_sheets import (
            GoogleSheetsAuditStorage,
            GoogleSheetsClient,
            GoogleSheetsLedgerStore,
        )

        try:
            sheets_client = GoogleSheetsClient()
            store = GoogleSheetsLedgerStore(sheets_client)
            audit_logger = AuditLogger(GoogleSheetsAuditStorage(sheets_client))
        except (ValidationError, StorageError) as e:
            logger.warning("sheets_storage_unavailable", error=str(e))

    rules = RuleEngine()
    parser = NotificationParser(rules)
    engine = ReconciliationEngine(store, parser, audit_logger=audit_logger)
    scheduler = TriggerScheduler(
        bridge or InMemoryNotificationBridge(),
        engine,
        audit_logger=audit_logger,
    )
    sync_service = PairingSyncService(
        store,
        remote or HttpRemoteCodeStore(),
        audit_logger=audit_logger,
    )

    return AppComponents(
        store=store,
        audit_logger=audit_logger,
        rules=rules,
        parser=parser,
        engine=engine,
        scheduler=scheduler,
        sync_service=sync_service,
    )
