"""
Audit Logger

DESIGN DECISION: Every reconciliation run and every pairing exchange is
logged. This provides:
1. Traceability of each notification's fate
2. Debugging capability when a batch aborts
3. A history the user can look at

The audit logger:
- Always logs locally through structlog
- Gracefully handles storage failures (never breaks the pipeline)
- Supports correlation IDs to trace all events of one run
"""

import logging
import sys
from typing import Optional
from uuid import UUID, uuid4

import structlog

from autoledger.models.audit import AuditEvent, AuditEventBuilder, AuditSeverity
from autoledger.services.storage import AuditStorageInterface


def configure_logging(level: str = "INFO", json_format: bool = True) -> None:
    """
    Configure structlog on top of the standard library logger.

    Entry points call this once at startup; library modules only call
    ``structlog.get_logger``.
    """
    logging.basicConfig(
        format="%(message)s",
        stream=sys.stderr,
        level=getattr(logging, level.upper(), logging.INFO),
    )
    renderer = (
        structlog.processors.JSONRenderer(ensure_ascii=False)
        if json_format
        else structlog.dev.ConsoleRenderer()
    )
    structlog.configure(
        processors=[
            structlog.stdlib.filter_by_level,
            structlog.stdlib.add_logger_name,
            structlog.stdlib.add_log_level,
            structlog.stdlib.PositionalArgumentsFormatter(),
            structlog.processors.TimeStamper(fmt="iso"),
            structlog.processors.StackInfoRenderer(),
            structlog.processors.format_exc_info,
            structlog.processors.UnicodeDecoder(),
            renderer,
        ],
        wrapper_class=structlog.stdlib.BoundLogger,
        context_class=dict,
        logger_factory=structlog.stdlib.LoggerFactory(),
        cache_logger_on_first_use=True,
    )


class AuditLogger:
    """
    Central audit logging service.

    Logs events both to:
    1. Structured local log (for debugging)
    2. Audit storage (for persistence and user visibility)
    """

    def __init__(
        self,
        storage: Optional[AuditStorageInterface] = None,
    ):
        """
        Initialize audit logger.

        Args:
            storage: Storage backend for persistence.
                    If None, only logs locally.
        """
        self._storage = storage
        self._logger = structlog.get_logger("autoledger.audit")

    async def log(self, event: AuditEvent) -> bool:
        """
        Log an audit event.

        Always logs locally. Persists to storage if available.

        Returns True if storage write succeeded (or no storage configured).
        """
        log_dict = event.to_log_dict()

        if event.severity in (AuditSeverity.ERROR, AuditSeverity.CRITICAL):
            self._logger.error("audit_event", **log_dict)
        elif event.severity == AuditSeverity.WARNING:
            self._logger.warning("audit_event", **log_dict)
        elif event.severity == AuditSeverity.DEBUG:
            self._logger.debug("audit_event", **log_dict)
        else:
            self._logger.info("audit_event", **log_dict)

        if self._storage:
            try:
                return await self._storage.append_event(event)
            except Exception as e:
                # Log failure but don't raise
                self._logger.error(
                    "audit_storage_failed",
                    error=str(e),
                    event_id=str(event.event_id),
                )
                return False

        return True

    async def log_storage_error(
        self,
        operation: str,
        error_message: str,
        correlation_id: Optional[UUID] = None,
    ) -> None:
        """Log a failed ledger store write."""
        await self.log(AuditEventBuilder.storage_error(
            operation=operation,
            error_message=error_message,
            correlation_id=correlation_id,
        ))


def create_correlation_id() -> UUID:
    """
    Create a new correlation ID for tracking related events.

    Use this at the start of a reconciliation run or a pairing exchange
    and pass it through all subsequent operations.
    """
    return uuid4()
