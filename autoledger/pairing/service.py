"""
Pairing Sync Service

Moves the whole ledger between two devices without an account.

Export flow:
1. Check the password (at least 4 characters)
2. Read chapters, records and categories from the ledger store
3. Serialize → compress → encrypt with the password
4. Upload the blob; the remote store answers with a pairing code

Import flow:
1. Redeem the pairing code for the blob
2. Decrypt → decompress → parse
3. OVERWRITE the three local collections with the imported lists
4. Emit ``ledger_changed``

DESIGN DECISION: Import overwrites instead of merging. The snapshot is the
other device's whole ledger, and the user asked for that ledger. There is
no cross-device lock; the last snapshot imported wins.

CRITICAL: The password is only ever used locally to derive the key. It is
never sent, stored or logged. The code and password travel to the other
device through a channel we do not manage (the user reads them off).
"""

from typing import Optional
from uuid import UUID

import structlog
from pydantic import ValidationError

from autoledger.audit import AuditLogger, create_correlation_id
from autoledger.config import PairingSettings, get_settings
from autoledger.events import LedgerSignal, ledger_changed
from autoledger.models.audit import AuditEventBuilder
from autoledger.models.ledger import Category, Chapter, LedgerExport, LedgerRecord
from autoledger.pairing.code_store import RemoteCodeStore, normalize_code
from autoledger.pairing.crypto import open_ledger, seal_ledger
from autoledger.pairing.errors import BadRequestError, PairingError, SyncFailedError
from autoledger.services.storage import CollectionStore, LedgerStoreInterface, StorageError


logger = structlog.get_logger(__name__)


class PairingSyncService:
    """
    Export and import of encrypted ledger snapshots via pairing codes.

    Usage:
        service = PairingSyncService(store, HttpRemoteCodeStore())
        code = await service.export("1234")
        ...
        await other_service.import_ledger(code, "1234")
    """

    def __init__(
        self,
        store: LedgerStoreInterface,
        remote: RemoteCodeStore,
        settings: Optional[PairingSettings] = None,
        signal: Optional[LedgerSignal] = None,
        audit_logger: Optional[AuditLogger] = None,
    ):
        self._store = store
        self._remote = remote
        self._settings = settings or get_settings().pairing
        self._signal = signal or ledger_changed
        self._audit_logger = audit_logger

    # -------------------------------------------------------------------------
    # Export
    # -------------------------------------------------------------------------

    async def export(self, password: str) -> str:
        """
        Encrypt and upload the local ledger.

        Returns:
            The pairing code to show the user

        Raises:
            BadRequestError: If the password is shorter than the minimum
            PairingError: Any upload failure, mapped to the taxonomy
        """
        correlation_id = create_correlation_id()
        minimum = self._settings.min_password_length
        if not isinstance(password, str) or len(password) < minimum:
            raise BadRequestError(f"비밀번호는 {minimum}자리 이상 입력해주세요.")

        try:
            snapshot = await self.gather()
            payload = seal_ledger(snapshot, password, self._settings.kdf_iterations)
            code = await self._remote.upload(payload)
        except PairingError as e:
            await self._log_failure("export", e, correlation_id)
            raise

        counts = self._counts(snapshot)
        logger.info("ledger_exported", **counts)
        if self._audit_logger:
            await self._audit_logger.log(AuditEventBuilder.sync_exported(
                pairing_code=code,
                counts=counts,
                correlation_id=correlation_id,
            ))
        return code

    async def gather(self) -> LedgerExport:
        """
        Read the whole local ledger into an export document.

        Raises:
            SyncFailedError: If the store cannot be read
        """
        try:
            chapters = await self._store.chapters.get_all()
            records = await self._store.records.get_all()
            categories = await self._store.categories.get_all()
            return LedgerExport(
                chapters=[Chapter.model_validate(doc) for doc in chapters],
                records=[LedgerRecord.model_validate(doc) for doc in records],
                categories=[Category.model_validate(doc) for doc in categories],
            )
        except (StorageError, ValidationError) as e:
            logger.error("ledger_read_failed", error=str(e))
            raise SyncFailedError() from e

    # -------------------------------------------------------------------------
    # Import
    # -------------------------------------------------------------------------

    async def import_ledger(self, code: str, password: str) -> LedgerExport:
        """
        Redeem ``code``, decrypt with ``password`` and overwrite the ledger.

        Returns:
            The imported snapshot

        Raises:
            BadRequestError: If code or password is missing
            CodeNotFoundError / CodeAlreadyUsedError / CodeExpiredError
            SyncFailedError: Wrong password, corrupt payload, or a store
                write failure
        """
        correlation_id = create_correlation_id()
        code = normalize_code(code)
        if not code:
            raise BadRequestError("code가 필요합니다.")
        if not isinstance(password, str) or not password:
            raise BadRequestError("비밀번호를 입력해주세요.")

        try:
            payload = await self._remote.download(code)
            snapshot = open_ledger(payload, password, self._settings.kdf_iterations)
            await self.overwrite(snapshot)
        except PairingError as e:
            await self._log_failure("import", e, correlation_id)
            raise

        self._signal.emit()

        counts = self._counts(snapshot)
        logger.info("ledger_imported", **counts)
        if self._audit_logger:
            await self._audit_logger.log(AuditEventBuilder.sync_imported(
                pairing_code=code,
                counts=counts,
                correlation_id=correlation_id,
            ))
        return snapshot

    async def overwrite(self, snapshot: LedgerExport) -> None:
        """
        Replace the three collections with the snapshot's lists.

        A failure part-way leaves the ledger partially replaced; running the
        import again with a fresh code repairs it.

        Raises:
            SyncFailedError: If a store write fails
        """
        try:
            await self._replace(self._store.chapters, snapshot.chapters)
            await self._replace(self._store.records, snapshot.records)
            await self._replace(self._store.categories, snapshot.categories)
        except StorageError as e:
            logger.error("ledger_overwrite_failed", error=str(e))
            raise SyncFailedError() from e

    @staticmethod
    async def _replace(collection: CollectionStore, documents: list) -> None:
        await collection.clear()
        for document in documents:
            await collection.put(document.to_document())

    # -------------------------------------------------------------------------
    # Helpers
    # -------------------------------------------------------------------------

    @staticmethod
    def _counts(snapshot: LedgerExport) -> dict[str, int]:
        return {
            "chapters": len(snapshot.chapters),
            "records": len(snapshot.records),
            "categories": len(snapshot.categories),
        }

    async def _log_failure(
        self,
        operation: str,
        error: PairingError,
        correlation_id: UUID,
    ) -> None:
        logger.warning(
            "pairing_sync_failed",
            operation=operation,
            error_type=type(error).__name__,
            status=error.http_status,
        )
        if self._audit_logger:
            await self._audit_logger.log(AuditEventBuilder.sync_failed(
                operation=operation,
                error_type=type(error).__name__,
                error_message=error.message,
                correlation_id=correlation_id,
            ))
