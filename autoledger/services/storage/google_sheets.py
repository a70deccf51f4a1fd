"""
Google Sheets Storage Implementation

DESIGN DECISION: Google Sheets is offered as a persistent ledger backend
because:
1. The user can look at their ledger directly in Sheets
2. No database setup required
3. Built-in backup (Google's infrastructure)

TRADEOFFS:
- Not suitable for high-volume data (we're fine for a personal ledger)
- No transactions (the reconciliation engine's dedup check makes
  re-applying a half-finished batch safe)
- Limited query capabilities (we filter in Python)

Each collection is one worksheet with two columns: the document key and
the document as JSON. That keeps the sheet schema stable while the
document models evolve.
"""

import json
from datetime import datetime
from typing import Any, Optional
from uuid import UUID

import gspread
from google.oauth2.service_account import Credentials
from tenacity import (
    retry,
    retry_if_not_exception_type,
    stop_after_attempt,
    wait_exponential,
)

from autoledger.config import GoogleSheetsSettings, get_settings
from autoledger.models.audit import AuditEvent, AuditEventType, AuditSeverity
from autoledger.services.storage.interface import (
    AuditStorageInterface,
    Collection,
    CollectionStore,
    Document,
    DuplicateError,
    LedgerStoreInterface,
    StorageError,
)


# Column layout of every collection sheet
DOCUMENT_COLUMNS = ["key", "document_json"]

# Column layout of the audit sheet
AUDIT_COLUMNS = [
    "event_id",
    "timestamp",
    "event_type",
    "severity",
    "entity_type",
    "entity_id",
    "correlation_id",
    "description",
    "details_json",
    "error_message",
]

_sheet_retry = retry(
    stop=stop_after_attempt(3),
    wait=wait_exponential(multiplier=1, min=2, max=10),
    retry=retry_if_not_exception_type(DuplicateError),
    reraise=True,
)


class GoogleSheetsClient:
    """
    Low-level Google Sheets client wrapper.

    Handles authentication and worksheet lookup.
    """

    def __init__(self, settings: Optional[GoogleSheetsSettings] = None):
        self._client: Optional[gspread.Client] = None
        self._spreadsheet: Optional[gspread.Spreadsheet] = None
        self._settings = settings or get_settings().google_sheets

    @property
    def settings(self) -> GoogleSheetsSettings:
        return self._settings

    @retry(
        stop=stop_after_attempt(3),
        wait=wait_exponential(multiplier=1, min=2, max=10),
        reraise=True,
    )
    def connect(self) -> gspread.Client:
        """
        Establish connection to Google Sheets.

        Uses service account credentials for authentication.
        """
        if self._client is None:
            try:
                scopes = [
                    "https://www.googleapis.com/auth/spreadsheets",
                    "https://www.googleapis.com/auth/drive",
                ]
                credentials = Credentials.from_service_account_file(
                    self._settings.credentials_path,
                    scopes=scopes,
                )
                self._client = gspread.authorize(credentials)
            except FileNotFoundError as e:
                raise StorageError(
                    f"Google credentials file not found: {self._settings.credentials_path}"
                ) from e
            except Exception as e:
                raise StorageError(f"Failed to connect to Google Sheets: {e}") from e

        return self._client

    def get_spreadsheet(self) -> gspread.Spreadsheet:
        """Get the configured spreadsheet."""
        if self._spreadsheet is None:
            client = self.connect()
            try:
                self._spreadsheet = client.open_by_key(
                    self._settings.spreadsheet_id
                )
            except gspread.SpreadsheetNotFound as e:
                raise StorageError(
                    f"Spreadsheet not found: {self._settings.spreadsheet_id}"
                ) from e
        return self._spreadsheet

    def get_worksheet(self, title: str, columns: list[str]) -> gspread.Worksheet:
        """Get a worksheet, creating it with a header row if missing."""
        spreadsheet = self.get_spreadsheet()
        try:
            sheet = spreadsheet.worksheet(title)
        except gspread.WorksheetNotFound:
            sheet = spreadsheet.add_worksheet(
                title=title,
                rows=1000,
                cols=len(columns),
            )
            sheet.append_row(columns)
        return sheet


class GoogleSheetsCollection(CollectionStore):
    """
    One ledger collection stored in one worksheet.

    Row 1 is the header; each following row is ``[key, document_json]``.
    """

    def __init__(self, name: Collection, client: GoogleSheetsClient, sheet_name: str):
        super().__init__(name)
        self._client = client
        self._sheet_name = sheet_name

    def _sheet(self) -> gspread.Worksheet:
        return self._client.get_worksheet(self._sheet_name, DOCUMENT_COLUMNS)

    def _row_to_document(self, row: list) -> Optional[Document]:
        if len(row) < 2 or not row[0] or not row[1]:
            return None
        return json.loads(row[1])

    def _document_to_row(self, document: Document) -> list:
        return [
            str(document[self.key_path]),
            json.dumps(document, ensure_ascii=False, default=str),
        ]

    def _find_row(self, rows: list[list], key: str) -> Optional[int]:
        """1-based sheet row index of ``key``, header included."""
        for idx, row in enumerate(rows[1:], start=2):
            if row and row[0] == key:
                return idx
        return None

    async def get_all(self) -> list[Document]:
        try:
            rows = self._sheet().get_all_values()[1:]
            documents = []
            for row in rows:
                document = self._row_to_document(row)
                if document is not None:
                    documents.append(document)
            return documents
        except StorageError:
            raise
        except Exception as e:
            raise StorageError(f"Failed to read {self.name.value}: {e}") from e

    async def get_all_by_index(self, index_name: str, key: Any) -> list[Document]:
        self._check_index(index_name)
        return [doc for doc in await self.get_all() if doc.get(index_name) == key]

    @_sheet_retry
    async def add(self, value: Document) -> str:
        document = self._with_key(value)
        key = str(document[self.key_path])
        try:
            sheet = self._sheet()
            if self._find_row(sheet.get_all_values(), key) is not None:
                raise DuplicateError(
                    f"Key already exists in '{self.name.value}': {key}"
                )
            sheet.append_row(self._document_to_row(document), value_input_option="RAW")
        except StorageError:
            raise
        except Exception as e:
            raise StorageError(f"Failed to add to {self.name.value}: {e}") from e
        await self._notify()
        return key

    @_sheet_retry
    async def put(self, value: Document) -> str:
        document = self._with_key(value)
        key = str(document[self.key_path])
        try:
            sheet = self._sheet()
            row_idx = self._find_row(sheet.get_all_values(), key)
            row = self._document_to_row(document)
            if row_idx is None:
                sheet.append_row(row, value_input_option="RAW")
            else:
                for col_idx, cell in enumerate(row, start=1):
                    sheet.update_cell(row_idx, col_idx, cell)
        except StorageError:
            raise
        except Exception as e:
            raise StorageError(f"Failed to put into {self.name.value}: {e}") from e
        await self._notify()
        return key

    @_sheet_retry
    async def delete(self, key: str) -> None:
        try:
            sheet = self._sheet()
            row_idx = self._find_row(sheet.get_all_values(), key)
            if row_idx is None:
                return
            sheet.delete_rows(row_idx)
        except StorageError:
            raise
        except Exception as e:
            raise StorageError(f"Failed to delete from {self.name.value}: {e}") from e
        await self._notify()

    @_sheet_retry
    async def clear(self) -> None:
        try:
            sheet = self._sheet()
            sheet.clear()
            sheet.append_row(DOCUMENT_COLUMNS)
        except StorageError:
            raise
        except Exception as e:
            raise StorageError(f"Failed to clear {self.name.value}: {e}") from e
        await self._notify()


class GoogleSheetsLedgerStore(LedgerStoreInterface):
    """Ledger store with one worksheet per collection."""

    def __init__(self, client: Optional[GoogleSheetsClient] = None):
        self._client = client or GoogleSheetsClient()
        settings = self._client.settings
        sheet_names = {
            Collection.CHAPTERS: settings.chapters_sheet_name,
            Collection.RECORDS: settings.records_sheet_name,
            Collection.CATEGORIES: settings.categories_sheet_name,
        }
        self._collections = {
            name: GoogleSheetsCollection(name, self._client, sheet_names[name])
            for name in Collection
        }

    def collection(self, name: Collection) -> CollectionStore:
        return self._collections[Collection(name)]


class GoogleSheetsAuditStorage(AuditStorageInterface):
    """
    Google Sheets implementation of audit log storage.

    Audit events are append-only.
    """

    def __init__(self, client: Optional[GoogleSheetsClient] = None):
        self._client = client or GoogleSheetsClient()

    def _sheet(self) -> gspread.Worksheet:
        return self._client.get_worksheet(
            self._client.settings.audit_sheet_name, AUDIT_COLUMNS
        )

    def _row_to_event(self, row: list) -> AuditEvent:
        """Convert a spreadsheet row to an AuditEvent."""
        def safe_get(index: int, default: str = "") -> str:
            try:
                return row[index] if row[index] else default
            except IndexError:
                return default

        return AuditEvent(
            event_id=UUID(safe_get(0)),
            timestamp=datetime.fromisoformat(safe_get(1)),
            event_type=AuditEventType(safe_get(2)),
            severity=AuditSeverity(safe_get(3)),
            entity_type=safe_get(4) or None,
            entity_id=safe_get(5) or None,
            correlation_id=UUID(safe_get(6)) if safe_get(6) else None,
            description=safe_get(7),
            details=json.loads(safe_get(8)) if safe_get(8) else {},
            error_message=safe_get(9) or None,
        )

    def _read_events(self) -> list[AuditEvent]:
        events = []
        for row in self._sheet().get_all_values()[1:]:
            if not row or not row[0]:
                continue
            try:
                events.append(self._row_to_event(row))
            except (ValueError, IndexError):
                continue  # Skip malformed rows
        return events

    @retry(
        stop=stop_after_attempt(3),
        wait=wait_exponential(multiplier=1, min=2, max=10),
        reraise=True,
    )
    async def append_event(self, event: AuditEvent) -> bool:
        """Append an audit event."""
        try:
            self._sheet().append_row(event.to_sheets_row(), value_input_option="RAW")
            return True
        except Exception as e:
            raise StorageError(f"Failed to write audit event: {e}") from e

    async def get_events_by_correlation_id(
        self,
        correlation_id: UUID,
    ) -> list[AuditEvent]:
        try:
            events = [e for e in self._read_events() if e.correlation_id == correlation_id]
        except Exception as e:
            raise StorageError(f"Failed to get audit events: {e}") from e
        events.sort(key=lambda e: e.timestamp)
        return events

    async def get_recent_events(
        self,
        limit: int = 100,
    ) -> list[AuditEvent]:
        try:
            events = self._read_events()
        except Exception as e:
            raise StorageError(f"Failed to get audit events: {e}") from e
        events.sort(key=lambda e: e.timestamp, reverse=True)
        return events[:limit]
