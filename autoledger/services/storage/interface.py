"""
Abstract Storage Interface

DESIGN DECISION: The ledger store is an external collaborator. The
reconciliation engine and the pairing service depend only on this
contract, which lets us:
1. Run the whole pipeline against in-memory storage in tests
2. Back the ledger with Google Sheets (or a device key/value store) later
3. Keep business logic decoupled from storage implementation

The contract mirrors a small key/value object store: one named collection
per document kind, a key path per collection, optional secondary indexes,
and change subscriptions.
"""

from abc import ABC, abstractmethod
from enum import Enum
from typing import Any, Callable, Optional
from uuid import UUID, uuid4

import structlog

from autoledger.models.audit import AuditEvent
from autoledger.models.ledger import DEFAULT_CATEGORIES, Category


logger = structlog.get_logger(__name__)

Document = dict[str, Any]
Listener = Callable[[list[Document]], None]


class Collection(str, Enum):
    """Named collections held by the ledger store."""
    CHAPTERS = "chapters"
    RECORDS = "records"
    CATEGORIES = "categories"


# Key path of each collection
COLLECTION_KEYS: dict[Collection, str] = {
    Collection.CHAPTERS: "chapter_id",
    Collection.RECORDS: "id",
    Collection.CATEGORIES: "id",
}

# Secondary indexes (index name == indexed field)
COLLECTION_INDEXES: dict[Collection, tuple[str, ...]] = {
    Collection.CHAPTERS: (),
    Collection.RECORDS: ("chapter_id",),
    Collection.CATEGORIES: (),
}


def new_key() -> str:
    """Generate a store key for a document that arrived without one."""
    return uuid4().hex


class CollectionStore(ABC):
    """
    Abstract interface for one named collection.

    Every write that commits notifies subscribers with the full current
    list of the collection.
    """

    def __init__(self, name: Collection):
        self.name = name
        self.key_path = COLLECTION_KEYS[name]
        self.indexes = COLLECTION_INDEXES[name]
        self._listeners: list[Listener] = []

    @abstractmethod
    async def get_all(self) -> list[Document]:
        """Return every document in insertion order."""
        pass

    @abstractmethod
    async def get_all_by_index(self, index_name: str, key: Any) -> list[Document]:
        """
        Return every document whose indexed field equals ``key``.

        Raises:
            StorageError: If ``index_name`` is not an index of this collection
        """
        pass

    @abstractmethod
    async def add(self, value: Document) -> str:
        """
        Insert a new document and return its key.

        A key is assigned when the document carries none.

        Raises:
            DuplicateError: If a document with the same key exists
            StorageError: If the write fails
        """
        pass

    @abstractmethod
    async def put(self, value: Document) -> str:
        """Insert or replace the document stored under its key."""
        pass

    @abstractmethod
    async def delete(self, key: str) -> None:
        """Delete the document stored under ``key``. Missing keys are a no-op."""
        pass

    @abstractmethod
    async def clear(self) -> None:
        """Delete every document in the collection."""
        pass

    def subscribe(self, listener: Listener) -> Callable[[], None]:
        """
        Register a listener for committed writes.

        Returns a callable that removes the listener again.
        """
        self._listeners.append(listener)

        def unsubscribe() -> None:
            if listener in self._listeners:
                self._listeners.remove(listener)

        return unsubscribe

    def _with_key(self, value: Document) -> Document:
        """Copy of ``value`` guaranteed to carry a key."""
        document = dict(value)
        if not document.get(self.key_path):
            document[self.key_path] = new_key()
        return document

    def _check_index(self, index_name: str) -> None:
        if index_name not in self.indexes:
            raise StorageError(
                f"Collection '{self.name.value}' has no index '{index_name}'"
            )

    async def _notify(self) -> None:
        """Push the committed state to subscribers."""
        if not self._listeners:
            return
        documents = await self.get_all()
        for listener in list(self._listeners):
            try:
                listener(documents)
            except Exception as e:
                # A broken subscriber must not undo a committed write
                logger.error(
                    "store_listener_failed",
                    collection=self.name.value,
                    error=str(e),
                )


class LedgerStoreInterface(ABC):
    """
    The whole ledger: chapters, records and categories.

    Any storage implementation (in-memory, Google Sheets, a device
    database) must provide the three collections.
    """

    @abstractmethod
    def collection(self, name: Collection) -> CollectionStore:
        """Return the store for one collection."""
        pass

    @property
    def chapters(self) -> CollectionStore:
        return self.collection(Collection.CHAPTERS)

    @property
    def records(self) -> CollectionStore:
        return self.collection(Collection.RECORDS)

    @property
    def categories(self) -> CollectionStore:
        return self.collection(Collection.CATEGORIES)


class AuditStorageInterface(ABC):
    """
    Abstract interface for audit log storage.

    Audit logs are append-only - we never delete or modify them.
    """

    @abstractmethod
    async def append_event(self, event: AuditEvent) -> bool:
        """
        Append an audit event to the log.

        Returns:
            True if logged successfully
        """
        pass

    @abstractmethod
    async def get_events_by_correlation_id(
        self,
        correlation_id: UUID,
    ) -> list[AuditEvent]:
        """Get all events of one run or sync, in chronological order."""
        pass

    @abstractmethod
    async def get_recent_events(
        self,
        limit: int = 100,
    ) -> list[AuditEvent]:
        """Get the most recent audit events (newest first)."""
        pass


async def seed_default_categories(
    store: LedgerStoreInterface,
    names: Optional[tuple[str, ...]] = None,
) -> int:
    """
    Fill an empty categories collection with the bundled defaults.

    Returns the number of categories written (0 if any already exist).
    """
    if await store.categories.get_all():
        return 0
    names = names or DEFAULT_CATEGORIES
    for name in names:
        await store.categories.add(Category(name=name).to_document())
    return len(names)


class StorageError(Exception):
    """Base exception for storage operations."""
    pass


class DuplicateError(StorageError):
    """Attempted to insert a duplicate entity."""
    pass
