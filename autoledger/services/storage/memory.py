"""
In-Memory Storage Implementation

Used for tests, for the CLI, and as the default when no persistent
backend is configured. Documents are deep-copied on the way in and out so
callers can never mutate stored state behind the store's back.
"""

import copy
from typing import Any
from uuid import UUID

from autoledger.models.audit import AuditEvent
from autoledger.services.storage.interface import (
    AuditStorageInterface,
    Collection,
    CollectionStore,
    Document,
    DuplicateError,
    LedgerStoreInterface,
)


class InMemoryCollection(CollectionStore):
    """A collection kept in an insertion-ordered dict."""

    def __init__(self, name: Collection):
        super().__init__(name)
        self._documents: dict[str, Document] = {}

    async def get_all(self) -> list[Document]:
        return [copy.deepcopy(doc) for doc in self._documents.values()]

    async def get_all_by_index(self, index_name: str, key: Any) -> list[Document]:
        self._check_index(index_name)
        return [
            copy.deepcopy(doc)
            for doc in self._documents.values()
            if doc.get(index_name) == key
        ]

    async def add(self, value: Document) -> str:
        document = self._with_key(value)
        key = document[self.key_path]
        if key in self._documents:
            raise DuplicateError(
                f"Key already exists in '{self.name.value}': {key}"
            )
        self._documents[key] = copy.deepcopy(document)
        await self._notify()
        return key

    async def put(self, value: Document) -> str:
        document = self._with_key(value)
        key = document[self.key_path]
        self._documents[key] = copy.deepcopy(document)
        await self._notify()
        return key

    async def delete(self, key: str) -> None:
        if self._documents.pop(key, None) is not None:
            await self._notify()

    async def clear(self) -> None:
        self._documents.clear()
        await self._notify()


class InMemoryLedgerStore(LedgerStoreInterface):
    """Ledger store holding all three collections in memory."""

    def __init__(self):
        self._collections = {name: InMemoryCollection(name) for name in Collection}

    def collection(self, name: Collection) -> CollectionStore:
        return self._collections[Collection(name)]


class InMemoryAuditStorage(AuditStorageInterface):
    """Append-only audit log kept in a list."""

    def __init__(self):
        self._events: list[AuditEvent] = []

    @property
    def events(self) -> list[AuditEvent]:
        return list(self._events)

    async def append_event(self, event: AuditEvent) -> bool:
        self._events.append(event)
        return True

    async def get_events_by_correlation_id(
        self,
        correlation_id: UUID,
    ) -> list[AuditEvent]:
        events = [e for e in self._events if e.correlation_id == correlation_id]
        events.sort(key=lambda e: e.timestamp)
        return events

    async def get_recent_events(
        self,
        limit: int = 100,
    ) -> list[AuditEvent]:
        events = sorted(self._events, key=lambda e: e.timestamp, reverse=True)
        return events[:limit]
