"""
Storage Services Package

Provides the abstract ledger-store contract and concrete implementations.
The in-memory store is the default; Google Sheets is the persistent option.
"""

from autoledger.services.storage.interface import (
    COLLECTION_INDEXES,
    COLLECTION_KEYS,
    AuditStorageInterface,
    Collection,
    CollectionStore,
    DuplicateError,
    LedgerStoreInterface,
    StorageError,
    seed_default_categories,
)
from autoledger.services.storage.memory import (
    InMemoryAuditStorage,
    InMemoryCollection,
    InMemoryLedgerStore,
)

__all__ = [
    # Interfaces
    "AuditStorageInterface",
    "Collection",
    "CollectionStore",
    "LedgerStoreInterface",
    "COLLECTION_INDEXES",
    "COLLECTION_KEYS",
    "seed_default_categories",
    # Exceptions
    "DuplicateError",
    "StorageError",
    # In-memory implementation
    "InMemoryAuditStorage",
    "InMemoryCollection",
    "InMemoryLedgerStore",
]
