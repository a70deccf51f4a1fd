"""Services package."""

from autoledger.services.bridge import (
    InMemoryNotificationBridge,
    NotificationBridge,
)
from autoledger.services.storage import (
    AuditStorageInterface,
    Collection,
    CollectionStore,
    DuplicateError,
    InMemoryAuditStorage,
    InMemoryLedgerStore,
    LedgerStoreInterface,
    StorageError,
)

__all__ = [
    # Notification bridge
    "InMemoryNotificationBridge",
    "NotificationBridge",
    # Storage services
    "AuditStorageInterface",
    "Collection",
    "CollectionStore",
    "DuplicateError",
    "InMemoryAuditStorage",
    "InMemoryLedgerStore",
    "LedgerStoreInterface",
    "StorageError",
]
