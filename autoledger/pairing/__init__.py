"""Pairing-code sync package: encrypted ledger transfer between devices."""

from autoledger.pairing.client import HttpRemoteCodeStore
from autoledger.pairing.code_store import (
    CODE_ALPHABET,
    InMemorySyncPackageRepository,
    PairingCodeStore,
    RemoteCodeStore,
    SyncPackageRepository,
    generate_code,
    normalize_code,
)
from autoledger.pairing.crypto import (
    decrypt_payload,
    deserialize_ledger,
    encrypt_payload,
    open_ledger,
    seal_ledger,
    serialize_ledger,
)
from autoledger.pairing.errors import (
    BadRequestError,
    CodeAlreadyUsedError,
    CodeExpiredError,
    CodeNotFoundError,
    PairingError,
    SyncFailedError,
    error_for_status,
)
from autoledger.pairing.service import PairingSyncService

__all__ = [
    # Code store
    "CODE_ALPHABET",
    "HttpRemoteCodeStore",
    "InMemorySyncPackageRepository",
    "PairingCodeStore",
    "RemoteCodeStore",
    "SyncPackageRepository",
    "generate_code",
    "normalize_code",
    # Crypto
    "decrypt_payload",
    "deserialize_ledger",
    "encrypt_payload",
    "open_ledger",
    "seal_ledger",
    "serialize_ledger",
    # Errors
    "BadRequestError",
    "CodeAlreadyUsedError",
    "CodeExpiredError",
    "CodeNotFoundError",
    "PairingError",
    "SyncFailedError",
    "error_for_status",
    # Service
    "PairingSyncService",
]
