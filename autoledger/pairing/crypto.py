"""
Snapshot encryption for pairing sync.

The ledger is serialized to JSON, compressed with zlib and encrypted with a
key derived from the user's password (PBKDF2-HMAC-SHA256 → Fernet). The
password never leaves the device; only the opaque blob is uploaded.

Wire format of the blob::

    base64url(salt) + "." + fernet_token

A fresh random salt is drawn for every export.

Security Notes:
    - Never log the password or the plaintext snapshot
    - Wrong password and corrupt blob raise the same SyncFailedError
"""

import base64
import binascii
import json
import os
import zlib

from cryptography.fernet import Fernet, InvalidToken
from cryptography.hazmat.primitives import hashes
from cryptography.hazmat.primitives.kdf.pbkdf2 import PBKDF2HMAC
from pydantic import ValidationError

from autoledger.models.ledger import LedgerExport
from autoledger.pairing.errors import SyncFailedError


SALT_BYTES = 16
DEFAULT_KDF_ITERATIONS = 390_000
SEPARATOR = "."


def derive_key(password: str, salt: bytes, iterations: int = DEFAULT_KDF_ITERATIONS) -> bytes:
    """
    Derive a Fernet key from a password.

    Returns:
        Base64-encoded 32-byte key
    """
    kdf = PBKDF2HMAC(
        algorithm=hashes.SHA256(),
        length=32,
        salt=salt,
        iterations=iterations,
    )
    return base64.urlsafe_b64encode(kdf.derive(password.encode("utf-8")))


def encrypt_payload(
    plaintext: bytes,
    password: str,
    iterations: int = DEFAULT_KDF_ITERATIONS,
) -> str:
    """Encrypt ``plaintext`` under ``password`` into the wire format."""
    salt = os.urandom(SALT_BYTES)
    token = Fernet(derive_key(password, salt, iterations)).encrypt(plaintext)
    encoded_salt = base64.urlsafe_b64encode(salt).decode("ascii")
    return f"{encoded_salt}{SEPARATOR}{token.decode('ascii')}"


def decrypt_payload(
    payload: str,
    password: str,
    iterations: int = DEFAULT_KDF_ITERATIONS,
) -> bytes:
    """
    Decrypt a wire-format blob.

    Raises:
        SyncFailedError: Wrong password or malformed blob
    """
    try:
        encoded_salt, token = payload.split(SEPARATOR, 1)
        salt = base64.urlsafe_b64decode(encoded_salt.encode("ascii"))
        return Fernet(derive_key(password, salt, iterations)).decrypt(token.encode("ascii"))
    except (InvalidToken, ValueError, binascii.Error, AttributeError) as e:
        raise SyncFailedError() from e


def serialize_ledger(export: LedgerExport) -> bytes:
    """LedgerExport → compressed JSON bytes."""
    document = export.model_dump(mode="json", exclude_none=True)
    raw = json.dumps(document, ensure_ascii=False, separators=(",", ":"))
    return zlib.compress(raw.encode("utf-8"))


def deserialize_ledger(data: bytes) -> LedgerExport:
    """
    Compressed JSON bytes → LedgerExport.

    Raises:
        SyncFailedError: If the bytes do not decompress or do not parse
    """
    try:
        raw = zlib.decompress(data)
        return LedgerExport.model_validate_json(raw)
    except (zlib.error, ValidationError, ValueError) as e:
        raise SyncFailedError() from e


def seal_ledger(
    export: LedgerExport,
    password: str,
    iterations: int = DEFAULT_KDF_ITERATIONS,
) -> str:
    """Serialize, compress and encrypt a ledger snapshot."""
    return encrypt_payload(serialize_ledger(export), password, iterations)


def open_ledger(
    payload: str,
    password: str,
    iterations: int = DEFAULT_KDF_ITERATIONS,
) -> LedgerExport:
    """Decrypt, decompress and parse a ledger snapshot."""
    return deserialize_ledger(decrypt_payload(payload, password, iterations))
