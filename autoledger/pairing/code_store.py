"""
Pairing Code Store

The stateless server side of pairing sync: parks an encrypted snapshot under
a short one-time code and hands it out once, within a fixed window.

DESIGN DECISION: Codes are 7 characters from an alphabet without the
look-alikes 0/O and 1/I, so a code read off one screen can be typed on
another without guessing.

CRITICAL: Expiry is measured from the server-stamped ``created_at`` with
the server clock. Once past the window a code is expired permanently; there
is no grace period and no background sweep.

Known limitation: redeeming marks the code used with a read-then-write, so
two devices redeeming the same code at the same instant may both succeed.
"""

import secrets
from abc import ABC, abstractmethod
from datetime import datetime, timedelta
from typing import Callable, Optional

import structlog

from autoledger.config import PairingSettings, get_settings
from autoledger.models.ledger import utc_now
from autoledger.models.sync import SyncPackage
from autoledger.pairing.errors import (
    BadRequestError,
    CodeAlreadyUsedError,
    CodeExpiredError,
    CodeNotFoundError,
    PairingError,
)


logger = structlog.get_logger(__name__)

CODE_ALPHABET = "ABCDEFGHJKLMNPQRSTUVWXYZ23456789"
DEFAULT_CODE_LENGTH = 7
MAX_CODE_ATTEMPTS = 20


def generate_code(length: int = DEFAULT_CODE_LENGTH) -> str:
    """Random pairing code drawn from CODE_ALPHABET."""
    return "".join(secrets.choice(CODE_ALPHABET) for _ in range(length))


def normalize_code(code: Optional[str]) -> str:
    """Codes are case-insensitive and tolerate surrounding whitespace."""
    if not isinstance(code, str):
        return ""
    return code.strip().upper()


# =============================================================================
# CLIENT-FACING CONTRACT
# =============================================================================

class RemoteCodeStore(ABC):
    """
    What the pairing sync service needs from the remote store.

    Implemented in-process by PairingCodeStore and over HTTP by
    HttpRemoteCodeStore.
    """

    @abstractmethod
    async def upload(self, payload: str) -> str:
        """Park ``payload`` and return its pairing code."""
        pass

    @abstractmethod
    async def download(self, code: str) -> str:
        """Redeem ``code`` and return the payload parked under it."""
        pass


# =============================================================================
# PERSISTENCE
# =============================================================================

class SyncPackageRepository(ABC):
    """Storage for parked snapshots, keyed by pairing code."""

    @abstractmethod
    async def get(self, code: str) -> Optional[SyncPackage]:
        pass

    @abstractmethod
    async def create(self, package: SyncPackage) -> None:
        pass

    @abstractmethod
    async def mark_used(self, code: str) -> None:
        pass


class InMemorySyncPackageRepository(SyncPackageRepository):
    """Dict-backed repository for tests and single-process deployments."""

    def __init__(self):
        self._packages: dict[str, SyncPackage] = {}

    def __len__(self) -> int:
        return len(self._packages)

    async def get(self, code: str) -> Optional[SyncPackage]:
        package = self._packages.get(code)
        return package.model_copy() if package else None

    async def create(self, package: SyncPackage) -> None:
        self._packages[package.pairing_code] = package.model_copy()

    async def mark_used(self, code: str) -> None:
        package = self._packages.get(code)
        if package is not None:
            self._packages[code] = package.model_copy(update={"is_used": True})


# =============================================================================
# CODE STORE
# =============================================================================

class PairingCodeStore(RemoteCodeStore):
    """
    Issues and redeems one-time pairing codes.

    The clock and code generator are injectable for tests.
    """

    def __init__(
        self,
        repository: Optional[SyncPackageRepository] = None,
        settings: Optional[PairingSettings] = None,
        clock: Optional[Callable[[], datetime]] = None,
        code_generator: Optional[Callable[[int], str]] = None,
    ):
        self._repository = repository or InMemorySyncPackageRepository()
        self._settings = settings or get_settings().pairing
        self._clock = clock or utc_now
        self._generate = code_generator or generate_code

    @property
    def ttl(self) -> timedelta:
        return timedelta(seconds=self._settings.code_ttl_seconds)

    async def upload(self, payload: str) -> str:
        """
        Park an encrypted payload under a fresh code.

        Raises:
            BadRequestError: If the payload is missing or empty
        """
        if not isinstance(payload, str) or not payload:
            raise BadRequestError("payload가 필요합니다.")

        code = await self._unused_code()
        await self._repository.create(SyncPackage(
            pairing_code=code,
            payload=payload,
            created_at=self._clock(),
            is_used=False,
        ))
        logger.info("pairing_code_issued", size=len(payload))
        return code

    async def download(self, code: str) -> str:
        """
        Redeem a code exactly once.

        Raises:
            BadRequestError: If no code was given
            CodeNotFoundError: If the code is unknown
            CodeAlreadyUsedError: If the code was redeemed before
            CodeExpiredError: If the code is older than the TTL
        """
        code = normalize_code(code)
        if not code:
            raise BadRequestError("code가 필요합니다.")

        package = await self._repository.get(code)
        if package is None:
            raise CodeNotFoundError()
        if package.is_used:
            raise CodeAlreadyUsedError()
        if self._clock() - package.created_at > self.ttl:
            raise CodeExpiredError()

        await self._repository.mark_used(code)
        logger.info("pairing_code_redeemed")
        return package.payload

    async def _unused_code(self) -> str:
        length = self._settings.code_length
        for _ in range(MAX_CODE_ATTEMPTS):
            code = self._generate(length)
            if await self._repository.get(code) is None:
                return code
        raise PairingError("Could not allocate a free pairing code")
