"""
Shared fixtures.

No real network, device or Google calls in tests: every external
collaborator has an in-memory stand-in.
"""

from datetime import datetime, timedelta, timezone

import pytest

from autoledger.audit import AuditLogger
from autoledger.config import CaptureSettings, PairingSettings
from autoledger.events import LedgerSignal
from autoledger.parsing import NotificationParser
from autoledger.rules import RuleEngine
from autoledger.services.storage import InMemoryAuditStorage, InMemoryLedgerStore


FIXED_NOW = datetime(2025, 12, 5, 9, 30, tzinfo=timezone.utc)


class MutableClock:
    """A clock tests can move forward."""

    def __init__(self, now: datetime = FIXED_NOW):
        self.now = now

    def __call__(self) -> datetime:
        return self.now

    def advance(self, seconds: float) -> None:
        self.now = self.now + timedelta(seconds=seconds)


class SignalCounter:
    """Receiver that counts emissions."""

    def __init__(self, signal: LedgerSignal):
        self.count = 0
        signal.connect(self)

    def __call__(self) -> None:
        self.count += 1


@pytest.fixture
def clock() -> MutableClock:
    return MutableClock()


@pytest.fixture
def parser(clock) -> NotificationParser:
    return NotificationParser(RuleEngine(), clock=clock)


@pytest.fixture
def store() -> InMemoryLedgerStore:
    return InMemoryLedgerStore()


@pytest.fixture
def audit_storage() -> InMemoryAuditStorage:
    return InMemoryAuditStorage()


@pytest.fixture
def audit_logger(audit_storage) -> AuditLogger:
    return AuditLogger(audit_storage)


@pytest.fixture
def capture_settings() -> CaptureSettings:
    return CaptureSettings(auto_save_income=True, auto_save_expense=True)


@pytest.fixture
def pairing_settings() -> PairingSettings:
    # Low KDF cost keeps the crypto tests fast
    return PairingSettings(
        upload_url="http://testserver/upload",
        download_url="http://testserver/download",
        kdf_iterations=1_000,
    )


@pytest.fixture
def signal() -> LedgerSignal:
    return LedgerSignal("test_ledger_changed")


@pytest.fixture
def signal_counter(signal) -> SignalCounter:
    return SignalCounter(signal)
