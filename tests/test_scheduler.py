"""
Tests for the trigger scheduler (bridge → engine → signal).
"""

import asyncio

import pytest

from autoledger.models import AuditEventType
from autoledger.reconciliation import (
    EngineState,
    ReconciliationEngine,
    TriggerOutcome,
    TriggerScheduler,
    TriggerSource,
    decode_pending,
)
from autoledger.services.bridge import InMemoryNotificationBridge
from autoledger.services.storage import Collection, InMemoryCollection, StorageError


STARBUCKS = {"title": "신한카드", "text": "스타벅스 강남점 5,000원 승인", "package": "com.shcard.smartpay"}
OLIVE_YOUNG = {"title": "삼성카드", "text": "올리브영 명동점 12,000원 결제"}


class SlowBridge(InMemoryNotificationBridge):
    """Bridge that yields to the event loop before answering."""

    async def has_notification_access(self) -> bool:
        await asyncio.sleep(0.01)
        return await super().has_notification_access()


class GarbageBridge(InMemoryNotificationBridge):
    """Bridge whose queue is not valid JSON."""

    async def get_pending_notifications(self) -> str:
        return "{not json"


class BrokenRecords(InMemoryCollection):
    """Record collection that accepts one write and then fails."""

    def __init__(self):
        super().__init__(Collection.RECORDS)
        self.writes = 0

    async def add(self, value):
        if self.writes >= 1:
            raise StorageError("quota exceeded")
        self.writes += 1
        return await super().add(value)


@pytest.fixture
def engine(store, parser, capture_settings, audit_logger) -> ReconciliationEngine:
    return ReconciliationEngine(store, parser, capture_settings, audit_logger)


def make_scheduler(bridge, engine, signal, audit_logger=None) -> TriggerScheduler:
    return TriggerScheduler(bridge, engine, signal=signal, audit_logger=audit_logger)


class TestDecodePending:
    """Tests for reading the bridge queue."""

    def test_valid_list(self):
        """Test a normal queue."""
        assert decode_pending('[{"title": "a", "text": "b"}]') == [{"title": "a", "text": "b"}]

    @pytest.mark.parametrize("payload", ["", None, "{oops", '{"title": "a"}', "42"])
    def test_unusable_payload_is_empty(self, payload):
        """Test that anything but a JSON array counts as empty."""
        assert decode_pending(payload) == []


class TestTrigger:
    """Tests for a single trigger."""

    @pytest.mark.asyncio
    async def test_processed_clears_queue_and_signals(self, engine, store, signal, signal_counter):
        """Test the happy path."""
        bridge = InMemoryNotificationBridge([STARBUCKS, OLIVE_YOUNG])
        scheduler = make_scheduler(bridge, engine, signal)

        outcome = await scheduler.trigger(TriggerSource.APP_FOREGROUND)

        assert outcome == TriggerOutcome.PROCESSED
        assert bridge.pending == []
        assert bridge.clear_count == 1
        assert signal_counter.count == 1
        assert len(await store.records.get_all()) == 2
        assert scheduler.last_result.created == 2
        assert engine.state == EngineState.IDLE

    @pytest.mark.asyncio
    async def test_no_access(self, engine, signal, signal_counter):
        """Test that nothing is read without notification access."""
        bridge = InMemoryNotificationBridge([STARBUCKS], access_granted=False)
        scheduler = make_scheduler(bridge, engine, signal)

        outcome = await scheduler.trigger(TriggerSource.INITIAL_LOAD)

        assert outcome == TriggerOutcome.NO_ACCESS
        assert bridge.pending == [STARBUCKS]
        assert signal_counter.count == 0
        assert engine.state == EngineState.IDLE

    @pytest.mark.asyncio
    async def test_empty_queue(self, engine, signal, signal_counter):
        """Test an empty queue."""
        bridge = InMemoryNotificationBridge()
        outcome = await make_scheduler(bridge, engine, signal).trigger(TriggerSource.DB_UPDATED)

        assert outcome == TriggerOutcome.EMPTY
        assert bridge.clear_count == 0
        assert signal_counter.count == 0

    @pytest.mark.asyncio
    async def test_invalid_json_is_empty(self, engine, signal):
        """Test that an unreadable queue is treated as empty and kept."""
        bridge = GarbageBridge([STARBUCKS])
        outcome = await make_scheduler(bridge, engine, signal).trigger(TriggerSource.DB_UPDATED)

        assert outcome == TriggerOutcome.EMPTY
        assert bridge.clear_count == 0
        assert engine.state == EngineState.IDLE

    @pytest.mark.asyncio
    async def test_accepts_plain_string_source(self, engine, signal):
        """Test that the source may be given by value."""
        bridge = InMemoryNotificationBridge()
        outcome = await make_scheduler(bridge, engine, signal).trigger("app_foreground")
        assert outcome == TriggerOutcome.EMPTY


class TestReentrancy:
    """Tests for overlapping triggers."""

    @pytest.mark.asyncio
    async def test_trigger_while_running_is_dropped(
        self, engine, signal, signal_counter, audit_logger, audit_storage
    ):
        """Test that a busy engine drops the trigger and keeps the queue."""
        bridge = InMemoryNotificationBridge([STARBUCKS])
        scheduler = make_scheduler(bridge, engine, signal, audit_logger)

        engine.start()
        outcome = await scheduler.trigger(TriggerSource.DB_UPDATED)

        assert outcome == TriggerOutcome.DROPPED
        assert bridge.pending == [STARBUCKS]
        assert signal_counter.count == 0
        # The guard belongs to whoever started the run
        assert engine.state == EngineState.RUNNING
        assert audit_storage.events[-1].event_type == AuditEventType.RUN_DROPPED

    @pytest.mark.asyncio
    async def test_concurrent_triggers(self, engine, store, signal, signal_counter):
        """Test that only one of two simultaneous triggers runs."""
        bridge = SlowBridge([STARBUCKS])
        scheduler = make_scheduler(bridge, engine, signal)

        outcomes = await asyncio.gather(
            scheduler.trigger(TriggerSource.INITIAL_LOAD),
            scheduler.trigger(TriggerSource.APP_FOREGROUND),
        )

        assert sorted(o.value for o in outcomes) == ["dropped", "processed"]
        assert len(await store.records.get_all()) == 1
        assert signal_counter.count == 1
        assert engine.state == EngineState.IDLE


class TestAbortedRun:
    """Tests for a store failure during a triggered run."""

    @pytest.mark.asyncio
    async def test_aborted_run_keeps_queue(self, store, parser, capture_settings, signal, signal_counter):
        """Test that the queue survives an abort and the UI still refreshes."""
        store._collections[Collection.RECORDS] = BrokenRecords()
        engine = ReconciliationEngine(store, parser, capture_settings)
        bridge = InMemoryNotificationBridge([STARBUCKS, OLIVE_YOUNG])

        outcome = await make_scheduler(bridge, engine, signal).trigger(TriggerSource.DB_UPDATED)

        assert outcome == TriggerOutcome.ABORTED
        assert len(bridge.pending) == 2
        assert bridge.clear_count == 0
        # One record was written before the failure
        assert signal_counter.count == 1
        assert engine.state == EngineState.IDLE

    @pytest.mark.asyncio
    async def test_abort_without_mutation_is_silent(self, store, parser, capture_settings, signal, signal_counter):
        """Test that no signal fires when nothing was written."""
        broken = BrokenRecords()
        broken.writes = 1
        store._collections[Collection.RECORDS] = broken
        await store.chapters.add({"chapter_id": "c1", "title": "2025년 12월"})
        engine = ReconciliationEngine(store, parser, capture_settings)
        bridge = InMemoryNotificationBridge([STARBUCKS])

        outcome = await make_scheduler(bridge, engine, signal).trigger(TriggerSource.DB_UPDATED)

        assert outcome == TriggerOutcome.ABORTED
        assert signal_counter.count == 0


class TestLongNotification:
    """Tests for oversized alert text arriving through the bridge."""

    @pytest.mark.asyncio
    async def test_long_text_does_not_jam_queue(
        self, engine, store, signal, signal_counter, audit_logger
    ):
        """Test that a huge merchant name is saved and the rest of the queue still runs."""
        long_alert = {"title": "신한카드", "text": "가맹점" * 200 + " 5,000원 승인"}
        small_alert = {"title": "신한카드", "text": "스타벅스 3,000원 승인"}
        bridge = InMemoryNotificationBridge([long_alert, small_alert])
        scheduler = make_scheduler(bridge, engine, signal, audit_logger)

        outcome = await scheduler.trigger(TriggerSource.DB_UPDATED)

        assert outcome == TriggerOutcome.PROCESSED
        assert bridge.pending == []
        assert signal_counter.count == 1
        assert len(await store.records.get_all()) == 2
        assert engine.state == EngineState.IDLE


if __name__ == "__main__":
    pytest.main([__file__, "-v"])
