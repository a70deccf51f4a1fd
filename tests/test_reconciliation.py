"""
Tests for the reconciliation engine.

Flow under test: batch → parse → dedup / cancellation → chapter → record.
"""

from datetime import date, datetime, timezone

import pytest

from autoledger.config import CaptureSettings
from autoledger.models import AuditEventType, Chapter, LedgerRecord, TransactionType
from autoledger.reconciliation import (
    EngineState,
    EngineStateError,
    ItemStatus,
    ReconciliationBusyError,
    ReconciliationEngine,
    RunStatus,
    SkipReason,
    titles_overlap,
)
from autoledger.services.storage import (
    Collection,
    InMemoryCollection,
    InMemoryLedgerStore,
    StorageError,
)


STARBUCKS = {"title": "신한카드", "text": "스타벅스 강남점 5,000원 승인"}
STARBUCKS_AGAIN = {"title": "신한카드 승인", "text": "스타벅스 5,000원"}
STARBUCKS_CANCEL = {"title": "신한카드", "text": "승인취소 스타벅스 5,000원"}
OLIVE_YOUNG = {"title": "삼성카드", "text": "올리브영 명동점 12,000원 결제"}
SALARY = {"title": "신한은행", "text": "급여 입금 2,500,000원"}
NOT_FINANCIAL = {"title": "카카오톡", "text": "새 메시지가 도착했습니다"}

UNTITLED_RECORD = LedgerRecord(
    id="manual",
    chapter_id="c1",
    title="",
    amount=5000,
    type=TransactionType.EXPENSE,
    category="기타",
    date=date(2025, 12, 5),
    source="현금",
)


class FlakyCollection(InMemoryCollection):
    """Collection whose adds start failing after ``fail_after`` successes."""

    def __init__(self, name: Collection, fail_after: int):
        super().__init__(name)
        self.fail_after = fail_after
        self.adds = 0

    async def add(self, value):
        if self.adds >= self.fail_after:
            raise StorageError("disk full")
        self.adds += 1
        return await super().add(value)


class FlakyLedgerStore(InMemoryLedgerStore):
    """In-memory store whose record writes fail part-way through."""

    def __init__(self, fail_after: int):
        super().__init__()
        self.flaky_records = FlakyCollection(Collection.RECORDS, fail_after)
        self._collections[Collection.RECORDS] = self.flaky_records


@pytest.fixture
def engine(store, parser, capture_settings, audit_logger) -> ReconciliationEngine:
    return ReconciliationEngine(store, parser, capture_settings, audit_logger)


async def records_of(store) -> list[LedgerRecord]:
    return [LedgerRecord.model_validate(doc) for doc in await store.records.get_all()]


async def chapters_of(store) -> list[Chapter]:
    return [Chapter.model_validate(doc) for doc in await store.chapters.get_all()]


class TestTitleMatching:
    """Tests for the bidirectional substring rule."""

    def test_overlap_either_direction(self):
        """Test containment both ways."""
        assert titles_overlap("스타벅스", "스타벅스 강남점")
        assert titles_overlap("스타벅스 강남점", "스타벅스")
        assert not titles_overlap("스타벅스", "올리브영")

    @pytest.mark.parametrize("a,b", [("", "스타벅스"), ("스타벅스", ""), ("", "")])
    def test_empty_title_never_overlaps(self, a, b):
        """Test that an empty title is not contained in everything."""
        assert not titles_overlap(a, b)

    @pytest.mark.asyncio
    async def test_untitled_record_is_not_a_duplicate(self, engine, store):
        """Test that a same-day, same-amount record without a title blocks nothing."""
        await store.records.add(UNTITLED_RECORD.to_document())

        result = await engine.run([STARBUCKS])

        assert result.created == 1
        assert result.duplicates == 0
        assert len(await store.records.get_all()) == 2

    @pytest.mark.asyncio
    async def test_untitled_record_is_not_cancelled(self, engine, store):
        """Test that a cancellation does not remove a record without a title."""
        await store.records.add(UNTITLED_RECORD.to_document())

        result = await engine.run([STARBUCKS_CANCEL])

        assert result.items[0].reason == SkipReason.CANCELLATION_UNMATCHED
        assert [r.id for r in await records_of(store)] == ["manual"]

    @pytest.mark.asyncio
    async def test_long_merchant_name(self, engine, store, audit_storage):
        """Test that a very long title is saved whole and audited in short."""
        long_text = "가맹점" * 200 + " 5,000원 승인"

        result = await engine.run([{"title": "신한카드", "text": long_text}, OLIVE_YOUNG])

        assert result.status == RunStatus.COMPLETED
        assert result.created == 2
        records = await records_of(store)
        assert records[0].title == "가맹점" * 200

        created = [e for e in audit_storage.events if e.event_type == AuditEventType.RECORD_CREATED]
        assert len(created[0].description) <= 500
        assert created[0].details["title"] == "가맹점" * 200

        again = await engine.run([{"title": "신한카드", "text": long_text}])
        assert again.duplicates == 1


class TestStateMachine:
    """Tests for the IDLE/RUNNING guard."""

    def test_start_and_finish(self, engine):
        """Test the two transitions."""
        assert engine.state == EngineState.IDLE
        engine.start()
        assert engine.state == EngineState.RUNNING
        engine.finish()
        assert engine.state == EngineState.IDLE

    def test_start_while_running_is_busy(self, engine):
        """Test that a second start is refused."""
        engine.start()
        with pytest.raises(ReconciliationBusyError):
            engine.start()
        assert engine.is_running

    @pytest.mark.asyncio
    async def test_reconcile_requires_start(self, engine):
        """Test that reconcile outside a run is a state error."""
        with pytest.raises(EngineStateError):
            await engine.reconcile([STARBUCKS])

    @pytest.mark.asyncio
    async def test_run_while_running_leaves_batch_untouched(self, engine, store):
        """Test that a busy engine writes nothing."""
        engine.start()
        with pytest.raises(ReconciliationBusyError):
            await engine.run([STARBUCKS])
        assert await store.records.get_all() == []

    @pytest.mark.asyncio
    async def test_run_returns_to_idle(self, engine):
        """Test that run always finishes."""
        await engine.run([STARBUCKS])
        assert engine.state == EngineState.IDLE


class TestRecordCreation:
    """Tests for the create path."""

    @pytest.mark.asyncio
    async def test_creates_chapter_and_record(self, engine, store):
        """Test a first notification in an empty ledger."""
        result = await engine.run([STARBUCKS])

        assert result.status == RunStatus.COMPLETED
        assert result.created == 1
        assert result.chapters_created == 1

        chapters = await chapters_of(store)
        assert len(chapters) == 1
        assert chapters[0].title == "2025년 12월"
        assert chapters[0].order == 0
        assert chapters[0].is_temporary is False
        assert chapters[0].created_at == datetime(2025, 12, 5, tzinfo=timezone.utc)

        records = await records_of(store)
        assert len(records) == 1
        assert records[0].title == "스타벅스 강남점"
        assert records[0].amount == 5000
        assert records[0].source == "신한카드"
        assert records[0].chapter_id == chapters[0].chapter_id
        assert records[0].id == result.items[0].record_id

    @pytest.mark.asyncio
    async def test_reuses_existing_chapter(self, engine, store):
        """Test exact-title chapter resolution."""
        existing_id = await store.chapters.add(
            Chapter(title="2025년 12월", order=4).to_document()
        )
        result = await engine.run([STARBUCKS, OLIVE_YOUNG])

        assert result.chapters_created == 0
        records = await records_of(store)
        assert {r.chapter_id for r in records} == {existing_id}
        assert [r.order for r in records] == [0, 1]

    @pytest.mark.asyncio
    async def test_new_chapter_order_follows_count(self, engine, store):
        """Test that a new chapter is appended after existing ones."""
        await store.chapters.add(Chapter(title="2025년 10월").to_document())
        await store.chapters.add(Chapter(title="2025년 11월").to_document())

        await engine.run([STARBUCKS])
        new_chapter = [c for c in await chapters_of(store) if c.title == "2025년 12월"][0]
        assert new_chapter.order == 2

    @pytest.mark.asyncio
    async def test_income_record(self, engine, store):
        """Test that income notifications are saved as income."""
        await engine.run([SALARY])
        records = await records_of(store)
        assert records[0].type == TransactionType.INCOME
        assert records[0].amount == 2500000


class TestDeduplication:
    """Tests for the duplicate check."""

    @pytest.mark.asyncio
    async def test_same_payment_twice_in_one_batch(self, engine, store):
        """Test that two alerts for one payment produce one record."""
        result = await engine.run([STARBUCKS, STARBUCKS_AGAIN])

        assert result.created == 1
        assert result.duplicates == 1
        assert result.items[1].status == ItemStatus.DUPLICATE
        assert result.items[1].record_id == result.items[0].record_id
        assert len(await store.records.get_all()) == 1

    @pytest.mark.asyncio
    async def test_duplicate_across_runs(self, engine, store):
        """Test that a re-delivered batch saves nothing new."""
        await engine.run([STARBUCKS, OLIVE_YOUNG])
        result = await engine.run([STARBUCKS, OLIVE_YOUNG])

        assert result.created == 0
        assert result.duplicates == 2
        assert len(await store.records.get_all()) == 2

    @pytest.mark.asyncio
    async def test_different_day_is_not_duplicate(self, engine, store, clock):
        """Test that the date is part of the duplicate key."""
        await engine.run([STARBUCKS])
        clock.advance(24 * 3600)
        result = await engine.run([STARBUCKS])

        assert result.created == 1
        assert len(await store.records.get_all()) == 2


class TestCancellation:
    """Tests for cancellation matching."""

    @pytest.mark.asyncio
    async def test_cancellation_deletes_exactly_one(self, engine, store):
        """Test that a matching cancellation removes one record and adds none."""
        await engine.run([STARBUCKS, OLIVE_YOUNG])
        result = await engine.run([STARBUCKS_CANCEL])

        assert result.cancelled == 1
        assert result.created == 0
        records = await records_of(store)
        assert [r.title for r in records] == ["올리브영 명동점"]

    @pytest.mark.asyncio
    async def test_cancellation_in_same_batch(self, engine, store):
        """Test that a record created earlier in the batch can be cancelled."""
        result = await engine.run([STARBUCKS, STARBUCKS_CANCEL])

        assert result.created == 1
        assert result.cancelled == 1
        assert await store.records.get_all() == []

    @pytest.mark.asyncio
    async def test_unmatched_cancellation_is_skipped(self, engine, store):
        """Test that a cancellation with no target is not an error."""
        result = await engine.run([STARBUCKS_CANCEL])

        assert result.status == RunStatus.COMPLETED
        assert result.items[0].status == ItemStatus.SKIPPED
        assert result.items[0].reason == SkipReason.CANCELLATION_UNMATCHED
        assert await store.records.get_all() == []

    @pytest.mark.asyncio
    async def test_cancellation_needs_same_amount(self, engine, store):
        """Test that the amount must match exactly."""
        await engine.run([STARBUCKS])
        result = await engine.run([{"title": "신한카드", "text": "승인취소 스타벅스 4,000원"}])

        assert result.cancelled == 0
        assert len(await store.records.get_all()) == 1


class TestSkips:
    """Tests for notifications that change nothing."""

    @pytest.mark.asyncio
    async def test_not_financial(self, engine):
        """Test that chat notifications are skipped."""
        result = await engine.run([NOT_FINANCIAL])
        assert result.skipped == 1
        assert result.items[0].reason == SkipReason.NOT_FINANCIAL

    @pytest.mark.asyncio
    async def test_malformed_item(self, engine):
        """Test that a non-object item is skipped, not fatal."""
        result = await engine.run(["just a string", STARBUCKS])

        assert result.items[0].reason == SkipReason.MALFORMED
        assert result.created == 1

    @pytest.mark.asyncio
    async def test_income_disabled(self, store, parser):
        """Test the income toggle."""
        engine = ReconciliationEngine(
            store, parser, CaptureSettings(auto_save_income=False)
        )
        result = await engine.run([SALARY, STARBUCKS])

        assert result.items[0].reason == SkipReason.TYPE_DISABLED
        assert result.created == 1

    @pytest.mark.asyncio
    async def test_expense_disabled(self, store, parser):
        """Test the expense toggle."""
        engine = ReconciliationEngine(
            store, parser, CaptureSettings(auto_save_expense=False)
        )
        result = await engine.run([SALARY, STARBUCKS])

        assert result.items[1].reason == SkipReason.TYPE_DISABLED
        assert [r.type for r in await records_of(store)] == [TransactionType.INCOME]


class TestAbort:
    """Tests for store failures mid-batch."""

    @pytest.mark.asyncio
    async def test_failure_aborts_remaining_items(self, parser, capture_settings):
        """Test that applied mutations stay and the rest is not attempted."""
        store = FlakyLedgerStore(fail_after=1)
        engine = ReconciliationEngine(store, parser, capture_settings)

        result = await engine.run([STARBUCKS, OLIVE_YOUNG, SALARY])

        assert result.status == RunStatus.ABORTED
        assert result.error_message == "disk full"
        assert result.created == 1
        assert result.processed == 1
        assert result.remaining == 2
        assert result.items[-1].status == ItemStatus.FAILED
        assert result.mutated is True
        assert engine.state == EngineState.IDLE
        assert len(await store.records.get_all()) == 1

    @pytest.mark.asyncio
    async def test_retry_after_abort_does_not_duplicate(self, parser, capture_settings):
        """Test that re-running the whole batch only adds what was missing."""
        store = FlakyLedgerStore(fail_after=1)
        engine = ReconciliationEngine(store, parser, capture_settings)
        batch = [STARBUCKS, OLIVE_YOUNG, SALARY]

        await engine.run(batch)
        store.flaky_records.fail_after = 100
        result = await engine.run(batch)

        assert result.status == RunStatus.COMPLETED
        assert result.duplicates == 1
        assert result.created == 2
        assert len(await store.records.get_all()) == 3


class TestAuditTrail:
    """Tests for the events a run leaves behind."""

    @pytest.mark.asyncio
    async def test_events_share_correlation_id(self, engine, audit_storage):
        """Test that one run is traceable as a unit."""
        result = await engine.run([STARBUCKS, STARBUCKS_AGAIN, NOT_FINANCIAL])

        events = await audit_storage.get_events_by_correlation_id(result.correlation_id)
        types = [e.event_type for e in events]
        assert types[0] == AuditEventType.RUN_STARTED
        assert AuditEventType.CHAPTER_CREATED in types
        assert AuditEventType.RECORD_CREATED in types
        assert AuditEventType.DUPLICATE_SKIPPED in types
        assert AuditEventType.NOTIFICATION_SKIPPED in types
        assert types[-1] == AuditEventType.RUN_COMPLETED

    @pytest.mark.asyncio
    async def test_abort_is_audited(self, parser, capture_settings, audit_logger, audit_storage):
        """Test that an abort records the storage error."""
        store = FlakyLedgerStore(fail_after=0)
        engine = ReconciliationEngine(store, parser, capture_settings, audit_logger)

        await engine.run([STARBUCKS])
        types = [e.event_type for e in audit_storage.events]
        assert AuditEventType.STORAGE_ERROR in types
        assert AuditEventType.RUN_ABORTED in types


if __name__ == "__main__":
    pytest.main([__file__, "-v"])
