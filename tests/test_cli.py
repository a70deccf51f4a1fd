"""
Tests for the command line helpers and the application wiring.
"""

import json

import pytest
from typer.testing import CliRunner

from autoledger.__main__ import app
from autoledger.orchestrator import create_app_components
from autoledger.pairing import PairingCodeStore
from autoledger.reconciliation import TriggerOutcome, TriggerSource
from autoledger.services.bridge import InMemoryNotificationBridge
from autoledger.services.storage import InMemoryLedgerStore


runner = CliRunner()


class TestParseCommand:
    """Tests for `autoledger parse`."""

    def test_financial_text(self):
        """Test that a transaction is printed as JSON."""
        result = runner.invoke(app, ["parse", "스타벅스 강남점 5,000원 결제"])

        assert result.exit_code == 0
        document = json.loads(result.stdout)
        assert document["amount"] == 5000
        assert document["type"] == "expense"
        assert document["category"] == "식비"

    def test_non_financial_text(self):
        """Test that a non-transaction prints null."""
        result = runner.invoke(app, ["parse", "카카오톡 새 메시지가 도착했습니다"])

        assert result.exit_code == 0
        assert json.loads(result.stdout) is None

    def test_custom_rules(self, tmp_path):
        """Test that a rules snapshot replaces the bundled rules."""
        rules_file = tmp_path / "rules.json"
        rules_file.write_text(json.dumps({
            "CATEGORY_RULES": [{"category": "카페", "keywords": ["스타벅스"]}],
            "bankMap": [],
        }), encoding="utf-8")

        result = runner.invoke(
            app, ["parse", "스타벅스 강남점 5,000원 결제", "--rules", str(rules_file)]
        )

        assert result.exit_code == 0
        assert json.loads(result.stdout)["category"] == "카페"

    def test_unreadable_rules(self, tmp_path):
        """Test that a bad rules file exits with code 2."""
        rules_file = tmp_path / "rules.json"
        rules_file.write_text("{not json", encoding="utf-8")

        result = runner.invoke(app, ["parse", "x 1원", "--rules", str(rules_file)])
        assert result.exit_code == 2


class TestReconcileCommand:
    """Tests for `autoledger reconcile`."""

    def test_batch(self, tmp_path):
        """Test a batch with one transaction and one noise notification."""
        batch_file = tmp_path / "batch.json"
        batch_file.write_text(json.dumps([
            {"title": "신한카드", "text": "스타벅스 강남점 5,000원 승인"},
            {"title": "카카오톡", "text": "새 메시지"},
        ], ensure_ascii=False), encoding="utf-8")

        result = runner.invoke(app, ["reconcile", str(batch_file)])

        assert result.exit_code == 0
        output = json.loads(result.stdout)
        assert output["status"] == "completed"
        assert output["summary"]["created"] == 1
        assert len(output["records"]) == 1

    def test_not_a_list(self, tmp_path):
        """Test that a non-array file is refused."""
        batch_file = tmp_path / "batch.json"
        batch_file.write_text('{"title": "a"}', encoding="utf-8")

        result = runner.invoke(app, ["reconcile", str(batch_file)])
        assert result.exit_code == 2


class TestWiring:
    """Tests for create_app_components."""

    def test_in_memory_components(self, pairing_settings):
        """Test the default in-memory assembly."""
        components = create_app_components(remote=PairingCodeStore(settings=pairing_settings))

        assert isinstance(components.store, InMemoryLedgerStore)
        assert components.parser.rules is components.rules

    @pytest.mark.asyncio
    async def test_scheduler_drives_store(self):
        """Test that a trigger flows from the bridge into the shared store."""
        bridge = InMemoryNotificationBridge([
            {"title": "신한카드", "text": "스타벅스 강남점 5,000원 승인"},
        ])
        components = create_app_components(bridge=bridge)

        outcome = await components.scheduler.trigger(TriggerSource.INITIAL_LOAD)

        assert outcome == TriggerOutcome.PROCESSED
        assert len(await components.store.records.get_all()) == 1


if __name__ == "__main__":
    pytest.main([__file__, "-v"])
