"""
Command line helpers for checking rule changes against real alerts.

    python -m autoledger parse "[신한카드] 스타벅스 강남점 5,000원 승인"
    python -m autoledger reconcile notifications.json
"""

import asyncio
import json
from pathlib import Path
from typing import Optional

import typer

from autoledger.audit import configure_logging
from autoledger.parsing import NotificationParser
from autoledger.reconciliation import ReconciliationEngine
from autoledger.rules import RuleEngine, RuleSnapshotError, rule_set_from_snapshot
from autoledger.services.storage import InMemoryLedgerStore


app = typer.Typer(add_completion=False, help="autoledger notification tools")


def _load_rules(rules_file: Optional[Path]) -> RuleEngine:
    if rules_file is None:
        return RuleEngine()
    try:
        snapshot = json.loads(rules_file.read_text(encoding="utf-8"))
        return RuleEngine(rule_set_from_snapshot(snapshot, version=rules_file.name))
    except (OSError, ValueError, RuleSnapshotError) as e:
        typer.echo(f"Cannot load rules from {rules_file}: {e}", err=True)
        raise typer.Exit(code=2) from e


@app.command()
def parse(
    text: str = typer.Argument(..., help="Notification text (title and body)"),
    rules_file: Optional[Path] = typer.Option(
        None, "--rules", help="Rules snapshot JSON to use instead of the bundled rules"
    ),
):
    """Print the parsed transaction as JSON (null if not financial)."""
    parser = NotificationParser(_load_rules(rules_file))
    transaction = parser.parse(text)
    document = transaction.model_dump(mode="json") if transaction else None
    typer.echo(json.dumps(document, ensure_ascii=False, indent=2))


@app.command()
def reconcile(
    notifications_file: Path = typer.Argument(
        ..., help="JSON array of {title, text} notifications"
    ),
    rules_file: Optional[Path] = typer.Option(None, "--rules"),
    verbose: bool = typer.Option(False, "--verbose", "-v", help="Show pipeline logs"),
):
    """Run a batch through an empty in-memory ledger and print the outcome."""
    configure_logging("DEBUG" if verbose else "WARNING", json_format=False)
    try:
        batch = json.loads(notifications_file.read_text(encoding="utf-8"))
    except (OSError, ValueError) as e:
        typer.echo(f"Cannot read {notifications_file}: {e}", err=True)
        raise typer.Exit(code=2) from e
    if not isinstance(batch, list):
        typer.echo("Expected a JSON array of notifications", err=True)
        raise typer.Exit(code=2)

    store = InMemoryLedgerStore()
    engine = ReconciliationEngine(store, NotificationParser(_load_rules(rules_file)))
    result = asyncio.run(engine.run(batch, trigger="cli"))

    output = {
        "status": result.status.value,
        "summary": result.summary(),
        "items": [item.model_dump(mode="json", exclude_none=True) for item in result.items],
        "records": asyncio.run(store.records.get_all()),
    }
    typer.echo(json.dumps(output, ensure_ascii=False, indent=2))


if __name__ == "__main__":
    app()
