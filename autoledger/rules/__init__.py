"""Classification rules package."""

from autoledger.rules.engine import (
    BUNDLED_RULES,
    OTHER,
    RuleEngine,
    RuleSnapshotError,
    rule_set_from_snapshot,
)
from autoledger.rules.remote import RemoteRulesClient

__all__ = [
    "BUNDLED_RULES",
    "OTHER",
    "RemoteRulesClient",
    "RuleEngine",
    "RuleSnapshotError",
    "rule_set_from_snapshot",
]
