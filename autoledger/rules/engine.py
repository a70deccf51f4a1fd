"""
Rule Engine

Keyword classification for notification text:
- category rules map text to a spending category
- bank aliases map text to a canonical payment channel

DESIGN DECISION: We use simple ordered keyword matching rather than ML
because:
1. The user can read (and we can ship) the rules as plain data
2. A wrong classification is easy to explain and fix
3. Rules can be hot-swapped from a remote snapshot without a release

CRITICAL: The live rules are one immutable RuleSet. ``replace`` swaps the
whole object; nothing ever edits the lists in place, so a classification
call sees either the old version or the new one, never a mix.
"""

from collections.abc import Mapping
from datetime import datetime, timezone
from typing import TYPE_CHECKING, Any, Optional

import structlog
from pydantic import ValidationError

from autoledger.audit import AuditLogger
from autoledger.models.audit import AuditEventBuilder
from autoledger.models.rules import BankAlias, ClassificationRule, RuleSet
from autoledger.rules.defaults import BUNDLED_SNAPSHOT

if TYPE_CHECKING:
    from autoledger.rules.remote import RemoteRulesClient


logger = structlog.get_logger(__name__)

# Sentinel for "no rule matched"
OTHER = "기타"


class RuleSnapshotError(Exception):
    """A rules snapshot could not be fetched or understood."""
    pass


def rule_set_from_snapshot(
    snapshot: Mapping[str, Any],
    version: str = "remote",
) -> RuleSet:
    """
    Build a RuleSet from the remote document shape.

    Expected::

        {
            "CATEGORY_RULES": [{"category": "식비", "keywords": ["카페", ...]}, ...],
            "bankMap": [{"key": "신한", "name": "신한카드"}, ...],
            "updatedAt": 1733011200000
        }

    Raises:
        RuleSnapshotError: If either list is missing or malformed
    """
    if not isinstance(snapshot, Mapping):
        raise RuleSnapshotError("Rules snapshot must be a JSON object")

    raw_rules = snapshot.get("CATEGORY_RULES")
    raw_aliases = snapshot.get("bankMap")
    if not isinstance(raw_rules, list) or not isinstance(raw_aliases, list):
        raise RuleSnapshotError("Rules snapshot needs 'CATEGORY_RULES' and 'bankMap' lists")

    updated_at = None
    if isinstance(snapshot.get("updatedAt"), (int, float)):
        updated_at = datetime.fromtimestamp(snapshot["updatedAt"] / 1000, tz=timezone.utc)

    try:
        return RuleSet(
            category_rules=tuple(
                ClassificationRule(category=r["category"], keywords=tuple(r["keywords"]))
                for r in raw_rules
            ),
            bank_aliases=tuple(
                BankAlias(keyword=a["key"], canonical_name=a["name"])
                for a in raw_aliases
            ),
            version=version,
            updated_at=updated_at,
        )
    except (KeyError, TypeError, ValidationError) as e:
        raise RuleSnapshotError(f"Malformed rules snapshot: {e}") from e


BUNDLED_RULES = rule_set_from_snapshot(BUNDLED_SNAPSHOT, version="bundled")


class RuleEngine:
    """
    Holds the live RuleSet and answers classification questions.

    Consumers keep a reference to the engine, never to its lists.
    """

    def __init__(self, rule_set: Optional[RuleSet] = None):
        self._rule_set = rule_set or BUNDLED_RULES

    @property
    def rule_set(self) -> RuleSet:
        return self._rule_set

    def classify_category(self, text: str) -> str:
        """First category whose keyword occurs in ``text`` (case-insensitive)."""
        haystack = text.casefold()
        for rule in self._rule_set.category_rules:
            if any(keyword.casefold() in haystack for keyword in rule.keywords):
                return rule.category
        return OTHER

    def classify_channel(self, text: str) -> str:
        """Canonical channel of the first bank alias occurring in ``text``."""
        haystack = text.casefold()
        for alias in self._rule_set.bank_aliases:
            if alias.keyword.casefold() in haystack:
                return alias.canonical_name
        return OTHER

    def replace(self, rule_set: RuleSet) -> None:
        """Swap in a whole new rule set."""
        self._rule_set = rule_set
        logger.info(
            "rules_replaced",
            version=rule_set.version,
            category_rules=len(rule_set.category_rules),
            bank_aliases=len(rule_set.bank_aliases),
        )

    def replace_from_snapshot(
        self,
        snapshot: Mapping[str, Any],
        version: str = "remote",
    ) -> RuleSet:
        """
        Parse a remote snapshot and swap it in.

        A malformed snapshot raises RuleSnapshotError and leaves the
        current rules untouched.
        """
        rule_set = rule_set_from_snapshot(snapshot, version=version)
        self.replace(rule_set)
        return rule_set

    def reset(self) -> None:
        """Go back to the bundled rules."""
        self.replace(BUNDLED_RULES)

    async def refresh(
        self,
        client: "RemoteRulesClient",
        audit_logger: Optional[AuditLogger] = None,
    ) -> bool:
        """
        Fetch the remote snapshot through ``client`` and swap it in.

        Returns False (keeping the current rules) if the fetch fails.
        """
        try:
            snapshot = await client.fetch()
            rule_set = self.replace_from_snapshot(snapshot)
        except RuleSnapshotError as e:
            logger.warning(
                "rules_refresh_failed",
                error=str(e),
                kept_version=self._rule_set.version,
            )
            return False

        if audit_logger:
            await audit_logger.log(AuditEventBuilder.rules_replaced(
                version=rule_set.version,
                category_rules=len(rule_set.category_rules),
                bank_aliases=len(rule_set.bank_aliases),
            ))
        return True
