"""
Notification Parser

Turns the text of a bank/card alert into a ParsedTransaction.

DESIGN DECISION: Parsing is a pure function of the text, the clock and the
current rule set. It never touches storage and never raises for
non-financial text: anything without a won amount is simply not a
transaction, and the parser returns None.

Pipeline:
1. Normalize whitespace and brackets
2. Extract the amount (digits followed by 원 / KRW)
3. Detect cancellation, transfer and income keywords
4. Resolve the payment channel through the rule engine
5. Build a title from whatever tokens are left
6. Stamp date, chapter title, category and timestamps
"""

import re
from datetime import date, datetime, timezone
from typing import Callable, Optional

from autoledger.models.ledger import (
    ParsedTransaction,
    TransactionType,
    format_chapter_title,
)
from autoledger.rules.engine import OTHER, RuleEngine


CANCELLATION_KEYWORDS = ("취소", "승인취소", "결제취소")
TRANSFER_KEYWORDS = ("이체", "송금", "보내기")
INCOME_KEYWORDS = ("입금", "환급", "받으세요", "보낸분", "급여")

# Title the native bridge substitutes when a notification has none
BRIDGE_TITLE_MARKER = "알림"

TITLE_EXCLUDE_KEYWORDS = (
    "승인", "결제", "완료", "입금", "출금", "원", "KRW",
    "잔액", "카드", "뱅크", "취소", "이체", "송금",
    BRIDGE_TITLE_MARKER,
)

# Suffixes stripped from a channel name before looking for it in tokens
CHANNEL_SUFFIXES = ("카드", "뱅크")

DEFAULT_TITLE_TRANSFER = "계좌 이체"
DEFAULT_TITLE_INCOME = "입금 내역"
DEFAULT_TITLE_EXPENSE = "지출 내역"

_NEWLINES = re.compile(r"\n+")
_BRACKETS = re.compile(r"[\[\]()]")
_SPACES = re.compile(r"\s+")
_AMOUNT = re.compile(r"(\d[\d,]*)\s*(?:원|KRW)")
_NOISE = re.compile(
    r"\d{1,2}:\d{2}"            # clock time 12:34
    r"|\d{1,2}/\d{1,2}"         # date 12/25
    r"|\d{2,4}[.-]\d{1,2}[.-]\d{1,2}"  # date 2025-12-25 / 25.12.25
    r"|\d{4}"                   # card / account digits
    r"|\*{2,}"                  # masked digits
)


def normalize_text(text: str) -> str:
    """Collapse newlines and brackets into single spaces."""
    text = _NEWLINES.sub(" ", text)
    text = _BRACKETS.sub(" ", text)
    return _SPACES.sub(" ", text).strip()


def _contains_any(text: str, keywords: tuple[str, ...]) -> bool:
    return any(keyword in text for keyword in keywords)


def _strip_channel_suffix(source: str) -> str:
    for suffix in CHANNEL_SUFFIXES:
        if source.endswith(suffix) and len(source) > len(suffix):
            return source[: -len(suffix)]
    return source


class NotificationParser:
    """
    Parses alert text against a rule engine.

    The clock is injectable so tests can pin the date a transaction lands on.
    """

    def __init__(
        self,
        rules: Optional[RuleEngine] = None,
        clock: Optional[Callable[[], datetime]] = None,
    ):
        self._rules = rules or RuleEngine()
        self._clock = clock or (lambda: datetime.now(timezone.utc).astimezone())

    @property
    def rules(self) -> RuleEngine:
        return self._rules

    def parse(self, raw_text: str) -> Optional[ParsedTransaction]:
        """
        Parse one notification.

        Returns None when the text carries no positive won amount.
        """
        if not raw_text or not isinstance(raw_text, str):
            return None

        text = normalize_text(raw_text)

        match = _AMOUNT.search(text)
        if not match:
            return None
        amount_digits = match.group(1)
        amount = int(amount_digits.replace(",", ""))
        if amount <= 0:
            return None

        is_cancellation = _contains_any(text, CANCELLATION_KEYWORDS)
        is_transfer = _contains_any(text, TRANSFER_KEYWORDS)
        # Cancellation wins over income ("입금 취소" is not income)
        is_income = not is_cancellation and _contains_any(text, INCOME_KEYWORDS)
        tx_type = TransactionType.INCOME if is_income else TransactionType.EXPENSE

        source = self._rules.classify_channel(text)
        title = self._extract_title(text, amount_digits, source) or self._default_title(
            is_transfer, tx_type
        )

        now = self._clock()
        today: date = now.date()

        return ParsedTransaction(
            title=title,
            source=source,
            amount=amount,
            type=tx_type,
            category=self._rules.classify_category(text),
            date=today,
            chapter_title=format_chapter_title(today),
            is_cancellation=is_cancellation,
            is_transfer=is_transfer,
            is_paid=True,
            created_at=now,
            updated_at=now,
        )

    def _extract_title(self, text: str, amount_digits: str, source: str) -> str:
        channel = _strip_channel_suffix(source) if source != OTHER else None

        kept = []
        for token in text.split(" "):
            if amount_digits in token:
                continue
            if _contains_any(token, TITLE_EXCLUDE_KEYWORDS):
                continue
            if _NOISE.search(token):
                continue
            if channel and channel in token:
                continue
            kept.append(token)
        return " ".join(kept).strip()

    @staticmethod
    def _default_title(is_transfer: bool, tx_type: TransactionType) -> str:
        if is_transfer:
            return DEFAULT_TITLE_TRANSFER
        if tx_type == TransactionType.INCOME:
            return DEFAULT_TITLE_INCOME
        return DEFAULT_TITLE_EXPENSE
