"""
Core Ledger Models for autoledger

These models define the schemas for everything that flows through the
capture pipeline:
1. RawNotification - text handed over by the native notification bridge
2. ParsedTransaction - what the parser understood from that text
3. LedgerRecord / Chapter / Category - documents owned by the ledger store
4. LedgerExport - the plaintext document carried by a pairing snapshot

DESIGN DECISION: ParsedTransaction is never persisted directly.
It is either discarded or converted into a LedgerRecord by the
reconciliation engine, which is the only writer on the capture path.
"""

from datetime import date, datetime, timezone
from enum import Enum
from typing import Any, Optional

from pydantic import BaseModel, ConfigDict, Field


def utc_now() -> datetime:
    """Current instant as an aware UTC datetime."""
    return datetime.now(timezone.utc)


def format_chapter_title(day: date) -> str:
    """Chapter naming rule shared by the parser and the UI: ``2025년 12월``."""
    return f"{day.year}년 {day.month}월"


# =============================================================================
# ENUMS
# =============================================================================

class TransactionType(str, Enum):
    """Direction of money for a ledger entry."""
    INCOME = "income"
    EXPENSE = "expense"


# =============================================================================
# INGESTION MODELS
# =============================================================================

class RawNotification(BaseModel):
    """
    One pending notification as delivered by the native bridge.

    The bridge also reports the posting package and time; both are kept for
    logging but play no part in parsing.
    """
    model_config = ConfigDict(extra="ignore")

    title: str = Field(default="", description="Notification title")
    text: str = Field(default="", description="Notification body")
    package: Optional[str] = Field(
        default=None,
        description="Android package that posted the notification"
    )
    time: Optional[int] = Field(
        default=None,
        description="Post time in epoch milliseconds"
    )

    @property
    def combined_text(self) -> str:
        """Title and body joined the way the parser expects them."""
        return f"{self.title} {self.text}"


class ParsedTransaction(BaseModel):
    """
    Structured reading of a financial notification.

    CRITICAL: This is PROPOSED data. Only the reconciliation engine decides
    whether it becomes a LedgerRecord, deletes one, or is dropped.
    """

    title: str = Field(..., min_length=1)
    source: str = Field(..., description="Canonical payment channel name")
    amount: int = Field(..., gt=0, description="Amount in won")
    type: TransactionType
    category: str
    date: date
    chapter_title: str
    is_cancellation: bool = False
    is_transfer: bool = False
    is_paid: bool = True
    created_at: datetime = Field(default_factory=utc_now)
    updated_at: datetime = Field(default_factory=utc_now)


# =============================================================================
# STORED DOCUMENTS
# =============================================================================

class LedgerDocument(BaseModel):
    """
    Base for documents kept in the ledger store.

    Unknown fields are preserved so that a snapshot written by a newer
    client survives a round trip through an older one.
    """
    model_config = ConfigDict(extra="allow")

    def to_document(self) -> dict[str, Any]:
        """JSON-ready dict; unset store keys are omitted so the store can assign them."""
        return self.model_dump(mode="json", exclude_none=True)


class Chapter(LedgerDocument):
    """A named ledger period (e.g. ``2025년 12월``) grouping records."""

    chapter_id: Optional[str] = Field(
        default=None,
        description="Store-assigned key"
    )
    title: str = Field(..., min_length=1)
    created_at: datetime = Field(default_factory=utc_now)
    order: int = Field(default=0, ge=0)
    is_temporary: bool = False
    updated_at: datetime = Field(default_factory=utc_now)


class LedgerRecord(LedgerDocument):
    """One income or expense entry inside a chapter."""

    id: Optional[str] = Field(
        default=None,
        description="Store-assigned key"
    )
    chapter_id: str
    title: str
    amount: int = Field(..., gt=0)
    type: TransactionType
    category: str
    date: date
    source: str
    is_paid: bool = True
    order: int = Field(default=0, ge=0)
    created_at: datetime = Field(default_factory=utc_now)
    updated_at: datetime = Field(default_factory=utc_now)

    @classmethod
    def from_transaction(
        cls,
        transaction: ParsedTransaction,
        chapter_id: str,
        order: int = 0,
    ) -> "LedgerRecord":
        """Build the record a parsed transaction turns into."""
        return cls(
            chapter_id=chapter_id,
            title=transaction.title,
            amount=transaction.amount,
            type=transaction.type,
            category=transaction.category,
            date=transaction.date,
            source=transaction.source,
            is_paid=transaction.is_paid,
            order=order,
            created_at=transaction.created_at,
            updated_at=transaction.updated_at,
        )


class Category(LedgerDocument):
    """User-visible category label. Carried through sync untouched."""

    id: Optional[str] = None
    name: str
    updated_at: datetime = Field(default_factory=utc_now)
    is_deleted: bool = False


DEFAULT_CATEGORIES: tuple[str, ...] = (
    "식비",
    "편의점",
    "쇼핑",
    "배달",
    "교통",
    "주유",
    "생활",
    "의료",
    "구독",
    "취미",
    "이체",
    "기타",
)


# =============================================================================
# SYNC DOCUMENT
# =============================================================================

class LedgerExport(BaseModel):
    """
    Full local ledger as carried inside an encrypted pairing payload.

    Import OVERWRITES the three collections with these lists.
    """

    chapters: list[Chapter] = Field(default_factory=list)
    records: list[LedgerRecord] = Field(default_factory=list)
    categories: list[Category] = Field(default_factory=list)
    exported_at: datetime = Field(default_factory=utc_now)
