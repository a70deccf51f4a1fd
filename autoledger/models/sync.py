"""
Pairing Sync Models

A SyncPackage lives on the server side only. The client never sees
``created_at`` or ``is_used``; it only gets a code back, or an error.
"""

from datetime import datetime

from pydantic import BaseModel, Field

from autoledger.models.ledger import utc_now


class SyncPackage(BaseModel):
    """
    An encrypted ledger snapshot parked under a one-time pairing code.

    CRITICAL: ``created_at`` is stamped by the server clock. Expiry is
    always measured against it, never against a client-supplied time.
    """

    pairing_code: str = Field(..., min_length=1)
    payload: str = Field(..., min_length=1, description="Opaque encrypted blob")
    created_at: datetime = Field(default_factory=utc_now)
    is_used: bool = False
