"""
Tender Events

Lifecycle events live on the tender's own stream; content changes are
TenderVersionAppended events on its content stream (see ledger.events).
"""

from datetime import datetime

from pydantic import BaseModel, Field


class TenderCreated(BaseModel):
    """Tender created (its version 1 is appended in the same transaction)"""

    tender_id: str = Field(..., description="Unique tender identifier")
    organization_id: str = Field(..., description="Owning organization")
    creator_id: str = Field(..., description="Responsible user who created it")
    created_at: datetime = Field(..., description="Creation timestamp")


class TenderPublished(BaseModel):
    """Tender opened for bids"""

    tender_id: str
    published_at: datetime
    published_by: str | None = None


class TenderClosed(BaseModel):
    """
    Tender closed

    Closed either by its owner or by the approval of one of its bids, in
    which case bid_id names the winning bid.
    """

    tender_id: str
    closed_at: datetime
    closed_by: str | None = None
    reason: str = Field(default="manual", description="manual or bid_approved")
    bid_id: str | None = None


class TenderDeleted(BaseModel):
    """Tender logically deleted (tombstone)"""

    tender_id: str
    deleted_at: datetime
    deleted_by: str | None = None
    cascaded_bid_ids: list[str] = Field(default_factory=list)


class TenderBidReceived(BaseModel):
    """
    A bid was submitted against the tender

    Written on the tender's lifecycle stream in the bid's creation
    transaction, so a concurrent delete or close sees the stream move.
    """

    tender_id: str
    bid_id: str
    received_at: datetime
