"""
Bid Events

Lifecycle and vote events live on the bid's own stream, so every vote is
an optimistic write against the same stream version that its count and
status were derived from.
"""

from datetime import datetime

from pydantic import BaseModel, Field


class BidCreated(BaseModel):
    """Bid submitted (its version 1 is appended in the same transaction)"""

    bid_id: str
    tender_id: str
    organization_id: str
    creator_id: str
    created_at: datetime


class BidApprovalRecorded(BaseModel):
    """One approval vote counted"""

    bid_id: str
    approver_id: str
    approval_count: int = Field(..., ge=1, description="Count after this vote")
    quorum: int = Field(..., ge=1, description="Approvals required at vote time")
    recorded_at: datetime


class BidApproved(BaseModel):
    """Quorum reached, bid accepted"""

    bid_id: str
    tender_id: str
    approval_count: int
    quorum: int
    approved_at: datetime


class BidRejected(BaseModel):
    """Bid rejected by a responsible user"""

    bid_id: str
    rejected_by: str
    approval_count: int
    rejected_at: datetime


class BidDeleted(BaseModel):
    """Bid logically deleted (tombstone)"""

    bid_id: str
    deleted_at: datetime
    deleted_by: str | None = None
    tender_deleted: str | None = Field(
        default=None, description="Tender whose deletion cascaded to this bid"
    )
