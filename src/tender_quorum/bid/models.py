"""
Bid Domain Models

A bid is an organization's offer against a published tender. The
responsible users of the bidding organization vote on it: enough
approvals (the quorum) make it APPROVED, a single rejection makes it
REJECTED. Both outcomes are final.
"""

from datetime import datetime
from enum import Enum

from pydantic import BaseModel, Field

from tender_quorum.ledger.models import Version


class BidStatus(str, Enum):
    """
    Bid lifecycle states

    CREATED → APPROVED (terminal)
            → REJECTED (terminal)
    """

    CREATED = "CREATED"
    APPROVED = "APPROVED"
    REJECTED = "REJECTED"


class Bid(BaseModel):
    """Current state of a bid: lifecycle, votes and latest content"""

    bid_id: str = Field(..., description="Unique bid identifier")
    tender_id: str = Field(..., description="Tender this bid answers")
    organization_id: str = Field(..., description="Bidding organization")
    creator_id: str = Field(..., description="User who submitted the bid")
    name: str = Field(..., description="Name from the latest version")
    description: str = Field(default="", description="Description from the latest version")
    status: BidStatus = Field(..., description="Lifecycle status")
    approval_count: int = Field(default=0, ge=0, description="Approvals recorded so far")
    approvers: list[str] = Field(
        default_factory=list, description="Users who approved, in vote order"
    )
    rejected_by: str | None = Field(default=None, description="User whose vote rejected it")
    version: int = Field(..., ge=1, description="Latest content version number")
    created_at: datetime
    updated_at: datetime


class BidVersion(BaseModel):
    """Immutable content snapshot of a bid"""

    bid_id: str
    name: str
    description: str
    version: int = Field(..., ge=1)
    updated_at: datetime
    updated_by: str | None = None
    rolled_back_from: int | None = None

    model_config = {"frozen": True}

    @classmethod
    def from_version(cls, version: Version) -> "BidVersion":
        return cls(
            bid_id=version.parent_id,
            name=version.content["name"],
            description=version.content.get("description", ""),
            version=version.version,
            updated_at=version.updated_at,
            updated_by=version.updated_by,
            rolled_back_from=version.rolled_back_from,
        )


class VoteResult(BaseModel):
    """Outcome of one approve or reject vote"""

    bid_id: str
    status: BidStatus
    approval_count: int
    quorum: int | None = Field(
        default=None, description="Approvals required (None for a rejection)"
    )
    tender_closed: bool = Field(
        default=False, description="True when this vote closed the parent tender"
    )
