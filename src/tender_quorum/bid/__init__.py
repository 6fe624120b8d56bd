"""
Bid Module - bids and the quorum approval engine

Responsible users of the bidding organization vote on each bid:
min(3, responsibles) approvals approve it (and close its tender), one
rejection rejects it.
"""

from tender_quorum.bid.commands import (
    ApproveBid,
    CreateBid,
    DeleteBid,
    RejectBid,
    RollbackBid,
    UpdateBid,
)
from tender_quorum.bid.handlers import BidCommandHandlers
from tender_quorum.bid.models import Bid, BidStatus, BidVersion, VoteResult
from tender_quorum.bid.projections import BidRegistry
from tender_quorum.bid.quorum import compute_quorum, quorum_reached

__all__ = [
    # Models
    "Bid",
    "BidVersion",
    "BidStatus",
    "VoteResult",
    # Commands
    "CreateBid",
    "UpdateBid",
    "ApproveBid",
    "RejectBid",
    "RollbackBid",
    "DeleteBid",
    # Engine
    "BidCommandHandlers",
    "BidRegistry",
    "compute_quorum",
    "quorum_reached",
]
