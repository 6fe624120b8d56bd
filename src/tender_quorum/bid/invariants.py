"""
Bid Invariants

Pure validation functions for bid rules.
"""

from typing import Any

from tender_quorum.bid.models import BidStatus
from tender_quorum.kernel.errors import DuplicateApproval
from tender_quorum.kernel.state_machine import StatusMachine

BID_TRANSITIONS: dict[BidStatus, frozenset[BidStatus]] = {
    BidStatus.CREATED: frozenset({BidStatus.APPROVED, BidStatus.REJECTED}),
    BidStatus.APPROVED: frozenset(),
    BidStatus.REJECTED: frozenset(),
}

bid_state_machine: StatusMachine[BidStatus] = StatusMachine("bid", BID_TRANSITIONS)


def validate_accepts_votes(bid: dict[str, Any], target: BidStatus) -> None:
    """
    A terminal bid accepts no further votes

    Raises:
        InvalidStatusTransition: If the bid is APPROVED or REJECTED
    """
    bid_state_machine.validate(bid["bid_id"], bid["status"], target)


def validate_first_approval(bid: dict[str, Any], approver_id: str) -> None:
    """Raise DuplicateApproval if approver_id already approved this bid"""
    if approver_id in bid["approvers"]:
        raise DuplicateApproval(bid["bid_id"], approver_id)
