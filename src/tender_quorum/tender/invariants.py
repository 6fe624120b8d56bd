"""
Tender Invariants

Pure validation functions for tender rules.
"""

from typing import Any

from tender_quorum.kernel.errors import InvalidServiceType, TenderNotOpenForBids
from tender_quorum.kernel.policy import MarketplacePolicy
from tender_quorum.kernel.state_machine import StatusMachine
from tender_quorum.tender.models import TenderStatus

TENDER_TRANSITIONS: dict[TenderStatus, frozenset[TenderStatus]] = {
    TenderStatus.CREATED: frozenset({TenderStatus.PUBLISHED}),
    TenderStatus.PUBLISHED: frozenset({TenderStatus.CLOSED}),
    TenderStatus.CLOSED: frozenset(),
}

tender_state_machine: StatusMachine[TenderStatus] = StatusMachine("tender", TENDER_TRANSITIONS)


def validate_service_type(service_type: str, policy: MarketplacePolicy) -> None:
    """Raise InvalidServiceType unless the policy allows service_type"""
    if not policy.is_allowed_service_type(service_type):
        raise InvalidServiceType(service_type, list(policy.allowed_service_types))


def validate_transition(tender_id: str, current: TenderStatus, target: TenderStatus) -> None:
    tender_state_machine.validate(tender_id, current, target)


def validate_accepts_bids(tender: dict[str, Any]) -> None:
    """Raise TenderNotOpenForBids unless the tender is PUBLISHED"""
    if tender["status"] != TenderStatus.PUBLISHED:
        raise TenderNotOpenForBids(tender["tender_id"], tender["status"].value)
