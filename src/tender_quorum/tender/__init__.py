"""
Tender Module

Tenders are posted by an organization, published to accept bids and closed
once a bid is approved (or by their owner). Content is versioned through
the ledger; status lives on the tender's lifecycle stream.
"""

from tender_quorum.tender.commands import (
    CloseTender,
    CreateTender,
    DeleteTender,
    PublishTender,
    RollbackTender,
    UpdateTender,
)
from tender_quorum.tender.handlers import TenderCommandHandlers
from tender_quorum.tender.models import ServiceType, Tender, TenderStatus, TenderVersion
from tender_quorum.tender.projections import TenderRegistry

__all__ = [
    # Models
    "Tender",
    "TenderVersion",
    "TenderStatus",
    "ServiceType",
    # Commands
    "CreateTender",
    "UpdateTender",
    "PublishTender",
    "CloseTender",
    "RollbackTender",
    "DeleteTender",
    # Handlers & projections
    "TenderCommandHandlers",
    "TenderRegistry",
]
