"""
Version Ledger - append-only content history for tenders and bids

Every content change (create, update, rollback) appends exactly one
version; nothing is ever rewritten. Version numbers are 1..N with no gaps
and the highest is the current content.
"""

from tender_quorum.ledger.handlers import VersionLedger
from tender_quorum.ledger.models import Version
from tender_quorum.ledger.projections import VersionHistory

__all__ = ["Version", "VersionHistory", "VersionLedger"]
