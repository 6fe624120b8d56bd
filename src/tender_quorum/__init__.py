"""
Tender Quorum - Event-sourced tender marketplace core

Organizations post tenders, other organizations bid on them, and a bid is
decided by a quorum of the bidding organization's responsible users.
Every content change is kept as an immutable version that can be rolled
back to.
"""

from tender_quorum.marketplace import Marketplace

__version__ = "0.1.0"
__all__ = ["Marketplace", "__version__"]
