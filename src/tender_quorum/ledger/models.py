"""
Version Ledger Models

A Version is one immutable snapshot of an entity's content. Tenders and
bids keep different content fields, so the ledger stores content as a
plain mapping and the owning module gives it a typed shape.
"""

from datetime import datetime
from typing import Any

from pydantic import BaseModel, Field


class Version(BaseModel):
    """One content snapshot in a parent's history"""

    parent_id: str = Field(..., description="Tender or bid this version belongs to")
    version: int = Field(..., ge=1, description="Position in the history (1..N)")
    content: dict[str, Any] = Field(..., description="Snapshot of the content fields")
    updated_at: datetime = Field(..., description="When this version was appended")
    updated_by: str | None = Field(default=None, description="Actor who appended it")
    rolled_back_from: int | None = Field(
        default=None, description="Version whose content was copied (rollbacks only)"
    )

    model_config = {"frozen": True}
