"""
Version Ledger Events

Content streams hold a single event type per parent kind
(TenderVersionAppended, BidVersionAppended) with this payload.
"""

from datetime import datetime
from typing import Any

from pydantic import BaseModel, Field


class VersionAppended(BaseModel):
    """A new content version was appended to a parent's history"""

    parent_id: str = Field(..., description="Tender or bid id")
    version: int = Field(..., ge=1, description="Version number assigned")
    content: dict[str, Any] = Field(..., description="Content snapshot")
    appended_at: datetime = Field(..., description="When the version was appended")
    appended_by: str | None = Field(default=None, description="Actor who appended it")
    rolled_back_from: int | None = Field(
        default=None, description="Source version when this is a rollback"
    )
