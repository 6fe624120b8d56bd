"""
Tender Domain Models

A tender is an organization's request for work. Its identity and owner
never change; its status moves through CREATED -> PUBLISHED -> CLOSED and
its content (name, description, service type) lives in an append-only
version history.
"""

from datetime import datetime
from enum import Enum

from pydantic import BaseModel, Field

from tender_quorum.ledger.models import Version


class TenderStatus(str, Enum):
    """
    Tender lifecycle states

    CREATED → PUBLISHED → CLOSED (terminal)
    """

    CREATED = "CREATED"  # Drafted, not visible to bidders
    PUBLISHED = "PUBLISHED"  # Accepting bids
    CLOSED = "CLOSED"  # A bid was approved or the owner closed it


class ServiceType(str, Enum):
    """Kinds of work a tender can request (default allow-list)"""

    CONSTRUCTION = "Construction"
    IT = "IT"
    CONSULTING = "Consulting"


class Tender(BaseModel):
    """
    Current state of a tender: lifecycle fields plus latest content

    `version` is the content version number; status changes never move it.
    """

    tender_id: str = Field(..., description="Unique tender identifier")
    organization_id: str = Field(..., description="Organization that posted the tender")
    creator_id: str = Field(..., description="Responsible user who created it")
    name: str = Field(..., description="Name from the latest version")
    description: str = Field(default="", description="Description from the latest version")
    service_type: str = Field(..., description="Service type from the latest version")
    status: TenderStatus = Field(..., description="Lifecycle status")
    version: int = Field(..., ge=1, description="Latest content version number")
    created_at: datetime = Field(..., description="Creation timestamp")
    updated_at: datetime = Field(..., description="When the latest version was appended")

    model_config = {
        "json_schema_extra": {
            "examples": [
                {
                    "tender_id": "01908e9a-3b87-7000-8000-000000000001",
                    "organization_id": "org-1",
                    "creator_id": "u1",
                    "name": "Road repair",
                    "description": "Resurface 2km of the ring road",
                    "service_type": "Construction",
                    "status": "PUBLISHED",
                    "version": 2,
                    "created_at": "2025-01-15T10:00:00Z",
                    "updated_at": "2025-01-16T09:00:00Z",
                }
            ]
        }
    }


class TenderVersion(BaseModel):
    """Immutable content snapshot of a tender"""

    tender_id: str
    name: str
    description: str
    service_type: str
    version: int = Field(..., ge=1)
    updated_at: datetime
    updated_by: str | None = None
    rolled_back_from: int | None = None

    model_config = {"frozen": True}

    @classmethod
    def from_version(cls, version: Version) -> "TenderVersion":
        return cls(
            tender_id=version.parent_id,
            name=version.content["name"],
            description=version.content.get("description", ""),
            service_type=version.content["service_type"],
            version=version.version,
            updated_at=version.updated_at,
            updated_by=version.updated_by,
            rolled_back_from=version.rolled_back_from,
        )
