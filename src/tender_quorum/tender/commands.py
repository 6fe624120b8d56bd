"""
Tender Commands

Commands express intentions to change a tender. Field limits mirror the
storage columns of the marketplace (name 100, description 500);
business rules are checked by the handlers.
"""

from pydantic import BaseModel, Field, field_validator, model_validator

from tender_quorum.tender.models import TenderStatus

NAME_MAX_LENGTH = 100
DESCRIPTION_MAX_LENGTH = 500


def _not_blank(value: str) -> str:
    if not value.strip():
        raise ValueError("must not be blank")
    return value.strip()


class CreateTender(BaseModel):
    """
    Create a tender together with its version 1

    Status may be CREATED (default) or PUBLISHED to create and publish in
    one step.
    """

    name: str = Field(..., min_length=1, max_length=NAME_MAX_LENGTH)
    description: str = Field(default="", max_length=DESCRIPTION_MAX_LENGTH)
    service_type: str = Field(..., min_length=1, description="One of the allowed service types")
    organization_id: str = Field(..., min_length=1)
    creator_id: str = Field(..., min_length=1, description="Must be responsible for the organization")
    status: TenderStatus = Field(default=TenderStatus.CREATED)

    @field_validator("name", "organization_id", "creator_id")
    @classmethod
    def validate_not_blank(cls, v: str) -> str:
        return _not_blank(v)

    @field_validator("status")
    @classmethod
    def validate_initial_status(cls, v: TenderStatus) -> TenderStatus:
        if v == TenderStatus.CLOSED:
            raise ValueError("a tender cannot be created CLOSED")
        return v


class UpdateTender(BaseModel):
    """
    Change tender content (appends one version)

    Omitted fields keep their current value.
    """

    tender_id: str = Field(..., min_length=1)
    name: str | None = Field(default=None, min_length=1, max_length=NAME_MAX_LENGTH)
    description: str | None = Field(default=None, max_length=DESCRIPTION_MAX_LENGTH)
    service_type: str | None = Field(default=None, min_length=1)

    @field_validator("name")
    @classmethod
    def validate_name(cls, v: str | None) -> str | None:
        return None if v is None else _not_blank(v)

    @model_validator(mode="after")
    def validate_has_changes(self) -> "UpdateTender":
        if self.name is None and self.description is None and self.service_type is None:
            raise ValueError("update must change name, description or service_type")
        return self


class PublishTender(BaseModel):
    """Move tender CREATED → PUBLISHED (no version append)"""

    tender_id: str = Field(..., min_length=1)


class CloseTender(BaseModel):
    """Move tender PUBLISHED → CLOSED (no version append)"""

    tender_id: str = Field(..., min_length=1)


class RollbackTender(BaseModel):
    """Append a copy of an earlier version as the new latest version"""

    tender_id: str = Field(..., min_length=1)
    version: int = Field(..., ge=1, description="Version whose content is restored")


class DeleteTender(BaseModel):
    """Logically delete a tender and, with it, its bids"""

    tender_id: str = Field(..., min_length=1)
