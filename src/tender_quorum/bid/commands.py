"""
Bid Commands

Commands express intentions to change a bid. Votes (approve/reject) carry
the voting user; everything else carries only the bid's content.
"""

from pydantic import BaseModel, Field, field_validator, model_validator

from tender_quorum.tender.commands import DESCRIPTION_MAX_LENGTH, NAME_MAX_LENGTH


def _not_blank(value: str) -> str:
    if not value.strip():
        raise ValueError("must not be blank")
    return value.strip()


class CreateBid(BaseModel):
    """Submit a bid (with its version 1) against a published tender"""

    name: str = Field(..., min_length=1, max_length=NAME_MAX_LENGTH)
    description: str = Field(default="", max_length=DESCRIPTION_MAX_LENGTH)
    tender_id: str = Field(..., min_length=1)
    organization_id: str = Field(..., min_length=1)
    creator_id: str = Field(..., min_length=1)

    @field_validator("name", "tender_id", "organization_id", "creator_id")
    @classmethod
    def validate_not_blank(cls, v: str) -> str:
        return _not_blank(v)


class UpdateBid(BaseModel):
    """Change bid content (appends one version); omitted fields are kept"""

    bid_id: str = Field(..., min_length=1)
    name: str | None = Field(default=None, min_length=1, max_length=NAME_MAX_LENGTH)
    description: str | None = Field(default=None, max_length=DESCRIPTION_MAX_LENGTH)

    @field_validator("name")
    @classmethod
    def validate_name(cls, v: str | None) -> str | None:
        return None if v is None else _not_blank(v)

    @model_validator(mode="after")
    def validate_has_changes(self) -> "UpdateBid":
        if self.name is None and self.description is None:
            raise ValueError("update must change name or description")
        return self


class ApproveBid(BaseModel):
    """Record one approval vote from a responsible user"""

    bid_id: str = Field(..., min_length=1)
    approver_id: str = Field(..., min_length=1)


class RejectBid(BaseModel):
    """Reject the bid (a single vote is final)"""

    bid_id: str = Field(..., min_length=1)
    rejecter_id: str = Field(..., min_length=1)


class RollbackBid(BaseModel):
    """Append a copy of an earlier version as the new latest version"""

    bid_id: str = Field(..., min_length=1)
    version: int = Field(..., ge=1)


class DeleteBid(BaseModel):
    """Logically delete a bid"""

    bid_id: str = Field(..., min_length=1)
