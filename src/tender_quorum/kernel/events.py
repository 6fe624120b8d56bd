"""
Event envelope for the tender/bid event log

Each entity owns two streams:

- a lifecycle stream (stream_id = entity id) holding creation, status
  changes, votes and deletion
- a content stream (stream_id = "<entity id>:content") whose stream
  version IS the content version number

Keeping them apart is what keeps status changes out of version numbering.
"""

from datetime import datetime
from typing import Any

from pydantic import BaseModel, Field

CONTENT_STREAM_SUFFIX = ":content"


class Event(BaseModel):
    """
    One immutable fact, as stored

    stream_id + version gives optimistic locking; command_id groups every
    event one command wrote (across streams) and makes replays idempotent.
    """

    model_config = {"frozen": True}

    event_id: str
    stream_id: str
    stream_type: str = Field(
        ..., description="'tender', 'tender_content', 'bid' or 'bid_content'"
    )
    event_type: str = Field(..., description="e.g. 'TenderCreated', 'BidApprovalRecorded'")
    occurred_at: datetime
    actor_id: str | None = Field(
        default=None, description="Acting user (None for cascades without an actor)"
    )
    command_id: str
    payload: dict[str, Any] = Field(default_factory=dict)
    version: int = Field(..., ge=1, description="Stream version after this event")


def create_event(
    *,
    event_id: str,
    stream_id: str,
    stream_type: str,
    event_type: str,
    occurred_at: datetime,
    command_id: str,
    version: int,
    actor_id: str | None = None,
    payload: dict[str, Any] | None = None,
) -> Event:
    return Event(
        event_id=event_id,
        stream_id=stream_id,
        stream_type=stream_type,
        event_type=event_type,
        occurred_at=occurred_at,
        actor_id=actor_id,
        command_id=command_id,
        payload=payload or {},
        version=version,
    )


def content_stream_id(entity_id: str) -> str:
    """Stream id of an entity's content history"""
    return f"{entity_id}{CONTENT_STREAM_SUFFIX}"
