"""
Test Helper Functions - Builders

Builders for the loaded-state dicts that handlers receive and for raw
events, so handler tests do not have to go through the store.
"""

from datetime import datetime, timezone
from typing import Any

from tender_quorum.bid.models import BidStatus
from tender_quorum.kernel.errors import ResponsibilityLookupUnavailable
from tender_quorum.kernel.events import Event
from tender_quorum.marketplace import Marketplace
from tender_quorum.tender.models import Tender, TenderStatus

T0 = datetime(2025, 1, 15, 12, 0, 0, tzinfo=timezone.utc)


def make_event(
    stream_id: str,
    version: int,
    event_type: str = "TestEvent",
    *,
    stream_type: str = "test",
    command_id: str | None = None,
    payload: dict[str, Any] | None = None,
) -> Event:
    """Builder for a bare event envelope"""
    return Event(
        event_id=f"{stream_id}-evt-{version}-{command_id or 'c'}",
        stream_id=stream_id,
        stream_type=stream_type,
        event_type=event_type,
        occurred_at=T0,
        command_id=command_id or f"cmd-{stream_id}-{version}",
        payload=payload or {},
        version=version,
    )


def tender_state(
    tender_id: str = "t-1",
    status: TenderStatus = TenderStatus.PUBLISHED,
    lifecycle_version: int = 2,
    **overrides: Any,
) -> dict[str, Any]:
    """Builder for a tender as TenderRegistry holds it"""
    state = {
        "tender_id": tender_id,
        "organization_id": "org-a",
        "creator_id": "alice",
        "status": status,
        "created_at": T0.isoformat(),
        "name": "Road repair",
        "description": "Resurface 2km",
        "service_type": "Construction",
        "version": 1,
        "updated_at": T0.isoformat(),
        "lifecycle_version": lifecycle_version,
    }
    state.update(overrides)
    return state


def bid_state(
    bid_id: str = "b-1",
    status: BidStatus = BidStatus.CREATED,
    approvers: list[str] | None = None,
    **overrides: Any,
) -> dict[str, Any]:
    """Builder for a bid as BidRegistry holds it"""
    approvers = approvers or []
    state = {
        "bid_id": bid_id,
        "tender_id": "t-1",
        "organization_id": "org-b",
        "creator_id": "u1",
        "status": status,
        "approval_count": len(approvers),
        "approvers": approvers,
        "rejected_by": None,
        "created_at": T0.isoformat(),
        "name": "Offer",
        "description": "",
        "version": 1,
        "updated_at": T0.isoformat(),
        "lifecycle_version": 1 + len(approvers),
    }
    state.update(overrides)
    return state


def published_tender(market: Marketplace, name: str = "Road repair") -> Tender:
    """Create a PUBLISHED tender owned by org-a/alice"""
    return market.create_tender(
        name=name,
        description="Resurface 2km of the ring road",
        service_type="Construction",
        organization_id="org-a",
        creator_id="alice",
        status=TenderStatus.PUBLISHED,
    )


class FailingDirectory:
    """Responsibility directory whose backing store is down"""

    def list_responsibles(self, organization_id: str) -> list[str]:
        raise ResponsibilityLookupUnavailable(organization_id, "connection refused")

    def is_responsible(self, user_id: str, organization_id: str) -> bool:
        raise ResponsibilityLookupUnavailable(organization_id, "connection refused")


class BrokenDirectory:
    """Responsibility directory whose driver raises its own errors"""

    def list_responsibles(self, organization_id: str) -> list[str]:
        raise ConnectionError("directory host unreachable")

    def is_responsible(self, user_id: str, organization_id: str) -> bool:
        raise ConnectionError("directory host unreachable")


class StaticDirectory:
    """In-memory responsibility directory with mutable membership"""

    def __init__(self, members: dict[str, list[str]]) -> None:
        self.members = {org: list(users) for org, users in members.items()}

    def list_responsibles(self, organization_id: str) -> list[str]:
        return sorted(self.members.get(organization_id, []))

    def is_responsible(self, user_id: str, organization_id: str) -> bool:
        return user_id in self.members.get(organization_id, [])
