"""
Bid Projections

BidRegistry folds bid lifecycle, vote and content events into the current
view of each bid.
"""

from collections.abc import Iterable
from typing import Any

from tender_quorum.bid.models import Bid, BidStatus
from tender_quorum.kernel.events import Event


class BidRegistry:
    """
    Bid registry projection

    Entries carry `lifecycle_version`, the bid stream version that votes
    and status writes must expect.
    """

    def __init__(self) -> None:
        self.bids: dict[str, dict[str, Any]] = {}
        self.deleted: set[str] = set()

    @classmethod
    def from_events(cls, events: Iterable[Event]) -> "BidRegistry":
        registry = cls()
        for event in events:
            registry.apply_event(event)
        return registry

    def apply_event(self, event: Event) -> None:
        """Apply event to update projection"""
        if event.event_type == "BidCreated":
            self._apply_bid_created(event)
        elif event.event_type == "BidVersionAppended":
            self._apply_version_appended(event)
        elif event.event_type == "BidApprovalRecorded":
            self._apply_approval_recorded(event)
        elif event.event_type == "BidApproved":
            self._set_status(event, BidStatus.APPROVED)
        elif event.event_type == "BidRejected":
            self._apply_bid_rejected(event)
        elif event.event_type == "BidDeleted":
            self._apply_bid_deleted(event)

    def _apply_bid_created(self, event: Event) -> None:
        payload = event.payload
        self.bids[payload["bid_id"]] = {
            "bid_id": payload["bid_id"],
            "tender_id": payload["tender_id"],
            "organization_id": payload["organization_id"],
            "creator_id": payload["creator_id"],
            "status": BidStatus.CREATED,
            "approval_count": 0,
            "approvers": [],
            "rejected_by": None,
            "created_at": payload["created_at"],
            "name": None,
            "description": "",
            "version": 0,
            "updated_at": payload["created_at"],
            "lifecycle_version": event.version,
        }

    def _apply_version_appended(self, event: Event) -> None:
        payload = event.payload
        bid = self.bids.get(payload["parent_id"])
        if bid is None:
            return

        content = payload["content"]
        bid["name"] = content["name"]
        bid["description"] = content.get("description", "")
        bid["version"] = payload["version"]
        bid["updated_at"] = payload["appended_at"]

    def _apply_approval_recorded(self, event: Event) -> None:
        bid = self.bids.get(event.payload["bid_id"])
        if bid is None:
            return
        bid["approval_count"] = event.payload["approval_count"]
        bid["approvers"] = [*bid["approvers"], event.payload["approver_id"]]
        bid["lifecycle_version"] = event.version

    def _set_status(self, event: Event, status: BidStatus) -> None:
        bid = self.bids.get(event.payload["bid_id"])
        if bid is None:
            return
        bid["status"] = status
        bid["lifecycle_version"] = event.version

    def _apply_bid_rejected(self, event: Event) -> None:
        self._set_status(event, BidStatus.REJECTED)
        bid = self.bids.get(event.payload["bid_id"])
        if bid is not None:
            bid["rejected_by"] = event.payload["rejected_by"]

    def _apply_bid_deleted(self, event: Event) -> None:
        bid_id = event.payload["bid_id"]
        self.bids.pop(bid_id, None)
        self.deleted.add(bid_id)

    def get(self, bid_id: str) -> dict[str, Any] | None:
        """Get a live bid by ID (None if absent or deleted)"""
        bid = self.bids.get(bid_id)
        if bid is None or bid["version"] == 0:
            return None
        return bid

    def list_all(self) -> list[dict[str, Any]]:
        return [b for b in self.bids.values() if b["version"] > 0]

    def list_by_tender(self, tender_id: str) -> list[dict[str, Any]]:
        return [b for b in self.list_all() if b["tender_id"] == tender_id]

    def list_by_creator(self, creator_id: str) -> list[dict[str, Any]]:
        return [b for b in self.list_all() if b["creator_id"] == creator_id]

    @staticmethod
    def to_model(bid: dict[str, Any]) -> Bid:
        return Bid.model_validate(bid)
