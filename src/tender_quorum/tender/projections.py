"""
Tender Projections

TenderRegistry folds lifecycle and content events into the current view
of each tender. It is rebuilt on demand, either for a single tender (its
two streams) or for all tenders (every tender and tender_content event in
append order).
"""

from collections.abc import Iterable
from typing import Any

from tender_quorum.kernel.events import Event
from tender_quorum.tender.models import Tender, TenderStatus


class TenderRegistry:
    """
    Tender registry projection

    Each entry keeps the public tender fields plus `lifecycle_version`, the
    version of the tender's lifecycle stream that the next status write
    must expect.
    """

    def __init__(self) -> None:
        self.tenders: dict[str, dict[str, Any]] = {}
        self.deleted: set[str] = set()

    @classmethod
    def from_events(cls, events: Iterable[Event]) -> "TenderRegistry":
        registry = cls()
        for event in events:
            registry.apply_event(event)
        return registry

    def apply_event(self, event: Event) -> None:
        """Apply event to update projection"""
        if event.event_type == "TenderCreated":
            self._apply_tender_created(event)
        elif event.event_type == "TenderVersionAppended":
            self._apply_version_appended(event)
        elif event.event_type == "TenderPublished":
            self._set_status(event, TenderStatus.PUBLISHED)
        elif event.event_type == "TenderClosed":
            self._set_status(event, TenderStatus.CLOSED)
        elif event.event_type == "TenderDeleted":
            self._apply_tender_deleted(event)
        elif event.event_type == "TenderBidReceived":
            self._apply_bid_received(event)

    def _apply_tender_created(self, event: Event) -> None:
        payload = event.payload
        self.tenders[payload["tender_id"]] = {
            "tender_id": payload["tender_id"],
            "organization_id": payload["organization_id"],
            "creator_id": payload["creator_id"],
            "status": TenderStatus.CREATED,
            "created_at": payload["created_at"],
            "name": None,
            "description": "",
            "service_type": None,
            "version": 0,
            "updated_at": payload["created_at"],
            "lifecycle_version": event.version,
        }

    def _apply_version_appended(self, event: Event) -> None:
        payload = event.payload
        tender = self.tenders.get(payload["parent_id"])
        if tender is None:
            return

        content = payload["content"]
        tender["name"] = content["name"]
        tender["description"] = content.get("description", "")
        tender["service_type"] = content["service_type"]
        tender["version"] = payload["version"]
        tender["updated_at"] = payload["appended_at"]

    def _set_status(self, event: Event, status: TenderStatus) -> None:
        tender = self.tenders.get(event.payload["tender_id"])
        if tender is None:
            return
        tender["status"] = status
        tender["lifecycle_version"] = event.version

    def _apply_bid_received(self, event: Event) -> None:
        tender = self.tenders.get(event.payload["tender_id"])
        if tender is None:
            return
        tender["lifecycle_version"] = event.version

    def _apply_tender_deleted(self, event: Event) -> None:
        tender_id = event.payload["tender_id"]
        self.tenders.pop(tender_id, None)
        self.deleted.add(tender_id)

    def get(self, tender_id: str) -> dict[str, Any] | None:
        """Get a live tender by ID (None if absent or deleted)"""
        tender = self.tenders.get(tender_id)
        # Version 1 is written with TenderCreated, an entry without it is not readable
        if tender is None or tender["version"] == 0:
            return None
        return tender

    def list_all(self, service_type: str | None = None) -> list[dict[str, Any]]:
        tenders = [t for t in self.tenders.values() if t["version"] > 0]
        if service_type:
            tenders = [t for t in tenders if t["service_type"] == service_type]
        return tenders

    def list_by_creator(self, creator_id: str) -> list[dict[str, Any]]:
        return [t for t in self.list_all() if t["creator_id"] == creator_id]

    def list_by_status(self, status: TenderStatus) -> list[dict[str, Any]]:
        return [t for t in self.list_all() if t["status"] == status]

    @staticmethod
    def to_model(tender: dict[str, Any]) -> Tender:
        return Tender.model_validate(tender)
