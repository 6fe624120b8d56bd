"""
Tests for Tender Command Handlers

Handlers are stateless: they receive loaded tender state and return the
stream appends to commit. These tests inspect the appends directly and
fold them through TenderRegistry.
"""

import pytest
from pydantic import ValidationError

from tender_quorum.kernel.errors import InvalidServiceType, InvalidStatusTransition
from tender_quorum.kernel.event_store import SQLiteEventStore
from tender_quorum.tender.commands import CreateTender, UpdateTender
from tender_quorum.tender.handlers import TenderCommandHandlers
from tender_quorum.tender.models import TenderStatus
from tender_quorum.tender.projections import TenderRegistry
from tests.helpers import tender_state


def create_command(**overrides) -> CreateTender:
    fields = {
        "name": "Road repair",
        "description": "Resurface 2km",
        "service_type": "Construction",
        "organization_id": "org-a",
        "creator_id": "alice",
    }
    fields.update(overrides)
    return CreateTender(**fields)


class TestCreateTender:
    def test_creates_lifecycle_and_version_one(
        self, tender_handlers: TenderCommandHandlers
    ) -> None:
        tender_id, batches = tender_handlers.handle_create_tender(create_command(), "cmd-1")

        lifecycle, content = batches
        assert lifecycle.stream_id == tender_id
        assert lifecycle.expected_version == 0
        assert [e.event_type for e in lifecycle.events] == ["TenderCreated"]
        assert content.stream_id == f"{tender_id}:content"
        assert [e.event_type for e in content.events] == ["TenderVersionAppended"]
        assert content.events[0].payload["version"] == 1
        assert {e.command_id for b in batches for e in b.events} == {"cmd-1"}

    def test_create_published(self, tender_handlers: TenderCommandHandlers) -> None:
        tender_id, batches = tender_handlers.handle_create_tender(
            create_command(status="PUBLISHED"), "cmd-1"
        )

        registry = TenderRegistry.from_events(e for b in batches for e in b.events)
        tender = registry.get(tender_id)
        assert tender["status"] == TenderStatus.PUBLISHED
        assert tender["version"] == 1
        assert tender["lifecycle_version"] == 2

    def test_rejects_unknown_service_type(self, tender_handlers: TenderCommandHandlers) -> None:
        with pytest.raises(InvalidServiceType) as exc_info:
            tender_handlers.handle_create_tender(create_command(service_type="Catering"), "c")

        assert exc_info.value.allowed == ["Construction", "IT", "Consulting"]

    def test_cannot_create_closed(self) -> None:
        with pytest.raises(ValidationError):
            create_command(status="CLOSED")

    @pytest.mark.parametrize(
        "overrides",
        [{"name": "   "}, {"name": "x" * 101}, {"description": "x" * 501}, {"creator_id": ""}],
    )
    def test_malformed_input(self, overrides: dict) -> None:
        with pytest.raises(ValidationError):
            create_command(**overrides)


class TestUpdateTender:
    def test_merges_partial_update(self, tender_handlers: TenderCommandHandlers) -> None:
        command = UpdateTender(tender_id="t-1", description="Resurface 3km")

        content = tender_handlers.prepare_update(command, tender_state())

        assert content == {
            "name": "Road repair",
            "description": "Resurface 3km",
            "service_type": "Construction",
        }

    def test_update_allowed_after_close(self, tender_handlers: TenderCommandHandlers) -> None:
        command = UpdateTender(tender_id="t-1", name="Renamed")

        content = tender_handlers.prepare_update(
            command, tender_state(status=TenderStatus.CLOSED)
        )
        assert content["name"] == "Renamed"

    def test_validates_new_service_type(self, tender_handlers: TenderCommandHandlers) -> None:
        with pytest.raises(InvalidServiceType):
            tender_handlers.prepare_update(
                UpdateTender(tender_id="t-1", service_type="Catering"), tender_state()
            )

    def test_empty_update_rejected(self) -> None:
        with pytest.raises(ValidationError):
            UpdateTender(tender_id="t-1")


class TestStatusChanges:
    def test_publish(self, tender_handlers: TenderCommandHandlers) -> None:
        tender = tender_state(status=TenderStatus.CREATED, lifecycle_version=1)

        (batch,) = tender_handlers.handle_publish_tender(tender, "cmd", "alice")

        assert batch.expected_version == 1
        assert batch.events[0].event_type == "TenderPublished"
        assert batch.events[0].version == 2

    def test_publish_twice_rejected(self, tender_handlers: TenderCommandHandlers) -> None:
        with pytest.raises(InvalidStatusTransition):
            tender_handlers.handle_publish_tender(tender_state(), "cmd", "alice")

    def test_close_published(self, tender_handlers: TenderCommandHandlers) -> None:
        (batch,) = tender_handlers.handle_close_tender(tender_state(), "cmd", "alice")

        payload = batch.events[0].payload
        assert payload["reason"] == "manual"
        assert payload["bid_id"] is None

    def test_close_for_approved_bid(self, tender_handlers: TenderCommandHandlers) -> None:
        (batch,) = tender_handlers.handle_close_tender(
            tender_state(), "cmd", "u1", bid_id="b-1"
        )

        assert batch.events[0].payload["reason"] == "bid_approved"
        assert batch.events[0].payload["bid_id"] == "b-1"

    def test_close_closed_is_noop(self, tender_handlers: TenderCommandHandlers) -> None:
        closed = tender_state(status=TenderStatus.CLOSED, lifecycle_version=3)
        assert tender_handlers.handle_close_tender(closed, "cmd", "alice") == []

    def test_close_unpublished_rejected(self, tender_handlers: TenderCommandHandlers) -> None:
        with pytest.raises(InvalidStatusTransition):
            tender_handlers.handle_close_tender(
                tender_state(status=TenderStatus.CREATED, lifecycle_version=1), "cmd", "alice"
            )

    def test_delete_records_cascade(self, tender_handlers: TenderCommandHandlers) -> None:
        (batch,) = tender_handlers.handle_delete_tender(
            tender_state(), ["b-1", "b-2"], "cmd", "alice"
        )

        assert batch.events[0].event_type == "TenderDeleted"
        assert batch.events[0].payload["cascaded_bid_ids"] == ["b-1", "b-2"]


class TestTenderRegistry:
    def test_rebuilds_from_store(
        self, tender_handlers: TenderCommandHandlers, event_store: SQLiteEventStore
    ) -> None:
        tender_id, batches = tender_handlers.handle_create_tender(create_command(), "c1")
        event_store.append_streams(batches)
        other_id, batches = tender_handlers.handle_create_tender(
            create_command(service_type="IT", creator_id="bob"), "c2"
        )
        event_store.append_streams(batches)

        registry = TenderRegistry.from_events(
            event_store.query_events(stream_types=["tender", "tender_content"])
        )

        assert {t["tender_id"] for t in registry.list_all()} == {tender_id, other_id}
        assert [t["tender_id"] for t in registry.list_all("IT")] == [other_id]
        assert [t["tender_id"] for t in registry.list_by_creator("alice")] == [tender_id]
        assert len(registry.list_by_status(TenderStatus.CREATED)) == 2

    def test_deleted_tender_is_gone(
        self, tender_handlers: TenderCommandHandlers, event_store: SQLiteEventStore
    ) -> None:
        tender_id, batches = tender_handlers.handle_create_tender(create_command(), "c1")
        event_store.append_streams(batches)
        registry = TenderRegistry.from_events(
            event_store.query_events(stream_types=["tender", "tender_content"])
        )
        event_store.append_streams(
            tender_handlers.handle_delete_tender(registry.get(tender_id), [], "c2", "alice")
        )

        registry = TenderRegistry.from_events(
            event_store.query_events(stream_types=["tender", "tender_content"])
        )
        assert registry.get(tender_id) is None
        assert tender_id in registry.deleted

    def test_bid_received_moves_lifecycle_only(
        self, tender_handlers: TenderCommandHandlers, event_store: SQLiteEventStore
    ) -> None:
        tender_id, batches = tender_handlers.handle_create_tender(
            create_command(status="PUBLISHED"), "c1"
        )
        event_store.append_streams(batches)
        registry = TenderRegistry.from_events(
            event_store.query_events(stream_types=["tender", "tender_content"])
        )
        event_store.append_streams(
            [tender_handlers.handle_bid_received(registry.get(tender_id), "b-1", "c2", "bob")]
        )

        registry = TenderRegistry.from_events(
            event_store.query_events(stream_types=["tender", "tender_content"])
        )
        tender = registry.get(tender_id)
        assert tender["lifecycle_version"] == 3
        assert tender["status"] == TenderStatus.PUBLISHED
        assert tender["version"] == 1

    def test_to_model(self) -> None:
        tender = TenderRegistry.to_model(tender_state())

        assert tender.status == TenderStatus.PUBLISHED
        assert tender.version == 1
