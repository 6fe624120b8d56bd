"""
Tender Command Handlers

Transform tender commands into stream appends. Handlers are stateless:
the current tender is loaded by the caller and passed in, and nothing is
written here. The caller commits the returned StreamAppends in one
transaction.
"""

from typing import Any

from tender_quorum.kernel.event_store import StreamAppend
from tender_quorum.kernel.events import Event, create_event
from tender_quorum.kernel.ids import IdFactory, default_id_factory
from tender_quorum.kernel.policy import MarketplacePolicy
from tender_quorum.kernel.time import TimeProvider
from tender_quorum.ledger.handlers import VersionLedger
from tender_quorum.ledger.projections import VersionHistory
from tender_quorum.tender import commands, events, invariants
from tender_quorum.tender.models import TenderStatus

STREAM_TYPE = "tender"


def content_of(command: commands.CreateTender) -> dict[str, Any]:
    return {
        "name": command.name,
        "description": command.description,
        "service_type": command.service_type,
    }


class TenderCommandHandlers:
    """
    Command handlers for tender operations

    Stateless handlers: receive command and current state, validate,
    return the stream appends that record the change.
    """

    def __init__(
        self,
        time_provider: TimeProvider,
        policy: MarketplacePolicy,
        ledger: VersionLedger,
        id_factory: IdFactory = default_id_factory,
    ) -> None:
        self.time_provider = time_provider
        self.policy = policy
        self.ledger = ledger
        self.id_factory = id_factory

    def _lifecycle_event(
        self,
        tender_id: str,
        event_type: str,
        version: int,
        payload: dict[str, Any],
        command_id: str,
        actor_id: str | None,
    ) -> Event:
        return create_event(
            event_id=self.id_factory.generate(),
            stream_id=tender_id,
            stream_type=STREAM_TYPE,
            event_type=event_type,
            occurred_at=self.time_provider.now(),
            actor_id=actor_id,
            command_id=command_id,
            payload=payload,
            version=version,
        )

    def handle_create_tender(
        self,
        command: commands.CreateTender,
        command_id: str,
    ) -> tuple[str, list[StreamAppend]]:
        """
        Create a tender and its version 1

        Validates:
        - Service type is allowed by policy

        Authorization (creator responsible for organization) is checked by
        the caller before this handler runs.

        Returns:
            New tender id and the appends for its lifecycle and content streams
        """
        invariants.validate_service_type(command.service_type, self.policy)

        now = self.time_provider.now()
        tender_id = self.id_factory.generate()

        lifecycle = [
            self._lifecycle_event(
                tender_id,
                "TenderCreated",
                1,
                events.TenderCreated(
                    tender_id=tender_id,
                    organization_id=command.organization_id,
                    creator_id=command.creator_id,
                    created_at=now,
                ).model_dump(mode="json"),
                command_id,
                command.creator_id,
            )
        ]
        if command.status == TenderStatus.PUBLISHED:
            lifecycle.append(
                self._lifecycle_event(
                    tender_id,
                    "TenderPublished",
                    2,
                    events.TenderPublished(
                        tender_id=tender_id,
                        published_at=now,
                        published_by=command.creator_id,
                    ).model_dump(mode="json"),
                    command_id,
                    command.creator_id,
                )
            )

        content_batch, _ = self.ledger.build_append(
            VersionHistory(self.ledger.parent_kind, tender_id),
            content_of(command),
            command_id=command_id,
            actor_id=command.creator_id,
        )
        return tender_id, [StreamAppend(tender_id, 0, lifecycle), content_batch]

    def prepare_update(
        self,
        command: commands.UpdateTender,
        tender: dict[str, Any],
    ) -> dict[str, Any]:
        """
        Merge an update into the tender's current content

        Content may change in any status; status and content are
        independent.

        Returns:
            Full content snapshot for the next version
        """
        service_type = command.service_type or tender["service_type"]
        if command.service_type is not None:
            invariants.validate_service_type(service_type, self.policy)

        return {
            "name": command.name if command.name is not None else tender["name"],
            "description": (
                command.description
                if command.description is not None
                else tender["description"]
            ),
            "service_type": service_type,
        }

    def handle_publish_tender(
        self,
        tender: dict[str, Any],
        command_id: str,
        actor_id: str | None,
    ) -> list[StreamAppend]:
        """
        Publish tender (CREATED → PUBLISHED)

        Raises:
            InvalidStatusTransition: If the tender is not CREATED
        """
        invariants.validate_transition(
            tender["tender_id"], tender["status"], TenderStatus.PUBLISHED
        )
        event = self._lifecycle_event(
            tender["tender_id"],
            "TenderPublished",
            tender["lifecycle_version"] + 1,
            events.TenderPublished(
                tender_id=tender["tender_id"],
                published_at=self.time_provider.now(),
                published_by=actor_id,
            ).model_dump(mode="json"),
            command_id,
            actor_id,
        )
        return [StreamAppend(tender["tender_id"], tender["lifecycle_version"], [event])]

    def handle_close_tender(
        self,
        tender: dict[str, Any],
        command_id: str,
        actor_id: str | None,
        bid_id: str | None = None,
    ) -> list[StreamAppend]:
        """
        Close tender (PUBLISHED → CLOSED)

        Closing an already CLOSED tender is a no-op (returns no appends),
        which is what makes a second approved bid harmless.

        Args:
            bid_id: Approved bid that triggered the close, if any

        Raises:
            InvalidStatusTransition: If the tender is CREATED
        """
        if tender["status"] == TenderStatus.CLOSED:
            return []

        invariants.validate_transition(
            tender["tender_id"], tender["status"], TenderStatus.CLOSED
        )
        event = self._lifecycle_event(
            tender["tender_id"],
            "TenderClosed",
            tender["lifecycle_version"] + 1,
            events.TenderClosed(
                tender_id=tender["tender_id"],
                closed_at=self.time_provider.now(),
                closed_by=actor_id,
                reason="bid_approved" if bid_id else "manual",
                bid_id=bid_id,
            ).model_dump(mode="json"),
            command_id,
            actor_id,
        )
        return [StreamAppend(tender["tender_id"], tender["lifecycle_version"], [event])]

    def handle_delete_tender(
        self,
        tender: dict[str, Any],
        bid_ids: list[str],
        command_id: str,
        actor_id: str | None,
    ) -> list[StreamAppend]:
        """
        Write the tender's tombstone

        The caller appends BidDeleted for each of bid_ids in the same
        transaction.
        """
        event = self._lifecycle_event(
            tender["tender_id"],
            "TenderDeleted",
            tender["lifecycle_version"] + 1,
            events.TenderDeleted(
                tender_id=tender["tender_id"],
                deleted_at=self.time_provider.now(),
                deleted_by=actor_id,
                cascaded_bid_ids=bid_ids,
            ).model_dump(mode="json"),
            command_id,
            actor_id,
        )
        return [StreamAppend(tender["tender_id"], tender["lifecycle_version"], [event])]

    def handle_bid_received(
        self,
        tender: dict[str, Any],
        bid_id: str,
        command_id: str,
        actor_id: str | None,
    ) -> StreamAppend:
        """
        Record a new bid on the tender's lifecycle stream

        Moving the stream makes a concurrent delete (which lists the
        tender's bids outside the write lock) or close conflict and retry.
        The caller checks that the tender accepts bids.
        """
        event = self._lifecycle_event(
            tender["tender_id"],
            "TenderBidReceived",
            tender["lifecycle_version"] + 1,
            events.TenderBidReceived(
                tender_id=tender["tender_id"],
                bid_id=bid_id,
                received_at=self.time_provider.now(),
            ).model_dump(mode="json"),
            command_id,
            actor_id,
        )
        return StreamAppend(tender["tender_id"], tender["lifecycle_version"], [event])

    def lifecycle_guard(self, tender: dict[str, Any]) -> StreamAppend:
        """Assert the tender's lifecycle stream is unchanged at commit time"""
        return StreamAppend(tender["tender_id"], tender["lifecycle_version"], [])
