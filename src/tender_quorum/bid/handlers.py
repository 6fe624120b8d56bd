"""
Bid Command Handlers - including the quorum approval engine

Approve and reject are the only operations that change a bid's vote
count or decide its fate. Both are built from one loaded bid (one stream
version), so the count increment, the quorum check and the status change
commit together or not at all. When an approval reaches quorum the
parent tender's close is appended in the same transaction.
"""

from typing import Any

from tender_quorum.bid import commands, events, invariants
from tender_quorum.bid.models import BidStatus, VoteResult
from tender_quorum.bid.quorum import compute_quorum, quorum_reached
from tender_quorum.kernel.errors import Unauthorized
from tender_quorum.kernel.event_store import StreamAppend
from tender_quorum.kernel.events import Event, create_event
from tender_quorum.kernel.ids import IdFactory, default_id_factory
from tender_quorum.kernel.logging import get_logger
from tender_quorum.kernel.policy import MarketplacePolicy
from tender_quorum.kernel.time import TimeProvider
from tender_quorum.ledger.handlers import VersionLedger
from tender_quorum.ledger.projections import VersionHistory
from tender_quorum.tender import invariants as tender_invariants
from tender_quorum.tender.handlers import TenderCommandHandlers

logger = get_logger(__name__)

STREAM_TYPE = "bid"


class BidCommandHandlers:
    """
    Command handlers for bid operations

    Stateless handlers: the caller loads the bid (and, for votes, its
    tender and the organization's responsibles) and commits the returned
    stream appends atomically.
    """

    def __init__(
        self,
        time_provider: TimeProvider,
        policy: MarketplacePolicy,
        ledger: VersionLedger,
        tender_handlers: TenderCommandHandlers,
        id_factory: IdFactory = default_id_factory,
    ) -> None:
        self.time_provider = time_provider
        self.policy = policy
        self.ledger = ledger
        self.tender_handlers = tender_handlers
        self.id_factory = id_factory

    def _bid_event(
        self,
        bid_id: str,
        event_type: str,
        version: int,
        payload: dict[str, Any],
        command_id: str,
        actor_id: str | None,
    ) -> Event:
        return create_event(
            event_id=self.id_factory.generate(),
            stream_id=bid_id,
            stream_type=STREAM_TYPE,
            event_type=event_type,
            occurred_at=self.time_provider.now(),
            actor_id=actor_id,
            command_id=command_id,
            payload=payload,
            version=version,
        )

    def handle_create_bid(
        self,
        command: commands.CreateBid,
        command_id: str,
        tender: dict[str, Any],
    ) -> tuple[str, list[StreamAppend]]:
        """
        Submit a bid and its version 1

        TenderBidReceived is appended to the tender's lifecycle stream in
        the same transaction, so a bid cannot slip in after a concurrent
        close, nor outlive a concurrent delete.

        Raises:
            TenderNotOpenForBids: If the tender is not PUBLISHED
        """
        tender_invariants.validate_accepts_bids(tender)

        bid_id = self.id_factory.generate()
        created = self._bid_event(
            bid_id,
            "BidCreated",
            1,
            events.BidCreated(
                bid_id=bid_id,
                tender_id=command.tender_id,
                organization_id=command.organization_id,
                creator_id=command.creator_id,
                created_at=self.time_provider.now(),
            ).model_dump(mode="json"),
            command_id,
            command.creator_id,
        )
        content_batch, _ = self.ledger.build_append(
            VersionHistory(self.ledger.parent_kind, bid_id),
            {"name": command.name, "description": command.description},
            command_id=command_id,
            actor_id=command.creator_id,
        )
        return bid_id, [
            self.tender_handlers.handle_bid_received(
                tender, bid_id, command_id, command.creator_id
            ),
            StreamAppend(bid_id, 0, [created]),
            content_batch,
        ]

    def prepare_update(
        self,
        command: commands.UpdateBid,
        bid: dict[str, Any],
    ) -> dict[str, Any]:
        """Merge an update into the bid's current content"""
        return {
            "name": command.name if command.name is not None else bid["name"],
            "description": (
                command.description if command.description is not None else bid["description"]
            ),
        }

    def handle_approve_bid(
        self,
        bid: dict[str, Any],
        tender: dict[str, Any],
        approver_id: str,
        responsibles: list[str],
        command_id: str,
    ) -> tuple[list[StreamAppend], VoteResult]:
        """
        Count one approval and decide the bid if quorum is reached

        Args:
            bid: Current bid state (must not be terminal)
            tender: The bid's tender (closed when quorum is reached)
            approver_id: Voting user, already authorized by the caller
            responsibles: Fresh list of the organization's responsible users
            command_id: Idempotency key shared by all resulting events

        Raises:
            InvalidStatusTransition: If the bid is already APPROVED or REJECTED
            Unauthorized: If approver_id is missing from the fresh responsibles
            DuplicateApproval: If approver_id already approved this bid
        """
        invariants.validate_accepts_votes(bid, BidStatus.APPROVED)
        # Responsibles were re-read after authorization; a revocation in
        # between must not count
        if approver_id not in responsibles:
            raise Unauthorized(approver_id, bid["organization_id"], "approve bids")
        invariants.validate_first_approval(bid, approver_id)

        now = self.time_provider.now()
        quorum = compute_quorum(len(responsibles), self.policy.quorum_cap)
        approval_count = bid["approval_count"] + 1
        version = bid["lifecycle_version"]

        bid_events = [
            self._bid_event(
                bid["bid_id"],
                "BidApprovalRecorded",
                version + 1,
                events.BidApprovalRecorded(
                    bid_id=bid["bid_id"],
                    approver_id=approver_id,
                    approval_count=approval_count,
                    quorum=quorum,
                    recorded_at=now,
                ).model_dump(mode="json"),
                command_id,
                approver_id,
            )
        ]
        batches: list[StreamAppend] = []
        status = BidStatus.CREATED
        tender_closed = False

        if quorum_reached(approval_count, quorum):
            status = BidStatus.APPROVED
            bid_events.append(
                self._bid_event(
                    bid["bid_id"],
                    "BidApproved",
                    version + 2,
                    events.BidApproved(
                        bid_id=bid["bid_id"],
                        tender_id=bid["tender_id"],
                        approval_count=approval_count,
                        quorum=quorum,
                        approved_at=now,
                    ).model_dump(mode="json"),
                    command_id,
                    approver_id,
                )
            )
            close = self.tender_handlers.handle_close_tender(
                tender, command_id, approver_id, bid_id=bid["bid_id"]
            )
            tender_closed = bool(close)
            batches.extend(close)
        else:
            logger.info(
                "Approval recorded, quorum not reached",
                bid_id=bid["bid_id"],
                approval_count=approval_count,
                quorum=quorum,
            )

        batches.insert(0, StreamAppend(bid["bid_id"], version, bid_events))
        return batches, VoteResult(
            bid_id=bid["bid_id"],
            status=status,
            approval_count=approval_count,
            quorum=quorum,
            tender_closed=tender_closed,
        )

    def handle_reject_bid(
        self,
        bid: dict[str, Any],
        rejecter_id: str,
        command_id: str,
    ) -> tuple[list[StreamAppend], VoteResult]:
        """
        Reject the bid: one vote is enough, whatever the approval count

        Raises:
            InvalidStatusTransition: If the bid is already APPROVED or REJECTED
        """
        invariants.validate_accepts_votes(bid, BidStatus.REJECTED)

        event = self._bid_event(
            bid["bid_id"],
            "BidRejected",
            bid["lifecycle_version"] + 1,
            events.BidRejected(
                bid_id=bid["bid_id"],
                rejected_by=rejecter_id,
                approval_count=bid["approval_count"],
                rejected_at=self.time_provider.now(),
            ).model_dump(mode="json"),
            command_id,
            rejecter_id,
        )
        return [StreamAppend(bid["bid_id"], bid["lifecycle_version"], [event])], VoteResult(
            bid_id=bid["bid_id"],
            status=BidStatus.REJECTED,
            approval_count=bid["approval_count"],
        )

    def handle_delete_bid(
        self,
        bid: dict[str, Any],
        command_id: str,
        actor_id: str | None,
        tender_deleted: str | None = None,
    ) -> list[StreamAppend]:
        """Write the bid's tombstone (optionally as part of a tender delete)"""
        event = self._bid_event(
            bid["bid_id"],
            "BidDeleted",
            bid["lifecycle_version"] + 1,
            events.BidDeleted(
                bid_id=bid["bid_id"],
                deleted_at=self.time_provider.now(),
                deleted_by=actor_id,
                tender_deleted=tender_deleted,
            ).model_dump(mode="json"),
            command_id,
            actor_id,
        )
        return [StreamAppend(bid["bid_id"], bid["lifecycle_version"], [event])]

    def lifecycle_guard(self, bid: dict[str, Any]) -> StreamAppend:
        """Assert the bid's lifecycle stream is unchanged at commit time"""
        return StreamAppend(bid["bid_id"], bid["lifecycle_version"], [])
