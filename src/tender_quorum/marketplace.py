"""
Marketplace - Main façade class

This is the interface a request layer calls: plain methods taking
identifiers and content, returning pydantic models or raising a typed
error from tender_quorum.kernel.errors.

Every write follows the same shape: load current state fresh, check
authorization and status rules, build events, append them to every
affected stream in one transaction. A StreamVersionConflict means another
writer got there first; the whole attempt is re-run against the new state.

Example:
    >>> from tender_quorum import Marketplace
    >>> market = Marketplace("marketplace.db")
    >>> market.directory.grant("org-1", "u1")
    >>> tender = market.create_tender(
    ...     name="Road repair", description="2km", service_type="Construction",
    ...     organization_id="org-1", creator_id="u1", status="PUBLISHED",
    ... )
    >>> bid = market.create_bid(
    ...     name="Offer", description="", tender_id=tender.tender_id,
    ...     organization_id="org-1", creator_id="u1",
    ... )
    >>> market.approve_bid(bid.bid_id, "u1").status
    <BidStatus.APPROVED: 'APPROVED'>
"""

from collections.abc import Callable
from pathlib import Path
from typing import Any, TypeVar

from pydantic import BaseModel, ValidationError

from tender_quorum.auth.directory import ResponsibilityDirectory, SQLiteResponsibilityDirectory
from tender_quorum.auth.gate import AuthorizationGate
from tender_quorum.bid import commands as bid_commands
from tender_quorum.bid import invariants as bid_invariants
from tender_quorum.bid.handlers import BidCommandHandlers
from tender_quorum.bid.models import Bid, BidStatus, BidVersion, VoteResult
from tender_quorum.bid.projections import BidRegistry
from tender_quorum.kernel.errors import (
    BidNotFound,
    InvalidInput,
    TenderNotFound,
)
from tender_quorum.kernel.event_store import SQLiteEventStore
from tender_quorum.kernel.events import content_stream_id
from tender_quorum.kernel.ids import IdFactory, default_id_factory
from tender_quorum.kernel.logging import LogOperation, get_logger
from tender_quorum.kernel.metrics import (
    bid_decisions_total,
    bid_votes_total,
    track_command_duration,
)
from tender_quorum.kernel.policy import MarketplacePolicy
from tender_quorum.kernel.retry import retry_on_conflict
from tender_quorum.kernel.time import RealTimeProvider, TimeProvider
from tender_quorum.kernel.timeout import timeout_context
from tender_quorum.ledger.handlers import VersionLedger
from tender_quorum.ledger.projections import VersionHistory
from tender_quorum.tender import commands as tender_commands
from tender_quorum.tender import invariants as tender_invariants
from tender_quorum.tender.handlers import TenderCommandHandlers
from tender_quorum.tender.models import Tender, TenderStatus, TenderVersion
from tender_quorum.tender.projections import TenderRegistry

logger = get_logger(__name__)

T = TypeVar("T")
C = TypeVar("C", bound=BaseModel)

TENDER_STREAM_TYPES = ("tender", "tender_content")
BID_STREAM_TYPES = ("bid", "bid_content")


def _command(command_type: type[C], **fields: Any) -> C:
    """Build a command, reporting malformed input as InvalidInput"""
    try:
        return command_type(**fields)
    except ValidationError as e:
        raise InvalidInput(f"Invalid {command_type.__name__}: {e}") from e


class Marketplace:
    """
    Tender Quorum main façade

    Provides a unified API for:
    - Tender lifecycle and content versioning
    - Bid lifecycle, content versioning and quorum voting
    - Responsibility checks
    """

    def __init__(
        self,
        sqlite_path: str | Path,
        policy: MarketplacePolicy | None = None,
        time_provider: TimeProvider | None = None,
        directory: ResponsibilityDirectory | None = None,
        id_factory: IdFactory | None = None,
    ) -> None:
        """
        Initialize the marketplace core

        Args:
            sqlite_path: Path to SQLite database (event store, and the
                responsibility table unless a directory is given)
            policy: Marketplace policy (uses defaults if None)
            time_provider: Time provider (uses real time if None)
            directory: Responsibility directory (SQLite table in the same
                database if None)
            id_factory: Id generator (UUIDv7-style if None)
        """
        self.sqlite_path = Path(sqlite_path)
        self.policy = policy or MarketplacePolicy()
        self.time_provider = time_provider or RealTimeProvider()
        self.id_factory = id_factory or default_id_factory

        self.event_store = SQLiteEventStore(
            self.sqlite_path, busy_timeout_seconds=self.policy.sqlite_busy_timeout_seconds
        )
        self.directory = directory or SQLiteResponsibilityDirectory(
            self.sqlite_path, busy_timeout_seconds=self.policy.sqlite_busy_timeout_seconds
        )
        self.auth = AuthorizationGate(self.directory)

        self.tender_ledger = VersionLedger(
            self.event_store, "tender", self.time_provider, self.id_factory
        )
        self.bid_ledger = VersionLedger(
            self.event_store, "bid", self.time_provider, self.id_factory
        )
        self.tender_handlers = TenderCommandHandlers(
            self.time_provider, self.policy, self.tender_ledger, self.id_factory
        )
        self.bid_handlers = BidCommandHandlers(
            self.time_provider,
            self.policy,
            self.bid_ledger,
            self.tender_handlers,
            self.id_factory,
        )

    # ------------------------------------------------------------------
    # Plumbing
    # ------------------------------------------------------------------

    def _execute(self, operation: str, attempt: Callable[[], T], **context: Any) -> T:
        """
        Run one operation attempt-by-attempt until it commits

        Each attempt must reload the state it depends on. Conflicts are
        retried up to policy.max_conflict_retries times; every other error
        propagates immediately.
        """
        retrying = retry_on_conflict(
            max_attempts=self.policy.max_conflict_retries,
            min_wait_ms=self.policy.conflict_retry_min_wait_ms,
            max_wait_ms=self.policy.conflict_retry_max_wait_ms,
        )(attempt)
        with LogOperation(logger, operation, **context):
            with timeout_context(self.policy.operation_timeout_seconds, operation):
                return retrying()

    def _load_tender(self, tender_id: str) -> tuple[dict[str, Any], VersionHistory]:
        """Load a live tender and its history from one snapshot"""
        content_id = content_stream_id(tender_id)
        streams = self.event_store.load_streams([tender_id, content_id])
        registry = TenderRegistry.from_events([*streams[tender_id], *streams[content_id]])
        tender = registry.get(tender_id)
        if tender is None:
            raise TenderNotFound(tender_id)
        history = VersionHistory.from_events("tender", tender_id, streams[content_id])
        return tender, history

    def _load_bid(self, bid_id: str) -> tuple[dict[str, Any], VersionHistory]:
        """Load a live bid and its history from one snapshot"""
        content_id = content_stream_id(bid_id)
        streams = self.event_store.load_streams([bid_id, content_id])
        registry = BidRegistry.from_events([*streams[bid_id], *streams[content_id]])
        bid = registry.get(bid_id)
        if bid is None:
            raise BidNotFound(bid_id)
        history = VersionHistory.from_events("bid", bid_id, streams[content_id])
        return bid, history

    def _tender_registry(self) -> TenderRegistry:
        return TenderRegistry.from_events(
            self.event_store.query_events(stream_types=TENDER_STREAM_TYPES)
        )

    def _bid_registry(self) -> BidRegistry:
        return BidRegistry.from_events(
            self.event_store.query_events(stream_types=BID_STREAM_TYPES)
        )

    # ------------------------------------------------------------------
    # Tender operations
    # ------------------------------------------------------------------

    @track_command_duration("create_tender")
    def create_tender(
        self,
        name: str,
        description: str,
        service_type: str,
        organization_id: str,
        creator_id: str,
        status: str | TenderStatus = TenderStatus.CREATED,
    ) -> Tender:
        """
        Create a tender with its version 1

        Args:
            name: Tender name
            description: Tender description
            service_type: One of policy.allowed_service_types
            organization_id: Posting organization
            creator_id: Must be responsible for organization_id
            status: CREATED (default) or PUBLISHED

        Returns:
            The new tender

        Raises:
            Unauthorized: creator_id is not responsible for organization_id
            InvalidInput: Malformed input or disallowed service type
        """
        command = _command(
            tender_commands.CreateTender,
            name=name,
            description=description,
            service_type=service_type,
            organization_id=organization_id,
            creator_id=creator_id,
            status=status,
        )
        command_id = self.id_factory.generate()

        def attempt() -> str:
            self.auth.require_responsible(
                command.creator_id, command.organization_id, "create tenders"
            )
            tender_id, batches = self.tender_handlers.handle_create_tender(command, command_id)
            self.event_store.append_streams(batches)
            return tender_id

        tender_id = self._execute(
            "create_tender",
            attempt,
            organization_id=command.organization_id,
            creator_id=command.creator_id,
        )
        return self.get_tender(tender_id)

    def get_tender(self, tender_id: str) -> Tender:
        """Current tender state (TenderNotFound if absent or deleted)"""
        tender, _ = self._load_tender(tender_id)
        return TenderRegistry.to_model(tender)

    def list_tenders(self, service_type: str | None = None) -> list[Tender]:
        """
        All live tenders, optionally filtered by service type

        Raises:
            InvalidServiceType: If service_type is not an allowed type
        """
        if service_type:
            tender_invariants.validate_service_type(service_type, self.policy)
        registry = self._tender_registry()
        return [TenderRegistry.to_model(t) for t in registry.list_all(service_type)]

    def list_tenders_by_creator(self, creator_id: str) -> list[Tender]:
        registry = self._tender_registry()
        return [TenderRegistry.to_model(t) for t in registry.list_by_creator(creator_id)]

    @track_command_duration("update_tender")
    def update_tender(
        self,
        tender_id: str,
        name: str | None = None,
        description: str | None = None,
        service_type: str | None = None,
        actor_id: str | None = None,
    ) -> Tender:
        """
        Change tender content, appending exactly one version

        Omitted fields keep their current value. Status is untouched.

        Raises:
            TenderNotFound: Tender absent or deleted
            InvalidInput: Nothing to change, or disallowed service type
        """
        command = _command(
            tender_commands.UpdateTender,
            tender_id=tender_id,
            name=name,
            description=description,
            service_type=service_type,
        )
        command_id = self.id_factory.generate()

        def attempt() -> None:
            tender, history = self._load_tender(command.tender_id)
            content = self.tender_handlers.prepare_update(command, tender)
            self.tender_ledger.append_version(
                history,
                content,
                command_id=command_id,
                actor_id=actor_id,
                guards=[self.tender_handlers.lifecycle_guard(tender)],
            )

        self._execute("update_tender", attempt, tender_id=tender_id, actor_id=actor_id)
        return self.get_tender(tender_id)

    @track_command_duration("publish_tender")
    def publish_tender(self, tender_id: str, actor_id: str | None = None) -> Tender:
        """
        CREATED → PUBLISHED (no version append)

        Raises:
            TenderNotFound: Tender absent or deleted
            InvalidStatusTransition: Tender is not CREATED
        """
        command = _command(tender_commands.PublishTender, tender_id=tender_id)
        command_id = self.id_factory.generate()

        def attempt() -> None:
            tender, _ = self._load_tender(command.tender_id)
            batches = self.tender_handlers.handle_publish_tender(tender, command_id, actor_id)
            self.event_store.append_streams(batches)

        self._execute("publish_tender", attempt, tender_id=tender_id, actor_id=actor_id)
        return self.get_tender(tender_id)

    @track_command_duration("close_tender")
    def close_tender(self, tender_id: str, actor_id: str | None = None) -> Tender:
        """
        PUBLISHED → CLOSED (no version append); closing a CLOSED tender is a no-op

        Raises:
            TenderNotFound: Tender absent or deleted
            InvalidStatusTransition: Tender is still CREATED
        """
        command = _command(tender_commands.CloseTender, tender_id=tender_id)
        command_id = self.id_factory.generate()

        def attempt() -> None:
            tender, _ = self._load_tender(command.tender_id)
            batches = self.tender_handlers.handle_close_tender(tender, command_id, actor_id)
            self.event_store.append_streams(batches)

        self._execute("close_tender", attempt, tender_id=tender_id, actor_id=actor_id)
        return self.get_tender(tender_id)

    @track_command_duration("rollback_tender")
    def rollback_tender(
        self, tender_id: str, version: int, actor_id: str | None = None
    ) -> Tender:
        """
        Append a copy of `version` as the new latest version

        Raises:
            TenderNotFound: Tender absent or deleted
            VersionNotFound: The tender has no such version
        """
        command = _command(tender_commands.RollbackTender, tender_id=tender_id, version=version)
        command_id = self.id_factory.generate()

        def attempt() -> None:
            tender, history = self._load_tender(command.tender_id)
            self.tender_ledger.rollback_to(
                history,
                command.version,
                command_id=command_id,
                actor_id=actor_id,
                guards=[self.tender_handlers.lifecycle_guard(tender)],
            )

        self._execute(
            "rollback_tender", attempt, tender_id=tender_id, version=version, actor_id=actor_id
        )
        return self.get_tender(tender_id)

    @track_command_duration("delete_tender")
    def delete_tender(self, tender_id: str, actor_id: str | None = None) -> None:
        """
        Logically delete a tender and all of its live bids

        Raises:
            TenderNotFound: Tender absent or already deleted
        """
        command = _command(tender_commands.DeleteTender, tender_id=tender_id)
        command_id = self.id_factory.generate()

        def attempt() -> None:
            tender, _ = self._load_tender(command.tender_id)
            # A bid created after this listing moved the tender's lifecycle
            # stream (TenderBidReceived), so the tombstone append conflicts
            bids = self._bid_registry().list_by_tender(command.tender_id)
            bid_ids = [bid["bid_id"] for bid in bids]

            batches = self.tender_handlers.handle_delete_tender(
                tender, bid_ids, command_id, actor_id
            )
            for bid in bids:
                batches.extend(
                    self.bid_handlers.handle_delete_bid(
                        bid, command_id, actor_id, tender_deleted=command.tender_id
                    )
                )
            self.event_store.append_streams(batches)

        self._execute("delete_tender", attempt, tender_id=tender_id, actor_id=actor_id)

    def list_tender_versions(self, tender_id: str) -> list[TenderVersion]:
        """Full content history, oldest first"""
        _, history = self._load_tender(tender_id)
        return [TenderVersion.from_version(v) for v in history.list_versions()]

    def get_tender_version(self, tender_id: str, version: int) -> TenderVersion:
        """
        Raises:
            TenderNotFound: Tender absent or deleted
            VersionNotFound: The tender has no such version
        """
        _, history = self._load_tender(tender_id)
        return TenderVersion.from_version(history.get(version))

    # ------------------------------------------------------------------
    # Bid operations
    # ------------------------------------------------------------------

    @track_command_duration("create_bid")
    def create_bid(
        self,
        name: str,
        description: str,
        tender_id: str,
        organization_id: str,
        creator_id: str,
    ) -> Bid:
        """
        Submit a bid with its version 1 against a published tender

        Raises:
            TenderNotFound: Tender absent or deleted
            TenderNotOpenForBids: Tender is not PUBLISHED
            InvalidInput: Malformed input
        """
        command = _command(
            bid_commands.CreateBid,
            name=name,
            description=description,
            tender_id=tender_id,
            organization_id=organization_id,
            creator_id=creator_id,
        )
        command_id = self.id_factory.generate()

        def attempt() -> str:
            tender, _ = self._load_tender(command.tender_id)
            bid_id, batches = self.bid_handlers.handle_create_bid(command, command_id, tender)
            self.event_store.append_streams(batches)
            return bid_id

        bid_id = self._execute(
            "create_bid",
            attempt,
            tender_id=command.tender_id,
            organization_id=command.organization_id,
            creator_id=command.creator_id,
        )
        return self.get_bid(bid_id)

    def get_bid(self, bid_id: str) -> Bid:
        """Current bid state (BidNotFound if absent or deleted)"""
        bid, _ = self._load_bid(bid_id)
        return BidRegistry.to_model(bid)

    def list_bids_by_tender(self, tender_id: str) -> list[Bid]:
        """
        Live bids submitted against a tender

        Raises:
            TenderNotFound: Tender absent or deleted
        """
        self._load_tender(tender_id)
        registry = self._bid_registry()
        return [BidRegistry.to_model(b) for b in registry.list_by_tender(tender_id)]

    def list_bids_by_creator(self, creator_id: str) -> list[Bid]:
        registry = self._bid_registry()
        return [BidRegistry.to_model(b) for b in registry.list_by_creator(creator_id)]

    @track_command_duration("update_bid")
    def update_bid(
        self,
        bid_id: str,
        name: str | None = None,
        description: str | None = None,
        actor_id: str | None = None,
    ) -> Bid:
        """
        Change bid content, appending exactly one version

        Raises:
            BidNotFound: Bid absent or deleted
            InvalidInput: Nothing to change
        """
        command = _command(
            bid_commands.UpdateBid, bid_id=bid_id, name=name, description=description
        )
        command_id = self.id_factory.generate()

        def attempt() -> None:
            bid, history = self._load_bid(command.bid_id)
            content = self.bid_handlers.prepare_update(command, bid)
            self.bid_ledger.append_version(
                history,
                content,
                command_id=command_id,
                actor_id=actor_id,
                guards=[self.bid_handlers.lifecycle_guard(bid)],
            )

        self._execute("update_bid", attempt, bid_id=bid_id, actor_id=actor_id)
        return self.get_bid(bid_id)

    @track_command_duration("approve_bid")
    def approve_bid(self, bid_id: str, approver_id: str) -> VoteResult:
        """
        Record one approval; approve the bid and close its tender at quorum

        Steps, re-run from scratch on conflict:
        1. load bid (BidNotFound)
        2. reject votes on a terminal bid (InvalidStatusTransition)
        3. approver must be responsible for the bid's organization
        4. quorum = min(cap, responsibles) from a fresh read
        5. count the vote; at quorum bid → APPROVED and tender → CLOSED
        6. commit bid and tender streams together

        Raises:
            BidNotFound: Bid absent or deleted
            InvalidStatusTransition: Bid already APPROVED or REJECTED
            Unauthorized: Approver not responsible for the organization
            DuplicateApproval: Approver already approved this bid
            Unavailable: Responsibility lookup or store failure
        """
        command = _command(bid_commands.ApproveBid, bid_id=bid_id, approver_id=approver_id)
        command_id = self.id_factory.generate()

        def attempt() -> VoteResult:
            bid, _ = self._load_bid(command.bid_id)
            bid_invariants.validate_accepts_votes(bid, BidStatus.APPROVED)
            self.auth.require_responsible(
                command.approver_id, bid["organization_id"], "approve bids"
            )
            responsibles = self.auth.list_responsibles(bid["organization_id"])
            tender, _ = self._load_tender(bid["tender_id"])

            batches, result = self.bid_handlers.handle_approve_bid(
                bid, tender, command.approver_id, responsibles, command_id
            )
            self.event_store.append_streams(batches)
            return result

        result = self._execute("approve_bid", attempt, bid_id=bid_id, approver_id=approver_id)
        bid_votes_total.labels(decision="approve").inc()
        if result.status == BidStatus.APPROVED:
            bid_decisions_total.labels(status=BidStatus.APPROVED.value).inc()
            logger.info(
                "Bid approved",
                bid_id=bid_id,
                approval_count=result.approval_count,
                quorum=result.quorum,
                tender_closed=result.tender_closed,
            )
        return result

    @track_command_duration("reject_bid")
    def reject_bid(self, bid_id: str, rejecter_id: str) -> VoteResult:
        """
        Reject a bid; one vote from a responsible user is final

        Raises:
            BidNotFound: Bid absent or deleted
            InvalidStatusTransition: Bid already APPROVED or REJECTED
            Unauthorized: Rejecter not responsible for the organization
            Unavailable: Responsibility lookup or store failure
        """
        command = _command(bid_commands.RejectBid, bid_id=bid_id, rejecter_id=rejecter_id)
        command_id = self.id_factory.generate()

        def attempt() -> VoteResult:
            bid, _ = self._load_bid(command.bid_id)
            bid_invariants.validate_accepts_votes(bid, BidStatus.REJECTED)
            self.auth.require_responsible(
                command.rejecter_id, bid["organization_id"], "reject bids"
            )
            batches, result = self.bid_handlers.handle_reject_bid(
                bid, command.rejecter_id, command_id
            )
            self.event_store.append_streams(batches)
            return result

        result = self._execute("reject_bid", attempt, bid_id=bid_id, rejecter_id=rejecter_id)
        bid_votes_total.labels(decision="reject").inc()
        bid_decisions_total.labels(status=BidStatus.REJECTED.value).inc()
        return result

    @track_command_duration("rollback_bid")
    def rollback_bid(self, bid_id: str, version: int, actor_id: str | None = None) -> Bid:
        """
        Append a copy of `version` as the new latest version

        Raises:
            BidNotFound: Bid absent or deleted
            VersionNotFound: The bid has no such version
        """
        command = _command(bid_commands.RollbackBid, bid_id=bid_id, version=version)
        command_id = self.id_factory.generate()

        def attempt() -> None:
            bid, history = self._load_bid(command.bid_id)
            self.bid_ledger.rollback_to(
                history,
                command.version,
                command_id=command_id,
                actor_id=actor_id,
                guards=[self.bid_handlers.lifecycle_guard(bid)],
            )

        self._execute(
            "rollback_bid", attempt, bid_id=bid_id, version=version, actor_id=actor_id
        )
        return self.get_bid(bid_id)

    @track_command_duration("delete_bid")
    def delete_bid(self, bid_id: str, actor_id: str | None = None) -> None:
        """
        Logically delete a bid

        Raises:
            BidNotFound: Bid absent or already deleted
        """
        command = _command(bid_commands.DeleteBid, bid_id=bid_id)
        command_id = self.id_factory.generate()

        def attempt() -> None:
            bid, _ = self._load_bid(command.bid_id)
            self.event_store.append_streams(
                self.bid_handlers.handle_delete_bid(bid, command_id, actor_id)
            )

        self._execute("delete_bid", attempt, bid_id=bid_id, actor_id=actor_id)

    def list_bid_versions(self, bid_id: str) -> list[BidVersion]:
        """Full content history, oldest first"""
        _, history = self._load_bid(bid_id)
        return [BidVersion.from_version(v) for v in history.list_versions()]

    def get_bid_version(self, bid_id: str, version: int) -> BidVersion:
        """
        Raises:
            BidNotFound: Bid absent or deleted
            VersionNotFound: The bid has no such version
        """
        _, history = self._load_bid(bid_id)
        return BidVersion.from_version(history.get(version))

    # ------------------------------------------------------------------
    # Auth
    # ------------------------------------------------------------------

    def is_responsible(self, user_id: str, organization_id: str) -> bool:
        """Tolerant check: False on miss and on lookup failure"""
        return self.auth.is_responsible(user_id, organization_id)

    def stats(self) -> dict[str, int]:
        """Live entity and raw event counts (for health reporting)"""
        tenders = self._tender_registry().list_all()
        return {
            "tender_count": len(tenders),
            "open_tender_count": sum(
                1 for t in tenders if t["status"] == TenderStatus.PUBLISHED
            ),
            "bid_count": len(self._bid_registry().list_all()),
            "event_count": self.event_store.count_events(),
            "stream_count": self.event_store.count_streams(),
        }
