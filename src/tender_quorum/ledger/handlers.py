"""
Version Ledger Handlers

The ledger appends content snapshots to a parent's content stream. Each
append is an optimistic write at expected_version = current version, so
two concurrent appends can never both become version N+1: the loser gets
a StreamVersionConflict and retries against the new history.
"""

from collections.abc import Sequence
from typing import Any

from tender_quorum.kernel.event_store import EventStore, StreamAppend
from tender_quorum.kernel.events import content_stream_id, create_event
from tender_quorum.kernel.ids import IdFactory, default_id_factory
from tender_quorum.kernel.logging import get_logger
from tender_quorum.kernel.time import TimeProvider, default_time_provider
from tender_quorum.ledger.events import VersionAppended
from tender_quorum.ledger.invariants import next_version
from tender_quorum.ledger.models import Version
from tender_quorum.ledger.projections import VersionHistory

logger = get_logger(__name__)


class VersionLedger:
    """
    Append-only content history for one kind of parent (tender or bid)

    Reads go straight to the content stream. Writes come in two forms:
    build_* methods return a StreamAppend for callers that commit it
    together with other streams (entity creation), while append_version
    and rollback_to commit on their own.
    """

    def __init__(
        self,
        event_store: EventStore,
        parent_kind: str,
        time_provider: TimeProvider = default_time_provider,
        id_factory: IdFactory = default_id_factory,
    ) -> None:
        self.event_store = event_store
        self.parent_kind = parent_kind
        self.stream_type = f"{parent_kind}_content"
        self.event_type = f"{parent_kind.capitalize()}VersionAppended"
        self.time_provider = time_provider
        self.id_factory = id_factory

    # ------------------------------------------------------------------
    # Reads
    # ------------------------------------------------------------------

    def history(self, parent_id: str) -> VersionHistory:
        events = self.event_store.load_stream(content_stream_id(parent_id))
        return VersionHistory.from_events(self.parent_kind, parent_id, events)

    def latest_version(self, parent_id: str) -> Version:
        """Highest version of the parent (NoVersionsFound if none)"""
        return self.history(parent_id).latest()

    def version_by_number(self, parent_id: str, version: int) -> Version:
        """Exact version lookup (VersionNotFound if absent)"""
        return self.history(parent_id).get(version)

    def list_versions(self, parent_id: str) -> list[Version]:
        return self.history(parent_id).list_versions()

    # ------------------------------------------------------------------
    # Writes
    # ------------------------------------------------------------------

    def build_append(
        self,
        history: VersionHistory,
        content: dict[str, Any],
        *,
        command_id: str,
        actor_id: str | None,
        rolled_back_from: int | None = None,
    ) -> tuple[StreamAppend, Version]:
        """
        Prepare the next version of a history without writing it

        Returns:
            The StreamAppend to commit and the Version it will create
        """
        now = self.time_provider.now()
        number = next_version(history.current_version)

        payload = VersionAppended(
            parent_id=history.parent_id,
            version=number,
            content=content,
            appended_at=now,
            appended_by=actor_id,
            rolled_back_from=rolled_back_from,
        ).model_dump(mode="json")

        event = create_event(
            event_id=self.id_factory.generate(),
            stream_id=content_stream_id(history.parent_id),
            stream_type=self.stream_type,
            event_type=self.event_type,
            occurred_at=now,
            actor_id=actor_id,
            command_id=command_id,
            payload=payload,
            version=number,
        )
        version = Version(
            parent_id=history.parent_id,
            version=number,
            content=content,
            updated_at=now,
            updated_by=actor_id,
            rolled_back_from=rolled_back_from,
        )
        batch = StreamAppend(event.stream_id, history.current_version, [event])
        return batch, version

    def build_rollback(
        self,
        history: VersionHistory,
        target_version: int,
        *,
        command_id: str,
        actor_id: str | None,
    ) -> tuple[StreamAppend, Version]:
        """
        Prepare a version that copies the content of target_version

        Rollback is additive: history is never truncated, the copy becomes
        the new latest version.

        Raises:
            VersionNotFound: If target_version is not in the history
        """
        source = history.get(target_version)
        return self.build_append(
            history,
            dict(source.content),
            command_id=command_id,
            actor_id=actor_id,
            rolled_back_from=source.version,
        )

    def append_version(
        self,
        history: VersionHistory,
        content: dict[str, Any],
        *,
        command_id: str,
        actor_id: str | None,
        guards: Sequence[StreamAppend] = (),
    ) -> Version:
        """
        Append a new version to an existing history

        Args:
            history: History as loaded by the caller (its current version is
                the expected version of the write)
            content: Full content snapshot for the new version
            command_id: Idempotency key
            actor_id: Actor making the change
            guards: Extra streams whose versions must be unchanged at commit

        Raises:
            NoVersionsFound: If the history is empty (parent never created)
            StreamVersionConflict: If another writer appended first
        """
        history.latest()
        batch, version = self.build_append(
            history, content, command_id=command_id, actor_id=actor_id
        )
        self.event_store.append_streams([*guards, batch])
        logger.debug(
            "Version appended",
            parent_kind=self.parent_kind,
            parent_id=history.parent_id,
            version=version.version,
        )
        return version

    def rollback_to(
        self,
        history: VersionHistory,
        target_version: int,
        *,
        command_id: str,
        actor_id: str | None,
        guards: Sequence[StreamAppend] = (),
    ) -> Version:
        """
        Append a copy of target_version as the new latest version

        Raises:
            VersionNotFound: If target_version does not exist
            StreamVersionConflict: If another writer appended first
        """
        batch, version = self.build_rollback(
            history, target_version, command_id=command_id, actor_id=actor_id
        )
        self.event_store.append_streams([*guards, batch])
        logger.debug(
            "Version rolled back",
            parent_kind=self.parent_kind,
            parent_id=history.parent_id,
            rolled_back_from=target_version,
            version=version.version,
        )
        return version
