"""
Version Ledger Projections

VersionHistory folds a content stream into the ordered list of versions.
Because the content stream version is the version number, replaying the
stream in order yields 1..N directly.
"""

from collections.abc import Iterable

from tender_quorum.kernel.errors import NoVersionsFound, VersionNotFound
from tender_quorum.kernel.events import Event
from tender_quorum.ledger.invariants import validate_contiguous
from tender_quorum.ledger.models import Version


class VersionHistory:
    """
    Ordered content history of one tender or bid

    Rebuilt from the parent's content stream events.
    """

    def __init__(self, parent_kind: str, parent_id: str) -> None:
        self.parent_kind = parent_kind
        self.parent_id = parent_id
        self.versions: list[Version] = []

    @classmethod
    def from_events(
        cls, parent_kind: str, parent_id: str, events: Iterable[Event]
    ) -> "VersionHistory":
        history = cls(parent_kind, parent_id)
        for event in events:
            history.apply_event(event)
        validate_contiguous(parent_id, (v.version for v in history.versions))
        return history

    def apply_event(self, event: Event) -> None:
        """Apply a *VersionAppended event"""
        if not event.event_type.endswith("VersionAppended"):
            return
        payload = event.payload
        self.versions.append(
            Version(
                parent_id=payload["parent_id"],
                version=payload["version"],
                content=payload["content"],
                updated_at=payload["appended_at"],
                updated_by=payload.get("appended_by"),
                rolled_back_from=payload.get("rolled_back_from"),
            )
        )

    @property
    def current_version(self) -> int:
        """Highest version number (0 when the history is empty)"""
        return self.versions[-1].version if self.versions else 0

    def latest(self) -> Version:
        if not self.versions:
            raise NoVersionsFound(self.parent_kind, self.parent_id)
        return self.versions[-1]

    def get(self, version: int) -> Version:
        # Contiguous 1..N, so the number is the list index + 1
        if 1 <= version <= len(self.versions):
            return self.versions[version - 1]
        raise VersionNotFound(self.parent_kind, self.parent_id, version)

    def list_versions(self) -> list[Version]:
        return list(self.versions)

    def __len__(self) -> int:
        return len(self.versions)
