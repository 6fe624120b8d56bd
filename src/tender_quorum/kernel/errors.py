"""
Custom exceptions for Tender Quorum

Well-defined error hierarchy lets the request layer map every failure
to a transport response without inspecting messages:

- NotFound: entity or version absent
- Unauthorized: actor is not a responsible user of the organization
- InvalidStatusTransition: requested status unreachable from current status
- InvalidInput: malformed or inconsistent command input
- Conflict: concurrent modification detected by optimistic locking
- Unavailable: backing store failure, timeout (indeterminate outcome)
"""


class TenderQuorumError(Exception):
    """Base exception for all Tender Quorum errors"""

    pass


# Not found


class NotFound(TenderQuorumError):
    """Base class for missing entities and versions"""

    pass


class TenderNotFound(NotFound):
    """Raised when tender does not exist (or was deleted)"""

    def __init__(self, tender_id: str) -> None:
        self.tender_id = tender_id
        super().__init__(f"Tender {tender_id} not found")


class BidNotFound(NotFound):
    """Raised when bid does not exist (or was deleted)"""

    def __init__(self, bid_id: str) -> None:
        self.bid_id = bid_id
        super().__init__(f"Bid {bid_id} not found")


class VersionNotFound(NotFound):
    """Raised when a specific content version does not exist for a parent"""

    def __init__(self, parent_kind: str, parent_id: str, version: int) -> None:
        self.parent_kind = parent_kind
        self.parent_id = parent_id
        self.version = version
        super().__init__(f"Version {version} of {parent_kind} {parent_id} not found")


class NoVersionsFound(NotFound):
    """
    Raised when a parent has no content versions at all

    Creation always writes version 1 in the same transaction as the parent,
    so this indicates a corrupted or foreign stream.
    """

    def __init__(self, parent_kind: str, parent_id: str) -> None:
        self.parent_kind = parent_kind
        self.parent_id = parent_id
        super().__init__(f"{parent_kind.capitalize()} {parent_id} has no versions")


# Authorization


class Unauthorized(TenderQuorumError):
    """Raised when actor is not a responsible user for the organization"""

    def __init__(self, user_id: str, organization_id: str, action: str) -> None:
        self.user_id = user_id
        self.organization_id = organization_id
        self.action = action
        super().__init__(
            f"User {user_id} is not responsible for organization {organization_id} "
            f"and cannot {action}"
        )


# Lifecycle


class InvalidStatusTransition(TenderQuorumError):
    """Raised when a status change is not permitted by the state machine"""

    def __init__(
        self, entity_kind: str, entity_id: str, current: str, target: str
    ) -> None:
        self.entity_kind = entity_kind
        self.entity_id = entity_id
        self.current = current
        self.target = target
        super().__init__(
            f"{entity_kind.capitalize()} {entity_id} cannot move from {current} to {target}"
        )


class TenderNotOpenForBids(InvalidStatusTransition):
    """Raised when a bid is submitted against a tender that is not PUBLISHED"""

    def __init__(self, tender_id: str, current: str) -> None:
        super().__init__("tender", tender_id, current, "PUBLISHED")
        self.args = (f"Tender {tender_id} is {current} and does not accept bids",)


# Input


class InvalidInput(TenderQuorumError):
    """Raised when command input is malformed or inconsistent"""

    pass


class InvalidServiceType(InvalidInput):
    """Raised when service type is not in the configured allow-list"""

    def __init__(self, service_type: str, allowed: list[str]) -> None:
        self.service_type = service_type
        self.allowed = allowed
        super().__init__(
            f"Invalid service type {service_type!r}, expected one of {allowed}"
        )


class DuplicateApproval(InvalidInput):
    """Raised when a responsible user approves the same bid twice"""

    def __init__(self, bid_id: str, user_id: str) -> None:
        self.bid_id = bid_id
        self.user_id = user_id
        super().__init__(f"User {user_id} has already approved bid {bid_id}")


# Concurrency


class Conflict(TenderQuorumError):
    """Raised when a concurrent modification is detected"""

    pass


class StreamVersionConflict(Conflict):
    """
    Raised when stream version doesn't match expected (optimistic locking)

    Indicates concurrent modification - caller should reload and retry.
    """

    def __init__(
        self, stream_id: str, expected_version: int, actual_version: int
    ) -> None:
        self.stream_id = stream_id
        self.expected_version = expected_version
        self.actual_version = actual_version
        super().__init__(
            f"Stream {stream_id} version mismatch: "
            f"expected {expected_version}, got {actual_version}"
        )


# Infrastructure


class Unavailable(TenderQuorumError):
    """Base class for infrastructure failures (outcome indeterminate)"""

    pass


class EventStoreError(Unavailable):
    """Base class for event store errors"""

    pass


class ResponsibilityLookupUnavailable(Unavailable):
    """Raised when the responsibility directory cannot answer"""

    def __init__(self, organization_id: str, reason: str) -> None:
        self.organization_id = organization_id
        self.reason = reason
        super().__init__(
            f"Responsibility lookup for organization {organization_id} failed: {reason}"
        )


class OperationTimeout(Unavailable):
    """Raised when an operation exceeds its deadline"""

    def __init__(self, operation: str, seconds: float) -> None:
        self.operation = operation
        self.seconds = seconds
        super().__init__(f"{operation} exceeded deadline of {seconds} seconds")
