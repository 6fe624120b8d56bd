"""
Status state machines

Tenders and bids each carry a lifecycle status that evolves independently
of their content versions. A machine is just a transition table: status ->
set of statuses reachable in one step. A status with no outgoing
transitions is terminal.
"""

from collections.abc import Mapping
from enum import Enum
from typing import Generic, TypeVar

from tender_quorum.kernel.errors import InvalidStatusTransition

S = TypeVar("S", bound=Enum)


class StatusMachine(Generic[S]):
    """Validates status changes against a fixed transition table"""

    def __init__(self, entity_kind: str, transitions: Mapping[S, frozenset[S]]) -> None:
        self.entity_kind = entity_kind
        self._transitions = transitions

    def can_transition(self, current: S, target: S) -> bool:
        return target in self._transitions.get(current, frozenset())

    def is_terminal(self, status: S) -> bool:
        return not self._transitions.get(status)

    def allowed_targets(self, status: S) -> frozenset[S]:
        return self._transitions.get(status, frozenset())

    def validate(self, entity_id: str, current: S, target: S) -> None:
        """
        Raise InvalidStatusTransition unless current -> target is allowed

        Args:
            entity_id: Tender or bid id (for the error message)
            current: Status the entity is in now
            target: Status requested
        """
        if not self.can_transition(current, target):
            raise InvalidStatusTransition(
                self.entity_kind, entity_id, current.value, target.value
            )
