"""
Tests for kernel primitives: ids, clocks, status machines, errors
"""

import re
from datetime import datetime, timedelta, timezone

import pytest

from tender_quorum.bid.invariants import bid_state_machine
from tender_quorum.bid.models import BidStatus
from tender_quorum.kernel.errors import (
    Conflict,
    InvalidInput,
    InvalidStatusTransition,
    NotFound,
    ResponsibilityLookupUnavailable,
    StreamVersionConflict,
    TenderNotFound,
    TenderNotOpenForBids,
    Unavailable,
)
from tender_quorum.kernel.events import content_stream_id
from tender_quorum.kernel.ids import SequentialIdFactory, generate_id
from tender_quorum.kernel.time import TestTimeProvider
from tender_quorum.tender.invariants import tender_state_machine
from tender_quorum.tender.models import TenderStatus

UUID_V7 = re.compile(r"^[0-9a-f]{8}-[0-9a-f]{4}-7[0-9a-f]{3}-[89ab][0-9a-f]{3}-[0-9a-f]{12}$")


def test_generated_ids_are_uuid_v7_and_unique() -> None:
    ids = {generate_id() for _ in range(200)}

    assert len(ids) == 200
    assert all(UUID_V7.match(i) for i in ids)


def test_sequential_ids() -> None:
    factory = SequentialIdFactory("bid")

    assert [factory.generate() for _ in range(3)] == ["bid-1", "bid-2", "bid-3"]


def test_test_time_provider_is_controllable() -> None:
    start = datetime(2025, 1, 15, 12, 0, tzinfo=timezone.utc)
    clock = TestTimeProvider(start)

    clock.advance(minutes=5)
    assert clock.now() == start + timedelta(minutes=5)

    clock.set_time(start)
    assert clock.now() == start


def test_content_stream_id() -> None:
    assert content_stream_id("t-1") == "t-1:content"


class TestTenderStateMachine:
    def test_forward_transitions(self) -> None:
        assert tender_state_machine.can_transition(TenderStatus.CREATED, TenderStatus.PUBLISHED)
        assert tender_state_machine.can_transition(TenderStatus.PUBLISHED, TenderStatus.CLOSED)

    def test_no_skipping_or_reopening(self) -> None:
        assert not tender_state_machine.can_transition(TenderStatus.CREATED, TenderStatus.CLOSED)
        assert not tender_state_machine.can_transition(
            TenderStatus.CLOSED, TenderStatus.PUBLISHED
        )

    def test_closed_is_terminal(self) -> None:
        assert tender_state_machine.is_terminal(TenderStatus.CLOSED)
        assert not tender_state_machine.is_terminal(TenderStatus.PUBLISHED)

    def test_validate_raises_with_statuses(self) -> None:
        with pytest.raises(InvalidStatusTransition) as exc_info:
            tender_state_machine.validate("t-1", TenderStatus.CLOSED, TenderStatus.PUBLISHED)

        assert exc_info.value.current == "CLOSED"
        assert exc_info.value.target == "PUBLISHED"


class TestBidStateMachine:
    def test_created_can_be_decided_either_way(self) -> None:
        assert bid_state_machine.allowed_targets(BidStatus.CREATED) == frozenset(
            {BidStatus.APPROVED, BidStatus.REJECTED}
        )

    @pytest.mark.parametrize("status", [BidStatus.APPROVED, BidStatus.REJECTED])
    def test_decisions_are_final(self, status: BidStatus) -> None:
        assert bid_state_machine.is_terminal(status)
        with pytest.raises(InvalidStatusTransition):
            bid_state_machine.validate("b-1", status, BidStatus.REJECTED)


def test_error_taxonomy() -> None:
    assert issubclass(TenderNotFound, NotFound)
    assert issubclass(TenderNotOpenForBids, InvalidStatusTransition)
    assert issubclass(StreamVersionConflict, Conflict)
    assert issubclass(ResponsibilityLookupUnavailable, Unavailable)
    assert not issubclass(InvalidInput, Unavailable)


def test_tender_not_open_message() -> None:
    error = TenderNotOpenForBids("t-1", "CREATED")

    assert str(error) == "Tender t-1 is CREATED and does not accept bids"
    assert error.target == "PUBLISHED"
