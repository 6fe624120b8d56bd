"""
Version Ledger Invariants

Version numbers of a parent form exactly 1..N: no gaps, no duplicates,
and the highest number is the current content.
"""

from collections.abc import Iterable

from tender_quorum.kernel.errors import EventStoreError


def next_version(current_version: int) -> int:
    """Number the next appended version receives (1 for an empty history)"""
    return current_version + 1


def is_contiguous(version_numbers: Iterable[int]) -> bool:
    """True when the numbers, in order, are exactly 1, 2, ..., N"""
    return all(n == expected for expected, n in enumerate(version_numbers, start=1))


def validate_contiguous(parent_id: str, version_numbers: Iterable[int]) -> None:
    """
    Raise EventStoreError if a stored history has gaps or duplicates

    The store's UNIQUE(stream_id, version) constraint makes this impossible
    for histories written through the ledger; a failure means the data was
    changed outside of it.
    """
    numbers = list(version_numbers)
    if not is_contiguous(numbers):
        raise EventStoreError(
            f"Version history of {parent_id} is not contiguous: {numbers}"
        )
