"""
Quorum arithmetic

A bid needs approvals from min(cap, R) responsible users of its
organization, where R is the number of responsibles at vote time and cap
defaults to 3. Small organizations therefore need everyone; large ones
need three.
"""

DEFAULT_QUORUM_CAP = 3


def compute_quorum(responsible_count: int, cap: int = DEFAULT_QUORUM_CAP) -> int:
    """
    Approvals required for a bid

    >>> compute_quorum(5)
    3
    >>> compute_quorum(2)
    2
    """
    if responsible_count < 0:
        raise ValueError("responsible_count must be >= 0")
    return min(cap, responsible_count)


def quorum_reached(approval_count: int, quorum: int) -> bool:
    return approval_count >= quorum
