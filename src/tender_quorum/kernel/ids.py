"""
Identifier generation

Tenders, bids, events and commands are identified by time-ordered
UUIDv7-style strings, so the event log sorts naturally by creation time.
"""

import itertools
import secrets
import time
from typing import Protocol


class IdFactory(Protocol):
    """Protocol for ID generation strategies"""

    def generate(self) -> str:
        """Generate a new unique ID"""
        ...


def generate_id() -> str:
    """
    Generate a UUIDv7-like identifier

    Layout: 48-bit unix millisecond timestamp, version nibble 7,
    12 random bits, RFC 4122 variant, 62 random bits.

    Returns:
        Sortable UUID string (e.g., "01908e9a-3b87-7abc-8def-123456789abc")
    """
    timestamp_ms = int(time.time() * 1000) & 0xFFFFFFFFFFFF
    rand_a = secrets.randbits(12)
    rand_b = secrets.randbits(62)

    value = (timestamp_ms << 80) | (0x7 << 76) | (rand_a << 64) | (0b10 << 62) | rand_b
    hex_str = f"{value:032x}"
    return (
        f"{hex_str[0:8]}-{hex_str[8:12]}-{hex_str[12:16]}-"
        f"{hex_str[16:20]}-{hex_str[20:32]}"
    )


class DefaultIdFactory:
    """Default ID factory using UUIDv7-like generation"""

    def generate(self) -> str:
        return generate_id()


class SequentialIdFactory:
    """Deterministic ids ("<prefix>-1", "<prefix>-2", ...) for tests and demos"""

    def __init__(self, prefix: str = "id") -> None:
        self.prefix = prefix
        self._counter = itertools.count(1)

    def generate(self) -> str:
        return f"{self.prefix}-{next(self._counter)}"


default_id_factory = DefaultIdFactory()
