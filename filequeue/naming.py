"""Item file naming.

An item's file name is its ordering key plus ``.item``.  Keys sort
lexicographically in creation order within one process:

    <nanoseconds:020d>-<pid:010d>-<sequence:06d>-<8 random hex chars>.item

The timestamp is clamped so that a process never reuses or goes back on a
timestamp it already handed out, and the pid, sequence and random part keep
names distinct across processes and hosts that share a clock tick.
"""

import os
import random
import threading
import time
from typing import Tuple

ITEM_SUFFIX = ".item"
CLAIM_MARKER = ".pop-"
STAGING_PREFIX = "."
STAGING_SUFFIX = ".tmp"

_SEQUENCE_MODULO = 1_000_000

_lock = threading.Lock()
_last_ns = 0
_sequence = 0


def _next_stamp() -> Tuple[int, int]:
    """Return (timestamp_ns, sequence), strictly increasing per process."""
    global _last_ns, _sequence
    with _lock:
        now = time.time_ns()
        if now <= _last_ns:
            now = _last_ns + 1
        _last_ns = now
        _sequence = (_sequence + 1) % _SEQUENCE_MODULO
        return now, _sequence


def _reset_after_fork():
    # A lock held by another thread at fork time would never be released in the child
    global _lock, _sequence
    _lock = threading.Lock()
    _sequence = 0


if hasattr(os, "register_at_fork"):
    os.register_at_fork(after_in_child=_reset_after_fork)


def new_key() -> str:
    """Generate a fresh ordering key."""
    stamp, sequence = _next_stamp()
    token = ''.join(random.choices('0123456789abcdef', k=8))
    return f"{stamp:020d}-{os.getpid():010d}-{sequence:06d}-{token}"


def item_name(key: str) -> str:
    return f"{key}{ITEM_SUFFIX}"


def staging_name(key: str) -> str:
    return f"{STAGING_PREFIX}{key}{STAGING_SUFFIX}"


def claim_name(item: str) -> str:
    """Unique in-flight name for a claimed item."""
    return f"{item}{CLAIM_MARKER}{random.random()}"


def is_item(name: str) -> bool:
    return name.endswith(ITEM_SUFFIX)


def is_claim(name: str) -> bool:
    return f"{ITEM_SUFFIX}{CLAIM_MARKER}" in name
