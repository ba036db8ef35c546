"""Shared scan-session state: lifecycle states, exclusion log, progress counter.

These are the only pieces of mutable state shared by concurrent subtree
scans. Both structures are guarded by a lock so appends and increments are
never lost, even when entries are produced from worker threads.
"""

from __future__ import annotations

import threading
from collections.abc import Iterator
from enum import Enum

from folder_intake.types import ExclusionDecision, ExclusionReason


class ScanState(str, Enum):
    """Lifecycle states of a scan session."""

    IDLE = "idle"
    LOADING_RULES = "loading_rules"
    SCANNING = "scanning"
    DONE = "done"
    SUPERSEDED = "superseded"


TERMINAL_STATES: frozenset[ScanState] = frozenset({ScanState.DONE, ScanState.SUPERSEDED})

ALLOWED_TRANSITIONS: dict[ScanState, frozenset[ScanState]] = {
    ScanState.IDLE: frozenset({ScanState.LOADING_RULES, ScanState.DONE, ScanState.SUPERSEDED}),
    ScanState.LOADING_RULES: frozenset({ScanState.SCANNING, ScanState.SUPERSEDED}),
    # Scanning returns to rule loading for the next dropped root
    ScanState.SCANNING: frozenset({ScanState.LOADING_RULES, ScanState.DONE, ScanState.SUPERSEDED}),
    ScanState.DONE: frozenset(),
    ScanState.SUPERSEDED: frozenset(),
}


class ExcludedItemLog:
    """Append-only, ordered record of exclusion decisions for one session.

    Only exclusions are accepted; the log is for transparency and is never
    consulted when making later decisions.
    """

    def __init__(self) -> None:
        self._items: list[ExclusionDecision] = []
        self._lock: threading.Lock = threading.Lock()

    def append(self, decision: ExclusionDecision) -> None:
        """Record an exclusion.

        Raises:
            ValueError: If the decision admits the entry
        """
        if decision.admitted:
            msg = f"Only exclusions can be logged, got admitted entry: {decision.path}"
            raise ValueError(msg)
        with self._lock:
            self._items.append(decision)

    def snapshot(self) -> tuple[ExclusionDecision, ...]:
        """Return a read-only copy of the log in append order."""
        with self._lock:
            return tuple(self._items)

    def by_reason(self, reason: ExclusionReason) -> tuple[ExclusionDecision, ...]:
        return tuple(item for item in self.snapshot() if item.reason is reason)

    def __len__(self) -> int:
        with self._lock:
            return len(self._items)

    def __iter__(self) -> Iterator[ExclusionDecision]:
        return iter(self.snapshot())


class ProgressCounter:
    """Monotonic "items scanned" counter for progress reporting."""

    def __init__(self) -> None:
        self._value: int = 0
        self._lock: threading.Lock = threading.Lock()

    def increment(self, amount: int = 1) -> int:
        """Add to the counter and return the new value.

        Raises:
            ValueError: If amount is negative
        """
        if amount < 0:
            msg = "Progress counter can only increase"
            raise ValueError(msg)
        with self._lock:
            self._value += amount
            return self._value

    @property
    def value(self) -> int:
        with self._lock:
            return self._value
