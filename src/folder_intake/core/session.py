"""Scan sessions and the controller that supersedes them.

A ``ScanSession`` owns all state of one drop-to-tree scan: its exclusion
policy (and therefore its pattern cache), the exclusion log, the progress
counter and the lifecycle state. A new drop always constructs a new session;
the previous one is marked superseded and its in-flight task is cancelled,
so nothing from an abandoned scan can leak into the new tree.
"""

from __future__ import annotations

import asyncio
import logging
import uuid
from collections.abc import Sequence

from folder_intake.core.config import IntakeConfig
from folder_intake.core.exceptions import (
    InvalidSessionTransitionError,
    NothingToIngestError,
    SessionSupersededError,
)
from folder_intake.core.filesystem.policy import DEFAULT_IGNORE_FILE_NAME, ExclusionPolicy
from folder_intake.core.filesystem.scanner import DEFAULT_MAX_CONCURRENT_LISTINGS, TreeScanner
from folder_intake.core.filesystem.tracking import (
    ALLOWED_TRANSITIONS,
    ExcludedItemLog,
    ProgressCounter,
    ScanState,
)
from folder_intake.types import DirectoryNode, Entry, ScanResult
from folder_intake.utils.logging import (
    get_logger,
    log_with_context,
    reset_session_id,
    set_session_id,
)

logger = get_logger(__name__)

__all__ = ["IntakeController", "ScanSession", "require_files", "root_labels"]


def root_labels(names: Sequence[str]) -> list[str]:
    """Give every dropped root a path prefix that is unique within the drop.

    The first root with a given name keeps it; later ones get `` (2)``,
    `` (3)`` and so on, skipping labels already taken by another root.

    Examples:
        >>> root_labels(["proj", "notes.txt", "proj"])
        ['proj', 'notes.txt', 'proj (2)']
    """
    taken = set(names)
    seen: set[str] = set()
    labels: list[str] = []
    for name in names:
        label = name
        if name in seen:
            counter = 2
            while (label := f"{name} ({counter})") in taken:
                counter += 1
        seen.add(name)
        taken.add(label)
        labels.append(label)
    return labels


class ScanSession:
    """One scan over a set of dropped roots."""

    def __init__(
        self,
        policy: ExclusionPolicy,
        *,
        ignore_file_name: str = DEFAULT_IGNORE_FILE_NAME,
        max_concurrent_listings: int = DEFAULT_MAX_CONCURRENT_LISTINGS,
        session_id: str | None = None,
    ) -> None:
        self.session_id: str = session_id or uuid.uuid4().hex[:12]
        self.policy: ExclusionPolicy = policy
        self.excluded_log: ExcludedItemLog = ExcludedItemLog()
        self.progress: ProgressCounter = ProgressCounter()
        self._state: ScanState = ScanState.IDLE
        self._history: list[ScanState] = [ScanState.IDLE]
        self._result: ScanResult | None = None
        self.scanner: TreeScanner = TreeScanner(
            policy,
            excluded_log=self.excluded_log,
            progress=self.progress,
            ignore_file_name=ignore_file_name,
            max_concurrent_listings=max_concurrent_listings,
            on_state=self._follow_scanner,
        )

    @classmethod
    def from_config(cls, config: IntakeConfig, *, session_id: str | None = None) -> ScanSession:
        """Create a session with a fresh policy built from validated settings."""
        return cls(
            config.filters.build_policy(),
            ignore_file_name=config.filters.ignore_file_name,
            max_concurrent_listings=config.scan.max_concurrent_listings,
            session_id=session_id,
        )

    @property
    def state(self) -> ScanState:
        return self._state

    @property
    def history(self) -> list[ScanState]:
        return self._history.copy()

    @property
    def is_superseded(self) -> bool:
        return self._state is ScanState.SUPERSEDED

    @property
    def result(self) -> ScanResult:
        """Result of a finished session.

        Raises:
            SessionSupersededError: If the session was abandoned
            RuntimeError: If the session has not finished yet
        """
        if self.is_superseded:
            raise SessionSupersededError(self.session_id)
        if self._result is None:
            msg = f"Scan session {self.session_id} has not finished (state: {self._state.value})"
            raise RuntimeError(msg)
        return self._result

    def transition(self, state: ScanState) -> None:
        """Move the session to a new lifecycle state.

        Raises:
            InvalidSessionTransitionError: If the move is not allowed
        """
        if state not in ALLOWED_TRANSITIONS[self._state]:
            msg = f"Invalid scan session transition: {self._state.value} -> {state.value}"
            raise InvalidSessionTransitionError(msg, from_state=self._state.value, to_state=state.value)
        self._state = state
        self._history.append(state)

    def _follow_scanner(self, state: ScanState) -> None:
        if self.is_superseded:
            raise SessionSupersededError(self.session_id)
        self.transition(state)

    def supersede(self) -> None:
        """Abandon the session; later results are discarded."""
        if self._state in (ScanState.DONE, ScanState.SUPERSEDED):
            return
        self.transition(ScanState.SUPERSEDED)
        log_with_context(
            logger,
            logging.INFO,
            "Scan session superseded",
            extra={"session": self.session_id, "items_scanned": self.progress.value},
        )

    async def run(self, roots: Sequence[Entry]) -> ScanResult:
        """Scan every dropped root in order and build the forest.

        Roots without admitted files are left out of the forest; their
        exclusions remain visible in the log. Roots sharing a name get
        distinct path prefixes (see ``root_labels``), so every node path
        identifies exactly one folder.

        Raises:
            SessionSupersededError: If the session was superseded meanwhile
        """
        if self._state is not ScanState.IDLE:
            msg = f"Scan session {self.session_id} was already started"
            raise InvalidSessionTransitionError(msg, from_state=self._state.value, to_state=ScanState.LOADING_RULES.value)

        token = set_session_id(self.session_id)
        try:
            log_with_context(logger, logging.INFO, "Scan session started", extra={"roots": len(roots)})

            forest: list[DirectoryNode] = []
            labels = root_labels([root.name for root in roots])
            for root, label in zip(roots, labels, strict=True):
                node = await self.scanner.scan(root, label=label)
                if self.is_superseded:
                    raise SessionSupersededError(self.session_id)
                if node is not None and node.file_count > 0:
                    forest.append(node)

            self.transition(ScanState.DONE)
            self._result = ScanResult(
                session_id=self.session_id,
                roots=tuple(forest),
                excluded=self.excluded_log.snapshot(),
                unsupported_patterns=tuple(self.scanner.unsupported_patterns),
                items_scanned=self.progress.value,
            )

            log_with_context(
                logger,
                logging.INFO,
                "Scan session finished",
                extra={
                    "files": self._result.file_count,
                    "total_size": self._result.total_size,
                    "excluded": len(self._result.excluded),
                    "items_scanned": self._result.items_scanned,
                },
            )
            if self._result.is_empty:
                logger.warning("No admitted files found in the dropped items")
            return self._result
        finally:
            reset_session_id(token)


def require_files(result: ScanResult) -> ScanResult:
    """Return the result, or raise when the forest holds no admitted file.

    Raises:
        NothingToIngestError: If the scan admitted nothing
    """
    if result.is_empty:
        raise NothingToIngestError(excluded_count=len(result.excluded))
    return result


class IntakeController:
    """Owns the active scan session and supersedes it on every new drop."""

    def __init__(self, config: IntakeConfig | None = None) -> None:
        self.config: IntakeConfig = config or IntakeConfig()
        self._session: ScanSession | None = None
        self._task: asyncio.Task[ScanResult] | None = None

    @property
    def session(self) -> ScanSession | None:
        return self._session

    async def submit(self, roots: Sequence[Entry]) -> ScanResult:
        """Start a new scan session, superseding any session still running.

        Raises:
            SessionSupersededError: If another drop supersedes this one before it finishes
        """
        self.cancel()

        session = ScanSession.from_config(self.config)
        task = asyncio.create_task(session.run(roots), name=f"scan-{session.session_id}")
        self._session = session
        self._task = task

        try:
            return await task
        except asyncio.CancelledError:
            if session.is_superseded:
                raise SessionSupersededError(session.session_id) from None
            raise

    def cancel(self) -> None:
        """Supersede and cancel the in-flight session, if any."""
        if self._session is not None:
            self._session.supersede()
        if self._task is not None and not self._task.done():
            _ = self._task.cancel()
