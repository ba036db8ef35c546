"""Tree scanner: builds the admitted ``DirectoryNode`` tree for a dropped root.

Sibling subdirectories and the files of a level are processed concurrently.
Each subtree scan returns its own node and the parent assembles its result
only after every child has resolved, so no node is ever written by two tasks.
The exclusion log and the progress counter are the only shared state.
"""

from __future__ import annotations

import asyncio
import logging
from collections.abc import Callable, Sequence
from dataclasses import replace

from folder_intake.core.filesystem.policy import DEFAULT_IGNORE_FILE_NAME, ExclusionPolicy
from folder_intake.core.filesystem.tracking import ExcludedItemLog, ProgressCounter, ScanState
from folder_intake.types import (
    DirectoryNode,
    Entry,
    EntryKind,
    ExclusionDecision,
    ExclusionReason,
    FileRecord,
    file_extension,
    root_relative,
)
from folder_intake.utils.logging import get_logger, log_with_context

logger = get_logger(__name__)

DEFAULT_MAX_CONCURRENT_LISTINGS = 32

type StateCallback = Callable[[ScanState], None]


class TreeScanner:
    """Recursive, concurrent scanner over entry references.

    Provides:
    - Ignore-rule loading from the dropped root (no per-subdirectory override)
    - Paginated directory enumeration
    - Folder and file admission through an ``ExclusionPolicy``
    - Bottom-up aggregation with pruning of empty subtrees
    - Per-subtree I/O error isolation
    """

    def __init__(
        self,
        policy: ExclusionPolicy,
        *,
        excluded_log: ExcludedItemLog | None = None,
        progress: ProgressCounter | None = None,
        ignore_file_name: str = DEFAULT_IGNORE_FILE_NAME,
        max_concurrent_listings: int = DEFAULT_MAX_CONCURRENT_LISTINGS,
        on_state: StateCallback | None = None,
    ) -> None:
        """Initialize the scanner.

        Args:
            policy: Admission rules for the session
            excluded_log: Log receiving every exclusion (created when omitted)
            progress: Session-wide "items scanned" counter (created when omitted)
            ignore_file_name: Name of the ignore-rules file looked up at each root
            max_concurrent_listings: Upper bound on simultaneous directory listings
            on_state: Called on every lifecycle transition of a root scan
        """
        if max_concurrent_listings <= 0:
            msg = "max_concurrent_listings must be positive"
            raise ValueError(msg)

        self.policy: ExclusionPolicy = policy
        self.excluded_log: ExcludedItemLog = excluded_log if excluded_log is not None else ExcludedItemLog()
        self.progress: ProgressCounter = progress if progress is not None else ProgressCounter()
        self.ignore_file_name: str = ignore_file_name
        self.unsupported_patterns: list[str] = []
        self._on_state: StateCallback | None = on_state
        self._listing_slots: asyncio.Semaphore = asyncio.Semaphore(max_concurrent_listings)

    async def scan(self, root: Entry, *, label: str | None = None) -> DirectoryNode | None:
        """Scan one dropped root.

        Args:
            root: File or directory entry handed over by the external source
            label: Path prefix and display name of the root node; defaults to
                the entry name. Admission is always judged on the entry name.

        Returns:
            The root node (possibly without admitted files), or None when the
            root itself was excluded or could not be read
        """
        path = label or root.name
        self._transition(ScanState.LOADING_RULES)
        _ = self.policy.load_ignore_rules(None)
        self.progress.increment()

        if not root.is_directory:
            self._transition(ScanState.SCANNING)
            return await self._scan_file_root(root, path=path)

        decision = self.policy.evaluate_folder(root.name)
        if not decision.admitted:
            self._record(replace(decision, path=path))
            self._transition(ScanState.SCANNING)
            return None

        try:
            entries = await self._read_all_entries(root)
        except OSError as exc:
            self._record_scan_error(root.name, path, EntryKind.FOLDER, exc)
            self._transition(ScanState.SCANNING)
            return None

        await self._load_ignore_rules(root, entries)
        self._transition(ScanState.SCANNING)

        return await self._scan_directory(root, path=path, depth=0, prefetched=entries)

    async def _load_ignore_rules(self, root: Entry, entries: Sequence[Entry]) -> None:
        ignore_entry = next(
            (entry for entry in entries if entry.is_file and entry.name == self.ignore_file_name),
            None,
        )
        if ignore_entry is None:
            logger.debug("No ignore file found", extra={"root": root.name})
            return

        try:
            text = await ignore_entry.read_text()
        except OSError as exc:
            log_with_context(
                logger,
                logging.WARNING,
                "Failed to read ignore file, continuing without rules",
                extra={"root": root.name, "error": str(exc)},
            )
            return

        rules = self.policy.load_ignore_rules(text)
        self.unsupported_patterns.extend(rules.unsupported)
        log_with_context(
            logger,
            logging.INFO,
            "Loaded ignore rules",
            extra={
                "root": root.name,
                "active_rules": len(rules),
                "unsupported_rules": len(rules.unsupported),
            },
        )

    async def _scan_file_root(self, root: Entry, *, path: str) -> DirectoryNode | None:
        record = await self._read_file_record(root, path=path)
        if record is None:
            return None

        decision = self.policy.evaluate_file(record)
        if not decision.admitted:
            self._record(decision)
            return None

        return DirectoryNode.assemble(
            path=path,
            name=path,
            depth=0,
            files=[record],
            children=[],
            is_file_root=True,
        )

    async def _scan_directory(
        self,
        entry: Entry,
        *,
        path: str,
        depth: int,
        prefetched: Sequence[Entry] | None = None,
    ) -> DirectoryNode | None:
        try:
            entries = prefetched if prefetched is not None else await self._read_all_entries(entry)
        except OSError as exc:
            self._record_scan_error(entry.name, path, EntryKind.FOLDER, exc)
            return None

        files = [child for child in entries if child.is_file]
        admitted_folders: list[tuple[Entry, str]] = []
        for child in entries:
            if not child.is_directory:
                continue
            child_path = f"{path}/{child.name}"
            if self._admit_folder(child_path):
                admitted_folders.append((child, child_path))

        file_results, *child_results = await asyncio.gather(
            self._evaluate_files(files, path),
            *(
                self._scan_directory(child, path=child_path, depth=depth + 1)
                for child, child_path in admitted_folders
            ),
        )

        return DirectoryNode.assemble(
            path=path,
            name=entry.name if depth else path,
            depth=depth,
            files=file_results,
            children=[node for node in child_results if node is not None],
        )

    async def _read_all_entries(self, entry: Entry) -> list[Entry]:
        """Drain a paginated reader until it returns an empty batch."""
        reader = entry.create_reader()
        entries: list[Entry] = []
        async with self._listing_slots:
            while True:
                batch = await reader.read_entries()
                if not batch:
                    break
                entries.extend(batch)
                self.progress.increment(len(batch))
        return entries

    def _admit_folder(self, path: str) -> bool:
        decision = self.policy.evaluate_folder(path)
        if not decision.admitted:
            self._record(decision)
            return False

        rule = self.policy.matching_rule(root_relative(path))
        if rule is not None:
            self._record(
                ExclusionDecision.exclude(
                    decision.name,
                    path,
                    EntryKind.FOLDER,
                    ExclusionReason.IGNORE_RULE,
                    detail=rule.pattern,
                )
            )
            return False

        return True

    async def _evaluate_files(self, files: Sequence[Entry], directory_path: str) -> list[FileRecord]:
        results = await asyncio.gather(*(self._evaluate_file(entry, directory_path) for entry in files))
        return [record for record in results if record is not None]

    async def _evaluate_file(self, entry: Entry, directory_path: str) -> FileRecord | None:
        path = f"{directory_path}/{entry.name}"

        rule = self.policy.matching_rule(root_relative(path))
        if rule is not None:
            self._record(
                ExclusionDecision.exclude(
                    entry.name,
                    path,
                    EntryKind.FILE,
                    ExclusionReason.IGNORE_RULE,
                    detail=rule.pattern,
                )
            )
            return None

        record = await self._read_file_record(entry, path=path)
        if record is None:
            return None

        decision = self.policy.evaluate_file(record)
        if not decision.admitted:
            self._record(decision)
            return None
        return record

    async def _read_file_record(self, entry: Entry, *, path: str) -> FileRecord | None:
        try:
            metadata = await entry.metadata()
        except OSError as exc:
            self._record_scan_error(entry.name, path, EntryKind.FILE, exc)
            return None

        return FileRecord(
            path=path,
            name=metadata.name,
            size=metadata.size,
            extension=file_extension(metadata.name),
            full_path=metadata.full_path,
        )

    def _record(self, decision: ExclusionDecision) -> None:
        self.excluded_log.append(decision)
        log_with_context(
            logger,
            logging.DEBUG,
            "Entry excluded",
            extra={"path": decision.path, "kind": decision.kind.value, "reason": decision.message},
        )

    def _record_scan_error(self, entry_name: str, path: str, kind: EntryKind, exc: OSError) -> None:
        log_with_context(
            logger,
            logging.WARNING,
            "Failed to scan entry, skipping",
            extra={"path": path, "error": str(exc)},
        )
        self.excluded_log.append(
            ExclusionDecision.exclude(
                entry_name,
                path,
                kind,
                ExclusionReason.SCAN_ERROR,
                detail=exc.strerror or str(exc),
            )
        )

    def _transition(self, state: ScanState) -> None:
        if self._on_state is not None:
            self._on_state(state)
