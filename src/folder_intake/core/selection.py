"""Selection of scanned folders and flattening into the hand-off file list."""

from __future__ import annotations

import logging
from collections.abc import Iterable, Iterator, Sequence
from dataclasses import dataclass

from folder_intake.core.exceptions import EmptySelectionError
from folder_intake.types import DirectoryNode, FileRecord, IntakeSummary
from folder_intake.utils.logging import get_logger, log_with_context

logger = get_logger(__name__)


class SelectionSet:
    """Set of folder node paths the user has marked for inclusion.

    Files directly under a dropped root are always included and are not
    tracked here.
    """

    def __init__(self, paths: Iterable[str] = ()) -> None:
        self._paths: set[str] = set(paths)

    @classmethod
    def default_for(cls, roots: Sequence[DirectoryNode]) -> SelectionSet:
        """Preselect every top-level folder that holds admitted files."""
        return cls(cls.selectable(roots))

    @staticmethod
    def selectable(roots: Sequence[DirectoryNode]) -> tuple[str, ...]:
        """Paths of top-level folders offered for selection, in display order."""
        return tuple(child.path for root in roots for child in root.children if child.file_count > 0)

    def add(self, path: str) -> None:
        self._paths.add(path)

    def discard(self, path: str) -> None:
        self._paths.discard(path)

    def toggle(self, path: str) -> bool:
        """Flip one path and return whether it is now selected."""
        if path in self._paths:
            self._paths.discard(path)
            return False
        self._paths.add(path)
        return True

    def all_selected(self, roots: Sequence[DirectoryNode]) -> bool:
        return all(path in self._paths for path in self.selectable(roots))

    def toggle_all(self, roots: Sequence[DirectoryNode]) -> bool:
        """Select every selectable folder, or deselect them all if already selected.

        Returns:
            True when everything is selected afterwards
        """
        paths = self.selectable(roots)
        if self.all_selected(roots):
            self._paths.difference_update(paths)
            return False
        self._paths.update(paths)
        return True

    def clear(self) -> None:
        self._paths.clear()

    def __contains__(self, path: object) -> bool:
        return path in self._paths

    def __len__(self) -> int:
        return len(self._paths)

    def __iter__(self) -> Iterator[str]:
        return iter(sorted(self._paths))


@dataclass(slots=True, frozen=True)
class SelectionResult:
    """Flat, deduplicated file list ready for the transport."""

    files: tuple[FileRecord, ...]
    summary: IntakeSummary

    @property
    def is_empty(self) -> bool:
        return not self.files


class SelectionAggregator:
    """Turns a scanned forest plus a ``SelectionSet`` into one file list.

    Direct files of every root are always included. A folder whose path is
    selected contributes its entire retained subtree. Files are deduplicated
    by their storage location (``full_path``), keeping the first-seen position.
    """

    def collect(self, roots: Sequence[DirectoryNode], selection: SelectionSet) -> SelectionResult:
        """Build the file list without treating an empty result as an error."""
        seen: set[str] = set()
        files: list[FileRecord] = []

        def add_all(records: Iterable[FileRecord]) -> None:
            for record in records:
                if record.full_path in seen:
                    continue
                seen.add(record.full_path)
                files.append(record)

        def visit(node: DirectoryNode) -> None:
            if node.path in selection:
                add_all(node.iter_files())
                return
            for child in node.children:
                visit(child)

        for root in roots:
            add_all(root.files)
            visit(root)

        return SelectionResult(files=tuple(files), summary=IntakeSummary.from_files(files))

    def aggregate(self, roots: Sequence[DirectoryNode], selection: SelectionSet) -> SelectionResult:
        """Build the file list for hand-off.

        Raises:
            EmptySelectionError: If nothing would be handed off
        """
        result = self.collect(roots, selection)
        if result.is_empty:
            logger.warning("Selection resolved to no files", extra={"selected": len(selection)})
            raise EmptySelectionError()

        log_with_context(
            logger,
            logging.INFO,
            "Selection aggregated",
            extra={
                "selected": len(selection),
                "files": result.summary.total_files,
                "total_size": result.summary.total_size,
            },
        )
        return result
