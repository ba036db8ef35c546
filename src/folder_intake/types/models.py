"""Data models for folder-intake.

This module defines the immutable dataclasses exchanged between the pattern
compiler, the exclusion policy, the tree scanner and the selection
aggregator.

Path convention: every ``path`` stored on a model is relative to the drop,
i.e. it starts with the name of the dropped root (``"project/src/app.py"``).
Ignore rules are matched against the same path with the root segment
removed (see ``root_relative``).
"""

from __future__ import annotations

from collections.abc import Iterator
from dataclasses import dataclass
from enum import Enum


class EntryKind(str, Enum):
    """Kind of filesystem entry an exclusion decision refers to."""

    FILE = "file"
    FOLDER = "folder"


class ExclusionReason(str, Enum):
    """Fixed taxonomy of exclusion reasons.

    The value is the human-readable text rendered verbatim by the UI.
    """

    DISALLOWED_TYPE = "disallowed type"
    OVERSIZED = "exceeds size limit"
    HIDDEN_FOLDER = "hidden/system folder"
    IGNORE_RULE = "matched ignore rule"
    SCAN_ERROR = "scan error"


def root_relative(path: str) -> str:
    """Strip the dropped root's name from a drop-relative path.

    Examples:
        >>> root_relative("project/src/app.py")
        'src/app.py'
        >>> root_relative("project")
        ''
    """
    _, _, rest = path.partition("/")
    return rest


def file_extension(name: str) -> str | None:
    """Return the lower-cased text after the last dot, or None without a dot."""
    if "." not in name:
        return None
    extension = name.rsplit(".", 1)[1].lower()
    return extension or None


@dataclass(slots=True, frozen=True)
class EntryMetadata:
    """Metadata yielded by an entry reference."""

    name: str
    size: int
    full_path: str


@dataclass(slots=True, frozen=True)
class FileRecord:
    """An admitted file.

    ``path`` is drop-relative, ``full_path`` is the location in the storage
    backend the transport reads from.
    """

    path: str
    name: str
    size: int
    extension: str | None
    full_path: str


@dataclass(slots=True, frozen=True)
class ExclusionDecision:
    """Outcome of testing one entry against the exclusion policy."""

    name: str
    path: str
    kind: EntryKind
    admitted: bool
    reason: ExclusionReason | None = None
    detail: str | None = None

    @classmethod
    def admit(cls, name: str, path: str, kind: EntryKind) -> ExclusionDecision:
        return cls(name=name, path=path, kind=kind, admitted=True)

    @classmethod
    def exclude(
        cls,
        name: str,
        path: str,
        kind: EntryKind,
        reason: ExclusionReason,
        detail: str | None = None,
    ) -> ExclusionDecision:
        return cls(
            name=name,
            path=path,
            kind=kind,
            admitted=False,
            reason=reason,
            detail=detail,
        )

    @property
    def message(self) -> str:
        """Reason string suitable for rendering, including any detail."""
        if self.reason is None:
            return "admitted"
        if self.detail:
            return f"{self.reason.value} ({self.detail})"
        return self.reason.value


@dataclass(slots=True, frozen=True)
class DirectoryNode:
    """A scanned folder with aggregate statistics over its retained subtree.

    Nodes are built bottom-up with ``assemble`` so that ``file_count`` and
    ``total_size`` always equal the direct files plus the retained children.
    """

    path: str
    name: str
    depth: int
    files: tuple[FileRecord, ...] = ()
    children: tuple[DirectoryNode, ...] = ()
    file_count: int = 0
    total_size: int = 0
    is_file_root: bool = False

    @classmethod
    def assemble(
        cls,
        *,
        path: str,
        name: str,
        depth: int,
        files: tuple[FileRecord, ...] | list[FileRecord],
        children: tuple[DirectoryNode, ...] | list[DirectoryNode],
        is_file_root: bool = False,
    ) -> DirectoryNode:
        """Build a node, pruning empty children and computing aggregates.

        Files are ordered by path and children by display name so that the
        same input always produces the same tree.
        """
        ordered_files = tuple(sorted(files, key=lambda record: record.path))
        retained = tuple(
            sorted(
                (child for child in children if not child.is_empty),
                key=lambda child: (child.name, child.path),
            )
        )
        file_count = len(ordered_files) + sum(child.file_count for child in retained)
        total_size = sum(record.size for record in ordered_files) + sum(
            child.total_size for child in retained
        )
        return cls(
            path=path,
            name=name,
            depth=depth,
            files=ordered_files,
            children=retained,
            file_count=file_count,
            total_size=total_size,
            is_file_root=is_file_root,
        )

    @property
    def is_empty(self) -> bool:
        """True when the node would be pruned from its parent."""
        return self.file_count == 0 and not self.children

    def iter_nodes(self) -> Iterator[DirectoryNode]:
        """Yield this node and all descendants, depth first, in tree order."""
        yield self
        for child in self.children:
            yield from child.iter_nodes()

    def iter_files(self) -> Iterator[FileRecord]:
        """Yield every file of the subtree in tree order."""
        for node in self.iter_nodes():
            yield from node.files

    def find(self, path: str) -> DirectoryNode | None:
        """Return the node with the given path inside this subtree."""
        for node in self.iter_nodes():
            if node.path == path:
                return node
        return None


@dataclass(slots=True, frozen=True)
class IntakeSummary:
    """Aggregate numbers handed to the transport for pre-flight checks."""

    total_files: int
    total_size: int
    largest_file: FileRecord | None

    @classmethod
    def from_files(cls, files: tuple[FileRecord, ...] | list[FileRecord]) -> IntakeSummary:
        largest = max(files, key=lambda record: record.size, default=None)
        return cls(
            total_files=len(files),
            total_size=sum(record.size for record in files),
            largest_file=largest,
        )


@dataclass(slots=True, frozen=True)
class ScanResult:
    """Read-only snapshot produced by one scan session."""

    session_id: str
    roots: tuple[DirectoryNode, ...]
    excluded: tuple[ExclusionDecision, ...]
    unsupported_patterns: tuple[str, ...] = ()
    items_scanned: int = 0

    @property
    def file_count(self) -> int:
        return sum(root.file_count for root in self.roots)

    @property
    def total_size(self) -> int:
        return sum(root.total_size for root in self.roots)

    @property
    def is_empty(self) -> bool:
        """True when no admitted file exists anywhere in the forest."""
        return self.file_count == 0

    def excluded_by(self, reason: ExclusionReason) -> tuple[ExclusionDecision, ...]:
        """Return the logged exclusions carrying the given reason."""
        return tuple(item for item in self.excluded if item.reason is reason)

    def summary(self) -> IntakeSummary:
        """Summary over every admitted file of the forest."""
        return IntakeSummary.from_files([record for root in self.roots for record in root.iter_files()])
