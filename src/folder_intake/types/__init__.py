"""Type definitions and protocols for folder-intake.

This package provides:
- Data models (immutable dataclasses)
- Protocol definitions (storage boundary interfaces)
"""

from folder_intake.types.models import (
    DirectoryNode,
    EntryKind,
    EntryMetadata,
    ExclusionDecision,
    ExclusionReason,
    FileRecord,
    IntakeSummary,
    ScanResult,
    file_extension,
    root_relative,
)
from folder_intake.types.protocols import DirectoryReader, Entry

__all__ = [
    # Data models
    "DirectoryNode",
    "EntryKind",
    "EntryMetadata",
    "ExclusionDecision",
    "ExclusionReason",
    "FileRecord",
    "IntakeSummary",
    "ScanResult",
    # Helpers
    "file_extension",
    "root_relative",
    # Protocols
    "DirectoryReader",
    "Entry",
]
