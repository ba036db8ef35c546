"""Filesystem scanning: ignore patterns, exclusion policy, entries and the tree scanner."""

from __future__ import annotations

from .entries import LocalDirectoryReader, LocalEntry
from .patterns import CompiledRules, IgnoreRule, PatternCompiler
from .policy import ExclusionPolicy
from .scanner import TreeScanner
from .tracking import ExcludedItemLog, ProgressCounter, ScanState

__all__ = [
    "CompiledRules",
    "ExcludedItemLog",
    "ExclusionPolicy",
    "IgnoreRule",
    "LocalDirectoryReader",
    "LocalEntry",
    "PatternCompiler",
    "ProgressCounter",
    "ScanState",
    "TreeScanner",
]
