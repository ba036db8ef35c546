"""Property-based tests for scanned tree invariants using Hypothesis.

Random directory trees are scanned through the in-memory backend and the
resulting forest is checked for aggregate consistency, pruning, admission
correctness, accounting of every file and duplicate-free selection.
"""

from __future__ import annotations

import asyncio
from collections.abc import Iterator, Mapping

from hypothesis import HealthCheck, given, settings
from hypothesis import strategies as st

from folder_intake.core.filesystem.policy import ExclusionPolicy
from folder_intake.core.filesystem.scanner import TreeScanner
from folder_intake.core.selection import SelectionAggregator, SelectionSet
from folder_intake.types import DirectoryNode, EntryKind
from tests.fixtures.memory_entries import build_tree

MAX_FILE_SIZE = 1000

names = st.text(alphabet="abcdefgh", min_size=1, max_size=4)
extensions = st.sampled_from(["txt", "py", "md", "exe", "png"])


@st.composite
def tree_layouts(draw: st.DrawFn, max_depth: int = 3) -> dict[str, object]:
    """Generate nested folder layouts; file names always contain a dot, folder names never do."""
    layout: dict[str, object] = {}
    for _ in range(draw(st.integers(min_value=0, max_value=4))):
        layout[f"{draw(names)}.{draw(extensions)}"] = draw(st.integers(min_value=0, max_value=2 * MAX_FILE_SIZE))
    if max_depth > 0:
        for _ in range(draw(st.integers(min_value=0, max_value=3))):
            prefix = "." if draw(st.booleans()) and draw(st.booleans()) else "d"
            layout[f"{prefix}{draw(names)}"] = draw(tree_layouts(max_depth=max_depth - 1))
    return layout


def walk_layout(layout: Mapping[str, object], prefix: str) -> Iterator[tuple[str, int]]:
    """Yield (path, size) for every file in a layout."""
    for name, value in layout.items():
        path = f"{prefix}/{name}"
        if isinstance(value, int):
            yield path, value
        else:
            assert isinstance(value, Mapping)
            yield from walk_layout(value, path)  # pyright: ignore[reportUnknownArgumentType]


def make_policy() -> ExclusionPolicy:
    return ExclusionPolicy(allowed_extensions=["txt", "py", "md"], max_file_size=MAX_FILE_SIZE)


def scan_layout(layout: Mapping[str, object], *, batch_size: int = 2) -> tuple[DirectoryNode | None, TreeScanner]:
    scanner = TreeScanner(make_policy())
    node = asyncio.run(scanner.scan(build_tree("root", layout, batch_size=batch_size)))  # pyright: ignore[reportArgumentType]
    return node, scanner


property_settings = settings(max_examples=60, deadline=None, suppress_health_check=[HealthCheck.too_slow])


class TestTreeInvariants:
    """Invariants of a single scanned tree."""

    @property_settings
    @given(tree_layouts())
    def test_aggregates_match_children(self, layout: dict[str, object]) -> None:
        """Property: every node's count and size equal its files plus retained children."""
        node, _ = scan_layout(layout)

        assert node is not None
        for item in node.iter_nodes():
            assert item.file_count == len(item.files) + sum(child.file_count for child in item.children)
            assert item.total_size == sum(record.size for record in item.files) + sum(
                child.total_size for child in item.children
            )

    @property_settings
    @given(tree_layouts())
    def test_no_empty_nodes_below_root(self, layout: dict[str, object]) -> None:
        """Property: pruning leaves no retained folder without admitted files."""
        node, _ = scan_layout(layout)

        assert node is not None
        for item in node.iter_nodes():
            if item is not node:
                assert item.file_count > 0

    @property_settings
    @given(tree_layouts())
    def test_admitted_files_satisfy_policy(self, layout: dict[str, object]) -> None:
        """Property: no admitted file breaks the extension, size or hidden-folder rules."""
        node, _ = scan_layout(layout)
        policy = make_policy()

        assert node is not None
        for record in node.iter_files():
            assert record.extension in policy.allowed_extensions
            assert record.size <= MAX_FILE_SIZE
            folders = record.path.split("/")[:-1]
            assert not any(segment.startswith(".") for segment in folders)

    @property_settings
    @given(tree_layouts())
    def test_every_file_is_accounted_for(self, layout: dict[str, object]) -> None:
        """Property: each file is admitted, logged, or below a logged folder, exactly once."""
        node, scanner = scan_layout(layout)

        assert node is not None
        admitted = {record.path for record in node.iter_files()}
        logged_files = {item.path for item in scanner.excluded_log if item.kind is EntryKind.FILE}
        logged_folders = {item.path for item in scanner.excluded_log if item.kind is EntryKind.FOLDER}

        for path, _ in walk_layout(layout, "root"):
            ancestors = {path.rsplit("/", depth)[0] for depth in range(1, path.count("/") + 1)}
            outcomes = [path in admitted, path in logged_files, bool(ancestors & logged_folders)]
            assert outcomes.count(True) == 1, path

    @property_settings
    @given(tree_layouts(), st.integers(min_value=1, max_value=5))
    def test_batch_size_does_not_change_tree(self, layout: dict[str, object], batch_size: int) -> None:
        """Property: pagination only affects how entries are read, not the result."""
        paged, _ = scan_layout(layout, batch_size=batch_size)
        whole, _ = scan_layout(layout, batch_size=1000)

        assert paged == whole

    @property_settings
    @given(tree_layouts())
    def test_scan_is_idempotent(self, layout: dict[str, object]) -> None:
        """Property: scanning the same input twice yields equal trees and logs."""
        first, first_scanner = scan_layout(layout)
        second, second_scanner = scan_layout(layout)

        assert first == second
        assert set(first_scanner.excluded_log) == set(second_scanner.excluded_log)


class TestSelectionInvariants:
    """Invariants of the flattened hand-off list."""

    @property_settings
    @given(tree_layouts(), st.data())
    def test_selection_has_no_duplicates(self, layout: dict[str, object], data: st.DataObject) -> None:
        """Property: any selection yields unique files, all of them admitted."""
        node, _ = scan_layout(layout)
        assert node is not None
        candidates = sorted(item.path for item in node.iter_nodes())
        chosen = data.draw(st.lists(st.sampled_from(candidates), max_size=5)) if candidates else []

        result = SelectionAggregator().collect((node, node), SelectionSet(chosen))

        selected = [record.path for record in result.files]
        assert len(selected) == len(set(selected))
        assert set(selected) <= {record.path for record in node.iter_files()}
        assert result.summary.total_files == len(selected)

    @property_settings
    @given(tree_layouts())
    def test_default_selection_takes_everything(self, layout: dict[str, object]) -> None:
        """Property: the default selection hands off every admitted file."""
        node, _ = scan_layout(layout)
        assert node is not None

        result = SelectionAggregator().collect((node,), SelectionSet.default_for((node,)))

        assert {record.path for record in result.files} == {record.path for record in node.iter_files()}
