"""Tests for scan sessions and the intake controller."""

from __future__ import annotations

import asyncio
from typing import override

import pytest

from folder_intake.core.config import FilterConfig, IntakeConfig
from folder_intake.core.exceptions import (
    InvalidSessionTransitionError,
    NothingToIngestError,
    SessionSupersededError,
)
from folder_intake.core.filesystem.tracking import ScanState
from folder_intake.core.selection import SelectionAggregator, SelectionSet
from folder_intake.core.session import IntakeController, ScanSession, require_files, root_labels
from folder_intake.types import EntryMetadata, ExclusionReason
from folder_intake.utils.logging import get_session_id
from tests.fixtures.memory_entries import MemoryEntry, build_tree, file_entry

pytestmark = pytest.mark.asyncio


class SessionSpyEntry(MemoryEntry):
    """File entry recording the session id visible while it is read."""

    def __init__(self, name: str) -> None:
        super().__init__(name, size=1)
        self.seen_session_id: str | None = None

    @override
    async def metadata(self) -> EntryMetadata:
        self.seen_session_id = get_session_id()
        return await super().metadata()


class TestScanSession:
    """Test the ScanSession lifecycle."""

    async def test_run_single_root(self) -> None:
        """Test a complete session over one root."""
        session = ScanSession.from_config(IntakeConfig(), session_id="s1")

        result = await session.run([build_tree("project", {"a.txt": 3, "b.exe": 1})])

        assert session.state is ScanState.DONE
        assert session.history == [ScanState.IDLE, ScanState.LOADING_RULES, ScanState.SCANNING, ScanState.DONE]
        assert result.session_id == "s1"
        assert result.file_count == 1
        assert result.total_size == 3
        assert result.items_scanned == 3
        assert [item.path for item in result.excluded] == ["project/b.exe"]
        assert session.result is result

    async def test_run_multiple_roots(self) -> None:
        """Test that roots are scanned in order into one forest."""
        session = ScanSession.from_config(IntakeConfig())

        result = await session.run([build_tree("one", {"a.txt": 1}), file_entry("two.md", 2)])

        assert [root.path for root in result.roots] == ["one", "two.md"]
        assert result.roots[1].is_file_root is True
        assert session.history == [
            ScanState.IDLE,
            ScanState.LOADING_RULES,
            ScanState.SCANNING,
            ScanState.LOADING_RULES,
            ScanState.SCANNING,
            ScanState.DONE,
        ]

    async def test_roots_without_files_are_left_out(self) -> None:
        """Test that empty roots do not appear in the forest."""
        session = ScanSession.from_config(IntakeConfig())

        result = await session.run([build_tree("images", {"a.png": 1}), build_tree("docs", {"a.md": 1})])

        assert [root.path for root in result.roots] == ["docs"]
        assert result.excluded_by(ExclusionReason.DISALLOWED_TYPE)[0].path == "images/a.png"

    async def test_run_without_roots(self) -> None:
        """Test that an empty drop finishes with an empty result."""
        session = ScanSession.from_config(IntakeConfig())

        result = await session.run([])

        assert result.is_empty
        assert session.history == [ScanState.IDLE, ScanState.DONE]

    async def test_unsupported_patterns_are_collected(self) -> None:
        """Test that unsupported rules from every root reach the result."""
        session = ScanSession.from_config(IntakeConfig())

        result = await session.run(
            [
                build_tree("one", {".gitignore": "!a\n", "a.txt": 1}),
                build_tree("two", {".gitignore": "!b\n", "b.txt": 1}),
            ]
        )

        assert result.unsupported_patterns == ("!a", "!b")

    async def test_session_id_is_visible_during_scan(self) -> None:
        """Test that the session id reaches concurrent subtree tasks and is reset afterwards."""
        spy = SessionSpyEntry("a.txt")
        root = MemoryEntry("project", children=[MemoryEntry("sub", children=[spy])])
        session = ScanSession.from_config(IntakeConfig(), session_id="abc")

        _ = await session.run([root])

        assert spy.seen_session_id == "abc"
        assert get_session_id() is None

    async def test_policy_settings_are_applied(self) -> None:
        """Test that the session builds its policy from the filter config."""
        config = IntakeConfig(filters=FilterConfig(allowed_extensions=["txt"], max_file_size=10))
        session = ScanSession.from_config(config)

        result = await session.run([build_tree("p", {"a.txt": 5, "big.txt": 20, "b.md": 1})])

        assert [record.path for record in result.roots[0].iter_files()] == ["p/a.txt"]
        assert {item.reason for item in result.excluded} == {
            ExclusionReason.OVERSIZED,
            ExclusionReason.DISALLOWED_TYPE,
        }

    async def test_sessions_do_not_share_state(self) -> None:
        """Test that each session owns its policy, log and counter."""
        config = IntakeConfig()
        first = ScanSession.from_config(config)
        second = ScanSession.from_config(config)

        _ = await first.run([build_tree("p", {"a.exe": 1})])

        assert first.policy is not second.policy
        assert first.policy.compiler is not second.policy.compiler
        assert len(second.excluded_log) == 0
        assert second.progress.value == 0

    async def test_run_twice_raises(self) -> None:
        """Test that a session cannot be reused."""
        session = ScanSession.from_config(IntakeConfig())
        _ = await session.run([])

        with pytest.raises(InvalidSessionTransitionError):
            _ = await session.run([])

    async def test_result_before_finish_raises(self) -> None:
        """Test that an unfinished session has no result."""
        session = ScanSession.from_config(IntakeConfig())

        with pytest.raises(RuntimeError, match="has not finished"):
            _ = session.result

    async def test_invalid_transition(self) -> None:
        """Test that the transition table is enforced."""
        session = ScanSession.from_config(IntakeConfig())

        with pytest.raises(InvalidSessionTransitionError) as exc_info:
            session.transition(ScanState.SCANNING)

        assert exc_info.value.from_state == "idle"
        assert exc_info.value.to_state == "scanning"

    async def test_supersede(self) -> None:
        """Test that a superseded session refuses to hand out results."""
        session = ScanSession.from_config(IntakeConfig(), session_id="old")

        session.supersede()
        session.supersede()

        assert session.is_superseded
        assert session.history == [ScanState.IDLE, ScanState.SUPERSEDED]
        with pytest.raises(SessionSupersededError, match="old"):
            _ = session.result

    async def test_supersede_after_done_is_noop(self) -> None:
        """Test that finished sessions keep their result."""
        session = ScanSession.from_config(IntakeConfig())
        result = await session.run([build_tree("p", {"a.txt": 1})])

        session.supersede()

        assert session.state is ScanState.DONE
        assert session.result is result


class TestRootLabels:
    """Test unique path prefixes for dropped roots."""

    @pytest.mark.parametrize(
        ("names", "expected"),
        [
            (["proj", "docs"], ["proj", "docs"]),
            (["proj", "proj", "proj"], ["proj", "proj (2)", "proj (3)"]),
            (["proj", "proj (2)", "proj"], ["proj", "proj (2)", "proj (3)"]),
            (["proj", "proj", "proj (2)"], ["proj", "proj (3)", "proj (2)"]),
            (["notes.md", "notes.md"], ["notes.md", "notes.md (2)"]),
            ([], []),
        ],
    )
    async def test_labels_are_unique(self, names: list[str], expected: list[str]) -> None:
        """Test that repeated names get numbered suffixes that collide with nothing."""
        assert root_labels(names) == expected

    async def test_same_named_roots_get_distinct_paths(self) -> None:
        """Test that two dropped folders with one name stay apart in the forest."""
        session = ScanSession.from_config(IntakeConfig())

        result = await session.run(
            [
                build_tree("proj", {"src": {"one.py": 1}}, parent="/one"),
                build_tree("proj", {"src": {"two.py": 1}}, parent="/two"),
            ]
        )

        assert [root.path for root in result.roots] == ["proj", "proj (2)"]
        assert result.roots[1].find("proj (2)/src") is not None
        selected = SelectionAggregator().aggregate(result.roots, SelectionSet(["proj/src"]))
        assert [record.full_path for record in selected.files] == ["/one/proj/src/one.py"]


class TestRequireFiles:
    """Test the nothing-to-ingest check."""

    async def test_empty_result_raises(self) -> None:
        """Test that an empty forest raises with the exclusion count."""
        result = await ScanSession.from_config(IntakeConfig()).run([build_tree("p", {"a.exe": 1, "b.exe": 1})])

        with pytest.raises(NothingToIngestError) as exc_info:
            _ = require_files(result)

        assert exc_info.value.excluded_count == 2
        assert str(exc_info.value) == "No valid files found in the dropped items"

    async def test_non_empty_result_passes(self) -> None:
        """Test that a result with files is returned unchanged."""
        result = await ScanSession.from_config(IntakeConfig()).run([file_entry("a.md")])

        assert require_files(result) is result


class TestIntakeController:
    """Test session supersession through the controller."""

    async def test_submit_returns_result(self) -> None:
        """Test a single submission."""
        controller = IntakeController()

        result = await controller.submit([build_tree("p", {"a.txt": 1})])

        assert result.file_count == 1
        assert controller.session is not None
        assert controller.session.state is ScanState.DONE

    async def test_new_drop_supersedes_running_scan(self) -> None:
        """Test that a second submission abandons the first."""
        controller = IntakeController()
        slow = build_tree("slow", {"a.txt": 1})
        slow.delay = 0.5

        first = asyncio.create_task(controller.submit([slow]))
        await asyncio.sleep(0.05)
        first_session = controller.session

        result = await controller.submit([build_tree("fast", {"b.txt": 1})])

        with pytest.raises(SessionSupersededError):
            _ = await first
        assert first_session is not None
        assert first_session.is_superseded
        assert [root.path for root in result.roots] == ["fast"]
        assert controller.session is not first_session
        assert len(first_session.excluded_log) == 0

    async def test_cancel_without_session(self) -> None:
        """Test that cancelling an idle controller is harmless."""
        controller = IntakeController()

        controller.cancel()

        assert controller.session is None
