"""Pytest configuration and shared fixtures."""

from __future__ import annotations

import logging
from collections.abc import Callable, Generator, Mapping
from pathlib import Path

import pytest

from folder_intake.core.filesystem.policy import ExclusionPolicy
from folder_intake.utils.logging import SessionIDFilter

type DiskLayout = Mapping[str, "int | str | DiskLayout"]


def write_tree(base: Path, layout: DiskLayout) -> None:
    """Materialize a nested mapping on disk.

    Integer values become files of that many bytes, strings become text
    files, mappings become directories.
    """
    base.mkdir(parents=True, exist_ok=True)
    for name, value in layout.items():
        target = base / name
        if isinstance(value, int):
            _ = target.write_bytes(b"x" * value)
        elif isinstance(value, str):
            _ = target.write_text(value, encoding="utf-8")
        else:
            write_tree(target, value)


@pytest.fixture
def make_tree(tmp_path: Path) -> Callable[[str, DiskLayout], Path]:
    """Factory creating a named directory tree under ``tmp_path``."""

    def factory(name: str, layout: DiskLayout) -> Path:
        root = tmp_path / name
        write_tree(root, layout)
        return root

    return factory


@pytest.fixture
def policy() -> ExclusionPolicy:
    """Default exclusion policy."""
    return ExclusionPolicy()


@pytest.fixture(autouse=True)
def reset_logging_state() -> Generator[None, None, None]:
    """Remove handlers installed by ``configure_logging`` and restore the root level."""
    root_logger = logging.getLogger()
    level = root_logger.level
    yield
    for handler in root_logger.handlers.copy():
        if any(isinstance(item, SessionIDFilter) for item in handler.filters):
            root_logger.removeHandler(handler)
            handler.close()
    root_logger.setLevel(level)
