"""Local-disk implementation of the entry reference protocols.

Blocking filesystem calls run in worker threads via ``asyncio.to_thread`` so
that sibling subtree scans can overlap. Directory listings are served in
fixed-size batches, matching the paginated contract of ``DirectoryReader``.
Symbolic links to directories are not followed.
"""

from __future__ import annotations

import asyncio
import os
from collections.abc import Sequence
from pathlib import Path
from typing import override

from folder_intake.types import EntryMetadata

DEFAULT_BATCH_SIZE = 100


class LocalEntry:
    """A file or directory on the local filesystem."""

    def __init__(
        self,
        path: Path,
        *,
        is_file: bool,
        is_directory: bool,
        batch_size: int = DEFAULT_BATCH_SIZE,
    ) -> None:
        self._path: Path = path
        self._is_file: bool = is_file
        self._is_directory: bool = is_directory
        self._batch_size: int = batch_size

    @classmethod
    def from_path(cls, path: Path | str, *, batch_size: int = DEFAULT_BATCH_SIZE) -> LocalEntry:
        """Create a root entry, resolving its kind from the filesystem.

        ``.`` and ``..`` components are collapsed lexically so the entry is
        named after the folder it designates. Symbolic links are kept as given.

        Raises:
            FileNotFoundError: If the path does not exist
        """
        resolved = Path(os.path.normpath(Path(path).expanduser().absolute()))
        if not resolved.exists():
            msg = f"Path does not exist: {resolved}"
            raise FileNotFoundError(msg)
        return cls(
            resolved,
            is_file=resolved.is_file(),
            is_directory=resolved.is_dir(),
            batch_size=batch_size,
        )

    @property
    def path(self) -> Path:
        return self._path

    @property
    def name(self) -> str:
        return self._path.name

    @property
    def full_path(self) -> str:
        return str(self._path)

    @property
    def is_file(self) -> bool:
        return self._is_file

    @property
    def is_directory(self) -> bool:
        return self._is_directory

    async def metadata(self) -> EntryMetadata:
        stat_result = await asyncio.to_thread(self._path.stat)
        return EntryMetadata(name=self.name, size=stat_result.st_size, full_path=self.full_path)

    async def read_text(self) -> str:
        return await asyncio.to_thread(self._path.read_text, encoding="utf-8", errors="replace")

    def create_reader(self) -> LocalDirectoryReader:
        return LocalDirectoryReader(self._path, batch_size=self._batch_size)

    @override
    def __repr__(self) -> str:
        kind = "dir" if self._is_directory else "file"
        return f"LocalEntry({self.full_path!r}, {kind})"


class LocalDirectoryReader:
    """Batched reader over one local directory."""

    def __init__(self, path: Path, *, batch_size: int = DEFAULT_BATCH_SIZE) -> None:
        if batch_size <= 0:
            msg = "batch_size must be positive"
            raise ValueError(msg)
        self._path: Path = path
        self._batch_size: int = batch_size
        self._pending: list[LocalEntry] | None = None

    async def read_entries(self) -> Sequence[LocalEntry]:
        """Return the next batch; an empty batch once the listing is exhausted.

        Raises:
            OSError: If the directory cannot be listed
        """
        if self._pending is None:
            self._pending = await asyncio.to_thread(self._list_directory)

        batch = self._pending[: self._batch_size]
        del self._pending[: self._batch_size]
        return batch

    def _list_directory(self) -> list[LocalEntry]:
        entries: list[LocalEntry] = []
        with os.scandir(self._path) as iterator:
            for dir_entry in iterator:
                is_directory = dir_entry.is_dir(follow_symlinks=False)
                is_file = not is_directory and dir_entry.is_file()
                if not (is_directory or is_file):
                    # Broken links, sockets, devices and linked directories
                    continue
                entries.append(
                    LocalEntry(
                        Path(dir_entry.path),
                        is_file=is_file,
                        is_directory=is_directory,
                        batch_size=self._batch_size,
                    )
                )
        return entries
