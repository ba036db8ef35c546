"""Protocol definitions for the storage boundary.

The scanner never touches a filesystem API directly; it consumes entry
references that satisfy these protocols. The local-disk backend lives in
``folder_intake.core.filesystem.entries`` and tests provide an in-memory one.
"""

from collections.abc import Sequence
from typing import Protocol, runtime_checkable

from folder_intake.types.models import EntryMetadata


@runtime_checkable
class DirectoryReader(Protocol):
    """Paginated enumeration of one directory's direct entries."""

    async def read_entries(self) -> Sequence["Entry"]:
        """Return the next batch of entries.

        Returns:
            The next batch; an empty batch signals that enumeration is done

        Raises:
            OSError: If the directory cannot be enumerated
        """
        ...


@runtime_checkable
class Entry(Protocol):
    """Reference to a file or directory handed over by the external source."""

    @property
    def name(self) -> str:
        """Display name of the entry."""
        ...

    @property
    def full_path(self) -> str:
        """Location of the entry in its storage backend."""
        ...

    @property
    def is_file(self) -> bool: ...

    @property
    def is_directory(self) -> bool: ...

    async def metadata(self) -> EntryMetadata:
        """Fetch name, size and full path of the entry.

        Raises:
            OSError: If the metadata cannot be read
        """
        ...

    async def read_text(self) -> str:
        """Read the entry's content as text (used for ignore-rule files).

        Raises:
            OSError: If the content cannot be read
        """
        ...

    def create_reader(self) -> DirectoryReader:
        """Create a paginated reader over a directory entry's children."""
        ...
