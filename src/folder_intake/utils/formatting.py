"""Pure formatting utilities for human-readable output.

This module provides stateless formatting functions used when presenting
scan results: node sizes, selection summaries and file counts.
"""

_UNITS: tuple[str, ...] = ("B", "KB", "MB", "GB")

# Binary unit step (1024-based)
_STEP = 1024.0


def format_size(bytes: int) -> str:
    """Convert bytes to a human-readable size with one decimal.

    Uses binary units (1024-based) and stops at GB, so very large values are
    shown as thousands of GB.

    Args:
        bytes: Number of bytes to format (must be non-negative)

    Returns:
        Human-readable string representation of the size

    Raises:
        ValueError: If bytes is negative

    Examples:
        >>> format_size(512)
        '512.0 B'
        >>> format_size(1536)
        '1.5 KB'
        >>> format_size(100 * 1024 * 1024)
        '100.0 MB'
    """
    if bytes < 0:
        msg = "bytes must be non-negative"
        raise ValueError(msg)

    size = float(bytes)
    unit_index = 0
    while size >= _STEP and unit_index < len(_UNITS) - 1:
        size /= _STEP
        unit_index += 1
    return f"{size:.1f} {_UNITS[unit_index]}"


def format_count(count: int, noun: str = "file") -> str:
    """Format a count with a naively pluralised noun.

    Examples:
        >>> format_count(1)
        '1 file'
        >>> format_count(3, "folder")
        '3 folders'
    """
    return f"{count} {noun}" if count == 1 else f"{count} {noun}s"
