"""Shared utility modules.

This package provides:
- Data size formatting (bytes to human-readable)
- Logging setup with scan-session tracking
"""

from folder_intake.utils.formatting import format_count, format_size

__all__ = [
    "format_count",
    "format_size",
]
