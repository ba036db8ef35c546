"""Folder Intake - decide which dropped files are eligible for ingestion.

This package scans dropped files and folders, filters them through an
extension allow-list, a size limit, hidden/system folder rules and
gitignore-style patterns, and flattens a user-chosen part of the resulting
tree into the list of files handed to a transport.
"""

__version__ = "0.1.0"

__all__ = ["__version__"]
