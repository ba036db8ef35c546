"""Exception hierarchy for folder-intake.

Per-entry problems never raise: they become ``ExclusionDecision`` entries in
the session log. The exceptions below cover the configuration boundary, the
session lifecycle and the two "nothing to do" outcomes reported to callers.
"""

from __future__ import annotations


class IntakeError(Exception):
    """Base exception for all folder-intake errors."""


class ConfigurationError(IntakeError):
    """Raised when configuration loading or validation fails.

    Carries a detailed, actionable message covering missing files, YAML
    syntax errors and field-level validation failures.
    """


class EnvironmentVariableError(IntakeError):
    """Raised when a ``${VAR}`` reference in the configuration is not set."""


class NothingToIngestError(IntakeError):
    """Raised when no admitted file exists anywhere in the scanned forest."""

    def __init__(self, message: str = "No valid files found in the dropped items", *, excluded_count: int = 0) -> None:
        super().__init__(message)
        self.excluded_count: int = excluded_count


class EmptySelectionError(IntakeError):
    """Raised when a selection resolves to an empty file list."""

    def __init__(self, message: str = "No files to ingest in the current selection") -> None:
        super().__init__(message)


class InvalidSessionTransitionError(IntakeError):
    """Raised when a scan session is moved into a state it cannot reach."""

    def __init__(self, message: str, *, from_state: str, to_state: str) -> None:
        super().__init__(message)
        self.from_state: str = from_state
        self.to_state: str = to_state


class SessionSupersededError(IntakeError):
    """Raised when the result of an abandoned scan session is requested."""

    def __init__(self, session_id: str) -> None:
        super().__init__(f"Scan session {session_id} was superseded by a newer drop")
        self.session_id: str = session_id
