"""Logging setup with scan-session tracking.

The id of the active scan session is kept in a ContextVar. Every asyncio task
spawned while scanning a subtree inherits it, and ``SessionIDFilter`` stamps
it onto each log record so interleaved output from concurrent sessions can be
told apart.
"""

import contextvars
import logging
import sys
from collections.abc import Mapping
from pathlib import Path
from typing import Final, override

session_id_var: contextvars.ContextVar[str | None] = contextvars.ContextVar(
    "session_id",
    default=None,
)

DEFAULT_LOG_FORMAT: Final[str] = "%(asctime)s - %(name)s - %(levelname)s - [%(session_id)s] - %(message)s"

# Standard LogRecord attributes, used to pick out structured ``extra`` fields
_RESERVED_ATTRS: Final[frozenset[str]] = frozenset(
    {
        "name",
        "msg",
        "args",
        "created",
        "filename",
        "funcName",
        "levelname",
        "levelno",
        "lineno",
        "module",
        "msecs",
        "pathname",
        "process",
        "processName",
        "relativeCreated",
        "thread",
        "threadName",
        "taskName",
        "exc_info",
        "exc_text",
        "stack_info",
        "message",
        "asctime",
        "session_id",
    }
)


class SessionIDFilter(logging.Filter):
    """Logging filter that adds the active scan-session id to log records."""

    @override
    def filter(self, record: logging.LogRecord) -> bool:
        session_id = session_id_var.get()
        record.session_id = session_id if session_id is not None else "-"
        return True


class ExtraFieldsFormatter(logging.Formatter):
    """Formatter that appends structured ``extra`` fields as ``key=value`` pairs."""

    @override
    def format(self, record: logging.LogRecord) -> str:
        message = super().format(record)
        extras = {
            key: value
            for key, value in record.__dict__.items()  # pyright: ignore[reportAny]
            if key not in _RESERVED_ATTRS and not key.startswith("_")
        }
        if not extras:
            return message
        fields = " ".join(f"{key}={value!r}" for key, value in sorted(extras.items()))
        return f"{message} | {fields}"


def configure_logging(
    *,
    log_level: str = "INFO",
    enable_console: bool = True,
    log_file: Path | None = None,
) -> None:
    """Configure application logging on the root logger.

    Args:
        log_level: Logging level (DEBUG, INFO, WARNING, ERROR, CRITICAL)
        enable_console: Write log records to stderr
        log_file: Optional file that also receives log records

    Example:
        >>> configure_logging(log_level="DEBUG")
        >>> set_session_id("3f2a")
        >>> logging.getLogger(__name__).info("Scan started", extra={"roots": 1})
    """
    root_logger = logging.getLogger()

    level = getattr(logging, log_level.upper(), logging.INFO)
    root_logger.setLevel(level)

    # Remove existing handlers to avoid duplicates
    root_logger.handlers.clear()

    session_filter = SessionIDFilter()
    formatter = ExtraFieldsFormatter(DEFAULT_LOG_FORMAT)

    if enable_console:
        # stdout carries the command's own output
        console_handler = logging.StreamHandler(sys.stderr)
        console_handler.setFormatter(formatter)
        console_handler.addFilter(session_filter)
        root_logger.addHandler(console_handler)

    if log_file is not None:
        file_handler = logging.FileHandler(log_file, encoding="utf-8")
        file_handler.setFormatter(formatter)
        file_handler.addFilter(session_filter)
        root_logger.addHandler(file_handler)


def get_logger(name: str) -> logging.Logger:
    """Get a logger instance for the specified module.

    Args:
        name: Logger name (typically __name__ from calling module)

    Returns:
        Logger instance
    """
    return logging.getLogger(name)


def set_session_id(session_id: str) -> contextvars.Token[str | None]:
    """Set the scan-session id for the current context.

    Args:
        session_id: Identifier of the active scan session

    Returns:
        Token that restores the previous value when passed to ``reset_session_id``
    """
    return session_id_var.set(session_id)


def reset_session_id(token: contextvars.Token[str | None]) -> None:
    session_id_var.reset(token)


def get_session_id() -> str | None:
    """Get the scan-session id of the current context, if any."""
    return session_id_var.get()


def log_with_context(
    logger: logging.Logger,
    level: int,
    message: str,
    *,
    extra: Mapping[str, object] | None = None,
) -> None:
    """Log a message with additional structured fields.

    Example:
        >>> log_with_context(
        ...     get_logger(__name__),
        ...     logging.DEBUG,
        ...     "Entry excluded",
        ...     extra={"path": "project/.idea", "reason": "hidden/system folder"},
        ... )
    """
    context = dict(extra) if extra else {}
    logger.log(level, message, extra=context)
