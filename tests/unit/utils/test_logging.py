"""Tests for logging setup and session-id tracking."""

from __future__ import annotations

import logging
from pathlib import Path

import pytest

from folder_intake.utils.logging import (
    ExtraFieldsFormatter,
    SessionIDFilter,
    configure_logging,
    get_logger,
    get_session_id,
    log_with_context,
    reset_session_id,
    set_session_id,
)


def make_record(message: str = "Scan started", **extra: object) -> logging.LogRecord:
    record = logging.LogRecord("folder_intake.test", logging.INFO, __file__, 1, message, None, None)
    for key, value in extra.items():
        setattr(record, key, value)
    return record


class TestSessionId:
    """Test the session-id context variable helpers."""

    def test_set_and_reset(self) -> None:
        """Test that reset restores the previous value."""
        assert get_session_id() is None

        token = set_session_id("abc123")
        assert get_session_id() == "abc123"

        reset_session_id(token)
        assert get_session_id() is None


class TestSessionIDFilter:
    """Test the SessionIDFilter class."""

    def test_adds_placeholder_without_session(self) -> None:
        """Test the placeholder outside any session."""
        record = make_record()

        assert SessionIDFilter().filter(record) is True
        assert getattr(record, "session_id") == "-"

    def test_adds_active_session(self) -> None:
        """Test that the active session id is stamped on records."""
        record = make_record()
        token = set_session_id("s-42")
        try:
            _ = SessionIDFilter().filter(record)
        finally:
            reset_session_id(token)

        assert getattr(record, "session_id") == "s-42"


class TestExtraFieldsFormatter:
    """Test the ExtraFieldsFormatter class."""

    def test_appends_extra_fields(self) -> None:
        """Test that structured fields follow the message, sorted by key."""
        formatter = ExtraFieldsFormatter("%(message)s")

        output = formatter.format(make_record("Entry excluded", reason="scan error", path="p/a.txt"))

        assert output == "Entry excluded | path='p/a.txt' reason='scan error'"

    def test_plain_message_without_extras(self) -> None:
        """Test that records without extras are unchanged."""
        formatter = ExtraFieldsFormatter("%(levelname)s %(message)s")

        assert formatter.format(make_record("Done")) == "INFO Done"

    def test_session_id_is_not_repeated(self) -> None:
        """Test that the session id is not treated as an extra field."""
        formatter = ExtraFieldsFormatter("[%(session_id)s] %(message)s")

        output = formatter.format(make_record("Done", session_id="abc"))

        assert output == "[abc] Done"


class TestConfigureLogging:
    """Test the configure_logging function."""

    def test_console_handler(self) -> None:
        """Test that one console handler with the session filter is installed."""
        configure_logging(log_level="DEBUG")

        root_logger = logging.getLogger()
        assert root_logger.level == logging.DEBUG
        assert len(root_logger.handlers) == 1
        handler = root_logger.handlers[0]
        assert isinstance(handler.formatter, ExtraFieldsFormatter)
        assert any(isinstance(f, SessionIDFilter) for f in handler.filters)

    def test_repeated_configuration_does_not_duplicate(self) -> None:
        """Test that reconfiguring replaces handlers."""
        configure_logging(log_level="INFO")
        configure_logging(log_level="WARNING")

        assert len(logging.getLogger().handlers) == 1
        assert logging.getLogger().level == logging.WARNING

    def test_log_file(self, tmp_path: Path) -> None:
        """Test that records reach the log file with session id and extras."""
        log_file = tmp_path / "intake.log"
        configure_logging(log_level="INFO", enable_console=False, log_file=log_file)

        token = set_session_id("file-test")
        try:
            log_with_context(get_logger("folder_intake.test"), logging.INFO, "Loaded ignore rules", extra={"root": "p"})
        finally:
            reset_session_id(token)
        for handler in logging.getLogger().handlers:
            handler.flush()
            handler.close()

        content = log_file.read_text(encoding="utf-8")
        assert "[file-test]" in content
        assert "Loaded ignore rules | root='p'" in content

    def test_unknown_level_falls_back_to_info(self) -> None:
        """Test the fallback for unknown level names."""
        configure_logging(log_level="chatty")

        assert logging.getLogger().level == logging.INFO


class TestLogWithContext:
    """Test the log_with_context helper."""

    def test_extra_fields_reach_record(self, caplog: pytest.LogCaptureFixture) -> None:
        """Test that extra fields become record attributes."""
        logger = get_logger("folder_intake.test")

        with caplog.at_level(logging.INFO, logger="folder_intake.test"):
            log_with_context(logger, logging.INFO, "Scan session finished", extra={"files": 3})

        (record,) = caplog.records
        assert getattr(record, "files") == 3

    def test_without_extra(self, caplog: pytest.LogCaptureFixture) -> None:
        """Test logging without extra fields."""
        with caplog.at_level(logging.INFO, logger="folder_intake.test"):
            log_with_context(get_logger("folder_intake.test"), logging.INFO, "Scan session started")

        assert caplog.records[0].getMessage() == "Scan session started"
