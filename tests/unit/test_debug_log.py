"""Unit tests for the debug log buffer."""

from __future__ import annotations

import logging
from typing import TYPE_CHECKING

import pytest

from grit.debug_log import (
    TRUNCATION_MARK,
    DebugBuffer,
    DebugLogHandler,
    LogEntry,
    debug_buffer,
    setup_debug_logging,
)
from grit.limits import MAX_LOG_MESSAGE_LENGTH

if TYPE_CHECKING:
    from collections.abc import Generator
    from pathlib import Path

pytestmark = pytest.mark.unit


@pytest.fixture
def captured() -> Generator[tuple[logging.Logger, DebugBuffer], None, None]:
    buffer = DebugBuffer(capacity=5)
    logger = logging.getLogger("grit.tests.capture")
    logger.setLevel(logging.DEBUG)
    handler = DebugLogHandler(buffer)
    logger.addHandler(handler)
    yield logger, buffer
    logger.removeHandler(handler)


class TestCapture:
    def test_records_level_logger_and_message(self, captured):
        logger, buffer = captured

        logger.warning("cache write for %s failed", "pr#42")

        [entry] = list(buffer)
        assert entry.level == "WARNING"
        assert entry.logger == "grit.tests.capture"
        assert entry.message == "cache write for pr#42 failed"

    def test_oversized_messages_are_truncated(self, captured):
        logger, buffer = captured

        logger.info("x" * 10000)

        [entry] = list(buffer)
        assert entry.message.endswith(TRUNCATION_MARK)
        assert len(entry.message) == MAX_LOG_MESSAGE_LENGTH + len(TRUNCATION_MARK)

    def test_message_exactly_at_limit_is_kept(self, captured):
        logger, buffer = captured
        exact = "y" * MAX_LOG_MESSAGE_LENGTH

        logger.info(exact)

        assert next(iter(buffer)).message == exact

    def test_buffer_keeps_only_the_newest_entries(self, captured):
        logger, buffer = captured

        for index in range(8):
            logger.debug("event %d", index)

        assert [entry.message for entry in buffer] == [f"event {i}" for i in range(3, 8)]


def test_clear_bumps_generation() -> None:
    buffer = DebugBuffer()
    buffer.append(LogEntry(0.0, "INFO", "grit", "hello"))

    buffer.clear()

    assert len(buffer) == 0
    assert buffer.generation == 1


def test_export_writes_every_entry(tmp_path: Path) -> None:
    buffer = DebugBuffer()
    buffer.clear()
    buffer.append(LogEntry(1_700_000_000.0, "INFO", "grit.core.cache", "first"))
    buffer.append(LogEntry(1_700_000_001.0, "ERROR", "grit.core.dispatcher", "second"))

    written = buffer.export(tmp_path / "out" / "debug.log")

    lines = (tmp_path / "out" / "debug.log").read_text(encoding="utf-8").splitlines()
    assert written == 2
    assert lines[0] == "# grit debug log, 2 entries, cleared 1 times"
    assert lines[1].endswith("INFO    grit.core.cache: first")
    assert lines[2].endswith("ERROR   grit.core.dispatcher: second")


def test_setup_routes_grit_loggers_into_shared_buffer() -> None:
    handler = setup_debug_logging()
    assert setup_debug_logging() is handler
    debug_buffer.clear()

    logging.getLogger("grit.core.runtime").info("engine started")

    assert [entry.message for entry in debug_buffer] == ["engine started"]
