"""In-process debug log.

Records from the ``grit`` logger tree are kept in a bounded ring buffer so a
running session can dump recent engine activity (cache misses, task
timeouts, stale discards) to a file without a log file being configured.
"""

from __future__ import annotations

import logging
from collections import deque
from dataclasses import dataclass
from datetime import datetime
from typing import TYPE_CHECKING

from grit.limits import MAX_LOG_LINES, MAX_LOG_MESSAGE_LENGTH

if TYPE_CHECKING:
    from collections.abc import Iterator
    from pathlib import Path

TRUNCATION_MARK = "... [truncated]"


def truncate(message: str, limit: int = MAX_LOG_MESSAGE_LENGTH) -> str:
    if len(message) > limit:
        return message[:limit] + TRUNCATION_MARK
    return message


@dataclass(frozen=True, slots=True)
class LogEntry:
    created: float
    level: str
    logger: str
    message: str

    def format(self) -> str:
        stamp = datetime.fromtimestamp(self.created).strftime("%H:%M:%S.%f")[:-3]
        return f"{stamp} {self.level:<7} {self.logger}: {self.message}"


class DebugBuffer:
    """Ring buffer of recent entries.

    ``generation`` counts clears, so an export can tell whether earlier
    entries were dropped on purpose.
    """

    def __init__(self, capacity: int = MAX_LOG_LINES) -> None:
        self._entries: deque[LogEntry] = deque(maxlen=capacity)
        self.generation = 0

    def __len__(self) -> int:
        return len(self._entries)

    def __iter__(self) -> Iterator[LogEntry]:
        return iter(tuple(self._entries))

    def append(self, entry: LogEntry) -> None:
        self._entries.append(entry)

    def clear(self) -> None:
        self._entries.clear()
        self.generation += 1

    def export(self, path: Path) -> int:
        """Write every entry to ``path``. Returns how many were written."""
        entries = tuple(self._entries)
        path.parent.mkdir(parents=True, exist_ok=True)
        lines = [
            f"# grit debug log, {len(entries)} entries, cleared {self.generation} times",
            *(entry.format() for entry in entries),
        ]
        path.write_text("\n".join(lines) + "\n", encoding="utf-8")
        return len(entries)


class DebugLogHandler(logging.Handler):
    """Feeds formatted records into a :class:`DebugBuffer`."""

    def __init__(self, buffer: DebugBuffer, level: int = logging.NOTSET) -> None:
        super().__init__(level)
        self.buffer = buffer

    def emit(self, record: logging.LogRecord) -> None:
        try:
            message = truncate(self.format(record))
            self.buffer.append(LogEntry(record.created, record.levelname, record.name, message))
        except Exception:
            self.handleError(record)


debug_buffer = DebugBuffer()

_handler: DebugLogHandler | None = None


def setup_debug_logging(level: int = logging.DEBUG) -> DebugLogHandler:
    """Attach the buffer handler to the ``grit`` logger. Idempotent."""
    global _handler
    if _handler is None:
        _handler = DebugLogHandler(debug_buffer)
        _handler.setFormatter(logging.Formatter("%(message)s"))
        root = logging.getLogger("grit")
        root.addHandler(_handler)
        root.setLevel(level)
        root.debug("Debug log attached (F12 exports, ctrl+l clears)")
    return _handler
