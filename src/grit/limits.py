"""Numeric limits and timeouts - no circular dependencies."""

from __future__ import annotations

TASK_TIMEOUT = 30.0
SHUTDOWN_TIMEOUT = 5.0
GH_VERSION_TIMEOUT = 10.0

FLASH_SECONDS = 3.0

MAX_LOG_MESSAGE_LENGTH = 4000
MAX_LOG_LINES = 2000

LIST_PAGE_SIZE = 50
CACHE_SCHEMA_VERSION = 1
