"""Test helpers package."""

from tests.helpers.fakes import (
    PROVIDER,
    REPO,
    FakeClock,
    FakeForge,
    RecordingSideEffects,
    make_issue,
    make_pr,
    make_summary,
)
from tests.helpers.wait import settle_loop, wait_until

__all__ = [
    "PROVIDER",
    "REPO",
    "FakeClock",
    "FakeForge",
    "RecordingSideEffects",
    "make_issue",
    "make_pr",
    "make_summary",
    "settle_loop",
    "wait_until",
]
