"""Payload type of each resource kind, used to (de)serialize cache records."""

from __future__ import annotations

from functools import cache
from typing import Any

from pydantic import TypeAdapter

from grit.core.models.entities import (
    ActionRun,
    Comment,
    Commit,
    CommitDetail,
    HomeData,
    Issue,
    PrSummary,
    PullRequest,
    Repository,
)
from grit.core.models.enums import ChecksStatus, ResourceKind

PAYLOAD_TYPES: dict[ResourceKind, Any] = {
    ResourceKind.HOME: HomeData,
    ResourceKind.REPOS: tuple[Repository, ...],
    ResourceKind.REPO: Repository,
    ResourceKind.PR_LIST: tuple[PrSummary, ...],
    ResourceKind.PR: PullRequest,
    ResourceKind.PR_DIFF: str,
    ResourceKind.ISSUE_LIST: tuple[Issue, ...],
    ResourceKind.ISSUE: Issue,
    ResourceKind.COMMENTS: tuple[Comment, ...],
    ResourceKind.COMMIT_LIST: tuple[Commit, ...],
    ResourceKind.COMMIT: CommitDetail,
    ResourceKind.ACTION_RUNS: tuple[ActionRun, ...],
    ResourceKind.CHECKS: ChecksStatus,
}


@cache
def payload_adapter(kind: ResourceKind) -> TypeAdapter[Any]:
    return TypeAdapter(PAYLOAD_TYPES[kind])


def dump_payload(kind: ResourceKind, payload: Any) -> Any:
    """JSON-compatible form of ``payload``."""
    return payload_adapter(kind).dump_python(payload, mode="json")


def load_payload(kind: ResourceKind, raw: Any) -> Any:
    """Validate a JSON-compatible value back into the kind's record type.

    Raises:
        pydantic.ValidationError: if ``raw`` does not match the payload type.
    """
    return payload_adapter(kind).validate_python(raw)


def coerce_payload(kind: ResourceKind, payload: Any) -> Any:
    """Normalize adapter output (e.g. lists) into the canonical immutable form."""
    return payload_adapter(kind).validate_python(payload)
