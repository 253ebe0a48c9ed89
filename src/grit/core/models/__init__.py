"""Normalized, backend-agnostic domain records."""

from grit.core.models.entities import (
    ActionRun,
    Comment,
    Commit,
    CommitDetail,
    CommitFile,
    CommitStats,
    DomainModel,
    HomeData,
    Issue,
    MyPr,
    PrStats,
    PrSummary,
    PullRequest,
    Repository,
    ReviewRequest,
)
from grit.core.models.enums import (
    ActionConclusion,
    ActionStatus,
    ChecksStatus,
    IssueState,
    MergeMethod,
    MutationKind,
    PrState,
    RepoTab,
    ResourceKind,
    ReviewEvent,
    ScreenKind,
)

__all__ = [
    "ActionConclusion",
    "ActionRun",
    "ActionStatus",
    "ChecksStatus",
    "Comment",
    "Commit",
    "CommitDetail",
    "CommitFile",
    "CommitStats",
    "DomainModel",
    "HomeData",
    "Issue",
    "IssueState",
    "MergeMethod",
    "MutationKind",
    "MyPr",
    "PrState",
    "PrStats",
    "PrSummary",
    "PullRequest",
    "RepoTab",
    "Repository",
    "ResourceKind",
    "ReviewEvent",
    "ReviewRequest",
    "ScreenKind",
]
