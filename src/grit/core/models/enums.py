"""Core domain enums."""

from __future__ import annotations

from enum import StrEnum


class ResourceKind(StrEnum):
    """Kinds of cacheable forge resources. Values are persisted in disk records."""

    HOME = "home"
    REPOS = "repos"
    REPO = "repo"
    PR_LIST = "prs"
    PR = "pr"
    PR_DIFF = "pr_diff"
    ISSUE_LIST = "issues"
    ISSUE = "issue"
    COMMENTS = "comments"
    COMMIT_LIST = "commits"
    COMMIT = "commit"
    ACTION_RUNS = "actions"
    CHECKS = "checks"

    @property
    def is_numbered(self) -> bool:
        """Whether keys of this kind address a single numbered item (PR, issue, SHA)."""
        return self in _NUMBERED_KINDS

    @property
    def is_repo_scoped(self) -> bool:
        return self not in (ResourceKind.HOME, ResourceKind.REPOS)


_NUMBERED_KINDS = frozenset(
    {
        ResourceKind.PR,
        ResourceKind.PR_DIFF,
        ResourceKind.ISSUE,
        ResourceKind.COMMENTS,
        ResourceKind.COMMIT,
        ResourceKind.CHECKS,
    }
)


class PrState(StrEnum):
    OPEN = "open"
    CLOSED = "closed"
    MERGED = "merged"


class IssueState(StrEnum):
    OPEN = "open"
    CLOSED = "closed"


class ChecksStatus(StrEnum):
    """Aggregated CI status for a pull request."""

    PENDING = "pending"
    SUCCESS = "success"
    FAILURE = "failure"
    NONE = "none"

    @property
    def symbol(self) -> str:
        return {
            ChecksStatus.PENDING: "⏳",
            ChecksStatus.SUCCESS: "✓",
            ChecksStatus.FAILURE: "✗",
            ChecksStatus.NONE: "-",
        }[self]


class ActionStatus(StrEnum):
    QUEUED = "queued"
    IN_PROGRESS = "in_progress"
    COMPLETED = "completed"


class ActionConclusion(StrEnum):
    SUCCESS = "success"
    FAILURE = "failure"
    CANCELLED = "cancelled"
    SKIPPED = "skipped"
    TIMED_OUT = "timed_out"


class MergeMethod(StrEnum):
    MERGE = "merge"
    SQUASH = "squash"
    REBASE = "rebase"


class ReviewEvent(StrEnum):
    APPROVE = "APPROVE"
    REQUEST_CHANGES = "REQUEST_CHANGES"
    COMMENT = "COMMENT"


class ScreenKind(StrEnum):
    HOME = "home"
    REPO_LIST = "repo_list"
    REPO_VIEW = "repo_view"
    PR_DETAIL = "pr_detail"
    ISSUE_DETAIL = "issue_detail"
    COMMIT_DETAIL = "commit_detail"
    DIFF = "diff"


class RepoTab(StrEnum):
    """Tabs of the repository view, each backed by one list resource."""

    PULL_REQUESTS = "pull_requests"
    ISSUES = "issues"
    COMMITS = "commits"
    ACTIONS = "actions"

    @property
    def resource_kind(self) -> ResourceKind:
        return {
            RepoTab.PULL_REQUESTS: ResourceKind.PR_LIST,
            RepoTab.ISSUES: ResourceKind.ISSUE_LIST,
            RepoTab.COMMITS: ResourceKind.COMMIT_LIST,
            RepoTab.ACTIONS: ResourceKind.ACTION_RUNS,
        }[self]

    def next(self) -> RepoTab:
        members = list(RepoTab)
        return members[(members.index(self) + 1) % len(members)]


class MutationKind(StrEnum):
    MERGE_PR = "merge_pr"
    CLOSE_PR = "close_pr"
    CLOSE_ISSUE = "close_issue"
    COMMENT = "comment"
    SUBMIT_REVIEW = "submit_review"
