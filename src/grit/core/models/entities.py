"""Normalized domain records.

Every backend adapter returns these records, so a pull request fetched from
one forge is structurally identical to one fetched from another. Records are
frozen values: the cache, the reducer and the screens may all hold the same
instance without copying.
"""

from __future__ import annotations

from datetime import datetime  # noqa: TC003 - Pydantic needs runtime access

from pydantic import BaseModel, ConfigDict, Field

from grit.core.models.enums import (
    ActionConclusion,
    ActionStatus,
    ChecksStatus,
    IssueState,
    PrState,
)


class DomainModel(BaseModel):
    """Base model with common config.

    Unknown fields are ignored so records written by newer versions stay
    readable.
    """

    model_config = ConfigDict(frozen=True, extra="ignore")


class Repository(DomainModel):
    owner: str
    name: str
    description: str | None = None
    url: str = ""
    stars: int = 0
    updated_at: datetime | None = None

    @property
    def full_name(self) -> str:
        return f"{self.owner}/{self.name}"


class PrSummary(DomainModel):
    number: int
    title: str
    state: PrState = PrState.OPEN
    author: str = "unknown"
    url: str = ""
    updated_at: datetime | None = None


class PrStats(DomainModel):
    additions: int = 0
    deletions: int = 0
    changed_files: int = 0
    commits: int = 0
    comments: int = 0


class PullRequest(DomainModel):
    number: int
    title: str
    body: str | None = None
    state: PrState = PrState.OPEN
    author: str = "unknown"
    head_branch: str = ""
    base_branch: str = ""
    url: str = ""
    stats: PrStats = Field(default_factory=PrStats)
    created_at: datetime | None = None
    updated_at: datetime | None = None
    merged_at: datetime | None = None
    closed_at: datetime | None = None


class Issue(DomainModel):
    number: int
    title: str
    body: str | None = None
    state: IssueState = IssueState.OPEN
    author: str = "unknown"
    labels: tuple[str, ...] = ()
    comments: int = 0
    url: str = ""
    created_at: datetime | None = None
    updated_at: datetime | None = None


class Comment(DomainModel):
    id: int
    author: str = "unknown"
    body: str = ""
    created_at: datetime | None = None


class Commit(DomainModel):
    """Commit summary for list views (first line of the message only)."""

    sha: str
    message: str
    author: str = "unknown"
    url: str = ""
    date: datetime | None = None


class CommitStats(DomainModel):
    additions: int = 0
    deletions: int = 0
    total: int = 0


class CommitFile(DomainModel):
    filename: str
    status: str
    additions: int = 0
    deletions: int = 0
    patch: str | None = None


class CommitDetail(DomainModel):
    sha: str
    message: str
    author: str = "unknown"
    url: str = ""
    date: datetime | None = None
    stats: CommitStats = Field(default_factory=CommitStats)
    files: tuple[CommitFile, ...] = ()


class ActionRun(DomainModel):
    """CI workflow run."""

    id: int
    name: str
    status: ActionStatus = ActionStatus.QUEUED
    conclusion: ActionConclusion | None = None
    branch: str = ""
    event: str = ""
    url: str = ""
    created_at: datetime | None = None


class ReviewRequest(DomainModel):
    """A pull request on which the current user is a requested reviewer."""

    repo_owner: str
    repo_name: str
    pr_number: int
    pr_title: str
    author: str = "unknown"
    url: str = ""
    updated_at: datetime | None = None


class MyPr(DomainModel):
    """An open pull request authored by the current user."""

    repo_owner: str
    repo_name: str
    number: int
    title: str
    state: PrState = PrState.OPEN
    checks_status: ChecksStatus = ChecksStatus.NONE
    url: str = ""
    updated_at: datetime | None = None


class HomeData(DomainModel):
    review_requests: tuple[ReviewRequest, ...] = ()
    my_prs: tuple[MyPr, ...] = ()
