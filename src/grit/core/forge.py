"""Provider contract: the capability set every forge backend implements.

The core never branches on which backend it is talking to. It looks up the
:class:`Forge` registered for a key's provider id and calls the operations
below, which return normalized records from :mod:`grit.core.models` or raise
a :class:`~grit.core.errors.GritError` subclass.
"""

from __future__ import annotations

import asyncio
from typing import TYPE_CHECKING, Any, Protocol, runtime_checkable

from grit.core.errors import UnsupportedOperationError
from grit.core.messages import CloseIssue, ClosePr, MergePr, PostComment, SubmitReview
from grit.core.models.entities import HomeData
from grit.core.models.enums import ChecksStatus, ResourceKind
from grit.core.models.payloads import coerce_payload

if TYPE_CHECKING:
    from collections.abc import Iterator, Mapping

    from grit.core.keys import ResourceKey
    from grit.core.messages import Mutation
    from grit.core.models.entities import (
        ActionRun,
        Comment,
        Commit,
        CommitDetail,
        Issue,
        MyPr,
        PrSummary,
        PullRequest,
        Repository,
        ReviewRequest,
    )
    from grit.core.models.enums import MergeMethod, ReviewEvent


@runtime_checkable
class Forge(Protocol):
    """Port for one code-hosting backend."""

    @property
    def name(self) -> str:
        """Provider id this backend is registered under."""
        ...

    def web_url(self, repo: str, kind: str, item: str = "") -> str:
        """Browser URL for a repo, pr, issue, commit or action_run."""
        ...

    async def get_current_user(self) -> str: ...

    async def list_repos(self, page: int = 1) -> list[Repository]: ...

    async def get_repo(self, owner: str, repo: str) -> Repository: ...

    async def list_prs(self, owner: str, repo: str, page: int = 1) -> list[PrSummary]: ...

    async def get_pr(self, owner: str, repo: str, number: int) -> PullRequest: ...

    async def get_pr_diff(self, owner: str, repo: str, number: int) -> str: ...

    async def list_issues(self, owner: str, repo: str, page: int = 1) -> list[Issue]: ...

    async def get_issue(self, owner: str, repo: str, number: int) -> Issue: ...

    async def list_comments(self, owner: str, repo: str, number: int) -> list[Comment]: ...

    async def create_comment(self, owner: str, repo: str, number: int, body: str) -> None: ...

    async def list_commits(self, owner: str, repo: str, page: int = 1) -> list[Commit]: ...

    async def get_commit(self, owner: str, repo: str, sha: str) -> CommitDetail: ...

    async def merge_pr(
        self, owner: str, repo: str, number: int, method: MergeMethod
    ) -> None: ...

    async def close_pr(self, owner: str, repo: str, number: int) -> None: ...

    async def close_issue(self, owner: str, repo: str, number: int) -> None: ...

    async def list_review_requests(self, username: str) -> list[ReviewRequest]: ...

    async def list_my_prs(self, username: str) -> list[MyPr]: ...

    async def list_action_runs(self, owner: str, repo: str, page: int = 1) -> list[ActionRun]: ...

    async def get_check_status(self, owner: str, repo: str, number: int) -> ChecksStatus: ...

    async def submit_review(
        self, owner: str, repo: str, number: int, event: ReviewEvent, body: str
    ) -> None: ...


class BaseForge:
    """Defaults for the optional capabilities of :class:`Forge`.

    Adapters subclass this and override what their backend offers.
    """

    name: str = "forge"

    async def list_review_requests(self, username: str) -> list[ReviewRequest]:
        del username
        return []

    async def list_my_prs(self, username: str) -> list[MyPr]:
        del username
        return []

    async def list_action_runs(self, owner: str, repo: str, page: int = 1) -> list[ActionRun]:
        del owner, repo, page
        return []

    async def get_check_status(self, owner: str, repo: str, number: int) -> ChecksStatus:
        del owner, repo, number
        return ChecksStatus.NONE

    async def submit_review(
        self, owner: str, repo: str, number: int, event: ReviewEvent, body: str
    ) -> None:
        del owner, repo, number, event, body
        msg = f"Reviews not supported by {self.name}"
        raise UnsupportedOperationError(msg)


class ForgeRegistry:
    """Lookup from provider id to the backend serving it."""

    def __init__(self, forges: Mapping[str, Forge] | None = None) -> None:
        self._forges: dict[str, Forge] = {}
        for provider, forge in (forges or {}).items():
            self.register(provider, forge)

    def register(self, provider: str, forge: Forge) -> None:
        self._forges[provider.strip().lower()] = forge

    def get(self, provider: str) -> Forge:
        try:
            return self._forges[provider.strip().lower()]
        except KeyError:
            msg = f"no forge configured for provider {provider!r}"
            raise UnsupportedOperationError(msg) from None

    def __contains__(self, provider: object) -> bool:
        return isinstance(provider, str) and provider.strip().lower() in self._forges

    def __iter__(self) -> Iterator[str]:
        return iter(self._forges)

    def __len__(self) -> int:
        return len(self._forges)


async def load_home(forge: Forge) -> HomeData:
    username = await forge.get_current_user()
    review_requests, my_prs = await asyncio.gather(
        forge.list_review_requests(username),
        forge.list_my_prs(username),
    )
    return HomeData(review_requests=tuple(review_requests), my_prs=tuple(my_prs))


async def fetch_resource(forge: Forge, key: ResourceKey) -> Any:
    """Resolve ``key`` to a contract call and return its normalized payload."""
    owner, repo = key.owner, key.name
    match key.kind:
        case ResourceKind.HOME:
            result: Any = await load_home(forge)
        case ResourceKind.REPOS:
            result = await forge.list_repos()
        case ResourceKind.REPO:
            result = await forge.get_repo(owner, repo)
        case ResourceKind.PR_LIST:
            result = await forge.list_prs(owner, repo)
        case ResourceKind.PR:
            result = await forge.get_pr(owner, repo, key.item_number)
        case ResourceKind.PR_DIFF:
            result = await forge.get_pr_diff(owner, repo, key.item_number)
        case ResourceKind.ISSUE_LIST:
            result = await forge.list_issues(owner, repo)
        case ResourceKind.ISSUE:
            result = await forge.get_issue(owner, repo, key.item_number)
        case ResourceKind.COMMENTS:
            result = await forge.list_comments(owner, repo, key.item_number)
        case ResourceKind.COMMIT_LIST:
            result = await forge.list_commits(owner, repo)
        case ResourceKind.COMMIT:
            result = await forge.get_commit(owner, repo, key.number or "")
        case ResourceKind.ACTION_RUNS:
            result = await forge.list_action_runs(owner, repo)
        case ResourceKind.CHECKS:
            result = await forge.get_check_status(owner, repo, key.item_number)
    return coerce_payload(key.kind, result)


async def apply_mutation(forge: Forge, key: ResourceKey, mutation: Mutation) -> None:
    """Run ``mutation`` against the PR or issue addressed by ``key``."""
    owner, repo, number = key.owner, key.name, key.item_number
    match mutation:
        case MergePr(method=method):
            await forge.merge_pr(owner, repo, number, method)
        case ClosePr():
            await forge.close_pr(owner, repo, number)
        case CloseIssue():
            await forge.close_issue(owner, repo, number)
        case PostComment(body=body):
            await forge.create_comment(owner, repo, number, body)
        case SubmitReview(event=event, body=body):
            await forge.submit_review(owner, repo, number, event, body)
