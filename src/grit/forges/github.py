"""GitHub backend driving the REST API through the ``gh`` CLI."""

from __future__ import annotations

import asyncio
import json
import logging
import os
import re
import shutil
from dataclasses import dataclass
from typing import TYPE_CHECKING, Any, Final, TypeAlias

from grit.core.errors import AuthError, NetworkError, NotFoundError, RateLimitedError
from grit.core.forge import BaseForge
from grit.core.models.entities import (
    ActionRun,
    Comment,
    Commit,
    CommitDetail,
    CommitFile,
    CommitStats,
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
    PrState,
)
from grit.limits import LIST_PAGE_SIZE

if TYPE_CHECKING:
    from collections.abc import Awaitable, Callable, Mapping

    from grit.core.models.enums import MergeMethod, ReviewEvent

    GhRunner: TypeAlias = Callable[[list[str], bytes | None], Awaitable[GhResult]]

logger = logging.getLogger(__name__)

GITHUB_HOST: Final = "github.com"
GH_DIFF_ACCEPT: Final = "Accept: application/vnd.github.diff"

_HTTP_STATUS = re.compile(r"HTTP (\d{3})")
_RETRY_AFTER = re.compile(r"retry[- ]after:?\s*(\d+)", re.IGNORECASE)
_FAILED_CONCLUSIONS = frozenset({"failure", "cancelled", "timed_out"})


@dataclass(frozen=True, slots=True)
class GhResult:
    """Outcome of one ``gh`` invocation."""

    returncode: int
    stdout: bytes
    stderr: str


def resolve_gh_path() -> str | None:
    return shutil.which("gh")


def make_subprocess_runner(
    gh_path: str, *, env: Mapping[str, str] | None = None
) -> GhRunner:
    """Runner executing ``gh`` as a subprocess with ``env`` layered over ours."""
    merged_env = {**os.environ, **(env or {})}

    async def run(args: list[str], stdin: bytes | None) -> GhResult:
        try:
            proc = await asyncio.create_subprocess_exec(
                gh_path,
                *args,
                stdin=asyncio.subprocess.PIPE if stdin is not None else asyncio.subprocess.DEVNULL,
                stdout=asyncio.subprocess.PIPE,
                stderr=asyncio.subprocess.PIPE,
                env=merged_env,
            )
        except OSError as exc:
            msg = f"cannot run gh: {exc}"
            raise NetworkError(msg) from exc
        try:
            stdout, stderr = await proc.communicate(stdin)
        except asyncio.CancelledError:
            if proc.returncode is None:
                proc.kill()
            raise
        return GhResult(proc.returncode or 0, stdout, stderr.decode("utf-8", errors="replace"))

    return run


def classify_gh_error(stderr: str) -> Exception:
    """Map ``gh api`` failure output onto the typed error taxonomy."""
    text = stderr.strip() or "gh api failed"
    lowered = text.lower()
    match = _HTTP_STATUS.search(text)
    status = int(match.group(1)) if match else None
    if status == 429 or "rate limit" in lowered:
        retry = _RETRY_AFTER.search(text)
        return RateLimitedError(text, float(retry.group(1)) if retry else None)
    if status == 401 or "gh auth login" in lowered or "authentication" in lowered:
        return AuthError(text)
    if status == 404:
        return NotFoundError(text)
    if status == 403:
        return AuthError(text)
    return NetworkError(text)


# ---------------------------------------------------------------------------
# Payload normalization
# ---------------------------------------------------------------------------


def _login(raw: Mapping[str, Any] | None) -> str:
    if not raw:
        return "unknown"
    return str(raw.get("login") or "unknown")


def _item_repo(item: Mapping[str, Any]) -> tuple[str, str]:
    """``owner, name`` of a search hit, from its ``repository_url``."""
    parts = (item.get("repository_url") or "unknown/unknown").rstrip("/").split("/")
    return parts[-2], parts[-1]


def parse_repo(raw: Mapping[str, Any]) -> Repository:
    return Repository(
        owner=_login(raw.get("owner")),
        name=raw["name"],
        description=raw.get("description"),
        url=raw.get("html_url") or "",
        stars=raw.get("stargazers_count") or 0,
        updated_at=raw.get("updated_at"),
    )


def _pr_state(raw: Mapping[str, Any]) -> PrState:
    if raw.get("merged_at") or raw.get("merged"):
        return PrState.MERGED
    return PrState.CLOSED if raw.get("state") == "closed" else PrState.OPEN


def parse_pr_summary(raw: Mapping[str, Any]) -> PrSummary:
    return PrSummary(
        number=raw["number"],
        title=raw.get("title") or "",
        state=_pr_state(raw),
        author=_login(raw.get("user")),
        url=raw.get("html_url") or "",
        updated_at=raw.get("updated_at"),
    )


def parse_pull_request(raw: Mapping[str, Any]) -> PullRequest:
    return PullRequest(
        number=raw["number"],
        title=raw.get("title") or "",
        body=raw.get("body"),
        state=_pr_state(raw),
        author=_login(raw.get("user")),
        head_branch=(raw.get("head") or {}).get("ref", ""),
        base_branch=(raw.get("base") or {}).get("ref", ""),
        url=raw.get("html_url") or "",
        stats=PrStats(
            additions=raw.get("additions") or 0,
            deletions=raw.get("deletions") or 0,
            changed_files=raw.get("changed_files") or 0,
            commits=raw.get("commits") or 0,
            comments=raw.get("comments") or 0,
        ),
        created_at=raw.get("created_at"),
        updated_at=raw.get("updated_at"),
        merged_at=raw.get("merged_at"),
        closed_at=raw.get("closed_at"),
    )


def parse_issue(raw: Mapping[str, Any]) -> Issue:
    return Issue(
        number=raw["number"],
        title=raw.get("title") or "",
        body=raw.get("body"),
        state=IssueState.CLOSED if raw.get("state") == "closed" else IssueState.OPEN,
        author=_login(raw.get("user")),
        labels=tuple(label["name"] for label in raw.get("labels") or () if "name" in label),
        comments=raw.get("comments") or 0,
        url=raw.get("html_url") or "",
        created_at=raw.get("created_at"),
        updated_at=raw.get("updated_at"),
    )


def parse_comment(raw: Mapping[str, Any]) -> Comment:
    return Comment(
        id=raw["id"],
        author=_login(raw.get("user")),
        body=raw.get("body") or "",
        created_at=raw.get("created_at"),
    )


def _commit_author(raw: Mapping[str, Any]) -> tuple[str, Any]:
    info = (raw.get("commit") or {}).get("author") or {}
    author = _login(raw.get("author")) if raw.get("author") else info.get("name") or "unknown"
    return author, info.get("date")


def parse_commit(raw: Mapping[str, Any]) -> Commit:
    author, date = _commit_author(raw)
    message = (raw.get("commit") or {}).get("message") or ""
    return Commit(
        sha=raw["sha"],
        message=message.split("\n", 1)[0],
        author=author,
        url=raw.get("html_url") or "",
        date=date,
    )


def parse_commit_detail(raw: Mapping[str, Any]) -> CommitDetail:
    author, date = _commit_author(raw)
    stats = raw.get("stats") or {}
    return CommitDetail(
        sha=raw["sha"],
        message=(raw.get("commit") or {}).get("message") or "",
        author=author,
        url=raw.get("html_url") or "",
        date=date,
        stats=CommitStats(
            additions=stats.get("additions") or 0,
            deletions=stats.get("deletions") or 0,
            total=stats.get("total") or 0,
        ),
        files=tuple(
            CommitFile(
                filename=f["filename"],
                status=f.get("status") or "modified",
                additions=f.get("additions") or 0,
                deletions=f.get("deletions") or 0,
                patch=f.get("patch"),
            )
            for f in raw.get("files") or ()
        ),
    )


def parse_action_run(raw: Mapping[str, Any]) -> ActionRun:
    status = raw.get("status")
    conclusion = raw.get("conclusion")
    return ActionRun(
        id=raw["id"],
        name=raw.get("name") or raw.get("display_title") or "",
        status=ActionStatus(status) if status in set(ActionStatus) else ActionStatus.QUEUED,
        conclusion=ActionConclusion(conclusion) if conclusion in set(ActionConclusion) else None,
        branch=raw.get("head_branch") or "",
        event=raw.get("event") or "",
        url=raw.get("html_url") or "",
        created_at=raw.get("created_at"),
    )


def aggregate_check_runs(runs: list[Mapping[str, Any]]) -> ChecksStatus:
    """Failure beats pending beats success; no runs at all is ``none``."""
    if not runs:
        return ChecksStatus.NONE
    pending = False
    for run in runs:
        if run.get("status") == "completed":
            if run.get("conclusion") in _FAILED_CONCLUSIONS:
                return ChecksStatus.FAILURE
        elif run.get("status") in ("queued", "in_progress"):
            pending = True
    return ChecksStatus.PENDING if pending else ChecksStatus.SUCCESS


# ---------------------------------------------------------------------------
# Backend
# ---------------------------------------------------------------------------


class GitHubForge(BaseForge):
    """GitHub (or GitHub Enterprise) reached through ``gh api``."""

    def __init__(
        self,
        name: str = "github",
        host: str = GITHUB_HOST,
        *,
        runner: GhRunner | None = None,
        token: str | None = None,
    ) -> None:
        self.name = name
        self.host = host
        if runner is None:
            gh_path = resolve_gh_path()
            if gh_path is None:
                msg = "GitHub CLI (gh) is not available. Install it from https://cli.github.com/"
                raise NetworkError(msg)
            runner = make_subprocess_runner(gh_path, env={"GH_TOKEN": token} if token else None)
        self._run = runner
        self._username: str | None = None

    def web_url(self, repo: str, kind: str, item: str = "") -> str:
        base = f"https://{self.host}/{repo}"
        match kind:
            case "pr":
                return f"{base}/pull/{item}"
            case "issue":
                return f"{base}/issues/{item}"
            case "commit":
                return f"{base}/commit/{item}"
            case "action_run":
                return f"{base}/actions/runs/{item}"
            case _:
                return base

    async def _api(
        self,
        path: str,
        *,
        method: str = "GET",
        body: Mapping[str, Any] | None = None,
        params: Mapping[str, str] | None = None,
        accept: str | None = None,
    ) -> bytes:
        args = ["api", "--hostname", self.host, "--method", method, path]
        for name, value in (params or {}).items():
            args += ["-f", f"{name}={value}"]
        if accept is not None:
            args += ["-H", accept]
        stdin = None
        if body is not None:
            args += ["--input", "-"]
            stdin = json.dumps(body).encode("utf-8")
        logger.debug("gh %s %s", method, path)
        result = await self._run(args, stdin)
        if result.returncode != 0:
            raise classify_gh_error(result.stderr)
        return result.stdout

    async def _json(self, path: str, **kwargs: Any) -> Any:
        raw = await self._api(path, **kwargs)
        if not raw.strip():
            return None
        try:
            return json.loads(raw)
        except json.JSONDecodeError as exc:
            msg = f"invalid JSON from {path}: {exc}"
            raise NetworkError(msg) from exc

    @staticmethod
    def _page(path: str, page: int) -> str:
        separator = "&" if "?" in path else "?"
        return f"{path}{separator}per_page={LIST_PAGE_SIZE}&page={page}"

    # -- identity and repositories -----------------------------------------

    async def get_current_user(self) -> str:
        if self._username is None:
            data = await self._json("/user")
            self._username = _login(data)
        return self._username

    async def list_repos(self, page: int = 1) -> list[Repository]:
        data = await self._json(self._page("/user/repos?sort=updated", page))
        return [parse_repo(item) for item in data or ()]

    async def get_repo(self, owner: str, repo: str) -> Repository:
        return parse_repo(await self._json(f"/repos/{owner}/{repo}"))

    # -- pull requests -------------------------------------------------------

    async def list_prs(self, owner: str, repo: str, page: int = 1) -> list[PrSummary]:
        data = await self._json(self._page(f"/repos/{owner}/{repo}/pulls?state=open", page))
        return [parse_pr_summary(item) for item in data or ()]

    async def get_pr(self, owner: str, repo: str, number: int) -> PullRequest:
        return parse_pull_request(await self._json(f"/repos/{owner}/{repo}/pulls/{number}"))

    async def get_pr_diff(self, owner: str, repo: str, number: int) -> str:
        raw = await self._api(f"/repos/{owner}/{repo}/pulls/{number}", accept=GH_DIFF_ACCEPT)
        return raw.decode("utf-8", errors="replace")

    async def merge_pr(self, owner: str, repo: str, number: int, method: MergeMethod) -> None:
        await self._api(
            f"/repos/{owner}/{repo}/pulls/{number}/merge",
            method="PUT",
            body={"merge_method": str(method)},
        )

    async def close_pr(self, owner: str, repo: str, number: int) -> None:
        await self._api(
            f"/repos/{owner}/{repo}/pulls/{number}", method="PATCH", body={"state": "closed"}
        )

    async def submit_review(
        self, owner: str, repo: str, number: int, event: ReviewEvent, body: str
    ) -> None:
        await self._api(
            f"/repos/{owner}/{repo}/pulls/{number}/reviews",
            method="POST",
            body={"event": str(event), "body": body},
        )

    async def get_check_status(self, owner: str, repo: str, number: int) -> ChecksStatus:
        pr = await self._json(f"/repos/{owner}/{repo}/pulls/{number}")
        sha = ((pr or {}).get("head") or {}).get("sha")
        if not sha:
            return ChecksStatus.NONE
        data = await self._json(f"/repos/{owner}/{repo}/commits/{sha}/check-runs")
        return aggregate_check_runs((data or {}).get("check_runs") or [])

    # -- issues and comments -------------------------------------------------

    async def list_issues(self, owner: str, repo: str, page: int = 1) -> list[Issue]:
        data = await self._json(self._page(f"/repos/{owner}/{repo}/issues?state=open", page))
        # The issues endpoint also returns pull requests.
        return [parse_issue(item) for item in data or () if "pull_request" not in item]

    async def get_issue(self, owner: str, repo: str, number: int) -> Issue:
        return parse_issue(await self._json(f"/repos/{owner}/{repo}/issues/{number}"))

    async def close_issue(self, owner: str, repo: str, number: int) -> None:
        await self._api(
            f"/repos/{owner}/{repo}/issues/{number}", method="PATCH", body={"state": "closed"}
        )

    async def list_comments(self, owner: str, repo: str, number: int) -> list[Comment]:
        data = await self._json(f"/repos/{owner}/{repo}/issues/{number}/comments")
        return [parse_comment(item) for item in data or ()]

    async def create_comment(self, owner: str, repo: str, number: int, body: str) -> None:
        await self._api(
            f"/repos/{owner}/{repo}/issues/{number}/comments", method="POST", body={"body": body}
        )

    # -- commits and actions -------------------------------------------------

    async def list_commits(self, owner: str, repo: str, page: int = 1) -> list[Commit]:
        data = await self._json(self._page(f"/repos/{owner}/{repo}/commits", page))
        return [parse_commit(item) for item in data or ()]

    async def get_commit(self, owner: str, repo: str, sha: str) -> CommitDetail:
        return parse_commit_detail(await self._json(f"/repos/{owner}/{repo}/commits/{sha}"))

    async def list_action_runs(self, owner: str, repo: str, page: int = 1) -> list[ActionRun]:
        data = await self._json(self._page(f"/repos/{owner}/{repo}/actions/runs", page))
        return [parse_action_run(item) for item in (data or {}).get("workflow_runs") or ()]

    # -- home ------------------------------------------------------------------

    async def _search(self, query: str) -> list[Mapping[str, Any]]:
        data = await self._json(
            "/search/issues", params={"q": query, "per_page": str(LIST_PAGE_SIZE)}
        )
        return list((data or {}).get("items") or ())

    async def list_review_requests(self, username: str) -> list[ReviewRequest]:
        items = await self._search(f"is:pr is:open review-requested:{username}")
        requests = []
        for item in items:
            owner, name = _item_repo(item)
            requests.append(
                ReviewRequest(
                    repo_owner=owner,
                    repo_name=name,
                    pr_number=item["number"],
                    pr_title=item.get("title") or "",
                    author=_login(item.get("user")),
                    url=item.get("html_url") or "",
                    updated_at=item.get("updated_at"),
                )
            )
        return requests

    async def list_my_prs(self, username: str) -> list[MyPr]:
        items = await self._search(f"is:pr is:open author:{username}")
        located = [(_item_repo(item), item) for item in items]
        statuses = await asyncio.gather(
            *(self.get_check_status(o, n, item["number"]) for (o, n), item in located),
            return_exceptions=True,
        )
        my_prs = []
        for ((owner, name), item), status in zip(located, statuses, strict=True):
            if isinstance(status, BaseException):
                number = item["number"]
                logger.debug("Checks for %s/%s#%s unavailable: %s", owner, name, number, status)
                status = ChecksStatus.NONE
            my_prs.append(
                MyPr(
                    repo_owner=owner,
                    repo_name=name,
                    number=item["number"],
                    title=item.get("title") or "",
                    checks_status=status,
                    url=item.get("html_url") or "",
                    updated_at=item.get("updated_at"),
                )
            )
        return my_prs
