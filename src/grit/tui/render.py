"""Render :class:`AppState` into Rich renderables. No Textual dependencies."""

from __future__ import annotations

from typing import TYPE_CHECKING, Any

from rich.console import Group
from rich.table import Table
from rich.text import Text

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
from grit.core.models.enums import ChecksStatus, RepoTab, ResourceKind, ScreenKind

if TYPE_CHECKING:
    from datetime import datetime

    from rich.console import RenderableType

    from grit.core.state import AppState, Screen

_TAB_LABELS = {
    RepoTab.PULL_REQUESTS: "Pull requests",
    RepoTab.ISSUES: "Issues",
    RepoTab.COMMITS: "Commits",
    RepoTab.ACTIONS: "Actions",
}


def _when(value: datetime | None) -> str:
    return value.strftime("%Y-%m-%d %H:%M") if value else ""


def screen_title(state: AppState) -> str:
    top = state.top
    match top.kind:
        case ScreenKind.HOME:
            return f"{state.provider} · Home"
        case ScreenKind.REPO_LIST:
            return f"{state.provider} · Repositories"
        case ScreenKind.REPO_VIEW:
            return f"{top.key.repo} · {_TAB_LABELS[top.tab]}"
        case ScreenKind.PR_DETAIL:
            return f"{top.key.repo} · PR #{top.key.number}"
        case ScreenKind.ISSUE_DETAIL:
            return f"{top.key.repo} · Issue #{top.key.number}"
        case ScreenKind.COMMIT_DETAIL:
            return f"{top.key.repo} · {str(top.key.number)[:7]}"
        case ScreenKind.DIFF if top.key.kind is ResourceKind.PR_DIFF:
            return f"{top.key.repo} · PR #{top.key.number} diff"
        case ScreenKind.DIFF:
            return f"{top.key.repo} · {str(top.key.number)[:7]} diff"
        case _:
            return state.provider


def row_cells(row: Any) -> tuple[str, ...]:
    match row:
        case Repository():
            return (row.full_name, row.description or "", f"★ {row.stars}")
        case PrSummary():
            return (f"#{row.number}", row.title, row.author, str(row.state))
        case Issue():
            return (f"#{row.number}", row.title, row.author, ", ".join(row.labels))
        case Commit():
            return (row.sha[:7], row.message, row.author, _when(row.date))
        case ActionRun():
            outcome = row.conclusion or row.status
            return (row.name, row.branch, row.event, str(outcome))
        case ReviewRequest():
            repo = f"{row.repo_owner}/{row.repo_name}"
            return ("review", f"{repo}#{row.pr_number}", row.pr_title, row.author)
        case MyPr():
            repo = f"{row.repo_owner}/{row.repo_name}"
            return ("mine", f"{repo}#{row.number}", row.title, row.checks_status.symbol)
        case _:
            return (str(row),)


def render_rows(state: AppState) -> RenderableType:
    rows = state.visible_rows()
    if not rows:
        return Text("Loading…" if state.loading else "Nothing here.", style="dim")
    table = Table(show_header=False, box=None, expand=True, pad_edge=False)
    selected = min(state.top.index, len(rows) - 1)
    for index, row in enumerate(rows):
        table.add_row(*row_cells(row), style="reverse" if index == selected else None)
    return table


def _comments(screen: Screen) -> list[RenderableType]:
    comments: tuple[Comment, ...] = screen.data.get(screen.key.sibling(ResourceKind.COMMENTS)) or ()
    parts: list[RenderableType] = [Text(f"\nComments ({len(comments)})", style="bold")]
    for comment in comments:
        parts.append(Text(f"{comment.author} · {_when(comment.created_at)}", style="cyan"))
        parts.append(Text(comment.body))
    return parts


def render_pull_request(screen: Screen) -> RenderableType:
    pr = screen.item
    if not isinstance(pr, PullRequest):
        return Text("Loading…", style="dim")
    checks = screen.data.get(screen.key.sibling(ResourceKind.CHECKS), ChecksStatus.NONE)
    stats = pr.stats
    header = Text.assemble(
        (f"#{pr.number} {pr.title}\n", "bold"),
        f"{pr.state} · {pr.author} wants to merge {pr.head_branch} into {pr.base_branch}\n",
        f"+{stats.additions} -{stats.deletions} · {stats.changed_files} files · ",
        f"{stats.commits} commits · checks {ChecksStatus(checks).symbol}",
    )
    return Group(header, Text(""), Text(pr.body or "No description."), *_comments(screen))


def render_issue(screen: Screen) -> RenderableType:
    issue = screen.item
    if not isinstance(issue, Issue):
        return Text("Loading…", style="dim")
    labels = f" · {', '.join(issue.labels)}" if issue.labels else ""
    header = Text.assemble(
        (f"#{issue.number} {issue.title}\n", "bold"),
        f"{issue.state} · opened by {issue.author}{labels}",
    )
    return Group(header, Text(""), Text(issue.body or "No description."), *_comments(screen))


def render_commit(screen: Screen) -> RenderableType:
    commit = screen.item
    if not isinstance(commit, CommitDetail):
        return Text("Loading…", style="dim")
    header = Text.assemble(
        (f"{commit.sha}\n", "bold"),
        f"{commit.author} · {_when(commit.date)} · ",
        f"+{commit.stats.additions} -{commit.stats.deletions}",
    )
    files = Table(show_header=False, box=None, pad_edge=False)
    for changed in commit.files:
        counts = f"+{changed.additions} -{changed.deletions}"
        files.add_row(changed.status, changed.filename, counts)
    return Group(header, Text(""), Text(commit.message), Text(""), files)


def diff_text(payload: Any) -> str | None:
    """Unified diff of a PR diff payload or of a commit's file patches."""
    match payload:
        case str():
            return payload
        case CommitDetail():
            return "".join(
                f"diff --git a/{changed.filename} b/{changed.filename}\n{changed.patch}\n"
                for changed in payload.files
                if changed.patch
            )
        case _:
            return None


def _diff_style(line: str) -> str | None:
    if line.startswith(("+++", "---", "diff --git")):
        return "bold"
    if line.startswith("@@"):
        return "cyan"
    if line.startswith("+"):
        return "green"
    if line.startswith("-"):
        return "red"
    return None


def render_diff(screen: Screen) -> RenderableType:
    diff = diff_text(screen.item)
    if diff is None:
        return Text("Loading…", style="dim")
    if not diff.strip():
        return Text("No changes.", style="dim")
    text = Text()
    for line in diff.splitlines():
        text.append(line + "\n", style=_diff_style(line))
    return text


def render_body(state: AppState) -> RenderableType:
    top = state.top
    match top.kind:
        case ScreenKind.PR_DETAIL:
            return render_pull_request(top)
        case ScreenKind.ISSUE_DETAIL:
            return render_issue(top)
        case ScreenKind.COMMIT_DETAIL:
            return render_commit(top)
        case ScreenKind.DIFF:
            return render_diff(top)
        case _:
            return render_rows(state)


def render_status(state: AppState) -> Text:
    """Status line: flash first, then the screen's status, then cache hints."""
    top = state.top
    if state.flash:
        return Text(state.flash, style="bold green")
    if top.status:
        return Text(top.status, style="bold yellow" if top.pending else "bold red")
    parts: list[str] = []
    if state.search:
        parts.append(f"/{state.search}")
    if top.loading:
        parts.append("refreshing…" if top.stale or top.data else "loading…")
    elif top.stale:
        parts.append("cached")
    return Text(" · ".join(parts), style="dim")
