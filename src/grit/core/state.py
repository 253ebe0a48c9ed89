"""Application state and the reducer that owns it.

``transition(state, message)`` is the only way state changes. It is pure: it
performs no I/O and touches neither the cache nor the network. Everything it
wants done comes back as a list of commands for the dispatcher.

Task results carry the epoch they were issued under and are dropped unless
that epoch is still current. The epoch moves on push, on pop and on any
replace that changes the focused entity, in the same transition that changes
the stack, so no result for a previous entity can be applied afterwards.
"""

from __future__ import annotations

from dataclasses import dataclass, field, replace
from typing import TYPE_CHECKING, Any, TypeAlias

from grit.core.keys import ResourceKey
from grit.core.messages import (
    AddComment,
    ClearSearch,
    CloseIssue,
    CloseItem,
    ClosePr,
    CopyClipboard,
    CopyUrl,
    DismissFlash,
    Failure,
    Fetch,
    Merge,
    MergePr,
    MoveSelection,
    Mutate,
    OpenExternal,
    OpenInBrowser,
    Pop,
    PostComment,
    Push,
    Quit,
    Refresh,
    Replace,
    Review,
    ScreenRef,
    Select,
    SetSearch,
    SubmitReview,
    Success,
    SwitchTab,
    UiEvent,
    ViewDiff,
)
from grit.core.models.entities import (
    ActionRun,
    Commit,
    HomeData,
    Issue,
    MyPr,
    PrSummary,
    PullRequest,
    Repository,
    ReviewRequest,
)
from grit.core.models.enums import (
    IssueState,
    MutationKind,
    PrState,
    RepoTab,
    ResourceKind,
    ScreenKind,
)

if TYPE_CHECKING:
    from collections.abc import Mapping, Sequence

    from grit.core.messages import Command, Intent, Message, Mutation

Transition: TypeAlias = "tuple[AppState, list[Command]]"

MUTATION_PROGRESS: dict[MutationKind, str] = {
    MutationKind.MERGE_PR: "Merging PR…",
    MutationKind.CLOSE_PR: "Closing PR…",
    MutationKind.CLOSE_ISSUE: "Closing issue…",
    MutationKind.COMMENT: "Posting comment…",
    MutationKind.SUBMIT_REVIEW: "Submitting review…",
}

MUTATION_DONE: dict[MutationKind, str] = {
    MutationKind.MERGE_PR: "PR merged!",
    MutationKind.CLOSE_PR: "PR closed.",
    MutationKind.CLOSE_ISSUE: "Issue closed.",
    MutationKind.COMMENT: "Comment posted.",
    MutationKind.SUBMIT_REVIEW: "Review submitted.",
}


@dataclass(frozen=True, slots=True)
class Screen:
    """One entry of the navigation stack.

    Screens address what they show by :class:`ResourceKey` and keep their own
    copy of the payloads delivered for their watched keys, so the stack never
    references the cache.
    """

    kind: ScreenKind
    key: ResourceKey
    tab: RepoTab = RepoTab.PULL_REQUESTS
    data: Mapping[ResourceKey, Any] = field(default_factory=dict)
    index: int = 0
    status: str | None = None
    loading: frozenset[ResourceKey] = frozenset()
    stale: frozenset[ResourceKey] = frozenset()
    pending: MutationKind | None = None

    def watched_keys(self) -> tuple[ResourceKey, ...]:
        """Keys whose payloads this screen renders, primary key first."""
        match self.kind:
            case ScreenKind.REPO_VIEW:
                return (self.key, self.list_key)
            case ScreenKind.PR_DETAIL:
                return (
                    self.key,
                    self.key.sibling(ResourceKind.CHECKS),
                    self.key.sibling(ResourceKind.COMMENTS),
                )
            case ScreenKind.ISSUE_DETAIL:
                return (self.key, self.key.sibling(ResourceKind.COMMENTS))
            case _:
                return (self.key,)

    @property
    def list_key(self) -> ResourceKey:
        if self.kind is ScreenKind.REPO_VIEW:
            return self.key.sibling(self.tab.resource_kind)
        return self.key

    @property
    def item(self) -> Any:
        """Payload of the primary key, or ``None`` until it arrives."""
        return self.data.get(self.key)

    def rows(self) -> tuple[Any, ...]:
        """Selectable rows before search filtering."""
        match self.kind:
            case ScreenKind.HOME:
                home = self.data.get(self.key)
                if not isinstance(home, HomeData):
                    return ()
                return (*home.review_requests, *home.my_prs)
            case ScreenKind.REPO_LIST | ScreenKind.REPO_VIEW:
                return tuple(self.data.get(self.list_key) or ())
            case _:
                return ()


@dataclass(frozen=True, slots=True)
class AppState:
    provider: str
    stack: tuple[Screen, ...]
    epoch: int = 0
    search: str = ""
    flash: str | None = None
    should_quit: bool = False

    @property
    def top(self) -> Screen:
        return self.stack[-1]

    @property
    def focus(self) -> ResourceKey:
        """The entity the user is looking at."""
        return self.top.key

    @property
    def loading(self) -> bool:
        return bool(self.top.loading)

    def visible_rows(self) -> tuple[Any, ...]:
        return filter_rows(self.top.rows(), self.search)

    def selected_row(self) -> Any:
        rows = self.visible_rows()
        if not rows:
            return None
        return rows[min(self.top.index, len(rows) - 1)]


def row_text(row: Any) -> str:
    """Text that search terms are matched against."""
    match row:
        case Repository():
            return f"{row.full_name} {row.description or ''}"
        case Commit():
            return row.message
        case ActionRun():
            return row.name
        case ReviewRequest():
            return row.pr_title
        case PrSummary() | Issue() | MyPr():
            return row.title
        case _:
            return str(row)


def filter_rows(rows: Sequence[Any], term: str) -> tuple[Any, ...]:
    needle = term.strip().lower()
    if not needle:
        return tuple(rows)
    return tuple(row for row in rows if needle in row_text(row).lower())


def initial_state(provider: str, root: ScreenKind = ScreenKind.HOME) -> Transition:
    """Boot state with ``root`` as the only screen, plus the fetches it needs."""
    screen, commands = _load(_open(provider, ScreenRef(root)))
    return AppState(provider=provider, stack=(screen,)), commands


def transition(state: AppState, message: Message) -> Transition:
    match message:
        case UiEvent(intent=intent):
            return _apply_intent(state, intent)
        case Success() | Failure() if message.epoch != state.epoch:
            return state, []
        case Success():
            return _apply_success(state, message)
        case Failure():
            return _apply_failure(state, message), []
        case _:
            return state, []


# ---------------------------------------------------------------------------
# Task results
# ---------------------------------------------------------------------------


def _apply_success(state: AppState, message: Success) -> Transition:
    command = message.command
    top = state.top
    match command:
        case Fetch(key=key):
            if key not in top.watched_keys():
                return state, []
            refreshing = message.from_cache and (message.stale or command.revalidate)
            screen = replace(
                top,
                data={**top.data, key: message.payload},
                loading=top.loading if refreshing else top.loading - {key},
                stale=top.stale | {key} if message.stale else top.stale - {key},
            )
            return _with_top(state, screen), []
        case Mutate(mutation=mutation):
            screen, commands = _load(replace(top, pending=None, status=None))
            state = replace(state, flash=MUTATION_DONE[mutation.kind])
            return _with_top(state, screen), commands
        case CopyClipboard():
            return replace(state, flash="Copied to clipboard."), []
        case _:
            return state, []


def _apply_failure(state: AppState, message: Failure) -> AppState:
    top = state.top
    status = message.error.describe()
    match message.command:
        case Fetch(key=key):
            if key not in top.watched_keys():
                return state
            return _with_top(state, replace(top, status=status, loading=top.loading - {key}))
        case Mutate():
            return _with_top(state, replace(top, status=status, pending=None))
        case _:
            return _with_top(state, replace(top, status=status))


# ---------------------------------------------------------------------------
# User intents
# ---------------------------------------------------------------------------


def _apply_intent(state: AppState, intent: Intent) -> Transition:
    top = state.top
    match intent:
        case Push(screen=ref):
            return _navigate(state, (*state.stack, _open(state.provider, ref)), bump=True)
        case Pop():
            if len(state.stack) == 1:
                return replace(state, should_quit=True), []
            return _navigate(state, state.stack[:-1], bump=True)
        case Replace(screen=ref):
            screen = _open(state.provider, ref)
            return _navigate(state, (*state.stack[:-1], screen), bump=screen.key != top.key)
        case SwitchTab(tab=tab):
            if top.kind is not ScreenKind.REPO_VIEW:
                return state, []
            screen = replace(top, tab=tab or top.tab.next(), index=0, status=None)
            screen, commands = _load(screen)
            return replace(_with_top(state, screen), search=""), commands
        case MoveSelection(delta=delta):
            count = len(state.visible_rows())
            index = max(0, min(top.index + delta, count - 1)) if count else 0
            return _with_top(state, replace(top, index=index)), []
        case Select():
            return _select(state)
        case SetSearch(term=term):
            return replace(_with_top(state, replace(top, index=0)), search=term), []
        case ClearSearch():
            return replace(_with_top(state, replace(top, index=0)), search=""), []
        case Refresh():
            screen, commands = _load(replace(top, status=None), revalidate=True)
            return _with_top(state, screen), commands
        case Merge(method=method):
            return _mutate(state, ScreenKind.PR_DETAIL, MergePr(method))
        case CloseItem():
            if top.kind is ScreenKind.ISSUE_DETAIL:
                return _mutate(state, ScreenKind.ISSUE_DETAIL, CloseIssue())
            return _mutate(state, ScreenKind.PR_DETAIL, ClosePr())
        case AddComment(body=body):
            if not body.strip():
                return _hint(state, "Comment is empty."), []
            kind = top.kind if top.kind is ScreenKind.ISSUE_DETAIL else ScreenKind.PR_DETAIL
            return _mutate(state, kind, PostComment(body.strip()))
        case Review(event=event, body=body):
            return _mutate(state, ScreenKind.PR_DETAIL, SubmitReview(event, body))
        case OpenInBrowser():
            url = _focused_url(state)
            if not url:
                return _hint(state, "Nothing to open."), []
            return state, [OpenExternal(url)]
        case CopyUrl():
            url = _focused_url(state)
            if not url:
                return _hint(state, "Nothing to copy."), []
            return state, [CopyClipboard(url)]
        case ViewDiff():
            return _view_diff(state)
        case DismissFlash():
            return replace(state, flash=None), []
        case Quit():
            return replace(state, should_quit=True), []
        case _:
            return state, []


def _navigate(state: AppState, stack: tuple[Screen, ...], *, bump: bool) -> Transition:
    # A mutation issued before leaving the revealed screen reports under an old epoch.
    screen, commands = _load(replace(stack[-1], status=None, pending=None))
    state = replace(
        state,
        stack=(*stack[:-1], screen),
        epoch=state.epoch + 1 if bump else state.epoch,
        search="",
    )
    return state, commands


def _view_diff(state: AppState) -> Transition:
    top = state.top
    match top.kind:
        case ScreenKind.PR_DETAIL:
            key = top.key.sibling(ResourceKind.PR_DIFF)
        case ScreenKind.COMMIT_DETAIL:
            key = top.key
        case _:
            return _hint(state, "Open a pull request or commit first."), []
    return _apply_intent(state, Push(ScreenRef(ScreenKind.DIFF, key)))


def _select(state: AppState) -> Transition:
    top = state.top
    row = state.selected_row()
    if row is None:
        return state, []
    if isinstance(row, ActionRun):
        if not row.url:
            return _hint(state, "Nothing to open."), []
        return state, [OpenExternal(row.url)]
    ref = _target_of(state.provider, top, row)
    if ref is None:
        return state, []
    return _apply_intent(state, Push(ref))


def _target_of(provider: str, screen: Screen, row: Any) -> ScreenRef | None:
    match row:
        case Repository():
            key = ResourceKey.listing(provider, row.full_name, ResourceKind.REPO)
            return ScreenRef(ScreenKind.REPO_VIEW, key)
        case ReviewRequest():
            repo = f"{row.repo_owner}/{row.repo_name}"
            return ScreenRef(ScreenKind.PR_DETAIL, ResourceKey.pr(provider, repo, row.pr_number))
        case MyPr():
            repo = f"{row.repo_owner}/{row.repo_name}"
            return ScreenRef(ScreenKind.PR_DETAIL, ResourceKey.pr(provider, repo, row.number))
        case PrSummary():
            return ScreenRef(ScreenKind.PR_DETAIL, screen.key.sibling(ResourceKind.PR, row.number))
        case Issue():
            key = screen.key.sibling(ResourceKind.ISSUE, row.number)
            return ScreenRef(ScreenKind.ISSUE_DETAIL, key)
        case Commit():
            key = screen.key.sibling(ResourceKind.COMMIT, row.sha)
            return ScreenRef(ScreenKind.COMMIT_DETAIL, key)
        case _:
            return None


def _mutate(state: AppState, applies_to: ScreenKind, mutation: Mutation) -> Transition:
    top = state.top
    if top.kind is not applies_to:
        noun = "pull request" if applies_to is ScreenKind.PR_DETAIL else "issue"
        return _hint(state, f"Open a {noun} first."), []
    if top.pending is not None:
        return _hint(state, MUTATION_PROGRESS[top.pending]), []
    refusal = _refusal(top.item, mutation)
    if refusal:
        return _hint(state, refusal), []
    screen = replace(top, pending=mutation.kind, status=MUTATION_PROGRESS[mutation.kind])
    return _with_top(state, screen), [Mutate(top.key, mutation)]


def _refusal(item: Any, mutation: Mutation) -> str | None:
    """Why ``mutation`` cannot apply to the loaded ``item``, if it cannot."""
    if isinstance(item, PullRequest) and isinstance(mutation, MergePr | ClosePr):
        if item.state is not PrState.OPEN:
            return f"PR is {item.state}."
    if isinstance(item, Issue) and isinstance(mutation, CloseIssue):
        if item.state is IssueState.CLOSED:
            return "Issue is already closed."
    return None


def _focused_url(state: AppState) -> str:
    top = state.top
    if top.kind in (ScreenKind.HOME, ScreenKind.REPO_LIST, ScreenKind.REPO_VIEW):
        row = state.selected_row()
        if row is None and top.kind is ScreenKind.REPO_VIEW:
            row = top.item
    else:
        row = top.item
    return getattr(row, "url", "") or ""


# ---------------------------------------------------------------------------
# Helpers
# ---------------------------------------------------------------------------


def _open(provider: str, ref: ScreenRef) -> Screen:
    key = ref.key
    if key is None:
        match ref.kind:
            case ScreenKind.HOME:
                key = ResourceKey.home(provider)
            case ScreenKind.REPO_LIST:
                key = ResourceKey.repos(provider)
            case _:
                msg = f"{ref.kind} screen requires a key"
                raise ValueError(msg)
    return Screen(ref.kind, key, tab=ref.tab)


def _load(screen: Screen, *, revalidate: bool = False) -> tuple[Screen, list[Command]]:
    """Mark the screen's watched keys loading and fetch each of them."""
    keys = screen.watched_keys()
    commands: list[Command] = [Fetch(key, revalidate=revalidate) for key in keys]
    return replace(screen, loading=frozenset(keys)), commands


def _with_top(state: AppState, screen: Screen) -> AppState:
    return replace(state, stack=(*state.stack[:-1], screen))


def _hint(state: AppState, text: str) -> AppState:
    return _with_top(state, replace(state.top, status=text))
