"""Command, Task and Message vocabulary of the engine.

The reducer emits :data:`Command` values, the dispatcher binds each one to an
epoch as a :class:`Task`, and every task reports back exactly one
:data:`Message`. User input enters the same channel as :class:`UiEvent`.
"""

from __future__ import annotations

import itertools
from dataclasses import dataclass, field
from typing import TYPE_CHECKING, Any, TypeAlias

from grit.core.models.enums import (
    MergeMethod,
    MutationKind,
    RepoTab,
    ReviewEvent,
    ScreenKind,
)

if TYPE_CHECKING:
    from grit.core.errors import FailureDetail
    from grit.core.keys import ResourceKey


# ---------------------------------------------------------------------------
# Mutations
# ---------------------------------------------------------------------------


@dataclass(frozen=True, slots=True)
class MergePr:
    method: MergeMethod = MergeMethod.MERGE
    kind: MutationKind = field(default=MutationKind.MERGE_PR, init=False)


@dataclass(frozen=True, slots=True)
class ClosePr:
    kind: MutationKind = field(default=MutationKind.CLOSE_PR, init=False)


@dataclass(frozen=True, slots=True)
class CloseIssue:
    kind: MutationKind = field(default=MutationKind.CLOSE_ISSUE, init=False)


@dataclass(frozen=True, slots=True)
class PostComment:
    body: str
    kind: MutationKind = field(default=MutationKind.COMMENT, init=False)


@dataclass(frozen=True, slots=True)
class SubmitReview:
    event: ReviewEvent
    body: str = ""
    kind: MutationKind = field(default=MutationKind.SUBMIT_REVIEW, init=False)


Mutation: TypeAlias = MergePr | ClosePr | CloseIssue | PostComment | SubmitReview


# ---------------------------------------------------------------------------
# Commands (reducer -> dispatcher)
# ---------------------------------------------------------------------------


@dataclass(frozen=True, slots=True)
class Fetch:
    """Load ``key``; ``revalidate`` forces a background refresh even when fresh."""

    key: ResourceKey
    revalidate: bool = False


@dataclass(frozen=True, slots=True)
class Mutate:
    key: ResourceKey
    mutation: Mutation


@dataclass(frozen=True, slots=True)
class OpenExternal:
    url: str


@dataclass(frozen=True, slots=True)
class CopyClipboard:
    text: str


Command: TypeAlias = Fetch | Mutate | OpenExternal | CopyClipboard


# ---------------------------------------------------------------------------
# Screens and intents (user input)
# ---------------------------------------------------------------------------


@dataclass(frozen=True, slots=True)
class ScreenRef:
    """Address of a screen to open: what kind, showing which entity."""

    kind: ScreenKind
    key: ResourceKey | None = None
    tab: RepoTab = RepoTab.PULL_REQUESTS


@dataclass(frozen=True, slots=True)
class Push:
    screen: ScreenRef


@dataclass(frozen=True, slots=True)
class Pop:
    pass


@dataclass(frozen=True, slots=True)
class Replace:
    screen: ScreenRef


@dataclass(frozen=True, slots=True)
class SwitchTab:
    tab: RepoTab | None = None  # None cycles to the next tab


@dataclass(frozen=True, slots=True)
class MoveSelection:
    delta: int


@dataclass(frozen=True, slots=True)
class Select:
    pass


@dataclass(frozen=True, slots=True)
class SetSearch:
    term: str


@dataclass(frozen=True, slots=True)
class ClearSearch:
    pass


@dataclass(frozen=True, slots=True)
class Refresh:
    pass


@dataclass(frozen=True, slots=True)
class Merge:
    method: MergeMethod = MergeMethod.MERGE


@dataclass(frozen=True, slots=True)
class CloseItem:
    pass


@dataclass(frozen=True, slots=True)
class AddComment:
    body: str


@dataclass(frozen=True, slots=True)
class Review:
    event: ReviewEvent
    body: str = ""


@dataclass(frozen=True, slots=True)
class OpenInBrowser:
    pass


@dataclass(frozen=True, slots=True)
class CopyUrl:
    pass


@dataclass(frozen=True, slots=True)
class ViewDiff:
    """Show the patch of the open pull request or commit."""


@dataclass(frozen=True, slots=True)
class DismissFlash:
    pass


@dataclass(frozen=True, slots=True)
class Quit:
    pass


Intent: TypeAlias = (
    Push
    | Pop
    | Replace
    | SwitchTab
    | MoveSelection
    | Select
    | SetSearch
    | ClearSearch
    | Refresh
    | Merge
    | CloseItem
    | AddComment
    | Review
    | OpenInBrowser
    | CopyUrl
    | ViewDiff
    | DismissFlash
    | Quit
)


# ---------------------------------------------------------------------------
# Tasks and messages (dispatcher -> reducer)
# ---------------------------------------------------------------------------

_task_ids = itertools.count(1)


def next_task_id() -> int:
    return next(_task_ids)


@dataclass(frozen=True, slots=True)
class Task:
    """A command bound to the epoch that was current when it was produced."""

    command: Command
    epoch: int
    task_id: int = field(default_factory=next_task_id)

    @property
    def dedup_key(self) -> ResourceKey | None:
        if isinstance(self.command, Fetch | Mutate):
            return self.command.key
        return None


@dataclass(frozen=True, slots=True)
class Success:
    task_id: int
    epoch: int
    command: Command
    payload: Any = None
    fetched_at: float | None = None
    from_cache: bool = False
    stale: bool = False

    @property
    def key(self) -> ResourceKey | None:
        if isinstance(self.command, Fetch | Mutate):
            return self.command.key
        return None


@dataclass(frozen=True, slots=True)
class Failure:
    task_id: int
    epoch: int
    command: Command
    error: FailureDetail

    @property
    def key(self) -> ResourceKey | None:
        if isinstance(self.command, Fetch | Mutate):
            return self.command.key
        return None


@dataclass(frozen=True, slots=True)
class UiEvent:
    """User input. Not produced by a task, so never subject to epoch checks."""

    intent: Intent


TaskResult: TypeAlias = Success | Failure
Message: TypeAlias = Success | Failure | UiEvent
