"""Hypothesis stateful tests for navigation epochs and stale-result discard."""

from __future__ import annotations

import pytest
from hypothesis import strategies as st
from hypothesis.stateful import RuleBasedStateMachine, invariant, precondition, rule

from grit.core.keys import ResourceKey
from grit.core.messages import Fetch, MoveSelection, Pop, Push, ScreenRef, Success, UiEvent
from grit.core.models.enums import ScreenKind
from grit.core.state import initial_state, transition
from tests.helpers import PROVIDER, REPO, make_pr

pytestmark = pytest.mark.unit

_numbers = st.integers(min_value=1, max_value=5)


class NavigationMachine(RuleBasedStateMachine):
    """Random push/pop/result interleavings against the reducer."""

    def __init__(self) -> None:
        super().__init__()
        self.state, commands = initial_state(PROVIDER)
        # (epoch, key) of every fetch issued so far
        self.issued: list[tuple[int, ResourceKey]] = [(0, c.key) for c in commands]
        self.previous_epoch = 0

    def _apply(self, message) -> None:
        self.previous_epoch = self.state.epoch
        self.state, commands = transition(self.state, message)
        self.issued.extend((self.state.epoch, c.key) for c in commands if isinstance(c, Fetch))

    @rule(number=_numbers)
    def push_pr(self, number: int) -> None:
        key = ResourceKey.pr(PROVIDER, REPO, number)
        depth = len(self.state.stack)
        self._apply(UiEvent(Push(ScreenRef(ScreenKind.PR_DETAIL, key))))
        assert len(self.state.stack) == depth + 1
        assert self.state.epoch == self.previous_epoch + 1

    @precondition(lambda self: len(self.state.stack) > 1)
    @rule()
    def pop(self) -> None:
        self._apply(UiEvent(Pop()))
        assert self.state.epoch == self.previous_epoch + 1

    @rule(delta=st.integers(min_value=-3, max_value=3))
    def move(self, delta: int) -> None:
        self._apply(UiEvent(MoveSelection(delta)))
        assert self.state.epoch == self.previous_epoch

    @precondition(lambda self: bool(self.issued))
    @rule(data=st.data())
    def deliver_some_result(self, data: st.DataObject) -> None:
        epoch, key = data.draw(st.sampled_from(self.issued))
        before = self.state
        payload = make_pr(int(key.number)) if key.number and key.kind == "pr" else None
        self._apply(Success(task_id=0, epoch=epoch, command=Fetch(key), payload=payload))
        if epoch != before.epoch:
            assert self.state == before

    @invariant()
    def stack_is_never_empty(self) -> None:
        assert self.state.stack
        assert self.state.stack[0].kind is ScreenKind.HOME

    @invariant()
    def top_data_only_holds_watched_keys(self) -> None:
        top = self.state.top
        assert set(top.data) <= set(top.watched_keys())


TestNavigationMachine = NavigationMachine.TestCase
