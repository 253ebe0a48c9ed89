"""End-to-end engine scenarios over the fake forge, the real cache and the reducer."""

from __future__ import annotations

from typing import TYPE_CHECKING

import pytest

from grit.core.errors import AuthError
from grit.core.keys import ResourceKey
from grit.core.messages import (
    AddComment,
    Fetch,
    Merge,
    Pop,
    Push,
    Quit,
    Refresh,
    ScreenRef,
    Success,
    SwitchTab,
    ViewDiff,
)
from grit.core.models.entities import HomeData
from grit.core.models.enums import MutationKind, PrState, RepoTab, ResourceKind, ScreenKind
from tests.helpers import PROVIDER, REPO, make_pr, make_summary, settle_loop, wait_until

if TYPE_CHECKING:
    from collections.abc import Callable

    from grit.core.cache import CacheManager
    from grit.core.runtime import Engine
    from tests.helpers import FakeClock, FakeForge

pytestmark = pytest.mark.unit

PR_KEY = ResourceKey.pr(PROVIDER, REPO, 42)
REPO_KEY = ResourceKey.listing(PROVIDER, REPO, ResourceKind.REPO)
PR_LIST_KEY = REPO_KEY.sibling(ResourceKind.PR_LIST)

PR_SCREEN = ScreenRef(ScreenKind.PR_DETAIL, PR_KEY)
REPO_SCREEN = ScreenRef(ScreenKind.REPO_VIEW, REPO_KEY)


async def booted(engine: Engine) -> Engine:
    engine.boot()
    await engine.settle()
    return engine


async def applied_until(engine: Engine, predicate: Callable[[], bool], description: str) -> None:
    """Apply queued messages as they arrive until ``predicate`` holds."""

    def check() -> bool:
        engine.process_pending()
        return predicate()

    await wait_until(check, description=description)


async def test_boot_loads_home(engine: Engine, forge: FakeForge) -> None:
    await booted(engine)

    home = engine.state.top.item
    assert isinstance(home, HomeData)
    assert [pr.number for pr in home.my_prs] == [42]
    assert not engine.state.loading
    assert forge.calls["get_current_user"] == 1


async def test_result_for_abandoned_screen_is_discarded(
    engine: Engine, forge: FakeForge, cache: CacheManager
) -> None:
    await booted(engine)
    forge.hold("get_pr")

    engine.send(Push(PR_SCREEN))
    engine.process_pending()
    assert engine.state.epoch == 1
    await wait_until(lambda: forge.calls["get_pr"] == 1, description="PR fetch to start")

    engine.send(Pop())
    engine.process_pending()
    assert engine.state.epoch == 2

    forge.release("get_pr")
    await engine.settle()

    assert engine.state.top.kind is ScreenKind.HOME
    assert all(PR_KEY not in screen.data for screen in engine.state.stack)
    assert engine.controller.discarded >= 1
    assert engine.controller.outstanding == 0
    # The fetch itself still completed and was cached.
    assert cache.peek(PR_KEY) is not None


async def test_stale_list_is_shown_at_once_then_refreshed(
    engine: Engine, forge: FakeForge, cache: CacheManager, clock: FakeClock
) -> None:
    await cache.put(PR_LIST_KEY, (make_summary(1, "cached"),), fetched_at=clock.now - 6 * 60)
    await booted(engine)
    gate = forge.hold("list_prs")

    engine.send(Push(REPO_SCREEN))
    engine.process_pending()

    top = engine.state.top
    assert [row.title for row in engine.state.visible_rows()] == ["cached"]
    assert PR_LIST_KEY in top.stale
    assert PR_LIST_KEY in top.loading
    await wait_until(lambda: forge.calls["list_prs"] == 1, description="background refresh")

    gate.set()
    await engine.settle()

    top = engine.state.top
    assert {row.number for row in engine.state.visible_rows()} == {42, 7}
    assert PR_LIST_KEY not in top.stale
    assert PR_LIST_KEY not in top.loading
    entry = cache.peek(PR_LIST_KEY)
    assert entry is not None
    assert entry.fetched_at == clock.now


async def test_merge_purges_and_reloads(
    engine: Engine, forge: FakeForge, cache: CacheManager
) -> None:
    await cache.put(PR_KEY, make_pr(42))
    await cache.put(PR_LIST_KEY, (make_summary(42),))
    await booted(engine)
    engine.send(Push(PR_SCREEN))
    await engine.settle()
    assert forge.calls["get_pr"] == 0

    engine.send(Merge())
    await engine.settle()

    assert forge.merged
    assert engine.state.flash == "PR merged!"
    assert engine.state.top.pending is None
    # Reloaded from the forge because the cached copy was purged.
    assert forge.calls["get_pr"] == 1
    assert engine.state.top.item.state is PrState.MERGED
    assert cache.peek(PR_LIST_KEY) is None


async def test_leaving_during_merge_does_not_block_later_mutations(
    engine: Engine, forge: FakeForge
) -> None:
    await booted(engine)
    engine.send(Push(PR_SCREEN))
    await engine.settle()
    forge.hold("merge_pr")

    engine.send(Merge())
    engine.process_pending()
    assert engine.state.top.pending is MutationKind.MERGE_PR
    await wait_until(lambda: forge.calls["merge_pr"] == 1, description="merge to start")

    engine.send(Push(ScreenRef(ScreenKind.REPO_LIST)))
    engine.process_pending()
    forge.release("merge_pr")
    await engine.settle()

    engine.send(Pop())
    await engine.settle()
    top = engine.state.top
    assert top.kind is ScreenKind.PR_DETAIL
    assert top.pending is None
    assert top.status is None
    assert top.item.state is PrState.MERGED

    engine.send(AddComment("merged, thanks"))
    await engine.settle()

    assert forge.calls["create_comment"] == 1
    assert engine.state.flash == "Comment posted."


async def test_merge_during_refresh_shows_merged_state(
    engine: Engine, forge: FakeForge, cache: CacheManager
) -> None:
    await cache.put(PR_KEY, make_pr(42))
    await booted(engine)
    engine.send(Push(PR_SCREEN))
    await engine.settle()
    forge.hold("get_pr")

    engine.send(Refresh())
    engine.process_pending()
    await wait_until(lambda: forge.calls["get_pr"] == 1, description="refresh to start")

    engine.send(Merge())
    await applied_until(engine, lambda: engine.state.flash == "PR merged!", "merge to land")
    forge.release("get_pr")
    await engine.settle()

    assert engine.state.top.item.state is PrState.MERGED
    assert cache.peek(PR_KEY).payload.state is PrState.MERGED


async def test_diff_of_open_pr_is_fetched(engine: Engine, forge: FakeForge) -> None:
    await booted(engine)
    engine.send(Push(PR_SCREEN))
    await engine.settle()

    engine.send(ViewDiff())
    await engine.settle()

    top = engine.state.top
    assert top.kind is ScreenKind.DIFF
    assert top.item == "diff --git a/pr42 b/pr42\n"
    assert forge.calls["get_pr_diff"] == 1


async def test_tab_switch_ignores_previous_tab_result(engine: Engine, forge: FakeForge) -> None:
    await booted(engine)
    forge.hold("list_prs")
    engine.send(Push(REPO_SCREEN))
    engine.process_pending()
    epoch = engine.state.epoch

    engine.send(SwitchTab(RepoTab.ISSUES))
    engine.process_pending()
    forge.release("list_prs")
    await engine.settle()

    top = engine.state.top
    assert engine.state.epoch == epoch
    assert top.tab is RepoTab.ISSUES
    assert PR_LIST_KEY not in top.data
    assert [row.number for row in engine.state.visible_rows()] == [3]


async def test_fetch_failure_surfaces_in_status(engine: Engine, forge: FakeForge) -> None:
    await booted(engine)
    forge.fail("get_pr", AuthError("token expired"))

    engine.send(Push(PR_SCREEN))
    await engine.settle()

    assert engine.state.top.status == "Auth error: token expired"
    assert PR_KEY not in engine.state.top.loading


async def test_listeners_see_every_applied_state(engine: Engine) -> None:
    seen = []
    unsubscribe = engine.subscribe(seen.append)

    await booted(engine)
    unsubscribe()
    engine.send(Push(PR_SCREEN))
    await engine.settle()

    assert seen
    assert seen[-1].top.kind is ScreenKind.HOME


async def test_run_loop_processes_intents(engine: Engine) -> None:
    engine.start()
    await wait_until(lambda: engine.state.top.item is not None, description="home to load")

    engine.send(Quit())
    await wait_until(lambda: engine.state.should_quit, description="quit flag")

    await engine.stop()
    assert engine.controller.outstanding == 0


async def test_broken_invariant_halts_the_run_loop(engine: Engine) -> None:
    seen = []
    engine.subscribe(seen.append)
    engine.start()
    await wait_until(lambda: engine.state.top.item is not None, description="home to load")

    # A result no task was issued for.
    engine.post(Success(task_id=-1, epoch=engine.state.epoch, command=Fetch(PR_KEY)))
    await wait_until(lambda: engine.fatal is not None, description="engine to halt")

    assert "unknown task -1" in str(engine.fatal)
    assert seen[-1].should_quit
    engine.send(Push(PR_SCREEN))
    await settle_loop()
    assert engine.state.top.kind is ScreenKind.HOME
    await engine.stop()
