"""Main grit TUI application.

The app is a thin host: it renders :class:`AppState` after every transition
and turns key presses into intents. All behavior lives in the engine.
"""

from __future__ import annotations

import contextlib
from typing import TYPE_CHECKING

from textual.app import App
from textual.containers import VerticalScroll
from textual.widgets import Footer, Static

from grit.bootstrap import bootstrap_app
from grit.core.messages import (
    AddComment,
    ClearSearch,
    CloseItem,
    CopyUrl,
    DismissFlash,
    Merge,
    MoveSelection,
    OpenInBrowser,
    Pop,
    Push,
    Refresh,
    Replace,
    Review,
    ScreenRef,
    Select,
    SetSearch,
    SwitchTab,
    ViewDiff,
)
from grit.core.models.enums import ReviewEvent, ScreenKind
from grit.debug_log import debug_buffer, setup_debug_logging
from grit.paths import get_debug_log_path
from grit.tui.keybindings import APP_BINDINGS
from grit.tui.modals import SearchModal, TextEntryModal
from grit.tui.render import render_body, render_status, screen_title

if TYPE_CHECKING:
    from pathlib import Path

    from grit.bootstrap import AppContext
    from grit.core.forge import ForgeRegistry
    from grit.core.messages import Intent
    from grit.core.side_effects import SideEffects
    from grit.core.state import AppState


class GritApp(App):
    """Terminal dashboard for pull requests, issues, commits and CI."""

    TITLE = "grit"
    CSS = """
    #header { height: 1; padding: 0 1; background: $boost; }
    #body { padding: 0 1; }
    #status { height: 1; padding: 0 1; }
    TextEntryModal, SearchModal { align: center middle; }
    #entry-container, #search-container {
        width: 80%; height: auto; max-height: 80%; border: round $accent; padding: 1;
    }
    #entry-text { height: 10; }
    """

    BINDINGS = APP_BINDINGS

    def __init__(
        self,
        config_path: Path | None = None,
        forge_name: str | None = None,
        *,
        forges: ForgeRegistry | None = None,
        cache_root: Path | None = None,
        side_effects: SideEffects | None = None,
    ) -> None:
        super().__init__()
        self.config_path = config_path
        self.forge_name = forge_name
        self._overrides = {
            "forges": forges,
            "cache_root": cache_root,
            "side_effects": side_effects,
        }
        self._ctx: AppContext | None = None
        self._stack = contextlib.AsyncExitStack()
        self._flash_shown: str | None = None

    @property
    def ctx(self) -> AppContext:
        """Get the application context for engine access."""
        assert self._ctx is not None, "AppContext not initialized"
        return self._ctx

    def compose(self):
        yield Static(id="header")
        with VerticalScroll():
            yield Static(id="body")
        yield Static(id="status")
        yield Footer()

    async def on_mount(self) -> None:
        setup_debug_logging()
        self._ctx = await self._stack.enter_async_context(
            bootstrap_app(self.config_path, forge_name=self.forge_name, **self._overrides)
        )
        self.sub_title = self._ctx.provider
        self._ctx.engine.subscribe(self._render)
        self._render(self._ctx.engine.state)
        self._ctx.engine.start()

    async def on_unmount(self) -> None:
        await self._stack.aclose()

    def _render(self, state: AppState) -> None:
        if state.should_quit:
            fatal = self._ctx.engine.fatal if self._ctx is not None else None
            if fatal is not None:
                self.exit(return_code=1, message=f"grit stopped: {fatal}")
            else:
                self.exit()
            return
        self.query_one("#header", Static).update(screen_title(state))
        self.query_one("#body", Static).update(render_body(state))
        self.query_one("#status", Static).update(render_status(state))
        if state.flash and state.flash != self._flash_shown:
            self.set_timer(self.ctx.config.general.flash_seconds, self._dismiss_flash)
        self._flash_shown = state.flash

    def _dismiss_flash(self) -> None:
        self._send(DismissFlash())

    def _send(self, intent: Intent) -> None:
        if self._ctx is not None:
            self._ctx.engine.send(intent)

    # -- actions ---------------------------------------------------------------

    def action_quit_app(self) -> None:
        self.exit()

    def action_back(self) -> None:
        if self._ctx is not None and self._ctx.engine.state.search:
            self._send(ClearSearch())
        else:
            self._send(Pop())

    def action_move(self, delta: int) -> None:
        self._send(MoveSelection(delta))

    def action_select(self) -> None:
        self._send(Select())

    def action_next_tab(self) -> None:
        self._send(SwitchTab())

    def action_go_home(self) -> None:
        self._send(Replace(ScreenRef(ScreenKind.HOME)))

    def action_go_repos(self) -> None:
        self._send(Push(ScreenRef(ScreenKind.REPO_LIST)))

    def action_refresh(self) -> None:
        self._send(Refresh())

    def action_merge(self) -> None:
        self._send(Merge(self.ctx.config.general.default_merge_method))

    def action_close_item(self) -> None:
        self._send(CloseItem())

    def action_open_browser(self) -> None:
        self._send(OpenInBrowser())

    def action_copy_url(self) -> None:
        self._send(CopyUrl())

    def action_view_diff(self) -> None:
        self._send(ViewDiff())

    def action_search(self) -> None:
        def apply(term: str | None) -> None:
            if term is not None:
                self._send(SetSearch(term))

        self.push_screen(SearchModal(self.ctx.engine.state.search), apply)

    def action_comment(self) -> None:
        def apply(body: str | None) -> None:
            if body:
                self._send(AddComment(body))

        self.push_screen(TextEntryModal("New comment"), apply)

    def action_review(self, event: str) -> None:
        review_event = ReviewEvent(event)

        def apply(body: str | None) -> None:
            if body is not None:
                self._send(Review(review_event, body))

        title = "Approve" if review_event is ReviewEvent.APPROVE else "Request changes"
        self.push_screen(TextEntryModal(title, allow_empty=True), apply)

    def action_export_debug_log(self) -> None:
        path = get_debug_log_path()
        count = debug_buffer.export(path)
        self.notify(f"Exported {count} log entries to {path}")

    def action_clear_debug_log(self) -> None:
        debug_buffer.clear()
        self.notify("Debug log cleared")
