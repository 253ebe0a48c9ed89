"""Modal screens for free-text input."""

from __future__ import annotations

from typing import TYPE_CHECKING

from textual.containers import Vertical
from textual.screen import ModalScreen
from textual.widgets import Footer, Input, Label, TextArea

from grit.tui.keybindings import INPUT_BINDINGS

if TYPE_CHECKING:
    from textual.app import ComposeResult


class TextEntryModal(ModalScreen[str | None]):
    """Multi-line text entry (comments, review bodies). Dismisses with the text or None."""

    BINDINGS = INPUT_BINDINGS

    def __init__(self, title: str, *, allow_empty: bool = False, **kwargs) -> None:
        super().__init__(**kwargs)
        self._title = title
        self._allow_empty = allow_empty

    def compose(self) -> ComposeResult:
        with Vertical(id="entry-container"):
            yield Label(self._title, classes="modal-title")
            yield Label("[dim]Ctrl+S to submit | Escape to cancel[/dim]", classes="modal-subtitle")
            yield TextArea(id="entry-text")
        yield Footer(show_command_palette=False)

    def on_mount(self) -> None:
        self.query_one("#entry-text", TextArea).focus()

    def action_submit(self) -> None:
        text = self.query_one("#entry-text", TextArea).text.strip()
        if not text and not self._allow_empty:
            self.notify("Nothing to submit", severity="warning")
            return
        self.dismiss(text)

    def action_cancel(self) -> None:
        self.dismiss(None)


class SearchModal(ModalScreen[str | None]):
    """Single-line filter entry. Dismisses with the term, or None on cancel."""

    BINDINGS = INPUT_BINDINGS

    def __init__(self, initial: str = "", **kwargs) -> None:
        super().__init__(**kwargs)
        self._initial = initial

    def compose(self) -> ComposeResult:
        with Vertical(id="search-container"):
            yield Label("Filter", classes="modal-title")
            yield Input(value=self._initial, placeholder="title, message or name", id="search")

    def on_mount(self) -> None:
        self.query_one("#search", Input).focus()

    def on_input_submitted(self, event: Input.Submitted) -> None:
        self.dismiss(event.value)

    def action_submit(self) -> None:
        self.dismiss(self.query_one("#search", Input).value)

    def action_cancel(self) -> None:
        self.dismiss(None)
