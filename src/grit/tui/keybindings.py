"""Keybindings for the grit TUI, using Textual's native Binding class directly."""

from __future__ import annotations

from textual.binding import Binding, BindingType

# =============================================================================
# App Bindings
# =============================================================================

APP_BINDINGS: list[BindingType] = [
    Binding("q", "quit_app", "Quit"),
    Binding("ctrl+c", "quit_app", "", show=False, priority=True),
    Binding("escape", "back", "Back"),
    Binding("backspace", "back", "", show=False),
    # Navigation - vim style
    Binding("j", "move(1)", "Down", show=False),
    Binding("k", "move(-1)", "Up", show=False),
    Binding("down", "move(1)", "Down", show=False),
    Binding("up", "move(-1)", "Up", show=False),
    Binding("pagedown", "move(10)", "", show=False),
    Binding("pageup", "move(-10)", "", show=False),
    Binding("enter", "select", "Open"),
    Binding("tab", "next_tab", "Next tab"),
    # Screens
    Binding("h", "go_home", "Home"),
    Binding("p", "go_repos", "Repos"),
    # Actions
    Binding("r", "refresh", "Refresh"),
    Binding("slash", "search", "Search", key_display="/"),
    Binding("m", "merge", "Merge"),
    Binding("x", "close_item", "Close"),
    Binding("c", "comment", "Comment"),
    Binding("a", "review('APPROVE')", "Approve", show=False),
    Binding("R", "review('REQUEST_CHANGES')", "Request changes", show=False),
    Binding("o", "open_browser", "Browser"),
    Binding("y", "copy_url", "Copy URL"),
    Binding("d", "view_diff", "Diff"),
    Binding("f12", "export_debug_log", "Debug", show=False),
    Binding("ctrl+l", "clear_debug_log", "", show=False),
]

# =============================================================================
# Input Modal Bindings
# =============================================================================

INPUT_BINDINGS: list[BindingType] = [
    Binding("escape", "cancel", "Cancel"),
    Binding("ctrl+s", "submit", "Submit"),
]
