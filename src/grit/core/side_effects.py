"""Fire-and-forget side effects that never touch the cache."""

from __future__ import annotations

import asyncio
import webbrowser
from typing import Protocol

import pyperclip

from grit.core.errors import SideEffectError


class SideEffects(Protocol):
    async def open_url(self, url: str) -> None: ...

    async def copy_text(self, text: str) -> None: ...


class SystemSideEffects:
    """Browser and clipboard access of the local machine."""

    async def open_url(self, url: str) -> None:
        if not url:
            msg = "nothing to open"
            raise SideEffectError(msg)
        try:
            opened = await asyncio.to_thread(webbrowser.open, url)
        except webbrowser.Error as exc:
            raise SideEffectError(f"could not open browser: {exc}") from exc
        if not opened:
            msg = "no browser available"
            raise SideEffectError(msg)

    async def copy_text(self, text: str) -> None:
        if not text.strip():
            msg = "nothing to copy"
            raise SideEffectError(msg)
        try:
            await asyncio.to_thread(pyperclip.copy, text)
        except pyperclip.PyperclipException as exc:
            raise SideEffectError(f"clipboard unavailable: {exc}") from exc
