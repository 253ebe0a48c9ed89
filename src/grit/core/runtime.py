"""The single logical thread that applies messages to application state."""

from __future__ import annotations

import asyncio
import contextlib
import logging
from typing import TYPE_CHECKING, TypeAlias

from grit.core.dispatcher import TaskDispatcher
from grit.core.epoch import ConsistencyController
from grit.core.errors import InvariantViolation
from grit.core.messages import Failure, Quit, Success, UiEvent
from grit.core.models.enums import ScreenKind
from grit.core.state import initial_state, transition
from grit.limits import TASK_TIMEOUT

if TYPE_CHECKING:
    from collections.abc import Callable, Iterable

    from grit.core.cache import CacheManager
    from grit.core.forge import ForgeRegistry
    from grit.core.messages import Command, Intent, Message
    from grit.core.side_effects import SideEffects
    from grit.core.state import AppState

    Listener: TypeAlias = Callable[[AppState], None]

logger = logging.getLogger(__name__)


class Engine:
    """Owns :class:`AppState` and feeds it one message at a time.

    Messages are applied in receipt order from a FIFO queue. Task results pass
    through the consistency controller first; every command a transition
    produces is stamped with the epoch of the state it produced, then handed
    to the dispatcher. Listeners are called after every applied transition.
    """

    def __init__(
        self,
        *,
        provider: str,
        forges: ForgeRegistry,
        cache: CacheManager,
        side_effects: SideEffects | None = None,
        controller: ConsistencyController | None = None,
        timeout: float = TASK_TIMEOUT,
        root: ScreenKind = ScreenKind.HOME,
    ) -> None:
        self.controller = controller or ConsistencyController()
        self.dispatcher = TaskDispatcher(
            forges=forges,
            cache=cache,
            controller=self.controller,
            sink=self.post,
            side_effects=side_effects,
            timeout=timeout,
        )
        self._queue: asyncio.Queue[Message] = asyncio.Queue()
        self._listeners: list[Listener] = []
        self._state, self._boot_commands = initial_state(provider, root)
        self._runner: asyncio.Task[None] | None = None
        self.applied = 0
        self.fatal: InvariantViolation | None = None

    @property
    def state(self) -> AppState:
        return self._state

    def subscribe(self, listener: Listener) -> Callable[[], None]:
        """Register a render callback; returns a function that removes it."""
        self._listeners.append(listener)
        return lambda: self._listeners.remove(listener)

    def post(self, message: Message) -> None:
        self._queue.put_nowait(message)

    def send(self, intent: Intent) -> None:
        self.post(UiEvent(intent))

    def boot(self) -> None:
        """Issue the fetches of the initial screen. Requires a running loop."""
        commands, self._boot_commands = self._boot_commands, []
        self._dispatch(commands)

    def step(self, message: Message) -> bool:
        """Apply one message. Returns False if it was discarded as stale."""
        if isinstance(message, Success | Failure) and not self.controller.admit(
            message, self._state.epoch
        ):
            return False
        self._state, commands = transition(self._state, message)
        self.applied += 1
        self._dispatch(commands)
        for listener in tuple(self._listeners):
            listener(self._state)
        return True

    def process_pending(self) -> int:
        """Apply every queued message without waiting. Returns how many were taken."""
        taken = 0
        while not self._queue.empty():
            self.step(self._queue.get_nowait())
            self._queue.task_done()
            taken += 1
        return taken

    async def settle(self) -> None:
        """Run until no message is queued and no task is running."""
        while True:
            self.process_pending()
            await self.dispatcher.drain()
            if self._queue.empty():
                return

    async def run(self) -> None:
        while True:
            message = await self._queue.get()
            try:
                self.step(message)
            except InvariantViolation as exc:
                logger.exception("Engine halted: %s", exc)
                self.fatal = exc
                self._halt()
                return
            finally:
                self._queue.task_done()

    def start(self) -> None:
        if self._runner is not None:
            return
        self.boot()
        self._runner = asyncio.create_task(self.run(), name="grit-engine")

    async def stop(self) -> None:
        if self._runner is not None:
            self._runner.cancel()
            with contextlib.suppress(asyncio.CancelledError):
                await self._runner
            self._runner = None
        await self.dispatcher.close()
        logger.debug(
            "Engine stopped: %d messages applied, %d stale results discarded",
            self.applied,
            self.controller.discarded,
        )

    def _halt(self) -> None:
        """Stop applying messages and ask listeners to quit."""
        self._state, _ = transition(self._state, UiEvent(Quit()))
        for listener in tuple(self._listeners):
            listener(self._state)

    def _dispatch(self, commands: Iterable[Command]) -> None:
        for command in commands:
            self.dispatcher.submit(self.controller.issue(command, self._state.epoch))
