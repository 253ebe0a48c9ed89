"""Task dispatcher: executes commands concurrently and reports messages.

Each task reports exactly one message through the sink. Fetches are served
stale-while-revalidate from the cache; at most one network load per
:class:`ResourceKey` is in flight, and later fetches of the same key join it.
Mutations always go to the forge and purge the affected keys before their
success is reported.
"""

from __future__ import annotations

import asyncio
import contextlib
import logging
from typing import TYPE_CHECKING, Any, TypeAlias

from grit.core.errors import FailureDetail, GritError, TaskTimeoutError
from grit.core.forge import apply_mutation, fetch_resource
from grit.core.keys import invalidation_targets
from grit.core.messages import (
    CopyClipboard,
    Failure,
    Fetch,
    Mutate,
    OpenExternal,
    Success,
)
from grit.core.side_effects import SystemSideEffects
from grit.limits import SHUTDOWN_TIMEOUT, TASK_TIMEOUT
from grit.utils.background_tasks import BackgroundTasks

if TYPE_CHECKING:
    from collections.abc import AsyncIterator, Awaitable, Callable, Coroutine

    from grit.core.cache import CacheEntry, CacheManager
    from grit.core.epoch import ConsistencyController
    from grit.core.forge import ForgeRegistry
    from grit.core.keys import ResourceKey
    from grit.core.messages import Task, TaskResult
    from grit.core.side_effects import SideEffects

    MessageSink: TypeAlias = Callable[[TaskResult], None]

logger = logging.getLogger(__name__)


class TaskDispatcher:
    def __init__(
        self,
        *,
        forges: ForgeRegistry,
        cache: CacheManager,
        controller: ConsistencyController,
        sink: MessageSink,
        side_effects: SideEffects | None = None,
        timeout: float = TASK_TIMEOUT,
    ) -> None:
        self._forges = forges
        self._cache = cache
        self._controller = controller
        self._sink = sink
        self._effects = side_effects or SystemSideEffects()
        self._timeout = timeout
        self._inflight: dict[ResourceKey, tuple[int, asyncio.Task[CacheEntry]]] = {}
        self._background = BackgroundTasks()
        self.network_loads = 0

    def submit(self, task: Task) -> None:
        """Start ``task``. Its message is delivered to the sink, possibly before returning."""
        command = task.command
        match command:
            case Fetch():
                self._submit_fetch(task, command)
            case Mutate():
                self._spawn(self._run_mutate(task, command), f"mutate:{command.key}")
            case OpenExternal(url=url):
                self._spawn(self._run_side_effect(task, self._effects.open_url, url), "open")
            case CopyClipboard(text=text):
                self._spawn(self._run_side_effect(task, self._effects.copy_text, text), "copy")

    def in_flight(self, key: ResourceKey) -> bool:
        return key in self._inflight

    # -- fetch -----------------------------------------------------------------

    def _submit_fetch(self, task: Task, command: Fetch) -> None:
        entry = self._cache.peek(command.key)
        if entry is not None:
            self._deliver_cached(task, command, entry)
            return
        self._spawn(self._fetch_cold(task, command), f"fetch:{command.key}")

    async def _fetch_cold(self, task: Task, command: Fetch) -> None:
        entry = await self._cache.get(command.key)
        if entry is not None:
            self._deliver_cached(task, command, entry)
            return
        await self._fetch_network(task, command.key)

    def _deliver_cached(self, task: Task, command: Fetch, entry: CacheEntry) -> None:
        stale = self._cache.is_stale(entry)
        self._sink(
            Success(
                task_id=task.task_id,
                epoch=task.epoch,
                command=command,
                payload=entry.payload,
                fetched_at=entry.fetched_at,
                from_cache=True,
                stale=stale,
            )
        )
        if stale or command.revalidate:
            refresh = self._controller.issue(Fetch(command.key), task.epoch)
            logger.debug("Background refresh of %s (stale=%s)", command.key, stale)
            self._spawn(self._fetch_network(refresh, command.key), f"refresh:{command.key}")

    async def _fetch_network(self, task: Task, key: ResourceKey) -> None:
        try:
            while True:
                generation = self._cache.generation(key)
                entry = await asyncio.shield(self._shared_load(key, generation))
                if self._cache.generation(key) == generation:
                    break
                logger.debug("Reloading %s, invalidated while loading", key)
        except Exception as exc:
            self._fail(task, exc)
            return
        self._sink(
            Success(
                task_id=task.task_id,
                epoch=task.epoch,
                command=task.command,
                payload=entry.payload,
                fetched_at=entry.fetched_at,
            )
        )

    def _shared_load(self, key: ResourceKey, generation: int) -> asyncio.Task[CacheEntry]:
        """The in-flight load of ``key`` started under ``generation``, or a new one.

        A load started before the key was last invalidated is never joined.
        """
        current = self._inflight.get(key)
        if current is not None and current[0] == generation:
            logger.debug("Joining in-flight load of %s", key)
            return current[1]
        load = asyncio.create_task(self._load(key, generation), name=f"load:{key}")
        self._inflight[key] = (generation, load)
        load.add_done_callback(self._load_done)
        return load

    def _load_done(self, load: asyncio.Task[CacheEntry]) -> None:
        for key, (_, current) in tuple(self._inflight.items()):
            if current is load:
                del self._inflight[key]
        if not load.cancelled():
            # Retrieved here so a failure nobody awaits any more is not reported as lost.
            load.exception()

    async def _load(self, key: ResourceKey, generation: int) -> CacheEntry:
        forge = self._forges.get(key.provider)
        self.network_loads += 1
        logger.debug("Loading %s from %s", key, forge.name)
        async with self._deadline(f"loading {key}"):
            payload = await fetch_resource(forge, key)
        return await self._cache.put(key, payload, generation=generation)

    # -- mutate ----------------------------------------------------------------

    async def _run_mutate(self, task: Task, command: Mutate) -> None:
        try:
            forge = self._forges.get(command.key.provider)
            async with self._deadline(f"{command.mutation.kind} on {command.key}"):
                await apply_mutation(forge, command.key, command.mutation)
        except Exception as exc:
            self._fail(task, exc)
            return
        await self._cache.invalidate(*invalidation_targets(command.key, command.mutation.kind))
        logger.info("%s on %s succeeded", command.mutation.kind, command.key)
        self._sink(Success(task_id=task.task_id, epoch=task.epoch, command=command))

    # -- side effects ----------------------------------------------------------

    async def _run_side_effect(
        self, task: Task, effect: Callable[[str], Awaitable[None]], argument: str
    ) -> None:
        try:
            async with self._deadline("side effect"):
                await effect(argument)
        except Exception as exc:
            self._fail(task, exc)
            return
        self._sink(Success(task_id=task.task_id, epoch=task.epoch, command=task.command))

    # -- plumbing --------------------------------------------------------------

    @contextlib.asynccontextmanager
    async def _deadline(self, what: str) -> AsyncIterator[None]:
        try:
            async with asyncio.timeout(self._timeout):
                yield
        except TimeoutError as exc:
            msg = f"{what} exceeded {self._timeout:g}s"
            raise TaskTimeoutError(msg) from exc

    def _fail(self, task: Task, exc: Exception) -> None:
        if isinstance(exc, GritError):
            logger.debug("Task %d failed: %s", task.task_id, exc)
        else:
            logger.error("Task %d crashed", task.task_id, exc_info=exc)
        self._sink(
            Failure(
                task_id=task.task_id,
                epoch=task.epoch,
                command=task.command,
                error=FailureDetail.from_exception(exc),
            )
        )

    def _spawn(self, coro: Coroutine[Any, Any, None], name: str) -> None:
        self._background.spawn(coro, name=name)

    async def drain(self) -> None:
        """Wait for every running task (and any it starts) to report."""
        await self._background.wait()

    async def close(self) -> None:
        """Let in-flight work finish briefly, then cancel what is left."""
        try:
            async with asyncio.timeout(SHUTDOWN_TIMEOUT):
                await self.drain()
        except TimeoutError:
            logger.warning("Cancelling %d unfinished tasks at shutdown", len(self._background))
            await self._background.cancel_all()
            for _, load in tuple(self._inflight.values()):
                load.cancel()
