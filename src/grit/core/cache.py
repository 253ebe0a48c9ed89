"""Two-level response cache: in-memory (authoritative) over per-key disk records.

Reads never block on the network and never fail: a missing, unreadable or
foreign record is a miss. Writes go through to memory and disk; a disk
failure leaves that key memory-only for the rest of the session. All access to
one key is serialized by a per-key lock, so readers only ever observe fully
written entries and concurrent writers land in completion order.
"""

from __future__ import annotations

import asyncio
import contextlib
import json
import logging
import time
from dataclasses import dataclass
from typing import TYPE_CHECKING, Any

import aiofiles
from pydantic import ValidationError

from grit.atomic import atomic_write
from grit.core.errors import CacheCorruptError
from grit.core.keys import ResourceKey
from grit.core.models.enums import ResourceKind
from grit.core.models.payloads import dump_payload, load_payload
from grit.limits import CACHE_SCHEMA_VERSION

if TYPE_CHECKING:
    from collections.abc import Callable, Iterable, Mapping
    from pathlib import Path

logger = logging.getLogger(__name__)

MINUTE = 60.0
HOUR = 60 * MINUTE

DEFAULT_TTLS: dict[ResourceKind, float] = {
    ResourceKind.HOME: 5 * MINUTE,
    ResourceKind.REPOS: HOUR,
    ResourceKind.REPO: HOUR,
    ResourceKind.PR_LIST: 5 * MINUTE,
    ResourceKind.PR: 2 * MINUTE,
    ResourceKind.PR_DIFF: 2 * MINUTE,
    ResourceKind.ISSUE_LIST: 5 * MINUTE,
    ResourceKind.ISSUE: 2 * MINUTE,
    ResourceKind.COMMENTS: 2 * MINUTE,
    ResourceKind.COMMIT_LIST: 5 * MINUTE,
    ResourceKind.COMMIT: HOUR,
    ResourceKind.ACTION_RUNS: 30.0,
    ResourceKind.CHECKS: 30.0,
}

RECORD_SUFFIX = ".json"


@dataclass(frozen=True, slots=True)
class CacheEntry:
    key: ResourceKey
    payload: Any
    fetched_at: float

    @property
    def kind(self) -> ResourceKind:
        return self.key.kind

    def age(self, now: float) -> float:
        return max(0.0, now - self.fetched_at)


@dataclass(slots=True)
class CacheStats:
    memory_hits: int = 0
    disk_hits: int = 0
    misses: int = 0
    corrupt: int = 0
    writes: int = 0
    disk_failures: int = 0
    invalidations: int = 0
    skipped_writes: int = 0


def encode_record(entry: CacheEntry) -> str:
    return json.dumps(
        {
            "version": CACHE_SCHEMA_VERSION,
            "key": entry.key.to_dict(),
            "fetched_at": entry.fetched_at,
            "payload": dump_payload(entry.kind, entry.payload),
        },
        separators=(",", ":"),
    )


def decode_record(text: str, expected: ResourceKey | None = None) -> CacheEntry:
    """Parse one disk record. Unknown top-level fields are ignored.

    Raises:
        CacheCorruptError: when the record cannot be turned into an entry.
    """
    try:
        data = json.loads(text)
        raw_key = data["key"]
        key = ResourceKey(
            raw_key["provider"],
            raw_key.get("repo") or "",
            ResourceKind(raw_key["kind"]),
            raw_key.get("number"),
        )
        if expected is not None and key != expected:
            msg = f"record belongs to {key}, not {expected}"
            raise CacheCorruptError(msg)
        fetched_at = float(data["fetched_at"])
        payload = load_payload(key.kind, data["payload"])
    except CacheCorruptError:
        raise
    except (ValueError, TypeError, KeyError, ValidationError) as exc:
        # json.JSONDecodeError and unknown ResourceKind values are ValueErrors
        raise CacheCorruptError(str(exc)) from exc
    return CacheEntry(key=key, payload=payload, fetched_at=fetched_at)


class CacheManager:
    """Memory + disk cache keyed by :class:`ResourceKey`.

    Created once per process and passed explicitly to the dispatcher; tests
    build isolated instances over a temp directory (or ``root=None`` for a
    memory-only cache).
    """

    def __init__(
        self,
        root: Path | None,
        *,
        ttls: Mapping[ResourceKind, float] | None = None,
        clock: Callable[[], float] = time.time,
    ) -> None:
        self._root = root
        self._ttls = {**DEFAULT_TTLS, **(ttls or {})}
        self._clock = clock
        self._memory: dict[ResourceKey, CacheEntry] = {}
        self._locks: dict[ResourceKey, asyncio.Lock] = {}
        self._generations: dict[ResourceKey, int] = {}
        self._memory_only: set[ResourceKey] = set()
        self.stats = CacheStats()

    @property
    def root(self) -> Path | None:
        return self._root

    @property
    def disk_enabled(self) -> bool:
        return self._root is not None

    def now(self) -> float:
        return self._clock()

    # -- TTL policy ------------------------------------------------------------

    def ttl_for(self, kind: ResourceKind) -> float:
        return self._ttls[kind]

    def is_stale(self, entry: CacheEntry, now: float | None = None) -> bool:
        """Advisory: whether ``entry`` is old enough to warrant a background refresh."""
        current = self._clock() if now is None else now
        return entry.age(current) > self.ttl_for(entry.kind)

    # -- reads -----------------------------------------------------------------

    def peek(self, key: ResourceKey) -> CacheEntry | None:
        """Memory-only lookup. Synchronous, never touches disk."""
        entry = self._memory.get(key)
        if entry is not None:
            self.stats.memory_hits += 1
        return entry

    async def get(self, key: ResourceKey) -> CacheEntry | None:
        """Memory lookup, falling back to disk and populating memory."""
        entry = self.peek(key)
        if entry is not None:
            return entry
        if self._root is None or key in self._memory_only:
            self.stats.misses += 1
            return None

        async with self._lock_for(key):
            # A writer may have filled memory while we waited for the lock.
            entry = self._memory.get(key)
            if entry is not None:
                self.stats.memory_hits += 1
                return entry
            entry = await self._read_disk(key)
            if entry is None:
                self.stats.misses += 1
                return None
            self._memory[key] = entry
            self.stats.disk_hits += 1
            return entry

    async def _read_disk(self, key: ResourceKey) -> CacheEntry | None:
        path = self.path_for(key)
        try:
            async with aiofiles.open(path, encoding="utf-8") as handle:
                text = await handle.read()
        except FileNotFoundError:
            return None
        except (OSError, UnicodeDecodeError) as exc:
            logger.debug("Unreadable cache record %s: %s", path, exc)
            self.stats.corrupt += 1
            return None
        try:
            return decode_record(text, expected=key)
        except CacheCorruptError as exc:
            logger.debug("Corrupt cache record for %s treated as miss: %s", key, exc)
            self.stats.corrupt += 1
            return None

    # -- writes ----------------------------------------------------------------

    def generation(self, key: ResourceKey) -> int:
        """Invalidation counter for ``key``; bumped by every purge of the key."""
        return self._generations.get(key, 0)

    async def put(
        self,
        key: ResourceKey,
        payload: Any,
        *,
        fetched_at: float | None = None,
        generation: int | None = None,
    ) -> CacheEntry:
        """Write through to memory and disk, returning the stored entry.

        When ``generation`` is given and the key was invalidated since the
        caller read it, the value predates that invalidation: it is returned
        but not stored.
        """
        async with self._lock_for(key):
            entry = CacheEntry(
                key=key,
                payload=payload,
                fetched_at=self._clock() if fetched_at is None else fetched_at,
            )
            if generation is not None and generation != self.generation(key):
                self.stats.skipped_writes += 1
                logger.debug("Dropping cache write for %s: invalidated while in flight", key)
                return entry
            self._memory[key] = entry
            self.stats.writes += 1
            if self._root is not None and key not in self._memory_only:
                await self._write_disk(entry)
            return entry

    async def _write_disk(self, entry: CacheEntry) -> None:
        path = self.path_for(entry.key)
        try:
            content = encode_record(entry)
            await asyncio.to_thread(atomic_write, path, content)
        except (OSError, ValueError, TypeError) as exc:
            self.stats.disk_failures += 1
            self._memory_only.add(entry.key)
            logger.warning(
                "Disk cache write failed for %s, keeping it in memory only: %s", entry.key, exc
            )
            # An older record left behind would shadow the fresher memory value next run.
            with contextlib.suppress(OSError):
                await asyncio.to_thread(path.unlink, missing_ok=True)

    # -- invalidation ------------------------------------------------------------

    async def invalidate(self, *keys: ResourceKey) -> None:
        """Purge ``keys`` from both layers."""
        for key in dict.fromkeys(keys):
            async with self._lock_for(key):
                self._generations[key] = self.generation(key) + 1
                self._memory.pop(key, None)
                self.stats.invalidations += 1
                if self._root is not None:
                    try:
                        await asyncio.to_thread(self.path_for(key).unlink, missing_ok=True)
                    except OSError as exc:
                        logger.warning("Could not remove cache record for %s: %s", key, exc)
                        self._memory_only.add(key)
            logger.debug("Invalidated %s", key)

    async def purge(self) -> int:
        """Drop every entry from both layers. Returns the number of disk records removed."""
        keys = set(self._memory)
        removed = 0
        if self._root is not None:
            records = await asyncio.to_thread(self._scan_records)
            keys.update(entry.key for entry in records)
            removed = await asyncio.to_thread(purge_directory, self._root)
        await self.invalidate(*keys)
        return removed

    # -- startup -----------------------------------------------------------------

    async def warm(self) -> int:
        """Seed memory from every readable disk record. Returns entries loaded."""
        if self._root is None:
            return 0
        records = await asyncio.to_thread(self._scan_records)
        loaded = 0
        for entry in records:
            async with self._lock_for(entry.key):
                if entry.key not in self._memory:
                    self._memory[entry.key] = entry
                    loaded += 1
        logger.info("Cache warmed with %d entries from %s", loaded, self._root)
        return loaded

    def _scan_records(self) -> list[CacheEntry]:
        if self._root is None:
            return []
        return [entry for entry in iter_records(self._root) if entry is not None]

    # -- helpers -----------------------------------------------------------------

    def path_for(self, key: ResourceKey) -> Path:
        if self._root is None:
            msg = "memory-only cache has no disk records"
            raise RuntimeError(msg)
        return self._root / f"{key.slug()}{RECORD_SUFFIX}"

    def _lock_for(self, key: ResourceKey) -> asyncio.Lock:
        lock = self._locks.get(key)
        if lock is None:
            lock = self._locks[key] = asyncio.Lock()
        return lock

    def keys(self) -> Iterable[ResourceKey]:
        return tuple(self._memory)

    def __len__(self) -> int:
        return len(self._memory)


def iter_records(root: Path) -> list[CacheEntry | None]:
    """Decode every record under ``root``; unreadable ones come back as ``None``."""
    if not root.is_dir():
        return []
    entries: list[CacheEntry | None] = []
    for path in sorted(root.glob(f"*{RECORD_SUFFIX}")):
        try:
            entries.append(decode_record(path.read_text(encoding="utf-8")))
        except (OSError, UnicodeDecodeError, CacheCorruptError):
            entries.append(None)
    return entries


def purge_directory(root: Path) -> int:
    """Remove every cache record under ``root``."""
    if not root.is_dir():
        return 0
    removed = 0
    for path in root.glob(f"*{RECORD_SUFFIX}"):
        with contextlib.suppress(FileNotFoundError):
            path.unlink()
            removed += 1
    return removed
