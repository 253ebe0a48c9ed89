"""Unit tests for the two-level response cache."""

from __future__ import annotations

import asyncio
import json
from typing import TYPE_CHECKING

import pytest

from grit.core.cache import (
    CacheEntry,
    CacheManager,
    decode_record,
    encode_record,
    iter_records,
    purge_directory,
)
from grit.core.errors import CacheCorruptError
from grit.core.keys import ResourceKey
from grit.core.models.enums import ChecksStatus, ResourceKind
from tests.helpers import REPO, make_pr, make_summary

if TYPE_CHECKING:
    from pathlib import Path

    from tests.helpers import FakeClock

pytestmark = pytest.mark.unit

PR_KEY = ResourceKey.pr("github", REPO, 42)
LIST_KEY = ResourceKey.listing("github", REPO, ResourceKind.PR_LIST)


class TestRecords:
    def test_record_round_trip_keeps_key_and_payload(self):
        entry = CacheEntry(key=PR_KEY, payload=make_pr(42), fetched_at=123.5)

        decoded = decode_record(encode_record(entry))

        assert decoded == entry

    def test_unknown_fields_are_ignored(self):
        record = json.loads(encode_record(CacheEntry(PR_KEY, make_pr(42), 1.0)))
        record["written_by"] = "grit 9.9"
        record["payload"]["reactions"] = {"+1": 3}

        decoded = decode_record(json.dumps(record))

        assert decoded.payload.number == 42

    @pytest.mark.parametrize(
        "text",
        [
            "",
            "{not json",
            "[]",
            '{"key": {"provider": "github", "kind": "nonsense"}}',
            '{"key": {"provider": "github", "repo": "octo/widgets", "kind": "pr", "number": "1"}}',
        ],
    )
    def test_malformed_records_raise_corrupt(self, text: str):
        with pytest.raises(CacheCorruptError):
            decode_record(text)

    def test_record_for_another_key_is_corrupt(self):
        text = encode_record(CacheEntry(PR_KEY, make_pr(42), 1.0))
        with pytest.raises(CacheCorruptError, match="belongs to"):
            decode_record(text, expected=PR_KEY.sibling(ResourceKind.PR, 7))


class TestReads:
    async def test_put_then_get_from_fresh_manager_hits_disk(
        self, cache: CacheManager, cache_root: Path, clock: FakeClock
    ):
        await cache.put(PR_KEY, make_pr(42))

        reopened = CacheManager(cache_root, clock=clock)
        entry = await reopened.get(PR_KEY)

        assert entry is not None
        assert entry.payload == make_pr(42)
        assert entry.fetched_at == clock.now
        assert reopened.stats.disk_hits == 1
        # Populated memory on the way.
        assert reopened.peek(PR_KEY) is entry

    async def test_missing_key_is_a_miss(self, cache: CacheManager):
        assert await cache.get(PR_KEY) is None
        assert cache.stats.misses == 1

    async def test_corrupt_record_is_a_miss(self, cache: CacheManager, cache_root: Path):
        cache_root.mkdir(parents=True)
        cache.path_for(PR_KEY).write_text("{truncated", encoding="utf-8")

        assert await cache.get(PR_KEY) is None
        assert cache.stats.corrupt == 1

    async def test_peek_never_reads_disk(self, cache: CacheManager, cache_root: Path, clock):
        await cache.put(PR_KEY, make_pr(42))
        reopened = CacheManager(cache_root, clock=clock)

        assert reopened.peek(PR_KEY) is None

    async def test_memory_only_cache(self, clock: FakeClock):
        cache = CacheManager(None, clock=clock)
        await cache.put(PR_KEY, make_pr(42))

        assert cache.peek(PR_KEY) is not None
        assert not cache.disk_enabled
        with pytest.raises(RuntimeError):
            cache.path_for(PR_KEY)


class TestStaleness:
    async def test_entry_turns_stale_after_ttl(self, cache: CacheManager, clock: FakeClock):
        entry = await cache.put(LIST_KEY, (make_summary(1),))
        assert not cache.is_stale(entry)

        clock.advance(6 * 60)

        assert cache.is_stale(entry)
        # Stale entries are still served.
        assert await cache.get(LIST_KEY) is entry

    def test_ttl_overrides(self, cache_root: Path):
        cache = CacheManager(cache_root, ttls={ResourceKind.CHECKS: 5.0})
        assert cache.ttl_for(ResourceKind.CHECKS) == 5.0
        assert cache.ttl_for(ResourceKind.COMMIT) == 3600.0


class TestWrites:
    async def test_disk_failure_keeps_value_in_memory(
        self, cache: CacheManager, cache_root: Path, monkeypatch: pytest.MonkeyPatch
    ):
        def _fail(path, content):
            raise OSError("disk full")

        monkeypatch.setattr("grit.core.cache.atomic_write", _fail)

        await cache.put(PR_KEY, make_pr(42))
        await cache.put(PR_KEY, make_pr(42, title="retitled"))

        entry = await cache.get(PR_KEY)
        assert entry is not None
        assert entry.payload.title == "retitled"
        assert cache.stats.disk_failures == 1
        assert not cache.path_for(PR_KEY).exists()

    async def test_write_with_outdated_generation_is_dropped(self, cache: CacheManager):
        generation = cache.generation(PR_KEY)
        await cache.invalidate(PR_KEY)

        await cache.put(PR_KEY, make_pr(42), generation=generation)

        assert cache.peek(PR_KEY) is None
        assert cache.stats.skipped_writes == 1

    async def test_concurrent_writers_land_in_completion_order(self, cache: CacheManager):
        await asyncio.gather(
            cache.put(LIST_KEY, (make_summary(1),)),
            cache.put(LIST_KEY, (make_summary(2),)),
        )

        entry = cache.peek(LIST_KEY)
        assert entry is not None
        assert entry.payload == (make_summary(2),)
        on_disk = decode_record(cache.path_for(LIST_KEY).read_text(encoding="utf-8"))
        assert on_disk.payload == entry.payload

    async def test_scalar_payload_round_trips(self, cache: CacheManager, cache_root, clock):
        key = PR_KEY.sibling(ResourceKind.CHECKS)
        await cache.put(key, ChecksStatus.FAILURE)

        entry = await CacheManager(cache_root, clock=clock).get(key)

        assert entry is not None
        assert entry.payload is ChecksStatus.FAILURE


class TestInvalidation:
    async def test_invalidate_purges_both_layers(self, cache: CacheManager, cache_root, clock):
        await cache.put(PR_KEY, make_pr(42))
        await cache.put(LIST_KEY, (make_summary(42),))

        await cache.invalidate(PR_KEY, LIST_KEY)

        assert cache.peek(PR_KEY) is None
        assert await CacheManager(cache_root, clock=clock).get(LIST_KEY) is None
        assert cache.generation(PR_KEY) == 1

    async def test_invalidating_unknown_key_is_harmless(self, cache: CacheManager):
        await cache.invalidate(PR_KEY)
        assert len(cache) == 0

    async def test_purge_clears_everything(self, cache: CacheManager, cache_root: Path):
        await cache.put(PR_KEY, make_pr(42))
        await cache.put(LIST_KEY, (make_summary(42),))

        removed = await cache.purge()

        assert removed == 2
        assert len(cache) == 0
        assert list(cache_root.glob("*.json")) == []


class TestWarmAndScan:
    async def test_warm_loads_readable_records(self, cache: CacheManager, cache_root, clock):
        await cache.put(PR_KEY, make_pr(42))
        await cache.put(LIST_KEY, (make_summary(42),))
        (cache_root / "junk.json").write_text("nope", encoding="utf-8")

        reopened = CacheManager(cache_root, clock=clock)
        loaded = await reopened.warm()

        assert loaded == 2
        assert set(reopened.keys()) == {PR_KEY, LIST_KEY}

    async def test_iter_records_reports_unreadable_as_none(self, cache: CacheManager, cache_root):
        await cache.put(PR_KEY, make_pr(42))
        (cache_root / "junk.json").write_text("nope", encoding="utf-8")

        records = iter_records(cache_root)

        assert len(records) == 2
        assert sum(record is None for record in records) == 1

    def test_helpers_on_missing_directory(self, tmp_path: Path):
        assert iter_records(tmp_path / "absent") == []
        assert purge_directory(tmp_path / "absent") == 0
