"""Pytest fixtures for grit tests."""

from __future__ import annotations

import os
import shutil
import tempfile
from pathlib import Path
from typing import TYPE_CHECKING

import pytest
from hypothesis import Phase, Verbosity, settings

_TEST_BASE_DIR = Path(tempfile.mkdtemp(prefix="grit-tests-"))
os.environ["GRIT_DATA_DIR"] = str(_TEST_BASE_DIR / "data")
os.environ["GRIT_CONFIG_DIR"] = str(_TEST_BASE_DIR / "config")
os.environ["GRIT_CACHE_DIR"] = str(_TEST_BASE_DIR / "cache")

from grit.core.cache import CacheManager  # noqa: E402
from grit.core.epoch import ConsistencyController  # noqa: E402
from grit.core.forge import ForgeRegistry  # noqa: E402
from grit.core.runtime import Engine  # noqa: E402
from tests.helpers.fakes import PROVIDER, FakeClock, FakeForge, RecordingSideEffects  # noqa: E402

if TYPE_CHECKING:
    from collections.abc import AsyncGenerator, Generator


settings.register_profile(
    "ci",
    max_examples=100,
    deadline=None,
    phases=[Phase.explicit, Phase.reuse, Phase.generate, Phase.shrink],
)
settings.register_profile(
    "dev",
    max_examples=20,
    deadline=500,
)
settings.register_profile(
    "debug",
    max_examples=10,
    verbosity=Verbosity.verbose,
    deadline=None,
)
settings.load_profile(os.getenv("HYPOTHESIS_PROFILE", "dev"))


@pytest.fixture(autouse=True)
def _clean_grit_dirs() -> Generator[None, None, None]:
    """Ensure config and cache files don't leak between tests."""
    yield
    for name in ("GRIT_DATA_DIR", "GRIT_CONFIG_DIR", "GRIT_CACHE_DIR"):
        shutil.rmtree(os.environ[name], ignore_errors=True)


@pytest.fixture
def clock() -> FakeClock:
    return FakeClock()


@pytest.fixture
def forge() -> FakeForge:
    return FakeForge()


@pytest.fixture
def registry(forge: FakeForge) -> ForgeRegistry:
    return ForgeRegistry({PROVIDER: forge})


@pytest.fixture
def cache_root(tmp_path: Path) -> Path:
    return tmp_path / "responses"


@pytest.fixture
def cache(cache_root: Path, clock: FakeClock) -> CacheManager:
    return CacheManager(cache_root, clock=clock)


@pytest.fixture
def side_effects() -> RecordingSideEffects:
    return RecordingSideEffects()


@pytest.fixture
def controller() -> ConsistencyController:
    return ConsistencyController(strict=True)


@pytest.fixture
async def engine(
    registry: ForgeRegistry,
    cache: CacheManager,
    side_effects: RecordingSideEffects,
    controller: ConsistencyController,
) -> AsyncGenerator[Engine, None]:
    """Engine on the home screen; not booted, so tests choose when fetches start."""
    engine = Engine(
        provider=PROVIDER,
        forges=registry,
        cache=cache,
        side_effects=side_effects,
        controller=controller,
        timeout=1.0,
    )
    yield engine
    await engine.stop()
