"""Application bootstrap and dependency injection.

``bootstrap_app`` wires configuration, the forge registry, the response cache
and the engine together, and tears them down again on exit.

Usage:
    async with bootstrap_app() as ctx:
        ctx.engine.start()
        # ... run application ...
"""

from __future__ import annotations

import logging
from contextlib import asynccontextmanager
from dataclasses import dataclass
from typing import TYPE_CHECKING

from grit.config import GritConfig, read_origin_url
from grit.core.cache import CacheManager
from grit.core.errors import GritError
from grit.core.forge import ForgeRegistry
from grit.core.runtime import Engine
from grit.core.side_effects import SystemSideEffects
from grit.forges import build_forge, resolve_token
from grit.paths import get_response_cache_dir

if TYPE_CHECKING:
    from collections.abc import AsyncIterator
    from pathlib import Path

    from grit.core.side_effects import SideEffects

logger = logging.getLogger(__name__)


@dataclass
class AppContext:
    """Everything a running grit session needs, created once per process."""

    config: GritConfig
    provider: str
    forges: ForgeRegistry
    cache: CacheManager
    engine: Engine

    async def close(self) -> None:
        await self.engine.stop()


async def build_registry(config: GritConfig) -> ForgeRegistry:
    """Register a backend for every configured forge whose type has an adapter."""
    registry = ForgeRegistry()
    for forge_config in config.forges:
        token = await resolve_token(forge_config)
        try:
            forge = build_forge(forge_config, token)
        except GritError as exc:
            logger.warning("Forge %s is unavailable: %s", forge_config.name, exc)
            continue
        if forge is not None:
            registry.register(forge_config.name, forge)
    return registry


def build_cache(config: GritConfig, root: Path | None = None) -> CacheManager:
    disk_root = (root or get_response_cache_dir()) if config.cache.disk else None
    return CacheManager(disk_root, ttls=config.cache.ttl_overrides())


@asynccontextmanager
async def bootstrap_app(
    config_path: Path | None = None,
    *,
    config: GritConfig | None = None,
    forge_name: str | None = None,
    forges: ForgeRegistry | None = None,
    cache_root: Path | None = None,
    side_effects: SideEffects | None = None,
) -> AsyncIterator[AppContext]:
    """Bootstrap the application context with all collaborators wired.

    Args:
        config_path: Path to config.toml (defaults to the per-user location).
        config: Optional pre-loaded config (for testing).
        forge_name: Forge to open; otherwise detected from the ``origin`` remote.
        forges: Optional pre-built registry (for testing).
        cache_root: Optional response cache directory override.
        side_effects: Optional browser/clipboard executor (for testing).

    Yields:
        Fully initialized AppContext. In-flight tasks are drained on exit.
    """
    if config is None:
        config = GritConfig.load(config_path)
    if forge_name is not None:
        selected = config.get_forge(forge_name)
        if selected is None:
            msg = f"Unknown forge {forge_name!r}; configured: {[f.name for f in config.forges]}"
            raise ValueError(msg)
    else:
        selected = config.select_forge(await read_origin_url())
    if forges is None:
        forges = await build_registry(config)

    cache = build_cache(config, cache_root)
    await cache.warm()
    engine = Engine(
        provider=selected.name,
        forges=forges,
        cache=cache,
        side_effects=side_effects or SystemSideEffects(),
        timeout=config.general.task_timeout,
    )
    ctx = AppContext(
        config=config, provider=selected.name, forges=forges, cache=cache, engine=engine
    )
    logger.info("Opened %s (%d forges registered)", selected.name, len(forges))
    try:
        yield ctx
    finally:
        await ctx.close()
