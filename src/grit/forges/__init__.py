"""Concrete forge backends and their construction from configuration."""

from __future__ import annotations

import asyncio
import logging
import os
import shlex
from typing import TYPE_CHECKING, TypeAlias

from grit.forges.github import GitHubForge
from grit.limits import GH_VERSION_TIMEOUT

if TYPE_CHECKING:
    from collections.abc import Callable

    from grit.config import ForgeConfig
    from grit.core.forge import Forge

    ForgeFactory: TypeAlias = Callable[[ForgeConfig, str | None], Forge]

logger = logging.getLogger(__name__)


def _github(config: ForgeConfig, token: str | None) -> Forge:
    return GitHubForge(config.name, config.host, token=token)


FORGE_FACTORIES: dict[str, ForgeFactory] = {
    "github": _github,
}


async def resolve_token(config: ForgeConfig) -> str | None:
    """Token from ``token_env``, else the output of ``token_command``, else none."""
    if config.token_env:
        token = os.environ.get(config.token_env, "").strip()
        if token:
            return token
    if not config.token_command:
        return None
    try:
        proc = await asyncio.create_subprocess_exec(
            *shlex.split(config.token_command),
            stdout=asyncio.subprocess.PIPE,
            stderr=asyncio.subprocess.DEVNULL,
        )
    except OSError as exc:
        logger.warning("token_command for %s failed to start: %s", config.name, exc)
        return None
    try:
        async with asyncio.timeout(GH_VERSION_TIMEOUT):
            stdout, _ = await proc.communicate()
    except TimeoutError:
        proc.kill()
        logger.warning("token_command for %s timed out", config.name)
        return None
    if proc.returncode != 0:
        logger.warning("token_command for %s exited with %s", config.name, proc.returncode)
        return None
    return stdout.decode("utf-8", errors="replace").strip() or None


def build_forge(config: ForgeConfig, token: str | None) -> Forge | None:
    """Backend for ``config``, or ``None`` when its type has no adapter."""
    factory = FORGE_FACTORIES.get(config.type)
    if factory is None:
        logger.info("No adapter for %s forges; %s is unavailable", config.type, config.name)
        return None
    return factory(config, token)


__all__ = ["FORGE_FACTORIES", "GitHubForge", "build_forge", "resolve_token"]
