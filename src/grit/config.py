"""Configuration loader for grit."""

from __future__ import annotations

import asyncio
import logging
import tomllib
from typing import TYPE_CHECKING, Literal, TypeAlias

import tomlkit
from pydantic import BaseModel, Field, ValidationError, field_validator

from grit.atomic import atomic_write
from grit.core.cache import DEFAULT_TTLS
from grit.core.models.enums import MergeMethod, ResourceKind
from grit.limits import FLASH_SECONDS, GH_VERSION_TIMEOUT, TASK_TIMEOUT
from grit.paths import get_config_path

if TYPE_CHECKING:
    from pathlib import Path

logger = logging.getLogger(__name__)

ForgeType: TypeAlias = Literal["github", "gitlab", "gitea"]


class GeneralConfig(BaseModel):
    """General configuration settings."""

    default_forge: str | None = Field(
        default=None, description="Forge to use when the git remote does not pick one"
    )
    task_timeout: float = Field(
        default=TASK_TIMEOUT, gt=0, description="Seconds before a network task fails"
    )
    default_merge_method: MergeMethod = Field(
        default=MergeMethod.MERGE, description="Merge strategy: merge, squash or rebase"
    )
    flash_seconds: float = Field(
        default=FLASH_SECONDS, ge=0, description="How long confirmation messages stay visible"
    )

    @field_validator("default_merge_method", mode="before")
    @classmethod
    def validate_default_merge_method(cls, value: object) -> str:
        """Gracefully coerce unknown merge methods to a plain merge."""
        match value:
            case str() as method if method.lower() in set(MergeMethod):
                return method.lower()
            case _:
                pass
        return MergeMethod.MERGE.value


class ForgeConfig(BaseModel):
    """One configured code-hosting service."""

    name: str = Field(..., description="Provider id used in cache keys (e.g., 'github')")
    type: ForgeType = Field(..., description="Backend family")
    host: str = Field(..., description="Hostname matched against git remotes")
    token_env: str | None = Field(default=None, description="Environment variable with a token")
    token_command: str | None = Field(default=None, description="Command printing a token")


class CacheConfig(BaseModel):
    """Response cache settings."""

    disk: bool = Field(default=True, description="Persist responses between runs")
    ttl: dict[str, float] = Field(
        default_factory=dict, description="Per-kind freshness overrides in seconds"
    )

    @field_validator("ttl", mode="before")
    @classmethod
    def drop_unknown_kinds(cls, value: object) -> object:
        match value:
            case dict() as mapping:
                known = set(ResourceKind)
                unknown = sorted(str(kind) for kind in mapping if kind not in known)
                if unknown:
                    logger.warning("Ignoring TTL overrides for unknown kinds: %s", unknown)
                return {kind: ttl for kind, ttl in mapping.items() if kind in known}
            case _:
                return value

    @field_validator("ttl")
    @classmethod
    def reject_negative(cls, value: dict[str, float]) -> dict[str, float]:
        for kind, seconds in value.items():
            if seconds < 0:
                msg = f"TTL for {kind} must not be negative"
                raise ValueError(msg)
        return value

    def ttl_overrides(self) -> dict[ResourceKind, float]:
        return {ResourceKind(kind): seconds for kind, seconds in self.ttl.items()}


def default_forges() -> list[ForgeConfig]:
    return [
        ForgeConfig(
            name="github",
            type="github",
            host="github.com",
            token_env="GITHUB_TOKEN",
            token_command="gh auth token",
        )
    ]


class GritConfig(BaseModel):
    """Root configuration model."""

    general: GeneralConfig = Field(default_factory=GeneralConfig)
    forges: list[ForgeConfig] = Field(default_factory=default_forges)
    cache: CacheConfig = Field(default_factory=CacheConfig)

    @field_validator("forges")
    @classmethod
    def ensure_forges(cls, value: list[ForgeConfig]) -> list[ForgeConfig]:
        return value or default_forges()

    @classmethod
    def load(cls, config_path: Path | None = None) -> GritConfig:
        """Load configuration from TOML file or use defaults.

        A file that cannot be read or validated is reported and ignored.
        """
        if config_path is None:
            config_path = get_config_path()
        if not config_path.exists():
            return cls()
        try:
            with open(config_path, "rb") as f:
                data = tomllib.load(f)
            return cls.model_validate(data)
        except (OSError, tomllib.TOMLDecodeError, ValidationError) as exc:
            logger.warning("Ignoring invalid config %s: %s", config_path, exc)
            return cls()

    def get_forge(self, name: str) -> ForgeConfig | None:
        return next((forge for forge in self.forges if forge.name == name), None)

    def select_forge(self, remote_url: str | None = None) -> ForgeConfig:
        """Forge for ``remote_url``'s host, else ``default_forge``, else the first one."""
        if remote_url:
            detected = detect_forge(self, remote_url)
            if detected is not None:
                return detected
        if self.general.default_forge:
            configured = self.get_forge(self.general.default_forge)
            if configured is not None:
                return configured
            logger.warning("default_forge %r is not configured", self.general.default_forge)
        return self.forges[0]

    def to_document(self, *, explain: bool = False) -> tomlkit.TOMLDocument:
        """TOML document of this config; ``explain`` annotates every setting."""
        doc = tomlkit.document()
        if explain:
            doc.add(tomlkit.comment("grit configuration"))
            doc.add(tomlkit.comment(f"Location: {get_config_path()}"))
            doc.add(tomlkit.nl())

        doc["general"] = _section_table(self.general, explain=explain)

        forges = tomlkit.aot()
        for forge in self.forges:
            forges.append(_section_table(forge, explain=explain))
        doc["forges"] = forges

        cache_table = _section_table(self.cache, explain=explain, skip={"ttl"})
        if self.cache.ttl:
            ttl_table = tomlkit.table()
            for kind, seconds in self.cache.ttl.items():
                ttl_table[kind] = seconds
            cache_table["ttl"] = ttl_table
        elif explain:
            cache_table.add(tomlkit.nl())
            cache_table.add(tomlkit.comment("[cache.ttl] overrides, seconds per resource kind:"))
            for kind, seconds in DEFAULT_TTLS.items():
                cache_table.add(tomlkit.comment(f"{kind} = {seconds:g}"))
        doc["cache"] = cache_table
        return doc

    async def save(self, path: Path, *, explain: bool = False) -> None:
        """Serialize current config to TOML file.

        Args:
            path: Path to write config file (created if missing)
            explain: Annotate each setting with its description
        """
        content = tomlkit.dumps(self.to_document(explain=explain))
        await asyncio.to_thread(atomic_write, path, content)

    def to_toml(self) -> str:
        """Effective configuration as TOML text (defaults filled in)."""
        return tomlkit.dumps(self.model_dump(mode="json", exclude_none=True))


def _section_table(
    model: BaseModel, *, explain: bool, skip: frozenset[str] | set[str] = frozenset()
) -> tomlkit.items.Table:
    """Table of ``model``'s fields; unset optional fields appear commented out when explaining."""
    table = tomlkit.table()
    for name, field in type(model).model_fields.items():
        if name in skip:
            continue
        value = getattr(model, name)
        if explain and field.description:
            table.add(tomlkit.comment(field.description))
        if value is None:
            if explain:
                table.add(tomlkit.comment(f'{name} = ""'))
            continue
        table[name] = value.value if isinstance(value, MergeMethod) else value
    return table


def extract_host(url: str) -> str | None:
    """Hostname of an SSH (``git@host:...``) or URL-style git remote."""
    url = url.strip()
    if url.startswith("git@"):
        host = url.removeprefix("git@").split(":", 1)[0]
    elif url.startswith(("https://", "http://", "ssh://")):
        authority = url.split("://", 1)[1].split("/", 1)[0]
        host = authority.rsplit("@", 1)[-1].split(":", 1)[0]
    else:
        return None
    return host or None


def detect_forge(config: GritConfig, remote_url: str) -> ForgeConfig | None:
    host = extract_host(remote_url)
    if host is None:
        return None
    return next((forge for forge in config.forges if forge.host == host), None)


async def read_origin_url(cwd: Path | None = None) -> str | None:
    """URL of the ``origin`` remote of the repository at ``cwd``, if any."""
    try:
        proc = await asyncio.create_subprocess_exec(
            "git",
            "remote",
            "get-url",
            "origin",
            cwd=cwd,
            stdout=asyncio.subprocess.PIPE,
            stderr=asyncio.subprocess.DEVNULL,
        )
    except OSError:
        return None
    try:
        async with asyncio.timeout(GH_VERSION_TIMEOUT):
            stdout, _ = await proc.communicate()
    except TimeoutError:
        logger.debug("git remote get-url timed out in %s", cwd or ".")
        proc.kill()
        await proc.wait()
        return None
    if proc.returncode != 0:
        return None
    return stdout.decode("utf-8", errors="replace").strip() or None
