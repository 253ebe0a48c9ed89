"""CLI command tests."""

from __future__ import annotations

import time
from typing import TYPE_CHECKING

import pytest
from click.testing import CliRunner

from grit import __version__
from grit.__main__ import cli
from grit.atomic import atomic_write
from grit.config import GritConfig
from grit.core.cache import CacheEntry, encode_record
from grit.core.keys import ResourceKey
from grit.core.models.enums import MergeMethod
from grit.paths import get_config_path, get_response_cache_dir
from tests.helpers import PROVIDER, REPO, make_pr

if TYPE_CHECKING:
    from pathlib import Path

pytestmark = pytest.mark.unit


def _seed_cache(*entries: CacheEntry) -> Path:
    root = get_response_cache_dir()
    for entry in entries:
        atomic_write(root / f"{entry.key.slug()}.json", encode_record(entry))
    return root


def test_version_flag() -> None:
    result = CliRunner().invoke(cli, ["--version"], obj={})

    assert result.exit_code == 0
    assert result.output.strip() == f"grit {__version__}"


def test_cache_path() -> None:
    result = CliRunner().invoke(cli, ["cache", "path"], obj={})

    assert result.output.strip() == str(get_response_cache_dir())


def test_cache_list_reports_age_and_freshness() -> None:
    now = time.time()
    root = _seed_cache(
        CacheEntry(ResourceKey.pr(PROVIDER, REPO, 42), make_pr(42), now),
        CacheEntry(ResourceKey.pr(PROVIDER, REPO, 7), make_pr(7), now - 3 * 3600),
    )
    (root / "broken.json").write_text("{", encoding="utf-8")

    result = CliRunner().invoke(cli, ["cache", "list"], obj={})

    assert result.exit_code == 0
    lines = result.output.splitlines()
    assert any("pr#42" in line and "fresh" in line for line in lines)
    assert any("pr#7" in line and "3h" in line and "stale" in line for line in lines)
    assert "2 entries, 1 unreadable" in lines[-1]


def test_cache_purge_requires_confirmation() -> None:
    root = _seed_cache(CacheEntry(ResourceKey.pr(PROVIDER, REPO, 42), make_pr(42), time.time()))

    result = CliRunner().invoke(cli, ["cache", "purge"], input="n\n", obj={})

    assert "Purge cancelled." in result.output
    assert len(list(root.glob("*.json"))) == 1


def test_cache_purge_with_yes() -> None:
    root = _seed_cache(CacheEntry(ResourceKey.pr(PROVIDER, REPO, 42), make_pr(42), time.time()))

    result = CliRunner().invoke(cli, ["cache", "purge", "--yes"], obj={})

    assert result.exit_code == 0
    assert "Removed 1 cached responses" in result.output
    assert list(root.glob("*.json")) == []


def test_config_path_honours_option(tmp_path: Path) -> None:
    custom = tmp_path / "custom.toml"

    default = CliRunner().invoke(cli, ["config", "path"], obj={})
    overridden = CliRunner().invoke(cli, ["--config", str(custom), "config", "path"], obj={})

    assert default.output.strip() == str(get_config_path())
    assert overridden.output.strip() == str(custom)


def test_config_show_prints_effective_toml(tmp_path: Path) -> None:
    config = tmp_path / "config.toml"
    config.write_text('[general]\ndefault_merge_method = "rebase"\n', encoding="utf-8")

    result = CliRunner().invoke(cli, ["--config", str(config), "config", "show"], obj={})

    assert result.exit_code == 0
    assert 'default_merge_method = "rebase"' in result.output
    assert 'host = "github.com"' in result.output


def test_tui_rejects_unknown_forge() -> None:
    result = CliRunner().invoke(cli, ["tui", "--forge", "nope"], obj={})

    assert result.exit_code != 0
    assert "unknown forge 'nope'" in result.output


def test_config_init_writes_commented_defaults(tmp_path: Path) -> None:
    target = tmp_path / "grit" / "config.toml"

    result = CliRunner().invoke(cli, ["--config", str(target), "config", "init"], obj={})

    assert result.exit_code == 0
    assert f"Config file written to {target}" in result.output
    text = target.read_text(encoding="utf-8")
    assert "# Persist responses between runs" in text
    assert GritConfig.load(target) == GritConfig()


def test_config_init_refuses_to_overwrite_without_force(tmp_path: Path) -> None:
    target = tmp_path / "config.toml"
    target.write_text('[general]\ndefault_merge_method = "squash"\n', encoding="utf-8")

    refused = CliRunner().invoke(cli, ["--config", str(target), "config", "init"], obj={})
    assert refused.exit_code != 0
    assert "--force" in refused.output
    assert "squash" in target.read_text(encoding="utf-8")

    forced = CliRunner().invoke(
        cli, ["--config", str(target), "config", "init", "--force"], obj={}
    )
    assert forced.exit_code == 0
    assert GritConfig.load(target).general.default_merge_method is MergeMethod.MERGE


def test_config_explain_documents_every_section() -> None:
    result = CliRunner().invoke(cli, ["config", "explain"], obj={})

    assert result.exit_code == 0
    for header in ("[general]", "[[forges]]", "[cache]"):
        assert header in result.output
    assert "# Merge strategy: merge, squash or rebase" in result.output
    assert "# checks = 30" in result.output
